import logging

import pytest

from eventgraph.runtime.retrieval.telemetry import (
    LoggingTelemetryClient,
    NoOpTelemetryClient,
    TelemetryClient,
)


class CaptureTelemetryClient(TelemetryClient):
    def __init__(self) -> None:
        self.spans: list[tuple[str, dict]] = []

    def emit_span(self, name: str, attributes: dict) -> None:
        self.spans.append((name, attributes))


def test_span_records_duration_and_success():
    client = CaptureTelemetryClient()
    with client.span("retrieval.round", attributes={"label": "x"}) as span:
        span.set_attribute("candidates", 4)

    name, attrs = client.spans[0]
    assert name == "retrieval.round"
    assert attrs["label"] == "x"
    assert attrs["candidates"] == 4
    assert attrs["success"] is True
    assert attrs["duration_ms"] >= 0.0


def test_span_marks_failure_and_propagates():
    client = CaptureTelemetryClient()
    with pytest.raises(KeyError):
        with client.span("retrieval.round"):
            raise KeyError("boom")
    assert client.spans[0][1]["success"] is False


def test_noop_client_discards():
    client = NoOpTelemetryClient()
    with client.span("retrieval.round") as span:
        span.set_attribute("k", 1)


def test_logging_client_writes_one_line(caplog):
    client = LoggingTelemetryClient(level=logging.INFO)
    with caplog.at_level(logging.INFO, logger="eventgraph.runtime.retrieval.telemetry"):
        with client.span("retrieval.embed_query", attributes={"query_chars": 6}):
            pass
    assert any("[telemetry] retrieval.embed_query" in r.getMessage() for r in caplog.records)
