from datetime import datetime, timezone

from eventgraph.logging import (
    append_record,
    build_retrieval_record,
    load_records,
    log_retrieval,
)


def _fields(**overrides):
    fields = dict(
        label="chat",
        query="coffee",
        candidates=12,
        admitted=9,
        rejected=3,
        degraded=False,
        pool=[{"node_id": f"e{i}", "composite_score": 1.0 - i / 10} for i in range(8)],
        latency_ms=4.2,
    )
    fields.update(overrides)
    return fields


def test_build_record_counts_and_top_n():
    ts = datetime(2024, 1, 15, 12, tzinfo=timezone.utc)
    record = build_retrieval_record(**_fields(), top_n=3, timestamp=ts, reasons=["pool_capped"])

    assert record["timestamp"] == ts.isoformat()
    assert record["counts"] == {"candidates": 12, "admitted": 9, "rejected": 3, "pool_size": 8}
    assert [row["node_id"] for row in record["top"]] == ["e0", "e1", "e2"]
    assert record["reasons"] == ["pool_capped"]
    assert "notes" not in record


def test_append_and_load(tmp_path):
    path = tmp_path / "nested" / "rounds.jsonl"
    append_record(path, build_retrieval_record(**_fields(label="first")))
    append_record(path, build_retrieval_record(**_fields(label="second", degraded=True)))

    records = load_records(path)
    assert [r["label"] for r in records] == ["first", "second"]
    assert records[1]["degraded"] is True


def test_log_retrieval_dry_run_does_not_write(tmp_path):
    path = tmp_path / "rounds.jsonl"
    record = log_retrieval(output_path=path, dry_run=True, **_fields(notes="dry"))
    assert record["notes"] == "dry"
    assert not path.exists()


def test_log_retrieval_survives_unwritable_path(tmp_path, caplog):
    record = log_retrieval(output_path=tmp_path, **_fields())
    assert record["label"] == "chat"
    assert any("Failed to append retrieval record" in r.getMessage() for r in caplog.records)
