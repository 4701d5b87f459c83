from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from eventgraph.runtime.retrieval.models import EventNode, RetrievalContext, ScoredNode


def test_naive_times_are_treated_as_utc():
    node = EventNode(id="e1", name="Standup", start_time=datetime(2024, 1, 15, 9, 0))
    assert node.start_time == datetime(2024, 1, 15, 9, 0, tzinfo=timezone.utc)


def test_end_before_start_rejected():
    with pytest.raises(ValidationError):
        EventNode(
            id="e1",
            name="Backwards",
            start_time=datetime(2024, 1, 15, 12, tzinfo=timezone.utc),
            end_time=datetime(2024, 1, 15, 10, tzinfo=timezone.utc),
        )


def test_empty_id_rejected():
    with pytest.raises(ValidationError):
        EventNode(id="", name="No id")


def test_non_finite_embedding_rejected():
    with pytest.raises(ValidationError):
        EventNode(id="e1", name="Bad vector", embedding=[0.1, float("inf")])


def test_time_span_collapses_missing_bound():
    start = datetime(2024, 1, 15, 9, tzinfo=timezone.utc)
    assert EventNode(id="a", name="a", start_time=start).time_span() == (start, start)
    assert EventNode(id="b", name="b", end_time=start).time_span() == (start, start)
    assert EventNode(id="c", name="c").time_span() is None


def test_embedding_text_skips_blank_fields():
    node = EventNode(id="e1", name="Lunch with Mia", type="meal", location="  Cafe Rouge ")
    assert node.embedding_text() == "Lunch with Mia meal Cafe Rouge"


def test_touch_sets_last_seen():
    when = datetime(2024, 2, 1, 8, tzinfo=timezone.utc)
    node = EventNode(id="e1", name="Gym")
    node.touch(when)
    assert node.last_seen_time == when


def test_record_round_trip():
    node = EventNode(
        id="e1",
        name="Quarterly planning",
        type="meeting",
        location="Room 4",
        start_time=datetime(2024, 3, 1, 14, tzinfo=timezone.utc),
        end_time=datetime(2024, 3, 1, 16, tzinfo=timezone.utc),
        embedding=[0.1, 0.2, 0.3],
        entity_ids=["p:alice"],
        metadata={"source": "calendar"},
    )
    restored = EventNode.from_record(node.to_record())
    assert restored == node


def test_context_is_frozen_and_defaults_query_time():
    ctx = RetrievalContext(focus_topics=("coffee",))
    assert ctx.query_time.tzinfo is not None
    with pytest.raises(ValidationError):
        ctx.target_location = "Paris"  # type: ignore[misc]


def test_scored_node_maps_are_read_only():
    scored = ScoredNode(
        node=EventNode(id="e1", name="x"),
        constraint_scores={"TemporalProximity": 0.5},
        constraint_weights={"TemporalProximity": 1.0},
        composite_score=0.25,
    )
    with pytest.raises(TypeError):
        scored.constraint_scores["TemporalProximity"] = 1.0  # type: ignore[index]
    bumped = scored.with_composite(0.9)
    assert bumped.composite_score == 0.9
    assert scored.composite_score == 0.25
    assert bumped.to_dict()["node_id"] == "e1"


def test_scored_node_default_timestamp_is_recent():
    scored = ScoredNode(node=EventNode(id="e1", name="x"))
    assert datetime.now(timezone.utc) - scored.scored_at < timedelta(minutes=1)
