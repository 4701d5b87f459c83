from datetime import datetime, timedelta, timezone

from eventgraph.runtime.retrieval.models import EventNode
from eventgraph.runtime.retrieval.store import InMemoryNodeStore

UTC = timezone.utc
DAY = datetime(2024, 1, 15, tzinfo=UTC)


def _event(node_id, start=None, end=None):
    return EventNode(id=node_id, name=node_id, start_time=start, end_time=end)


def test_put_get_delete():
    store = InMemoryNodeStore()
    assert store.put(_event("a")) == "a"
    assert store.get("a").id == "a"
    assert store.get("missing") is None
    assert store.delete("a") is True
    assert store.delete("a") is False
    assert len(store) == 0


def test_put_replaces_by_id_and_keeps_insertion_order():
    store = InMemoryNodeStore([_event("a"), _event("b"), _event("c")])
    store.put(EventNode(id="b", name="renamed"))
    assert [n.id for n in store.list_all()] == ["a", "b", "c"]
    assert store.get("b").name == "renamed"


def test_list_range_uses_span_intersection():
    store = InMemoryNodeStore(
        [
            _event("morning", DAY + timedelta(hours=8), DAY + timedelta(hours=10)),
            _event("evening", DAY + timedelta(hours=18), DAY + timedelta(hours=20)),
            _event("untimed"),
            _event("point", DAY + timedelta(hours=12)),
        ]
    )
    rows = store.list_range(DAY + timedelta(hours=9), DAY + timedelta(hours=12))
    assert [n.id for n in rows] == ["morning", "point"]
    assert [n.id for n in store.list_range(None, None)] == ["morning", "evening", "point"]


def test_list_range_empty_result_is_list():
    store = InMemoryNodeStore()
    assert store.list_range(DAY, DAY + timedelta(days=1)) == []


def test_mark_seen_updates_known_ids():
    store = InMemoryNodeStore([_event("a"), _event("b")])
    when = DAY + timedelta(hours=6)
    assert store.mark_seen(["a", "ghost"], when) == 1
    assert store.get("a").last_seen_time == when
    assert store.get("b").last_seen_time is None
