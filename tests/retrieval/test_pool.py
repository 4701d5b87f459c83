import threading

import pytest

from eventgraph.runtime.retrieval.models import EventNode, ScoredNode
from eventgraph.runtime.retrieval.pool import ScoredNodePool, merge_and_prune


def _scored(node_id: str, score: float) -> ScoredNode:
    return ScoredNode(node=EventNode(id=node_id, name=node_id), composite_score=score)


def test_merge_overlapping_rounds_keeps_top_twenty():
    existing = [_scored(f"node_{i}", i / 15) for i in range(15)]
    new = [_scored(f"node_{i}", i / 15) for i in range(10, 20)]

    pool = merge_and_prune(existing, new, max_pool_size=20)

    assert len(pool) == 20
    scores = [s.composite_score for s in pool]
    assert all(a > b for a, b in zip(scores, scores[1:]))
    assert scores[0] == pytest.approx(19 / 15)
    assert len({s.node_id for s in pool}) == 20


def test_pool_length_is_min_of_cap_and_unique_ids():
    existing = [_scored("a", 0.1), _scored("b", 0.2)]
    new = [_scored("b", 0.3), _scored("c", 0.4)]
    assert len(merge_and_prune(existing, new, 10)) == 3
    assert len(merge_and_prune(existing, new, 2)) == 2
    assert merge_and_prune(existing, new, 0) == []


def test_higher_score_replaces_lower_only():
    existing = [_scored("a", 0.5)]
    upgraded = merge_and_prune(existing, [_scored("a", 0.9)], 5)
    downgraded = merge_and_prune(existing, [_scored("a", 0.1)], 5)
    assert [s.composite_score for s in upgraded] == [0.9]
    assert [s.composite_score for s in downgraded] == [0.5]


def test_tie_keeps_first_encountered_entry():
    original = _scored("a", 0.5)
    challenger = _scored("a", 0.5)
    pool = merge_and_prune([original], [challenger], 5)
    assert pool[0] is original


def test_equal_scores_keep_encounter_order():
    pool = merge_and_prune([_scored("x", 0.5), _scored("y", 0.5)], [_scored("z", 0.5)], 5)
    assert [s.node_id for s in pool] == ["x", "y", "z"]


def test_merge_without_new_nodes_is_idempotent():
    pool = merge_and_prune([], [_scored("a", 0.2), _scored("b", 0.7)], 5)
    again = merge_and_prune(pool, [], 5)
    assert [s.node_id for s in again] == [s.node_id for s in pool]
    assert merge_and_prune(again, [], 5) == again


def test_negative_cap_rejected():
    with pytest.raises(ValueError):
        merge_and_prune([], [], -1)
    with pytest.raises(ValueError):
        ScoredNodePool(-1)


def test_pool_object_merge_results_and_clear():
    pool = ScoredNodePool(max_size=2)
    pool.merge([_scored("a", 0.1), _scored("b", 0.9), _scored("c", 0.5)])
    assert len(pool) == 2
    assert "b" in pool and "c" in pool and "a" not in pool
    assert [(n.id, score) for n, score in pool.results()] == [("b", 0.9), ("c", 0.5)]
    pool.clear()
    assert len(pool) == 0


def test_concurrent_merges_stay_bounded_and_unique():
    pool = ScoredNodePool(max_size=10)

    def worker(offset: int) -> None:
        for i in range(50):
            pool.merge([_scored(f"n{(offset + i) % 30}", ((offset + i) % 30) / 30)])

    threads = [threading.Thread(target=worker, args=(k * 7,)) for k in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    ids = [s.node_id for s in pool]
    assert len(ids) == 10
    assert len(set(ids)) == 10
    assert [s.node_id for s in pool] == [f"n{i}" for i in range(29, 19, -1)]
