"""
Pool Manager - Bounded, deduplicated, score-sorted candidate pool

WHAT: Merge-and-prune of scored nodes across successive retrieval rounds
WHERE: eventgraph/runtime/retrieval/pool.py - working-set layer
WHO: Retrieval orchestrator (single writer per pool)
TIME: O(n log n) per merge, n = pool size + new nodes

Keep top-K by composite score, deduplicated by node id. The pool is re-solved
from scratch on every merge rather than maintained incrementally (heap);
the sort is stable, so ties keep encounter order (pool first, then new nodes).
"""

from __future__ import annotations

import threading
from typing import Dict, Iterable, List, Sequence, Tuple

from .models import EventNode, ScoredNode


def merge_and_prune(
    existing_pool: Sequence[ScoredNode],
    new_nodes: Iterable[ScoredNode],
    max_pool_size: int,
) -> List[ScoredNode]:
    """
    Combine new scored candidates into a pool and truncate to `max_pool_size`.

    A repeated id is replaced only by a strictly higher composite score; the
    replacement keeps the slot of the entry it replaces. Evicted entries are
    dropped.
    """
    if max_pool_size < 0:
        raise ValueError("max_pool_size must be non-negative")

    best: Dict[str, ScoredNode] = {}
    for scored in existing_pool:
        current = best.get(scored.node_id)
        if current is None or scored.composite_score > current.composite_score:
            best[scored.node_id] = scored

    for scored in new_nodes:
        current = best.get(scored.node_id)
        if current is None or scored.composite_score > current.composite_score:
            best[scored.node_id] = scored

    ranked = sorted(best.values(), key=lambda s: s.composite_score, reverse=True)
    return ranked[:max_pool_size]


class ScoredNodePool:
    """Owns one pool snapshot and serialises merges against it."""

    def __init__(self, max_size: int = 20) -> None:
        if max_size < 0:
            raise ValueError("max_size must be non-negative")
        self._max_size = max_size
        self._entries: Tuple[ScoredNode, ...] = ()
        self._lock = threading.Lock()

    @property
    def max_size(self) -> int:
        return self._max_size

    @property
    def entries(self) -> Tuple[ScoredNode, ...]:
        return self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self):
        return iter(self._entries)

    def __contains__(self, node_id: object) -> bool:
        return any(s.node_id == node_id for s in self._entries)

    def merge(self, new_nodes: Iterable[ScoredNode]) -> Tuple[ScoredNode, ...]:
        """Merge under the pool lock and return the new snapshot."""
        incoming = list(new_nodes)
        with self._lock:
            self._entries = tuple(merge_and_prune(self._entries, incoming, self._max_size))
            return self._entries

    def results(self) -> List[Tuple[EventNode, float]]:
        """Ordered (node, composite score) pairs for consumers."""
        return [(s.node, s.composite_score) for s in self._entries]

    def clear(self) -> None:
        with self._lock:
            self._entries = ()


__all__ = ["ScoredNodePool", "merge_and_prune"]
