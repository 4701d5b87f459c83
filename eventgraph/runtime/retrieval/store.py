"""
Node Store - Storage collaborator interface for event nodes

WHAT: NodeStore protocol plus a thread-safe in-memory implementation
WHERE: eventgraph/runtime/retrieval/store.py - persistence boundary
WHO: Orchestrator (bulk candidate fetch, last-seen updates), scripts, tests
TIME: In-memory operations O(1) by id, O(n) for range queries

Persistent backends live outside this package; they only need to satisfy
the NodeStore protocol. Queries return possibly-empty lists, never None.
"""

from __future__ import annotations

import threading
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Protocol

from .models import EventNode, ensure_utc


class NodeStore(Protocol):
    """Abstract interface for event-node persistence."""

    def put(self, node: EventNode) -> str:
        """Insert or replace a node; returns its id."""

    def get(self, node_id: str) -> Optional[EventNode]:
        """Fetch a node by id, or None if unknown."""

    def delete(self, node_id: str) -> bool:
        """Remove a node; returns whether it existed."""

    def list_range(self, start: Optional[datetime], end: Optional[datetime]) -> List[EventNode]:
        """Nodes whose time span intersects [start, end]."""

    def list_all(self) -> List[EventNode]:
        """Bulk fetch of every node."""

    def mark_seen(self, node_ids: Iterable[str], when: datetime) -> int:
        """Set last_seen_time on the given nodes; returns how many were updated."""


class InMemoryNodeStore(NodeStore):
    """Dictionary-backed store; insertion order is preserved for bulk fetches."""

    def __init__(self, nodes: Iterable[EventNode] = ()) -> None:
        self._nodes: Dict[str, EventNode] = {}
        self._lock = threading.RLock()
        for node in nodes:
            self.put(node)

    def __len__(self) -> int:
        return len(self._nodes)

    def put(self, node: EventNode) -> str:
        with self._lock:
            self._nodes[node.id] = node
        return node.id

    def get(self, node_id: str) -> Optional[EventNode]:
        with self._lock:
            return self._nodes.get(node_id)

    def delete(self, node_id: str) -> bool:
        with self._lock:
            return self._nodes.pop(node_id, None) is not None

    def list_range(self, start: Optional[datetime], end: Optional[datetime]) -> List[EventNode]:
        start = ensure_utc(start)
        end = ensure_utc(end)
        rows: List[EventNode] = []
        with self._lock:
            for node in self._nodes.values():
                span = node.time_span()
                if span is None:
                    continue
                if start is not None and span[1] < start:
                    continue
                if end is not None and span[0] > end:
                    continue
                rows.append(node)
        return rows

    def list_all(self) -> List[EventNode]:
        with self._lock:
            return list(self._nodes.values())

    def mark_seen(self, node_ids: Iterable[str], when: datetime) -> int:
        updated = 0
        with self._lock:
            for node_id in node_ids:
                node = self._nodes.get(node_id)
                if node is not None:
                    node.touch(when)
                    updated += 1
        return updated


__all__ = ["InMemoryNodeStore", "NodeStore"]
