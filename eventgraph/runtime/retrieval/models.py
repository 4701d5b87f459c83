"""
Retrieval Models - Type-safe entities flowing through the retrieval engine

WHAT: Pydantic models for event nodes and retrieval context; scored-node values
WHERE: eventgraph/runtime/retrieval/models.py - data layer
WHO: Constraints, scoring, pool manager, and orchestrator
TIME: Model validation <1ms

EventNode mirrors the record kept by the storage collaborator:
- Identity (id), descriptive fields (name, type, description, location)
- Temporal span (start_time/end_time) and last access (last_seen_time)
- Optional embedding vector, absent until the embedding model fills it

ScoredNode is an immutable ranking wrapper. Re-scoring produces a new value,
so the same node can sit in several pools without aliasing surprises.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Treat naive datetimes as UTC so aware/naive values never meet."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _parse_time(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


class EventNode(BaseModel):
    """
    Graph vertex representing an event or fact.

    Examples:
    - name="Lunch with Mia", type="meal", location="Cafe Rouge, Wuhan"
    - name="Quarterly planning", type="meeting", start/end on the same afternoon
    """

    id: str = Field(min_length=1)
    name: str
    type: str = "event"
    description: Optional[str] = None
    location: Optional[str] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    last_seen_time: Optional[datetime] = None
    embedding: Optional[List[float]] = None
    entity_ids: List[str] = Field(default_factory=list)
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("start_time", "end_time", "last_seen_time")
    @classmethod
    def _normalize_times(cls, value: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(value)

    @field_validator("embedding")
    @classmethod
    def _finite_embedding(cls, value: Optional[List[float]]) -> Optional[List[float]]:
        if value is not None and not all(math.isfinite(x) for x in value):
            raise ValueError("embedding values must be finite")
        return value

    @model_validator(mode="after")
    def _check_span(self) -> EventNode:
        if self.start_time and self.end_time and self.end_time < self.start_time:
            raise ValueError("end_time must not precede start_time")
        return self

    @property
    def has_time(self) -> bool:
        return self.start_time is not None or self.end_time is not None

    def time_span(self) -> Optional[Tuple[datetime, datetime]]:
        """Return (start, end); a missing bound collapses onto the present one."""
        if not self.has_time:
            return None
        start = self.start_time or self.end_time
        end = self.end_time or self.start_time
        return start, end  # type: ignore[return-value]

    def embedding_text(self) -> str:
        """Compose the text handed to the embedding model."""
        parts = [self.name, self.type, self.description or "", self.location or ""]
        return " ".join(p.strip() for p in parts if p and p.strip())

    def touch(self, when: Optional[datetime] = None) -> None:
        """Record an access (retrieval hit) at `when`."""
        self.last_seen_time = ensure_utc(when) or utc_now()

    def to_record(self) -> Dict[str, Any]:
        """Convert to a JSON-serialisable storage record."""
        return {
            "id": self.id,
            "name": self.name,
            "type": self.type,
            "description": self.description,
            "location": self.location,
            "start_time": self.start_time.isoformat() if self.start_time else None,
            "end_time": self.end_time.isoformat() if self.end_time else None,
            "last_seen_time": self.last_seen_time.isoformat() if self.last_seen_time else None,
            "embedding": self.embedding,
            "entity_ids": self.entity_ids,
            "metadata": self.metadata,
        }

    @classmethod
    def from_record(cls, doc: Dict[str, Any]) -> EventNode:
        """Create instance from a storage record."""
        return cls(
            id=doc["id"],
            name=doc.get("name", ""),
            type=doc.get("type", "event"),
            description=doc.get("description"),
            location=doc.get("location"),
            start_time=_parse_time(doc.get("start_time")),
            end_time=_parse_time(doc.get("end_time")),
            last_seen_time=_parse_time(doc.get("last_seen_time")),
            embedding=doc.get("embedding"),
            entity_ids=doc.get("entity_ids", []),
            metadata=doc.get("metadata", {}),
        )


class RetrievalContext(BaseModel):
    """Query-time parameters; immutable for the duration of one retrieval round."""

    model_config = ConfigDict(frozen=True)

    focus_topics: Tuple[str, ...] = ()
    query_time: datetime = Field(default_factory=utc_now)
    target_location: Optional[str] = None
    target_entity_ids: Tuple[str, ...] = ()

    @field_validator("query_time")
    @classmethod
    def _normalize_query_time(cls, value: datetime) -> datetime:
        return ensure_utc(value)  # type: ignore[return-value]


@dataclass(frozen=True, slots=True)
class ConstraintResult:
    """Outcome of one constraint evaluation."""

    passes: bool
    score_contribution: float = 0.0
    reason: Optional[str] = None

    @classmethod
    def passed(cls, score: float = 0.0, reason: Optional[str] = None) -> ConstraintResult:
        return cls(passes=True, score_contribution=score, reason=reason)

    @classmethod
    def failed(cls, reason: Optional[str] = None) -> ConstraintResult:
        return cls(passes=False, score_contribution=0.0, reason=reason)


def _frozen_mapping(values: Optional[Mapping[str, float]]) -> Mapping[str, float]:
    return MappingProxyType(dict(values or {}))


@dataclass(frozen=True, slots=True)
class ScoredNode:
    """Ranking wrapper around one EventNode."""

    node: EventNode
    embedding_score: float = 0.0
    constraint_scores: Mapping[str, float] = field(default_factory=dict)
    constraint_weights: Mapping[str, float] = field(default_factory=dict)
    composite_score: float = 0.0
    matched_topic: Optional[str] = None
    scored_at: datetime = field(default_factory=utc_now)

    def __post_init__(self) -> None:
        object.__setattr__(self, "constraint_scores", _frozen_mapping(self.constraint_scores))
        object.__setattr__(self, "constraint_weights", _frozen_mapping(self.constraint_weights))

    @property
    def node_id(self) -> str:
        return self.node.id

    def with_composite(self, composite_score: float) -> ScoredNode:
        return replace(self, composite_score=composite_score)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "node_id": self.node.id,
            "node_name": self.node.name,
            "embedding_score": self.embedding_score,
            "constraint_scores": dict(self.constraint_scores),
            "composite_score": self.composite_score,
            "matched_topic": self.matched_topic,
            "scored_at": self.scored_at.isoformat(),
        }


__all__ = [
    "ConstraintResult",
    "EventNode",
    "RetrievalContext",
    "ScoredNode",
    "ensure_utc",
    "utc_now",
]
