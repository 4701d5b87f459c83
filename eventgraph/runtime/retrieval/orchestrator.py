"""
Retrieval Orchestrator - End-to-end retrieval rounds over the event graph

WHAT: Constraint-set builders, scoring rounds, pool merging, public engine API
WHERE: eventgraph/runtime/retrieval/orchestrator.py - top of the retrieval stack
WHO: Chat/voice/journal pipelines asking "which events matter for this query?"
TIME: One round is O(n·(d + c)) scoring + O(k log k) merge

A round: embed query -> gate candidates on hard constraints -> score with
similarity, soft constraints and recency -> merge into the pool -> prune.

Failure semantics:
- No query embedding (empty text, model missing, timeout): every candidate
  gets embedding_score 0 and the round continues on constraints alone;
  the outcome is flagged `degraded`.
- Mixed embedding dimensions raise EmbeddingDimensionError (caller bug).

The pool has a single writer: merges are serialised by the pool's lock, and
the context/constraint set are read-only for the duration of a round.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from time import monotonic
from typing import Any, Callable, Iterable, List, Optional, Sequence, Tuple, Union

from ...logging.retrieval_log import log_retrieval
from .constraints import (
    Constraint,
    EntityPresenceConstraint,
    FreshnessBoostConstraint,
    LocationMatchConstraint,
    LocationSimilarityConstraint,
    TemporalProximityConstraint,
    TimeWindowConstraint,
    evaluate_constraints,
)
from .embedding import EmbeddingService, EmbeddingServiceConfig
from .models import EventNode, RetrievalContext, ScoredNode
from .pool import ScoredNodePool
from .scoring import embedding_score_for, score_node
from .settings import RetrievalConfig
from .store import NodeStore
from .telemetry import NoOpTelemetryClient, TelemetryClient
from .vector_math import validate_dimension

logger = logging.getLogger(__name__)

CandidateSource = Union[
    Iterable[EventNode],
    Callable[[RetrievalContext], Iterable[EventNode]],
    NodeStore,
]


@dataclass(slots=True)
class RetrievalOutcome:
    """Result of one retrieval round."""

    pool: Tuple[ScoredNode, ...]
    scored: List[ScoredNode]
    candidates: int
    rejected: int
    degraded: bool
    reasons: List[str] = field(default_factory=list)
    latency_ms: float = 0.0

    @property
    def admitted(self) -> int:
        return len(self.scored)

    def results(self) -> List[Tuple[EventNode, float]]:
        return [(s.node, s.composite_score) for s in self.pool]


class RetrievalOrchestrator:
    """Facade that owns one candidate pool and runs retrieval rounds into it."""

    def __init__(
        self,
        *,
        config: RetrievalConfig | None = None,
        embedding_service: EmbeddingService | None = None,
        store: NodeStore | None = None,
        telemetry: TelemetryClient | None = None,
    ) -> None:
        self.config = config or RetrievalConfig()
        self._embedding_service = embedding_service or EmbeddingService(
            config=EmbeddingServiceConfig(
                dimension=self.config.embedding_dimension,
                timeout_s=self.config.embed_timeout_s,
            )
        )
        self._store = store
        self._telemetry = telemetry or NoOpTelemetryClient()
        self._pool = ScoredNodePool(self.config.max_pool_size)

    @property
    def pool(self) -> ScoredNodePool:
        return self._pool

    @property
    def embedding_service(self) -> EmbeddingService:
        return self._embedding_service

    @property
    def telemetry(self) -> TelemetryClient:
        return self._telemetry

    def results(self) -> List[Tuple[EventNode, float]]:
        """Current pool as ordered (node, composite score) pairs."""
        return self._pool.results()

    def reset_pool(self) -> None:
        self._pool.clear()

    # ------------------ constraint sets ------------------
    def create_default_constraints(
        self,
        target_time: Optional[datetime] = None,
        target_location: Optional[str] = None,
    ) -> List[Constraint]:
        """Soft-only set tuned for broad recall."""
        cfg = self.config
        constraints: List[Constraint] = [
            TemporalProximityConstraint(
                target_time=target_time,
                max_distance=cfg.temporal_max_distance,
                weight=cfg.temporal_weight,
                decay=cfg.decay,
            ),
        ]
        if target_location and target_location.strip():
            constraints.append(
                LocationSimilarityConstraint(target_location=target_location, weight=cfg.location_weight)
            )
        constraints.append(
            FreshnessBoostConstraint(
                recent_window=cfg.freshness_window,
                weight=cfg.freshness_weight,
                decay=cfg.decay,
            )
        )
        return constraints

    def create_strict_constraints(
        self,
        start_time: datetime,
        end_time: datetime,
        required_location: Optional[str] = None,
        required_entity_ids: Sequence[str] = (),
    ) -> List[Constraint]:
        """All-hard set for precise filtering."""
        constraints: List[Constraint] = [TimeWindowConstraint(start=start_time, end=end_time)]
        if required_location and required_location.strip():
            constraints.append(LocationMatchConstraint(required_location=required_location))
        if required_entity_ids:
            constraints.append(EntityPresenceConstraint(required_entity_ids=tuple(required_entity_ids)))
        return constraints

    # ------------------ scoring ------------------
    def _resolve_candidates(self, source: CandidateSource, context: RetrievalContext) -> List[EventNode]:
        if hasattr(source, "list_all"):
            return list(source.list_all())  # type: ignore[union-attr]
        if callable(source):
            return list(source(context))
        return list(source)

    def embed_query(self, query: str) -> Optional[List[float]]:
        with self._telemetry.span("retrieval.embed_query", attributes={"query_chars": len(query or "")}) as span:
            vector = self._embedding_service.embed_text(query)
            span.set_attribute("available", vector is not None)
        return vector

    def score_candidates(
        self,
        candidates: Iterable[EventNode],
        context: RetrievalContext,
        constraints: Sequence[Constraint],
        *,
        query_embedding: Optional[Sequence[float]] = None,
        matched_topic: Optional[str] = None,
    ) -> Tuple[List[ScoredNode], int]:
        """
        Gate and score candidates; returns (scored nodes best-first, rejected count).

        Nodes without an embedding score 0 on similarity and are kept.
        """
        cfg = self.config
        threshold = cfg.similarity_threshold if query_embedding is not None else None
        scored: List[ScoredNode] = []
        rejected = 0
        for node in candidates:
            evaluation = evaluate_constraints(constraints, node, context)
            if not evaluation.passed:
                rejected += 1
                logger.debug(f"Rejected {node.id} on {evaluation.failed}: {evaluation.reason}")
                continue
            if node.embedding is not None and query_embedding is not None:
                validate_dimension(node.embedding, cfg.embedding_dimension)
            similarity = embedding_score_for(node, query_embedding)
            if threshold is not None and node.embedding is not None and similarity < threshold:
                rejected += 1
                continue
            scored.append(
                score_node(
                    node,
                    evaluation,
                    embedding_score=similarity,
                    scoring=cfg.weights,
                    matched_topic=matched_topic,
                )
            )
        scored.sort(key=lambda s: s.composite_score, reverse=True)
        return scored, rejected

    # ------------------ rounds ------------------
    def retrieve(
        self,
        query: str,
        context: RetrievalContext,
        candidates: CandidateSource,
        *,
        constraints: Optional[Sequence[Constraint]] = None,
        label: str = "retrieve",
    ) -> RetrievalOutcome:
        """Run one retrieval round and merge its results into the pool."""
        start = monotonic()
        reasons: List[str] = []
        active = list(constraints) if constraints is not None else self.create_default_constraints(
            context.query_time, context.target_location
        )

        with self._telemetry.span("retrieval.round", attributes={"label": label}) as span:
            query_embedding = self.embed_query(query)
            if query_embedding is None:
                reasons.append("query_embedding_unavailable")
                logger.warning(f"No query embedding for {query!r}; ranking on constraints only")
            else:
                query_embedding = validate_dimension(query_embedding, self.config.embedding_dimension)

            nodes = self._resolve_candidates(candidates, context)
            if not nodes:
                reasons.append("empty_candidates")
            scored, rejected = self.score_candidates(
                nodes,
                context,
                active,
                query_embedding=query_embedding,
                matched_topic=query,
            )
            pool = self._pool.merge(scored)
            if len(self._pool) >= self._pool.max_size and len(scored) > 0:
                reasons.append("pool_capped")

            span.set_attribute("candidates", len(nodes))
            span.set_attribute("admitted", len(scored))
            span.set_attribute("rejected", rejected)
            span.set_attribute("pool_size", len(pool))
            span.set_attribute("degraded", query_embedding is None)

        self._touch_hits(scored, context)
        latency_ms = (monotonic() - start) * 1000.0
        outcome = RetrievalOutcome(
            pool=pool,
            scored=scored,
            candidates=len(nodes),
            rejected=rejected,
            degraded=query_embedding is None,
            reasons=reasons,
            latency_ms=latency_ms,
        )
        logger.info(
            f"Retrieval round '{label}': {outcome.candidates} candidates, "
            f"{outcome.admitted} admitted, {outcome.rejected} rejected, "
            f"pool {len(pool)}/{self._pool.max_size} ({latency_ms:.1f}ms)"
        )
        self._record(label, query, outcome)
        return outcome

    def retrieve_topics(
        self,
        context: RetrievalContext,
        candidates: CandidateSource,
        *,
        constraints: Optional[Sequence[Constraint]] = None,
    ) -> List[RetrievalOutcome]:
        """One round per focus topic; each merges into the same pool."""
        nodes = self._resolve_candidates(candidates, context)
        outcomes: List[RetrievalOutcome] = []
        for topic in context.focus_topics:
            outcomes.append(
                self.retrieve(topic, context, nodes, constraints=constraints, label=f"topic:{topic}")
            )
        return outcomes

    def _touch_hits(self, scored: Sequence[ScoredNode], context: RetrievalContext) -> None:
        if not self.config.touch_on_hit or self._store is None or not scored:
            return
        pool_ids = {s.node_id for s in self._pool}
        hits = [s.node_id for s in scored if s.node_id in pool_ids]
        updated = self._store.mark_seen(hits, context.query_time)
        logger.debug(f"Marked {updated} pooled events as seen")

    def _record(self, label: str, query: str, outcome: RetrievalOutcome) -> None:
        if self.config.record_path is None:
            return
        payload: dict[str, Any] = dict(
            label=label,
            query=query,
            candidates=outcome.candidates,
            admitted=outcome.admitted,
            rejected=outcome.rejected,
            degraded=outcome.degraded,
            pool=[s.to_dict() for s in outcome.pool],
            latency_ms=outcome.latency_ms,
            reasons=outcome.reasons,
        )
        log_retrieval(output_path=self.config.record_path, **payload)


__all__ = ["CandidateSource", "RetrievalOrchestrator", "RetrievalOutcome"]
