"""
Composite Scoring - Similarity + constraints + recency into one rank score

WHAT: Weighted combination of embedding score, soft-constraint score, freshness
WHERE: eventgraph/runtime/retrieval/scoring.py - ranking layer
WHO: Orchestrator producing ScoredNode values for the pool manager
TIME: O(c) per node, c = number of soft constraints

composite = w_e * embedding_score
          + w_c * sum(weight_i * score_i) / sum(weight_i)
          + w_r * freshness

The three weights are caller-supplied and need not sum to 1.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping, Optional, Sequence

from .constraints import ConstraintEvaluation, ConstraintKind
from .models import EventNode, ScoredNode
from .vector_math import cosine_similarity

FRESHNESS_KEY = ConstraintKind.freshness_boost.value


@dataclass(frozen=True, slots=True)
class ScoringWeights:
    embedding: float = 0.4
    constraint: float = 0.5
    recency: float = 0.1


def normalized_constraint_score(
    scores: Mapping[str, float],
    weights: Mapping[str, float],
) -> float:
    """Weight-normalised mean of soft contributions; 0.0 when nothing is recorded."""
    total_weight = 0.0
    weighted = 0.0
    for name, score in scores.items():
        weight = weights.get(name, 1.0)
        total_weight += weight
        weighted += weight * score
    if total_weight <= 0.0:
        return 0.0
    return min(weighted / total_weight, 1.0)


def compute_composite_score(
    embedding_score: float,
    scores: Mapping[str, float],
    weights: Mapping[str, float],
    scoring: ScoringWeights,
) -> float:
    freshness = scores.get(FRESHNESS_KEY, 0.0)
    return (
        scoring.embedding * embedding_score
        + scoring.constraint * normalized_constraint_score(scores, weights)
        + scoring.recency * freshness
    )


def rescore(scored: ScoredNode, scoring: ScoringWeights) -> ScoredNode:
    """Return a copy of `scored` with its composite recomputed under `scoring`."""
    composite = compute_composite_score(
        scored.embedding_score,
        scored.constraint_scores,
        scored.constraint_weights,
        scoring,
    )
    return scored.with_composite(composite)


def embedding_score_for(node: EventNode, query_embedding: Optional[Sequence[float]]) -> float:
    """Cosine similarity to the query, or 0.0 when either embedding is absent."""
    if query_embedding is None or node.embedding is None:
        return 0.0
    return cosine_similarity(node.embedding, query_embedding)


def score_node(
    node: EventNode,
    evaluation: ConstraintEvaluation,
    *,
    embedding_score: float,
    scoring: ScoringWeights,
    matched_topic: Optional[str] = None,
) -> ScoredNode:
    composite = compute_composite_score(embedding_score, evaluation.scores, evaluation.weights, scoring)
    return ScoredNode(
        node=node,
        embedding_score=embedding_score,
        constraint_scores=evaluation.scores,
        constraint_weights=evaluation.weights,
        composite_score=composite,
        matched_topic=matched_topic,
    )


__all__ = [
    "FRESHNESS_KEY",
    "ScoringWeights",
    "compute_composite_score",
    "embedding_score_for",
    "normalized_constraint_score",
    "rescore",
    "score_node",
]
