"""
Embedding Diagnostics - Batch health report over event embeddings

WHAT: Null/zero/duplicate detection, sampled pairwise similarity, issue findings
WHERE: eventgraph/runtime/retrieval/diagnostics.py - operational inspection
WHO: Operators and scripts checking the embedding source; never used for ranking
TIME: O(n·d) grouping + O(p·d) sampling, p = bounded pair sample

Never raises for empty or fully degenerate batches; every ratio defaults to 0
when its denominator is 0. Vectors whose length disagrees with the batch's
dominant dimension are counted and left out of the pairwise sample.
"""

from __future__ import annotations

import hashlib
import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

import numpy as np

from .models import EventNode
from .vector_math import as_array, cosine_similarity, is_zero_vector

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class DiagnosticsThresholds:
    """Sampling bounds and the thresholds that trigger findings."""

    max_pairs: int = 1000
    seed: int = 0
    duplicate_decimals: int = 6
    top_duplicates: int = 5
    zero_rate: float = 0.1
    null_rate: float = 0.5
    duplicate_rate: float = 0.3
    min_similarity_spread: float = 0.05
    high_avg_similarity: float = 0.95


@dataclass(slots=True)
class SimilarityStats:
    sample_size: int = 0
    avg_similarity: float = 0.0
    max_similarity: float = 0.0
    min_similarity: float = 0.0
    std_similarity: float = 0.0

    def as_dict(self) -> Dict[str, Any]:
        return {
            "sample_size": self.sample_size,
            "avg_similarity": self.avg_similarity,
            "max_similarity": self.max_similarity,
            "min_similarity": self.min_similarity,
            "std_similarity": self.std_similarity,
        }


@dataclass(slots=True)
class EmbeddingDiagnostics:
    """Structured diagnostics report; `as_dict()` is the wire form."""

    total_events: int = 0
    null_embeddings: int = 0
    zero_embeddings: int = 0
    unique_embeddings: int = 0
    dimension_mismatches: int = 0
    top_duplicates: List[Dict[str, Any]] = field(default_factory=list)
    similarity_stats: SimilarityStats = field(default_factory=SimilarityStats)
    potential_issues: List[str] = field(default_factory=list)

    @property
    def embedded_events(self) -> int:
        return self.total_events - self.null_embeddings

    def as_dict(self) -> Dict[str, Any]:
        return {
            "total_events": self.total_events,
            "null_embeddings": self.null_embeddings,
            "zero_embeddings": self.zero_embeddings,
            "unique_embeddings": self.unique_embeddings,
            "dimension_mismatches": self.dimension_mismatches,
            "top_duplicates": [dict(d) for d in self.top_duplicates],
            "similarity_stats": self.similarity_stats.as_dict(),
            "potential_issues": list(self.potential_issues),
        }


def _ratio(numerator: int, denominator: int) -> float:
    return numerator / denominator if denominator else 0.0


def embedding_fingerprint(vector: Sequence[float], decimals: int = 6) -> str:
    """Hash of the rounded vector; near-identical vectors share a fingerprint."""
    rounded = np.round(as_array(vector), decimals=decimals) + 0.0  # folds -0.0 into 0.0
    return hashlib.sha256(rounded.tobytes()).hexdigest()


def _group_duplicates(
    embedded: Sequence[Tuple[str, List[float]]],
    thresholds: DiagnosticsThresholds,
) -> Tuple[int, List[Dict[str, Any]]]:
    groups: Dict[str, List[str]] = {}
    for node_id, vector in embedded:
        groups.setdefault(embedding_fingerprint(vector, thresholds.duplicate_decimals), []).append(node_id)

    duplicates = [
        {"hash": digest, "count": len(ids), "node_ids": ids}
        for digest, ids in groups.items()
        if len(ids) > 1
    ]
    duplicates.sort(key=lambda d: d["count"], reverse=True)
    return len(groups), duplicates[: thresholds.top_duplicates]


def _sample_pairs(count: int, max_pairs: int, seed: int) -> List[Tuple[int, int]]:
    total = count * (count - 1) // 2
    if total == 0 or max_pairs <= 0:
        return []
    if total <= max_pairs:
        return [(i, j) for i in range(count) for j in range(i + 1, count)]

    rng = np.random.default_rng(seed)
    seen: set = set()
    pairs: List[Tuple[int, int]] = []
    while len(pairs) < max_pairs:
        i, j = (int(x) for x in rng.choice(count, size=2, replace=False))
        key = (min(i, j), max(i, j))
        if key in seen:
            continue
        seen.add(key)
        pairs.append(key)
    return pairs


def _similarity_stats(vectors: Sequence[List[float]], thresholds: DiagnosticsThresholds) -> SimilarityStats:
    pairs = _sample_pairs(len(vectors), thresholds.max_pairs, thresholds.seed)
    if not pairs:
        return SimilarityStats()
    sims = np.array([cosine_similarity(vectors[i], vectors[j]) for i, j in pairs])
    return SimilarityStats(
        sample_size=len(pairs),
        avg_similarity=float(np.mean(sims)),
        max_similarity=float(np.max(sims)),
        min_similarity=float(np.min(sims)),
        std_similarity=float(np.std(sims)),
    )


def _find_issues(report: EmbeddingDiagnostics, thresholds: DiagnosticsThresholds) -> List[str]:
    issues: List[str] = []
    total = report.total_events
    embedded = report.embedded_events

    null_rate = _ratio(report.null_embeddings, total)
    if null_rate > thresholds.null_rate:
        issues.append(
            f"High missing-embedding rate: {report.null_embeddings}/{total} events "
            f"({null_rate:.0%}) have no embedding"
        )

    zero_rate = _ratio(report.zero_embeddings, embedded)
    if zero_rate > thresholds.zero_rate:
        issues.append(
            f"High zero-vector rate: {report.zero_embeddings}/{embedded} embeddings "
            f"({zero_rate:.0%}) are all-zero; the embedding model is likely failing"
        )

    duplicate_rate = 1.0 - _ratio(report.unique_embeddings, embedded) if embedded else 0.0
    if duplicate_rate > thresholds.duplicate_rate:
        issues.append(
            f"High duplicate rate: only {report.unique_embeddings}/{embedded} embeddings "
            f"are unique ({duplicate_rate:.0%} duplicated)"
        )

    if report.dimension_mismatches:
        issues.append(
            f"Mixed embedding dimensions: {report.dimension_mismatches} embeddings "
            "differ from the dominant dimension"
        )

    stats = report.similarity_stats
    if stats.sample_size >= 2:
        spread = stats.max_similarity - stats.min_similarity
        if spread < thresholds.min_similarity_spread:
            issues.append(
                f"Narrow similarity distribution: spread {spread:.4f} over "
                f"{stats.sample_size} pairs suggests a degenerate embedding source"
            )
        if stats.avg_similarity > thresholds.high_avg_similarity:
            issues.append(
                f"Embeddings nearly identical: average pairwise similarity "
                f"{stats.avg_similarity:.3f}"
            )
    return issues


def analyze_embeddings(
    nodes: Iterable[EventNode],
    thresholds: Optional[DiagnosticsThresholds] = None,
) -> EmbeddingDiagnostics:
    """Analyse the embeddings of a node batch and report potential issues."""
    cfg = thresholds or DiagnosticsThresholds()
    report = EmbeddingDiagnostics()

    embedded: List[Tuple[str, List[float]]] = []
    for node in nodes:
        report.total_events += 1
        if node.embedding is None:
            report.null_embeddings += 1
            continue
        if is_zero_vector(node.embedding):
            report.zero_embeddings += 1
        embedded.append((node.id, list(node.embedding)))

    report.unique_embeddings, report.top_duplicates = _group_duplicates(embedded, cfg)

    if embedded:
        dims = Counter(len(v) for _, v in embedded)
        dominant = dims.most_common(1)[0][0]
        comparable = [v for _, v in embedded if len(v) == dominant]
        report.dimension_mismatches = len(embedded) - len(comparable)
        report.similarity_stats = _similarity_stats(comparable, cfg)

    report.potential_issues = _find_issues(report, cfg)
    logger.info(
        f"Embedding diagnostics: {report.total_events} events, "
        f"{report.null_embeddings} null, {report.zero_embeddings} zero, "
        f"{report.unique_embeddings} unique, {len(report.potential_issues)} issues"
    )
    return report


__all__ = [
    "DiagnosticsThresholds",
    "EmbeddingDiagnostics",
    "SimilarityStats",
    "analyze_embeddings",
    "embedding_fingerprint",
]
