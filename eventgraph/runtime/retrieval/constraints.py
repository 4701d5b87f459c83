"""
Constraint Framework - Hard gates and soft scorers over event nodes

WHAT: Closed set of constraint variants evaluated against (node, context)
WHERE: eventgraph/runtime/retrieval/constraints.py - symbolic filtering layer
WHO: Retrieval orchestrator building default/strict constraint sets
TIME: O(1) per (constraint, node) pair

Variants:
- TimeWindowConstraint (hard): node span must intersect [start, end]
- LocationMatchConstraint (hard): normalised location equality
- EntityPresenceConstraint (hard): node must mention every required entity
- TemporalProximityConstraint (soft): decays with distance to a target time
- LocationSimilarityConstraint (soft): exact / containment / token overlap
- FreshnessBoostConstraint (soft): decays with time since last_seen_time

Hard constraints only gate membership; soft constraints never reject and
contribute a score in [0, 1]. Evaluation is two-phase: gate, then score.
Every variant is a frozen dataclass, so constraint sets can be shared by
concurrent readers for the duration of a round.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import ClassVar, Dict, List, Optional, Sequence, Tuple, Union

from .models import ConstraintResult, EventNode, RetrievalContext, ensure_utc

_LOCATION_TOKEN_SPLIT = re.compile(r"[,，。、;；/\s]+")


class ConstraintKind(str, Enum):
    """Enumerated constraint variants; the value doubles as the constraint name."""

    time_window = "TimeWindow"
    location_match = "LocationMatch"
    entity_presence = "EntityPresence"
    temporal_proximity = "TemporalProximity"
    location_similarity = "LocationSimilarity"
    freshness_boost = "FreshnessBoost"


class DecayCurve(str, Enum):
    linear = "linear"
    exponential = "exponential"


@dataclass(frozen=True, slots=True)
class DecayPolicy:
    """
    Monotone decay from 1.0 at distance 0 to 0.0 at the horizon.

    linear:      1 - x
    exponential: (exp(-k*x) - exp(-k)) / (1 - exp(-k)),  k = steepness
    with x = distance / horizon clipped to [0, 1].
    """

    curve: DecayCurve = DecayCurve.linear
    steepness: float = 3.0

    def __post_init__(self) -> None:
        if self.steepness <= 0:
            raise ValueError("steepness must be positive")

    def score(self, distance: float, horizon: float) -> float:
        if horizon <= 0:
            return 1.0 if distance <= 0 else 0.0
        x = min(max(distance / horizon, 0.0), 1.0)
        if self.curve is DecayCurve.exponential:
            floor = math.exp(-self.steepness)
            return (math.exp(-self.steepness * x) - floor) / (1.0 - floor)
        return 1.0 - x


def normalize_location(value: Optional[str]) -> str:
    return (value or "").strip().casefold()


def _location_tokens(value: str) -> List[str]:
    return [t for t in _LOCATION_TOKEN_SPLIT.split(value) if t]


class Constraint:
    """Base for all constraint variants; subclasses implement `evaluate`."""

    __slots__ = ()

    kind: ClassVar[ConstraintKind]
    is_hard: ClassVar[bool]

    @property
    def name(self) -> str:
        return self.kind.value

    def evaluate(self, node: EventNode, context: RetrievalContext) -> ConstraintResult:
        raise NotImplementedError


class HardConstraint(Constraint):
    __slots__ = ()
    is_hard: ClassVar[bool] = True


class SoftConstraint(Constraint):
    __slots__ = ()
    is_hard: ClassVar[bool] = False
    weight: float


# ---------------------------------------------------------------------------
# Hard constraints
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class TimeWindowConstraint(HardConstraint):
    """Node time span must intersect [start, end]; an open bound is unbounded."""

    kind: ClassVar[ConstraintKind] = ConstraintKind.time_window

    start: Optional[datetime] = None
    end: Optional[datetime] = None

    def evaluate(self, node: EventNode, context: RetrievalContext) -> ConstraintResult:
        span = node.time_span()
        if span is None:
            return ConstraintResult.failed("node has no time information")
        node_start, node_end = span
        start = ensure_utc(self.start)
        end = ensure_utc(self.end)
        if start is not None and node_end < start:
            return ConstraintResult.failed("ends before window start")
        if end is not None and node_start > end:
            return ConstraintResult.failed("starts after window end")
        return ConstraintResult.passed(reason="within time window")


@dataclass(frozen=True, slots=True)
class LocationMatchConstraint(HardConstraint):
    """Node location must equal the required location (trimmed, case-insensitive)."""

    kind: ClassVar[ConstraintKind] = ConstraintKind.location_match

    required_location: str

    def evaluate(self, node: EventNode, context: RetrievalContext) -> ConstraintResult:
        location = normalize_location(node.location)
        if not location:
            return ConstraintResult.failed("node has no location")
        if location == normalize_location(self.required_location):
            return ConstraintResult.passed(reason="location matches")
        return ConstraintResult.failed("location differs")


@dataclass(frozen=True, slots=True)
class EntityPresenceConstraint(HardConstraint):
    """Node must reference every required entity id."""

    kind: ClassVar[ConstraintKind] = ConstraintKind.entity_presence

    required_entity_ids: Tuple[str, ...] = ()

    def evaluate(self, node: EventNode, context: RetrievalContext) -> ConstraintResult:
        missing = [e for e in self.required_entity_ids if e not in node.entity_ids]
        if missing:
            return ConstraintResult.failed(f"missing entities: {', '.join(missing)}")
        return ConstraintResult.passed(reason="all entities present")


# ---------------------------------------------------------------------------
# Soft constraints
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class TemporalProximityConstraint(SoftConstraint):
    """Score decays with the distance between the node span and the target time."""

    kind: ClassVar[ConstraintKind] = ConstraintKind.temporal_proximity

    target_time: Optional[datetime] = None
    max_distance: timedelta = timedelta(days=7)
    weight: float = 1.0
    decay: DecayPolicy = field(default_factory=DecayPolicy)

    def evaluate(self, node: EventNode, context: RetrievalContext) -> ConstraintResult:
        span = node.time_span()
        if span is None:
            return ConstraintResult(passes=False, reason="node has no time information")
        target = ensure_utc(self.target_time) or context.query_time
        start, end = span
        if start <= target <= end:
            distance = 0.0
        else:
            distance = min(abs((start - target).total_seconds()), abs((end - target).total_seconds()))
        horizon = self.max_distance.total_seconds()
        if distance > horizon:
            return ConstraintResult(passes=False, reason="beyond max distance")
        score = self.decay.score(distance, horizon)
        return ConstraintResult.passed(score, f"{distance / 3600.0:.1f}h from target time")


@dataclass(frozen=True, slots=True)
class LocationSimilarityConstraint(SoftConstraint):
    """Exact location match scores 1.0, containment 0.7, shared tokens up to 0.5."""

    kind: ClassVar[ConstraintKind] = ConstraintKind.location_similarity

    target_location: Optional[str] = None
    weight: float = 1.0
    containment_score: float = 0.7
    token_overlap_scale: float = 0.5

    def evaluate(self, node: EventNode, context: RetrievalContext) -> ConstraintResult:
        target = normalize_location(self.target_location or context.target_location)
        if not target:
            return ConstraintResult.passed(0.0, "no target location")
        location = normalize_location(node.location)
        if not location:
            return ConstraintResult.passed(0.0, "node has no location")

        if location == target:
            similarity = 1.0
        elif location in target or target in location:
            similarity = self.containment_score
        else:
            target_tokens = _location_tokens(target)
            node_tokens = set(_location_tokens(location))
            shared = sum(1 for t in target_tokens if t in node_tokens)
            similarity = self.token_overlap_scale * shared / len(target_tokens) if target_tokens else 0.0
        return ConstraintResult.passed(similarity, f"location similarity {similarity:.0%}")


@dataclass(frozen=True, slots=True)
class FreshnessBoostConstraint(SoftConstraint):
    """Score decays with the time elapsed since the node was last seen."""

    kind: ClassVar[ConstraintKind] = ConstraintKind.freshness_boost

    recent_window: timedelta = timedelta(hours=24)
    weight: float = 1.0
    decay: DecayPolicy = field(default_factory=DecayPolicy)

    def evaluate(self, node: EventNode, context: RetrievalContext) -> ConstraintResult:
        if node.last_seen_time is None:
            return ConstraintResult.passed(0.0, "never seen")
        elapsed = max((context.query_time - node.last_seen_time).total_seconds(), 0.0)
        window = self.recent_window.total_seconds()
        if elapsed > window:
            return ConstraintResult.passed(0.0, "outside freshness window")
        freshness = self.decay.score(elapsed, window)
        return ConstraintResult.passed(freshness, f"freshness {freshness:.0%}")


AnyConstraint = Union[
    TimeWindowConstraint,
    LocationMatchConstraint,
    EntityPresenceConstraint,
    TemporalProximityConstraint,
    LocationSimilarityConstraint,
    FreshnessBoostConstraint,
]


@dataclass(frozen=True, slots=True)
class ConstraintEvaluation:
    """Result of evaluating a constraint set against one node."""

    passed: bool
    scores: Dict[str, float] = field(default_factory=dict)
    weights: Dict[str, float] = field(default_factory=dict)
    failed: Optional[str] = None
    reason: Optional[str] = None


def evaluate_constraints(
    constraints: Sequence[Constraint],
    node: EventNode,
    context: RetrievalContext,
) -> ConstraintEvaluation:
    """
    Gate on every hard constraint, then collect every soft contribution.

    Stops at the first failing hard constraint. Soft constraints are keyed by
    name; a later constraint with the same name overrides an earlier one.
    """
    for constraint in constraints:
        if not constraint.is_hard:
            continue
        result = constraint.evaluate(node, context)
        if not result.passes:
            return ConstraintEvaluation(passed=False, failed=constraint.name, reason=result.reason)

    scores: Dict[str, float] = {}
    weights: Dict[str, float] = {}
    for constraint in constraints:
        if constraint.is_hard:
            continue
        result = constraint.evaluate(node, context)
        scores[constraint.name] = min(max(result.score_contribution, 0.0), 1.0)
        weights[constraint.name] = max(constraint.weight, 0.0)  # type: ignore[attr-defined]
    return ConstraintEvaluation(passed=True, scores=scores, weights=weights)


__all__ = [
    "AnyConstraint",
    "Constraint",
    "ConstraintEvaluation",
    "ConstraintKind",
    "DecayCurve",
    "DecayPolicy",
    "EntityPresenceConstraint",
    "FreshnessBoostConstraint",
    "HardConstraint",
    "LocationMatchConstraint",
    "LocationSimilarityConstraint",
    "SoftConstraint",
    "TemporalProximityConstraint",
    "TimeWindowConstraint",
    "evaluate_constraints",
    "normalize_location",
]
