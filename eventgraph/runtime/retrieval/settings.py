"""
Module: eventgraph/runtime/retrieval/settings.py
Summary: Retrieval configuration with bound clamping and reason codes.
Inputs: settings mapping {pool, embedding, weights, defaults, decay} or EVENTGRAPH_* env vars
Outputs: RetrievalConfig plus reasons for every clamped value
Related: eventgraph/runtime/retrieval/orchestrator.py
Stability: stable

Weights and constraint defaults travel through this structure to call sites;
nothing reads module-level weight constants at scoring time.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from datetime import timedelta
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple

from .constraints import DecayCurve, DecayPolicy
from .scoring import ScoringWeights
from .vector_math import EMBEDDING_DIMENSION

ENV_PREFIX = "EVENTGRAPH_"


@dataclass(slots=True)
class RetrievalConfig:
    max_pool_size: int = 20
    embedding_dimension: Optional[int] = EMBEDDING_DIMENSION
    embed_timeout_s: float = 5.0
    similarity_threshold: Optional[float] = None
    weights: ScoringWeights = field(default_factory=ScoringWeights)
    decay: DecayPolicy = field(default_factory=DecayPolicy)
    temporal_max_distance: timedelta = timedelta(days=30)
    temporal_weight: float = 0.3
    location_weight: float = 0.3
    freshness_window: timedelta = timedelta(hours=48)
    freshness_weight: float = 0.2
    touch_on_hit: bool = True
    record_path: Optional[Path] = None

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "RetrievalConfig":
        """Build a config from EVENTGRAPH_* variables; unset ones keep defaults."""
        config, _ = normalize_settings(settings_from_env(environ))
        return config


def settings_from_env(environ: Optional[Mapping[str, str]] = None) -> Dict[str, Any]:
    env = os.environ if environ is None else environ

    def get(name: str) -> Optional[str]:
        value = env.get(ENV_PREFIX + name)
        return value if value not in (None, "") else None

    # env var -> (section, key, parser); section None means top level
    table = [
        ("MAX_POOL_SIZE", "pool", "max_size", int),
        ("EMBEDDING_DIMENSION", "embedding", "dimension", int),
        ("EMBED_TIMEOUT_S", "embedding", "timeout_s", float),
        ("SIMILARITY_THRESHOLD", "embedding", "similarity_threshold", float),
        ("WEIGHT_EMBEDDING", "weights", "embedding", float),
        ("WEIGHT_CONSTRAINT", "weights", "constraint", float),
        ("WEIGHT_RECENCY", "weights", "recency", float),
        ("DECAY_CURVE", "decay", "curve", str),
        ("DECAY_STEEPNESS", "decay", "steepness", float),
        ("RECORD_PATH", None, "record_path", str),
    ]
    settings: Dict[str, Any] = {"pool": {}, "embedding": {}, "weights": {}, "decay": {}}
    for name, section, key, parse in table:
        raw = get(name)
        if raw is None:
            continue
        target = settings if section is None else settings[section]
        target[key] = parse(raw)
    return settings


def normalize_settings(settings: Mapping[str, Any]) -> Tuple[RetrievalConfig, List[str]]:
    reasons: List[str] = []
    pool = settings.get("pool", {})
    emb = settings.get("embedding", {})
    wts = settings.get("weights", {})
    dflt = settings.get("defaults", {})
    decay = settings.get("decay", {})

    def clamp(v: float, lo: float, hi: float, reason: str) -> float:
        if v < lo:
            reasons.append(f"{reason}:min")
            return lo
        if v > hi:
            reasons.append(f"{reason}:max")
            return hi
        return v

    max_pool = int(clamp(int(pool.get("max_size", 20)), 0, 1000, "max_pool_size"))

    dimension = emb.get("dimension", EMBEDDING_DIMENSION)
    if dimension is not None:
        dimension = int(clamp(int(dimension), 1, 8192, "embedding_dimension"))
    timeout_s = clamp(float(emb.get("timeout_s", 5.0)), 0.05, 60.0, "embed_timeout_s")
    threshold = emb.get("similarity_threshold")
    if threshold is not None:
        threshold = clamp(float(threshold), -1.0, 1.0, "similarity_threshold")

    weights = ScoringWeights(
        embedding=clamp(float(wts.get("embedding", 0.4)), 0.0, 10.0, "weight_embedding"),
        constraint=clamp(float(wts.get("constraint", 0.5)), 0.0, 10.0, "weight_constraint"),
        recency=clamp(float(wts.get("recency", 0.1)), 0.0, 10.0, "weight_recency"),
    )

    curve_name = str(decay.get("curve", DecayCurve.linear.value))
    try:
        curve = DecayCurve(curve_name)
    except ValueError:
        reasons.append("decay_curve:unknown")
        curve = DecayCurve.linear
    steepness = clamp(float(decay.get("steepness", 3.0)), 0.1, 20.0, "decay_steepness")

    temporal_days = clamp(float(dflt.get("temporal_max_days", 30)), 1 / 24, 3650, "temporal_max_days")
    freshness_hours = clamp(float(dflt.get("freshness_window_hours", 48)), 1 / 60, 24 * 365, "freshness_window_hours")

    record_path = settings.get("record_path")

    config = RetrievalConfig(
        max_pool_size=max_pool,
        embedding_dimension=dimension,
        embed_timeout_s=timeout_s,
        similarity_threshold=threshold,
        weights=weights,
        decay=DecayPolicy(curve=curve, steepness=steepness),
        temporal_max_distance=timedelta(days=temporal_days),
        temporal_weight=clamp(float(dflt.get("temporal_weight", 0.3)), 0.0, 10.0, "temporal_weight"),
        location_weight=clamp(float(dflt.get("location_weight", 0.3)), 0.0, 10.0, "location_weight"),
        freshness_window=timedelta(hours=freshness_hours),
        freshness_weight=clamp(float(dflt.get("freshness_weight", 0.2)), 0.0, 10.0, "freshness_weight"),
        touch_on_hit=bool(settings.get("touch_on_hit", True)),
        record_path=Path(record_path) if record_path else None,
    )
    return config, reasons


__all__ = ["ENV_PREFIX", "RetrievalConfig", "normalize_settings", "settings_from_env"]
