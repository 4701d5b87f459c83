"""Utilities for recording retrieval rounds as JSON lines.

One record per round: what was asked, how many candidates were seen,
admitted and rejected, whether the round ran without a query embedding,
and the head of the resulting pool.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence

logger = logging.getLogger(__name__)


def build_retrieval_record(
    *,
    label: str,
    query: str,
    candidates: int,
    admitted: int,
    rejected: int,
    degraded: bool,
    pool: Sequence[Mapping[str, Any]],
    latency_ms: float,
    reasons: Sequence[str] = (),
    top_n: int = 5,
    timestamp: Optional[datetime] = None,
    notes: str = "",
) -> Dict[str, Any]:
    """Return a JSON-serialisable record describing one retrieval round."""

    record: Dict[str, Any] = {
        "label": label,
        "timestamp": (timestamp or datetime.now(timezone.utc)).isoformat(),
        "query": query,
        "counts": {
            "candidates": int(candidates),
            "admitted": int(admitted),
            "rejected": int(rejected),
            "pool_size": len(pool),
        },
        "degraded": bool(degraded),
        "reasons": list(reasons),
        "latency_ms": float(latency_ms),
        "top": [
            {"node_id": entry.get("node_id"), "composite_score": entry.get("composite_score")}
            for entry in list(pool)[:top_n]
        ],
    }
    if notes:
        record["notes"] = notes
    return record


def append_record(output_path: Path, record: Mapping[str, Any]) -> None:
    """Append one record to a JSONL file, creating parent directories."""

    output_path.parent.mkdir(parents=True, exist_ok=True)
    with output_path.open("a", encoding="utf-8") as fh:
        json.dump(record, fh, ensure_ascii=False)
        fh.write("\n")


def load_records(input_path: Path) -> List[Dict[str, Any]]:
    """Read every record from a JSONL retrieval log."""

    records: List[Dict[str, Any]] = []
    with input_path.open("r", encoding="utf-8") as fh:
        for line in fh:
            line = line.strip()
            if line:
                records.append(json.loads(line))
    return records


def log_retrieval(
    *,
    output_path: Path | None = None,
    dry_run: bool = False,
    **fields: Any,
) -> Dict[str, Any]:
    """Build (and optionally persist) a retrieval record."""

    record = build_retrieval_record(**fields)
    if output_path is not None and not dry_run:
        try:
            append_record(output_path, record)
        except OSError as exc:
            logger.warning(f"Failed to append retrieval record to {output_path}: {exc}")
    return record


__all__ = [
    "append_record",
    "build_retrieval_record",
    "load_records",
    "log_retrieval",
]
