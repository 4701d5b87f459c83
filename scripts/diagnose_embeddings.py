#!/usr/bin/env python3
"""
Diagnose Event Embeddings
=========================

Reads event records (one JSON object per line, as written by
EventNode.to_record) and prints a diagnostics report: missing, zero and
duplicate embeddings, sampled pairwise similarity, and any findings.

Usage:
    python scripts/diagnose_embeddings.py --input data/events.jsonl
    python scripts/diagnose_embeddings.py --input data/events.jsonl --max-pairs 5000 --output report.json
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional, Sequence

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from eventgraph.runtime.retrieval.diagnostics import (  # noqa: E402
    DiagnosticsThresholds,
    analyze_embeddings,
)
from eventgraph.runtime.retrieval.models import EventNode  # noqa: E402

logger = logging.getLogger(__name__)


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Report on the health of stored event embeddings")
    p.add_argument("--input", type=Path, required=True, help="JSONL file of event records")
    p.add_argument(
        "--max-pairs",
        type=int,
        default=1000,
        help="Upper bound on sampled pairs for similarity stats (default: 1000)",
    )
    p.add_argument("--seed", type=int, default=0, help="Pair sampling seed (default: 0)")
    p.add_argument("--output", type=Path, default=None, help="Also write the report JSON here")
    p.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging verbosity (default: INFO)",
    )
    return p.parse_args(argv)


def load_nodes(path: Path) -> List[EventNode]:
    nodes: List[EventNode] = []
    with path.open("r", encoding="utf-8") as fh:
        for lineno, line in enumerate(fh, start=1):
            line = line.strip()
            if not line:
                continue
            try:
                nodes.append(EventNode.from_record(json.loads(line)))
            except (ValueError, KeyError) as exc:
                logger.warning(f"Skipping line {lineno}: {exc}")
    return nodes


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format='%(asctime)s [%(levelname)s] %(name)s: %(message)s'
    )

    if not args.input.exists():
        logger.error(f"Input file not found: {args.input}")
        return 1

    nodes = load_nodes(args.input)
    logger.info(f"Loaded {len(nodes)} events from {args.input}")

    thresholds = DiagnosticsThresholds(max_pairs=args.max_pairs, seed=args.seed)
    report = analyze_embeddings(nodes, thresholds)
    payload = json.dumps(report.as_dict(), indent=2)
    print(payload)

    if args.output is not None:
        args.output.parent.mkdir(parents=True, exist_ok=True)
        args.output.write_text(payload + "\n", encoding="utf-8")
        logger.info(f"Report written to {args.output}")

    for issue in report.potential_issues:
        logger.warning(issue)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
