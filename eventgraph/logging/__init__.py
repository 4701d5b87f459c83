"""Logging utilities for the event-graph retrieval engine.

Structured, JSON-serialisable records of retrieval rounds. Modules log
through ``logging.getLogger(__name__)``; these helpers add an append-only
JSONL trail for offline inspection of ranking behaviour.
"""

from __future__ import annotations

from .retrieval_log import (  # noqa: F401
    append_record,
    build_retrieval_record,
    load_records,
    log_retrieval,
)

__all__ = [
    "append_record",
    "build_retrieval_record",
    "load_records",
    "log_retrieval",
]
