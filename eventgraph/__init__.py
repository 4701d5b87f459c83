"""Event-graph retrieval runtime core package."""

__all__ = [
    "logging",
    "runtime",
]
