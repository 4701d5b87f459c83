"""
Runtime Retrieval Module

WHAT: Runtime subsystem for selecting, scoring, and bounding event-graph working sets
WHERE: eventgraph/runtime/ - orchestration layer above storage and embedding collaborators
WHO: Chat, journaling, and meeting assistants that need relevant events for a query
TIME: Query-time orchestration; one retrieval round is a pure CPU pass over candidates

Provides the execution layer that turns a query plus a retrieval context into a
size-bounded, score-ordered pool of event nodes. Dense-vector similarity is
combined with symbolic constraints (time, location, freshness).

Pipeline:
- embed query (external model, may be absent or slow)
- gate candidates with hard constraints
- score candidates with similarity + soft constraints + recency
- merge into the running pool and prune to its cap
"""

__all__ = ["retrieval"]
