"""
Event-Graph Retrieval - Hybrid semantic + symbolic working-set selection

WHAT: Local library ranking event nodes for a query (no network services)
WHERE: eventgraph/runtime/retrieval/ - retrieval subsystem
WHO: Assistants pulling the events most relevant to what is being discussed
TIME: One round is a pure CPU pass; the embedding call is bounded by a timeout

Layers (bottom-up):
- vector_math: cosine similarity, whitening, dimension checks
- models: EventNode, RetrievalContext, ConstraintResult, ScoredNode
- constraints: hard gates (time window, location, entities) and soft scorers
  (temporal proximity, location similarity, freshness)
- scoring: composite of similarity, soft constraints, and recency
- pool: bounded, deduplicated, score-sorted candidate pool
- embedding: cached, timed wrapper around the external text model
- diagnostics: batch health report over stored embeddings
- orchestrator: the public engine API

Operations:
- create_default_constraints(target_time, target_location): soft-only set
- create_strict_constraints(start, end, location, entities): hard-only set
- retrieve(query, context, candidates): one round merged into the pool
- retrieve_topics(context, candidates): one round per focus topic
- analyze_embeddings(nodes): diagnostics report
"""

from .constraints import (  # noqa: F401
    AnyConstraint,
    Constraint,
    ConstraintEvaluation,
    ConstraintKind,
    DecayCurve,
    DecayPolicy,
    EntityPresenceConstraint,
    FreshnessBoostConstraint,
    LocationMatchConstraint,
    LocationSimilarityConstraint,
    TemporalProximityConstraint,
    TimeWindowConstraint,
    evaluate_constraints,
)
from .diagnostics import (  # noqa: F401
    DiagnosticsThresholds,
    EmbeddingDiagnostics,
    SimilarityStats,
    analyze_embeddings,
)
from .embedding import (  # noqa: F401
    Embedder,
    EmbeddingService,
    EmbeddingServiceConfig,
    EmbeddingUnavailableError,
    MissingDependencyError,
    SentenceTransformerEmbedder,
)
from .models import ConstraintResult, EventNode, RetrievalContext, ScoredNode  # noqa: F401
from .orchestrator import RetrievalOrchestrator, RetrievalOutcome  # noqa: F401
from .pool import ScoredNodePool, merge_and_prune  # noqa: F401
from .scoring import ScoringWeights, compute_composite_score  # noqa: F401
from .settings import RetrievalConfig, normalize_settings  # noqa: F401
from .store import InMemoryNodeStore, NodeStore  # noqa: F401
from .telemetry import (  # noqa: F401
    LoggingTelemetryClient,
    NoOpTelemetryClient,
    TelemetryClient,
    TelemetrySpan,
)
from .vector_math import (  # noqa: F401
    EMBEDDING_DIMENSION,
    EmbeddingDimensionError,
    cosine_similarity,
    whiten,
)
