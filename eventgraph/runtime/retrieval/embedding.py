"""
Embedding Service - Query and event vectors from an external text model

WHAT: Embedder protocol, lazy sentence-transformers backend, cached/timed service
WHERE: eventgraph/runtime/retrieval/embedding.py - semantic input layer
WHO: Orchestrator (query embeddings) and ingestion scripts (event embeddings)
TIME: Bounded by `timeout_s` per call; cache hits are O(1)

The model is a black box that may be missing, slow, or fail. The service
turns every such failure into an absent vector (None) and logs it; only a
dimension mismatch raises, because it indicates a misconfigured model.
"""

from __future__ import annotations

import hashlib
import importlib
import logging
import threading
from collections import OrderedDict
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Protocol, Sequence, Tuple

from .models import EventNode
from .vector_math import (
    EMBEDDING_DIMENSION,
    EmbeddingDimensionError,
    cosine_similarity,
    l2_normalize,
    validate_dimension,
)

logger = logging.getLogger(__name__)

Vector = List[float]

SENTENCE_TRANSFORMERS_PACKAGE = "sentence_transformers"


class MissingDependencyError(RuntimeError):
    """Raised when the embedding backend package is unavailable in the environment."""


class EmbeddingUnavailableError(RuntimeError):
    """Raised by a backend when it cannot produce a vector for the given text."""


class Embedder(Protocol):
    """External text model: `embed(text)` returns a fixed-length vector or None."""

    def embed(self, text: str) -> Optional[Sequence[float]]:
        ...


@dataclass(slots=True)
class EmbeddingServiceConfig:
    """Configuration for the embedding backend and service wrapper."""

    model_id: str = "thenlper/gte-small"
    device: str = "cpu"
    dimension: Optional[int] = EMBEDDING_DIMENSION
    max_chars: int = 2048
    normalize: bool = True
    timeout_s: float = 5.0
    cache_enabled: bool = True
    cache_size: int = 4096
    max_workers: int = 4


def text_cache_key(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


class SentenceTransformerEmbedder:
    """Local sentence-transformers model, loaded on first use."""

    def __init__(self, config: EmbeddingServiceConfig | None = None) -> None:
        self.config = config or EmbeddingServiceConfig()
        self._model: Any = None
        self._load_lock = threading.Lock()

    @staticmethod
    def dependencies_available() -> bool:
        try:
            importlib.import_module(SENTENCE_TRANSFORMERS_PACKAGE)
        except ImportError:
            return False
        return True

    def is_loaded(self) -> bool:
        return self._model is not None

    def load(self) -> None:
        with self._load_lock:
            if self._model is not None:
                return
            try:
                module = importlib.import_module(SENTENCE_TRANSFORMERS_PACKAGE)
            except ImportError as exc:
                raise MissingDependencyError(
                    "sentence-transformers is not installed. "
                    "Install with `pip install eventgraph[embeddings]`."
                ) from exc
            logger.info(f"Loading embedding model {self.config.model_id} on {self.config.device}")
            self._model = module.SentenceTransformer(self.config.model_id, device=self.config.device)

    def embed(self, text: str) -> Optional[Vector]:
        if not text or not text.strip():
            return None
        if self._model is None:
            self.load()
        try:
            output = self._model.encode(
                text[: self.config.max_chars],
                convert_to_numpy=True,
                normalize_embeddings=self.config.normalize,
            )
        except RuntimeError as exc:
            raise EmbeddingUnavailableError(f"Embedding model failed: {exc}") from exc
        return [float(x) for x in output.tolist()]


class EmbeddingService:
    """
    Wraps an Embedder with caching, a bounded timeout, and dimension checks.

    A timed-out call keeps running on its worker thread, but its result is
    discarded and the caller sees None.
    """

    def __init__(
        self,
        embedder: Embedder | None = None,
        config: EmbeddingServiceConfig | None = None,
    ) -> None:
        self.config = config or EmbeddingServiceConfig()
        self._embedder: Embedder = embedder or SentenceTransformerEmbedder(self.config)
        self._executor = ThreadPoolExecutor(
            max_workers=max(1, self.config.max_workers),
            thread_name_prefix="eventgraph-embed",
        )
        self._cache: "OrderedDict[str, Tuple[float, ...]]" = OrderedDict()
        self._cache_lock = threading.Lock()
        self._stats: Dict[str, int] = {"hits": 0, "misses": 0, "timeouts": 0, "failures": 0}

    @property
    def embedder(self) -> Embedder:
        return self._embedder

    def close(self) -> None:
        self._executor.shutdown(wait=False, cancel_futures=True)

    # ------------------ cache -------------------
    def _cache_get(self, key: str) -> Optional[Tuple[float, ...]]:
        with self._cache_lock:
            vector = self._cache.get(key)
            if vector is not None:
                self._cache.move_to_end(key)
                self._stats["hits"] += 1
            else:
                self._stats["misses"] += 1
            return vector

    def _cache_put(self, key: str, vector: Vector) -> None:
        with self._cache_lock:
            self._cache[key] = tuple(vector)
            self._cache.move_to_end(key)
            while len(self._cache) > self.config.cache_size:
                self._cache.popitem(last=False)

    def clear_cache(self) -> None:
        with self._cache_lock:
            self._cache.clear()

    def cache_stats(self) -> Dict[str, Any]:
        with self._cache_lock:
            cached = len(self._cache)
            stats = dict(self._stats)
        return {
            "cached_embeddings": cached,
            "memory_usage_estimate": cached * (self.config.dimension or 0) * 8,
            **stats,
        }

    def _count(self, stat: str) -> None:
        with self._cache_lock:
            self._stats[stat] += 1

    # ------------------ embedding ---------------
    def _call_embedder(self, text: str) -> Optional[Vector]:
        future = self._executor.submit(self._embedder.embed, text)
        try:
            raw = future.result(timeout=self.config.timeout_s)
        except FutureTimeoutError:
            future.cancel()
            self._count("timeouts")
            logger.warning(f"Embedding timed out after {self.config.timeout_s:.1f}s; treating as absent")
            return None
        except Exception as exc:
            self._count("failures")
            logger.warning(f"Embedding unavailable ({type(exc).__name__}): {exc}")
            return None
        if raw is None:
            return None
        try:
            vector = validate_dimension(raw, self.config.dimension)
        except EmbeddingDimensionError:
            raise
        except ValueError as exc:
            # non-finite model output
            self._count("failures")
            logger.warning(f"Embedding unusable ({exc}); treating as absent")
            return None
        return l2_normalize(vector) if self.config.normalize else vector

    def embed_text(self, text: Optional[str]) -> Optional[Vector]:
        """Return the vector for `text`, or None when blank, unavailable, or timed out."""
        if not text or not text.strip():
            return None
        key = text_cache_key(text)
        if self.config.cache_enabled:
            cached = self._cache_get(key)
            if cached is not None:
                return list(cached)
        vector = self._call_embedder(text)
        if vector is None:
            return None
        if self.config.cache_enabled:
            self._cache_put(key, vector)
        return list(vector)

    def embed_node(self, node: EventNode) -> Optional[Vector]:
        return self.embed_text(node.embedding_text())

    def embed_nodes(self, nodes: Iterable[EventNode], *, overwrite: bool = False) -> int:
        """
        Fill missing embeddings for a batch of nodes; returns how many were set.

        Each node is embedded independently; the per-call timeout still applies.
        """
        targets = [n for n in nodes if overwrite or n.embedding is None]
        if not targets:
            return 0
        with ThreadPoolExecutor(max_workers=max(1, self.config.max_workers)) as pool:
            vectors = list(pool.map(self.embed_node, targets))
        filled = 0
        for node, vector in zip(targets, vectors):
            if vector is not None:
                node.embedding = vector
                filled += 1
        logger.info(f"Embedded {filled}/{len(targets)} events")
        return filled

    def find_similar(
        self,
        query_vector: Sequence[float],
        nodes: Iterable[EventNode],
        *,
        top_k: int = 10,
        threshold: float = 0.5,
    ) -> List[Tuple[EventNode, float]]:
        """Nodes whose similarity to `query_vector` reaches `threshold`, best first."""
        results: List[Tuple[EventNode, float]] = []
        for node in nodes:
            if not node.embedding:
                continue
            similarity = cosine_similarity(query_vector, node.embedding)
            if similarity >= threshold:
                results.append((node, similarity))
        results.sort(key=lambda pair: pair[1], reverse=True)
        return results[:top_k]


__all__ = [
    "Embedder",
    "EmbeddingService",
    "EmbeddingServiceConfig",
    "EmbeddingUnavailableError",
    "MissingDependencyError",
    "SentenceTransformerEmbedder",
    "text_cache_key",
]
