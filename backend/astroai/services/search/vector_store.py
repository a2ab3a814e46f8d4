"""
Vector search facade.

Wraps an optional embedding provider, an optional vector index and an
optional document store behind one interface. The operating mode is computed
once at construction from which backends were supplied:

- FULL: index and document store both available
- DEGRADED: exactly one of them available; operations that need the missing
  one return partial or empty results and record a degradation event
- OFFLINE: neither available; search answers from the static fallback corpus

Read path (search, get_content) never raises for provider failures. Write
path (store_content, and delete_content when every reachable backend fails)
raises so that data loss is never silent.
"""
import time
from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import Any, Deque, Dict, List, Optional, Tuple

import numpy as np

from astroai.core.cache import TTLCache
from astroai.core.errors import AIError, NotFoundError, ValidationError, classify_error
from astroai.core.logging import get_logger
from astroai.core.metrics import record_vector_degradation, record_vector_search
from astroai.core.performance import performance_monitor
from astroai.core.tracing import start_span
from astroai.models.search import EmbeddingRecord, SearchOptions, SearchResult
from astroai.services.search.fallback import FALLBACK_CORPUS, SAMPLE_CONTENT, fallback_search
from astroai.services.search.providers import (
    DocumentStore,
    EmbeddingProvider,
    IndexMatch,
    VectorIndex,
    pseudo_embedding,
)

logger = get_logger(__name__)

DEFAULT_EMBEDDING_DIM = 384
MAX_DEGRADATION_EVENTS = 100


class ProviderMode(str, Enum):
    FULL = "full"
    DEGRADED = "degraded"
    OFFLINE = "offline"


@dataclass(frozen=True)
class ProviderAvailability:
    index: bool
    store: bool

    @property
    def mode(self) -> ProviderMode:
        if self.index and self.store:
            return ProviderMode.FULL
        if self.index or self.store:
            return ProviderMode.DEGRADED
        return ProviderMode.OFFLINE


@dataclass(frozen=True)
class DegradationEvent:
    operation: str
    backend: str
    reason: str
    timestamp: float


class VectorSearchFacade:
    """
    Content storage and semantic search with explicit fallback modes.

    Args:
        embedder: Embedding provider; a hashed pseudo-embedding is used when
            absent or failing
        index: Vector index provider
        store: Document store provider
        embedding_dim: Vector dimension (taken from the embedder when given)
        cache_ttl_seconds: Lifetime of cached live search results
    """

    def __init__(
        self,
        embedder: Optional[EmbeddingProvider] = None,
        index: Optional[VectorIndex] = None,
        store: Optional[DocumentStore] = None,
        embedding_dim: int = DEFAULT_EMBEDDING_DIM,
        cache_ttl_seconds: float = 5 * 60,
        fallback_corpus: Optional[List[dict]] = None,
        clock=time.monotonic,
    ):
        self.embedder = embedder
        self.index = index
        self.store = store
        self.embedding_dim = embedder.dim if embedder is not None else embedding_dim
        self.fallback_corpus = fallback_corpus if fallback_corpus is not None else FALLBACK_CORPUS
        self.availability = ProviderAvailability(index=index is not None, store=store is not None)
        self.mode = self.availability.mode
        self._cache: TTLCache[Tuple, List[SearchResult]] = TTLCache(
            default_ttl=cache_ttl_seconds, name="vector_search", clock=clock
        )
        self.degradation_events: Deque[DegradationEvent] = deque(maxlen=MAX_DEGRADATION_EVENTS)

        logger.info(
            "vector_store_initialized",
            mode=self.mode.value,
            index_backend=getattr(index, "name", None),
            store_backend=getattr(store, "name", None),
            embedder=getattr(embedder, "name", "hashed"),
            embedding_dim=self.embedding_dim,
        )

    # ------------------------------------------------------------------
    # internals
    # ------------------------------------------------------------------

    def _degrade(self, operation: str, backend: str, reason: str, **fields: Any) -> None:
        self.degradation_events.append(DegradationEvent(operation, backend, reason, time.time()))
        record_vector_degradation(operation, backend)
        logger.warning(
            "vector_store_degraded",
            operation=operation,
            backend=backend,
            reason=reason,
            mode=self.mode.value,
            **fields,
        )

    async def _embed(self, text: str, operation: str) -> np.ndarray:
        """Embed with the provider, falling back to the pseudo-embedding."""
        if self.embedder is None:
            return pseudo_embedding(text, self.embedding_dim)
        try:
            with start_span("vector.embed", **{"embedding.provider": self.embedder.name}):
                return await self.embedder.embed(text)
        except Exception as e:
            self._degrade(operation, "embedder", classify_error(e).kind.value, error_type=type(e).__name__)
            return pseudo_embedding(text, self.embedding_dim)

    @staticmethod
    def _filter(options: SearchOptions) -> Dict[str, Any]:
        return {key: value for key, value in (("category", options.category), ("type", options.type)) if value}

    @staticmethod
    def _to_result(match: IndexMatch) -> SearchResult:
        metadata = dict(match.metadata)
        content = str(metadata.pop("content", "") or "")
        return SearchResult(
            id=match.id,
            content=content,
            similarity=match.score,
            metadata={
                "type": str(metadata.get("type") or "unknown"),
                "source": str(metadata.get("source") or ""),
                "title": str(metadata.get("title") or ""),
                "category": str(metadata.get("category") or "general"),
                "timestamp": metadata.get("timestamp") or time.time(),
            },
        )

    def _fallback(self, query: str, options: SearchOptions) -> List[SearchResult]:
        results = fallback_search(query, options, self.fallback_corpus)
        record_vector_search(self.mode.value, "fallback")
        return results

    # ------------------------------------------------------------------
    # public API
    # ------------------------------------------------------------------

    async def search(self, query: str, options: Optional[SearchOptions] = None) -> List[SearchResult]:
        """
        Rank stored content by similarity to `query`.

        Falls back to the static corpus when the index is unavailable, when
        the live path fails, or when it returns no match above the threshold.
        Never raises.
        """
        options = options or SearchOptions()
        cache_key = ((query or "").strip().lower(), options.limit, options.threshold, options.category, options.type)

        try:
            cached = self._cache.get(cache_key)
            if cached is not None:
                record_vector_search(self.mode.value, "cache")
                return list(cached)

            if not self.availability.index:
                return self._fallback(query, options)

            with performance_monitor.timed("vector.search"):
                vector = await self._embed(query, "search")
                with start_span("vector.index.query", **{"index.backend": self.index.name}):
                    matches = await self.index.query(vector, options.limit, self._filter(options))
        except Exception as e:
            self._degrade("search", getattr(self.index, "name", "index"), classify_error(e).kind.value,
                          error_type=type(e).__name__)
            return self._fallback(query, options)

        results = [self._to_result(m) for m in matches if m.score >= options.threshold][: options.limit]
        if not results:
            logger.info("vector_search_no_live_results", threshold=options.threshold)
            return self._fallback(query, options)

        self._cache.set(cache_key, results)
        record_vector_search(self.mode.value, "live")
        return list(results)

    async def store_content(
        self,
        content: str,
        metadata: Dict[str, Any],
    ) -> EmbeddingRecord:
        """
        Embed `content` and write it to every available backend.

        Args:
            content: Raw text
            metadata: id (required), type, source, title, category

        Returns:
            The stored record (with its embedding)

        Raises:
            ValidationError: missing id or empty content
            AIError: a reachable backend rejected the write
        """
        content_id = str(metadata.get("id") or "").strip()
        if not content_id:
            raise ValidationError("Content id is required.")
        if not content or not content.strip():
            raise ValidationError("Content cannot be empty.")

        vector = await self._embed(content, "store_content")
        record = EmbeddingRecord(
            id=content_id,
            type=str(metadata.get("type") or "content"),
            source=str(metadata.get("source") or ""),
            title=str(metadata.get("title") or ""),
            category=str(metadata.get("category") or ""),
            content=content,
            embedding=[float(x) for x in vector],
            timestamp=time.time(),
        )

        if self.availability.store:
            try:
                with start_span("vector.store.upsert", **{"store.backend": self.store.name}):
                    await self.store.upsert(record)
            except Exception as e:
                error = classify_error(e)
                logger.error("vector_store_write_failed", backend=self.store.name, content_id=content_id,
                             error_kind=error.kind.value, error_type=type(e).__name__)
                if error is e:
                    raise
                raise error from e
        else:
            self._degrade("store_content", "store", "unavailable", content_id=content_id)

        if self.availability.index:
            index_metadata = dict(record.metadata(), content=content)
            try:
                with start_span("vector.index.upsert", **{"index.backend": self.index.name}):
                    await self.index.upsert(content_id, vector, index_metadata)
            except Exception as e:
                error = classify_error(e)
                logger.error("vector_index_write_failed", backend=self.index.name, content_id=content_id,
                             error_kind=error.kind.value, error_type=type(e).__name__)
                if error is e:
                    raise
                raise error from e
        else:
            self._degrade("store_content", "index", "unavailable", content_id=content_id)

        self._cache.clear()
        logger.info("vector_content_stored", content_id=content_id, type=record.type, category=record.category)
        return record

    async def delete_content(self, content_id: str) -> None:
        """
        Remove content from every backend.

        A failing or unreachable backend is tolerated (and recorded as a
        degradation) as long as at least one reachable backend succeeded.

        Raises:
            AIError: every reachable backend failed
        """
        backends = [("index", self.index), ("store", self.store)]
        attempted = 0
        errors: List[AIError] = []

        for role, backend in backends:
            if backend is None:
                self._degrade("delete_content", role, "unavailable", content_id=content_id)
                continue
            attempted += 1
            try:
                with start_span(f"vector.{role}.delete", **{f"{role}.backend": backend.name}):
                    await backend.delete(content_id)
            except Exception as e:
                error = classify_error(e)
                errors.append(error)
                self._degrade("delete_content", backend.name, error.kind.value,
                              content_id=content_id, error_type=type(e).__name__)

        self._cache.clear()
        if attempted and len(errors) == attempted:
            raise errors[0]
        logger.info("vector_content_deleted", content_id=content_id, failures=len(errors))

    async def get_content(self, content_id: str) -> Optional[EmbeddingRecord]:
        """Stored record or None. Never raises for store failures."""
        if not self.availability.store:
            self._degrade("get_content", "store", "unavailable", content_id=content_id)
            return None
        try:
            return await self.store.get(content_id)
        except Exception as e:
            self._degrade("get_content", self.store.name, classify_error(e).kind.value,
                          content_id=content_id, error_type=type(e).__name__)
            return None

    async def find_similar(self, content_id: str, options: Optional[SearchOptions] = None) -> List[SearchResult]:
        """
        Content similar to a stored document, excluding the document itself.

        Returns an empty list (with a degradation event) when the store or the
        index is unavailable.

        Raises:
            NotFoundError: the id is unknown or has no stored embedding
            AIError: the document store lookup failed
        """
        options = options or SearchOptions()
        if not self.availability.store:
            self._degrade("find_similar", "store", "unavailable", content_id=content_id)
            return []

        try:
            record = await self.store.get(content_id)
        except Exception as e:
            error = classify_error(e)
            logger.error("vector_similar_lookup_failed", content_id=content_id,
                         error_kind=error.kind.value, error_type=type(e).__name__)
            if error is e:
                raise
            raise error from e

        if record is None or not record.embedding:
            raise NotFoundError("Content not found.", metadata={"content_id": content_id})

        if not self.availability.index:
            self._degrade("find_similar", "index", "unavailable", content_id=content_id)
            return []

        try:
            matches = await self.index.query(record.embedding, options.limit + 1, self._filter(options))
        except Exception as e:
            self._degrade("find_similar", self.index.name, classify_error(e).kind.value,
                          content_id=content_id, error_type=type(e).__name__)
            return []

        return [self._to_result(m) for m in matches if m.id != content_id][: options.limit]

    async def seed_sample_content(self) -> int:
        """
        Store the built-in sample corpus.

        Returns:
            Number of records stored
        """
        stored = 0
        for record in SAMPLE_CONTENT:
            await self.store_content(record.content, dict(record.metadata(), id=record.id))
            stored += 1
        logger.info("vector_sample_content_seeded", count=stored, mode=self.mode.value)
        return stored

    def health(self) -> Dict[str, Any]:
        return {
            "mode": self.mode.value,
            "index_available": self.availability.index,
            "store_available": self.availability.store,
            "index_backend": getattr(self.index, "name", None),
            "store_backend": getattr(self.store, "name", None),
            "embedder": getattr(self.embedder, "name", "hashed"),
            "indexed_documents": self.index.size() if self.index is not None else 0,
            "cached_queries": self._cache.size(),
            "degradation_events": len(self.degradation_events),
        }
