"""
Service container.

Builds every long-lived collaborator from `Settings` once at startup and tears
them down on shutdown. Routes reach the container through `get_container()`,
and tests install their own with `set_container()`.
"""
from dataclasses import dataclass
from typing import Optional

from astroai.core.config import Settings
from astroai.core.database import get_supabase_client
from astroai.core.errors import AIError
from astroai.core.logging import get_logger
from astroai.core.rate_limit import RateLimiter
from astroai.services.ai.content_generator import ContentGenerator
from astroai.services.ai.llm_client import LLMClient
from astroai.services.ai.responses import ResponseSynthesizer
from astroai.services.chat.analytics import ChatAnalytics
from astroai.services.chat.orchestrator import ChatOrchestrator
from astroai.services.chat.session_store import InMemorySessionStore, SessionStore
from astroai.services.chat.streaming import ChatStreamer
from astroai.services.recommendation.scorer import RecommendationScorer
from astroai.services.search.faiss_index import FaissIndex
from astroai.services.search.providers import (
    DocumentStore,
    EmbeddingProvider,
    InMemoryDocumentStore,
    InMemoryIndex,
    VectorIndex,
)
from astroai.services.search.supabase_store import SupabaseDocumentStore
from astroai.services.search.vector_store import VectorSearchFacade

logger = get_logger(__name__)


@dataclass
class ServiceContainer:
    settings: Settings
    session_store: SessionStore
    chat_limiter: RateLimiter
    recommend_limiter: RateLimiter
    content_limiter: RateLimiter
    stream_limiter: RateLimiter
    llm_client: LLMClient
    synthesizer: ResponseSynthesizer
    content_generator: ContentGenerator
    streamer: ChatStreamer
    recommender: RecommendationScorer
    search: VectorSearchFacade
    analytics: ChatAnalytics
    orchestrator: ChatOrchestrator

    async def start(self) -> None:
        await self.session_store.start()

    async def shutdown(self) -> None:
        await self.session_store.shutdown()


def _build_embedder(settings: Settings, llm_client: LLMClient) -> Optional[EmbeddingProvider]:
    if settings.embedding_provider == "openai":
        if not llm_client.configured:
            logger.warning("embedding_provider_unconfigured", provider="openai")
            return None
        from astroai.services.search.embeddings import OpenAIEmbeddings

        return OpenAIEmbeddings(llm_client, settings.embedding_dim)
    if settings.embedding_provider == "sentence-transformers":
        # Imported here so the model stack is only loaded when selected
        from astroai.services.search.embeddings import SentenceTransformerEmbeddings

        return SentenceTransformerEmbeddings(dim=settings.embedding_dim)
    return None


def _build_index(settings: Settings) -> Optional[VectorIndex]:
    if settings.vector_index_backend == "faiss":
        return FaissIndex(settings.embedding_dim)
    if settings.vector_index_backend == "memory":
        return InMemoryIndex(settings.embedding_dim)
    return None


def _build_store(settings: Settings) -> Optional[DocumentStore]:
    if settings.document_store_backend == "supabase":
        client = get_supabase_client(settings.supabase_url, settings.supabase_service_key)
        return SupabaseDocumentStore(client) if client is not None else None
    if settings.document_store_backend == "memory":
        return InMemoryDocumentStore()
    return None


def build_container(settings: Settings) -> ServiceContainer:
    """Wire the AI core from settings."""
    llm_client = LLMClient(
        api_base=settings.llm_api_base,
        api_key=settings.llm_api_key,
        chat_model=settings.llm_chat_model,
        embedding_model=settings.llm_embedding_model,
        timeout_seconds=settings.llm_timeout_seconds,
    )
    synthesizer = ResponseSynthesizer(
        provider=llm_client if llm_client.configured else None,
        llm_enabled=settings.llm_enabled,
        timeout_seconds=settings.llm_timeout_seconds,
        max_retries=settings.llm_max_retries,
    )
    content_generator = ContentGenerator(
        provider=llm_client if llm_client.configured else None,
        llm_enabled=settings.llm_enabled,
        timeout_seconds=settings.llm_timeout_seconds,
        max_retries=settings.llm_max_retries,
    )
    streamer = ChatStreamer(
        provider=llm_client if llm_client.configured else None,
        llm_enabled=settings.llm_enabled,
    )
    if settings.llm_enabled and not llm_client.configured:
        logger.warning("llm_enabled_without_api_key", message="Falling back to template replies")

    search = VectorSearchFacade(
        embedder=_build_embedder(settings, llm_client),
        index=_build_index(settings),
        store=_build_store(settings),
        embedding_dim=settings.embedding_dim,
        cache_ttl_seconds=settings.search_cache_ttl_seconds,
    )

    session_store = InMemorySessionStore(
        ttl_seconds=settings.session_ttl_seconds,
        sweep_interval_seconds=settings.session_sweep_interval_seconds,
    )
    chat_limiter = RateLimiter(
        limit=settings.chat_rate_limit,
        window_seconds=settings.chat_rate_window_seconds,
        name="chat",
    )
    recommend_limiter = RateLimiter(
        limit=settings.recommend_rate_limit,
        window_seconds=settings.recommend_rate_window_seconds,
        name="recommend",
    )
    content_limiter = RateLimiter(
        limit=settings.content_rate_limit,
        window_seconds=settings.content_rate_window_seconds,
        name="content",
    )
    stream_limiter = RateLimiter(
        limit=settings.stream_rate_limit,
        window_seconds=settings.stream_rate_window_seconds,
        name="chat_stream",
    )
    recommender = RecommendationScorer()
    analytics = ChatAnalytics()

    orchestrator = ChatOrchestrator(
        store=session_store,
        synthesizer=synthesizer,
        rate_limiter=chat_limiter,
        recommender=recommender,
        search=search,
        analytics=analytics,
        max_message_length=settings.max_message_length,
    )

    logger.info(
        "service_container_built",
        search_mode=search.mode.value,
        llm_enabled=synthesizer.uses_provider,
        session_ttl_seconds=settings.session_ttl_seconds,
    )
    return ServiceContainer(
        settings=settings,
        session_store=session_store,
        chat_limiter=chat_limiter,
        recommend_limiter=recommend_limiter,
        content_limiter=content_limiter,
        stream_limiter=stream_limiter,
        llm_client=llm_client,
        synthesizer=synthesizer,
        content_generator=content_generator,
        streamer=streamer,
        recommender=recommender,
        search=search,
        analytics=analytics,
        orchestrator=orchestrator,
    )


_container: Optional[ServiceContainer] = None


def set_container(container: Optional[ServiceContainer]) -> None:
    global _container
    _container = container


def get_container() -> ServiceContainer:
    """Return the running container (FastAPI dependency)."""
    if _container is None:
        raise AIError("Service is not initialized.")
    return _container


def container_initialized() -> bool:
    return _container is not None
