"""
Unit tests for service container wiring and lifecycle.
"""
import pytest

from astroai.core.config import Settings
from astroai.core.errors import AIError
from astroai.dependencies import build_container, container_initialized, get_container, set_container
from astroai.services.search.faiss_index import FaissIndex
from astroai.services.search.vector_store import ProviderMode


class TestServiceContainer:

    @pytest.fixture(autouse=True)
    def reset_container(self):
        yield
        set_container(None)

    def test_default_container_is_offline(self):
        container = build_container(Settings())

        assert container.search.mode == ProviderMode.OFFLINE
        assert container.synthesizer.uses_provider is False
        assert container.orchestrator.store is container.session_store
        assert container.orchestrator.rate_limiter is container.chat_limiter

    def test_memory_backends_give_full_mode(self):
        container = build_container(
            Settings(vector_index_backend="faiss", document_store_backend="memory", embedding_dim=64)
        )

        assert container.search.mode == ProviderMode.FULL
        assert isinstance(container.search.index, FaissIndex)
        assert container.search.embedding_dim == 64

    def test_openai_embedder_requires_key(self):
        container = build_container(Settings(embedding_provider="openai"))

        assert container.search.embedder is None

    def test_llm_used_only_when_enabled_and_configured(self):
        assert build_container(Settings(llm_enabled=True)).synthesizer.uses_provider is False
        assert build_container(Settings(llm_enabled=True, llm_api_key="sk-test")).synthesizer.uses_provider is True

    def test_content_and_stream_wiring(self):
        container = build_container(Settings(content_rate_limit=3, stream_rate_limit=4))

        assert container.content_limiter.limit == 3
        assert container.stream_limiter.limit == 4
        assert container.content_generator.uses_provider is False
        assert container.streamer.uses_provider is False

        enabled = build_container(Settings(llm_enabled=True, llm_api_key="sk-test"))
        assert enabled.content_generator.provider is enabled.llm_client
        assert enabled.streamer.provider is enabled.llm_client
        assert enabled.streamer.uses_provider is True

    def test_global_accessors(self):
        set_container(None)
        assert not container_initialized()
        with pytest.raises(AIError):
            get_container()

        container = build_container(Settings())
        set_container(container)
        assert get_container() is container

    @pytest.mark.asyncio
    async def test_start_and_shutdown(self):
        container = build_container(Settings(session_sweep_interval_seconds=60))

        await container.start()
        assert container.session_store._sweep_task is not None
        await container.shutdown()
        assert container.session_store._sweep_task is None
