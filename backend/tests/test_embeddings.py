"""
Unit tests for embedding providers.
"""
from unittest.mock import AsyncMock, MagicMock, patch

import numpy as np
import pytest

from astroai.services.search.embeddings import HashedEmbeddings, OpenAIEmbeddings, SentenceTransformerEmbeddings


class TestEmbeddingProviders:

    @pytest.mark.asyncio
    async def test_hashed_embeddings(self):
        provider = HashedEmbeddings(dim=16)

        vector = await provider.embed("cloud migration")

        assert vector.shape == (16,)
        assert np.linalg.norm(vector) == pytest.approx(1.0, abs=1e-5)

    @pytest.mark.asyncio
    async def test_openai_embeddings_normalizes(self):
        client = MagicMock()
        client.embed = AsyncMock(return_value=[3.0, 4.0])

        vector = await OpenAIEmbeddings(client, dim=2).embed("text")

        assert np.allclose(vector, [0.6, 0.8])

    @pytest.mark.asyncio
    async def test_openai_embeddings_dimension_mismatch(self):
        client = MagicMock()
        client.embed = AsyncMock(return_value=[1.0, 0.0, 0.0])

        with pytest.raises(ValueError):
            await OpenAIEmbeddings(client, dim=2).embed("text")

    @pytest.mark.asyncio
    async def test_sentence_transformer_loads_model_once(self):
        model = MagicMock()
        model.encode.return_value = np.array([0.0, 2.0], dtype="float32")

        with patch("astroai.services.search.embeddings.SentenceTransformer", return_value=model) as factory:
            provider = SentenceTransformerEmbeddings(dim=2)
            first = await provider.embed("a")
            await provider.embed("b")

        factory.assert_called_once_with("all-MiniLM-L6-v2")
        assert np.allclose(first, [0.0, 1.0])

    @pytest.mark.asyncio
    async def test_sentence_transformer_load_failure_raises(self):
        with patch("astroai.services.search.embeddings.SentenceTransformer", side_effect=OSError("no model")):
            provider = SentenceTransformerEmbeddings(dim=2)

            assert provider.load_model() is False
            with pytest.raises(RuntimeError):
                await provider.embed("a")
