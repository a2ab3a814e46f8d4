"""
Embedding providers.

- SentenceTransformerEmbeddings: local all-MiniLM-L6-v2 model (384-dim)
- OpenAIEmbeddings: OpenAI-compatible /embeddings endpoint via LLMClient
- HashedEmbeddings: deterministic hashed bag-of-words vectors, no model needed

All providers return L2-normalized float32 numpy vectors.
"""
import asyncio
import time
from typing import List, Optional

import numpy as np
from sentence_transformers import SentenceTransformer

from astroai.core.logging import get_logger
from astroai.services.ai.llm_client import LLMClient
from astroai.services.search.providers import normalize, pseudo_embedding

logger = get_logger(__name__)

MODEL_NAME = "all-MiniLM-L6-v2"
EMBEDDING_DIM = 384


class HashedEmbeddings:
    """Provider wrapper around pseudo_embedding."""

    name = "hashed"

    def __init__(self, dim: int = EMBEDDING_DIM):
        self.dim = dim

    async def embed(self, text: str) -> np.ndarray:
        return pseudo_embedding(text, self.dim)


class SentenceTransformerEmbeddings:
    """Local SentenceTransformers model, loaded lazily on first use."""

    name = "sentence-transformers"

    def __init__(self, model_name: str = MODEL_NAME, dim: int = EMBEDDING_DIM):
        self.model_name = model_name
        self.dim = dim
        self.model: Optional[SentenceTransformer] = None

    def load_model(self) -> bool:
        """
        Load the SentenceTransformers model.

        Returns:
            True if model loaded successfully, False otherwise
        """
        if self.model is not None:
            return True
        try:
            logger.info("embedding_model_loading", model_name=self.model_name)
            start_time = time.time()
            self.model = SentenceTransformer(self.model_name)
            logger.info(
                "embedding_model_loaded",
                model_name=self.model_name,
                load_time_ms=int((time.time() - start_time) * 1000),
            )
            return True
        except Exception as e:
            logger.error(
                "embedding_model_load_failed",
                model_name=self.model_name,
                error_type=type(e).__name__,
                exc_info=True,
            )
            return False

    def _encode(self, text: str) -> np.ndarray:
        if not self.load_model():
            raise RuntimeError(f"embedding model {self.model_name} unavailable")
        return self.model.encode(text, convert_to_numpy=True, normalize_embeddings=True)

    async def embed(self, text: str) -> np.ndarray:
        embedding = await asyncio.to_thread(self._encode, text)
        return normalize(embedding)


class OpenAIEmbeddings:
    """Remote embeddings through an OpenAI-compatible API."""

    name = "openai"

    def __init__(self, client: LLMClient, dim: int):
        self.client = client
        self.dim = dim

    async def embed(self, text: str) -> np.ndarray:
        vector = await self.client.embed(text)
        array = normalize(vector)
        if array.shape[0] != self.dim:
            raise ValueError(f"embedding dimension {array.shape[0]} != configured {self.dim}")
        return array

    async def embed_many(self, texts: List[str]) -> List[np.ndarray]:
        return [normalize(v) for v in await self.client.embed_many(texts)]
