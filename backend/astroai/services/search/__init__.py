"""Semantic content search over pluggable embedding, index and store providers."""

from .vector_store import ProviderMode, VectorSearchFacade

__all__ = ["ProviderMode", "VectorSearchFacade"]
