"""Pydantic models for sessions, recommendations, content and search."""

from .chat import ChatMessage, ChatSession, ChatTurn, ProfileSeed, StreamChatRequest, UserProfile
from .content import ContentRequest, GeneratedContent
from .recommendation import CatalogService, ServiceRecommendation
from .search import EmbeddingRecord, SearchOptions, SearchResult

__all__ = [
    "ChatMessage",
    "ChatSession",
    "ChatTurn",
    "ProfileSeed",
    "StreamChatRequest",
    "UserProfile",
    "ContentRequest",
    "GeneratedContent",
    "CatalogService",
    "ServiceRecommendation",
    "EmbeddingRecord",
    "SearchOptions",
    "SearchResult",
]
