"""Chat sessions: storage, orchestration, streaming and analytics."""

from .analytics import ChatAnalytics
from .orchestrator import ChatOrchestrator
from .session_store import InMemorySessionStore, SessionStore
from .streaming import ChatStreamer

__all__ = ["ChatAnalytics", "ChatOrchestrator", "ChatStreamer", "InMemorySessionStore", "SessionStore"]
