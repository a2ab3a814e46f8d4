"""
Chat session storage.

`SessionStore` is the persistence seam used by the orchestrator. The default
`InMemorySessionStore` keeps sessions in a TTL cache with sliding expiry: every
`save` restarts the session's lifetime. Sessions are not durable across
restarts.

Lifecycle: `start()` launches an optional periodic sweep that evicts expired
sessions and refreshes the active-session gauge; `shutdown()` cancels it.
"""
import asyncio
import time
from abc import ABC, abstractmethod
from typing import Callable, List, Optional

from astroai.core.cache import TTLCache
from astroai.core.logging import get_logger
from astroai.core.metrics import record_session_event, update_active_sessions
from astroai.models.chat import ChatSession

logger = get_logger(__name__)

DEFAULT_SESSION_TTL_SECONDS = 30 * 60
DEFAULT_SWEEP_INTERVAL_SECONDS = 5 * 60


class SessionStore(ABC):
    """Persistence interface for chat sessions."""

    @abstractmethod
    async def get(self, session_id: str) -> Optional[ChatSession]:
        """Return the session, or None if unknown or expired."""

    @abstractmethod
    async def save(self, session: ChatSession) -> None:
        """Insert or replace the session and restart its TTL."""

    @abstractmethod
    async def delete(self, session_id: str) -> bool:
        ...

    @abstractmethod
    async def count(self) -> int:
        ...

    async def start(self) -> None:
        pass

    async def shutdown(self) -> None:
        pass


class InMemorySessionStore(SessionStore):
    """
    Process-local session store backed by `TTLCache`.

    Stored sessions are deep copies, so callers can never mutate stored state
    without going through `save`.
    """

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_SESSION_TTL_SECONDS,
        sweep_interval_seconds: float = DEFAULT_SWEEP_INTERVAL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl_seconds = ttl_seconds
        self.sweep_interval_seconds = sweep_interval_seconds
        self._sessions: TTLCache[str, ChatSession] = TTLCache(
            default_ttl=ttl_seconds, name="chat_sessions", clock=clock
        )
        self._sweep_task: Optional[asyncio.Task] = None

    async def get(self, session_id: str) -> Optional[ChatSession]:
        session = self._sessions.get(session_id)
        if session is None:
            return None
        return session.model_copy(deep=True)

    async def save(self, session: ChatSession) -> None:
        self._sessions.set(session.id, session.model_copy(deep=True))

    async def delete(self, session_id: str) -> bool:
        return self._sessions.delete(session_id)

    async def count(self) -> int:
        return self._sessions.size()

    def session_ids(self) -> List[str]:
        return [key for key, _ in self._sessions.items()]

    def sweep(self) -> int:
        """Evict expired sessions. Returns the number evicted."""
        evicted = self._sessions.purge_expired()
        active = len(self._sessions)
        update_active_sessions(active)
        if evicted:
            record_session_event("expired", evicted)
            logger.info("sessions_expired", evicted=evicted, active=active)
        return evicted

    async def _sweep_loop(self) -> None:
        while True:
            await asyncio.sleep(self.sweep_interval_seconds)
            try:
                self.sweep()
            except Exception as e:
                logger.error("session_sweep_failed", error_type=type(e).__name__, exc_info=True)

    async def start(self) -> None:
        if self.sweep_interval_seconds <= 0 or self._sweep_task is not None:
            return
        self._sweep_task = asyncio.create_task(self._sweep_loop())
        logger.info(
            "session_store_started",
            ttl_seconds=self.ttl_seconds,
            sweep_interval_seconds=self.sweep_interval_seconds,
        )

    async def shutdown(self) -> None:
        if self._sweep_task is None:
            return
        self._sweep_task.cancel()
        try:
            await self._sweep_task
        except asyncio.CancelledError:
            pass
        self._sweep_task = None
        logger.info("session_store_stopped")
