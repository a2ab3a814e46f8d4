"""
Chat session orchestrator.

Owns session state and ties the chat pipeline together:

    rate limit -> session lookup -> sanitize -> append user message
    -> profile inference -> synthesize reply -> append reply -> persist
    -> analytics

Turns on the same session are serialized with a per-session asyncio lock.
Each turn works on a private copy of the session, and the store only ever
sees the finished copy, so a failed or retried synthesis never leaves a
duplicated or half-written conversation behind.
"""
import asyncio
import time
import weakref
from typing import Callable, List, Optional

from astroai.core.errors import NotFoundError, RateLimitError, ValidationError
from astroai.core.logging import get_logger, set_session_id
from astroai.core.metrics import record_chat_message, record_session_event, update_active_sessions
from astroai.core.rate_limit import RateLimiter, mask_key
from astroai.core.sanitize import sanitize
from astroai.core.tracing import start_span
from astroai.models.chat import (
    ChatMessage,
    ChatSession,
    ChatTurn,
    MessageMetadata,
    ProfileSeed,
    UserProfile,
    utcnow,
)
from astroai.models.search import SearchOptions
from astroai.services.ai.intent import (
    INTENT_PORTFOLIO,
    INTENT_SERVICE_INQUIRY,
    INTENT_TECHNICAL,
)
from astroai.services.ai.profile import infer_profile
from astroai.services.ai.responses import ResponseSynthesizer, estimate_tokens
from astroai.services.chat.analytics import ChatAnalytics
from astroai.services.chat.session_store import InMemorySessionStore, SessionStore
from astroai.services.recommendation.scorer import RecommendationScorer
from astroai.services.search.vector_store import VectorSearchFacade

logger = get_logger(__name__)

DEFAULT_MAX_MESSAGE_LENGTH = 1000
ENRICHMENT_LIMIT = 3
RELATED_CONTENT_THRESHOLD = 0.3


class ChatOrchestrator:
    """
    Public chat surface: create_session, get_session, send_message, close_session.

    Args:
        store: Session persistence (in-memory TTL store by default)
        synthesizer: Reply generation
        rate_limiter: Message quota keyed by session, user or client IP
        recommender: Optional; enriches service-inquiry replies
        search: Optional; enriches portfolio and technical replies
        analytics: Optional event sink
        max_message_length: Sanitized user text is capped to this length
    """

    def __init__(
        self,
        store: Optional[SessionStore] = None,
        synthesizer: Optional[ResponseSynthesizer] = None,
        rate_limiter: Optional[RateLimiter] = None,
        recommender: Optional[RecommendationScorer] = None,
        search: Optional[VectorSearchFacade] = None,
        analytics: Optional[ChatAnalytics] = None,
        max_message_length: int = DEFAULT_MAX_MESSAGE_LENGTH,
        clock: Callable[[], float] = time.perf_counter,
    ):
        self.store = store if store is not None else InMemorySessionStore()
        self.synthesizer = synthesizer if synthesizer is not None else ResponseSynthesizer()
        self.rate_limiter = rate_limiter if rate_limiter is not None else RateLimiter.per_hour(name="chat")
        self.recommender = recommender
        self.search = search
        self.analytics = analytics
        self.max_message_length = max_message_length
        self._clock = clock
        self._locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()

    def _lock_for(self, session_id: str) -> asyncio.Lock:
        lock = self._locks.get(session_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[session_id] = lock
        return lock

    def _track(self, event_type: str, session_id: Optional[str], **fields) -> None:
        if self.analytics is None:
            return
        try:
            self.analytics.record(event_type, session_id, **fields)
        except Exception as e:
            logger.warning("analytics_record_failed", event_type=event_type, error_type=type(e).__name__)

    async def _refresh_active_sessions(self) -> None:
        try:
            update_active_sessions(await self.store.count())
        except Exception as e:
            logger.warning("active_sessions_refresh_failed", error_type=type(e).__name__)

    async def create_session(self, seed: Optional[ProfileSeed] = None) -> ChatSession:
        """
        Start a conversation with a welcome message.

        Args:
            seed: Partial profile merged over the defaults

        Returns:
            The stored session (exactly one assistant message)
        """
        profile = UserProfile().merged(seed)
        welcome = self.synthesizer.welcome_message(profile)
        session = ChatSession(context=profile, messages=[welcome])
        session.metadata.total_tokens = welcome.metadata.tokens

        set_session_id(session.id)
        await self.store.save(session)

        record_session_event("created")
        await self._refresh_active_sessions()
        self._track("session_created", session.id, tokens=welcome.metadata.tokens)
        logger.info(
            "chat_session_created",
            industry=profile.industry,
            company_size=profile.company_size,
        )
        return session

    async def get_session(self, session_id: str) -> ChatSession:
        """
        Raises:
            NotFoundError: unknown or expired session
        """
        session = await self.store.get(session_id)
        if session is None:
            raise NotFoundError("Session not found.", metadata={"session_id": session_id})
        return session

    async def send_message(
        self,
        session_id: str,
        content: str,
        limiter_key: Optional[str] = None,
    ) -> ChatTurn:
        """
        Handle one user turn.

        Args:
            session_id: Target session
            content: Raw user text
            limiter_key: Quota key (user ID or client IP); defaults to the session ID

        Returns:
            ChatTurn with the updated session and the assistant reply

        Raises:
            RateLimitError: quota for `limiter_key` exhausted (nothing is written)
            NotFoundError: unknown or expired session
            ValidationError: session closed, or message empty after sanitizing
        """
        set_session_id(session_id)
        key = limiter_key or session_id
        if not self.rate_limiter.is_allowed(key):
            logger.warning("chat_rate_limited", key=mask_key(key))
            raise RateLimitError(
                "Too many messages. Please wait before sending another.",
                metadata={"retry_after": self.rate_limiter.retry_after(key)},
            )

        async with self._lock_for(session_id):
            session = await self.get_session(session_id)
            if session.status == "closed":
                raise ValidationError("Session is closed.", metadata={"session_id": session_id})

            text = sanitize(content, self.max_message_length)
            if not text:
                raise ValidationError("Message cannot be empty.")

            working = session.model_copy(deep=True)
            user_message = ChatMessage(
                role="user",
                content=text,
                metadata=MessageMetadata(tokens=estimate_tokens(text)),
            )
            working.messages.append(user_message)
            working.context = infer_profile(working.messages, working.context)

            started = self._clock()
            with start_span("chat.synthesize", **{"chat.session_id": session_id}):
                synthesis = await self.synthesizer.synthesize(list(working.messages), text, working.context)
                reply_text = synthesis.content + await self._enrich(synthesis.intent, text, working.context, session_id)
            elapsed_ms = (self._clock() - started) * 1000

            reply = ChatMessage(
                role="assistant",
                content=reply_text,
                metadata=MessageMetadata(
                    tokens=estimate_tokens(reply_text),
                    model=synthesis.model,
                    context=synthesis.intent,
                    confidence=synthesis.confidence,
                ),
            )
            working.messages.append(reply)

            meta = working.metadata
            meta.total_tokens += user_message.metadata.tokens + reply.metadata.tokens
            meta.response_count += 1
            meta.avg_response_time += (elapsed_ms - meta.avg_response_time) / meta.response_count
            working.updated_at = utcnow()

            await self.store.save(working)

        record_chat_message(synthesis.intent)
        self._track(
            "message_exchanged",
            session_id,
            intent=synthesis.intent,
            tokens=user_message.metadata.tokens + reply.metadata.tokens,
            response_time_ms=elapsed_ms,
        )
        logger.info(
            "chat_message_handled",
            intent=synthesis.intent,
            confidence=synthesis.confidence,
            model=synthesis.model,
            fallback_reason=synthesis.fallback_reason,
            response_time_ms=round(elapsed_ms, 2),
            messages=len(working.messages),
        )
        return ChatTurn(session=working, reply=reply)

    async def close_session(self, session_id: str) -> ChatSession:
        """
        Mark the session closed. Idempotent; the session stays readable until its TTL elapses.

        Raises:
            NotFoundError: unknown or expired session
        """
        set_session_id(session_id)
        async with self._lock_for(session_id):
            session = await self.get_session(session_id)
            if session.status == "closed":
                return session
            session.status = "closed"
            session.updated_at = utcnow()
            await self.store.save(session)

        record_session_event("closed")
        self._track("session_closed", session_id)
        logger.info("chat_session_closed", messages=len(session.messages))
        return session

    async def _enrich(self, intent: str, text: str, profile: UserProfile, session_id: str) -> str:
        """Extra reply paragraph from recommendations or related content. Never raises."""
        try:
            if intent == INTENT_SERVICE_INQUIRY and self.recommender is not None:
                recommendations = self.recommender.recommend(text, profile, limit=ENRICHMENT_LIMIT)
                if not recommendations:
                    return ""
                self._track("recommendations_generated", session_id, services=[r.id for r in recommendations])
                lines = [f"• {r.title} ({r.relevance_score}% match): {r.reasoning}" for r in recommendations]
                return "\n\nBased on what you've shared, these services look like a good fit:\n" + "\n".join(lines)

            if intent in (INTENT_PORTFOLIO, INTENT_TECHNICAL) and self.search is not None:
                results = await self.search.search(
                    text, SearchOptions(limit=ENRICHMENT_LIMIT, threshold=RELATED_CONTENT_THRESHOLD)
                )
                titles = _unique_titles(r.metadata.get("title") for r in results)
                if not titles:
                    return ""
                return "\n\nRelated from our work: " + ", ".join(titles) + "."
        except Exception as e:
            logger.warning("chat_reply_enrichment_failed", intent=intent, error_type=type(e).__name__)
        return ""


def _unique_titles(titles) -> List[str]:
    seen: List[str] = []
    for title in titles:
        if title and title not in seen:
            seen.append(title)
    return seen
