"""
Streaming chat replies.

The provider stream is opened and its first chunk read before anything is
sent to the client, so a provider that is disabled, unconfigured or failing
turns into a complete template reply instead of a broken event stream.
Failures after the first chunk are reported as an `error` event.
"""
import json
from dataclasses import dataclass
from typing import AsyncIterator, Callable, Dict, List, Optional, Protocol

from astroai.core.errors import classify_error
from astroai.core.logging import get_logger
from astroai.core.metrics import record_chat_stream, record_response_fallback
from astroai.models.chat import ChatMessage, UserProfile
from astroai.services.ai.intent import IntentResult, classify_intent
from astroai.services.ai.responses import compose_reply

logger = get_logger(__name__)


class StreamProvider(Protocol):
    chat_model: str

    def stream_complete(
        self,
        messages: List[ChatMessage],
        profile: Optional[UserProfile] = None,
        session_context: Optional[Dict[str, str]] = None,
    ) -> AsyncIterator[str]:
        ...


@dataclass
class ChatStream:
    """Either a live token stream or a finished template reply."""
    intent: str
    tokens: Optional[AsyncIterator[str]] = None
    fallback: Optional[str] = None
    fallback_reason: Optional[str] = None

    @property
    def streaming(self) -> bool:
        return self.tokens is not None


async def _prepend(first: str, rest: AsyncIterator[str]) -> AsyncIterator[str]:
    try:
        yield first
        async for chunk in rest:
            yield chunk
    finally:
        await rest.aclose()


class ChatStreamer:

    def __init__(
        self,
        provider: Optional[StreamProvider] = None,
        llm_enabled: bool = False,
        classifier: Callable[[str], IntentResult] = classify_intent,
    ):
        self.provider = provider
        self.llm_enabled = llm_enabled
        self._classify = classifier

    @property
    def uses_provider(self) -> bool:
        return self.llm_enabled and self.provider is not None

    async def open_stream(
        self,
        message: str,
        profile: UserProfile,
        session_context: Optional[Dict[str, str]] = None,
        history: Optional[List[ChatMessage]] = None,
    ) -> ChatStream:
        """
        Start a reply to `message`.

        Args:
            message: Sanitized user message
            profile: Visitor profile used for the prompt and the template
            session_context: Optional page / user intent hints for the prompt
            history: Earlier messages of the session, oldest first
        """
        result = self._classify(message)

        if not self.uses_provider:
            record_chat_stream("fallback")
            return ChatStream(result.intent, fallback=compose_reply(result.intent, profile, message))

        messages = list(history or []) + [ChatMessage(role="user", content=message)]
        stream = self.provider.stream_complete(messages, profile, session_context)
        try:
            first = await stream.__anext__()
        except Exception as e:
            await stream.aclose()
            error = classify_error(e)
            reason = "empty_stream" if isinstance(e, StopAsyncIteration) else error.kind.value
            record_response_fallback(reason)
            record_chat_stream("fallback")
            logger.warning(
                "chat_stream_fallback",
                intent=result.intent,
                reason=reason,
                error_type=type(e).__name__,
            )
            return ChatStream(
                result.intent,
                fallback=compose_reply(result.intent, profile, message),
                fallback_reason=reason,
            )

        record_chat_stream("stream")
        return ChatStream(result.intent, tokens=_prepend(first, stream))


def sse_event(event: str, data: dict) -> str:
    return f"event: {event}\ndata: {json.dumps(data)}\n\n"


async def sse_events(tokens: AsyncIterator[str]) -> AsyncIterator[str]:
    """
    Frame a token stream as server-sent events.

    Each chunk is a `token` event; the full reply follows as `complete`. A
    failure mid-stream ends the stream with an `error` event.
    """
    parts: List[str] = []
    try:
        async for token in tokens:
            parts.append(token)
            yield sse_event("token", {"content": token})
    except Exception as e:
        error = classify_error(e)
        logger.warning("chat_stream_interrupted", error_kind=error.kind.value, error_type=type(e).__name__)
        yield sse_event("error", {"kind": error.kind.value, "message": error.message})
        return
    yield sse_event("complete", {"content": "".join(parts)})
