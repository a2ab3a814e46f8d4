"""
Chat endpoints.

POST /chat/sessions                   - create a session (optional profile seed)
GET  /chat/sessions/{session_id}      - fetch a session
POST /chat/sessions/{session_id}/messages - send a message
POST /chat/sessions/{session_id}/close    - close a session
POST /chat/stream                     - streamed reply (server-sent events, JSON fallback)
GET  /chat/analytics                  - conversation analytics (json or csv)
"""
from datetime import datetime
from typing import Literal, Optional

from fastapi import APIRouter, Depends, Path, Query, Request
from fastapi.responses import PlainTextResponse, StreamingResponse

from astroai.core.errors import RateLimitError, ValidationError
from astroai.core.logging import get_logger, set_session_id
from astroai.core.rate_limit import get_client_ip, mask_key
from astroai.core.sanitize import sanitize
from astroai.dependencies import ServiceContainer, get_container
from astroai.models.chat import (
    ChatSession,
    ChatTurn,
    CreateSessionRequest,
    SendMessageRequest,
    StreamChatRequest,
    StreamFallbackResponse,
    UserProfile,
)
from astroai.services.chat.analytics import AnalyticsSummary
from astroai.services.chat.streaming import sse_events

logger = get_logger(__name__)

router = APIRouter()


@router.post("/sessions", response_model=ChatSession, status_code=201)
async def create_session(
    body: Optional[CreateSessionRequest] = None,
    container: ServiceContainer = Depends(get_container),
):
    return await container.orchestrator.create_session(body.profile if body else None)


@router.get("/sessions/{session_id}", response_model=ChatSession)
async def get_session(
    session_id: str = Path(..., description="Chat session ID"),
    container: ServiceContainer = Depends(get_container),
):
    return await container.orchestrator.get_session(session_id)


@router.post("/sessions/{session_id}/messages", response_model=ChatTurn)
async def send_message(
    request: Request,
    body: SendMessageRequest,
    session_id: str = Path(..., description="Chat session ID"),
    container: ServiceContainer = Depends(get_container),
):
    """
    Send a user message and get the assistant reply.

    The message quota is keyed by user ID when given, otherwise by client IP.
    """
    limiter_key = body.user_id or get_client_ip(request)
    return await container.orchestrator.send_message(session_id, body.content, limiter_key=limiter_key)


@router.post("/sessions/{session_id}/close", response_model=ChatSession)
async def close_session(
    session_id: str = Path(..., description="Chat session ID"),
    container: ServiceContainer = Depends(get_container),
):
    return await container.orchestrator.close_session(session_id)


@router.get("/analytics", response_model=AnalyticsSummary)
async def analytics(
    format: Literal["json", "csv"] = Query("json", description="Response format"),
    start: Optional[datetime] = Query(None, description="Period start (ISO 8601)"),
    end: Optional[datetime] = Query(None, description="Period end (ISO 8601)"),
    container: ServiceContainer = Depends(get_container),
):
    if format == "csv":
        return PlainTextResponse(container.analytics.export("csv", start, end), media_type="text/csv")
    return container.analytics.summary(start, end)


SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


@router.post("/stream", response_model=StreamFallbackResponse)
async def stream_message(
    request: Request,
    body: StreamChatRequest,
    container: ServiceContainer = Depends(get_container),
):
    """
    Stream the assistant reply as server-sent events.

    SSE events:
        event: token     {"content": "..."}  one per text chunk
        event: complete  {"content": "..."}  the full reply
        event: error     {"kind": "...", "message": "..."}

    When no provider stream can be opened the reply is returned whole as
    JSON with `streaming: false` and `fallback: true`. Limited per client IP
    (30 per hour by default). The exchange is not written to the session.
    """
    client_ip = get_client_ip(request)
    if not container.stream_limiter.is_allowed(client_ip):
        logger.warning("chat_stream_rate_limited", client=mask_key(client_ip))
        raise RateLimitError(
            "Too many messages. Please try again later.",
            metadata={"retry_after": container.stream_limiter.retry_after(client_ip)},
        )

    message = sanitize(body.message, container.settings.max_message_length)
    if not message:
        raise ValidationError("Message cannot be empty.")

    history = []
    profile = UserProfile()
    if body.session_id:
        session = await container.orchestrator.get_session(body.session_id)
        set_session_id(session.id)
        history, profile = session.messages, session.context
    profile = profile.merged(body.profile)
    session_context = body.context.model_dump(exclude_none=True) if body.context else None

    stream = await container.streamer.open_stream(message, profile, session_context, history)
    if not stream.streaming:
        return StreamFallbackResponse(
            message=stream.fallback,
            intent=stream.intent,
            fallback_reason=stream.fallback_reason,
        )
    return StreamingResponse(sse_events(stream.tokens), media_type="text/event-stream", headers=SSE_HEADERS)
