"""
Structured logging for the AI core.

Every entry is a JSON object (or a coloured console line in development)
carrying the event name, its keyword fields, the level, the service name and
whichever correlation IDs are bound to the current context:

- trace_id: follows one HTTP request through middleware, orchestrator and providers
- request_id: unique per inbound request
- session_id: the chat session a turn belongs to
"""
import logging
import sys
import uuid
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import structlog
from structlog.types import Processor

SERVICE_NAME = "astroai_core"

_CORRELATION_FIELDS = ("trace_id", "request_id", "session_id")

_context: Dict[str, ContextVar[Optional[str]]] = {
    field: ContextVar(field, default=None) for field in _CORRELATION_FIELDS
}


def add_trace_context(
    logger: structlog.BoundLogger,
    method_name: str,
    event_dict: Dict[str, Any]
) -> Dict[str, Any]:
    """Processor that stamps correlation IDs, the service name and a UTC timestamp."""
    for field, var in _context.items():
        value = var.get()
        # setdefault: an explicit keyword on the log call beats the bound context
        if value:
            event_dict.setdefault(field, value)

    event_dict["service"] = SERVICE_NAME
    event_dict.setdefault("timestamp", datetime.now(timezone.utc).isoformat())
    return event_dict


def _renderer(json_output: bool) -> Processor:
    if json_output:
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer()


def configure_logging(
    log_level: str = "INFO",
    service_name: Optional[str] = None,
    json_output: bool = True
) -> None:
    """
    Install the structlog pipeline and route it through stdlib logging on stdout.

    Args:
        log_level: Minimum level name; unknown names fall back to INFO
        service_name: Overrides SERVICE_NAME for every subsequent entry
        json_output: JSON lines for deployments, console rendering for local runs
    """
    global SERVICE_NAME
    if service_name:
        SERVICE_NAME = service_name

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            add_trace_context,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            _renderer(json_output),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper(), logging.INFO),
    )


def get_logger(name: Optional[str] = None) -> structlog.BoundLogger:
    return structlog.get_logger(name)


def set_trace_id(trace_id: Optional[str]) -> None:
    _context["trace_id"].set(trace_id)


def get_trace_id() -> Optional[str]:
    return _context["trace_id"].get()


def set_request_id(request_id: Optional[str]) -> None:
    _context["request_id"].set(request_id)


def get_request_id() -> Optional[str]:
    return _context["request_id"].get()


def set_session_id(session_id: Optional[str]) -> None:
    """Bind a chat session to the current context; pass None to unbind."""
    _context["session_id"].set(session_id)


def get_session_id() -> Optional[str]:
    return _context["session_id"].get()


def _new_id() -> str:
    return str(uuid.uuid4())


generate_request_id = _new_id
generate_trace_id = _new_id
