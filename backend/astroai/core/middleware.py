"""
Request context middleware.

Resolves the trace ID for each inbound request, binds it (and a fresh request
ID) to the logging context, echoes both in the response headers and records
the RED metrics for the call.
"""
import time
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from astroai.core.logging import (
    generate_request_id,
    generate_trace_id,
    get_logger,
    set_request_id,
    set_session_id,
    set_trace_id,
)
from astroai.core.metrics import record_http_request
from astroai.core.tracing import get_trace_id_from_context, record_exception, set_span_attribute

logger = get_logger(__name__)

TRACE_HEADERS = ("X-Trace-ID", "X-Request-ID")


def _format_otel_trace_id(otel_trace_id: str) -> str:
    """32-char hex -> UUID layout, so OTel IDs look like generated ones."""
    if len(otel_trace_id) != 32:
        return otel_trace_id
    parts = (otel_trace_id[:8], otel_trace_id[8:12], otel_trace_id[12:16], otel_trace_id[16:20], otel_trace_id[20:])
    return "-".join(parts)


def resolve_trace_id(request: Request) -> str:
    """X-Trace-ID, then X-Request-ID, then the active OTel span, then a new UUID."""
    for header in TRACE_HEADERS:
        value = request.headers.get(header)
        if value:
            return value
    otel_trace_id = get_trace_id_from_context()
    if otel_trace_id:
        return _format_otel_trace_id(otel_trace_id)
    return generate_trace_id()


class TraceIDMiddleware(BaseHTTPMiddleware):

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        trace_id = resolve_trace_id(request)
        request_id = generate_request_id()
        set_trace_id(trace_id)
        set_request_id(request_id)
        request.state.trace_id = trace_id

        started = time.time()
        logger.info("request_started", method=request.method, path=request.url.path)

        try:
            response = await call_next(request)
        except Exception as exc:
            record_exception(exc)
            self._finish(request, 500, started, failed=exc)
            raise
        else:
            self._finish(request, response.status_code, started)
            response.headers["X-Trace-ID"] = trace_id
            response.headers["X-Request-ID"] = request_id
            return response
        finally:
            set_session_id(None)
            set_trace_id(None)
            set_request_id(None)

    @staticmethod
    def _finish(request: Request, status_code: int, started: float, failed: Exception = None) -> None:
        elapsed = time.time() - started
        set_span_attribute("http.status_code", status_code)
        record_http_request(
            method=request.method,
            endpoint=request.url.path,
            status_code=status_code,
            duration_seconds=elapsed,
        )
        fields = dict(
            method=request.method,
            path=request.url.path,
            status_code=status_code,
            latency_ms=int(elapsed * 1000),
        )
        if failed is None:
            logger.info("request_completed", **fields)
        else:
            logger.error("request_failed", error_type=type(failed).__name__, exc_info=True, **fields)
