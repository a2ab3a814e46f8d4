"""
Prometheus metrics collection module.

Metrics Categories:
- RED Metrics: Rate, Errors, Duration for the HTTP surface
- Chat Metrics: sessions, messages by intent, rate-limit rejections
- Recommendation Metrics: requests and result counts
- Content Metrics: generated pieces by type and producer, streaming chat delivery mode
- Vector Search Metrics: requests by provider mode and result source, degradations
- LLM Metrics: provider requests, errors, latency, fallbacks
- Cache Metrics: hits/misses per in-process cache

All metrics follow Prometheus naming conventions:
- Counters: _total suffix
- Histograms: _seconds suffix for duration
- Gauges: No special suffix
"""
from prometheus_client import (
    Counter,
    Histogram,
    Gauge,
    generate_latest,
    REGISTRY,
    CONTENT_TYPE_LATEST,
)

from astroai.core.logging import get_logger

logger = get_logger(__name__)

registry = REGISTRY

# ============================================================================
# RED METRICS - Rate, Errors, Duration
# ============================================================================

http_requests_total = Counter(
    "http_requests_total",
    "Total number of HTTP requests",
    ["method", "endpoint", "status"],
    registry=registry,
)

http_errors_total = Counter(
    "http_errors_total",
    "Total number of HTTP errors",
    ["method", "endpoint", "status_code"],
    registry=registry,
)

http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency in seconds",
    ["method", "endpoint"],
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
    registry=registry,
)

# ============================================================================
# CHAT METRICS
# ============================================================================

chat_sessions_total = Counter(
    "chat_sessions_total",
    "Chat session lifecycle events",
    ["event"],  # created, closed, expired
    registry=registry,
)

chat_messages_total = Counter(
    "chat_messages_total",
    "Chat turns handled, by classified intent",
    ["intent"],
    registry=registry,
)

chat_active_sessions = Gauge(
    "chat_active_sessions",
    "Number of live (unexpired) chat sessions held by the session store",
    registry=registry,
)

chat_response_fallback_total = Counter(
    "chat_response_fallback_total",
    "Replies served from canned templates after a provider failure",
    ["reason"],
    registry=registry,
)

rate_limit_rejections_total = Counter(
    "rate_limit_rejections_total",
    "Requests rejected by an in-process rate limiter",
    ["limiter", "reason"],  # reason: limit, blocked, permanent
    registry=registry,
)

# ============================================================================
# RECOMMENDATION METRICS
# ============================================================================

recommendation_requests_total = Counter(
    "recommendation_requests_total",
    "Total number of recommendation requests",
    registry=registry,
)

recommendation_results_total = Counter(
    "recommendation_results_total",
    "Recommended services, by service slug and priority",
    ["service", "priority"],
    registry=registry,
)

# ============================================================================
# CONTENT GENERATION & STREAMING METRICS
# ============================================================================

content_generations_total = Counter(
    "content_generations_total",
    "Generated content pieces, by content type and producer",
    ["type", "source"],  # source: llm, template
    registry=registry,
)

chat_stream_requests_total = Counter(
    "chat_stream_requests_total",
    "Streaming chat requests, by how the reply was delivered",
    ["mode"],  # stream, fallback
    registry=registry,
)

# ============================================================================
# VECTOR SEARCH METRICS
# ============================================================================

vector_search_requests_total = Counter(
    "vector_search_requests_total",
    "Vector search requests by facade mode and result source",
    ["mode", "source"],  # source: live, fallback, cache
    registry=registry,
)

vector_degradation_total = Counter(
    "vector_degradation_total",
    "Operations served with reduced fidelity because a backend was unavailable or failed",
    ["operation", "backend"],
    registry=registry,
)

# ============================================================================
# LLM METRICS
# ============================================================================

llm_requests_total = Counter(
    "llm_requests_total",
    "Requests sent to the completion/embedding provider",
    ["operation", "model"],
    registry=registry,
)

llm_errors_total = Counter(
    "llm_errors_total",
    "Provider request failures by error type",
    ["operation", "error_type"],
    registry=registry,
)

llm_latency_seconds = Histogram(
    "llm_latency_seconds",
    "Provider request latency in seconds",
    ["operation"],
    buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0],
    registry=registry,
)

llm_tokens_total = Counter(
    "llm_tokens_total",
    "Tokens consumed by provider calls",
    ["operation", "direction"],  # direction: input, output
    registry=registry,
)

# ============================================================================
# CACHE / PERFORMANCE METRICS
# ============================================================================

cache_hits_total = Counter(
    "cache_hits_total",
    "Total number of cache hits",
    ["cache_name"],
    registry=registry,
)

cache_misses_total = Counter(
    "cache_misses_total",
    "Total number of cache misses",
    ["cache_name"],
    registry=registry,
)

operation_duration_seconds = Histogram(
    "operation_duration_seconds",
    "Duration of operations measured by the performance monitor",
    ["operation"],
    buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 30.0],
    registry=registry,
)


def normalize_endpoint(path: str) -> str:
    """
    Collapse path parameters so that metrics cardinality stays bounded.

    /chat/sessions/abc123/messages -> /chat/sessions/{id}/messages
    /search/content/svc-1/similar -> /search/content/{id}/similar
    """
    parts = path.rstrip("/").split("/")
    normalized = []
    for i, part in enumerate(parts):
        if i > 0 and parts[i - 1] in ("sessions", "content"):
            normalized.append("{id}")
        else:
            normalized.append(part)
    return "/".join(normalized) or "/"


def record_http_request(
    method: str,
    endpoint: str,
    status_code: int,
    duration_seconds: float,
) -> None:
    """Record an HTTP request (rate, errors and duration)."""
    endpoint = normalize_endpoint(endpoint)
    http_requests_total.labels(method=method, endpoint=endpoint, status=str(status_code)).inc()
    http_request_duration_seconds.labels(method=method, endpoint=endpoint).observe(duration_seconds)
    if status_code >= 400:
        http_errors_total.labels(
            method=method, endpoint=endpoint, status_code=str(status_code)
        ).inc()


def record_session_event(event: str, count: int = 1) -> None:
    chat_sessions_total.labels(event=event).inc(count)


def record_chat_message(intent: str) -> None:
    chat_messages_total.labels(intent=intent).inc()


def update_active_sessions(count: int) -> None:
    chat_active_sessions.set(count)


def record_response_fallback(reason: str) -> None:
    chat_response_fallback_total.labels(reason=reason).inc()


def record_rate_limit_rejection(limiter: str, reason: str) -> None:
    rate_limit_rejections_total.labels(limiter=limiter, reason=reason).inc()


def record_recommendation(results: list) -> None:
    """Record one recommendation request and the services it returned."""
    recommendation_requests_total.inc()
    for item in results:
        recommendation_results_total.labels(service=item.id, priority=item.priority).inc()


def record_content_generation(content_type: str, source: str) -> None:
    content_generations_total.labels(type=content_type, source=source).inc()


def record_chat_stream(mode: str) -> None:
    chat_stream_requests_total.labels(mode=mode).inc()


def record_vector_search(mode: str, source: str) -> None:
    vector_search_requests_total.labels(mode=mode, source=source).inc()


def record_vector_degradation(operation: str, backend: str) -> None:
    vector_degradation_total.labels(operation=operation, backend=backend).inc()


def record_llm_request(operation: str, model: str, duration_seconds: float) -> None:
    llm_requests_total.labels(operation=operation, model=model).inc()
    llm_latency_seconds.labels(operation=operation).observe(duration_seconds)


def record_llm_error(operation: str, error_type: str) -> None:
    llm_errors_total.labels(operation=operation, error_type=error_type).inc()


def record_llm_tokens(operation: str, input_tokens: int, output_tokens: int) -> None:
    if input_tokens:
        llm_tokens_total.labels(operation=operation, direction="input").inc(input_tokens)
    if output_tokens:
        llm_tokens_total.labels(operation=operation, direction="output").inc(output_tokens)


def record_cache_hit(cache_name: str) -> None:
    cache_hits_total.labels(cache_name=cache_name).inc()


def record_cache_miss(cache_name: str) -> None:
    cache_misses_total.labels(cache_name=cache_name).inc()


def record_operation_duration(operation: str, duration_seconds: float) -> None:
    operation_duration_seconds.labels(operation=operation).observe(duration_seconds)


def get_metrics() -> bytes:
    """Generate Prometheus metrics in text format."""
    return generate_latest(registry)


def get_metrics_content_type() -> str:
    """Content type for the Prometheus exposition format."""
    return CONTENT_TYPE_LATEST
