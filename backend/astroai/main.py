from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from astroai.core.config import Settings
from astroai.core.errors import AIError, ErrorKind
from astroai.core.logging import configure_logging, get_logger, get_trace_id
from astroai.core.middleware import TraceIDMiddleware
from astroai.core.tracing import (
    StatusCode,
    configure_tracing,
    get_trace_id_from_context,
    instrument_fastapi,
    record_exception,
    set_span_status,
    shutdown_tracing,
)
from astroai.dependencies import build_container, container_initialized, get_container, set_container
from astroai.routes import chat, content, health, metrics, recommend, search

settings = Settings.from_env()

# Structured logging: JSON in production, console output in development
configure_logging(log_level=settings.log_level, service_name=settings.service_name, json_output=settings.log_json)

logger = get_logger(__name__)

configure_tracing(service_name=settings.service_name, otlp_endpoint=settings.otlp_endpoint)

app = FastAPI(
    title="AstroAI Core API",
    description="Chat sessions, streaming replies, service recommendations, content generation and semantic search",
    version="1.0.0"
)

# CORS for local dev; restrict in production
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Must be added after CORS
app.add_middleware(TraceIDMiddleware)

instrument_fastapi(app)

ERROR_STATUS = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.RATE_LIMIT: 429,
    ErrorKind.NETWORK: 503,
    ErrorKind.AUTH: 502,
    ErrorKind.UNKNOWN: 500,
}


@app.on_event("startup")
async def startup_event():
    """Build and start the service container."""
    logger.info("app_startup_started")
    if not container_initialized():
        set_container(build_container(settings))
    await get_container().start()
    logger.info("app_startup_completed", search_mode=get_container().search.mode.value)


@app.on_event("shutdown")
async def shutdown_event():
    """Cleanup resources on application shutdown."""
    logger.info("app_shutdown_started")
    if container_initialized():
        await get_container().shutdown()
    shutdown_tracing()
    logger.info("app_shutdown_completed")


def _error_response(status_code: int, code: str, message: str, retryable: bool) -> JSONResponse:
    trace_id = get_trace_id() or get_trace_id_from_context()
    response = JSONResponse(
        status_code=status_code,
        content={
            "error": {"code": code, "message": message, "retryable": retryable},
            "trace_id": trace_id,
        },
    )
    if trace_id:
        response.headers["X-Trace-ID"] = trace_id
    return response


@app.exception_handler(AIError)
async def ai_error_handler(request: Request, exc: AIError):
    """Map the error taxonomy onto HTTP statuses."""
    status_code = ERROR_STATUS[exc.kind]
    set_span_status(StatusCode.ERROR if status_code >= 500 else StatusCode.OK, exc.message)

    log = logger.error if status_code >= 500 else logger.warning
    log(
        "ai_error",
        kind=exc.kind.value,
        status_code=status_code,
        retryable=exc.retryable,
        path=request.url.path,
        method=request.method,
    )
    response = _error_response(status_code, exc.kind.value, exc.message, exc.retryable)
    retry_after = exc.metadata.get("retry_after")
    if exc.kind == ErrorKind.RATE_LIMIT and retry_after is not None:
        response.headers["Retry-After"] = str(max(1, int(float(retry_after))))
    return response


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    logger.warning("request_validation_failed", path=request.url.path, errors=len(exc.errors()))
    return _error_response(400, ErrorKind.VALIDATION.value, "Invalid request.", False)


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    logger.warning(
        "http_exception",
        status_code=exc.status_code,
        path=request.url.path,
        method=request.method,
    )
    code = ErrorKind.NOT_FOUND.value if exc.status_code == 404 else "http_error"
    return _error_response(exc.status_code, code, str(exc.detail), False)


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Handle general exceptions."""
    record_exception(exc)
    set_span_status(StatusCode.ERROR, type(exc).__name__)

    logger.error(
        "unhandled_exception",
        error_type=type(exc).__name__,
        path=request.url.path,
        method=request.method,
        exc_info=True,
    )
    return _error_response(500, ErrorKind.UNKNOWN.value, AIError.default_message, False)


app.include_router(health.router, prefix="/health", tags=["Health"])
app.include_router(chat.router, prefix="/chat", tags=["Chat"])
app.include_router(recommend.router, prefix="/recommend", tags=["Recommendations"])
app.include_router(content.router, prefix="/content", tags=["Content"])
app.include_router(search.router, prefix="/search", tags=["Search"])
app.include_router(metrics.router, prefix="/metrics", tags=["Metrics"])


@app.get("/")
async def root():
    return {"status": "ok", "service": settings.service_name}
