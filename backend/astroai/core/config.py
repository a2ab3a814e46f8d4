"""
Runtime configuration.

Settings are read from environment variables (a `.env` file at the repository
root is loaded first when present). Every value has a default that lets the
core run with no external providers at all: in-memory sessions, template
replies and the offline search corpus.
"""
import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field

from astroai.core.logging import get_logger

logger = get_logger(__name__)

ENV_PATH = Path(__file__).parent.parent.parent.parent / ".env"

EMBEDDING_PROVIDERS = {"none", "sentence-transformers", "openai"}
INDEX_BACKENDS = {"none", "memory", "faiss"}
DOCUMENT_STORE_BACKENDS = {"none", "memory", "supabase"}


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if not value:
        return default
    try:
        return int(value)
    except ValueError:
        logger.warning("config_invalid_int", key=name, value=value, default=default)
        return default


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if not value:
        return default
    try:
        return float(value)
    except ValueError:
        logger.warning("config_invalid_float", key=name, value=value, default=default)
        return default


def _env_choice(name: str, default: str, allowed: set) -> str:
    value = (os.getenv(name) or default).strip().lower()
    if value not in allowed:
        logger.warning("config_invalid_choice", key=name, value=value, allowed=sorted(allowed))
        return default
    return value


class Settings(BaseModel):
    """Process-wide settings for the AI core."""

    log_level: str = "INFO"
    log_json: bool = True
    service_name: str = "astroai_core"

    session_ttl_seconds: int = Field(30 * 60, gt=0)
    session_sweep_interval_seconds: int = Field(5 * 60, ge=0)
    max_message_length: int = Field(1000, gt=0)

    chat_rate_limit: int = Field(20, gt=0)
    chat_rate_window_seconds: int = Field(60 * 60, gt=0)
    recommend_rate_limit: int = Field(30, gt=0)
    recommend_rate_window_seconds: int = Field(60 * 60, gt=0)
    content_rate_limit: int = Field(10, gt=0)
    content_rate_window_seconds: int = Field(60 * 60, gt=0)
    stream_rate_limit: int = Field(30, gt=0)
    stream_rate_window_seconds: int = Field(60 * 60, gt=0)

    llm_enabled: bool = False
    llm_api_base: str = "https://api.openai.com/v1"
    llm_api_key: Optional[str] = None
    llm_chat_model: str = "gpt-4o-mini"
    llm_embedding_model: str = "text-embedding-3-small"
    llm_timeout_seconds: float = Field(30.0, gt=0)
    llm_max_retries: int = Field(2, ge=0)

    embedding_provider: str = "none"
    embedding_dim: int = Field(384, gt=0)
    vector_index_backend: str = "none"
    document_store_backend: str = "none"
    supabase_url: Optional[str] = None
    supabase_service_key: Optional[str] = None
    search_cache_ttl_seconds: int = Field(5 * 60, gt=0)

    otlp_endpoint: Optional[str] = None

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from the process environment."""
        if ENV_PATH.exists():
            load_dotenv(ENV_PATH)
            logger.info("env_loaded", env_path=str(ENV_PATH))

        supabase_url = os.getenv("SUPABASE_URL")
        supabase_key = os.getenv("SUPABASE_SERVICE_KEY") or os.getenv("SUPABASE_KEY")
        default_store = "supabase" if supabase_url and supabase_key else "none"

        return cls(
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_json=_env_bool("LOG_JSON", True),
            service_name=os.getenv("SERVICE_NAME", "astroai_core"),
            session_ttl_seconds=_env_int("SESSION_TTL_SECONDS", 30 * 60),
            session_sweep_interval_seconds=_env_int("SESSION_SWEEP_INTERVAL_SECONDS", 5 * 60),
            max_message_length=_env_int("MAX_MESSAGE_LENGTH", 1000),
            chat_rate_limit=_env_int("CHAT_RATE_LIMIT", 20),
            chat_rate_window_seconds=_env_int("CHAT_RATE_WINDOW_SECONDS", 60 * 60),
            recommend_rate_limit=_env_int("RECOMMEND_RATE_LIMIT", 30),
            recommend_rate_window_seconds=_env_int("RECOMMEND_RATE_WINDOW_SECONDS", 60 * 60),
            content_rate_limit=_env_int("CONTENT_RATE_LIMIT", 10),
            content_rate_window_seconds=_env_int("CONTENT_RATE_WINDOW_SECONDS", 60 * 60),
            stream_rate_limit=_env_int("STREAM_RATE_LIMIT", 30),
            stream_rate_window_seconds=_env_int("STREAM_RATE_WINDOW_SECONDS", 60 * 60),
            llm_enabled=_env_bool("LLM_ENABLED", False),
            llm_api_base=os.getenv("LLM_API_BASE", "https://api.openai.com/v1"),
            llm_api_key=os.getenv("LLM_API_KEY") or None,
            llm_chat_model=os.getenv("LLM_CHAT_MODEL", "gpt-4o-mini"),
            llm_embedding_model=os.getenv("LLM_EMBEDDING_MODEL", "text-embedding-3-small"),
            llm_timeout_seconds=_env_float("LLM_TIMEOUT_SECONDS", 30.0),
            llm_max_retries=_env_int("LLM_MAX_RETRIES", 2),
            embedding_provider=_env_choice("EMBEDDING_PROVIDER", "none", EMBEDDING_PROVIDERS),
            embedding_dim=_env_int("EMBEDDING_DIM", 384),
            vector_index_backend=_env_choice("VECTOR_INDEX_BACKEND", "none", INDEX_BACKENDS),
            document_store_backend=_env_choice(
                "DOCUMENT_STORE_BACKEND", default_store, DOCUMENT_STORE_BACKENDS
            ),
            supabase_url=supabase_url,
            supabase_service_key=supabase_key,
            search_cache_ttl_seconds=_env_int("SEARCH_CACHE_TTL_SECONDS", 5 * 60),
            otlp_endpoint=os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT") or None,
        )
