"""
Core application modules.
Contains configuration, logging, errors, observability and the in-process
resilience utilities (TTL cache, rate limiter, retry, performance monitor).
"""
from .cache import TTLCache
from .errors import AIError, ErrorKind, classify_error
from .rate_limit import RateLimiter
from .retry import retry_with_backoff

__all__ = ["TTLCache", "AIError", "ErrorKind", "classify_error", "RateLimiter", "retry_with_backoff"]
