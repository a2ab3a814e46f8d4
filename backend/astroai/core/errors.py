"""
Error taxonomy shared by every component of the AI core.

Every raised error carries `kind`, `message`, `retryable` and `metadata`.
Messages are safe to show to end users: credentials, stack traces and raw
upstream payloads never end up in them.
"""
import asyncio
from enum import Enum
from typing import Any, Dict, Optional

import httpx


class ErrorKind(str, Enum):
    """Error classes understood by callers and by the retry helper."""
    VALIDATION = "validation"
    RATE_LIMIT = "rate_limit"
    NOT_FOUND = "not_found"
    NETWORK = "network"
    AUTH = "auth"
    UNKNOWN = "unknown"


# Kinds that may succeed on a later attempt
RETRYABLE_KINDS = {ErrorKind.RATE_LIMIT, ErrorKind.NETWORK}


class AIError(Exception):
    """Base error for the AI core."""

    kind: ErrorKind = ErrorKind.UNKNOWN
    default_message = "An unexpected error occurred."

    def __init__(
        self,
        message: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
        retryable: Optional[bool] = None,
    ):
        self.message = message or self.default_message
        super().__init__(self.message)
        self.metadata: Dict[str, Any] = dict(metadata or {})
        self.retryable = (self.kind in RETRYABLE_KINDS) if retryable is None else retryable

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "message": self.message,
            "retryable": self.retryable,
            "metadata": self.metadata,
        }

    def __repr__(self) -> str:
        return f"{type(self).__name__}(kind={self.kind.value!r}, message={self.message!r})"


class ValidationError(AIError):
    kind = ErrorKind.VALIDATION
    default_message = "Invalid input."


class RateLimitError(AIError):
    kind = ErrorKind.RATE_LIMIT
    default_message = "Too many requests. Please try again later."


class NotFoundError(AIError):
    kind = ErrorKind.NOT_FOUND
    default_message = "The requested resource was not found."


class NetworkError(AIError):
    kind = ErrorKind.NETWORK
    default_message = "An upstream service is unreachable. Please try again."


class AuthError(AIError):
    kind = ErrorKind.AUTH
    default_message = "Upstream authentication failed."


class UnknownError(AIError):
    kind = ErrorKind.UNKNOWN


def classify_error(exc: BaseException) -> AIError:
    """
    Map an arbitrary exception onto the error taxonomy.

    AIError instances are returned unchanged. Upstream payloads are never
    copied into the resulting message or metadata; only the original
    exception type (and HTTP status, when there is one) is kept.

    Args:
        exc: Exception raised by an operation

    Returns:
        AIError describing the failure
    """
    if isinstance(exc, AIError):
        return exc

    error_type = type(exc).__name__

    if isinstance(exc, (asyncio.TimeoutError, httpx.TimeoutException)):
        return NetworkError(
            "The upstream service timed out. Please try again.",
            metadata={"error_type": error_type, "timeout": True},
        )

    if isinstance(exc, httpx.HTTPStatusError):
        status_code = exc.response.status_code
        if status_code == 429:
            retry_after = exc.response.headers.get("Retry-After")
            metadata: Dict[str, Any] = {"status_code": status_code}
            if retry_after:
                metadata["retry_after"] = retry_after
            return RateLimitError(
                "Upstream rate limit exceeded. Please try again later.",
                metadata=metadata,
            )
        if status_code in (401, 403):
            return AuthError(metadata={"status_code": status_code})
        if status_code >= 500:
            return NetworkError(metadata={"status_code": status_code, "error_type": error_type})
        return UnknownError(metadata={"status_code": status_code, "error_type": error_type})

    if isinstance(exc, (httpx.TransportError, ConnectionError)):
        return NetworkError(
            "Network connection failed. Please try again.",
            metadata={"error_type": error_type},
        )

    return UnknownError(metadata={"error_type": error_type})
