"""
Unit tests for the error taxonomy and classification.
"""
import asyncio

import httpx
import pytest

from astroai.core.circuit_breaker import CircuitBreakerOpenError
from astroai.core.errors import (
    AIError,
    AuthError,
    ErrorKind,
    NetworkError,
    NotFoundError,
    RateLimitError,
    UnknownError,
    ValidationError,
    classify_error,
)


def _status_error(status_code: int, headers=None) -> httpx.HTTPStatusError:
    request = httpx.Request("POST", "https://api.example.test/v1/chat/completions")
    response = httpx.Response(status_code, headers=headers, request=request, text='{"secret": "payload"}')
    return httpx.HTTPStatusError("error", request=request, response=response)


@pytest.mark.parametrize(
    "error_cls, kind, retryable",
    [
        (ValidationError, ErrorKind.VALIDATION, False),
        (RateLimitError, ErrorKind.RATE_LIMIT, True),
        (NotFoundError, ErrorKind.NOT_FOUND, False),
        (NetworkError, ErrorKind.NETWORK, True),
        (AuthError, ErrorKind.AUTH, False),
        (UnknownError, ErrorKind.UNKNOWN, False),
    ],
)
def test_kinds_and_retryability(error_cls, kind, retryable):
    error = error_cls()

    assert error.kind == kind
    assert error.retryable is retryable
    assert error.message


def test_to_dict_carries_all_fields():
    error = NotFoundError("Session not found.", metadata={"session_id": "abc"})

    assert error.to_dict() == {
        "kind": "not_found",
        "message": "Session not found.",
        "retryable": False,
        "metadata": {"session_id": "abc"},
    }


def test_retryable_override():
    assert UnknownError(retryable=True).retryable is True


def test_ai_errors_pass_through():
    error = ValidationError("bad")
    assert classify_error(error) is error


def test_circuit_open_is_retryable_network():
    error = classify_error(CircuitBreakerOpenError())
    assert error.kind == ErrorKind.NETWORK
    assert error.retryable


@pytest.mark.parametrize("exc", [asyncio.TimeoutError(), httpx.ReadTimeout("slow")])
def test_timeouts_are_network(exc):
    error = classify_error(exc)

    assert isinstance(error, NetworkError)
    assert error.retryable
    assert error.metadata["timeout"] is True


def test_connection_errors_are_network():
    assert classify_error(ConnectionError("refused")).kind == ErrorKind.NETWORK
    request = httpx.Request("GET", "https://example.test")
    assert classify_error(httpx.ConnectError("refused", request=request)).kind == ErrorKind.NETWORK


def test_http_429_is_rate_limit_with_retry_after():
    error = classify_error(_status_error(429, headers={"Retry-After": "12"}))

    assert isinstance(error, RateLimitError)
    assert error.retryable
    assert error.metadata["retry_after"] == "12"


@pytest.mark.parametrize("status_code", [401, 403])
def test_http_auth_failures(status_code):
    error = classify_error(_status_error(status_code))

    assert isinstance(error, AuthError)
    assert not error.retryable


def test_http_5xx_is_network():
    assert classify_error(_status_error(503)).kind == ErrorKind.NETWORK


def test_upstream_payload_is_not_copied():
    error = classify_error(_status_error(400))

    assert error.kind == ErrorKind.UNKNOWN
    assert "secret" not in error.message
    assert "secret" not in str(error.metadata)


def test_unknown_exception_keeps_only_type_name():
    error = classify_error(RuntimeError("password=hunter2"))

    assert isinstance(error, AIError)
    assert error.kind == ErrorKind.UNKNOWN
    assert error.metadata == {"error_type": "RuntimeError"}
    assert "hunter2" not in error.message
