"""
Unit tests for the LLM HTTP client.

The upstream API is replaced with httpx.MockTransport, so no network access
is needed.
"""
import asyncio
import json

import httpx
import pytest

from astroai.core.circuit_breaker import CircuitBreaker, CircuitBreakerOpenError
from astroai.core.errors import AuthError, NetworkError, RateLimitError, UnknownError
from astroai.models.chat import ChatMessage, UserProfile
from astroai.services.ai.llm_client import (
    BASE_SYSTEM_PROMPT,
    LLMClient,
    build_system_prompt,
    parse_stream_line,
)
from astroai.services.ai.responses import TEMPLATE_MODEL, ResponseSynthesizer


def _client(handler, api_key="sk-test", **kwargs):
    return LLMClient(
        api_base="https://llm.example.com/v1/",
        api_key=api_key,
        transport=httpx.MockTransport(handler),
        **kwargs,
    )


def test_system_prompt_without_profile():
    assert build_system_prompt(None) == BASE_SYSTEM_PROMPT


def test_system_prompt_includes_profile_context():
    profile = UserProfile(industry="finance", company_size="enterprise", challenges=["security"], tech_stack=["AWS"])

    prompt = build_system_prompt(profile)

    assert prompt.startswith(BASE_SYSTEM_PROMPT)
    assert "- Company Size: enterprise" in prompt
    assert "- Industry: finance" in prompt
    assert "- Current Challenges: security" in prompt
    assert "- Technology Stack: AWS" in prompt
    assert "Interests" not in prompt


def test_system_prompt_includes_session_context():
    prompt = build_system_prompt(None, {"page": "/services/cloud", "user_intent": "sales"})

    assert prompt.startswith(BASE_SYSTEM_PROMPT)
    assert "SESSION CONTEXT:" in prompt
    assert "- Current Page: /services/cloud" in prompt
    assert "- User Intent: sales" in prompt
    assert build_system_prompt(None, {}) == BASE_SYSTEM_PROMPT


@pytest.mark.asyncio
async def test_complete_sends_conversation_and_returns_text():
    requests = []

    def handler(request):
        requests.append(request)
        return httpx.Response(
            200,
            json={
                "choices": [{"message": {"role": "assistant", "content": "  We can help.  "}}],
                "usage": {"prompt_tokens": 50, "completion_tokens": 5},
            },
        )

    client = _client(handler, max_tokens=123)
    reply = await client.complete([ChatMessage(role="user", content="Hello")], UserProfile())

    assert reply == "We can help."
    request = requests[0]
    assert str(request.url) == "https://llm.example.com/v1/chat/completions"
    assert request.headers["Authorization"] == "Bearer sk-test"
    body = json.loads(request.content)
    assert body["model"] == "gpt-4o-mini"
    assert body["max_tokens"] == 123
    assert body["messages"][0]["role"] == "system"
    assert body["messages"][1] == {"role": "user", "content": "Hello"}


@pytest.mark.asyncio
async def test_missing_api_key_is_auth_error():
    def handler(request):
        raise AssertionError("no request expected")

    client = _client(handler, api_key=None)

    assert not client.configured
    with pytest.raises(AuthError) as exc_info:
        await client.complete([ChatMessage(role="user", content="Hello")])
    assert exc_info.value.metadata["reason"] == "missing_api_key"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "status, error_class",
    [(429, RateLimitError), (401, AuthError), (503, NetworkError), (400, UnknownError)],
)
async def test_status_codes_are_classified(status, error_class):
    client = _client(lambda request: httpx.Response(status, json={"error": {"message": "secret detail"}}))

    with pytest.raises(error_class) as exc_info:
        await client.complete([ChatMessage(role="user", content="Hello")])

    assert "secret detail" not in str(exc_info.value)
    assert exc_info.value.metadata["status_code"] == status


@pytest.mark.asyncio
async def test_connection_failure_is_network_error():
    def handler(request):
        raise httpx.ConnectError("connection refused")

    with pytest.raises(NetworkError):
        await _client(handler).complete([ChatMessage(role="user", content="Hello")])


@pytest.mark.asyncio
async def test_empty_completion_is_unknown_error():
    client = _client(lambda request: httpx.Response(200, json={"choices": [{"message": {"content": "  "}}]}))

    with pytest.raises(UnknownError):
        await client.complete([ChatMessage(role="user", content="Hello")])


@pytest.mark.asyncio
async def test_circuit_opens_after_repeated_failures():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(500)

    breaker = CircuitBreaker(name="llm-test", failure_threshold=0.5, min_requests_for_threshold=2)
    client = _client(handler, circuit_breaker=breaker)
    messages = [ChatMessage(role="user", content="Hello")]

    for _ in range(2):
        with pytest.raises(NetworkError):
            await client.complete(messages)

    with pytest.raises(CircuitBreakerOpenError):
        await client.complete(messages)
    assert len(calls) == 2


@pytest.mark.asyncio
async def test_timed_out_half_open_call_does_not_wedge_the_circuit(clock):
    upstream = {"status": 500, "hang": False}

    async def handler(request):
        if upstream["hang"]:
            await asyncio.sleep(10)
        if upstream["status"] != 200:
            return httpx.Response(upstream["status"])
        return httpx.Response(200, json={"choices": [{"message": {"content": "Back online."}}]})

    breaker = CircuitBreaker(name="llm-test", open_duration_seconds=30, min_requests_for_threshold=2, clock=clock)
    client = _client(handler, circuit_breaker=breaker)
    synthesizer = ResponseSynthesizer(provider=client, llm_enabled=True, timeout_seconds=0.05, max_retries=0)
    messages = [ChatMessage(role="user", content="Hello")]

    for _ in range(2):
        with pytest.raises(NetworkError):
            await client.complete(messages)

    clock.advance(30)
    upstream["hang"] = True
    timed_out = await synthesizer.synthesize(messages, "Hello", UserProfile())
    assert timed_out.model == TEMPLATE_MODEL
    assert timed_out.fallback_reason == "timeout"

    clock.advance(30)
    upstream.update(status=200, hang=False)
    recovered = await synthesizer.synthesize(messages, "Hello", UserProfile())
    assert recovered.content == "Back online."
    assert breaker.get_metrics()["state"] == "closed"


@pytest.mark.asyncio
async def test_embed_many_preserves_input_order():
    def handler(request):
        body = json.loads(request.content)
        assert body["input"] == ["first", "second"]
        return httpx.Response(
            200,
            json={
                "data": [
                    {"index": 1, "embedding": [0.0, 1.0]},
                    {"index": 0, "embedding": [1.0, 0.0]},
                ],
                "usage": {"prompt_tokens": 4},
            },
        )

    vectors = await _client(handler).embed_many(["first", "second"])

    assert vectors == [[1.0, 0.0], [0.0, 1.0]]


@pytest.mark.asyncio
async def test_embed_count_mismatch():
    client = _client(lambda request: httpx.Response(200, json={"data": []}))

    with pytest.raises(UnknownError):
        await client.embed("text")


@pytest.mark.asyncio
async def test_embed_many_empty_input_skips_request():
    def handler(request):
        raise AssertionError("no request expected")

    assert await _client(handler).embed_many([]) == []


def _sse(*lines):
    return ("\n\n".join(lines) + "\n\n").encode()


def _delta(text):
    return "data: " + json.dumps({"choices": [{"delta": {"content": text}}]})


@pytest.mark.parametrize(
    "line, expected",
    [
        (_delta("Hello"), "Hello"),
        ('data: {"choices": [{"delta": {"role": "assistant"}}]}', None),
        ("data: [DONE]", None),
        ("data: not-json", None),
        (": keep-alive", None),
        ("", None),
    ],
)
def test_parse_stream_line(line, expected):
    assert parse_stream_line(line) == expected


@pytest.mark.asyncio
async def test_complete_prompt_uses_given_system_prompt():
    requests = []

    def handler(request):
        requests.append(json.loads(request.content))
        return httpx.Response(200, json={"choices": [{"message": {"content": "# Draft"}}]})

    text = await _client(handler).complete_prompt("Write docs.", "Topic: Kubernetes", max_tokens=900)

    assert text == "# Draft"
    assert requests[0]["messages"] == [
        {"role": "system", "content": "Write docs."},
        {"role": "user", "content": "Topic: Kubernetes"},
    ]
    assert requests[0]["max_tokens"] == 900


@pytest.mark.asyncio
async def test_stream_complete_yields_deltas_until_done():
    requests = []

    def handler(request):
        requests.append(json.loads(request.content))
        body = _sse(_delta("We "), _delta("can help."), "data: [DONE]", _delta("ignored"))
        return httpx.Response(200, content=body, headers={"Content-Type": "text/event-stream"})

    client = _client(handler)
    chunks = [
        chunk
        async for chunk in client.stream_complete(
            [ChatMessage(role="user", content="Hello")], UserProfile(), {"page": "/pricing"}
        )
    ]

    assert chunks == ["We ", "can help."]
    assert requests[0]["stream"] is True
    assert "- Current Page: /pricing" in requests[0]["messages"][0]["content"]
    assert client.circuit_breaker.get_metrics()["recent_failures"] == 0


@pytest.mark.asyncio
async def test_stream_without_content_is_unknown_error():
    client = _client(lambda request: httpx.Response(200, content=_sse("data: [DONE]")))

    with pytest.raises(UnknownError):
        async for _ in client.stream_complete([ChatMessage(role="user", content="Hello")]):
            pass
    assert client.circuit_breaker.get_metrics()["recent_failures"] == 1


@pytest.mark.asyncio
async def test_stream_status_is_classified():
    client = _client(lambda request: httpx.Response(429, headers={"Retry-After": "7"}))

    with pytest.raises(RateLimitError):
        async for _ in client.stream_complete([ChatMessage(role="user", content="Hello")]):
            pass


@pytest.mark.asyncio
async def test_stream_missing_api_key_is_auth_error():
    def handler(request):
        raise AssertionError("no request expected")

    with pytest.raises(AuthError):
        async for _ in _client(handler, api_key=None).stream_complete([ChatMessage(role="user", content="Hello")]):
            pass


@pytest.mark.asyncio
async def test_closing_stream_early_is_not_a_failure():
    client = _client(lambda request: httpx.Response(200, content=_sse(_delta("one"), _delta("two"))))

    stream = client.stream_complete([ChatMessage(role="user", content="Hello")])
    assert await stream.__anext__() == "one"
    await stream.aclose()

    metrics = client.circuit_breaker.get_metrics()
    assert metrics["recent_requests"] == 1
    assert metrics["recent_failures"] == 0
