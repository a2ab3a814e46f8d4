"""
Unit tests for the chat streamer and server-sent event framing.
"""
import json

import httpx
import pytest

from astroai.core.errors import NetworkError
from astroai.models.chat import ChatMessage, UserProfile
from astroai.services.ai.llm_client import LLMClient
from astroai.services.ai.responses import PRICING_BY_COMPANY_SIZE
from astroai.services.chat.streaming import ChatStreamer, sse_event, sse_events


class FakeStreamProvider:
    chat_model = "fake-stream"

    def __init__(self, chunks=(), error=None, fail_after=None):
        self.chunks = list(chunks)
        self.error = error
        self.fail_after = fail_after
        self.calls = []
        self.closed = False

    async def stream_complete(self, messages, profile=None, session_context=None):
        self.calls.append((messages, profile, session_context))
        try:
            if self.error is not None and self.fail_after is None:
                raise self.error
            for i, chunk in enumerate(self.chunks):
                if self.fail_after == i:
                    raise self.error
                yield chunk
        finally:
            self.closed = True


async def _collect(iterator):
    return [item async for item in iterator]


def _events(frames):
    parsed = []
    for frame in frames:
        event_line, data_line = frame.strip().split("\n")
        parsed.append((event_line[len("event: "):], json.loads(data_line[len("data: "):])))
    return parsed


def test_sse_event_format():
    assert sse_event("token", {"content": "Hi"}) == 'event: token\ndata: {"content": "Hi"}\n\n'


@pytest.mark.asyncio
async def test_template_reply_when_provider_disabled():
    provider = FakeStreamProvider(["ignored"])
    streamer = ChatStreamer(provider=provider, llm_enabled=False)

    stream = await streamer.open_stream("What's your pricing?", UserProfile(company_size="enterprise"))

    assert stream.streaming is False
    assert stream.intent == "pricing"
    assert stream.fallback.startswith(PRICING_BY_COMPANY_SIZE["enterprise"])
    assert stream.fallback_reason is None
    assert provider.calls == []


@pytest.mark.asyncio
async def test_streams_provider_chunks():
    provider = FakeStreamProvider(["We ", "can ", "help."])
    streamer = ChatStreamer(provider=provider, llm_enabled=True)
    history = [ChatMessage(role="assistant", content="Welcome!")]

    stream = await streamer.open_stream("hello", UserProfile(), {"page": "/about"}, history)

    assert stream.streaming is True
    assert await _collect(stream.tokens) == ["We ", "can ", "help."]
    messages, _, session_context = provider.calls[0]
    assert [m.content for m in messages] == ["Welcome!", "hello"]
    assert session_context == {"page": "/about"}
    assert provider.closed is True


@pytest.mark.asyncio
async def test_falls_back_when_stream_cannot_start():
    provider = FakeStreamProvider(error=NetworkError())
    streamer = ChatStreamer(provider=provider, llm_enabled=True)

    stream = await streamer.open_stream("What's your pricing?", UserProfile(company_size="startup"))

    assert stream.streaming is False
    assert stream.fallback_reason == "network"
    assert PRICING_BY_COMPANY_SIZE["startup"] in stream.fallback
    assert provider.closed is True


@pytest.mark.asyncio
async def test_empty_stream_falls_back():
    streamer = ChatStreamer(provider=FakeStreamProvider([]), llm_enabled=True)

    stream = await streamer.open_stream("hello", UserProfile())

    assert stream.streaming is False
    assert stream.fallback_reason == "empty_stream"


@pytest.mark.asyncio
async def test_sse_events_end_with_complete():
    provider = FakeStreamProvider(["Hello ", "there."])
    stream = await ChatStreamer(provider=provider, llm_enabled=True).open_stream("hello", UserProfile())

    events = _events(await _collect(sse_events(stream.tokens)))

    assert events == [
        ("token", {"content": "Hello "}),
        ("token", {"content": "there."}),
        ("complete", {"content": "Hello there."}),
    ]


@pytest.mark.asyncio
async def test_sse_events_report_mid_stream_failure():
    provider = FakeStreamProvider(["Hello ", "there."], error=NetworkError(), fail_after=1)
    stream = await ChatStreamer(provider=provider, llm_enabled=True).open_stream("hello", UserProfile())

    events = _events(await _collect(sse_events(stream.tokens)))

    assert events[0] == ("token", {"content": "Hello "})
    assert events[-1][0] == "error"
    assert events[-1][1]["kind"] == "network"
    assert "complete" not in [name for name, _ in events]


@pytest.mark.asyncio
async def test_streams_from_llm_client_over_http():
    def handler(request):
        body = "".join(
            "data: " + json.dumps({"choices": [{"delta": {"content": text}}]}) + "\n\n"
            for text in ["Cloud ", "help."]
        ) + "data: [DONE]\n\n"
        return httpx.Response(200, content=body.encode(), headers={"Content-Type": "text/event-stream"})

    client = LLMClient(api_base="https://llm.example.com/v1", api_key="sk-test", transport=httpx.MockTransport(handler))
    streamer = ChatStreamer(provider=client, llm_enabled=True)

    stream = await streamer.open_stream("cloud", UserProfile())

    assert await _collect(stream.tokens) == ["Cloud ", "help."]
    assert client.circuit_breaker.get_metrics()["state"] == "closed"


@pytest.mark.asyncio
async def test_llm_client_failure_falls_back():
    client = LLMClient(
        api_base="https://llm.example.com/v1",
        api_key="sk-test",
        transport=httpx.MockTransport(lambda request: httpx.Response(503)),
    )
    streamer = ChatStreamer(provider=client, llm_enabled=True)

    stream = await streamer.open_stream("cloud", UserProfile())

    assert stream.streaming is False
    assert stream.fallback_reason == "network"
