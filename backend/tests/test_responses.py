"""
Unit tests for template composition and the response synthesizer.
"""
import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from astroai.core.errors import AuthError, NetworkError
from astroai.models.chat import ChatMessage, UserProfile
from astroai.services.ai.responses import (
    FALLBACK_GREETING,
    GREETING_TEMPLATES,
    PRICING_BY_COMPANY_SIZE,
    PORTFOLIO_RESPONSE,
    TEMPLATE_MODEL,
    TIMELINE_RESPONSE,
    ResponseSynthesizer,
    compose_reply,
    estimate_tokens,
)


def _provider(complete):
    provider = MagicMock()
    provider.chat_model = "gpt-test"
    provider.complete = complete
    return provider


def test_estimate_tokens_rounds_up():
    assert estimate_tokens("") == 0
    assert estimate_tokens("abcd") == 1
    assert estimate_tokens("abcde") == 2


@pytest.mark.parametrize("size", ["startup", "small", "medium", "enterprise"])
def test_pricing_follows_company_size(size):
    reply = compose_reply("pricing", UserProfile(company_size=size), "how much?")

    assert reply.startswith(PRICING_BY_COMPANY_SIZE[size])


def test_startup_pricing_bucket():
    reply = compose_reply("pricing", UserProfile(company_size="startup"), "pricing?")

    assert "$5,000" in reply


def test_service_inquiry_mentions_topic_and_size_note():
    reply = compose_reply("service_inquiry", UserProfile(company_size="enterprise"), "We need cloud help")

    assert "Cloud Architecture" in reply
    assert "enterprise clients" in reply


def test_fixed_templates():
    profile = UserProfile()

    assert compose_reply("timeline", profile, "") == TIMELINE_RESPONSE
    assert compose_reply("portfolio", profile, "") == PORTFOLIO_RESPONSE


def test_variant_choice_is_deterministic():
    profile = UserProfile(industry="finance", company_size="small")

    first = compose_reply("greeting", profile, "hi")
    assert first in GREETING_TEMPLATES
    assert all(compose_reply("greeting", profile, "hi") == first for _ in range(5))


def test_unknown_intent_uses_general_template():
    assert "learning more about our services" in compose_reply("nonsense", UserProfile(), "")


class TestWelcomeMessage:

    def test_welcome_is_assistant_template(self):
        message = ResponseSynthesizer().welcome_message(UserProfile())

        assert message.role == "assistant"
        assert message.content in GREETING_TEMPLATES
        assert message.metadata.context == "welcome"
        assert message.metadata.model == TEMPLATE_MODEL
        assert message.metadata.tokens == estimate_tokens(message.content)

    def test_welcome_never_raises(self):
        with patch("astroai.services.ai.responses.compose_greeting", side_effect=RuntimeError("boom")):
            message = ResponseSynthesizer().welcome_message(UserProfile())

        assert message.content == FALLBACK_GREETING


class TestSynthesize:

    @pytest.mark.asyncio
    async def test_template_when_provider_disabled(self):
        complete = AsyncMock(return_value="LLM text")
        synthesizer = ResponseSynthesizer(provider=_provider(complete), llm_enabled=False)

        result = await synthesizer.synthesize([], "What's your pricing?", UserProfile(company_size="startup"))

        assert result.intent == "pricing"
        assert result.model == TEMPLATE_MODEL
        assert "$5,000" in result.content
        complete.assert_not_called()

    @pytest.mark.asyncio
    async def test_provider_reply_when_enabled(self):
        complete = AsyncMock(return_value="LLM text")
        synthesizer = ResponseSynthesizer(provider=_provider(complete), llm_enabled=True)
        messages = [ChatMessage(role="user", content="hello")]

        result = await synthesizer.synthesize(messages, "hello", UserProfile())

        assert result.content == "LLM text"
        assert result.model == "gpt-test"
        assert result.intent == "greeting"
        assert result.fallback_reason is None
        complete.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_falls_back_on_non_retryable_error(self):
        complete = AsyncMock(side_effect=AuthError())
        synthesizer = ResponseSynthesizer(provider=_provider(complete), llm_enabled=True, max_retries=2)

        result = await synthesizer.synthesize([], "pricing", UserProfile())

        assert result.model == TEMPLATE_MODEL
        assert result.fallback_reason == "auth"
        assert complete.await_count == 1

    @pytest.mark.asyncio
    async def test_retries_network_errors_then_falls_back(self):
        complete = AsyncMock(side_effect=NetworkError())
        synthesizer = ResponseSynthesizer(
            provider=_provider(complete), llm_enabled=True, max_retries=2, retry_base_delay=0.001, retry_jitter=0
        )

        result = await synthesizer.synthesize([], "pricing", UserProfile())

        assert result.fallback_reason == "network"
        assert complete.await_count == 3

    @pytest.mark.asyncio
    async def test_timeout_bounds_latency(self):
        async def hang(messages, profile):
            await asyncio.sleep(10)

        synthesizer = ResponseSynthesizer(provider=_provider(hang), llm_enabled=True, timeout_seconds=0.05)

        result = await synthesizer.synthesize([], "What's your timeline?", UserProfile())

        assert result.fallback_reason == "timeout"
        assert result.content == TIMELINE_RESPONSE
