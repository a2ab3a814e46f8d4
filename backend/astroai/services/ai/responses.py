"""
Response synthesis for chat turns.

Each intent maps to a pure template composer that interpolates the visitor
profile (industry, company-size tier) to pick among canned variants. The
variant choice is a stable hash of profile fields, so the same profile always
gets the same wording.

When enabled, a completion provider may write the reply instead. Any provider
failure (error, timeout, open circuit) falls back to the template reply; the
error is logged and counted but never propagated.
"""
import asyncio
import re
import zlib
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Protocol, Sequence

from astroai.core.errors import classify_error
from astroai.core.logging import get_logger
from astroai.core.metrics import record_response_fallback
from astroai.core.retry import retry_with_backoff
from astroai.models.chat import ChatMessage, MessageMetadata, UserProfile
from astroai.services.ai.intent import (
    INTENT_GREETING,
    INTENT_PORTFOLIO,
    INTENT_PRICING,
    INTENT_SERVICE_INQUIRY,
    INTENT_TECHNICAL,
    INTENT_TIMELINE,
    IntentResult,
    classify_intent,
)

logger = get_logger(__name__)

TEMPLATE_MODEL = "template"
WELCOME_CONTEXT = "welcome"
WELCOME_CONFIDENCE = 0.9

FALLBACK_GREETING = "Hello! Welcome to Astro Intelligence. How can I help you today?"

GREETING_TEMPLATES = [
    "Hello! I'm your AI assistant for Astro Intelligence. I'm here to help you explore our AI and cloud services. What brings you here today?",
    "Hi there! Welcome to Astro Intelligence. I can help you learn about our consulting services, discuss your technology challenges, or answer any questions you have.",
    "Greetings! I'm here to assist you with information about our AI consulting, cloud architecture, and ML engineering services. How can I help?",
]

SERVICE_OVERVIEW_TEMPLATES = [
    "Astro Intelligence specializes in four key areas: AI Consulting (strategy and implementation), Cloud Architecture (scalable infrastructure), ML Engineering (production-ready models), and Strategic Partnerships (technology vendor relationships).",
    "We offer comprehensive technology consulting across AI strategy, cloud infrastructure design, machine learning implementation, and strategic technology partnerships.",
]

TECHNICAL_EXPERTISE_TEMPLATES = [
    "Our technical expertise spans modern cloud platforms (AWS, Azure, GCP), AI/ML frameworks (TensorFlow, PyTorch, LangChain), and enterprise architectures (microservices, Kubernetes, serverless).",
    "We work with cutting-edge technologies including large language models, vector databases, cloud-native architectures, and production ML systems.",
]

NEXT_STEPS_TEMPLATES = [
    "Would you like to schedule a consultation to discuss your specific needs? I can also provide more details about any of our services.",
    "I'd be happy to connect you with our team for a detailed discussion about your project. What's the best way to move forward?",
]

PRICING_BY_COMPANY_SIZE: Dict[str, str] = {
    "startup": "Our startup-friendly packages start at $5,000 for focused consulting engagements.",
    "small": "For small businesses, our typical projects range from $10,000 to $50,000.",
    "medium": "Mid-size companies usually invest $25,000 to $100,000 for comprehensive solutions.",
    "enterprise": "Enterprise engagements typically range from $75,000 to $500,000+ depending on scope.",
}

PRICING_FOLLOW_UP = (
    " Each project is customized based on your specific requirements. Would you like to schedule "
    "a consultation to discuss your needs and get a detailed quote?"
)

COMPANY_SIZE_NOTES: Dict[str, str] = {
    "startup": "For startups like yours, we have specialized packages designed for growing companies.",
    "enterprise": "For enterprise clients, we offer comprehensive transformation services.",
}

TIMELINE_RESPONSE = (
    "Project timelines vary based on scope and complexity. Typical ranges are:\n\n"
    "• AI Strategy Consulting: 2-4 weeks\n"
    "• Cloud Architecture Design: 3-6 weeks\n"
    "• ML Model Development: 6-12 weeks\n"
    "• Full Implementation Projects: 3-9 months\n\n"
    "We can provide a detailed timeline once we understand your specific requirements. "
    "What's your target timeline?"
)

PORTFOLIO_RESPONSE = (
    "We've successfully delivered projects across various industries:\n\n"
    "• **Fintech Transformation**: AI-powered trading platform (reduced processing time by 75%)\n"
    "• **Healthcare ML**: Predictive analytics for patient outcomes (92% accuracy)\n"
    "• **E-commerce AI**: Recommendation engine (increased conversions by 45%)\n"
    "• **Enterprise Cloud**: Multi-cloud architecture (achieved 99.9% uptime)\n\n"
    "Would you like detailed case studies in your industry or similar to your use case?"
)

TECHNICAL_FOLLOW_UP = (
    " What specific technical challenges are you facing? I can provide more detailed "
    "information about our capabilities in those areas."
)


def estimate_tokens(text: str) -> int:
    """Rough token estimate: one token per four characters, rounded up."""
    return (len(text) + 3) // 4


def _pick(variants: Sequence[str], *keys: str) -> str:
    """Deterministic variant choice keyed on profile fields."""
    digest = zlib.crc32("|".join(keys).encode("utf-8"))
    return variants[digest % len(variants)]


def _mentions(text: str, *words: str) -> bool:
    return any(re.search(rf"\b{re.escape(word)}\b", text, re.IGNORECASE) for word in words)


def compose_greeting(profile: UserProfile) -> str:
    return _pick(GREETING_TEMPLATES, profile.industry, profile.company_size)


def compose_service_inquiry(profile: UserProfile, text: str) -> str:
    response = SERVICE_OVERVIEW_TEMPLATES[0] + "\n\n"
    if _mentions(text, "ai", "artificial intelligence"):
        response += (
            "Based on your interest in AI, I'd particularly recommend our AI Consulting services. "
            "We help organizations develop AI strategies, implement machine learning solutions, "
            "and ensure ethical AI practices."
        )
    elif _mentions(text, "cloud", "aws", "azure", "gcp"):
        response += (
            "Since you mentioned cloud, our Cloud Architecture services might be perfect for you. "
            "We design scalable, secure cloud infrastructures on AWS, Azure, and GCP."
        )
    elif _mentions(text, "ml", "machine learning"):
        response += (
            "Our ML Engineering services could be exactly what you need. We build production-ready "
            "machine learning systems, from data pipelines to model deployment and monitoring."
        )
    else:
        response += (
            "Based on your needs, I can recommend the most suitable service combination. "
            "What specific challenges are you looking to solve?"
        )
    note = COMPANY_SIZE_NOTES.get(profile.company_size)
    if note:
        response += " " + note
    return response


def compose_pricing(profile: UserProfile) -> str:
    base = PRICING_BY_COMPANY_SIZE.get(profile.company_size, PRICING_BY_COMPANY_SIZE["medium"])
    return base + PRICING_FOLLOW_UP


def compose_technical(profile: UserProfile) -> str:
    return _pick(TECHNICAL_EXPERTISE_TEMPLATES, profile.industry) + TECHNICAL_FOLLOW_UP


def compose_timeline(profile: UserProfile) -> str:
    return TIMELINE_RESPONSE


def compose_portfolio(profile: UserProfile) -> str:
    return PORTFOLIO_RESPONSE


def compose_general(profile: UserProfile) -> str:
    return (
        "I understand you're interested in learning more about our services. "
        + SERVICE_OVERVIEW_TEMPLATES[1]
        + " "
        + _pick(NEXT_STEPS_TEMPLATES, profile.industry, profile.company_size)
    )


def compose_reply(intent: str, profile: UserProfile, text: str) -> str:
    """Template reply for a classified intent."""
    if intent == INTENT_GREETING:
        return compose_greeting(profile)
    if intent == INTENT_SERVICE_INQUIRY:
        return compose_service_inquiry(profile, text)
    if intent == INTENT_PRICING:
        return compose_pricing(profile)
    if intent == INTENT_TECHNICAL:
        return compose_technical(profile)
    if intent == INTENT_TIMELINE:
        return compose_timeline(profile)
    if intent == INTENT_PORTFOLIO:
        return compose_portfolio(profile)
    return compose_general(profile)


class CompletionProvider(Protocol):
    chat_model: str

    async def complete(self, messages: List[ChatMessage], profile: Optional[UserProfile] = None) -> str:
        ...


@dataclass
class Synthesis:
    content: str
    intent: str
    confidence: float
    model: str
    fallback_reason: Optional[str] = None


class ResponseSynthesizer:
    """
    Classifies a user message and produces the assistant reply.

    Args:
        provider: Optional completion provider
        llm_enabled: Capability flag; the provider is only called when True
        timeout_seconds: Bound on the whole provider round trip (retries included)
        max_retries: Retries of retryable provider failures
        retry_base_delay: Base delay for the retry backoff
    """

    def __init__(
        self,
        provider: Optional[CompletionProvider] = None,
        llm_enabled: bool = False,
        timeout_seconds: float = 30.0,
        max_retries: int = 2,
        retry_base_delay: float = 1.0,
        retry_jitter: float = 1.0,
        classifier: Callable[[str], IntentResult] = classify_intent,
    ):
        self.provider = provider
        self.llm_enabled = llm_enabled
        self.timeout_seconds = timeout_seconds
        self.max_retries = max_retries
        self.retry_base_delay = retry_base_delay
        self.retry_jitter = retry_jitter
        self._classify = classifier

    @property
    def uses_provider(self) -> bool:
        return self.llm_enabled and self.provider is not None

    def welcome_message(self, profile: UserProfile) -> ChatMessage:
        """Opening assistant message. Never raises."""
        try:
            content = compose_greeting(profile)
        except Exception as e:
            logger.warning("welcome_template_failed", error_type=type(e).__name__)
            record_response_fallback("welcome_template")
            content = FALLBACK_GREETING
        return ChatMessage(
            role="assistant",
            content=content,
            metadata=MessageMetadata(
                tokens=estimate_tokens(content),
                model=TEMPLATE_MODEL,
                context=WELCOME_CONTEXT,
                confidence=WELCOME_CONFIDENCE,
            ),
        )

    async def synthesize(
        self,
        messages: List[ChatMessage],
        text: str,
        profile: UserProfile,
    ) -> Synthesis:
        """
        Produce the reply to `text`.

        Args:
            messages: Conversation including the new user message
            text: Sanitized user message
            profile: Profile after inference on this turn
        """
        result = self._classify(text)
        template = compose_reply(result.intent, profile, text)

        if not self.uses_provider:
            return Synthesis(template, result.intent, result.confidence, TEMPLATE_MODEL)

        provider = self.provider
        try:
            content = await asyncio.wait_for(
                retry_with_backoff(
                    lambda: provider.complete(messages, profile),
                    max_retries=self.max_retries,
                    base_delay=self.retry_base_delay,
                    jitter=self.retry_jitter,
                    operation_name="llm_complete",
                ),
                timeout=self.timeout_seconds,
            )
        except Exception as e:
            error = classify_error(e)
            reason = "timeout" if error.metadata.get("timeout") else error.kind.value
            record_response_fallback(reason)
            logger.warning(
                "response_provider_fallback",
                intent=result.intent,
                reason=reason,
                error_type=type(e).__name__,
            )
            return Synthesis(template, result.intent, result.confidence, TEMPLATE_MODEL, reason)

        return Synthesis(content, result.intent, result.confidence, provider.chat_model)
