"""
Rule-based intent classification for chat messages.

Intents are tested in a fixed priority order; the first intent with a
matching pattern wins, otherwise the message is classified as "general".
Classification is pure (no I/O) so it can be table-tested.
"""
import re
from dataclasses import dataclass
from typing import List, Pattern, Tuple

from astroai.core.logging import get_logger

logger = get_logger(__name__)

# Intent constants
INTENT_GREETING = "greeting"
INTENT_SERVICE_INQUIRY = "service_inquiry"
INTENT_PRICING = "pricing"
INTENT_TECHNICAL = "technical"
INTENT_TIMELINE = "timeline"
INTENT_PORTFOLIO = "portfolio"
INTENT_GENERAL = "general"

MATCHED_CONFIDENCE = 0.8
GENERAL_CONFIDENCE = 0.5

# Ordered by priority
INTENT_PATTERNS: List[Tuple[str, List[Pattern]]] = [
    (INTENT_GREETING, [
        re.compile(r"^(hi|hello|hey|good morning|good afternoon|good evening)\b", re.IGNORECASE),
        re.compile(r"^(greetings|salutations|howdy)\b", re.IGNORECASE),
    ]),
    (INTENT_SERVICE_INQUIRY, [
        re.compile(r"\b(service|consulting|help|solution|expertise|project)\b", re.IGNORECASE),
        re.compile(r"\b(need|want|looking for|interested in|require)\b", re.IGNORECASE),
    ]),
    (INTENT_PRICING, [
        re.compile(r"\b(price|cost|fee|budget|quote|estimate|pricing)\b", re.IGNORECASE),
        re.compile(r"\b(how much|what does it cost|affordable)\b", re.IGNORECASE),
    ]),
    (INTENT_TECHNICAL, [
        re.compile(r"\b(technical|architecture|implementation|integration|development)\b", re.IGNORECASE),
        re.compile(r"\b(api|database|infrastructure|deployment|security)\b", re.IGNORECASE),
    ]),
    (INTENT_TIMELINE, [
        re.compile(r"\b(when|timeline|schedule|delivery|duration|how long)\b", re.IGNORECASE),
        re.compile(r"\b(urgent|asap|immediate|quickly)\b", re.IGNORECASE),
    ]),
    (INTENT_PORTFOLIO, [
        re.compile(r"\b(portfolio|case study|examples|previous work|experience)\b", re.IGNORECASE),
        re.compile(r"\b(clients|projects|success stories)\b", re.IGNORECASE),
    ]),
]

ALL_INTENTS = [intent for intent, _ in INTENT_PATTERNS] + [INTENT_GENERAL]


@dataclass(frozen=True)
class IntentResult:
    intent: str
    confidence: float


def classify_intent(text: str) -> IntentResult:
    """
    Classify a (sanitized) user message.

    Args:
        text: Message text

    Returns:
        IntentResult with the winning intent and a fixed confidence
    """
    normalized = (text or "").strip()
    for intent, patterns in INTENT_PATTERNS:
        if any(pattern.search(normalized) for pattern in patterns):
            return IntentResult(intent=intent, confidence=MATCHED_CONFIDENCE)
    return IntentResult(intent=INTENT_GENERAL, confidence=GENERAL_CONFIDENCE)
