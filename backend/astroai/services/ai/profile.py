"""
Incremental visitor-profile inference from chat messages.

The profile is re-derived from the cumulative text of every user message in
the session and merged into the existing profile:
- industry and company size: within each dictionary the longest keyword is
  tried first; the first keyword found decides the value. No hit keeps the
  current value.
- challenges, interests and tech stack: every hit is added; previously
  inferred entries are never removed.

Keywords match on word boundaries (an optional plural suffix is allowed), so
"ai" does not fire on "maintain".
"""
import re
from typing import Dict, List, Optional, Pattern, Sequence, Tuple

from astroai.models.chat import ChatMessage, UserProfile

INDUSTRY_CLASSIFICATIONS: Dict[str, List[str]] = {
    "technology": ["tech", "software", "saas", "startup", "fintech"],
    "healthcare": ["health", "medical", "pharma", "biotech", "hospital"],
    "finance": ["finance", "banking", "insurance", "investment", "trading"],
    "retail": ["retail", "ecommerce", "consumer", "marketplace", "fashion"],
    "manufacturing": ["manufacturing", "industrial", "automotive", "aerospace"],
    "education": ["education", "university", "school", "learning", "training"],
    "government": ["government", "public", "federal", "state", "municipal"],
    "nonprofit": ["nonprofit", "ngo", "charity", "foundation", "social"],
}

COMPANY_SIZE_INDICATORS: Dict[str, List[str]] = {
    "startup": ["startup", "early stage", "seed", "series a", "small team"],
    "small": ["small business", "sme", "10-50", "growing", "local"],
    "medium": ["mid-size", "50-500", "established", "regional", "expanding"],
    "enterprise": ["enterprise", "large", "500+", "multinational", "fortune"],
}

CHALLENGE_KEYWORDS: Dict[str, List[str]] = {
    "scalability": ["scale", "scaling", "scalability"],
    "security": ["security", "secure", "compliance"],
    "cost-optimization": ["cost", "bill", "spend", "expensive"],
    "performance": ["performance", "latency", "slow"],
    "integration": ["integration", "integrate"],
    "automation": ["automation", "automate", "manual"],
    "remote-work": ["remote", "hybrid work", "work from home"],
}

INTEREST_KEYWORDS: Dict[str, List[str]] = {
    "AI Consulting": ["ai", "artificial intelligence", "llm", "genai"],
    "Cloud Architecture": ["cloud", "aws", "azure", "gcp"],
    "ML Engineering": ["machine learning", "ml", "mlops"],
    "DevOps": ["devops", "ci/cd", "pipeline", "infrastructure as code"],
}

TECH_STACK_KEYWORDS: Dict[str, List[str]] = {
    "AWS": ["aws", "amazon web services"],
    "Azure": ["azure"],
    "GCP": ["gcp", "google cloud"],
    "Kubernetes": ["kubernetes", "k8s"],
    "Docker": ["docker"],
    "Terraform": ["terraform"],
    "Python": ["python"],
    "TensorFlow": ["tensorflow"],
    "PyTorch": ["pytorch"],
    "PostgreSQL": ["postgres", "postgresql"],
    "React": ["react"],
    "Node.js": ["node.js", "nodejs"],
}


def keyword_pattern(keyword: str) -> Pattern:
    escaped = re.escape(keyword)
    # \b only applies next to word characters ("500+" ends with a symbol)
    prefix = r"\b" if keyword[0].isalnum() else ""
    suffix = r"(?:s|es)?\b" if keyword[-1].isalnum() else ""
    return re.compile(prefix + escaped + suffix, re.IGNORECASE)


def _compile(dictionary: Dict[str, List[str]]) -> List[Tuple[Pattern, str]]:
    """Flatten to (pattern, label) pairs, longest keyword first (stable)."""
    pairs = [(keyword, label) for label, keywords in dictionary.items() for keyword in keywords]
    pairs.sort(key=lambda pair: len(pair[0]), reverse=True)
    return [(keyword_pattern(keyword), label) for keyword, label in pairs]


_INDUSTRY = _compile(INDUSTRY_CLASSIFICATIONS)
_COMPANY_SIZE = _compile(COMPANY_SIZE_INDICATORS)
_CHALLENGES = _compile(CHALLENGE_KEYWORDS)
_INTERESTS = _compile(INTEREST_KEYWORDS)
_TECH_STACK = _compile(TECH_STACK_KEYWORDS)


def _first_hit(text: str, patterns: Sequence[Tuple[Pattern, str]]) -> Optional[str]:
    for pattern, label in patterns:
        if pattern.search(text):
            return label
    return None


def _all_hits(text: str, patterns: Sequence[Tuple[Pattern, str]], order: Sequence[str]) -> List[str]:
    found = {label for pattern, label in patterns if pattern.search(text)}
    return [label for label in order if label in found]


def _union(existing: List[str], new: List[str]) -> List[str]:
    merged = list(existing)
    for item in new:
        if item not in merged:
            merged.append(item)
    return merged


def user_text(messages: Sequence[ChatMessage]) -> str:
    return " ".join(m.content for m in messages if m.role == "user")


def infer_profile(messages: Sequence[ChatMessage], current: UserProfile) -> UserProfile:
    """
    Merge what the user has said so far into `current`.

    Returns:
        A new UserProfile; `current` is not modified
    """
    text = user_text(messages)
    if not text.strip():
        return current.model_copy(deep=True)

    updates = {}
    industry = _first_hit(text, _INDUSTRY)
    if industry:
        updates["industry"] = industry
    company_size = _first_hit(text, _COMPANY_SIZE)
    if company_size:
        updates["company_size"] = company_size

    updates["challenges"] = _union(
        current.challenges, _all_hits(text, _CHALLENGES, list(CHALLENGE_KEYWORDS))
    )
    updates["interests"] = _union(
        current.interests, _all_hits(text, _INTERESTS, list(INTEREST_KEYWORDS))
    )
    updates["tech_stack"] = _union(
        current.tech_stack, _all_hits(text, _TECH_STACK, list(TECH_STACK_KEYWORDS))
    )
    return current.model_copy(update=updates, deep=True)
