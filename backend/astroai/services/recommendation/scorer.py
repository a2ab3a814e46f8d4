"""
Keyword/profile-weighted service recommendation.

Scoring per catalog service:
- +20 per service keyword found in the query
- +15 industry affinity, +10 company-size affinity
- +20 when a known challenge matches the service
- +30 when the query contains the slug as a phrase ("devops automation")
- capped at 100

Services scoring 30 or less are dropped; the rest are sorted by score
(ties keep catalog order) and the top 3 are returned. Scoring is pure and
I/O-free.
"""
from typing import Any, List, Optional, Pattern, Sequence, Tuple

from astroai.core.logging import get_logger
from astroai.core.metrics import record_recommendation
from astroai.core.performance import performance_monitor
from astroai.models.recommendation import CatalogService, ServiceRecommendation
from astroai.services.ai.profile import keyword_pattern
from astroai.services.recommendation.catalog import (
    DEFAULT_CATALOG,
    ServiceProfile,
    estimated_cost,
    get_service_profile,
)

logger = get_logger(__name__)

KEYWORD_POINTS = 20
INDUSTRY_BONUS = 15
COMPANY_SIZE_BONUS = 10
CHALLENGE_BONUS = 20
SLUG_PHRASE_BONUS = 30
MAX_SCORE = 100
MIN_SCORE_EXCLUSIVE = 30
DEFAULT_LIMIT = 3

HIGH_PRIORITY_THRESHOLD = 70
MEDIUM_PRIORITY_THRESHOLD = 50

REASONING_SUFFIX = {
    "high": "This is a highly recommended match for your needs.",
    "medium": "This service should provide significant value for your organization.",
    "low": "This could be a good fit depending on your specific requirements.",
}


def priority_for(score: int) -> str:
    if score > HIGH_PRIORITY_THRESHOLD:
        return "high"
    if score > MEDIUM_PRIORITY_THRESHOLD:
        return "medium"
    return "low"


def _profile_field(profile: Any, name: str) -> Any:
    return getattr(profile, name, None) if profile is not None else None


class RecommendationScorer:
    """
    Scores a read-only service catalog against a query and optional profile.

    `profile` may be a UserProfile (chat) or a ProfileSeed (API callers); only
    the fields that are set contribute bonuses.
    """

    def __init__(self, catalog: Optional[Sequence[CatalogService]] = None):
        self.catalog = list(catalog if catalog is not None else DEFAULT_CATALOG)
        self._entries: List[Tuple[CatalogService, ServiceProfile, List[Pattern]]] = []
        for service in self.catalog:
            profile = get_service_profile(service)
            patterns = [keyword_pattern(keyword) for keyword in sorted(profile.keywords)]
            self._entries.append((service, profile, patterns))

    def score(self, query: str, service: CatalogService, profile: Any = None) -> int:
        """Relevance of one catalog service, in [0, 100]."""
        service_profile = get_service_profile(service)
        patterns = [keyword_pattern(keyword) for keyword in sorted(service_profile.keywords)]
        return self._score(query.lower(), service, service_profile, patterns, profile)

    def _score(
        self,
        query: str,
        service: CatalogService,
        service_profile: ServiceProfile,
        patterns: List[Pattern],
        profile: Any,
    ) -> int:
        score = KEYWORD_POINTS * sum(1 for pattern in patterns if pattern.search(query))

        industry = _profile_field(profile, "industry")
        if industry and industry.lower() in service_profile.industries:
            score += INDUSTRY_BONUS

        company_size = _profile_field(profile, "company_size")
        if company_size and company_size in service_profile.company_sizes:
            score += COMPANY_SIZE_BONUS

        challenges = _profile_field(profile, "challenges") or []
        if challenges and service_profile.challenge_terms:
            joined = " ".join(challenges).lower()
            if any(term in joined for term in service_profile.challenge_terms):
                score += CHALLENGE_BONUS

        if service.slug.replace("-", " ") in query:
            score += SLUG_PHRASE_BONUS

        return min(score, MAX_SCORE)

    def recommend(
        self,
        query: str,
        profile: Any = None,
        limit: int = DEFAULT_LIMIT,
    ) -> List[ServiceRecommendation]:
        """
        Top recommendations for a query.

        Args:
            query: Free-text visitor query
            profile: Optional UserProfile/ProfileSeed
            limit: Maximum number of results (3 by default)

        Returns:
            At most `limit` recommendations, highest score first
        """
        with performance_monitor.timed("recommendation.score"):
            lowered = (query or "").lower()
            company_size = _profile_field(profile, "company_size")

            scored = []
            for service, service_profile, patterns in self._entries:
                relevance = self._score(lowered, service, service_profile, patterns, profile)
                if relevance > MIN_SCORE_EXCLUSIVE:
                    scored.append((relevance, service, service_profile))

            # sorted() is stable: equal scores keep catalog order
            scored = sorted(scored, key=lambda item: item[0], reverse=True)[:limit]
            results = [
                self._build(relevance, service, service_profile, company_size)
                for relevance, service, service_profile in scored
            ]

        record_recommendation(results)
        logger.info(
            "recommendations_generated",
            candidates=len(self._entries),
            returned=len(results),
            top=results[0].id if results else None,
        )
        return results

    def _build(
        self,
        relevance: int,
        service: CatalogService,
        service_profile: ServiceProfile,
        company_size: Optional[str],
    ) -> ServiceRecommendation:
        priority = priority_for(relevance)
        return ServiceRecommendation(
            id=service.id,
            title=service.title,
            description=service.description,
            relevance_score=relevance,
            reasoning=f"{service_profile.reasoning} {REASONING_SUFFIX[priority]}",
            estimated_cost=estimated_cost(service.slug, company_size),
            timeline=service_profile.timeline,
            tags=list(service_profile.tags),
            priority=priority,
            next_steps=list(service_profile.benefits),
        )
