"""
Service recommendation endpoint.

POST /recommend
"""
import time

from fastapi import APIRouter, Depends, Request

from astroai.core.errors import RateLimitError, ValidationError
from astroai.core.logging import get_logger
from astroai.core.rate_limit import get_client_ip, mask_key
from astroai.core.sanitize import sanitize
from astroai.dependencies import ServiceContainer, get_container
from astroai.models.recommendation import RecommendRequest, RecommendResponse

logger = get_logger(__name__)

router = APIRouter()


@router.post("", response_model=RecommendResponse)
async def recommend(
    request: Request,
    body: RecommendRequest,
    container: ServiceContainer = Depends(get_container),
):
    """
    Top consulting services for a free-text query and optional profile.

    Limited per client IP (30 per hour by default).
    """
    start_time = time.time()
    client_ip = get_client_ip(request)
    if not container.recommend_limiter.is_allowed(client_ip):
        logger.warning("recommendation_rate_limited", client=mask_key(client_ip))
        raise RateLimitError(
            "Too many recommendation requests. Please try again later.",
            metadata={"retry_after": container.recommend_limiter.retry_after(client_ip)},
        )

    query = sanitize(body.query, container.settings.max_message_length)
    if not query:
        raise ValidationError("Query cannot be empty.")

    recommendations = container.recommender.recommend(query, body.profile)
    if recommendations:
        try:
            container.analytics.record("recommendations_generated", services=[r.id for r in recommendations])
        except Exception as e:
            logger.warning("analytics_record_failed", error_type=type(e).__name__)

    logger.info(
        "recommendation_completed",
        results_count=len(recommendations),
        latency_ms=int((time.time() - start_time) * 1000),
    )
    return RecommendResponse(recommendations=recommendations, query=query)
