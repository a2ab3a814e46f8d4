"""
Content generation endpoint.

POST /content
"""
from fastapi import APIRouter, Depends, Request

from astroai.core.errors import RateLimitError
from astroai.core.logging import get_logger
from astroai.core.rate_limit import get_client_ip, mask_key
from astroai.dependencies import ServiceContainer, get_container
from astroai.models.content import ContentRequest, GeneratedContent

logger = get_logger(__name__)

router = APIRouter()


@router.post("", response_model=GeneratedContent)
async def generate_content(
    request: Request,
    body: ContentRequest,
    container: ServiceContainer = Depends(get_container),
):
    """
    Draft a blog post, case study, technical doc, email or proposal.

    Limited per client IP (10 per hour by default).
    """
    client_ip = get_client_ip(request)
    if not container.content_limiter.is_allowed(client_ip):
        logger.warning("content_rate_limited", client=mask_key(client_ip))
        raise RateLimitError(
            "Content generation limit reached. Please try again later.",
            metadata={"retry_after": container.content_limiter.retry_after(client_ip)},
        )
    return await container.content_generator.generate(body)
