"""
Health check endpoints.
"""
from fastapi import APIRouter, Depends

from astroai.core.logging import get_logger
from astroai.dependencies import ServiceContainer, get_container

logger = get_logger(__name__)
router = APIRouter()


@router.get("")
async def health_check():
    """
    Basic health check endpoint.
    """
    return {
        "status": "ok",
        "message": "API is running"
    }


@router.get("/vector")
async def vector_search_health(container: ServiceContainer = Depends(get_container)):
    """
    Health of the vector search facade.

    Returns:
        Operating mode (full, degraded or offline), backend availability,
        index size and recent degradation count
    """
    details = container.search.health()
    details["status"] = "ok" if details["mode"] == "full" else details["mode"]
    return details
