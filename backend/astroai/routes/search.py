"""
Content search endpoints.

GET    /search?q={query}&limit=&threshold=&category=&type=
POST   /search/content
GET    /search/content/{content_id}
GET    /search/content/{content_id}/similar
DELETE /search/content/{content_id}
"""
import time
from typing import List, Optional

from fastapi import APIRouter, Depends, Path, Query

from astroai.core.errors import NotFoundError, ValidationError
from astroai.core.logging import get_logger
from astroai.core.sanitize import sanitize
from astroai.dependencies import ServiceContainer, get_container
from astroai.models.search import EmbeddingRecord, SearchOptions, SearchResponse, SearchResult, StoreContentRequest

logger = get_logger(__name__)

router = APIRouter()


@router.get("", response_model=SearchResponse)
async def search(
    q: str = Query(..., description="Search query"),
    limit: int = Query(10, ge=1, le=100, description="Number of results to return"),
    threshold: float = Query(0.7, ge=0.0, le=1.0, description="Minimum similarity"),
    category: Optional[str] = Query(None, description="Filter by category"),
    type: Optional[str] = Query(None, description="Filter by content type"),
    container: ServiceContainer = Depends(get_container),
):
    """
    Semantic content search.

    Always answers: when no live backend is reachable, results come from the
    built-in fallback corpus.
    """
    start_time = time.time()
    query = sanitize(q, container.settings.max_message_length)
    if not query:
        raise ValidationError("Query cannot be empty.")

    options = SearchOptions(limit=limit, threshold=threshold, category=category, type=type)
    results = await container.search.search(query, options)

    logger.info(
        "search_completed",
        mode=container.search.mode.value,
        results_count=len(results),
        latency_ms=int((time.time() - start_time) * 1000),
    )
    return SearchResponse(results=results, mode=container.search.mode.value, query=query)


@router.post("/content", response_model=EmbeddingRecord, status_code=201, response_model_exclude={"embedding"})
async def store_content(
    body: StoreContentRequest,
    container: ServiceContainer = Depends(get_container),
):
    metadata = body.model_dump(exclude={"content"})
    return await container.search.store_content(body.content, metadata)


@router.get("/content/{content_id}", response_model=EmbeddingRecord, response_model_exclude={"embedding"})
async def get_content(
    content_id: str = Path(..., description="Content ID"),
    container: ServiceContainer = Depends(get_container),
):
    record = await container.search.get_content(content_id)
    if record is None:
        raise NotFoundError("Content not found.", metadata={"content_id": content_id})
    return record


@router.get("/content/{content_id}/similar", response_model=List[SearchResult])
async def find_similar(
    content_id: str = Path(..., description="Content ID"),
    limit: int = Query(5, ge=1, le=100, description="Number of results to return"),
    category: Optional[str] = Query(None, description="Filter by category"),
    type: Optional[str] = Query(None, description="Filter by content type"),
    container: ServiceContainer = Depends(get_container),
):
    options = SearchOptions(limit=limit, category=category, type=type)
    return await container.search.find_similar(content_id, options)


@router.delete("/content/{content_id}", status_code=204)
async def delete_content(
    content_id: str = Path(..., description="Content ID"),
    container: ServiceContainer = Depends(get_container),
):
    await container.search.delete_content(content_id)
