"""
Service recommendation models.
"""
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

from astroai.models.chat import ProfileSeed


class CatalogService(BaseModel):
    """Read-only catalog entry consumed by the scorer."""
    id: str
    slug: str
    title: str
    description: str
    features: List[str] = Field(default_factory=list)


class ServiceRecommendation(BaseModel):
    id: str
    title: str
    description: str
    relevance_score: int = Field(ge=0, le=100)
    reasoning: str
    estimated_cost: str
    timeline: str
    tags: List[str] = Field(default_factory=list)
    priority: Literal["high", "medium", "low"]
    next_steps: List[str] = Field(default_factory=list)


class RecommendRequest(BaseModel):
    query: str
    profile: Optional[ProfileSeed] = None


class RecommendResponse(BaseModel):
    recommendations: List[ServiceRecommendation]
    query: str
