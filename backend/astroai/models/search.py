"""
Vector search models.
"""
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class EmbeddingRecord(BaseModel):
    """Stored content with its embedding."""
    id: str
    type: str = "content"
    source: str = ""
    title: str = ""
    category: str = ""
    content: str
    embedding: Optional[List[float]] = None
    timestamp: float = 0.0

    def metadata(self) -> Dict[str, Any]:
        return {
            "type": self.type,
            "source": self.source,
            "title": self.title,
            "category": self.category,
            "timestamp": self.timestamp,
        }


class SearchResult(BaseModel):
    id: str
    content: str
    similarity: float = Field(ge=0.0, le=1.0)
    metadata: Dict[str, Any] = Field(default_factory=dict)


class SearchOptions(BaseModel):
    limit: int = Field(10, gt=0, le=100)
    threshold: float = Field(0.7, ge=0.0, le=1.0)
    category: Optional[str] = None
    type: Optional[str] = None


class StoreContentRequest(BaseModel):
    id: str
    content: str
    type: str = "content"
    source: str = ""
    title: str = ""
    category: str = ""


class SearchResponse(BaseModel):
    results: List[SearchResult]
    mode: str
    query: str
