"""
Content generation models.
"""
from datetime import datetime
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, Field

from astroai.models.chat import new_id, utcnow

ContentType = Literal["blog-post", "case-study", "technical-doc", "email", "proposal"]
Audience = Literal["technical", "business", "general"]
Tone = Literal["professional", "casual", "persuasive", "educational"]
ContentLength = Literal["short", "medium", "long"]
ContentFormat = Literal["markdown", "html", "plain"]


class ContentRequest(BaseModel):
    type: ContentType
    topic: str = Field(..., min_length=1, max_length=200)
    audience: Audience = "business"
    tone: Tone = "professional"
    length: ContentLength = "medium"
    keywords: List[str] = Field(default_factory=list, max_length=10)
    context: Optional[str] = Field(None, max_length=1000)
    format: ContentFormat = "markdown"


class ContentMetadata(BaseModel):
    word_count: int
    reading_time: int  # minutes, at 200 words per minute
    seo_score: int = Field(ge=0, le=100)
    topics: List[str] = Field(default_factory=list)
    keyword_density: Dict[str, float] = Field(default_factory=dict)
    generated_at: datetime = Field(default_factory=utcnow)
    model: str
    tokens: int = 0
    fallback_reason: Optional[str] = None


class GeneratedContent(BaseModel):
    id: str = Field(default_factory=new_id)
    type: ContentType
    title: str
    content: str
    summary: str
    format: ContentFormat = "markdown"
    suggestions: List[str] = Field(default_factory=list)
    metadata: ContentMetadata
