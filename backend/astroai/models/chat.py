"""
Chat session models.
"""
import uuid
from datetime import datetime, timezone
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

CompanySize = Literal["startup", "small", "medium", "enterprise"]

DEFAULT_INDUSTRY = "technology"
DEFAULT_COMPANY_SIZE = "medium"


def new_id() -> str:
    return uuid.uuid4().hex


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UserProfile(BaseModel):
    """Visitor profile inferred from the conversation."""
    industry: str = DEFAULT_INDUSTRY
    company_size: CompanySize = DEFAULT_COMPANY_SIZE
    challenges: List[str] = Field(default_factory=list)
    interests: List[str] = Field(default_factory=list)
    tech_stack: List[str] = Field(default_factory=list)

    def merged(self, seed: Optional["ProfileSeed"]) -> "UserProfile":
        """Overlay the non-empty fields of `seed` on this profile."""
        if seed is None:
            return self.model_copy(deep=True)
        updates = {
            key: value
            for key, value in seed.model_dump(exclude_none=True).items()
            if value not in ("", [])
        }
        return self.model_copy(update=updates, deep=True)


class ProfileSeed(BaseModel):
    """Partial profile supplied by the caller when a session is created."""
    industry: Optional[str] = None
    company_size: Optional[CompanySize] = None
    challenges: Optional[List[str]] = None
    interests: Optional[List[str]] = None
    tech_stack: Optional[List[str]] = None


class MessageMetadata(BaseModel):
    tokens: int = 0
    model: Optional[str] = None
    context: Optional[str] = None  # intent label, or "welcome"
    confidence: Optional[float] = None


class ChatMessage(BaseModel):
    id: str = Field(default_factory=new_id)
    role: Literal["user", "assistant"]
    content: str
    timestamp: datetime = Field(default_factory=utcnow)
    metadata: MessageMetadata = Field(default_factory=MessageMetadata)


class SessionMetadata(BaseModel):
    total_tokens: int = 0
    avg_response_time: float = 0.0  # milliseconds, running mean over replies
    response_count: int = 0


class ChatSession(BaseModel):
    id: str = Field(default_factory=new_id)
    messages: List[ChatMessage] = Field(default_factory=list)
    context: UserProfile = Field(default_factory=UserProfile)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    status: Literal["active", "closed"] = "active"
    metadata: SessionMetadata = Field(default_factory=SessionMetadata)


class ChatTurn(BaseModel):
    """Result of one sendMessage call."""
    session: ChatSession
    reply: ChatMessage


class CreateSessionRequest(BaseModel):
    profile: Optional[ProfileSeed] = None


class SendMessageRequest(BaseModel):
    content: str
    user_id: Optional[str] = None


class StreamContext(BaseModel):
    """Where the visitor is and what they are after; folded into the prompt."""
    page: Optional[str] = Field(None, max_length=200)
    user_intent: Optional[Literal["support", "sales", "technical", "general"]] = None


class StreamChatRequest(BaseModel):
    message: str = Field(..., min_length=1, max_length=1000)
    session_id: Optional[str] = None
    profile: Optional[ProfileSeed] = None
    context: Optional[StreamContext] = None


class StreamFallbackResponse(BaseModel):
    """Complete reply returned when no provider stream could be opened."""
    message: str
    intent: str
    streaming: bool = False
    fallback: bool = True
    fallback_reason: Optional[str] = None
