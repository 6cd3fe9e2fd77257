"""Pydantic models for sessions, turns, intents and chat responses."""

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Urgency(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class TurnRole(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


class Intent(BaseModel):
    primary: str = "general"
    secondary: str | None = None
    entities: list[str] = []
    urgency: Urgency = Urgency.MEDIUM
    action_required: bool = False

    model_config = {"use_enum_values": True, "validate_default": True}


class ChatMessage(BaseModel):
    """One entry of the short conversation history sent by the caller."""

    role: str
    content: str


class ChatTurn(BaseModel):
    """A persisted message. Append-only."""

    message_id: str
    session_id: str
    user_id: str
    role: TurnRole
    text_content: str
    intent: str | None = None
    entities: list[str] = []
    sentiment_score: float | None = None
    created_at: datetime = Field(default_factory=_utcnow)

    model_config = {"frozen": True, "use_enum_values": True}


class ConversationSession(BaseModel):
    session_id: str
    user_id: str
    started_at: datetime = Field(default_factory=_utcnow)
    ended_at: datetime | None = None
    is_active: bool = True
    summary: str | None = None
    key_topics: list[str] = []
    sentiment_trend: float | None = None
    message_count: int = 0


class SessionStart(BaseModel):
    session_id: str
    welcome_message: str


class SessionSummary(BaseModel):
    summary: str
    key_topics: list[str] = []
    recommendations: list[str] = []


class ContextUsage(BaseModel):
    opportunities: int = 0
    learning_plans: int = 0
    chat_history: int = 0


class ResponseMetadata(BaseModel):
    model: str
    provider: str
    total_tokens: int = 0
    response_time_ms: int = 0


class ChatResponse(BaseModel):
    session_id: str | None = None
    response: str
    confidence: float
    context_used: ContextUsage = Field(default_factory=ContextUsage)
    follow_up_suggestions: list[str] = []
    metadata: ResponseMetadata
    is_fallback: bool = False
