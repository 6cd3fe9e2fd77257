"""Pydantic models for retrieved context.

ContextItem is a query-time view over a source record (opportunity, learning
plan, chat turn, knowledge entity) and is never persisted as such.
"""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, field_validator


class SourceType(str, Enum):
    OPPORTUNITY = "opportunity"
    LEARNING_PLAN = "learningPlan"
    CHAT_TURN = "chatTurn"
    KNOWLEDGE_ENTITY = "knowledgeEntity"


class ContextItem(BaseModel):
    id: str
    text_content: str
    source_type: SourceType
    metadata: dict[str, Any] = {}
    similarity_score: float = 0.0
    relevance_score: float | None = None

    model_config = {"use_enum_values": True}

    @field_validator("similarity_score")
    @classmethod
    def _clamp_similarity(cls, value: float) -> float:
        return max(0.0, min(1.0, float(value)))


class Goal(BaseModel):
    id: str
    title: str
    description: str | None = None


class UserContext(BaseModel):
    """Profile, demographics and active goals of one user.

    Every field has a default so a failed fetch degrades to UserContext().
    """

    profile: dict[str, Any] = {}
    demographics: dict[str, Any] = {}
    learning_style: str = "mixed"
    career_stage: str = "student"
    skill_level: str = "beginner"
    active_goals: list[Goal] = []
    last_activity: datetime | None = None


class RetrievedContext(BaseModel):
    opportunities: list[ContextItem] = []
    learning_plans: list[ContextItem] = []
    chat_history: list[ContextItem] = []
    user_context: UserContext = Field(default_factory=UserContext)
    total_estimated_tokens: int = 0


class HybridWeights(BaseModel):
    """Weights of the hybrid score. Not normalised, callers keep the sum at or below 1."""

    semantic: float = 0.4
    context: float = 0.4
    recency: float = 0.2
