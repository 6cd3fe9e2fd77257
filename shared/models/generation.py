"""Pydantic models for text generation."""

from pydantic import BaseModel


class LLMReply(BaseModel):
    """Raw reply of one generation backend.

    total_tokens is None when the backend does not report usage.
    """

    text: str
    total_tokens: int | None = None


class GenerationResult(BaseModel):
    response_text: str
    confidence: float
    provider_id: str
    model_id: str
    token_estimate: int
