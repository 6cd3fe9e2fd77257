"""Pydantic models for embedding results and usage accounting."""

from datetime import datetime, timezone

from pydantic import BaseModel, Field, model_validator


class EmbeddingResult(BaseModel):
    """One embedding produced by one backend.

    The vector length must equal dimension_count, otherwise the model refuses
    to build. Results are shared between cache and callers and must not be
    mutated.
    """

    vector: list[float]
    provider_id: str
    model_id: str
    dimension_count: int
    token_usage: int = 0
    content_hash: str

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def _check_dimension(self) -> "EmbeddingResult":
        if len(self.vector) != self.dimension_count:
            raise ValueError(
                f"Embedding from '{self.provider_id}' has {len(self.vector)} dimensions, "
                f"expected {self.dimension_count}."
            )
        return self


class EmbeddingUsageRecord(BaseModel):
    """Usage-accounting row written after every successful embed call."""

    provider_id: str
    model_id: str
    dimension_count: int
    owner_id: str | None = None
    content_type: str | None = None
    tokens: int = 0
    estimated_cost: float = 0.0
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class ContextualEmbedding(BaseModel):
    """Embedding of content decorated for its content type, plus enriched metadata."""

    result: EmbeddingResult
    context_hash: str
    metadata: dict = {}
