"""Token usage and spend records."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID, uuid4

from sqlmodel import Field

from mission_ingest.core.time import utcnow
from mission_ingest.models.base import QueryModel

RUNTIME_ANNOTATION_TYPES = (datetime,)


class CostEvent(QueryModel, table=True):
    """Per-call model usage attributed to an agent and provider."""

    __tablename__ = "cost_events"  # pyright: ignore[reportAssignmentType]

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    agent_id: str | None = Field(default=None, foreign_key="agents.id", index=True)
    model: str = Field(default="unknown", index=True)
    provider: str = Field(default="other", index=True)
    input_tokens: int = Field(default=0, ge=0)
    output_tokens: int = Field(default=0, ge=0)
    cost_usd: float = Field(default=0.0)
    session_id: str | None = Field(default=None, index=True)
    occurred_at: datetime = Field(default_factory=utcnow, index=True)
    created_at: datetime = Field(default_factory=utcnow)
