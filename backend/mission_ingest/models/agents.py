"""Agent roster rows synced from the OpenClaw config."""

from __future__ import annotations

from datetime import datetime

from sqlmodel import Field

from mission_ingest.core.time import utcnow
from mission_ingest.models.base import QueryModel

RUNTIME_ANNOTATION_TYPES = (datetime,)


class Agent(QueryModel, table=True):
    """One OpenClaw agent with display metadata and live status."""

    __tablename__ = "agents"  # pyright: ignore[reportAssignmentType]

    id: str = Field(primary_key=True)
    name: str = Field(index=True)
    role: str = Field(default="General")
    model: str = Field(default="")
    status: str = Field(default="offline", index=True)
    color: str = Field(default="#6366f1")
    is_hand: bool = Field(default=False, index=True)
    brain_id: str | None = Field(default=None, foreign_key="agents.id", index=True)
    avatar_url: str | None = Field(default=None)
    last_seen_at: datetime | None = Field(default=None)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
