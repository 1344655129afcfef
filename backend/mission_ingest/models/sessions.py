"""Agent session summaries tailed from the sessions JSONL log."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID, uuid4

from sqlalchemy import JSON, Column, Text
from sqlmodel import Field

from mission_ingest.core.time import utcnow
from mission_ingest.models.base import QueryModel

RUNTIME_ANNOTATION_TYPES = (datetime,)


class AgentSession(QueryModel, table=True):
    """One parsed session record; ``line_hash`` deduplicates re-reads."""

    __tablename__ = "sessions"  # pyright: ignore[reportAssignmentType]

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    agent_id: str = Field(index=True)
    started_at: datetime = Field(index=True)
    ended_at: datetime | None = Field(default=None)
    message_count: int = Field(default=0, ge=0)
    total_cost: float | None = Field(default=None)
    tools_used: list[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    summary: str | None = Field(default=None, sa_column=Column(Text))
    line_hash: str = Field(unique=True, index=True)
    created_at: datetime = Field(default_factory=utcnow)
