"""Cron jobs mirrored from the OpenClaw scheduler config."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID, uuid4

from sqlalchemy import UniqueConstraint
from sqlmodel import Field

from mission_ingest.core.time import utcnow
from mission_ingest.models.base import QueryModel

RUNTIME_ANNOTATION_TYPES = (datetime,)


class ScheduledTask(QueryModel, table=True):
    """Recurring job keyed by ``(source, external_id)``."""

    __tablename__ = "scheduled_tasks"  # pyright: ignore[reportAssignmentType]
    __table_args__ = (
        UniqueConstraint("source", "external_id", name="uq_scheduled_tasks_source_external"),
    )

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    external_id: str | None = Field(default=None, index=True)
    name: str
    schedule_expr: str
    schedule_tz: str = Field(default="America/Chicago")
    agent_id: str | None = Field(default=None, foreign_key="agents.id", index=True)
    source: str = Field(default="openclaw", index=True)
    enabled: bool = Field(default=True)
    description: str | None = Field(default=None)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
