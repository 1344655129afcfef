"""Append-only activity events parsed from gateway and watchdog logs."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID, uuid4

from sqlalchemy import Column, Text
from sqlmodel import Field

from mission_ingest.core.time import utcnow
from mission_ingest.models.base import QueryModel

RUNTIME_ANNOTATION_TYPES = (datetime,)


class Event(QueryModel, table=True):
    """Single activity-feed entry ordered by ``occurred_at``."""

    __tablename__ = "events"  # pyright: ignore[reportAssignmentType]

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    agent_id: str | None = Field(default=None, foreign_key="agents.id", index=True)
    event_type: str = Field(index=True)
    source: str = Field(default="gateway", index=True)
    title: str
    detail: str | None = Field(default=None, sa_column=Column(Text))
    severity: str = Field(default="info", index=True)
    occurred_at: datetime = Field(default_factory=utcnow, index=True)
    created_at: datetime = Field(default_factory=utcnow)
