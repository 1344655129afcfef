"""Kanban missions, including items synced from the task-queue markdown."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID, uuid4

from sqlalchemy import BigInteger, Column, Text
from sqlmodel import Field

from mission_ingest.core.time import utcnow
from mission_ingest.models.base import QueryModel

RUNTIME_ANNOTATION_TYPES = (datetime,)


class Mission(QueryModel, table=True):
    """Task-queue item; markdown rows are keyed by ``markdown_ref``."""

    __tablename__ = "missions"  # pyright: ignore[reportAssignmentType]

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    title: str
    description: str | None = Field(default=None, sa_column=Column(Text))
    status: str = Field(default="backlog", index=True)
    priority: str = Field(default="medium")
    source: str = Field(default="manual", index=True)
    sort_order: int = Field(default=0, sa_column=Column(BigInteger, nullable=False, default=0))
    completed_at: datetime | None = Field(default=None)
    markdown_ref: str | None = Field(default=None, unique=True, index=True)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
