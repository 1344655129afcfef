"""Per-file tail offsets."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID, uuid4

from sqlmodel import Field

from mission_ingest.core.time import utcnow
from mission_ingest.models.base import QueryModel

RUNTIME_ANNOTATION_TYPES = (datetime,)


class IngestionState(QueryModel, table=True):
    """Last consumed byte offset for one watched file path."""

    __tablename__ = "ingestion_state"  # pyright: ignore[reportAssignmentType]

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    file_path: str = Field(unique=True, index=True)
    last_offset: int = Field(default=0, ge=0)
    last_line: str | None = Field(default=None)
    updated_at: datetime = Field(default_factory=utcnow)
