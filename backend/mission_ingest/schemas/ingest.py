"""Schemas for the inbound event ingestion endpoint."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import Field, field_validator
from sqlmodel import SQLModel

from mission_ingest.schemas.common import NonEmptyStr
from mission_ingest.services.ingestion.records import EventSeverity, EventType

_RUNTIME_TYPE_REFERENCES = (datetime, NonEmptyStr)

COST_EVENT_TYPE: Literal["cost_event"] = "cost_event"


def _normalize_optional_text(value: object) -> object | None:
    if value is None:
        return None
    if isinstance(value, str):
        text = value.strip()
        return text or None
    return value


class IngestEventCreate(SQLModel):
    """One externally reported event; ``cost_event`` items also carry usage fields."""

    event_type: EventType
    title: NonEmptyStr
    agent_id: str | None = None
    source: str = "api"
    detail: str | None = None
    severity: EventSeverity = "info"
    occurred_at: datetime | None = None

    model: str | None = None
    provider: str | None = None
    input_tokens: int = Field(default=0, ge=0)
    output_tokens: int = Field(default=0, ge=0)
    cost_usd: float = Field(default=0, ge=0)
    session_id: str | None = None

    @field_validator("agent_id", "detail", "model", "provider", "session_id", mode="before")
    @classmethod
    def normalize_optional_text(cls, value: object) -> object | None:
        return _normalize_optional_text(value)

    @property
    def is_cost_event(self) -> bool:
        return self.event_type == COST_EVENT_TYPE


class IngestResponse(SQLModel):
    """Counts of rows written by one ingest request."""

    inserted: int = 0
    costs: int = 0
    error: str | None = None
