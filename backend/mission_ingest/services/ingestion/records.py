"""Typed records produced by the line parsers."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal, get_args

from mission_ingest.core.time import parse_timestamp, utcnow

EventType = Literal[
    "bot_start",
    "bot_stop",
    "heartbeat",
    "reload",
    "config_change",
    "plugin_load",
    "health_alert",
    "gateway_restart",
    "message",
    "session_start",
    "session_end",
    "error",
    "system",
    "mission_created",
    "mission_updated",
    "agent_push",
    "cost_event",
]
EventSeverity = Literal["info", "warn", "error", "critical"]
CostProvider = Literal["anthropic", "openai", "google", "xai", "together", "other"]
MissionStatus = Literal["backlog", "in_progress", "review", "done"]

EVENT_TYPES: frozenset[str] = frozenset(get_args(EventType))
EVENT_SEVERITIES: frozenset[str] = frozenset(get_args(EventSeverity))
COST_PROVIDERS: frozenset[str] = frozenset(get_args(CostProvider))


@dataclass(frozen=True, slots=True)
class ParsedEvent:
    """Activity event parsed from one gateway or watchdog log line."""

    agent_id: str | None
    event_type: EventType
    source: str
    title: str
    detail: str | None
    severity: EventSeverity
    occurred_at: str

    def as_row(self) -> dict[str, Any]:
        return {
            "agent_id": self.agent_id,
            "event_type": self.event_type,
            "source": self.source,
            "title": self.title,
            "detail": self.detail,
            "severity": self.severity,
            "occurred_at": parse_timestamp(self.occurred_at) or utcnow(),
        }


@dataclass(frozen=True, slots=True)
class ParsedSession:
    """Session summary parsed from one sessions JSONL line."""

    agent_id: str
    started_at: str
    ended_at: str | None
    message_count: int
    total_cost: float | None
    tools_used: tuple[str, ...] = field(default_factory=tuple)
    summary: str | None = None
    line_hash: str = ""

    def as_row(self) -> dict[str, Any]:
        return {
            "agent_id": self.agent_id,
            "started_at": parse_timestamp(self.started_at) or utcnow(),
            "ended_at": parse_timestamp(self.ended_at),
            "message_count": self.message_count,
            "total_cost": self.total_cost,
            "tools_used": list(self.tools_used),
            "summary": self.summary,
            "line_hash": self.line_hash,
        }


@dataclass(frozen=True, slots=True)
class ParsedCostEvent:
    """Model usage and spend parsed from one usage JSONL line."""

    agent_id: str | None
    model: str
    provider: CostProvider
    input_tokens: int
    output_tokens: int
    cost_usd: float
    session_id: str | None
    occurred_at: str

    def as_row(self) -> dict[str, Any]:
        return {
            "agent_id": self.agent_id,
            "model": self.model,
            "provider": self.provider,
            "input_tokens": self.input_tokens,
            "output_tokens": self.output_tokens,
            "cost_usd": self.cost_usd,
            "session_id": self.session_id,
            "occurred_at": parse_timestamp(self.occurred_at) or utcnow(),
        }


@dataclass(frozen=True, slots=True)
class ParsedMission:
    """Checklist item parsed from the task-queue markdown document."""

    title: str
    status: MissionStatus
    markdown_ref: str
    completed: bool
