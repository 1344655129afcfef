"""Agent roster sync from ``openclaw.json`` and the valid-agent-id cache.

The roster table is upserted wholesale from the OpenClaw config on every sync.
Agents that disappear from the config keep their rows so their status history
survives. Tailers sanitize foreign keys through ``RosterCache``, which must be
invalidated after each sync so newly added agents are not nulled out.
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import Iterable, Sequence
from pathlib import Path
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from sqlalchemy import update
from sqlmodel import col, select

from mission_ingest.core.errors import RosterConfigError
from mission_ingest.core.logging import get_logger
from mission_ingest.core.time import parse_timestamp, utcnow
from mission_ingest.db.crud import upsert_rows
from mission_ingest.models.agents import Agent

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import async_sessionmaker
    from sqlmodel.ext.asyncio.session import AsyncSession

    from mission_ingest.services.ingestion.records import ParsedEvent

logger = get_logger(__name__)

DEFAULT_ROLE = "General"
DEFAULT_COLOR = "#6366f1"

ROLE_MAP: dict[str, str] = {
    "main": "System / General",
    "kevin": "Finance",
    "kevin-hand": "Finance (Hand)",
    "axe": "Wealth",
    "axe-hand": "Wealth (Hand)",
    "thomas": "Culinary",
    "dinesh": "Coding / CTO",
    "dinesh-coder": "Coding (Hand)",
    "richard": "Design / CDO",
    "richard-hand": "Design (Hand)",
    "hormozi": "Marketing",
    "hormozi-hand": "Marketing (Hand)",
    "tim": "Home Improvement",
    "harvey": "Legal",
    "cox": "Health",
    "jared": "PM / Projects",
}

COLOR_MAP: dict[str, str] = {
    "main": "#8b5cf6",
    "kevin": "#f59e0b",
    "kevin-hand": "#f59e0b",
    "axe": "#ef4444",
    "axe-hand": "#ef4444",
    "thomas": "#10b981",
    "dinesh": "#3b82f6",
    "dinesh-coder": "#3b82f6",
    "richard": "#06b6d4",
    "richard-hand": "#06b6d4",
    "hormozi": "#ec4899",
    "hormozi-hand": "#ec4899",
    "tim": "#f97316",
    "harvey": "#a855f7",
    "cox": "#14b8a6",
    "jared": "#6366f1",
}

# Columns refreshed on every sync; avatar_url and created_at are owned elsewhere.
_ROSTER_UPDATE_COLUMNS = (
    "name",
    "role",
    "model",
    "color",
    "is_hand",
    "brain_id",
    "status",
    "last_seen_at",
    "updated_at",
)


class ModelRef(BaseModel):
    primary: str


class SubagentPolicy(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    allow_agents: list[str] = Field(default_factory=list, alias="allowAgents")


class OpenClawAgentEntry(BaseModel):
    id: str = Field(min_length=1)
    name: str | None = None
    model: ModelRef | None = None
    subagents: SubagentPolicy | None = None


class AgentDefaults(BaseModel):
    model: ModelRef


class AgentsSection(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    defaults: AgentDefaults
    entries: list[OpenClawAgentEntry] = Field(alias="list")


class OpenClawConfig(BaseModel):
    """Subset of ``openclaw.json`` the roster depends on."""

    agents: AgentsSection


def load_openclaw_config(path: str | Path) -> OpenClawConfig:
    """Read and validate the OpenClaw config document."""
    target = Path(path)
    try:
        raw = target.read_text(encoding="utf-8")
    except OSError as exc:
        raise RosterConfigError(str(target), f"unreadable: {exc}") from exc
    try:
        return OpenClawConfig.model_validate(json.loads(raw))
    except json.JSONDecodeError as exc:
        raise RosterConfigError(str(target), f"invalid JSON: {exc}") from exc
    except ValidationError as exc:
        raise RosterConfigError(str(target), f"unexpected shape: {exc.error_count()} errors") from exc


def short_model_name(model: str) -> str:
    """Drop any vendor path prefix and a leading ``claude-``."""
    tail = model.split("/")[-1]
    return tail.removeprefix("claude-")


def hand_to_brain_map(config: OpenClawConfig) -> dict[str, str]:
    """Map each subordinate agent id to the agent that may delegate to it."""
    mapping: dict[str, str] = {}
    for agent in config.agents.entries:
        if agent.subagents is None:
            continue
        for hand_id in agent.subagents.allow_agents:
            mapping[hand_id] = agent.id
    return mapping


def build_roster_rows(config: OpenClawConfig) -> list[dict[str, Any]]:
    """Compute the full agent row set for one config snapshot."""
    known_ids = {agent.id for agent in config.agents.entries}
    hands = hand_to_brain_map(config)
    default_model = config.agents.defaults.model.primary
    now = utcnow()

    rows: list[dict[str, Any]] = []
    for agent in config.agents.entries:
        brain_id = hands.get(agent.id)
        if brain_id is not None and (brain_id not in known_ids or brain_id == agent.id):
            logger.warning(
                "ingest.roster.dangling_brain",
                extra={"agent_id": agent.id, "brain_id": brain_id},
            )
            brain_id = None
        model = agent.model.primary if agent.model and agent.model.primary else default_model
        rows.append(
            {
                "id": agent.id,
                "name": agent.name or agent.id,
                "role": ROLE_MAP.get(agent.id, DEFAULT_ROLE),
                "model": short_model_name(model),
                "color": COLOR_MAP.get(agent.id, DEFAULT_COLOR),
                "is_hand": agent.id in hands,
                "brain_id": brain_id,
                "status": "offline",
                "last_seen_at": None,
                "created_at": now,
                "updated_at": now,
            },
        )
    return rows


class RosterCache:
    """Lazily loaded set of agent ids used to null dangling foreign keys.

    Readers share one immutable snapshot; ``invalidate()`` drops it and bumps a
    generation counter so a load that raced with an invalidation is returned to
    its caller but never cached.
    """

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]) -> None:
        self._session_maker = session_maker
        self._ids: frozenset[str] | None = None
        self._generation = 0

    async def valid_ids(self) -> frozenset[str]:
        cached = self._ids
        if cached is not None:
            return cached
        generation = self._generation
        async with self._session_maker() as session:
            ids = frozenset((await session.exec(select(Agent.id))).all())
        if generation == self._generation:
            self._ids = ids
        return ids

    def invalidate(self) -> None:
        self._ids = None
        self._generation += 1

    @staticmethod
    def sanitize(agent_id: str | None, valid_ids: frozenset[str]) -> str | None:
        if agent_id and agent_id in valid_ids:
            return agent_id
        return None


class RosterSync:
    """Upsert the agent roster from ``openclaw.json`` then invalidate the cache."""

    def __init__(
        self,
        session_maker: async_sessionmaker[AsyncSession],
        *,
        config_path: str,
        cache: RosterCache,
    ) -> None:
        self._session_maker = session_maker
        self._config_path = config_path
        self._cache = cache

    async def sync(self) -> int:
        """Return the number of agents upserted; 0 when the config is unusable."""
        logger.info("ingest.roster.sync_started", extra={"path": self._config_path})
        try:
            config = await asyncio.to_thread(load_openclaw_config, self._config_path)
        except RosterConfigError as exc:
            logger.error(
                "ingest.roster.config_invalid",
                extra={"path": exc.path, "reason": exc.reason},
            )
            return 0

        rows = build_roster_rows(config)
        async with self._session_maker() as session:
            await upsert_rows(
                session,
                Agent,
                rows,
                conflict_columns=("id",),
                update_columns=_ROSTER_UPDATE_COLUMNS,
            )
            await session.commit()
        # Invalidate only after the upsert is committed.
        self._cache.invalidate()
        logger.info("ingest.roster.synced", extra={"count": len(rows)})
        return len(rows)


def _is_gateway_shutdown(event: ParsedEvent) -> bool:
    return event.event_type == "bot_stop" and "SIGTERM" in event.title


async def apply_event_status_updates(
    session: AsyncSession,
    events: Sequence[ParsedEvent],
    *,
    valid_ids: Iterable[str],
) -> int:
    """Apply roster status side effects for one batch in log order; caller commits."""
    known = frozenset(valid_ids)
    changes = 0
    for event in events:
        if event.event_type == "bot_start" and event.agent_id and event.agent_id in known:
            seen_at = parse_timestamp(event.occurred_at) or utcnow()
            await session.execute(
                update(Agent)
                .where(col(Agent.id) == event.agent_id)
                .values(status="online", last_seen_at=seen_at, updated_at=utcnow()),
            )
            changes += 1
        elif _is_gateway_shutdown(event):
            await session.execute(update(Agent).values(status="offline", updated_at=utcnow()))
            changes += 1
    return changes
