"""CLI that prints a summary of what ingestion has stored so far."""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from dataclasses import asdict, dataclass, field
from typing import TYPE_CHECKING, Any

from sqlmodel import col

from mission_ingest.core.config import ensure_startup_ready, settings
from mission_ingest.core.errors import StartupConfigError
from mission_ingest.db import session as db_session
from mission_ingest.models.agents import Agent
from mission_ingest.models.events import Event

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import async_sessionmaker
    from sqlmodel.ext.asyncio.session import AsyncSession

RECENT_EVENT_LIMIT = 10
ERROR_SEVERITIES = ("error", "critical")


@dataclass(frozen=True, slots=True)
class VerifySummary:
    agents: int
    events: int
    errors: int
    recent_events: list[dict[str, Any]] = field(default_factory=list)
    roster: list[dict[str, Any]] = field(default_factory=list)


async def collect_summary(session_maker: async_sessionmaker[AsyncSession]) -> VerifySummary:
    async with session_maker() as session:
        agents = await Agent.objects.all().count(session)
        events = await Event.objects.all().count(session)
        errors = await Event.objects.all().filter(col(Event.severity).in_(ERROR_SEVERITIES)).count(session)
        recent = await Event.objects.all().order_by(col(Event.occurred_at).desc()).limit(RECENT_EVENT_LIMIT).all(
            session,
        )
        roster = await Agent.objects.all().order_by(col(Agent.id)).all(session)

    return VerifySummary(
        agents=agents,
        events=events,
        errors=errors,
        recent_events=[
            {
                "severity": event.severity,
                "event_type": event.event_type,
                "title": event.title,
                "agent_id": event.agent_id,
                "occurred_at": event.occurred_at.isoformat(),
            }
            for event in recent
        ],
        roster=[{"id": agent.id, "name": agent.name, "status": agent.status} for agent in roster],
    )


def render_text(summary: VerifySummary) -> str:
    lines = [
        f"Agents: {summary.agents}",
        f"Events: {summary.events}",
        f"Errors: {summary.errors}",
        "",
        "--- Recent Events ---",
    ]
    for event in summary.recent_events:
        lines.append(
            f"  [{event['severity']}] {event['event_type']}: {event['title']}"
            f" ({event['agent_id'] or 'system'}) @ {event['occurred_at']}",
        )
    lines.extend(["", "--- Agents ---"])
    for agent in summary.roster:
        lines.append(f"  {agent['id']}: {agent['name']} [{agent['status']}]")
    return "\n".join(lines)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="python -m mission_ingest.cli.verify",
        description="Print agent/event counts, recent events, and the agent roster.",
    )
    parser.add_argument("--json", action="store_true", help="Print machine-readable JSON.")
    return parser


async def _collect() -> VerifySummary:
    try:
        return await collect_summary(db_session.get_session_maker())
    finally:
        await db_session.dispose_engine()


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    try:
        ensure_startup_ready(settings)
        summary = asyncio.run(_collect())
    except StartupConfigError as exc:
        print(f"verify error: {exc}", file=sys.stderr)
        return 1
    except Exception as exc:  # pragma: no cover - operator output
        print(f"verify error: {exc}", file=sys.stderr)
        return 1

    if args.json:
        print(json.dumps(asdict(summary), indent=2, sort_keys=True))
    else:
        print(render_text(summary))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
