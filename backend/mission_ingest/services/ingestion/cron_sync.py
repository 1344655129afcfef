"""Mirror OpenClaw cron jobs into ``scheduled_tasks``."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import TYPE_CHECKING, Any
from uuid import uuid4

from pydantic import BaseModel, ValidationError
from sqlalchemy import update
from sqlmodel import col

from mission_ingest.core.config import settings
from mission_ingest.core.logging import get_logger
from mission_ingest.core.time import utcnow
from mission_ingest.db.crud import upsert_rows
from mission_ingest.models.scheduled_tasks import ScheduledTask

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import async_sessionmaker
    from sqlmodel.ext.asyncio.session import AsyncSession

    from mission_ingest.services.ingestion.roster import RosterCache

logger = get_logger(__name__)

CRON_SOURCE = "openclaw"
MIN_INTERVAL_MINUTES = 5

_CRON_UPDATE_COLUMNS = (
    "name",
    "schedule_expr",
    "schedule_tz",
    "agent_id",
    "enabled",
    "description",
    "updated_at",
)


class CronJobEntry(BaseModel):
    id: str
    name: str
    kind: str
    schedule: str = ""
    agent: str | None = None
    description: str | None = None
    enabled: bool = True


def is_high_frequency(schedule: str) -> bool:
    """Return True for ``*/n`` minute fields with n below the minimum interval."""
    parts = schedule.split()
    if not parts or not parts[0].startswith("*/"):
        return False
    try:
        interval = int(parts[0][2:])
    except ValueError:
        return False
    return interval < MIN_INTERVAL_MINUTES


def select_cron_jobs(raw_jobs: list[Any]) -> list[CronJobEntry]:
    """Keep ``kind == "cron"`` jobs scheduled no more often than every five minutes."""
    jobs: list[CronJobEntry] = []
    for raw in raw_jobs:
        try:
            job = CronJobEntry.model_validate(raw)
        except ValidationError:
            logger.debug("ingest.cron.entry_skipped", extra={"entry": str(raw)[:200]})
            continue
        if job.kind != "cron" or is_high_frequency(job.schedule):
            continue
        jobs.append(job)
    return jobs


def _linked_agent(job: CronJobEntry, valid_ids: frozenset[str]) -> str | None:
    if not job.agent:
        return None
    if job.agent not in valid_ids:
        logger.debug("ingest.cron.agent_unknown", extra={"job": job.id, "agent_id": job.agent})
        return None
    return job.agent


class CronJobSync:
    """Upsert cron jobs by ``(source, external_id)`` and link known agents.

    Links are written in the same upsert as the job, so readers never see a
    job whose agent was dropped mid-sync. ``link_agents()`` re-resolves them
    after the roster changes.
    """

    def __init__(
        self,
        session_maker: async_sessionmaker[AsyncSession],
        *,
        path: str,
        roster_cache: RosterCache,
        schedule_tz: str | None = None,
    ) -> None:
        self._session_maker = session_maker
        self.path = path
        self._roster_cache = roster_cache
        self._schedule_tz = schedule_tz or settings.cron_schedule_tz
        self._jobs: list[CronJobEntry] = []
        self._lock = asyncio.Lock()

    async def sync(self) -> int:
        try:
            raw = await asyncio.to_thread(Path(self.path).read_text, encoding="utf-8")
        except OSError:
            logger.info("ingest.cron.file_missing", extra={"path": self.path})
            return 0
        try:
            document = json.loads(raw)
        except json.JSONDecodeError as exc:
            logger.error("ingest.cron.invalid_json", extra={"path": self.path, "error": str(exc)})
            return 0
        if isinstance(document, dict):
            document = document.get("jobs", [])
        if not isinstance(document, list):
            logger.error("ingest.cron.invalid_json", extra={"path": self.path, "error": "expected a list"})
            return 0

        jobs = select_cron_jobs(document)
        if not jobs:
            logger.info("ingest.cron.nothing_to_sync", extra={"path": self.path})
            return 0

        valid_ids = await self._roster_cache.valid_ids()
        now = utcnow()
        rows = [
            {
                "id": uuid4(),
                "external_id": job.id,
                "name": job.name,
                "schedule_expr": job.schedule,
                "schedule_tz": self._schedule_tz,
                "agent_id": _linked_agent(job, valid_ids),
                "source": CRON_SOURCE,
                "enabled": job.enabled,
                "description": job.description or None,
                "created_at": now,
                "updated_at": now,
            }
            for job in jobs
        ]
        async with self._lock, self._session_maker() as session:
            await upsert_rows(
                session,
                ScheduledTask,
                rows,
                conflict_columns=("source", "external_id"),
                update_columns=_CRON_UPDATE_COLUMNS,
            )
            await session.commit()
            self._jobs = jobs

        linked = sum(1 for row in rows if row["agent_id"] is not None)
        logger.info("ingest.cron.synced", extra={"count": len(rows), "linked": linked})
        return len(rows)

    async def link_agents(self) -> int:
        """Re-resolve agent links of the last synced jobs against the current roster."""
        valid_ids = await self._roster_cache.valid_ids()
        linked = 0
        async with self._lock:
            if not self._jobs:
                return 0
            async with self._session_maker() as session:
                for job in self._jobs:
                    agent_id = _linked_agent(job, valid_ids)
                    await session.execute(
                        update(ScheduledTask)
                        .where(col(ScheduledTask.source) == CRON_SOURCE)
                        .where(col(ScheduledTask.external_id) == job.id)
                        .values(agent_id=agent_id),
                    )
                    if agent_id is not None:
                        linked += 1
                await session.commit()
            count = len(self._jobs)
        logger.info("ingest.cron.relinked", extra={"count": count, "linked": linked})
        return linked
