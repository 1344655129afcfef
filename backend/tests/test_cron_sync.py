# ruff: noqa: S101
from __future__ import annotations

import json
from pathlib import Path

import pytest
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine
from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession

from mission_ingest.models.agents import Agent
from mission_ingest.models.scheduled_tasks import ScheduledTask
from mission_ingest.services.ingestion.cron_sync import CronJobSync, is_high_frequency, select_cron_jobs
from mission_ingest.services.ingestion.roster import RosterCache

JOBS = [
    {"id": "daily-brief", "name": "Daily brief", "kind": "cron", "schedule": "0 7 * * *", "agent": "kevin"},
    {"id": "ghost-job", "name": "Ghost report", "kind": "cron", "schedule": "*/15 * * * *", "agent": "ghost"},
    {"id": "watchdog", "name": "Watchdog ping", "kind": "cron", "schedule": "*/2 * * * *"},
    {"id": "one-shot", "name": "Reminder", "kind": "at", "schedule": "2026-03-01T09:00:00Z"},
    {"id": "paused", "name": "Paused sweep", "kind": "cron", "schedule": "30 2 * * 0", "enabled": False},
]


async def _create_schema(engine: AsyncEngine) -> None:
    async with engine.connect() as conn, conn.begin():
        await conn.run_sync(SQLModel.metadata.create_all)


async def _session_maker() -> async_sessionmaker[AsyncSession]:
    engine = create_async_engine("sqlite+aiosqlite:///:memory:")
    await _create_schema(engine)
    return async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)


@pytest.mark.parametrize(
    ("schedule", "expected"),
    [
        ("*/2 * * * *", True),
        ("*/4 * * * *", True),
        ("*/5 * * * *", False),
        ("0 7 * * *", False),
        ("*/x * * * *", False),
        ("", False),
    ],
)
def test_is_high_frequency(schedule: str, expected: bool) -> None:
    assert is_high_frequency(schedule) is expected


def test_select_cron_jobs_filters_kind_frequency_and_bad_entries() -> None:
    jobs = select_cron_jobs([*JOBS, {"name": "no id"}, "not a job"])

    assert [job.id for job in jobs] == ["daily-brief", "ghost-job", "paused"]


@pytest.mark.asyncio
async def test_sync_upserts_and_links_only_known_agents(tmp_path: Path) -> None:
    session_maker = await _session_maker()
    async with session_maker() as session:
        session.add(Agent(id="kevin", name="Kevin"))
        await session.commit()
    jobs_file = tmp_path / "jobs.json"
    jobs_file.write_text(json.dumps(JOBS), encoding="utf-8")
    sync = CronJobSync(session_maker, path=str(jobs_file), roster_cache=RosterCache(session_maker))

    assert await sync.sync() == 3
    assert await sync.sync() == 3

    async with session_maker() as session:
        tasks = {task.external_id: task for task in await ScheduledTask.objects.all().all(session)}
    assert sorted(tasks) == ["daily-brief", "ghost-job", "paused"]
    assert tasks["daily-brief"].agent_id == "kevin"
    assert tasks["ghost-job"].agent_id is None
    assert tasks["paused"].enabled is False
    assert tasks["daily-brief"].schedule_tz == "America/Chicago"
    assert all(task.source == "openclaw" for task in tasks.values())


@pytest.mark.asyncio
async def test_missing_or_malformed_file_syncs_nothing(tmp_path: Path) -> None:
    session_maker = await _session_maker()
    cache = RosterCache(session_maker)
    broken = tmp_path / "jobs.json"
    broken.write_text("[{", encoding="utf-8")

    assert await CronJobSync(session_maker, path=str(tmp_path / "absent.json"), roster_cache=cache).sync() == 0
    assert await CronJobSync(session_maker, path=str(broken), roster_cache=cache).sync() == 0


@pytest.mark.asyncio
async def test_link_agents_picks_up_agents_added_after_sync(tmp_path: Path) -> None:
    session_maker = await _session_maker()
    cache = RosterCache(session_maker)
    jobs_file = tmp_path / "jobs.json"
    jobs_file.write_text(json.dumps({"jobs": JOBS}), encoding="utf-8")
    sync = CronJobSync(session_maker, path=str(jobs_file), roster_cache=cache)

    assert await sync.link_agents() == 0
    await sync.sync()
    async with session_maker() as session:
        session.add_all([Agent(id="kevin", name="Kevin"), Agent(id="ghost", name="Ghost")])
        await session.commit()
    cache.invalidate()

    assert await sync.link_agents() == 2

    async with session_maker() as session:
        tasks = {task.external_id: task.agent_id for task in await ScheduledTask.objects.all().all(session)}
    assert tasks == {"daily-brief": "kevin", "ghost-job": "ghost", "paused": None}


@pytest.mark.asyncio
async def test_resync_keeps_existing_links_in_the_upsert(tmp_path: Path) -> None:
    session_maker = await _session_maker()
    async with session_maker() as session:
        session.add(Agent(id="kevin", name="Kevin"))
        await session.commit()
    jobs_file = tmp_path / "jobs.json"
    jobs_file.write_text(json.dumps(JOBS), encoding="utf-8")
    sync = CronJobSync(session_maker, path=str(jobs_file), roster_cache=RosterCache(session_maker))
    await sync.sync()

    renamed = [{**JOBS[0], "name": "Morning brief"}]
    jobs_file.write_text(json.dumps(renamed), encoding="utf-8")
    await sync.sync()

    async with session_maker() as session:
        task = await ScheduledTask.objects.filter_by(external_id="daily-brief").first(session)
    assert task is not None
    assert task.name == "Morning brief"
    assert task.agent_id == "kevin"
