"""Ingestion service wiring: startup syncs, tailers, and the change watcher."""

from __future__ import annotations

import asyncio
import os
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from mission_ingest.core.config import Settings, settings
from mission_ingest.core.logging import get_logger
from mission_ingest.db import session as db_session
from mission_ingest.services.ingestion.cost_parser import parse_cost_line
from mission_ingest.services.ingestion.cron_sync import CronJobSync
from mission_ingest.services.ingestion.log_parser import parse_gateway_line, parse_watchdog_line
from mission_ingest.services.ingestion.markdown_sync import MarkdownTaskSync
from mission_ingest.services.ingestion.offset_store import OffsetStore
from mission_ingest.services.ingestion.roster import RosterCache, RosterSync
from mission_ingest.services.ingestion.session_parser import parse_session_line
from mission_ingest.services.ingestion.sinks import CostSink, EventSink, SessionSink
from mission_ingest.services.ingestion.tailer import FileTailer, TailResult
from mission_ingest.services.ingestion.watcher import FileChangeWatcher

if TYPE_CHECKING:
    from collections.abc import Callable

    from sqlalchemy.ext.asyncio import async_sessionmaker
    from sqlmodel.ext.asyncio.session import AsyncSession

    from mission_ingest.services.ingestion.records import ParsedCostEvent

logger = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class StartupSummary:
    """Counts produced by the startup round."""

    agents: int
    cron_jobs: int
    missions: int
    tail_results: list[TailResult] = field(default_factory=list)


def _cost_parser(agent_id: str) -> Callable[[str], ParsedCostEvent | None]:
    def parse(line: str) -> ParsedCostEvent | None:
        return parse_cost_line(line, agent_id)

    return parse


class IngestionService:
    """Own the tailers and syncs for one OpenClaw installation."""

    def __init__(
        self,
        *,
        config: Settings | None = None,
        session_maker: async_sessionmaker[AsyncSession] | None = None,
    ) -> None:
        self._config = config or settings
        self._owns_engine = session_maker is None
        self._session_maker = session_maker or db_session.get_session_maker()
        self.offset_store = OffsetStore(self._session_maker)
        self.roster_cache = RosterCache(self._session_maker)
        self.roster_sync = RosterSync(
            self._session_maker,
            config_path=self._config.openclaw_config,
            cache=self.roster_cache,
        )
        self.cron_sync = CronJobSync(
            self._session_maker,
            path=self._config.cron_jobs_json,
            roster_cache=self.roster_cache,
            schedule_tz=self._config.cron_schedule_tz,
        )
        self.markdown_sync: MarkdownTaskSync | None = None
        self.tailers: list[FileTailer] = []
        self.watcher = FileChangeWatcher(poll_interval_seconds=self._config.watch_poll_interval_seconds)
        self._started = False

    def log_banner(self) -> None:
        logger.info(
            "ingest.service.banner",
            extra={
                "environment": self._config.environment,
                "openclaw_config": self._config.openclaw_config,
                "gateway_log": self._config.gateway_log,
                "watchdog_log": self._config.watchdog_log,
                "sessions_log": self._config.sessions_log,
                "task_queue_md": self._config.task_queue_md,
                "cron_jobs_json": self._config.cron_jobs_json,
                "cost_logs": len(self._config.cost_logs()),
            },
        )

    def _build_tailers(self) -> None:
        timeout = self._config.persist_timeout_seconds
        event_sink = EventSink(self._session_maker, self.roster_cache, timeout_seconds=timeout)
        self.tailers = [
            FileTailer(
                path=self._config.gateway_log,
                label="gateway",
                parser=parse_gateway_line,
                sink=event_sink,
                offset_store=self.offset_store,
            ),
            FileTailer(
                path=self._config.watchdog_log,
                label="watchdog",
                parser=parse_watchdog_line,
                sink=event_sink,
                offset_store=self.offset_store,
            ),
        ]

        if os.path.exists(self._config.sessions_log):
            self.tailers.append(
                FileTailer(
                    path=self._config.sessions_log,
                    label="sessions",
                    parser=parse_session_line,
                    sink=SessionSink(self._session_maker, timeout_seconds=timeout),
                    offset_store=self.offset_store,
                ),
            )
        else:
            logger.info("ingest.service.sessions_skipped", extra={"path": self._config.sessions_log})

        cost_sink = CostSink(self._session_maker, self.roster_cache, timeout_seconds=timeout)
        for agent_id, path in self._config.cost_logs():
            self.tailers.append(
                FileTailer(
                    path=path,
                    label=f"cost:{agent_id}",
                    parser=_cost_parser(agent_id),
                    sink=cost_sink,
                    offset_store=self.offset_store,
                ),
            )

    async def sync_roster(self) -> int:
        """Re-sync the roster, then relink cron jobs to agents it may have added."""
        agents = await self.roster_sync.sync()
        await self.cron_sync.link_agents()
        return agents

    def _register_watches(self) -> None:
        for tailer in self.tailers:
            self.watcher.watch(
                tailer.path,
                tailer.trigger,
                debounce_seconds=self._config.log_debounce_seconds,
                label=tailer.label,
            )
        self.watcher.watch(
            self._config.openclaw_config,
            self.sync_roster,
            debounce_seconds=self._config.config_debounce_seconds,
            label="config",
        )
        self.watcher.watch(
            self._config.cron_jobs_json,
            self.cron_sync.sync,
            debounce_seconds=self._config.config_debounce_seconds,
            label="cron",
        )
        if self.markdown_sync is not None:
            self.watcher.watch(
                self.markdown_sync.path,
                self.markdown_sync.sync,
                debounce_seconds=self._config.config_debounce_seconds,
                label="markdown",
            )

    async def start(self) -> StartupSummary:
        """Run the startup round: schema, syncs, tailers, and one pass per tailer."""
        if self._started:
            msg = "ingestion service already started"
            raise RuntimeError(msg)
        self._started = True
        self.log_banner()

        if self._config.db_auto_create and self._owns_engine:
            await db_session.init_db()

        agents = await self.roster_sync.sync()
        cron_jobs = await self.cron_sync.sync()

        self._build_tailers()

        missions = 0
        if os.path.exists(self._config.task_queue_md):
            self.markdown_sync = MarkdownTaskSync(self._session_maker, path=self._config.task_queue_md)
            missions = await self.markdown_sync.sync()
        else:
            logger.info("ingest.service.markdown_skipped", extra={"path": self._config.task_queue_md})

        self._register_watches()

        results = [await tailer.trigger() for tailer in self.tailers]
        logger.info(
            "ingest.service.started",
            extra={
                "agents": agents,
                "cron_jobs": cron_jobs,
                "missions": missions,
                "tailers": len(self.tailers),
                "records": sum(result.records for result in results),
            },
        )
        return StartupSummary(agents=agents, cron_jobs=cron_jobs, missions=missions, tail_results=results)

    async def run(self) -> None:
        """Start, then poll for changes until ``stop()`` or cancellation."""
        await self.start()
        logger.info("ingest.service.running", extra={"watched": len(self.watcher.paths)})
        try:
            await self.watcher.run()
        except asyncio.CancelledError:
            logger.info("ingest.service.cancelled")
            raise
        finally:
            await self.stop()

    async def stop(self) -> None:
        self.watcher.close()
        if self._owns_engine:
            await db_session.dispose_engine()
        logger.info("ingest.service.stopped")
