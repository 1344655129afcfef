"""Batched persistence of parsed records.

Every sink writes fixed-size chunks, each in its own transaction and bounded by
a timeout. A failing chunk is logged and the remaining chunks are still
attempted, but the sink raises ``IngestionPersistError`` afterwards so the
tailer does not advance the file offset past data that failed to persist.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from typing import TYPE_CHECKING, Any, TypeVar

from sqlmodel import col, select

from mission_ingest.core.config import settings
from mission_ingest.core.errors import IngestionPersistError
from mission_ingest.core.logging import get_logger
from mission_ingest.models.cost_events import CostEvent
from mission_ingest.models.events import Event
from mission_ingest.models.sessions import AgentSession
from mission_ingest.services.ingestion.roster import RosterCache, apply_event_status_updates

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import async_sessionmaker
    from sqlmodel.ext.asyncio.session import AsyncSession

    from mission_ingest.services.ingestion.records import ParsedCostEvent, ParsedEvent, ParsedSession

logger = get_logger(__name__)

EVENT_CHUNK_SIZE = 100
SESSION_CHUNK_SIZE = 50
COST_CHUNK_SIZE = 100

RowT = TypeVar("RowT")


def chunked(items: Sequence[RowT], size: int) -> list[Sequence[RowT]]:
    """Split ``items`` into consecutive slices of at most ``size`` entries."""
    if size <= 0:
        msg = "chunk size must be positive"
        raise ValueError(msg)
    return [items[index : index + size] for index in range(0, len(items), size)]


async def persist_chunks(
    *,
    target: str,
    rows: Sequence[RowT],
    chunk_size: int,
    write_chunk: Callable[[Sequence[RowT]], Awaitable[int]],
    timeout_seconds: float,
) -> int:
    """Write all chunks, then raise if any of them failed; return rows written."""
    chunks = chunked(rows, chunk_size)
    failed = 0
    written = 0
    for index, chunk in enumerate(chunks):
        try:
            written += await asyncio.wait_for(write_chunk(chunk), timeout=timeout_seconds)
        except Exception as exc:
            failed += 1
            logger.exception(
                "ingest.persist.chunk_failed",
                extra={"target": target, "chunk_index": index, "chunk_rows": len(chunk), "error": str(exc)},
            )
    if failed:
        raise IngestionPersistError(target, failed, len(chunks))
    return written


class EventSink:
    """Insert activity events with agent ids sanitized against the roster."""

    def __init__(
        self,
        session_maker: async_sessionmaker[AsyncSession],
        roster_cache: RosterCache,
        *,
        chunk_size: int = EVENT_CHUNK_SIZE,
        timeout_seconds: float | None = None,
    ) -> None:
        self._session_maker = session_maker
        self._roster_cache = roster_cache
        self._chunk_size = chunk_size
        self._timeout_seconds = timeout_seconds or settings.persist_timeout_seconds

    async def _write_chunk(self, rows: Sequence[dict[str, Any]]) -> int:
        async with self._session_maker() as session:
            session.add_all([Event(**row) for row in rows])
            await session.commit()
        return len(rows)

    async def __call__(self, events: Sequence[ParsedEvent]) -> None:
        if not events:
            return
        valid_ids = await self._roster_cache.valid_ids()
        rows = []
        for event in events:
            row = event.as_row()
            row["agent_id"] = RosterCache.sanitize(event.agent_id, valid_ids)
            rows.append(row)

        await persist_chunks(
            target="events",
            rows=rows,
            chunk_size=self._chunk_size,
            write_chunk=self._write_chunk,
            timeout_seconds=self._timeout_seconds,
        )
        await self._update_statuses(events, valid_ids)

    async def _update_statuses(self, events: Sequence[ParsedEvent], valid_ids: frozenset[str]) -> None:
        try:
            async with self._session_maker() as session:
                changes = await apply_event_status_updates(session, events, valid_ids=valid_ids)
                await session.commit()
        except Exception as exc:
            # Status is re-derived from the next bot_start/SIGTERM line.
            logger.exception("ingest.roster.status_update_failed", extra={"error": str(exc)})
            return
        if changes:
            logger.info("ingest.roster.status_updated", extra={"changes": changes})


class SessionSink:
    """Insert session rows, skipping lines already persisted (by ``line_hash``)."""

    def __init__(
        self,
        session_maker: async_sessionmaker[AsyncSession],
        *,
        chunk_size: int = SESSION_CHUNK_SIZE,
        timeout_seconds: float | None = None,
    ) -> None:
        self._session_maker = session_maker
        self._chunk_size = chunk_size
        self._timeout_seconds = timeout_seconds or settings.persist_timeout_seconds

    async def _write_chunk(self, rows: Sequence[dict[str, Any]]) -> int:
        hashes = [row["line_hash"] for row in rows]
        async with self._session_maker() as session:
            existing = set(
                (
                    await session.exec(
                        select(AgentSession.line_hash).where(col(AgentSession.line_hash).in_(hashes)),
                    )
                ).all(),
            )
            fresh: dict[str, dict[str, Any]] = {}
            for row in rows:
                if row["line_hash"] in existing or row["line_hash"] in fresh:
                    continue
                fresh[row["line_hash"]] = row
            if fresh:
                session.add_all([AgentSession(**row) for row in fresh.values()])
                await session.commit()
        skipped = len(rows) - len(fresh)
        if skipped:
            logger.info("ingest.sessions.duplicates_skipped", extra={"count": skipped})
        return len(fresh)

    async def __call__(self, sessions: Sequence[ParsedSession]) -> None:
        if not sessions:
            return
        await persist_chunks(
            target="sessions",
            rows=[record.as_row() for record in sessions],
            chunk_size=self._chunk_size,
            write_chunk=self._write_chunk,
            timeout_seconds=self._timeout_seconds,
        )


class CostSink:
    """Insert cost events with agent ids sanitized against the roster."""

    def __init__(
        self,
        session_maker: async_sessionmaker[AsyncSession],
        roster_cache: RosterCache,
        *,
        chunk_size: int = COST_CHUNK_SIZE,
        timeout_seconds: float | None = None,
    ) -> None:
        self._session_maker = session_maker
        self._roster_cache = roster_cache
        self._chunk_size = chunk_size
        self._timeout_seconds = timeout_seconds or settings.persist_timeout_seconds

    async def _write_chunk(self, rows: Sequence[dict[str, Any]]) -> int:
        async with self._session_maker() as session:
            session.add_all([CostEvent(**row) for row in rows])
            await session.commit()
        return len(rows)

    async def __call__(self, costs: Sequence[ParsedCostEvent]) -> None:
        if not costs:
            return
        valid_ids = await self._roster_cache.valid_ids()
        rows = []
        for cost in costs:
            row = cost.as_row()
            row["agent_id"] = RosterCache.sanitize(cost.agent_id, valid_ids)
            rows.append(row)
        await persist_chunks(
            target="cost_events",
            rows=rows,
            chunk_size=self._chunk_size,
            write_chunk=self._write_chunk,
            timeout_seconds=self._timeout_seconds,
        )

