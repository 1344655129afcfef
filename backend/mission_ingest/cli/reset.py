"""CLI that clears ingested rows and file offsets for a fresh re-ingest."""

from __future__ import annotations

import argparse
import asyncio
import sys
from typing import TYPE_CHECKING

from sqlalchemy import delete

from mission_ingest.core.config import ensure_startup_ready, settings
from mission_ingest.core.errors import StartupConfigError
from mission_ingest.db import session as db_session
from mission_ingest.models.cost_events import CostEvent
from mission_ingest.models.events import Event
from mission_ingest.models.ingestion_state import IngestionState

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import async_sessionmaker
    from sqlmodel.ext.asyncio.session import AsyncSession

PROTECTED_ENVIRONMENTS = frozenset({"production"})


async def reset_ingestion(session_maker: async_sessionmaker[AsyncSession]) -> dict[str, int]:
    """Delete ingested event rows and offsets; return rows removed per table.

    Cost rows are not deduplicated on insert, so they are cleared together with
    the offsets that would otherwise re-read them.
    """
    removed: dict[str, int] = {}
    async with session_maker() as session:
        tables = (("events", Event), ("cost_events", CostEvent), ("ingestion_state", IngestionState))
        for name, model in tables:
            result = await session.execute(delete(model))
            removed[name] = int(result.rowcount or 0)
        await session.commit()
    return removed


def _build_parser() -> argparse.ArgumentParser:
    return argparse.ArgumentParser(
        prog="python -m mission_ingest.cli.reset",
        description="Delete ingested rows and tail offsets so logs are re-read from the start.",
    )


async def _reset() -> dict[str, int]:
    try:
        return await reset_ingestion(db_session.get_session_maker())
    finally:
        await db_session.dispose_engine()


def main(argv: list[str] | None = None) -> int:
    _build_parser().parse_args(argv)
    if settings.environment.strip().lower() in PROTECTED_ENVIRONMENTS:
        print("Refusing to reset in production environment.", file=sys.stderr)
        return 1
    try:
        ensure_startup_ready(settings)
        removed = asyncio.run(_reset())
    except StartupConfigError as exc:
        print(f"reset error: {exc}", file=sys.stderr)
        return 1

    for name, count in removed.items():
        print(f"Cleared {name}: {count}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
