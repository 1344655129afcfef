"""Persistent byte offsets for tailed files."""

from __future__ import annotations

from typing import TYPE_CHECKING
from uuid import uuid4

from sqlalchemy import delete
from sqlmodel import col

from mission_ingest.core.time import utcnow
from mission_ingest.db.crud import upsert_rows
from mission_ingest.models.ingestion_state import IngestionState

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import async_sessionmaker
    from sqlmodel.ext.asyncio.session import AsyncSession

_LAST_LINE_MAX_CHARS = 500


class OffsetStore:
    """Map of file path to last consumed byte offset (last write wins)."""

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]) -> None:
        self._session_maker = session_maker

    async def get(self, path: str) -> int:
        async with self._session_maker() as session:
            row = await IngestionState.objects.filter_by(file_path=path).first(session)
        return row.last_offset if row is not None else 0

    async def set(self, path: str, offset: int, *, last_line: str | None = None) -> None:
        if offset < 0:
            msg = "offset must be non-negative"
            raise ValueError(msg)
        trimmed = last_line[:_LAST_LINE_MAX_CHARS] if last_line else None
        async with self._session_maker() as session:
            await upsert_rows(
                session,
                IngestionState,
                [
                    {
                        "id": uuid4(),
                        "file_path": path,
                        "last_offset": offset,
                        "last_line": trimmed,
                        "updated_at": utcnow(),
                    },
                ],
                conflict_columns=("file_path",),
                update_columns=("last_offset", "last_line", "updated_at"),
            )
            await session.commit()

    async def reset(self, path: str | None = None) -> None:
        """Forget one path's offset, or every offset when ``path`` is None."""
        statement = delete(IngestionState)
        if path is not None:
            statement = statement.where(col(IngestionState.file_path) == path)
        async with self._session_maker() as session:
            await session.execute(statement)
            await session.commit()
