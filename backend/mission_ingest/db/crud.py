"""Dialect-aware bulk upsert helpers."""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from typing import TYPE_CHECKING, Any

from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlmodel import SQLModel

if TYPE_CHECKING:
    from sqlmodel.ext.asyncio.session import AsyncSession


def _insert_for(session: AsyncSession, model: type[SQLModel]) -> Any:
    dialect = session.bind.dialect.name if session.bind is not None else "postgresql"
    table = model.__table__  # type: ignore[attr-defined]
    if dialect == "sqlite":
        return sqlite_insert(table)
    return pg_insert(table)


async def upsert_rows(
    session: AsyncSession,
    model: type[SQLModel],
    rows: Sequence[Mapping[str, Any]],
    *,
    conflict_columns: Iterable[str],
    update_columns: Iterable[str],
) -> int:
    """Insert ``rows`` or update ``update_columns`` on conflict; caller commits."""
    if not rows:
        return 0
    statement = _insert_for(session, model).values([dict(row) for row in rows])
    update_set = {name: statement.excluded[name] for name in update_columns}
    statement = statement.on_conflict_do_update(
        index_elements=list(conflict_columns),
        set_=update_set,
    )
    await session.execute(statement)
    return len(rows)
