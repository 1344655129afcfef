"""Sync the task-queue checklist document into mission rows.

``## Section`` headers set the status for the items that follow, ``- [ ]`` and
``- [x]`` lines are items, and checked items are always ``done``. Each item is
keyed by ``<file path>:<title>`` so moving it between sections updates the
existing mission instead of creating a new one.
"""

from __future__ import annotations

import asyncio
import re
import time
from pathlib import Path
from typing import TYPE_CHECKING

from mission_ingest.core.logging import get_logger
from mission_ingest.core.time import utcnow
from mission_ingest.models.missions import Mission
from mission_ingest.services.ingestion.records import MissionStatus, ParsedMission

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import async_sessionmaker
    from sqlmodel.ext.asyncio.session import AsyncSession

logger = get_logger(__name__)

MARKDOWN_SOURCE = "markdown"

_HEADER_RE = re.compile(r"^##\s+(?P<header>.+)$")
_TASK_RE = re.compile(r"^-\s+\[(?P<mark>[ xX])\]\s+(?P<title>.+)$")

STATUS_MAP: dict[str, MissionStatus] = {
    "backlog": "backlog",
    "to do": "backlog",
    "todo": "backlog",
    "in progress": "in_progress",
    "doing": "in_progress",
    "review": "review",
    "done": "done",
    "completed": "done",
}


def normalize_status(header: str) -> MissionStatus:
    return STATUS_MAP.get(header.strip().lower(), "backlog")


def markdown_ref_for(file_path: str, title: str) -> str:
    return f"{file_path}:{title}"


def parse_task_queue(content: str, file_path: str) -> list[ParsedMission]:
    """Parse checklist items; a title listed twice resolves to its last occurrence."""
    missions: dict[str, ParsedMission] = {}
    current_status: MissionStatus = "backlog"
    for raw_line in content.split("\n"):
        line = raw_line.rstrip("\r")
        header = _HEADER_RE.match(line)
        if header is not None:
            current_status = normalize_status(header["header"])
            continue
        task = _TASK_RE.match(line)
        if task is None:
            continue
        title = task["title"].strip()
        if not title:
            continue
        completed = task["mark"] != " "
        ref = markdown_ref_for(file_path, title)
        missions.pop(ref, None)
        missions[ref] = ParsedMission(
            title=title,
            status="done" if completed else current_status,
            markdown_ref=ref,
            completed=completed,
        )
    return list(missions.values())


class MarkdownTaskSync:
    """Upsert missions parsed from one task-queue markdown file."""

    def __init__(self, session_maker: async_sessionmaker[AsyncSession], *, path: str) -> None:
        self._session_maker = session_maker
        self.path = path

    async def sync(self) -> int:
        """Return the number of missions upserted; 0 when the file is unreadable."""
        try:
            content = await asyncio.to_thread(Path(self.path).read_text, encoding="utf-8")
        except OSError as exc:
            logger.error("ingest.markdown.unreadable", extra={"path": self.path, "error": str(exc)})
            return 0

        parsed = parse_task_queue(content, self.path)
        if not parsed:
            return 0

        inserted = 0
        updated = 0
        async with self._session_maker() as session:
            for item in parsed:
                now = utcnow()
                existing = await Mission.objects.filter_by(markdown_ref=item.markdown_ref).first(session)
                if existing is not None:
                    existing.title = item.title
                    existing.status = item.status
                    if not item.completed:
                        existing.completed_at = None
                    elif existing.completed_at is None:
                        existing.completed_at = now
                    existing.updated_at = now
                    session.add(existing)
                    updated += 1
                    continue
                session.add(
                    Mission(
                        title=item.title,
                        status=item.status,
                        source=MARKDOWN_SOURCE,
                        markdown_ref=item.markdown_ref,
                        sort_order=time.time_ns() // 1_000_000,
                        completed_at=now if item.completed else None,
                        created_at=now,
                        updated_at=now,
                    ),
                )
                inserted += 1
            await session.commit()

        logger.info(
            "ingest.markdown.synced",
            extra={"path": self.path, "inserted": inserted, "updated": updated},
        )
        return inserted + updated
