"""Incremental, offset-tracked tailing of growing log files.

One ``FileTailer`` owns one file. Each pass reads the bytes appended since the
stored offset, parses them line by line, hands the records to a sink, and only
then advances the offset. A file that shrank below the stored offset was
rotated or truncated and is re-read from byte 0.

Passes are single-flight per tailer: a trigger that arrives while a pass is
running marks one pending re-run instead of starting a second reader.
"""

from __future__ import annotations

import asyncio
import os
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Generic, TypeVar

from mission_ingest.core.logging import get_logger

if TYPE_CHECKING:
    from mission_ingest.services.ingestion.offset_store import OffsetStore

logger = get_logger(__name__)

RecordT = TypeVar("RecordT")
RecordSink = Callable[[Sequence[RecordT]], Awaitable[None]]


@dataclass(frozen=True, slots=True)
class ReadResult:
    """Unread suffix of a file as non-blank lines plus the byte range consumed."""

    lines: list[str]
    start_offset: int
    end_offset: int
    truncated: bool


@dataclass(frozen=True, slots=True)
class TailResult:
    """Outcome of one tail pass."""

    path: str
    start_offset: int = 0
    end_offset: int = 0
    lines: int = 0
    records: int = 0
    truncated: bool = False
    missing: bool = False
    persisted: bool = False
    skipped_busy: bool = False
    error: str | None = None
    parsed: list[object] = field(default_factory=list, repr=False)


def read_new_lines(path: str, from_offset: int) -> ReadResult | None:
    """Read the bytes appended after ``from_offset``; ``None`` if the file is absent."""
    try:
        size = os.stat(path).st_size
    except FileNotFoundError:
        return None

    truncated = size < from_offset
    start = 0 if truncated else from_offset
    if size <= start:
        return ReadResult(lines=[], start_offset=start, end_offset=start, truncated=truncated)

    with open(path, "rb") as handle:
        handle.seek(start)
        data = handle.read(size - start)
    text = data.decode("utf-8", errors="replace")
    lines = [line.rstrip("\r") for line in text.split("\n") if line.strip()]
    return ReadResult(
        lines=lines,
        start_offset=start,
        end_offset=start + len(data),
        truncated=truncated,
    )


class FileTailer(Generic[RecordT]):
    """Tail one file into one sink with at-least-once delivery."""

    def __init__(
        self,
        *,
        path: str,
        label: str,
        parser: Callable[[str], RecordT | None],
        sink: RecordSink[RecordT],
        offset_store: OffsetStore,
    ) -> None:
        self.path = path
        self.label = label
        self._parser = parser
        self._sink = sink
        self._offset_store = offset_store
        self._busy = False
        self._pending = False

    @property
    def busy(self) -> bool:
        return self._busy

    async def trigger(self) -> TailResult:
        """Run a pass unless one is in flight; busy triggers coalesce into one re-run."""
        if self._busy:
            self._pending = True
            logger.debug("ingest.tailer.coalesced", extra={"label": self.label, "path": self.path})
            return TailResult(path=self.path, skipped_busy=True)

        self._busy = True
        try:
            while True:
                self._pending = False
                result = await self._guarded_pass()
                if not self._pending:
                    return result
        finally:
            self._busy = False

    async def _guarded_pass(self) -> TailResult:
        try:
            return await self.run_pass()
        except Exception as exc:
            logger.exception(
                "ingest.tailer.pass_failed",
                extra={"label": self.label, "path": self.path, "error": str(exc)},
            )
            return TailResult(path=self.path, error=str(exc))

    def _parse(self, line: str) -> RecordT | None:
        try:
            return self._parser(line)
        except Exception:
            logger.debug("ingest.tailer.parse_skipped", extra={"label": self.label}, exc_info=True)
            return None

    async def run_pass(self) -> TailResult:
        """Read, parse, persist, then advance; raises if persistence fails."""
        offset = await self._offset_store.get(self.path)
        read = await asyncio.to_thread(read_new_lines, self.path, offset)
        if read is None:
            return TailResult(path=self.path, start_offset=offset, end_offset=offset, missing=True)
        if read.truncated:
            logger.warning(
                "ingest.tailer.truncated",
                extra={"label": self.label, "path": self.path, "stored_offset": offset},
            )
        if read.end_offset <= read.start_offset:
            # A file truncated to empty must still drop its stale offset.
            if read.truncated:
                await self._offset_store.set(self.path, read.end_offset)
            return TailResult(
                path=self.path,
                start_offset=read.start_offset,
                end_offset=read.end_offset,
                truncated=read.truncated,
                persisted=read.truncated,
            )

        records = [record for record in map(self._parse, read.lines) if record is not None]
        logger.info(
            "ingest.tailer.parsed",
            extra={"label": self.label, "records": len(records), "lines": len(read.lines)},
        )

        await self._sink(records)
        await self._offset_store.set(
            self.path,
            read.end_offset,
            last_line=read.lines[-1] if read.lines else None,
        )
        return TailResult(
            path=self.path,
            start_offset=read.start_offset,
            end_offset=read.end_offset,
            lines=len(read.lines),
            records=len(records),
            truncated=read.truncated,
            persisted=True,
            parsed=list(records),
        )
