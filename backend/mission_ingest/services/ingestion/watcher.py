"""Polling file-change watcher feeding per-path debouncers."""

from __future__ import annotations

import asyncio
import os
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from mission_ingest.core.logging import get_logger
from mission_ingest.services.ingestion.debounce import Debouncer

logger = get_logger(__name__)

FileSignature = tuple[int, int]


def file_signature(path: str) -> FileSignature | None:
    """Return ``(mtime_ns, size)`` for ``path`` or ``None`` when it does not exist."""
    try:
        stat = os.stat(path)
    except FileNotFoundError:
        return None
    return stat.st_mtime_ns, stat.st_size


@dataclass
class WatchEntry:
    path: str
    label: str
    debouncer: Debouncer
    signature: FileSignature | None


class FileChangeWatcher:
    """Detect writes by polling stat signatures and fire debounced handlers.

    A handler fires once the file has stopped changing for its debounce window,
    so a burst of appends produces one notification after the write settles.
    Deleting a file does not fire; re-creating it does.
    """

    def __init__(self, *, poll_interval_seconds: float) -> None:
        self._poll_interval_seconds = poll_interval_seconds
        self._entries: dict[str, WatchEntry] = {}
        self._stop_event = asyncio.Event()

    @property
    def paths(self) -> list[str]:
        return list(self._entries)

    def watch(
        self,
        path: str,
        handler: Callable[[], Awaitable[object]],
        *,
        debounce_seconds: float,
        label: str,
    ) -> None:
        if path in self._entries:
            msg = f"{path} is already watched"
            raise ValueError(msg)
        self._entries[path] = WatchEntry(
            path=path,
            label=label,
            debouncer=Debouncer(debounce_seconds, handler, label=label),
            signature=file_signature(path),
        )
        logger.info("ingest.watcher.watching", extra={"label": label, "path": path})

    async def poll_once(self) -> list[str]:
        """Check every watched path once; return the labels that were triggered."""
        triggered: list[str] = []
        for entry in self._entries.values():
            signature = await asyncio.to_thread(file_signature, entry.path)
            if signature == entry.signature:
                continue
            entry.signature = signature
            if signature is None:
                logger.info("ingest.watcher.file_removed", extra={"label": entry.label, "path": entry.path})
                continue
            entry.debouncer.trigger()
            triggered.append(entry.label)
        return triggered

    async def run(self) -> None:
        """Poll until ``stop()`` is called; poll errors are logged and retried."""
        self._stop_event.clear()
        while not self._stop_event.is_set():
            try:
                await self.poll_once()
            except Exception as exc:
                logger.exception("ingest.watcher.poll_failed", extra={"error": str(exc)})
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self._poll_interval_seconds)
            except TimeoutError:
                continue

    def stop(self) -> None:
        self._stop_event.set()

    async def wait_idle(self) -> None:
        for entry in self._entries.values():
            await entry.debouncer.wait_idle()

    def close(self) -> None:
        self.stop()
        for entry in self._entries.values():
            entry.debouncer.cancel()
