"""Trailing-edge debounce for bursty change notifications."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable

from mission_ingest.core.logging import get_logger

logger = get_logger(__name__)


class Debouncer:
    """Run ``callback`` once after ``delay_seconds`` without further triggers.

    Every ``trigger()`` restarts the quiet-period timer. A callback that already
    started is never cancelled by later triggers; those arm a new timer. A timer
    that fires while the callback still runs queues one rerun instead of
    overlapping it.
    """

    def __init__(
        self,
        delay_seconds: float,
        callback: Callable[[], Awaitable[object]],
        *,
        label: str = "",
    ) -> None:
        if delay_seconds < 0:
            msg = "delay_seconds must be non-negative"
            raise ValueError(msg)
        self._delay_seconds = delay_seconds
        self._callback = callback
        self._label = label
        self._timer: asyncio.Task[None] | None = None
        self._running: set[asyncio.Task[None]] = set()
        self._busy = False
        self._rerun = False

    @property
    def pending(self) -> bool:
        return self._timer is not None and not self._timer.done()

    def trigger(self) -> None:
        if self._timer is not None and not self._timer.done():
            self._timer.cancel()
        self._timer = asyncio.get_running_loop().create_task(self._fire_after_delay())

    async def _fire_after_delay(self) -> None:
        await asyncio.sleep(self._delay_seconds)
        task = asyncio.get_running_loop().create_task(self._invoke())
        self._running.add(task)
        task.add_done_callback(self._running.discard)

    async def _invoke(self) -> None:
        if self._busy:
            self._rerun = True
            return
        self._busy = True
        try:
            while True:
                self._rerun = False
                try:
                    await self._callback()
                except Exception as exc:
                    logger.exception(
                        "ingest.debounce.callback_failed",
                        extra={"label": self._label, "error": str(exc)},
                    )
                if not self._rerun:
                    break
                logger.debug("ingest.debounce.coalesced_rerun", extra={"label": self._label})
        finally:
            self._busy = False

    async def flush(self) -> None:
        """Run an armed callback now instead of waiting out the quiet period."""
        if self._timer is None or self._timer.done():
            return
        self._timer.cancel()
        self._timer = None
        await self._invoke()

    async def wait_idle(self) -> None:
        """Wait for any armed timer and the callbacks it started."""
        if self._timer is not None:
            try:
                await self._timer
            except asyncio.CancelledError:
                pass
        if self._running:
            await asyncio.gather(*list(self._running), return_exceptions=True)

    def cancel(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        for task in list(self._running):
            task.cancel()
