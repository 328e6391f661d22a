"""Debouncer for batched file-change notifications."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Iterable

logger = logging.getLogger(__name__)


class Debouncer:
    """Collects paths and fires one callback after a quiet period.

    Each ``trigger`` re-arms the timer. When it fires, the callback receives
    every distinct path accumulated since the last fire, in arrival order.
    Must be used from within a running event loop.
    """

    def __init__(self, delay: float, callback: Callable[[list[str]], Awaitable[None]]):
        self.delay = delay
        self._callback = callback
        self._paths: dict[str, None] = {}
        self._timer: asyncio.TimerHandle | None = None
        self._tasks: set[asyncio.Task] = set()

    @property
    def pending(self) -> bool:
        return self._timer is not None

    def trigger(self, paths: Iterable[str]) -> None:
        for path in paths:
            self._paths[path] = None
        if self._timer is not None:
            self._timer.cancel()
        loop = asyncio.get_running_loop()
        self._timer = loop.call_later(self.delay, self._fire)

    def cancel(self) -> None:
        """Drop the pending batch without firing."""
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        self._paths.clear()

    async def flush(self) -> None:
        """Fire the pending batch now, if any."""
        if self._timer is None:
            return
        self._timer.cancel()
        self._timer = None
        await self._run(self._take())

    async def wait(self) -> None:
        """Wait for every fired callback that is still running."""
        while self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
            self._tasks -= {t for t in self._tasks if t.done()}

    def close(self) -> None:
        """Cancel the pending batch and any callback still running."""
        self.cancel()
        for task in list(self._tasks):
            task.cancel()

    def _take(self) -> list[str]:
        paths = list(self._paths)
        self._paths.clear()
        return paths

    def _fire(self) -> None:
        self._timer = None
        task = asyncio.get_running_loop().create_task(self._run(self._take()))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _run(self, paths: list[str]) -> None:
        if not paths:
            return
        try:
            await self._callback(paths)
        except Exception:
            logger.exception("Debounced callback failed for %d paths", len(paths))
