"""Write guard — suppress change notifications caused by our own writes.

The change-notification channel carries paths only, not the writer's
identity. Every persistence call marks the guard just before writing, and
the notification handler drops batches that arrive while the window is open.
An external edit landing inside the window is dropped too; the next
notification or a manual reload picks it up.
"""

from __future__ import annotations

import time
from typing import Callable

DEFAULT_WINDOW = 2.0  # seconds


class WriteGuard:
    """A single deadline shared by every writer of one project."""

    def __init__(self, window: float = DEFAULT_WINDOW, clock: Callable[[], float] = time.monotonic):
        self.window = window
        self._clock = clock
        self._deadline = 0.0

    def mark_writing(self) -> None:
        self._deadline = self._clock() + self.window

    def is_own_write(self) -> bool:
        return self._clock() < self._deadline

    def remaining(self) -> float:
        """Seconds left in the current window, 0 when closed."""
        return max(0.0, self._deadline - self._clock())
