"""Clock abstraction so timestamps and the write-guard window can be faked in tests."""

from __future__ import annotations

import time
from datetime import datetime, timezone


class SystemClock:
    """Wall clock for timestamps, monotonic clock for time windows."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)

    def monotonic(self) -> float:
        return time.monotonic()


def iso_timestamp(moment: datetime) -> str:
    """Format a datetime as UTC ISO 8601 with millisecond precision and a ``Z`` suffix."""
    moment = moment.astimezone(timezone.utc)
    return moment.strftime("%Y-%m-%dT%H:%M:%S.") + f"{moment.microsecond // 1000:03d}Z"


def sanitize_timestamp(timestamp: str) -> str:
    """Make an ISO timestamp safe to use as a file name (``:`` and ``.`` become ``-``)."""
    return timestamp.replace(":", "-").replace(".", "-")
