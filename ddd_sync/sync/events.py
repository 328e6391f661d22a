"""Typed in-process event bus connecting the ledger, detector, and reconciler."""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import Callable, TypeVar

from ddd_sync.models.change_history import ChangeHistoryEntry
from ddd_sync.models.mapping import DriftInfo, ReconciliationReport, SyncScore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SpecSaved:
    entry: ChangeHistoryEntry


@dataclass(frozen=True)
class DriftDetected:
    drift_items: tuple[DriftInfo, ...]
    score: SyncScore


@dataclass(frozen=True)
class DriftResolved:
    report: ReconciliationReport


E = TypeVar("E")


class EventBus:
    """Synchronous publish/subscribe keyed by event class."""

    def __init__(self):
        self._handlers: dict[type, list[Callable]] = defaultdict(list)

    def subscribe(self, event_type: type[E], handler: Callable[[E], None]) -> Callable[[], None]:
        """Register ``handler``; returns a callable that unsubscribes it."""
        self._handlers[event_type].append(handler)

        def unsubscribe() -> None:
            if handler in self._handlers[event_type]:
                self._handlers[event_type].remove(handler)

        return unsubscribe

    def publish(self, event) -> None:
        for handler in list(self._handlers[type(event)]):
            try:
                handler(event)
            except Exception:
                logger.exception("Handler %r failed for %s", handler, type(event).__name__)
