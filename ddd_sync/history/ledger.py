"""Change history ledger — an append-only record of spec saves.

Storage layout:
    <state_dir>/change-history.yaml
The file holds ``{changes: [ChangeHistoryEntry, ...]}`` and is rewritten in
full on every append.

Saves are deduplicated by content checksum against the last recorded
checksum for the same file, counting only entries still pending
implementation. Deletions are never deduplicated.
"""

from __future__ import annotations

import asyncio
import logging

from ddd_sync.config import SyncConfig
from ddd_sync.errors import FileMissingError
from ddd_sync.models.change_history import (
    ChangeHistoryEntry,
    ChangeScope,
    ChangeStatus,
    format_change_id,
)
from ddd_sync.sync.events import EventBus, SpecSaved
from ddd_sync.sync.write_guard import WriteGuard
from ddd_sync.utils.clock import SystemClock, iso_timestamp
from ddd_sync.utils.project_files import ProjectFiles, short_checksum
from ddd_sync.utils.yaml_io import dump_yaml, parse_yaml_mapping

logger = logging.getLogger(__name__)

DELETED = "deleted"
UPDATED = "updated"
DELETION_SENTINEL = "__deleted__:"


class ChangeHistoryLedger:
    """Loads, appends to, and persists the change history of a project."""

    def __init__(
        self,
        files: ProjectFiles,
        config: SyncConfig,
        guard: WriteGuard,
        clock: SystemClock | None = None,
        bus: EventBus | None = None,
    ):
        self.files = files
        self.config = config
        self.guard = guard
        self.clock = clock or SystemClock()
        self.bus = bus or EventBus()

        self.entries: list[ChangeHistoryEntry] = []
        self.last_checksum_by_file: dict[str, str] = {}
        # Entries accumulated since the last explicit dismiss, and whether
        # they are currently shown. Auto-close hides without clearing.
        self.notification: list[ChangeHistoryEntry] = []
        self.notification_visible = False
        self._persist_lock = asyncio.Lock()

    async def load(self) -> int:
        """Read the ledger from disk, replacing in-memory state.

        A missing or malformed file yields an empty ledger.

        Returns:
            The number of entries loaded.
        """
        path = self.config.history_file
        try:
            text = await self.files.read_text(path)
        except FileMissingError:
            text = ""

        entries = []
        raw = parse_yaml_mapping(text, path).get("changes") or []
        if not isinstance(raw, list):
            logger.warning("Ignoring %s: 'changes' is not a list", path)
            raw = []
        for item in raw:
            try:
                entries.append(ChangeHistoryEntry.from_dict(item))
            except (AttributeError, KeyError, TypeError, ValueError) as e:
                logger.warning("Skipping malformed change entry in %s: %s", path, e)

        self.entries = entries
        self._rebuild_index()
        self.notification = []
        self.notification_visible = False
        return len(entries)

    async def record_save(
        self,
        spec_file: str,
        contents: str,
        scope: ChangeScope,
        action: str | None = None,
    ) -> ChangeHistoryEntry | None:
        """Record a save of ``spec_file``.

        Returns:
            The appended entry, or None when the content matches the last
            pending checksum for this file.
        """
        timestamp = iso_timestamp(self.clock.now())
        is_deletion = action == DELETED
        if is_deletion:
            checksum = short_checksum(DELETION_SENTINEL + timestamp)
        else:
            checksum = short_checksum(contents)
            if self.last_checksum_by_file.get(spec_file) == checksum:
                logger.debug("Unchanged save of %s, not recorded", spec_file)
                return None

        entry = ChangeHistoryEntry(
            id=self._next_id(),
            timestamp=timestamp,
            scope=scope,
            spec_file=spec_file,
            spec_checksum=checksum,
            action=action if action and action != UPDATED else None,
        )
        self.entries.append(entry)
        self.last_checksum_by_file[spec_file] = checksum
        self.notification.append(entry)
        self.notification_visible = True

        await self._persist()
        logger.info("Recorded %s for %s (%s)", entry.id, spec_file, action or UPDATED)
        self.bus.publish(SpecSaved(entry))
        return entry

    async def mark_implemented(self, entry_id: str, code_files: list[str]) -> ChangeHistoryEntry:
        """Move an entry to ``implemented``.

        Raises:
            KeyError: No entry has this id.
        """
        entry = self.get(entry_id)
        if entry is None:
            raise KeyError(entry_id)

        entry.status = ChangeStatus.IMPLEMENTED
        entry.implemented_at = iso_timestamp(self.clock.now())
        entry.code_files = list(code_files)
        self._rebuild_index()
        await self._persist()
        return entry

    def get(self, entry_id: str) -> ChangeHistoryEntry | None:
        for entry in self.entries:
            if entry.id == entry_id:
                return entry
        return None

    def pending(self) -> list[ChangeHistoryEntry]:
        return [e for e in self.entries if e.is_pending]

    def entries_for(self, spec_file: str) -> list[ChangeHistoryEntry]:
        return [e for e in self.entries if e.spec_file == spec_file]

    def hide_notification(self) -> None:
        """Auto-close: hide the batch but keep its entries."""
        self.notification_visible = False

    def dismiss_notification(self) -> None:
        """Explicit dismiss: clear the batch and hide it."""
        self.notification = []
        self.notification_visible = False

    def reset(self) -> None:
        self.entries = []
        self.last_checksum_by_file = {}
        self.dismiss_notification()

    def _next_id(self) -> str:
        last = self.entries[-1].number if self.entries else 0
        return format_change_id(last + 1)

    def _rebuild_index(self) -> None:
        # Implemented entries do not block re-recording the same content.
        self.last_checksum_by_file = {
            e.spec_file: e.spec_checksum for e in self.entries if e.is_pending
        }

    async def _persist(self) -> None:
        # Snapshot under the lock: the last write holds every appended entry.
        async with self._persist_lock:
            content = dump_yaml({"changes": [e.to_dict() for e in self.entries]})
            try:
                await self.files.create_directory(self.config.state_dir)
                self.guard.mark_writing()
                await self.files.write_text(self.config.history_file, content)
            except OSError as e:
                logger.warning("Could not write %s: %s", self.config.history_file, e)
