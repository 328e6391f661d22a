"""Reconciliation — resolve active drift items and keep an audit trail.

Every accept or ignore produces a report under ``reconciliations/``. Reports
are advisory: a failed write is logged and the resolution still stands.
Bulk resolution is not transactional; if it stops part way, the mappings
already updated in memory are not rolled back.
"""

from __future__ import annotations

import logging
import uuid
from typing import Callable

from ddd_sync.config import SyncConfig
from ddd_sync.errors import FileMissingError
from ddd_sync.models.mapping import (
    DriftInfo,
    ReconciliationAction,
    ReconciliationEntry,
    ReconciliationReport,
    SyncScore,
    SyncState,
)
from ddd_sync.sync.events import DriftResolved, EventBus
from ddd_sync.sync.mapping_store import MappingStore
from ddd_sync.sync.score import compute_sync_score
from ddd_sync.sync.session import SyncSession
from ddd_sync.sync.write_guard import WriteGuard
from ddd_sync.utils.clock import SystemClock, iso_timestamp, sanitize_timestamp
from ddd_sync.utils.project_files import ProjectFiles
from ddd_sync.utils.yaml_io import dump_yaml, parse_yaml_mapping

logger = logging.getLogger(__name__)

Clipboard = Callable[[str], object]


class ReportStore:
    """Writes and lists reconciliation reports, one YAML file each."""

    def __init__(self, files: ProjectFiles, config: SyncConfig, guard: WriteGuard):
        self.files = files
        self.config = config
        self.guard = guard

    def path_for(self, report: ReconciliationReport) -> str:
        return f"{self.config.reports_dir}/{sanitize_timestamp(report.timestamp)}.yaml"

    async def _free_path(self, report: ReconciliationReport) -> str:
        """The report path, suffixed ``_1``, ``_2``... when that name is taken."""
        path = self.path_for(report)
        stem = path.removesuffix(".yaml")
        n = 0
        while await self.files.exists(path):
            n += 1
            path = f"{stem}_{n}.yaml"
        return path

    async def write(self, report: ReconciliationReport) -> str | None:
        """Persist a report. Returns its path, or None when the write failed.

        Reports resolved within the same millisecond get numbered names
        instead of overwriting each other.
        """
        path = self.path_for(report)
        try:
            await self.files.create_directory(self.config.reports_dir)
            path = await self._free_path(report)
            self.guard.mark_writing()
            await self.files.write_text(path, dump_yaml(report.to_dict()))
        except OSError as e:
            logger.warning("Could not write reconciliation report %s: %s", path, e)
            return None
        return path

    async def list_reports(self) -> list[ReconciliationReport]:
        """All readable reports, oldest first."""
        reports = []
        for name in await self.files.list_directory(self.config.reports_dir):
            if not name.endswith(".yaml"):
                continue
            path = f"{self.config.reports_dir}/{name}"
            try:
                data = parse_yaml_mapping(await self.files.read_text(path), path)
                reports.append(ReconciliationReport.from_dict(data))
            except FileMissingError:
                continue
            except (AttributeError, KeyError, TypeError, ValueError) as e:
                logger.warning("Skipping malformed report %s: %s", path, e)
        return sorted(reports, key=lambda r: r.timestamp)


class ReconciliationEngine:
    """Applies accept / reimpl / ignore to the session's active drift items."""

    def __init__(
        self,
        session: SyncSession,
        mapping_store: MappingStore,
        report_store: ReportStore,
        config: SyncConfig,
        clock: SystemClock | None = None,
        clipboard: Clipboard | None = None,
        bus: EventBus | None = None,
    ):
        self.session = session
        self.mapping_store = mapping_store
        self.report_store = report_store
        self.config = config
        self.clock = clock or SystemClock()
        self.clipboard = clipboard
        self.bus = bus or EventBus()

    def compute_score(self) -> SyncScore:
        s = self.session
        return compute_sync_score(s.mappings, s.drift_items, s.registry, s.annotations)

    async def resolve_flow(
        self, flow_key: str, action: ReconciliationAction | str
    ) -> ReconciliationReport | None:
        """Resolve the active drift item for one flow.

        No-op when the flow has no active drift. ``reimpl`` only hands the
        implement command to the clipboard; the drift item stays active.

        Returns:
            The written report, or None when nothing was resolved.
        """
        action = ReconciliationAction(action)
        drift = self.session.find_drift(flow_key)
        if drift is None:
            logger.debug("No active drift for %s, nothing to resolve", flow_key)
            return None

        if action == ReconciliationAction.REIMPL:
            self.request_reimplementation(flow_key)
            return None

        before = self.compute_score()
        if action == ReconciliationAction.ACCEPT:
            self._accept(drift)
            self.session.drop_drift({flow_key})
            await self.mapping_store.save(self.session.mappings)
        else:
            self.session.ignored.add(flow_key)
            self.session.drop_drift({flow_key})

        entries = [self._entry(drift, action)]
        return await self._finish(entries, before)

    async def resolve_all(self, action: ReconciliationAction | str) -> ReconciliationReport | None:
        """Accept or ignore every active drift item in one batch.

        Works on a snapshot of the drift list, persists mappings once after
        the loop, and writes a single report.

        Raises:
            ValueError: ``action`` is ``reimpl`` or not a known action.
        """
        action = ReconciliationAction(action)
        if action == ReconciliationAction.REIMPL:
            raise ValueError("reimpl cannot be applied to all drift items at once")

        snapshot = list(self.session.drift_items)
        if not snapshot:
            return None

        before = self.compute_score()
        entries = []
        for drift in snapshot:
            if action == ReconciliationAction.ACCEPT:
                self._accept(drift)
            else:
                self.session.ignored.add(drift.flow_key)
            entries.append(self._entry(drift, action))

        self.session.drop_drift({d.flow_key for d in snapshot})
        if action == ReconciliationAction.ACCEPT:
            await self.mapping_store.save(self.session.mappings)

        return await self._finish(entries, before)

    def request_reimplementation(self, flow_key: str) -> str:
        """Send the implement command for a flow to the clipboard and return it."""
        command = self.config.implement_command.format(flow_key=flow_key)
        if self.clipboard is None:
            logger.info("Reimplementation requested: %s", command)
            return command
        try:
            self.clipboard(command)
        except Exception as e:
            logger.warning("Could not copy %r to clipboard: %s", command, e)
        return command

    def _accept(self, drift: DriftInfo) -> None:
        mapping = self.session.mappings.get(drift.flow_key)
        if mapping is None:
            logger.warning("Accepting drift for %s but it has no mapping", drift.flow_key)
            return
        if drift.spec_changed:
            mapping.spec_hash = drift.current_hash
        mapping.code_file_hashes.update(drift.changed_files)
        mapping.sync_state = SyncState.SYNCED

    def _entry(self, drift: DriftInfo, action: ReconciliationAction) -> ReconciliationEntry:
        return ReconciliationEntry(
            flow_key=drift.flow_key,
            action=action,
            previous_hash=drift.previous_hash,
            new_hash=drift.current_hash,
            resolved_at=iso_timestamp(self.clock.now()),
        )

    async def _finish(
        self, entries: list[ReconciliationEntry], before: SyncScore
    ) -> ReconciliationReport:
        after = self.compute_score()
        self.session.sync_score = after

        report = ReconciliationReport(
            id=uuid.uuid4().hex[:12],
            timestamp=iso_timestamp(self.clock.now()),
            entries=entries,
            sync_score_before=before.score,
            sync_score_after=after.score,
        )
        await self.report_store.write(report)
        logger.info(
            "Resolved %d drift item(s) with %s, score %d -> %d",
            len(entries), entries[0].action.value, before.score, after.score,
        )
        self.bus.publish(DriftResolved(report))
        return report
