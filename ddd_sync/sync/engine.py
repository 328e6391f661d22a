"""SyncEngine — one project's drift tracking, wired together.

The engine owns the session state and hands the same write guard, clock,
and event bus to every component. Callers keep a reference to the engine;
there is no module-level instance.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable

from ddd_sync.config import SyncConfig, load_config
from ddd_sync.history.ledger import ChangeHistoryLedger
from ddd_sync.models.change_history import ChangeHistoryEntry, ChangeScope
from ddd_sync.models.mapping import (
    DriftInfo,
    FlowMapping,
    ReconciliationAction,
    ReconciliationReport,
    SyncScore,
)
from ddd_sync.registry.domains import DOMAIN_FILE, DomainRegistry, load_domain_registry
from ddd_sync.sync.debounce import Debouncer
from ddd_sync.sync.drift import DriftDetector
from ddd_sync.sync.events import DriftDetected, EventBus
from ddd_sync.sync.mapping_store import AnnotationStore, MappingStore
from ddd_sync.sync.reconcile import Clipboard, ReconciliationEngine, ReportStore
from ddd_sync.sync.session import SyncSession
from ddd_sync.sync.write_guard import WriteGuard
from ddd_sync.utils.clock import SystemClock
from ddd_sync.utils.project_files import ProjectFiles

logger = logging.getLogger(__name__)


class SyncEngine:
    """Drift detection, reconciliation, and change history for one project root."""

    def __init__(
        self,
        root: str | Path,
        config: SyncConfig | None = None,
        registry: DomainRegistry | None = None,
        files: ProjectFiles | None = None,
        clock: SystemClock | None = None,
        clipboard: Clipboard | None = None,
        bus: EventBus | None = None,
    ):
        self.root = Path(root)
        self.config = config or load_config(self.root)
        self.files = files or ProjectFiles(self.root)
        self.clock = clock or SystemClock()
        self.bus = bus or EventBus()
        self.guard = WriteGuard(self.config.write_guard_window, self.clock.monotonic)

        # An injected registry is owned by the caller and never reloaded from disk.
        self._registry_from_disk = registry is None
        self.session = SyncSession(registry=registry or DomainRegistry())

        self.mapping_store = MappingStore(self.files, self.config, self.guard)
        self.annotation_store = AnnotationStore(self.files, self.config)
        self.report_store = ReportStore(self.files, self.config, self.guard)
        self.detector = DriftDetector(self.files, self.clock)
        self.reconciler = ReconciliationEngine(
            self.session,
            self.mapping_store,
            self.report_store,
            self.config,
            clock=self.clock,
            clipboard=clipboard,
            bus=self.bus,
        )
        self.ledger = ChangeHistoryLedger(
            self.files, self.config, self.guard, clock=self.clock, bus=self.bus
        )
        self.debouncer = Debouncer(self.config.debounce_delay, self._on_external_changes)
        self._scan_generation = 0

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def registry(self) -> DomainRegistry:
        return self.session.registry

    @property
    def mappings(self) -> dict[str, FlowMapping]:
        return self.session.mappings

    @property
    def drift_items(self) -> list[DriftInfo]:
        return self.session.drift_items

    @property
    def sync_score(self) -> SyncScore | None:
        return self.session.sync_score

    @property
    def ignored(self) -> set[str]:
        return self.session.ignored

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    async def load(self) -> None:
        """Load everything from disk, then run a drift scan."""
        if self._registry_from_disk:
            await self.reload_registry()
        await self.reload_mappings()
        await self.reload_annotations()
        await self.ledger.load()
        await self.detect_drift()

    async def reload_registry(self) -> None:
        self.session.registry = await load_domain_registry(self.files, self.config.domains_dir)

    async def reload_mappings(self) -> None:
        self.session.mappings = await self.mapping_store.load()
        self._apply_annotation_counts()

    async def reload_annotations(self) -> None:
        self.session.annotations = await self.annotation_store.load_all(self.session.registry)
        self._apply_annotation_counts()

    def _apply_annotation_counts(self) -> None:
        for key, mapping in self.session.mappings.items():
            annotation = self.session.annotations.get(key)
            mapping.annotation_count = annotation.pending_count if annotation is not None else 0

    # ------------------------------------------------------------------
    # Drift and scoring
    # ------------------------------------------------------------------

    async def detect_drift(self) -> list[DriftInfo]:
        """Rescan every tracked flow and replace the active drift items.

        Overlapping scans are allowed. Only the most recently started scan
        may replace the drift items; an older scan that finishes later is
        discarded.
        """
        self._scan_generation += 1
        generation = self._scan_generation

        drift_items = await self.detector.detect(self.session)
        if generation != self._scan_generation:
            logger.debug(
                "Discarding drift scan %d, superseded by scan %d",
                generation, self._scan_generation,
            )
            return self.session.drift_items

        self.session.drift_items = drift_items
        score = self.compute_sync_score()
        self.session.sync_score = score
        self.bus.publish(DriftDetected(tuple(drift_items), score))
        return drift_items

    def compute_sync_score(self) -> SyncScore:
        return self.reconciler.compute_score()

    # ------------------------------------------------------------------
    # Reconciliation
    # ------------------------------------------------------------------

    async def resolve_flow(
        self, flow_key: str, action: ReconciliationAction | str
    ) -> ReconciliationReport | None:
        return await self.reconciler.resolve_flow(flow_key, action)

    async def resolve_all(self, action: ReconciliationAction | str) -> ReconciliationReport | None:
        return await self.reconciler.resolve_all(action)

    # ------------------------------------------------------------------
    # Change history
    # ------------------------------------------------------------------

    async def record_save(
        self,
        spec_file: str,
        contents: str,
        scope: ChangeScope,
        action: str | None = None,
    ) -> ChangeHistoryEntry | None:
        return await self.ledger.record_save(spec_file, contents, scope, action)

    # ------------------------------------------------------------------
    # External changes
    # ------------------------------------------------------------------

    def handle_file_changes(self, paths: Iterable[str]) -> bool:
        """Accept a batch of changed paths from a file watcher.

        Batches arriving while our own write window is open are dropped.
        Otherwise the paths are debounced and a reload plus drift scan runs
        once notifications go quiet. Must be called from the event loop.

        Returns:
            True when the batch was queued, False when it was dropped.
        """
        if self.guard.is_own_write():
            logger.debug("Dropping change notification inside own write window")
            return False
        self.debouncer.trigger(self.files.relative(p) for p in paths)
        return True

    async def _on_external_changes(self, paths: list[str]) -> None:
        config = self.config
        registry_changed = self._registry_from_disk and any(
            p.startswith(f"{config.domains_dir}/") and p.endswith(f"/{DOMAIN_FILE}")
            for p in paths
        )
        annotations_changed = any(p.startswith(f"{config.annotations_dir}/") for p in paths)

        logger.info("Handling %d externally changed paths", len(paths))
        if registry_changed:
            await self.reload_registry()
        if config.mapping_file in paths:
            await self.reload_mappings()
        if config.history_file in paths:
            await self.ledger.load()
        if registry_changed or annotations_changed:
            await self.reload_annotations()
        await self.detect_drift()

    def close(self) -> None:
        self.debouncer.close()
