"""Drift detection — detect divergence between flow specs and their implementations.

Drift happens when:
1. The spec file's content hash no longer matches the hash recorded at the
   last sync baseline (forward drift)
2. An implementation file's content hash no longer matches its recorded hash
   (reverse drift)

Both directions are always checked so that a flow whose spec and code both
moved is reported as diverged rather than just spec-ahead.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from ddd_sync.errors import FileMissingError
from ddd_sync.models.mapping import (
    DriftDirection,
    DriftInfo,
    DriftType,
    FlowMapping,
    SyncState,
    flow_key,
)
from ddd_sync.sync.session import SyncSession
from ddd_sync.utils.clock import SystemClock, iso_timestamp
from ddd_sync.utils.project_files import ProjectFiles

logger = logging.getLogger(__name__)


def classify(forward: bool, reverse: bool) -> SyncState:
    if forward and reverse:
        return SyncState.DIVERGED
    if forward:
        return SyncState.SPEC_AHEAD
    if reverse:
        return SyncState.CODE_AHEAD
    return SyncState.SYNCED


@dataclass
class FlowCheck:
    """Current hashes of one flow compared against its mapping."""

    mapping: FlowMapping
    current_spec_hash: str
    changed_files: dict[str, str] = field(default_factory=dict)  # path -> current hash

    @property
    def forward(self) -> bool:
        return self.current_spec_hash != self.mapping.spec_hash

    @property
    def reverse(self) -> bool:
        return bool(self.changed_files)

    @property
    def state(self) -> SyncState:
        return classify(self.forward, self.reverse)

    def to_drift(self, key: str, flow_name: str, domain_id: str, detected_at: str) -> DriftInfo | None:
        """Build the drift item for this check, or None when the flow is in sync."""
        state = self.state
        if state == SyncState.SYNCED:
            return None

        if state == SyncState.CODE_AHEAD:
            path, current = next(iter(self.changed_files.items()))
            previous_hash = self.mapping.code_file_hashes[path]
            current_hash = current
            direction = DriftDirection.REVERSE
            drift_type = DriftType.CODE_AHEAD
        else:
            previous_hash = self.mapping.spec_hash
            current_hash = self.current_spec_hash
            direction = DriftDirection.FORWARD
            drift_type = DriftType.NEW_LOGIC if state == SyncState.DIVERGED else None

        return DriftInfo(
            flow_key=key,
            flow_name=flow_name,
            domain_id=domain_id,
            spec_path=self.mapping.spec_path,
            previous_hash=previous_hash,
            current_hash=current_hash,
            implemented_at=self.mapping.implemented_at,
            detected_at=detected_at,
            direction=direction,
            drift_type=drift_type,
            changed_files=dict(self.changed_files),
        )


class DriftDetector:
    """Recomputes hashes for every tracked flow and classifies its sync state."""

    def __init__(self, files: ProjectFiles, clock: SystemClock | None = None):
        self.files = files
        self.clock = clock or SystemClock()

    async def check(self, mapping: FlowMapping) -> FlowCheck | None:
        """Compare one mapping against the files on disk.

        Returns None when the spec file cannot be hashed. Code files that
        cannot be hashed are skipped rather than counted as drift.
        """
        try:
            current_spec_hash = await self.files.hash_file(mapping.spec_path)
        except FileMissingError as e:
            logger.debug("Skipping flow, spec unreadable: %s", e)
            return None

        result = FlowCheck(mapping=mapping, current_spec_hash=current_spec_hash)
        for path, stored_hash in mapping.code_file_hashes.items():
            try:
                current = await self.files.hash_file(path)
            except FileMissingError as e:
                logger.debug("Skipping code file: %s", e)
                continue
            if current != stored_hash:
                result.changed_files[path] = current
        return result

    async def detect(self, session: SyncSession) -> list[DriftInfo]:
        """Classify every registered flow that has a mapping.

        Each mapping's ``sync_state`` is updated in place as soon as its flow
        is classified. The returned list is the complete set of active drift
        items; flows in ``session.ignored`` are classified but not reported.
        """
        detected_at = iso_timestamp(self.clock.now())
        drift_items: list[DriftInfo] = []

        for domain_id, flow in session.registry.iter_flows():
            key = flow_key(domain_id, flow.id)
            mapping = session.mappings.get(key)
            if mapping is None:
                continue

            result = await self.check(mapping)
            if result is None:
                continue

            mapping.sync_state = result.state
            drift = result.to_drift(key, flow.display_name, domain_id, detected_at)
            if drift is None:
                continue
            if key in session.ignored:
                logger.debug("Drift on %s suppressed for this session", key)
                continue
            drift_items.append(drift)

        logger.info("Drift scan found %d active items", len(drift_items))
        return drift_items
