"""Single-owner mutable state of one sync engine."""

from __future__ import annotations

from dataclasses import dataclass, field

from ddd_sync.models.mapping import AnnotationFile, DriftInfo, FlowMapping, SyncScore
from ddd_sync.registry.domains import DomainRegistry


@dataclass
class SyncSession:
    """Mappings, active drift, and session-scoped suppression for a project.

    Disk is the source of truth; this is a cache that the engine reloads
    after external changes. Ignored drifts are not persisted.
    """

    registry: DomainRegistry = field(default_factory=DomainRegistry)
    mappings: dict[str, FlowMapping] = field(default_factory=dict)
    drift_items: list[DriftInfo] = field(default_factory=list)
    ignored: set[str] = field(default_factory=set)
    annotations: dict[str, AnnotationFile] = field(default_factory=dict)
    sync_score: SyncScore | None = None

    def find_drift(self, flow_key: str) -> DriftInfo | None:
        for item in self.drift_items:
            if item.flow_key == flow_key:
                return item
        return None

    def drop_drift(self, flow_keys: set[str]) -> None:
        self.drift_items = [d for d in self.drift_items if d.flow_key not in flow_keys]

    def clear_ignored(self) -> None:
        self.ignored.clear()
