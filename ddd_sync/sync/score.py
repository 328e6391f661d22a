"""How much of the registry is implemented and still current."""

from __future__ import annotations

import math
from typing import Iterable, Mapping

from ddd_sync.models.mapping import AnnotationFile, DriftInfo, FlowMapping, SyncScore
from ddd_sync.registry.domains import DomainRegistry


def compute_sync_score(
    mappings: Mapping[str, FlowMapping],
    drift_items: Iterable[DriftInfo],
    registry: DomainRegistry,
    annotations: Mapping[str, AnnotationFile] | None = None,
) -> SyncScore:
    """Aggregate mappings and active drift into a score. No side effects.

    ``implemented`` counts mapped flows without active drift, ``stale`` the
    flows with active drift, and ``pending`` whatever remains of the
    registry's flow total.
    """
    total = registry.total_flows
    stale_keys = {d.flow_key for d in drift_items}
    implemented = sum(1 for key in mappings if key not in stale_keys)
    stale = len(stale_keys)
    annotated = sum(1 for a in (annotations or {}).values() if a.pending_count > 0)

    return SyncScore(
        total=total,
        implemented=implemented,
        stale=stale,
        pending=total - implemented - stale,
        score=_round_half_up(100 * implemented / total) if total > 0 else 0,
        annotated=annotated,
    )


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)
