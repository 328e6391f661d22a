"""Data models for flow-to-code mappings, drift, reconciliation, and scoring.

Persisted records keep the camelCase keys used in ``mapping.yaml`` and the
reconciliation reports so files written by other tools stay readable.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class SyncState(Enum):
    """Sync classification of one flow."""

    SYNCED = "synced"
    SPEC_AHEAD = "spec_ahead"  # Spec changed since implementation
    CODE_AHEAD = "code_ahead"  # Code has changes not in spec
    DIVERGED = "diverged"  # Both spec and code changed


class DriftDirection(Enum):
    FORWARD = "forward"
    REVERSE = "reverse"


class DriftType(Enum):
    METADATA = "metadata"
    SPEC_ENRICHED = "spec_enriched"
    CODE_AHEAD = "code_ahead"
    NEW_LOGIC = "new_logic"


class ImplementationMode(Enum):
    NEW = "new"
    UPDATE = "update"


class ReconciliationAction(Enum):
    ACCEPT = "accept"  # Take the current content as the new baseline
    REIMPL = "reimpl"  # Ask for a reimplementation, drift stays active
    IGNORE = "ignore"  # Suppress for the rest of the session


class AnnotationStatus(Enum):
    CANDIDATE = "candidate"
    APPROVED = "approved"
    PROMOTED = "promoted"
    DISMISSED = "dismissed"


PENDING_ANNOTATION_STATUSES = {AnnotationStatus.CANDIDATE, AnnotationStatus.APPROVED}


def _enum_or(enum_cls, value, default):
    try:
        return enum_cls(value)
    except (TypeError, ValueError):
        return default


def _str_list(value) -> list[str]:
    if not isinstance(value, list):
        return []
    return [str(v) for v in value if isinstance(v, (str, int, float))]


def _str_dict(value) -> dict[str, str]:
    if not isinstance(value, dict):
        return {}
    return {str(k): str(v) for k, v in value.items() if v is not None}


def _int_or(value, default: int = 0) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _dict_list(value) -> list[dict]:
    if not isinstance(value, list):
        return []
    return [v for v in value if isinstance(v, dict)]


def flow_key(domain_id: str, flow_id: str) -> str:
    return f"{domain_id}/{flow_id}"


# --- Mapping ---


_MAPPING_KEYS = {
    "spec",
    "specHash",
    "files",
    "fileHashes",
    "implementedAt",
    "mode",
    "syncState",
    "annotationCount",
}


@dataclass
class FlowMapping:
    """Link between a flow spec and the code implemented from it."""

    spec_path: str
    spec_hash: str
    code_files: list[str] = field(default_factory=list)
    code_file_hashes: dict[str, str] = field(default_factory=dict)
    implemented_at: str = ""  # ISO 8601
    mode: ImplementationMode = ImplementationMode.NEW
    sync_state: SyncState | None = None
    annotation_count: int = 0
    extra: dict[str, Any] = field(default_factory=dict)  # Unknown keys, kept on rewrite

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "spec": self.spec_path,
            "specHash": self.spec_hash,
            "files": list(self.code_files),
            "fileHashes": dict(self.code_file_hashes),
            "implementedAt": self.implemented_at,
            "mode": self.mode.value,
        }
        if self.sync_state is not None:
            data["syncState"] = self.sync_state.value
        if self.annotation_count:
            data["annotationCount"] = self.annotation_count
        data.update(self.extra)
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> FlowMapping:
        return cls(
            spec_path=str(data.get("spec", "")),
            spec_hash=str(data.get("specHash", "")),
            code_files=_str_list(data.get("files")),
            code_file_hashes=_str_dict(data.get("fileHashes")),
            implemented_at=str(data.get("implementedAt", "")),
            mode=_enum_or(ImplementationMode, data.get("mode"), ImplementationMode.NEW),
            sync_state=_enum_or(SyncState, data.get("syncState"), None),
            annotation_count=_int_or(data.get("annotationCount")),
            extra={k: v for k, v in data.items() if k not in _MAPPING_KEYS},
        )


# --- Drift ---


@dataclass
class DriftInfo:
    """An active drift item for one flow. Recomputed on every detection pass."""

    flow_key: str
    flow_name: str
    domain_id: str
    spec_path: str
    previous_hash: str
    current_hash: str
    implemented_at: str
    detected_at: str
    direction: DriftDirection
    drift_type: DriftType | None = None
    changed_files: dict[str, str] = field(default_factory=dict)  # path -> current hash

    @property
    def spec_changed(self) -> bool:
        return self.direction == DriftDirection.FORWARD

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "flowKey": self.flow_key,
            "flowName": self.flow_name,
            "domainId": self.domain_id,
            "specPath": self.spec_path,
            "previousHash": self.previous_hash,
            "currentHash": self.current_hash,
            "implementedAt": self.implemented_at,
            "detectedAt": self.detected_at,
            "direction": self.direction.value,
        }
        if self.drift_type is not None:
            data["driftType"] = self.drift_type.value
        if self.changed_files:
            data["changedFiles"] = dict(self.changed_files)
        return data


# --- Reconciliation ---


@dataclass
class ReconciliationEntry:
    flow_key: str
    action: ReconciliationAction
    previous_hash: str
    new_hash: str
    resolved_at: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "flowKey": self.flow_key,
            "action": self.action.value,
            "previousHash": self.previous_hash,
            "newHash": self.new_hash,
            "resolvedAt": self.resolved_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ReconciliationEntry:
        return cls(
            flow_key=data["flowKey"],
            action=ReconciliationAction(data["action"]),
            previous_hash=data.get("previousHash", ""),
            new_hash=data.get("newHash", ""),
            resolved_at=data.get("resolvedAt", ""),
        )


@dataclass
class ReconciliationReport:
    """Audit record of one resolution operation. One file per report."""

    id: str
    timestamp: str
    entries: list[ReconciliationEntry] = field(default_factory=list)
    sync_score_before: int = 0
    sync_score_after: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "timestamp": self.timestamp,
            "entries": [e.to_dict() for e in self.entries],
            "syncScoreBefore": self.sync_score_before,
            "syncScoreAfter": self.sync_score_after,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ReconciliationReport:
        return cls(
            id=data["id"],
            timestamp=data.get("timestamp", ""),
            entries=[ReconciliationEntry.from_dict(e) for e in data.get("entries") or []],
            sync_score_before=_int_or(data.get("syncScoreBefore")),
            sync_score_after=_int_or(data.get("syncScoreAfter")),
        )


# --- Score ---


@dataclass(frozen=True)
class SyncScore:
    total: int = 0
    implemented: int = 0
    stale: int = 0
    pending: int = 0
    score: int = 0  # 0 - 100
    annotated: int = 0


# --- Annotations ---


@dataclass
class FlowAnnotation:
    """A code pattern captured from an implementation."""

    id: str
    type: str  # Pattern category, e.g. error_handling, soft_delete, custom
    description: str = ""
    applies_to_nodes: list[str] = field(default_factory=list)
    status: AnnotationStatus = AnnotationStatus.CANDIDATE
    code_evidence: dict[str, str] | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> FlowAnnotation:
        return cls(
            id=str(data.get("id", "")),
            type=str(data.get("type", "custom")),
            description=str(data.get("description", "")),
            applies_to_nodes=_str_list(data.get("appliesToNodes")),
            status=_enum_or(
                AnnotationStatus, data.get("status"), AnnotationStatus.DISMISSED
            ),
            code_evidence=_str_dict(data.get("codeEvidence")) or None,
        )


@dataclass
class AnnotationFile:
    flow: str
    captured_at: str = ""
    captured_from: str = ""  # reflect | reverse | sync
    patterns: list[FlowAnnotation] = field(default_factory=list)
    implementation_details: list[dict[str, Any]] = field(default_factory=list)

    @property
    def pending_count(self) -> int:
        """Patterns still awaiting promotion into the spec."""
        return sum(1 for p in self.patterns if p.status in PENDING_ANNOTATION_STATUSES)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AnnotationFile:
        return cls(
            flow=str(data.get("flow", "")),
            captured_at=str(data.get("capturedAt", "")),
            captured_from=str(data.get("capturedFrom", "")),
            patterns=[FlowAnnotation.from_dict(p) for p in _dict_list(data.get("patterns"))],
            implementation_details=_dict_list(data.get("implementationDetails")),
        )
