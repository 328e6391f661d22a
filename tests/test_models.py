"""Tests for ddd-sync data models."""

import pytest

from ddd_sync.models.change_history import (
    ChangeHistoryEntry,
    ChangeScope,
    ChangeStatus,
    format_change_id,
)
from ddd_sync.models.mapping import (
    AnnotationFile,
    AnnotationStatus,
    DriftDirection,
    DriftInfo,
    DriftType,
    FlowMapping,
    ImplementationMode,
    ReconciliationAction,
    ReconciliationEntry,
    ReconciliationReport,
    SyncState,
    flow_key,
)


def test_flow_mapping_from_wire_format():
    mapping = FlowMapping.from_dict({
        "spec": "specs/domains/billing/flows/charge.yaml",
        "specHash": "abc123",
        "files": ["src/charge.ts"],
        "fileHashes": {"src/charge.ts": "h1"},
        "implementedAt": "2026-10-01T09:00:00.000Z",
        "mode": "update",
        "syncState": "code_ahead",
        "annotationCount": 3,
    })
    assert mapping.spec_path == "specs/domains/billing/flows/charge.yaml"
    assert mapping.code_file_hashes == {"src/charge.ts": "h1"}
    assert mapping.mode == ImplementationMode.UPDATE
    assert mapping.sync_state == SyncState.CODE_AHEAD
    assert mapping.annotation_count == 3
    assert mapping.extra == {}


def test_flow_mapping_defaults_for_sparse_entry():
    mapping = FlowMapping.from_dict({"spec": "a.yaml", "specHash": "x", "mode": "weird"})
    assert mapping.code_files == []
    assert mapping.code_file_hashes == {}
    assert mapping.mode == ImplementationMode.NEW
    assert mapping.sync_state is None


def test_flow_mapping_keeps_unknown_keys():
    data = {
        "spec": "a.yaml",
        "specHash": "x",
        "files": [],
        "fileHashes": {},
        "implementedAt": "",
        "mode": "new",
        "implementedBy": "agent-7",
    }
    mapping = FlowMapping.from_dict(data)
    assert mapping.extra == {"implementedBy": "agent-7"}
    assert mapping.to_dict() == data


def test_flow_mapping_omits_unset_optional_keys():
    data = FlowMapping(spec_path="a.yaml", spec_hash="x").to_dict()
    assert "syncState" not in data
    assert "annotationCount" not in data
    assert data["mode"] == "new"


def test_drift_info_wire_keys():
    info = DriftInfo(
        flow_key=flow_key("billing", "charge"),
        flow_name="Charge",
        domain_id="billing",
        spec_path="a.yaml",
        previous_hash="h1",
        current_hash="h2",
        implemented_at="",
        detected_at="2026-10-19T12:00:00.000Z",
        direction=DriftDirection.REVERSE,
        drift_type=DriftType.CODE_AHEAD,
        changed_files={"src/charge.ts": "h2"},
    )
    data = info.to_dict()
    assert data["flowKey"] == "billing/charge"
    assert data["direction"] == "reverse"
    assert data["driftType"] == "code_ahead"
    assert data["changedFiles"] == {"src/charge.ts": "h2"}
    assert not info.spec_changed


def test_reconciliation_report_from_wire_format():
    report = ReconciliationReport.from_dict({
        "id": "a1b2c3",
        "timestamp": "2026-10-19T12:00:00.000Z",
        "entries": [{
            "flowKey": "billing/charge",
            "action": "ignore",
            "previousHash": "h1",
            "newHash": "h2",
            "resolvedAt": "2026-10-19T12:00:00.000Z",
        }],
        "syncScoreBefore": 50,
        "syncScoreAfter": 75,
    })
    assert report.entries == [
        ReconciliationEntry(
            flow_key="billing/charge",
            action=ReconciliationAction.IGNORE,
            previous_hash="h1",
            new_hash="h2",
            resolved_at="2026-10-19T12:00:00.000Z",
        )
    ]
    assert (report.sync_score_before, report.sync_score_after) == (50, 75)


def test_annotation_pending_count():
    annotations = AnnotationFile.from_dict({
        "flow": "charge",
        "patterns": [
            {"id": "p1", "type": "custom", "status": "candidate"},
            {"id": "p2", "type": "custom", "status": "approved"},
            {"id": "p3", "type": "custom", "status": "dismissed"},
            {"id": "p4", "type": "custom", "status": "unheard-of"},
            "not a pattern",
        ],
    })
    assert len(annotations.patterns) == 4
    assert annotations.patterns[3].status == AnnotationStatus.DISMISSED
    assert annotations.pending_count == 2


def test_change_id_format():
    assert format_change_id(1) == "chg-0001"
    assert format_change_id(12345) == "chg-12345"


def test_change_entry_wire_format():
    entry = ChangeHistoryEntry(
        id="chg-0042",
        timestamp="2026-10-19T12:00:00.000Z",
        scope=ChangeScope(level="L2", domain="billing"),
        spec_file="specs/domains/billing/domain.yaml",
        spec_checksum="0123456789ab",
    )
    data = entry.to_dict()

    assert entry.number == 42
    assert entry.is_pending
    assert data["status"] == "pending_implement"
    assert data["scope"] == {"level": "L2", "domain": "billing", "flow": None, "pillar": None}
    assert data["implemented_at"] is None
    assert "action" not in data

    restored = ChangeHistoryEntry.from_dict(data)
    assert restored == entry


def test_change_entry_from_implemented_record():
    entry = ChangeHistoryEntry.from_dict({
        "id": "chg-0003",
        "spec_file": "a.yaml",
        "status": "implemented",
        "implemented_at": "2026-10-19T13:00:00.000Z",
        "code_files": ["src/a.py"],
        "action": "renamed",
    })
    assert entry.status == ChangeStatus.IMPLEMENTED
    assert not entry.is_pending
    assert entry.scope == ChangeScope(level="")
    assert entry.source == "ddd-tool"
    assert entry.action == "renamed"


# --- Wrongly shaped fields fall back to defaults ---


def test_flow_mapping_with_wrongly_shaped_fields():
    mapping = FlowMapping.from_dict({
        "spec": "a.yaml",
        "specHash": "x",
        "files": "src/charge.py",
        "fileHashes": ["src/charge.py"],
        "syncState": ["synced"],
        "mode": {"kind": "new"},
        "annotationCount": "several",
    })
    assert mapping.code_files == []
    assert mapping.code_file_hashes == {}
    assert mapping.sync_state is None
    assert mapping.mode == ImplementationMode.NEW
    assert mapping.annotation_count == 0


def test_annotation_file_with_wrongly_shaped_fields():
    annotations = AnnotationFile.from_dict({
        "flow": "charge",
        "patterns": {"id": "p1"},
        "implementationDetails": "inline",
    })
    assert annotations.patterns == []
    assert annotations.implementation_details == []
    assert annotations.pending_count == 0


def test_annotation_pattern_with_wrongly_shaped_fields():
    annotations = AnnotationFile.from_dict({
        "patterns": [{"id": "p1", "appliesToNodes": "node-1", "codeEvidence": "x"}],
    })
    pattern = annotations.patterns[0]
    assert pattern.applies_to_nodes == []
    assert pattern.code_evidence is None


def test_change_scope_from_scalar():
    assert ChangeScope.from_dict("L3") == ChangeScope(level="")


def test_change_entry_with_wrongly_shaped_fields():
    entry = ChangeHistoryEntry.from_dict({
        "id": "chg-0001",
        "spec_file": "a.yaml",
        "scope": "L3",
        "code_files": "src/a.py",
    })
    assert entry.scope == ChangeScope(level="")
    assert entry.code_files == []


def test_change_entry_rejects_malformed_id():
    with pytest.raises(ValueError):
        ChangeHistoryEntry.from_dict({"id": "change-one", "spec_file": "a.yaml"})
