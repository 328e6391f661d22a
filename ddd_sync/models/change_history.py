"""Change history data models, one entry per recorded spec save."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

ID_PREFIX = "chg-"
DEFAULT_SOURCE = "ddd-tool"


class ChangeStatus(Enum):
    PENDING_IMPLEMENT = "pending_implement"
    IMPLEMENTED = "implemented"


@dataclass(frozen=True)
class ChangeScope:
    """Where in the spec tree a save happened."""

    level: str  # L1 | L2 | L3
    domain: str | None = None
    flow: str | None = None
    pillar: str | None = None  # logic | data | interface | infrastructure

    def to_dict(self) -> dict[str, Any]:
        return {
            "level": self.level,
            "domain": self.domain,
            "flow": self.flow,
            "pillar": self.pillar,
        }

    @classmethod
    def from_dict(cls, data: Any) -> ChangeScope:
        if not isinstance(data, dict):
            data = {}
        return cls(
            level=str(data.get("level", "")),
            domain=_optional_str(data.get("domain")),
            flow=_optional_str(data.get("flow")),
            pillar=_optional_str(data.get("pillar")),
        )


@dataclass
class ChangeHistoryEntry:
    """A single spec save. Immutable once appended, apart from its status."""

    id: str
    timestamp: str
    scope: ChangeScope
    spec_file: str
    spec_checksum: str
    source: str = DEFAULT_SOURCE
    status: ChangeStatus = ChangeStatus.PENDING_IMPLEMENT
    implemented_at: str | None = None
    code_files: list[str] = field(default_factory=list)
    action: str | None = None  # created | deleted | renamed ...; absent for plain updates

    @property
    def number(self) -> int:
        """Numeric part of the id (``chg-0042`` -> 42)."""
        return int(self.id.removeprefix(ID_PREFIX))

    @property
    def is_pending(self) -> bool:
        return self.status == ChangeStatus.PENDING_IMPLEMENT

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "timestamp": self.timestamp,
            "source": self.source,
            "scope": self.scope.to_dict(),
            "spec_file": self.spec_file,
            "spec_checksum": self.spec_checksum,
            "status": self.status.value,
            "implemented_at": self.implemented_at,
            "code_files": list(self.code_files),
        }
        if self.action:
            data["action"] = self.action
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ChangeHistoryEntry:
        entry_id = str(data["id"])
        if not entry_id.removeprefix(ID_PREFIX).isdigit():
            raise ValueError(f"Malformed change id {entry_id!r}")
        code_files = data.get("code_files")
        return cls(
            id=entry_id,
            timestamp=str(data.get("timestamp", "")),
            source=str(data.get("source", DEFAULT_SOURCE)),
            scope=ChangeScope.from_dict(data.get("scope")),
            spec_file=str(data["spec_file"]),
            spec_checksum=str(data.get("spec_checksum", "")),
            status=ChangeStatus(data.get("status", ChangeStatus.PENDING_IMPLEMENT.value)),
            implemented_at=_optional_str(data.get("implemented_at")),
            code_files=[str(f) for f in code_files] if isinstance(code_files, list) else [],
            action=_optional_str(data.get("action")),
        )


def _optional_str(value) -> str | None:
    return str(value) if value is not None else None


def format_change_id(number: int) -> str:
    return f"{ID_PREFIX}{number:04d}"
