"""Shared fixtures: a controllable clock and a throwaway project tree."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
import yaml

from ddd_sync.config import SyncConfig
from ddd_sync.registry.domains import DomainRegistry
from ddd_sync.utils.project_files import content_hash


class FakeClock:
    """Wall and monotonic time that only move when told to."""

    def __init__(self, start: datetime = datetime(2026, 10, 19, 12, 0, 0, tzinfo=timezone.utc)):
        self.current = start
        self.mono = 1000.0

    def now(self) -> datetime:
        return self.current

    def monotonic(self) -> float:
        return self.mono

    def advance(self, seconds: float) -> None:
        self.current += timedelta(seconds=seconds)
        self.mono += seconds


class Project:
    """A project root with flow specs, code files, and mapping entries."""

    def __init__(self, root: Path):
        self.root = root
        self.domains: dict[str, list[dict]] = {}
        self.mappings: dict[str, dict] = {}

    def write(self, rel: str, text: str) -> str:
        path = self.root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")
        return content_hash(text)

    def read_yaml(self, rel: str):
        return yaml.safe_load((self.root / rel).read_text(encoding="utf-8"))

    def spec_path(self, domain: str, flow: str) -> str:
        return f"specs/domains/{domain}/flows/{flow}.yaml"

    def add_flow(
        self,
        domain: str,
        flow: str,
        spec: str | None = None,
        files: dict[str, str] | None = None,
        implemented: bool = True,
    ) -> str:
        """Register a flow, write its spec and code, and map it when implemented."""
        self.domains.setdefault(domain, []).append({"id": flow, "name": flow.title()})
        spec_path = self.spec_path(domain, flow)
        spec_hash = self.write(spec_path, spec or f"flow:\n  id: {flow}\n")
        files = files if files is not None else {f"src/{domain}/{flow}.py": f"# {flow}\n"}
        file_hashes = {path: self.write(path, text) for path, text in files.items()}

        key = f"{domain}/{flow}"
        if implemented:
            self.mappings[key] = {
                "spec": spec_path,
                "specHash": spec_hash,
                "files": list(files),
                "fileHashes": file_hashes,
                "implementedAt": "2026-10-01T09:00:00.000Z",
                "mode": "new",
            }
        return key

    def save_mappings(self) -> None:
        self.write(".ddd/mapping.yaml", yaml.safe_dump({"flows": self.mappings}))

    def save_domains(self) -> None:
        for domain, flows in self.domains.items():
            self.write(
                f"specs/domains/{domain}/domain.yaml",
                yaml.safe_dump({"name": domain.title(), "flows": flows}),
            )

    def registry(self) -> DomainRegistry:
        return DomainRegistry.from_dict(self.domains)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def project(tmp_path) -> Project:
    return Project(tmp_path)


@pytest.fixture
def config() -> SyncConfig:
    return SyncConfig(debounce_delay=0.01)
