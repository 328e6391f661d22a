"""Persistence for flow mappings and read access to flow annotations.

``mapping.yaml`` holds ``{flows: {"<domain>/<flowId>": FlowMapping}}``. Mappings
are created by whatever implements a flow; this store only reads them and
rewrites the whole file after reconciliation.
"""

from __future__ import annotations

import asyncio
import logging

from ddd_sync.config import SyncConfig
from ddd_sync.errors import FileMissingError
from ddd_sync.models.mapping import AnnotationFile, FlowMapping, flow_key
from ddd_sync.registry.domains import DomainRegistry
from ddd_sync.sync.write_guard import WriteGuard
from ddd_sync.utils.project_files import ProjectFiles
from ddd_sync.utils.yaml_io import dump_yaml, parse_yaml_mapping

logger = logging.getLogger(__name__)


class MappingStore:
    """Reads and rewrites ``mapping.yaml``."""

    def __init__(self, files: ProjectFiles, config: SyncConfig, guard: WriteGuard):
        self.files = files
        self.config = config
        self.guard = guard
        self._lock = asyncio.Lock()

    async def load(self) -> dict[str, FlowMapping]:
        """Load all mappings; a missing or malformed file yields none."""
        path = self.config.mapping_file
        try:
            text = await self.files.read_text(path)
        except FileMissingError:
            logger.debug("No mapping file at %s", path)
            return {}

        raw_flows = parse_yaml_mapping(text, path).get("flows") or {}
        if not isinstance(raw_flows, dict):
            logger.warning("Ignoring %s: 'flows' is not a mapping", path)
            return {}

        mappings = {}
        for key, data in raw_flows.items():
            if not isinstance(data, dict):
                logger.warning("Skipping malformed mapping %r in %s", key, path)
                continue
            try:
                mappings[str(key)] = FlowMapping.from_dict(data)
            except (AttributeError, TypeError, ValueError) as e:
                logger.warning("Skipping malformed mapping %r in %s: %s", key, path, e)
        return mappings

    async def save(self, mappings: dict[str, FlowMapping]) -> bool:
        """Rewrite the mapping file. Returns False when the write failed.

        Saves are serialized and each one snapshots ``mappings`` only once it
        holds the lock, so the last write on disk is never an older state.
        """
        async with self._lock:
            content = dump_yaml({"flows": {k: m.to_dict() for k, m in mappings.items()}})
            try:
                await self.files.create_directory(self.config.state_dir)
                self.guard.mark_writing()
                await self.files.write_text(self.config.mapping_file, content)
            except OSError as e:
                logger.warning("Could not write %s: %s", self.config.mapping_file, e)
                return False
        return True


class AnnotationStore:
    """Reads ``annotations/<domainId>/<flowId>.yaml`` files."""

    def __init__(self, files: ProjectFiles, config: SyncConfig):
        self.files = files
        self.config = config

    def path_for(self, domain_id: str, flow_id: str) -> str:
        return f"{self.config.annotations_dir}/{domain_id}/{flow_id}.yaml"

    async def load(self, domain_id: str, flow_id: str) -> AnnotationFile | None:
        path = self.path_for(domain_id, flow_id)
        try:
            text = await self.files.read_text(path)
        except FileMissingError:
            return None
        data = parse_yaml_mapping(text, path)
        if not data:
            return None
        try:
            return AnnotationFile.from_dict(data)
        except (AttributeError, TypeError, ValueError) as e:
            logger.warning("Skipping malformed annotations %s: %s", path, e)
            return None

    async def load_all(self, registry: DomainRegistry) -> dict[str, AnnotationFile]:
        """Annotations for every registered flow that has a readable file."""
        annotations = {}
        for domain_id, flow in registry.iter_flows():
            annotation = await self.load(domain_id, flow.id)
            if annotation is not None:
                annotations[flow_key(domain_id, flow.id)] = annotation
        return annotations
