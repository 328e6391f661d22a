"""Domain registry loaded from ``specs/domains/<domainId>/domain.yaml`` files."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterator

from ddd_sync.errors import FileMissingError
from ddd_sync.models.mapping import flow_key
from ddd_sync.utils.project_files import ProjectFiles
from ddd_sync.utils.yaml_io import parse_yaml_mapping

logger = logging.getLogger(__name__)

DOMAIN_FILE = "domain.yaml"


@dataclass(frozen=True)
class FlowEntry:
    id: str
    name: str = ""

    @property
    def display_name(self) -> str:
        return self.name or self.id


@dataclass
class DomainConfig:
    name: str
    flows: list[FlowEntry] = field(default_factory=list)


class DomainRegistry:
    """Ordered, read-only mapping of domain id to its configuration."""

    def __init__(self, domains: dict[str, DomainConfig] | None = None):
        self._domains: dict[str, DomainConfig] = dict(domains or {})

    @classmethod
    def from_dict(cls, data: dict[str, list[str | dict]]) -> DomainRegistry:
        """Build a registry from ``{domainId: [flowId | {id, name}, ...]}``."""
        return cls({
            domain_id: DomainConfig(name=domain_id, flows=_parse_flows(flows))
            for domain_id, flows in data.items()
        })

    def __len__(self) -> int:
        return len(self._domains)

    def __contains__(self, domain_id: str) -> bool:
        return domain_id in self._domains

    def get(self, domain_id: str) -> DomainConfig | None:
        return self._domains.get(domain_id)

    def items(self):
        return self._domains.items()

    def iter_flows(self) -> Iterator[tuple[str, FlowEntry]]:
        """Yield ``(domain_id, flow)`` pairs in registry order."""
        for domain_id, config in self._domains.items():
            for flow in config.flows:
                yield domain_id, flow

    def flow_keys(self) -> list[str]:
        return [flow_key(domain_id, flow.id) for domain_id, flow in self.iter_flows()]

    @property
    def total_flows(self) -> int:
        return sum(len(config.flows) for config in self._domains.values())


async def load_domain_registry(files: ProjectFiles, domains_dir: str) -> DomainRegistry:
    """Read every ``<domains_dir>/<domainId>/domain.yaml`` into a registry.

    A domain file that is missing, malformed, or lists no flows contributes an
    empty domain instead of failing the whole load.
    """
    domains: dict[str, DomainConfig] = {}
    for domain_id in await files.list_directory(domains_dir):
        path = f"{domains_dir}/{domain_id}/{DOMAIN_FILE}"
        if not await files.exists(path):
            continue
        try:
            text = await files.read_text(path)
        except FileMissingError as e:
            logger.debug("Skipping unreadable domain file %s: %s", path, e)
            text = ""
        data = parse_yaml_mapping(text, path)
        domains[domain_id] = DomainConfig(
            name=str(data.get("name") or domain_id),
            flows=_parse_flows(data.get("flows") or []),
        )
    logger.debug("Loaded %d domains from %s", len(domains), domains_dir)
    return DomainRegistry(domains)


def _parse_flows(raw: list) -> list[FlowEntry]:
    flows = []
    if not isinstance(raw, list):
        return flows
    for item in raw:
        if isinstance(item, str):
            flows.append(FlowEntry(id=item))
        elif isinstance(item, dict) and item.get("id"):
            flows.append(FlowEntry(id=str(item["id"]), name=str(item.get("name", ""))))
    return flows
