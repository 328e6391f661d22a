"""Tests for the domain registry."""

import asyncio

from ddd_sync.registry.domains import DomainRegistry, FlowEntry, load_domain_registry
from ddd_sync.utils.project_files import ProjectFiles


def _write(root, rel, text):
    path = root / rel
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")


def _load(root):
    return asyncio.run(load_domain_registry(ProjectFiles(root), "specs/domains"))


def test_from_dict_accepts_ids_and_entries():
    registry = DomainRegistry.from_dict({
        "billing": ["charge", {"id": "refund", "name": "Refund Payment"}, {"name": "no id"}],
    })
    flows = registry.get("billing").flows

    assert flows == [FlowEntry(id="charge"), FlowEntry(id="refund", name="Refund Payment")]
    assert flows[0].display_name == "charge"
    assert flows[1].display_name == "Refund Payment"


def test_flow_keys_follow_registry_order():
    registry = DomainRegistry.from_dict({"users": ["signup"], "billing": ["charge", "refund"]})
    assert registry.flow_keys() == ["users/signup", "billing/charge", "billing/refund"]
    assert registry.total_flows == 3
    assert len(registry) == 2
    assert "billing" in registry
    assert registry.get("orders") is None


def test_load_from_domain_files(tmp_path):
    _write(
        tmp_path,
        "specs/domains/billing/domain.yaml",
        "name: Billing\nflows:\n  - id: charge\n    name: Charge Card\n  - refund\n",
    )
    _write(tmp_path, "specs/domains/users/domain.yaml", "flows:\n  - signup\n")
    _write(tmp_path, "specs/domains/billing/flows/charge.yaml", "flow: {}\n")

    registry = _load(tmp_path)

    assert registry.flow_keys() == ["billing/charge", "billing/refund", "users/signup"]
    assert registry.get("billing").name == "Billing"
    assert registry.get("users").name == "users"


def test_load_tolerates_bad_domain_files(tmp_path):
    _write(tmp_path, "specs/domains/broken/domain.yaml", "flows: [")
    _write(tmp_path, "specs/domains/scalar/domain.yaml", "flows: charge\n")
    (tmp_path / "specs" / "domains" / "empty").mkdir()

    registry = _load(tmp_path)

    assert "empty" not in registry
    assert registry.get("broken").flows == []
    assert registry.get("scalar").flows == []
    assert registry.total_flows == 0


def test_load_without_domains_dir(tmp_path):
    assert len(_load(tmp_path)) == 0
