"""YAML helpers shared by every store.

Malformed documents are treated the same as missing ones: the caller gets
``None`` and falls back to its empty default.
"""

from __future__ import annotations

import logging
from typing import Any

import yaml

logger = logging.getLogger(__name__)


def parse_yaml(text: str, source: str = "") -> Any:
    """Parse a YAML document, returning None when it is malformed."""
    try:
        return yaml.safe_load(text)
    except yaml.YAMLError as e:
        logger.warning("Ignoring malformed YAML in %s: %s", source or "<string>", e)
        return None


def parse_yaml_mapping(text: str, source: str = "") -> dict:
    """Parse a YAML document whose top level must be a mapping."""
    data = parse_yaml(text, source)
    if isinstance(data, dict):
        return data
    if data is not None:
        logger.warning("Ignoring %s: expected a mapping at the top level", source or "<string>")
    return {}


def dump_yaml(data: Any) -> str:
    return yaml.safe_dump(data, sort_keys=False, default_flow_style=False, allow_unicode=True)
