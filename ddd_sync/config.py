"""Configuration for a ddd-sync project.

Values come from the dataclass defaults, then ``<root>/<state_dir>/sync.yaml``
when present, then ``DDD_SYNC_*`` environment variables.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, fields, replace
from pathlib import Path

from ddd_sync.errors import ConfigError
from ddd_sync.utils.yaml_io import parse_yaml_mapping

logger = logging.getLogger(__name__)

CONFIG_FILE = "sync.yaml"
ENV_PREFIX = "DDD_SYNC_"


@dataclass(frozen=True)
class SyncConfig:
    """Paths and timings used by the sync engine."""

    state_dir: str = ".ddd"
    specs_dir: str = "specs"
    write_guard_window: float = 2.0  # seconds
    debounce_delay: float = 1.0  # seconds
    implement_command: str = "/ddd-implement {flow_key}"

    @property
    def mapping_file(self) -> str:
        return f"{self.state_dir}/mapping.yaml"

    @property
    def history_file(self) -> str:
        return f"{self.state_dir}/change-history.yaml"

    @property
    def reports_dir(self) -> str:
        return f"{self.state_dir}/reconciliations"

    @property
    def annotations_dir(self) -> str:
        return f"{self.state_dir}/annotations"

    @property
    def domains_dir(self) -> str:
        return f"{self.specs_dir}/domains"


_DURATIONS = {"write_guard_window", "debounce_delay"}


def _coerce(name: str, value) -> str | float:
    if name in _DURATIONS:
        try:
            seconds = float(value)
        except (TypeError, ValueError):
            raise ConfigError(f"{name} must be a number of seconds, got {value!r}")
        if seconds < 0:
            raise ConfigError(f"{name} must not be negative, got {seconds}")
        return seconds
    return str(value)


def load_config(root: str | Path, environ: dict[str, str] | None = None) -> SyncConfig:
    """Build the configuration for the project at ``root``."""
    environ = os.environ if environ is None else environ
    known = {f.name for f in fields(SyncConfig)}
    overrides: dict[str, str | float] = {}

    state_dir = environ.get(f"{ENV_PREFIX}STATE_DIR", SyncConfig.state_dir)
    config_path = Path(root) / state_dir / CONFIG_FILE
    if config_path.exists():
        try:
            text = config_path.read_text(encoding="utf-8")
        except OSError as e:
            logger.warning("Could not read %s: %s", config_path, e)
            text = ""
        for key, value in parse_yaml_mapping(text, str(config_path)).items():
            if key not in known:
                logger.warning("Unknown config key %r in %s", key, config_path)
                continue
            overrides[key] = _coerce(key, value)

    for name in known:
        env_value = environ.get(f"{ENV_PREFIX}{name.upper()}")
        if env_value is not None:
            overrides[name] = _coerce(name, env_value)

    return replace(SyncConfig(), **overrides)
