"""Exception hierarchy for ddd-sync.

Expected conditions (missing files, malformed YAML, failed advisory writes)
are handled inside the core and logged. These exceptions cross module
boundaries only where a caller has to decide what to do.
"""

from __future__ import annotations


class SyncError(Exception):
    """Base class for ddd-sync errors."""


class FileMissingError(SyncError, FileNotFoundError):
    """A project file could not be read or hashed."""

    def __init__(self, path: str, reason: str = ""):
        self.path = path
        self.reason = reason
        message = f"File not readable: {path}"
        if reason:
            message += f" ({reason})"
        super().__init__(message)


class ConfigError(SyncError):
    """A configuration value is invalid."""
