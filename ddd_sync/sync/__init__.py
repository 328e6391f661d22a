"""Drift detection, reconciliation, and the plumbing around them.

This package provides:
- Drift detection: classify every tracked flow as synced, spec ahead, code ahead, or diverged
- Sync scoring: how much of the registry is implemented and current
- Reconciliation: accept, re-implement, or ignore drift, with an audit report per resolution
- Write guard and debouncing for external file-change notifications
"""
