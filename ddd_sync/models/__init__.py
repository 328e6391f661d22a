"""Data models for mappings, drift, reconciliation, scoring, and change history."""
