"""Domain registry — the read-only catalog of domains and their flows.

Drift detection scans only flows listed here. Scoring takes its total from the
registry, while every mapping still counts toward ``implemented``.
"""
