"""ddd-sync — hash-based drift tracking between flow specs and their implementations."""

__version__ = "0.1.0"
