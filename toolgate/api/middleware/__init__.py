"""HTTP middleware and request-level helpers."""
