"""Observability: structured logging, distributed tracing, metrics.

structlog for logging, OpenTelemetry for tracing, and Prometheus for metrics.
"""
