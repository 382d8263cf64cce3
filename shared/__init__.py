"""
Shared utilities for the model query cache.

This package aggregates common building blocks consumed by the engine:

- config: Client configuration via pydantic-settings
- logging: Structured logging with trace and mutation correlation
- metrics: Prometheus metrics helpers
- tracing: OpenTelemetry span helpers
- errors: Canonical error types

Only test_helpers imports from model_cache.
"""
