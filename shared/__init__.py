"""
Shared utilities for the crate registry client.

This package aggregates common building blocks:

- config: Client configuration via pydantic-settings
- logging: Structured logging with request correlation
- metrics: Prometheus metrics helpers
- errors: Canonical error types and responses
- retry: Retry policy state machine

Do not import from registry_client into shared/.
"""
