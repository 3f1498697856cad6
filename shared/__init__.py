"""
Shared utilities for the facet permissions engine.

This package aggregates the cross-cutting building blocks consumed by the
permissions service:

- config: Settings via pydantic-settings
- logging: Structured logging with request correlation
- metrics: Prometheus metrics helpers
- errors: Canonical exception types
- retry: Retry decorator for store writes
- circuit_breaker: Fail-fast protection for the audit queue

Do not import from service packages into shared/.
"""
