"""
Shared utilities for the HN API proxy.

This package aggregates common building blocks consumed by the services:

- config: Service configuration via pydantic-settings
- logging: Structured logging with request correlation
- metrics: Prometheus metrics helpers
- errors: Canonical error types and responses
- retry: Retry decorators for flaky upstream calls
- circuit_breaker: Resilient external call protection
- base_service: FastAPI application scaffolding
- test_helpers: Record factories and a manual clock for tests

Any cross-service logic should live here to avoid import cycles across
service packages. Do not import from service_* packages into shared/.
"""
