"""
Shared utilities for the proxy entitlements connector.

This package aggregates common building blocks consumed by the service:

- config: Connector configuration via pydantic-settings
- logging: Structured logging with command correlation
- metrics: Prometheus metrics helpers
- errors: Canonical error types and responses
- retry: Retry decorators for remote calls
- base_service: FastAPI service scaffolding

Any cross-service logic should live here to avoid import cycles. Do not
import from service_* packages into shared/.
"""
