"""
Shared utilities for the Mallikarjuna Hospital offline agent.

This package aggregates common building blocks consumed by the agent:

- config: Agent configuration via pydantic-settings
- logging: Structured logging with request correlation
- metrics: Prometheus metrics helpers
- errors: Canonical error types and responses
- retry: Retry with backoff for flaky network calls
- base_service: FastAPI service scaffolding (health, metrics, error handlers)

Do not import from service_* packages into shared/.
"""
