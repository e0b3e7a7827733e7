"""
Shared utilities for the JIT Access core.

This package aggregates common building blocks consumed by the service
packages:

- config: Settings via pydantic-settings
- logging: Structured logging with correlation context
- errors: Canonical error types and responses
- retry: Retry decorator for external calls
- circuit_breaker: Protection for external API calls

Do not import from service_* packages into shared/.
"""
