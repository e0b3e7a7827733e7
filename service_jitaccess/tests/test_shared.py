"""
Unit tests for shared error, retry, circuit breaker and config helpers.
"""

import pytest
from unittest.mock import AsyncMock

import sys
import os
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..'))

from shared.circuit_breaker import (
    CircuitBreaker, CircuitBreakerOpenException, CircuitBreakerState
)
from shared.config import JitAccessConfig
from shared.errors import (
    AccessDenied, AuthorizationError, InvalidArgument, InvalidExpression, InvalidToken,
    IOFailure, UnsupportedOperation, ValidationError, is_authorization_failure
)
from shared.logging import clear_context, request_id_var, set_request_id, set_user_context, user_id_var
from shared.retry import RetryConfig, RetryError, calculate_delay, retry_on_exception


class TestErrors:

    def test_codes(self):
        assert InvalidExpression().code == "INVALID_EXPRESSION"
        assert InvalidArgument().code == "INVALID_ARGUMENT"
        assert AccessDenied().code == "ACCESS_DENIED"
        assert InvalidToken().code == "INVALID_TOKEN"
        assert IOFailure("cloudasset").code == "IO_FAILURE"
        assert UnsupportedOperation().code == "UNSUPPORTED_OPERATION"

    def test_taxonomy(self):
        assert isinstance(InvalidArgument(), ValidationError)
        assert isinstance(AccessDenied(), AuthorizationError)
        assert isinstance(InvalidToken(), AuthorizationError)
        assert not isinstance(InvalidToken(), AccessDenied)

    def test_authorization_failures(self):
        assert is_authorization_failure(AccessDenied())
        assert is_authorization_failure(InvalidToken())
        assert not is_authorization_failure(InvalidArgument())
        assert not is_authorization_failure(IOFailure("cloudasset"))

    def test_to_response(self):
        response = IOFailure("cloudasset", "timeout", details={"attempts": 3}).to_response()

        assert response.code == "IO_FAILURE"
        assert response.message == "cloudasset: timeout"
        assert response.details == {"attempts": 3}


class TestRetry:

    @pytest.mark.asyncio
    async def test_retries_until_success(self):
        func = AsyncMock(side_effect=[ConnectionError("1"), "ok"])
        func.__name__ = "func"

        wrapped = retry_on_exception((ConnectionError,), RetryConfig(base_delay=0.0, jitter=False))(func)

        assert await wrapped() == "ok"
        assert func.await_count == 2

    @pytest.mark.asyncio
    async def test_raises_retry_error_when_exhausted(self):
        func = AsyncMock(side_effect=ConnectionError("down"))
        func.__name__ = "func"

        wrapped = retry_on_exception((ConnectionError,), RetryConfig(max_attempts=2, base_delay=0.0))(func)

        with pytest.raises(RetryError) as exc_info:
            await wrapped()

        assert exc_info.value.attempts == 2
        assert isinstance(exc_info.value.last_exception, ConnectionError)

    @pytest.mark.asyncio
    async def test_other_exceptions_are_not_retried(self):
        func = AsyncMock(side_effect=AccessDenied("mock"))
        func.__name__ = "func"

        wrapped = retry_on_exception((ConnectionError,), RetryConfig(base_delay=0.0))(func)

        with pytest.raises(AccessDenied):
            await wrapped()
        assert func.await_count == 1

    def test_delay_is_capped(self):
        config = RetryConfig(base_delay=1.0, max_delay=3.0, jitter=False)

        assert calculate_delay(1, config) == 1.0
        assert calculate_delay(2, config) == 2.0
        assert calculate_delay(5, config) == 3.0


class TestCircuitBreaker:

    @pytest.mark.asyncio
    async def test_opens_after_threshold(self):
        breaker = CircuitBreaker("test-open", failure_threshold=2, recovery_timeout=60.0,
                                 expected_exception=IOFailure)
        failing = AsyncMock(side_effect=IOFailure("svc"))

        for _ in range(2):
            with pytest.raises(IOFailure):
                await breaker.call(failing)

        assert breaker.state == CircuitBreakerState.OPEN
        with pytest.raises(CircuitBreakerOpenException):
            await breaker.call(AsyncMock(return_value="ok"))

    @pytest.mark.asyncio
    async def test_half_open_recovers(self):
        breaker = CircuitBreaker("test-recover", failure_threshold=1, recovery_timeout=0.0,
                                 expected_exception=IOFailure)

        with pytest.raises(IOFailure):
            await breaker.call(AsyncMock(side_effect=IOFailure("svc")))

        assert await breaker.call(AsyncMock(return_value="ok")) == "ok"
        assert breaker.state == CircuitBreakerState.CLOSED

    @pytest.mark.asyncio
    async def test_unexpected_exceptions_do_not_count(self):
        breaker = CircuitBreaker("test-unexpected", failure_threshold=1, expected_exception=IOFailure)

        with pytest.raises(AccessDenied):
            await breaker.call(AsyncMock(side_effect=AccessDenied("mock")))

        assert breaker.state == CircuitBreakerState.CLOSED

    @pytest.mark.asyncio
    async def test_breakers_do_not_share_state(self):
        first = CircuitBreaker("svc", failure_threshold=1, expected_exception=IOFailure)
        second = CircuitBreaker("svc", failure_threshold=1, expected_exception=IOFailure)

        with pytest.raises(IOFailure):
            await first.call(AsyncMock(side_effect=IOFailure("svc")))

        assert first.state == CircuitBreakerState.OPEN
        assert second.state == CircuitBreakerState.CLOSED


class TestConfig:

    def test_defaults(self):
        config = JitAccessConfig()

        assert config.resource_scope == "organizations/0"
        assert config.max_activation_duration_minutes == 120

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("JITACCESS_RESOURCE_SCOPE", "folders/123")
        monkeypatch.setenv("JITACCESS_MAX_REVIEWERS", "4")

        config = JitAccessConfig()

        assert config.resource_scope == "folders/123"
        assert config.max_reviewers == 4


class TestLoggingContext:

    def test_request_and_user_context(self):
        request_id = set_request_id()
        set_user_context("user-1@example.com")

        assert request_id_var.get() == request_id
        assert user_id_var.get() == "user-1@example.com"

        clear_context()

        assert request_id_var.get() is None
        assert user_id_var.get() is None
