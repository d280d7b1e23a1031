"""Tests for CircuitBreaker state changes."""

from __future__ import annotations

import time

from social_mcp.infra.circuit_breaker import CircuitBreaker, CircuitState


class TestCircuitBreaker:
    def test_starts_closed(self):
        breaker = CircuitBreaker()
        assert breaker.state == CircuitState.CLOSED
        assert breaker.can_execute()

    def test_opens_at_threshold(self):
        breaker = CircuitBreaker(failure_threshold=3)
        breaker.record_failure()
        breaker.record_failure()
        assert breaker.state == CircuitState.CLOSED
        breaker.record_failure()
        assert breaker.state == CircuitState.OPEN
        assert not breaker.can_execute()

    def test_success_resets_count(self):
        breaker = CircuitBreaker(failure_threshold=2)
        breaker.record_failure()
        breaker.record_success()
        breaker.record_failure()
        assert breaker.state == CircuitState.CLOSED

    def test_half_open_allows_one_trial(self):
        breaker = CircuitBreaker(failure_threshold=1, recovery_timeout=10)
        breaker.record_failure()
        breaker.last_failure_time = time.monotonic() - 11

        assert breaker.can_execute()
        assert breaker.state == CircuitState.HALF_OPEN
        assert not breaker.can_execute()

    def test_half_open_success_closes(self):
        breaker = CircuitBreaker(failure_threshold=1, recovery_timeout=0)
        breaker.record_failure()
        assert breaker.can_execute()
        breaker.record_success()
        assert breaker.state == CircuitState.CLOSED

    def test_half_open_failure_reopens(self):
        breaker = CircuitBreaker(failure_threshold=1, recovery_timeout=0)
        breaker.record_failure()
        assert breaker.can_execute()
        breaker.record_failure()
        assert breaker.state == CircuitState.OPEN

    def test_status(self):
        status = CircuitBreaker(failure_threshold=4).get_status()
        assert status["state"] == "closed"
        assert status["failure_threshold"] == 4
