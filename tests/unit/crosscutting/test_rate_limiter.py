"""
Name: Rate Limiter Tests

Responsibilities:
  - Token bucket burst, refill and retry-after
  - "N requests per window" construction
  - Dependency behavior (disabled no-op, 429 when exhausted)
"""

from types import SimpleNamespace

import pytest

from postflow.crosscutting.error_responses import AppHTTPException, ErrorCode
from postflow.crosscutting.rate_limit import (
    RateLimitDependency,
    TokenBucket,
    build_auth_rate_limiters,
    get_client_identifier,
)

pytestmark = pytest.mark.unit


class FakeMonotonic:
    def __init__(self):
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


def _request(host: str = "10.0.0.1", forwarded: str | None = None):
    headers = {"X-Forwarded-For": forwarded} if forwarded else {}
    return SimpleNamespace(headers=headers, client=SimpleNamespace(host=host))


class TestTokenBucket:
    def test_burst_then_blocked(self):
        bucket = TokenBucket(rps=1, burst=3, clock=FakeMonotonic())

        results = [bucket.consume("k")[0] for _ in range(4)]

        assert results == [True, True, True, False]

    def test_refill_over_time(self):
        clock = FakeMonotonic()
        bucket = TokenBucket(rps=2, burst=2, clock=clock)
        bucket.consume("k")
        bucket.consume("k")

        allowed, retry_after = bucket.consume("k")
        assert allowed is False
        assert retry_after == pytest.approx(0.5)

        clock.now += 0.5
        assert bucket.consume("k")[0] is True

    def test_keys_are_independent(self):
        bucket = TokenBucket(rps=1, burst=1, clock=FakeMonotonic())

        assert bucket.consume("a")[0] is True
        assert bucket.consume("b")[0] is True
        assert bucket.get_remaining("a") == 0

    def test_refilled_keys_are_evicted_past_capacity(self):
        clock = FakeMonotonic()
        bucket = TokenBucket(rps=1, burst=1, clock=clock, max_keys=1)
        bucket.consume("a")
        clock.now += 5

        assert bucket.consume("b")[0] is True
        assert set(bucket._state) == {"b"}
        assert bucket.get_remaining("a") == 1

    def test_per_window(self):
        bucket = TokenBucket.per_window(10, 300, clock=FakeMonotonic())

        assert bucket.burst == 10
        assert bucket.rps == pytest.approx(10 / 300)

    @pytest.mark.parametrize("rps,burst", [(0, 1), (1, 0)])
    def test_invalid_parameters(self, rps, burst):
        with pytest.raises(ValueError):
            TokenBucket(rps=rps, burst=burst)


class TestRateLimitDependency:
    def test_client_identifier_prefers_forwarded_for(self):
        request = _request(forwarded="203.0.113.9, 10.0.0.1")

        assert get_client_identifier(request) == "ip:203.0.113.9"
        assert get_client_identifier(_request()) == "ip:10.0.0.1"

    def test_disabled_dependency_is_noop(self):
        limiter = RateLimitDependency("auth", None, "slow down")

        for _ in range(1000):
            limiter(_request())
        assert limiter.enabled is False

    def test_exhausted_dependency_raises_429(self):
        bucket = TokenBucket(rps=0.01, burst=1, clock=FakeMonotonic())
        limiter = RateLimitDependency("refresh", bucket, "slow down")
        limiter(_request())

        with pytest.raises(AppHTTPException) as excinfo:
            limiter(_request())

        assert excinfo.value.status_code == 429
        assert excinfo.value.code == ErrorCode.RATE_LIMITED
        assert excinfo.value.detail == "slow down"
        assert int(excinfo.value.headers["Retry-After"]) >= 100

    def test_build_from_settings(self):
        settings = SimpleNamespace(
            is_rate_limiting_enabled=lambda: True,
            auth_rate_limit_requests=100,
            auth_rate_limit_window_seconds=900,
            refresh_rate_limit_requests=10,
            refresh_rate_limit_window_seconds=300,
        )

        auth, refresh = build_auth_rate_limiters(settings)

        assert auth.bucket.burst == 100
        assert refresh.bucket.burst == 10
