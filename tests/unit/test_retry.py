"""
Unit tests for the retry executor
"""

import httpx
import pytest

from core.exceptions import AuthError, RateLimitedError, TransientNetworkError
from replication.retry import RetryExecutor
from tests.support import SleepRecorder


def response(status: int, headers=None) -> httpx.Response:
    return httpx.Response(
        status,
        json={"status": status},
        headers=headers,
        request=httpx.Request("GET", "https://flex.test/contact")
    )


class ScriptedCall:
    """Zero-argument coroutine factory returning queued responses or raising queued errors"""

    def __init__(self, *outcomes):
        self.outcomes = list(outcomes)
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


def executor(sleep: SleepRecorder, max_retries: int = 3) -> RetryExecutor:
    return RetryExecutor(
        max_retries=max_retries,
        base_delay=1.0,
        throttle_delay=10.0,
        max_delay=5.0,
        sleep=sleep
    )


class TestComputeDelay:

    def test_generic_delay_is_exponential_and_capped(self):
        retry = executor(SleepRecorder())
        assert [retry.compute_delay(a) for a in range(5)] == [1.0, 2.0, 4.0, 5.0, 5.0]

    def test_throttle_delay_grows_linearly(self):
        retry = executor(SleepRecorder())
        assert [retry.compute_delay(a, throttled=True) for a in range(3)] == [10.0, 20.0, 30.0]

    def test_throttle_delay_honours_longer_retry_after(self):
        retry = executor(SleepRecorder())
        assert retry.compute_delay(0, throttled=True, retry_after=42.0) == 42.0
        assert retry.compute_delay(0, throttled=True, retry_after=3.0) == 10.0

    def test_throttle_delay_never_decreases(self):
        retry = executor(SleepRecorder())
        assert retry.compute_delay(1, throttled=True, previous=45.0) == 45.0

    def test_negative_retry_ceiling_rejected(self):
        with pytest.raises(ValueError):
            RetryExecutor(max_retries=-1)


class TestExecute:

    @pytest.mark.asyncio
    async def test_success_after_server_errors(self):
        sleep = SleepRecorder()
        call = ScriptedCall(response(500), response(503), response(200))

        result = await executor(sleep).execute(call, "GET /contact")

        assert result.status_code == 200
        assert call.calls == 3
        assert sleep.delays == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_persistent_throttling_is_abandoned_at_ceiling(self):
        sleep = SleepRecorder()
        call = ScriptedCall(*[response(429) for _ in range(4)])

        with pytest.raises(RateLimitedError) as exc_info:
            await executor(sleep).execute(call, "GET /contact/c1")

        assert call.calls == 4
        assert exc_info.value.attempts == 4
        assert sleep.delays == [10.0, 20.0, 30.0]
        assert all(b >= a for a, b in zip(sleep.delays, sleep.delays[1:]))

    @pytest.mark.asyncio
    async def test_throttle_waits_non_decreasing_with_retry_after(self):
        sleep = SleepRecorder()
        call = ScriptedCall(
            response(429, headers={"Retry-After": "25"}),
            response(429),
            response(429),
            response(200)
        )

        result = await executor(sleep).execute(call)

        assert result.status_code == 200
        assert sleep.delays == [25.0, 25.0, 30.0]

    @pytest.mark.asyncio
    async def test_auth_failure_is_not_retried(self):
        sleep = SleepRecorder()
        call = ScriptedCall(response(401), response(200))

        with pytest.raises(AuthError) as exc_info:
            await executor(sleep).execute(call)

        assert call.calls == 1
        assert sleep.delays == []
        assert exc_info.value.context["status_code"] == 401

    @pytest.mark.asyncio
    async def test_forbidden_is_auth_failure(self):
        call = ScriptedCall(response(403))
        with pytest.raises(AuthError):
            await executor(SleepRecorder()).execute(call)

    @pytest.mark.asyncio
    async def test_not_found_returns_none(self):
        sleep = SleepRecorder()
        call = ScriptedCall(response(404))

        assert await executor(sleep).execute(call) is None
        assert call.calls == 1
        assert sleep.delays == []

    @pytest.mark.asyncio
    async def test_transport_errors_exhaust_into_transient_error(self):
        sleep = SleepRecorder()
        call = ScriptedCall(*[httpx.ConnectError("connection refused") for _ in range(4)])

        with pytest.raises(TransientNetworkError) as exc_info:
            await executor(sleep).execute(call, "GET /element/search")

        assert call.calls == 4
        assert sleep.delays == [1.0, 2.0, 4.0]
        assert isinstance(exc_info.value.original_exception, httpx.ConnectError)

    @pytest.mark.asyncio
    async def test_timeout_then_success(self):
        sleep = SleepRecorder()
        call = ScriptedCall(httpx.ReadTimeout("slow"), response(200))

        result = await executor(sleep).execute(call)

        assert result.status_code == 200
        assert sleep.delays == [1.0]

    @pytest.mark.asyncio
    async def test_zero_retries_means_single_attempt(self):
        sleep = SleepRecorder()
        call = ScriptedCall(response(502))

        with pytest.raises(TransientNetworkError):
            await executor(sleep, max_retries=0).execute(call)

        assert call.calls == 1
        assert sleep.delays == []

    @pytest.mark.asyncio
    async def test_throttling_then_server_error_ends_as_transient(self):
        call = ScriptedCall(response(429), response(500))

        with pytest.raises(TransientNetworkError):
            await executor(SleepRecorder(), max_retries=1).execute(call)
