"""
Unit Tests — RetryExecutor
══════════════════════════
Coverage targets:
  ✅ Three consecutive 5xx → exactly 3 attempts, delays 1s then 2s
  ✅ Failure then success → returns the success, stops early
  ✅ Two failures then success → success on the third attempt, delays 1s then 2s
  ✅ Transport errors retried like status errors
  ✅ Any non-2xx (including 4xx) retried
  ✅ UpstreamExhausted carries last status ("none" for transport-only) and ≤200 chars
  ✅ Cancellation during backoff → no further attempt
"""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock

import httpx
import pytest

from modelgate.core.errors import UpstreamExhausted
from modelgate.llm.retry import ERROR_PREVIEW_CHARS, RetryExecutor


def _response(status: int, text: str = "") -> httpx.Response:
    return httpx.Response(status, text=text)


@pytest.mark.unit
class TestRetryExecutor:

    async def test_three_failures_exhaust_with_1s_then_2s(self, executor, no_sleep):
        attempt = AsyncMock(return_value=_response(503, "overloaded"))

        with pytest.raises(UpstreamExhausted) as exc_info:
            await executor.execute(attempt, label="chat/test")

        assert attempt.await_count == 3
        assert no_sleep.delays == [1.0, 2.0]
        assert exc_info.value.last_status == 503
        assert exc_info.value.last_error == "overloaded"
        assert exc_info.value.status_code == 502

    async def test_two_failures_then_success_uses_full_budget(self, executor, no_sleep):
        ok = _response(200, "fine")
        attempt = AsyncMock(side_effect=[_response(500, "boom"), _response(502, "bad gateway"), ok])

        result = await executor.execute(attempt)

        assert result is ok
        assert attempt.await_count == 3
        assert no_sleep.delays == [1.0, 2.0]

    async def test_failure_then_success_returns_success(self, executor, no_sleep):
        ok = _response(200, "fine")
        attempt = AsyncMock(side_effect=[_response(500, "boom"), ok])

        result = await executor.execute(attempt)

        assert result is ok
        assert attempt.await_count == 2
        assert no_sleep.delays == [1.0]

    async def test_first_attempt_success_never_sleeps(self, executor, no_sleep):
        attempt = AsyncMock(return_value=_response(200))
        await executor.execute(attempt)
        assert attempt.await_count == 1
        assert no_sleep.delays == []

    async def test_transport_errors_are_retried(self, executor):
        ok = _response(200)
        attempt = AsyncMock(side_effect=[httpx.ConnectError("refused"), httpx.ReadTimeout("slow"), ok])

        assert await executor.execute(attempt) is ok
        assert attempt.await_count == 3

    async def test_transport_only_failure_reports_no_status(self, executor):
        attempt = AsyncMock(side_effect=httpx.ConnectError("connection refused"))

        with pytest.raises(UpstreamExhausted) as exc_info:
            await executor.execute(attempt, label="tool/gpt-oss-20b")

        assert exc_info.value.last_status is None
        assert "connection refused" in exc_info.value.last_error
        assert "last status: none" in exc_info.value.message

    async def test_client_errors_are_retried_too(self, executor):
        attempt = AsyncMock(return_value=_response(400, "bad request"))

        with pytest.raises(UpstreamExhausted):
            await executor.execute(attempt)

        assert attempt.await_count == 3

    async def test_error_text_truncated(self, executor):
        attempt = AsyncMock(return_value=_response(500, "x" * 5000))

        with pytest.raises(UpstreamExhausted) as exc_info:
            await executor.execute(attempt)

        assert len(exc_info.value.last_error) == ERROR_PREVIEW_CHARS

    async def test_last_status_is_from_final_attempt(self, executor):
        attempt = AsyncMock(side_effect=[_response(500), _response(429), _response(503, "last")])

        with pytest.raises(UpstreamExhausted) as exc_info:
            await executor.execute(attempt)

        assert exc_info.value.last_status == 503
        assert exc_info.value.last_error == "last"

    def test_delay_schedule_is_capped(self):
        executor = RetryExecutor(max_attempts=6, base_delay=1.0, max_delay=4.0)
        assert [executor.delay_before(n) for n in range(1, 7)] == [0.0, 1.0, 2.0, 4.0, 4.0, 4.0]

    def test_rejects_zero_attempts(self):
        with pytest.raises(ValueError):
            RetryExecutor(max_attempts=0)

    def test_from_settings(self, test_settings):
        executor = RetryExecutor.from_settings(test_settings)
        assert executor.max_attempts == 3
        assert executor.delay_before(2) == 1.0
        assert executor.delay_before(3) == 2.0

    async def test_cancel_during_backoff_stops_attempts(self):
        sleeping = asyncio.Event()

        async def _slow_sleep(delay: float) -> None:
            sleeping.set()
            await asyncio.sleep(3600)

        executor = RetryExecutor(sleep=_slow_sleep)
        attempt = AsyncMock(return_value=_response(503))

        task = asyncio.create_task(executor.execute(attempt))
        await sleeping.wait()
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task
        assert attempt.await_count == 1
