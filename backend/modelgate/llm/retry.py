"""
Retry Executor — Bounded Retry with Exponential Backoff

Wraps a single upstream attempt (a coroutine factory returning an
httpx.Response) and re-runs it until it succeeds or the budget is spent.

Retry policy:
  - Attempts:   3 total (1 initial + 2 retries)
  - Backoff:    min(base * 2**(n-1), cap) before attempt n+1 → 1s, then 2s
  - Retryable:  ANY transport error (httpx.RequestError) and ANY non-2xx
                status; there is no per-status distinction
  - Exhausted:  UpstreamExhausted(last_status, last_error[:200])

Attempts are strictly sequential. Cancelling the surrounding task while it
waits between attempts cancels the pending sleep, so no further attempt runs.
Request validation belongs to the caller and happens before execute().
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable

import httpx

from modelgate.core.config import Settings, settings
from modelgate.core.errors import UpstreamExhausted

logger = logging.getLogger(__name__)

ERROR_PREVIEW_CHARS = 200   # carried on UpstreamExhausted
LOG_PREVIEW_CHARS   = 500   # written to the per-attempt log record

UpstreamAttempt = Callable[[], Awaitable[httpx.Response]]


class RetryExecutor:
    """
    Provider-agnostic bounded retry around one upstream call.

    Usage::

        executor = RetryExecutor.from_settings()
        response = await executor.execute(
            lambda: client.send(request, stream=True),
            label="generate-content/gemini-3-pro",
        )

    A successful streamed response is returned still open; the caller owns it.
    Failed responses are read (for the error text) and closed here.
    """

    def __init__(
        self,
        max_attempts: int   = 3,
        base_delay:   float = 1.0,
        max_delay:    float = 4.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        self._max_attempts = max_attempts
        self._base_delay   = base_delay
        self._max_delay    = max_delay
        self._sleep        = sleep

    @classmethod
    def from_settings(cls, cfg: Settings | None = None) -> "RetryExecutor":
        cfg = cfg or settings
        return cls(
            max_attempts=cfg.retry_max_attempts,
            base_delay=cfg.retry_base_delay_seconds,
            max_delay=cfg.retry_max_delay_seconds,
        )

    @property
    def max_attempts(self) -> int:
        return self._max_attempts

    def delay_before(self, attempt: int) -> float:
        """Seconds to wait before `attempt` (1-based). Attempt 1 never waits."""
        if attempt <= 1:
            return 0.0
        return min(self._base_delay * 2 ** (attempt - 2), self._max_delay)

    async def execute(self, attempt_call: UpstreamAttempt, label: str = "upstream") -> httpx.Response:
        """
        Run `attempt_call` until it returns a 2xx response.

        Raises:
            UpstreamExhausted: After max_attempts failures.
        """
        last_status: int | None = None
        last_error = ""

        for attempt in range(1, self._max_attempts + 1):
            delay = self.delay_before(attempt)
            if delay:
                logger.info(
                    "RetryExecutor | %s retry %d/%d after %.0fms",
                    label, attempt, self._max_attempts, delay * 1000,
                )
                await self._sleep(delay)

            try:
                response = await attempt_call()
            except httpx.RequestError as exc:
                last_error = str(exc) or type(exc).__name__
                logger.warning(
                    "RetryExecutor | %s attempt=%d/%d outcome=transport_error error=%s",
                    label, attempt, self._max_attempts, last_error[:LOG_PREVIEW_CHARS],
                )
                continue

            if response.is_success:
                logger.info(
                    "RetryExecutor | %s attempt=%d/%d outcome=ok status=%d",
                    label, attempt, self._max_attempts, response.status_code,
                )
                return response

            last_status = response.status_code
            last_error = await _drain_error_body(response)
            logger.warning(
                "RetryExecutor | %s attempt=%d/%d outcome=http_error status=%d body=%s",
                label, attempt, self._max_attempts, last_status,
                last_error[:LOG_PREVIEW_CHARS],
            )

        preview = last_error[:ERROR_PREVIEW_CHARS]
        status_text = str(last_status) if last_status is not None else "none"
        raise UpstreamExhausted(
            f"{label} failed after {self._max_attempts} attempts "
            f"(last status: {status_text}): {preview}",
            last_status=last_status,
            last_error=preview,
        )


async def _drain_error_body(response: httpx.Response) -> str:
    """Read and close a failed (possibly streamed) response, returning its text."""
    try:
        await response.aread()
        return response.text
    except httpx.HTTPError as exc:
        return f"<unreadable body: {exc}>"
    finally:
        await response.aclose()
