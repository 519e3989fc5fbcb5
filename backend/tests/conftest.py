"""
Root conftest.py — Shared fixtures for ALL tests (unit + integration)

Fixture hierarchy:
  function-scoped : test_settings, registry, no_sleep, executor,
                    upstream (MockTransport recorder), gateway, async_client

Environment strategy:
  - No test ever reaches a real provider: every upstream call goes through
    httpx.MockTransport with a per-test handler.
  - Retry backoff uses a recording no-op sleep, so retry tests run instantly
    and can assert the exact delays.
  - API tests drive the real FastAPI app over httpx.ASGITransport with the
    lifespan run explicitly.

How to run:
  pytest                          # all tests
  pytest -m unit                  # unit tests only (fast, no I/O)
  pytest -m integration           # full FastAPI stack, mocked upstreams
  pytest tests/unit/test_retry.py # single file
"""

from __future__ import annotations

import json
import os
from typing import AsyncGenerator, Callable

import httpx
import pytest
import pytest_asyncio
from httpx import AsyncClient

# ─────────────────────────────────────────────────────────────────────────────
# Patch settings BEFORE any modelgate imports so modules read test config
# ─────────────────────────────────────────────────────────────────────────────

os.environ.setdefault("APP_ENV",        "development")
os.environ.setdefault("DEBUG",          "false")
os.environ.setdefault("DEFAULT_MODEL",  "gemini-3-pro")
os.environ.setdefault("GEMINI_API_KEY", "gm-test-key")
os.environ.setdefault("GROQ_API_KEY",   "gsk-test-key")
os.environ.setdefault("KIMI_API_KEY",   "nvapi-test-key")

GEMINI_BASE = "https://generativelanguage.googleapis.com/v1beta/models"


# ─────────────────────────────────────────────────────────────────────────────
# Wire-format helpers
# ─────────────────────────────────────────────────────────────────────────────

def gemini_event(*texts: str) -> str:
    """One generate-content SSE line carrying the given text parts."""
    payload = {"candidates": [{"content": {"role": "model", "parts": [{"text": t} for t in texts]}}]}
    return f"data: {json.dumps(payload)}\r\n\r\n"


def gemini_sse(*events: str) -> bytes:
    return "".join(events).encode()


def openai_sse(*deltas: str) -> bytes:
    """A chat-completions stream, already in the canonical dialect."""
    lines = [
        f'data: {json.dumps({"choices": [{"delta": {"content": d}, "index": 0}]})}\n\n'
        for d in deltas
    ]
    return ("".join(lines) + "data: [DONE]\n\n").encode()


def canonical_deltas(body: bytes) -> list[str]:
    """Decode a canonical SSE body into its content deltas (excluding [DONE])."""
    deltas = []
    for block in body.decode().split("\n\n"):
        if not block.startswith("data: ") or block == "data: [DONE]":
            continue
        deltas.append(json.loads(block[len("data: "):])["choices"][0]["delta"]["content"])
    return deltas


# ─────────────────────────────────────────────────────────────────────────────
# Settings / registry / retry
# ─────────────────────────────────────────────────────────────────────────────

@pytest.fixture
def test_settings():
    """Explicit settings with every provider key present."""
    from modelgate.core.config import Settings
    return Settings(
        _env_file=None,
        app_env="development",
        default_model="gemini-3-pro",
        gemini_api_key="gm-test-key",
        groq_api_key="gsk-test-key",
        kimi_api_key="nvapi-test-key",
    )


@pytest.fixture
def registry(test_settings):
    from modelgate.llm.registry import ProviderRegistry
    return ProviderRegistry.from_settings(test_settings)


class RecordingSleep:
    """Drop-in for asyncio.sleep that records delays and returns immediately."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.fixture
def no_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def executor(no_sleep):
    from modelgate.llm.retry import RetryExecutor
    return RetryExecutor(max_attempts=3, base_delay=1.0, max_delay=4.0, sleep=no_sleep)


# ─────────────────────────────────────────────────────────────────────────────
# Upstream fake — httpx.MockTransport with a swappable handler
# ─────────────────────────────────────────────────────────────────────────────

class UpstreamRecorder:
    """
    Records every upstream request and answers with `handler`.

    Usage:
        upstream.handler = lambda request: httpx.Response(200, json={...})
        upstream.respond(503, 503, 200, final=httpx.Response(...))
    """

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.handler: Callable[[httpx.Request], httpx.Response] = (
            lambda request: httpx.Response(500, text="no handler configured")
        )

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.handler(request)

    @property
    def calls(self) -> int:
        return len(self.requests)

    def json_body(self, index: int = -1) -> dict:
        return json.loads(self.requests[index].content)

    def sequence(self, *responses: httpx.Response | Exception) -> None:
        """Answer successive calls with the given responses (or raise exceptions)."""
        queue = list(responses)

        def _next(request: httpx.Request) -> httpx.Response:
            item = queue.pop(0) if len(queue) > 1 else queue[0]
            if isinstance(item, Exception):
                raise item
            return item

        self.handler = _next


@pytest.fixture
def upstream() -> UpstreamRecorder:
    return UpstreamRecorder()


@pytest_asyncio.fixture
async def http_client(upstream) -> AsyncGenerator[httpx.AsyncClient, None]:
    async with httpx.AsyncClient(transport=httpx.MockTransport(upstream)) as client:
        yield client


@pytest.fixture
def gateway(http_client, registry, executor, test_settings):
    from modelgate.llm.gateway import LLMGateway
    return LLMGateway(http_client, registry=registry, executor=executor, cfg=test_settings)


# ─────────────────────────────────────────────────────────────────────────────
# FastAPI test client
# ─────────────────────────────────────────────────────────────────────────────

@pytest.fixture
def app(test_settings, http_client, executor):
    """
    FastAPI app wired to the mocked upstream:
      - upstream client → MockTransport (no network)
      - retry sleep     → recording no-op
    """
    from modelgate.main import create_app
    return create_app(cfg=test_settings, client=http_client, executor=executor)


@pytest_asyncio.fixture
async def async_client(app) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP test client using the wired app.

    ASGITransport does not run the lifespan; enter it explicitly so
    app.state.gateway exists. raise_app_exceptions=False lets the catch-all
    handler's 500 reach the client.
    """
    async with app.router.lifespan_context(app):
        transport = httpx.ASGITransport(app=app, raise_app_exceptions=False)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            yield client
