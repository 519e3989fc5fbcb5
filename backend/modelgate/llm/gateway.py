"""
LLM Gateway — Unified Entry Point for all Chat and Tool-Call Requests

The gateway is the single call site for the HTTP layer. It composes:

  ┌─────────────────────────────────────────────────────┐
  │  LLMGateway.chat() / .tool_call()                   │
  │       │                                             │
  │       ▼                                             │
  │  validate request            ← fail fast, no I/O    │
  │       │                                             │
  │       ▼                                             │
  │  ProviderRegistry.resolve()  ← logical id → config  │
  │       │                                             │
  │       ▼                                             │
  │  strategy_for(wire_family)   ← URL, headers, body   │
  │       │                                             │
  │       ▼                                             │
  │  RetryExecutor.execute()     ← 3 attempts, backoff  │
  │       │                                             │
  │       ▼                                             │
  │  transcode / passthrough     ← canonical SSE        │
  │  (tool mode: raw JSON)                              │
  └─────────────────────────────────────────────────────┘

Usage (from the chat endpoint)::

    gateway = LLMGateway(client)
    stream  = await gateway.chat(body)       # raises before any byte is sent
    return StreamingResponse(stream, media_type="text/event-stream")

    decision = await gateway.tool_call(body)  # unmodified upstream JSON

chat() awaits the upstream's response headers (including every retry) before
returning the stream, so every caller-facing error is raised while the HTTP
layer can still answer with a JSON error body. Once streaming has begun,
upstream problems only end the stream.
"""

from __future__ import annotations

import logging
import time
from typing import Any, AsyncIterator

import httpx

from modelgate.core.config import Settings, settings
from modelgate.core.errors import UnknownProvider, UpstreamExhausted, ValidationError
from modelgate.llm.registry import ProviderConfig, ProviderRegistry, WireFamily, resolve_credential
from modelgate.llm.retry import ERROR_PREVIEW_CHARS, RetryExecutor
from modelgate.llm.shaping import strategy_for
from modelgate.llm.tool_schema import (
    NATIVE_WRAPPER_KEY,
    is_native_wrapper,
    to_provider_schema,
    validate_declarations,
)
from modelgate.llm.transcoder import passthrough, transcode_generate_content
from modelgate.schemas.chat import ChatRequest

logger = logging.getLogger(__name__)

CHAT_MODE = "chat"
TOOL_MODE = "tool"


# ---------------------------------------------------------------------------
# LLMGateway
# ---------------------------------------------------------------------------

class LLMGateway:
    """
    Provider-agnostic request router with retry and stream transcoding.

    One instance per application, sharing one httpx.AsyncClient.
    Holds no per-request state; safe for concurrent use.
    """

    def __init__(
        self,
        client:   httpx.AsyncClient,
        registry: ProviderRegistry | None = None,
        executor: RetryExecutor | None    = None,
        cfg:      Settings | None         = None,
    ) -> None:
        self._cfg      = cfg or settings
        self._client   = client
        self._registry = registry or ProviderRegistry.from_settings(self._cfg)
        self._executor = executor or RetryExecutor.from_settings(self._cfg)

    @property
    def registry(self) -> ProviderRegistry:
        return self._registry

    # -----------------------------------------------------------------------
    # Chat mode (streamed)
    # -----------------------------------------------------------------------

    async def chat(self, request: ChatRequest) -> AsyncIterator[bytes]:
        """
        Start a streamed chat completion.

        Returns:
            An async iterator of canonical SSE bytes, ending with [DONE].

        Raises:
            ValidationError:   Empty messages.
            UnknownProvider:   Model id not registered.
            MissingCredential: Provider key not configured.
            UpstreamExhausted: Every attempt failed before streaming began.
        """
        messages = self._validated_messages(request)
        config   = self._resolve_for_chat(request.model)
        strategy = strategy_for(config)
        api_key  = resolve_credential(config, self._cfg)

        upstream = self._client.build_request(
            "POST",
            strategy.chat_url(config),
            headers=strategy.headers(api_key),
            json=strategy.chat_body(config, messages, self._cfg.system_preamble),
        )
        label = _label(config, CHAT_MODE)

        t0 = time.perf_counter()
        response = await self._executor.execute(
            lambda: self._client.send(upstream, stream=True),
            label=label,
        )
        logger.info(
            "LLMGateway | mode=chat model=%s family=%s messages=%d ttfb_ms=%.1f",
            config.logical_id, config.wire_family.value, len(messages),
            (time.perf_counter() - t0) * 1000,
        )

        if strategy.transcodes:
            return transcode_generate_content(response, label=label)
        return passthrough(response, label=label)

    # -----------------------------------------------------------------------
    # Tool-call mode (single structured decision)
    # -----------------------------------------------------------------------

    async def tool_call(self, request: ChatRequest) -> dict[str, Any]:
        """
        Ask the model for exactly one tool decision.

        Returns:
            The upstream's JSON response, unmodified.

        Raises:
            ValidationError:   Empty messages, or tools missing / empty /
                               malformed / in the wrong dialect.
            UnknownProvider:   Model id not registered.
            MissingCredential: Provider key not configured.
            UpstreamExhausted: Every attempt failed.
        """
        messages = self._validated_messages(request)
        if _is_empty_tools(request.tools):
            raise ValidationError("tools must be a non-empty list in tool mode")

        config   = self._registry.resolve(request.model)
        strategy = strategy_for(config)
        tools    = self._provider_tools(request.tools, config)
        api_key  = resolve_credential(config, self._cfg)

        url     = strategy.tool_url(config)
        headers = strategy.headers(api_key)
        body    = strategy.tool_body(config, messages, tools)
        label   = _label(config, TOOL_MODE)

        t0 = time.perf_counter()
        response = await self._executor.execute(
            lambda: self._client.post(url, headers=headers, json=body),
            label=label,
        )
        latency = (time.perf_counter() - t0) * 1000

        try:
            decision = response.json()
        except ValueError as exc:
            # JSONDecodeError or UnicodeDecodeError
            raise UpstreamExhausted(
                f"{label} returned a non-JSON body",
                last_status=response.status_code,
                last_error=response.text[:ERROR_PREVIEW_CHARS],
            ) from exc

        logger.info(
            "LLMGateway | mode=tool model=%s family=%s tools=%d latency_ms=%.1f",
            config.logical_id, config.wire_family.value, _tool_count(tools), latency,
        )
        return decision

    # -----------------------------------------------------------------------
    # Helpers
    # -----------------------------------------------------------------------

    @staticmethod
    def _validated_messages(request: ChatRequest) -> list[dict[str, Any]]:
        if not request.messages:
            raise ValidationError("messages must be a non-empty list")
        return [message.model_dump(exclude_none=True) for message in request.messages]

    def _resolve_for_chat(self, model: str | None) -> ProviderConfig:
        try:
            return self._registry.resolve(model)
        except UnknownProvider:
            if not self._cfg.chat_unknown_model_fallback:
                raise
            fallback = self._registry.default
            logger.warning(
                "LLMGateway | unknown model=%s, falling back to default=%s",
                model, fallback.logical_id,
            )
            return fallback

    @staticmethod
    def _provider_tools(tools: Any, config: ProviderConfig) -> Any:
        if is_native_wrapper(tools):
            if config.wire_family != WireFamily.GENERATE_CONTENT:
                raise ValidationError(
                    f"{NATIVE_WRAPPER_KEY} wrapper is not accepted by model {config.logical_id}; "
                    "send canonical function tools instead"
                )
            return tools

        if not isinstance(tools, list):
            raise ValidationError("tools must be a list of function tool declarations")

        validate_declarations(tools)
        return to_provider_schema(tools, config.wire_family)


def _is_empty_tools(tools: Any) -> bool:
    if tools is None:
        return True
    if is_native_wrapper(tools):
        return not tools[NATIVE_WRAPPER_KEY]
    return isinstance(tools, (list, dict)) and not tools


def _tool_count(tools: Any) -> int:
    if is_native_wrapper(tools):
        return len(tools[NATIVE_WRAPPER_KEY])
    return len(tools) if isinstance(tools, list) else 0


def _label(config: ProviderConfig, mode: str) -> str:
    return f"{mode}/{config.logical_id}"
