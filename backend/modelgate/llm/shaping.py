"""
Request shaping — one strategy per wire family.

Each WireFamily maps to a FamilyStrategy that knows how to build the upstream
URL, headers and JSON body for both modes:

  chat mode  → streamed free text
  tool mode  → one non-streamed structured decision (low temperature,
               small output ceiling)

Adding a family means adding one strategy to STRATEGIES; the router never
branches on provider identity.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Callable

from modelgate.core.errors import UnknownProvider
from modelgate.llm.registry import ProviderConfig, WireFamily

logger = logging.getLogger(__name__)

CHAT_TEMPERATURE        = 0.7
CHAT_MAX_TOKENS         = 2048   # chat-completions
CHAT_MAX_OUTPUT_TOKENS  = 4096   # generate-content
TOOL_TEMPERATURE        = 0.1
TOOL_MAX_TOKENS         = 512

Message = dict[str, Any]


# ---------------------------------------------------------------------------
# Generate-content message conversion
# ---------------------------------------------------------------------------

def _text_of(content: Any) -> str:
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        return "\n".join(
            part.get("text", "") for part in content
            if isinstance(part, dict) and part.get("type") == "text"
        )
    return ""


def _inline_image(url: str) -> dict[str, Any] | None:
    # data:<mime>;base64,<payload>
    if not url.startswith("data:") or "," not in url:
        return None
    header, data = url.split(",", 1)
    mime_type = header[len("data:"):].split(";", 1)[0] or "application/octet-stream"
    return {"inline_data": {"mime_type": mime_type, "data": data}}


def _to_parts(content: Any) -> list[dict[str, Any]]:
    if isinstance(content, str):
        return [{"text": content}] if content else []
    if not isinstance(content, list):
        return []

    parts: list[dict[str, Any]] = []
    for part in content:
        if not isinstance(part, dict):
            continue
        if part.get("type") == "text" and part.get("text"):
            parts.append({"text": part["text"]})
        elif part.get("type") == "image_url":
            url = (part.get("image_url") or {}).get("url", "")
            image = _inline_image(url)
            if image is not None:
                parts.append(image)
            else:
                logger.debug("Shaping | dropped non-inline image part")
    return parts


def to_generate_content(messages: list[Message]) -> tuple[list[dict[str, Any]], dict[str, Any] | None]:
    """
    Convert chat messages to generate-content `contents` + `systemInstruction`.

    - system messages become the system instruction (the last one wins)
    - assistant → role "model"; every other role → "user"
    - messages that produce no parts are omitted
    """
    contents: list[dict[str, Any]] = []
    system_instruction: dict[str, Any] | None = None

    for message in messages:
        role = message.get("role")
        if role == "system":
            text = _text_of(message.get("content"))
            if text:
                system_instruction = {"parts": [{"text": text}]}
            continue

        parts = _to_parts(message.get("content"))
        if not parts:
            continue
        contents.append({"role": "model" if role == "assistant" else "user", "parts": parts})

    return contents, system_instruction


# ---------------------------------------------------------------------------
# Strategies
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class FamilyStrategy:
    """How to address and shape requests for one wire family."""
    chat_url:   Callable[[ProviderConfig], str]
    tool_url:   Callable[[ProviderConfig], str]
    headers:    Callable[[str], dict[str, str]]
    chat_body:  Callable[[ProviderConfig, list[Message], str], dict[str, Any]]
    tool_body:  Callable[[ProviderConfig, list[Message], Any], dict[str, Any]]
    transcodes: bool   # chat stream needs rewriting into the canonical dialect


# -- chat-completions-compatible --------------------------------------------

def _bearer_headers(api_key: str) -> dict[str, str]:
    return {
        "Authorization": f"Bearer {api_key}",
        "Content-Type":  "application/json",
    }


def _chat_completions_chat_body(config: ProviderConfig, messages: list[Message], preamble: str) -> dict[str, Any]:
    return {
        "model":       config.upstream_model,
        "messages":    [{"role": "system", "content": preamble}, *messages],
        "temperature": CHAT_TEMPERATURE,
        "max_tokens":  CHAT_MAX_TOKENS,
        "stream":      True,
    }


def _chat_completions_tool_body(config: ProviderConfig, messages: list[Message], tools: Any) -> dict[str, Any]:
    return {
        "model":       config.upstream_model,
        "messages":    list(messages),
        "tools":       tools,
        "tool_choice": "auto",
        "stream":      False,
        "temperature": TOOL_TEMPERATURE,
        "max_tokens":  TOOL_MAX_TOKENS,
    }


# -- generate-content ---------------------------------------------------------

def _google_headers(api_key: str) -> dict[str, str]:
    return {
        "x-goog-api-key": api_key,
        "Content-Type":   "application/json",
    }


def _generate_content_chat_body(config: ProviderConfig, messages: list[Message], preamble: str) -> dict[str, Any]:
    contents, system_instruction = to_generate_content(messages)
    body: dict[str, Any] = {
        "contents": contents,
        "generationConfig": {
            "temperature":     CHAT_TEMPERATURE,
            "maxOutputTokens": CHAT_MAX_OUTPUT_TOKENS,
        },
    }
    if system_instruction:
        body["systemInstruction"] = system_instruction
    return body


def _generate_content_tool_body(config: ProviderConfig, messages: list[Message], tools: Any) -> dict[str, Any]:
    contents, system_instruction = to_generate_content(messages)
    body: dict[str, Any] = {
        "contents":   contents,
        "tools":      [tools],
        "toolConfig": {"functionCallingConfig": {"mode": "AUTO"}},
        "generationConfig": {
            "temperature":     TOOL_TEMPERATURE,
            "maxOutputTokens": TOOL_MAX_TOKENS,
        },
    }
    if system_instruction:
        body["systemInstruction"] = system_instruction
    return body


STRATEGIES: MappingProxyType[WireFamily, FamilyStrategy] = MappingProxyType({
    WireFamily.CHAT_COMPLETIONS: FamilyStrategy(
        chat_url   = lambda c: c.url,
        tool_url   = lambda c: c.url,
        headers    = _bearer_headers,
        chat_body  = _chat_completions_chat_body,
        tool_body  = _chat_completions_tool_body,
        transcodes = False,
    ),
    WireFamily.GENERATE_CONTENT: FamilyStrategy(
        chat_url   = lambda c: f"{c.url.rstrip('/')}/{c.upstream_model}:streamGenerateContent?alt=sse",
        tool_url   = lambda c: f"{c.url.rstrip('/')}/{c.upstream_model}:generateContent",
        headers    = _google_headers,
        chat_body  = _generate_content_chat_body,
        tool_body  = _generate_content_tool_body,
        transcodes = True,
    ),
})


def strategy_for(config: ProviderConfig) -> FamilyStrategy:
    """
    Raises:
        UnknownProvider: If the provider's wire family has no strategy.
    """
    strategy = STRATEGIES.get(config.wire_family)
    if strategy is None:
        raise UnknownProvider(
            f"No request strategy for wire family {config.wire_family!r} "
            f"(model {config.logical_id})",
            model=config.logical_id,
        )
    return strategy
