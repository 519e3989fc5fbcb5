"""
Tool-call result parsing — raw tool-mode response → ToolCallResult.

The gateway returns the provider's decision unmodified; this helper is for
callers that need it in one shape regardless of which family produced it.

  chat-completions:  choices[0].message.tool_calls[0].function
                     {name, arguments: JSON string}
  generate-content:  candidates[0].content.parts[*].functionCall
                     {name, args: object}; text parts are the explanation
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any

from modelgate.core.errors import ToolCallParseError
from modelgate.llm.registry import WireFamily


@dataclass(frozen=True)
class ToolCallResult:
    """Either plain text, or one tool invocation (optionally with text)."""
    text:      str             = ""
    name:      str | None      = None
    arguments: dict[str, Any]  = field(default_factory=dict)

    @property
    def is_tool_call(self) -> bool:
        return self.name is not None


def parse_tool_call_response(wire_family: WireFamily, raw: dict[str, Any]) -> ToolCallResult:
    """
    Interpret a raw tool-mode response.

    Raises:
        ToolCallParseError: If the response has no message / parts, or the
                            tool arguments are not a JSON object.
    """
    if wire_family == WireFamily.GENERATE_CONTENT:
        return _parse_generate_content(raw)
    return _parse_chat_completions(raw)


def _parse_chat_completions(raw: dict[str, Any]) -> ToolCallResult:
    try:
        message = raw["choices"][0]["message"]
    except (KeyError, IndexError, TypeError) as exc:
        raise ToolCallParseError("No message in chat-completions response") from exc

    text = message.get("content") or ""
    tool_calls = message.get("tool_calls") or []
    if not tool_calls:
        return ToolCallResult(text=text)

    function = tool_calls[0].get("function") or {}
    name = function.get("name")
    if not name:
        raise ToolCallParseError("Tool call has no function name")

    raw_arguments = function.get("arguments") or "{}"
    if isinstance(raw_arguments, dict):
        arguments = raw_arguments
    else:
        try:
            arguments = json.loads(raw_arguments)
        except json.JSONDecodeError as exc:
            raise ToolCallParseError(f"Arguments for {name!r} are not valid JSON: {exc}") from exc

    if not isinstance(arguments, dict):
        raise ToolCallParseError(f"Arguments for {name!r} must be a JSON object")
    return ToolCallResult(text=text, name=name, arguments=arguments)


def _parse_generate_content(raw: dict[str, Any]) -> ToolCallResult:
    try:
        parts = raw["candidates"][0]["content"]["parts"]
    except (KeyError, IndexError, TypeError) as exc:
        raise ToolCallParseError("No content parts in generate-content response") from exc

    texts: list[str] = []
    for part in parts or []:
        if not isinstance(part, dict):
            continue
        call = part.get("functionCall")
        if call:
            if not call.get("name"):
                raise ToolCallParseError("functionCall has no name")
            arguments = call.get("args") or {}
            if not isinstance(arguments, dict):
                raise ToolCallParseError(f"Arguments for {call.get('name')!r} must be an object")
            return ToolCallResult(text="".join(texts), name=call.get("name"), arguments=arguments)
        if isinstance(part.get("text"), str):
            texts.append(part["text"])

    return ToolCallResult(text="".join(texts))
