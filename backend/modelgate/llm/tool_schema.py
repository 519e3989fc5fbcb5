"""
Tool Schema Adapter — Canonical ↔ Provider-Native Tool Declarations

Canonical declarations are OpenAI-style function tools::

    {"type": "function",
     "function": {"name": ..., "description": ..., "strict": True,
                  "parameters": {"type": "object", "properties": {...},
                                 "required": [...], "additionalProperties": False}}}

The generate-content family wants a single wrapper instead::

    {"functionDeclarations": [{"name": ..., "description": ...,
                               "parameters": {"type": "OBJECT", ...}}]}

with upper-cased scalar type names and without the strict-mode keys, which
that provider rejects. Translation is pure and order-preserving.
"""

from __future__ import annotations

from typing import Any

from modelgate.core.errors import ValidationError
from modelgate.llm.registry import WireFamily

NATIVE_WRAPPER_KEY = "functionDeclarations"

# Keys that exist in strict-mode canonical schemas but not in the native format
_STRIP_KEYS = frozenset({"strict", "additionalProperties"})


# ---------------------------------------------------------------------------
# Canonical → native
# ---------------------------------------------------------------------------

def to_provider_schema(
    canonical: list[dict[str, Any]],
    wire_family: WireFamily,
) -> list[dict[str, Any]] | dict[str, list[dict[str, Any]]]:
    """
    Translate canonical tool declarations into the provider's native shape.

    Args:
        canonical:   Canonical declarations, in the order they are offered.
        wire_family: Target provider dialect.

    Returns:
        The canonical list itself for chat-completions providers, or a
        {"functionDeclarations": [...]} wrapper for generate-content.
    """
    if wire_family == WireFamily.CHAT_COMPLETIONS:
        return canonical

    return {
        NATIVE_WRAPPER_KEY: [_to_function_declaration(tool) for tool in canonical],
    }


def _to_function_declaration(tool: dict[str, Any]) -> dict[str, Any]:
    function = tool.get("function", tool)
    declaration: dict[str, Any] = {
        "name":        function.get("name", ""),
        "description": function.get("description", ""),
    }
    if "parameters" in function:
        declaration["parameters"] = convert_schema(function["parameters"])
    return declaration


def convert_schema(schema: Any) -> Any:
    """
    Recursively convert one JSON-Schema node to the generate-content dialect.

    - "type" strings are upper-cased (object → OBJECT, string → STRING)
    - "strict" / "additionalProperties" are dropped at every depth
    - "enum" lists are copied as-is, order preserved
    - "properties" values and "items" are converted recursively
    """
    if isinstance(schema, list):
        return [convert_schema(item) for item in schema]
    if not isinstance(schema, dict):
        return schema

    result: dict[str, Any] = {}
    for key, value in schema.items():
        if key in _STRIP_KEYS:
            continue

        if key == "type" and isinstance(value, str):
            result[key] = value.upper()
        elif key == "enum" and isinstance(value, list):
            result[key] = list(value)
        elif key == "properties" and isinstance(value, dict):
            result[key] = {name: convert_schema(prop) for name, prop in value.items()}
        elif isinstance(value, (dict, list)) and key not in ("required",):
            result[key] = convert_schema(value)
        else:
            result[key] = value

    return result


# ---------------------------------------------------------------------------
# Request-side checks
# ---------------------------------------------------------------------------

def is_native_wrapper(tools: Any) -> bool:
    """True if `tools` is an already-translated generate-content wrapper."""
    return isinstance(tools, dict) and isinstance(tools.get(NATIVE_WRAPPER_KEY), list)


def validate_declarations(tools: list[dict[str, Any]]) -> None:
    """
    Enforce the canonical declaration contract.

    Every declaration must be a function tool with a name, strict=True, and
    additionalProperties=False on every object-typed schema node.

    Raises:
        ValidationError: On the first declaration that breaks the contract.
    """
    for position, tool in enumerate(tools):
        if not isinstance(tool, dict) or tool.get("type") != "function":
            raise ValidationError(f"tools[{position}] must be a function tool declaration")

        function = tool.get("function")
        if not isinstance(function, dict) or not function.get("name"):
            raise ValidationError(f"tools[{position}].function.name is required")

        name = function["name"]
        if function.get("strict") is not True:
            raise ValidationError(f"tool {name!r} must declare strict: true")

        parameters = function.get("parameters")
        if not isinstance(parameters, dict) or parameters.get("type") != "object":
            raise ValidationError(f"tool {name!r} parameters must be an object schema")

        _check_closed_objects(parameters, name, path="parameters")


def _check_closed_objects(schema: dict[str, Any], tool_name: str, path: str) -> None:
    if schema.get("type") == "object" and schema.get("additionalProperties") is not False:
        raise ValidationError(
            f"tool {tool_name!r} must set additionalProperties: false at {path}"
        )

    for name, prop in (schema.get("properties") or {}).items():
        if isinstance(prop, dict):
            _check_closed_objects(prop, tool_name, f"{path}.properties.{name}")

    items = schema.get("items")
    if isinstance(items, dict):
        _check_closed_objects(items, tool_name, f"{path}.items")
