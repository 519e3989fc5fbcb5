"""
Unit Tests — Tool Schema Adapter + Tool Catalog
════════════════════════════════════════════════
Coverage targets:
  ✅ Count, names and order survive translation
  ✅ No strict / additionalProperties at any depth after translation
  ✅ Every type string upper-cased; enum lists unchanged
  ✅ Empty input → empty functionDeclarations list (present, not absent)
  ✅ Chat-completions family → canonical list returned as-is
  ✅ validate_declarations rejects non-strict / open / nameless tools
  ✅ Catalog declarations all satisfy the canonical invariants
"""

from __future__ import annotations

import copy
from typing import Any, Iterator

import pytest

from modelgate.core.errors import ValidationError
from modelgate.llm.registry import WireFamily
from modelgate.llm.tool_catalog import (
    ACTION_TOOL_NAMES,
    CLARIFICATION_TOOLS,
    PAGE_ACTION_TOOLS,
    TOOL_SETS,
)
from modelgate.llm.tool_schema import (
    NATIVE_WRAPPER_KEY,
    convert_schema,
    is_native_wrapper,
    to_provider_schema,
    validate_declarations,
)


# ─────────────────────────────────────────────────────────────────────────────
# Helpers
# ─────────────────────────────────────────────────────────────────────────────

def _walk(node: Any) -> Iterator[dict]:
    """Yield every dict anywhere inside a JSON-like structure."""
    if isinstance(node, dict):
        yield node
        for value in node.values():
            yield from _walk(value)
    elif isinstance(node, list):
        for item in node:
            yield from _walk(item)


def _nested_tool() -> dict:
    return {
        "type": "function",
        "function": {
            "name": "fill_form",
            "description": "Fill several fields at once.",
            "strict": True,
            "parameters": {
                "type": "object",
                "properties": {
                    "fields": {
                        "type": "array",
                        "items": {
                            "type": "object",
                            "properties": {
                                "selector": {"type": "string"},
                                "mode": {"type": "string", "enum": ["replace", "Append", "x-1"]},
                            },
                            "required": ["selector", "mode"],
                            "additionalProperties": False,
                        },
                    },
                },
                "required": ["fields"],
                "additionalProperties": False,
            },
        },
    }


# ─────────────────────────────────────────────────────────────────────────────
# to_provider_schema
# ─────────────────────────────────────────────────────────────────────────────

@pytest.mark.unit
class TestToProviderSchema:

    def test_preserves_count_names_and_order(self):
        canonical = list(PAGE_ACTION_TOOLS)
        native = to_provider_schema(canonical, WireFamily.GENERATE_CONTENT)

        declarations = native[NATIVE_WRAPPER_KEY]
        assert len(declarations) == len(canonical)
        assert [d["name"] for d in declarations] == [t["function"]["name"] for t in canonical]

    def test_strict_mode_keys_removed_at_every_depth(self):
        native = to_provider_schema([_nested_tool(), *PAGE_ACTION_TOOLS], WireFamily.GENERATE_CONTENT)

        for node in _walk(native):
            assert "strict" not in node
            assert "additionalProperties" not in node

    def test_types_upper_cased_and_enums_unchanged(self):
        native = to_provider_schema([_nested_tool()], WireFamily.GENERATE_CONTENT)
        params = native[NATIVE_WRAPPER_KEY][0]["parameters"]

        assert params["type"] == "OBJECT"
        fields = params["properties"]["fields"]
        assert fields["type"] == "ARRAY"
        assert fields["items"]["type"] == "OBJECT"
        mode = fields["items"]["properties"]["mode"]
        assert mode["type"] == "STRING"
        assert mode["enum"] == ["replace", "Append", "x-1"]
        assert fields["items"]["required"] == ["selector", "mode"]

        for node in _walk(native):
            if isinstance(node.get("type"), str):
                assert node["type"] == node["type"].upper()

    def test_empty_list_yields_empty_declarations(self):
        native = to_provider_schema([], WireFamily.GENERATE_CONTENT)
        assert native == {NATIVE_WRAPPER_KEY: []}

    def test_chat_completions_returns_canonical_unchanged(self):
        canonical = [_nested_tool()]
        assert to_provider_schema(canonical, WireFamily.CHAT_COMPLETIONS) is canonical

    def test_input_is_not_mutated(self):
        canonical = [_nested_tool()]
        snapshot = copy.deepcopy(canonical)
        to_provider_schema(canonical, WireFamily.GENERATE_CONTENT)
        assert canonical == snapshot

    def test_description_kept(self):
        native = to_provider_schema([_nested_tool()], WireFamily.GENERATE_CONTENT)
        assert native[NATIVE_WRAPPER_KEY][0]["description"] == "Fill several fields at once."

    def test_convert_schema_passes_scalars_through(self):
        assert convert_schema("x") == "x"
        assert convert_schema(3) == 3


# ─────────────────────────────────────────────────────────────────────────────
# Request-side checks
# ─────────────────────────────────────────────────────────────────────────────

@pytest.mark.unit
class TestValidateDeclarations:

    def test_accepts_strict_nested_tool(self):
        validate_declarations([_nested_tool()])

    def test_rejects_missing_strict(self):
        tool = _nested_tool()
        del tool["function"]["strict"]
        with pytest.raises(ValidationError, match="strict"):
            validate_declarations([tool])

    def test_rejects_open_nested_object(self):
        tool = _nested_tool()
        del tool["function"]["parameters"]["properties"]["fields"]["items"]["additionalProperties"]
        with pytest.raises(ValidationError, match="parameters.properties.fields.items"):
            validate_declarations([tool])

    def test_rejects_nameless_tool(self):
        tool = _nested_tool()
        tool["function"]["name"] = ""
        with pytest.raises(ValidationError, match="name"):
            validate_declarations([tool])

    def test_rejects_non_function_tool(self):
        with pytest.raises(ValidationError, match=r"tools\[0\]"):
            validate_declarations([{"type": "retrieval"}])

    def test_native_wrapper_detection(self):
        assert is_native_wrapper({NATIVE_WRAPPER_KEY: []})
        assert not is_native_wrapper([{"type": "function"}])
        assert not is_native_wrapper({"declarations": []})


# ─────────────────────────────────────────────────────────────────────────────
# Tool catalog
# ─────────────────────────────────────────────────────────────────────────────

@pytest.mark.unit
class TestToolCatalog:

    @pytest.mark.parametrize("set_name", sorted(TOOL_SETS))
    def test_every_catalog_tool_is_strict(self, set_name):
        validate_declarations(list(TOOL_SETS[set_name]))

    def test_names_are_unique(self):
        names = [t["function"]["name"] for t in PAGE_ACTION_TOOLS]
        assert len(names) == len(set(names))

    def test_action_tools_present(self):
        names = {t["function"]["name"] for t in PAGE_ACTION_TOOLS}
        assert ACTION_TOOL_NAMES <= names
        assert {"task_complete", "checkpoint", "ask_user"} <= names

    def test_clarification_set(self):
        assert [t["function"]["name"] for t in CLARIFICATION_TOOLS] == ["ask_user", "task_ready"]

    def test_input_clear_first_is_optional(self):
        (input_tool,) = [t for t in PAGE_ACTION_TOOLS if t["function"]["name"] == "input"]
        params = input_tool["function"]["parameters"]
        assert "clear_first" in params["properties"]
        assert "clear_first" not in params["required"]
        assert {"selector", "value", "confidence", "risk", "description"} <= set(params["required"])

    def test_risk_enum_survives_translation(self):
        native = to_provider_schema(list(PAGE_ACTION_TOOLS), WireFamily.GENERATE_CONTENT)
        click = native[NATIVE_WRAPPER_KEY][0]
        assert click["name"] == "click"
        assert click["parameters"]["properties"]["risk"]["enum"] == ["low", "medium", "high"]
