"""
Tool catalog — canonical declarations offered to models in tool-call mode.

One declaration per browser action plus the control tools the agent loop
uses to finish, pause, or ask the user. Every declaration is strict-mode
(strict=True, additionalProperties=False at every object level) so it can be
sent verbatim to chat-completions providers; generate-content callers convert
the whole tuple with tool_schema.to_provider_schema().

The catalog is built once at import and exposed as immutable tuples.
"""

from __future__ import annotations

from types import MappingProxyType
from typing import Any

# ---------------------------------------------------------------------------
# Shared parameter sub-schemas
# ---------------------------------------------------------------------------

_SELECTOR = {
    "type": "string",
    "description": (
        "CSS selector targeting the element to act on. Prefer #id, [aria-label=...], "
        "or [data-testid=...]. Use 'body' for page-level scroll."
    ),
}

_CONFIDENCE = {
    "type": "number",
    "description": "Confidence score from 0.0 to 1.0 that this action will succeed.",
}

_RISK = {
    "type": "string",
    "enum": ["low", "medium", "high"],
    "description": (
        "Risk level: low = safe read/navigate, medium = form submit, "
        "high = destructive or payment."
    ),
}

_DESCRIPTION = {
    "type": "string",
    "description": "Human-readable description of what this action does.",
}

_WAIT_FOR = {
    "type": "string",
    "enum": ["domStable", "networkIdle", "urlChange"],
    "description": (
        "Optional wait strategy after action: domStable (300ms no mutations), "
        "networkIdle (DOM + 200ms), urlChange (poll for URL change)."
    ),
}


def _unused_selector(purpose: str) -> dict[str, str]:
    return {"type": "string", "description": f"Leave empty string '' — not used for {purpose}."}


def _string(description: str) -> dict[str, str]:
    return {"type": "string", "description": description}


def _tool(name: str, description: str, properties: dict[str, Any], required: list[str]) -> dict[str, Any]:
    """Build one strict-mode canonical function declaration."""
    return {
        "type": "function",
        "function": {
            "name": name,
            "description": description,
            "strict": True,
            "parameters": {
                "type": "object",
                "properties": dict(properties),
                "required": list(required),
                "additionalProperties": False,
            },
        },
    }


def _action(
    name: str,
    description: str,
    *,
    selector: dict[str, Any] = _SELECTOR,
    value: dict[str, Any] | None = None,
    extra: dict[str, Any] | None = None,
    wait_for: bool = False,
) -> dict[str, Any]:
    """Action tools share selector / confidence / risk / description."""
    properties: dict[str, Any] = {"selector": selector}
    if value is not None:
        properties["value"] = value
    properties.update(extra or {})
    properties.update(confidence=_CONFIDENCE, risk=_RISK, description=_DESCRIPTION)
    if wait_for:
        properties["waitFor"] = _WAIT_FOR

    required = [key for key in properties if key != "clear_first"]
    return _tool(name, description, properties, required)


# ---------------------------------------------------------------------------
# Action tools
# ---------------------------------------------------------------------------

_CLICK = _action(
    "click",
    "Click an element on the page. Dispatches mousedown → mouseup → click events. "
    "Works on native buttons, links, checkboxes, radios, and custom ARIA elements. "
    "Always prefer this over eval for simple clicks.",
    wait_for=True,
)

_INPUT = _action(
    "input",
    "Type text into an input, textarea, or contentEditable element. Types "
    "character-by-character to trigger React/Vue change events. By default, clears "
    "existing value first unless clear_first is false.",
    value=_string("The text to type into the element."),
    extra={
        "clear_first": {
            "type": "boolean",
            "description": (
                "Optional. If true (default), clear existing value before typing. "
                "Set false to append to current value."
            ),
        },
    },
    wait_for=True,
)

_SELECT = _action(
    "select",
    "Select an option from a native <select> dropdown or custom ARIA listbox. Matches "
    "by option text or value (case-insensitive, partial match allowed).",
    value=_string("The option text or value to select."),
)

_SELECT_DATE = _action(
    "select_date",
    "Set a date value for date inputs and date-like controls. Use ISO format YYYY-MM-DD "
    "in value. Prefer this over generic input when targeting calendars/date pickers.",
    value=_string("Date value in ISO format YYYY-MM-DD."),
    wait_for=True,
)

_SCROLL = _action(
    "scroll",
    "Scroll the page or scroll a specific element into view. Use direction='down' to "
    "reveal more content, 'top'/'bottom' to jump to page ends. Use selector='body' for "
    "whole-page scroll.",
    value={
        "type": "string",
        "enum": ["up", "down", "top", "bottom"],
        "description": (
            "Scroll direction. Ignored if selector targets a non-body element "
            "(uses scrollIntoView instead)."
        ),
    },
)

_EXTRACT = _action(
    "extract",
    "Read and return the text or value of an element without modifying it. Returns "
    "input.value for form fields, textContent for everything else. Use this to observe "
    "state before deciding the next action.",
)

_NAVIGATE = _action(
    "navigate",
    "Navigate the browser tab to a new URL. Handled by the background service worker so "
    "it works from any page, including restricted chrome:// pages. Always pass a full "
    "URL with protocol.",
    selector=_unused_selector("navigation"),
    value=_string(
        "Full URL to navigate to (e.g. 'https://github.com'). Protocol will be added if missing."
    ),
)

_EVAL = _action(
    "eval",
    "Evaluate a JavaScript expression in the page context via Chrome DevTools Protocol. "
    "Used to read framework state, compute values, or query DOM properties not exposed "
    "via CSS selectors. Result is returned as extractedData. Use sparingly; prefer "
    "extract for simple reads.",
    selector=_unused_selector("eval"),
    value=_string(
        "JavaScript expression to evaluate (e.g. 'document.title'). "
        "Must return a serializable value."
    ),
)

_DOWNLOAD = _action(
    "download",
    "Download a file from the page to the user's Downloads folder. Set selector to a CSS "
    "selector of a link/image element, OR leave it empty and put a direct URL in value. "
    "Never download payment receipts or personal financial data.",
    selector=_string(
        "CSS selector for a <a href> or <img src> element. "
        "Use empty string if providing a direct URL in value."
    ),
    value=_string("Direct download URL (optional if selector is provided). Overrides selector URL."),
)

_TABGROUP = _action(
    "tabgroup",
    "Organize browser tabs into named, color-coded groups. Three operations: create "
    "(make a new group from URL patterns), add (add tabs to existing group), list "
    "(return all current groups).",
    selector=_unused_selector("tab groups"),
    value=_string(
        'JSON operation object. Examples: create: {"op":"create","title":"Research",'
        '"color":"blue","urls":["*github.com*"]} | add: {"op":"add","title":"Research",'
        '"urls":["*docs.google.com*"]} | list: {"op":"list"}. Valid colors: grey,blue,'
        "red,yellow,green,pink,purple,cyan,orange."
    ),
)

_NATIVE = _action(
    "native",
    "Call a secure native operation on the user's local machine via the native "
    "messaging host. Only 3 ops allowed: clipboard.read, clipboard.write, fs.readText. "
    "Never use for passwords, API keys, or payment data.",
    selector=_unused_selector("native ops"),
    value=_string(
        'JSON payload with op and args. Examples: {"op":"clipboard.read","args":{}} | '
        '{"op":"clipboard.write","args":{"text":"Hello"}} | '
        '{"op":"fs.readText","args":{"path":"~/Documents/notes.txt"}}'
    ),
)

# ---------------------------------------------------------------------------
# Control tools
# ---------------------------------------------------------------------------

_TASK_COMPLETE = _tool(
    "task_complete",
    "Signal that the task has been completed (or cannot be completed). Call this when "
    "you have achieved the user's goal, or when you are stuck and cannot make further "
    "progress. Do NOT call any other tool in the same turn.",
    {
        "summary": _string(
            "Short summary of what was accomplished, or why the task could not be completed."
        ),
        "nextSteps": {
            "type": "array",
            "items": {"type": "string"},
            "description": "Optional list of suggested follow-up actions the user can take.",
        },
    },
    ["summary", "nextSteps"],
)

_CHECKPOINT = _tool(
    "checkpoint",
    "Pause the task and ask the user for confirmation before proceeding. Call this when "
    "you are about to perform a sensitive or irreversible action such as placing an "
    "order, submitting a payment, or deleting data. Do NOT call any other tool in the "
    "same turn.",
    {
        "reason": _string("Short technical reason for the checkpoint (e.g. 'About to place order')."),
        "message": _string(
            "Human-readable message shown to the user explaining what will happen and "
            "asking for approval."
        ),
        "canSkip": {
            "type": "boolean",
            "description": "Whether the user can skip this checkpoint and continue automatically.",
        },
    },
    ["reason", "message", "canSkip"],
)

_ASK_USER = _tool(
    "ask_user",
    "Ask the user a set of clarifying questions when the task is genuinely impossible to "
    "proceed without their input. Use sparingly, only when ambiguity cannot be resolved "
    "from the current page context. Maximum 3 questions.",
    {
        "questions": {
            "type": "array",
            "items": {"type": "string"},
            "description": (
                "List of specific questions for the user (max 3). Each question should be "
                "answerable in one sentence."
            ),
        },
    },
    ["questions"],
)

_TASK_READY = _tool(
    "task_ready",
    "Signal that you have enough information to proceed with the task. Call this "
    "immediately if the task is self-evident from the page context. Provide a brief "
    "1-2 sentence summary of what you will do.",
    {"summary": _string("Brief plan of what actions you will take.")},
    ["summary"],
)


# ---------------------------------------------------------------------------
# Public catalog
# ---------------------------------------------------------------------------

ACTION_TOOL_NAMES: frozenset[str] = frozenset({
    "click", "input", "select", "select_date", "scroll", "extract",
    "navigate", "eval", "download", "tabgroup", "native",
})

# All tools available to the model during agentic execution
PAGE_ACTION_TOOLS: tuple[dict[str, Any], ...] = (
    _CLICK, _INPUT, _SELECT, _SELECT_DATE, _SCROLL, _EXTRACT,
    _NAVIGATE, _EVAL, _DOWNLOAD, _TABGROUP, _NATIVE,
    _TASK_COMPLETE, _CHECKPOINT, _ASK_USER,
)

# Clarification phase: the model can only ask questions or declare ready
CLARIFICATION_TOOLS: tuple[dict[str, Any], ...] = (_ASK_USER, _TASK_READY)

TOOL_SETS = MappingProxyType({
    "actions":       PAGE_ACTION_TOOLS,
    "clarification": CLARIFICATION_TOOLS,
})
