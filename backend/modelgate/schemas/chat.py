"""
Chat Gateway — Pydantic Request/Response Schemas

Covers POST /api/v1/chat plus the catalog endpoints:
  - Request envelope {messages, model?, mode?, tools?}
  - Error body {"error": message}, shared by every non-success status
  - Model and tool listings

Design decisions:
  - Messages keep the OpenAI chat shape so chat-completions providers receive
    them unchanged; unknown per-part fields are preserved, not rejected.
  - `tools` is checked by the gateway in tool mode only, so chat requests
    carrying any `tools` value are accepted and the field is ignored.
  - Any `mode` other than "tool" (including none) means chat.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


# ---------------------------------------------------------------------------
# Messages
# ---------------------------------------------------------------------------

class ImageURL(BaseModel):
    model_config = ConfigDict(extra="allow")

    url: str


class ContentPart(BaseModel):
    """One element of a multi-part message: text or an image reference."""
    model_config = ConfigDict(extra="allow")

    type:      str
    text:      str | None      = None
    image_url: ImageURL | None = None


class Message(BaseModel):
    model_config = ConfigDict(extra="allow")

    role:    Literal["system", "user", "assistant"]
    content: str | list[ContentPart] = ""


# ---------------------------------------------------------------------------
# Request envelope
# ---------------------------------------------------------------------------

class ChatRequest(BaseModel):
    messages: list[Message] = Field(default_factory=list, description="Conversation, oldest first")
    model:    str | None    = Field(None, description="Logical model id; omitted → default model")
    mode:     str | None    = Field(None, description="'tool' for one structured decision, otherwise chat")
    tools:    Any = Field(
        None,
        description=(
            "Tool mode only: canonical function tools, or a "
            "{'functionDeclarations': [...]} wrapper for generate-content models"
        ),
    )

    @property
    def is_tool_mode(self) -> bool:
        return self.mode == "tool"


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------

class ErrorResponse(BaseModel):
    """Body of every non-success response."""
    error: str


class ModelInfo(BaseModel):
    id:             str
    wire_family:    str
    upstream_model: str
    default:        bool = False


class ModelListResponse(BaseModel):
    default: str
    models:  list[ModelInfo]


class ToolCatalogResponse(BaseModel):
    dialect: Literal["canonical", "generate-content"]
    set:     Literal["actions", "clarification"]
    count:   int
    tools:   list[dict[str, Any]] | dict[str, Any]
