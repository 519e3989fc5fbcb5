"""
Chat API — Gateway Endpoints

POST /api/v1/chat     → SSE stream (chat mode) or JSON decision (mode="tool")
GET  /api/v1/tools    → tool catalog, canonical or generate-content dialect
GET  /api/v1/models   → registered logical models

Streaming response format (every provider):
  data: {"choices": [{"delta": {"content": "<text>"}, "index": 0}]}

  data: [DONE]

Errors raised before the stream starts are rendered by the GatewayError
handler in main.py as {"error": message}.
"""

from __future__ import annotations

import logging
from typing import Annotated, Literal

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import StreamingResponse

from modelgate.llm.gateway import LLMGateway
from modelgate.llm.registry import WireFamily
from modelgate.llm.tool_catalog import TOOL_SETS
from modelgate.llm.tool_schema import to_provider_schema
from modelgate.schemas.chat import (
    ChatRequest,
    ErrorResponse,
    ModelInfo,
    ModelListResponse,
    ToolCatalogResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Chat"])

SSE_HEADERS = {
    "Cache-Control":     "no-cache",
    "X-Accel-Buffering": "no",      # disable nginx proxy buffering
    "Connection":        "keep-alive",
}

_ERROR_RESPONSES = {
    400: {"model": ErrorResponse, "description": "Malformed request"},
    404: {"model": ErrorResponse, "description": "Unknown model"},
    500: {"model": ErrorResponse, "description": "Missing credential or internal error"},
    502: {"model": ErrorResponse, "description": "Upstream failed after retries"},
}


def get_gateway(request: Request) -> LLMGateway:
    """The application-wide gateway created in the lifespan hook."""
    return request.app.state.gateway


# ---------------------------------------------------------------------------
# POST /chat
# ---------------------------------------------------------------------------

@router.post(
    "/chat",
    summary="Chat completion or single tool decision",
    description=(
        "Chat mode streams canonical SSE chunks ending with `data: [DONE]`. "
        "Tool mode (`mode: \"tool\"`) returns the provider's raw decision as JSON."
    ),
    responses=_ERROR_RESPONSES,
)
async def chat(
    body:    ChatRequest,
    gateway: Annotated[LLMGateway, Depends(get_gateway)],
):
    if body.is_tool_mode:
        return await gateway.tool_call(body)

    stream = await gateway.chat(body)
    return StreamingResponse(
        stream,
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )


# ---------------------------------------------------------------------------
# GET /tools
# ---------------------------------------------------------------------------

@router.get(
    "/tools",
    response_model=ToolCatalogResponse,
    summary="Tool catalog",
)
async def list_tools(
    dialect:  Literal["canonical", "generate-content"] = Query("canonical"),
    tool_set: Literal["actions", "clarification"]      = Query("actions", alias="set"),
) -> ToolCatalogResponse:
    canonical = list(TOOL_SETS[tool_set])
    family = (
        WireFamily.GENERATE_CONTENT if dialect == "generate-content"
        else WireFamily.CHAT_COMPLETIONS
    )
    return ToolCatalogResponse(
        dialect=dialect,
        set=tool_set,
        count=len(canonical),
        tools=to_provider_schema(canonical, family),
    )


# ---------------------------------------------------------------------------
# GET /models
# ---------------------------------------------------------------------------

@router.get(
    "/models",
    response_model=ModelListResponse,
    summary="Registered models",
)
async def list_models(
    gateway: Annotated[LLMGateway, Depends(get_gateway)],
) -> ModelListResponse:
    registry = gateway.registry
    default_id = registry.default.logical_id
    return ModelListResponse(
        default=default_id,
        models=[
            ModelInfo(
                id=config.logical_id,
                wire_family=config.wire_family.value,
                upstream_model=config.upstream_model,
                default=config.logical_id == default_id,
            )
            for config in registry.list_providers()
        ],
    )
