"""
LLM Gateway Package

Routes OpenAI-compatible chat and tool-call requests to heterogeneous
upstream providers:
  - chat-completions-compatible  (Groq, NVIDIA integrate)
  - generate-content             (Gemini)

Public API::

    from modelgate.llm import LLMGateway, ProviderRegistry

    gateway = LLMGateway(client, registry=ProviderRegistry.from_settings())
    stream   = await gateway.chat(request)        # canonical SSE bytes
    decision = await gateway.tool_call(request)   # raw upstream JSON
"""

from modelgate.llm.gateway import LLMGateway
from modelgate.llm.registry import ProviderConfig, ProviderRegistry, WireFamily
from modelgate.llm.retry import RetryExecutor
from modelgate.llm.tool_result import ToolCallResult, parse_tool_call_response
from modelgate.llm.tool_schema import to_provider_schema

__all__ = [
    "LLMGateway",
    "ProviderConfig",
    "ProviderRegistry",
    "RetryExecutor",
    "ToolCallResult",
    "WireFamily",
    "parse_tool_call_response",
    "to_provider_schema",
]
