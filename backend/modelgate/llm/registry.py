"""
Provider Registry — Logical Model Id → Upstream Endpoint

The registry answers one question:
  "Which upstream serves this logical model, and how do I talk to it?"

Each entry is a data-described ProviderConfig. Behaviour per provider is
selected by its wire family (see llm/shaping.py), never by subclassing:

  CHAT_COMPLETIONS  → OpenAI-compatible /chat/completions (Groq, NVIDIA)
  GENERATE_CONTENT  → generateContent / streamGenerateContent (Gemini)

Design principles:
  - Pure Python (no I/O, no network) — fast and testable.
  - Immutable after construction; concurrent readers need no locking.
  - The configured default must resolve when the registry is built, so a
    bad DEFAULT_MODEL fails the process at startup rather than a request.

Adding a model:
  Add a ProviderConfig to _registered_providers() and it becomes routable.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Iterable

from modelgate.core.config import Settings, settings
from modelgate.core.errors import MissingCredential, UnknownProvider

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class WireFamily(str, Enum):
    """Upstream protocol dialect."""
    CHAT_COMPLETIONS = "chat-completions-compatible"
    GENERATE_CONTENT = "generate-content"


# ---------------------------------------------------------------------------
# ProviderConfig
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ProviderConfig:
    """
    Static description of one logical model.

    url:             Full endpoint for chat-completions providers; the models
                     base URL for generate-content providers (the method
                     suffix is appended per request).
    upstream_model:  The provider's own model name.
    credential_key:  Environment-style name of the API key (e.g. GROQ_API_KEY).
    """
    logical_id:     str
    url:            str
    wire_family:    WireFamily
    upstream_model: str
    credential_key: str


_GROQ_URL   = "https://api.groq.com/openai/v1/chat/completions"
_NVIDIA_URL = "https://integrate.api.nvidia.com/v1/chat/completions"


def _registered_providers(cfg: Settings) -> tuple[ProviderConfig, ...]:
    return (
        ProviderConfig(
            logical_id     = "gemini-3-pro",
            url            = cfg.gemini_base_url,
            wire_family    = WireFamily.GENERATE_CONTENT,
            upstream_model = "gemini-3-flash-preview",
            credential_key = "GEMINI_API_KEY",
        ),
        ProviderConfig(
            logical_id     = "kimi-k2.5",
            url            = _NVIDIA_URL,
            wire_family    = WireFamily.CHAT_COMPLETIONS,
            upstream_model = "moonshotai/kimi-k2.5",
            credential_key = "KIMI_API_KEY",
        ),
        ProviderConfig(
            logical_id     = "gpt-oss-20b",
            url            = _GROQ_URL,
            wire_family    = WireFamily.CHAT_COMPLETIONS,
            upstream_model = "openai/gpt-oss-20b",
            credential_key = "GROQ_API_KEY",
        ),
        ProviderConfig(
            logical_id     = "llama-4-scout",
            url            = _GROQ_URL,
            wire_family    = WireFamily.CHAT_COMPLETIONS,
            upstream_model = "meta-llama/llama-4-scout-17b-16e-instruct",
            credential_key = "GROQ_API_KEY",
        ),
    )


# ---------------------------------------------------------------------------
# ProviderRegistry
# ---------------------------------------------------------------------------

class ProviderRegistry:
    """
    Immutable lookup table of ProviderConfig entries.

    Usage::

        registry = ProviderRegistry.from_settings()
        config   = registry.resolve(body.model)      # None → default
    """

    def __init__(self, providers: Iterable[ProviderConfig], default_id: str) -> None:
        table: dict[str, ProviderConfig] = {}
        for config in providers:
            if config.logical_id in table:
                raise ValueError(f"Duplicate logical model id: {config.logical_id}")
            table[config.logical_id] = config

        if default_id not in table:
            raise ValueError(
                f"Default model {default_id!r} is not registered "
                f"(known: {', '.join(table) or 'none'})"
            )

        self._providers  = MappingProxyType(table)
        self._default_id = default_id

    @classmethod
    def from_settings(cls, cfg: Settings | None = None) -> "ProviderRegistry":
        cfg = cfg or settings
        return cls(_registered_providers(cfg), default_id=cfg.default_model)

    @property
    def default(self) -> ProviderConfig:
        return self._providers[self._default_id]

    def resolve(self, model: str | None) -> ProviderConfig:
        """
        Return the ProviderConfig for a logical model id.

        Args:
            model: Logical id, or None/empty for the configured default.

        Raises:
            UnknownProvider: If the id is not registered.
        """
        if not model:
            return self.default

        config = self._providers.get(model)
        if config is None:
            raise UnknownProvider(f"Unknown model: {model}", model=model)
        return config

    def __contains__(self, model: object) -> bool:
        return model in self._providers

    def list_providers(self) -> list[ProviderConfig]:
        return list(self._providers.values())


# ---------------------------------------------------------------------------
# Credential lookup
# ---------------------------------------------------------------------------

def resolve_credential(config: ProviderConfig, cfg: Settings | None = None) -> str:
    """
    Look up the API key named by config.credential_key.

    Raises:
        MissingCredential: If the key is absent or empty.
    """
    cfg = cfg or settings
    value = getattr(cfg, config.credential_key.lower(), "") or ""
    if not value:
        raise MissingCredential(
            f"{config.credential_key} is not configured",
            credential_key=config.credential_key,
        )
    return value
