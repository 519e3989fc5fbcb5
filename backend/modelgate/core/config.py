"""
Application configuration via environment variables (12-factor).
Pydantic BaseSettings validates and coerces all values at startup.

Provider credentials are looked up by name at request time (see
ProviderConfig.credential_key), so a missing key only fails the requests
that actually need that provider.
"""

from __future__ import annotations

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Provider selection
    # ------------------------------------------------------------------
    default_model: str = "gemini-3-pro"   # logical id, must exist in the registry

    # Chat mode only: route unknown model ids to the default instead of 404
    chat_unknown_model_fallback: bool = False

    # ------------------------------------------------------------------
    # Upstream credentials (one per ProviderConfig.credential_key)
    # ------------------------------------------------------------------
    gemini_api_key: str = ""
    groq_api_key:   str = ""
    kimi_api_key:   str = ""

    gemini_base_url: str = "https://generativelanguage.googleapis.com/v1beta/models"

    # ------------------------------------------------------------------
    # Retry policy — 1 initial attempt + 2 retries, 1s then 2s backoff
    # ------------------------------------------------------------------
    retry_max_attempts:       int   = 3
    retry_base_delay_seconds: float = 1.0
    retry_max_delay_seconds:  float = 4.0

    # ------------------------------------------------------------------
    # Upstream HTTP client
    # ------------------------------------------------------------------
    upstream_connect_timeout_seconds: float = 10.0
    stream_idle_timeout_seconds:      float = 60.0   # max gap between two upstream reads

    # ------------------------------------------------------------------
    # Chat-completions shaping
    # ------------------------------------------------------------------
    system_preamble: str = (
        "You are PageClick AI, a helpful assistant inside a browser sidebar. "
        "Be concise and lightning fast."
    )

    # ------------------------------------------------------------------
    # Application
    # ------------------------------------------------------------------
    app_env: str = "development"   # development | staging | production
    debug: bool = False
    cors_allow_origins: list[str] = ["*"]

    @property
    def is_production(self) -> bool:
        return self.app_env == "production"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
