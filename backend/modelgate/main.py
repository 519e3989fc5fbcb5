"""
FastAPI Application — Entry Point

LLM Provider Gateway

Architecture:
  - All routes are versioned under /api/v1/
  - One shared httpx.AsyncClient per process, opened and closed by the lifespan
  - Provider credentials come from the environment; callers never send keys
  - Every non-success response has the body {"error": message}

Middleware stack (innermost → outermost):
  1. CORS — configured origins (wildcard in development)
  2. Request ID + logging — X-Request-ID header and one log line per request

Status mapping:
  ValidationError 400 · UnknownProvider 404 · MissingCredential 500 ·
  UpstreamExhausted 502 · anything else 500 (generic message)
"""

from __future__ import annotations

import logging
import time
import uuid
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from modelgate.api.v1.chat import router as chat_router
from modelgate.core.config import Settings, settings
from modelgate.core.errors import GatewayError
from modelgate.llm.gateway import LLMGateway
from modelgate.llm.registry import ProviderRegistry
from modelgate.llm.retry import RetryExecutor
from modelgate.schemas.chat import ErrorResponse

logger = logging.getLogger(__name__)

logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)


def _error(status_code: int, message: str, request_id: str | None = None) -> JSONResponse:
    headers = {"X-Request-ID": request_id} if request_id else None
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=message).model_dump(),
        headers=headers,
    )


def build_http_client(cfg: Settings) -> httpx.AsyncClient:
    """Shared upstream client; the read timeout doubles as the stream idle timeout."""
    return httpx.AsyncClient(
        timeout=httpx.Timeout(
            cfg.stream_idle_timeout_seconds,
            connect=cfg.upstream_connect_timeout_seconds,
        ),
    )


# ---------------------------------------------------------------------------
# Application factory
# ---------------------------------------------------------------------------

def create_app(
    cfg: Settings | None = None,
    client: httpx.AsyncClient | None = None,
    executor: RetryExecutor | None = None,
) -> FastAPI:
    """
    Build the application.

    Args:
        cfg:      Settings override (tests); defaults to the process settings.
        client:   Upstream client override. When given, the caller owns it and
                  the lifespan does not close it.
        executor: Retry policy override (tests inject a no-op sleep).
    """
    cfg = cfg or settings

    # Fails at import/startup if DEFAULT_MODEL is not registered
    registry = ProviderRegistry.from_settings(cfg)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """
        Run on startup: open the upstream client, log config summary.
        Run on shutdown: close the upstream client.
        """
        owns_client = client is None
        http_client = client or build_http_client(cfg)
        app.state.gateway = LLMGateway(
            http_client,
            registry=registry,
            executor=executor or RetryExecutor.from_settings(cfg),
            cfg=cfg,
        )

        logger.info(
            "Starting LLM Gateway | env=%s default_model=%s models=%d",
            cfg.app_env, registry.default.logical_id, len(registry.list_providers()),
        )
        logger.info(
            "Retry policy: attempts=%d base_delay=%.1fs max_delay=%.1fs",
            cfg.retry_max_attempts, cfg.retry_base_delay_seconds, cfg.retry_max_delay_seconds,
        )

        yield

        logger.info("Shutting down LLM Gateway")
        if owns_client:
            await http_client.aclose()

    app = FastAPI(
        title="LLM Provider Gateway",
        description=(
            "OpenAI-compatible chat and tool-call gateway over heterogeneous upstream "
            "model providers, with canonical SSE streaming and bounded retry."
        ),
        version="1.0.0",
        docs_url="/api/docs" if not cfg.is_production else None,
        redoc_url="/api/redoc" if not cfg.is_production else None,
        openapi_url="/api/openapi.json" if not cfg.is_production else None,
        lifespan=lifespan,
    )

    # ----------------------------------------------------------------
    # Middleware (applied in reverse order — last added = outermost)
    # ----------------------------------------------------------------

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if cfg.app_env == "development" else cfg.cors_allow_origins,
        allow_credentials=False,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", "X-Request-ID", "apikey", "x-client-info"],
        expose_headers=["X-Request-ID"],
    )

    # ----------------------------------------------------------------
    # Request ID + structured logging middleware
    # ----------------------------------------------------------------

    @app.middleware("http")
    async def request_id_and_logging(request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        start = time.perf_counter()

        response = await call_next(request)

        # For SSE this is time-to-headers, not stream duration
        duration_ms = (time.perf_counter() - start) * 1000
        response.headers["X-Request-ID"] = request_id

        logger.info(
            "HTTP %s %s %d %.1fms | request_id=%s",
            request.method,
            request.url.path,
            response.status_code,
            duration_ms,
            request_id,
        )
        return response

    # ----------------------------------------------------------------
    # Exception handlers — uniform {"error": message} bodies
    # ----------------------------------------------------------------

    @app.exception_handler(GatewayError)
    async def gateway_exception_handler(request: Request, exc: GatewayError):
        """Caller-facing gateway failures: status comes from the error type."""
        log = logger.error if exc.status_code >= 500 else logger.warning
        log(
            "Request failed | path=%s error=%s status=%d message=%s",
            request.url.path, type(exc).__name__, exc.status_code, exc.message,
        )
        return _error(exc.status_code, exc.message, request.headers.get("X-Request-ID"))

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """Schema failures share the ValidationError status and body."""
        message = "; ".join(
            f"{' → '.join(str(loc) for loc in err['loc'])}: {err['msg']}"
            for err in exc.errors()
        ) or "Request validation failed."
        logger.warning("Request validation failed | path=%s %s", request.url.path, message)
        return _error(status.HTTP_400_BAD_REQUEST, message, request.headers.get("X-Request-ID"))

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception):
        """Catch-all for unhandled exceptions — never expose stack traces."""
        request_id = request.headers.get("X-Request-ID", str(uuid.uuid4()))
        logger.exception(
            "Unhandled exception | path=%s request_id=%s",
            request.url.path, request_id,
        )
        return _error(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "An unexpected error occurred.",
            request_id,
        )

    # ----------------------------------------------------------------
    # Routers
    # ----------------------------------------------------------------

    app.include_router(chat_router, prefix="/api/v1")

    # ----------------------------------------------------------------
    # Health endpoint (used by load balancer)
    # ----------------------------------------------------------------

    @app.get(
        "/health",
        tags=["Operations"],
        summary="Liveness probe",
        description="Returns 200 if the process is alive. No upstream checks.",
    )
    async def health() -> dict:
        return {"status": "ok", "service": "modelgate"}

    return app


# ---------------------------------------------------------------------------
# Application instance (imported by uvicorn)
# ---------------------------------------------------------------------------

app = create_app()


# ---------------------------------------------------------------------------
# Local development entry point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "modelgate.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.app_env == "development",
        log_level="debug" if settings.debug else "info",
        access_log=True,
    )
