"""FastAPI application entrypoint.

Application startup order:
1. Load settings (from environment)
2. Configure structured logging
3. Build the RoutingEngine (registry, providers, router, ensemble, metrics)
4. Register middleware (CORS, request IDs)
5. Include all routers

The engine lives on ``app.state.engine`` and reaches endpoints through the
``get_engine`` dependency.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from src.agent.model_router.engine import RoutingEngine, build_engine
from src.api.router import api_v1_router, public_router
from src.config import Settings, get_settings
from src.telemetry.logging import RequestIdMiddleware, configure_logging

log = structlog.get_logger(__name__)


def create_app(
    settings: Settings | None = None,
    *,
    engine: RoutingEngine | None = None,
) -> FastAPI:
    """Application factory.

    Passing ``engine`` skips building one at startup, which is how tests run
    the API against scripted providers.
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Application lifespan: startup and shutdown."""
        # Configure structured logging first (before any log calls)
        configure_logging(
            json_logs=settings.is_prod,
            log_level="DEBUG" if settings.debug else settings.log_level,
        )

        log.info(
            "app.starting",
            environment=settings.environment,
            litellm_base_url=settings.litellm_base_url,
        )

        app.state.engine = engine or build_engine(settings)

        log.info("app.ready", model_count=len(app.state.engine.registry))
        yield

        log.info(
            "app.shutdown",
            total_requests=app.state.engine.metrics.total_requests,
        )

    app = FastAPI(
        title="Model Routing Engine",
        description=(
            "Intent- and complexity-aware model selection and multi-model "
            "ensembles over a catalog of LLM providers."
        ),
        version="0.1.0",
        docs_url="/docs" if settings.is_dev else None,
        redoc_url="/redoc" if settings.is_dev else None,
        openapi_url="/openapi.json" if settings.is_dev else None,
        lifespan=lifespan,
    )
    if engine is not None:
        # Available before startup so ASGI test clients without lifespan work
        app.state.engine = engine

    # ------------------------------------------------------------------ #
    # Middleware (added in reverse order - last added = first executed)
    # ------------------------------------------------------------------ #

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allow_origins,
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["Authorization", "Content-Type"],
    )

    # Unique request ID for log correlation
    app.add_middleware(RequestIdMiddleware)

    # ------------------------------------------------------------------ #
    # Routers
    # ------------------------------------------------------------------ #
    app.include_router(public_router)
    app.include_router(api_v1_router)

    # Prometheus metrics endpoint
    @app.get("/metrics", include_in_schema=False)
    async def metrics(request: Request) -> Any:
        """Prometheus metrics endpoint."""
        return request.app.state.engine.metrics.get_metrics()

    # ------------------------------------------------------------------ #
    # Global exception handlers
    # ------------------------------------------------------------------ #

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        log.error(
            "app.unhandled_exception",
            path=request.url.path,
            method=request.method,
            error=str(exc),
            exc_info=True,
        )
        return JSONResponse(
            status_code=500,
            content={"detail": "Internal server error"},
        )

    return app


# Module-level app instance for uvicorn
app = create_app()
