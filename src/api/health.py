"""Health check endpoints.

/health/live   - Liveness probe: is the process up?
/health/ready  - Readiness probe: can we serve traffic? (providers reachable?)

These are public endpoints - no auth required.
"""

from __future__ import annotations

from datetime import UTC, datetime

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from src.agent.model_router.engine import RoutingEngine
from src.api.dependencies import get_engine

router = APIRouter(prefix="/health", tags=["health"])


@router.get("/live")
async def liveness() -> dict:
    """Liveness probe - always returns 200 if the process is running."""
    return {"status": "ok", "timestamp": datetime.now(UTC).isoformat()}


@router.get("/ready")
async def readiness(engine: RoutingEngine = Depends(get_engine)) -> JSONResponse:
    """Readiness probe - ready when at least one provider answers."""
    providers = await engine.gateway.check_availability()
    is_ready = any(providers.values())
    return JSONResponse(
        status_code=200 if is_ready else 503,
        content={
            "status": "ready" if is_ready else "not_ready",
            "providers": providers,
            "available_models": len(engine.registry.list_models()),
            "timestamp": datetime.now(UTC).isoformat(),
        },
    )
