"""FastAPI dependencies shared by the routing and health endpoints."""

from __future__ import annotations

from fastapi import HTTPException, Request, status

from src.agent.model_router.engine import RoutingEngine


def get_engine(request: Request) -> RoutingEngine:
    """Return the RoutingEngine built during application startup."""
    engine: RoutingEngine | None = getattr(request.app.state, "engine", None)
    if engine is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Routing engine not initialized",
        )
    return engine
