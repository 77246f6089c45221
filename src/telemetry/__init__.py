"""Telemetry package for observability.

This package contains structured logging setup and request-context helpers.
Routing metrics live in src/agent/model_router/metrics.py.
"""

from __future__ import annotations

from src.telemetry.logging import (
    RequestIdMiddleware,
    bind_request_context,
    clear_context,
    configure_logging,
    new_request_id,
)

__all__ = [
    "RequestIdMiddleware",
    "bind_request_context",
    "clear_context",
    "configure_logging",
    "new_request_id",
]
