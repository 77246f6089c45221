"""
Infrastructure components for serving routed completions over HTTP.

- SSE streaming of a routing decision followed by the selected model's tokens
"""

from __future__ import annotations

from src.infra.streaming import (
    EventType,
    RoutingStreamEvent,
    routing_event_stream,
    selection_payload,
    sse_response,
)

__all__ = [
    "EventType",
    "RoutingStreamEvent",
    "routing_event_stream",
    "selection_payload",
    "sse_response",
]
