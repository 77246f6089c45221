"""
Server-Sent Events (SSE) streaming for routed completions.

Turns a routing decision plus a CompletionStream into an SSE byte stream
compatible with FastAPI's StreamingResponse.

Event types:
- selection: The chosen model, confidence and rationale (always first)
- token: Individual model output deltas
- error: Provider failure mid-stream (terminal)
- done: Stream completion signal with finish reason and duration (terminal)

Design:
- Generator pattern for async iteration
- Aggregates the full response text while streaming
- Client disconnect (generator cancelled or closed) cancels the
  CompletionStream, which releases the in-flight provider call

Example:
    selection, stream = await engine.stream(request)
    return sse_response(routing_event_stream(selection, stream))
"""

from __future__ import annotations

import asyncio
import json
import time
from collections.abc import AsyncGenerator
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

import structlog
from fastapi.responses import StreamingResponse

from src.agent.model_router.exceptions import ProviderError
from src.agent.model_router.types import ModelSelection
from src.agent.providers.stream import CompletionStream

log = structlog.get_logger(__name__)


class EventType(StrEnum):
    """SSE event types for routed streaming."""
    SELECTION = "selection"
    TOKEN = "token"
    ERROR = "error"
    DONE = "done"


@dataclass
class RoutingStreamEvent:
    """
    A single event in the routed output stream.

    Attributes:
        type: Event type (selection, token, error, done)
        data: Event payload (string or dict)
        timestamp: ISO 8601 timestamp
        metadata: Additional context (model_id)
    """
    type: EventType
    data: str | dict[str, Any]
    timestamp: str = field(default_factory=lambda: datetime.now(UTC).isoformat())
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "data": self.data,
            "timestamp": self.timestamp,
            "metadata": self.metadata,
        }

    def to_sse(self) -> str:
        """
        Format as SSE message.

        SSE format:
            event: {type}
            data: {json}

        """
        json_data = json.dumps(self.to_dict())
        return f"event: {self.type}\ndata: {json_data}\n\n"


def selection_payload(selection: ModelSelection) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "model_id": selection.model.id,
        "model_name": selection.model.name,
        "confidence": selection.confidence,
        "reasoning": selection.reasoning,
        "alternatives": [m.id for m in selection.alternatives],
    }
    if selection.intent is not None:
        payload["intent"] = selection.intent.primary.value
    if selection.complexity is not None:
        payload["complexity"] = selection.complexity.overall
    return payload


async def routing_event_stream(
    selection: ModelSelection,
    stream: CompletionStream,
) -> AsyncGenerator[str, None]:
    """
    Produce SSE messages for a routed completion.

    Args:
        selection: Routing decision, emitted as the first event
        stream: Open CompletionStream on the selected model

    Yields:
        SSE-formatted strings
    """
    meta = {"model_id": selection.model.id}
    started = time.monotonic()
    token_count = 0

    try:
        yield RoutingStreamEvent(
            type=EventType.SELECTION, data=selection_payload(selection), metadata=meta
        ).to_sse()

        async for chunk in stream:
            if chunk.delta:
                token_count += 1
                yield RoutingStreamEvent(
                    type=EventType.TOKEN, data=chunk.delta, metadata=meta
                ).to_sse()
    except ProviderError as exc:
        log.warning("stream.provider_error", model_id=exc.model_id, error=str(exc))
        yield RoutingStreamEvent(
            type=EventType.ERROR,
            data={"error": str(exc), "model_id": exc.model_id},
            metadata=meta,
        ).to_sse()
        return
    except (asyncio.CancelledError, GeneratorExit):
        # Client disconnected
        await stream.cancel()
        log.info("stream.client_disconnected", model_id=selection.model.id)
        raise
    finally:
        await stream.aclose()

    duration = time.monotonic() - started
    finish_reason = stream.finish_reason.value if stream.finish_reason else None
    yield RoutingStreamEvent(
        type=EventType.DONE,
        data={"finish_reason": finish_reason, "duration_seconds": round(duration, 2)},
        metadata={**meta, "token_count": token_count},
    ).to_sse()

    log.info(
        "stream.completed",
        model_id=selection.model.id,
        token_count=token_count,
        duration_seconds=round(duration, 2),
    )


def sse_response(
    generator: AsyncGenerator[str, None],
    **kwargs: Any,
) -> StreamingResponse:
    """
    Create FastAPI StreamingResponse for SSE.

    Args:
        generator: Async generator yielding SSE strings
        **kwargs: Additional StreamingResponse arguments

    Returns:
        FastAPI StreamingResponse configured for SSE
    """
    return StreamingResponse(
        generator,
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",  # Disable nginx buffering
        },
        **kwargs,
    )
