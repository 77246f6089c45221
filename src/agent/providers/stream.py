"""Cancellable completion stream.

CompletionStream wraps a provider's delta generator in an explicit channel:

    async with gateway.stream(model_id, request) as stream:
        async for chunk in stream:
            send(chunk.delta)
            if client_gone:
                await stream.cancel()

The stream ends after the terminal chunk (the one carrying a finish_reason).
Cancelling, leaving the ``async with`` block early, or the consuming task
being cancelled all close the underlying provider generator, which in turn
releases the in-flight upstream call.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncGenerator

import structlog

from src.agent.model_router.exceptions import ProviderError, ProviderTimeoutError
from src.agent.model_router.types import FinishReason, StreamChunk

log = structlog.get_logger(__name__)


class CompletionStream:
    """Async iterator of StreamChunk with cancellation from any task.

    Each pull from the provider generator runs as its own task, so
    ``cancel()`` called by another task (a disconnect watcher, say) can
    interrupt a pull that is still waiting on the provider instead of
    colliding with it.
    """

    def __init__(
        self,
        model_id: str,
        source: AsyncGenerator[StreamChunk, None],
        *,
        chunk_timeout: float | None = None,
    ) -> None:
        self.model_id = model_id
        self._source = source
        self._chunk_timeout = chunk_timeout
        self._parts: list[str] = []
        self._finish_reason: FinishReason | None = None
        self._pending: asyncio.Task[StreamChunk | None] | None = None
        self._close_lock = asyncio.Lock()
        self._closed = False
        self._cancelled = False

    # ------------------------------------------------------------------ #
    # Iteration
    # ------------------------------------------------------------------ #

    def __aiter__(self) -> CompletionStream:
        return self

    async def _next_chunk(self) -> StreamChunk | None:
        try:
            return await self._source.__anext__()
        except StopAsyncIteration:
            return None

    async def __anext__(self) -> StreamChunk:
        if self._closed or self._cancelled:
            raise StopAsyncIteration

        pending = self._pending = asyncio.ensure_future(self._next_chunk())
        try:
            done, _ = await asyncio.wait({pending}, timeout=self._chunk_timeout)
        except asyncio.CancelledError:
            # The consuming task itself was cancelled
            await self.aclose()
            raise

        if not done:
            await self.aclose()
            raise ProviderTimeoutError(
                self.model_id, f"No stream delta within {self._chunk_timeout}s"
            )
        if self._pending is pending:
            self._pending = None
        if pending.cancelled():
            # Interrupted by cancel() from another task
            raise StopAsyncIteration

        try:
            chunk = pending.result()
        except ProviderError:
            await self.aclose()
            raise
        except Exception as exc:
            await self.aclose()
            raise ProviderError(self.model_id, f"Streaming failed: {exc}") from exc

        if chunk is None:
            await self.aclose()
            raise StopAsyncIteration

        self._parts.append(chunk.delta)
        if chunk.is_final:
            self._finish_reason = chunk.finish_reason
            await self.aclose()
        return chunk

    # ------------------------------------------------------------------ #
    # Lifecycle
    # ------------------------------------------------------------------ #

    async def cancel(self) -> None:
        """Stop the stream and release the upstream call.

        Safe to call from a task other than the one iterating; a pull in
        flight is cancelled and the consumer sees the stream end.
        """
        if self._closed:
            return
        self._cancelled = True
        log.info("completion_stream.cancelled", model_id=self.model_id, deltas=len(self._parts))
        await self.aclose()

    async def _drop_pending(self) -> None:
        pending, self._pending = self._pending, None
        if pending is None or pending.done():
            return
        pending.cancel()
        await asyncio.wait({pending})
        if not pending.cancelled():
            # Consume the outcome so it is not reported as never retrieved
            pending.exception()

    async def aclose(self) -> None:
        async with self._close_lock:
            if self._closed:
                return
            await self._drop_pending()
            await self._source.aclose()
            self._closed = True

    async def __aenter__(self) -> CompletionStream:
        return self

    async def __aexit__(self, exc_type: object, exc: object, tb: object) -> None:
        if not self._closed:
            if exc_type is None:
                # Consumer stopped reading before the terminal chunk
                await self.cancel()
            else:
                await self.aclose()

    # ------------------------------------------------------------------ #
    # Accessors
    # ------------------------------------------------------------------ #

    @property
    def text(self) -> str:
        """Concatenation of every delta received so far."""
        return "".join(self._parts)

    @property
    def finish_reason(self) -> FinishReason | None:
        return self._finish_reason

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    async def collect(self) -> str:
        """Drain the stream and return the full text."""
        async with self:
            async for _ in self:
                pass
        return self.text
