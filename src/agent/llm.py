"""LiteLLM wrapper for model-agnostic LLM calls.

LiteLLM provides a unified interface for 100+ LLM providers. We proxy all
calls through a LiteLLM proxy server to:
1. Keep API keys out of the application code
2. Support swapping vendor models without code changes (just config)
3. Normalize every vendor's response into one shape

This module:
- Wraps litellm.acompletion() for whole and streamed completions
- Handles retries with exponential backoff via tenacity (the only retry
  policy in the system; the router and ensemble never retry)
- Normalizes errors to ProviderError subclasses carrying the model id
- Logs token usage for billing/monitoring
"""

from __future__ import annotations

import time
import uuid
from collections.abc import AsyncGenerator
from typing import Any

import litellm
import structlog
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from src.agent.model_router.exceptions import (
    ProviderError,
    ProviderRateLimitError,
    ProviderTimeoutError,
    ProviderUnavailableError,
)
from src.agent.model_router.types import (
    CompletionRequest,
    CompletionResponse,
    FinishReason,
    StreamChunk,
    TokenUsage,
)
from src.config import Settings, get_settings

log = structlog.get_logger(__name__)

# Types of errors worth retrying (transient network/rate-limit failures)
_RETRYABLE = (
    litellm.exceptions.RateLimitError,
    litellm.exceptions.ServiceUnavailableError,
    litellm.exceptions.Timeout,
    ConnectionError,
)

_FINISH_REASONS = {reason.value: reason for reason in FinishReason}
_FINISH_ALIASES = {
    "end_turn": FinishReason.STOP,
    "stop_sequence": FinishReason.STOP,
    "max_tokens": FinishReason.LENGTH,
    "tool_calls": FinishReason.FUNCTION_CALL,
}


def map_finish_reason(reason: str | None) -> FinishReason:
    if not reason:
        return FinishReason.STOP
    return _FINISH_REASONS.get(reason) or _FINISH_ALIASES.get(reason, FinishReason.STOP)


class LLMClient:
    """Thin wrapper around LiteLLM with retry logic and structured logging."""

    def __init__(self, settings: Settings | None = None) -> None:
        self._settings = settings or get_settings()
        # Configure LiteLLM to route through our proxy
        litellm.api_base = self._settings.litellm_base_url
        litellm.api_key = self._settings.litellm_api_key.get_secret_value()
        self._attempts = self._settings.provider_retry_attempts

    def _retrying(self) -> AsyncRetrying:
        return AsyncRetrying(
            retry=retry_if_exception_type(_RETRYABLE),
            stop=stop_after_attempt(self._attempts),
            wait=wait_exponential(multiplier=1, min=1, max=10),
            reraise=True,
        )

    @staticmethod
    def _normalize_error(model: str, exc: Exception) -> ProviderError:
        if isinstance(exc, litellm.exceptions.RateLimitError):
            return ProviderRateLimitError(model, f"Rate limit from upstream LLM: {exc}")
        if isinstance(exc, litellm.exceptions.ServiceUnavailableError):
            return ProviderUnavailableError(model, f"LLM service unavailable: {exc}")
        if isinstance(exc, litellm.exceptions.Timeout):
            return ProviderTimeoutError(model, f"LLM request timed out: {exc}")
        return ProviderError(model, f"LLM completion failed: {exc}")

    @staticmethod
    def _messages(request: CompletionRequest) -> list[dict[str, str]]:
        return [m.to_dict() for m in request.messages]

    async def complete(self, model: str, request: CompletionRequest) -> CompletionResponse:
        """Send a chat completion request via LiteLLM.

        Args:
            model: LiteLLM model identifier (e.g. "anthropic/claude-sonnet-4")
            request: Normalized completion request

        Returns:
            Normalized CompletionResponse

        Raises:
            ProviderRateLimitError: Upstream rate limit after retries
            ProviderUnavailableError: Service unavailable after retries
            ProviderError: Any other LLM failure
        """
        log.debug(
            "llm.completion_request",
            model=model,
            message_count=len(request.messages),
            max_tokens=request.max_tokens,
        )

        started = time.monotonic()
        try:
            async for attempt in self._retrying():
                with attempt:
                    response: Any = await litellm.acompletion(
                        model=model,
                        messages=self._messages(request),
                        temperature=request.temperature,
                        max_tokens=request.max_tokens,
                        stop=request.stop,
                        user=request.user_id,
                    )
        except Exception as exc:
            raise self._normalize_error(model, exc) from exc

        elapsed_ms = (time.monotonic() - started) * 1000
        usage = getattr(response, "usage", None)
        token_usage = TokenUsage(
            prompt_tokens=int(getattr(usage, "prompt_tokens", 0) or 0),
            completion_tokens=int(getattr(usage, "completion_tokens", 0) or 0),
        )
        log.info(
            "llm.completion_done",
            model=model,
            prompt_tokens=token_usage.prompt_tokens,
            completion_tokens=token_usage.completion_tokens,
            total_tokens=token_usage.total_tokens,
            response_time_ms=round(elapsed_ms, 1),
        )

        return CompletionResponse(
            id=getattr(response, "id", None) or f"chatcmpl-{uuid.uuid4().hex[:12]}",
            model=model,
            content=self.extract_text(response),
            finish_reason=map_finish_reason(self._extract_finish_reason(response)),
            usage=token_usage,
            response_time_ms=elapsed_ms,
        )

    async def stream(
        self, model: str, request: CompletionRequest
    ) -> AsyncGenerator[StreamChunk, None]:
        """Stream a chat completion as normalized deltas.

        The last chunk always carries a finish_reason. Closing this generator
        early closes the upstream LiteLLM stream.
        """
        try:
            async for attempt in self._retrying():
                with attempt:
                    upstream: Any = await litellm.acompletion(
                        model=model,
                        messages=self._messages(request),
                        temperature=request.temperature,
                        max_tokens=request.max_tokens,
                        stop=request.stop,
                        user=request.user_id,
                        stream=True,
                    )
        except Exception as exc:
            raise self._normalize_error(model, exc) from exc

        chunk_id = f"chatcmpl-{uuid.uuid4().hex[:12]}"
        finished = False
        try:
            async for raw in upstream:
                chunk_id = getattr(raw, "id", None) or chunk_id
                choice = raw.choices[0] if getattr(raw, "choices", None) else None
                if choice is None:
                    continue
                delta = getattr(choice.delta, "content", None) or ""
                reason = getattr(choice, "finish_reason", None)
                if reason:
                    finished = True
                    yield StreamChunk(
                        id=chunk_id, delta=delta, finish_reason=map_finish_reason(reason)
                    )
                    break
                if delta:
                    yield StreamChunk(id=chunk_id, delta=delta)
            if not finished:
                yield StreamChunk(id=chunk_id, delta="", finish_reason=FinishReason.STOP)
        except Exception as exc:
            raise self._normalize_error(model, exc) from exc
        finally:
            close = getattr(upstream, "aclose", None)
            if close is not None:
                await close()
            log.debug("llm.stream_closed", model=model, finished=finished)

    async def ping(self, model: str) -> bool:
        """Minimal completion used for availability checks."""
        try:
            await litellm.acompletion(
                model=model,
                messages=[{"role": "user", "content": "ping"}],
                max_tokens=1,
            )
        except Exception as exc:
            log.warning("llm.ping_failed", model=model, error=str(exc))
            return False
        return True

    def extract_text(self, response: Any) -> str:
        """Extract the assistant text content from a completion response."""
        try:
            return response.choices[0].message.content or ""
        except (AttributeError, IndexError, KeyError):
            return ""

    @staticmethod
    def _extract_finish_reason(response: Any) -> str | None:
        try:
            return response.choices[0].finish_reason
        except (AttributeError, IndexError, KeyError):
            return None
