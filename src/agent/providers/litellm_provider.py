"""LiteLLM-backed provider adapter.

LiteLLM already speaks every vendor's wire format, so one adapter class
serves all provider types; the instance only differs in how it names models
(``<provider>/<model id>``) and which model it pings for availability.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator

import structlog

from src.agent.llm import LLMClient
from src.agent.model_router.registry import ModelConfig
from src.agent.model_router.types import (
    CompletionRequest,
    CompletionResponse,
    ProviderType,
    StreamChunk,
)
from src.agent.providers.base import ModelProvider

log = structlog.get_logger(__name__)


class LiteLLMProvider(ModelProvider):
    """Adapter for one provider type, routed through the shared LLMClient."""

    def __init__(
        self,
        provider_type: ProviderType,
        llm_client: LLMClient,
        probe_model: str | None = None,
    ) -> None:
        super().__init__(provider_type)
        self._client = llm_client
        self._probe_model = probe_model

    def litellm_model(self, model: ModelConfig) -> str:
        return f"{self.provider_type.value}/{model.id}"

    async def invoke(self, model: ModelConfig, request: CompletionRequest) -> CompletionResponse:
        response = await self._client.complete(self.litellm_model(model), request)
        # Report the registry id, not the LiteLLM routing name
        response.model = model.id
        return response

    async def invoke_streaming(
        self, model: ModelConfig, request: CompletionRequest
    ) -> AsyncGenerator[StreamChunk, None]:
        upstream = self._client.stream(self.litellm_model(model), request)
        try:
            async for chunk in upstream:
                yield chunk
        finally:
            await upstream.aclose()

    async def check_availability(self) -> bool:
        if self._probe_model is None:
            log.debug("litellm_provider.no_probe_model", provider=self.provider_type.value)
            return True
        return await self._client.ping(f"{self.provider_type.value}/{self._probe_model}")
