"""Provider capability interface.

Every backend adapter implements the same four operations. The gateway
dispatches to an adapter by ProviderType, resolved once at construction.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import AsyncGenerator
from typing import TYPE_CHECKING

from src.agent.model_router.types import (
    CompletionRequest,
    CompletionResponse,
    ProviderType,
    StreamChunk,
)

if TYPE_CHECKING:
    from src.agent.model_router.registry import ModelConfig, ModelRegistry


class ModelProvider(ABC):
    """Abstract base for backend adapters.

    Implementations raise ProviderError (or a subclass) for every failure so
    the gateway and ensemble can treat all vendors uniformly.
    """

    def __init__(self, provider_type: ProviderType) -> None:
        self.provider_type = provider_type

    @abstractmethod
    async def invoke(self, model: ModelConfig, request: CompletionRequest) -> CompletionResponse:
        """Return a whole completion for ``model``."""

    @abstractmethod
    def invoke_streaming(
        self, model: ModelConfig, request: CompletionRequest
    ) -> AsyncGenerator[StreamChunk, None]:
        """Return an async generator of deltas ending in a terminal chunk.

        Closing the generator must release the underlying connection.
        """

    @abstractmethod
    async def check_availability(self) -> bool:
        """Cheap health probe for this provider."""

    def list_models(self, registry: ModelRegistry) -> list[ModelConfig]:
        """Models this provider serves, as declared by the registry."""
        return registry.list_by_provider(self.provider_type)
