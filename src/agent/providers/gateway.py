"""Provider gateway - uniform invocation of any registered backend.

The gateway resolves the adapter for every ProviderType once, at
construction, and then dispatches by the registry's provider tag. It owns
the per-model timeout; everything that goes wrong inside one invocation is
surfaced as a ProviderError carrying the model id.
"""

from __future__ import annotations

import asyncio
import dataclasses
from collections.abc import Mapping

import structlog

from src.agent.model_router.exceptions import (
    ModelNotFoundError,
    ProviderError,
    ProviderTimeoutError,
)
from src.agent.model_router.registry import ModelConfig, ModelRegistry
from src.agent.model_router.types import (
    CompletionRequest,
    CompletionResponse,
    ProviderType,
)
from src.agent.providers.base import ModelProvider
from src.agent.providers.stream import CompletionStream

log = structlog.get_logger(__name__)


class ProviderGateway:
    """Dispatches normalized requests to provider adapters."""

    def __init__(
        self,
        registry: ModelRegistry,
        providers: Mapping[ProviderType, ModelProvider],
        *,
        timeout_seconds: float | None = 60.0,
    ) -> None:
        self._registry = registry
        self._providers: dict[ProviderType, ModelProvider] = dict(providers)
        self._timeout = timeout_seconds

        log.info(
            "provider_gateway.initialized",
            providers=sorted(p.value for p in self._providers),
            timeout_seconds=timeout_seconds,
        )

    def _resolve(self, model_id: str) -> tuple[ModelConfig, ModelProvider]:
        model = self._registry.get_model(model_id)
        provider = self._providers.get(model.provider)
        if provider is None:
            raise ProviderError(
                model_id, f"No provider configured for {model.provider.value}"
            )
        return model, provider

    async def invoke(self, model_id: str, request: CompletionRequest) -> CompletionResponse:
        """Invoke one model and wait for its whole response.

        Raises:
            ModelNotFoundError: If ``model_id`` is not in the registry
            ProviderTimeoutError: If the call exceeds the gateway timeout
            ProviderError: Any other backend failure
        """
        model, provider = self._resolve(model_id)
        request = dataclasses.replace(request, model=model_id)

        log.debug(
            "provider_gateway.invoke",
            model_id=model_id,
            provider=model.provider.value,
        )

        try:
            if self._timeout is None:
                response = await provider.invoke(model, request)
            else:
                response = await asyncio.wait_for(
                    provider.invoke(model, request), timeout=self._timeout
                )
        except TimeoutError as exc:
            log.warning(
                "provider_gateway.timeout",
                model_id=model_id,
                timeout_seconds=self._timeout,
            )
            raise ProviderTimeoutError(
                model_id, f"No response within {self._timeout}s"
            ) from exc
        except (ProviderError, ModelNotFoundError):
            raise
        except Exception as exc:
            raise ProviderError(model_id, f"{type(exc).__name__}: {exc}") from exc

        return response

    def stream(self, model_id: str, request: CompletionRequest) -> CompletionStream:
        """Open a cancellable delta stream for one model.

        Raises:
            ModelNotFoundError: If ``model_id`` is not in the registry
            ProviderError: If no adapter serves the model's provider
        """
        model, provider = self._resolve(model_id)
        request = dataclasses.replace(request, model=model_id)

        log.debug(
            "provider_gateway.stream",
            model_id=model_id,
            provider=model.provider.value,
        )
        return CompletionStream(
            model_id,
            provider.invoke_streaming(model, request),
            chunk_timeout=self._timeout,
        )

    async def check_availability(self) -> dict[str, bool]:
        """Probe every configured provider concurrently."""
        types = list(self._providers)
        results = await asyncio.gather(
            *(self._providers[t].check_availability() for t in types),
            return_exceptions=True,
        )

        availability: dict[str, bool] = {}
        for provider_type, result in zip(types, results):
            if isinstance(result, BaseException):
                log.warning(
                    "provider_gateway.availability_check_failed",
                    provider=provider_type.value,
                    error=str(result),
                )
                availability[provider_type.value] = False
            else:
                availability[provider_type.value] = bool(result)
        return availability

    def list_models(self, provider_type: ProviderType) -> list[ModelConfig]:
        provider = self._providers.get(provider_type)
        if provider is None:
            return []
        return provider.list_models(self._registry)
