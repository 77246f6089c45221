"""Routing engine - the explicit context object behind every entry point.

RoutingEngine bundles the registry, router, ensemble aggregator, provider
gateway and metrics collector. It is built once per process by
``build_engine(settings)`` and injected where needed (FastAPI stores it on
``app.state``); there are no module-level service singletons.
"""

from __future__ import annotations

import time
from dataclasses import dataclass

import structlog

from src.agent.llm import LLMClient
from src.agent.model_router.candidates import CandidateSelector
from src.agent.model_router.ensemble import EnsembleAggregator
from src.agent.model_router.exceptions import ProviderError
from src.agent.model_router.metrics import RouterMetricsCollector
from src.agent.model_router.ranking import Ranker
from src.agent.model_router.registry import ModelRegistry
from src.agent.model_router.router import SmartRouter
from src.agent.model_router.types import (
    CompletionResponse,
    EnsembleConfig,
    EnsembleResponse,
    ModelRequest,
    ModelSelection,
    ProviderType,
)
from src.agent.providers.base import ModelProvider
from src.agent.providers.gateway import ProviderGateway
from src.agent.providers.litellm_provider import LiteLLMProvider
from src.agent.providers.stream import CompletionStream
from src.config import Settings, get_settings

log = structlog.get_logger(__name__)


@dataclass
class RoutingEngine:
    """Single entry point for model selection, ensembles and completions."""

    registry: ModelRegistry
    router: SmartRouter
    aggregator: EnsembleAggregator
    gateway: ProviderGateway
    metrics: RouterMetricsCollector

    async def select_model(self, request: ModelRequest) -> ModelSelection:
        started = time.perf_counter()
        selection = await self.router.select_model(request)
        elapsed_ms = (time.perf_counter() - started) * 1000
        self.metrics.record_selection(selection, elapsed_ms, user_id=request.user_id)
        return selection

    async def combine_ensemble(
        self, request: ModelRequest, config: EnsembleConfig
    ) -> EnsembleResponse:
        response = await self.aggregator.combine(request, config)
        for contributor in response.contributors:
            self.metrics.record_outcome(contributor.model, success=True)
        for model_id, error in response.failed_models.items():
            self.metrics.record_outcome(model_id, success=False, error=error)
        return response

    async def complete(
        self, request: ModelRequest, **options: object
    ) -> tuple[ModelSelection, CompletionResponse]:
        """Route the request, then invoke the chosen model once.

        Raises:
            ProviderError: The chosen model failed; no alternate is tried
        """
        selection = await self.select_model(request)
        model_id = selection.model.id
        try:
            response = await self.gateway.invoke(
                model_id, request.to_completion_request(model_id, **options)
            )
        except ProviderError as exc:
            self.metrics.record_outcome(model_id, success=False, error=str(exc))
            log.warning("routing_engine.completion_failed", model_id=model_id, error=str(exc))
            raise

        self.metrics.record_outcome(
            model_id,
            success=True,
            latency_ms=response.response_time_ms,
            prompt_tokens=response.usage.prompt_tokens,
            completion_tokens=response.usage.completion_tokens,
        )
        return selection, response

    async def stream(
        self, request: ModelRequest, **options: object
    ) -> tuple[ModelSelection, CompletionStream]:
        """Route the request and open a cancellable stream on the chosen model."""
        selection = await self.select_model(request)
        model_id = selection.model.id
        stream = self.gateway.stream(model_id, request.to_completion_request(model_id, **options))
        return selection, stream


def build_providers(settings: Settings) -> dict[ProviderType, ModelProvider]:
    """One adapter per provider type: mock offline, LiteLLM otherwise."""
    if settings.use_mock_provider:
        # Imported lazily so production paths never load test tooling
        from src.testing.mock_provider import MockProvider

        log.info("routing_engine.mock_provider_enabled")
        return MockProvider.for_all_providers()

    client = LLMClient(settings)
    return {provider_type: LiteLLMProvider(provider_type, client) for provider_type in ProviderType}


def build_engine(
    settings: Settings | None = None,
    *,
    registry: ModelRegistry | None = None,
    providers: dict[ProviderType, ModelProvider] | None = None,
) -> RoutingEngine:
    """Assemble a RoutingEngine from settings.

    ``registry`` and ``providers`` may be injected, which is how tests and
    alternative deployments swap the catalog or the backends.
    """
    settings = settings or get_settings()
    if registry is None:
        registry = ModelRegistry()
    low = settings.routing_low_complexity_threshold
    high = settings.routing_high_complexity_threshold

    gateway = ProviderGateway(
        registry,
        providers if providers is not None else build_providers(settings),
        timeout_seconds=settings.provider_timeout_seconds,
    )
    router = SmartRouter(
        registry,
        selector=CandidateSelector(low, high),
        ranker=Ranker(low, high),
        max_alternatives=settings.routing_max_alternatives,
    )
    engine = RoutingEngine(
        registry=registry,
        router=router,
        aggregator=EnsembleAggregator(
            gateway, registry, default_threshold=settings.ensemble_default_threshold
        ),
        gateway=gateway,
        metrics=RouterMetricsCollector(history_size=settings.metrics_history_size),
    )

    log.info(
        "routing_engine.built",
        environment=settings.environment.value,
        model_count=len(registry),
        mock_provider=settings.use_mock_provider,
    )
    return engine
