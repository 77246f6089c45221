"""Intelligent model routing and multi-model ensembles.

Given a chat request, the router classifies its intent, scores its
complexity, filters the model registry to compatible candidates, ranks them
and returns the best model with alternates, estimates and a human-readable
rationale. The ensemble aggregator fans one request out to several models
and reduces the answers by voting, weighting, heuristic best-of or
consensus.

The pieces that talk to providers (EnsembleAggregator, RoutingEngine) live in
``ensemble`` and ``engine`` and are imported from there, since the provider
adapters themselves depend on the types defined here.
"""

from __future__ import annotations

from src.agent.model_router.complexity import ComplexityAnalyzer
from src.agent.model_router.exceptions import (
    AllModelsFailedError,
    ModelNotFoundError,
    NoCandidatesError,
    ProviderError,
    ProviderTimeoutError,
    RoutingError,
    UnknownStrategyError,
)
from src.agent.model_router.intent import IntentClassifier
from src.agent.model_router.metrics import RouterMetricsCollector, RoutingDecision
from src.agent.model_router.registry import Capability, ModelConfig, ModelRegistry
from src.agent.model_router.router import SmartRouter
from src.agent.model_router.types import (
    EnsembleConfig,
    EnsembleResponse,
    EnsembleStrategy,
    IntentType,
    Message,
    ModelRequest,
    ModelSelection,
    ProviderType,
)

__all__ = [
    "AllModelsFailedError",
    "Capability",
    "ComplexityAnalyzer",
    "EnsembleConfig",
    "EnsembleResponse",
    "EnsembleStrategy",
    "IntentClassifier",
    "IntentType",
    "Message",
    "ModelConfig",
    "ModelNotFoundError",
    "ModelRegistry",
    "ModelRequest",
    "ModelSelection",
    "NoCandidatesError",
    "ProviderError",
    "ProviderTimeoutError",
    "ProviderType",
    "RouterMetricsCollector",
    "RoutingDecision",
    "RoutingError",
    "SmartRouter",
    "UnknownStrategyError",
]
