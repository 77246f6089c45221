"""Model registry - catalog of routable backends.

The registry is read-only from the router's point of view. Maintenance
(periodic performance refresh, catalog edits) happens out-of-band through
``update_performance`` and ``replace``, which build a new immutable snapshot
and swap it in with a single attribute assignment. Readers holding an older
snapshot keep a consistent view; nobody blocks.
"""

from __future__ import annotations

import dataclasses
from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

import structlog

from src.agent.model_router.exceptions import ModelNotFoundError
from src.agent.model_router.types import ProviderType

log = structlog.get_logger(__name__)


class Capability(StrEnum):
    """Capability flags that can be queried with ``list_by_capability``."""

    TEXT_GENERATION = "text_generation"
    CODE_GENERATION = "code_generation"
    REASONING = "reasoning"
    MATH = "math"
    ANALYSIS = "analysis"
    CREATIVE = "creative"
    MULTIMODAL = "multimodal"
    WEB_SEARCH = "web_search"
    FUNCTION_CALLING = "function_calling"
    STREAMING = "streaming"
    VISION = "vision"


@dataclass(frozen=True)
class ModelCapabilities:
    text_generation: bool = True
    code_generation: bool = False
    reasoning: bool = False
    math: bool = False
    analysis: bool = False
    creative: bool = False
    multimodal: bool = False
    web_search: bool = False
    function_calling: bool = False
    streaming: bool = True
    vision: bool = False
    context_window: int = 128_000
    max_output_tokens: int = 4096

    def has(self, capability: Capability | str) -> bool:
        return bool(getattr(self, Capability(capability).value))


@dataclass(frozen=True)
class ModelPricing:
    """Prices in ``currency`` per one million tokens."""

    input_token_cost: float
    output_token_cost: float
    currency: str = "USD"

    def __post_init__(self) -> None:
        if self.input_token_cost < 0 or self.output_token_cost < 0:
            raise ValueError("token costs cannot be negative")


@dataclass(frozen=True)
class ModelPerformance:
    """Observed performance snapshot. Scores are 0-100, latency in ms."""

    quality_score: float
    cost_efficiency: float
    average_latency: float
    reliability_score: float
    user_satisfaction: float

    def __post_init__(self) -> None:
        for name in (
            "quality_score",
            "cost_efficiency",
            "reliability_score",
            "user_satisfaction",
        ):
            value = getattr(self, name)
            if not 0.0 <= value <= 100.0:
                raise ValueError(f"{name} must be 0-100, got {value}")
        if self.average_latency < 0:
            raise ValueError("average_latency cannot be negative")


@dataclass(frozen=True)
class ModelConfig:
    """Identity and static facts about one backend.

    Attributes:
        id: Globally unique model identifier (also the LiteLLM model name)
        name: Display name used in explanations
        provider: Vendor tag used by the gateway to pick an adapter
        capabilities: Declared capability flags
        pricing: Cost per million input/output tokens
        performance: Observed performance snapshot
        specializations: Free-text tags ("coding", "speed", "reasoning", ...)
        description: Human-readable summary
        is_available: False keeps the model listed but never routed to
    """

    id: str
    name: str
    provider: ProviderType
    capabilities: ModelCapabilities
    pricing: ModelPricing
    performance: ModelPerformance
    specializations: tuple[str, ...] = field(default_factory=tuple)
    description: str = ""
    is_available: bool = True

    def __post_init__(self) -> None:
        if not self.id:
            raise ValueError("model id cannot be empty")
        # Lists are accepted for convenience but stored immutably.
        if not isinstance(self.specializations, tuple):
            object.__setattr__(self, "specializations", tuple(self.specializations))

    def has_specialization(self, tag: str) -> bool:
        return tag in self.specializations


@dataclass(frozen=True)
class _Snapshot:
    models: tuple[ModelConfig, ...]
    index: dict[str, ModelConfig]


class ModelRegistry:
    """Queryable catalog of backends with copy-on-write snapshots."""

    def __init__(self, models: Iterable[ModelConfig] | None = None) -> None:
        self._state = self._build(default_models() if models is None else models)
        log.info(
            "model_registry.initialized",
            model_count=len(self._state.models),
            providers=sorted({m.provider.value for m in self._state.models}),
        )

    @staticmethod
    def _build(models: Iterable[ModelConfig]) -> _Snapshot:
        ordered = tuple(models)
        index: dict[str, ModelConfig] = {}
        for model in ordered:
            if model.id in index:
                raise ValueError(f"Duplicate model id in registry: {model.id}")
            index[model.id] = model
        return _Snapshot(models=ordered, index=index)

    # ------------------------------------------------------------------ #
    # Read side
    # ------------------------------------------------------------------ #

    def snapshot(self) -> tuple[ModelConfig, ...]:
        """Return the full catalog, including unavailable models, in registry order."""
        return self._state.models

    def list_models(self, include_unavailable: bool = False) -> list[ModelConfig]:
        models = self._state.models
        if include_unavailable:
            return list(models)
        return [m for m in models if m.is_available]

    def get_model(self, model_id: str) -> ModelConfig:
        try:
            return self._state.index[model_id]
        except KeyError:
            raise ModelNotFoundError(model_id) from None

    def find_model(self, model_id: str) -> ModelConfig | None:
        return self._state.index.get(model_id)

    def __contains__(self, model_id: object) -> bool:
        return model_id in self._state.index

    def __len__(self) -> int:
        return len(self._state.models)

    def list_by_capability(self, capability: Capability | str) -> list[ModelConfig]:
        cap = Capability(capability)
        return [m for m in self.list_models() if m.capabilities.has(cap)]

    def list_by_provider(self, provider: ProviderType | str) -> list[ModelConfig]:
        provider_type = ProviderType(provider)
        return [m for m in self.list_models() if m.provider == provider_type]

    # ------------------------------------------------------------------ #
    # Maintenance side (out-of-band)
    # ------------------------------------------------------------------ #

    def update_performance(self, model_id: str, **fields: Any) -> ModelConfig:
        """Replace selected performance fields of one model.

        Raises:
            ModelNotFoundError: If ``model_id`` is unknown
            ValueError: If a field is unknown or out of range
        """
        state = self._state
        current = state.index.get(model_id)
        if current is None:
            raise ModelNotFoundError(model_id)

        try:
            performance = dataclasses.replace(current.performance, **fields)
        except TypeError as exc:
            raise ValueError(f"Unknown performance field for {model_id}: {exc}") from exc
        updated = dataclasses.replace(current, performance=performance)

        self._state = self._build(
            updated if m.id == model_id else m for m in state.models
        )
        log.info(
            "model_registry.performance_updated",
            model_id=model_id,
            fields=sorted(fields),
        )
        return updated

    def set_availability(self, model_id: str, available: bool) -> ModelConfig:
        state = self._state
        current = state.index.get(model_id)
        if current is None:
            raise ModelNotFoundError(model_id)
        updated = dataclasses.replace(current, is_available=available)
        self._state = self._build(
            updated if m.id == model_id else m for m in state.models
        )
        log.info("model_registry.availability_changed", model_id=model_id, available=available)
        return updated

    def replace(self, models: Iterable[ModelConfig]) -> None:
        """Swap in an entirely new catalog."""
        self._state = self._build(models)
        log.info("model_registry.replaced", model_count=len(self._state.models))


# ------------------------------------------------------------------ #
# Default catalog
# ------------------------------------------------------------------ #


def _model(
    model_id: str,
    name: str,
    provider: ProviderType,
    *,
    caps: dict[str, Any],
    price: tuple[float, float],
    perf: tuple[float, float, float, float, float],
    tags: tuple[str, ...],
    description: str,
) -> ModelConfig:
    quality, cost_eff, latency, reliability, satisfaction = perf
    return ModelConfig(
        id=model_id,
        name=name,
        provider=provider,
        capabilities=ModelCapabilities(**caps),
        pricing=ModelPricing(input_token_cost=price[0], output_token_cost=price[1]),
        performance=ModelPerformance(
            quality_score=quality,
            cost_efficiency=cost_eff,
            average_latency=latency,
            reliability_score=reliability,
            user_satisfaction=satisfaction,
        ),
        specializations=tags,
        description=description,
    )


_FULL = {
    "code_generation": True,
    "reasoning": True,
    "math": True,
    "analysis": True,
    "creative": True,
    "function_calling": True,
    "streaming": True,
}


def default_models() -> list[ModelConfig]:
    """Built-in catalog used when no registry is supplied."""
    return [
        _model(
            "claude-opus-4", "Claude Opus 4", ProviderType.ANTHROPIC,
            caps={**_FULL, "vision": True, "multimodal": True, "context_window": 200_000},
            price=(15.0, 75.0),
            perf=(97, 60, 3500, 98, 95),
            tags=("reasoning", "coding", "analysis", "creative writing"),
            description="Flagship model for complex reasoning and long-horizon coding",
        ),
        _model(
            "claude-sonnet-4", "Claude Sonnet 4", ProviderType.ANTHROPIC,
            caps={**_FULL, "vision": True, "multimodal": True, "context_window": 200_000},
            price=(3.0, 15.0),
            perf=(93, 82, 1800, 98, 93),
            tags=("coding", "code generation", "analysis", "general purpose"),
            description="Balanced model for everyday coding and analysis",
        ),
        _model(
            "claude-haiku-3-5", "Claude Haiku 3.5", ProviderType.ANTHROPIC,
            caps={**_FULL, "math": False, "vision": True},
            price=(0.8, 4.0),
            perf=(82, 95, 700, 97, 86),
            tags=("speed", "cost efficiency", "general purpose", "conversation"),
            description="Fast, inexpensive model for simple tasks",
        ),
        _model(
            "gpt-4o", "GPT-4o", ProviderType.OPENAI,
            caps={**_FULL, "vision": True, "multimodal": True},
            price=(2.5, 10.0),
            perf=(92, 80, 1500, 97, 91),
            tags=("general purpose", "multimodal", "coding", "conversation"),
            description="General-purpose multimodal model",
        ),
        _model(
            "gpt-4o-mini", "GPT-4o mini", ProviderType.OPENAI,
            caps={**_FULL, "vision": True},
            price=(0.15, 0.6),
            perf=(80, 98, 600, 97, 84),
            tags=("speed", "cost efficiency", "general purpose"),
            description="Small, fast general-purpose model",
        ),
        _model(
            "o1", "OpenAI o1", ProviderType.OPENAI,
            caps={**_FULL, "creative": False, "function_calling": False, "streaming": False},
            price=(15.0, 60.0),
            perf=(96, 50, 12000, 95, 90),
            tags=("reasoning", "mathematics", "logic", "coding"),
            description="Deliberate reasoning model for hard math and logic",
        ),
        _model(
            "gemini-1-5-pro", "Gemini 1.5 Pro", ProviderType.GOOGLE,
            caps={**_FULL, "vision": True, "multimodal": True, "context_window": 2_000_000},
            price=(1.25, 5.0),
            perf=(90, 85, 2000, 95, 88),
            tags=("long context", "multimodal", "analysis", "multilingual"),
            description="Long-context multimodal model",
        ),
        _model(
            "gemini-1-5-flash", "Gemini 1.5 Flash", ProviderType.GOOGLE,
            caps={**_FULL, "vision": True, "multimodal": True, "context_window": 1_000_000},
            price=(0.075, 0.3),
            perf=(78, 97, 500, 95, 82),
            tags=("speed", "cost efficiency", "summarization"),
            description="Low-latency model for high-volume workloads",
        ),
        _model(
            "sonar-pro", "Perplexity Sonar Pro", ProviderType.PERPLEXITY,
            caps={"analysis": True, "web_search": True, "streaming": True},
            price=(3.0, 15.0),
            perf=(88, 80, 2500, 94, 88),
            tags=("research", "web search", "question answering"),
            description="Search-grounded answers with citations",
        ),
        _model(
            "deepseek-coder", "DeepSeek Coder", ProviderType.DEEPSEEK,
            caps={"code_generation": True, "math": True, "reasoning": True, "streaming": True},
            price=(0.14, 0.28),
            perf=(86, 99, 1200, 92, 85),
            tags=("coding", "code generation", "programming", "cost efficiency"),
            description="Inexpensive code-specialised model",
        ),
        _model(
            "mistral-large", "Mistral Large", ProviderType.MISTRAL,
            caps={**_FULL},
            price=(2.0, 6.0),
            perf=(88, 84, 1400, 94, 86),
            tags=("multilingual", "general purpose", "reasoning"),
            description="Multilingual general-purpose model",
        ),
    ]
