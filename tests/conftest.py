"""
Shared test fixtures for pytest.

Provides common settings, registries and provider fakes for all test modules:
- fake_settings: Test environment configuration
- registry: The built-in model catalog
- make_model: Factory for small hand-built ModelConfig entries
- mock_provider / gateway: Scripted offline provider behind a real ProviderGateway
- engine: RoutingEngine wired to the mock provider
"""

from typing import Any

import pytest

from src.agent.model_router.engine import RoutingEngine, build_engine
from src.agent.model_router.registry import (
    ModelCapabilities,
    ModelConfig,
    ModelPerformance,
    ModelPricing,
    ModelRegistry,
)
from src.agent.model_router.types import ProviderType
from src.agent.providers.gateway import ProviderGateway
from src.config import Environment, Settings, get_settings
from src.testing.mock_provider import MockProvider


# ------------------------------------------------------------------ #
# Session-scoped: clear settings cache between test sessions
# ------------------------------------------------------------------ #

@pytest.fixture(autouse=True, scope="session")
def _clear_settings_cache():
    """Clear the lru_cache on get_settings so test overrides take effect."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


# ------------------------------------------------------------------ #
# Settings
# ------------------------------------------------------------------ #

@pytest.fixture
def fake_settings() -> Settings:
    """Test environment settings with safe defaults."""
    return Settings(
        environment=Environment.TEST,
        litellm_base_url="http://localhost:4000",
        litellm_api_key="sk-test-key",
        provider_timeout_seconds=5.0,
        provider_retry_attempts=1,
        use_mock_provider=True,
    )


# ------------------------------------------------------------------ #
# Registry helpers
# ------------------------------------------------------------------ #

@pytest.fixture
def registry() -> ModelRegistry:
    """Fresh copy of the built-in catalog."""
    return ModelRegistry()


def build_model(
    model_id: str,
    *,
    provider: ProviderType = ProviderType.OPENAI,
    quality: float = 85,
    cost_efficiency: float = 80,
    latency: float = 1500,
    reliability: float = 95,
    satisfaction: float = 85,
    tags: tuple[str, ...] = ("general purpose",),
    available: bool = True,
    **caps: Any,
) -> ModelConfig:
    """Build a ModelConfig with sensible defaults; ``caps`` overrides capability flags."""
    return ModelConfig(
        id=model_id,
        name=model_id.replace("-", " ").title(),
        provider=provider,
        capabilities=ModelCapabilities(**caps),
        pricing=ModelPricing(input_token_cost=1.0, output_token_cost=2.0),
        performance=ModelPerformance(
            quality_score=quality,
            cost_efficiency=cost_efficiency,
            average_latency=latency,
            reliability_score=reliability,
            user_satisfaction=satisfaction,
        ),
        specializations=tags,
        is_available=available,
    )


@pytest.fixture
def make_model():
    """Factory fixture wrapping build_model."""
    return build_model


# ------------------------------------------------------------------ #
# Providers & engine
# ------------------------------------------------------------------ #

@pytest.fixture
def mock_provider() -> MockProvider:
    """Shared scripted provider; tests tweak responses/failures per case."""
    return MockProvider()


@pytest.fixture
def gateway(registry: ModelRegistry, mock_provider: MockProvider) -> ProviderGateway:
    return ProviderGateway(
        registry,
        {provider_type: mock_provider for provider_type in ProviderType},
        timeout_seconds=2.0,
    )


@pytest.fixture
def engine(
    fake_settings: Settings,
    registry: ModelRegistry,
    mock_provider: MockProvider,
) -> RoutingEngine:
    return build_engine(
        fake_settings,
        registry=registry,
        providers={provider_type: mock_provider for provider_type in ProviderType},
    )
