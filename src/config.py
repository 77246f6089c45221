"""
Application configuration via pydantic-settings.

All settings are loaded from environment variables (or a .env file in dev).
The routing engine itself never reads settings at request time: they are
consumed once when the engine is built at process start.
"""

from __future__ import annotations

from enum import StrEnum
from functools import lru_cache

from pydantic import Field, SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Substrings that mark a LiteLLM key as a placeholder rather than a real secret
_INSECURE_KEY_MARKERS = frozenset({"changeme", "default", "test", "sk-dev-key"})


class Environment(StrEnum):
    DEV = "dev"
    PROD = "prod"
    TEST = "test"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ------------------------------------------------------------------ #
    # Application
    # ------------------------------------------------------------------ #
    environment: Environment = Environment.DEV
    debug: bool = False
    log_level: str = Field(
        default="INFO",
        description="Minimum log level (DEBUG, INFO, WARNING, ERROR)",
    )
    cors_allow_origins: list[str] = Field(
        default_factory=lambda: ["*"],
        description="Origins allowed by CORS; a wildcard is refused in production",
    )

    # ------------------------------------------------------------------ #
    # LiteLLM Proxy (Provider Gateway backend)
    # ------------------------------------------------------------------ #
    litellm_base_url: str = Field(
        default="http://localhost:4000",
        description="LiteLLM proxy base URL",
    )
    litellm_api_key: SecretStr = Field(
        default=SecretStr("sk-dev-key"),
        description="API key for LiteLLM proxy",
    )
    provider_timeout_seconds: float = Field(
        default=60.0,
        gt=0,
        description="Per-model invocation timeout enforced by the provider gateway",
    )
    provider_retry_attempts: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Attempts for transient provider failures (rate limit, unavailable)",
    )
    use_mock_provider: bool = Field(
        default=False,
        description="Serve every model from the offline MockProvider (dev / demos)",
    )

    # ------------------------------------------------------------------ #
    # Model Routing
    # ------------------------------------------------------------------ #
    routing_low_complexity_threshold: float = Field(
        default=0.3,
        ge=0.0,
        le=1.0,
        description="Overall complexity below this prefers fast/cheap models",
    )
    routing_high_complexity_threshold: float = Field(
        default=0.7,
        ge=0.0,
        le=1.0,
        description="Overall complexity above this prefers flagship models",
    )
    routing_max_alternatives: int = Field(
        default=3,
        ge=0,
        le=10,
        description="Number of runner-up models returned with each selection",
    )

    # ------------------------------------------------------------------ #
    # Ensemble
    # ------------------------------------------------------------------ #
    ensemble_default_threshold: float = Field(
        default=0.7,
        ge=0.0,
        le=1.0,
        description="Consensus similarity threshold when the caller supplies none",
    )

    # ------------------------------------------------------------------ #
    # Metrics
    # ------------------------------------------------------------------ #
    metrics_history_size: int = Field(
        default=1000,
        ge=10,
        description="Routing decisions / provider outcomes kept in memory",
    )

    # ------------------------------------------------------------------ #
    # Derived / Computed
    # ------------------------------------------------------------------ #
    @model_validator(mode="after")
    def _set_debug_from_env(self) -> Settings:
        if self.environment == Environment.DEV:
            self.debug = True
        return self

    @model_validator(mode="after")
    def _validate_thresholds(self) -> Settings:
        if self.routing_low_complexity_threshold > self.routing_high_complexity_threshold:
            raise ValueError(
                "routing_low_complexity_threshold must not exceed "
                "routing_high_complexity_threshold"
            )
        return self

    @model_validator(mode="after")
    def _guard_production(self) -> Settings:
        """Block a production start that would route to fake or unauthenticated providers."""
        if self.environment != Environment.PROD:
            return self

        key = self.litellm_api_key.get_secret_value().lower()
        problems: list[str] = []
        if not key or any(marker in key for marker in _INSECURE_KEY_MARKERS):
            problems.append("LITELLM_API_KEY is empty or a development placeholder")
        if self.use_mock_provider:
            problems.append("USE_MOCK_PROVIDER must be disabled")
        if "*" in self.cors_allow_origins:
            problems.append("CORS_ALLOW_ORIGINS must list explicit origins")

        if problems:
            raise RuntimeError("PRODUCTION STARTUP BLOCKED -- " + "; ".join(problems))
        return self

    @property
    def is_dev(self) -> bool:
        return self.environment in (Environment.DEV, Environment.TEST)

    @property
    def is_prod(self) -> bool:
        return self.environment == Environment.PROD


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings singleton.

    Use FastAPI dependency injection via Depends(get_settings) in endpoints,
    or call directly in non-request contexts (startup, scripts).
    """
    return Settings()
