"""Error taxonomy for the routing and ensemble engine.

Classification and complexity analysis never raise. Candidate selection and
ranking are error-free on well-formed input; NoCandidatesError signals a
broken invariant, not a user error. Only the operations that call the
provider gateway fail in user-visible ways.
"""

from __future__ import annotations


class RoutingError(Exception):
    """Base exception for all routing engine failures."""


class NoCandidatesError(RoutingError):
    """Candidate selection produced nothing even after the registry fallback."""


class ModelNotFoundError(RoutingError):
    """A model id is not present in the registry."""

    def __init__(self, model_id: str) -> None:
        super().__init__(f"Model not found: {model_id}")
        self.model_id = model_id


class ProviderError(RoutingError):
    """A single backend invocation failed."""

    def __init__(self, model_id: str, message: str) -> None:
        super().__init__(f"[{model_id}] {message}")
        self.model_id = model_id


class ProviderTimeoutError(ProviderError):
    """Backend did not answer within the gateway timeout."""


class ProviderUnavailableError(ProviderError):
    """Backend service is unavailable."""


class ProviderRateLimitError(ProviderError):
    """Backend rate limit exceeded after retries."""


class AllModelsFailedError(RoutingError):
    """Every model named in an ensemble failed."""

    def __init__(self, errors: dict[str, str]) -> None:
        summary = "; ".join(f"{model}: {err}" for model, err in errors.items())
        super().__init__(f"All models failed to generate responses ({summary})")
        self.errors = dict(errors)


class UnknownStrategyError(RoutingError, ValueError):
    """Ensemble configured with a strategy outside the supported set."""

    def __init__(self, strategy: str) -> None:
        super().__init__(f"Unknown ensemble strategy: {strategy}")
        self.strategy = strategy
