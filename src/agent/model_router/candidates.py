"""Candidate filtering ahead of ranking.

Filters are applied in a fixed order, each narrowing the pool:

1. Preferred models (short-circuits everything below when any is present)
2. Avoided models
3. Hard capability constraints (function calling, streaming, vision)
4. Intent capability (code, math, creative, web search)
5. Complexity tier (flagship for hard requests, fast/cheap for easy ones)

Only step 3 may legitimately empty the pool. Whatever happens, ``select``
never returns an empty list: an empty result falls back to every available
model in the registry.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence

import structlog

from src.agent.model_router.exceptions import ModelNotFoundError, NoCandidatesError
from src.agent.model_router.registry import Capability, ModelConfig
from src.agent.model_router.types import (
    ComplexityScore,
    Intent,
    IntentType,
    RequestConstraints,
    UserPreferences,
)

log = structlog.get_logger(__name__)

FLAGSHIP_QUALITY = 90
FAST_LATENCY_MS = 1000

INTENT_CAPABILITIES: dict[IntentType, Capability] = {
    IntentType.CODE_GENERATION: Capability.CODE_GENERATION,
    IntentType.CODE_REVIEW: Capability.CODE_GENERATION,
    IntentType.DEBUGGING: Capability.CODE_GENERATION,
    IntentType.MATH: Capability.MATH,
    IntentType.CREATIVE_WRITING: Capability.CREATIVE,
    IntentType.RESEARCH: Capability.WEB_SEARCH,
}


def _is_flagship(model: ModelConfig) -> bool:
    return model.performance.quality_score >= FLAGSHIP_QUALITY


class CandidateSelector:
    """Narrows the registry to models compatible with a request."""

    def __init__(
        self,
        low_complexity_threshold: float = 0.3,
        high_complexity_threshold: float = 0.7,
    ) -> None:
        self._low = low_complexity_threshold
        self._high = high_complexity_threshold

    def select(
        self,
        all_models: Sequence[ModelConfig],
        intent: Intent,
        complexity: ComplexityScore,
        preferences: UserPreferences | None = None,
        constraints: RequestConstraints | None = None,
    ) -> list[ModelConfig]:
        """Return a non-empty candidate list in registry order.

        Raises:
            NoCandidatesError: Only when the registry has no available model at all
        """
        available = [m for m in all_models if m.is_available]
        if not available:
            log.error("candidate_selector.registry_empty", registry_size=len(all_models))
            raise NoCandidatesError("Model registry has no available models")

        known_ids = {m.id for m in all_models}
        candidates = list(available)

        # 1. Preferred models short-circuit
        if preferences and preferences.preferred_models:
            self._log_unknown(preferences.preferred_models, known_ids, "preferred")
            wanted = set(preferences.preferred_models)
            preferred = [m for m in candidates if m.id in wanted]
            if preferred:
                log.debug(
                    "candidate_selector.preferred_models",
                    models=[m.id for m in preferred],
                )
                return preferred

        # 2. Avoided models
        if preferences and preferences.avoid_models:
            self._log_unknown(preferences.avoid_models, known_ids, "avoided")
            avoided = set(preferences.avoid_models)
            candidates = [m for m in candidates if m.id not in avoided]

        # 3. Hard capability constraints (allowed to empty the pool)
        if constraints:
            if constraints.require_function_calling:
                candidates = self._filter_capability(candidates, Capability.FUNCTION_CALLING)
            if constraints.require_streaming:
                candidates = self._filter_capability(candidates, Capability.STREAMING)
            if constraints.require_vision:
                candidates = self._filter_capability(candidates, Capability.VISION)

        # 4. Intent capability
        required = INTENT_CAPABILITIES.get(intent.primary)
        if required is not None:
            candidates = self._filter_capability(candidates, required)
            if intent.primary == IntentType.RESEARCH and not candidates:
                candidates = [m for m in available if _is_flagship(m)]
                log.debug(
                    "candidate_selector.research_fallback",
                    models=[m.id for m in candidates],
                )

        # 5. Complexity tier
        if complexity.overall > self._high:
            candidates = self._narrow(
                candidates,
                lambda m: _is_flagship(m) or m.has_specialization("reasoning"),
            )
        elif complexity.overall < self._low:
            candidates = self._narrow(
                candidates,
                lambda m: (
                    m.has_specialization("speed")
                    or m.has_specialization("cost efficiency")
                    or m.performance.average_latency < FAST_LATENCY_MS
                ),
            )

        if not candidates:
            log.info(
                "candidate_selector.fallback_to_registry",
                intent=intent.primary.value,
                complexity=round(complexity.overall, 4),
            )
            return list(available)

        log.debug(
            "candidate_selector.selected",
            intent=intent.primary.value,
            candidates=[m.id for m in candidates],
        )
        return candidates

    @staticmethod
    def _filter_capability(
        candidates: list[ModelConfig], capability: Capability
    ) -> list[ModelConfig]:
        return [m for m in candidates if m.capabilities.has(capability)]

    @staticmethod
    def _narrow(
        candidates: list[ModelConfig], keep: Callable[[ModelConfig], bool]
    ) -> list[ModelConfig]:
        return [m for m in candidates if keep(m)]

    @staticmethod
    def _log_unknown(model_ids: Sequence[str], known_ids: set[str], role: str) -> None:
        for model_id in model_ids:
            if model_id not in known_ids:
                log.warning(
                    "candidate_selector.model_not_found",
                    model_id=model_id,
                    role=role,
                    error=str(ModelNotFoundError(model_id)),
                )
