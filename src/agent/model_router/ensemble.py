"""Ensemble aggregator - fan a request out to several models and reduce.

All configured models are invoked concurrently through the provider gateway
and every outcome is awaited before reduction. Failed models are logged and
excluded; the request fails only when no model answered.

Reduction strategies:

- voting:    most frequent normalized answer
- weighted:  answer of the highest caller-weighted model
- best_of:   heuristic score over declared model quality, length and completeness
- consensus: answer most similar to all others, falling back to best_of when
             mean similarity stays under the threshold
"""

from __future__ import annotations

import asyncio
import re
from collections.abc import Sequence
from dataclasses import dataclass

import structlog

from src.agent.model_router.exceptions import (
    AllModelsFailedError,
    UnknownStrategyError,
)
from src.agent.model_router.registry import ModelRegistry
from src.agent.model_router.types import (
    CompletionResponse,
    Contributor,
    EnsembleConfig,
    EnsembleResponse,
    EnsembleStrategy,
    ModelRequest,
)
from src.agent.providers.gateway import ProviderGateway

log = structlog.get_logger(__name__)

DEFAULT_CONSENSUS_THRESHOLD = 0.7
UNKNOWN_MODEL_QUALITY = 85.0
LENGTH_SATURATION_CHARS = 1000
COMPLETE_ENDINGS = (".", "!")
FULL_ENSEMBLE_SIZE = 5

_WHITESPACE = re.compile(r"\s+")


@dataclass(frozen=True)
class _Reduction:
    result: str
    agreement: float
    strategy: EnsembleStrategy
    contributors: list[Contributor]


def normalize_answer(text: str) -> str:
    """Canonical voting key: lowercase, trimmed, whitespace collapsed."""
    return _WHITESPACE.sub(" ", text.strip().lower())


def jaccard(a: str, b: str) -> float:
    words_a = set(a.lower().split())
    words_b = set(b.lower().split())
    union = words_a | words_b
    if not union:
        return 0.0
    return len(words_a & words_b) / len(union)


def ensemble_confidence(agreement: float, contributor_count: int) -> float:
    return agreement * 0.7 + min(contributor_count / FULL_ENSEMBLE_SIZE, 1.0) * 0.3


def _parse_strategy(strategy: str) -> EnsembleStrategy:
    try:
        return EnsembleStrategy(strategy)
    except ValueError:
        raise UnknownStrategyError(str(strategy)) from None


class EnsembleAggregator:
    """Runs multi-model requests and reduces them to one answer."""

    def __init__(
        self,
        gateway: ProviderGateway,
        registry: ModelRegistry,
        *,
        default_threshold: float = DEFAULT_CONSENSUS_THRESHOLD,
    ) -> None:
        self._gateway = gateway
        self._registry = registry
        self._default_threshold = default_threshold

    async def combine(self, request: ModelRequest, config: EnsembleConfig) -> EnsembleResponse:
        """Invoke every configured model and reduce the answers.

        Raises:
            UnknownStrategyError: Strategy outside the supported set (before any call)
            ValueError: Empty model list or a negative weight
            AllModelsFailedError: No model produced a response
        """
        strategy = _parse_strategy(config.strategy)
        if not config.models:
            raise ValueError("Ensemble requires at least one model")
        negative = sorted(m for m, w in (config.weights or {}).items() if w < 0)
        if negative:
            raise ValueError(f"Ensemble weights must be non-negative: {negative}")

        responses, failures = await self._fan_out(request, config.models)
        if not responses:
            log.error("ensemble.all_models_failed", models=config.models, errors=failures)
            raise AllModelsFailedError(failures)

        reduction = self._reduce(strategy, responses, config)
        confidence = ensemble_confidence(reduction.agreement, len(reduction.contributors))

        log.info(
            "ensemble.combined",
            strategy=strategy.value,
            strategy_used=reduction.strategy.value,
            contributors=len(reduction.contributors),
            failed=sorted(failures),
            agreement=round(reduction.agreement, 4),
            confidence=round(confidence, 4),
        )
        return EnsembleResponse(
            result=reduction.result,
            contributors=reduction.contributors,
            agreement_score=reduction.agreement,
            confidence=confidence,
            strategy_used=reduction.strategy,
            failed_models=failures,
        )

    async def _fan_out(
        self, request: ModelRequest, model_ids: Sequence[str]
    ) -> tuple[list[CompletionResponse], dict[str, str]]:
        results = await asyncio.gather(
            *(
                self._gateway.invoke(model_id, request.to_completion_request(model_id))
                for model_id in model_ids
            ),
            return_exceptions=True,
        )

        responses: list[CompletionResponse] = []
        failures: dict[str, str] = {}
        for model_id, result in zip(model_ids, results):
            if isinstance(result, BaseException) and not isinstance(result, Exception):
                raise result
            if isinstance(result, Exception):
                log.warning(
                    "ensemble.model_failed",
                    model_id=model_id,
                    error_type=type(result).__name__,
                    error=str(result),
                )
                failures[model_id] = str(result)
            else:
                # Keep the configured id even if the backend reports its own name
                result.model = model_id
                responses.append(result)
        return responses, failures

    def _reduce(
        self,
        strategy: EnsembleStrategy,
        responses: list[CompletionResponse],
        config: EnsembleConfig,
    ) -> _Reduction:
        if strategy is EnsembleStrategy.VOTING:
            return self.voting(responses)
        if strategy is EnsembleStrategy.WEIGHTED:
            return self.weighted(responses, config.weights or {})
        if strategy is EnsembleStrategy.BEST_OF:
            return self.best_of(responses)
        threshold = config.threshold if config.threshold is not None else self._default_threshold
        return self.consensus(responses, threshold)

    # ------------------------------------------------------------------ #
    # Strategies
    # ------------------------------------------------------------------ #

    def voting(self, responses: list[CompletionResponse]) -> _Reduction:
        counts: dict[str, int] = {}
        for response in responses:
            key = normalize_answer(response.content)
            counts[key] = counts.get(key, 0) + 1

        # max() keeps the first maximal key, i.e. first seen wins ties
        winner = max(counts, key=lambda k: counts[k])
        return _Reduction(
            result=winner,
            agreement=counts[winner] / len(responses),
            strategy=EnsembleStrategy.VOTING,
            contributors=[Contributor(r.model, r.content) for r in responses],
        )

    def weighted(
        self, responses: list[CompletionResponse], weights: dict[str, float]
    ) -> _Reduction:
        contributors = [
            Contributor(r.model, r.content, weight=weights.get(r.model, 1.0)) for r in responses
        ]
        top = max(contributors, key=lambda c: c.weight)
        total = sum(c.weight for c in contributors)
        return _Reduction(
            result=top.response,
            agreement=top.weight / total if total else 0.0,
            strategy=EnsembleStrategy.WEIGHTED,
            contributors=contributors,
        )

    def best_of(self, responses: list[CompletionResponse]) -> _Reduction:
        scores = [self.heuristic_score(r) for r in responses]
        best = max(range(len(responses)), key=lambda i: scores[i])
        return _Reduction(
            result=responses[best].content,
            agreement=scores[best] / 100,
            strategy=EnsembleStrategy.BEST_OF,
            contributors=[Contributor(r.model, r.content) for r in responses],
        )

    def consensus(self, responses: list[CompletionResponse], threshold: float) -> _Reduction:
        texts = [r.content for r in responses]
        means = [
            sum(1.0 if i == j else jaccard(texts[i], texts[j]) for j in range(len(texts)))
            / len(texts)
            for i in range(len(texts))
        ]
        best = max(range(len(texts)), key=lambda i: means[i])

        if means[best] < threshold:
            log.info(
                "ensemble.consensus_fallback",
                similarity=round(means[best], 4),
                threshold=threshold,
            )
            return self.best_of(responses)

        return _Reduction(
            result=texts[best],
            agreement=means[best],
            strategy=EnsembleStrategy.CONSENSUS,
            contributors=[Contributor(r.model, r.content) for r in responses],
        )

    def heuristic_score(self, response: CompletionResponse) -> float:
        """Score a response for best_of.

        The quality term is the model's declared registry quality, a static
        proxy; it does not judge the text itself.
        """
        model = self._registry.find_model(response.model)
        quality = model.performance.quality_score if model else UNKNOWN_MODEL_QUALITY
        length = min(len(response.content) / LENGTH_SATURATION_CHARS, 1.0) * 100
        # Checked on the raw text: trailing whitespace or a question mark is incomplete
        completeness = 100.0 if response.content.endswith(COMPLETE_ENDINGS) else 80.0
        return quality * 0.6 + length * 0.2 + completeness * 0.2
