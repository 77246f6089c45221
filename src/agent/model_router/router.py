"""Smart router - intent-aware, complexity-aware model selection.

Pipeline for a single request:

1. Intent classification and complexity analysis (independent, run concurrently)
2. Candidate filtering against the registry snapshot
3. Multi-criteria ranking
4. Final selection with alternates, cost/latency/quality estimates and a
   templated explanation

Given the same request and the same registry snapshot, ``select_model``
always returns an identical ModelSelection.
"""

from __future__ import annotations

import asyncio
import math
from collections.abc import Sequence

import structlog

from src.agent.model_router.candidates import CandidateSelector
from src.agent.model_router.complexity import ComplexityAnalyzer
from src.agent.model_router.exceptions import NoCandidatesError
from src.agent.model_router.intent import IntentClassifier
from src.agent.model_router.ranking import Ranker, RankedModel
from src.agent.model_router.registry import ModelConfig, ModelRegistry
from src.agent.model_router.types import (
    ComplexityScore,
    Intent,
    ModelRequest,
    ModelSelection,
)

log = structlog.get_logger(__name__)

CHARS_PER_TOKEN = 4
OUTPUT_TOKEN_RATIO = 0.5


def estimate_tokens(request: ModelRequest) -> int:
    """Rough token estimate over every message (1 token ~ 4 characters)."""
    return math.ceil(request.total_characters / CHARS_PER_TOKEN)


def estimate_cost(model: ModelConfig, tokens: int) -> float:
    """Input cost plus an assumed output of half the input length."""
    input_cost = tokens / 1_000_000 * model.pricing.input_token_cost
    output_cost = tokens * OUTPUT_TOKEN_RATIO / 1_000_000 * model.pricing.output_token_cost
    return input_cost + output_cost


def explain(model: ModelConfig) -> list[str]:
    perf = model.performance
    return [
        f"Selected {model.name} based on:",
        f"- Quality score: {perf.quality_score:g}/100",
        f"- Cost efficiency: {perf.cost_efficiency:g}/100",
        f"- Average latency: {perf.average_latency:g}ms",
        f"- Specializations: {', '.join(model.specializations)}",
    ]


class SmartRouter:
    """Selects the best backend for a request from the model registry.

    Collaborators are injected so tests can swap any stage.
    """

    def __init__(
        self,
        registry: ModelRegistry,
        *,
        classifier: IntentClassifier | None = None,
        analyzer: ComplexityAnalyzer | None = None,
        selector: CandidateSelector | None = None,
        ranker: Ranker | None = None,
        max_alternatives: int = 3,
    ) -> None:
        self._registry = registry
        self._classifier = classifier or IntentClassifier()
        self._analyzer = analyzer or ComplexityAnalyzer()
        self._selector = selector or CandidateSelector()
        self._ranker = ranker or Ranker()
        self._max_alternatives = max_alternatives

        log.info(
            "smart_router.initialized",
            registry_size=len(registry),
            max_alternatives=max_alternatives,
        )

    async def analyze(self, request: ModelRequest) -> tuple[Intent, ComplexityScore]:
        """Run classification and complexity analysis concurrently."""
        intent, complexity = await asyncio.gather(
            asyncio.to_thread(
                self._classifier.classify, request.prompt, request.history_length
            ),
            asyncio.to_thread(
                self._analyzer.analyze, request.prompt, request.history_length
            ),
        )
        return intent, complexity

    async def select_model(self, request: ModelRequest) -> ModelSelection:
        """Select the best model for a request.

        Args:
            request: Routing request with messages, preferences and constraints

        Returns:
            ModelSelection with chosen model, alternates, estimates and reasoning

        Raises:
            NoCandidatesError: If the registry has no available model
        """
        intent, complexity = await self.analyze(request)
        return self.decide(request, intent, complexity)

    def decide(
        self,
        request: ModelRequest,
        intent: Intent,
        complexity: ComplexityScore,
    ) -> ModelSelection:
        """Synchronous tail of the pipeline: filter, rank, finalize."""
        # One snapshot for the whole decision so a concurrent refresh cannot tear it
        snapshot = self._registry.snapshot()

        candidates = self._selector.select(
            snapshot,
            intent,
            complexity,
            request.preferences,
            request.constraints,
        )
        ranked = self._ranker.rank(candidates, intent, complexity, request.preferences)
        selection = self.finalize(ranked, request)
        selection.intent = intent
        selection.complexity = complexity

        log.info(
            "smart_router.model_selected",
            model_id=selection.model.id,
            intent=intent.primary.value,
            intent_confidence=round(intent.confidence, 4),
            complexity=round(complexity.overall, 4),
            candidate_count=len(candidates),
            confidence=round(selection.confidence, 4),
            alternatives=[m.id for m in selection.alternatives],
        )
        return selection

    def finalize(
        self,
        ranked: Sequence[RankedModel],
        request: ModelRequest,
    ) -> ModelSelection:
        """Turn a ranked list into a ModelSelection.

        Raises:
            NoCandidatesError: If ``ranked`` is empty
        """
        if not ranked:
            log.error("smart_router.no_ranked_candidates")
            raise NoCandidatesError("Ranking produced no candidates")

        top = ranked[0]
        alternatives = [r.model for r in ranked[1 : 1 + self._max_alternatives]]
        tokens = estimate_tokens(request)

        return ModelSelection(
            model=top.model,
            confidence=max(0.0, min(top.score / 100, 1.0)),
            reasoning=explain(top.model),
            alternatives=alternatives,
            estimated_cost=estimate_cost(top.model, tokens),
            estimated_latency=top.model.performance.average_latency,
            estimated_quality=top.model.performance.quality_score,
        )
