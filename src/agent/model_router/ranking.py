"""Multi-criteria ranking of candidate models.

Each candidate is scored on a 0-100 scale:

    quality             quality/100 * 40
    cost efficiency     cost_efficiency/100 * 20   (30 when prioritizing cost)
    speed               (1 - min(latency/5000, 1)) * 20   (30 when prioritizing speed)
    intent match        0-1 * 10
    complexity match    0-1 * 10
    reliability         reliability/100 * 5
    user satisfaction   user_satisfaction/100 * 5

The ranker is a pure function of its inputs; the per-term breakdown is kept
on every RankedModel so individual terms can be inspected and tested.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field

from src.agent.model_router.registry import ModelConfig
from src.agent.model_router.types import (
    ComplexityScore,
    Intent,
    IntentType,
    UserPreferences,
)

QUALITY_POINTS = 40
COST_POINTS = 20
COST_POINTS_PRIORITIZED = 30
SPEED_POINTS = 20
SPEED_POINTS_PRIORITIZED = 30
INTENT_POINTS = 10
COMPLEXITY_POINTS = 10
RELIABILITY_POINTS = 5
SATISFACTION_POINTS = 5

LATENCY_CEILING_MS = 5000
INTENT_TAG_INCREMENT = 0.3

# Specialization tags expected for each intent, matched as substrings of
# the model's joined specializations.
INTENT_TAGS: dict[IntentType, tuple[str, ...]] = {
    IntentType.CODE_GENERATION: ("coding", "code generation", "programming"),
    IntentType.CODE_REVIEW: ("code review", "analysis"),
    IntentType.DEBUGGING: ("debugging", "code"),
    IntentType.REASONING: ("reasoning", "analysis", "logic"),
    IntentType.CREATIVE_WRITING: ("creative", "writing"),
    IntentType.MATH: ("math", "mathematics"),
    IntentType.RESEARCH: ("research", "web search"),
    IntentType.ANALYSIS: ("analysis",),
    IntentType.CONVERSATION: ("general purpose", "conversation"),
    IntentType.TRANSLATION: ("multilingual",),
    IntentType.SUMMARIZATION: ("summarization",),
    IntentType.QUESTION_ANSWERING: ("question answering",),
}


@dataclass(frozen=True)
class RankedModel:
    model: ModelConfig
    score: float
    breakdown: dict[str, float] = field(default_factory=dict)


def speed_score(model: ModelConfig) -> float:
    return 1 - min(model.performance.average_latency / LATENCY_CEILING_MS, 1)


def intent_match(model: ModelConfig, intent: Intent) -> float:
    specializations = " ".join(model.specializations).lower()
    hits = sum(1 for tag in INTENT_TAGS.get(intent.primary, ()) if tag in specializations)
    return min(hits * INTENT_TAG_INCREMENT, 1.0)


class Ranker:
    """Scores and orders candidates. Ties keep the input (registry) order."""

    def __init__(
        self,
        low_complexity_threshold: float = 0.3,
        high_complexity_threshold: float = 0.7,
    ) -> None:
        self._low = low_complexity_threshold
        self._high = high_complexity_threshold

    def rank(
        self,
        candidates: Sequence[ModelConfig],
        intent: Intent,
        complexity: ComplexityScore,
        preferences: UserPreferences | None = None,
    ) -> list[RankedModel]:
        scored = [self.score(model, intent, complexity, preferences) for model in candidates]
        # sorted() is stable: equal scores preserve candidate order
        return sorted(scored, key=lambda ranked: ranked.score, reverse=True)

    def score(
        self,
        model: ModelConfig,
        intent: Intent,
        complexity: ComplexityScore,
        preferences: UserPreferences | None = None,
    ) -> RankedModel:
        perf = model.performance
        prioritize_cost = bool(preferences and preferences.prioritize_cost)
        prioritize_speed = bool(preferences and preferences.prioritize_speed)

        breakdown = {
            "quality": perf.quality_score / 100 * QUALITY_POINTS,
            "cost": perf.cost_efficiency / 100
            * (COST_POINTS_PRIORITIZED if prioritize_cost else COST_POINTS),
            "speed": speed_score(model)
            * (SPEED_POINTS_PRIORITIZED if prioritize_speed else SPEED_POINTS),
            "intent": intent_match(model, intent) * INTENT_POINTS,
            "complexity": self.complexity_match(model, complexity) * COMPLEXITY_POINTS,
            "reliability": perf.reliability_score / 100 * RELIABILITY_POINTS,
            "satisfaction": perf.user_satisfaction / 100 * SATISFACTION_POINTS,
        }
        return RankedModel(model=model, score=sum(breakdown.values()), breakdown=breakdown)

    def complexity_match(self, model: ModelConfig, complexity: ComplexityScore) -> float:
        perf = model.performance
        if complexity.overall > self._high:
            return perf.quality_score / 100
        if complexity.overall < self._low:
            return speed_score(model)
        return (perf.quality_score / 100 + perf.cost_efficiency / 100) / 2
