"""Request complexity analysis for model routing.

The ComplexityAnalyzer scores a request along six independent dimensions,
each clamped to 0.0-1.0, and combines them into a weighted ``overall``
score that drives the complexity-tier filter and the ranker's complexity
match term.

Factors analyzed:
- Prompt length (characters / 2000)
- Technical depth (technical vocabulary hits / 5)
- Multi-step indicators (sequencing words / 3)
- Context dependency (conversation messages / 10)
- Domain specificity (currently identical to technical depth)
- Output requirements (structured-output words / 3)

Score regimes:
- < 0.3: low complexity, fast/cheap models preferred
- 0.3-0.7: balanced
- > 0.7: high complexity, flagship or reasoning models preferred
"""

from __future__ import annotations

import math

import structlog

from src.agent.model_router.types import ComplexityScore

log = structlog.get_logger(__name__)

TECHNICAL_TERMS = (
    "algorithm",
    "database",
    "api",
    "framework",
    "architecture",
    "optimization",
    "security",
    "scalability",
    "deployment",
    "integration",
)

MULTI_STEP_INDICATORS = ("first", "then", "next", "finally", "step")

OUTPUT_INDICATORS = ("json", "table", "list", "format", "structure")

WEIGHTS: dict[str, float] = {
    "prompt_length": 0.15,
    "technical_depth": 0.25,
    "multi_step": 0.2,
    "context_dependency": 0.15,
    "domain_specificity": 0.15,
    "output_requirements": 0.1,
}

# overall is consumed as a probability-like value downstream
assert math.isclose(sum(WEIGHTS.values()), 1.0), "complexity weights must sum to 1.0"


class ComplexityAnalyzer:
    """Estimates request difficulty from lexical heuristics."""

    LOW_THRESHOLD = 0.3
    HIGH_THRESHOLD = 0.7

    def analyze(self, request_text: str, message_count: int = 0) -> ComplexityScore:
        """Score a request. Never raises.

        Args:
            request_text: The latest user message
            message_count: Number of messages in the conversation

        Returns:
            ComplexityScore with six sub-scores and the weighted overall
        """
        text = request_text or ""
        lowered = text.lower()

        technical_depth = self._ratio(self._count_terms(lowered, TECHNICAL_TERMS), 5)
        factors: dict[str, float] = {
            "prompt_length": self._ratio(len(text), 2000),
            "technical_depth": technical_depth,
            "multi_step": self._ratio(self._count_terms(lowered, MULTI_STEP_INDICATORS), 3),
            "context_dependency": self._ratio(max(message_count, 0), 10),
            # Same value as technical_depth
            "domain_specificity": technical_depth,
            "output_requirements": self._ratio(self._count_terms(lowered, OUTPUT_INDICATORS), 3),
        }

        overall = sum(factors[key] * weight for key, weight in WEIGHTS.items())
        overall = max(0.0, min(1.0, overall))

        log.debug(
            "complexity_analyzer.analyzed",
            overall=round(overall, 4),
            regime=self.regime(overall),
            factors=factors,
        )

        return ComplexityScore(overall=overall, **factors)

    @classmethod
    def regime(cls, overall: float) -> str:
        if overall > cls.HIGH_THRESHOLD:
            return "high"
        if overall < cls.LOW_THRESHOLD:
            return "low"
        return "medium"

    @staticmethod
    def _count_terms(lowered: str, terms: tuple[str, ...]) -> int:
        # Substring match: "steps" counts for "step", "apis" for "api"
        return sum(1 for term in terms if term in lowered)

    @staticmethod
    def _ratio(count: int, divisor: int) -> float:
        return max(0.0, min(count / divisor, 1.0))
