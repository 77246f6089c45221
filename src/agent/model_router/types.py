"""Shared data types for the routing and ensemble engine.

Everything here is an ephemeral, per-request value object. Nothing is
persisted by the engine: the API layer owns storage of chat history and
selections.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from src.agent.model_router.registry import ModelConfig


class ProviderType(StrEnum):
    """Vendor tag resolved once by the provider gateway."""

    ANTHROPIC = "anthropic"
    OPENAI = "openai"
    GOOGLE = "google"
    DEEPSEEK = "deepseek"
    MISTRAL = "mistral"
    PERPLEXITY = "perplexity"
    META = "meta"
    COHERE = "cohere"
    XAI = "xai"


class IntentType(StrEnum):
    """Closed set of task categories the classifier can emit."""

    CODE_GENERATION = "code_generation"
    CODE_REVIEW = "code_review"
    DEBUGGING = "debugging"
    REASONING = "reasoning"
    MATH = "math"
    CREATIVE_WRITING = "creative_writing"
    RESEARCH = "research"
    ANALYSIS = "analysis"
    CONVERSATION = "conversation"
    TRANSLATION = "translation"
    SUMMARIZATION = "summarization"
    QUESTION_ANSWERING = "question_answering"


class EnsembleStrategy(StrEnum):
    """Reduction strategies supported by the ensemble aggregator."""

    VOTING = "voting"
    WEIGHTED = "weighted"
    BEST_OF = "best_of"
    CONSENSUS = "consensus"


class FinishReason(StrEnum):
    STOP = "stop"
    LENGTH = "length"
    CONTENT_FILTER = "content_filter"
    FUNCTION_CALL = "function_call"


# ------------------------------------------------------------------ #
# Requests
# ------------------------------------------------------------------ #


@dataclass(frozen=True)
class Message:
    """A single chat message in OpenAI role/content form."""

    role: str
    content: str

    def to_dict(self) -> dict[str, str]:
        return {"role": self.role, "content": self.content}


@dataclass
class UserPreferences:
    """Caller-supplied soft preferences for model selection.

    Attributes:
        preferred_models: Model ids to restrict selection to (short-circuits filters)
        avoid_models: Model ids to exclude
        prioritize_cost: Weight cost efficiency at 30 points instead of 20
        prioritize_speed: Weight speed at 30 points instead of 20
        prioritize_quality: Accepted for API parity; quality is always weighted at 40
    """

    preferred_models: list[str] = field(default_factory=list)
    avoid_models: list[str] = field(default_factory=list)
    prioritize_cost: bool = False
    prioritize_speed: bool = False
    prioritize_quality: bool = False


@dataclass
class RequestConstraints:
    """Hard capability requirements. Unlike preferences these may empty a pool."""

    require_function_calling: bool = False
    require_streaming: bool = False
    require_vision: bool = False


@dataclass
class ModelRequest:
    """A routing request as received from the API layer.

    The last message is the text being classified; the message count is the
    conversation history length used for context dependency.
    """

    messages: list[Message]
    user_id: str = "anonymous"
    preferences: UserPreferences | None = None
    constraints: RequestConstraints | None = None

    @property
    def prompt(self) -> str:
        if not self.messages:
            return ""
        return self.messages[-1].content or ""

    @property
    def history_length(self) -> int:
        return len(self.messages)

    @property
    def total_characters(self) -> int:
        return sum(len(m.content or "") for m in self.messages)

    def to_completion_request(self, model_id: str, **kwargs: Any) -> CompletionRequest:
        return CompletionRequest(
            model=model_id,
            messages=list(self.messages),
            user_id=self.user_id,
            **kwargs,
        )


@dataclass
class CompletionRequest:
    """Normalized request handed to the provider gateway."""

    messages: list[Message]
    model: str | None = None
    temperature: float = 0.7
    max_tokens: int | None = None
    stop: list[str] | None = None
    user_id: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


# ------------------------------------------------------------------ #
# Provider results
# ------------------------------------------------------------------ #


@dataclass(frozen=True)
class TokenUsage:
    prompt_tokens: int = 0
    completion_tokens: int = 0

    @property
    def total_tokens(self) -> int:
        return self.prompt_tokens + self.completion_tokens


@dataclass
class CompletionResponse:
    """Normalized whole-response completion."""

    id: str
    model: str
    content: str
    finish_reason: FinishReason = FinishReason.STOP
    usage: TokenUsage = field(default_factory=TokenUsage)
    response_time_ms: float = 0.0
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class StreamChunk:
    """One incremental delta. A chunk with a finish_reason terminates the stream."""

    id: str
    delta: str
    finish_reason: FinishReason | None = None

    @property
    def is_final(self) -> bool:
        return self.finish_reason is not None


# ------------------------------------------------------------------ #
# Routing results
# ------------------------------------------------------------------ #


@dataclass
class Intent:
    """Output of intent classification.

    Attributes:
        primary: Highest-scoring category
        secondary: Runner-up category
        confidence: top / (top + second), 0.5 on a tie
        keywords: Stop-word filtered keywords (diagnostics)
        patterns: Names of the pattern banks that fired
        scores: Raw per-category scores
    """

    primary: IntentType
    secondary: IntentType
    confidence: float
    keywords: list[str] = field(default_factory=list)
    patterns: list[str] = field(default_factory=list)
    scores: dict[str, float] = field(default_factory=dict)


@dataclass
class ComplexityScore:
    """Six independent difficulty dimensions plus their weighted combination."""

    prompt_length: float
    technical_depth: float
    multi_step: float
    context_dependency: float
    domain_specificity: float
    output_requirements: float
    overall: float

    def __post_init__(self) -> None:
        for name, value in self.as_dict().items():
            if not 0.0 <= value <= 1.0:
                raise ValueError(f"Complexity {name} must be 0.0-1.0, got {value}")

    def as_dict(self) -> dict[str, float]:
        return {
            "prompt_length": self.prompt_length,
            "technical_depth": self.technical_depth,
            "multi_step": self.multi_step,
            "context_dependency": self.context_dependency,
            "domain_specificity": self.domain_specificity,
            "output_requirements": self.output_requirements,
            "overall": self.overall,
        }


@dataclass
class ModelSelection:
    """The engine's single-model routing decision."""

    model: ModelConfig
    confidence: float
    reasoning: list[str]
    alternatives: list[ModelConfig]
    estimated_cost: float
    estimated_latency: float
    estimated_quality: float
    intent: Intent | None = None
    complexity: ComplexityScore | None = None


# ------------------------------------------------------------------ #
# Ensemble
# ------------------------------------------------------------------ #


@dataclass
class EnsembleConfig:
    """Multi-model fan-out request.

    ``strategy`` is kept as a plain string so that unknown values can be
    rejected with UnknownStrategyError before any provider is called.
    """

    models: list[str]
    strategy: str = EnsembleStrategy.VOTING
    weights: dict[str, float] | None = None
    threshold: float | None = None


@dataclass(frozen=True)
class Contributor:
    model: str
    response: str
    weight: float = 1.0


@dataclass
class EnsembleResponse:
    """Reduced ensemble result.

    Attributes:
        result: The reduced answer text
        contributors: Every model that returned successfully
        agreement_score: Strategy-specific agreement measure (0.0-1.0)
        confidence: agreement * 0.7 + min(contributors / 5, 1) * 0.3
        strategy_used: Strategy that produced ``result`` (best_of after a consensus fallback)
        failed_models: Model ids whose invocation failed, mapped to the error text
    """

    result: str
    contributors: list[Contributor]
    agreement_score: float
    confidence: float
    strategy_used: EnsembleStrategy
    failed_models: dict[str, str] = field(default_factory=dict)
