"""Metrics collection for routing decisions and provider outcomes.

RouterMetricsCollector keeps a bounded in-memory history of routing
decisions (timestamp, model, intent, complexity, confidence, selection time)
and aggregates it into model distribution and average selection time.

Provider outcomes go to Prometheus instruments on a per-collector
CollectorRegistry:
- llm_requests_total{model, status}        (Counter)
- llm_request_duration_seconds{model}      (Histogram)
- llm_tokens_total{model, token_type}      (Counter)
- routing_decisions_total{model, intent}   (Counter)

Per-model success rates are read back from llm_requests_total, and
``get_metrics()`` renders the registry in the Prometheus text format for
the ``/metrics`` scrape endpoint.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Any

import structlog
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)
from starlette.responses import Response

from src.agent.model_router.types import ModelSelection

log = structlog.get_logger(__name__)

# LLM calls are slow; buckets reach one minute
LLM_DURATION_BUCKETS = [0.1, 0.25, 0.5, 1.0, 2.0, 5.0, 10.0, 30.0, 60.0]


@dataclass
class RoutingDecision:
    """Record of a single model selection.

    Attributes:
        model_id: Selected model
        intent: Primary intent value
        complexity: Overall complexity score
        confidence: Selection confidence (0.0-1.0)
        selection_time_ms: Wall time spent in select_model
        user_id: Caller identifier
        timestamp: When the decision was made
    """

    model_id: str
    intent: str
    complexity: float
    confidence: float
    selection_time_ms: float
    user_id: str = "anonymous"
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))


class RouterMetricsCollector:
    """Collects and aggregates routing metrics for observability."""

    def __init__(self, history_size: int = 1000) -> None:
        if history_size <= 0:
            raise ValueError("history_size must be positive")
        self._decisions: deque[RoutingDecision] = deque(maxlen=history_size)
        self._total_requests = 0
        self._init_registry()

        log.info("router_metrics.initialized", history_size=history_size)

    def _init_registry(self) -> None:
        self.registry = CollectorRegistry(auto_describe=True)

        self.llm_requests_total = Counter(
            "llm_requests_total",
            "Total provider invocations",
            ["model", "status"],
            registry=self.registry,
        )
        self.llm_request_duration_seconds = Histogram(
            "llm_request_duration_seconds",
            "Provider invocation duration in seconds",
            ["model"],
            buckets=LLM_DURATION_BUCKETS,
            registry=self.registry,
        )
        self.llm_tokens_total = Counter(
            "llm_tokens_total",
            "Total tokens reported by providers",
            ["model", "token_type"],
            registry=self.registry,
        )
        self.routing_decisions_total = Counter(
            "routing_decisions_total",
            "Total model selections",
            ["model", "intent"],
            registry=self.registry,
        )

    # ------------------------------------------------------------------ #
    # Recording
    # ------------------------------------------------------------------ #

    def record_selection(
        self,
        selection: ModelSelection,
        selection_time_ms: float,
        user_id: str = "anonymous",
    ) -> RoutingDecision:
        decision = RoutingDecision(
            model_id=selection.model.id,
            intent=selection.intent.primary.value if selection.intent else "unknown",
            complexity=selection.complexity.overall if selection.complexity else 0.0,
            confidence=selection.confidence,
            selection_time_ms=selection_time_ms,
            user_id=user_id,
        )
        self.record_decision(decision)
        return decision

    def record_decision(self, decision: RoutingDecision) -> None:
        self._decisions.append(decision)
        self._total_requests += 1
        self.routing_decisions_total.labels(model=decision.model_id, intent=decision.intent).inc()

        log.debug(
            "router_metrics.decision_recorded",
            model_id=decision.model_id,
            intent=decision.intent,
            complexity=round(decision.complexity, 4),
            selection_time_ms=round(decision.selection_time_ms, 2),
        )

    def record_outcome(
        self,
        model_id: str,
        *,
        success: bool,
        latency_ms: float | None = None,
        prompt_tokens: int = 0,
        completion_tokens: int = 0,
        error: str | None = None,
    ) -> None:
        """Record one provider invocation.

        Args:
            model_id: Model that was invoked
            success: Whether the provider returned a response
            latency_ms: Observed duration, None when not measured
            prompt_tokens: Prompt tokens reported by the provider
            completion_tokens: Completion tokens reported by the provider
            error: Failure description, logged only
        """
        status = "success" if success else "error"
        self.llm_requests_total.labels(model=model_id, status=status).inc()
        if latency_ms is not None:
            self.llm_request_duration_seconds.labels(model=model_id).observe(latency_ms / 1000)
        if prompt_tokens:
            self.llm_tokens_total.labels(model=model_id, token_type="prompt").inc(prompt_tokens)
        if completion_tokens:
            self.llm_tokens_total.labels(model=model_id, token_type="completion").inc(
                completion_tokens
            )
        if not success:
            log.debug("router_metrics.provider_failure_recorded", model_id=model_id, error=error)

    # ------------------------------------------------------------------ #
    # Aggregates
    # ------------------------------------------------------------------ #

    @property
    def total_requests(self) -> int:
        """Selections recorded since start, including those evicted from history."""
        return self._total_requests

    def _recent_decisions(self, period_hours: int | None) -> list[RoutingDecision]:
        if period_hours is None:
            return list(self._decisions)
        cutoff = datetime.now(UTC) - timedelta(hours=period_hours)
        return [d for d in self._decisions if d.timestamp >= cutoff]

    def model_distribution(self, period_hours: int | None = None) -> dict[str, int]:
        """Count of selections per model id within the retained history."""
        distribution: dict[str, int] = {}
        for decision in self._recent_decisions(period_hours):
            distribution[decision.model_id] = distribution.get(decision.model_id, 0) + 1
        return distribution

    def average_selection_time_ms(self) -> float:
        if not self._decisions:
            return 0.0
        return sum(d.selection_time_ms for d in self._decisions) / len(self._decisions)

    def _request_counts(self) -> dict[str, dict[str, float]]:
        counts: dict[str, dict[str, float]] = {}
        for metric in self.llm_requests_total.collect():
            for sample in metric.samples:
                if sample.name != "llm_requests_total":
                    continue
                per_status = counts.setdefault(sample.labels["model"], {})
                per_status[sample.labels["status"]] = sample.value
        return counts

    def success_rate(self, model_id: str) -> float | None:
        """Fraction of successful invocations, or None with no recorded outcome."""
        per_status = self._request_counts().get(model_id)
        if not per_status:
            return None
        return per_status.get("success", 0.0) / sum(per_status.values())

    def success_rates(self) -> dict[str, float]:
        return {
            model_id: per_status.get("success", 0.0) / sum(per_status.values())
            for model_id, per_status in self._request_counts().items()
        }

    def summary(self) -> dict[str, Any]:
        """Dashboard-ready snapshot of the current aggregates."""
        summary = {
            "total_requests": self._total_requests,
            "model_distribution": self.model_distribution(),
            "average_selection_time_ms": round(self.average_selection_time_ms(), 3),
            "success_rates": {k: round(v, 4) for k, v in self.success_rates().items()},
        }
        log.debug("router_metrics.summary", total_requests=self._total_requests)
        return summary

    def get_metrics(self) -> Response:
        """Render the registry in the Prometheus text exposition format."""
        return Response(
            content=generate_latest(self.registry),
            media_type=CONTENT_TYPE_LATEST,
        )

    def reset(self) -> None:
        self._decisions.clear()
        self._total_requests = 0
        self._init_registry()
