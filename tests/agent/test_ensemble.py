"""Tests for EnsembleAggregator.

Tests cover:
- voting / weighted / best_of / consensus reductions
- consensus fallback to best_of below the threshold
- partial failure exclusion, timeouts and all-models-failed
- strategy and configuration validation before any provider call
"""

from __future__ import annotations

import pytest

from src.agent.model_router.ensemble import (
    EnsembleAggregator,
    ensemble_confidence,
    jaccard,
    normalize_answer,
)
from src.agent.model_router.exceptions import AllModelsFailedError, UnknownStrategyError
from src.agent.model_router.types import (
    CompletionResponse,
    EnsembleConfig,
    EnsembleStrategy,
    Message,
    ModelRequest,
    ProviderType,
)
from src.agent.providers.gateway import ProviderGateway


@pytest.fixture
def aggregator(gateway, registry) -> EnsembleAggregator:
    return EnsembleAggregator(gateway, registry)


@pytest.fixture
def request_() -> ModelRequest:
    return ModelRequest(messages=[Message(role="user", content="What is the capital of France?")])


# ------------------------------------------------------------------ #
# voting
# ------------------------------------------------------------------ #


@pytest.mark.asyncio
async def test_voting_normalizes_answers(aggregator, mock_provider, request_):
    """Test that case and whitespace variants vote together."""
    mock_provider.script(
        responses={
            "gpt-4o": "Paris",
            "claude-sonnet-4": "paris ",
            "gemini-1-5-pro": "PARIS",
            "mistral-large": "London",
        }
    )
    config = EnsembleConfig(
        models=["gpt-4o", "claude-sonnet-4", "gemini-1-5-pro", "mistral-large"],
        strategy=EnsembleStrategy.VOTING,
    )

    response = await aggregator.combine(request_, config)

    assert response.result == "paris"
    assert response.agreement_score == pytest.approx(0.75)
    assert response.confidence == pytest.approx(0.75 * 0.7 + 0.8 * 0.3)
    assert response.strategy_used == EnsembleStrategy.VOTING
    assert [c.model for c in response.contributors] == config.models
    assert response.failed_models == {}


@pytest.mark.asyncio
async def test_voting_tie_keeps_first_seen_answer(aggregator, mock_provider, request_):
    mock_provider.script(responses={"gpt-4o": "Lyon", "mistral-large": "Paris"})

    response = await aggregator.combine(
        request_, EnsembleConfig(models=["gpt-4o", "mistral-large"])
    )

    assert response.result == "lyon"
    assert response.agreement_score == pytest.approx(0.5)


# ------------------------------------------------------------------ #
# weighted
# ------------------------------------------------------------------ #


@pytest.mark.asyncio
async def test_weighted_picks_heaviest_model(aggregator, mock_provider, request_):
    mock_provider.script(responses={"gpt-4o": "Lyon", "claude-sonnet-4": "Paris"})
    config = EnsembleConfig(
        models=["gpt-4o", "claude-sonnet-4"],
        strategy="weighted",
        weights={"claude-sonnet-4": 3.0},
    )

    response = await aggregator.combine(request_, config)

    assert response.result == "Paris"
    assert response.agreement_score == pytest.approx(3.0 / 4.0)
    assert {c.model: c.weight for c in response.contributors} == {
        "gpt-4o": 1.0,
        "claude-sonnet-4": 3.0,
    }


@pytest.mark.asyncio
async def test_weighted_zero_total_weight(aggregator, mock_provider, request_):
    mock_provider.script(responses={"gpt-4o": "Lyon", "claude-sonnet-4": "Paris"})
    config = EnsembleConfig(
        models=["gpt-4o", "claude-sonnet-4"],
        strategy="weighted",
        weights={"gpt-4o": 0.0, "claude-sonnet-4": 0.0},
    )

    response = await aggregator.combine(request_, config)

    assert response.result == "Lyon"
    assert response.agreement_score == 0.0


@pytest.mark.asyncio
async def test_negative_weight_rejected_before_any_call(aggregator, mock_provider, request_):
    config = EnsembleConfig(
        models=["gpt-4o", "mistral-large"],
        strategy="weighted",
        weights={"gpt-4o": 2.0, "mistral-large": -1.0},
    )

    with pytest.raises(ValueError, match="mistral-large"):
        await aggregator.combine(request_, config)

    assert mock_provider.calls == []


# ------------------------------------------------------------------ #
# best_of / consensus
# ------------------------------------------------------------------ #


@pytest.mark.asyncio
async def test_best_of_prefers_higher_declared_quality(aggregator, mock_provider, request_):
    mock_provider.script(responses={"gpt-4o": "Short answer", "gpt-4o-mini": "Short answer."})
    config = EnsembleConfig(models=["gpt-4o-mini", "gpt-4o"], strategy="best_of")

    response = await aggregator.combine(request_, config)

    # gpt-4o: 92*0.6 + 1.2*0.2 + 80*0.2; gpt-4o-mini: 80*0.6 + 1.3*0.2 + 100*0.2
    assert response.result == "Short answer"
    assert response.agreement_score == pytest.approx((55.2 + 0.24 + 16.0) / 100)


def test_heuristic_score_unknown_model_uses_default_quality(aggregator):
    response = CompletionResponse(id="x", model="ghost", content="Done!")

    score = aggregator.heuristic_score(response)

    assert score == pytest.approx(85 * 0.6 + (5 / 1000) * 100 * 0.2 + 100 * 0.2)


@pytest.mark.asyncio
async def test_consensus_with_agreeing_answers(aggregator, mock_provider, request_):
    mock_provider.script(
        responses={
            "gpt-4o": "The capital of France is Paris.",
            "claude-sonnet-4": "The capital of France is Paris.",
            "mistral-large": "the capital of france is Paris.",
        }
    )
    config = EnsembleConfig(
        models=["gpt-4o", "claude-sonnet-4", "mistral-large"], strategy="consensus"
    )

    response = await aggregator.combine(request_, config)

    assert response.strategy_used == EnsembleStrategy.CONSENSUS
    assert response.result == "The capital of France is Paris."
    assert response.agreement_score == pytest.approx(1.0)


@pytest.mark.asyncio
async def test_consensus_falls_back_to_best_of(aggregator, mock_provider, request_):
    mock_provider.script(
        responses={
            "gpt-4o": "The capital of France is Paris.",
            "mistral-large": "Bananas are a yellow fruit rich in potassium.",
        }
    )
    config = EnsembleConfig(
        models=["gpt-4o", "mistral-large"], strategy="consensus", threshold=0.9
    )

    response = await aggregator.combine(request_, config)

    assert response.strategy_used == EnsembleStrategy.BEST_OF
    assert response.result == "The capital of France is Paris."


@pytest.mark.asyncio
async def test_consensus_partial_overlap_falls_back_to_best_of(aggregator, mock_provider, request_):
    """Test three answers sharing 3 of 7 words pairwise (Jaccard 3/7) under a 0.9 threshold."""
    mock_provider.script(
        responses={
            "gpt-4o": "paris is the capital city.",
            "claude-sonnet-4": "paris is the government seat",
            "mistral-large": "paris is the largest metropolis!",
        }
    )
    config = EnsembleConfig(
        models=["gpt-4o", "claude-sonnet-4", "mistral-large"],
        strategy="consensus",
        threshold=0.9,
    )

    response = await aggregator.combine(request_, config)

    assert jaccard("paris is the capital city.", "paris is the government seat") == pytest.approx(3 / 7)
    assert response.strategy_used == EnsembleStrategy.BEST_OF
    # gpt-4o: 92*0.6 + 2.6*0.2 + 100*0.2 beats claude (80 completeness) and mistral (quality 88)
    assert response.result == "paris is the capital city."
    assert response.agreement_score == pytest.approx((55.2 + 0.52 + 20.0) / 100)
    assert len(response.contributors) == 3


def test_heuristic_score_question_mark_is_incomplete(aggregator):
    question = CompletionResponse(id="x", model="ghost", content="Is it Paris?")
    trailing_space = CompletionResponse(id="y", model="ghost", content="It is Paris. ")

    assert aggregator.heuristic_score(question) == pytest.approx(
        85 * 0.6 + (12 / 1000) * 100 * 0.2 + 80 * 0.2
    )
    assert aggregator.heuristic_score(trailing_space) == pytest.approx(
        85 * 0.6 + (13 / 1000) * 100 * 0.2 + 80 * 0.2
    )


# ------------------------------------------------------------------ #
# failures & validation
# ------------------------------------------------------------------ #


@pytest.mark.asyncio
async def test_failed_model_is_excluded(aggregator, mock_provider, request_):
    mock_provider.script(responses={"gpt-4o": "Paris", "mistral-large": "Paris"}, failures={"o1"})

    response = await aggregator.combine(
        request_, EnsembleConfig(models=["gpt-4o", "o1", "mistral-large"])
    )

    assert response.result == "paris"
    assert response.agreement_score == pytest.approx(1.0)
    assert [c.model for c in response.contributors] == ["gpt-4o", "mistral-large"]
    assert list(response.failed_models) == ["o1"]


@pytest.mark.asyncio
async def test_unknown_model_counts_as_failure(aggregator, request_):
    response = await aggregator.combine(
        request_, EnsembleConfig(models=["gpt-4o", "not-a-model"])
    )

    assert "not-a-model" in response.failed_models
    assert len(response.contributors) == 1


@pytest.mark.asyncio
async def test_timeout_counts_as_failure(registry, mock_provider, request_):
    gateway = ProviderGateway(
        registry,
        {provider_type: mock_provider for provider_type in ProviderType},
        timeout_seconds=0.05,
    )
    mock_provider.script(delays={"o1": 1.0})
    aggregator = EnsembleAggregator(gateway, registry)

    response = await aggregator.combine(request_, EnsembleConfig(models=["gpt-4o", "o1"]))

    assert list(response.failed_models) == ["o1"]
    assert "No response within" in response.failed_models["o1"]


@pytest.mark.asyncio
async def test_all_models_failed(aggregator, mock_provider, request_):
    mock_provider.script(failures={"gpt-4o", "o1"})

    with pytest.raises(AllModelsFailedError) as exc_info:
        await aggregator.combine(request_, EnsembleConfig(models=["gpt-4o", "o1"]))

    assert set(exc_info.value.errors) == {"gpt-4o", "o1"}


@pytest.mark.asyncio
async def test_unknown_strategy_fails_before_any_call(aggregator, mock_provider, request_):
    with pytest.raises(UnknownStrategyError) as exc_info:
        await aggregator.combine(request_, EnsembleConfig(models=["gpt-4o"], strategy="majority"))

    assert exc_info.value.strategy == "majority"
    assert isinstance(exc_info.value, ValueError)
    assert mock_provider.calls == []


@pytest.mark.asyncio
async def test_empty_model_list_rejected(aggregator, mock_provider, request_):
    with pytest.raises(ValueError, match="at least one model"):
        await aggregator.combine(request_, EnsembleConfig(models=[]))

    assert mock_provider.calls == []


# ------------------------------------------------------------------ #
# helpers
# ------------------------------------------------------------------ #


def test_normalize_answer():
    assert normalize_answer("  Hello \n  World ") == "hello world"


def test_jaccard():
    assert jaccard("a b c", "a b c") == 1.0
    assert jaccard("a b", "c d") == 0.0
    assert jaccard("", "") == 0.0
    assert jaccard("A b", "a c") == pytest.approx(1 / 3)


def test_ensemble_confidence_saturates_at_five_contributors():
    assert ensemble_confidence(1.0, 10) == pytest.approx(1.0)
    assert ensemble_confidence(0.5, 1) == pytest.approx(0.35 + 0.06)
