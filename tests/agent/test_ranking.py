"""Tests for Ranker scoring and ordering."""

from __future__ import annotations

import pytest

from src.agent.model_router.ranking import Ranker, intent_match, speed_score
from src.agent.model_router.types import (
    ComplexityScore,
    Intent,
    IntentType,
    UserPreferences,
)


def _intent(primary: IntentType) -> Intent:
    return Intent(primary=primary, secondary=IntentType.CONVERSATION, confidence=0.6)


def _complexity(overall: float) -> ComplexityScore:
    return ComplexityScore(
        prompt_length=0.0,
        technical_depth=0.0,
        multi_step=0.0,
        context_dependency=0.0,
        domain_specificity=0.0,
        output_requirements=0.0,
        overall=overall,
    )


@pytest.fixture
def ranker() -> Ranker:
    return Ranker()


def test_score_breakdown_terms(ranker, make_model):
    model = make_model(
        "m",
        quality=90,
        cost_efficiency=80,
        latency=1000,
        reliability=100,
        satisfaction=80,
        tags=("coding", "programming"),
    )

    ranked = ranker.score(model, _intent(IntentType.CODE_GENERATION), _complexity(0.5))

    assert ranked.breakdown["quality"] == pytest.approx(36.0)
    assert ranked.breakdown["cost"] == pytest.approx(16.0)
    assert ranked.breakdown["speed"] == pytest.approx(16.0)
    assert ranked.breakdown["intent"] == pytest.approx(6.0)
    # medium complexity: mean of quality and cost efficiency
    assert ranked.breakdown["complexity"] == pytest.approx(8.5)
    assert ranked.breakdown["reliability"] == pytest.approx(5.0)
    assert ranked.breakdown["satisfaction"] == pytest.approx(4.0)
    assert ranked.score == pytest.approx(91.5)


def test_prioritize_cost_and_speed_raise_their_weights(ranker, make_model):
    model = make_model("m", cost_efficiency=100, latency=0)
    prefs = UserPreferences(prioritize_cost=True, prioritize_speed=True)

    ranked = ranker.score(model, _intent(IntentType.CONVERSATION), _complexity(0.5), prefs)

    assert ranked.breakdown["cost"] == pytest.approx(30.0)
    assert ranked.breakdown["speed"] == pytest.approx(30.0)


def test_speed_score_bottoms_out_at_ceiling(make_model):
    assert speed_score(make_model("slow", latency=12000)) == 0.0
    assert speed_score(make_model("instant", latency=0)) == 1.0


def test_intent_match_caps_at_one(make_model):
    model = make_model("m", tags=("reasoning", "analysis", "logic", "more logic"))

    assert intent_match(model, _intent(IntentType.REASONING)) == pytest.approx(0.9)
    assert intent_match(model, _intent(IntentType.TRANSLATION)) == 0.0


def test_complexity_match_by_regime(ranker, make_model):
    model = make_model("m", quality=90, cost_efficiency=70, latency=2500)

    assert ranker.complexity_match(model, _complexity(0.9)) == pytest.approx(0.9)
    assert ranker.complexity_match(model, _complexity(0.1)) == pytest.approx(0.5)
    assert ranker.complexity_match(model, _complexity(0.5)) == pytest.approx(0.8)


def test_rank_orders_by_descending_score(ranker, make_model):
    models = [
        make_model("low", quality=60),
        make_model("high", quality=99),
        make_model("mid", quality=80),
    ]

    ranked = ranker.rank(models, _intent(IntentType.CONVERSATION), _complexity(0.5))

    assert [r.model.id for r in ranked] == ["high", "mid", "low"]
    assert ranked[0].score >= ranked[1].score >= ranked[2].score


def test_rank_is_stable_for_equal_scores(ranker, make_model):
    models = [make_model("first"), make_model("second"), make_model("third")]

    ranked = ranker.rank(models, _intent(IntentType.CONVERSATION), _complexity(0.5))

    assert [r.model.id for r in ranked] == ["first", "second", "third"]
