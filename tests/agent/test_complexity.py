"""Tests for ComplexityAnalyzer."""

from __future__ import annotations

import math

import pytest

from src.agent.model_router.complexity import WEIGHTS, ComplexityAnalyzer
from src.agent.model_router.types import ComplexityScore


@pytest.fixture
def analyzer() -> ComplexityAnalyzer:
    return ComplexityAnalyzer()


def test_weights_sum_to_one():
    assert math.isclose(sum(WEIGHTS.values()), 1.0)


def test_simple_message_is_low_complexity(analyzer):
    result = analyzer.analyze("Hello, how are you?")

    assert isinstance(result, ComplexityScore)
    assert result.overall < 0.3
    assert analyzer.regime(result.overall) == "low"


def test_empty_text_scores_zero(analyzer):
    result = analyzer.analyze("")

    assert result.overall == 0.0
    assert all(value == 0.0 for value in result.as_dict().values())


def test_sort_and_explain_request(analyzer):
    result = analyzer.analyze("write a function to sort an array, then explain the algorithm", 1)

    assert result.multi_step == pytest.approx(1 / 3)
    assert result.technical_depth == pytest.approx(0.2)
    assert result.context_dependency == pytest.approx(0.1)
    assert 0.1 < result.overall < 0.3


def test_domain_specificity_tracks_technical_depth(analyzer):
    result = analyzer.analyze("database api security deployment")

    assert result.technical_depth == pytest.approx(0.8)
    assert result.domain_specificity == result.technical_depth


def test_every_factor_saturates_at_one(analyzer):
    text = (
        "First design the algorithm, database, api, framework and architecture. "
        "Then handle optimization, security and scalability. Next plan deployment "
        "and integration. Finally return a json table in list format. "
    ) * 40

    result = analyzer.analyze(text, message_count=50)

    for name, value in result.as_dict().items():
        assert 0.0 <= value <= 1.0, name
    assert result.prompt_length == 1.0
    assert result.technical_depth == 1.0
    assert result.multi_step == 1.0
    assert result.context_dependency == 1.0
    assert result.output_requirements == 1.0
    assert result.overall == pytest.approx(1.0)
    assert analyzer.regime(result.overall) == "high"


def test_negative_message_count_is_clamped(analyzer):
    assert analyzer.analyze("hi", message_count=-5).context_dependency == 0.0


def test_regime_boundaries():
    assert ComplexityAnalyzer.regime(0.3) == "medium"
    assert ComplexityAnalyzer.regime(0.7) == "medium"
    assert ComplexityAnalyzer.regime(0.71) == "high"
    assert ComplexityAnalyzer.regime(0.29) == "low"


def test_complexity_score_rejects_out_of_range_values():
    with pytest.raises(ValueError, match="must be 0.0-1.0"):
        ComplexityScore(
            prompt_length=1.5,
            technical_depth=0.0,
            multi_step=0.0,
            context_dependency=0.0,
            domain_specificity=0.0,
            output_requirements=0.0,
            overall=0.0,
        )
