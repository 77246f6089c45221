"""Tests for CandidateSelector.

Tests cover:
- Preferred models short-circuit, avoided models are removed
- Hard constraints, intent capability and complexity tier filters
- Research fallback to flagship models
- Empty results fall back to the available registry, never to nothing
"""

from __future__ import annotations

import pytest

from src.agent.model_router.candidates import CandidateSelector
from src.agent.model_router.exceptions import NoCandidatesError
from src.agent.model_router.types import (
    ComplexityScore,
    Intent,
    IntentType,
    RequestConstraints,
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
def selector() -> CandidateSelector:
    return CandidateSelector()


@pytest.fixture
def pool(make_model):
    return [
        make_model("flagship", quality=95, latency=3000, code_generation=True, function_calling=True),
        make_model("fast", quality=80, latency=500, tags=("speed",), code_generation=True),
        make_model("writer", quality=88, latency=1500, creative=True),
        make_model("searcher", quality=85, latency=2000, web_search=True),
        make_model("offline", quality=99, code_generation=True, available=False),
    ]


def test_medium_complexity_keeps_all_intent_capable_models(selector, pool):
    result = selector.select(pool, _intent(IntentType.CODE_GENERATION), _complexity(0.5))

    assert [m.id for m in result] == ["flagship", "fast"]


def test_unavailable_models_are_never_candidates(selector, pool):
    result = selector.select(pool, _intent(IntentType.CONVERSATION), _complexity(0.5))

    assert "offline" not in [m.id for m in result]
    assert len(result) == 4


def test_preferred_models_short_circuit_other_filters(selector, pool):
    prefs = UserPreferences(preferred_models=["writer", "ghost"])

    result = selector.select(pool, _intent(IntentType.CODE_GENERATION), _complexity(0.9), prefs)

    assert [m.id for m in result] == ["writer"]


def test_unknown_preferred_models_fall_through_to_filters(selector, pool):
    prefs = UserPreferences(preferred_models=["ghost"])

    result = selector.select(pool, _intent(IntentType.CODE_GENERATION), _complexity(0.5), prefs)

    assert [m.id for m in result] == ["flagship", "fast"]


def test_avoided_models_are_removed(selector, pool):
    prefs = UserPreferences(avoid_models=["flagship"])

    result = selector.select(pool, _intent(IntentType.CODE_GENERATION), _complexity(0.5), prefs)

    assert [m.id for m in result] == ["fast"]


def test_function_calling_constraint(selector, pool):
    constraints = RequestConstraints(require_function_calling=True)

    result = selector.select(
        pool, _intent(IntentType.CONVERSATION), _complexity(0.5), None, constraints
    )

    assert [m.id for m in result] == ["flagship"]


def test_high_complexity_keeps_flagship_models(selector, pool):
    result = selector.select(pool, _intent(IntentType.CODE_GENERATION), _complexity(0.9))

    assert [m.id for m in result] == ["flagship"]


def test_low_complexity_keeps_fast_models(selector, pool):
    result = selector.select(pool, _intent(IntentType.CODE_GENERATION), _complexity(0.1))

    assert [m.id for m in result] == ["fast"]


def test_research_without_web_search_falls_back_to_flagships(selector, make_model):
    models = [
        make_model("big", quality=92),
        make_model("small", quality=70),
    ]

    result = selector.select(models, _intent(IntentType.RESEARCH), _complexity(0.5))

    assert [m.id for m in result] == ["big"]


def test_empty_filter_result_falls_back_to_available_registry(selector, pool):
    constraints = RequestConstraints(require_vision=True)

    result = selector.select(
        pool, _intent(IntentType.CODE_GENERATION), _complexity(0.5), None, constraints
    )

    assert [m.id for m in result] == ["flagship", "fast", "writer", "searcher"]


def test_no_available_models_raises(selector, make_model):
    with pytest.raises(NoCandidatesError):
        selector.select(
            [make_model("down", available=False)],
            _intent(IntentType.CONVERSATION),
            _complexity(0.5),
        )


def test_default_catalog_never_yields_empty(selector, registry):
    for intent_type in IntentType:
        for overall in (0.0, 0.5, 1.0):
            result = selector.select(registry.snapshot(), _intent(intent_type), _complexity(overall))
            assert result
