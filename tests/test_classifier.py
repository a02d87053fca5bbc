from unittest.mock import AsyncMock

import pytest

from guttrack import ai_engine
from guttrack.ai_engine import AIProviderError
from guttrack.classifier import EntryKind, analyze_entry, classify, kind_for

from .conftest import run

FOOD_CATEGORIES = ["breakfast", "lunch", "dinner", "snack", "drinks"]
SYMPTOM_CATEGORIES = ["symptoms", "gas", "bowel", "mood", "energy"]


@pytest.fixture
def provider(monkeypatch):
    food = AsyncMock(return_value={})
    symptom = AsyncMock(return_value={})
    monkeypatch.setattr(ai_engine, "analyze_food_entry", food)
    monkeypatch.setattr(ai_engine, "analyze_symptom_entry", symptom)
    return food, symptom


@pytest.mark.parametrize("category", FOOD_CATEGORIES)
def test_food_failure_returns_default(provider, category):
    food, _ = provider
    food.side_effect = AIProviderError("backend down")

    result = run(classify(category, "beans on toast"))

    assert result.flags == []
    assert result.risk_level == "low"
    assert result.confidence == 0.5
    assert result.insights == []
    food.assert_awaited_once_with("beans on toast")


@pytest.mark.parametrize("category", FOOD_CATEGORIES)
def test_food_uses_provider_risk_and_confidence(provider, category):
    food, symptom = provider
    food.return_value = {
        "flags": ["gas-producing", "high-fiber"],
        "riskLevel": "high",
        "confidence": 0.92,
        "insights": ["Beans are a common gas trigger"],
    }

    result = run(classify(category, "beans on toast"))

    assert result.flags == ["gas-producing", "high-fiber"]
    assert result.risk_level == "high"
    assert result.confidence == 0.92
    assert result.insights == ["Beans are a common gas trigger"]
    symptom.assert_not_awaited()


def test_food_missing_fields_get_food_defaults(provider):
    run_result = run(classify("lunch", "plain rice"))

    assert run_result.flags == []
    assert run_result.risk_level == "low"
    assert run_result.confidence == 0.8
    assert run_result.insights == []


@pytest.mark.parametrize("category", SYMPTOM_CATEGORIES)
def test_symptom_severity_becomes_risk_level(provider, category):
    food, symptom = provider
    symptom.return_value = {"flags": ["cramping"], "severity": "medium", "riskLevel": "high"}

    result = run(classify(category, "cramping after dinner"))

    assert result.risk_level == "medium"
    assert result.confidence == 0.7
    assert result.flags == ["cramping"]
    food.assert_not_awaited()


def test_symptom_failure_returns_default(provider):
    _, symptom = provider
    symptom.side_effect = RuntimeError("socket closed")

    outcome = run(analyze_entry("gas", "lots of wind"))

    assert outcome.fallback is True
    assert outcome.kind is EntryKind.SYMPTOM
    assert "socket closed" in outcome.error
    assert outcome.result.model_dump() == {"flags": [], "risk_level": "low", "confidence": 0.5, "insights": []}


@pytest.mark.parametrize("category", ["irrigation", "medication", "", "unknown", "output"])
def test_other_categories_never_call_provider(provider, category):
    food, symptom = provider

    outcome = run(analyze_entry(category, "anything at all"))

    assert outcome.result.model_dump() == {"flags": [], "risk_level": "low", "confidence": 0.5, "insights": []}
    assert outcome.fallback is False
    assert food.await_count == 0
    assert symptom.await_count == 0


def test_category_matching_is_exact():
    assert kind_for("breakfast") is EntryKind.FOOD
    assert kind_for("gas") is EntryKind.SYMPTOM
    assert kind_for(" Breakfast ") is EntryKind.OTHER
    assert kind_for("GAS") is EntryKind.OTHER
    assert kind_for(None) is EntryKind.OTHER


@pytest.mark.parametrize("category", ["GAS", " Breakfast ", "Lunch", "symptoms "])
def test_near_miss_categories_never_call_provider(provider, category):
    food, symptom = provider

    outcome = run(analyze_entry(category, "beans and cramps"))

    assert outcome.kind is EntryKind.OTHER
    assert outcome.result.risk_level == "low"
    assert food.await_count == 0
    assert symptom.await_count == 0


def test_out_of_range_values_are_normalized(provider):
    food, _ = provider
    food.return_value = {"riskLevel": "catastrophic", "confidence": 7, "flags": "spicy"}

    result = run(classify("dinner", "vindaloo"))

    assert result.risk_level == "low"
    assert result.confidence == 1.0
    assert result.flags == ["spicy"]


def test_non_object_response_falls_back(provider):
    food, _ = provider
    food.return_value = ["not", "an", "object"]

    outcome = run(analyze_entry("snack", "crisps"))

    assert outcome.fallback is True
    assert outcome.result.confidence == 0.5


def test_unconfigured_provider_falls_back():
    # No patching: the autouse fixture leaves the provider without a key
    outcome = run(analyze_entry("breakfast", "porridge"))

    assert outcome.fallback is True
    assert outcome.kind is EntryKind.FOOD
    assert outcome.result.risk_level == "low"
