from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest

from guttrack import ai_engine
from guttrack.ai_engine import AIProviderError, AIResponseError
from guttrack.multi_parser import AnalysisError, meal_type_for_time, parse_multi_category_entry

from .conftest import run

BASE = datetime(2025, 7, 10, 7, 30, tzinfo=timezone.utc)


@pytest.fixture
def extractor(monkeypatch):
    mock = AsyncMock()
    monkeypatch.setattr(ai_engine, "extract_multi_category", mock)
    return mock


def test_toast_and_bloating_yield_meal_and_symptom(extractor):
    extractor.return_value = {
        "entries": [
            {"type": "breakfast", "description": "Toast", "timestamp": "2025-07-10T07:30:00", "confidence": 0.9,
             "details": {"ingredients": ["toast (1 slice)"]}},
            {"type": "symptoms", "description": "Felt bloated after toast", "timestamp": "2025-07-10T08:00:00",
             "confidence": 0.8, "details": {"symptomType": "bloating", "severity": 4}},
        ],
        "summary": "Breakfast and bloating",
        "confidence": 0.85,
    }

    extraction = run(parse_multi_category_entry("ate toast, felt bloated after", BASE))

    assert set(extraction.drafts) == {"breakfast", "symptoms"}
    meal = extraction.drafts["breakfast"]
    symptom = extraction.drafts["symptoms"]
    assert meal.timestamp == BASE
    assert meal.fields["meal_type"] == "BREAKFAST"
    assert meal.fields["ingredients"] == ["toast (1 slice)"]
    assert symptom.timestamp == BASE + timedelta(minutes=30)
    assert symptom.fields["symptom_type"] == "BLOATING"
    assert symptom.fields["severity"] == 4
    assert extraction.timestamp == BASE
    assert extraction.confidence == 0.85
    extractor.assert_awaited_once_with("ate toast, felt bloated after", BASE)


@pytest.mark.parametrize("description", ["", "   "])
def test_empty_description_raises(extractor, description):
    with pytest.raises(ValueError):
        run(parse_multi_category_entry(description, BASE))
    extractor.assert_not_awaited()


@pytest.mark.parametrize("error", [AIProviderError("timeout"), AIResponseError("not json")])
def test_provider_failure_propagates(extractor, error):
    extractor.side_effect = error

    with pytest.raises(AnalysisError):
        run(parse_multi_category_entry("had some soup", BASE))


def test_unconfigured_provider_propagates():
    with pytest.raises(AnalysisError):
        run(parse_multi_category_entry("had some soup", BASE))


@pytest.mark.parametrize("raw", [["entries"], {"entries": "breakfast"}, "nope"])
def test_unexpected_shape_raises(extractor, raw):
    extractor.return_value = raw

    with pytest.raises(AnalysisError):
        run(parse_multi_category_entry("had some soup", BASE))


def test_result_is_sparse_and_unknown_types_dropped(extractor):
    extractor.return_value = {
        "entries": [
            {"type": "gas", "description": "Gas", "details": {"intensity": "moderate", "duration": "15"}},
            {"type": "general", "description": "Felt fine"},
            {"type": "exercise", "description": "Walked"},
        ]
    }

    extraction = run(parse_multi_category_entry("some gas, felt fine", BASE))

    assert list(extraction.drafts) == ["gas"]
    gas = extraction.drafts["gas"]
    assert gas.fields == {"intensity": 5, "duration": 15}
    assert gas.timestamp == BASE
    assert extraction.summary == "Detected 1 entries"
    assert "breakfast" not in extraction.drafts


def test_aliases_and_time_of_day_meal(extractor):
    extractor.return_value = {
        "entries": [
            {"type": "meal", "description": "Chicken salad", "timestamp": "2025-07-10T13:05:00"},
            {"type": "Bowel", "description": "Soft output", "details": {"volume": 250, "consistency": "soft"}},
            {"type": "beverage", "description": "Chai", "details": {"beverage": "chai", "quantity": "1 cup"}},
        ]
    }

    extraction = run(parse_multi_category_entry("lunch, chai, output", BASE))

    assert set(extraction.drafts) == {"lunch", "output", "drinks"}
    assert extraction.drafts["lunch"].fields["meal_type"] == "LUNCH"
    assert extraction.drafts["output"].fields == {"volume": 250, "consistency": "SOFT"}
    assert extraction.drafts["drinks"].fields["name"] == "chai"


def test_irrigation_quality_from_water_flow(extractor):
    extractor.return_value = {
        "entries": [
            {"type": "irrigation", "description": "Difficult flow, good emptying",
             "details": {"waterFlow": "difficult", "completeness": 8, "comfort": 12}},
        ]
    }

    extraction = run(parse_multi_category_entry("irrigation was hard going", BASE))

    fields = extraction.drafts["irrigation"].fields
    assert fields["quality"] == "FAIR"
    assert fields["completeness"] == 8
    assert fields["comfort"] == 10


def test_bad_or_distant_timestamps_anchor_to_baseline(extractor):
    extractor.return_value = {
        "entries": [
            {"type": "snack", "description": "Crackers", "timestamp": "yesterday-ish"},
            {"type": "gas", "description": "Gas", "timestamp": "2019-01-01T10:00:00"},
        ]
    }

    extraction = run(parse_multi_category_entry("crackers then gas", BASE))

    assert extraction.drafts["snack"].timestamp == BASE
    assert extraction.drafts["gas"].timestamp == BASE


def test_aware_timestamps_are_converted_to_utc(extractor):
    extractor.return_value = {
        "entries": [{"type": "dinner", "description": "Pasta", "timestamp": "2025-07-10T21:00:00+02:00"}]
    }
    base = datetime(2025, 7, 10, 20, 0, tzinfo=timezone.utc)

    extraction = run(parse_multi_category_entry("pasta for dinner", base))

    assert extraction.timestamp == base
    assert extraction.drafts["dinner"].timestamp == datetime(2025, 7, 10, 19, 0, tzinfo=timezone.utc)


def test_naive_baseline_is_treated_as_utc(extractor):
    extractor.return_value = {"entries": [{"type": "gas", "description": "Gas", "timestamp": "2025-07-10T08:00:00"}]}

    extraction = run(parse_multi_category_entry("gas", datetime(2025, 7, 10, 7, 30)))

    assert extraction.timestamp == BASE
    assert extraction.drafts["gas"].timestamp == BASE + timedelta(minutes=30)


def test_out_of_range_timestamp_anchors_to_baseline(extractor):
    extractor.return_value = {
        "entries": [
            {"type": "gas", "description": "Gas", "timestamp": "0001-01-01T00:00:00+05:00"},
            {"type": "snack", "description": "Nuts", "timestamp": "9999-12-31T23:00:00-05:00"},
        ]
    }

    extraction = run(parse_multi_category_entry("gas and nuts", BASE))

    assert extraction.drafts["gas"].timestamp == BASE
    assert extraction.drafts["snack"].timestamp == BASE


def test_huge_numbers_are_ignored(extractor):
    extractor.return_value = {
        "entries": [
            {"type": "gas", "description": "Gas", "confidence": 10 ** 400, "details": {"intensity": 10 ** 400, "duration": 10 ** 400}},
        ],
        "confidence": 10 ** 400,
    }

    extraction = run(parse_multi_category_entry("so much gas", BASE))

    gas = extraction.drafts["gas"]
    assert gas.confidence == 0.5
    assert gas.fields == {}
    assert extraction.confidence == 0.5


def test_duplicate_category_keeps_most_confident(extractor):
    extractor.return_value = {
        "entries": [
            {"type": "drinks", "description": "Water", "confidence": 0.6},
            {"type": "drinks", "description": "Coffee", "confidence": 0.9},
            {"type": "drinks", "description": "Juice", "confidence": 0.7},
        ]
    }

    extraction = run(parse_multi_category_entry("water, coffee, juice", BASE))

    assert extraction.drafts["drinks"].description == "Coffee"
    assert extraction.confidence == 0.9


@pytest.mark.parametrize(
    "hour, expected",
    [(5, "breakfast"), (9, "breakfast"), (10, "snack"), (12, "lunch"), (16, "snack"), (19, "dinner"), (22, "snack"), (2, "snack")],
)
def test_meal_type_for_time(hour, expected):
    assert meal_type_for_time(datetime(2025, 7, 10, hour, 0)) == expected
