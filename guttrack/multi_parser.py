# guttrack/multi_parser.py
"""
Turns one free-text description into draft records for every category it mentions.

Unlike the single-category classifier this never falls back to defaults: an
empty result must mean "nothing to log", so provider failures are raised.
"""
import logging
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Optional

from pydantic import Field

from . import ai_engine
from .ai_engine import AIProviderError
from .normalizers import normalize_confidence, normalize_score, string_list
from .schemas import CamelModel, to_utc

logger = logging.getLogger(__name__)

MEAL_CATEGORIES = ("breakfast", "lunch", "dinner", "snack")

TYPE_ALIASES = {
    "bowel": "output",
    "stool": "output",
    "stoma_output": "output",
    "symptom": "symptoms",
    "pain": "symptoms",
    "bloating": "symptoms",
    "cramping": "symptoms",
    "drink": "drinks",
    "beverage": "drinks",
    "beverages": "drinks",
    "medications": "medication",
    "supplement": "medication",
}

# Model-supplied times further than this from the baseline are not trusted
MAX_ANCHOR_DRIFT = timedelta(hours=48)

SYMPTOM_TYPES = ("CRAMPING", "BLOATING", "NAUSEA", "FATIGUE", "PAIN")
CONSISTENCIES = ("LIQUID", "SOFT", "FORMED", "HARD")
IRRIGATION_QUALITIES = ("EXCELLENT", "GOOD", "FAIR", "POOR")
WATER_FLOW_QUALITY = {"smooth": "GOOD", "easy": "GOOD", "difficult": "FAIR", "slow": "FAIR", "blocked": "POOR"}
INTENSITY_WORDS = {"mild": 3, "light": 3, "moderate": 5, "medium": 5, "strong": 7, "severe": 8, "extreme": 10}


class AnalysisError(Exception):
    """The description could not be analyzed."""


class DraftRecord(CamelModel):
    category: str
    description: str
    timestamp: datetime
    confidence: float = 0.5
    fields: Dict[str, Any] = Field(default_factory=dict)
    details: Dict[str, Any] = Field(default_factory=dict)


class MultiCategoryExtraction(CamelModel):
    timestamp: datetime
    summary: str = ""
    confidence: float = 0.0
    drafts: Dict[str, DraftRecord] = Field(default_factory=dict)


def meal_type_for_time(ts: datetime) -> str:
    hour = ts.hour
    if 5 <= hour < 10:
        return "breakfast"
    if 12 <= hour < 16:
        return "lunch"
    if 19 <= hour < 22:
        return "dinner"
    return "snack"


def canonical_category(raw_type: Any, ts: datetime) -> Optional[str]:
    if not isinstance(raw_type, str):
        return None
    name = raw_type.strip().lower()
    if name == "meal":
        return meal_type_for_time(ts)
    name = TYPE_ALIASES.get(name, name)
    return name if name in CATEGORY_FIELDS else None


def anchor_timestamp(value: Any, base: datetime) -> datetime:
    if isinstance(value, str) and value.strip():
        try:
            parsed = to_utc(datetime.fromisoformat(value.strip().replace("Z", "+00:00")))
        except (ValueError, OverflowError):
            logger.debug("Unparseable draft timestamp %r, using baseline", value)
            return base
        if abs(parsed - base) <= MAX_ANCHOR_DRIFT:
            return parsed
        logger.debug("Draft timestamp %s too far from baseline %s", parsed, base)
    return base


def _scale(value: Any, low: int = 1, high: int = 10) -> Optional[int]:
    if isinstance(value, str) and value.strip().lower() in INTENSITY_WORDS:
        return INTENSITY_WORDS[value.strip().lower()]
    score = normalize_score(value, low, high)
    return None if score is None else int(round(score))


def _minutes(value: Any) -> Optional[int]:
    score = normalize_score(value, 0, 24 * 60)
    return None if score is None else int(round(score))


def _enum(value: Any, allowed, default: Optional[str] = None) -> Optional[str]:
    if isinstance(value, str) and value.strip().upper() in allowed:
        return value.strip().upper()
    return default


def _meal_fields(category: str, description: str, details: dict) -> dict:
    return {
        "meal_type": category.upper(),
        "name": details.get("foodItem") or description,
        "ingredients": string_list(details.get("ingredients")),
    }


def _drink_fields(category: str, description: str, details: dict) -> dict:
    return {
        "meal_type": "OTHER",
        "name": details.get("beverage") or description,
        "quantity": details.get("quantity"),
    }


def _gas_fields(category: str, description: str, details: dict) -> dict:
    return {
        "intensity": _scale(details.get("intensity")),
        "duration": _minutes(details.get("duration")),
        "triggers": string_list(details.get("triggers")),
    }


def _output_fields(category: str, description: str, details: dict) -> dict:
    volume = normalize_score(details.get("volume"), 0, 5000)
    return {
        "volume": None if volume is None else int(volume),
        "consistency": _enum(details.get("consistency"), CONSISTENCIES),
    }


def _irrigation_fields(category: str, description: str, details: dict) -> dict:
    quality = _enum(details.get("quality"), IRRIGATION_QUALITIES)
    if quality is None:
        flow = str(details.get("waterFlow") or "").strip().lower()
        quality = WATER_FLOW_QUALITY.get(flow)
    return {
        "quality": quality,
        "completeness": _scale(details.get("completeness")),
        "comfort": _scale(details.get("comfort")),
        "duration": _minutes(details.get("duration")),
        "issues": string_list(details.get("issues")),
    }


def _symptom_fields(category: str, description: str, details: dict) -> dict:
    return {
        "symptom_type": _enum(details.get("symptomType") or details.get("type"), SYMPTOM_TYPES, "OTHER"),
        "severity": _scale(details.get("severity")),
        "location": details.get("location"),
    }


def _medication_fields(category: str, description: str, details: dict) -> dict:
    return {
        "names": string_list(details.get("names") or details.get("name")),
        "dosage": details.get("dosage"),
    }


CATEGORY_FIELDS: Dict[str, Callable[[str, str, dict], dict]] = {
    "breakfast": _meal_fields,
    "lunch": _meal_fields,
    "dinner": _meal_fields,
    "snack": _meal_fields,
    "drinks": _drink_fields,
    "gas": _gas_fields,
    "output": _output_fields,
    "irrigation": _irrigation_fields,
    "symptoms": _symptom_fields,
    "medication": _medication_fields,
}


def normalize_draft(entry: Any, base_timestamp: datetime) -> Optional[DraftRecord]:
    if not isinstance(entry, dict):
        return None
    timestamp = anchor_timestamp(entry.get("timestamp"), base_timestamp)
    category = canonical_category(entry.get("type"), timestamp)
    if category is None:
        logger.debug("Dropping draft with unknown type %r", entry.get("type"))
        return None

    details = entry.get("details") if isinstance(entry.get("details"), dict) else {}
    description = str(entry.get("description") or "").strip()
    fields = CATEGORY_FIELDS[category](category, description, details)
    return DraftRecord(
        category=category,
        description=description,
        timestamp=timestamp,
        confidence=normalize_confidence(entry.get("confidence"), 0.5),
        fields={k: v for k, v in fields.items() if v not in (None, [], "")},
        details=details,
    )


def normalize_extraction(raw: Any, base_timestamp: datetime) -> MultiCategoryExtraction:
    if not isinstance(raw, dict) or not isinstance(raw.get("entries", []), list):
        raise AnalysisError("Provider returned an unexpected extraction shape")

    drafts: Dict[str, DraftRecord] = {}
    for entry in raw.get("entries") or []:
        draft = normalize_draft(entry, base_timestamp)
        if draft is None:
            continue
        current = drafts.get(draft.category)
        if current is None or draft.confidence > current.confidence:
            drafts[draft.category] = draft

    fallback_confidence = max((d.confidence for d in drafts.values()), default=0.0)
    return MultiCategoryExtraction(
        timestamp=base_timestamp,
        summary=str(raw.get("summary") or f"Detected {len(drafts)} entries"),
        confidence=normalize_confidence(raw.get("confidence"), fallback_confidence),
        drafts=drafts,
    )


async def parse_multi_category_entry(description: str, base_timestamp: datetime) -> MultiCategoryExtraction:
    if not description or not description.strip():
        raise ValueError("description must not be empty")
    base_timestamp = to_utc(base_timestamp)

    try:
        raw = await ai_engine.extract_multi_category(description.strip(), base_timestamp)
    except AIProviderError as e:
        raise AnalysisError(f"Could not analyze description: {e}") from e

    extraction = normalize_extraction(raw, base_timestamp)
    logger.info("🧩 Parsed %d categories: %s", len(extraction.drafts), ", ".join(extraction.drafts) or "none")
    return extraction
