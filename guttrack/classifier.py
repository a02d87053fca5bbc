# guttrack/classifier.py
"""
Single-category entry analysis.

An entry's declared category picks an analysis strategy from CATEGORY_KINDS.
The strategy calls the provider and normalizes its answer into an
AnalysisResult. Provider trouble never reaches the caller: analyze_entry
reports it as a fallback outcome that carries DEFAULT_RESULT, so an entry can
always be stored.
"""
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple

from . import ai_engine
from .normalizers import AnalysisResult, normalize_food_entry, normalize_symptom_entry

logger = logging.getLogger(__name__)


class EntryKind(str, Enum):
    FOOD = "food"
    SYMPTOM = "symptom"
    OTHER = "other"


CATEGORY_KINDS: Dict[str, EntryKind] = {
    "breakfast": EntryKind.FOOD,
    "lunch": EntryKind.FOOD,
    "dinner": EntryKind.FOOD,
    "snack": EntryKind.FOOD,
    "drinks": EntryKind.FOOD,
    "symptoms": EntryKind.SYMPTOM,
    "gas": EntryKind.SYMPTOM,
    "bowel": EntryKind.SYMPTOM,
    "mood": EntryKind.SYMPTOM,
    "energy": EntryKind.SYMPTOM,
}

Analyzer = Callable[[str], Awaitable[Any]]
Normalizer = Callable[[Any], AnalysisResult]


@dataclass(frozen=True)
class Strategy:
    analyzer: Analyzer
    normalizer: Normalizer


# Analyzers are looked up on the module at call time so they can be patched
STRATEGIES: Dict[EntryKind, Tuple[str, Normalizer]] = {
    EntryKind.FOOD: ("analyze_food_entry", normalize_food_entry),
    EntryKind.SYMPTOM: ("analyze_symptom_entry", normalize_symptom_entry),
}


def default_result() -> AnalysisResult:
    return AnalysisResult(flags=[], risk_level="low", confidence=0.5, insights=[])


@dataclass
class AnalysisOutcome:
    result: AnalysisResult
    kind: EntryKind
    fallback: bool = False
    error: Optional[str] = None

    @classmethod
    def success(cls, result: AnalysisResult, kind: EntryKind) -> "AnalysisOutcome":
        return cls(result=result, kind=kind)

    @classmethod
    def failure(cls, kind: EntryKind, error: str) -> "AnalysisOutcome":
        return cls(result=default_result(), kind=kind, fallback=True, error=error)


def kind_for(category: str) -> EntryKind:
    """Exact, case-sensitive lookup. Unknown categories are OTHER and never reach the provider."""
    return CATEGORY_KINDS.get(category, EntryKind.OTHER)


def strategy_for(kind: EntryKind) -> Optional[Strategy]:
    entry = STRATEGIES.get(kind)
    if entry is None:
        return None
    analyzer_name, normalizer = entry
    return Strategy(analyzer=getattr(ai_engine, analyzer_name), normalizer=normalizer)


async def analyze_entry(category: str, description: str) -> AnalysisOutcome:
    kind = kind_for(category)
    strategy = strategy_for(kind)
    if strategy is None:
        return AnalysisOutcome.success(default_result(), kind)

    try:
        raw = await strategy.analyzer(description)
        result = strategy.normalizer(raw)
    except Exception as e:
        logger.warning("⚠️ %s analysis failed for '%s', using defaults: %s", kind.value, category, e)
        return AnalysisOutcome.failure(kind, str(e))

    return AnalysisOutcome.success(result, kind)


async def classify(category: str, description: str) -> AnalysisResult:
    outcome = await analyze_entry(category, description)
    return outcome.result
