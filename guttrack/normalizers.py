# guttrack/normalizers.py
"""
Maps loosely-typed provider responses onto fixed result shapes.

There is one normalizer per analysis type. Each one names the provider fields it
reads and substitutes explicit defaults for anything missing or malformed.
"""
import math
from typing import Any, List, Optional

from pydantic import Field

from .ai_engine import AIResponseError
from .schemas import CamelModel

RISK_LEVELS = ("low", "medium", "high")


class AnalysisResult(CamelModel):
    flags: List[str] = Field(default_factory=list)
    risk_level: str = "low"
    confidence: float = 0.5
    insights: List[str] = Field(default_factory=list)


class IngredientAnalysis(CamelModel):
    ingredient: str
    category: str = "unknown"
    gut_behavior: str = "potentially-problematic"
    risk_level: str = "medium"
    description: str = ""
    recommendations: List[str] = Field(default_factory=list)
    alternatives: List[str] = Field(default_factory=list)


class MealAnalysis(CamelModel):
    ingredients: List[IngredientAnalysis] = Field(default_factory=list)
    overall_risk: str = "low"
    gas_producing_score: float = 0
    metabolism_score: float = 0
    recommendations: List[str] = Field(default_factory=list)
    timing_advice: str = ""
    portion_advice: str = ""
    summary: str = ""


class FoodImageAnalysis(CamelModel):
    detected_foods: List[str] = Field(default_factory=list)
    confidence: float = 0.0
    ingredients: List[IngredientAnalysis] = Field(default_factory=list)
    suggestions: List[str] = Field(default_factory=list)


class SymptomReport(CamelModel):
    analysis: str
    possible_causes: List[str] = Field(default_factory=list)
    recommendations: List[str] = Field(default_factory=list)
    severity: str = "medium"


class PlannedMeal(CamelModel):
    type: str = "snack"
    name: str = ""
    ingredients: List[str] = Field(default_factory=list)
    benefits: List[str] = Field(default_factory=list)
    risk_level: str = "low"


class MealPlanDay(CamelModel):
    date: str = ""
    meals: List[PlannedMeal] = Field(default_factory=list)
    notes: List[str] = Field(default_factory=list)


class MealPlan(CamelModel):
    days: List[MealPlanDay] = Field(default_factory=list)
    tips: List[str] = Field(default_factory=list)


GUT_BEHAVIORS = ("gas-producing", "metabolism-boosting", "gut-friendly", "potentially-problematic")

DEFAULT_SYMPTOM_REPORT = SymptomReport(
    analysis="Unable to analyze symptoms at this time",
    possible_causes=["Various dietary factors may contribute"],
    recommendations=["Consult with your healthcare provider"],
    severity="medium",
)

DEFAULT_RECOMMENDATIONS = [
    "Consider a light meal with easily digestible proteins",
    "Include well-cooked vegetables to minimize fiber",
    "Stay hydrated with water or herbal teas",
    "Avoid carbonated beverages that may increase gas",
    "Eat slowly and chew thoroughly",
]


def _require_dict(raw: Any, what: str) -> dict:
    if not isinstance(raw, dict):
        raise AIResponseError(f"Expected a JSON object for {what}, got {type(raw).__name__}")
    return raw


def normalize_risk_level(value: Any, default: str = "low") -> str:
    if isinstance(value, str):
        value = value.strip().lower()
        if value in RISK_LEVELS:
            return value
    return default


def normalize_confidence(value: Any, default: float) -> float:
    # bool is an int subclass and never a real confidence
    if isinstance(value, bool):
        return default
    try:
        value = float(value)
    except (TypeError, ValueError, OverflowError):
        return default
    if math.isnan(value):
        return default
    return min(1.0, max(0.0, value))


def normalize_score(value: Any, low: float = 0, high: float = 10) -> Optional[float]:
    try:
        value = float(value)
    except (TypeError, ValueError, OverflowError):
        return None
    return min(high, max(low, value))


def string_list(value: Any) -> List[str]:
    if isinstance(value, str):
        return [value] if value.strip() else []
    if not isinstance(value, (list, tuple)):
        return []
    return [str(item) for item in value if item is not None and str(item).strip()]


def normalize_food_entry(raw: Any) -> AnalysisResult:
    data = _require_dict(raw, "food entry analysis")
    return AnalysisResult(
        flags=string_list(data.get("flags")),
        risk_level=normalize_risk_level(data.get("riskLevel")),
        confidence=normalize_confidence(data.get("confidence"), 0.8),
        insights=string_list(data.get("insights")),
    )


def normalize_symptom_entry(raw: Any) -> AnalysisResult:
    data = _require_dict(raw, "symptom entry analysis")
    return AnalysisResult(
        flags=string_list(data.get("flags")),
        risk_level=normalize_risk_level(data.get("severity")),
        confidence=normalize_confidence(data.get("confidence"), 0.7),
        insights=string_list(data.get("insights")),
    )


def _normalize_ingredient(item: Any) -> Optional[IngredientAnalysis]:
    if isinstance(item, str):
        item = {"ingredient": item}
    if not isinstance(item, dict) or not item.get("ingredient"):
        return None
    behavior = str(item.get("gutBehavior", "")).strip().lower()
    return IngredientAnalysis(
        ingredient=str(item["ingredient"]),
        category=str(item.get("category") or "unknown"),
        gut_behavior=behavior if behavior in GUT_BEHAVIORS else "potentially-problematic",
        risk_level=normalize_risk_level(item.get("riskLevel"), default="medium"),
        description=str(item.get("description") or ""),
        recommendations=string_list(item.get("recommendations")),
        alternatives=string_list(item.get("alternatives")),
    )


def _ingredient_list(value: Any) -> List[IngredientAnalysis]:
    if not isinstance(value, list):
        return []
    return [i for i in (_normalize_ingredient(item) for item in value) if i is not None]


def normalize_ingredient_analysis(raw: Any) -> MealAnalysis:
    data = _require_dict(raw, "ingredient analysis")
    return MealAnalysis(
        ingredients=_ingredient_list(data.get("ingredients")),
        overall_risk=normalize_risk_level(data.get("overallRisk")),
        gas_producing_score=normalize_score(data.get("gasProducingScore")) or 0,
        metabolism_score=normalize_score(data.get("metabolismScore")) or 0,
        recommendations=string_list(data.get("recommendations")),
        timing_advice=str(data.get("timingAdvice") or ""),
        portion_advice=str(data.get("portionAdvice") or ""),
        summary=str(data.get("summary") or ""),
    )


def normalize_image_analysis(raw: Any) -> FoodImageAnalysis:
    data = _require_dict(raw, "food image analysis")
    return FoodImageAnalysis(
        detected_foods=string_list(data.get("detectedFoods")),
        confidence=normalize_confidence(data.get("confidence"), 0.0),
        ingredients=_ingredient_list(data.get("ingredients")),
        suggestions=string_list(data.get("suggestions")),
    )


def normalize_symptom_report(raw: Any) -> SymptomReport:
    data = _require_dict(raw, "symptom analysis")
    return SymptomReport(
        analysis=str(data.get("analysis") or DEFAULT_SYMPTOM_REPORT.analysis),
        possible_causes=string_list(data.get("possibleCauses")),
        recommendations=string_list(data.get("recommendations")),
        severity=normalize_risk_level(data.get("severity"), default="medium"),
    )


def normalize_meal_plan(raw: Any) -> MealPlan:
    data = _require_dict(raw, "meal plan")
    days = []
    for day in data.get("days") or []:
        if not isinstance(day, dict):
            continue
        meals = [
            PlannedMeal(
                type=str(meal.get("type") or "snack"),
                name=str(meal.get("name") or ""),
                ingredients=string_list(meal.get("ingredients")),
                benefits=string_list(meal.get("benefits")),
                risk_level=normalize_risk_level(meal.get("riskLevel")),
            )
            for meal in day.get("meals") or []
            if isinstance(meal, dict)
        ]
        days.append(MealPlanDay(date=str(day.get("date") or ""), meals=meals, notes=string_list(day.get("notes"))))
    if not days:
        raise AIResponseError("Meal plan contained no days")
    return MealPlan(days=days, tips=string_list(data.get("tips")))


def normalize_recommendations(raw: Any) -> List[str]:
    # Some models wrap the array in an object
    if isinstance(raw, dict):
        raw = raw.get("recommendations")
    recommendations = string_list(raw)
    if not recommendations:
        raise AIResponseError("No recommendations in provider output")
    return recommendations
