# guttrack/schemas.py
"""
Request bodies for the REST surface.

The web client posts camelCase keys (``mealType``, ``isNighttime``); snake_case
is accepted too. Timestamps are normalised to aware UTC.
"""
from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any, Dict, List, Optional

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


def to_utc(value: datetime) -> datetime:
    # Naive values are taken to be UTC already
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    try:
        return value.astimezone(timezone.utc)
    except OverflowError:
        raise ValueError("timestamp is out of range")


class MealType(str, Enum):
    BREAKFAST = "BREAKFAST"
    LUNCH = "LUNCH"
    DINNER = "DINNER"
    SNACK = "SNACK"
    OTHER = "OTHER"


class OutputConsistency(str, Enum):
    LIQUID = "LIQUID"
    SOFT = "SOFT"
    FORMED = "FORMED"
    HARD = "HARD"


class IrrigationQuality(str, Enum):
    EXCELLENT = "EXCELLENT"
    GOOD = "GOOD"
    FAIR = "FAIR"
    POOR = "POOR"


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class RecordCreate(CamelModel):
    timestamp: datetime
    notes: Optional[str] = None

    @field_validator("timestamp")
    @classmethod
    def _utc(cls, value: datetime) -> datetime:
        return to_utc(value)


def _upper(value: Any) -> Any:
    return value.strip().upper() if isinstance(value, str) else value


class MealCreate(RecordCreate):
    meal_type: Annotated[MealType, BeforeValidator(_upper)]
    name: Optional[str] = None
    location: Optional[str] = None
    is_planned: bool = False
    confidence: Optional[float] = Field(default=None, ge=0.0, le=1.0)


class GasSessionCreate(RecordCreate):
    intensity: int = Field(ge=1, le=10)
    duration: Optional[int] = Field(default=None, ge=0)
    frequency: Optional[int] = Field(default=None, ge=0)
    is_nighttime: bool = False
    is_public: bool = False


class StomaOutputCreate(RecordCreate):
    volume: Optional[int] = Field(default=None, ge=0)
    consistency: Optional[Annotated[OutputConsistency, BeforeValidator(_upper)]] = None
    color: Optional[str] = None
    is_first_after_irrigation: bool = False
    hours_since_irrigation: Optional[float] = Field(default=None, ge=0)
    hours_since_last_meal: Optional[float] = Field(default=None, ge=0)


class IrrigationCreate(RecordCreate):
    quality: Annotated[IrrigationQuality, BeforeValidator(_upper)]
    completeness: int = Field(ge=1, le=10)
    comfort: int = Field(ge=1, le=10)
    duration: Optional[int] = Field(default=None, ge=0)
    volume: Optional[int] = Field(default=None, ge=0)


class HealthEntryCreate(CamelModel):
    type: str = Field(min_length=1)
    description: str = Field(min_length=1)
    timestamp: datetime
    user_id: Optional[str] = None

    @field_validator("description")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("description must not be blank")
        return value

    @field_validator("timestamp")
    @classmethod
    def _utc(cls, value: datetime) -> datetime:
        return to_utc(value)


# --- AI pass-through bodies ---

class MultiEntryRequest(CamelModel):
    description: str = Field(min_length=1)
    timestamp: Optional[datetime] = None

    @field_validator("timestamp")
    @classmethod
    def _utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return to_utc(value) if value is not None else None


class ImageAnalysisRequest(CamelModel):
    image_base64: str = Field(min_length=1)


class IngredientsRequest(CamelModel):
    ingredients: List[str] = Field(min_length=1)


class SymptomsRequest(CamelModel):
    symptoms: List[str]
    recent_meals: List[Any] = Field(default_factory=list)
    outputs: List[Any] = Field(default_factory=list)


class MealPlanRequest(CamelModel):
    duration: int = Field(ge=1, le=30)
    dietary_restrictions: List[str] = Field(default_factory=list)
    goals: List[str] = Field(default_factory=list)
    user_history: Dict[str, Any] = Field(default_factory=dict)


class RecommendationsRequest(CamelModel):
    user_history: Any = None
    preferences: Any = None


# --- Dashboard responses ---

class DashboardStats(CamelModel):
    current_streak: int
    total_days: int
    success_rate: int
    avg_output_free_time: float
    today_meals: int
    today_outputs: int
    today_gas_sessions: int
    hours_since_irrigation: int


class ActivityItem(CamelModel):
    id: str
    type: str
    timestamp: datetime
    description: str
    icon: str
