# guttrack/models.py
from typing import Optional, List
from datetime import datetime, timezone
from sqlmodel import Field, SQLModel
from uuid import UUID, uuid4
from sqlalchemy import Column, DateTime, JSON
from sqlalchemy.types import TypeDecorator


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class UTCDateTime(TypeDecorator):
    """
    Stores UTC instants and always hands back aware UTC datetimes.
    SQLite drops the offset on write, so naive values read back are UTC.
    """
    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


class User(SQLModel, table=True):
    __tablename__ = "user"
    id: UUID = Field(default_factory=uuid4, primary_key=True)
    identifier: str = Field(index=True, unique=True)
    created_at: datetime = Field(default_factory=utc_now, sa_type=UTCDateTime)


class Meal(SQLModel, table=True):
    __tablename__ = "meal"
    id: UUID = Field(default_factory=uuid4, primary_key=True)
    user_id: str = Field(index=True)
    timestamp: datetime = Field(index=True, sa_type=UTCDateTime)
    meal_type: str = Field(default="OTHER")
    name: Optional[str] = None
    notes: Optional[str] = None
    location: Optional[str] = None
    is_planned: bool = Field(default=False)
    confidence: Optional[float] = None
    created_at: datetime = Field(default_factory=utc_now, sa_type=UTCDateTime)


class GasSession(SQLModel, table=True):
    __tablename__ = "gas_session"
    id: UUID = Field(default_factory=uuid4, primary_key=True)
    user_id: str = Field(index=True)
    timestamp: datetime = Field(index=True, sa_type=UTCDateTime)
    intensity: int
    duration: Optional[int] = None  # minutes
    frequency: Optional[int] = None  # episodes in session
    notes: Optional[str] = None
    is_nighttime: bool = Field(default=False)
    is_public: bool = Field(default=False)
    created_at: datetime = Field(default_factory=utc_now, sa_type=UTCDateTime)


class StomaOutput(SQLModel, table=True):
    __tablename__ = "stoma_output"
    id: UUID = Field(default_factory=uuid4, primary_key=True)
    user_id: str = Field(index=True)
    timestamp: datetime = Field(index=True, sa_type=UTCDateTime)
    volume: Optional[int] = None  # ml
    consistency: Optional[str] = None
    color: Optional[str] = None
    notes: Optional[str] = None
    is_first_after_irrigation: bool = Field(default=False)
    hours_since_irrigation: Optional[float] = None
    hours_since_last_meal: Optional[float] = None
    created_at: datetime = Field(default_factory=utc_now, sa_type=UTCDateTime)


class Irrigation(SQLModel, table=True):
    __tablename__ = "irrigation"
    id: UUID = Field(default_factory=uuid4, primary_key=True)
    user_id: str = Field(index=True)
    timestamp: datetime = Field(index=True, sa_type=UTCDateTime)
    quality: str
    completeness: int
    comfort: int
    duration: Optional[int] = None  # minutes
    volume: Optional[int] = None  # ml
    notes: Optional[str] = None
    created_at: datetime = Field(default_factory=utc_now, sa_type=UTCDateTime)


class HealthEntry(SQLModel, table=True):
    __tablename__ = "health_entry"
    id: UUID = Field(default_factory=uuid4, primary_key=True)
    user_id: str = Field(index=True)
    type: str
    description: str
    timestamp: datetime = Field(index=True, sa_type=UTCDateTime)

    ai_flags: List[str] = Field(default_factory=list, sa_column=Column(JSON))
    risk_level: str = Field(default="low")
    confidence_score: float = Field(default=0.5)

    created_at: datetime = Field(default_factory=utc_now, sa_type=UTCDateTime)
