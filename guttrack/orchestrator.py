# guttrack/orchestrator.py
import logging
from datetime import datetime, timedelta, timezone
from typing import List, Optional, Type, TypeVar

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session, SQLModel, select

from . import ai_engine
from .ai_engine import AIProviderError
from .classifier import analyze_entry
from .models import User, Meal, GasSession, StomaOutput, Irrigation, HealthEntry
from .normalizers import (
    DEFAULT_RECOMMENDATIONS,
    DEFAULT_SYMPTOM_REPORT,
    FoodImageAnalysis,
    MealAnalysis,
    MealPlan,
    SymptomReport,
    normalize_image_analysis,
    normalize_ingredient_analysis,
    normalize_meal_plan,
    normalize_recommendations,
    normalize_symptom_report,
)
from .schemas import ActivityItem, DashboardStats, HealthEntryCreate, RecordCreate, to_utc

logger = logging.getLogger(__name__)

Record = TypeVar("Record", bound=SQLModel)

STATS_WINDOW_DAYS = 30


def _find_user(session: Session, identifier: str) -> Optional[User]:
    return session.exec(select(User).where(User.identifier == identifier)).first()


def ensure_user(session: Session, identifier: str) -> User:
    user = _find_user(session, identifier)
    if user:
        return user

    user = User(identifier=identifier)
    try:
        session.add(user)
        session.commit()
    except IntegrityError:
        # A concurrent first request registered the same identifier
        session.rollback()
        user = _find_user(session, identifier)
        if user is None:
            raise
        return user
    session.refresh(user)
    logger.info("👤 Registered user %s", identifier)
    return user


def create_record(session: Session, model: Type[Record], user_id: str, payload: RecordCreate) -> Record:
    record = model(user_id=user_id, **payload.model_dump(mode="json", exclude={"timestamp"}), timestamp=payload.timestamp)
    _commit(session, record)
    logger.info("📝 Stored %s %s for %s", model.__tablename__, record.id, user_id)
    return record


def list_records(session: Session, model: Type[Record], user_id: str, limit: int) -> List[Record]:
    query = (
        select(model)
        .where(model.user_id == user_id)
        .order_by(model.timestamp.desc(), model.created_at.desc())
        .limit(limit)
    )
    return list(session.exec(query).all())


async def create_health_entry(session: Session, user_id: str, payload: HealthEntryCreate) -> HealthEntry:
    outcome = await analyze_entry(payload.type, payload.description)
    if outcome.fallback:
        logger.info("   Analysis unavailable for %s entry, storing with defaults", payload.type)

    entry = HealthEntry(
        user_id=user_id,
        type=payload.type,
        description=payload.description,
        timestamp=payload.timestamp,
        ai_flags=outcome.result.flags,
        risk_level=outcome.result.risk_level,
        confidence_score=outcome.result.confidence,
    )
    _commit(session, entry)
    return entry


def get_dashboard_stats(session: Session, user_id: str, now: Optional[datetime] = None) -> DashboardStats:
    now = to_utc(now or datetime.now(timezone.utc))
    day_start = now.replace(hour=0, minute=0, second=0, microsecond=0)
    day_end = day_start + timedelta(days=1)
    window_start = day_start - timedelta(days=STATS_WINDOW_DAYS - 1)

    last_irrigation = session.exec(
        select(Irrigation).where(Irrigation.user_id == user_id).order_by(Irrigation.timestamp.desc())
    ).first()
    hours_since_irrigation = 0
    if last_irrigation and last_irrigation.timestamp <= now:
        hours_since_irrigation = round((now - last_irrigation.timestamp).total_seconds() / 3600)

    output_times = session.exec(
        select(StomaOutput.timestamp)
        .where(StomaOutput.user_id == user_id)
        .where(StomaOutput.timestamp >= window_start)
        .where(StomaOutput.timestamp < day_end)
        .order_by(StomaOutput.timestamp)
    ).all()
    output_days = {ts.date() for ts in output_times}

    streak = 0
    day = day_start.date()
    while streak < STATS_WINDOW_DAYS and day not in output_days:
        streak += 1
        day -= timedelta(days=1)

    gaps = [(b - a).total_seconds() / 3600 for a, b in zip(output_times, output_times[1:])]
    avg_output_free_time = round(sum(gaps) / len(gaps), 1) if gaps else 0.0

    return DashboardStats(
        current_streak=streak,
        total_days=STATS_WINDOW_DAYS,
        success_rate=round((STATS_WINDOW_DAYS - len(output_days)) / STATS_WINDOW_DAYS * 100),
        avg_output_free_time=avg_output_free_time,
        today_meals=_count_between(session, Meal, user_id, day_start, day_end),
        today_outputs=_count_between(session, StomaOutput, user_id, day_start, day_end),
        today_gas_sessions=_count_between(session, GasSession, user_id, day_start, day_end),
        hours_since_irrigation=hours_since_irrigation,
    )


def get_recent_activity(session: Session, user_id: str, limit: int = 10) -> List[ActivityItem]:
    activities = []

    for meal in list_records(session, Meal, user_id, limit):
        activities.append(ActivityItem(
            id=str(meal.id), type="meal", timestamp=meal.timestamp, icon="utensils",
            description=meal.name or f"{meal.meal_type.capitalize()} meal",
        ))

    for output in list_records(session, StomaOutput, user_id, limit):
        text = f"Output: {output.volume}ml" if output.volume is not None else "Output: logged"
        if output.consistency:
            text += f" ({output.consistency.lower()})"
        activities.append(ActivityItem(id=str(output.id), type="output", timestamp=output.timestamp, icon="droplet", description=text))

    for gas in list_records(session, GasSession, user_id, limit):
        text = f"Gas session: intensity {gas.intensity}/10"
        if gas.duration:
            text += f" ({gas.duration}min)"
        activities.append(ActivityItem(id=str(gas.id), type="gas", timestamp=gas.timestamp, icon="activity", description=text))

    for irrigation in list_records(session, Irrigation, user_id, limit):
        text = f"Irrigation: {irrigation.quality.lower()}"
        if irrigation.duration:
            text += f" ({irrigation.duration}min)"
        activities.append(ActivityItem(id=str(irrigation.id), type="irrigation", timestamp=irrigation.timestamp, icon="droplets", description=text))

    activities.sort(key=lambda a: a.timestamp, reverse=True)
    return activities[:limit]


# --- AI pass-throughs ---

async def analyze_ingredients(ingredients: List[str]) -> MealAnalysis:
    return normalize_ingredient_analysis(await ai_engine.analyze_ingredients(ingredients))


async def analyze_food_image(image_base64: str) -> FoodImageAnalysis:
    return normalize_image_analysis(await ai_engine.analyze_food_image(_strip_data_url(image_base64)))


async def generate_meal_plan(duration: int, dietary_restrictions: List[str], goals: List[str], user_history) -> MealPlan:
    raw = await ai_engine.generate_meal_plan(duration, dietary_restrictions, goals, user_history)
    return normalize_meal_plan(raw)


async def analyze_symptoms(symptoms: List[str], recent_meals: list, outputs: list) -> SymptomReport:
    try:
        return normalize_symptom_report(await ai_engine.analyze_symptoms(symptoms, recent_meals, outputs))
    except AIProviderError as e:
        logger.warning("⚠️ Symptom analysis failed, returning default report: %s", e)
        return DEFAULT_SYMPTOM_REPORT.model_copy(deep=True)


async def get_recommendations(user_history, preferences, now: Optional[datetime] = None) -> List[str]:
    try:
        raw = await ai_engine.get_personalized_recommendations(user_history, now or datetime.now(timezone.utc), preferences)
        return normalize_recommendations(raw)
    except AIProviderError as e:
        logger.warning("⚠️ Recommendations failed, returning defaults: %s", e)
        return list(DEFAULT_RECOMMENDATIONS)


def _strip_data_url(image_base64: str) -> str:
    if image_base64.startswith("data:image/") and "," in image_base64:
        return image_base64.split(",", 1)[1]
    return image_base64


def _count_between(session: Session, model: Type[SQLModel], user_id: str, start: datetime, end: datetime) -> int:
    return session.exec(
        select(func.count())
        .select_from(model)
        .where(model.user_id == user_id)
        .where(model.timestamp >= start)
        .where(model.timestamp < end)
    ).one()


def _commit(session: Session, record: SQLModel) -> None:
    try:
        session.add(record)
        session.commit()
        session.refresh(record)
    except SQLAlchemyError:
        session.rollback()
        logger.exception("❌ Failed to store %s", type(record).__name__)
        raise
