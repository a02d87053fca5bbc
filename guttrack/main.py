# guttrack/main.py
import logging
from datetime import datetime, timezone
from typing import Optional, Type

from fastapi import FastAPI, Depends, Header, HTTPException, Query, Request, Security
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.security import APIKeyHeader
from sqlmodel import Session
from starlette.exceptions import HTTPException as StarletteHTTPException

from . import orchestrator
from .ai_engine import AIProviderError, is_ai_available
from .config import Config
from .database import init_db, get_session
from .models import Meal, GasSession, StomaOutput, Irrigation, HealthEntry
from .multi_parser import AnalysisError, parse_multi_category_entry
from .schemas import (
    GasSessionCreate,
    HealthEntryCreate,
    ImageAnalysisRequest,
    IngredientsRequest,
    IrrigationCreate,
    MealCreate,
    MealPlanRequest,
    MultiEntryRequest,
    RecommendationsRequest,
    StomaOutputCreate,
    SymptomsRequest,
)

logger = logging.getLogger(__name__)

app = FastAPI(title="Gut Tracker API")

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

MAX_LIMIT = 500


def configure_logging():
    logging.basicConfig(level=Config.LOG_LEVEL, format=LOG_FORMAT)


# --- Security Configuration ---
API_KEY_NAME = "X-API-Key"
USER_HEADER_NAME = "X-User-Id"
api_key_header = APIKeyHeader(name=API_KEY_NAME, auto_error=False)


def get_current_user(
    api_key: Optional[str] = Security(api_key_header),
    user_id: Optional[str] = Header(None, alias=USER_HEADER_NAME),
    session: Session = Depends(get_session),
) -> str:
    """
    Validates the API Key from the auth proxy and returns the session user it forwards.
    """
    server_key = Config.API_KEY
    if server_key and api_key != server_key:
        raise HTTPException(status_code=401, detail="Authentication required")
    if not user_id or not user_id.strip():
        raise HTTPException(status_code=401, detail="Authentication required")
    user_id = user_id.strip()
    orchestrator.ensure_user(session, user_id)
    return user_id


def _check_owner(requested: Optional[str], user_id: str):
    if requested and requested != user_id:
        raise HTTPException(status_code=403, detail="Cannot access another user's entries")


def _ok(data, message: str = None) -> dict:
    body = {"success": True, "data": data}
    if message:
        body["message"] = message
    return body
# ------------------------------


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse({"success": False, "error": exc.detail}, status_code=exc.status_code, headers=getattr(exc, "headers", None))


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    problems = []
    for err in exc.errors():
        field = ".".join(str(part) for part in err.get("loc", ()) if part not in ("body", "query"))
        problems.append(f"{field}: {err.get('msg')}" if field else str(err.get("msg")))
    return JSONResponse(
        {"success": False, "error": "Missing or invalid fields", "message": "; ".join(problems)},
        status_code=400,
    )


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
    logger.exception("❌ Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse({"success": False, "error": "Internal server error"}, status_code=500)


@app.on_event("startup")
def on_startup():
    configure_logging()
    init_db()


@app.get("/health")
def health_endpoint():
    return _ok({"status": "ok", "ai_available": is_ai_available()})


# --- Health entries ---

@app.post("/api/entries")
async def create_entry_endpoint(
    payload: HealthEntryCreate,
    user_id: str = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    _check_owner(payload.user_id, user_id)
    entry = await orchestrator.create_health_entry(session, user_id, payload)
    return _ok(entry, "Entry saved successfully")


@app.get("/api/entries")
def list_entries_endpoint(
    limit: int = Query(20, ge=1, le=MAX_LIMIT),
    requested_user: Optional[str] = Query(None, alias="userId"),
    user_id: str = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    _check_owner(requested_user, user_id)
    return _ok(orchestrator.list_records(session, HealthEntry, user_id, limit))


# --- Category records ---

def _register_record_routes(path: str, model: Type, schema: Type, singular: str, plural: str):
    def list_endpoint(
        limit: int = Query(50, ge=1, le=MAX_LIMIT),
        user_id: str = Depends(get_current_user),
        session: Session = Depends(get_session),
    ):
        records = orchestrator.list_records(session, model, user_id, limit)
        return _ok(records, f"{plural} retrieved successfully")

    def create_endpoint(
        payload: schema,
        user_id: str = Depends(get_current_user),
        session: Session = Depends(get_session),
    ):
        record = orchestrator.create_record(session, model, user_id, payload)
        return _ok(record, f"{singular} created successfully")

    app.get(path, name=f"list_{model.__tablename__}")(list_endpoint)
    app.post(path, name=f"create_{model.__tablename__}")(create_endpoint)


_register_record_routes("/api/meals", Meal, MealCreate, "Meal", "Meals")
_register_record_routes("/api/gas", GasSession, GasSessionCreate, "Gas session", "Gas sessions")
_register_record_routes("/api/outputs", StomaOutput, StomaOutputCreate, "Stoma output", "Stoma outputs")
_register_record_routes("/api/irrigations", Irrigation, IrrigationCreate, "Irrigation", "Irrigations")


# --- Dashboard ---

@app.get("/api/dashboard/stats")
def dashboard_stats_endpoint(user_id: str = Depends(get_current_user), session: Session = Depends(get_session)):
    stats = orchestrator.get_dashboard_stats(session, user_id)
    return _ok(stats, "Dashboard stats retrieved successfully")


@app.get("/api/dashboard/activity")
def dashboard_activity_endpoint(
    limit: int = Query(10, ge=1, le=MAX_LIMIT),
    user_id: str = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    activities = orchestrator.get_recent_activity(session, user_id, limit)
    return _ok(activities, "Recent activity retrieved successfully")


# --- AI ---

@app.post("/api/ai/parse-multi-entry", dependencies=[Depends(get_current_user)])
async def parse_multi_entry_endpoint(payload: MultiEntryRequest):
    base_timestamp = payload.timestamp or datetime.now(timezone.utc)
    try:
        result = await parse_multi_category_entry(payload.description, base_timestamp)
    except ValueError:
        raise HTTPException(status_code=400, detail="Description is required")
    except AnalysisError as e:
        logger.error("❌ Multi-entry parsing failed: %s", e)
        raise HTTPException(status_code=500, detail="Failed to parse entry")
    return _ok(result)


@app.post("/api/ai/analyze-image", dependencies=[Depends(get_current_user)])
async def analyze_image_endpoint(payload: ImageAnalysisRequest):
    try:
        analysis = await orchestrator.analyze_food_image(payload.image_base64)
    except AIProviderError as e:
        logger.error("❌ Food image analysis failed: %s", e)
        raise HTTPException(status_code=500, detail="Failed to analyze food image")
    return _ok(analysis)


@app.post("/api/ai/analyze-ingredients", dependencies=[Depends(get_current_user)])
async def analyze_ingredients_endpoint(payload: IngredientsRequest):
    try:
        analysis = await orchestrator.analyze_ingredients(payload.ingredients)
    except AIProviderError as e:
        logger.error("❌ Ingredient analysis failed: %s", e)
        raise HTTPException(status_code=500, detail="Failed to analyze ingredients")
    return _ok(analysis)


@app.post("/api/ai/analyze-symptoms", dependencies=[Depends(get_current_user)])
async def analyze_symptoms_endpoint(payload: SymptomsRequest):
    analysis = await orchestrator.analyze_symptoms(payload.symptoms, payload.recent_meals, payload.outputs)
    return _ok(analysis)


@app.post("/api/ai/meal-plan", dependencies=[Depends(get_current_user)])
async def meal_plan_endpoint(payload: MealPlanRequest):
    try:
        plan = await orchestrator.generate_meal_plan(
            payload.duration, payload.dietary_restrictions, payload.goals, payload.user_history
        )
    except AIProviderError as e:
        logger.error("❌ Meal plan generation failed: %s", e)
        raise HTTPException(status_code=500, detail="Failed to generate meal plan")
    return _ok(plan)


@app.post("/api/ai/recommendations", dependencies=[Depends(get_current_user)])
async def recommendations_endpoint(payload: RecommendationsRequest):
    recommendations = await orchestrator.get_recommendations(payload.user_history, payload.preferences)
    return _ok(recommendations)
