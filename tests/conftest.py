import asyncio
import os

# The app module builds its engine at import time
os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, Session, create_engine

from guttrack import ai_engine, models  # noqa: F401
from guttrack.config import Config
from guttrack.database import get_session
from guttrack.main import app

USER_ID = "user-1"


def run(coro):
    return asyncio.run(coro)


@pytest.fixture(autouse=True)
def no_provider(monkeypatch):
    """No test may reach the real provider."""
    monkeypatch.setattr(Config, "OPENROUTER_API_KEY", None)
    monkeypatch.setattr(ai_engine, "_client", None)


@pytest.fixture
def engine():
    engine = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    SQLModel.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def client(engine, monkeypatch):
    monkeypatch.setattr(Config, "API_KEY", None)

    def _get_session():
        with Session(engine) as session:
            yield session

    app.dependency_overrides[get_session] = _get_session
    yield TestClient(app, raise_server_exceptions=False, headers={"X-User-Id": USER_ID})
    app.dependency_overrides.clear()
