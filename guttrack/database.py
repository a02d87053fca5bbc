# guttrack/database.py
from sqlmodel import SQLModel, create_engine, Session
from .config import database_url

# Echo=False for production noise reduction
engine = create_engine(database_url(), echo=False, pool_pre_ping=True)


def init_db():
    # Table classes register themselves on import
    from . import models  # noqa: F401
    SQLModel.metadata.create_all(engine)


def get_session():
    with Session(engine) as session:
        yield session
