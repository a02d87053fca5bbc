# guttrack/config.py
import os
from dotenv import load_dotenv

load_dotenv()


class Config:
    API_KEY = os.getenv("API_KEY")

    OPENROUTER_API_KEY = os.getenv("OPENROUTER_API_KEY")
    AI_BASE_URL = os.getenv("AI_BASE_URL", "https://openrouter.ai/api/v1")
    MODEL_ID = os.getenv("MODEL_ID", "google/gemini-flash-1.5")
    VISION_MODEL_ID = os.getenv("VISION_MODEL_ID", MODEL_ID)
    AI_TIMEOUT_SECONDS = float(os.getenv("AI_TIMEOUT_SECONDS", "20"))
    SITE_URL = os.getenv("SITE_URL", "http://localhost:3000")
    APP_NAME = os.getenv("APP_NAME", "Gut-Tracker")

    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")


def database_url() -> str:
    # Build Postgres URL from individual env vars if DATABASE_URL is not set directly
    url = os.getenv("DATABASE_URL")
    if url:
        return url
    db_user = os.getenv("DB_USER", "postgres")
    db_pass = os.getenv("DB_PASSWORD", "password")
    db_host = os.getenv("DB_HOST", "localhost")
    db_port = os.getenv("DB_PORT", "5432")
    db_name = os.getenv("DB_DATABASE", "guttrack")
    return f"postgresql://{db_user}:{db_pass}@{db_host}:{db_port}/{db_name}"
