# community_gate/config.py
import os
from pydantic import BaseModel
from dotenv import load_dotenv

load_dotenv()  # Load environment variables from .env file


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("true", "1", "yes")


class Settings(BaseModel):
    # General app settings
    APP_NAME: str = "Community Gate API"
    env: str = os.getenv("ENV", "dev")

    # Host & Port settings
    host: str = os.getenv("HOST", "0.0.0.0")
    port: int = int(os.getenv("PORT", "3000"))

    # CORS origins for the admin frontend
    CORS_ORIGINS: list[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]

    # Storage backend: "json" (single file), "json-collections" (one file per collection)
    # or "database" (Tortoise ORM, see core/db.py)
    storage_backend: str = os.getenv("STORAGE_BACKEND", "json")
    data_dir: str = os.getenv("DATA_DIR", "data")
    data_file: str = os.getenv("DATA_FILE", "data.json")
    database_url: str = os.getenv("DATABASE_URL", "sqlite://data/community_gate.sqlite3")
    db_generate_schemas: bool = _env_flag("DB_GENERATE_SCHEMAS", "true")

    # Session cookie
    session_secret: str = os.getenv("SESSION_SECRET", "dev-secret")
    session_max_age: int = int(os.getenv("SESSION_MAX_AGE", "86400"))
    # ⚠️ Set COOKIE_SECURE=false when debugging over plain http
    cookie_secure: bool = _env_flag("COOKIE_SECURE", "true")

    # Domain limits
    max_communities: int = int(os.getenv("MAX_COMMUNITIES", "8"))
    access_log_limit: int = int(os.getenv("ACCESS_LOG_LIMIT", "100"))

    # Background sweep of expired access codes
    sweep_interval_seconds: float = float(os.getenv("SWEEP_INTERVAL_SECONDS", "60"))

    # Throttling
    access_debounce_seconds: float = float(os.getenv("ACCESS_DEBOUNCE_SECONDS", "5"))
    page_rate_limit: int = int(os.getenv("PAGE_RATE_LIMIT", "100"))
    page_rate_window_seconds: float = float(os.getenv("PAGE_RATE_WINDOW_SECONDS", "900"))

    # Shared key for the read-only game-server feed (GET /api); empty disables the feed
    game_api_key: str = os.getenv("GAME_API_KEY", "")


settings = Settings()  # Instantiate configuration
