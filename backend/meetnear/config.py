import os
from pathlib import Path
from dotenv import load_dotenv

BASE_DIR = Path(__file__).resolve().parents[2]  # repository root (holds .env)
env_path = BASE_DIR / ".env"
load_dotenv(dotenv_path=env_path)


def _as_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


class Settings:
    DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./meetnear.db")
    SQL_ECHO = _as_bool(os.getenv("SQL_ECHO", "false"))
    RUN_MIGRATIONS = _as_bool(os.getenv("RUN_MIGRATIONS", "true"))

    # JWT config
    JWT_SECRET = os.getenv("JWT_SECRET", "")
    JWT_ALG = os.getenv("JWT_ALG", "HS256")
    JWT_EXPIRE_MIN = int(os.getenv("JWT_EXPIRE_MIN", 60))

    # Mobile client origins (Expo web defaults to :19006)
    CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "http://localhost:19006").split(",") if o.strip()]

    # Nearby search
    NEARBY_DEFAULT_RADIUS_M = int(os.getenv("NEARBY_DEFAULT_RADIUS_M", 10000))
    NEARBY_MAX_RESULTS = int(os.getenv("NEARBY_MAX_RESULTS", 50))

settings = Settings()
