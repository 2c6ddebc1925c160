import os
from pathlib import Path
from dotenv import load_dotenv

_BASE_DIR = Path(__file__).resolve().parents[2]
load_dotenv(_BASE_DIR / ".env")

def _split_env_list(value: str | None) -> list[str]:
    if not value:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return int(value.strip())
    except ValueError:
        return default


class Settings:
    ENV = os.getenv("ENV", "development")
    PROJECT_NAME = os.getenv("PROJECT_NAME", "CivicLens")
    PING_MESSAGE = os.getenv("PING_MESSAGE", "ping")

    BASE_DIR = _BASE_DIR
    IMAGE_DIR = os.getenv("IMAGE_DIR", str(BASE_DIR / "images"))
    MAX_IMAGE_BASE64_LENGTH = _env_int("MAX_IMAGE_BASE64_LENGTH", 14_000_000)

    VERIFICATION_THRESHOLD = _env_int("VERIFICATION_THRESHOLD", 5)
    DEFAULT_PROFILE_PASSWORD = os.getenv("DEFAULT_PROFILE_PASSWORD", "password")
    RESERVED_USERNAMES = _split_env_list(os.getenv("RESERVED_USERNAMES")) or [
        "citizen",
        "admin",
        "support",
    ]
    STATS_ROUND_DIGITS = _env_int("STATS_ROUND_DIGITS", 1)

    CORS_ORIGINS = _split_env_list(os.getenv("CORS_ORIGINS")) or [
        "http://localhost:5173",
        "http://127.0.0.1:5173",
        "http://localhost:8080",
        "http://127.0.0.1:8080",
    ]

settings = Settings()
