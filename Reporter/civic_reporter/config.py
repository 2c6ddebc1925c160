import os
from pathlib import Path
from dotenv import load_dotenv

load_dotenv(Path.cwd() / ".env")

def _split_env_list(value: str | None) -> list[str]:
    if not value:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return int(value.strip())
    except ValueError:
        return default


def _env_float(name: str, default: float | None) -> float | None:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return float(value.strip())
    except ValueError:
        return default


def _env_int_list(name: str, default: list[int]) -> list[int]:
    values = []
    for item in _split_env_list(os.getenv(name)):
        try:
            values.append(int(item))
        except ValueError:
            continue
    return values or default


class Settings:
    API_BASE_URL = os.getenv("API_BASE_URL", "http://localhost:8080")
    REQUEST_TIMEOUT_SECONDS = _env_float("REQUEST_TIMEOUT_SECONDS", 20.0)

    NOTIFICATION_TIMEOUT_SECONDS = _env_float("NOTIFICATION_TIMEOUT_SECONDS", 8.0)
    NOTIFICATION_INTERVAL_SECONDS = _env_float("NOTIFICATION_INTERVAL_SECONDS", 10.0)
    CONNECTIVITY_POLL_SECONDS = _env_float("CONNECTIVITY_POLL_SECONDS", 15.0)

    GEO_TIMEOUT_SECONDS = _env_float("GEO_TIMEOUT_SECONDS", 10.0)
    GEOLOCATION_URL = os.getenv("GEOLOCATION_URL", "")
    REPORTER_LATITUDE = _env_float("REPORTER_LATITUDE", None)
    REPORTER_LONGITUDE = _env_float("REPORTER_LONGITUDE", None)

    CAMERA_ENABLED = _env_bool("CAMERA_ENABLED", True)
    CAMERA_INDEX = _env_int("CAMERA_INDEX", 0)
    CAMERA_FALLBACK_INDICES = _env_int_list("CAMERA_FALLBACK_INDICES", [1, 2])
    JPEG_QUALITY = _env_int("JPEG_QUALITY", 92)

    QUEUE_PATH = os.getenv("QUEUE_PATH", str(Path.home() / ".civic_reporter" / "storage.json"))
    QUEUE_KEY = os.getenv("QUEUE_KEY", "offline-queue")

    DEFAULT_WARD_ID = os.getenv("DEFAULT_WARD_ID", "ward-1")
    DEFAULT_TITLE = os.getenv("DEFAULT_TITLE", "Reported issue")
    DEFAULT_ADDRESS = os.getenv("DEFAULT_ADDRESS", "Current location")
    USER_ID = os.getenv("REPORTER_USER_ID", "")

    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

settings = Settings()
