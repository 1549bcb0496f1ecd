import os

from dotenv import load_dotenv


load_dotenv()


def _get_bool(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _get_int(value: str | None, default: int) -> int:
    if value is None or not value.strip():
        return default
    return int(value)


def _get_list(value: str | None, default: list[str]) -> list[str]:
    if value is None:
        return default
    return [item.strip() for item in value.split(",") if item.strip()]


APP_ENV = os.getenv("APP_ENV", "development")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./clinic.db")
CORS_ORIGINS = _get_list(os.getenv("CORS_ORIGINS"), ["http://localhost:5173"])

# Calendar days are bucketed in this zone when instants carry tzinfo.
CLINIC_TIMEZONE = os.getenv("CLINIC_TIMEZONE", "UTC")

BOOKING_HORIZON_DAYS = _get_int(os.getenv("BOOKING_HORIZON_DAYS"), 30)
HONOR_DOCTOR_WEEKDAYS = _get_bool(os.getenv("HONOR_DOCTOR_WEEKDAYS"), default=False)
ENFORCE_SLOT_UNIQUENESS = _get_bool(os.getenv("ENFORCE_SLOT_UNIQUENESS"), default=True)
CONFIRMATION_DISPLAY_SECONDS = _get_int(os.getenv("CONFIRMATION_DISPLAY_SECONDS"), 3)
MAX_APPOINTMENT_NOTES_LENGTH = _get_int(os.getenv("MAX_APPOINTMENT_NOTES_LENGTH"), 600)

API_BASE_URL = os.getenv("API_BASE_URL", "http://localhost:8000")
SERVICE_TIMEOUT_SECONDS = float(os.getenv("SERVICE_TIMEOUT_SECONDS", "10"))


def validate_runtime_config() -> None:
    if BOOKING_HORIZON_DAYS <= 0:
        raise RuntimeError("BOOKING_HORIZON_DAYS must be a positive integer.")
    if SERVICE_TIMEOUT_SECONDS <= 0:
        raise RuntimeError("SERVICE_TIMEOUT_SECONDS must be positive.")
    if APP_ENV.lower() == "production" and DATABASE_URL.startswith("sqlite"):
        raise RuntimeError("DATABASE_URL must point at a server database in production.")
