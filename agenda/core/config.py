import os



def _get_bool(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _get_list(value: str | None, default: list[str]) -> list[str]:
    if value is None:
        return default
    return [item.strip() for item in value.split(",") if item.strip()]

APP_ENV = os.getenv("APP_ENV", "development")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
SQL_ECHO = _get_bool(os.getenv("SQL_ECHO"), default=False)

CORS_ORIGINS = _get_list(os.getenv("CORS_ORIGINS"), ["http://localhost:5173"])

JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "change-me")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
JWT_EXPIRES_MINUTES = int(os.getenv("JWT_EXPIRES_MINUTES", "60"))
JWT_AUDIENCE = os.getenv("JWT_AUDIENCE", "practice-agenda")

BOOKING_TOKEN_TTL_DAYS = int(os.getenv("BOOKING_TOKEN_TTL_DAYS", "7"))
SLOT_SEARCH_DAYS = int(os.getenv("SLOT_SEARCH_DAYS", "30"))

# Used when the practice has not saved availability settings yet.
DEFAULT_TIMEZONE = os.getenv("DEFAULT_TIMEZONE", "America/Sao_Paulo")
DEFAULT_WORKING_DAYS = _get_list(
    os.getenv("DEFAULT_WORKING_DAYS"),
    ["monday", "tuesday", "wednesday", "thursday", "friday"],
)
DEFAULT_DAY_START = os.getenv("DEFAULT_DAY_START", "08:00")
DEFAULT_DAY_END = os.getenv("DEFAULT_DAY_END", "18:00")
DEFAULT_APPOINTMENT_DURATION = int(os.getenv("DEFAULT_APPOINTMENT_DURATION", "60"))
# Comma separated "HH:MM-HH:MM" ranges.
DEFAULT_BREAK_WINDOWS = _get_list(os.getenv("DEFAULT_BREAK_WINDOWS"), ["12:00-13:00"])
DEFAULT_SESSION_TYPE = os.getenv("DEFAULT_SESSION_TYPE", "individual")


def validate_runtime_config() -> None:
    if APP_ENV.lower() == "production" and JWT_SECRET_KEY == "change-me":
        raise RuntimeError("JWT_SECRET_KEY must be set in production.")
    if BOOKING_TOKEN_TTL_DAYS <= 0:
        raise RuntimeError("BOOKING_TOKEN_TTL_DAYS must be a positive number of days.")
    if SLOT_SEARCH_DAYS <= 0:
        raise RuntimeError("SLOT_SEARCH_DAYS must be a positive number of days.")
