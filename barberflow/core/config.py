import os


def _get_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return int(value)

APP_ENV = os.getenv("APP_ENV", "development")

JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "change-me")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
JWT_EXPIRES_MINUTES = _get_int("JWT_EXPIRES_MINUTES", 60)

# The reminder timer fires every REMINDER_WINDOW_MINUTES so windows tile.
REMINDER_LEAD_MINUTES = _get_int("REMINDER_LEAD_MINUTES", 30)
REMINDER_WINDOW_MINUTES = _get_int("REMINDER_WINDOW_MINUTES", 5)

SLOT_STEP_MINUTES = _get_int("SLOT_STEP_MINUTES", 15)
WALK_IN_BUFFER_MINUTES = _get_int("WALK_IN_BUFFER_MINUTES", 5)

PUSH_API_URL = os.getenv("PUSH_API_URL", "https://fcm.googleapis.com/v1/projects/barberflow/messages:send")
PUSH_SERVER_KEY = os.getenv("PUSH_SERVER_KEY", "")
PUSH_TIMEOUT_SECONDS = float(os.getenv("PUSH_TIMEOUT_SECONDS", "10"))
NOTIFICATION_MAX_WORKERS = _get_int("NOTIFICATION_MAX_WORKERS", 8)

TASKS_SHARED_SECRET = os.getenv("TASKS_SHARED_SECRET", "")

def validate_runtime_config() -> None:
    if APP_ENV.lower() == "production" and JWT_SECRET_KEY == "change-me":
        raise RuntimeError("JWT_SECRET_KEY must be set in production.")
    if REMINDER_WINDOW_MINUTES <= 0:
        raise RuntimeError("REMINDER_WINDOW_MINUTES must be positive.")
    if SLOT_STEP_MINUTES <= 0:
        raise RuntimeError("SLOT_STEP_MINUTES must be positive.")
