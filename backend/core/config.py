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
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./clinic.db")
STORAGE_TIMEOUT_SECONDS = _get_int(os.getenv("STORAGE_TIMEOUT_SECONDS"), 5)

CLINIC_OPEN_HOUR = _get_int(os.getenv("CLINIC_OPEN_HOUR"), 9)
CLINIC_CLOSE_HOUR = _get_int(os.getenv("CLINIC_CLOSE_HOUR"), 17)
SLOT_STEP_MINUTES = _get_int(os.getenv("SLOT_STEP_MINUTES"), 30)
SLOT_INCLUDE_CLOSE = _get_bool(os.getenv("SLOT_INCLUDE_CLOSE"), default=False)
MAX_SUGGESTIONS = _get_int(os.getenv("MAX_SUGGESTIONS"), 3)

PAYMENT_GATEWAY_NAME = os.getenv("PAYMENT_GATEWAY_NAME", "razorpay")
PAYMENT_GATEWAY_BASE_URL = os.getenv("PAYMENT_GATEWAY_BASE_URL", "https://api.razorpay.com/v1")
PAYMENT_GATEWAY_KEY_ID = os.getenv("PAYMENT_GATEWAY_KEY_ID", "")
PAYMENT_GATEWAY_KEY_SECRET = os.getenv("PAYMENT_GATEWAY_KEY_SECRET", "")
PAYMENT_GATEWAY_TIMEOUT_SECONDS = _get_int(os.getenv("PAYMENT_GATEWAY_TIMEOUT_SECONDS"), 15)
CONSULTATION_FEE_MINOR_UNITS = _get_int(os.getenv("CONSULTATION_FEE_MINOR_UNITS"), 50000)
CURRENCY = os.getenv("CURRENCY", "INR")

PATIENT_ID_PREFIX = os.getenv("PATIENT_ID_PREFIX", "RUBY")

CORS_ORIGINS = _get_list(os.getenv("CORS_ORIGINS"), ["http://localhost:9002"])


def validate_runtime_config() -> None:
    if APP_ENV.lower() == "production" and not PAYMENT_GATEWAY_KEY_SECRET:
        raise RuntimeError("PAYMENT_GATEWAY_KEY_SECRET must be set in production.")
    if CLINIC_CLOSE_HOUR <= CLINIC_OPEN_HOUR:
        raise RuntimeError("CLINIC_CLOSE_HOUR must be later than CLINIC_OPEN_HOUR.")
