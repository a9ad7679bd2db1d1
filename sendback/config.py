# sendback/config.py
import os
from decimal import Decimal, InvalidOperation
from pathlib import Path

from dotenv import load_dotenv

ROOT = Path(__file__).resolve().parents[1]
# load .env into process env vars
load_dotenv(ROOT / ".env")


def _as_bool(name: str, default: bool = False) -> bool:
    val = os.getenv(name)
    if val is None:
        return default
    return str(val).strip().lower() in ("1", "true", "yes", "y", "on")


def _as_int(name: str, default: int) -> int:
    try:
        return int(str(os.getenv(name, default)).strip())
    except (TypeError, ValueError):
        return default


def _as_decimal(name: str, default: str) -> Decimal:
    try:
        return Decimal(str(os.getenv(name, default)).strip())
    except InvalidOperation:
        return Decimal(default)


# Balance monitor thresholds (credits). Fixed, not per-tenant.
CRITICAL_BALANCE_THRESHOLD = Decimal("5")
LOW_BALANCE_THRESHOLD = Decimal("10")

# Call statuses that count as a missed call.
MISSED_CALL_STATUSES = frozenset({"no-answer", "busy", "failed", "canceled"})


class Settings:
    """
    Runtime settings, read from the environment when instantiated.
    Tests build their own instance after monkeypatching env vars.
    """

    def __init__(self) -> None:
        # App
        self.ENV: str = os.getenv("ENV", "dev")
        self.DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///data/app.db")
        self.LOG_DIR: str = os.getenv("LOG_DIR", str(ROOT / "logs"))
        self.LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()

        # Auth
        self.JWT_SECRET: str = (os.getenv("JWT_SECRET") or "dev-secret").strip()
        self.ACCESS_TOKEN_EXPIRE_MINUTES: int = _as_int("ACCESS_TOKEN_EXPIRE_MINUTES", 60 * 24 * 7)
        self.ADMIN_KEY: str = os.getenv("ADMIN_KEY", "").strip()

        # Twilio
        self.TWILIO_ACCOUNT_SID: str = os.getenv("TWILIO_ACCOUNT_SID", "").strip()
        self.TWILIO_AUTH_TOKEN: str = os.getenv("TWILIO_AUTH_TOKEN", "").strip()
        self.TWILIO_API_KEY: str = os.getenv("TWILIO_API_KEY", "").strip()
        self.TWILIO_MESSAGING_SERVICE_SID: str = os.getenv("TWILIO_MESSAGING_SERVICE_SID", "").strip()
        self.TWILIO_FROM: str = os.getenv("TWILIO_FROM", "").strip()
        self.SMS_DRY_RUN: bool = _as_bool("SMS_DRY_RUN", False)
        self.TWILIO_VALIDATE_SIGNATURES: bool = _as_bool("TWILIO_VALIDATE_SIGNATURES", False)
        # "shared": every tenant texts from TWILIO_FROM; "tenant": from its own number
        self.SMS_SENDER_MODE: str = os.getenv("SMS_SENDER_MODE", "shared").strip().lower()

        # Credits
        self.MESSAGE_CREDIT_COST: Decimal = _as_decimal("MESSAGE_CREDIT_COST", "1")
        self.DEFAULT_AUTO_RESPONSE: str = os.getenv(
            "DEFAULT_AUTO_RESPONSE", "Hi! We missed your call. How can we help?"
        )

        # Stripe
        self.STRIPE_SECRET_KEY: str = os.getenv("STRIPE_SECRET_KEY", "").strip()
        self.STRIPE_WEBHOOK_SECRET: str = os.getenv("STRIPE_WEBHOOK_SECRET", "").strip()
        default_payments = "stripe" if self.is_prod else "fake"
        self.PAYMENTS_MODE: str = os.getenv("PAYMENTS_MODE", default_payments).strip().lower()

        # Google Sheets lead export (optional)
        self.GOOGLE_SHEETS_CREDENTIALS_FILE: str = os.getenv("GOOGLE_SHEETS_CREDENTIALS_FILE", "").strip()
        self.GOOGLE_SHEETS_SPREADSHEET_ID: str = os.getenv("GOOGLE_SHEETS_SPREADSHEET_ID", "").strip()

        # Error alerts
        self.ALERT_SMS_TO: str = os.getenv("ALERT_SMS_TO", "").strip()

    @property
    def is_prod(self) -> bool:
        return self.ENV == "prod"


settings = Settings()
