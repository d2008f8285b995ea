# registration_service/core/config.py

from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Values come from the process environment (Docker Compose passes the
    # root .env through), unknown keys are ignored.
    model_config = SettingsConfigDict(extra="ignore")

    # The environment mode: 'local' or 'prod'
    ENV: str = "local"

    # --- Database ---
    DATABASE_URL_PROD: str = "postgresql://postgres:postgres@db:5432/registration_db"
    DATABASE_URL_LOCAL: str = "sqlite:///./registration_db.sqlite3"

    # --- Secrets ---
    JWT_SECRET: str = "change-me-admin-jwt-secret"
    QR_SIGNING_SECRET: str = "change-me-qr-signing-secret"

    # --- Event metadata (printed on tickets and certificates) ---
    EVENT_ID: str = "chaf-2025"
    EVENT_NAME: str = "Children Arts Festival"
    EVENT_DATE: str = "2025-12-13"
    EVENT_VENUE: str = "Main Auditorium"

    # --- Registration rules ---
    TRACKING_NUMBER_PREFIX: str = "CHAF"
    TRACKING_NUMBER_LENGTH: int = 6
    INDIVIDUAL_REGISTRATION_FEE: int = 3000
    COMPANION_TICKETS_PER_CATEGORY: int = 8
    CURRENCY: str = "NGN"

    # --- Bank transfer instructions shown when no gateway is configured ---
    BANK_NAME: str = "First Bank"
    BANK_ACCOUNT_NAME: str = "Children Arts Festival"
    BANK_ACCOUNT_NUMBER: str = "0000000000"

    # --- Paystack (optional) ---
    PAYSTACK_SECRET_KEY: Optional[str] = None
    PAYSTACK_BASE_URL: str = "https://api.paystack.co"
    PAYSTACK_TIMEOUT_SECONDS: float = 10.0
    PAYMENT_REFERENCE_PREFIX: str = "chaf"

    # --- HTTP ---
    FRONTEND_URL: str = "http://localhost:3000"
    CORS_ORIGINS: List[str] = ["http://localhost:3000"]
    LOG_LEVEL: str = "INFO"
    RATE_LIMIT_ENABLED: bool = True

    # --- Dynamic Properties ---
    @property
    def DATABASE_URL(self) -> str:
        return (
            self.DATABASE_URL_LOCAL if self.ENV == "local" else self.DATABASE_URL_PROD
        )

    @property
    def PAYSTACK_ENABLED(self) -> bool:
        return bool(self.PAYSTACK_SECRET_KEY)


# Create a single instance of the settings
settings = Settings()
