from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import field_validator

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    ENV: str = "local"
    APP_NAME: str = "Hotel Booking API"
    # Comma-separated origins for CORS (e.g. https://hotel.example.com,https://admin.hotel.example.com). If empty, uses localhost defaults.
    CORS_ORIGINS: str = ""
    LOG_LEVEL: str = "INFO"

    SECRET_KEY: str
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 30
    REFRESH_TOKEN_EXPIRE_DAYS: int = 7

    DATABASE_URL: str

    @field_validator("DATABASE_URL", mode="after")
    @classmethod
    def normalize_database_url(cls, v: str) -> str:
        """Render and others give postgres://; SQLAlchemy expects postgresql+psycopg2://."""
        if v and v.startswith("postgres://"):
            return "postgresql+psycopg2://" + v[11:]
        return v

    APP_URL: str = "http://localhost:3000"  # payment callback lands on {APP_URL}/booking/confirmation
    HOTEL_TIMEZONE: str = "UTC"  # "today" for check-in windows

    # Paystack
    PAYSTACK_SECRET_KEY: str = ""
    PAYSTACK_BASE_URL: str = "https://api.paystack.co"
    PAYSTACK_TIMEOUT: int = 25
    PAYSTACK_CURRENCY: str = "NGN"
    PAYSTACK_SANDBOX: bool = False  # If True, skip real Paystack calls and return canned success (for dev without keys)

    # Booking policy
    CHECK_IN_REQUIRES_PAYMENT: bool = False  # block check-in while payment is still PENDING
    ALLOW_CHECKED_IN_CANCEL: bool = True  # staff may cancel a CHECKED_IN booking with an explicit override


settings = Settings()
