from pathlib import Path

from dotenv import load_dotenv
from pydantic_settings import BaseSettings, SettingsConfigDict

BASE_DIR = Path(__file__).resolve().parent.parent.parent  # project root
ENV_PATH = BASE_DIR / ".env"

# Load .env into the process environment before Settings reads it
load_dotenv(dotenv_path=ENV_PATH)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        extra="ignore",
        case_sensitive=False,
    )

    DATABASE_URL: str

    JWT_SECRET: str
    JWT_ALG: str = "HS256"
    JWT_ACCESS_MINUTES: int = 60
    JWT_REFRESH_DAYS: int = 7

    BCRYPT_ROUNDS: int = 12

    LOG_LEVEL: str = "INFO"
    CORS_ORIGINS: list[str] = ["http://localhost:3000", "http://127.0.0.1:3000"]

    # Email (Resend HTTP API); sending is skipped when no key is configured
    PUBLIC_BASE_URL: str = "http://localhost:3000"
    RESEND_API_KEY: str = ""
    EMAIL_API_URL: str = "https://api.resend.com/emails"
    EMAIL_FROM: str = "CouponHub <no-reply@couponhub.app>"

    PASSWORD_RESET_TTL_MINUTES: int = 60
    CSRF_TOKEN_TTL_SECONDS: int = 60 * 60

    SESSION_ACTIVITY_TIMEOUT_SECONDS: int = 30 * 60
    SESSION_MAX_CONCURRENT: int = 5
    LOGIN_MAX_FAILED_ATTEMPTS: int = 5
    LOGIN_LOCKOUT_SECONDS: int = 15 * 60


settings = Settings()
