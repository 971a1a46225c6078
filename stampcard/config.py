from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Centralized runtime configuration loaded from environment variables.
    """

    SUPABASE_URL: str
    SUPABASE_ANON_KEY: str
    API_PREFIX: str = "/api"
    APP_NAME: str = "Stampcard API"
    ALLOWED_ORIGINS: list[str] = ["*"]
    PUBLIC_BASE_URL: str = "http://localhost:5173"
    QR_SERVICE_URL: str = "https://api.qrserver.com/v1/create-qr-code/"
    QR_CODE_SIZE: str = "400x400"
    AUTH_CHECK_TIMEOUT_SECONDS: float = 5.0
    SESSION_COOKIE_NAME: str = "stampcard_sid"
    SESSION_IDLE_TIMEOUT_SECONDS: float = 3600.0
    WELCOME_DISCOUNT_PERCENT: int = 15
    WELCOME_COUPON_VALID_DAYS: int = 30
    DEFAULT_STAMPS_REQUIRED: int = 10
    DEFAULT_REWARD_VALUE: str = "Free main course"
    LOG_LEVEL: str = "INFO"

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")


@lru_cache
def get_settings() -> Settings:
    return Settings()
