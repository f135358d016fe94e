from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    DATABASE_URL: str
    SECRET_KEY: str = "dev-insecure-key-change-in-production"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 30

    # CORS origins, JSON list in the environment
    CORS_ORIGINS: list[str] = ["http://localhost:3000"]

    LOG_LEVEL: str = "INFO"

    # Shift dates, lateness and the sweep's midnight are computed in this zone
    BUSINESS_TIMEZONE: str = "Asia/Bishkek"

    # Bearer secret for the scheduled close-shifts endpoint; empty disables it
    CRON_SECRET: str = ""

    # Redis / Celery
    CELERY_BROKER_URL: str = "redis://localhost:6379/0"
    CELERY_RESULT_BACKEND: str = "redis://localhost:6379/1"
    SHIFT_SWEEP_HOUR: int = 0
    SHIFT_SWEEP_MINUTE: int = 15

    # Staff shift writes
    RATE_LIMIT_WINDOW_SECONDS: int = 60
    RATE_LIMIT_MAX_REQUESTS: int = 30


settings = Settings()  # type: ignore[call-arg]


def get_settings() -> Settings:
    """FastAPI dependency returning the settings loaded at startup."""
    return settings
