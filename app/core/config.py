from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    DATABASE_URL: str = "postgresql://wellness:wellness@db:5432/wellness"
    APP_ENV: str = "development"
    LOG_LEVEL: str = "INFO"

    # Comma-separated allowed origins, or "*" to allow all.
    # Example: "https://myapp.com,https://api.myapp.com"
    CORS_ORIGINS: str = "*"

    REQUIRE_EMAIL_VERIFICATION: bool = False

    # Cron expressions for the external scheduler that calls /jobs/*.
    REMINDER_CRON: str = "0 * * * *"
    LOST_STREAK_CRON: str = "5 0 * * *"

    # Feature flags
    ENABLE_AI_ENRICHMENT: bool = False
    ENABLE_SLACK_OUTBOX: bool = False

    # AI enrichment endpoint (receives check-in mood + feedback after commit)
    ENRICHMENT_URL: Optional[str] = None

    # Delivery channels
    SLACK_WEBHOOK_URL: Optional[str] = None
    SMTP_HOST: Optional[str] = None
    SMTP_PORT: int = 25
    SMTP_SENDER: str = "no-reply@wellness.local"
    EXTERNAL_TIMEOUT_SECONDS: float = 5.0
    OUTBOX_MAX_ATTEMPTS: int = 5

    # Aggregate store
    AGGREGATE_MAX_RETRIES: int = 5

    # Happy coin awards
    DAILY_CHECKIN_COINS: int = 50
    FEEDBACK_BONUS_COINS: int = 10
    POSITIVE_MOOD_BONUS_COINS: int = 5

    @property
    def cors_origins_list(self) -> list[str]:
        if self.CORS_ORIGINS.strip() == "*":
            return ["*"]
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]


settings = Settings()
