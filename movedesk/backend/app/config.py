from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # --- Runtime ---
    ENV: str = "dev"  # dev|prod
    MOVEDESK_DB_URL: str = "sqlite+aiosqlite:///./movedesk.db"
    LOG_LEVEL: str = "INFO"

    # --- Minimal admin auth (API key) ---
    # Send: X-API-Key: <key>
    API_KEY: str | None = None

    # --- Business units sharing one crew pool ---
    PRIMARY_UNIT_NAME: str = "Worry Free Moving"
    SECONDARY_UNIT_NAME: str = "Quality Moving"
    # labor-only jobs without an explicit unit go to the secondary unit
    ROUTE_LABOR_ONLY_TO_SECONDARY: bool = False

    # --- Outbox / webhook delivery ---
    OUTBOX_BATCH_SIZE: int = 50
    OUTBOX_MAX_ATTEMPTS: int = 10
    OUTBOX_WEBHOOK_RPS: float = 2.0
    OUTBOX_BACKOFF_BASE_SECONDS: float = 5.0
    OUTBOX_BACKOFF_CAP_SECONDS: float = 3600.0  # 1 hour cap
    WEBHOOK_TIMEOUT_S: int = 20

    # --- Scheduler tuning ---
    SCHED_DISPATCH_INTERVAL_MINUTES: int = 5


settings = Settings()
