from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    DATABASE_URL: str = "postgresql://engagement:engagement@db:5432/engagement"
    APP_ENV: str = "development"

    # Comma-separated allowed origins, or "*" to allow all.
    # Example: "https://dashboard.example.com,https://admin.example.com"
    CORS_ORIGINS: str = "*"

    LOG_LEVEL: str = "INFO"
    # When set, a DEBUG-level file log is written there as well.
    LOG_DIR: Optional[str] = None

    # --- Cadence / generation ---
    REFRESH_INTERVAL_DAYS: int = 7
    TASKS_PER_CYCLE: int = 10
    MAX_TASKS_PER_CATEGORY: int = 4
    # Path to a JSON task ruleset; the bundled catalog is used when unset.
    TASK_CATALOG_PATH: Optional[str] = None

    # --- Leveling / scoring ---
    LEVEL_STEP_POINTS: int = 100
    SCORE_CONTENT_TARGET: int = 8
    SCORE_CONTENT_WINDOW_DAYS: int = 30

    # --- Concurrency ---
    MAX_CONFLICT_RETRIES: int = 3
    READ_RETRIES: int = 3

    RECENT_UNLOCKS_LIMIT: int = 5

    @property
    def cors_origins_list(self) -> list[str]:
        if self.CORS_ORIGINS.strip() == "*":
            return ["*"]
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]


settings = Settings()
