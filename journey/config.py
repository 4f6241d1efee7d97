from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    database_url: str = "sqlite:///./data/journey.db"
    default_tz: str = "UTC"
    journey_api_key: str | None = None

    # Calendar policy
    week_start: str = "sunday"  # "sunday" | "monday" | ... (locale week-start convention)

    # Tracking rules
    period_freeze_limit: int = 2  # Freezes allowed per weekly period, whatever the goal duration
    streak_grace_hours: float = 32.0  # Streak lapses once the last log is older than this

    # Background poll (first-goal normalization + day rollover)
    tick_interval_seconds: float = 60.0

    log_level: str = "INFO"

    model_config = {"env_file": ".env", "extra": "ignore"}


settings = Settings()
