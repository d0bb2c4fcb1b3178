from pathlib import Path

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    data_dir: Path = Path.home() / ".prepdeck" / "data"
    sqlite_filename: str = "prepdeck.db"
    log_level: str = "WARNING"
    session_limit: int = 50

    # Review policy; see services.scheduler.ReviewPolicy
    initial_ease: float = 2.5
    min_ease: float = 1.3
    max_ease: float = 5.0
    first_interval_days: float = 1.0
    fail_ease_penalty: float = 0.2
    hard_interval_multiplier: float = 1.2
    hard_ease_penalty: float = 0.15
    easy_interval_bonus: float = 1.3
    easy_ease_bonus: float = 0.15
    max_interval_days: float | None = None  # None = uncapped

    model_config = {"env_prefix": "PREPDECK_"}


settings = Settings()
