from dotenv import load_dotenv
from pydantic_settings import BaseSettings, SettingsConfigDict

load_dotenv()


class Settings(BaseSettings):
    # Application settings
    app_name: str = "Portfolio Analytics"
    app_version: str = "1.0.0"
    debug: bool = False
    environment: str = "development"

    # Logging settings
    log_level: str = "INFO"
    log_json: bool = True

    # Session settings
    session_ttl_hours: int = 24
    session_sweep_interval_minutes: int = 60

    # Insight settings
    insight_refresh_seconds: int = 3600
    insight_max_alerts: int = 500  # 0 keeps every alert

    # Metrics settings
    response_sample_capacity: int = 1000
    bounce_threshold_ms: int = 30000

    # CORS settings
    allowed_origins: list[str] = ["http://localhost:3000", "http://localhost:8000"]

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )


settings = Settings()
