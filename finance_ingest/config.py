"""Configuration management using Pydantic Settings"""

from typing import Literal, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Process configuration loaded from environment variables"""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Storage
    database_url: str = "sqlite:///./finance_ingest.db"

    # Service
    service_name: str = "finance-ingest"
    log_level: str = "INFO"
    platform: Optional[Literal["android", "ios"]] = None  # Overrides platform capability detection

    # Ingestion policy defaults
    default_confidence_threshold: float = 0.6
    batch_delay_seconds: float = 0.1

    # Deduplication
    similarity_threshold: float = 0.85
    amount_tolerance: float = 0.01  # Fraction of the existing amount
    duplicate_time_window_seconds: int = 60
    hash_date_granularity: Literal["day", "minute", "second"] = "day"
    dedup_lookback_days: int = 3

    # Remote bank configurations
    bank_config_url: Optional[str] = None
    http_timeout_seconds: float = 5.0


settings = Settings()
