from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import AnyHttpUrl, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

ALLOWED_RATE_PROVIDERS = {"frankfurter", "static"}


class Settings(BaseSettings):
    """Application settings loaded from environment with defaults.

    Environment variable mapping follows pydantic's rules (e.g., PIVOT_CURRENCY,
    DATA_DIR, DB_FILENAME, REFRESH_INTERVAL_SECONDS).
    """

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False)

    # Basic app metadata
    app_name: str = "FX Rate Service"
    debug: bool = False
    version: str = "0.1.0"

    # Data & persistence
    data_dir: Path = Path("data")
    db_filename: str = "fxrates.sqlite3"
    db_path: Optional[Path] = None  # derived if not provided

    # Rates are always stored against this currency
    pivot_currency: str = "EUR"

    # Provider
    exchange_rate_provider: str = "frankfurter"
    provider_base_url: AnyHttpUrl = "https://api.frankfurter.app"
    http_timeout_seconds: float = 10.0
    http_retries: int = 0

    # Periodic refresh
    refresh_interval_seconds: int = 900  # 15 minutes
    refresh_on_startup: bool = True
    scheduler_enabled: bool = True

    @field_validator("pivot_currency")
    @classmethod
    def valid_pivot(cls, v: str) -> str:
        v = v.strip().upper()
        if len(v) != 3 or not v.isalpha():
            raise ValueError("pivot_currency must be a 3-letter currency code")
        return v

    @field_validator("refresh_interval_seconds")
    @classmethod
    def positive_interval(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("refresh_interval_seconds must be positive")
        return v

    def init_post_load(self) -> None:
        """Finalize derived fields and ensure directories exist."""
        if self.db_path is None:
            self.db_path = self.data_dir / self.db_filename
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        if self.exchange_rate_provider not in ALLOWED_RATE_PROVIDERS:
            raise ValueError(
                f"Unsupported exchange_rate_provider '{self.exchange_rate_provider}'. "
                f"Allowed: {sorted(ALLOWED_RATE_PROVIDERS)}"
            )


@lru_cache
def get_settings() -> Settings:
    settings = Settings()
    settings.init_post_load()
    return settings
