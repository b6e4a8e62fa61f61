from pydantic_settings import BaseSettings
from pydantic import field_validator
from decimal import Decimal
from functools import lru_cache
import json


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    DATABASE_URL: str = "sqlite+aiosqlite:///./stride_billing.db"

    # Pool settings, ignored for SQLite
    DB_POOL_SIZE: int = 5
    DB_MAX_OVERFLOW: int = 10
    DB_POOL_TIMEOUT: int = 30
    DB_POOL_RECYCLE: int = 1800  # seconds

    # App Settings
    APP_NAME: str = "Stride Billing"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False

    # CORS - accepts JSON string, comma-separated, or list
    CORS_ORIGINS: list[str] = [
        "http://localhost:3000",
        "http://localhost:5173",
    ]

    # Billing
    CURRENCY_CODE: str = "USD"

    # Valuation coverage defaults (used when a tenant has no saved settings)
    COVERAGE_ENABLED: bool = True
    COVERAGE_RATE_NO_DEDUCTIBLE: Decimal = Decimal("0.0188")
    COVERAGE_RATE_WITH_DEDUCTIBLE: Decimal = Decimal("0.0142")
    COVERAGE_DEDUCTIBLE_AMOUNT: Decimal = Decimal("300.00")
    COVERAGE_DEFAULT_TYPE: str = "STANDARD"

    @field_validator('CORS_ORIGINS', mode='before')
    @classmethod
    def parse_list(cls, v):
        if isinstance(v, str):
            try:
                return json.loads(v)
            except json.JSONDecodeError:
                return [item.strip() for item in v.split(',')]
        return v

    @property
    def cors_origins_list(self) -> list[str]:
        return [origin.rstrip("/") for origin in self.CORS_ORIGINS if origin]

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
