"""Application configuration using pydantic-settings.

All environment variables should be accessed through the settings object
rather than using os.getenv() directly. This keeps type validation at
startup and gives the ledger tunables a single documented home.
"""

from functools import lru_cache
from typing import List, Literal, Optional

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_DEFAULT_SECRET = "change-me-in-production"
_LOCALHOST_PATTERNS = ["localhost", "127.0.0.1", "0.0.0.0"]


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",  # Ignore extra env vars
    )

    # Database - relative SQLite file for local dev, PostgreSQL URL in production
    database_url: str = "sqlite:///./data/stockledger.db"
    db_statement_timeout_ms: int = 15000  # PostgreSQL only

    # Redis - optional, backs the token blacklist
    redis_url: Optional[str] = None

    # Security
    secret_key: str = _DEFAULT_SECRET
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 240  # 4 hours

    # CORS - comma-separated origins or "*" for development only
    cors_origins: str = "http://localhost:3000,http://localhost:8000"

    # Server
    debug: bool = True
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    # API
    api_v1_prefix: str = "/api/v1"

    # Rate limiting
    rate_limit_enabled: bool = True
    rate_limit_read: str = "60/minute"
    rate_limit_write: str = "30/minute"
    rate_limit_bulk: str = "10/minute"

    # ==========================================================================
    # Stock ledger
    # ==========================================================================
    soh_report_row_cap: int = 1000
    default_page_limit: int = 10
    max_page_limit: int = 100
    stock_conflict_retries: int = 1  # extra attempts after a guarded-update miss

    @field_validator("secret_key")
    @classmethod
    def validate_secret_key(cls, v: str) -> str:
        if v == _DEFAULT_SECRET or len(v) < 32:
            import warnings
            warnings.warn(
                "SECRET_KEY is the default or shorter than 32 characters. "
                "Set the SECRET_KEY environment variable.",
                UserWarning,
                stacklevel=2,
            )
        return v

    @field_validator("stock_conflict_retries")
    @classmethod
    def validate_conflict_retries(cls, v: int) -> int:
        if v < 0:
            raise ValueError("stock_conflict_retries cannot be negative")
        return v

    @model_validator(mode="after")
    def validate_production_settings(self) -> "Settings":
        """Refuse to start in production mode with an insecure secret."""
        if not self.debug:
            if self.secret_key == _DEFAULT_SECRET:
                raise ValueError(
                    "FATAL: Cannot start in production mode with default SECRET_KEY. "
                    "Set a secure SECRET_KEY environment variable (minimum 32 characters)."
                )
            if len(self.secret_key) < 32:
                raise ValueError(
                    f"FATAL: SECRET_KEY must be at least 32 characters in production mode "
                    f"(current length: {len(self.secret_key)})."
                )
        if not 1 <= self.default_page_limit <= self.max_page_limit:
            raise ValueError("default_page_limit must be between 1 and max_page_limit")
        return self

    @property
    def cors_origins_list(self) -> List[str]:
        """Parse CORS origins into a list, filtering localhost in production."""
        if self.cors_origins == "*":
            return ["*"]

        origins = [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

        if not self.debug:
            origins = [o for o in origins if not any(p in o for p in _LOCALHOST_PATTERNS)]

        return origins

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
