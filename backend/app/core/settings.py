# backend/app/core/settings.py
"""
Shop Floor - Configuration Management with pydantic-settings

- Loads from environment and root .env
- Validates and normalizes values
- Cached singleton via get_settings()
"""
from functools import lru_cache
from pathlib import Path
from typing import Optional, List

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Calculate path to .env in project root (4 levels up from this file)
# backend/app/core/settings.py -> <repo>/.env
_ENV_FILE = Path(__file__).resolve().parent.parent.parent.parent / ".env"


class Settings(BaseSettings):
    """
    Application settings with validation.

    Environment variables take precedence over .env file values.
    """

    model_config = SettingsConfigDict(
        env_file=_ENV_FILE,
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ===================
    # Application Settings
    # ===================
    PROJECT_NAME: str = "Shop Floor"
    VERSION: str = "1.0.0"
    API_V1_STR: str = "/api/v1"
    ENVIRONMENT: str = Field(default="development", description="Deployment environment")

    # ===================
    # Database Settings
    # ===================
    DB_HOST: str = Field(default="localhost", description="PostgreSQL host")
    DB_PORT: int = Field(default=5432, description="PostgreSQL port")
    DB_NAME: str = Field(default="shopfloor", description="Database name")
    DB_USER: str = Field(default="postgres", description="Database user")
    DB_PASSWORD: str = Field(default="postgres", description="Database password")
    DATABASE_URL: Optional[str] = Field(
        default=None, description="Full database URL (overrides DB_* settings)"
    )

    @property
    def database_url(self) -> str:
        """Build PostgreSQL database URL from components or use explicit URL."""
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return (
            f"postgresql+psycopg://{self.DB_USER}:{self.DB_PASSWORD}"
            f"@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}"
        )

    # ===================
    # CORS Settings
    # ===================
    ALLOWED_ORIGINS: List[str] = Field(
        default=[
            "http://localhost:5173",
            "http://127.0.0.1:5173",
            "http://localhost:3000",
            "http://127.0.0.1:3000",
        ],
        description="Allowed CORS origins",
    )

    @field_validator("ALLOWED_ORIGINS", mode="before")
    @classmethod
    def parse_cors_origins(cls, v):
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(",") if origin.strip()]
        return v

    # ===================
    # Logging
    # ===================
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "json"  # json or text
    LOG_FILE: Optional[str] = None

    # ===================
    # Shift Calendar
    # ===================
    SHIFT_START_HOUR: int = Field(default=7, ge=0, le=23, description="Shift start (local hour)")
    SHIFT_END_HOUR: int = Field(default=16, ge=1, le=23, description="Shift end (local hour)")

    @model_validator(mode="after")
    def check_shift_window(self):
        if self.SHIFT_END_HOUR <= self.SHIFT_START_HOUR:
            raise ValueError("SHIFT_END_HOUR must be later than SHIFT_START_HOUR")
        return self

    # ===================
    # Scheduling
    # ===================
    DEFAULT_JOB_MINUTES: int = Field(
        default=60, description="Duration used when a displaced job has no schedule or estimate"
    )
    MIN_SCHEDULED_MINUTES: int = Field(
        default=15, description="Floor for durations scaled from part/machine estimates"
    )

    # ===================
    # Compliance / TCO
    # ===================
    COMPLIANCE_ROLES: List[str] = Field(
        default=["compliance", "admin"],
        description="Roles allowed to approve compliance and TCO",
    )

    @field_validator("COMPLIANCE_ROLES", mode="before")
    @classmethod
    def parse_compliance_roles(cls, v):
        if isinstance(v, str):
            return [role.strip() for role in v.split(",") if role.strip()]
        return v

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT.lower() == "production"


@lru_cache
def get_settings() -> Settings:
    """Singleton settings loader (cached)."""
    return Settings()


# Convenience alias for backward compatibility with existing code
settings = get_settings()
