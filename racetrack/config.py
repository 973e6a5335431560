"""
Application Configuration

Uses Pydantic Settings for type-safe configuration.
"""

from typing import List
from pydantic_settings import BaseSettings
from pydantic import Field, field_validator, ConfigDict



class Settings(BaseSettings):
    """Application settings with validation."""

    # === Core ===
    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: str = Field(default="INFO", description="Logging level")

    # === Database ===
    database_url: str = Field(
        default="sqlite:///./racetrack.db",
        description="Database connection URL"
    )

    # === CORS ===
    cors_origins: List[str] = Field(
        default_factory=lambda: ["http://localhost:5173", "http://localhost:3000"],
        description="Allowed CORS origins"
    )

    # === Finish arbitration ===
    finish_confirmation_window_ms: int = Field(
        default=90_000,
        ge=0,
        description="Grace period before a provisional winner becomes final"
    )

    # === Progression ===
    xp_per_km: int = Field(
        default=10,
        ge=0,
        description="XP awarded per kilometer of confirmed distance gain"
    )

    # === Health sync ===
    sync_batch_max_days: int = Field(
        default=60,
        ge=1,
        description="Maximum number of daily samples accepted per sync"
    )
    max_daily_distance_km: float = Field(
        default=1000.0,
        gt=0,
        description="Largest plausible distance for one day; larger samples are skipped"
    )

    @field_validator('database_url')
    @classmethod
    def fix_postgres_url(cls, v: str) -> str:
        """Fix Render/Railway postgres:// URL to postgresql://"""
        if v.startswith("postgres://"):
            return v.replace("postgres://", "postgresql://", 1)
        return v

    @field_validator('cors_origins', mode='before')
    @classmethod
    def parse_cors_origins(cls, v):
        """Parse CORS origins from comma-separated string."""
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(',') if origin.strip()]
        return v

    model_config = ConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )


# Global settings instance
settings = Settings()
