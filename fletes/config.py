"""Configuration management for the dispatch service."""

from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables or ``.env``."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Storage
    redis_url: str = Field(default="redis://localhost:6379/0", description="Redis URL")

    # HTTP server
    api_host: str = Field(default="0.0.0.0", description="API server host")
    api_port: int = Field(default=8000, description="API server port")
    cors_origins: list[str] = Field(
        default=["*"], description="Origins allowed to call the API (driver and admin apps)"
    )
    environment: Literal["development", "staging", "production"] = Field(
        default="development"
    )

    # Logging
    log_level: str = Field(default="INFO", description="Logging level")
    log_format: Literal["json", "text"] = Field(default="json", description="Log format")

    # Tracking
    proximity_near_m: int = Field(
        default=500, ge=0, description="Distance to the target that raises a 'near' flag"
    )
    proximity_arrived_m: int = Field(
        default=100, ge=0, description="Distance to the target that raises an 'arrived' flag"
    )
    broadcast_locations: bool = Field(
        default=True, description="Push accepted location reports to the live feed"
    )
    smoother_frame_interval_ms: int = Field(
        default=16, ge=1, description="Tick interval of the map position smoother"
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Accept any case of a standard level name."""
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level {v!r}")
        return level

    @model_validator(mode="after")
    def validate_proximity(self) -> "Settings":
        """The arrived radius sits inside the near radius."""
        if self.proximity_arrived_m > self.proximity_near_m:
            raise ValueError("proximity_arrived_m must not exceed proximity_near_m")
        return self


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
