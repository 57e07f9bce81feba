"""Application configuration using pydantic-settings."""
from enum import StrEnum
from functools import lru_cache

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class AnalysisMode(StrEnum):
    """How many calls the analysis service gets per bookmark."""

    SINGLE = "single"
    REFLECTIVE = "reflective"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # Database
    database_url: str = "sqlite+aiosqlite:///./bookmarks.db"
    db_pool_size: int = 5
    db_max_overflow: int = 10

    # CORS - comma-separated list of allowed origins (stored as string, parsed via property)
    cors_origins_str: str = Field(
        default="http://localhost:3000,http://localhost:5173",
        validation_alias="CORS_ORIGINS",
    )

    # Analysis service (any endpoint speaking the chat-completions shape)
    analysis_api_url: str = "http://localhost:1234/v1/chat/completions"
    analysis_api_key: str | None = None
    analysis_model: str = "local-model"
    analysis_mode: AnalysisMode = AnalysisMode.SINGLE
    analysis_max_tokens: int = Field(default=1000, gt=0)
    # Seconds per call; a reflective chain gets this budget for each of its three stages
    analysis_stage_timeout: float = Field(default=30.0, gt=0)
    analysis_temperature_single: float = 0.3
    analysis_temperature_ideation: float = 0.8
    analysis_temperature_critique: float = 0.5
    analysis_temperature_synthesis: float = 0.2

    # Reading-status label used when the analysis does not provide one
    default_status: str = "To read"

    # Field length limits, bounded by the column widths of tags.name, folders.name
    # and bookmarks.title
    max_entity_name_length: int = Field(default=100, gt=0, le=100)
    max_title_length: int = Field(default=500, gt=0, le=500)

    @model_validator(mode="after")
    def validate_temperatures(self) -> "Settings":
        """Reject sampling temperatures the chat-completions shape does not accept."""
        temperatures = {
            "analysis_temperature_single": self.analysis_temperature_single,
            "analysis_temperature_ideation": self.analysis_temperature_ideation,
            "analysis_temperature_critique": self.analysis_temperature_critique,
            "analysis_temperature_synthesis": self.analysis_temperature_synthesis,
        }
        for name, value in temperatures.items():
            if not 0.0 <= value <= 2.0:
                raise ValueError(f"{name} must be between 0 and 2 (got {value})")
        return self

    @property
    def cors_origins(self) -> list[str]:
        """Parse comma-separated CORS origins string into a list."""
        if not self.cors_origins_str:
            return []
        return [origin.strip() for origin in self.cors_origins_str.split(",") if origin.strip()]

    @property
    def is_sqlite(self) -> bool:
        """True when the configured database is SQLite."""
        return self.database_url.startswith("sqlite")


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
