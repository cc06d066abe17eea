"""
Configuration settings for topic-trainer.

Uses Pydantic Settings for environment variable management with .env file support.
"""
from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_DATA_DIR = Path.home() / ".topic-trainer"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ========================================
    # Database
    # ========================================
    database_url: str = Field(
        default=f"sqlite+aiosqlite:///{DEFAULT_DATA_DIR / 'trainer.db'}",
        description="SQLAlchemy async connection string",
    )

    # ========================================
    # Logging
    # ========================================
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="WARNING",
        description="Minimum level written to stderr by the CLI",
    )

    # ========================================
    # OpenRouter (evaluation + agent chat)
    # ========================================
    openrouter_api_key: str = Field(
        default="",
        description="OpenRouter API key",
    )
    openrouter_model: str = Field(
        default="google/gemini-2.0-flash-exp",
        description="Model used for answer evaluation and the chat agent",
    )
    openrouter_base_url: str = Field(
        default="https://openrouter.ai/api/v1",
        description="OpenRouter API base URL",
    )
    openrouter_timeout_seconds: float = Field(
        default=60.0,
        description="Per-request timeout",
    )
    openrouter_retry_attempts: int = Field(
        default=3,
        ge=1,
        description="Attempts on timeouts and 5xx responses",
    )
    user_name: str = Field(
        default="User",
        description="Display name used in the agent system prompt",
    )

    # ========================================
    # Agent tool loop
    # ========================================
    agent_max_tool_rounds: int = Field(
        default=8,
        ge=1,
        description="Maximum chat round-trips that may return tool calls",
    )
    tool_question_limit: int = Field(
        default=20,
        ge=1,
        description="Default result size of the get_questions tool",
    )

    # ========================================
    # SM-2 Scheduling
    # ========================================
    sm2_initial_factor: float = Field(default=2.5, ge=1.3, description="Ease factor of a new question")
    sm2_minimum_factor: float = Field(default=1.3, ge=1.3, description="Ease factor floor")
    sm2_first_interval: int = Field(default=1, description="Days after the first pass")
    sm2_second_interval: int = Field(default=6, description="Days after the second pass")

    # ========================================
    # Statistics
    # ========================================
    success_score_threshold: float = Field(
        default=7.0,
        description="Minimum 0-10 score counted as a success",
    )
    daily_progress_window_days: int = Field(
        default=30,
        ge=1,
        description="Trailing window used by daily progress",
    )
    daily_progress_max_buckets: int = Field(
        default=30,
        ge=1,
        description="Most recent day buckets kept for display",
    )

    def has_ai_configured(self) -> bool:
        """Check if an OpenRouter key is available."""
        return bool(self.openrouter_api_key)

    def get_sm2_config(self) -> dict[str, float | int]:
        """Get SM-2 constants as a dictionary."""
        return {
            "initial_factor": self.sm2_initial_factor,
            "minimum_factor": self.sm2_minimum_factor,
            "first_interval": self.sm2_first_interval,
            "second_interval": self.sm2_second_interval,
        }


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
