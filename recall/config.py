"""
Configuration settings for recall-engine.

Uses Pydantic Settings for environment variable management with .env file support.
Every variable is prefixed with ``RECALL_`` (e.g. ``RECALL_STATE_DB_PATH``).
"""
from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="RECALL_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ========================================
    # Persistence
    # ========================================
    state_db_path: Path = Field(
        default=Path.home() / ".recall" / "state.db",
        description="SQLite file holding cards, review log, streak ledger and XP",
    )

    # ========================================
    # Scheduling
    # ========================================
    initial_ease_factor: float = Field(
        default=2.5,
        ge=1.3,
        description="Ease factor assigned to a card on its first review",
    )
    minimum_ease_factor: float = Field(
        default=1.3,
        gt=0,
        description="Floor for the ease factor",
    )
    max_due_cards: int = Field(
        default=100,
        ge=1,
        description="Default cap on cards pulled into a study session",
    )

    # ========================================
    # Gamification
    # ========================================
    xp_level_constant: int = Field(
        default=100,
        ge=1,
        description="K in level = floor(sqrt(total_xp / K)) + 1",
    )

    # ========================================
    # Logging
    # ========================================
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="WARNING",
        description="Logging verbosity level for the CLI",
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
