"""Configuration management using Pydantic Settings.

This module provides centralized configuration for the prop insights engine,
supporting environment variables and .env file loading.

Example:
    >>> from prop_insights.config import get_settings
    >>> settings = get_settings()
    >>> print(settings.hit_rate_window)
    10
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment variables.

    All settings can be overridden via environment variables or .env file.
    Environment variables take precedence over .env file values.

    Attributes:
        db_path: Path to SQLite database file.
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        log_dir: Directory for log files.
        hit_rate_window: Number of recent eligible games used for hit rates.
        trend_window: Number of recent games compared against the baseline.
        chart_window: Number of games returned for the recent games chart.
        nba_min_minutes: Minutes played for an NBA game to count.
        nfl_min_snaps: Snaps played for an NFL game to count.
        insight_timeout: Seconds each insight may run before it is abandoned.
        max_workers: Upper bound on concurrently running insights.
        matchup_threshold_pct: Band around league average for matchup labels.
        default_season: Season assumed when the store cannot report one.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Database
    db_path: str = Field(
        default="data/props.db",
        alias="PROPS_DB_PATH",
        description="Path to SQLite database file",
    )

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        alias="LOG_LEVEL",
        description="Logging level",
    )
    log_dir: str = Field(
        default="logs",
        alias="LOG_DIR",
        description="Directory for log files",
    )

    # Sample windows
    hit_rate_window: int = Field(
        default=10,
        alias="HIT_RATE_WINDOW",
        ge=1,
        description="Recent eligible games used for hit rates",
    )
    trend_window: int = Field(
        default=3,
        alias="TREND_WINDOW",
        ge=1,
        description="Recent games compared against the season baseline",
    )
    chart_window: int = Field(
        default=15,
        alias="CHART_WINDOW",
        ge=1,
        description="Games returned for the recent games chart",
    )

    # Eligibility
    nba_min_minutes: int = Field(
        default=10,
        alias="NBA_MIN_MINUTES",
        ge=0,
        description="Minimum minutes for an NBA game to count",
    )
    nfl_min_snaps: int = Field(
        default=1,
        alias="NFL_MIN_SNAPS",
        ge=0,
        description="Minimum snaps for an NFL game to count",
    )

    # Composition
    insight_timeout: float = Field(
        default=5.0,
        alias="INSIGHT_TIMEOUT",
        gt=0.0,
        description="Per-insight timeout in seconds",
    )
    max_workers: int = Field(
        default=8,
        alias="INSIGHT_MAX_WORKERS",
        ge=1,
        le=64,
        description="Maximum concurrently running insights",
    )

    # Ranking
    matchup_threshold_pct: float = Field(
        default=0.10,
        alias="MATCHUP_THRESHOLD_PCT",
        ge=0.0,
        le=1.0,
        description="Band around league average for favorable/tough labels",
    )
    default_season: int = Field(
        default=2024,
        alias="DEFAULT_SEASON",
        ge=1900,
        description="Season assumed when the store has no games",
    )

    @field_validator("db_path", "log_dir")
    @classmethod
    def validate_path(cls, v: str) -> str:
        """Ensure path strings are valid."""
        if not v or v.isspace():
            raise ValueError("Path cannot be empty or whitespace")
        return v

    @property
    def db_path_obj(self) -> Path:
        """Return database path as Path object."""
        return Path(self.db_path)

    @property
    def log_dir_obj(self) -> Path:
        """Return log directory as Path object."""
        return Path(self.log_dir)

    def ensure_directories(self) -> None:
        """Create required directories if they don't exist."""
        self.db_path_obj.parent.mkdir(parents=True, exist_ok=True)
        self.log_dir_obj.mkdir(parents=True, exist_ok=True)


# Singleton pattern for settings
_settings: Settings | None = None


def get_settings() -> Settings:
    """Get the application settings singleton.

    Returns:
        Settings instance loaded from environment.

    Example:
        >>> settings = get_settings()
        >>> print(settings.insight_timeout)
        5.0
    """
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings() -> None:
    """Reset the settings singleton (useful for testing)."""
    global _settings
    _settings = None
