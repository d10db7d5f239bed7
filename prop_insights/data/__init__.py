"""Data layer for prop insights.

Submodules:
    db: Database engine and session management
    schema: Declarative base and shared column mixins
    models: SQLAlchemy ORM model definitions
    repository: SQL implementation of the game log repository

Example:
    >>> from prop_insights.data import init_db, SqlGameLogRepository
    >>> init_db()
    >>> repo = SqlGameLogRepository()
"""

from __future__ import annotations

from prop_insights.data.db import (
    get_engine,
    get_session,
    init_db,
    reset_engine,
    session_scope,
    table_counts,
)
from prop_insights.data.models import (
    GAME_STATUS_COMPLETED,
    GAME_STATUS_POSTPONED,
    GAME_STATUS_SCHEDULED,
    Game,
    NflPlayerGameStats,
    Player,
    PlayerGameStats,
    Team,
    TeamBoxScore,
)
from prop_insights.data.repository import SqlGameLogRepository, normalize_person_name
from prop_insights.data.schema import (
    BOX_SCORE_COLUMNS,
    Base,
    NbaBoxScoreMixin,
    SportMixin,
    TimestampMixin,
)

__all__ = [
    # Database
    "get_engine",
    "get_session",
    "init_db",
    "reset_engine",
    "session_scope",
    "table_counts",
    # Schema
    "BOX_SCORE_COLUMNS",
    "Base",
    "NbaBoxScoreMixin",
    "SportMixin",
    "TimestampMixin",
    # Models
    "GAME_STATUS_COMPLETED",
    "GAME_STATUS_POSTPONED",
    "GAME_STATUS_SCHEDULED",
    "Game",
    "NflPlayerGameStats",
    "Player",
    "PlayerGameStats",
    "Team",
    "TeamBoxScore",
    # Repository
    "SqlGameLogRepository",
    "normalize_person_name",
]
