"""Declarative base and column mixins for the game log tables.

NBA player and team box scores publish the same fifteen counting stats, so
those columns live on one mixin and both tables share them. Constraint names
follow a fixed convention so SQLite migrations can refer to them.

Example:
    >>> from prop_insights.data.schema import Base, NbaBoxScoreMixin
    >>> class GLeagueBoxScore(NbaBoxScoreMixin, Base):
    ...     __tablename__ = "g_league_box_scores"
    ...     id: Mapped[int] = mapped_column(primary_key=True)
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import MetaData, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

NAMING_CONVENTION = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

# Counting stats in an NBA box score, player or team
BOX_SCORE_COLUMNS: tuple[str, ...] = (
    "pts",
    "reb",
    "ast",
    "stl",
    "blk",
    "tov",
    "fgm",
    "fga",
    "fg3m",
    "fg3a",
    "ftm",
    "fta",
    "oreb",
    "dreb",
    "pf",
)


class Base(DeclarativeBase):
    """Declarative base for every game log table."""

    metadata = MetaData(naming_convention=NAMING_CONVENTION)


class SportMixin:
    """League discriminator shared by teams, players and games."""

    sport: Mapped[str] = mapped_column(String(3), nullable=False, default="nba")


class TimestampMixin:
    """Load bookkeeping for imported rows.

    Attributes:
        created_at: When the row was first loaded.
        updated_at: When the row was last corrected by a reload.
    """

    created_at: Mapped[datetime] = mapped_column(default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        default=func.now(), onupdate=func.now(), nullable=False
    )


class NbaBoxScoreMixin:
    """The fifteen NBA counting stats; any of them may be unpublished."""

    pts: Mapped[int | None] = mapped_column(nullable=True)
    reb: Mapped[int | None] = mapped_column(nullable=True)
    ast: Mapped[int | None] = mapped_column(nullable=True)
    stl: Mapped[int | None] = mapped_column(nullable=True)
    blk: Mapped[int | None] = mapped_column(nullable=True)
    tov: Mapped[int | None] = mapped_column(nullable=True)
    fgm: Mapped[int | None] = mapped_column(nullable=True)
    fga: Mapped[int | None] = mapped_column(nullable=True)
    fg3m: Mapped[int | None] = mapped_column(nullable=True)
    fg3a: Mapped[int | None] = mapped_column(nullable=True)
    ftm: Mapped[int | None] = mapped_column(nullable=True)
    fta: Mapped[int | None] = mapped_column(nullable=True)
    oreb: Mapped[int | None] = mapped_column(nullable=True)
    dreb: Mapped[int | None] = mapped_column(nullable=True)
    pf: Mapped[int | None] = mapped_column(nullable=True)

    def stat_line(self) -> dict[str, float | None]:
        """Column name to value for every counting stat."""
        return {column: getattr(self, column) for column in BOX_SCORE_COLUMNS}
