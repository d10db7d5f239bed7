"""SQLAlchemy ORM models for NBA and NFL game logs.

Models are organized into categories:
- Reference: Team, Player
- Schedule: Game
- Box scores: PlayerGameStats (NBA), NflPlayerGameStats (NFL), TeamBoxScore

Team box scores are keyed by team, season and date rather than by game id,
because they come from a separate feed. They are linked to the schedule by
date plus home/away team at query time, and rows with no matching game are
expected.

Example:
    >>> from prop_insights.data.models import Game, Team
    >>> from prop_insights.data.db import session_scope
    >>> with session_scope() as session:
    ...     game = session.query(Game).first()
    ...     print(game.home_team.full_name)
"""

from __future__ import annotations

from datetime import date

from sqlalchemy import ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from prop_insights.data.schema import (
    BOX_SCORE_COLUMNS,
    Base,
    NbaBoxScoreMixin,
    SportMixin,
    TimestampMixin,
)

GAME_STATUS_SCHEDULED = "scheduled"
GAME_STATUS_COMPLETED = "completed"
GAME_STATUS_POSTPONED = "postponed"

NBA_STAT_COLUMNS: tuple[str, ...] = BOX_SCORE_COLUMNS
TEAM_BOX_COLUMNS: tuple[str, ...] = BOX_SCORE_COLUMNS

NFL_STAT_COLUMNS: tuple[str, ...] = (
    "passing_yards",
    "passing_touchdowns",
    "passing_completions",
    "passing_attempts",
    "passing_interceptions",
    "rushing_yards",
    "rushing_touchdowns",
    "rushing_attempts",
    "receiving_yards",
    "receiving_touchdowns",
    "receptions",
    "receiving_targets",
    "total_tackles",
    "defensive_sacks",
    "defensive_interceptions",
    "field_goals_made",
    "field_goal_attempts",
    "extra_points_made",
)


# =============================================================================
# Reference Models
# =============================================================================


class Team(SportMixin, Base):
    """Team reference table.

    Attributes:
        team_id: Team ID (primary key), unique across sports.
        sport: "nba" or "nfl".
        abbreviation: Short code (e.g., "LAL", "KC").
        full_name: Full team name.
        city: Team's city.
    """

    __tablename__ = "teams"

    team_id: Mapped[int] = mapped_column(primary_key=True)
    abbreviation: Mapped[str] = mapped_column(String(4), nullable=False)
    full_name: Mapped[str] = mapped_column(String(100), nullable=False)
    city: Mapped[str | None] = mapped_column(String(50), nullable=True)

    __table_args__ = (
        UniqueConstraint("sport", "abbreviation", name="uq_team_sport_abbrev"),
    )

    def __repr__(self) -> str:
        return f"<Team(team_id={self.team_id}, abbreviation={self.abbreviation!r})>"


class Player(SportMixin, Base):
    """Player reference table.

    Attributes:
        player_id: Player ID (primary key).
        sport: "nba" or "nfl".
        full_name: Player's full name as published.
        position: Listed position (e.g., "G", "F-C", "WR").
        team_id: Current team.
    """

    __tablename__ = "players"

    player_id: Mapped[int] = mapped_column(primary_key=True)
    full_name: Mapped[str] = mapped_column(String(100), nullable=False)
    position: Mapped[str | None] = mapped_column(String(10), nullable=True)
    team_id: Mapped[int | None] = mapped_column(
        ForeignKey("teams.team_id"), nullable=True
    )

    team: Mapped[Team | None] = relationship()

    __table_args__ = (Index("idx_players_sport", "sport"),)

    def __repr__(self) -> str:
        return f"<Player(player_id={self.player_id}, full_name={self.full_name!r})>"


# =============================================================================
# Schedule
# =============================================================================


class Game(SportMixin, Base):
    """Game schedule and final score.

    Attributes:
        game_id: Game identifier (primary key).
        sport: "nba" or "nfl".
        season: Season start year (e.g., 2024 for 2024-25).
        game_date: Date of the game.
        home_team_id: Home team.
        away_team_id: Away team.
        home_score: Home team final score.
        away_score: Away team final score.
        status: 'scheduled', 'completed' or 'postponed'.
    """

    __tablename__ = "games"

    game_id: Mapped[str] = mapped_column(String(20), primary_key=True)
    season: Mapped[int] = mapped_column(nullable=False)
    game_date: Mapped[date] = mapped_column(nullable=False)
    home_team_id: Mapped[int] = mapped_column(
        ForeignKey("teams.team_id"), nullable=False
    )
    away_team_id: Mapped[int] = mapped_column(
        ForeignKey("teams.team_id"), nullable=False
    )
    home_score: Mapped[int | None] = mapped_column(nullable=True)
    away_score: Mapped[int | None] = mapped_column(nullable=True)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=GAME_STATUS_SCHEDULED
    )

    home_team: Mapped[Team] = relationship(foreign_keys=[home_team_id])
    away_team: Mapped[Team] = relationship(foreign_keys=[away_team_id])

    __table_args__ = (
        Index("idx_games_date", "game_date"),
        Index("idx_games_sport_season", "sport", "season"),
    )

    def opponent_of(self, team_id: int) -> int | None:
        """Return the other team's id, None if ``team_id`` did not play."""
        if team_id == self.home_team_id:
            return self.away_team_id
        if team_id == self.away_team_id:
            return self.home_team_id
        return None

    def __repr__(self) -> str:
        return f"<Game(game_id={self.game_id!r}, game_date={self.game_date})>"


# =============================================================================
# Box Scores
# =============================================================================


class PlayerGameStats(NbaBoxScoreMixin, TimestampMixin, Base):
    """NBA player box score.

    ``minutes`` is kept as published ("34", "34:12", "DNP") and parsed by
    the eligibility rules.
    """

    __tablename__ = "player_game_stats"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    game_id: Mapped[str] = mapped_column(ForeignKey("games.game_id"), nullable=False)
    player_id: Mapped[int] = mapped_column(
        ForeignKey("players.player_id"), nullable=False
    )
    team_id: Mapped[int] = mapped_column(ForeignKey("teams.team_id"), nullable=False)
    minutes: Mapped[str | None] = mapped_column(String(10), nullable=True)

    game: Mapped[Game] = relationship()
    player: Mapped[Player] = relationship()

    __table_args__ = (
        UniqueConstraint("game_id", "player_id", name="uq_player_game"),
        Index("idx_player_game_stats_player", "player_id"),
    )

    def __repr__(self) -> str:
        return f"<PlayerGameStats(game_id={self.game_id!r}, player_id={self.player_id})>"


class NflPlayerGameStats(TimestampMixin, Base):
    """NFL player box score. ``snaps`` is offensive plus defensive snaps."""

    __tablename__ = "nfl_player_game_stats"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    game_id: Mapped[str] = mapped_column(ForeignKey("games.game_id"), nullable=False)
    player_id: Mapped[int] = mapped_column(
        ForeignKey("players.player_id"), nullable=False
    )
    team_id: Mapped[int] = mapped_column(ForeignKey("teams.team_id"), nullable=False)

    snaps: Mapped[int | None] = mapped_column(nullable=True)
    passing_yards: Mapped[float | None] = mapped_column(nullable=True)
    passing_touchdowns: Mapped[int | None] = mapped_column(nullable=True)
    passing_completions: Mapped[int | None] = mapped_column(nullable=True)
    passing_attempts: Mapped[int | None] = mapped_column(nullable=True)
    passing_interceptions: Mapped[int | None] = mapped_column(nullable=True)
    rushing_yards: Mapped[float | None] = mapped_column(nullable=True)
    rushing_touchdowns: Mapped[int | None] = mapped_column(nullable=True)
    rushing_attempts: Mapped[int | None] = mapped_column(nullable=True)
    receiving_yards: Mapped[float | None] = mapped_column(nullable=True)
    receiving_touchdowns: Mapped[int | None] = mapped_column(nullable=True)
    receptions: Mapped[int | None] = mapped_column(nullable=True)
    receiving_targets: Mapped[int | None] = mapped_column(nullable=True)
    total_tackles: Mapped[float | None] = mapped_column(nullable=True)
    defensive_sacks: Mapped[float | None] = mapped_column(nullable=True)
    defensive_interceptions: Mapped[int | None] = mapped_column(nullable=True)
    field_goals_made: Mapped[int | None] = mapped_column(nullable=True)
    field_goal_attempts: Mapped[int | None] = mapped_column(nullable=True)
    extra_points_made: Mapped[int | None] = mapped_column(nullable=True)

    game: Mapped[Game] = relationship()
    player: Mapped[Player] = relationship()

    __table_args__ = (
        UniqueConstraint("game_id", "player_id", name="uq_nfl_player_game"),
        Index("idx_nfl_player_game_stats_player", "player_id"),
    )

    def stat_line(self) -> dict[str, float | None]:
        return {column: getattr(self, column) for column in NFL_STAT_COLUMNS}

    def __repr__(self) -> str:
        return (
            f"<NflPlayerGameStats(game_id={self.game_id!r}, player_id={self.player_id})>"
        )


class TeamBoxScore(NbaBoxScoreMixin, TimestampMixin, Base):
    """NBA team box score, keyed by team, season and date.

    Attributes:
        id: Auto-increment primary key.
        team_id: Team the line belongs to.
        season: Season start year.
        game_date: Date the game was played.
    """

    __tablename__ = "team_box_scores"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    team_id: Mapped[int] = mapped_column(ForeignKey("teams.team_id"), nullable=False)
    season: Mapped[int] = mapped_column(nullable=False)
    game_date: Mapped[date] = mapped_column(nullable=False)

    __table_args__ = (
        UniqueConstraint("team_id", "game_date", name="uq_team_box_date"),
        Index("idx_team_box_scores_season", "season"),
    )

    def __repr__(self) -> str:
        return f"<TeamBoxScore(team_id={self.team_id}, game_date={self.game_date})>"
