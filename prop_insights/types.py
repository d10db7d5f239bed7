"""Type definitions, value objects and protocols for the insights engine.

This module defines the records that cross the repository boundary, the
repository protocol the engine depends on, and the exception hierarchy.
Using a protocol lets tests substitute an in-memory repository for the
SQL-backed one.

Example:
    >>> from prop_insights.types import EntityRef, EntityKind, ObservationQuery
    >>> entity = EntityRef(EntityKind.PLAYER, 237, Sport.NBA, "LeBron James")
    >>> repo.fetch_observations(entity, ObservationQuery(season=2024, limit=20))
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from types import MappingProxyType
from typing import Protocol, runtime_checkable

# =============================================================================
# Type Aliases
# =============================================================================

PlayerId = int
TeamId = int
GameId = str
Season = int


# =============================================================================
# Enums
# =============================================================================


class Sport(Enum):
    """Supported leagues."""

    NBA = "nba"
    NFL = "nfl"


class EntityKind(Enum):
    """What a request is about."""

    PLAYER = "player"
    TEAM = "team"


# =============================================================================
# Dataclasses
# =============================================================================


@dataclass(frozen=True)
class EntityRef:
    """A resolved player or team."""

    kind: EntityKind
    entity_id: int
    sport: Sport
    name: str = ""
    team_id: TeamId | None = None
    position: str | None = None

    @property
    def last_name(self) -> str:
        """Capitalised last token of the name, used in narratives."""
        parts = self.name.strip().split()
        if not parts:
            return "Player" if self.kind is EntityKind.PLAYER else "Team"
        last = parts[-1]
        return last[:1].upper() + last[1:]


@dataclass(frozen=True)
class ObservationQuery:
    """Filters for a game log fetch. Results are always newest first."""

    season: Season | None = None
    opponent_id: TeamId | None = None
    limit: int | None = None


@dataclass(frozen=True)
class GameObservation:
    """One row per entity per game.

    Attributes:
        game_id: Game identifier, None when the row has no schedule match.
        game_date: Date the game was played.
        season: Season the game belongs to.
        entity_id: Player or team the row describes.
        team_id: Team the entity played for.
        opponent_id: Opposing team, None when the schedule row is missing.
        is_home: True when the entity's team was the home team.
        participation: Raw minutes (NBA), snaps (NFL) or None for teams.
        stats: Column name to value; values may be None.
        position: Player position, when known.
    """

    game_id: GameId | None
    game_date: date
    season: Season
    entity_id: int
    team_id: TeamId | None
    opponent_id: TeamId | None
    is_home: bool | None
    participation: str | int | float | None
    stats: Mapping[str, float | None] = field(default_factory=dict)
    position: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "stats", MappingProxyType(dict(self.stats)))

    def value(self, column: str) -> float | None:
        """Return the raw value of one stat column, None when absent."""
        return self.stats.get(column)


@dataclass(frozen=True)
class TeamGameObservation:
    """Team box score row with whatever schedule context could be joined.

    ``game_id`` and ``opponent_id`` are None when no schedule row matched.
    """

    team_id: TeamId
    season: Season
    game_date: date
    game_id: GameId | None
    opponent_id: TeamId | None
    stats: Mapping[str, float | None] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "stats", MappingProxyType(dict(self.stats)))

    def value(self, column: str) -> float | None:
        return self.stats.get(column)


@dataclass(frozen=True)
class GameResult:
    """Final score of a game from one team's point of view."""

    game_id: GameId
    game_date: date
    season: Season
    team_id: TeamId
    opponent_id: TeamId
    is_home: bool
    team_score: int
    opponent_score: int

    @property
    def won(self) -> bool:
        return self.team_score > self.opponent_score


@dataclass(frozen=True)
class ScheduledGame:
    """An unplayed game from one team's point of view."""

    game_id: GameId
    game_date: date
    season: Season
    team_id: TeamId
    opponent_id: TeamId
    is_home: bool

    @property
    def venue(self) -> str:
        return "home" if self.is_home else "away"


# =============================================================================
# Protocols (Interfaces)
# =============================================================================


@runtime_checkable
class GameLogRepository(Protocol):
    """Read-only access to game logs and schedule context.

    Implementations must return observations newest first and must be safe
    to call from several threads at once.
    """

    def fetch_observations(
        self, entity: EntityRef, query: ObservationQuery
    ) -> list[GameObservation]:
        """Fetch game observations for one player or team."""
        ...

    def fetch_league_observations(
        self, sport: Sport, season: Season
    ) -> list[GameObservation]:
        """Fetch every player observation in a season."""
        ...

    def fetch_team_box_scores(
        self, sport: Sport, season: Season
    ) -> list[TeamGameObservation]:
        """Fetch every team box score in a season."""
        ...

    def fetch_team_results(
        self, team_id: TeamId, season: Season, limit: int | None = None
    ) -> list[GameResult]:
        """Fetch final results for a team in a season, newest first."""
        ...

    def fetch_head_to_head(
        self, team_id: TeamId, opponent_id: TeamId, limit: int | None = None
    ) -> list[GameResult]:
        """Fetch final results between two teams across seasons."""
        ...

    def most_recent_season(self, sport: Sport) -> Season | None:
        """Return the season of the latest game on record."""
        ...

    def find_player(self, name_or_id: str | int, sport: Sport) -> EntityRef | None:
        """Resolve a player by id or name."""
        ...

    def find_team(self, name_or_id: str | int, sport: Sport) -> EntityRef | None:
        """Resolve a team by id, abbreviation or name."""
        ...

    def next_game(
        self, team_id: TeamId, after: date | None = None
    ) -> ScheduledGame | None:
        """Return the team's next unplayed game."""
        ...

    def next_opponent(self, team_id: TeamId, after: date | None = None) -> TeamId | None:
        """Return the opponent of the team's next unplayed game."""
        ...


# =============================================================================
# Exceptions
# =============================================================================


class PropInsightsError(Exception):
    """Base exception for insights engine errors."""


class InputError(PropInsightsError):
    """Request cannot be processed as given."""


class UnsupportedStatError(InputError):
    """Stat name is not in the catalog."""

    def __init__(self, name: str, sport: Sport | None = None) -> None:
        self.name = name
        self.sport = sport
        league = f" for {sport.value.upper()}" if sport else ""
        super().__init__(f"Unsupported stat type {name!r}{league}")


class InvalidLineError(InputError):
    """Line is not a finite number."""


class InvalidDirectionError(InputError):
    """Direction token is not a recognised over/under synonym."""


class MissingIdentifierError(InputError):
    """Required player or team identifier was not supplied."""


class EntityNotFoundError(PropInsightsError):
    """Player or team could not be resolved."""


class RepositoryError(PropInsightsError):
    """Game log store failed or is unavailable."""


class FetchTimeoutError(RepositoryError):
    """Game log fetch did not complete in time."""


class IneligibleObservationError(PropInsightsError, ValueError):
    """Observation lacks a column the computation requires."""
