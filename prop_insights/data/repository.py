"""SQL-backed game log repository.

Implements ``GameLogRepository`` over the ORM models. Every fetch opens its
own session through ``session_scope`` so the repository can be shared by
insights running on different threads.

Team box scores are joined to the schedule by date plus home/away team;
rows without a matching game come back with ``game_id`` and ``opponent_id``
set to None.

Example:
    >>> repo = SqlGameLogRepository()
    >>> player = repo.find_player("Nikola Jokic", Sport.NBA)
    >>> games = repo.fetch_observations(player, ObservationQuery(season=2024, limit=10))
"""

from __future__ import annotations

import re
import unicodedata
from collections.abc import Callable, Generator
from contextlib import AbstractContextManager, contextmanager
from datetime import date
from typing import Any

from sqlalchemy import and_, func, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from prop_insights.data.db import session_scope
from prop_insights.data.models import (
    GAME_STATUS_COMPLETED,
    Game,
    NflPlayerGameStats,
    Player,
    PlayerGameStats,
    Team,
    TeamBoxScore,
)
from prop_insights.logging import get_logger
from prop_insights.types import (
    EntityKind,
    EntityRef,
    GameObservation,
    GameResult,
    ObservationQuery,
    RepositoryError,
    ScheduledGame,
    Season,
    Sport,
    TeamGameObservation,
    TeamId,
)

logger = get_logger(__name__)

_PUNCTUATION = re.compile(r"[^\w\s]")
_WHITESPACE = re.compile(r"\s+")

# Box score model and participation column per sport
_PLAYER_TABLES: dict[Sport, tuple[Any, str]] = {
    Sport.NBA: (PlayerGameStats, "minutes"),
    Sport.NFL: (NflPlayerGameStats, "snaps"),
}


def normalize_person_name(name: str) -> str:
    """Strip accents and punctuation, lowercase and collapse whitespace.

    Example:
        >>> normalize_person_name("  Nikola Jokić ")
        'nikola jokic'
        >>> normalize_person_name("Shai Gilgeous-Alexander")
        'shai gilgeousalexander'
    """
    decomposed = unicodedata.normalize("NFD", str(name))
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    stripped = _PUNCTUATION.sub("", stripped).lower()
    return _WHITESPACE.sub(" ", stripped).strip()


def _reversed_name(name: str) -> str:
    parts = name.split(" ")
    if len(parts) < 2:
        return name
    return " ".join([parts[-1], *parts[:-1]])


def _as_int_id(value: str | int) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    text = str(value).strip()
    return int(text) if text.isdigit() else None


def _game_involving(team_id: TeamId) -> Any:
    return or_(Game.home_team_id == team_id, Game.away_team_id == team_id)


class SqlGameLogRepository:
    """Read game logs from the SQLite store.

    Attributes:
        session_factory: Callable returning a session context manager,
            ``session_scope`` by default.
    """

    def __init__(
        self,
        session_factory: Callable[[], AbstractContextManager[Session]] | None = None,
    ) -> None:
        self.session_factory = session_factory or session_scope

    @contextmanager
    def _session(self, operation: str) -> Generator[Session, None, None]:
        """Open a session, translating driver errors into RepositoryError."""
        try:
            with self.session_factory() as session:
                yield session
        except SQLAlchemyError as e:
            logger.error("Repository {} failed: {}", operation, e)
            raise RepositoryError(f"{operation} failed: {e}") from e

    # -------------------------------------------------------------------------
    # Observations
    # -------------------------------------------------------------------------

    def fetch_observations(
        self, entity: EntityRef, query: ObservationQuery
    ) -> list[GameObservation]:
        """Fetch one entity's game log, newest first."""
        if entity.kind is EntityKind.TEAM:
            return self._fetch_team_observations(entity, query)
        return self._fetch_player_observations(entity, query)

    def _fetch_player_observations(
        self, entity: EntityRef, query: ObservationQuery
    ) -> list[GameObservation]:
        model, participation = _PLAYER_TABLES[entity.sport]

        stmt = (
            select(model, Game, Player.position)
            .join(Game, model.game_id == Game.game_id)
            .join(Player, model.player_id == Player.player_id)
            .where(model.player_id == entity.entity_id)
            .order_by(Game.game_date.desc(), Game.game_id.desc())
        )
        if query.season is not None:
            stmt = stmt.where(Game.season == query.season)
        if query.opponent_id is not None:
            stmt = stmt.where(
                or_(
                    and_(
                        Game.home_team_id == query.opponent_id,
                        model.team_id == Game.away_team_id,
                    ),
                    and_(
                        Game.away_team_id == query.opponent_id,
                        model.team_id == Game.home_team_id,
                    ),
                )
            )
        if query.limit is not None:
            stmt = stmt.limit(query.limit)

        with self._session("fetch_observations") as session:
            rows = session.execute(stmt).all()
            return [
                self._player_observation(stats, game, position, participation)
                for stats, game, position in rows
            ]

    @staticmethod
    def _player_observation(
        stats: Any,
        game: Game,
        position: str | None,
        participation: str,
    ) -> GameObservation:
        return GameObservation(
            game_id=game.game_id,
            game_date=game.game_date,
            season=game.season,
            entity_id=stats.player_id,
            team_id=stats.team_id,
            opponent_id=game.opponent_of(stats.team_id),
            is_home=stats.team_id == game.home_team_id,
            participation=getattr(stats, participation),
            stats=stats.stat_line(),
            position=position,
        )

    def _team_box_statement(self) -> Any:
        game_match = and_(
            Game.game_date == TeamBoxScore.game_date,
            Game.sport == Sport.NBA.value,
            _game_involving(TeamBoxScore.team_id),
        )
        return select(TeamBoxScore, Game).outerjoin(Game, game_match)

    def _fetch_team_observations(
        self, entity: EntityRef, query: ObservationQuery
    ) -> list[GameObservation]:
        if entity.sport is not Sport.NBA:
            return []

        stmt = (
            self._team_box_statement()
            .where(TeamBoxScore.team_id == entity.entity_id)
            .order_by(TeamBoxScore.game_date.desc())
        )
        if query.season is not None:
            stmt = stmt.where(TeamBoxScore.season == query.season)
        if query.opponent_id is not None:
            stmt = stmt.where(_game_involving(query.opponent_id))
        if query.limit is not None:
            stmt = stmt.limit(query.limit)

        with self._session("fetch_observations") as session:
            observations = []
            for box, game in session.execute(stmt).all():
                observations.append(
                    GameObservation(
                        game_id=game.game_id if game else None,
                        game_date=box.game_date,
                        season=box.season,
                        entity_id=box.team_id,
                        team_id=box.team_id,
                        opponent_id=game.opponent_of(box.team_id) if game else None,
                        is_home=(game.home_team_id == box.team_id) if game else None,
                        participation=None,
                        stats=box.stat_line(),
                    )
                )
            return observations

    def fetch_league_observations(
        self, sport: Sport, season: Season
    ) -> list[GameObservation]:
        """Every player row in a season, joined with position and opponent."""
        model, participation = _PLAYER_TABLES[sport]
        stmt = (
            select(model, Game, Player.position)
            .join(Game, model.game_id == Game.game_id)
            .join(Player, model.player_id == Player.player_id)
            .where(Game.season == season, Game.sport == sport.value)
            .order_by(Game.game_date.desc())
        )
        with self._session("fetch_league_observations") as session:
            rows = session.execute(stmt).all()
            logger.debug("Fetched {} {} player rows for {}", len(rows), sport.value, season)
            return [
                self._player_observation(stats, game, position, participation)
                for stats, game, position in rows
            ]

    def fetch_team_box_scores(
        self, sport: Sport, season: Season
    ) -> list[TeamGameObservation]:
        """Every team box score in a season; unmatched rows keep None links."""
        if sport is not Sport.NBA:
            return []

        stmt = (
            self._team_box_statement()
            .where(TeamBoxScore.season == season)
            .order_by(TeamBoxScore.game_date.desc())
        )
        with self._session("fetch_team_box_scores") as session:
            return [
                TeamGameObservation(
                    team_id=box.team_id,
                    season=box.season,
                    game_date=box.game_date,
                    game_id=game.game_id if game else None,
                    opponent_id=game.opponent_of(box.team_id) if game else None,
                    stats=box.stat_line(),
                )
                for box, game in session.execute(stmt).all()
            ]

    # -------------------------------------------------------------------------
    # Results
    # -------------------------------------------------------------------------

    @staticmethod
    def _completed() -> Any:
        return and_(
            Game.status == GAME_STATUS_COMPLETED,
            Game.home_score.is_not(None),
            Game.away_score.is_not(None),
        )

    @staticmethod
    def _result(game: Game, team_id: TeamId) -> GameResult:
        is_home = game.home_team_id == team_id
        return GameResult(
            game_id=game.game_id,
            game_date=game.game_date,
            season=game.season,
            team_id=team_id,
            opponent_id=game.away_team_id if is_home else game.home_team_id,
            is_home=is_home,
            team_score=int(game.home_score if is_home else game.away_score),
            opponent_score=int(game.away_score if is_home else game.home_score),
        )

    def fetch_team_results(
        self, team_id: TeamId, season: Season, limit: int | None = None
    ) -> list[GameResult]:
        stmt = (
            select(Game)
            .where(self._completed(), _game_involving(team_id), Game.season == season)
            .order_by(Game.game_date.desc())
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        with self._session("fetch_team_results") as session:
            return [self._result(game, team_id) for game in session.scalars(stmt)]

    def fetch_head_to_head(
        self, team_id: TeamId, opponent_id: TeamId, limit: int | None = None
    ) -> list[GameResult]:
        meetings = or_(
            and_(Game.home_team_id == team_id, Game.away_team_id == opponent_id),
            and_(Game.home_team_id == opponent_id, Game.away_team_id == team_id),
        )
        stmt = (
            select(Game)
            .where(self._completed(), meetings)
            .order_by(Game.game_date.desc())
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        with self._session("fetch_head_to_head") as session:
            return [self._result(game, team_id) for game in session.scalars(stmt)]

    # -------------------------------------------------------------------------
    # Lookup
    # -------------------------------------------------------------------------

    def most_recent_season(self, sport: Sport) -> Season | None:
        stmt = select(func.max(Game.season)).where(Game.sport == sport.value)
        with self._session("most_recent_season") as session:
            season = session.scalar(stmt)
        return int(season) if season is not None else None

    def find_player(self, name_or_id: str | int, sport: Sport) -> EntityRef | None:
        """Resolve a player by id, full name or "last first" name.

        Names are compared after stripping accents and punctuation.
        """
        player_id = _as_int_id(name_or_id)
        with self._session("find_player") as session:
            if player_id is not None:
                player = session.get(Player, player_id)
                if player is None or player.sport != sport.value:
                    return None
                return self._player_ref(player, sport)

            target = normalize_person_name(str(name_or_id))
            if not target:
                return None
            candidates = session.scalars(
                select(Player)
                .where(Player.sport == sport.value)
                .order_by(Player.player_id)
            ).all()
            matches = [
                player
                for player in candidates
                if target
                in (
                    normalize_person_name(player.full_name),
                    _reversed_name(normalize_person_name(player.full_name)),
                )
            ]
            if not matches:
                return None
            if len(matches) > 1:
                logger.warning(
                    "{} players match {!r}, using player_id={}",
                    len(matches),
                    name_or_id,
                    matches[0].player_id,
                )
            return self._player_ref(matches[0], sport)

    @staticmethod
    def _player_ref(player: Player, sport: Sport) -> EntityRef:
        return EntityRef(
            kind=EntityKind.PLAYER,
            entity_id=player.player_id,
            sport=sport,
            name=player.full_name,
            team_id=player.team_id,
            position=player.position,
        )

    def find_team(self, name_or_id: str | int, sport: Sport) -> EntityRef | None:
        """Resolve a team by id, abbreviation, full name, city or nickname."""
        team_id = _as_int_id(name_or_id)
        with self._session("find_team") as session:
            if team_id is not None:
                team = session.get(Team, team_id)
                if team is None or team.sport != sport.value:
                    return None
                return self._team_ref(team, sport)

            target = normalize_person_name(str(name_or_id))
            if not target:
                return None
            teams = session.scalars(
                select(Team).where(Team.sport == sport.value).order_by(Team.team_id)
            ).all()
            for team in teams:
                full = normalize_person_name(team.full_name)
                keys = {
                    team.abbreviation.lower(),
                    full,
                    full.split(" ")[-1],
                    normalize_person_name(team.city or ""),
                }
                if target in keys:
                    return self._team_ref(team, sport)
            return None

    @staticmethod
    def _team_ref(team: Team, sport: Sport) -> EntityRef:
        return EntityRef(
            kind=EntityKind.TEAM,
            entity_id=team.team_id,
            sport=sport,
            name=team.full_name,
            team_id=team.team_id,
        )

    def next_game(
        self, team_id: TeamId, after: date | None = None
    ) -> ScheduledGame | None:
        """The team's earliest game that is not yet completed."""
        stmt = select(Game).where(
            _game_involving(team_id), Game.status != GAME_STATUS_COMPLETED
        )
        if after is not None:
            stmt = stmt.where(Game.game_date >= after)
        stmt = stmt.order_by(Game.game_date.asc()).limit(1)
        with self._session("next_game") as session:
            game = session.scalars(stmt).first()
            if game is None:
                return None
            return ScheduledGame(
                game_id=game.game_id,
                game_date=game.game_date,
                season=game.season,
                team_id=team_id,
                opponent_id=game.opponent_of(team_id),
                is_home=game.home_team_id == team_id,
            )

    def next_opponent(self, team_id: TeamId, after: date | None = None) -> TeamId | None:
        """Opponent in the team's earliest game that is not yet completed."""
        game = self.next_game(team_id, after)
        return game.opponent_id if game else None
