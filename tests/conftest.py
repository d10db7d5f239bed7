"""Shared pytest fixtures for prop insights tests.

This module contains fixtures used across multiple test modules:
- Configuration fixtures (test settings with temporary directories)
- Observation builders (player games, team box scores, final results)
- An in-memory repository that counts calls and can inject delays/failures
- A seeded SQLite database for repository, CLI and integration tests

Example:
    def test_something(fake_repo, make_obs):
        fake_repo.add_games(player, [make_obs(date(2024, 1, 1), {"pts": 20})])
"""

from __future__ import annotations

import os
import threading
import time
from collections import Counter, defaultdict
from collections.abc import Callable, Generator
from datetime import date, timedelta
from pathlib import Path
from typing import Any

import pytest

from prop_insights.config import Settings, reset_settings
from prop_insights.types import (
    EntityKind,
    EntityRef,
    GameObservation,
    GameResult,
    ObservationQuery,
    ScheduledGame,
    Season,
    Sport,
    TeamGameObservation,
    TeamId,
)

# =============================================================================
# Sample Ids
# =============================================================================

LAKERS = 1610612747
CELTICS = 1610612738
WARRIORS = 1610612744
HEAT = 1610612748

LEBRON = 2544
TATUM = 1628369


# =============================================================================
# Configuration
# =============================================================================


_ENV_KEYS = ("PROPS_DB_PATH", "LOG_DIR", "LOG_LEVEL", "INSIGHT_TIMEOUT")


@pytest.fixture
def tmp_data_dir(tmp_path: Path) -> Path:
    """Create and return temporary data directory."""
    data_dir = tmp_path / "data"
    data_dir.mkdir()
    return data_dir


@pytest.fixture
def test_settings(tmp_data_dir: Path) -> Generator[Settings, None, None]:
    """Provide test settings with temporary directories.

    Automatically resets the settings singleton and database engine after
    the test.
    """
    from prop_insights.data.db import reset_engine

    os.environ["PROPS_DB_PATH"] = str(tmp_data_dir / "test.db")
    os.environ["LOG_DIR"] = str(tmp_data_dir / "logs")
    os.environ["LOG_LEVEL"] = "WARNING"

    reset_settings()
    reset_engine()
    from prop_insights.config import get_settings

    settings = get_settings()
    settings.ensure_directories()

    yield settings

    # Cleanup
    reset_engine()
    reset_settings()
    for key in _ENV_KEYS:
        os.environ.pop(key, None)


# =============================================================================
# Builders
# =============================================================================


def make_observation(
    game_date: date,
    stats: dict[str, float | None] | None = None,
    *,
    season: Season = 2024,
    minutes: str | int | None = "32",
    entity_id: int = LEBRON,
    team_id: TeamId | None = LAKERS,
    opponent_id: TeamId | None = CELTICS,
    is_home: bool | None = True,
    game_id: str | None = "auto",
    position: str | None = "F",
) -> GameObservation:
    """Build one player game. ``game_id="auto"`` derives an id from the date."""
    if game_id == "auto":
        game_id = f"{season}-{game_date.isoformat()}-{min(team_id or 0, opponent_id or 0)}"
    return GameObservation(
        game_id=game_id,
        game_date=game_date,
        season=season,
        entity_id=entity_id,
        team_id=team_id,
        opponent_id=opponent_id,
        is_home=is_home,
        participation=minutes,
        stats=stats or {},
        position=position,
    )


def make_series(
    values: list[float],
    column: str = "pts",
    *,
    start: date = date(2024, 3, 31),
    step_days: int = 2,
    **kwargs: Any,
) -> list[GameObservation]:
    """Build games newest first: values[0] is the most recent game."""
    return [
        make_observation(
            start - timedelta(days=index * step_days), {column: value}, **kwargs
        )
        for index, value in enumerate(values)
    ]


def make_box(
    team_id: TeamId,
    opponent_id: TeamId | None,
    game_date: date,
    *,
    season: Season = 2024,
    game_id: str | None = "auto",
    **stats: float | None,
) -> TeamGameObservation:
    """Build one team box score with sensible defaults for missing columns."""
    if game_id == "auto":
        pair = sorted([team_id, opponent_id or 0])
        game_id = f"{season}-{game_date.isoformat()}-{pair[0]}-{pair[1]}"
    defaults: dict[str, float | None] = {
        "pts": 110,
        "fga": 88,
        "fgm": 41,
        "fta": 22,
        "oreb": 10,
        "tov": 13,
        "stl": 7,
        "pf": 19,
        "reb": 44,
    }
    defaults.update(stats)
    return TeamGameObservation(
        team_id=team_id,
        season=season,
        game_date=game_date,
        game_id=game_id,
        opponent_id=opponent_id,
        stats=defaults,
    )


def make_result(
    team_id: TeamId,
    opponent_id: TeamId,
    game_date: date,
    team_score: int,
    opponent_score: int,
    *,
    season: Season = 2024,
    is_home: bool = True,
) -> GameResult:
    return GameResult(
        game_id=f"{season}-{game_date.isoformat()}-{team_id}-{opponent_id}",
        game_date=game_date,
        season=season,
        team_id=team_id,
        opponent_id=opponent_id,
        is_home=is_home,
        team_score=team_score,
        opponent_score=opponent_score,
    )


@pytest.fixture
def make_obs() -> Callable[..., GameObservation]:
    """Factory for player game observations."""
    return make_observation


@pytest.fixture
def make_games() -> Callable[..., list[GameObservation]]:
    """Factory for a newest-first series of single-stat games."""
    return make_series


@pytest.fixture
def box() -> Callable[..., TeamGameObservation]:
    """Factory for team box scores."""
    return make_box


@pytest.fixture
def result() -> Callable[..., GameResult]:
    """Factory for final results."""
    return make_result


# =============================================================================
# Entities
# =============================================================================


@pytest.fixture
def lebron() -> EntityRef:
    return EntityRef(
        EntityKind.PLAYER, LEBRON, Sport.NBA, "LeBron James", LAKERS, "F"
    )


@pytest.fixture
def lakers() -> EntityRef:
    return EntityRef(
        EntityKind.TEAM, LAKERS, Sport.NBA, "Los Angeles Lakers", LAKERS
    )


@pytest.fixture
def celtics() -> EntityRef:
    return EntityRef(
        EntityKind.TEAM, CELTICS, Sport.NBA, "Boston Celtics", CELTICS
    )


# =============================================================================
# In-memory Repository
# =============================================================================


class FakeRepository:
    """In-memory ``GameLogRepository`` for unit tests.

    Every public method records a call. ``delays`` and ``failures`` map a
    method name to seconds to sleep or an exception to raise.
    """

    def __init__(self, current_season: Season | None = 2024) -> None:
        self.current_season = current_season
        self.players: dict[int, EntityRef] = {}
        self.teams: dict[int, EntityRef] = {}
        self.abbreviations: dict[str, int] = {}
        self.games: dict[tuple[EntityKind, int], list[GameObservation]] = defaultdict(list)
        self.box_scores: list[TeamGameObservation] = []
        self.results: list[GameResult] = []
        self.upcoming: dict[TeamId, tuple[date, TeamId]] = {}
        self.upcoming_away: set[TeamId] = set()
        self.calls: Counter[str] = Counter()
        self.delays: dict[str, float] = {}
        self.failures: dict[str, Exception] = {}
        self._lock = threading.Lock()

    # Seeding -----------------------------------------------------------------

    def add_player(self, entity: EntityRef) -> EntityRef:
        self.players[entity.entity_id] = entity
        return entity

    def add_team(self, entity: EntityRef, abbreviation: str = "") -> EntityRef:
        self.teams[entity.entity_id] = entity
        if abbreviation:
            self.abbreviations[abbreviation.lower()] = entity.entity_id
        return entity

    def add_games(self, entity: EntityRef, games: list[GameObservation]) -> None:
        self.games[(entity.kind, entity.entity_id)].extend(games)

    @property
    def total_calls(self) -> int:
        return sum(self.calls.values())

    def _record(self, method: str) -> None:
        with self._lock:
            self.calls[method] += 1
        if method in self.delays:
            time.sleep(self.delays[method])
        if method in self.failures:
            raise self.failures[method]

    # GameLogRepository -------------------------------------------------------

    def fetch_observations(
        self, entity: EntityRef, query: ObservationQuery
    ) -> list[GameObservation]:
        self._record("fetch_observations")
        rows = list(self.games[(entity.kind, entity.entity_id)])
        if query.season is not None:
            rows = [obs for obs in rows if obs.season == query.season]
        if query.opponent_id is not None:
            rows = [obs for obs in rows if obs.opponent_id == query.opponent_id]
        rows.sort(key=lambda obs: obs.game_date, reverse=True)
        return rows[: query.limit] if query.limit is not None else rows

    def fetch_league_observations(
        self, sport: Sport, season: Season
    ) -> list[GameObservation]:
        self._record("fetch_league_observations")
        return [
            obs
            for (kind, entity_id), rows in self.games.items()
            if kind is EntityKind.PLAYER
            and entity_id in self.players
            and self.players[entity_id].sport is sport
            for obs in rows
            if obs.season == season
        ]

    def fetch_team_box_scores(
        self, sport: Sport, season: Season
    ) -> list[TeamGameObservation]:
        self._record("fetch_team_box_scores")
        if sport is not Sport.NBA:
            return []
        return [row for row in self.box_scores if row.season == season]

    def fetch_team_results(
        self, team_id: TeamId, season: Season, limit: int | None = None
    ) -> list[GameResult]:
        self._record("fetch_team_results")
        rows = sorted(
            (r for r in self.results if r.team_id == team_id and r.season == season),
            key=lambda r: r.game_date,
            reverse=True,
        )
        return rows[:limit] if limit is not None else rows

    def fetch_head_to_head(
        self, team_id: TeamId, opponent_id: TeamId, limit: int | None = None
    ) -> list[GameResult]:
        self._record("fetch_head_to_head")
        rows = sorted(
            (
                r
                for r in self.results
                if r.team_id == team_id and r.opponent_id == opponent_id
            ),
            key=lambda r: r.game_date,
            reverse=True,
        )
        return rows[:limit] if limit is not None else rows

    def most_recent_season(self, sport: Sport) -> Season | None:
        self._record("most_recent_season")
        return self.current_season

    def find_player(self, name_or_id: str | int, sport: Sport) -> EntityRef | None:
        self._record("find_player")
        for player in self.players.values():
            if player.sport is not sport:
                continue
            if str(player.entity_id) == str(name_or_id):
                return player
            if player.name.lower() == str(name_or_id).strip().lower():
                return player
        return None

    def find_team(self, name_or_id: str | int, sport: Sport) -> EntityRef | None:
        self._record("find_team")
        key = str(name_or_id).strip().lower()
        team_id = self.abbreviations.get(key)
        for team in self.teams.values():
            if team.sport is not sport:
                continue
            if team.entity_id == team_id or str(team.entity_id) == key:
                return team
            if team.name.lower() == key:
                return team
        return None

    def next_game(
        self, team_id: TeamId, after: date | None = None
    ) -> ScheduledGame | None:
        self._record("next_game")
        upcoming = self.upcoming.get(team_id)
        if upcoming is None:
            return None
        game_date, opponent_id = upcoming
        if after is not None and game_date < after:
            return None
        return ScheduledGame(
            game_id=f"upcoming-{team_id}",
            game_date=game_date,
            season=self.current_season or game_date.year,
            team_id=team_id,
            opponent_id=opponent_id,
            is_home=team_id not in self.upcoming_away,
        )

    def next_opponent(self, team_id: TeamId, after: date | None = None) -> TeamId | None:
        self._record("next_opponent")
        upcoming = self.upcoming.get(team_id)
        if upcoming is None:
            return None
        game_date, opponent_id = upcoming
        if after is not None and game_date < after:
            return None
        return opponent_id


@pytest.fixture
def fake_repo(
    test_settings: Settings, lebron: EntityRef, lakers: EntityRef, celtics: EntityRef
) -> FakeRepository:
    """In-memory repository with LeBron, the Lakers and the Celtics registered."""
    repo = FakeRepository()
    repo.add_player(lebron)
    repo.add_team(lakers, "LAL")
    repo.add_team(celtics, "BOS")
    return repo


@pytest.fixture
def make_ctx(
    fake_repo: FakeRepository, test_settings: Settings, lebron: EntityRef
) -> Callable[..., Any]:
    """Factory for an ``InsightContext`` over the fake repository.

    Defaults to LeBron James, points, no line, no opponent, season 2024.
    """
    from prop_insights.engine.calculators import LineQuery, normalize_direction
    from prop_insights.engine.catalog import get_catalog
    from prop_insights.engine.seasons import SeasonContext
    from prop_insights.insights.base import InsightContext

    def _make(
        entity: EntityRef | None = None,
        stat: str = "pts",
        line: float | None = None,
        direction: str | None = None,
        opponent: EntityRef | None = None,
        game_date: date | None = None,
        season: Season = 2024,
    ) -> InsightContext:
        entity = entity or lebron
        resolved = normalize_direction(direction)
        return InsightContext(
            entity=entity,
            spec=get_catalog().resolve(stat, entity.sport),
            season=SeasonContext(entity.sport, season),
            repository=fake_repo,
            settings=test_settings,
            query=LineQuery.from_raw(line, resolved),
            direction=resolved,
            opponent=opponent,
            game_date=game_date,
        )

    return _make


# =============================================================================
# SQLite League
# =============================================================================


def seed_league(session: Any) -> None:
    """Populate a small two-season NBA league.

    Lakers (LAL) and Celtics (BOS) play each other every other day, with
    LeBron James scoring 20 + game index points. Warriors and Heat play on
    the same days. One team box score row has no schedule match.
    """
    from prop_insights.data.models import (
        GAME_STATUS_COMPLETED,
        GAME_STATUS_SCHEDULED,
        Game,
        Player,
        PlayerGameStats,
        Team,
        TeamBoxScore,
    )

    session.add_all(
        [
            Team(team_id=LAKERS, sport="nba", abbreviation="LAL",
                 full_name="Los Angeles Lakers", city="Los Angeles"),
            Team(team_id=CELTICS, sport="nba", abbreviation="BOS",
                 full_name="Boston Celtics", city="Boston"),
            Team(team_id=WARRIORS, sport="nba", abbreviation="GSW",
                 full_name="Golden State Warriors", city="San Francisco"),
            Team(team_id=HEAT, sport="nba", abbreviation="MIA",
                 full_name="Miami Heat", city="Miami"),
        ]
    )
    session.add_all(
        [
            Player(player_id=LEBRON, sport="nba", full_name="LeBron James",
                   position="F", team_id=LAKERS),
            Player(player_id=TATUM, sport="nba", full_name="Jayson Tatum",
                   position="F-G", team_id=CELTICS),
            Player(player_id=201939, sport="nba", full_name="Stephen Curry",
                   position="G", team_id=WARRIORS),
            Player(player_id=1628389, sport="nba", full_name="Bam Adebayo",
                   position="C", team_id=HEAT),
        ]
    )
    session.flush()

    # Season 2023: four Lakers-Celtics games; season 2024: two so far
    schedule = [
        (2023, date(2024, 3, 1)),
        (2023, date(2024, 3, 3)),
        (2023, date(2024, 3, 5)),
        (2023, date(2024, 3, 7)),
        (2024, date(2024, 11, 1)),
        (2024, date(2024, 11, 3)),
    ]
    for index, (season, day) in enumerate(schedule):
        lakers_home = index % 2 == 0
        game_id = f"00{season}{index:04d}"
        home, away = (LAKERS, CELTICS) if lakers_home else (CELTICS, LAKERS)
        lakers_pts = 110 + index
        celtics_pts = 108 if index % 3 else 120
        session.add(
            Game(
                game_id=game_id,
                sport="nba",
                season=season,
                game_date=day,
                home_team_id=home,
                away_team_id=away,
                home_score=lakers_pts if lakers_home else celtics_pts,
                away_score=celtics_pts if lakers_home else lakers_pts,
                status=GAME_STATUS_COMPLETED,
            )
        )
        other_id = f"01{season}{index:04d}"
        session.add(
            Game(
                game_id=other_id,
                sport="nba",
                season=season,
                game_date=day,
                home_team_id=WARRIORS,
                away_team_id=HEAT,
                home_score=115,
                away_score=105,
                status=GAME_STATUS_COMPLETED,
            )
        )
        session.flush()

        for player_id, team_id, pts in (
            (LEBRON, LAKERS, 20 + index),
            (TATUM, CELTICS, 25),
            (201939, WARRIORS, 30),
            (1628389, HEAT, 15),
        ):
            session.add(
                PlayerGameStats(
                    game_id=game_id if team_id in (LAKERS, CELTICS) else other_id,
                    player_id=player_id,
                    team_id=team_id,
                    minutes="34:10" if player_id != 1628389 else "9",
                    pts=pts, reb=7, ast=8, stl=1, blk=1, tov=3,
                    fgm=9, fga=19, fg3m=2, fg3a=6, ftm=4, fta=5,
                    oreb=1, dreb=6, pf=2,
                )
            )
        for team_id, fga, pts in (
            (LAKERS, 90, lakers_pts),
            (CELTICS, 85, celtics_pts),
            (WARRIORS, 95, 115),
            (HEAT, 80, 105),
        ):
            session.add(
                TeamBoxScore(
                    team_id=team_id, season=season, game_date=day,
                    pts=pts, reb=44, ast=25, stl=8, blk=5, tov=14,
                    fgm=40, fga=fga, fg3m=12, fg3a=35, ftm=18, fta=22,
                    oreb=10, dreb=34, pf=20,
                )
            )

    # Box score from a feed day with no schedule row
    session.add(
        TeamBoxScore(
            team_id=LAKERS, season=2024, game_date=date(2024, 10, 25),
            pts=100, reb=40, ast=20, stl=5, blk=3, tov=12,
            fgm=38, fga=88, fg3m=10, fg3a=30, ftm=14, fta=18,
            oreb=9, dreb=31, pf=18,
        )
    )
    # Upcoming game
    session.add(
        Game(
            game_id="0020249999",
            sport="nba",
            season=2024,
            game_date=date(2024, 11, 6),
            home_team_id=WARRIORS,
            away_team_id=LAKERS,
            status=GAME_STATUS_SCHEDULED,
        )
    )


@pytest.fixture
def seeded_db(test_settings: Settings) -> Generator[Settings, None, None]:
    """SQLite file with the sample league loaded."""
    from prop_insights.data import init_db, session_scope

    init_db()
    with session_scope() as session:
        seed_league(session)
    yield test_settings


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers."""
    config.addinivalue_line("markers", "integration: marks tests as integration tests")
