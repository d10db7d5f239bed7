"""Team form insights built from final scores.

Venue insights look up the team's next scheduled game to decide whether
tonight is a home or an away game.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from prop_insights.insights.base import (
    Insight,
    InsightContext,
    InsightResult,
    fmt,
    status_from_hit_rate,
)
from prop_insights.logging import get_logger
from prop_insights.types import EntityKind, GameResult, ScheduledGame

logger = get_logger(__name__)

HEAD_TO_HEAD_GAMES = 8
VENUE_GAMES = 5


def _record(results: Sequence[GameResult]) -> tuple[int, int]:
    wins = sum(1 for game in results if game.won)
    return wins, len(results) - wins


def _result_rows(results: Sequence[GameResult]) -> list[dict[str, Any]]:
    return [
        {
            "game_id": game.game_id,
            "game_date": game.game_date,
            "season": game.season,
            "opponent_id": game.opponent_id,
            "is_home": game.is_home,
            "team_score": game.team_score,
            "opponent_score": game.opponent_score,
            "won": game.won,
        }
        for game in results
    ]


def _seasons(results: Sequence[GameResult]) -> tuple[int, ...]:
    return tuple(dict.fromkeys(game.season for game in results))


class TeamLast10Record(Insight):
    """Win-loss record over the last 10 final games.

    A short current season is topped up with the previous season's most
    recent games.
    """

    insight_id = "team_last10_record"
    title = "Last 10 Record"
    kinds = frozenset({EntityKind.TEAM})

    def compute(self, ctx: InsightContext) -> InsightResult:
        size = ctx.settings.hit_rate_window
        team_id = ctx.entity.entity_id
        current, previous = ctx.season.seasons(2)

        results = ctx.repository.fetch_team_results(team_id, current, limit=size)
        if len(results) < size:
            needed = size - len(results)
            logger.info(
                "Team {} has {} final games in {}, adding up to {} from {}",
                team_id,
                len(results),
                current,
                needed,
                previous,
            )
            results = [
                *results,
                *ctx.repository.fetch_team_results(team_id, previous, limit=needed),
            ]

        if not results:
            return self.insufficient(
                f"No completed games on record for {ctx.entity.name}.",
                fields=("wins", "losses", "win_pct"),
            )

        wins, losses = _record(results)
        win_pct = wins / len(results)
        scored = sum(game.team_score for game in results) / len(results)
        allowed = sum(game.opponent_score for game in results) / len(results)
        narrative = (
            f"{ctx.entity.name} are {wins}-{losses} over their last "
            f"{len(results)} games, scoring {fmt(scored)} and allowing "
            f"{fmt(allowed)} per game."
        )
        borrowed = sum(1 for game in results if game.season != current)
        if borrowed:
            narrative += f" Includes {borrowed} games from {previous}."

        return self.result(
            narrative,
            status_from_hit_rate(win_pct),
            value=f"{wins}-{losses}",
            fields={
                "wins": wins,
                "losses": losses,
                "win_pct": win_pct,
                "points_for": scored,
                "points_against": allowed,
                "borrowed_games": borrowed,
            },
            details=_result_rows(results),
            seasons_used=_seasons(results),
        )


class HeadToHead(Insight):
    """Win-loss record in the most recent meetings, across seasons."""

    insight_id = "head_to_head"
    title = "Head to Head"
    kinds = frozenset({EntityKind.TEAM})
    requires_opponent = True

    def compute(self, ctx: InsightContext) -> InsightResult:
        assert ctx.opponent is not None
        results = ctx.repository.fetch_head_to_head(
            ctx.entity.entity_id, ctx.opponent.entity_id, limit=HEAD_TO_HEAD_GAMES
        )
        opponent = ctx.opponent.name or f"team {ctx.opponent.entity_id}"
        if not results:
            return self.insufficient(
                f"{ctx.entity.name} have no completed games against {opponent}.",
                fields=("wins", "losses", "win_pct"),
            )

        wins, losses = _record(results)
        margin = sum(g.team_score - g.opponent_score for g in results) / len(results)
        return self.result(
            f"{ctx.entity.name} are {wins}-{losses} in the last {len(results)} "
            f"meetings with {opponent}, with an average margin of {margin:+.1f}.",
            status_from_hit_rate(wins / len(results)),
            value=f"{wins}-{losses}",
            fields={
                "wins": wins,
                "losses": losses,
                "win_pct": wins / len(results),
                "average_margin": margin,
            },
            details=_result_rows(results),
            seasons_used=_seasons(results),
        )


def _next_game(ctx: InsightContext) -> ScheduledGame | None:
    return ctx.repository.next_game(ctx.entity.entity_id, ctx.game_date)


def _at_venue(results: Sequence[GameResult], is_home: bool) -> list[GameResult]:
    return [game for game in results if game.is_home is is_home]


class VenueWinRate(Insight):
    """Win rate at tonight's venue, home or away.

    Falls back to the previous season only when the current season has no
    final games at that venue.
    """

    insight_id = "home_away_win_rate"
    title = "Home vs Away Win Rate"
    kinds = frozenset({EntityKind.TEAM})

    def compute(self, ctx: InsightContext) -> InsightResult:
        names = ("venue", "wins", "losses", "win_pct")
        upcoming = _next_game(ctx)
        if upcoming is None:
            return self.insufficient(
                f"No upcoming game found for {ctx.entity.name}.", fields=names
            )

        venue = upcoming.venue
        team_id = ctx.entity.entity_id
        current, previous = ctx.season.seasons(2)
        games = _at_venue(
            ctx.repository.fetch_team_results(team_id, current), upcoming.is_home
        )
        season = current
        if not games:
            logger.info(
                "No {} games for team {} in {}, using {}",
                venue,
                team_id,
                current,
                previous,
            )
            games = _at_venue(
                ctx.repository.fetch_team_results(team_id, previous), upcoming.is_home
            )
            season = previous
        if not games:
            return self.insufficient(
                f"No {venue} games on record for {ctx.entity.name} "
                "this season or last.",
                fields=names,
            )

        wins, losses = _record(games)
        win_pct = wins / len(games)
        narrative = (
            f"{ctx.entity.name} play {venue.upper()} on "
            f"{upcoming.game_date:%b %d} and are {wins}-{losses} ({win_pct:.0%}) "
            f"in {venue} games in {season}."
        )
        if season != current:
            narrative += " No current-season games there yet."
        return self.result(
            narrative,
            status_from_hit_rate(win_pct),
            value=f"{wins}-{losses}",
            fields={
                "venue": venue,
                "wins": wins,
                "losses": losses,
                "win_pct": win_pct,
                "season": season,
            },
            seasons_used=(season,),
        )


class VenueLast5(Insight):
    """Results of the last 5 games at tonight's venue.

    A current season with fewer than 5 such games is topped up with the
    previous season's most recent ones.
    """

    insight_id = "home_away_last5"
    title = "Last 5 at Venue"
    kinds = frozenset({EntityKind.TEAM})

    def compute(self, ctx: InsightContext) -> InsightResult:
        names = ("venue", "wins", "losses")
        upcoming = _next_game(ctx)
        if upcoming is None:
            return self.insufficient(
                f"No upcoming game found for {ctx.entity.name}.", fields=names
            )

        team_id = ctx.entity.entity_id
        current, previous = ctx.season.seasons(2)
        games = _at_venue(
            ctx.repository.fetch_team_results(team_id, current), upcoming.is_home
        )
        if len(games) < VENUE_GAMES:
            games = [
                *games,
                *_at_venue(
                    ctx.repository.fetch_team_results(team_id, previous),
                    upcoming.is_home,
                ),
            ]
        games = games[:VENUE_GAMES]
        venue = upcoming.venue
        if not games:
            return self.insufficient(
                f"No recent {venue} games found for {ctx.entity.name}.", fields=names
            )

        wins, losses = _record(games)
        return self.result(
            f"{ctx.entity.name} are {wins}-{losses} in their last {len(games)} "
            f"{venue} games.",
            status_from_hit_rate(wins / len(games)),
            value=f"{wins}-{losses}",
            fields={"venue": venue, "wins": wins, "losses": losses},
            details=_result_rows(games),
            seasons_used=_seasons(games),
        )


__all__ = [
    "HEAD_TO_HEAD_GAMES",
    "HeadToHead",
    "TeamLast10Record",
    "VENUE_GAMES",
    "VenueLast5",
    "VenueWinRate",
]
