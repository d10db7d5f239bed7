"""Insights about the opponent, ranked against the rest of the league.

Each insight builds its own league table from the season's raw box scores
and ranks the opponent within it. When the current season has no rows yet,
the previous season is used and reported in ``seasons_used``.

Rank orientation:
    defense allowed, defensive rating: ascending (rank 1 allows the least).
    pace, steals, fouls: descending (rank 1 is the highest).
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Sequence
from typing import Any, ClassVar, TypeVar

from prop_insights.engine.calculators import Direction
from prop_insights.engine.catalog import StatSpec, get_catalog
from prop_insights.engine.ranking import (
    MatchupLabel,
    RankResult,
    RelativeRankEngine,
    matchup_label,
)
from prop_insights.engine.seasons import FallbackMode
from prop_insights.insights.base import (
    Insight,
    InsightContext,
    InsightResult,
    Status,
    fmt,
    status_for_label,
)
from prop_insights.logging import get_logger
from prop_insights.types import EntityKind, GameObservation, Season, Sport

logger = get_logger(__name__)

T = TypeVar("T")

LEAGUE_AVERAGE_FG_PCT = 47.0
OPPONENT_FG_GAMES = 3
PACE_BAND = 1.0
THREE_POINT_HEAVY_SHARE = 33.0
STINGY_THREES_RANK = 10

SCORING_STATS = frozenset({"pts", "pras", "pr", "pa", "fgm", "fg3m"})
REBOUND_STATS = frozenset({"reb", "oreb", "dreb", "pr", "ra", "pras"})
FREE_THROW_STATS = frozenset({"ftm", "fta", "pts", "pras", "pr", "pa"})
TURNOVER_STATS = frozenset({"tov", "stl"})

_LABEL_TEXT = {
    MatchupLabel.FAVORABLE: "Favorable matchup",
    MatchupLabel.NEUTRAL: "Neutral matchup",
    MatchupLabel.TOUGH: "Tough matchup",
}


def latest_season_with_rows(
    ctx: InsightContext, fetch: Callable[[Season], Sequence[T]]
) -> tuple[Season | None, Sequence[T]]:
    """First season (current, then previous) for which ``fetch`` returns rows."""
    for season in ctx.season.seasons(2):
        rows = fetch(season)
        if len(rows):
            if season != ctx.season.current_season:
                logger.info(
                    "No {} rows for {}, using {}",
                    ctx.sport.value,
                    ctx.season.current_season,
                    season,
                )
            return season, rows
    return None, ()


def rank_tier(rank: RankResult, top_is_favorable: bool) -> MatchupLabel:
    """Label a rank by league third."""
    if rank.rank is None or rank.cohort_size == 0:
        return MatchupLabel.NEUTRAL
    third = rank.cohort_size / 3
    if rank.rank <= third:
        return MatchupLabel.FAVORABLE if top_is_favorable else MatchupLabel.TOUGH
    if rank.rank > rank.cohort_size - third:
        return MatchupLabel.TOUGH if top_is_favorable else MatchupLabel.FAVORABLE
    return MatchupLabel.NEUTRAL


def _opponent_name(ctx: InsightContext) -> str:
    assert ctx.opponent is not None
    return ctx.opponent.name or f"team {ctx.opponent.entity_id}"


def _rank_fields(rank: RankResult, label: MatchupLabel, season: Season) -> dict[str, Any]:
    return {
        "value": rank.value,
        "rank": rank.rank,
        "cohort_size": rank.cohort_size,
        "league_average": rank.league_average,
        "label": label.value,
        "season": season,
    }


class _DefenseAllowed(Insight):
    """Opponent's per-game allowed stat, optionally limited to one position."""

    requires_opponent = True
    by_position = False

    def compute(self, ctx: InsightContext) -> InsightResult:
        assert ctx.opponent is not None
        position = ctx.entity.position if self.by_position else None
        if self.by_position and not position:
            return self.insufficient(
                f"No listed position for {ctx.entity.last_name}.",
                fields=("value", "rank"),
            )

        engine = RelativeRankEngine()
        season, rows = latest_season_with_rows(
            ctx, lambda s: ctx.repository.fetch_league_observations(ctx.sport, s)
        )
        policy = ctx.policy() if ctx.entity.kind is EntityKind.PLAYER else None
        table = engine.defense_allowed_table(rows, ctx.spec, position, policy)
        rank = engine.rank(ctx.opponent.entity_id, table, ascending=True)

        opponent = _opponent_name(ctx)
        if season is None or not rank.found:
            return self.insufficient(
                f"No defensive data for {opponent}.",
                fields=("value", "rank", "league_average"),
            )

        label = matchup_label(
            rank.value, rank.league_average, ctx.settings.matchup_threshold_pct
        )
        who = f"{position}s" if position else "Opponents"
        narrative = (
            f"{_LABEL_TEXT[label]}: {who} are averaging {fmt(rank.value)} "
            f"{ctx.spec.label} against {opponent} (league average "
            f"{fmt(rank.league_average)}), {rank.ordinal} fewest allowed of "
            f"{rank.cohort_size} teams in {season}."
        )
        fields = _rank_fields(rank, label, season)
        if position:
            fields["position"] = position
        return self.result(
            narrative,
            status_for_label(label, ctx.direction),
            value=f"{fmt(rank.value)} (#{rank.rank})",
            fields=fields,
            seasons_used=(season,),
        )


class DefenseVsPosition(_DefenseAllowed):
    insight_id = "defense_vs_position"
    title = "Defense vs Position"
    by_position = True


class TeamDefenseRank(_DefenseAllowed):
    insight_id = "team_defense_rank"
    title = "Team Defense Rank"
    kinds = frozenset({EntityKind.PLAYER, EntityKind.TEAM})


def three_point_share(observations: Iterable[GameObservation]) -> float | None:
    """Percentage of points scored on made threes, from totals."""
    rows = list(observations)
    points = sum(float(obs.value("pts") or 0) for obs in rows)
    if points <= 0:
        return None
    threes = sum(float(obs.value("fg3m") or 0) for obs in rows)
    return threes * 3 / points * 100


class ScoringSourceVsThreeDefense(Insight):
    """How much a player leans on threes against how stingy the opponent is.

    The share comes from the current season's totals, or the previous
    season's when the current one has no games. The matchup half only runs
    for 3PT-heavy scorers and ranks threes allowed to the player's position,
    rank 1 allowing the fewest.
    """

    insight_id = "scoring_3pt_vs_defense"
    title = "3PT Scoring Dependency vs Defense"
    sports = frozenset({Sport.NBA})
    stat_keys = SCORING_STATS
    requires_opponent = True
    share_spec: ClassVar[StatSpec] = StatSpec(
        "fg3_share", "3PT share", ("pts", "fg3m"), Sport.NBA
    )

    def compute(self, ctx: InsightContext) -> InsightResult:
        assert ctx.opponent is not None
        names = ("three_point_share", "threes_allowed", "rank")
        selection = ctx.resolver.resolve(
            ctx.entity,
            self.share_spec,
            ctx.window(1),
            ctx.policy(),
            mode=FallbackMode.REPLACE,
        )
        share = three_point_share(selection.observations)
        who = ctx.entity.last_name
        if share is None:
            return self.insufficient(
                f"Scoring breakdown unavailable for {who}.",
                fields=names,
                selection=selection,
            )

        if share < THREE_POINT_HEAVY_SHARE:
            return self.result(
                f"{who} scores {fmt(share)}% of points from threes and is not "
                f"a 3PT-heavy scorer.",
                Status.INFO,
                value=f"{fmt(share)}%",
                fields={
                    "three_point_share": share,
                    "three_point_heavy": False,
                    "threes_allowed": None,
                    "rank": None,
                },
                selection=selection,
            )

        position = ctx.entity.position
        if not position:
            return self.insufficient(
                f"No listed position for {who}.", fields=names, selection=selection
            )

        engine = RelativeRankEngine()
        season, rows = latest_season_with_rows(
            ctx, lambda s: ctx.repository.fetch_league_observations(ctx.sport, s)
        )
        threes = get_catalog().resolve("fg3m", Sport.NBA)
        table = engine.defense_allowed_table(rows, threes, position, ctx.policy())
        rank = engine.rank(ctx.opponent.entity_id, table, ascending=True)
        opponent = _opponent_name(ctx)
        if season is None or not rank.found:
            return self.insufficient(
                f"No 3PT defense data for {opponent}.",
                fields=names,
                selection=selection,
            )

        stingy = rank.rank is not None and rank.rank <= STINGY_THREES_RANK
        favorable = stingy if ctx.direction is Direction.UNDER else not stingy
        narrative = (
            f"{who} scores {fmt(share)}% of points from threes. {opponent} allow "
            f"{fmt(rank.value)} threes per game to {position}s, {rank.ordinal} "
            f"fewest of {rank.cohort_size} teams in {season}."
        )
        return self.result(
            narrative,
            Status.SUCCESS if favorable else Status.WARNING,
            value=f"{fmt(share)}% vs #{rank.rank}",
            fields={
                "three_point_share": share,
                "three_point_heavy": True,
                "threes_allowed": rank.value,
                "rank": rank.rank,
                "cohort_size": rank.cohort_size,
                "position": position,
                "season": season,
            },
            selection=selection,
            seasons_used=tuple(sorted({*selection.seasons_used, season}, reverse=True)),
        )


class OpponentPaceRank(Insight):
    """Opponent's possessions per game, fastest first."""

    insight_id = "opponent_pace_rank"
    title = "Opponent Pace Rank"
    sports = frozenset({Sport.NBA})
    kinds = frozenset({EntityKind.PLAYER, EntityKind.TEAM})
    requires_opponent = True

    def compute(self, ctx: InsightContext) -> InsightResult:
        assert ctx.opponent is not None
        engine = RelativeRankEngine()
        season, box = latest_season_with_rows(
            ctx, lambda s: ctx.repository.fetch_team_box_scores(ctx.sport, s)
        )
        rank = engine.rank(ctx.opponent.entity_id, engine.pace_table(box), ascending=False)
        opponent = _opponent_name(ctx)
        if season is None or not rank.found:
            return self.insufficient(
                f"No pace data for {opponent}.", fields=("value", "rank")
            )

        label = rank_tier(rank, top_is_favorable=True)
        return self.result(
            f"{opponent} average {fmt(rank.value)} possessions per game, "
            f"{rank.ordinal} fastest of {rank.cohort_size} teams.",
            status_for_label(label, ctx.direction),
            value=f"Rank #{rank.rank}",
            fields=_rank_fields(rank, label, season),
            seasons_used=(season,),
        )


class ProjectedGamePace(Insight):
    """Mean of both teams' pace against the league average."""

    insight_id = "projected_game_pace"
    title = "Projected Game Pace"
    sports = frozenset({Sport.NBA})
    kinds = frozenset({EntityKind.PLAYER, EntityKind.TEAM})
    requires_opponent = True

    def compute(self, ctx: InsightContext) -> InsightResult:
        assert ctx.opponent is not None
        team_id = ctx.entity.team_id
        if team_id is None:
            return self.insufficient(
                f"No team on record for {ctx.entity.last_name}.",
                fields=("projected_pace",),
            )

        engine = RelativeRankEngine()
        season, box = latest_season_with_rows(
            ctx, lambda s: ctx.repository.fetch_team_box_scores(ctx.sport, s)
        )
        table = engine.pace_table(box)
        ours = engine.rank(team_id, table)
        theirs = engine.rank(ctx.opponent.entity_id, table)
        if season is None or ours.value is None or theirs.value is None:
            return self.insufficient(
                "Pace data is missing for one of the teams.",
                fields=("projected_pace", "league_average"),
            )

        projected = (ours.value + theirs.value) / 2
        league = ours.league_average
        difference = projected - league if league is not None else None
        if difference is not None and difference >= PACE_BAND:
            label, tempo = MatchupLabel.FAVORABLE, "faster than"
        elif difference is not None and difference <= -PACE_BAND:
            label, tempo = MatchupLabel.TOUGH, "slower than"
        else:
            label, tempo = MatchupLabel.NEUTRAL, "in line with"

        return self.result(
            f"Projected pace of {fmt(projected)} possessions is {tempo} the "
            f"league average of {fmt(league)}.",
            status_for_label(label, ctx.direction),
            value=fmt(projected),
            fields={
                "projected_pace": projected,
                "team_pace": ours.value,
                "opponent_pace": theirs.value,
                "league_average": league,
                "difference": difference,
                "label": label.value,
                "season": season,
            },
            seasons_used=(season,),
        )


def recent_team_fg_pct(
    ctx: InsightContext, team_id: int, games: int = OPPONENT_FG_GAMES
) -> tuple[Season | None, float | None, int]:
    """A team's FG% from totals over its most recent box scores.

    Returns:
        Tuple of (season used, FG% or None without attempts, games counted).
    """

    def fetch(season: Season) -> list[Any]:
        box = ctx.repository.fetch_team_box_scores(ctx.sport, season)
        return [
            row
            for row in box
            if row.team_id == team_id
            and row.value("fga") is not None
            and row.value("fgm") is not None
        ]

    season, rows = latest_season_with_rows(ctx, fetch)
    recent = sorted(rows, key=lambda row: row.game_date, reverse=True)[:games]
    attempts = sum(float(row.value("fga")) for row in recent)
    if season is None or attempts <= 0:
        return season, None, len(recent)
    made = sum(float(row.value("fgm")) for row in recent)
    return season, made / attempts * 100, len(recent)


class OpponentFgPctLast3(Insight):
    """Opponent's own field goal percentage over their last 3 games.

    Poor shooting leaves more missed shots to rebound.
    """

    insight_id = "opponent_fg_pct_last3"
    title = "Opponent FG% Last 3"
    sports = frozenset({Sport.NBA})
    stat_keys = REBOUND_STATS
    requires_opponent = True

    def compute(self, ctx: InsightContext) -> InsightResult:
        assert ctx.opponent is not None
        season, fg_pct, games = recent_team_fg_pct(ctx, ctx.opponent.entity_id)
        opponent = _opponent_name(ctx)
        if season is None or fg_pct is None:
            return self.insufficient(
                f"Could not calculate FG% for {opponent} over their last "
                f"{OPPONENT_FG_GAMES} games.",
                fields=("fg_pct", "difference"),
                league_average=LEAGUE_AVERAGE_FG_PCT,
            )

        difference = fg_pct - LEAGUE_AVERAGE_FG_PCT
        if fg_pct < LEAGUE_AVERAGE_FG_PCT:
            label = MatchupLabel.FAVORABLE
            note = "Shooting below average leaves more rebound chances."
        else:
            label = MatchupLabel.TOUGH
            note = "Efficient shooting may reduce rebound volume."

        return self.result(
            f"{opponent} have shot {fmt(fg_pct)}% from the field over their last "
            f"{games} games (league average ~{LEAGUE_AVERAGE_FG_PCT:g}%). {note}",
            status_for_label(label, ctx.direction),
            value=f"{fmt(fg_pct)}%",
            fields={
                "fg_pct": fg_pct,
                "league_average": LEAGUE_AVERAGE_FG_PCT,
                "difference": difference,
                "games": games,
            },
            seasons_used=(season,),
        )


class BothTeamsFgPctLast3(Insight):
    """Recent FG% for the entity's team and the opponent side by side.

    Both teams missing shots means more rebounds on the floor; the verdict
    follows the opponent's number as in ``OpponentFgPctLast3``.
    """

    insight_id = "fg_pct_last3_both_teams"
    title = "Recent FG% (Both Teams)"
    sports = frozenset({Sport.NBA})
    kinds = frozenset({EntityKind.PLAYER, EntityKind.TEAM})
    stat_keys = REBOUND_STATS
    requires_opponent = True

    def compute(self, ctx: InsightContext) -> InsightResult:
        assert ctx.opponent is not None
        own_id = (
            ctx.entity.entity_id
            if ctx.entity.kind is EntityKind.TEAM
            else ctx.entity.team_id
        )
        if own_id is None:
            return self.insufficient(
                f"No team on record for {ctx.entity.last_name}.",
                fields=("team_fg_pct", "opponent_fg_pct"),
            )

        own_season, own_pct, own_games = recent_team_fg_pct(ctx, own_id)
        opp_season, opp_pct, opp_games = recent_team_fg_pct(ctx, ctx.opponent.entity_id)
        opponent = _opponent_name(ctx)
        if opp_pct is None or own_pct is None:
            missing = opponent if opp_pct is None else "their own team"
            return self.insufficient(
                f"Could not calculate recent FG% for {missing}.",
                fields=("team_fg_pct", "opponent_fg_pct"),
                team_fg_pct=own_pct,
                opponent_fg_pct=opp_pct,
                league_average=LEAGUE_AVERAGE_FG_PCT,
            )

        if opp_pct < LEAGUE_AVERAGE_FG_PCT:
            label = MatchupLabel.FAVORABLE
            outlook = "more missed shots could mean more rebounds"
        else:
            label = MatchupLabel.TOUGH
            outlook = "fewer misses may limit rebound chances"
        seasons = tuple(
            dict.fromkeys(s for s in (own_season, opp_season) if s is not None)
        )
        own = (
            ctx.entity.name
            if ctx.entity.kind is EntityKind.TEAM
            else f"{ctx.entity.last_name}'s team"
        )
        return self.result(
            f"{opponent} have shot {fmt(opp_pct)}% over their last {opp_games} "
            f"games and {own} {fmt(own_pct)}% over their last {own_games}; "
            f"{outlook}.",
            status_for_label(label, ctx.direction),
            value=f"{fmt(own_pct)}% vs {fmt(opp_pct)}%",
            fields={
                "team_fg_pct": own_pct,
                "opponent_fg_pct": opp_pct,
                "team_games": own_games,
                "opponent_games": opp_games,
                "league_average": LEAGUE_AVERAGE_FG_PCT,
                "label": label.value,
            },
            seasons_used=seasons,
        )


class _PerGameRank(Insight):
    """Opponent's per-game team box score column, highest first."""

    sports = frozenset({Sport.NBA})
    requires_opponent = True
    column: str = ""
    noun: str = ""

    def describe(self, opponent: str, rank: RankResult) -> str:
        return (
            f"{opponent} average {fmt(rank.value)} {self.noun} per game, "
            f"{rank.ordinal} most of {rank.cohort_size} teams."
        )

    def compute(self, ctx: InsightContext) -> InsightResult:
        assert ctx.opponent is not None
        engine = RelativeRankEngine()

        def fetch(season: Season) -> Any:
            box = ctx.repository.fetch_team_box_scores(ctx.sport, season)
            table = engine.per_game_table(box, self.column)
            return table if not table.empty else ()

        season, table = latest_season_with_rows(ctx, fetch)
        opponent = _opponent_name(ctx)
        rank = engine.rank(ctx.opponent.entity_id, table if season else {}, ascending=False)
        if season is None or not rank.found:
            return self.insufficient(
                f"No {self.noun} data for {opponent}.", fields=("value", "rank")
            )

        label = rank_tier(rank, top_is_favorable=True)
        return self.result(
            self.describe(opponent, rank),
            status_for_label(label, ctx.direction),
            value=f"{fmt(rank.value)} (#{rank.rank})",
            fields=_rank_fields(rank, label, season),
            seasons_used=(season,),
        )


class OpponentStealsRank(_PerGameRank):
    """Steal pressure; more steals forced means more turnovers."""

    insight_id = "opponent_steals_rank"
    title = "Opponent Steal Pressure"
    stat_keys = TURNOVER_STATS
    column = "stl"
    noun = "steals"


class OpponentFoulTendencies(_PerGameRank):
    """Personal fouls committed; more fouls means more free throws."""

    insight_id = "opponent_foul_tendencies"
    title = "Opponent Foul Tendencies"
    stat_keys = FREE_THROW_STATS
    column = "pf"
    noun = "personal fouls"


class TeamDefensiveRatingRank(Insight):
    """Opponent points allowed per 100 estimated possessions."""

    insight_id = "team_defensive_rating_rank"
    title = "Team Defensive Rating Rank"
    sports = frozenset({Sport.NBA})
    kinds = frozenset({EntityKind.PLAYER, EntityKind.TEAM})
    stat_keys = SCORING_STATS
    requires_opponent = True

    def compute(self, ctx: InsightContext) -> InsightResult:
        assert ctx.opponent is not None
        engine = RelativeRankEngine()

        def fetch(season: Season) -> Any:
            table = engine.defensive_rating_table(
                ctx.repository.fetch_team_box_scores(ctx.sport, season)
            )
            return table if not table.empty else ()

        season, table = latest_season_with_rows(ctx, fetch)
        opponent = _opponent_name(ctx)
        rank = engine.rank(ctx.opponent.entity_id, table if season else {}, ascending=True)
        if season is None or not rank.found:
            return self.insufficient(
                f"No defensive rating for {opponent}.", fields=("value", "rank")
            )

        label = rank_tier(rank, top_is_favorable=False)
        return self.result(
            f"{opponent} allow {fmt(rank.value)} points per 100 possessions, "
            f"ranking {rank.ordinal} of {rank.cohort_size} in defense.",
            status_for_label(label, ctx.direction),
            value=f"Rank #{rank.rank}",
            fields=_rank_fields(rank, label, season),
            seasons_used=(season,),
        )


__all__ = [
    "BothTeamsFgPctLast3",
    "DefenseVsPosition",
    "OpponentFgPctLast3",
    "OpponentFoulTendencies",
    "OpponentPaceRank",
    "OpponentStealsRank",
    "ProjectedGamePace",
    "ScoringSourceVsThreeDefense",
    "TeamDefenseRank",
    "TeamDefensiveRatingRank",
    "latest_season_with_rows",
    "rank_tier",
    "recent_team_fg_pct",
    "three_point_share",
]
