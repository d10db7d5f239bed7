"""Insights built from the entity's own game log.

Line comparisons used here:
    last10_hit_rate, home_away_split, matchup_history, rest_day_performance:
        strict (over > line, under < line).
    recent_games: over >= line, under < line (chart convention).
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from typing import Any

from prop_insights.engine.calculators import (
    LineComparison,
    average,
    hit_rate,
    home_away_split,
    recent_vs_baseline,
    values_of,
)
from prop_insights.engine.catalog import get_catalog
from prop_insights.engine.combo import value_of
from prop_insights.engine.eligibility import filter_eligible
from prop_insights.engine.rest import REST_BUCKETS, RestDayCalculator
from prop_insights.engine.seasons import FallbackMode, order_recent_first
from prop_insights.insights.base import (
    Insight,
    InsightContext,
    InsightResult,
    Status,
    fmt,
    status_from_hit_rate,
)
from prop_insights.logging import get_logger
from prop_insights.types import EntityKind, GameObservation, ObservationQuery, Sport

logger = get_logger(__name__)

# Minutes floor for the season-vs-last-3 comparison (NBA players)
SEASON_VS_LAST3_MIN_MINUTES = 2
# Any appearance counts for the chart and double-double trend
APPEARANCE_MIN_PARTICIPATION = 1
DOUBLE_DIGIT_THRESHOLD = 10


def _game_rows(
    ctx: InsightContext,
    observations: list[GameObservation] | tuple[GameObservation, ...],
    comparison: LineComparison = LineComparison.STRICT,
) -> list[dict[str, Any]]:
    rows = []
    for obs in observations:
        value = value_of(obs, ctx.spec)
        row: dict[str, Any] = {
            "game_id": obs.game_id,
            "game_date": obs.game_date,
            "season": obs.season,
            "opponent_id": obs.opponent_id,
            "is_home": obs.is_home,
            "participation": obs.participation,
            "value": value,
        }
        if ctx.query is not None:
            row["hit"] = ctx.query.hits(value, comparison)
        rows.append(row)
    return rows


class Last10HitRate(Insight):
    """Hit rate over the most recent eligible games.

    Uses the current season when it has a full window; otherwise switches to
    the previous season when that season has more eligible games.
    """

    insight_id = "last10_hit_rate"
    title = "Last 10 Games Hit Rate"
    kinds = frozenset({EntityKind.PLAYER, EntityKind.TEAM})
    requires_line = True

    def compute(self, ctx: InsightContext) -> InsightResult:
        assert ctx.query is not None
        size = ctx.settings.hit_rate_window
        selection = ctx.resolver.resolve(
            ctx.entity,
            ctx.spec,
            ctx.window(size),
            ctx.policy(),
            mode=FallbackMode.REPLACE,
        )
        result = hit_rate(selection.observations, ctx.spec, ctx.query, window=size)

        if result.total_games == 0:
            return self.insufficient(
                f"No qualifying {ctx.spec.label} games for {ctx.entity.last_name}.",
                fields=("hit_rate", "hit_count", "total_games", "average"),
                selection=selection,
            )

        direction = ctx.query.direction.value.upper()
        narrative = (
            f"{ctx.entity.last_name} has gone {direction} {ctx.query.line:g} "
            f"{ctx.spec.label} in {result.hit_count} of the last "
            f"{result.total_games} games."
        )
        if result.total_games < size:
            narrative += f" Only {result.total_games} qualifying games were available."

        recent = order_recent_first(list(selection.observations))[:size]
        return self.result(
            narrative,
            status_from_hit_rate(result.hit_rate),
            value=f"{result.percentage:.0f}%",
            fields={
                "hit_rate": result.hit_rate,
                "hit_count": result.hit_count,
                "total_games": result.total_games,
                "average": result.average,
                "line": ctx.query.line,
                "direction": ctx.query.direction.value,
            },
            details=_game_rows(ctx, recent),
            selection=selection,
        )


class RecentGames(Insight):
    """Per-game values for a recent performance chart."""

    insight_id = "recent_games"
    title = "Recent Game Performance"
    kinds = frozenset({EntityKind.PLAYER, EntityKind.TEAM})

    def compute(self, ctx: InsightContext) -> InsightResult:
        size = ctx.settings.chart_window
        rows = ctx.repository.fetch_observations(
            ctx.entity, ObservationQuery(limit=size * 2)
        )
        eligible = filter_eligible(
            rows, ctx.spec, ctx.policy(APPEARANCE_MIN_PARTICIPATION)
        )
        games = order_recent_first(eligible)[:size]
        if not games:
            return self.insufficient(
                f"No recent {ctx.spec.label} games for {ctx.entity.last_name}.",
                fields=("games", "average"),
            )

        details = _game_rows(ctx, games, LineComparison.OVER_INCLUSIVE)
        fields: dict[str, Any] = {
            "games": len(games),
            "average": average(values_of(games, ctx.spec)),
        }
        narrative = (
            f"{ctx.entity.last_name} averaged {fmt(fields['average'])} "
            f"{ctx.spec.label} over the last {len(games)} games."
        )
        if ctx.query is not None:
            hits = sum(1 for row in details if row["hit"])
            fields.update(
                hits=hits, line=ctx.query.line, direction=ctx.query.direction.value
            )
            narrative += (
                f" {hits} of them cleared the {ctx.query.direction.value} "
                f"{ctx.query.line:g} line."
            )

        seasons = tuple(dict.fromkeys(obs.season for obs in games))
        return self.result(
            narrative,
            Status.INFO,
            value=f"{len(games)} games",
            fields=fields,
            details=details,
            seasons_used=seasons,
        )


class SeasonVsLast3(Insight):
    """Most recent games against the primary season's average.

    When the current season has fewer games than the window, the window is
    completed with the previous season's most recent games and the result
    reports both seasons.
    """

    insight_id = "season_vs_last3"
    title = "Season Average vs Last 3"
    kinds = frozenset({EntityKind.PLAYER, EntityKind.TEAM})

    def compute(self, ctx: InsightContext) -> InsightResult:
        size = ctx.settings.trend_window
        minimum = (
            SEASON_VS_LAST3_MIN_MINUTES
            if ctx.sport is Sport.NBA and ctx.entity.kind is EntityKind.PLAYER
            else None
        )
        selection = ctx.resolver.resolve(
            ctx.entity, ctx.spec, ctx.window(size), ctx.policy(minimum)
        )
        trend = recent_vs_baseline(selection, ctx.spec, size)

        names = (
            "baseline_average",
            "recent_average",
            "difference",
            "percent_change",
        )
        if trend.recent_average is None or trend.baseline_average is None:
            return self.insufficient(
                f"Fewer than {size} qualifying {ctx.spec.label} games for "
                f"{ctx.entity.last_name}.",
                fields=names,
                selection=selection,
                recent_games=len(trend.recent_values),
            )

        status = Status.INFO
        if ctx.query is not None:
            recent_hit = ctx.query.hits(trend.recent_average)
            season_hit = ctx.query.hits(trend.baseline_average)
            if recent_hit and season_hit:
                status = Status.SUCCESS
            elif not recent_hit and not season_hit:
                status = Status.DANGER
            else:
                status = Status.WARNING

        narrative = (
            f"{ctx.entity.last_name} is averaging {fmt(trend.recent_average)} "
            f"{ctx.spec.label} over the last {size} games vs "
            f"{fmt(trend.baseline_average)} in {trend.baseline_season}."
        )
        return self.result(
            narrative,
            status,
            value=f"{fmt(trend.recent_average)} vs {fmt(trend.baseline_average)}",
            fields={
                "baseline_average": trend.baseline_average,
                "recent_average": trend.recent_average,
                "difference": trend.difference,
                "percent_change": trend.percent_change,
                "baseline_games": trend.baseline_games,
                "baseline_season": trend.baseline_season,
                "recent_values": list(trend.recent_values),
                "borrowed_games": trend.borrowed_games,
            },
            selection=selection,
            seasons_used=trend.seasons_used,
        )


class HomeAwaySplit(Insight):
    """Home and road averages, with per-venue hit rates when a line is given."""

    insight_id = "home_away_split"
    title = "Home vs Away Split"
    kinds = frozenset({EntityKind.PLAYER, EntityKind.TEAM})

    def compute(self, ctx: InsightContext) -> InsightResult:
        selection = ctx.resolver.resolve(
            ctx.entity,
            ctx.spec,
            ctx.window(ctx.settings.hit_rate_window),
            ctx.policy(),
        )
        split = home_away_split(selection.observations, ctx.spec, ctx.query)
        if split.home_games == 0 and split.away_games == 0:
            return self.insufficient(
                f"No home or away {ctx.spec.label} games for {ctx.entity.last_name}.",
                fields=("home_average", "away_average"),
                selection=selection,
            )

        fields: dict[str, Any] = {
            "home_average": split.home_average,
            "away_average": split.away_average,
            "home_games": split.home_games,
            "away_games": split.away_games,
            "difference": split.difference,
        }
        status = Status.INFO
        if ctx.query is not None:
            overall = hit_rate(selection.observations, ctx.spec, ctx.query, window=None)
            status = status_from_hit_rate(overall.hit_rate)
            fields["home_hit_rate"] = (
                split.home_hit_rate.hit_rate if split.home_hit_rate else None
            )
            fields["away_hit_rate"] = (
                split.away_hit_rate.hit_rate if split.away_hit_rate else None
            )

        narrative = (
            f"{ctx.entity.last_name} averages {fmt(split.home_average)} "
            f"{ctx.spec.label} at home ({split.home_games} games) and "
            f"{fmt(split.away_average)} on the road ({split.away_games} games)."
        )
        return self.result(
            narrative,
            status,
            value=f"H {fmt(split.home_average)} / A {fmt(split.away_average)}",
            fields=fields,
            selection=selection,
        )


class MatchupHistory(Insight):
    """Games against the upcoming opponent over the current and previous season."""

    insight_id = "matchup_history"
    title = "Matchup History"
    requires_opponent = True
    kinds = frozenset({EntityKind.PLAYER, EntityKind.TEAM})

    def _fetch(self, ctx: InsightContext, season: int) -> list[GameObservation]:
        assert ctx.opponent is not None
        rows = ctx.repository.fetch_observations(
            ctx.entity,
            ObservationQuery(season=season, opponent_id=ctx.opponent.entity_id),
        )
        return filter_eligible(rows, ctx.spec, ctx.policy())

    def compute(self, ctx: InsightContext) -> InsightResult:
        assert ctx.opponent is not None
        seasons = ctx.season.seasons(2)
        # Seasons are independent fetches
        with ThreadPoolExecutor(max_workers=len(seasons)) as pool:
            batches = list(pool.map(lambda season: self._fetch(ctx, season), seasons))
        games = order_recent_first([obs for batch in batches for obs in batch])

        opponent = ctx.opponent.name or f"team {ctx.opponent.entity_id}"
        if not games:
            return self.insufficient(
                f"{ctx.entity.last_name} has no qualifying games against {opponent} "
                f"in {seasons[-1]}-{seasons[0]}.",
                fields=("average", "games"),
            )

        avg = average(values_of(games, ctx.spec))
        fields: dict[str, Any] = {"average": avg, "games": len(games)}
        status = Status.INFO
        narrative = (
            f"{ctx.entity.last_name} has averaged {fmt(avg)} {ctx.spec.label} in "
            f"{len(games)} games against {opponent}."
        )
        if ctx.query is not None:
            result = hit_rate(games, ctx.spec, ctx.query, window=None)
            status = status_from_hit_rate(result.hit_rate)
            fields.update(
                hit_rate=result.hit_rate,
                hit_count=result.hit_count,
                total_games=result.total_games,
            )
            narrative += (
                f" Went {ctx.query.direction.value} {ctx.query.line:g} in "
                f"{result.hit_count} of them."
            )

        return self.result(
            narrative,
            status,
            value=f"{fmt(avg)} avg",
            fields=fields,
            details=_game_rows(ctx, games),
            seasons_used=tuple(dict.fromkeys(obs.season for obs in games)),
        )


class RestDayPerformance(Insight):
    """Average by days of rest (0, 1, 2, 3+)."""

    insight_id = "rest_day_performance"
    title = "Rest Day Performance"

    def compute(self, ctx: InsightContext) -> InsightResult:
        selection = ctx.resolver.resolve(
            ctx.entity, ctx.spec, ctx.window(1), ctx.policy()
        )
        if not selection.observations:
            return self.insufficient(
                f"No qualifying {ctx.spec.label} games for {ctx.entity.last_name}.",
                fields=("upcoming_rest_days",),
            )

        schedule = ctx.repository.fetch_observations(
            ctx.entity, ObservationQuery(season=selection.primary_season)
        )
        calculator = RestDayCalculator()
        summary = calculator.summarize(
            schedule, selection.observations, ctx.spec, ctx.query
        )

        fields: dict[str, Any] = {
            f"rest_{label}_average": summary[label].average for label in REST_BUCKETS
        }
        fields.update(
            {f"rest_{label}_games": summary[label].games for label in REST_BUCKETS}
        )

        status = Status.INFO
        if ctx.game_date is not None:
            upcoming = calculator.upcoming_rest(schedule, ctx.game_date)
            bucket = summary[calculator.bucket(upcoming)]
            fields["upcoming_rest_days"] = upcoming
            narrative = (
                f"On {bucket.bucket} days rest this season, {ctx.entity.last_name} "
                f"is averaging {fmt(bucket.average)} {ctx.spec.label} "
                f"({bucket.games} games)."
            )
            if bucket.hit_rate is not None and bucket.hit_rate.total_games:
                status = status_from_hit_rate(bucket.hit_rate.hit_rate)
                fields["upcoming_hit_rate"] = bucket.hit_rate.hit_rate
        else:
            parts = [
                f"{label} days: {fmt(summary[label].average)} ({summary[label].games})"
                for label in REST_BUCKETS
                if summary[label].games
            ]
            narrative = (
                f"{ctx.entity.last_name} {ctx.spec.label} by rest - " + "; ".join(parts) + "."
            )

        return self.result(
            narrative,
            status,
            value=None,
            fields=fields,
            selection=selection,
        )


class DoubleDoubleTrend(Insight):
    """Double- and triple-double counts over the last 10 appearances."""

    insight_id = "double_double_trend"
    title = "Double & Triple Double Trend"
    sports = frozenset({Sport.NBA})
    stat_keys = frozenset({"pts", "reb", "ast", "pras", "pr", "pa", "ra"})

    def compute(self, ctx: InsightContext) -> InsightResult:
        size = ctx.settings.hit_rate_window
        spec = get_catalog().resolve("pras", Sport.NBA)
        selection = ctx.resolver.resolve(
            ctx.entity,
            spec,
            ctx.window(size),
            ctx.policy(APPEARANCE_MIN_PARTICIPATION),
        )
        games = list(selection.observations[:size])
        if not games:
            return self.insufficient(
                f"No recent games for {ctx.entity.last_name}.",
                fields=("double_doubles", "triple_doubles"),
                selection=selection,
            )

        details = []
        doubles = triples = 0
        for obs in games:
            categories = sum(
                1
                for column in spec.columns
                if (obs.value(column) or 0) >= DOUBLE_DIGIT_THRESHOLD
            )
            doubles += categories >= 2
            triples += categories >= 3
            details.append(
                {
                    "game_id": obs.game_id,
                    "game_date": obs.game_date,
                    "double_digit_categories": categories,
                }
            )

        if doubles >= 5:
            status = Status.SUCCESS
        elif triples >= 2:
            status = Status.WARNING
        else:
            status = Status.INFO
        return self.result(
            f"Over the last {len(games)} games, {ctx.entity.last_name} recorded "
            f"{doubles} double-doubles and {triples} triple-doubles.",
            status,
            value=f"{doubles} DD / {triples} TD",
            fields={
                "double_doubles": doubles,
                "triple_doubles": triples,
                "games": len(games),
            },
            details=details,
            selection=selection,
        )


__all__ = [
    "DoubleDoubleTrend",
    "HomeAwaySplit",
    "Last10HitRate",
    "MatchupHistory",
    "RecentGames",
    "RestDayPerformance",
    "SeasonVsLast3",
]
