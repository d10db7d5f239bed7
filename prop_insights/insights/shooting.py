"""Shot volume and efficiency trends (NBA).

Volume trends compare the last 3 games' attempts against the primary
season's average. FG% and 3PT% are always computed from totals (sum of makes
over sum of attempts), never as a mean of per-game percentages.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any, ClassVar

from prop_insights.engine.calculators import recent_vs_baseline, trend_label
from prop_insights.engine.catalog import StatSpec, get_catalog
from prop_insights.engine.ranking import MatchupLabel
from prop_insights.engine.seasons import order_recent_first
from prop_insights.insights.base import (
    Insight,
    InsightContext,
    InsightResult,
    Status,
    fmt,
    status_for_label,
)
from prop_insights.insights.matchup import SCORING_STATS
from prop_insights.logging import get_logger
from prop_insights.types import GameObservation, Sport

logger = get_logger(__name__)

THREE_POINT_STATS = frozenset({"fg3m", "fg3a"})
SHOOTING_VOLUME_BAND = 1.5
THREE_POINT_VOLUME_BAND = 1.0
FG_PCT_MIN_PARTICIPATION = 1

_TREND_LABELS = {
    "increasing": MatchupLabel.FAVORABLE,
    "decreasing": MatchupLabel.TOUGH,
}


def _trend_status(trend: str, ctx: InsightContext) -> Status:
    label = _TREND_LABELS.get(trend)
    if label is None:
        return Status.INFO
    return status_for_label(label, ctx.direction)


class _VolumeTrend(Insight):
    """Attempts over the recent window against the season average."""

    sports = frozenset({Sport.NBA})
    column: str = ""
    band: float = 0.0
    noun: str = ""

    def compute(self, ctx: InsightContext) -> InsightResult:
        size = ctx.settings.trend_window
        spec = get_catalog().resolve(self.column, Sport.NBA)
        selection = ctx.resolver.resolve(
            ctx.entity, spec, ctx.window(size), ctx.policy()
        )
        trend = recent_vs_baseline(selection, spec, size)

        names = ("recent_average", "baseline_average", "difference", "trend")
        if trend.recent_average is None or trend.baseline_average is None:
            return self.insufficient(
                f"Not enough games to measure {ctx.entity.last_name}'s {self.noun}.",
                fields=names,
                selection=selection,
            )

        label = trend_label(trend.difference, self.band)
        if label == "stable":
            summary = "in line with"
        elif label == "increasing":
            summary = "up from"
        else:
            summary = "down from"
        narrative = (
            f"{ctx.entity.last_name} has averaged {fmt(trend.recent_average)} "
            f"{self.noun} over the last {size} games, {summary} "
            f"{fmt(trend.baseline_average)} in {trend.baseline_season}."
        )
        return self.result(
            narrative,
            _trend_status(label, ctx),
            value=f"{fmt(trend.recent_average)} vs {fmt(trend.baseline_average)}",
            fields={
                "recent_average": trend.recent_average,
                "baseline_average": trend.baseline_average,
                "difference": trend.difference,
                "trend": label,
                "band": self.band,
                "borrowed_games": trend.borrowed_games,
            },
            selection=selection,
            seasons_used=trend.seasons_used,
        )


class ShootingVolumeTrend(_VolumeTrend):
    insight_id = "shooting_volume_trend"
    title = "Shooting Volume Trend"
    stat_keys = SCORING_STATS
    column = "fga"
    band = SHOOTING_VOLUME_BAND
    noun = "field goal attempts"


class ThreePointVolumeTrend(_VolumeTrend):
    insight_id = "three_point_volume_trend"
    title = "3PT Volume Trend"
    stat_keys = THREE_POINT_STATS
    column = "fg3a"
    band = THREE_POINT_VOLUME_BAND
    noun = "three-point attempts"


def shooting_pct(
    observations: list[GameObservation], made: str = "fgm", attempts: str = "fga"
) -> float | None:
    """Percentage from totals; None when there were no attempts."""
    total_attempts = sum(float(obs.value(attempts) or 0) for obs in observations)
    if total_attempts <= 0:
        return None
    total_made = sum(float(obs.value(made) or 0) for obs in observations)
    return total_made / total_attempts * 100


class _PctTrend(Insight):
    """Shooting percentage over the last 3 games against the season's.

    Only games with at least one attempt count toward either side.
    """

    sports = frozenset({Sport.NBA})
    spec: ClassVar[StatSpec]
    prefix: ClassVar[str] = ""
    noun: ClassVar[str] = ""

    @property
    def made(self) -> str:
        return self.spec.columns[0]

    @property
    def attempts(self) -> str:
        return self.spec.columns[1]

    def _shots(self, observations: Iterable[GameObservation]) -> list[GameObservation]:
        return [obs for obs in observations if (obs.value(self.attempts) or 0) > 0]

    def compute(self, ctx: InsightContext) -> InsightResult:
        size = ctx.settings.trend_window
        selection = ctx.resolver.resolve(
            ctx.entity,
            self.spec,
            ctx.window(size),
            ctx.policy(FG_PCT_MIN_PARTICIPATION),
        )
        recent = self._shots(order_recent_first(list(selection.observations)))[:size]
        baseline = self._shots(selection.baseline)

        recent_pct = shooting_pct(recent, self.made, self.attempts)
        season_pct = shooting_pct(baseline, self.made, self.attempts)
        names = (f"recent_{self.prefix}", f"season_{self.prefix}", "difference")
        if recent_pct is None or season_pct is None:
            return self.insufficient(
                f"Not enough data available to generate {self.spec.label} insight.",
                fields=names,
                selection=selection,
            )

        difference = recent_pct - season_pct
        if difference > 0:
            label, summary = "increasing", "up from"
        elif difference < 0:
            label, summary = "decreasing", "down from"
        else:
            label, summary = "stable", "matching"
        narrative = (
            f"{ctx.entity.last_name} is shooting {fmt(recent_pct)}% {self.noun} "
            f"over the last {len(recent)} games, {summary} "
            f"{fmt(season_pct)}% in {selection.primary_season}."
        )
        made = sum(obs.value(self.made) or 0 for obs in recent)
        attempted = sum(obs.value(self.attempts) or 0 for obs in recent)
        fields: dict[str, Any] = {
            names[0]: recent_pct,
            names[1]: season_pct,
            "difference": difference,
            "recent_games": len(recent),
            "season_games": len(baseline),
            f"recent_{self.made}": made,
            f"recent_{self.attempts}": attempted,
            "trend": label,
        }
        return self.result(
            narrative,
            _trend_status(label, ctx),
            value=f"{fmt(recent_pct)}%",
            fields=fields,
            selection=selection,
        )


class FgPctTrend(_PctTrend):
    """Field goal percentage over the last 3 games against the season's."""

    insight_id = "fg_pct_trend"
    title = "FG% Trend"
    stat_keys = SCORING_STATS
    # Both columns must be present for a game to count
    spec = StatSpec("fg_pct", "FG%", ("fgm", "fga"), Sport.NBA)
    prefix = "fg_pct"
    noun = "from the field"


class ThreePointPctTrend(_PctTrend):
    """Three-point percentage over the last 3 games against the season's."""

    insight_id = "fg3_pct_trend"
    title = "3PT% Trend"
    stat_keys = THREE_POINT_STATS
    spec = StatSpec("fg3_pct", "3PT%", ("fg3m", "fg3a"), Sport.NBA)
    prefix = "fg3_pct"
    noun = "from three"


__all__ = [
    "FgPctTrend",
    "ShootingVolumeTrend",
    "ThreePointPctTrend",
    "ThreePointVolumeTrend",
    "shooting_pct",
]
