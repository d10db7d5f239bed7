"""Hit rates, averages and recent-versus-baseline trends.

Every calculator reads values through ``value_of`` so single and combo stats
share one code path. Line comparisons are explicit: each caller chooses a
``LineComparison`` and the insight that uses it documents the choice.

Comparison operators:
    - ``LineComparison.STRICT``: over hits when value > line, under hits when
      value < line. Used by every hit rate.
    - ``LineComparison.OVER_INCLUSIVE``: over hits when value >= line, under
      hits when value < line. Used only by the recent games chart, where a
      push on a whole-number line is drawn as a hit.

Example:
    >>> query = LineQuery.from_raw(24.5, "o")
    >>> result = hit_rate(games, spec, query, window=10)
    >>> result.hit_count, result.total_games, result.hit_rate
    (7, 10, 0.7)
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

from prop_insights.engine.combo import value_of
from prop_insights.engine.eligibility import EligibilityPolicy, filter_eligible
from prop_insights.engine.seasons import SeasonSelection, SeasonSource, order_recent_first
from prop_insights.types import (
    GameObservation,
    InvalidDirectionError,
    InvalidLineError,
    Season,
)

if TYPE_CHECKING:
    from prop_insights.engine.catalog import StatSpec

# Presence-only policy for callers that already applied participation rules
_STAT_PRESENT = EligibilityPolicy(min_participation=0, require_participation=False)


# =============================================================================
# Direction and line
# =============================================================================


class Direction(Enum):
    """Canonical bet direction."""

    OVER = "over"
    UNDER = "under"


_UNDER_TOKENS = frozenset({"under", "u", "less", "<", "lower", "down"})
_OVER_TOKENS = frozenset({"over", "o", "more", ">", "higher", "up"})


def normalize_direction(token: str | Direction | None) -> Direction:
    """Normalize a direction token.

    None and empty strings default to over. Matching is case-insensitive and
    ignores surrounding whitespace.

    Raises:
        InvalidDirectionError: If the token is not a known synonym.
    """
    if isinstance(token, Direction):
        return token
    if token is None:
        return Direction.OVER
    text = str(token).strip().lower()
    if not text:
        return Direction.OVER
    if text in _UNDER_TOKENS:
        return Direction.UNDER
    if text in _OVER_TOKENS:
        return Direction.OVER
    raise InvalidDirectionError(f"Unrecognised direction {token!r}")


def parse_line(raw: str | int | float | None) -> float | None:
    """Parse a betting line.

    Returns:
        The line as a float, or None when no line was supplied.

    Raises:
        InvalidLineError: If the value is not a finite number.
    """
    if isinstance(raw, bool):
        raise InvalidLineError(f"Line must be numeric, got {raw!r}")
    if raw is None:
        return None
    if isinstance(raw, str):
        raw = raw.strip()
        if not raw:
            return None
    try:
        value = float(raw)
    except (TypeError, ValueError) as e:
        raise InvalidLineError(f"Line must be numeric, got {raw!r}") from e
    if not math.isfinite(value):
        raise InvalidLineError(f"Line must be finite, got {raw!r}")
    return value


class LineComparison(Enum):
    """Operator used to decide whether a value hits a line."""

    STRICT = "strict"
    OVER_INCLUSIVE = "over_inclusive"


@dataclass(frozen=True)
class LineQuery:
    """A numeric line and a direction."""

    line: float
    direction: Direction = Direction.OVER

    @classmethod
    def from_raw(
        cls, line: str | int | float | None, direction: str | Direction | None = None
    ) -> LineQuery | None:
        """Build a query from raw request values; None when no line was given."""
        parsed = parse_line(line)
        resolved = normalize_direction(direction)
        if parsed is None:
            return None
        return cls(parsed, resolved)

    def hits(
        self, value: float, comparison: LineComparison = LineComparison.STRICT
    ) -> bool:
        if self.direction is Direction.UNDER:
            return value < self.line
        if comparison is LineComparison.OVER_INCLUSIVE:
            return value >= self.line
        return value > self.line


# =============================================================================
# Averages and hit rates
# =============================================================================


def average(values: Iterable[float]) -> float | None:
    """Arithmetic mean, None for an empty sequence."""
    items = list(values)
    if not items:
        return None
    return sum(items) / len(items)


def values_of(observations: Iterable[GameObservation], spec: StatSpec) -> list[float]:
    """Extract the stat value of every observation, in order."""
    return [value_of(obs, spec) for obs in observations]


@dataclass(frozen=True)
class HitRateResult:
    """Outcome of a hit rate computation.

    Attributes:
        hit_count: Games satisfying the comparison.
        total_games: Games considered (at most the window).
        hit_rate: hit_count / total_games, None when total_games is 0.
        values: Stat values considered, newest first.
        query: Line and direction used.
        comparison: Operator used.
    """

    hit_count: int
    total_games: int
    hit_rate: float | None
    values: tuple[float, ...]
    query: LineQuery
    comparison: LineComparison = LineComparison.STRICT

    @property
    def percentage(self) -> float | None:
        if self.hit_rate is None:
            return None
        return round(self.hit_rate * 100, 1)

    @property
    def average(self) -> float | None:
        return average(self.values)


def hit_rate(
    observations: Iterable[GameObservation],
    spec: StatSpec,
    query: LineQuery,
    window: int | None = 10,
    comparison: LineComparison = LineComparison.STRICT,
    policy: EligibilityPolicy | None = None,
) -> HitRateResult:
    """Count how often the most recent eligible games hit a line.

    Args:
        observations: Candidate games in any order.
        spec: Stat being measured.
        query: Line and direction.
        window: Most recent games to consider (None for all).
        comparison: Line operator.
        policy: Eligibility rules; when None only stat presence is checked.

    Returns:
        HitRateResult with hit_count <= total_games.
    """
    eligible = filter_eligible(observations, spec, policy or _STAT_PRESENT)
    recent = order_recent_first(eligible)
    if window is not None:
        recent = recent[:window]

    values = tuple(values_of(recent, spec))
    hits = sum(1 for value in values if query.hits(value, comparison))
    total = len(values)
    return HitRateResult(
        hit_count=hits,
        total_games=total,
        hit_rate=hits / total if total else None,
        values=values,
        query=query,
        comparison=comparison,
    )


# =============================================================================
# Recent versus baseline
# =============================================================================


@dataclass(frozen=True)
class RecentVsBaseline:
    """Recent average compared to a baseline average.

    Attributes:
        baseline_average: Mean over the primary season's eligible games.
        recent_average: Mean over exactly the recent window values.
        difference: recent_average - baseline_average.
        percent_change: difference / baseline_average * 100, None when the
            baseline is zero or missing.
        recent_values: Values in the recent window, newest first.
        baseline_games: Games in the baseline.
        baseline_season: Season the baseline was computed over.
        seasons_used: Seasons the recent window drew from, newest first.
        borrowed_games: Recent games taken from outside the primary season.
        source: Fallback rule that produced the underlying selection.
    """

    baseline_average: float | None
    recent_average: float | None
    difference: float | None
    percent_change: float | None
    recent_values: tuple[float, ...]
    baseline_games: int
    baseline_season: Season
    seasons_used: tuple[Season, ...] = field(default_factory=tuple)
    borrowed_games: int = 0
    source: SeasonSource = SeasonSource.CURRENT


def recent_vs_baseline(
    selection: SeasonSelection,
    spec: StatSpec,
    recent_window: int = 3,
) -> RecentVsBaseline:
    """Compare the most recent games with the primary season's average.

    The recent window is taken from the selection's observations, which the
    resolver has already supplemented from earlier seasons when the primary
    season was short. Games borrowed this way are counted in
    ``borrowed_games`` and their seasons appear in ``seasons_used``.
    When fewer than ``recent_window`` games exist overall, the recent
    average is None.
    """
    baseline_obs = selection.baseline
    baseline_avg = average(values_of(baseline_obs, spec))

    recent_obs = list(selection.observations[:recent_window])
    recent_values = tuple(values_of(recent_obs, spec))
    seasons: list[Season] = []
    for obs in recent_obs:
        if obs.season not in seasons:
            seasons.append(obs.season)
    borrowed = sum(1 for obs in recent_obs if obs.season != selection.primary_season)

    recent_avg = average(recent_values) if len(recent_values) >= recent_window else None

    difference = None
    percent = None
    if recent_avg is not None and baseline_avg is not None:
        difference = recent_avg - baseline_avg
        if baseline_avg != 0:
            percent = difference / baseline_avg * 100

    return RecentVsBaseline(
        baseline_average=baseline_avg,
        recent_average=recent_avg,
        difference=difference,
        percent_change=percent,
        recent_values=recent_values,
        baseline_games=len(baseline_obs),
        baseline_season=selection.primary_season,
        seasons_used=tuple(seasons),
        borrowed_games=borrowed,
        source=selection.source,
    )


def trend_label(difference: float | None, band: float) -> str:
    """Classify a signed difference against a symmetric band."""
    if difference is None:
        return "unknown"
    if difference > band:
        return "increasing"
    if difference < -band:
        return "decreasing"
    return "stable"


# =============================================================================
# Home/away split
# =============================================================================


@dataclass(frozen=True)
class HomeAwaySplit:
    """Averages and optional hit rates split by venue."""

    home_average: float | None
    away_average: float | None
    home_games: int
    away_games: int
    home_hit_rate: HitRateResult | None = None
    away_hit_rate: HitRateResult | None = None

    @property
    def difference(self) -> float | None:
        if self.home_average is None or self.away_average is None:
            return None
        return self.home_average - self.away_average


def home_away_split(
    observations: Sequence[GameObservation],
    spec: StatSpec,
    query: LineQuery | None = None,
) -> HomeAwaySplit:
    """Split eligible observations by venue. Rows with unknown venue are dropped."""
    home = [obs for obs in observations if obs.is_home is True]
    away = [obs for obs in observations if obs.is_home is False]

    home_hits = hit_rate(home, spec, query, window=None) if query else None
    away_hits = hit_rate(away, spec, query, window=None) if query else None

    return HomeAwaySplit(
        home_average=average(values_of(home, spec)),
        away_average=average(values_of(away, spec)),
        home_games=len(home),
        away_games=len(away),
        home_hit_rate=home_hits,
        away_hit_rate=away_hits,
    )
