"""Rest-day derivation for per-game performance splits.

Rest days are the full days between two consecutive games (game day does
not count), so back-to-back games have 0 rest days. The first game on
record has no previous game and is treated as well rested.

Example:
    >>> calculator = RestDayCalculator()
    >>> calculator.rest_days(date(2024, 1, 3), date(2024, 1, 1))
    1
    >>> calculator.bucket(5)
    '3+'
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date
from typing import TYPE_CHECKING

import pandas as pd

from prop_insights.engine.calculators import HitRateResult, LineQuery
from prop_insights.engine.combo import value_of
from prop_insights.logging import get_logger
from prop_insights.types import GameObservation

if TYPE_CHECKING:
    from prop_insights.engine.catalog import StatSpec

logger = get_logger(__name__)

# Rest assumed before the first game on record
DEFAULT_OPENER_REST_DAYS: int = 7

REST_BUCKETS: tuple[str, ...] = ("0", "1", "2", "3+")
# Left-closed edges for REST_BUCKETS
REST_BINS: tuple[float, ...] = (0, 1, 2, 3, float("inf"))


@dataclass(frozen=True)
class RestBucketSummary:
    """Performance within one rest-day bucket."""

    bucket: str
    games: int
    average: float | None
    hit_rate: HitRateResult | None = None


class RestDayCalculator:
    """Assign rest days to a player's game log and summarise by bucket."""

    def rest_days(self, game_date: date, previous_date: date | None) -> int:
        """Days of rest before ``game_date``.

        Args:
            game_date: Date of the game.
            previous_date: Date of the previous game, None for an opener.

        Returns:
            Non-negative number of rest days.
        """
        if previous_date is None:
            return DEFAULT_OPENER_REST_DAYS
        rest = (game_date - previous_date).days - 1  # game day doesn't count
        return max(0, rest)

    @staticmethod
    def bucket(rest_days: int) -> str:
        if rest_days >= 3:
            return "3+"
        return str(rest_days)

    def annotate(
        self, observations: Sequence[GameObservation]
    ) -> list[tuple[GameObservation, int]]:
        """Pair each observation with its rest days, oldest first.

        Rest is measured against the previous observation in the sequence,
        so callers should pass the entity's full log for the period.
        """
        ordered = sorted(observations, key=lambda obs: obs.game_date)
        annotated: list[tuple[GameObservation, int]] = []
        previous: date | None = None
        for obs in ordered:
            annotated.append((obs, self.rest_days(obs.game_date, previous)))
            previous = obs.game_date
        return annotated

    def rest_frame(
        self,
        schedule: Sequence[GameObservation],
        counted: Sequence[GameObservation],
        spec: StatSpec,
    ) -> pd.DataFrame:
        """One row per counted game: game key, date, rest days, value, bucket.

        Rest comes from ``schedule``; counted games missing from it are
        dropped. Rows are newest first.
        """
        rested = pd.DataFrame.from_records(
            [(_game_key(obs), days) for obs, days in self.annotate(schedule)],
            columns=["game", "rest_days"],
        ).drop_duplicates("game", keep="last")
        games = pd.DataFrame.from_records(
            [(_game_key(obs), obs.game_date, value_of(obs, spec)) for obs in counted],
            columns=["game", "game_date", "value"],
        )

        frame = games.merge(rested, on="game", how="left")
        missing = frame["rest_days"].isna()
        if missing.any():
            logger.debug(
                "Games {} missing from schedule, skipping",
                ", ".join(frame.loc[missing, "game"]),
            )
            frame = frame[~missing]

        frame = frame.astype({"rest_days": "int64", "value": "float64"})
        frame["bucket"] = pd.cut(
            frame["rest_days"], bins=list(REST_BINS), labels=list(REST_BUCKETS), right=False
        )
        return frame.sort_values("game_date", ascending=False, kind="stable")

    def summarize(
        self,
        schedule: Sequence[GameObservation],
        counted: Sequence[GameObservation],
        spec: StatSpec,
        query: LineQuery | None = None,
    ) -> dict[str, RestBucketSummary]:
        """Average (and hit rate) of ``spec`` per rest bucket.

        Args:
            schedule: Every game the entity appeared in, used to measure rest.
            counted: Eligible games whose values are summarised.
            spec: Stat being measured.
            query: Optional line for per-bucket hit rates.

        Returns:
            Mapping of bucket label to summary, in bucket order.
        """
        frame = self.rest_frame(schedule, counted, spec)
        grouped = frame.groupby("bucket", observed=False)["value"]
        table = grouped.agg(["count", "mean"]).reindex(list(REST_BUCKETS))
        table["count"] = table["count"].fillna(0).astype(int)

        summaries: dict[str, RestBucketSummary] = {}
        for label in REST_BUCKETS:
            games = int(table.at[label, "count"])
            mean = table.at[label, "mean"] if games else None
            values = frame.loc[frame["bucket"] == label, "value"]
            summaries[label] = RestBucketSummary(
                bucket=label,
                games=games,
                average=float(mean) if mean is not None else None,
                hit_rate=_line_hits(values, query) if query else None,
            )
        return summaries

    def upcoming_rest(
        self, schedule: Sequence[GameObservation], game_date: date
    ) -> int:
        """Rest before a future game given the games already played."""
        prior = [obs.game_date for obs in schedule if obs.game_date < game_date]
        return self.rest_days(game_date, max(prior) if prior else None)


def _game_key(obs: GameObservation) -> str:
    return obs.game_id or obs.game_date.isoformat()


def _line_hits(values: pd.Series, query: LineQuery) -> HitRateResult:
    """Hit rate over one bucket's values, newest first."""
    considered = tuple(float(value) for value in values)
    hits = sum(1 for value in considered if query.hits(value))
    return HitRateResult(
        hit_count=hits,
        total_games=len(considered),
        hit_rate=hits / len(considered) if considered else None,
        values=considered,
        query=query,
    )
