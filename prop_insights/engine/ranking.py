"""League-relative ranking of team metrics.

Two families of metric share the same ranking machinery:

- Pace: per team game, possessions ~ FGA + 0.44*FTA - OREB + TOV, averaged
  over the team's games in a season. Higher pace ranks first.
- Defense allowed: per opposing team, the per-game total of a stat produced
  by its opponents' players (optionally one position), averaged over games.
  Lower allowed ranks first (toughest defense is rank 1).

Rows whose game cannot be matched to a schedule row carry no game id or
opponent and are dropped before aggregation, never counted as zero.

Ranks use ``method="min"`` so tied teams share the better rank.

Example:
    >>> engine = RelativeRankEngine()
    >>> pace = engine.pace_table(box_scores)
    >>> engine.rank(opponent_id, pace, ascending=False)
    RankResult(entity_id=1610612744, value=101.2, rank=4, cohort_size=30, ...)
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

import pandas as pd

from prop_insights.engine.combo import value_of
from prop_insights.engine.eligibility import EligibilityPolicy, filter_eligible
from prop_insights.logging import get_logger
from prop_insights.types import GameObservation, TeamGameObservation, TeamId

if TYPE_CHECKING:
    from prop_insights.engine.catalog import StatSpec

logger = get_logger(__name__)

FTA_POSSESSION_WEIGHT: float = 0.44
POSSESSION_COLUMNS: tuple[str, ...] = ("fga", "fta", "oreb", "tov")

# Basketball positions collapse to guard/forward/center groups
_NBA_POSITION_GROUPS: dict[str, str] = {
    "PG": "G",
    "SG": "G",
    "G": "G",
    "SF": "F",
    "PF": "F",
    "F": "F",
    "C": "C",
}


def estimate_possessions(fga: float, fta: float, oreb: float, tov: float) -> float:
    """Estimate possessions for one team in one game."""
    return fga + FTA_POSSESSION_WEIGHT * fta - oreb + tov


def position_groups(position: str | None) -> frozenset[str]:
    """Collapse a position string ("G-F", "PG", "WR") into comparable groups."""
    if not position:
        return frozenset()
    groups: set[str] = set()
    for token in position.upper().replace("/", "-").split("-"):
        token = token.strip()
        if token:
            groups.add(_NBA_POSITION_GROUPS.get(token, token))
    return frozenset(groups)


def positions_match(requested: str | None, observed: str | None) -> bool:
    """True when the two positions share a group. No filter when requested is empty."""
    wanted = position_groups(requested)
    if not wanted:
        return True
    return bool(wanted & position_groups(observed))


class MatchupLabel(Enum):
    """Categorical read of a defense-allowed value against league average."""

    FAVORABLE = "favorable"
    NEUTRAL = "neutral"
    TOUGH = "tough"


def matchup_label(
    value: float | None, league_average: float | None, threshold_pct: float
) -> MatchupLabel:
    """Label an allowed value using a symmetric band around league average.

    At or above average*(1+pct) the matchup is favorable for the offense;
    at or below average*(1-pct) it is tough.
    """
    if value is None or league_average is None or league_average == 0:
        return MatchupLabel.NEUTRAL
    if value >= league_average * (1 + threshold_pct):
        return MatchupLabel.FAVORABLE
    if value <= league_average * (1 - threshold_pct):
        return MatchupLabel.TOUGH
    return MatchupLabel.NEUTRAL


@dataclass(frozen=True)
class RankResult:
    """Where one entity sits in a league distribution.

    Attributes:
        entity_id: Ranked team.
        value: The team's metric, None when it has no data.
        rank: 1-based rank, None when the team is not in the cohort.
        cohort_size: Teams with a value.
        league_average: Mean of the cohort's values.
        ascending: True when the lowest value ranks first.
    """

    entity_id: TeamId
    value: float | None
    rank: int | None
    cohort_size: int
    league_average: float | None
    ascending: bool

    @property
    def found(self) -> bool:
        return self.rank is not None

    @property
    def ordinal(self) -> str:
        return ordinal(self.rank) if self.rank is not None else "n/a"


def ordinal(n: int) -> str:
    """1 -> "1st", 22 -> "22nd", 13 -> "13th"."""
    if 10 <= n % 100 <= 20:
        suffix = "th"
    else:
        suffix = {1: "st", 2: "nd", 3: "rd"}.get(n % 10, "th")
    return f"{n}{suffix}"


class RelativeRankEngine:
    """Build league tables and rank teams within them.

    Tables are ``pd.Series`` indexed by team id. ``rank`` accepts any
    mapping from team id to value.
    """

    def rank(
        self,
        entity_id: TeamId,
        metrics: Mapping[TeamId, float] | pd.Series,
        ascending: bool = False,
    ) -> RankResult:
        """Rank one team within a metric table.

        Args:
            entity_id: Team to rank.
            metrics: Team id to metric value; NaN values are excluded.
            ascending: Rank lowest value first when True.

        Returns:
            RankResult; rank and value are None when the team is absent.
        """
        series = pd.Series(metrics, dtype="float64").dropna()
        if series.empty:
            return RankResult(entity_id, None, None, 0, None, ascending)

        ranks = series.rank(method="min", ascending=ascending)
        league_average = float(series.mean())
        if entity_id not in series.index:
            return RankResult(
                entity_id, None, None, len(series), league_average, ascending
            )
        return RankResult(
            entity_id=entity_id,
            value=float(series[entity_id]),
            rank=int(ranks[entity_id]),
            cohort_size=len(series),
            league_average=league_average,
            ascending=ascending,
        )

    # -------------------------------------------------------------------------
    # Team box score derivations
    # -------------------------------------------------------------------------

    @staticmethod
    def _box_frame(
        box_scores: Iterable[TeamGameObservation], columns: tuple[str, ...]
    ) -> pd.DataFrame:
        records = []
        dropped = 0
        for row in box_scores:
            if row.game_id is None or row.opponent_id is None:
                dropped += 1
                continue
            record: dict[str, object] = {
                "team_id": row.team_id,
                "game_id": row.game_id,
                "opponent_id": row.opponent_id,
                "game_date": row.game_date,
            }
            for column in columns:
                record[column] = row.value(column)
            records.append(record)
        if dropped:
            logger.debug("Dropped {} box score rows with no schedule match", dropped)

        frame = pd.DataFrame.from_records(
            records, columns=["team_id", "game_id", "opponent_id", "game_date", *columns]
        )
        frame = frame.dropna(subset=list(columns))
        return frame.astype({column: "float64" for column in columns})

    def possessions_frame(
        self, box_scores: Iterable[TeamGameObservation], include_points: bool = True
    ) -> pd.DataFrame:
        """One row per matched team game with estimated possessions."""
        columns = (*POSSESSION_COLUMNS, "pts") if include_points else POSSESSION_COLUMNS
        frame = self._box_frame(box_scores, columns)
        frame["possessions"] = estimate_possessions(
            frame["fga"], frame["fta"], frame["oreb"], frame["tov"]
        )
        return frame

    def pace_table(self, box_scores: Iterable[TeamGameObservation]) -> pd.Series:
        """Average possessions per game for each team."""
        frame = self.possessions_frame(box_scores, include_points=False)
        if frame.empty:
            return pd.Series(dtype="float64")
        return frame.groupby("team_id")["possessions"].mean()

    def per_game_table(
        self, box_scores: Iterable[TeamGameObservation], column: str
    ) -> pd.Series:
        """Average of one team box score column per game for each team."""
        frame = self._box_frame(box_scores, (column,))
        if frame.empty:
            return pd.Series(dtype="float64")
        return frame.groupby("team_id")[column].mean()

    def defensive_rating_table(
        self, box_scores: Iterable[TeamGameObservation]
    ) -> pd.Series:
        """Points allowed per 100 opponent possessions for each team.

        Each team game is paired with the opponent's row for the same game;
        games where the opponent's row is missing are skipped.
        """
        frame = self.possessions_frame(box_scores)
        if frame.empty:
            return pd.Series(dtype="float64")

        opponents = frame[["game_id", "team_id", "pts", "possessions"]].rename(
            columns={
                "team_id": "opponent_id",
                "pts": "opp_pts",
                "possessions": "opp_possessions",
            }
        )
        paired = frame.merge(opponents, on=["game_id", "opponent_id"], how="inner")
        if paired.empty:
            return pd.Series(dtype="float64")

        totals = paired.groupby("team_id")[["opp_pts", "opp_possessions"]].sum()
        totals = totals[totals["opp_possessions"] > 0]
        return totals["opp_pts"] / totals["opp_possessions"] * 100

    # -------------------------------------------------------------------------
    # Player observation derivations
    # -------------------------------------------------------------------------

    def defense_allowed_table(
        self,
        observations: Iterable[GameObservation],
        spec: StatSpec,
        position: str | None = None,
        policy: EligibilityPolicy | None = None,
    ) -> pd.Series:
        """Average per-game stat allowed by each team to opposing players.

        Args:
            observations: League-wide player observations for one season.
            spec: Stat whose allowed total is measured.
            position: Only count opposing players sharing this position group.
            policy: Eligibility rules; when None only stat presence is checked.

        Returns:
            Series indexed by defending team id.
        """
        if policy is None:
            policy = EligibilityPolicy(min_participation=0, require_participation=False)

        matched = [
            obs
            for obs in observations
            if obs.opponent_id is not None
            and obs.game_id is not None
            and positions_match(position, obs.position)
        ]
        eligible = filter_eligible(matched, spec, policy)
        if not eligible:
            return pd.Series(dtype="float64")

        frame = pd.DataFrame(
            {
                "defense_id": [obs.opponent_id for obs in eligible],
                "game_id": [obs.game_id for obs in eligible],
                "value": [value_of(obs, spec) for obs in eligible],
            }
        )
        per_game = frame.groupby(["defense_id", "game_id"])["value"].sum()
        return per_game.groupby(level="defense_id").mean()
