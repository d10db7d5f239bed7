"""Static routing table of insight computations.

The registry holds one instance of every insight in display order and
decides, per request, which of them apply. Applicability is purely
declarative (sport, entity kind, stat, line, opponent); see
``Insight.skip_reason``.

Example:
    >>> from prop_insights.insights.registry import InsightRegistry
    >>> registry = InsightRegistry.default()
    >>> runnable, skipped = registry.applicable(ctx)
    >>> [insight.insight_id for insight in runnable][:2]
    ['last10_hit_rate', 'recent_games']
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator

from prop_insights.insights.base import Insight, InsightContext
from prop_insights.insights.matchup import (
    BothTeamsFgPctLast3,
    DefenseVsPosition,
    OpponentFgPctLast3,
    OpponentFoulTendencies,
    OpponentPaceRank,
    OpponentStealsRank,
    ProjectedGamePace,
    ScoringSourceVsThreeDefense,
    TeamDefenseRank,
    TeamDefensiveRatingRank,
)
from prop_insights.insights.performance import (
    DoubleDoubleTrend,
    HomeAwaySplit,
    Last10HitRate,
    MatchupHistory,
    RecentGames,
    RestDayPerformance,
    SeasonVsLast3,
)
from prop_insights.insights.shooting import (
    FgPctTrend,
    ShootingVolumeTrend,
    ThreePointPctTrend,
    ThreePointVolumeTrend,
)
from prop_insights.insights.team import (
    HeadToHead,
    TeamLast10Record,
    VenueLast5,
    VenueWinRate,
)
from prop_insights.logging import get_logger

logger = get_logger(__name__)

# =============================================================================
# Routing Table
# =============================================================================

DEFAULT_INSIGHTS: tuple[type[Insight], ...] = (
    # Own game log
    Last10HitRate,
    RecentGames,
    SeasonVsLast3,
    HomeAwaySplit,
    MatchupHistory,
    RestDayPerformance,
    DoubleDoubleTrend,
    # Shooting
    ShootingVolumeTrend,
    ThreePointVolumeTrend,
    FgPctTrend,
    ThreePointPctTrend,
    # Opponent context
    DefenseVsPosition,
    TeamDefenseRank,
    ScoringSourceVsThreeDefense,
    OpponentPaceRank,
    ProjectedGamePace,
    OpponentFgPctLast3,
    BothTeamsFgPctLast3,
    OpponentStealsRank,
    OpponentFoulTendencies,
    TeamDefensiveRatingRank,
    # Team form
    TeamLast10Record,
    HeadToHead,
    VenueWinRate,
    VenueLast5,
)


class InsightRegistry:
    """Ordered collection of insights keyed by id.

    Attributes:
        insights: Registered insights in display order.
    """

    def __init__(self, insights: Iterable[Insight]) -> None:
        self._by_id: dict[str, Insight] = {}
        for insight in insights:
            if insight.insight_id in self._by_id:
                raise ValueError(f"Duplicate insight id {insight.insight_id!r}")
            self._by_id[insight.insight_id] = insight

    @classmethod
    def default(cls) -> InsightRegistry:
        """Registry with every built-in insight."""
        return cls(insight_cls() for insight_cls in DEFAULT_INSIGHTS)

    @property
    def insights(self) -> list[Insight]:
        return list(self._by_id.values())

    def __iter__(self) -> Iterator[Insight]:
        return iter(self._by_id.values())

    def __len__(self) -> int:
        return len(self._by_id)

    def __contains__(self, insight_id: object) -> bool:
        return insight_id in self._by_id

    def get(self, insight_id: str) -> Insight:
        """Look up an insight by id.

        Raises:
            KeyError: If no insight has that id.
        """
        return self._by_id[insight_id]

    def applicable(
        self, ctx: InsightContext
    ) -> tuple[list[Insight], dict[str, str]]:
        """Split the registry into insights to run and skip reasons.

        Returns:
            Tuple of (insights to run in order, insight id -> skip reason).
        """
        runnable: list[Insight] = []
        skipped: dict[str, str] = {}
        for insight in self._by_id.values():
            reason = insight.skip_reason(ctx)
            if reason is None:
                runnable.append(insight)
            else:
                skipped[insight.insight_id] = reason
        logger.debug(
            "{} insights apply to {} {}, {} skipped",
            len(runnable),
            ctx.entity.kind.value,
            ctx.spec.key,
            len(skipped),
        )
        return runnable, skipped


__all__ = [
    "DEFAULT_INSIGHTS",
    "InsightRegistry",
]
