"""Insight computations.

Submodules:
    base: InsightResult, Status, InsightContext and the Insight base class
    performance: Insights from the entity's own game log
    shooting: Shot volume and efficiency trends
    matchup: Opponent context ranked against the league
    team: Team form from final scores
    registry: Static routing table

Example:
    >>> from prop_insights.insights import InsightRegistry
    >>> registry = InsightRegistry.default()
    >>> len(registry)
    25
"""

from __future__ import annotations

from prop_insights.insights.base import (
    Insight,
    InsightContext,
    InsightResult,
    Status,
    status_for_label,
    status_from_hit_rate,
)
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
from prop_insights.insights.registry import DEFAULT_INSIGHTS, InsightRegistry
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

__all__ = [
    # Base
    "Insight",
    "InsightContext",
    "InsightResult",
    "Status",
    "status_for_label",
    "status_from_hit_rate",
    # Own game log
    "DoubleDoubleTrend",
    "HomeAwaySplit",
    "Last10HitRate",
    "MatchupHistory",
    "RecentGames",
    "RestDayPerformance",
    "SeasonVsLast3",
    # Shooting
    "FgPctTrend",
    "ShootingVolumeTrend",
    "ThreePointPctTrend",
    "ThreePointVolumeTrend",
    # Opponent context
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
    # Team form
    "HeadToHead",
    "TeamLast10Record",
    "VenueLast5",
    "VenueWinRate",
    # Registry
    "DEFAULT_INSIGHTS",
    "InsightRegistry",
]
