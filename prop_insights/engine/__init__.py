"""Core computation engine for prop insights.

Submodules:
    catalog: Stat name resolution for single and combo stats
    eligibility: Participation and stat presence rules
    seasons: Season context and season fallback resolution
    combo: Value extraction for single and combo stats
    calculators: Hit rates, averages, trends and home/away splits
    ranking: League-relative ranking (pace, defense allowed)
    rest: Rest-day derivation

Example:
    >>> from prop_insights.engine import StatCatalog, LineQuery, hit_rate
    >>> spec = StatCatalog().resolve("pra")
    >>> result = hit_rate(games, spec, LineQuery(30.5))
"""

from __future__ import annotations

from prop_insights.engine.calculators import (
    Direction,
    HitRateResult,
    HomeAwaySplit,
    LineComparison,
    LineQuery,
    RecentVsBaseline,
    average,
    hit_rate,
    home_away_split,
    normalize_direction,
    parse_line,
    recent_vs_baseline,
    trend_label,
    values_of,
)
from prop_insights.engine.catalog import (
    StatCatalog,
    StatSpec,
    get_catalog,
    normalize_stat_name,
)
from prop_insights.engine.combo import component_values, value_of
from prop_insights.engine.eligibility import (
    EligibilityPolicy,
    filter_eligible,
    has_stat,
    is_eligible,
    parse_participation,
)
from prop_insights.engine.ranking import (
    MatchupLabel,
    RankResult,
    RelativeRankEngine,
    estimate_possessions,
    matchup_label,
    ordinal,
    positions_match,
)
from prop_insights.engine.rest import RestBucketSummary, RestDayCalculator
from prop_insights.engine.seasons import (
    FallbackMode,
    SeasonContext,
    SeasonFallbackResolver,
    SeasonSelection,
    SeasonSource,
    SeasonWindow,
)

__all__ = [
    # Catalog
    "StatCatalog",
    "StatSpec",
    "get_catalog",
    "normalize_stat_name",
    # Eligibility
    "EligibilityPolicy",
    "filter_eligible",
    "has_stat",
    "is_eligible",
    "parse_participation",
    # Seasons
    "FallbackMode",
    "SeasonContext",
    "SeasonFallbackResolver",
    "SeasonSelection",
    "SeasonSource",
    "SeasonWindow",
    # Combo
    "component_values",
    "value_of",
    # Calculators
    "Direction",
    "HitRateResult",
    "HomeAwaySplit",
    "LineComparison",
    "LineQuery",
    "RecentVsBaseline",
    "average",
    "hit_rate",
    "home_away_split",
    "normalize_direction",
    "parse_line",
    "recent_vs_baseline",
    "trend_label",
    "values_of",
    # Ranking
    "MatchupLabel",
    "RankResult",
    "RelativeRankEngine",
    "estimate_possessions",
    "matchup_label",
    "ordinal",
    "positions_match",
    # Rest
    "RestBucketSummary",
    "RestDayCalculator",
]
