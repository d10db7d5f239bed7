"""Season context and season fallback resolution.

The current season is determined once per request (``SeasonContext``) and
threaded through every computation. ``SeasonFallbackResolver`` decides which
seasons' games feed a computation when the current season is thin.

Fallback rules:
    - When the current season has at least ``min_samples`` eligible games,
      only the current season is fetched (``SeasonSource.CURRENT``).
    - When it has none, the earlier seasons are used in full
      (``SeasonSource.SUBSTITUTED``).
    - When it has some but too few, ``FallbackMode.SUPPLEMENT`` keeps every
      current game and fills the remaining slots with the most recent games
      of earlier seasons (``SeasonSource.SUPPLEMENTED``), while
      ``FallbackMode.REPLACE`` switches wholesale to the previous season when
      that season has more eligible games (``SeasonSource.SUBSTITUTED``).

Every selection reports the seasons it used and which rule applied so that
narratives can disclose where the numbers came from.

Example:
    >>> context = SeasonContext.resolve(repository, Sport.NBA)
    >>> window = SeasonWindow.from_context(context, min_samples=3)
    >>> selection = SeasonFallbackResolver(repository).resolve(entity, spec, window)
    >>> selection.source, selection.seasons_used
    (<SeasonSource.SUPPLEMENTED: 'supplemented'>, (2024, 2023))
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

from prop_insights.config import get_settings
from prop_insights.engine.eligibility import EligibilityPolicy, filter_eligible
from prop_insights.logging import WARN, get_logger
from prop_insights.types import (
    EntityRef,
    GameLogRepository,
    GameObservation,
    ObservationQuery,
    Season,
    Sport,
)

if TYPE_CHECKING:
    from prop_insights.engine.catalog import StatSpec

logger = get_logger(__name__)


class FallbackMode(Enum):
    """How partial current-season data is combined with earlier seasons."""

    SUPPLEMENT = "supplement"
    REPLACE = "replace"


class SeasonSource(Enum):
    """Which rule produced a selection."""

    CURRENT = "current"
    SUPPLEMENTED = "supplemented"
    SUBSTITUTED = "substituted"


@dataclass(frozen=True)
class SeasonContext:
    """Request-wide season facts.

    Attributes:
        sport: League of the request.
        current_season: Most recent season on record.
        inferred: True when the store had no games and the configured
            default season was assumed.
    """

    sport: Sport
    current_season: Season
    inferred: bool = False

    @property
    def previous_season(self) -> Season:
        return self.current_season - 1

    def seasons(self, depth: int = 2) -> tuple[Season, ...]:
        """Current season followed by ``depth - 1`` prior seasons."""
        return tuple(self.current_season - offset for offset in range(max(depth, 1)))

    @classmethod
    def resolve(
        cls,
        repository: GameLogRepository,
        sport: Sport,
        default: Season | None = None,
    ) -> SeasonContext:
        """Ask the repository for the latest season, once per request."""
        season = repository.most_recent_season(sport)
        if season is None:
            if default is None:
                default = get_settings().default_season
            logger.warning(
                f"{WARN} Could not determine current {sport.value} season, "
                f"defaulting to {default}"
            )
            return cls(sport=sport, current_season=default, inferred=True)
        return cls(sport=sport, current_season=season)


@dataclass(frozen=True)
class SeasonWindow:
    """Ordered season preference with a minimum sample threshold.

    Attributes:
        seasons: Seasons to draw from, current first.
        min_samples: Eligible games needed before earlier seasons are skipped.
        fetch_limit: Maximum rows fetched per season (None for all).
    """

    seasons: tuple[Season, ...]
    min_samples: int
    fetch_limit: int | None = None

    def __post_init__(self) -> None:
        if not self.seasons:
            raise ValueError("SeasonWindow needs at least one season")
        if self.min_samples < 1:
            raise ValueError("min_samples must be positive")

    @property
    def current(self) -> Season:
        return self.seasons[0]

    @classmethod
    def from_context(
        cls,
        context: SeasonContext,
        min_samples: int,
        depth: int = 2,
        fetch_limit: int | None = None,
    ) -> SeasonWindow:
        return cls(context.seasons(depth), min_samples, fetch_limit)


@dataclass(frozen=True)
class SeasonSelection:
    """Observations chosen by the resolver plus their provenance.

    Attributes:
        source: Rule that applied.
        seasons_used: Seasons that contributed at least one observation,
            in preference order.
        observations: Eligible observations, newest first.
        current_season: First season of the window.
        current_count: Eligible games found in the current season.
    """

    source: SeasonSource
    seasons_used: tuple[Season, ...]
    observations: tuple[GameObservation, ...]
    current_season: Season
    current_count: int

    @property
    def primary_season(self) -> Season:
        """Season a baseline should be computed over."""
        return self.seasons_used[0] if self.seasons_used else self.current_season

    @property
    def baseline(self) -> tuple[GameObservation, ...]:
        """Observations belonging to the primary season only."""
        season = self.primary_season
        return tuple(obs for obs in self.observations if obs.season == season)

    @property
    def is_fallback(self) -> bool:
        return self.source is not SeasonSource.CURRENT

    def describe(self) -> str:
        """One sentence disclosing provenance, empty for pure current season."""
        if self.source is SeasonSource.SUBSTITUTED:
            used = ", ".join(str(s) for s in self.seasons_used)
            return (
                f"Using {used} data because the {self.current_season} season "
                f"has {self.current_count} qualifying games."
            )
        if self.source is SeasonSource.SUPPLEMENTED:
            earlier = ", ".join(str(s) for s in self.seasons_used[1:])
            return (
                f"Only {self.current_count} qualifying games in {self.current_season}; "
                f"filled in with games from {earlier}."
            )
        return ""


def order_recent_first(observations: list[GameObservation]) -> list[GameObservation]:
    """Sort by game date, newest first; stable for same-day rows."""
    return sorted(observations, key=lambda obs: obs.game_date, reverse=True)


class SeasonFallbackResolver:
    """Choose season data for an entity and stat.

    Attributes:
        repository: Game log source.

    Example:
        >>> resolver = SeasonFallbackResolver(repository)
        >>> selection = resolver.resolve(entity, spec, window, policy)
    """

    def __init__(self, repository: GameLogRepository) -> None:
        self.repository = repository

    def _eligible_for_season(
        self,
        entity: EntityRef,
        spec: StatSpec,
        season: Season,
        window: SeasonWindow,
        policy: EligibilityPolicy,
        opponent_id: int | None,
    ) -> list[GameObservation]:
        rows = self.repository.fetch_observations(
            entity,
            ObservationQuery(
                season=season, opponent_id=opponent_id, limit=window.fetch_limit
            ),
        )
        return order_recent_first(filter_eligible(rows, spec, policy))

    def resolve(
        self,
        entity: EntityRef,
        spec: StatSpec,
        window: SeasonWindow,
        policy: EligibilityPolicy | None = None,
        mode: FallbackMode = FallbackMode.SUPPLEMENT,
        opponent_id: int | None = None,
    ) -> SeasonSelection:
        """Resolve which seasons feed a computation.

        Args:
            entity: Player or team.
            spec: Stat whose columns must be present.
            window: Seasons and threshold.
            policy: Eligibility rules (sport default when None).
            mode: How partial current-season data is handled.
            opponent_id: Restrict to games against one opponent.

        Returns:
            SeasonSelection with observations newest first.
        """
        if policy is None:
            policy = EligibilityPolicy.for_sport(entity.sport, kind=entity.kind)

        current = self._eligible_for_season(
            entity, spec, window.current, window, policy, opponent_id
        )
        current_count = len(current)

        if current_count >= window.min_samples or len(window.seasons) == 1:
            return SeasonSelection(
                source=SeasonSource.CURRENT,
                seasons_used=(window.current,) if current else (),
                observations=tuple(current),
                current_season=window.current,
                current_count=current_count,
            )

        logger.info(
            "{} {}: {} qualifying games in {} (need {}), consulting earlier seasons",
            entity.name or entity.entity_id,
            spec.key,
            current_count,
            window.current,
            window.min_samples,
        )

        if current_count == 0:
            return self._substitute(entity, spec, window, policy, opponent_id)

        if mode is FallbackMode.REPLACE:
            previous_season = window.seasons[1]
            previous = self._eligible_for_season(
                entity, spec, previous_season, window, policy, opponent_id
            )
            if len(previous) > current_count:
                return SeasonSelection(
                    source=SeasonSource.SUBSTITUTED,
                    seasons_used=(previous_season,),
                    observations=tuple(previous),
                    current_season=window.current,
                    current_count=current_count,
                )
            return SeasonSelection(
                source=SeasonSource.CURRENT,
                seasons_used=(window.current,),
                observations=tuple(current),
                current_season=window.current,
                current_count=current_count,
            )

        return self._supplement(
            entity, spec, window, policy, opponent_id, current
        )

    def _substitute(
        self,
        entity: EntityRef,
        spec: StatSpec,
        window: SeasonWindow,
        policy: EligibilityPolicy,
        opponent_id: int | None,
    ) -> SeasonSelection:
        collected: list[GameObservation] = []
        used: list[Season] = []
        for season in window.seasons[1:]:
            rows = self._eligible_for_season(
                entity, spec, season, window, policy, opponent_id
            )
            if rows:
                collected.extend(rows)
                used.append(season)
            if len(collected) >= window.min_samples:
                break

        if not collected:
            return SeasonSelection(
                source=SeasonSource.CURRENT,
                seasons_used=(),
                observations=(),
                current_season=window.current,
                current_count=0,
            )
        return SeasonSelection(
            source=SeasonSource.SUBSTITUTED,
            seasons_used=tuple(used),
            observations=tuple(collected),
            current_season=window.current,
            current_count=0,
        )

    def _supplement(
        self,
        entity: EntityRef,
        spec: StatSpec,
        window: SeasonWindow,
        policy: EligibilityPolicy,
        opponent_id: int | None,
        current: list[GameObservation],
    ) -> SeasonSelection:
        collected = list(current)
        used: list[Season] = [window.current]
        for season in window.seasons[1:]:
            needed = window.min_samples - len(collected)
            if needed <= 0:
                break
            rows = self._eligible_for_season(
                entity, spec, season, window, policy, opponent_id
            )
            if rows:
                collected.extend(rows[:needed])
                used.append(season)

        source = SeasonSource.SUPPLEMENTED if len(used) > 1 else SeasonSource.CURRENT
        return SeasonSelection(
            source=source,
            seasons_used=tuple(used),
            observations=tuple(collected),
            current_season=window.current,
            current_count=len(current),
        )
