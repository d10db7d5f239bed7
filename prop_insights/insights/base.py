"""Shared structures for insight computations.

Each insight is a small class with declarative applicability (sports, entity
kinds, whether it needs a line or an opponent, which stats it covers) and a
``compute`` method that turns an ``InsightContext`` into an ``InsightResult``.
Insights never raise for thin data: they return
``InsightResult.insufficient(...)`` instead. Anything they do raise is caught
by the composer and becomes ``InsightResult.failed(...)``.

Status ordering (least to most severe):
    SUCCESS  the data supports the bet
    INFO     neutral or informational, also used for insufficient data
    WARNING  mixed signal
    DANGER   the data argues against the bet
    ERROR    the computation failed
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, ClassVar

from prop_insights.engine.calculators import Direction, LineQuery
from prop_insights.engine.eligibility import EligibilityPolicy
from prop_insights.engine.ranking import MatchupLabel
from prop_insights.engine.seasons import (
    SeasonContext,
    SeasonFallbackResolver,
    SeasonSelection,
    SeasonWindow,
)
from prop_insights.types import EntityKind, EntityRef, GameLogRepository, Sport

if TYPE_CHECKING:
    from prop_insights.config import Settings
    from prop_insights.engine.catalog import StatSpec


class Status(Enum):
    """Closed set of insight verdicts."""

    SUCCESS = "success"
    INFO = "info"
    WARNING = "warning"
    DANGER = "danger"
    ERROR = "error"

    @property
    def severity(self) -> int:
        return _SEVERITY[self]

    @classmethod
    def worst(cls, statuses: Iterable[Status]) -> Status | None:
        """Most severe status in ``statuses``, None when empty."""
        ordered = sorted(statuses, key=lambda status: status.severity)
        return ordered[-1] if ordered else None


_SEVERITY: dict[Status, int] = {
    Status.SUCCESS: 0,
    Status.INFO: 1,
    Status.WARNING: 2,
    Status.DANGER: 3,
    Status.ERROR: 4,
}


def status_from_hit_rate(rate: float | None) -> Status:
    """>= 70% supports the bet, <= 30% argues against it."""
    if rate is None:
        return Status.INFO
    if rate >= 0.7:
        return Status.SUCCESS
    if rate <= 0.3:
        return Status.DANGER
    return Status.WARNING


def status_for_label(label: MatchupLabel, direction: Direction) -> Status:
    """Translate a matchup label into a verdict for the bet direction."""
    if label is MatchupLabel.NEUTRAL:
        return Status.WARNING
    favorable = label is MatchupLabel.FAVORABLE
    if direction is Direction.UNDER:
        favorable = not favorable
    return Status.SUCCESS if favorable else Status.DANGER


def _plain(value: Any) -> Any:
    """Convert a value to JSON-compatible builtins."""
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, Mapping):
        return {str(k): _plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_plain(v) for v in value]
    if isinstance(value, float):
        return round(value, 4)
    return value


@dataclass(frozen=True)
class InsightResult:
    """Outcome of one insight.

    Attributes:
        insight_id: Stable identifier (e.g., "last10_hit_rate").
        title: Short display title.
        narrative: Human-readable sentence(s).
        status: Verdict.
        value: Short display value (e.g., "7/10", "Rank #4").
        fields: Computed numeric fields; None where data was insufficient.
        details: Optional per-game rows.
        seasons_used: Seasons the numbers came from.
        season_source: Fallback rule that applied, when seasons were resolved.
        insufficient_data: True when the sample was too small.
        error: Failure message for ERROR results.
    """

    insight_id: str
    title: str
    narrative: str
    status: Status
    value: str | None = None
    fields: Mapping[str, Any] = field(default_factory=dict)
    details: tuple[Mapping[str, Any], ...] = ()
    seasons_used: tuple[int, ...] = ()
    season_source: str | None = None
    insufficient_data: bool = False
    error: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "fields", MappingProxyType(dict(self.fields)))
        object.__setattr__(
            self,
            "details",
            tuple(MappingProxyType(dict(row)) for row in self.details),
        )

    @property
    def ok(self) -> bool:
        return self.status is not Status.ERROR

    @classmethod
    def insufficient(
        cls,
        insight_id: str,
        title: str,
        narrative: str,
        fields: Iterable[str] = (),
        seasons_used: tuple[int, ...] = (),
        **extra: Any,
    ) -> InsightResult:
        """Result for a sample below the computation's minimum."""
        values: dict[str, Any] = {name: None for name in fields}
        values.update(extra)
        return cls(
            insight_id=insight_id,
            title=title,
            narrative=narrative,
            status=Status.INFO,
            value="N/A",
            fields=values,
            seasons_used=seasons_used,
            insufficient_data=True,
        )

    @classmethod
    def failed(cls, insight_id: str, title: str, error: str) -> InsightResult:
        """Result for a computation that raised or timed out."""
        return cls(
            insight_id=insight_id,
            title=title,
            narrative=f"Could not compute {title.lower()}.",
            status=Status.ERROR,
            value="Error",
            error=error,
        )

    def to_dict(self) -> dict[str, Any]:
        """JSON-compatible representation."""
        data: dict[str, Any] = {
            "id": self.insight_id,
            "title": self.title,
            "narrative": self.narrative,
            "status": self.status.value,
            "value": self.value,
            "fields": _plain(self.fields),
            "seasons_used": list(self.seasons_used),
            "season_source": self.season_source,
            "insufficient_data": self.insufficient_data,
        }
        if self.details:
            data["details"] = _plain(self.details)
        if self.error is not None:
            data["error"] = self.error
        return data


@dataclass(frozen=True)
class InsightContext:
    """Everything an insight may read, resolved once per request.

    Attributes:
        entity: Resolved player or team.
        spec: Resolved stat.
        season: Request-wide season context.
        repository: Game log source.
        settings: Configuration snapshot.
        query: Line and direction, None when no line was given.
        direction: Normalized direction (over when not given).
        opponent: Resolved opponent team, when known.
        game_date: Date of the game being bet on, when known.
    """

    entity: EntityRef
    spec: StatSpec
    season: SeasonContext
    repository: GameLogRepository
    settings: Settings
    query: LineQuery | None = None
    direction: Direction = Direction.OVER
    opponent: EntityRef | None = None
    game_date: date | None = None

    @property
    def sport(self) -> Sport:
        return self.entity.sport

    @property
    def resolver(self) -> SeasonFallbackResolver:
        return SeasonFallbackResolver(self.repository)

    def policy(self, minimum: int | None = None) -> EligibilityPolicy:
        return EligibilityPolicy.for_sport(self.sport, minimum, self.entity.kind)

    def window(
        self, min_samples: int, depth: int = 2, fetch_limit: int | None = None
    ) -> SeasonWindow:
        return SeasonWindow.from_context(self.season, min_samples, depth, fetch_limit)


class Insight(ABC):
    """Base class for insight computations.

    Subclasses set the class attributes below and implement ``compute``.

    Attributes:
        insight_id: Stable identifier used as the bundle key.
        title: Display title.
        sports: Leagues the insight supports.
        kinds: Entity kinds the insight supports.
        requires_line: Skip when no line was given.
        requires_opponent: Skip when no opponent could be resolved.
        stat_keys: Stat keys the insight covers, None for every stat.
    """

    insight_id: ClassVar[str]
    title: ClassVar[str]
    sports: ClassVar[frozenset[Sport]] = frozenset({Sport.NBA, Sport.NFL})
    kinds: ClassVar[frozenset[EntityKind]] = frozenset({EntityKind.PLAYER})
    requires_line: ClassVar[bool] = False
    requires_opponent: ClassVar[bool] = False
    stat_keys: ClassVar[frozenset[str] | None] = None

    def skip_reason(self, ctx: InsightContext) -> str | None:
        """Why this insight does not apply, None when it does."""
        if ctx.sport not in self.sports:
            return f"not available for {ctx.sport.value.upper()}"
        if ctx.entity.kind not in self.kinds:
            return f"not available for {ctx.entity.kind.value} requests"
        if self.stat_keys is not None and ctx.spec.key not in self.stat_keys:
            return f"not applicable to {ctx.spec.label}"
        if self.requires_line and ctx.query is None:
            return "requires a line"
        if self.requires_opponent and ctx.opponent is None:
            return "requires an opponent"
        return None

    @abstractmethod
    def compute(self, ctx: InsightContext) -> InsightResult:
        """Run the computation."""

    def result(
        self,
        narrative: str,
        status: Status,
        value: str | None = None,
        fields: Mapping[str, Any] | None = None,
        details: Iterable[Mapping[str, Any]] = (),
        selection: SeasonSelection | None = None,
        seasons_used: tuple[int, ...] = (),
    ) -> InsightResult:
        """Build this insight's result, carrying selection provenance."""
        source = None
        if selection is not None:
            seasons_used = seasons_used or selection.seasons_used
            source = selection.source.value
            if selection.is_fallback:
                narrative = f"{narrative} {selection.describe()}"
        return InsightResult(
            insight_id=self.insight_id,
            title=self.title,
            narrative=narrative,
            status=status,
            value=value,
            fields=fields or {},
            details=tuple(details),
            seasons_used=seasons_used,
            season_source=source,
        )

    def insufficient(
        self,
        narrative: str,
        fields: Iterable[str] = (),
        selection: SeasonSelection | None = None,
        **extra: Any,
    ) -> InsightResult:
        seasons = selection.seasons_used if selection is not None else ()
        return InsightResult.insufficient(
            self.insight_id, self.title, narrative, fields, seasons, **extra
        )


def fmt(value: float | None, digits: int = 1) -> str:
    """Format a number for narratives, "n/a" for None."""
    if value is None:
        return "n/a"
    return f"{value:.{digits}f}"
