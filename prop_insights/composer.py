"""Compose insight bundles for a prop request.

The composer validates the request, resolves the entity, opponent and season
once, then runs every applicable insight concurrently and collects the
results keyed by insight id.

Failure handling:
    - Input problems (unknown stat, bad line or direction, missing
      identifier, unsupported sport) raise ``InputError`` before any
      repository call is made.
    - An unresolvable player, team or explicit opponent raises
      ``EntityNotFoundError``.
    - Anything an insight raises, and any insight that overruns its
      timeout, becomes an ERROR result; sibling insights are unaffected.

Latency:
    At most ``max_workers`` insights run at once. Each insight gets
    ``insight_timeout`` seconds from the moment it starts running, so time
    spent queued behind other insights is not charged to it. Threads that
    overrun are abandoned, not joined, and give their slot to the queue.

Example:
    >>> from prop_insights.composer import InsightComposer, InsightRequest
    >>> from prop_insights.data import SqlGameLogRepository
    >>> composer = InsightComposer(SqlGameLogRepository())
    >>> bundle = composer.compose(
    ...     InsightRequest(stat="points", player="LeBron James", line=24.5)
    ... )
    >>> bundle.results["last10_hit_rate"].value
    '70%'
"""

from __future__ import annotations

import threading
import time
from collections.abc import Iterable, Mapping
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from datetime import date
from types import MappingProxyType
from typing import Any

from prop_insights.config import Settings, get_settings
from prop_insights.engine.calculators import (
    Direction,
    LineQuery,
    normalize_direction,
)
from prop_insights.engine.catalog import StatSpec, get_catalog
from prop_insights.engine.seasons import SeasonContext
from prop_insights.insights.base import Insight, InsightContext, InsightResult, Status
from prop_insights.insights.registry import InsightRegistry
from prop_insights.logging import (
    FAIL,
    NO_CONTEXT,
    SUCCESS,
    WARN,
    get_logger,
    insight_scope,
    new_request_id,
)
from prop_insights.types import (
    EntityKind,
    EntityNotFoundError,
    EntityRef,
    FetchTimeoutError,
    GameLogRepository,
    InputError,
    MissingIdentifierError,
    RepositoryError,
    Sport,
)

logger = get_logger(__name__)


# =============================================================================
# Request / Response
# =============================================================================


@dataclass(frozen=True)
class InsightRequest:
    """One prop to analyse.

    Attributes:
        stat: Stat name as written by the bettor ("points", "pras", ...).
        player: Player name or id.
        team: Team name, abbreviation or id; used when no player is given.
        line: Betting line, None to skip line-based insights.
        direction: Over/under token; defaults to over.
        opponent: Opponent team; looked up from the schedule when omitted.
        sport: "nba" or "nfl".
        game_date: Date of the game being bet on.
    """

    stat: str
    player: str | int | None = None
    team: str | int | None = None
    line: str | float | None = None
    direction: str | None = None
    opponent: str | int | None = None
    sport: str | Sport = Sport.NBA
    game_date: date | None = None


@dataclass(frozen=True)
class ValidatedRequest:
    """Request after input validation; no repository access needed."""

    sport: Sport
    kind: EntityKind
    identifier: str | int
    spec: StatSpec
    query: LineQuery | None
    direction: Direction
    opponent: str | int | None
    game_date: date | None


@dataclass(frozen=True)
class InsightBundle:
    """All results for one request.

    Attributes:
        entity: Resolved player or team.
        stat: Resolved stat.
        season: Season context shared by every insight.
        results: Insight id to result, in registry order.
        skipped: Insight id to the reason it did not apply.
        opponent: Resolved opponent, when known.
        query: Line and direction, when a line was given.
        direction: Normalized direction.
        elapsed: Wall time of the fan-out in seconds.
        request_id: Tag carried by every log record of this compose call.
    """

    entity: EntityRef
    stat: StatSpec
    season: SeasonContext
    results: Mapping[str, InsightResult]
    skipped: Mapping[str, str] = field(default_factory=dict)
    opponent: EntityRef | None = None
    query: LineQuery | None = None
    direction: Direction = Direction.OVER
    elapsed: float = 0.0
    request_id: str = NO_CONTEXT

    def __post_init__(self) -> None:
        object.__setattr__(self, "results", MappingProxyType(dict(self.results)))
        object.__setattr__(self, "skipped", MappingProxyType(dict(self.skipped)))

    @property
    def errors(self) -> dict[str, InsightResult]:
        return {key: r for key, r in self.results.items() if r.status is Status.ERROR}

    @property
    def ok(self) -> bool:
        """True when no insight failed."""
        return not self.errors

    @property
    def overall_status(self) -> Status | None:
        """Most severe verdict in the bundle, None when nothing ran."""
        return Status.worst(result.status for result in self.results.values())

    def to_dict(self) -> dict[str, Any]:
        """JSON-compatible representation."""
        return {
            "entity": {
                "kind": self.entity.kind.value,
                "id": self.entity.entity_id,
                "name": self.entity.name,
                "team_id": self.entity.team_id,
                "position": self.entity.position,
            },
            "sport": self.entity.sport.value,
            "stat": {
                "key": self.stat.key,
                "label": self.stat.label,
                "columns": list(self.stat.columns),
            },
            "line": self.query.line if self.query is not None else None,
            "direction": self.direction.value,
            "opponent": (
                {"id": self.opponent.entity_id, "name": self.opponent.name}
                if self.opponent is not None
                else None
            ),
            "season": self.season.current_season,
            "season_inferred": self.season.inferred,
            "insights": {key: result.to_dict() for key, result in self.results.items()},
            "skipped": dict(self.skipped),
            "errors": sorted(self.errors),
            "overall_status": (
                self.overall_status.value if self.overall_status is not None else None
            ),
            "request_id": self.request_id,
        }


# =============================================================================
# Composer
# =============================================================================


def parse_sport(value: str | Sport | None) -> Sport:
    """Parse a league name; raises InputError for anything unsupported."""
    if isinstance(value, Sport):
        return value
    if value is None or not str(value).strip():
        return Sport.NBA
    try:
        return Sport(str(value).strip().lower())
    except ValueError as e:
        raise InputError(f"Unsupported sport {value!r}") from e


def _present(value: str | int | None) -> bool:
    return value is not None and str(value).strip() != ""


class InsightComposer:
    """Run the applicable insights for a request.

    Attributes:
        repository: Game log source shared by every insight.
        settings: Windows, thresholds and the per-insight timeout.
        registry: Routing table of insights.
    """

    def __init__(
        self,
        repository: GameLogRepository,
        settings: Settings | None = None,
        registry: InsightRegistry | None = None,
    ) -> None:
        self.repository = repository
        self.settings = settings or get_settings()
        self.registry = registry if registry is not None else InsightRegistry.default()

    # -------------------------------------------------------------------------
    # Validation and resolution
    # -------------------------------------------------------------------------

    def validate(self, request: InsightRequest) -> ValidatedRequest:
        """Check the request without touching the repository.

        Raises:
            UnsupportedStatError: Unknown stat name.
            InvalidLineError: Line is not a finite number.
            InvalidDirectionError: Direction is not an over/under token.
            MissingIdentifierError: Neither player nor team given.
            InputError: Unsupported sport or team request for NFL.
        """
        sport = parse_sport(request.sport)
        spec = get_catalog().resolve(request.stat, sport)
        direction = normalize_direction(request.direction)
        query = LineQuery.from_raw(request.line, direction)

        if _present(request.player):
            kind, identifier = EntityKind.PLAYER, request.player
        elif _present(request.team):
            kind, identifier = EntityKind.TEAM, request.team
        else:
            raise MissingIdentifierError("A player or team is required")
        if kind is EntityKind.TEAM and sport is not Sport.NBA:
            raise InputError("Team insights are only available for NBA")

        assert identifier is not None
        return ValidatedRequest(
            sport=sport,
            kind=kind,
            identifier=identifier,
            spec=spec,
            query=query,
            direction=direction,
            opponent=request.opponent if _present(request.opponent) else None,
            game_date=request.game_date,
        )

    def resolve_entity(self, request: ValidatedRequest) -> EntityRef:
        if request.kind is EntityKind.PLAYER:
            entity = self.repository.find_player(request.identifier, request.sport)
        else:
            entity = self.repository.find_team(request.identifier, request.sport)
        if entity is None:
            raise EntityNotFoundError(
                f"No {request.sport.value.upper()} {request.kind.value} "
                f"matching {request.identifier!r}"
            )
        return entity

    def resolve_opponent(
        self, request: ValidatedRequest, entity: EntityRef
    ) -> EntityRef | None:
        """Explicit opponent, else the team's next scheduled opponent."""
        if request.opponent is not None:
            opponent = self.repository.find_team(request.opponent, request.sport)
            if opponent is None:
                raise EntityNotFoundError(f"No team matching {request.opponent!r}")
            return opponent

        team_id = entity.entity_id if entity.kind is EntityKind.TEAM else entity.team_id
        if team_id is None:
            return None
        try:
            opponent_id = self.repository.next_opponent(team_id, request.game_date)
            if opponent_id is None:
                return None
            return self.repository.find_team(opponent_id, request.sport)
        except RepositoryError as e:
            logger.warning(f"{WARN} Could not look up next opponent for team {team_id}: {e}")
            return None

    # -------------------------------------------------------------------------
    # Fan-out
    # -------------------------------------------------------------------------

    def compose(self, request: InsightRequest) -> InsightBundle:
        """Build the insight bundle for a request.

        Raises:
            InputError: The request is malformed; no insight ran.
            EntityNotFoundError: The player, team or opponent is unknown.
        """
        request_id = new_request_id()
        with logger.contextualize(request=request_id):
            return self._compose(request, request_id)

    def _compose(self, request: InsightRequest, request_id: str) -> InsightBundle:
        validated = self.validate(request)
        entity = self.resolve_entity(validated)
        opponent = self.resolve_opponent(validated, entity)
        season = SeasonContext.resolve(
            self.repository, validated.sport, self.settings.default_season
        )

        ctx = InsightContext(
            entity=entity,
            spec=validated.spec,
            season=season,
            repository=self.repository,
            settings=self.settings,
            query=validated.query,
            direction=validated.direction,
            opponent=opponent,
            game_date=validated.game_date,
        )
        insights, skipped = self.registry.applicable(ctx)

        logger.info(
            "Composing {} insights for {} ({}, {})",
            len(insights),
            entity.name or entity.entity_id,
            validated.spec.key,
            season.current_season,
        )
        start = time.monotonic()
        results = self.run(insights, ctx, request_id)
        elapsed = time.monotonic() - start

        bundle = InsightBundle(
            entity=entity,
            stat=validated.spec,
            season=season,
            results=results,
            skipped=skipped,
            opponent=opponent,
            query=validated.query,
            direction=validated.direction,
            elapsed=elapsed,
            request_id=request_id,
        )
        if bundle.ok:
            logger.info(f"{SUCCESS} {len(results)} insights in {elapsed:.2f}s")
        else:
            logger.warning(
                f"{WARN} {len(bundle.errors)} of {len(results)} insights failed: "
                f"{', '.join(bundle.errors)}"
            )
        return bundle

    def run(
        self,
        insights: list[Insight],
        ctx: InsightContext,
        request_id: str = NO_CONTEXT,
    ) -> dict[str, InsightResult]:
        """Run insights concurrently, each against its own timeout.

        Every insight gets a thread, but only ``max_workers`` of them may hold
        a run slot at once. An insight's clock starts when it takes a slot.
        When it overruns, its thread is abandoned and the slot is handed back
        so queued insights still get their full budget.

        Returns:
            Insight id to result, in the order the insights were given.
        """
        if not insights:
            return {}

        timeout = self.settings.insight_timeout
        slots = threading.BoundedSemaphore(
            max(1, min(self.settings.max_workers, len(insights)))
        )
        executor = ThreadPoolExecutor(
            max_workers=len(insights), thread_name_prefix="insight"
        )
        results: dict[str, InsightResult] = {}
        try:
            pending: dict[Future[InsightResult], _InsightRun] = {}
            for insight in insights:
                state = _InsightRun(insight, slots)
                future = executor.submit(self._execute, state, ctx, request_id)
                pending[future] = state

            while pending:
                done, _ = wait(
                    pending,
                    timeout=_next_wakeup(pending.values(), timeout),
                    return_when=FIRST_COMPLETED,
                )
                for future in done:
                    state = pending.pop(future)
                    results[state.insight.insight_id] = future.result()

                now = time.monotonic()
                for future, state in list(pending.items()):
                    if future.done() or not state.overdue(now, timeout):
                        continue
                    del pending[future]
                    state.release()
                    results[state.insight.insight_id] = self._timed_out(
                        state.insight, timeout
                    )
        finally:
            executor.shutdown(wait=False, cancel_futures=True)
        return {insight.insight_id: results[insight.insight_id] for insight in insights}

    @classmethod
    def _execute(
        cls, state: _InsightRun, ctx: InsightContext, request_id: str
    ) -> InsightResult:
        state.acquire()
        try:
            with insight_scope(state.insight.insight_id, request=request_id):
                return cls._compute(state.insight, ctx)
        finally:
            state.release()

    @staticmethod
    def _compute(insight: Insight, ctx: InsightContext) -> InsightResult:
        try:
            return insight.compute(ctx)
        except Exception as e:
            logger.warning(
                f"{FAIL} {insight.insight_id} raised {type(e).__name__}: {e}"
            )
            return InsightResult.failed(insight.insight_id, insight.title, str(e))

    @staticmethod
    def _timed_out(insight: Insight, timeout: float) -> InsightResult:
        error = FetchTimeoutError(
            f"{insight.insight_id} did not finish within {timeout:g}s"
        )
        logger.error(f"{FAIL} {error}")
        return InsightResult.failed(insight.insight_id, insight.title, str(error))


# Poll interval while some insights are still waiting for a run slot
_QUEUE_POLL_SECONDS = 0.05


class _InsightRun:
    """Slot bookkeeping for one insight in a fan-out.

    The slot is released exactly once, either by the worker when the insight
    returns or by the composer when the insight overruns.
    """

    def __init__(self, insight: Insight, slots: threading.BoundedSemaphore) -> None:
        self.insight = insight
        self.started_at: float | None = None
        self._slots = slots
        self._held = False
        self._lock = threading.Lock()

    def acquire(self) -> None:
        self._slots.acquire()
        with self._lock:
            self._held = True
            self.started_at = time.monotonic()

    def release(self) -> None:
        with self._lock:
            if not self._held:
                return
            self._held = False
        self._slots.release()

    def overdue(self, now: float, timeout: float) -> bool:
        return self.started_at is not None and now - self.started_at >= timeout


def _next_wakeup(runs: Iterable[_InsightRun], timeout: float) -> float:
    """Seconds until the earliest running insight overruns."""
    now = time.monotonic()
    wakeup = timeout
    for state in runs:
        if state.started_at is None:
            wakeup = min(wakeup, _QUEUE_POLL_SECONDS)
        else:
            wakeup = min(wakeup, state.started_at + timeout - now)
    return max(wakeup, 0.0)


__all__ = [
    "InsightBundle",
    "InsightComposer",
    "InsightRequest",
    "ValidatedRequest",
    "parse_sport",
]
