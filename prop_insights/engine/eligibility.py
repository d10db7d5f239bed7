"""Eligibility rules deciding which games count toward a computation.

A game counts only when the entity meaningfully participated (minutes for
NBA players, snaps for NFL players) and every column the requested stat
needs is present. Combo stats need all of their components; a game missing
one component is excluded entirely.

Participation parsing accepts integers, integral floats, digit strings
("34") and clock strings ("34:12", minutes taken from the first field).
Anything else, including negative values, fails to parse and the game is
ineligible.

Example:
    >>> from prop_insights.engine.eligibility import EligibilityPolicy, filter_eligible
    >>> policy = EligibilityPolicy.for_sport(Sport.NBA)
    >>> games = filter_eligible(observations, spec, policy)
"""

from __future__ import annotations

import math
import re
from collections.abc import Iterable
from dataclasses import dataclass
from typing import TYPE_CHECKING

from prop_insights.config import get_settings
from prop_insights.types import EntityKind, GameObservation, Sport

if TYPE_CHECKING:
    from prop_insights.engine.catalog import StatSpec

_DIGITS = re.compile(r"^[0-9]+$")
_CLOCK = re.compile(r"^([0-9]+):([0-5][0-9])(?:\.[0-9]+)?$")


@dataclass(frozen=True)
class EligibilityPolicy:
    """Participation threshold and stat presence requirement.

    Attributes:
        min_participation: Minimum parsed minutes/snaps for a game to count.
        require_participation: When False the participation field is ignored
            (team box scores carry none).
        require_stat: When True every stat column must be non-null.
    """

    min_participation: int = 10
    require_participation: bool = True
    require_stat: bool = True

    @classmethod
    def for_sport(
        cls,
        sport: Sport,
        minimum: int | None = None,
        kind: EntityKind = EntityKind.PLAYER,
    ) -> EligibilityPolicy:
        """Build the default policy for a sport and entity kind.

        Args:
            sport: League of the entity.
            minimum: Override for the configured participation floor.
            kind: Teams have no participation field.
        """
        if kind is EntityKind.TEAM:
            return cls(min_participation=0, require_participation=False)
        if minimum is None:
            settings = get_settings()
            minimum = (
                settings.nba_min_minutes if sport is Sport.NBA else settings.nfl_min_snaps
            )
        return cls(min_participation=minimum)


def parse_participation(raw: str | int | float | None) -> int | None:
    """Parse a minutes or snaps field into a non-negative integer.

    Returns:
        Parsed value, or None when the field is missing or malformed.
    """
    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, int):
        return raw if raw >= 0 else None
    if isinstance(raw, float):
        if math.isnan(raw) or raw < 0:
            return None
        return int(raw)

    text = str(raw).strip()
    if _DIGITS.match(text):
        return int(text)
    clock = _CLOCK.match(text)
    if clock:
        return int(clock.group(1))
    return None


def has_stat(observation: GameObservation, spec: StatSpec) -> bool:
    """True when every column of ``spec`` is present on the observation."""
    for column in spec.columns:
        value = observation.value(column)
        if value is None:
            return False
        if isinstance(value, float) and math.isnan(value):
            return False
    return True


def is_eligible(
    observation: GameObservation,
    spec: StatSpec,
    policy: EligibilityPolicy,
) -> bool:
    """Decide whether a single game counts for ``spec``."""
    if policy.require_participation:
        played = parse_participation(observation.participation)
        if played is None or played < policy.min_participation:
            return False
    if policy.require_stat and not has_stat(observation, spec):
        return False
    return True


def filter_eligible(
    observations: Iterable[GameObservation],
    spec: StatSpec,
    policy: EligibilityPolicy,
) -> list[GameObservation]:
    """Keep eligible observations, preserving input order."""
    return [obs for obs in observations if is_eligible(obs, spec, policy)]
