"""Value extraction for single and combo stats.

Every calculator reads stat values through ``value_of`` so that hit rates,
trends, splits and matchup history work unchanged for combo stats.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from prop_insights.types import GameObservation, IneligibleObservationError

if TYPE_CHECKING:
    from prop_insights.engine.catalog import StatSpec


def component_values(observation: GameObservation, spec: StatSpec) -> dict[str, float]:
    """Return each underlying column's value.

    Raises:
        IneligibleObservationError: If a component is missing. Callers filter
            with the eligibility rules first, so this indicates a bug upstream.
    """
    values: dict[str, float] = {}
    for column in spec.columns:
        value = observation.value(column)
        if value is None:
            raise IneligibleObservationError(
                f"Game {observation.game_id} has no {column!r} for {spec.key}"
            )
        values[column] = float(value)
    return values


def value_of(observation: GameObservation, spec: StatSpec) -> float:
    """Sum the stat's columns for one observation."""
    return sum(component_values(observation, spec).values())
