"""Tests for season context and fallback resolution."""

from __future__ import annotations

from collections.abc import Callable
from datetime import date
from typing import Any

import pytest

from prop_insights.engine.catalog import get_catalog
from prop_insights.engine.eligibility import EligibilityPolicy
from prop_insights.engine.seasons import (
    FallbackMode,
    SeasonContext,
    SeasonFallbackResolver,
    SeasonSource,
    SeasonWindow,
    order_recent_first,
)
from prop_insights.types import EntityRef, GameObservation, Sport

PTS = get_catalog().resolve("pts")
ANY_MINUTES = EligibilityPolicy(min_participation=0)


def _window(min_samples: int, seasons: tuple[int, ...] = (2024, 2023)) -> SeasonWindow:
    return SeasonWindow(seasons, min_samples)


class TestSeasonContext:
    """Tests for SeasonContext."""

    def test_seasons_newest_first(self) -> None:
        context = SeasonContext(Sport.NBA, 2024)
        assert context.previous_season == 2023
        assert context.seasons(3) == (2024, 2023, 2022)
        assert context.seasons(0) == (2024,)

    def test_resolve_asks_repository_once(self, fake_repo: Any) -> None:
        context = SeasonContext.resolve(fake_repo, Sport.NBA)
        assert context.current_season == 2024
        assert not context.inferred
        assert fake_repo.calls["most_recent_season"] == 1

    def test_resolve_falls_back_to_default(self, fake_repo: Any) -> None:
        fake_repo.current_season = None
        context = SeasonContext.resolve(fake_repo, Sport.NBA, default=2021)
        assert context.current_season == 2021
        assert context.inferred

    def test_resolve_default_from_settings(self, fake_repo: Any) -> None:
        fake_repo.current_season = None
        assert SeasonContext.resolve(fake_repo, Sport.NFL).current_season == 2024


class TestSeasonWindow:
    """Tests for SeasonWindow validation."""

    def test_requires_a_season(self) -> None:
        with pytest.raises(ValueError, match="at least one season"):
            SeasonWindow((), 3)

    def test_requires_positive_minimum(self) -> None:
        with pytest.raises(ValueError, match="positive"):
            SeasonWindow((2024,), 0)

    def test_from_context(self) -> None:
        window = SeasonWindow.from_context(SeasonContext(Sport.NBA, 2024), 10, depth=3)
        assert window.seasons == (2024, 2023, 2022)
        assert window.current == 2024


class TestResolver:
    """Tests for SeasonFallbackResolver."""

    def test_current_season_sufficient(
        self,
        fake_repo: Any,
        lebron: EntityRef,
        make_games: Callable[..., list[GameObservation]],
    ) -> None:
        fake_repo.add_games(lebron, make_games([20, 22, 24], season=2024))
        fake_repo.add_games(
            lebron, make_games([30, 30], season=2023, start=date(2024, 3, 1))
        )

        selection = SeasonFallbackResolver(fake_repo).resolve(
            lebron, PTS, _window(3), ANY_MINUTES
        )

        assert selection.source is SeasonSource.CURRENT
        assert selection.seasons_used == (2024,)
        assert len(selection.observations) == 3
        # Previous season never consulted
        assert fake_repo.calls["fetch_observations"] == 1
        assert selection.describe() == ""

    def test_supplement_fills_from_previous_season(
        self,
        fake_repo: Any,
        lebron: EntityRef,
        make_games: Callable[..., list[GameObservation]],
    ) -> None:
        fake_repo.add_games(
            lebron, make_games([20, 22], season=2024, start=date(2024, 11, 10))
        )
        fake_repo.add_games(
            lebron, make_games([30, 31, 32], season=2023, start=date(2024, 4, 10))
        )

        selection = SeasonFallbackResolver(fake_repo).resolve(
            lebron, PTS, _window(3), ANY_MINUTES, mode=FallbackMode.SUPPLEMENT
        )

        assert selection.source is SeasonSource.SUPPLEMENTED
        assert selection.seasons_used == (2024, 2023)
        assert [obs.value("pts") for obs in selection.observations] == [20, 22, 30]
        assert selection.current_count == 2
        assert selection.primary_season == 2024
        assert len(selection.baseline) == 2
        assert "filled in with games from 2023" in selection.describe()

    def test_substitute_when_current_season_empty(
        self,
        fake_repo: Any,
        lebron: EntityRef,
        make_games: Callable[..., list[GameObservation]],
    ) -> None:
        fake_repo.add_games(
            lebron, make_games([30, 31, 32, 33], season=2023, start=date(2024, 4, 10))
        )

        selection = SeasonFallbackResolver(fake_repo).resolve(
            lebron, PTS, _window(3), ANY_MINUTES
        )

        assert selection.source is SeasonSource.SUBSTITUTED
        assert selection.seasons_used == (2023,)
        assert len(selection.observations) == 4
        assert selection.primary_season == 2023
        assert "Using 2023 data" in selection.describe()

    def test_no_data_anywhere(self, fake_repo: Any, lebron: EntityRef) -> None:
        selection = SeasonFallbackResolver(fake_repo).resolve(
            lebron, PTS, _window(3), ANY_MINUTES
        )
        assert selection.source is SeasonSource.CURRENT
        assert selection.observations == ()
        assert selection.seasons_used == ()
        assert selection.primary_season == 2024

    def test_replace_uses_previous_season_when_larger(
        self,
        fake_repo: Any,
        lebron: EntityRef,
        make_games: Callable[..., list[GameObservation]],
    ) -> None:
        fake_repo.add_games(
            lebron, make_games([20, 22], season=2024, start=date(2024, 11, 10))
        )
        fake_repo.add_games(
            lebron, make_games([30, 31, 32], season=2023, start=date(2024, 4, 10))
        )

        selection = SeasonFallbackResolver(fake_repo).resolve(
            lebron, PTS, _window(10), ANY_MINUTES, mode=FallbackMode.REPLACE
        )

        assert selection.source is SeasonSource.SUBSTITUTED
        assert selection.seasons_used == (2023,)
        assert [obs.value("pts") for obs in selection.observations] == [30, 31, 32]

    def test_replace_keeps_current_when_previous_is_smaller(
        self,
        fake_repo: Any,
        lebron: EntityRef,
        make_games: Callable[..., list[GameObservation]],
    ) -> None:
        fake_repo.add_games(
            lebron, make_games([20, 22, 24], season=2024, start=date(2024, 11, 10))
        )
        fake_repo.add_games(
            lebron, make_games([30], season=2023, start=date(2024, 4, 10))
        )

        selection = SeasonFallbackResolver(fake_repo).resolve(
            lebron, PTS, _window(10), ANY_MINUTES, mode=FallbackMode.REPLACE
        )

        assert selection.source is SeasonSource.CURRENT
        assert len(selection.observations) == 3

    def test_eligibility_applies_before_counting(
        self,
        fake_repo: Any,
        lebron: EntityRef,
        make_games: Callable[..., list[GameObservation]],
    ) -> None:
        fake_repo.add_games(
            lebron,
            make_games([20, 22, 24], season=2024, start=date(2024, 11, 10), minutes="4"),
        )
        fake_repo.add_games(
            lebron, make_games([30, 31, 32], season=2023, start=date(2024, 4, 10))
        )

        selection = SeasonFallbackResolver(fake_repo).resolve(
            lebron, PTS, _window(3), EligibilityPolicy(min_participation=10)
        )

        assert selection.source is SeasonSource.SUBSTITUTED
        assert selection.current_count == 0

    def test_single_season_window_never_falls_back(
        self,
        fake_repo: Any,
        lebron: EntityRef,
        make_games: Callable[..., list[GameObservation]],
    ) -> None:
        fake_repo.add_games(lebron, make_games([20], season=2024))
        selection = SeasonFallbackResolver(fake_repo).resolve(
            lebron, PTS, _window(5, seasons=(2024,)), ANY_MINUTES
        )
        assert selection.source is SeasonSource.CURRENT
        assert fake_repo.calls["fetch_observations"] == 1


def test_order_recent_first(make_obs: Callable[..., GameObservation]) -> None:
    games = [
        make_obs(date(2024, 1, 1), {"pts": 1}),
        make_obs(date(2024, 1, 3), {"pts": 3}),
        make_obs(date(2024, 1, 2), {"pts": 2}),
    ]
    assert [obs.value("pts") for obs in order_recent_first(games)] == [3, 2, 1]
