"""Tests for insights computed from the entity's own game log."""

from __future__ import annotations

from collections.abc import Callable
from datetime import date
from typing import Any

import pytest

from prop_insights.insights.base import InsightContext, Status
from prop_insights.insights.performance import (
    DoubleDoubleTrend,
    HomeAwaySplit,
    Last10HitRate,
    MatchupHistory,
    RecentGames,
    RestDayPerformance,
    SeasonVsLast3,
)
from prop_insights.types import EntityRef, GameObservation

from conftest import WARRIORS

HIT_SEVEN_OF_TEN = [30, 28, 22, 26, 25, 19, 27, 31, 24, 29]

CtxFactory = Callable[..., InsightContext]
GamesFactory = Callable[..., list[GameObservation]]


class TestLast10HitRate:
    """Tests for Last10HitRate."""

    def test_seven_of_ten(
        self, fake_repo: Any, lebron: EntityRef, make_ctx: CtxFactory, make_games: GamesFactory
    ) -> None:
        fake_repo.add_games(lebron, make_games(HIT_SEVEN_OF_TEN))

        result = Last10HitRate().compute(make_ctx(line=24.5))

        assert result.status is Status.SUCCESS
        assert result.value == "70%"
        assert result.fields["hit_rate"] == pytest.approx(0.7)
        assert result.fields["hit_count"] == 7
        assert result.fields["total_games"] == 10
        assert "7 of the last 10" in result.narrative
        assert len(result.details) == 10
        assert result.details[0]["value"] == 30
        assert result.details[0]["hit"] is True
        assert result.seasons_used == (2024,)
        assert result.season_source == "current"

    def test_under_direction(
        self, fake_repo: Any, lebron: EntityRef, make_ctx: CtxFactory, make_games: GamesFactory
    ) -> None:
        fake_repo.add_games(lebron, make_games(HIT_SEVEN_OF_TEN))
        result = Last10HitRate().compute(make_ctx(line=24.5, direction="under"))
        assert result.fields["hit_count"] == 3
        assert result.status is Status.DANGER

    def test_switches_to_larger_previous_season(
        self, fake_repo: Any, lebron: EntityRef, make_ctx: CtxFactory, make_games: GamesFactory
    ) -> None:
        fake_repo.add_games(lebron, make_games([40, 40], start=date(2024, 11, 10)))
        fake_repo.add_games(
            lebron,
            make_games([30, 30, 30, 10, 10], season=2023, start=date(2024, 4, 10)),
        )

        result = Last10HitRate().compute(make_ctx(line=24.5))

        assert result.fields["total_games"] == 5
        assert result.fields["hit_rate"] == pytest.approx(0.6)
        assert result.status is Status.WARNING
        assert result.seasons_used == (2023,)
        assert result.season_source == "substituted"
        assert "Only 5 qualifying games" in result.narrative

    def test_low_minutes_games_excluded(
        self, fake_repo: Any, lebron: EntityRef, make_ctx: CtxFactory, make_games: GamesFactory
    ) -> None:
        fake_repo.add_games(lebron, make_games([40, 40], minutes="6"))
        fake_repo.add_games(lebron, make_games([10], start=date(2024, 1, 1)))

        result = Last10HitRate().compute(make_ctx(line=24.5))

        assert result.fields["total_games"] == 1
        assert result.status is Status.DANGER

    def test_no_games(self, make_ctx: CtxFactory) -> None:
        result = Last10HitRate().compute(make_ctx(line=24.5))
        assert result.insufficient_data
        assert result.status is Status.INFO
        assert result.fields["hit_rate"] is None

    def test_combo_stat(
        self, fake_repo: Any, lebron: EntityRef, make_ctx: CtxFactory, make_obs: Callable[..., GameObservation]
    ) -> None:
        fake_repo.add_games(
            lebron,
            [
                make_obs(date(2024, 3, 3), {"pts": 25, "reb": 8, "ast": 7}),
                make_obs(date(2024, 3, 1), {"pts": 20, "reb": 5, "ast": 5}),
            ],
        )
        result = Last10HitRate().compute(make_ctx(stat="pra", line=35.5))
        assert result.fields["hit_count"] == 1
        assert result.fields["average"] == pytest.approx(35.0)


class TestRecentGames:
    """Tests for RecentGames."""

    def test_chart_counts_push_as_hit(
        self, fake_repo: Any, lebron: EntityRef, make_ctx: CtxFactory, make_games: GamesFactory
    ) -> None:
        fake_repo.add_games(lebron, make_games([25, 30, 20]))

        result = RecentGames().compute(make_ctx(line=25))

        assert result.status is Status.INFO
        assert result.fields["games"] == 3
        assert result.fields["hits"] == 2
        assert [row["hit"] for row in result.details] == [True, True, False]

    def test_without_line(
        self, fake_repo: Any, lebron: EntityRef, make_ctx: CtxFactory, make_games: GamesFactory
    ) -> None:
        fake_repo.add_games(lebron, make_games([25, 30, 20]))
        result = RecentGames().compute(make_ctx())
        assert result.fields["average"] == 25
        assert "hits" not in result.fields
        assert "hit" not in result.details[0]

    def test_zero_minute_games_dropped(
        self, fake_repo: Any, lebron: EntityRef, make_ctx: CtxFactory, make_games: GamesFactory
    ) -> None:
        fake_repo.add_games(lebron, make_games([0], minutes="0"))
        fake_repo.add_games(lebron, make_games([18], start=date(2024, 1, 1), minutes="3"))
        result = RecentGames().compute(make_ctx())
        assert result.fields["games"] == 1

    def test_caps_at_chart_window(
        self, fake_repo: Any, lebron: EntityRef, make_ctx: CtxFactory, make_games: GamesFactory
    ) -> None:
        fake_repo.add_games(lebron, make_games([20] * 25))
        result = RecentGames().compute(make_ctx())
        assert result.fields["games"] == 15


class TestSeasonVsLast3:
    """Tests for SeasonVsLast3."""

    def test_window_completed_from_previous_season(
        self, fake_repo: Any, lebron: EntityRef, make_ctx: CtxFactory, make_games: GamesFactory
    ) -> None:
        fake_repo.add_games(lebron, make_games([30, 28], start=date(2024, 11, 10)))
        fake_repo.add_games(
            lebron, make_games([10, 12, 14], season=2023, start=date(2024, 4, 10))
        )

        result = SeasonVsLast3().compute(make_ctx(line=20))

        assert result.fields["recent_values"] == [30, 28, 10]
        assert result.fields["baseline_average"] == 29
        assert result.fields["recent_average"] == pytest.approx(68 / 3)
        assert result.fields["borrowed_games"] == 1
        assert result.seasons_used == (2024, 2023)
        assert result.season_source == "supplemented"
        assert result.status is Status.SUCCESS

    def test_mixed_signal(
        self, fake_repo: Any, lebron: EntityRef, make_ctx: CtxFactory, make_games: GamesFactory
    ) -> None:
        fake_repo.add_games(lebron, make_games([30, 30, 30, 10, 10, 10, 10]))
        result = SeasonVsLast3().compute(make_ctx(line=25))
        assert result.status is Status.WARNING

    def test_no_line_is_info(
        self, fake_repo: Any, lebron: EntityRef, make_ctx: CtxFactory, make_games: GamesFactory
    ) -> None:
        fake_repo.add_games(lebron, make_games([30, 30, 30]))
        result = SeasonVsLast3().compute(make_ctx())
        assert result.status is Status.INFO
        assert result.fields["difference"] == 0

    def test_too_few_games(
        self, fake_repo: Any, lebron: EntityRef, make_ctx: CtxFactory, make_games: GamesFactory
    ) -> None:
        fake_repo.add_games(lebron, make_games([30, 28]))
        result = SeasonVsLast3().compute(make_ctx())
        assert result.insufficient_data
        assert result.fields["recent_average"] is None
        assert result.fields["recent_games"] == 2


class TestHomeAwaySplit:
    """Tests for HomeAwaySplit."""

    def test_split_with_line(
        self, fake_repo: Any, lebron: EntityRef, make_ctx: CtxFactory, make_games: GamesFactory
    ) -> None:
        fake_repo.add_games(lebron, make_games([30, 28], is_home=True))
        fake_repo.add_games(
            lebron, make_games([20], start=date(2024, 1, 1), is_home=False)
        )

        result = HomeAwaySplit().compute(make_ctx(line=25))

        assert result.fields["home_average"] == 29
        assert result.fields["away_average"] == 20
        assert result.fields["home_hit_rate"] == 1.0
        assert result.fields["away_hit_rate"] == 0.0
        assert result.status is Status.WARNING

    def test_no_games(self, make_ctx: CtxFactory) -> None:
        result = HomeAwaySplit().compute(make_ctx())
        assert result.insufficient_data


class TestMatchupHistory:
    """Tests for MatchupHistory."""

    def test_games_against_opponent_across_seasons(
        self,
        fake_repo: Any,
        lebron: EntityRef,
        celtics: EntityRef,
        make_ctx: CtxFactory,
        make_games: GamesFactory,
    ) -> None:
        fake_repo.add_games(lebron, make_games([30], start=date(2024, 11, 10)))
        fake_repo.add_games(
            lebron, make_games([20, 22], season=2023, start=date(2024, 4, 10))
        )
        fake_repo.add_games(
            lebron,
            make_games([50], start=date(2024, 11, 12), opponent_id=WARRIORS),
        )

        result = MatchupHistory().compute(make_ctx(line=21.5, opponent=celtics))

        assert result.fields["games"] == 3
        assert result.fields["average"] == 24
        assert result.fields["hit_count"] == 2
        assert result.status is Status.WARNING
        assert result.seasons_used == (2024, 2023)
        assert "Boston Celtics" in result.narrative

    def test_no_meetings(
        self, make_ctx: CtxFactory, celtics: EntityRef
    ) -> None:
        result = MatchupHistory().compute(make_ctx(opponent=celtics))
        assert result.insufficient_data
        assert "2023-2024" in result.narrative


class TestRestDayPerformance:
    """Tests for RestDayPerformance."""

    @pytest.fixture
    def rest_log(
        self, fake_repo: Any, lebron: EntityRef, make_obs: Callable[..., GameObservation]
    ) -> None:
        fake_repo.add_games(
            lebron,
            [
                make_obs(date(2024, 1, 10), {"pts": 30}),
                make_obs(date(2024, 1, 4), {"pts": 22}),
                make_obs(date(2024, 1, 2), {"pts": 18}),
                make_obs(date(2024, 1, 1), {"pts": 26}),
            ],
        )

    @pytest.mark.usefixtures("rest_log")
    def test_upcoming_back_to_back(self, make_ctx: CtxFactory) -> None:
        result = RestDayPerformance().compute(
            make_ctx(line=20, game_date=date(2024, 1, 11))
        )

        assert result.fields["upcoming_rest_days"] == 0
        assert result.fields["rest_0_games"] == 1
        assert result.fields["rest_0_average"] == 18
        assert result.fields["upcoming_hit_rate"] == 0.0
        assert result.status is Status.DANGER
        assert "On 0 days rest" in result.narrative

    @pytest.mark.usefixtures("rest_log")
    def test_summary_without_game_date(self, make_ctx: CtxFactory) -> None:
        result = RestDayPerformance().compute(make_ctx())
        assert result.status is Status.INFO
        assert result.fields["rest_3+_games"] == 2
        assert result.fields["rest_3+_average"] == 28
        assert result.fields["rest_2_average"] is None
        assert "upcoming_rest_days" not in result.fields

    def test_no_games(self, make_ctx: CtxFactory) -> None:
        assert RestDayPerformance().compute(make_ctx()).insufficient_data


class TestDoubleDoubleTrend:
    """Tests for DoubleDoubleTrend."""

    def _line(self, make_obs: Callable[..., GameObservation], day: int, pts: int, reb: int, ast: int) -> GameObservation:
        return make_obs(date(2024, 3, day), {"pts": pts, "reb": reb, "ast": ast})

    def test_frequent_double_doubles(
        self, fake_repo: Any, lebron: EntityRef, make_ctx: CtxFactory, make_obs: Callable[..., GameObservation]
    ) -> None:
        games = [self._line(make_obs, day, 20, 10, 5) for day in range(1, 6)]
        games.append(self._line(make_obs, 7, 20, 10, 10))
        fake_repo.add_games(lebron, games)

        result = DoubleDoubleTrend().compute(make_ctx())

        assert result.fields["double_doubles"] == 6
        assert result.fields["triple_doubles"] == 1
        assert result.status is Status.SUCCESS
        assert result.value == "6 DD / 1 TD"
        assert result.details[0]["double_digit_categories"] == 3

    def test_triple_doubles_warn(
        self, fake_repo: Any, lebron: EntityRef, make_ctx: CtxFactory, make_obs: Callable[..., GameObservation]
    ) -> None:
        games = [self._line(make_obs, day, 12, 10, 10) for day in (1, 2)]
        games += [self._line(make_obs, day, 5, 5, 5) for day in (3, 4, 5)]
        fake_repo.add_games(lebron, games)

        result = DoubleDoubleTrend().compute(make_ctx(stat="reb"))

        assert result.fields["double_doubles"] == 2
        assert result.fields["triple_doubles"] == 2
        assert result.status is Status.WARNING

    def test_not_for_other_stats(self, make_ctx: CtxFactory) -> None:
        assert DoubleDoubleTrend().skip_reason(make_ctx(stat="stl")) is not None
