"""Integration tests for the insight pipeline.

These tests run the composer against the SQLite repository and the seeded
two-season league:
- Player requests with and without an explicit opponent
- Team requests using the next scheduled opponent
- Season fallback when the current season is short
- Latency of a full fan-out
"""

from __future__ import annotations

import json
import time
from typing import TYPE_CHECKING

import pytest

from prop_insights.composer import InsightComposer, InsightRequest
from prop_insights.data import SqlGameLogRepository
from prop_insights.insights import Status

from conftest import CELTICS, LAKERS, LEBRON, WARRIORS

if TYPE_CHECKING:
    from prop_insights.config import Settings


pytestmark = pytest.mark.integration


@pytest.fixture
def composer(seeded_db: "Settings") -> InsightComposer:
    return InsightComposer(SqlGameLogRepository(), seeded_db)


class TestPlayerPipeline:
    """Player props end to end."""

    def test_player_bundle(self, composer: InsightComposer) -> None:
        bundle = composer.compose(
            InsightRequest(
                stat="points", player="LeBron James", line="21.5", opponent="BOS"
            )
        )

        assert bundle.ok, bundle.errors
        assert bundle.entity.entity_id == LEBRON
        assert bundle.opponent is not None
        assert bundle.opponent.entity_id == CELTICS
        assert bundle.season.current_season == 2024
        assert not bundle.season.inferred

        # Two 2024 games, four 2023 games: the larger previous season is used
        hit = bundle.results["last10_hit_rate"]
        assert hit.fields["total_games"] == 4
        assert hit.fields["hit_count"] == 2
        assert hit.value == "50%"
        assert hit.status is Status.WARNING
        assert hit.seasons_used == (2023,)

        history = bundle.results["matchup_history"]
        assert history.status is not Status.ERROR

    def test_next_opponent_from_schedule(self, composer: InsightComposer) -> None:
        bundle = composer.compose(InsightRequest(stat="pra", player=LEBRON))

        assert bundle.opponent is not None
        assert bundle.opponent.entity_id == WARRIORS
        assert "last10_hit_rate" in bundle.skipped
        assert bundle.ok, bundle.errors

    def test_bundle_serializes(self, composer: InsightComposer) -> None:
        bundle = composer.compose(
            InsightRequest(stat="pts+reb", player="lebron james", line=30)
        )
        text = json.dumps(bundle.to_dict())
        assert '"stat"' in text


class TestTeamPipeline:
    """Team props end to end."""

    def test_team_bundle(self, composer: InsightComposer) -> None:
        bundle = composer.compose(
            InsightRequest(stat="pts", team="LAL", opponent="Celtics", line=111.5)
        )

        assert bundle.ok, bundle.errors
        assert bundle.entity.entity_id == LAKERS

        record = bundle.results["team_last10_record"]
        assert record.value == "4-2"
        assert record.fields["wins"] == 4

        h2h = bundle.results["head_to_head"]
        assert h2h.status is not Status.ERROR

        # Next game is at Golden State: one 2024 away game, a win
        venue = bundle.results["home_away_win_rate"]
        assert venue.fields["venue"] == "away"
        assert venue.value == "1-0"
        assert venue.seasons_used == (2024,)

        last5 = bundle.results["home_away_last5"]
        assert last5.value == "2-1"
        assert last5.seasons_used == (2024, 2023)


class TestLatency:
    """Latency requirements."""

    def test_full_fan_out_is_fast(self, composer: InsightComposer) -> None:
        start = time.perf_counter()
        bundle = composer.compose(
            InsightRequest(stat="pts", player="LeBron James", line=22.5, opponent="BOS")
        )
        elapsed = time.perf_counter() - start

        assert len(bundle.results) >= 10
        assert elapsed < 5.0
