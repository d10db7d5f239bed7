"""Tests for stat name resolution."""

from __future__ import annotations

import pytest

from prop_insights.engine.catalog import StatCatalog, StatSpec, get_catalog, normalize_stat_name
from prop_insights.types import InputError, Sport, UnsupportedStatError


@pytest.fixture
def catalog() -> StatCatalog:
    return StatCatalog()


class TestNormalizeStatName:
    """Tests for normalize_stat_name."""

    def test_lowercases_and_trims(self) -> None:
        assert normalize_stat_name("  Points ") == "points"

    def test_collapses_inner_whitespace(self) -> None:
        assert normalize_stat_name("passing    yards") == "passing yards"

    def test_tightens_combo_separators(self) -> None:
        assert normalize_stat_name("pts + reb / ast") == "pts+reb/ast"


class TestResolveSingles:
    """Single stat resolution."""

    @pytest.mark.parametrize("name", ["points", "PTS", " Points ", "pts", "p"])
    def test_points_synonyms(self, catalog: StatCatalog, name: str) -> None:
        spec = catalog.resolve(name)
        assert spec.key == "pts"
        assert spec.columns == ("pts",)
        assert spec.sport is Sport.NBA

    def test_three_pointers(self, catalog: StatCatalog) -> None:
        assert catalog.resolve("3-pt made").columns == ("fg3m",)
        assert catalog.resolve("3PA").columns == ("fg3a",)

    def test_raw_column_identifier(self, catalog: StatCatalog) -> None:
        assert catalog.resolve("fg3m").key == "fg3m"

    def test_nfl_stat(self, catalog: StatCatalog) -> None:
        spec = catalog.resolve("Rush Yards", Sport.NFL)
        assert spec.columns == ("rushing_yards",)
        assert spec.sport is Sport.NFL

    def test_nfl_raw_identifier(self, catalog: StatCatalog) -> None:
        assert catalog.resolve("passing_yards", Sport.NFL).key == "pass_yds"

    def test_nba_name_is_not_an_nfl_stat(self, catalog: StatCatalog) -> None:
        with pytest.raises(UnsupportedStatError):
            catalog.resolve("rebounds", Sport.NFL)


class TestResolveCombos:
    """Combo resolution."""

    @pytest.mark.parametrize(
        "name", ["pras", "PRA", "pts+reb+ast", "Pts + Reb + Ast", "points+rebounds+assists"]
    )
    def test_named_pras(self, catalog: StatCatalog, name: str) -> None:
        spec = catalog.resolve(name)
        assert spec.key == "pras"
        assert spec.columns == ("pts", "reb", "ast")
        assert spec.is_combo

    def test_component_order_does_not_matter(self, catalog: StatCatalog) -> None:
        assert catalog.resolve("ast+pts+reb").key == "pras"
        assert catalog.resolve("reb/pts").key == "pr"

    def test_stocks(self, catalog: StatCatalog) -> None:
        assert catalog.resolve("blk+stl").columns == ("stl", "blk")

    def test_ad_hoc_combo_in_catalog_order(self, catalog: StatCatalog) -> None:
        spec = catalog.resolve("tov+pts")
        assert spec.key == "pts+tov"
        assert spec.columns == ("pts", "tov")
        assert spec.label == "PTS+TOV"

    def test_duplicate_component_collapses(self, catalog: StatCatalog) -> None:
        spec = catalog.resolve("pts+points")
        assert spec.key == "pts"
        assert not spec.is_combo

    def test_nfl_combo(self, catalog: StatCatalog) -> None:
        spec = catalog.resolve("rushing yards + receiving yards", Sport.NFL)
        assert spec.key == "rush_rec_yds"

    def test_unknown_component_fails(self, catalog: StatCatalog) -> None:
        with pytest.raises(UnsupportedStatError):
            catalog.resolve("pts+blorp")


class TestUnsupported:
    """Unknown names fail instead of guessing."""

    @pytest.mark.parametrize("name", ["blorp", "", "   ", "point spread"])
    def test_unknown_names(self, catalog: StatCatalog, name: str) -> None:
        with pytest.raises(UnsupportedStatError):
            catalog.resolve(name)

    def test_error_is_an_input_error(self, catalog: StatCatalog) -> None:
        with pytest.raises(InputError, match="blorp"):
            catalog.resolve("blorp")


class TestCatalogListing:
    """Listing helpers."""

    def test_specs_are_unique_and_ordered(self, catalog: StatCatalog) -> None:
        keys = [spec.key for spec in catalog.specs(Sport.NBA)]
        assert keys[0] == "pts"
        assert len(keys) == len(set(keys))
        assert "pras" in keys

    def test_aliases_include_synonyms(self, catalog: StatCatalog) -> None:
        aliases = catalog.aliases(Sport.NFL)
        assert aliases["carries"].key == "rush_att"

    def test_get_catalog_is_shared(self) -> None:
        assert get_catalog() is get_catalog()


class TestStatSpec:
    """StatSpec validation."""

    def test_requires_columns(self) -> None:
        with pytest.raises(ValueError, match="at least one column"):
            StatSpec("empty", "EMPTY", (), Sport.NBA)

    def test_only_sum_aggregation(self) -> None:
        with pytest.raises(ValueError, match="aggregation"):
            StatSpec("pts", "PTS", ("pts",), Sport.NBA, aggregation="mean")
