"""Stat name resolution for NBA and NFL props.

Maps the names bettors and sportsbooks use ("points", "PTS", "pras",
"pts + reb + ast", "passing yards") to canonical stat specs backed by one or
more box score columns. Resolution is case-insensitive, whitespace-tolerant
and never guesses: an unknown name raises ``UnsupportedStatError``.

Combo names may be spelled with ``+`` or ``/`` between components. A combo
whose component set matches a named combo resolves to that combo; any other
combination of supported single stats resolves to an ad hoc combo keyed by
its components in catalog order.

Example:
    >>> from prop_insights.engine.catalog import StatCatalog
    >>> spec = StatCatalog().resolve("Pts+Reb+Ast")
    >>> spec.key, spec.columns
    ('pras', ('pts', 'reb', 'ast'))
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

from prop_insights.types import Sport, UnsupportedStatError

_WHITESPACE = re.compile(r"\s+")
_COMBO_SEPARATOR = re.compile(r"\s*[+/]\s*")


@dataclass(frozen=True)
class StatSpec:
    """Canonical stat identifier and the columns it sums.

    Attributes:
        key: Canonical identifier (e.g. "pts", "pras").
        label: Short display label used in narratives.
        columns: Underlying box score columns, at least one.
        sport: League the columns belong to.
        aggregation: How columns combine; only "sum" is supported.
    """

    key: str
    label: str
    columns: tuple[str, ...]
    sport: Sport
    aggregation: str = "sum"

    def __post_init__(self) -> None:
        if not self.columns:
            raise ValueError(f"Stat {self.key!r} must map to at least one column")
        if self.aggregation != "sum":
            raise ValueError(f"Unsupported aggregation {self.aggregation!r}")

    @property
    def is_combo(self) -> bool:
        return len(self.columns) > 1


@dataclass(frozen=True)
class _Entry:
    key: str
    label: str
    columns: tuple[str, ...]
    aliases: tuple[str, ...] = field(default_factory=tuple)


# Order matters: ad hoc combo keys list components in this order.
NBA_STATS: tuple[_Entry, ...] = (
    _Entry("pts", "PTS", ("pts",), ("points", "point", "p")),
    _Entry("reb", "REB", ("reb",), ("rebounds", "rebound", "rebs", "r", "total rebounds")),
    _Entry("ast", "AST", ("ast",), ("assists", "assist", "asts", "a")),
    _Entry("stl", "STL", ("stl",), ("steals", "steal", "s")),
    _Entry("blk", "BLK", ("blk",), ("blocks", "block", "blocked shots", "b")),
    _Entry("tov", "TOV", ("tov",), ("turnovers", "turnover", "to", "tos")),
    _Entry("fg3m", "3PM", ("fg3m",), ("3pt made", "3-pt made", "threes", "threes made", "3pm", "3-pointers made")),
    _Entry("fg3a", "3PA", ("fg3a",), ("3pt attempts", "3-pt attempts", "three point attempts", "3pa", "threes attempted")),
    _Entry("fgm", "FGM", ("fgm",), ("fg made", "field goals made", "field goals")),
    _Entry("fga", "FGA", ("fga",), ("fg attempts", "field goal attempts", "shots")),
    _Entry("ftm", "FTM", ("ftm",), ("ft made", "free throws made", "free throws")),
    _Entry("fta", "FTA", ("fta",), ("ft attempts", "free throw attempts")),
    _Entry("oreb", "OREB", ("oreb",), ("offensive rebounds", "off rebounds")),
    _Entry("dreb", "DREB", ("dreb",), ("defensive rebounds", "def rebounds")),
    # Named combos
    _Entry("pras", "PRA", ("pts", "reb", "ast"), ("pra", "pts+rebs+asts", "points+rebounds+assists", "p+r+a")),
    _Entry("pr", "P+R", ("pts", "reb"), ("pts+rebounds", "points+rebounds", "p+r")),
    _Entry("pa", "P+A", ("pts", "ast"), ("pts+assists", "points+assists", "p+a", "pts+assts")),
    _Entry("ra", "R+A", ("reb", "ast"), ("rebs+assists", "rebounds+assists", "r+a")),
    _Entry("stocks", "STL+BLK", ("stl", "blk"), ("blocks+steals", "steals+blocks", "blk+stl", "stl+blk", "b+s", "s+b")),
)

NFL_STATS: tuple[_Entry, ...] = (
    _Entry("pass_yds", "PASS YDS", ("passing_yards",), ("passing yards", "pass yards", "passing_yards")),
    _Entry("pass_tds", "PASS TDS", ("passing_touchdowns",), ("passing touchdowns", "pass tds", "passing tds", "passing_touchdowns")),
    _Entry("pass_comp", "COMP", ("passing_completions",), ("completions", "pass completions", "passing_completions")),
    _Entry("pass_att", "PASS ATT", ("passing_attempts",), ("pass attempts", "passing attempts", "passing_attempts")),
    _Entry("pass_int", "INT THROWN", ("passing_interceptions",), ("interceptions thrown", "passing interceptions", "passing_interceptions")),
    _Entry("rush_yds", "RUSH YDS", ("rushing_yards",), ("rushing yards", "rush yards", "rushing_yards")),
    _Entry("rush_tds", "RUSH TDS", ("rushing_touchdowns",), ("rushing touchdowns", "rush tds", "rushing_touchdowns")),
    _Entry("rush_att", "RUSH ATT", ("rushing_attempts",), ("rushing attempts", "carries", "rush attempts", "rushing_attempts")),
    _Entry("rec_yds", "REC YDS", ("receiving_yards",), ("receiving yards", "rec yards", "receiving_yards")),
    _Entry("rec_tds", "REC TDS", ("receiving_touchdowns",), ("receiving touchdowns", "rec tds", "receiving_touchdowns")),
    _Entry("receptions", "REC", ("receptions",), ("catches", "rec")),
    _Entry("targets", "TGT", ("receiving_targets",), ("receiving targets", "receiving_targets")),
    _Entry("tackles", "TKL", ("total_tackles",), ("total tackles", "total_tackles")),
    _Entry("sacks", "SACKS", ("defensive_sacks",), ("defensive sacks", "defensive_sacks")),
    _Entry("ints", "INT", ("defensive_interceptions",), ("interceptions", "defensive interceptions", "defensive_interceptions")),
    _Entry("fg_made", "FG MADE", ("field_goals_made",), ("field goals made", "field_goals_made")),
    _Entry("fg_att", "FG ATT", ("field_goal_attempts",), ("field goal attempts", "field_goal_attempts")),
    _Entry("xp_made", "XP MADE", ("extra_points_made",), ("extra points made", "extra_points_made")),
    # Named combos
    _Entry("pass_rush_yds", "PASS+RUSH YDS", ("passing_yards", "rushing_yards"), ("pass_yds+rush_yds", "passing+rushing yards")),
    _Entry("rush_rec_yds", "RUSH+REC YDS", ("rushing_yards", "receiving_yards"), ("rec_yds+rush_yds", "rush_yds+rec_yds", "rushing+receiving yards")),
    _Entry("pass_rush_tds", "PASS+RUSH TDS", ("passing_touchdowns", "rushing_touchdowns"), ("pass_tds+rush_tds", "passing+rushing tds")),
)

_CATALOGS: dict[Sport, tuple[_Entry, ...]] = {
    Sport.NBA: NBA_STATS,
    Sport.NFL: NFL_STATS,
}


def normalize_stat_name(name: str) -> str:
    """Lowercase, trim and collapse whitespace, tightening combo separators."""
    text = _WHITESPACE.sub(" ", str(name).strip().lower())
    return _COMBO_SEPARATOR.sub(lambda m: m.group(0).strip(), text)


class StatCatalog:
    """Resolve stat names to ``StatSpec`` per sport.

    Example:
        >>> catalog = StatCatalog()
        >>> catalog.resolve("rebounds").columns
        ('reb',)
        >>> catalog.resolve("rush yards", Sport.NFL).columns
        ('rushing_yards',)
    """

    def __init__(self) -> None:
        self._by_name: dict[Sport, dict[str, StatSpec]] = {}
        self._by_columns: dict[Sport, dict[frozenset[str], StatSpec]] = {}
        self._singles: dict[Sport, dict[str, StatSpec]] = {}
        self._column_order: dict[Sport, dict[str, int]] = {}

        for sport, entries in _CATALOGS.items():
            by_name: dict[str, StatSpec] = {}
            by_columns: dict[frozenset[str], StatSpec] = {}
            singles: dict[str, StatSpec] = {}
            order: dict[str, int] = {}

            for entry in entries:
                spec = StatSpec(entry.key, entry.label, entry.columns, sport)
                for alias in (entry.key, *entry.aliases):
                    by_name[normalize_stat_name(alias)] = spec
                by_columns.setdefault(frozenset(entry.columns), spec)
                if not spec.is_combo:
                    singles[normalize_stat_name(entry.key)] = spec
                    order.setdefault(entry.columns[0], len(order))

            # Raw column identifiers resolve too ("passing_yards", "fg3m").
            for spec in list(by_columns.values()):
                if not spec.is_combo:
                    by_name.setdefault(normalize_stat_name(spec.columns[0]), spec)

            self._by_name[sport] = by_name
            self._by_columns[sport] = by_columns
            self._singles[sport] = singles
            self._column_order[sport] = order

    def resolve(self, name: str, sport: Sport = Sport.NBA) -> StatSpec:
        """Resolve a stat name.

        Args:
            name: Human or raw stat name, single or combo.
            sport: League whose schema applies.

        Returns:
            Matching StatSpec.

        Raises:
            UnsupportedStatError: If the name, or any combo component, is unknown.
        """
        if name is None or not str(name).strip():
            raise UnsupportedStatError(str(name), sport)

        normalized = normalize_stat_name(name)
        by_name = self._by_name[sport]

        if normalized in by_name:
            return by_name[normalized]

        parts = [part for part in _COMBO_SEPARATOR.split(normalized) if part]
        if len(parts) < 2:
            raise UnsupportedStatError(name, sport)

        columns: list[str] = []
        for part in parts:
            component = by_name.get(part)
            if component is None or component.is_combo:
                raise UnsupportedStatError(name, sport)
            if component.columns[0] not in columns:
                columns.append(component.columns[0])

        return self._combo_for(columns, sport, name)

    def _combo_for(self, columns: list[str], sport: Sport, raw_name: str) -> StatSpec:
        key = frozenset(columns)
        named = self._by_columns[sport].get(key)
        if named is not None:
            return named
        if len(columns) < 2:
            # "pts+points" collapses to a single stat
            return self._by_columns[sport][key]

        order = self._column_order[sport]
        ordered = tuple(sorted(columns, key=order.__getitem__))
        singles = {spec.columns[0]: spec for spec in self._singles[sport].values()}
        return StatSpec(
            key="+".join(singles[col].key for col in ordered),
            label="+".join(singles[col].label for col in ordered),
            columns=ordered,
            sport=sport,
        )

    def specs(self, sport: Sport = Sport.NBA) -> list[StatSpec]:
        """Return every named stat for a sport in catalog order."""
        seen: dict[str, StatSpec] = {}
        for spec in self._by_columns[sport].values():
            seen.setdefault(spec.key, spec)
        return list(seen.values())

    def aliases(self, sport: Sport = Sport.NBA) -> dict[str, StatSpec]:
        """Return the full alias table for a sport."""
        return dict(self._by_name[sport])


_default_catalog: StatCatalog | None = None


def get_catalog() -> StatCatalog:
    """Return a shared catalog instance."""
    global _default_catalog
    if _default_catalog is None:
        _default_catalog = StatCatalog()
    return _default_catalog
