"""CLI entrypoint using Typer.

This module defines the command-line interface for the prop insights engine.
Commands are organized into subcommand groups for insights, stat catalog
lookups, and database management.

Example:
    $ prop-insights --help
    $ prop-insights insights player "LeBron James" --stat points --line 24.5
    $ prop-insights insights team LAL --stat pts --opponent BOS --json
    $ prop-insights stats list --sport nfl
"""

from __future__ import annotations

import json
from datetime import datetime
from typing import TYPE_CHECKING, Annotated

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from prop_insights import __version__
from prop_insights.config import get_settings
from prop_insights.logging import setup_logging

if TYPE_CHECKING:
    from prop_insights.composer import InsightRequest

# Initialize console for rich output
console = Console()

# Create main app
app = typer.Typer(
    name="prop-insights",
    help="Sports prop insight engine CLI",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

# Create subcommand groups
insights_app = typer.Typer(
    name="insights",
    help="Compose insights for a player or team prop",
    no_args_is_help=True,
)
stats_app = typer.Typer(
    name="stats",
    help="Stat catalog commands",
    no_args_is_help=True,
)
db_app = typer.Typer(
    name="db",
    help="Database management commands",
    no_args_is_help=True,
)

# Register subcommand groups
app.add_typer(insights_app, name="insights")
app.add_typer(stats_app, name="stats")
app.add_typer(db_app, name="db")

# Exit codes
EXIT_NOT_FOUND = 1
EXIT_INPUT_ERROR = 2

_STATUS_STYLES = {
    "success": "green",
    "info": "blue",
    "warning": "yellow",
    "danger": "red",
    "error": "bold red",
}


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"[bold blue]prop-insights[/bold blue] version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        bool | None,
        typer.Option(
            "--version",
            "-v",
            help="Show version and exit",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option(
            "--verbose",
            "-V",
            help="Enable verbose output",
        ),
    ] = False,
) -> None:
    """Sports prop insight engine.

    Turns game logs into hit rates, trends, splits and league-relative
    matchup ranks for a player or team prop.
    """
    # Setup logging based on verbosity
    settings = get_settings()
    log_level = "DEBUG" if verbose else settings.log_level
    setup_logging(level=log_level, log_dir=settings.log_dir_obj)


# =============================================================================
# Insight Commands
# =============================================================================

StatOption = Annotated[
    str,
    typer.Option("--stat", "-s", help="Stat name (e.g., points, pras, 'pts+reb')"),
]
LineOption = Annotated[
    str | None,
    typer.Option("--line", "-l", help="Betting line (e.g., 24.5)"),
]
DirectionOption = Annotated[
    str | None,
    typer.Option("--direction", "-d", help="over/under (also o/u, more/less)"),
]
OpponentOption = Annotated[
    str | None,
    typer.Option(
        "--opponent", "-o", help="Opponent team; defaults to the next scheduled game"
    ),
]
SportOption = Annotated[
    str,
    typer.Option("--sport", help="League: nba or nfl"),
]
DateOption = Annotated[
    datetime | None,
    typer.Option("--date", help="Game date (YYYY-MM-DD)", formats=["%Y-%m-%d"]),
]
JsonOption = Annotated[
    bool,
    typer.Option("--json", help="Print the bundle as JSON"),
]


@insights_app.command("player")
def insights_player(
    player: Annotated[str, typer.Argument(help="Player name or id")],
    stat: StatOption,
    line: LineOption = None,
    direction: DirectionOption = None,
    opponent: OpponentOption = None,
    sport: SportOption = "nba",
    game_date: DateOption = None,
    as_json: JsonOption = False,
) -> None:
    """Compose insights for a player prop."""
    from prop_insights.composer import InsightRequest

    request = InsightRequest(
        stat=stat,
        player=player,
        line=line,
        direction=direction,
        opponent=opponent,
        sport=sport,
        game_date=game_date.date() if game_date else None,
    )
    _run_insights(request, as_json)


@insights_app.command("team")
def insights_team(
    team: Annotated[str, typer.Argument(help="Team name, abbreviation or id")],
    stat: StatOption,
    line: LineOption = None,
    direction: DirectionOption = None,
    opponent: OpponentOption = None,
    sport: SportOption = "nba",
    game_date: DateOption = None,
    as_json: JsonOption = False,
) -> None:
    """Compose insights for a team prop."""
    from prop_insights.composer import InsightRequest

    request = InsightRequest(
        stat=stat,
        team=team,
        line=line,
        direction=direction,
        opponent=opponent,
        sport=sport,
        game_date=game_date.date() if game_date else None,
    )
    _run_insights(request, as_json)


def _run_insights(request: InsightRequest, as_json: bool) -> None:
    from prop_insights.composer import InsightComposer
    from prop_insights.data import SqlGameLogRepository
    from prop_insights.types import EntityNotFoundError, InputError, RepositoryError

    settings = get_settings()
    if not settings.db_path_obj.exists():
        console.print(
            f"[red]Error: Database not found at {settings.db_path}. "
            "Run 'db init' to create it.[/red]"
        )
        raise typer.Exit(EXIT_NOT_FOUND)

    composer = InsightComposer(SqlGameLogRepository(), settings)
    try:
        bundle = composer.compose(request)
    except InputError as e:
        console.print(f"[red]Invalid request: {e}[/red]")
        raise typer.Exit(EXIT_INPUT_ERROR) from e
    except EntityNotFoundError as e:
        console.print(f"[red]Not found: {e}[/red]")
        raise typer.Exit(EXIT_NOT_FOUND) from e
    except RepositoryError as e:
        console.print(f"[red]Database error: {e}[/red]")
        raise typer.Exit(EXIT_NOT_FOUND) from e

    if as_json:
        typer.echo(json.dumps(bundle.to_dict(), indent=2))
        return

    line = (
        f"{bundle.direction.value} {bundle.query.line:g}"
        if bundle.query is not None
        else "no line"
    )
    opponent = bundle.opponent.name if bundle.opponent is not None else "unknown"
    overall = bundle.overall_status
    overall_text = (
        f"[{_STATUS_STYLES[overall.value]}]{overall.value.upper()}[/]"
        if overall is not None
        else "[dim]no insights[/dim]"
    )
    console.print(
        Panel(
            f"[bold]{bundle.entity.name}[/bold] {bundle.stat.label} ({line})\n"
            f"[bold]Opponent:[/bold] {opponent}\n"
            f"[bold]Season:[/bold] {bundle.season.current_season}\n"
            f"[bold]Overall:[/bold] {overall_text}",
            title="Prop Insights",
        )
    )

    table = Table(title="Insights")
    table.add_column("Insight", style="cyan")
    table.add_column("Status")
    table.add_column("Value", justify="right")
    table.add_column("Summary")
    for result in bundle.results.values():
        style = _STATUS_STYLES[result.status.value]
        table.add_row(
            result.title,
            f"[{style}]{result.status.value.upper()}[/{style}]",
            result.value or "",
            result.narrative,
        )
    console.print(table)

    if bundle.skipped:
        console.print("\n[dim]Skipped:[/dim]")
        for insight_id, reason in bundle.skipped.items():
            console.print(f"  [dim]{insight_id}: {reason}[/dim]")


# =============================================================================
# Stat Catalog Commands
# =============================================================================


@stats_app.command("list")
def stats_list(sport: SportOption = "nba") -> None:
    """List the stats that can be requested for a league."""
    from prop_insights.composer import parse_sport
    from prop_insights.engine.catalog import get_catalog
    from prop_insights.types import InputError

    try:
        league = parse_sport(sport)
    except InputError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(EXIT_INPUT_ERROR) from e

    catalog = get_catalog()
    names: dict[str, list[str]] = {}
    for alias, spec in catalog.aliases(league).items():
        if alias != spec.key:
            names.setdefault(spec.key, []).append(alias)

    table = Table(title=f"{league.value.upper()} Stats")
    table.add_column("Key", style="cyan")
    table.add_column("Label")
    table.add_column("Columns", style="green")
    table.add_column("Aliases", style="dim")
    for spec in catalog.specs(league):
        table.add_row(
            spec.key,
            spec.label,
            " + ".join(spec.columns),
            ", ".join(names.get(spec.key, [])),
        )
    console.print(table)


# =============================================================================
# Database Commands
# =============================================================================


@db_app.command("init")
def db_init() -> None:
    """Create the database tables."""
    from prop_insights.data import init_db

    settings = get_settings()
    settings.ensure_directories()
    init_db()
    console.print(f"[green]Database initialized at {settings.db_path}[/green]")


@db_app.command("status")
def db_status() -> None:
    """Show row counts for every table."""
    from prop_insights.data import table_counts

    settings = get_settings()
    if not settings.db_path_obj.exists():
        console.print(
            Panel(
                f"[bold]Database:[/bold] {settings.db_path}\n"
                "[yellow]Database not found. Run 'db init' first.[/yellow]",
                title="Database Status",
            )
        )
        return

    counts = table_counts()
    if not counts:
        console.print(
            f"[yellow]No tables yet in {settings.db_path}. Run 'db init'.[/yellow]"
        )
        return

    table = Table(title="Database Status")
    table.add_column("Table", style="cyan")
    table.add_column("Rows", justify="right")
    for name, count in counts.items():
        table.add_row(name, str(count))
    console.print(table)


if __name__ == "__main__":
    app()
