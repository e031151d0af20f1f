import asyncio
from typing import Annotated

import typer

from softball_tracker.cli._logging import configure_logging
from softball_tracker.cli._output import print_error, print_lineup, print_lineup_history
from softball_tracker.cli.factory import build_lineup_context
from softball_tracker.domain.identifiers import TeamLineupId
from softball_tracker.exceptions import SoftballError

app = typer.Typer(name="softball", help="Softball tracker - event-sourced lineup tools")


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Enable DEBUG logging")] = False,
) -> None:
    """Softball tracker - event-sourced lineup tools."""
    configure_logging(verbose=verbose)
    if ctx.invoked_subcommand is None:
        raise typer.Exit()


# --- lineup subcommand group ---

_LineupArg = Annotated[str, typer.Argument(help="Team lineup identifier")]
_DbOpt = Annotated[str | None, typer.Option("--db", help="Event store database path")]

lineup_app = typer.Typer(name="lineup", help="Inspect stored team lineups")
app.add_typer(lineup_app, name="lineup")


@lineup_app.command("show")
def lineup_show(lineup_id: _LineupArg, db: _DbOpt = None) -> None:
    """Show the current batting order and defensive alignment of a lineup."""
    with build_lineup_context(db) as ctx:
        try:
            lineup = asyncio.run(ctx.repo.find_by_id(TeamLineupId(lineup_id)))
        except SoftballError as e:
            print_error(str(e))
            raise typer.Exit(code=1) from e
    if lineup is None:
        print_error(f"lineup '{lineup_id}' not found")
        raise typer.Exit(code=1)
    print_lineup(lineup)


@lineup_app.command("history")
def lineup_history(lineup_id: _LineupArg, db: _DbOpt = None) -> None:
    """List the events recorded for a lineup, oldest first."""
    with build_lineup_context(db) as ctx:
        events = asyncio.run(ctx.event_store.get_events(lineup_id))
    if not events:
        print_error(f"lineup '{lineup_id}' not found")
        raise typer.Exit(code=1)
    print_lineup_history(events)
