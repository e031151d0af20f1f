from rich.console import Console
from rich.table import Table

from softball_tracker.domain.team_lineup import TeamLineup
from softball_tracker.eventstore.protocol import StoredEvent

console = Console(highlight=False)
err_console = Console(stderr=True, highlight=False)


def print_error(message: str) -> None:
    err_console.print(f"[red bold]Error:[/red bold] {message}")


def print_lineup(lineup: TeamLineup) -> None:
    console.print(
        f"[bold]{lineup.team_name}[/bold] ({lineup.team_side.value.lower()}) "
        f"lineup [bold]{lineup.id}[/bold] for game {lineup.game_id}, version {lineup.version}"
    )
    slots = lineup.get_active_lineup()
    if not slots:
        console.print("  No players in lineup.")
        return

    table = Table(show_edge=False, pad_edge=False)
    table.add_column("Slot", justify="right")
    table.add_column("#", justify="right")
    table.add_column("Player")
    table.add_column("Pos")
    table.add_column("Status")
    for slot in slots:
        info = lineup.get_player_info(slot.current_player)
        state = lineup.get_player_state(slot.current_player)
        marker = " *" if slot.position == lineup.current_batter_slot else ""
        table.add_row(
            f"{slot.position}{marker}",
            str(info.jersey_number) if info else "",
            info.player_name if info else str(slot.current_player),
            info.current_position.value if info and info.current_position else "EP",
            state.value if state else "",
        )
    console.print(table)

    if not lineup.is_lineup_valid():
        console.print("[yellow]Defensive alignment is incomplete.[/yellow]")


def print_lineup_history(events: list[StoredEvent]) -> None:
    if not events:
        console.print("No events recorded.")
        return

    table = Table(show_edge=False, pad_edge=False)
    table.add_column("Ver", justify="right")
    table.add_column("Event")
    table.add_column("Recorded")
    table.add_column("Event ID")
    for event in events:
        table.add_row(
            str(event.stream_version),
            event.event_type,
            event.timestamp.strftime("%Y-%m-%d %H:%M:%S"),
            event.event_id,
        )
    console.print(table)
