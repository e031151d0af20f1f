import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path

from softball_tracker.config import load_event_store_path
from softball_tracker.db.connection import create_connection
from softball_tracker.eventstore.sqlite import SqliteEventStore
from softball_tracker.repos.team_lineup_repo import EventSourcedTeamLineupRepository


@dataclass(frozen=True)
class LineupContext:
    conn: sqlite3.Connection
    event_store: SqliteEventStore
    repo: EventSourcedTeamLineupRepository


@contextmanager
def build_lineup_context(db_path: str | None = None) -> Iterator[LineupContext]:
    """Composition-root context manager for lineup subcommands."""
    path = Path(db_path).expanduser() if db_path is not None else load_event_store_path()
    conn = create_connection(path)
    try:
        store = SqliteEventStore(conn)
        yield LineupContext(conn=conn, event_store=store, repo=EventSourcedTeamLineupRepository(store))
    finally:
        conn.close()
