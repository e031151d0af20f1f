from __future__ import annotations

import logging
import sqlite3
from datetime import datetime
from typing import TYPE_CHECKING, cast

from softball_tracker.eventstore.memory import to_stored_events
from softball_tracker.eventstore.protocol import AggregateType, StoredEvent, StoredEventMetadata
from softball_tracker.exceptions import ConcurrencyError

if TYPE_CHECKING:
    from collections.abc import Sequence

    from softball_tracker.domain.events import DomainEvent
    from softball_tracker.domain.identifiers import GameId

logger = logging.getLogger(__name__)


class SqliteEventStore:
    """Event store backed by the ``events`` table.

    Calls run synchronously on the caller's connection; the coroutine
    interface matches the other stores so callers can swap them freely.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    async def append(
        self,
        stream_id: str,
        aggregate_type: AggregateType,
        events: Sequence[DomainEvent],
        expected_version: int | None = None,
    ) -> None:
        current_version = self._stream_version(stream_id)
        if expected_version is not None and expected_version != current_version:
            raise ConcurrencyError(stream_id, expected_version, current_version)
        if not events:
            return
        stored = to_stored_events(stream_id, aggregate_type, events, current_version)
        try:
            with self._conn:
                self._conn.executemany(
                    """INSERT INTO events
                           (event_id, stream_id, aggregate_type, event_type, event_data,
                            event_version, stream_version, game_id, timestamp, source,
                            created_at, correlation_id, causation_id, user_id)
                       VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                    [
                        (
                            e.event_id,
                            e.stream_id,
                            e.aggregate_type,
                            e.event_type,
                            e.event_data,
                            e.event_version,
                            e.stream_version,
                            e.game_id,
                            e.timestamp.isoformat(),
                            e.metadata.source,
                            e.metadata.created_at.isoformat(),
                            e.metadata.correlation_id,
                            e.metadata.causation_id,
                            e.metadata.user_id,
                        )
                        for e in stored
                    ],
                )
        except sqlite3.IntegrityError as exc:
            # Another writer claimed the same stream version between the check and the insert.
            raise ConcurrencyError(stream_id, current_version, self._stream_version(stream_id)) from exc
        logger.debug("Appended %d events to %s stream %s", len(stored), aggregate_type, stream_id)

    async def get_events(self, stream_id: str, from_version: int | None = None) -> list[StoredEvent]:
        rows = self._conn.execute(
            "SELECT * FROM events WHERE stream_id = ? AND stream_version >= ? ORDER BY stream_version",
            (stream_id, from_version or 0),
        ).fetchall()
        return [self._row_to_event(row) for row in rows]

    async def get_events_by_game_id(
        self,
        game_id: GameId,
        aggregate_types: Sequence[AggregateType] | None = None,
    ) -> list[StoredEvent]:
        rows = self._conn.execute(
            "SELECT * FROM events WHERE game_id = ? ORDER BY id",
            (game_id.value,),
        ).fetchall()
        events = [self._row_to_event(row) for row in rows]
        if aggregate_types is None:
            return events
        return [e for e in events if e.aggregate_type in aggregate_types]

    async def get_all_events(self) -> list[StoredEvent]:
        rows = self._conn.execute("SELECT * FROM events ORDER BY id").fetchall()
        return [self._row_to_event(row) for row in rows]

    def _stream_version(self, stream_id: str) -> int:
        row = self._conn.execute(
            "SELECT MAX(stream_version) FROM events WHERE stream_id = ?",
            (stream_id,),
        ).fetchone()
        return row[0] if row and row[0] is not None else 0

    @staticmethod
    def _row_to_event(row: sqlite3.Row) -> StoredEvent:
        return StoredEvent(
            event_id=row["event_id"],
            stream_id=row["stream_id"],
            aggregate_type=cast("AggregateType", row["aggregate_type"]),
            event_type=row["event_type"],
            event_data=row["event_data"],
            event_version=row["event_version"],
            stream_version=row["stream_version"],
            timestamp=datetime.fromisoformat(row["timestamp"]),
            metadata=StoredEventMetadata(
                source=row["source"],
                created_at=datetime.fromisoformat(row["created_at"]),
                correlation_id=row["correlation_id"],
                causation_id=row["causation_id"],
                user_id=row["user_id"],
            ),
            game_id=row["game_id"],
        )
