from __future__ import annotations

import json
import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from softball_tracker.eventstore.protocol import AggregateType, StoredEvent, StoredEventMetadata
from softball_tracker.exceptions import ConcurrencyError

if TYPE_CHECKING:
    from collections.abc import Sequence

    from softball_tracker.domain.events import DomainEvent
    from softball_tracker.domain.identifiers import GameId

logger = logging.getLogger(__name__)

EVENT_SOURCE = "softball-tracker"


def to_stored_events(
    stream_id: str,
    aggregate_type: AggregateType,
    events: Sequence[DomainEvent],
    start_version: int,
) -> list[StoredEvent]:
    """Serialize domain events for a stream whose last version is ``start_version``."""
    created_at = datetime.now(UTC)
    return [
        StoredEvent(
            event_id=event.event_id,
            stream_id=stream_id,
            aggregate_type=aggregate_type,
            event_type=event.event_type,
            event_data=json.dumps(event.to_dict()),
            event_version=1,
            stream_version=start_version + offset,
            timestamp=event.timestamp,
            metadata=StoredEventMetadata(source=EVENT_SOURCE, created_at=created_at),
            game_id=event.game_id.value,
        )
        for offset, event in enumerate(events, start=1)
    ]


class InMemoryEventStore:
    """Event store kept in a dict of streams; used in tests and single-session tools."""

    def __init__(self) -> None:
        self._streams: dict[str, list[StoredEvent]] = {}

    async def append(
        self,
        stream_id: str,
        aggregate_type: AggregateType,
        events: Sequence[DomainEvent],
        expected_version: int | None = None,
    ) -> None:
        existing = self._streams.get(stream_id, [])
        current_version = len(existing)
        if expected_version is not None and expected_version != current_version:
            raise ConcurrencyError(stream_id, expected_version, current_version)
        if not events:
            return
        stored = to_stored_events(stream_id, aggregate_type, events, current_version)
        self._streams[stream_id] = [*existing, *stored]
        logger.debug("Appended %d events to %s stream %s", len(stored), aggregate_type, stream_id)

    async def get_events(self, stream_id: str, from_version: int | None = None) -> list[StoredEvent]:
        events = self._streams.get(stream_id, [])
        if from_version is None:
            return list(events)
        return [e for e in events if e.stream_version >= from_version]

    async def get_events_by_game_id(
        self,
        game_id: GameId,
        aggregate_types: Sequence[AggregateType] | None = None,
    ) -> list[StoredEvent]:
        return [
            e
            for e in await self.get_all_events()
            if e.game_id == game_id.value and (aggregate_types is None or e.aggregate_type in aggregate_types)
        ]

    async def get_all_events(self) -> list[StoredEvent]:
        events = [e for stream in self._streams.values() for e in stream]
        return sorted(events, key=lambda e: e.timestamp)
