"""Event store port.

The store is append-only: events are grouped into per-aggregate streams with
contiguous stream versions starting at 1. ``append`` checks the caller's
expected version against the stream length and raises ``ConcurrencyError`` on
a mismatch; it never retries.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Literal, Protocol

if TYPE_CHECKING:
    from collections.abc import Sequence

    from softball_tracker.domain.events import DomainEvent
    from softball_tracker.domain.identifiers import GameId

AggregateType = Literal["Game", "TeamLineup", "InningState"]


@dataclass(frozen=True)
class StoredEventMetadata:
    source: str
    created_at: datetime
    correlation_id: str | None = None
    causation_id: str | None = None
    user_id: str | None = None


@dataclass(frozen=True)
class StoredEvent:
    event_id: str
    stream_id: str
    aggregate_type: AggregateType
    event_type: str
    event_data: str
    event_version: int
    stream_version: int
    timestamp: datetime
    metadata: StoredEventMetadata
    game_id: str | None = field(default=None, compare=False)


class EventStore(Protocol):
    async def append(
        self,
        stream_id: str,
        aggregate_type: AggregateType,
        events: Sequence[DomainEvent],
        expected_version: int | None = None,
    ) -> None: ...

    async def get_events(self, stream_id: str, from_version: int | None = None) -> list[StoredEvent]: ...

    async def get_events_by_game_id(
        self,
        game_id: GameId,
        aggregate_types: Sequence[AggregateType] | None = None,
    ) -> list[StoredEvent]: ...

    async def get_all_events(self) -> list[StoredEvent]: ...
