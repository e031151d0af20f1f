from __future__ import annotations

import json
import logging
from collections import defaultdict
from typing import TYPE_CHECKING, Final

from softball_tracker.domain.events import TeamLineupCreated, event_from_dict
from softball_tracker.domain.team_lineup import TeamLineup
from softball_tracker.exceptions import EventStreamError

if TYPE_CHECKING:
    from softball_tracker.domain.events import DomainEvent
    from softball_tracker.domain.field_position import TeamSide
    from softball_tracker.domain.identifiers import GameId, TeamLineupId
    from softball_tracker.eventstore.protocol import EventStore, StoredEvent

logger = logging.getLogger(__name__)

AGGREGATE_TYPE: Final = "TeamLineup"


def _decode(stored: list[StoredEvent]) -> list[DomainEvent]:
    return [event_from_dict(json.loads(e.event_data)) for e in stored]


class EventSourcedTeamLineupRepository:
    def __init__(self, event_store: EventStore) -> None:
        self._event_store = event_store

    async def save(self, lineup: TeamLineup) -> TeamLineup:
        """Append the lineup's pending events and return the committed lineup.

        The expected version is the version the lineup was loaded at, so a
        concurrent writer surfaces as ``ConcurrencyError`` from the store.
        """
        events = lineup.get_uncommitted_events()
        if not events:
            return lineup
        expected_version = lineup.version - len(events)
        await self._event_store.append(lineup.id.value, AGGREGATE_TYPE, events, expected_version)
        logger.debug("Saved lineup %s at version %d", lineup.id, lineup.version)
        return lineup.mark_events_as_committed()

    async def find_by_id(self, lineup_id: TeamLineupId) -> TeamLineup | None:
        stored = await self._event_store.get_events(lineup_id.value)
        if not stored:
            return None
        return TeamLineup.from_events(_decode(stored))

    async def find_by_game_id(self, game_id: GameId) -> list[TeamLineup]:
        stored = await self._event_store.get_events_by_game_id(game_id, [AGGREGATE_TYPE])
        streams: dict[str, list[StoredEvent]] = defaultdict(list)
        for event in stored:
            streams[event.stream_id].append(event)

        lineups: list[TeamLineup] = []
        for stream_id, events in streams.items():
            events.sort(key=lambda e: e.stream_version)
            if events[0].event_type != TeamLineupCreated.event_type:
                msg = f"Stream {stream_id} starts with {events[0].event_type} instead of TeamLineupCreated"
                raise EventStreamError(msg)
            lineups.append(TeamLineup.from_events(_decode(events)))
        return lineups

    async def find_by_game_id_and_side(self, game_id: GameId, side: TeamSide) -> TeamLineup | None:
        return next((lineup for lineup in await self.find_by_game_id(game_id) if lineup.team_side == side), None)
