"""Domain events emitted by the lineup aggregate.

Every event carries the lineup and game it belongs to so that a stream can be
checked for consistency on replay. ``to_dict`` produces the camelCase payload
stored by event stores; ``event_from_dict`` turns such a payload back into an
event, re-hydrating identifier strings into value objects.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, ClassVar

from softball_tracker.domain.field_position import FieldPosition, TeamSide
from softball_tracker.domain.identifiers import GameId, JerseyNumber, PlayerId, TeamLineupId
from softball_tracker.exceptions import EventStreamError


def _new_event_id() -> str:
    return str(uuid.uuid4())


def _now() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True, kw_only=True)
class DomainEvent:
    event_type: ClassVar[str] = "DomainEvent"

    game_id: GameId
    team_lineup_id: TeamLineupId
    event_id: str = field(default_factory=_new_event_id)
    timestamp: datetime = field(default_factory=_now)

    def payload(self) -> dict[str, Any]:
        return {}

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.event_type,
            "eventId": self.event_id,
            "timestamp": self.timestamp.isoformat(),
            "gameId": self.game_id.value,
            "teamLineupId": self.team_lineup_id.value,
            **self.payload(),
        }


@dataclass(frozen=True, kw_only=True)
class TeamLineupCreated(DomainEvent):
    event_type: ClassVar[str] = "TeamLineupCreated"

    team_name: str
    team_side: TeamSide = TeamSide.HOME

    def payload(self) -> dict[str, Any]:
        return {"teamName": self.team_name, "teamSide": self.team_side.value}


@dataclass(frozen=True, kw_only=True)
class PlayerAddedToLineup(DomainEvent):
    event_type: ClassVar[str] = "PlayerAddedToLineup"

    player_id: PlayerId
    jersey_number: JerseyNumber
    player_name: str
    batting_slot: int
    field_position: FieldPosition

    def payload(self) -> dict[str, Any]:
        return {
            "playerId": self.player_id.value,
            "jerseyNumber": self.jersey_number.value,
            "playerName": self.player_name,
            "battingSlot": self.batting_slot,
            "fieldPosition": self.field_position.value,
        }


@dataclass(frozen=True, kw_only=True)
class PlayerSubstitutedIntoGame(DomainEvent):
    event_type: ClassVar[str] = "PlayerSubstitutedIntoGame"

    batting_slot: int
    outgoing_player_id: PlayerId
    incoming_player_id: PlayerId
    field_position: FieldPosition
    inning: int
    # Absent from streams written before substitutions recorded them.
    incoming_jersey_number: JerseyNumber | None = None
    incoming_player_name: str | None = None

    def payload(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "battingSlot": self.batting_slot,
            "outgoingPlayerId": self.outgoing_player_id.value,
            "incomingPlayerId": self.incoming_player_id.value,
            "fieldPosition": self.field_position.value,
            "inning": self.inning,
        }
        if self.incoming_jersey_number is not None:
            data["incomingJerseyNumber"] = self.incoming_jersey_number.value
        if self.incoming_player_name is not None:
            data["incomingPlayerName"] = self.incoming_player_name
        return data


@dataclass(frozen=True, kw_only=True)
class FieldPositionChanged(DomainEvent):
    event_type: ClassVar[str] = "FieldPositionChanged"

    player_id: PlayerId
    from_position: FieldPosition | None
    to_position: FieldPosition
    inning: int

    def payload(self) -> dict[str, Any]:
        return {
            "playerId": self.player_id.value,
            "fromPosition": self.from_position.value if self.from_position is not None else None,
            "toPosition": self.to_position.value,
            "inning": self.inning,
        }


@dataclass(frozen=True, kw_only=True)
class BatterAdvancedInLineup(DomainEvent):
    event_type: ClassVar[str] = "BatterAdvancedInLineup"

    previous_slot: int
    new_slot: int
    team_side: TeamSide

    def payload(self) -> dict[str, Any]:
        return {
            "previousSlot": self.previous_slot,
            "newSlot": self.new_slot,
            "teamSide": self.team_side.value,
        }


@dataclass(frozen=True, kw_only=True)
class UnknownEvent(DomainEvent):
    """An event type this version does not understand; ignored on replay."""

    event_type: ClassVar[str] = "Unknown"

    type_name: str
    data: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {**self.data, "type": self.type_name}


LINEUP_EVENT_TYPES: dict[str, type[DomainEvent]] = {
    cls.event_type: cls
    for cls in (
        TeamLineupCreated,
        PlayerAddedToLineup,
        PlayerSubstitutedIntoGame,
        FieldPositionChanged,
        BatterAdvancedInLineup,
    )
}


def _require(data: dict[str, Any], key: str) -> Any:
    try:
        return data[key]
    except KeyError:
        msg = f"Event {data.get('type', '?')} is missing field '{key}'"
        raise EventStreamError(msg) from None


def _parse_timestamp(raw: object) -> datetime:
    if isinstance(raw, datetime):
        return raw
    if isinstance(raw, str):
        return datetime.fromisoformat(raw)
    return _now()


def event_from_dict(data: dict[str, Any]) -> DomainEvent:
    """Build a domain event from its stored payload."""
    type_name = _require(data, "type")
    base: dict[str, Any] = {
        "game_id": GameId(str(_require(data, "gameId"))),
        "team_lineup_id": TeamLineupId(str(_require(data, "teamLineupId"))),
        "event_id": str(data.get("eventId") or _new_event_id()),
        "timestamp": _parse_timestamp(data.get("timestamp")),
    }
    match type_name:
        case "TeamLineupCreated":
            return TeamLineupCreated(
                **base,
                team_name=str(_require(data, "teamName")),
                team_side=TeamSide(data.get("teamSide", TeamSide.HOME.value)),
            )
        case "PlayerAddedToLineup":
            return PlayerAddedToLineup(
                **base,
                player_id=PlayerId(str(_require(data, "playerId"))),
                jersey_number=JerseyNumber(str(_require(data, "jerseyNumber"))),
                player_name=str(_require(data, "playerName")),
                batting_slot=int(_require(data, "battingSlot")),
                field_position=FieldPosition(_require(data, "fieldPosition")),
            )
        case "PlayerSubstitutedIntoGame":
            incoming_jersey = data.get("incomingJerseyNumber")
            incoming_name = data.get("incomingPlayerName")
            return PlayerSubstitutedIntoGame(
                **base,
                batting_slot=int(_require(data, "battingSlot")),
                outgoing_player_id=PlayerId(str(_require(data, "outgoingPlayerId"))),
                incoming_player_id=PlayerId(str(_require(data, "incomingPlayerId"))),
                field_position=FieldPosition(_require(data, "fieldPosition")),
                inning=int(_require(data, "inning")),
                incoming_jersey_number=JerseyNumber(str(incoming_jersey)) if incoming_jersey is not None else None,
                incoming_player_name=str(incoming_name) if incoming_name is not None else None,
            )
        case "FieldPositionChanged":
            from_position = data.get("fromPosition")
            return FieldPositionChanged(
                **base,
                player_id=PlayerId(str(_require(data, "playerId"))),
                from_position=FieldPosition(from_position) if from_position is not None else None,
                to_position=FieldPosition(_require(data, "toPosition")),
                inning=int(_require(data, "inning")),
            )
        case "BatterAdvancedInLineup":
            return BatterAdvancedInLineup(
                **base,
                previous_slot=int(_require(data, "previousSlot")),
                new_slot=int(_require(data, "newSlot")),
                team_side=TeamSide(_require(data, "teamSide")),
            )
        case _:
            return UnknownEvent(**base, type_name=str(type_name), data=dict(data))
