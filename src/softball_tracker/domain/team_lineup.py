"""Event-sourced lineup aggregate for one team in one game.

The aggregate owns the batting order, the defensive alignment, and the
participation history of every player who has appeared for the team. It
enforces jersey uniqueness, position exclusivity, and the one-time re-entry
rule for starters.

Mutations never change an existing instance. Each one validates, builds a
single domain event, and applies that event to a copy of the backing dicts;
``from_events`` runs the same ``_apply`` transitions over a stored stream, so
a replayed lineup is indistinguishable from one built incrementally.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, replace
from enum import StrEnum
from typing import Any

from softball_tracker.domain.batting_slot import BattingSlot
from softball_tracker.domain.events import (
    BatterAdvancedInLineup,
    DomainEvent,
    FieldPositionChanged,
    PlayerAddedToLineup,
    PlayerSubstitutedIntoGame,
    TeamLineupCreated,
    event_from_dict,
)
from softball_tracker.domain.field_position import REQUIRED_POSITIONS, FieldPosition, TeamSide
from softball_tracker.domain.identifiers import (
    MAX_JERSEY_NUMBER,
    MIN_JERSEY_NUMBER,
    GameId,
    JerseyNumber,
    PlayerId,
    TeamLineupId,
)
from softball_tracker.domain.rules import SoftballRules
from softball_tracker.exceptions import DomainError, EventStreamError

logger = logging.getLogger(__name__)

MAX_TEAM_NAME_LENGTH = 50
MAX_PLAYER_NAME_LENGTH = 100


class ParticipationState(StrEnum):
    STARTER_ACTIVE = "STARTER_ACTIVE"
    ELIGIBLE_FOR_REENTRY = "ELIGIBLE_FOR_REENTRY"
    SUB_ACTIVE = "SUB_ACTIVE"
    PERMANENTLY_INACTIVE = "PERMANENTLY_INACTIVE"


@dataclass(frozen=True)
class PlayerParticipation:
    player_id: PlayerId
    jersey_number: JerseyNumber
    player_name: str
    is_starter: bool
    current_position: FieldPosition | None
    has_been_substituted: bool
    has_used_reentry: bool
    current_batting_slot: int | None

    @property
    def is_active(self) -> bool:
        return self.current_batting_slot is not None


@dataclass(frozen=True)
class PlayerInfo:
    player_id: PlayerId
    jersey_number: JerseyNumber
    player_name: str
    current_position: FieldPosition | None
    is_starter: bool
    has_used_reentry: bool


def _as_player_id(value: PlayerId | str) -> PlayerId:
    return value if isinstance(value, PlayerId) else PlayerId(str(value))


def _as_game_id(value: GameId | str) -> GameId:
    return value if isinstance(value, GameId) else GameId(str(value))


def _as_lineup_id(value: TeamLineupId | str) -> TeamLineupId:
    return value if isinstance(value, TeamLineupId) else TeamLineupId(str(value))


def _defensive(position: FieldPosition) -> FieldPosition | None:
    return None if position == FieldPosition.EXTRA_PLAYER else position


def _validate_player_name(name: str) -> None:
    if not name or not name.strip():
        msg = "Player name cannot be empty or whitespace"
        raise DomainError(msg)
    if len(name) > MAX_PLAYER_NAME_LENGTH:
        msg = f"Player name cannot exceed {MAX_PLAYER_NAME_LENGTH} characters"
        raise DomainError(msg)


def _validate_inning(inning: int) -> None:
    if inning < 1:
        msg = "Inning must be 1 or greater"
        raise DomainError(msg)


def _validate_batting_slot(slot: int, rules: SoftballRules) -> None:
    if slot < 1 or slot > rules.max_players_per_team:
        msg = f"Batting slot must be between 1 and {rules.max_players_per_team}"
        raise DomainError(msg)


class TeamLineup:
    def __init__(
        self,
        lineup_id: TeamLineupId,
        game_id: GameId,
        team_name: str,
        team_side: TeamSide = TeamSide.HOME,
        *,
        batting_slots: Mapping[int, BattingSlot] | None = None,
        field_positions: Mapping[FieldPosition, PlayerId] | None = None,
        player_history: Mapping[PlayerId, PlayerParticipation] | None = None,
        jersey_assignments: Mapping[int, PlayerId] | None = None,
        current_batter_slot: int = 1,
        history: tuple[DomainEvent, ...] = (),
        uncommitted: tuple[DomainEvent, ...] = (),
    ) -> None:
        self.id = lineup_id
        self.game_id = game_id
        self.team_name = team_name
        self.team_side = team_side
        self._batting_slots: dict[int, BattingSlot] = dict(batting_slots or {})
        self._field_positions: dict[FieldPosition, PlayerId] = dict(field_positions or {})
        self._player_history: dict[PlayerId, PlayerParticipation] = dict(player_history or {})
        self._jersey_assignments: dict[int, PlayerId] = dict(jersey_assignments or {})
        self._current_batter_slot = current_batter_slot
        self._history = history
        self._uncommitted = uncommitted

    # -- Construction ---------------------------------------------------------

    @classmethod
    def create_new(
        cls,
        lineup_id: TeamLineupId,
        game_id: GameId,
        team_name: str,
        team_side: TeamSide = TeamSide.HOME,
    ) -> TeamLineup:
        if not team_name or not team_name.strip():
            msg = "Team name cannot be empty or whitespace"
            raise DomainError(msg)
        if len(team_name) > MAX_TEAM_NAME_LENGTH:
            msg = f"Team name cannot exceed {MAX_TEAM_NAME_LENGTH} characters"
            raise DomainError(msg)
        event = TeamLineupCreated(
            game_id=game_id,
            team_lineup_id=lineup_id,
            team_name=team_name,
            team_side=team_side,
        )
        lineup = cls(lineup_id, game_id, team_name, team_side)
        return lineup._with_event(event)

    @classmethod
    def from_events(cls, events: Iterable[DomainEvent | Mapping[str, Any]]) -> TeamLineup:
        """Rebuild a lineup by replaying its event stream.

        Business rules are not re-checked; the stream is assumed to have been
        valid when it was written. Events given as plain payload dicts are
        parsed first.
        """
        stream = [event if isinstance(event, DomainEvent) else event_from_dict(dict(event)) for event in events]
        if not stream:
            msg = "Cannot reconstruct a lineup from an empty event stream"
            raise EventStreamError(msg)

        created = stream[0]
        if not isinstance(created, TeamLineupCreated):
            msg = f"First event must be TeamLineupCreated, got {created.event_type}"
            raise EventStreamError(msg)

        lineup_id = _as_lineup_id(created.team_lineup_id)
        game_id = _as_game_id(created.game_id)
        lineup = cls(lineup_id, game_id, created.team_name, TeamSide(created.team_side))

        for position, event in enumerate(stream[1:], start=2):
            if isinstance(event, TeamLineupCreated):
                msg = f"Duplicate TeamLineupCreated event at position {position}"
                raise EventStreamError(msg)
            if _as_lineup_id(event.team_lineup_id) != lineup_id:
                msg = f"Event at position {position} belongs to lineup {event.team_lineup_id}, not {lineup_id}"
                raise EventStreamError(msg)
            if _as_game_id(event.game_id) != game_id:
                msg = f"Event at position {position} belongs to game {event.game_id}, not {game_id}"
                raise EventStreamError(msg)
            lineup._apply(event)

        lineup._history = tuple(stream)
        lineup._uncommitted = ()
        logger.debug("Reconstructed lineup %s from %d events", lineup_id, len(stream))
        return lineup

    # -- Commands -------------------------------------------------------------

    def add_player(
        self,
        player_id: PlayerId,
        jersey_number: JerseyNumber,
        player_name: str,
        batting_slot: int,
        field_position: FieldPosition,
        rules: SoftballRules | None = None,
    ) -> TeamLineup:
        rules = rules if rules is not None else SoftballRules()
        _validate_batting_slot(batting_slot, rules)
        _validate_player_name(player_name)

        if batting_slot in self._batting_slots:
            msg = f"Batting slot {batting_slot} is already occupied"
            raise DomainError(msg)
        if jersey_number.to_number() in self._jersey_assignments:
            msg = f"Jersey number {jersey_number} is already assigned"
            raise DomainError(msg)
        if player_id in self._player_history:
            msg = "Player is already in the lineup"
            raise DomainError(msg)
        if field_position != FieldPosition.EXTRA_PLAYER and field_position in self._field_positions:
            msg = f"Field position {field_position} is already assigned"
            raise DomainError(msg)

        event = PlayerAddedToLineup(
            game_id=self.game_id,
            team_lineup_id=self.id,
            player_id=player_id,
            jersey_number=jersey_number,
            player_name=player_name,
            batting_slot=batting_slot,
            field_position=field_position,
        )
        return self._with_event(event)

    def substitute_player(
        self,
        batting_slot: int,
        outgoing_player_id: PlayerId,
        incoming_player_id: PlayerId,
        incoming_jersey_number: JerseyNumber,
        incoming_player_name: str,
        field_position: FieldPosition,
        inning: int,
        rules: SoftballRules | None = None,
        is_reentry: bool = False,
    ) -> TeamLineup:
        rules = rules if rules is not None else SoftballRules()
        _validate_batting_slot(batting_slot, rules)
        _validate_player_name(incoming_player_name)
        _validate_inning(inning)

        slot = self._batting_slots.get(batting_slot)
        if slot is None:
            msg = f"Batting slot {batting_slot} is not occupied"
            raise DomainError(msg)
        if slot.current_player != outgoing_player_id:
            msg = f"Player {outgoing_player_id} is not in batting slot {batting_slot}"
            raise DomainError(msg)

        incoming = self._player_history.get(incoming_player_id)
        if incoming is not None and incoming.is_active:
            msg = "Incoming player is already in the lineup"
            raise DomainError(msg)

        jersey_holder = self._jersey_assignments.get(incoming_jersey_number.to_number())
        if jersey_holder is not None and jersey_holder != incoming_player_id:
            msg = f"Jersey number {incoming_jersey_number} is already assigned"
            raise DomainError(msg)

        if field_position != FieldPosition.EXTRA_PLAYER:
            position_holder = self._field_positions.get(field_position)
            # The outgoing player's position is vacated by this substitution.
            if position_holder is not None and position_holder not in (incoming_player_id, outgoing_player_id):
                msg = f"Field position {field_position} is already occupied"
                raise DomainError(msg)

        if is_reentry:
            self._check_reentry(incoming, rules)
        elif incoming is not None and incoming.has_been_substituted:
            if not incoming.is_starter:
                msg = "Non-starter players cannot re-enter the game"
                raise DomainError(msg)
            # A removed starter coming back is a re-entry whether flagged or not.
            self._check_reentry(incoming, rules)

        entered = next(h.entered_inning for h in slot.history if h.player_id == slot.current_player and h.is_active)
        if inning < entered:
            msg = f"Cannot substitute in inning {inning} before the current player entered in inning {entered}"
            raise DomainError(msg)

        event = PlayerSubstitutedIntoGame(
            game_id=self.game_id,
            team_lineup_id=self.id,
            batting_slot=batting_slot,
            outgoing_player_id=outgoing_player_id,
            incoming_player_id=incoming_player_id,
            field_position=field_position,
            inning=inning,
            incoming_jersey_number=incoming_jersey_number,
            incoming_player_name=incoming_player_name,
        )
        return self._with_event(event)

    def change_position(self, player_id: PlayerId, new_position: FieldPosition, inning: int) -> TeamLineup:
        _validate_inning(inning)

        record = self._player_history.get(player_id)
        if record is None or not record.is_active:
            msg = "Player is not currently in the lineup"
            raise DomainError(msg)

        current = record.current_position or FieldPosition.EXTRA_PLAYER
        if current == new_position:
            msg = "Player is already in the specified position"
            raise DomainError(msg)
        if new_position != FieldPosition.EXTRA_PLAYER and new_position in self._field_positions:
            msg = f"Field position {new_position} is already occupied"
            raise DomainError(msg)

        event = FieldPositionChanged(
            game_id=self.game_id,
            team_lineup_id=self.id,
            player_id=player_id,
            from_position=current,
            to_position=new_position,
            inning=inning,
        )
        return self._with_event(event)

    def advance_batter(self, total_slots: int) -> TeamLineup:
        if total_slots < 1:
            msg = "Total batting slots must be at least 1"
            raise DomainError(msg)
        previous = self._current_batter_slot
        new_slot = previous + 1 if previous < total_slots else 1
        event = BatterAdvancedInLineup(
            game_id=self.game_id,
            team_lineup_id=self.id,
            previous_slot=previous,
            new_slot=new_slot,
            team_side=self.team_side,
        )
        return self._with_event(event)

    # -- Queries --------------------------------------------------------------

    @property
    def version(self) -> int:
        return len(self._history)

    @property
    def current_batter_slot(self) -> int:
        return self._current_batter_slot

    def get_active_lineup(self) -> list[BattingSlot]:
        return [self._batting_slots[position] for position in sorted(self._batting_slots)]

    def get_fielding_positions(self) -> dict[FieldPosition, PlayerId]:
        return dict(self._field_positions)

    def get_jersey_assignments(self) -> dict[int, PlayerId]:
        return dict(self._jersey_assignments)

    def is_player_eligible_for_reentry(self, player_id: PlayerId) -> bool:
        return self.get_player_state(player_id) == ParticipationState.ELIGIBLE_FOR_REENTRY

    def get_player_state(self, player_id: PlayerId) -> ParticipationState | None:
        record = self._player_history.get(player_id)
        if record is None:
            return None
        if record.is_active:
            return ParticipationState.STARTER_ACTIVE if record.is_starter else ParticipationState.SUB_ACTIVE
        if record.is_starter and record.has_been_substituted and not record.has_used_reentry:
            return ParticipationState.ELIGIBLE_FOR_REENTRY
        return ParticipationState.PERMANENTLY_INACTIVE

    def is_lineup_valid(self) -> bool:
        positions_covered = all(position in self._field_positions for position in REQUIRED_POSITIONS)
        return positions_covered and bool(self._batting_slots)

    def get_player_info(self, player_id: PlayerId) -> PlayerInfo | None:
        record = self._player_history.get(player_id)
        if record is None:
            return None
        return PlayerInfo(
            player_id=record.player_id,
            jersey_number=record.jersey_number,
            player_name=record.player_name,
            current_position=record.current_position,
            is_starter=record.is_starter,
            has_used_reentry=record.has_used_reentry,
        )

    def tracked_players(self) -> list[PlayerId]:
        return list(self._player_history)

    def all_events(self) -> list[DomainEvent]:
        return list(self._history)

    def get_uncommitted_events(self) -> list[DomainEvent]:
        return list(self._uncommitted)

    def mark_events_as_committed(self) -> TeamLineup:
        committed = self._copy()
        committed._uncommitted = ()
        return committed

    # -- State transitions ----------------------------------------------------

    def _check_reentry(self, incoming: PlayerParticipation | None, rules: SoftballRules) -> None:
        if not rules.allow_reentry:
            msg = "Re-entry is not allowed under current rules"
            raise DomainError(msg)
        if incoming is None:
            msg = "Cannot mark substitution as re-entry for player not in team history"
            raise DomainError(msg)
        if not incoming.is_starter:
            msg = "Only original starters are eligible for re-entry"
            raise DomainError(msg)
        if incoming.has_used_reentry:
            msg = "Player has already used their re-entry privilege"
            raise DomainError(msg)
        if not incoming.has_been_substituted:
            msg = "Player must have been previously substituted to re-enter"
            raise DomainError(msg)

    def _copy(self) -> TeamLineup:
        return TeamLineup(
            self.id,
            self.game_id,
            self.team_name,
            self.team_side,
            batting_slots=self._batting_slots,
            field_positions=self._field_positions,
            player_history=self._player_history,
            jersey_assignments=self._jersey_assignments,
            current_batter_slot=self._current_batter_slot,
            history=self._history,
            uncommitted=self._uncommitted,
        )

    def _with_event(self, event: DomainEvent) -> TeamLineup:
        lineup = self._copy()
        lineup._apply(event)
        lineup._history = (*self._history, event)
        lineup._uncommitted = (*self._uncommitted, event)
        return lineup

    def _apply(self, event: DomainEvent) -> None:
        match event:
            case TeamLineupCreated():
                pass
            case PlayerAddedToLineup():
                self._apply_player_added(event)
            case PlayerSubstitutedIntoGame():
                self._apply_substitution(event)
            case FieldPositionChanged():
                self._apply_position_change(event)
            case BatterAdvancedInLineup():
                self._current_batter_slot = event.new_slot
            case _:
                logger.debug("Ignoring unknown lineup event %s", event.event_type)

    def _apply_player_added(self, event: PlayerAddedToLineup) -> None:
        player_id = _as_player_id(event.player_id)
        position = _defensive(FieldPosition(event.field_position))
        self._batting_slots[event.batting_slot] = BattingSlot.create_with_starter(event.batting_slot, player_id)
        if position is not None:
            self._field_positions[position] = player_id
        self._player_history[player_id] = PlayerParticipation(
            player_id=player_id,
            jersey_number=event.jersey_number,
            player_name=event.player_name,
            is_starter=True,
            current_position=position,
            has_been_substituted=False,
            has_used_reentry=False,
            current_batting_slot=event.batting_slot,
        )
        self._jersey_assignments[event.jersey_number.to_number()] = player_id

    def _apply_substitution(self, event: PlayerSubstitutedIntoGame) -> None:
        outgoing_id = _as_player_id(event.outgoing_player_id)
        incoming_id = _as_player_id(event.incoming_player_id)
        position = _defensive(FieldPosition(event.field_position))
        jersey_number = event.incoming_jersey_number
        player_name = event.incoming_player_name

        slot = self._batting_slots.get(event.batting_slot)
        if slot is None:
            msg = f"Substitution references empty batting slot {event.batting_slot}"
            raise EventStreamError(msg)

        incoming = self._player_history.get(incoming_id)
        is_reentry = incoming is not None and incoming.has_been_substituted
        self._batting_slots[event.batting_slot] = slot.substitute(incoming_id, event.inning, is_reentry)

        outgoing = self._player_history.get(outgoing_id)
        if outgoing is not None:
            vacated = outgoing.current_position
            if vacated is not None and self._field_positions.get(vacated) == outgoing_id:
                del self._field_positions[vacated]
            self._player_history[outgoing_id] = replace(
                outgoing,
                current_position=None,
                has_been_substituted=True,
                current_batting_slot=None,
            )

        if position is not None:
            self._field_positions[position] = incoming_id

        if incoming is not None:
            jersey = jersey_number if jersey_number is not None else incoming.jersey_number
            if jersey != incoming.jersey_number:
                previous = incoming.jersey_number.to_number()
                if self._jersey_assignments.get(previous) == incoming_id:
                    del self._jersey_assignments[previous]
            self._player_history[incoming_id] = replace(
                incoming,
                jersey_number=jersey,
                current_position=position,
                has_used_reentry=incoming.has_used_reentry or is_reentry,
                current_batting_slot=event.batting_slot,
            )
        else:
            # Older streams carry no jersey or name for the incoming player.
            jersey = jersey_number if jersey_number is not None else self._placeholder_jersey()
            self._player_history[incoming_id] = PlayerParticipation(
                player_id=incoming_id,
                jersey_number=jersey,
                player_name=player_name if player_name is not None else f"Player {incoming_id}",
                is_starter=False,
                current_position=position,
                has_been_substituted=False,
                has_used_reentry=False,
                current_batting_slot=event.batting_slot,
            )
        self._jersey_assignments[jersey.to_number()] = incoming_id

    def _apply_position_change(self, event: FieldPositionChanged) -> None:
        player_id = _as_player_id(event.player_id)
        record = self._player_history.get(player_id)
        if record is None:
            msg = f"Position change references unknown player {player_id}"
            raise EventStreamError(msg)
        if record.current_position is not None and self._field_positions.get(record.current_position) == player_id:
            del self._field_positions[record.current_position]
        position = _defensive(FieldPosition(event.to_position))
        if position is not None:
            self._field_positions[position] = player_id
        self._player_history[player_id] = replace(record, current_position=position)

    def _placeholder_jersey(self) -> JerseyNumber:
        for number in range(MAX_JERSEY_NUMBER, MIN_JERSEY_NUMBER - 1, -1):
            if number not in self._jersey_assignments:
                return JerseyNumber.from_number(number)
        msg = "No free jersey number available for substituted player"
        raise EventStreamError(msg)
