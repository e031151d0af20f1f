"""Commands accepted by the use cases and the workflow orchestrator."""

from __future__ import annotations

from dataclasses import dataclass, field

from softball_tracker.domain.contracts import AtBatResultType
from softball_tracker.domain.field_position import FieldPosition, TeamSide
from softball_tracker.domain.identifiers import GameId, JerseyNumber, PlayerId, TeamLineupId
from softball_tracker.exceptions import ValidationError

MAX_QUEUED_SUBSTITUTIONS = 5
MAX_SEQUENCE_RETRY_ATTEMPTS = 10


@dataclass(frozen=True)
class LineupPlayer:
    player_id: PlayerId
    name: str
    jersey_number: JerseyNumber
    batting_slot: int
    field_position: FieldPosition


@dataclass(frozen=True)
class StartNewGameCommand:
    game_id: GameId
    home_team_name: str
    away_team_name: str
    our_team_side: TeamSide = TeamSide.HOME
    initial_lineup: tuple[LineupPlayer, ...] = ()

    def __post_init__(self) -> None:
        if not self.home_team_name.strip() or not self.away_team_name.strip():
            msg = "Team names cannot be empty"
            raise ValidationError(msg, "team_name")
        if self.home_team_name == self.away_team_name:
            msg = "Home and away teams must have different names"
            raise ValidationError(msg, "team_name")


@dataclass(frozen=True)
class RunnerAdvance:
    player_id: PlayerId
    from_base: str | None
    to_base: str


@dataclass(frozen=True)
class RecordAtBatCommand:
    game_id: GameId
    batter_id: PlayerId
    result: AtBatResultType
    runner_advances: tuple[RunnerAdvance, ...] = ()
    notes: str | None = None


@dataclass(frozen=True)
class SubstitutePlayerCommand:
    game_id: GameId
    team_lineup_id: TeamLineupId
    batting_slot: int
    outgoing_player_id: PlayerId
    incoming_player_id: PlayerId
    incoming_player_name: str
    incoming_jersey_number: JerseyNumber
    new_field_position: FieldPosition
    inning: int
    is_reentry: bool = False
    notes: str | None = None

    def __post_init__(self) -> None:
        if self.outgoing_player_id == self.incoming_player_id:
            msg = "Incoming and outgoing players must be different"
            raise ValidationError(msg, "incoming_player_id")


@dataclass(frozen=True)
class EndInningCommand:
    game_id: GameId
    inning: int
    is_top_half: bool
    ending_reason: str = "THREE_OUTS"
    final_outs: int = 3


@dataclass(frozen=True)
class UndoCommand:
    game_id: GameId
    action_limit: int = 1
    notes: str | None = None
    confirm_dangerous: bool = False


@dataclass(frozen=True)
class RedoCommand:
    game_id: GameId
    action_limit: int = 1
    notes: str | None = None
    confirm_dangerous: bool = False


@dataclass(frozen=True)
class CompleteAtBatSequenceCommand:
    game_id: GameId
    at_bat_command: RecordAtBatCommand
    check_inning_end: bool = False
    handle_substitutions: bool = False
    queued_substitutions: tuple[SubstitutePlayerCommand, ...] = ()
    notify_score_changes: bool = False
    max_retry_attempts: int = 1

    def __post_init__(self) -> None:
        if self.at_bat_command.game_id != self.game_id:
            msg = "at_bat_command.game_id must match the command game_id"
            raise ValidationError(msg, "at_bat_command")
        if self.max_retry_attempts < 0 or self.max_retry_attempts > MAX_SEQUENCE_RETRY_ATTEMPTS:
            msg = f"max_retry_attempts must be between 0 and {MAX_SEQUENCE_RETRY_ATTEMPTS}"
            raise ValidationError(msg, "max_retry_attempts")
        if len(self.queued_substitutions) > MAX_QUEUED_SUBSTITUTIONS:
            msg = f"queued_substitutions cannot exceed {MAX_QUEUED_SUBSTITUTIONS} substitutions per at-bat"
            raise ValidationError(msg, "queued_substitutions")
        slots = [sub.batting_slot for sub in self.queued_substitutions]
        if len(set(slots)) != len(slots):
            msg = "queued_substitutions cannot have duplicate batting_slot values"
            raise ValidationError(msg, "queued_substitutions")


@dataclass(frozen=True)
class CompleteGameWorkflowCommand:
    start_game_command: StartNewGameCommand
    at_bat_sequences: tuple[RecordAtBatCommand, ...] = ()
    substitutions: tuple[SubstitutePlayerCommand, ...] = ()
    end_game_naturally: bool = True
    max_attempts: int | None = None
    continue_on_failure: bool = False
    enable_notifications: bool = True
    operation_delay_ms: int = 0
    compensate_on_failure: bool = False
    metadata: dict[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.max_attempts is not None and self.max_attempts < 1:
            msg = "max_attempts must be at least 1"
            raise ValidationError(msg, "max_attempts")
        if self.operation_delay_ms < 0:
            msg = "operation_delay_ms must be non-negative"
            raise ValidationError(msg, "operation_delay_ms")
