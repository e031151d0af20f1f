"""Result types returned by the use cases and the workflow orchestrator.

Every use-case result satisfies :class:`OperationResult`; the orchestrator
only reads ``success`` and ``errors`` generically and reaches for named
domain fields (``runs_scored``, ``inning_ended``, ``game_ended``,
``game_state``) on the results it knows.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Generic, Protocol, TypeVar, runtime_checkable

from softball_tracker.domain.contracts import GameStatus

if TYPE_CHECKING:
    from collections.abc import Sequence

    from softball_tracker.domain.identifiers import GameId, PlayerId, TeamLineupId


@runtime_checkable
class OperationResult(Protocol):
    @property
    def success(self) -> bool: ...

    @property
    def errors(self) -> Sequence[str]: ...


@dataclass(frozen=True)
class GameStateSnapshot:
    game_id: GameId
    status: GameStatus = GameStatus.IN_PROGRESS
    current_inning: int = 1
    is_top_half: bool = True
    outs: int = 0
    home_score: int = 0
    away_score: int = 0


@dataclass(frozen=True)
class GameStartResult:
    success: bool
    game_id: GameId
    initial_state: GameStateSnapshot | None = None
    errors: tuple[str, ...] = ()


@dataclass(frozen=True)
class AtBatResult:
    success: bool
    game_state: GameStateSnapshot | None = None
    runs_scored: int = 0
    rbi_awarded: int = 0
    inning_ended: bool = False
    game_ended: bool = False
    errors: tuple[str, ...] = ()


@dataclass(frozen=True)
class InningEndResult:
    success: bool
    game_state: GameStateSnapshot | None = None
    ended_inning: int = 0
    ended_half: str = ""
    new_half: str | None = None
    game_ended: bool = False
    errors: tuple[str, ...] = ()


@dataclass(frozen=True)
class SubstitutionResult:
    success: bool
    game_id: GameId | None = None
    team_lineup_id: TeamLineupId | None = None
    batting_slot: int | None = None
    outgoing_player_id: PlayerId | None = None
    incoming_player_id: PlayerId | None = None
    was_reentry: bool = False
    position_changed: bool = False
    errors: tuple[str, ...] = ()


@dataclass(frozen=True)
class UndoResult:
    success: bool
    game_id: GameId
    actions_undone: int = 0
    undone_action_types: tuple[str, ...] = ()
    total_events_generated: int = 0
    can_undo: bool = False
    can_redo: bool = False
    errors: tuple[str, ...] = ()


@dataclass(frozen=True)
class RedoResult:
    success: bool
    game_id: GameId
    actions_redone: int = 0
    redone_action_types: tuple[str, ...] = ()
    total_events_generated: int = 0
    can_undo: bool = False
    can_redo: bool = False
    errors: tuple[str, ...] = ()


@dataclass(frozen=True)
class CompleteAtBatSequenceResult:
    success: bool
    at_bat_result: AtBatResult
    inning_end_result: InningEndResult | None = None
    substitution_results: tuple[SubstitutionResult, ...] = ()
    score_update_sent: bool = False
    retry_attempts_used: int = 0
    execution_time_ms: float = 0.0
    errors: tuple[str, ...] = ()


@dataclass(frozen=True)
class CompleteGameWorkflowResult:
    success: bool
    game_id: GameId
    game_start_result: GameStartResult
    total_at_bats: int = 0
    successful_at_bats: int = 0
    total_runs: int = 0
    total_substitutions: int = 0
    successful_substitutions: int = 0
    completed_innings: int = 0
    game_completed: bool = False
    final_score: tuple[int, int] | None = None
    execution_time_ms: float = 0.0
    total_retry_attempts: int = 0
    compensation_applied: bool = False
    errors: tuple[str, ...] = ()


T = TypeVar("T", bound=OperationResult)


@dataclass(frozen=True)
class TransactionResult(Generic[T]):
    success: bool
    results: tuple[T, ...]
    rollback_applied: bool
    errors: tuple[str, ...] = ()
    requires_manual_intervention: bool = False


@dataclass(frozen=True)
class CompensatedResult(Generic[T]):
    result: T
    compensation_applied: bool
    requires_manual_intervention: bool = False

    @property
    def success(self) -> bool:
        return self.result.success

    @property
    def errors(self) -> tuple[str, ...]:
        return tuple(self.result.errors)


@dataclass(frozen=True)
class RetryResult(Generic[T]):
    result: T
    attempts: int
    errors: tuple[str, ...] = field(default_factory=tuple)

    @property
    def success(self) -> bool:
        return self.result.success


@dataclass(frozen=True)
class PermissionCheck:
    valid: bool
    user_id: str | None = None
    errors: tuple[str, ...] = ()

    @property
    def success(self) -> bool:
        return self.valid
