from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from collections.abc import Mapping

    from softball_tracker.application.commands import (
        EndInningCommand,
        RecordAtBatCommand,
        RedoCommand,
        StartNewGameCommand,
        SubstitutePlayerCommand,
        UndoCommand,
    )
    from softball_tracker.application.results import (
        AtBatResult,
        GameStartResult,
        InningEndResult,
        RedoResult,
        SubstitutionResult,
        UndoResult,
    )
    from softball_tracker.domain.identifiers import GameId


class Logger(Protocol):
    """Structured logging port used by the orchestrator."""

    def debug(self, message: str, context: Mapping[str, Any] | None = None) -> None: ...

    def info(self, message: str, context: Mapping[str, Any] | None = None) -> None: ...

    def warn(self, message: str, context: Mapping[str, Any] | None = None) -> None: ...

    def error(
        self,
        message: str,
        context: Mapping[str, Any] | None = None,
        error: BaseException | None = None,
    ) -> None: ...


@dataclass(frozen=True)
class GameStartedNotice:
    game_id: GameId
    home_team: str
    away_team: str
    start_time: datetime


@dataclass(frozen=True)
class ScoreUpdate:
    home_score: int
    away_score: int
    inning: int
    scoring_play: str


@dataclass(frozen=True)
class GameEndedNotice:
    home_score: int
    away_score: int
    winner: str | None = None


class NotificationService(Protocol):
    """Best-effort outbound notifications; failures never fail a game action."""

    async def notify_game_started(self, notice: GameStartedNotice) -> None: ...

    async def notify_score_update(self, game_id: str, update: ScoreUpdate) -> None: ...

    async def notify_game_ended(self, game_id: str, notice: GameEndedNotice) -> None: ...


@dataclass(frozen=True)
class AuthenticatedUser:
    user_id: str
    display_name: str | None = None


class AuthService(Protocol):
    async def get_current_user(self) -> AuthenticatedUser | str | None: ...

    async def has_permission(self, user_id: str, operation: str) -> bool: ...


class StartNewGame(Protocol):
    async def execute(self, command: StartNewGameCommand) -> GameStartResult: ...


class RecordAtBat(Protocol):
    async def execute(self, command: RecordAtBatCommand) -> AtBatResult: ...


class SubstitutePlayer(Protocol):
    async def execute(self, command: SubstitutePlayerCommand) -> SubstitutionResult: ...


class EndInning(Protocol):
    async def execute(self, command: EndInningCommand) -> InningEndResult: ...


class UndoLastAction(Protocol):
    async def execute(self, command: UndoCommand) -> UndoResult: ...


class RedoLastAction(Protocol):
    async def execute(self, command: RedoCommand) -> RedoResult: ...
