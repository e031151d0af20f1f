"""Multi-step game workflows over the use cases.

The orchestrator sequences the start-game, record-at-bat, substitute,
end-inning, undo and redo use cases. Logical failures come back as result
objects with ``success=False``; exceptions raised by collaborators are caught
at each public entry point, logged with context and turned into failure
results. Best-effort side effects (notifications, audit logging) never fail
the primary operation.
"""

from __future__ import annotations

import asyncio
import dataclasses
import time
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any, TypeVar

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    retry_if_result,
    stop_after_attempt,
    wait_exponential,
)

from softball_tracker.application.commands import EndInningCommand, UndoCommand
from softball_tracker.application.ports import GameEndedNotice, GameStartedNotice, ScoreUpdate
from softball_tracker.application.results import (
    AtBatResult,
    CompensatedResult,
    CompleteAtBatSequenceResult,
    CompleteGameWorkflowResult,
    GameStartResult,
    InningEndResult,
    OperationResult,
    PermissionCheck,
    RedoResult,
    RetryResult,
    SubstitutionResult,
    TransactionResult,
    UndoResult,
)
from softball_tracker.config import WorkflowSettings
from softball_tracker.exceptions import InconsistentStateError

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Mapping, Sequence

    from softball_tracker.application.commands import (
        CompleteAtBatSequenceCommand,
        CompleteGameWorkflowCommand,
        RecordAtBatCommand,
        RedoCommand,
        StartNewGameCommand,
    )
    from softball_tracker.application.ports import (
        AuthService,
        EndInning,
        Logger,
        NotificationService,
        RecordAtBat,
        RedoLastAction,
        StartNewGame,
        SubstitutePlayer,
        UndoLastAction,
    )
    from typing import TypeAlias

    from softball_tracker.domain.identifiers import GameId

    SleepFn: TypeAlias = Callable[[float], Awaitable[None]]

T = TypeVar("T", bound=OperationResult)


def _is_failure(result: OperationResult) -> bool:
    return not result.success


def _elapsed_ms(started: float) -> float:
    return (time.monotonic() - started) * 1000


def _with_extra_error(result: T, message: str) -> T:
    if dataclasses.is_dataclass(result) and not isinstance(result, type):
        return dataclasses.replace(result, errors=(*result.errors, message))  # type: ignore[type-var]
    return result


def _user_id(user: object) -> str | None:
    if user is None:
        return None
    if isinstance(user, str):
        return user
    return getattr(user, "user_id", None)


class GameWorkflowOrchestrator:
    def __init__(
        self,
        start_new_game: StartNewGame,
        record_at_bat: RecordAtBat,
        substitute_player: SubstitutePlayer,
        end_inning: EndInning,
        undo_last_action: UndoLastAction,
        redo_last_action: RedoLastAction,
        logger: Logger,
        notification_service: NotificationService,
        auth_service: AuthService,
        *,
        settings: WorkflowSettings | None = None,
        sleep: SleepFn | None = None,
    ) -> None:
        self._start_new_game = start_new_game
        self._record_at_bat = record_at_bat
        self._substitute_player = substitute_player
        self._end_inning = end_inning
        self._undo_last_action = undo_last_action
        self._redo_last_action = redo_last_action
        self._logger = logger
        self._notifications = notification_service
        self._auth = auth_service
        self._settings = settings or WorkflowSettings()
        self._sleep: SleepFn = sleep or asyncio.sleep

    # ------------------------------------------------------------------
    # Game entry points
    # ------------------------------------------------------------------

    async def start_new_game_with_notifications(self, command: StartNewGameCommand) -> GameStartResult:
        started = time.monotonic()
        context = {
            "game_id": command.game_id.value,
            "home_team": command.home_team_name,
            "away_team": command.away_team_name,
            "operation": "start_new_game_with_notifications",
        }
        self._logger.debug("Starting new game workflow with notifications", context)
        try:
            result = await self._start_new_game.execute(command)
            if result.success:
                await self._send_game_started(command)
                self._logger.info(
                    "Game started successfully with notifications",
                    {**context, "duration_ms": _elapsed_ms(started)},
                )
                await self.log_operation_audit(
                    "START_GAME_WITH_NOTIFICATIONS",
                    {
                        "game_id": command.game_id.value,
                        "home_team": command.home_team_name,
                        "away_team": command.away_team_name,
                    },
                    result,
                )
            else:
                self._logger.warn(
                    "Game creation failed, skipping notifications",
                    {**context, "errors": list(result.errors)},
                )
            return result
        except Exception as exc:
            self._logger.error("Failed to start new game", {**context, "duration_ms": _elapsed_ms(started)}, exc)
            return GameStartResult(success=False, game_id=command.game_id, errors=(str(exc),))

    async def complete_at_bat_sequence(self, command: CompleteAtBatSequenceCommand) -> CompleteAtBatSequenceResult:
        """Record one at-bat and run the follow-up steps it triggers.

        The steps run in order: the at-bat itself (retried when
        ``max_retry_attempts > 1``), the inning end if the at-bat closed the
        half-inning, the queued substitutions, then the score notification.
        Only a failed at-bat fails the sequence.
        """
        started = time.monotonic()
        game_id = command.game_id.value
        context = {
            "game_id": game_id,
            "batter_id": command.at_bat_command.batter_id.value,
            "operation": "complete_at_bat_sequence",
        }
        self._logger.debug(
            "Starting complete at-bat sequence",
            {
                **context,
                "check_inning_end": command.check_inning_end,
                "handle_substitutions": command.handle_substitutions,
                "notify_score_changes": command.notify_score_changes,
            },
        )
        attempts_made = 0

        async def _record() -> AtBatResult:
            nonlocal attempts_made
            attempts_made += 1
            return await self._record_at_bat.execute(command.at_bat_command)

        try:
            if command.max_retry_attempts > 1:
                retried = await self.attempt_operation_with_retry(
                    "record_at_bat", _record, command.max_retry_attempts, {"game_id": game_id}
                )
                at_bat_result = retried.result
            else:
                at_bat_result = await _record()
            retries_used = attempts_made - 1

            if not at_bat_result.success:
                return CompleteAtBatSequenceResult(
                    success=False,
                    at_bat_result=at_bat_result,
                    retry_attempts_used=retries_used,
                    execution_time_ms=_elapsed_ms(started),
                    errors=(f"At-bat failed: {', '.join(at_bat_result.errors)}",),
                )

            inning_end_result = None
            if command.check_inning_end and at_bat_result.inning_ended:
                inning_end_result = await self._end_inning_after_at_bat(command.game_id, at_bat_result)

            substitution_results: list[SubstitutionResult] = []
            if command.handle_substitutions:
                for substitution in command.queued_substitutions:
                    try:
                        sub_result = await self._substitute_player.execute(substitution)
                    except Exception as exc:
                        self._logger.warn(
                            "Substitution raised during at-bat sequence",
                            {**context, "batting_slot": substitution.batting_slot, "error": str(exc)},
                        )
                        sub_result = SubstitutionResult(success=False, errors=(str(exc),))
                    else:
                        if not sub_result.success:
                            self._logger.warn(
                                "Substitution failed during at-bat sequence",
                                {**context, "substitution_errors": list(sub_result.errors)},
                            )
                    substitution_results.append(sub_result)

            score_update_sent = False
            if command.notify_score_changes and at_bat_result.runs_scored > 0:
                score_update_sent = await self._send_score_update(command.game_id, at_bat_result)

            duration = _elapsed_ms(started)
            self._logger.info(
                "At-bat sequence completed successfully",
                {
                    **context,
                    "runs_scored": at_bat_result.runs_scored,
                    "inning_ended": at_bat_result.inning_ended,
                    "substitutions_processed": len(substitution_results),
                    "score_update_sent": score_update_sent,
                    "duration_ms": duration,
                },
            )
            return CompleteAtBatSequenceResult(
                success=True,
                at_bat_result=at_bat_result,
                inning_end_result=inning_end_result,
                substitution_results=tuple(substitution_results),
                score_update_sent=score_update_sent,
                retry_attempts_used=retries_used,
                execution_time_ms=duration,
            )
        except Exception as exc:
            duration = _elapsed_ms(started)
            self._logger.error(
                "At-bat sequence failed with exception",
                {**context, "duration_ms": duration, "attempts": attempts_made},
                exc,
            )
            return CompleteAtBatSequenceResult(
                success=False,
                at_bat_result=AtBatResult(success=False, errors=(str(exc),)),
                retry_attempts_used=max(attempts_made - 1, 0),
                execution_time_ms=duration,
                errors=(f"Sequence failed with exception: {exc}",),
            )

    async def complete_game_workflow(self, command: CompleteGameWorkflowCommand) -> CompleteGameWorkflowResult:
        """Drive a whole game: start, at-bats, substitutions, end notification.

        ``max_attempts`` (falling back to ``WorkflowSettings.max_game_attempts``)
        caps the number of at-bats executed; ``None`` means no cap. When the
        cap is hit with at-bats still queued the workflow fails. A failed
        at-bat aborts the run unless ``continue_on_failure`` is set, and with
        ``compensate_on_failure`` an aborted run undoes the at-bats it had
        already recorded.

        Raises:
            InconsistentStateError: compensation was requested and the undo
                use case could not complete it.
        """
        started = time.monotonic()
        game_id = command.start_game_command.game_id
        max_attempts = command.max_attempts if command.max_attempts is not None else self._settings.max_game_attempts
        context = {
            "game_id": game_id.value,
            "operation": "complete_game_workflow",
            "metadata": dict(command.metadata),
        }
        self._logger.info(
            "Starting complete game workflow",
            {
                **context,
                "total_at_bats": len(command.at_bat_sequences),
                "total_substitutions": len(command.substitutions),
                "end_game_naturally": command.end_game_naturally,
                "max_attempts": max_attempts,
            },
        )
        progress = _WorkflowProgress()
        game_start_result: GameStartResult | None = None
        try:
            # Phase 1: start the game
            game_start_result = await self._start_new_game.execute(command.start_game_command)
            if not game_start_result.success:
                return self._failed_workflow(
                    command,
                    started,
                    game_start_result,
                    progress,
                    [f"Game initialization failed: {', '.join(game_start_result.errors)}"],
                )
            if command.enable_notifications:
                await self._send_game_started(command.start_game_command)

            # Phase 2: at-bats
            for at_bat in command.at_bat_sequences:
                if max_attempts is not None and progress.total_at_bats >= max_attempts:
                    self._logger.warn(
                        "Maximum workflow attempts exceeded",
                        {**context, "total_at_bats": progress.total_at_bats, "max_attempts": max_attempts},
                    )
                    return await self._abort_workflow(
                        command,
                        started,
                        game_start_result,
                        progress,
                        f"Maximum workflow attempts exceeded ({max_attempts})",
                    )
                if command.operation_delay_ms > 0:
                    await self._sleep(command.operation_delay_ms / 1000)

                progress.total_at_bats += 1
                abort_reason = await self._run_workflow_at_bat(at_bat, progress, context)
                if abort_reason is not None and not command.continue_on_failure:
                    return await self._abort_workflow(command, started, game_start_result, progress, abort_reason)
                if abort_reason is None and command.end_game_naturally and progress.last_at_bat_ended_game:
                    progress.game_completed = True
                    self._logger.info(
                        "Game ended naturally during workflow",
                        {**context, "total_at_bats": progress.total_at_bats, "total_runs": progress.total_runs},
                    )
                    break

            # Phase 3: substitutions
            for substitution in command.substitutions:
                try:
                    sub_result = await self._substitute_player.execute(substitution)
                except Exception as exc:
                    self._logger.warn(
                        "Substitution raised during game workflow",
                        {**context, "batting_slot": substitution.batting_slot, "error": str(exc)},
                    )
                    continue
                if sub_result.success:
                    progress.successful_substitutions += 1
                else:
                    self._logger.warn(
                        "Substitution failed during game workflow",
                        {**context, "batting_slot": substitution.batting_slot, "errors": list(sub_result.errors)},
                    )

            # Phase 4: game end notification
            if progress.game_completed and command.enable_notifications:
                await self._send_game_ended(game_id, progress.final_score)

            # Phase 5: result
            duration = _elapsed_ms(started)
            self._logger.info(
                "Game workflow completed successfully",
                {
                    **context,
                    "total_at_bats": progress.total_at_bats,
                    "successful_at_bats": progress.successful_at_bats,
                    "total_runs": progress.total_runs,
                    "total_substitutions": len(command.substitutions),
                    "successful_substitutions": progress.successful_substitutions,
                    "game_completed": progress.game_completed,
                    "duration_ms": duration,
                },
            )
            return CompleteGameWorkflowResult(
                success=True,
                game_id=game_id,
                game_start_result=game_start_result,
                total_at_bats=progress.total_at_bats,
                successful_at_bats=progress.successful_at_bats,
                total_runs=progress.total_runs,
                total_substitutions=len(command.substitutions),
                successful_substitutions=progress.successful_substitutions,
                completed_innings=progress.completed_half_innings // 2,
                game_completed=progress.game_completed,
                final_score=progress.final_score,
                execution_time_ms=duration,
            )
        except InconsistentStateError:
            raise
        except Exception as exc:
            self._logger.error(
                "Complete game workflow failed",
                {**context, "duration_ms": _elapsed_ms(started)},
                exc,
            )
            return self._failed_workflow(
                command,
                started,
                game_start_result,
                progress,
                [f"Complete workflow failed: {exc}"],
            )

    async def undo_last_game_action(self, command: UndoCommand) -> UndoResult:
        started = time.monotonic()
        context = {
            "game_id": command.game_id.value,
            "action_limit": command.action_limit,
            "operation": "undo_last_game_action",
        }
        self._logger.debug(
            "Starting undo last action operation",
            {**context, "notes": command.notes or "No notes provided", "confirm_dangerous": command.confirm_dangerous},
        )
        try:
            result = await self._undo_last_action.execute(command)
        except Exception as exc:
            self._logger.error(
                "Undo operation failed with exception",
                {**context, "notes": command.notes, "duration_ms": _elapsed_ms(started)},
                exc,
            )
            return UndoResult(success=False, game_id=command.game_id, errors=(f"Undo operation failed: {exc}",))

        duration = _elapsed_ms(started)
        if result.success:
            self._logger.info(
                "Undo operation completed successfully",
                {
                    **context,
                    "actions_undone": result.actions_undone,
                    "undone_action_types": list(result.undone_action_types),
                    "total_events_generated": result.total_events_generated,
                    "can_undo": result.can_undo,
                    "can_redo": result.can_redo,
                    "duration_ms": duration,
                },
            )
            await self.log_operation_audit("UNDO_LAST_ACTION", _history_audit_context(command), result)
        else:
            self._logger.warn(
                "Undo operation failed",
                {**context, "errors": list(result.errors), "duration_ms": duration},
            )
        return result

    async def redo_last_game_action(self, command: RedoCommand) -> RedoResult:
        started = time.monotonic()
        context = {
            "game_id": command.game_id.value,
            "action_limit": command.action_limit,
            "operation": "redo_last_game_action",
        }
        self._logger.debug(
            "Starting redo last action operation",
            {**context, "notes": command.notes or "No notes provided", "confirm_dangerous": command.confirm_dangerous},
        )
        try:
            result = await self._redo_last_action.execute(command)
        except Exception as exc:
            self._logger.error(
                "Redo operation failed with exception",
                {**context, "notes": command.notes, "duration_ms": _elapsed_ms(started)},
                exc,
            )
            return RedoResult(success=False, game_id=command.game_id, errors=(f"Redo operation failed: {exc}",))

        duration = _elapsed_ms(started)
        if result.success:
            self._logger.info(
                "Redo operation completed successfully",
                {
                    **context,
                    "actions_redone": result.actions_redone,
                    "redone_action_types": list(result.redone_action_types),
                    "total_events_generated": result.total_events_generated,
                    "can_undo": result.can_undo,
                    "can_redo": result.can_redo,
                    "duration_ms": duration,
                },
            )
            await self.log_operation_audit("REDO_LAST_ACTION", _history_audit_context(command), result)
        else:
            self._logger.warn(
                "Redo operation failed",
                {**context, "errors": list(result.errors), "duration_ms": duration},
            )
        return result

    # ------------------------------------------------------------------
    # Generic workflow primitives
    # ------------------------------------------------------------------

    async def execute_with_compensation(
        self,
        operation_name: str,
        operation: Callable[[], Awaitable[T]],
        compensation: Callable[[], Awaitable[None]],
        context: Mapping[str, Any] | None = None,
    ) -> CompensatedResult[T]:
        """Run *operation*, compensating if it fails.

        A logical failure returns the result with ``compensation_applied``
        set. An exception is re-raised once compensation has run; when the
        compensation itself fails a note is added to that exception.
        """
        ctx = {"operation": operation_name, **(context or {})}
        try:
            result = await operation()
        except Exception as exc:
            if not await self._compensate(compensation, {**ctx, "error": str(exc)}):
                exc.add_note(f"Compensation for {operation_name} failed; requires manual intervention")
            raise

        if not _is_failure(result):
            return CompensatedResult(result=result, compensation_applied=False)
        applied = await self._compensate(compensation, ctx)
        return CompensatedResult(
            result=result,
            compensation_applied=applied,
            requires_manual_intervention=not applied,
        )

    async def execute_in_transaction(
        self,
        transaction_name: str,
        operations: Sequence[Callable[[], Awaitable[T]]],
        context: Mapping[str, Any] | None = None,
        rollback: Callable[[Sequence[T]], Awaitable[None]] | None = None,
    ) -> TransactionResult[T]:
        """Run *operations* in order, stopping at the first failure.

        On failure *rollback* receives the results of the operations that had
        already succeeded. Without one the rollback is only logged.
        """
        ctx = {"operation": transaction_name, **(context or {})}
        results: list[T] = []
        self._logger.debug("Starting transaction", {**ctx, "operation_count": len(operations)})

        for index, operation in enumerate(operations):
            try:
                result = await operation()
            except Exception as exc:
                self._logger.error("Transaction failed with exception", {**ctx, "failed_at": index}, exc)
                error = f"Transaction exception at operation {index}: {exc}"
                return await self._rolled_back(transaction_name, results, ctx, rollback, error)
            if _is_failure(result):
                failure_errors = list(result.errors) or ["Operation failed"]
                error = f"Transaction failed at operation {index}: {', '.join(failure_errors)}"
                return await self._rolled_back(transaction_name, results, ctx, rollback, error)
            results.append(result)

        self._logger.debug("Transaction completed successfully", {**ctx, "operation_count": len(operations)})
        return TransactionResult(success=True, results=tuple(results), rollback_applied=False)

    async def attempt_operation_with_retry(
        self,
        operation_name: str,
        operation: Callable[[], Awaitable[T]],
        max_attempts: int,
        context: Mapping[str, Any] | None = None,
    ) -> RetryResult[T]:
        """Call *operation* up to *max_attempts* times with exponential backoff.

        Both exceptions and results with ``success=False`` are retried. After
        the last attempt a logical failure is returned with an extra error
        message and an exception is re-raised.
        """
        ctx = {"operation": operation_name, **(context or {})}
        attempts = max(max_attempts, 1)
        calls = 0

        async def _attempt() -> T:
            nonlocal calls
            calls += 1
            return await operation()

        def _log_retry(retry_state: RetryCallState) -> None:
            detail: dict[str, Any] = {**ctx, "attempt": retry_state.attempt_number, "max_attempts": attempts}
            outcome = retry_state.outcome
            if outcome is not None and outcome.failed:
                detail["error"] = str(outcome.exception())
            self._logger.warn("Operation attempt failed, retrying", detail)

        def _give_up(retry_state: RetryCallState) -> T:
            outcome = retry_state.outcome
            assert outcome is not None
            if outcome.failed:
                exc = outcome.exception()
                self._logger.error(
                    "Operation failed after all retry attempts",
                    {**ctx, "attempts": retry_state.attempt_number, "max_attempts": attempts},
                    exc,
                )
                raise exc  # type: ignore[misc]
            return _with_extra_error(outcome.result(), f"Operation failed after {attempts} attempts")

        retrying = AsyncRetrying(
            stop=stop_after_attempt(attempts),
            wait=wait_exponential(
                multiplier=self._settings.backoff_initial_seconds,
                max=self._settings.backoff_max_seconds,
            ),
            retry=retry_if_exception_type(Exception) | retry_if_result(_is_failure),
            before_sleep=_log_retry,
            retry_error_callback=_give_up,
            sleep=self._sleep,
        )
        result = await retrying(_attempt)
        return RetryResult(result=result, attempts=calls, errors=tuple(result.errors))

    # ------------------------------------------------------------------
    # Permissions and audit
    # ------------------------------------------------------------------

    async def validate_game_operation_permissions(self, game_id: GameId, operation: str) -> PermissionCheck:
        try:
            user_id = _user_id(await self._auth.get_current_user())
            if user_id is None:
                return PermissionCheck(valid=False, errors=("No authenticated user found",))
            if not await self._auth.has_permission(user_id, operation):
                self._logger.warn(
                    "User lacks permission for game operation",
                    {"user_id": user_id, "game_id": game_id.value, "operation": operation},
                )
                return PermissionCheck(
                    valid=False,
                    user_id=user_id,
                    errors=(f"User does not have permission for {operation}",),
                )
            return PermissionCheck(valid=True, user_id=user_id)
        except Exception as exc:
            self._logger.error(
                "Permission validation failed",
                {"game_id": game_id.value, "operation": operation},
                exc,
            )
            return PermissionCheck(valid=False, errors=(f"Authentication failed: {exc}",))

    async def log_operation_audit(self, operation: str, context: Mapping[str, Any], result: OperationResult) -> None:
        try:
            user_id = _user_id(await self._auth.get_current_user())
            success = result.success
            audit = {
                "operation": operation,
                "success": success,
                "context": dict(context),
                "errors": list(result.errors),
                "user_id": user_id,
                "timestamp": datetime.now(UTC).isoformat(),
            }
            if success:
                self._logger.info("Operation audit log", audit)
            else:
                self._logger.warn("Operation audit log - FAILED", audit)
        except Exception as exc:
            self._logger.error("Failed to log operation audit", {"operation": operation, "context": dict(context)}, exc)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _compensate(self, compensation: Callable[[], Awaitable[None]], context: Mapping[str, Any]) -> bool:
        try:
            await compensation()
        except Exception as exc:
            self._logger.error(
                "Compensation failed for operation, requires manual intervention",
                {**context, "requires_manual_intervention": True},
                exc,
            )
            return False
        self._logger.warn("Applied compensation for failed operation", context)
        return True

    async def _rolled_back(
        self,
        transaction_name: str,
        results: list[T],
        context: Mapping[str, Any],
        rollback: Callable[[Sequence[T]], Awaitable[None]] | None,
        error: str,
    ) -> TransactionResult[T]:
        self._logger.warn(
            "Performing transaction rollback",
            {**context, "transaction": transaction_name, "operations_to_rollback": len(results)},
        )
        manual = False
        try:
            if rollback is not None:
                await rollback(tuple(results))
            self._logger.debug("Transaction rollback completed", {**context, "transaction": transaction_name})
        except Exception as exc:
            manual = True
            self._logger.error(
                "Transaction rollback failed, requires manual intervention",
                {**context, "transaction": transaction_name, "requires_manual_intervention": True},
                exc,
            )
        return TransactionResult(
            success=False,
            results=tuple(results),
            rollback_applied=True,
            errors=(error,),
            requires_manual_intervention=manual,
        )

    async def _end_inning_after_at_bat(self, game_id: GameId, at_bat_result: AtBatResult) -> InningEndResult | None:
        state = at_bat_result.game_state
        try:
            result = await self._end_inning.execute(
                EndInningCommand(
                    game_id=game_id,
                    inning=state.current_inning if state else 1,
                    is_top_half=state.is_top_half if state else False,
                )
            )
        except Exception as exc:
            self._logger.warn(
                "Failed to process inning end during at-bat sequence",
                {"game_id": game_id.value, "error": str(exc), "operation": "complete_at_bat_sequence"},
            )
            return None
        if result.success:
            self._logger.debug(
                "Inning ended successfully during at-bat sequence",
                {"game_id": game_id.value, "new_half": result.new_half, "operation": "complete_at_bat_sequence"},
            )
        else:
            self._logger.warn(
                "Inning end failed during at-bat sequence",
                {"game_id": game_id.value, "errors": list(result.errors), "operation": "complete_at_bat_sequence"},
            )
        return result

    async def _send_score_update(self, game_id: GameId, at_bat_result: AtBatResult) -> bool:
        state = at_bat_result.game_state
        runs = at_bat_result.runs_scored
        try:
            await self._notifications.notify_score_update(
                game_id.value,
                ScoreUpdate(
                    home_score=state.home_score if state else 0,
                    away_score=state.away_score if state else 0,
                    inning=state.current_inning if state else 1,
                    scoring_play=f"{runs} {'run' if runs == 1 else 'runs'} scored",
                ),
            )
        except Exception as exc:
            self._logger.warn(
                "Failed to send score update notification",
                {"game_id": game_id.value, "error": str(exc), "operation": "complete_at_bat_sequence"},
            )
            return False
        self._logger.debug(
            "Score update notification sent successfully",
            {"game_id": game_id.value, "runs_scored": runs, "operation": "complete_at_bat_sequence"},
        )
        return True

    async def _send_game_started(self, command: StartNewGameCommand) -> None:
        try:
            await self._notifications.notify_game_started(
                GameStartedNotice(
                    game_id=command.game_id,
                    home_team=command.home_team_name,
                    away_team=command.away_team_name,
                    start_time=datetime.now(UTC),
                )
            )
        except Exception as exc:
            self._logger.warn(
                "Failed to send game start notification",
                {"game_id": command.game_id.value, "error": str(exc)},
            )

    async def _send_game_ended(self, game_id: GameId, final_score: tuple[int, int] | None) -> None:
        home, away = final_score or (0, 0)
        winner = "home" if home > away else "away" if away > home else None
        try:
            await self._notifications.notify_game_ended(
                game_id.value,
                GameEndedNotice(home_score=home, away_score=away, winner=winner),
            )
        except Exception as exc:
            self._logger.warn("Failed to send game end notification", {"game_id": game_id.value, "error": str(exc)})

    async def _run_workflow_at_bat(
        self,
        at_bat: RecordAtBatCommand,
        progress: _WorkflowProgress,
        context: Mapping[str, Any],
    ) -> str | None:
        """Record one workflow at-bat; return an abort reason on failure."""
        try:
            result = await self._record_at_bat.execute(at_bat)
        except Exception as exc:
            self._logger.error("Game workflow at-bat raised", {**context, "batter_id": at_bat.batter_id.value}, exc)
            return f"Workflow exception: {exc}"
        if not result.success:
            self._logger.error(
                "Game workflow at-bat failed",
                {**context, "batter_id": at_bat.batter_id.value, "errors": list(result.errors)},
            )
            return f"Workflow failed during at-bat sequence: {', '.join(result.errors)}"
        progress.record(result)
        return None

    async def _abort_workflow(
        self,
        command: CompleteGameWorkflowCommand,
        started: float,
        game_start_result: GameStartResult,
        progress: _WorkflowProgress,
        reason: str,
    ) -> CompleteGameWorkflowResult:
        compensated = False
        if command.compensate_on_failure and progress.successful_at_bats > 0:
            await self._undo_workflow_at_bats(command.start_game_command.game_id, progress.successful_at_bats)
            compensated = True
        return self._failed_workflow(command, started, game_start_result, progress, [reason], compensated)

    async def _undo_workflow_at_bats(self, game_id: GameId, count: int) -> None:
        undo = UndoCommand(
            game_id=game_id,
            action_limit=count,
            notes="Compensating aborted game workflow",
            confirm_dangerous=True,
        )
        try:
            result = await self._undo_last_action.execute(undo)
        except Exception as exc:
            self._logger.error(
                "Game workflow compensation raised, requires manual intervention",
                {"game_id": game_id.value, "actions_to_undo": count},
                exc,
            )
            raise InconsistentStateError("complete_game_workflow", str(exc)) from exc
        if not result.success:
            reason = ", ".join(result.errors) or "undo failed"
            self._logger.error(
                "Game workflow compensation failed, requires manual intervention",
                {"game_id": game_id.value, "actions_to_undo": count, "errors": list(result.errors)},
            )
            raise InconsistentStateError("complete_game_workflow", reason)
        self._logger.warn(
            "Applied compensation for aborted game workflow",
            {"game_id": game_id.value, "actions_undone": result.actions_undone},
        )

    def _failed_workflow(
        self,
        command: CompleteGameWorkflowCommand,
        started: float,
        game_start_result: GameStartResult | None,
        progress: _WorkflowProgress,
        errors: list[str],
        compensation_applied: bool = False,
    ) -> CompleteGameWorkflowResult:
        game_id = command.start_game_command.game_id
        return CompleteGameWorkflowResult(
            success=False,
            game_id=game_id,
            game_start_result=game_start_result
            or GameStartResult(success=False, game_id=game_id, errors=("Game start failed",)),
            total_at_bats=progress.total_at_bats,
            successful_at_bats=progress.successful_at_bats,
            total_runs=progress.total_runs,
            completed_innings=progress.completed_half_innings // 2,
            final_score=progress.final_score,
            execution_time_ms=_elapsed_ms(started),
            compensation_applied=compensation_applied,
            errors=tuple(errors),
        )


def _history_audit_context(command: UndoCommand | RedoCommand) -> dict[str, Any]:
    return {
        "game_id": command.game_id.value,
        "action_limit": command.action_limit,
        "notes": command.notes,
        "confirm_dangerous": command.confirm_dangerous,
    }


@dataclasses.dataclass
class _WorkflowProgress:
    total_at_bats: int = 0
    successful_at_bats: int = 0
    total_runs: int = 0
    successful_substitutions: int = 0
    completed_half_innings: int = 0
    game_completed: bool = False
    last_at_bat_ended_game: bool = False
    final_score: tuple[int, int] | None = None

    def record(self, result: AtBatResult) -> None:
        self.successful_at_bats += 1
        self.total_runs += result.runs_scored
        self.last_at_bat_ended_game = result.game_ended
        if result.inning_ended:
            self.completed_half_innings += 1
        if result.game_state is not None:
            self.final_score = (result.game_state.home_score, result.game_state.away_score)
