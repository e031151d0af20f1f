from __future__ import annotations

from dataclasses import dataclass, field
from unittest.mock import AsyncMock

import pytest

from softball_tracker.application.commands import (
    CompleteAtBatSequenceCommand,
    CompleteGameWorkflowCommand,
    EndInningCommand,
    RecordAtBatCommand,
    RedoCommand,
    StartNewGameCommand,
    SubstitutePlayerCommand,
    UndoCommand,
)
from softball_tracker.application.orchestrator import GameWorkflowOrchestrator
from softball_tracker.application.ports import AuthenticatedUser, GameEndedNotice, ScoreUpdate
from softball_tracker.application.results import (
    AtBatResult,
    GameStartResult,
    GameStateSnapshot,
    InningEndResult,
    PermissionCheck,
    RedoResult,
    SubstitutionResult,
    UndoResult,
)
from softball_tracker.config import WorkflowSettings
from softball_tracker.domain.contracts import AtBatResultType
from softball_tracker.domain.field_position import FieldPosition
from softball_tracker.exceptions import InconsistentStateError
from tests.fakes.ports import (
    FakeAuthService,
    FakeEndInning,
    FakeNotificationService,
    FakeRecordAtBat,
    FakeRedoLastAction,
    FakeStartNewGame,
    FakeSubstitutePlayer,
    FakeUndoLastAction,
    RecordingLogger,
)
from tests.helpers import GAME_ID, LINEUP_ID, jersey, player

OK_AT_BAT = AtBatResult(success=True)
START_GAME = StartNewGameCommand(GAME_ID, "Eagles", "Hawks")


@dataclass
class Harness:
    start_new_game: FakeStartNewGame = field(
        default_factory=lambda: FakeStartNewGame(default=GameStartResult(success=True, game_id=GAME_ID))
    )
    record_at_bat: FakeRecordAtBat = field(default_factory=lambda: FakeRecordAtBat(default=OK_AT_BAT))
    substitute_player: FakeSubstitutePlayer = field(
        default_factory=lambda: FakeSubstitutePlayer(default=SubstitutionResult(success=True))
    )
    end_inning: FakeEndInning = field(
        default_factory=lambda: FakeEndInning(default=InningEndResult(success=True, new_half="BOTTOM"))
    )
    undo: FakeUndoLastAction = field(
        default_factory=lambda: FakeUndoLastAction(default=UndoResult(success=True, game_id=GAME_ID, actions_undone=1))
    )
    redo: FakeRedoLastAction = field(
        default_factory=lambda: FakeRedoLastAction(default=RedoResult(success=True, game_id=GAME_ID, actions_redone=1))
    )
    logger: RecordingLogger = field(default_factory=RecordingLogger)
    notifications: FakeNotificationService = field(default_factory=FakeNotificationService)
    auth: FakeAuthService = field(default_factory=FakeAuthService)
    settings: WorkflowSettings = field(default_factory=WorkflowSettings)
    sleep: AsyncMock = field(default_factory=AsyncMock)

    def orchestrator(self) -> GameWorkflowOrchestrator:
        return GameWorkflowOrchestrator(
            self.start_new_game,
            self.record_at_bat,
            self.substitute_player,
            self.end_inning,
            self.undo,
            self.redo,
            self.logger,
            self.notifications,
            self.auth,
            settings=self.settings,
            sleep=self.sleep,
        )

    def sleeps(self) -> list[float]:
        return [c.args[0] for c in self.sleep.await_args_list]


@pytest.fixture
def harness() -> Harness:
    return Harness()


def _at_bat(n: int = 1) -> RecordAtBatCommand:
    return RecordAtBatCommand(GAME_ID, player(n), AtBatResultType.SINGLE)


def _substitution(slot: int) -> SubstitutePlayerCommand:
    return SubstitutePlayerCommand(
        game_id=GAME_ID,
        team_lineup_id=LINEUP_ID,
        batting_slot=slot,
        outgoing_player_id=player(slot),
        incoming_player_id=player(20 + slot),
        incoming_player_name=f"Sub {slot}",
        incoming_jersey_number=jersey(20 + slot),
        new_field_position=FieldPosition.PITCHER,
        inning=3,
    )


def _state(home: int = 0, away: int = 0, inning: int = 1, *, top: bool = True) -> GameStateSnapshot:
    return GameStateSnapshot(GAME_ID, current_inning=inning, is_top_half=top, home_score=home, away_score=away)


class TestStartNewGameWithNotifications:
    async def test_success_notifies_and_audits(self, harness: Harness) -> None:
        result = await harness.orchestrator().start_new_game_with_notifications(START_GAME)

        assert result.success
        [notice] = harness.notifications.started
        assert (notice.game_id, notice.home_team, notice.away_team) == (GAME_ID, "Eagles", "Hawks")
        assert "Game started successfully with notifications" in harness.logger.messages("info")
        audit = next(e for e in harness.logger.entries if e.message == "Operation audit log")
        assert audit.context["operation"] == "START_GAME_WITH_NOTIFICATIONS"
        assert audit.context["user_id"] == "scorer-1"

    async def test_failed_start_skips_notification(self, harness: Harness) -> None:
        harness.start_new_game = FakeStartNewGame(
            GameStartResult(success=False, game_id=GAME_ID, errors=("Game already exists",))
        )
        result = await harness.orchestrator().start_new_game_with_notifications(START_GAME)

        assert not result.success
        assert harness.notifications.started == []
        assert "Game creation failed, skipping notifications" in harness.logger.messages("warn")

    async def test_exception_becomes_failure(self, harness: Harness) -> None:
        harness.start_new_game = FakeStartNewGame(RuntimeError("store offline"))
        result = await harness.orchestrator().start_new_game_with_notifications(START_GAME)

        assert not result.success
        assert result.game_id == GAME_ID
        assert result.errors == ("store offline",)
        [entry] = [e for e in harness.logger.entries if e.level == "error"]
        assert isinstance(entry.error, RuntimeError)

    async def test_notification_failure_does_not_fail_start(self, harness: Harness) -> None:
        harness.notifications = FakeNotificationService(fail=True)
        result = await harness.orchestrator().start_new_game_with_notifications(START_GAME)

        assert result.success
        assert "Failed to send game start notification" in harness.logger.messages("warn")


class TestCompleteAtBatSequence:
    async def test_scoring_at_bat_sends_score_update(self, harness: Harness) -> None:
        harness.record_at_bat = FakeRecordAtBat(
            AtBatResult(success=True, game_state=_state(home=2, away=1, inning=3), runs_scored=2)
        )
        command = CompleteAtBatSequenceCommand(GAME_ID, _at_bat(), notify_score_changes=True)
        result = await harness.orchestrator().complete_at_bat_sequence(command)

        assert result.success
        assert result.score_update_sent
        assert harness.notifications.score_updates == [("game-1", ScoreUpdate(2, 1, 3, "2 runs scored"))]
        assert result.retry_attempts_used == 0

    async def test_single_run_wording(self, harness: Harness) -> None:
        harness.record_at_bat = FakeRecordAtBat(AtBatResult(success=True, game_state=_state(away=1), runs_scored=1))
        command = CompleteAtBatSequenceCommand(GAME_ID, _at_bat(), notify_score_changes=True)
        await harness.orchestrator().complete_at_bat_sequence(command)

        assert harness.notifications.score_updates[0][1].scoring_play == "1 run scored"

    async def test_no_runs_no_score_update(self, harness: Harness) -> None:
        command = CompleteAtBatSequenceCommand(GAME_ID, _at_bat(), notify_score_changes=True)
        result = await harness.orchestrator().complete_at_bat_sequence(command)

        assert result.success
        assert not result.score_update_sent
        assert harness.notifications.score_updates == []

    async def test_failed_notification_reports_not_sent(self, harness: Harness) -> None:
        harness.notifications = FakeNotificationService(fail=True)
        harness.record_at_bat = FakeRecordAtBat(AtBatResult(success=True, game_state=_state(home=1), runs_scored=1))
        command = CompleteAtBatSequenceCommand(GAME_ID, _at_bat(), notify_score_changes=True)
        result = await harness.orchestrator().complete_at_bat_sequence(command)

        assert result.success
        assert not result.score_update_sent

    async def test_inning_end_processed(self, harness: Harness) -> None:
        harness.record_at_bat = FakeRecordAtBat(
            AtBatResult(success=True, game_state=_state(inning=4, top=True), inning_ended=True)
        )
        command = CompleteAtBatSequenceCommand(GAME_ID, _at_bat(), check_inning_end=True)
        result = await harness.orchestrator().complete_at_bat_sequence(command)

        assert result.success
        assert harness.end_inning.calls == [EndInningCommand(GAME_ID, 4, True)]
        assert result.inning_end_result is not None
        assert result.inning_end_result.new_half == "BOTTOM"

    async def test_inning_end_skipped_without_flag(self, harness: Harness) -> None:
        harness.record_at_bat = FakeRecordAtBat(AtBatResult(success=True, inning_ended=True))
        command = CompleteAtBatSequenceCommand(GAME_ID, _at_bat())
        result = await harness.orchestrator().complete_at_bat_sequence(command)

        assert harness.end_inning.calls == []
        assert result.inning_end_result is None

    async def test_inning_end_exception_does_not_fail_sequence(self, harness: Harness) -> None:
        harness.record_at_bat = FakeRecordAtBat(AtBatResult(success=True, inning_ended=True))
        harness.end_inning = FakeEndInning(RuntimeError("inning store down"))
        command = CompleteAtBatSequenceCommand(GAME_ID, _at_bat(), check_inning_end=True)
        result = await harness.orchestrator().complete_at_bat_sequence(command)

        assert result.success
        assert result.inning_end_result is None
        assert "Failed to process inning end during at-bat sequence" in harness.logger.messages("warn")

    async def test_inning_end_logical_failure_does_not_fail_sequence(self, harness: Harness) -> None:
        harness.record_at_bat = FakeRecordAtBat(
            AtBatResult(success=True, game_state=_state(inning=5, top=False), inning_ended=True)
        )
        harness.end_inning = FakeEndInning(InningEndResult(success=False, errors=("Inning already closed",)))
        command = CompleteAtBatSequenceCommand(GAME_ID, _at_bat(), check_inning_end=True)
        result = await harness.orchestrator().complete_at_bat_sequence(command)

        assert result.success
        assert harness.end_inning.calls == [EndInningCommand(GAME_ID, 5, False)]
        assert result.inning_end_result is not None
        assert result.inning_end_result.success is False
        [warning] = [e for e in harness.logger.entries if e.message == "Inning end failed during at-bat sequence"]
        assert warning.level == "warn"
        assert warning.context["errors"] == ["Inning already closed"]

    async def test_queued_substitutions_run_in_order(self, harness: Harness) -> None:
        harness.substitute_player = FakeSubstitutePlayer(
            SubstitutionResult(success=True, batting_slot=2),
            RuntimeError("bench empty"),
        )
        command = CompleteAtBatSequenceCommand(
            GAME_ID,
            _at_bat(),
            handle_substitutions=True,
            queued_substitutions=(_substitution(2), _substitution(5)),
        )
        result = await harness.orchestrator().complete_at_bat_sequence(command)

        assert result.success
        assert [c.batting_slot for c in harness.substitute_player.calls] == [2, 5]
        first, second = result.substitution_results
        assert first.success
        assert not second.success
        assert second.errors == ("bench empty",)

    async def test_substitutions_ignored_without_flag(self, harness: Harness) -> None:
        command = CompleteAtBatSequenceCommand(GAME_ID, _at_bat(), queued_substitutions=(_substitution(2),))
        result = await harness.orchestrator().complete_at_bat_sequence(command)

        assert harness.substitute_player.calls == []
        assert result.substitution_results == ()

    async def test_failed_at_bat_fails_sequence(self, harness: Harness) -> None:
        harness.record_at_bat = FakeRecordAtBat(
            AtBatResult(success=False, inning_ended=True, errors=("Batter out of order",))
        )
        command = CompleteAtBatSequenceCommand(
            GAME_ID,
            _at_bat(),
            check_inning_end=True,
            handle_substitutions=True,
            queued_substitutions=(_substitution(2),),
        )
        result = await harness.orchestrator().complete_at_bat_sequence(command)

        assert not result.success
        assert result.errors == ("At-bat failed: Batter out of order",)
        assert harness.end_inning.calls == []
        assert harness.substitute_player.calls == []

    async def test_exception_becomes_failure(self, harness: Harness) -> None:
        harness.record_at_bat = FakeRecordAtBat(RuntimeError("db down"))
        result = await harness.orchestrator().complete_at_bat_sequence(
            CompleteAtBatSequenceCommand(GAME_ID, _at_bat())
        )

        assert not result.success
        assert result.errors == ("Sequence failed with exception: db down",)
        assert result.at_bat_result.errors == ("db down",)

    async def test_retries_until_success(self, harness: Harness) -> None:
        harness.record_at_bat = FakeRecordAtBat(ConnectionError("flaky"), OK_AT_BAT)
        command = CompleteAtBatSequenceCommand(GAME_ID, _at_bat(), max_retry_attempts=3)
        result = await harness.orchestrator().complete_at_bat_sequence(command)

        assert result.success
        assert result.retry_attempts_used == 1
        assert len(harness.record_at_bat.calls) == 2
        assert harness.sleeps() == [1.0]

    async def test_retries_exhausted_on_logical_failure(self, harness: Harness) -> None:
        failure = AtBatResult(success=False, errors=("nope",))
        harness.record_at_bat = FakeRecordAtBat(failure, failure, failure)
        command = CompleteAtBatSequenceCommand(GAME_ID, _at_bat(), max_retry_attempts=3)
        result = await harness.orchestrator().complete_at_bat_sequence(command)

        assert not result.success
        assert result.retry_attempts_used == 2
        assert result.errors == ("At-bat failed: nope, Operation failed after 3 attempts",)
        assert harness.sleeps() == [1.0, 2.0]

    async def test_retries_exhausted_on_exception_reports_attempts(self, harness: Harness) -> None:
        harness.record_at_bat = FakeRecordAtBat(
            ConnectionError("down"), ConnectionError("down"), ConnectionError("down")
        )
        command = CompleteAtBatSequenceCommand(GAME_ID, _at_bat(), max_retry_attempts=3)
        result = await harness.orchestrator().complete_at_bat_sequence(command)

        assert not result.success
        assert result.retry_attempts_used == 2
        assert len(harness.record_at_bat.calls) == 3
        assert result.errors == ("Sequence failed with exception: down",)
        [failure] = [e for e in harness.logger.entries if e.message == "At-bat sequence failed with exception"]
        assert failure.context["attempts"] == 3


class TestCompleteGameWorkflow:
    async def test_game_ends_naturally(self, harness: Harness) -> None:
        harness.record_at_bat = FakeRecordAtBat(
            AtBatResult(success=True, game_state=_state(home=1), runs_scored=1, inning_ended=True),
            AtBatResult(success=True, game_state=_state(home=1, top=False), inning_ended=True),
            AtBatResult(success=True, game_state=_state(home=3, away=2, inning=2), runs_scored=2, game_ended=True),
        )
        command = CompleteGameWorkflowCommand(START_GAME, at_bat_sequences=tuple(_at_bat(n) for n in range(1, 5)))
        result = await harness.orchestrator().complete_game_workflow(command)

        assert result.success
        assert result.game_completed
        assert (result.total_at_bats, result.successful_at_bats, result.total_runs) == (3, 3, 3)
        assert result.completed_innings == 1
        assert result.final_score == (3, 2)
        assert len(harness.record_at_bat.calls) == 3
        assert len(harness.notifications.started) == 1
        assert harness.notifications.ended == [("game-1", GameEndedNotice(3, 2, "home"))]

    async def test_metadata_carried_in_workflow_logs(self, harness: Harness) -> None:
        command = CompleteGameWorkflowCommand(
            START_GAME, at_bat_sequences=(_at_bat(1),), metadata={"league": "rec", "field": "north"}
        )
        result = await harness.orchestrator().complete_game_workflow(command)

        assert result.success
        workflow_logs = [e for e in harness.logger.entries if e.context.get("operation") == "complete_game_workflow"]
        assert [e.message for e in workflow_logs][0] == "Starting complete game workflow"
        assert all(e.context["metadata"] == {"league": "rec", "field": "north"} for e in workflow_logs)

    async def test_game_end_ignored_when_not_ending_naturally(self, harness: Harness) -> None:
        harness.record_at_bat = FakeRecordAtBat(AtBatResult(success=True, game_ended=True), default=OK_AT_BAT)
        command = CompleteGameWorkflowCommand(
            START_GAME,
            at_bat_sequences=(_at_bat(1), _at_bat(2)),
            end_game_naturally=False,
        )
        result = await harness.orchestrator().complete_game_workflow(command)

        assert result.success
        assert not result.game_completed
        assert result.total_at_bats == 2
        assert harness.notifications.ended == []

    async def test_start_failure(self, harness: Harness) -> None:
        harness.start_new_game = FakeStartNewGame(
            GameStartResult(success=False, game_id=GAME_ID, errors=("duplicate game",))
        )
        command = CompleteGameWorkflowCommand(START_GAME, at_bat_sequences=(_at_bat(),))
        result = await harness.orchestrator().complete_game_workflow(command)

        assert not result.success
        assert result.errors == ("Game initialization failed: duplicate game",)
        assert harness.record_at_bat.calls == []
        assert harness.notifications.started == []

    async def test_start_exception(self, harness: Harness) -> None:
        harness.start_new_game = FakeStartNewGame(RuntimeError("offline"))
        result = await harness.orchestrator().complete_game_workflow(CompleteGameWorkflowCommand(START_GAME))

        assert not result.success
        assert result.errors == ("Complete workflow failed: offline",)
        assert not result.game_start_result.success

    async def test_max_attempts_exceeded(self, harness: Harness) -> None:
        command = CompleteGameWorkflowCommand(
            START_GAME,
            at_bat_sequences=(_at_bat(1), _at_bat(2), _at_bat(3)),
            max_attempts=2,
        )
        result = await harness.orchestrator().complete_game_workflow(command)

        assert not result.success
        assert result.errors == ("Maximum workflow attempts exceeded (2)",)
        assert result.total_at_bats == 2
        assert len(harness.record_at_bat.calls) == 2

    async def test_max_attempts_equal_to_at_bats_succeeds(self, harness: Harness) -> None:
        command = CompleteGameWorkflowCommand(START_GAME, at_bat_sequences=(_at_bat(1), _at_bat(2)), max_attempts=2)
        result = await harness.orchestrator().complete_game_workflow(command)

        assert result.success
        assert result.total_at_bats == 2

    async def test_max_attempts_falls_back_to_settings(self, harness: Harness) -> None:
        harness.settings = WorkflowSettings(max_game_attempts=1)
        command = CompleteGameWorkflowCommand(START_GAME, at_bat_sequences=(_at_bat(1), _at_bat(2)))
        result = await harness.orchestrator().complete_game_workflow(command)

        assert not result.success
        assert result.errors == ("Maximum workflow attempts exceeded (1)",)

    async def test_failed_at_bat_aborts(self, harness: Harness) -> None:
        harness.record_at_bat = FakeRecordAtBat(
            AtBatResult(success=True, runs_scored=1),
            AtBatResult(success=False, errors=("bad batter",)),
            default=OK_AT_BAT,
        )
        command = CompleteGameWorkflowCommand(START_GAME, at_bat_sequences=(_at_bat(1), _at_bat(2), _at_bat(3)))
        result = await harness.orchestrator().complete_game_workflow(command)

        assert not result.success
        assert result.errors == ("Workflow failed during at-bat sequence: bad batter",)
        assert (result.total_at_bats, result.successful_at_bats, result.total_runs) == (2, 1, 1)
        assert len(harness.record_at_bat.calls) == 2
        assert not result.compensation_applied

    async def test_raising_at_bat_aborts(self, harness: Harness) -> None:
        harness.record_at_bat = FakeRecordAtBat(RuntimeError("kaboom"))
        command = CompleteGameWorkflowCommand(START_GAME, at_bat_sequences=(_at_bat(1), _at_bat(2)))
        result = await harness.orchestrator().complete_game_workflow(command)

        assert not result.success
        assert result.errors == ("Workflow exception: kaboom",)

    async def test_continue_on_failure(self, harness: Harness) -> None:
        harness.record_at_bat = FakeRecordAtBat(
            OK_AT_BAT,
            AtBatResult(success=False, errors=("bad batter",)),
            OK_AT_BAT,
        )
        command = CompleteGameWorkflowCommand(
            START_GAME,
            at_bat_sequences=(_at_bat(1), _at_bat(2), _at_bat(3)),
            continue_on_failure=True,
        )
        result = await harness.orchestrator().complete_game_workflow(command)

        assert result.success
        assert (result.total_at_bats, result.successful_at_bats) == (3, 2)

    async def test_compensation_undoes_recorded_at_bats(self, harness: Harness) -> None:
        harness.record_at_bat = FakeRecordAtBat(
            OK_AT_BAT,
            OK_AT_BAT,
            AtBatResult(success=False, errors=("bad batter",)),
        )
        command = CompleteGameWorkflowCommand(
            START_GAME,
            at_bat_sequences=(_at_bat(1), _at_bat(2), _at_bat(3)),
            compensate_on_failure=True,
        )
        result = await harness.orchestrator().complete_game_workflow(command)

        assert not result.success
        assert result.compensation_applied
        [undo] = harness.undo.calls
        assert undo.action_limit == 2
        assert undo.confirm_dangerous

    async def test_compensation_skipped_when_nothing_recorded(self, harness: Harness) -> None:
        harness.record_at_bat = FakeRecordAtBat(AtBatResult(success=False, errors=("bad batter",)))
        command = CompleteGameWorkflowCommand(START_GAME, at_bat_sequences=(_at_bat(1),), compensate_on_failure=True)
        result = await harness.orchestrator().complete_game_workflow(command)

        assert not result.compensation_applied
        assert harness.undo.calls == []

    async def test_failed_compensation_raises(self, harness: Harness) -> None:
        harness.record_at_bat = FakeRecordAtBat(OK_AT_BAT, AtBatResult(success=False, errors=("bad batter",)))
        harness.undo = FakeUndoLastAction(UndoResult(success=False, game_id=GAME_ID, errors=("history empty",)))
        command = CompleteGameWorkflowCommand(
            START_GAME,
            at_bat_sequences=(_at_bat(1), _at_bat(2)),
            compensate_on_failure=True,
        )
        with pytest.raises(InconsistentStateError, match="history empty") as exc_info:
            await harness.orchestrator().complete_game_workflow(command)

        assert exc_info.value.operation == "complete_game_workflow"

    async def test_raising_compensation_raises(self, harness: Harness) -> None:
        harness.record_at_bat = FakeRecordAtBat(OK_AT_BAT, AtBatResult(success=False, errors=("bad batter",)))
        harness.undo = FakeUndoLastAction(RuntimeError("undo store down"))
        command = CompleteGameWorkflowCommand(
            START_GAME,
            at_bat_sequences=(_at_bat(1), _at_bat(2)),
            compensate_on_failure=True,
        )
        with pytest.raises(InconsistentStateError, match="undo store down"):
            await harness.orchestrator().complete_game_workflow(command)

    async def test_operation_delay(self, harness: Harness) -> None:
        command = CompleteGameWorkflowCommand(
            START_GAME,
            at_bat_sequences=(_at_bat(1), _at_bat(2)),
            operation_delay_ms=250,
        )
        await harness.orchestrator().complete_game_workflow(command)

        assert harness.sleeps() == [0.25, 0.25]

    async def test_substitution_phase(self, harness: Harness) -> None:
        harness.substitute_player = FakeSubstitutePlayer(
            SubstitutionResult(success=True),
            SubstitutionResult(success=False, errors=("not in lineup",)),
            RuntimeError("lineup missing"),
        )
        command = CompleteGameWorkflowCommand(
            START_GAME,
            substitutions=(_substitution(2), _substitution(3), _substitution(4)),
        )
        result = await harness.orchestrator().complete_game_workflow(command)

        assert result.success
        assert result.total_substitutions == 3
        assert result.successful_substitutions == 1

    async def test_notifications_disabled(self, harness: Harness) -> None:
        harness.record_at_bat = FakeRecordAtBat(AtBatResult(success=True, game_ended=True))
        command = CompleteGameWorkflowCommand(
            START_GAME,
            at_bat_sequences=(_at_bat(1),),
            enable_notifications=False,
        )
        result = await harness.orchestrator().complete_game_workflow(command)

        assert result.game_completed
        assert harness.notifications.started == []
        assert harness.notifications.ended == []

    async def test_tied_game_has_no_winner(self, harness: Harness) -> None:
        harness.record_at_bat = FakeRecordAtBat(
            AtBatResult(success=True, game_state=_state(home=4, away=4), game_ended=True)
        )
        command = CompleteGameWorkflowCommand(START_GAME, at_bat_sequences=(_at_bat(1),))
        await harness.orchestrator().complete_game_workflow(command)

        assert harness.notifications.ended == [("game-1", GameEndedNotice(4, 4, None))]


class TestUndoRedo:
    async def test_undo_passes_through_and_audits(self, harness: Harness) -> None:
        command = UndoCommand(GAME_ID, notes="wrong batter")
        result = await harness.orchestrator().undo_last_game_action(command)

        assert result.success
        assert result.actions_undone == 1
        assert harness.undo.calls == [command]
        audit = next(e for e in harness.logger.entries if e.message == "Operation audit log")
        assert audit.context["operation"] == "UNDO_LAST_ACTION"
        assert audit.context["context"]["notes"] == "wrong batter"

    async def test_undo_failure_logged(self, harness: Harness) -> None:
        harness.undo = FakeUndoLastAction(UndoResult(success=False, game_id=GAME_ID, errors=("nothing to undo",)))
        result = await harness.orchestrator().undo_last_game_action(UndoCommand(GAME_ID))

        assert result.errors == ("nothing to undo",)
        assert "Undo operation failed" in harness.logger.messages("warn")
        assert "Operation audit log" not in harness.logger.messages("info")

    async def test_undo_exception(self, harness: Harness) -> None:
        harness.undo = FakeUndoLastAction(RuntimeError("log corrupt"))
        result = await harness.orchestrator().undo_last_game_action(UndoCommand(GAME_ID))

        assert not result.success
        assert result.errors == ("Undo operation failed: log corrupt",)

    async def test_redo_passes_through(self, harness: Harness) -> None:
        result = await harness.orchestrator().redo_last_game_action(RedoCommand(GAME_ID))

        assert result.success
        assert result.actions_redone == 1
        assert "Redo operation completed successfully" in harness.logger.messages("info")

    async def test_redo_exception(self, harness: Harness) -> None:
        harness.redo = FakeRedoLastAction(RuntimeError("log corrupt"))
        result = await harness.orchestrator().redo_last_game_action(RedoCommand(GAME_ID))

        assert result.errors == ("Redo operation failed: log corrupt",)


class TestExecuteWithCompensation:
    async def test_success_skips_compensation(self, harness: Harness) -> None:
        compensation = AsyncMock()
        result = await harness.orchestrator().execute_with_compensation(
            "record", AsyncMock(return_value=OK_AT_BAT), compensation
        )

        assert result.success
        assert not result.compensation_applied
        compensation.assert_not_awaited()

    async def test_logical_failure_compensates(self, harness: Harness) -> None:
        compensation = AsyncMock()
        failure = AtBatResult(success=False, errors=("nope",))
        result = await harness.orchestrator().execute_with_compensation(
            "record", AsyncMock(return_value=failure), compensation
        )

        assert not result.success
        assert result.errors == ("nope",)
        assert result.compensation_applied
        assert not result.requires_manual_intervention
        compensation.assert_awaited_once()

    async def test_failed_compensation_flags_manual_intervention(self, harness: Harness) -> None:
        failure = AtBatResult(success=False)
        result = await harness.orchestrator().execute_with_compensation(
            "record",
            AsyncMock(return_value=failure),
            AsyncMock(side_effect=RuntimeError("cannot undo")),
        )

        assert not result.compensation_applied
        assert result.requires_manual_intervention
        assert "Compensation failed for operation, requires manual intervention" in harness.logger.messages("error")

    async def test_exception_compensates_then_reraises(self, harness: Harness) -> None:
        compensation = AsyncMock()
        with pytest.raises(ValueError, match="bad input"):
            await harness.orchestrator().execute_with_compensation(
                "record", AsyncMock(side_effect=ValueError("bad input")), compensation
            )
        compensation.assert_awaited_once()

    async def test_exception_notes_failed_compensation(self, harness: Harness) -> None:
        with pytest.raises(ValueError, match="bad input") as exc_info:
            await harness.orchestrator().execute_with_compensation(
                "record",
                AsyncMock(side_effect=ValueError("bad input")),
                AsyncMock(side_effect=RuntimeError("cannot undo")),
            )
        assert exc_info.value.__notes__ == ["Compensation for record failed; requires manual intervention"]


class TestExecuteInTransaction:
    async def test_all_operations_succeed(self, harness: Harness) -> None:
        first = AtBatResult(success=True, runs_scored=1)
        second = AtBatResult(success=True, runs_scored=2)
        result = await harness.orchestrator().execute_in_transaction(
            "two at-bats", [AsyncMock(return_value=first), AsyncMock(return_value=second)]
        )

        assert result.success
        assert result.results == (first, second)
        assert not result.rollback_applied

    async def test_stops_at_first_failure_and_rolls_back(self, harness: Harness) -> None:
        first = AtBatResult(success=True, runs_scored=1)
        third = AsyncMock(return_value=OK_AT_BAT)
        rollback = AsyncMock()
        result = await harness.orchestrator().execute_in_transaction(
            "three at-bats",
            [
                AsyncMock(return_value=first),
                AsyncMock(return_value=AtBatResult(success=False, errors=("nope",))),
                third,
            ],
            rollback=rollback,
        )

        assert not result.success
        assert result.rollback_applied
        assert result.results == (first,)
        assert result.errors == ("Transaction failed at operation 1: nope",)
        third.assert_not_awaited()
        rollback.assert_awaited_once_with((first,))

    async def test_exception_rolls_back(self, harness: Harness) -> None:
        result = await harness.orchestrator().execute_in_transaction(
            "one at-bat", [AsyncMock(side_effect=RuntimeError("boom"))]
        )

        assert not result.success
        assert result.rollback_applied
        assert result.errors == ("Transaction exception at operation 0: boom",)
        assert not result.requires_manual_intervention

    async def test_failed_rollback_flags_manual_intervention(self, harness: Harness) -> None:
        result = await harness.orchestrator().execute_in_transaction(
            "one at-bat",
            [AsyncMock(return_value=AtBatResult(success=False))],
            rollback=AsyncMock(side_effect=RuntimeError("cannot undo")),
        )

        assert result.errors == ("Transaction failed at operation 0: Operation failed",)
        assert result.requires_manual_intervention

    async def test_denied_permission_fails_transaction(self, harness: Harness) -> None:
        second = AsyncMock(return_value=OK_AT_BAT)
        result = await harness.orchestrator().execute_in_transaction(
            "guarded at-bat",
            [AsyncMock(return_value=PermissionCheck(valid=False, errors=("denied",))), second],
        )

        assert not result.success
        assert result.results == ()
        assert result.errors == ("Transaction failed at operation 0: denied",)
        second.assert_not_awaited()


class TestAttemptOperationWithRetry:
    async def test_first_success_does_not_sleep(self, harness: Harness) -> None:
        operation = AsyncMock(return_value=OK_AT_BAT)
        result = await harness.orchestrator().attempt_operation_with_retry("record", operation, 3)

        assert result.success
        assert result.attempts == 1
        operation.assert_awaited_once()
        harness.sleep.assert_not_awaited()

    async def test_exception_then_success(self, harness: Harness) -> None:
        operation = AsyncMock(side_effect=[ConnectionError("flaky"), OK_AT_BAT])
        result = await harness.orchestrator().attempt_operation_with_retry("record", operation, 3, {"game_id": "g"})

        assert result.result is OK_AT_BAT
        assert result.attempts == 2
        assert harness.sleeps() == [1.0]
        [retry_log] = [e for e in harness.logger.entries if e.message == "Operation attempt failed, retrying"]
        assert retry_log.context["error"] == "flaky"
        assert retry_log.context["game_id"] == "g"

    async def test_persistent_exception_reraised(self, harness: Harness) -> None:
        operation = AsyncMock(side_effect=ConnectionError("down"))
        with pytest.raises(ConnectionError, match="down"):
            await harness.orchestrator().attempt_operation_with_retry("record", operation, 3)

        assert operation.await_count == 3
        assert "Operation failed after all retry attempts" in harness.logger.messages("error")

    async def test_logical_failure_gets_final_message(self, harness: Harness) -> None:
        operation = AsyncMock(return_value=AtBatResult(success=False, errors=("nope",)))
        result = await harness.orchestrator().attempt_operation_with_retry("record", operation, 2)

        assert not result.success
        assert result.attempts == 2
        assert result.errors == ("nope", "Operation failed after 2 attempts")

    async def test_backoff_is_capped(self, harness: Harness) -> None:
        harness.settings = WorkflowSettings(backoff_initial_seconds=4.0, backoff_max_seconds=5.0)
        operation = AsyncMock(return_value=AtBatResult(success=False))
        await harness.orchestrator().attempt_operation_with_retry("record", operation, 3)

        assert harness.sleeps() == [4.0, 5.0]

    async def test_denied_permission_is_retried(self, harness: Harness) -> None:
        denied = PermissionCheck(valid=False, errors=("denied",))
        operation = AsyncMock(side_effect=[denied, PermissionCheck(valid=True, user_id="scorer-1")])
        result = await harness.orchestrator().attempt_operation_with_retry("check permission", operation, 3)

        assert result.success
        assert result.result.user_id == "scorer-1"
        assert result.attempts == 2


class TestPermissions:
    async def test_allowed(self, harness: Harness) -> None:
        check = await harness.orchestrator().validate_game_operation_permissions(GAME_ID, "RECORD_AT_BAT")

        assert check.valid
        assert check.user_id == "scorer-1"

    async def test_string_user(self, harness: Harness) -> None:
        harness.auth = FakeAuthService(user="umpire")
        check = await harness.orchestrator().validate_game_operation_permissions(GAME_ID, "RECORD_AT_BAT")

        assert check.user_id == "umpire"

    async def test_no_user(self, harness: Harness) -> None:
        harness.auth = FakeAuthService(user=None)
        check = await harness.orchestrator().validate_game_operation_permissions(GAME_ID, "RECORD_AT_BAT")

        assert not check.valid
        assert check.errors == ("No authenticated user found",)

    async def test_denied(self, harness: Harness) -> None:
        harness.auth = FakeAuthService(user=AuthenticatedUser("fan-7"), allowed={"VIEW_GAME"})
        check = await harness.orchestrator().validate_game_operation_permissions(GAME_ID, "RECORD_AT_BAT")

        assert not check.valid
        assert check.user_id == "fan-7"
        assert not check.success
        assert check.errors == ("User does not have permission for RECORD_AT_BAT",)

    async def test_auth_failure(self, harness: Harness) -> None:
        harness.auth = FakeAuthService(error=PermissionError("token expired"))
        check = await harness.orchestrator().validate_game_operation_permissions(GAME_ID, "RECORD_AT_BAT")

        assert not check.valid
        assert check.errors == ("Authentication failed: token expired",)


class TestAudit:
    async def test_failed_result_logged_as_warning(self, harness: Harness) -> None:
        await harness.orchestrator().log_operation_audit(
            "RECORD_AT_BAT", {"game_id": "game-1"}, AtBatResult(success=False, errors=("nope",))
        )

        [entry] = harness.logger.entries
        assert entry.level == "warn"
        assert entry.message == "Operation audit log - FAILED"
        assert entry.context["errors"] == ["nope"]
        assert entry.context["context"] == {"game_id": "game-1"}

    async def test_auth_failure_is_swallowed(self, harness: Harness) -> None:
        harness.auth = FakeAuthService(error=RuntimeError("auth down"))
        await harness.orchestrator().log_operation_audit("RECORD_AT_BAT", {}, OK_AT_BAT)

        assert harness.logger.messages("error") == ["Failed to log operation audit"]
