from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from softball_tracker.application.results import SubstitutionResult
from softball_tracker.domain.rules import SoftballRules
from softball_tracker.domain.team_lineup import ParticipationState
from softball_tracker.exceptions import ConcurrencyError, DomainError

if TYPE_CHECKING:
    from softball_tracker.application.commands import SubstitutePlayerCommand
    from softball_tracker.repos.team_lineup_repo import EventSourcedTeamLineupRepository

logger = logging.getLogger(__name__)


class SubstitutePlayerUseCase:
    """Apply a substitution to a stored lineup and persist the resulting event.

    Rule violations and version conflicts come back as failed results;
    anything else raised by the repository propagates.
    """

    def __init__(self, repository: EventSourcedTeamLineupRepository, rules: SoftballRules | None = None) -> None:
        self._repository = repository
        self._rules = rules if rules is not None else SoftballRules()

    async def execute(self, command: SubstitutePlayerCommand) -> SubstitutionResult:
        lineup = await self._repository.find_by_id(command.team_lineup_id)
        if lineup is None:
            return self._failure(command, f"Team lineup not found: {command.team_lineup_id}")
        if lineup.game_id != command.game_id:
            msg = f"Team lineup {command.team_lineup_id} does not belong to game {command.game_id}"
            return self._failure(command, msg)

        outgoing = lineup.get_player_info(command.outgoing_player_id)
        was_reentry = lineup.get_player_state(command.incoming_player_id) == ParticipationState.ELIGIBLE_FOR_REENTRY

        try:
            updated = lineup.substitute_player(
                command.batting_slot,
                command.outgoing_player_id,
                command.incoming_player_id,
                command.incoming_jersey_number,
                command.incoming_player_name,
                command.new_field_position,
                command.inning,
                self._rules,
                is_reentry=command.is_reentry,
            )
        except DomainError as e:
            logger.info("Substitution rejected for lineup %s: %s", command.team_lineup_id, e)
            return self._failure(command, str(e))

        try:
            await self._repository.save(updated)
        except ConcurrencyError as e:
            logger.warning("Substitution lost a version race on lineup %s", command.team_lineup_id)
            return self._failure(command, f"Failed to store events: {e}")

        previous_position = outgoing.current_position if outgoing is not None else None
        logger.info(
            "Substituted %s for %s in slot %d of lineup %s",
            command.incoming_player_id,
            command.outgoing_player_id,
            command.batting_slot,
            command.team_lineup_id,
        )
        return SubstitutionResult(
            success=True,
            game_id=command.game_id,
            team_lineup_id=command.team_lineup_id,
            batting_slot=command.batting_slot,
            outgoing_player_id=command.outgoing_player_id,
            incoming_player_id=command.incoming_player_id,
            was_reentry=was_reentry,
            position_changed=previous_position != command.new_field_position,
        )

    @staticmethod
    def _failure(command: SubstitutePlayerCommand, error: str) -> SubstitutionResult:
        return SubstitutionResult(
            success=False,
            game_id=command.game_id,
            team_lineup_id=command.team_lineup_id,
            batting_slot=command.batting_slot,
            errors=(error,),
        )
