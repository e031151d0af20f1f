from __future__ import annotations

import pytest

from softball_tracker.application.commands import SubstitutePlayerCommand
from softball_tracker.application.substitute_player import SubstitutePlayerUseCase
from softball_tracker.domain.field_position import FieldPosition
from softball_tracker.domain.identifiers import GameId, PlayerId, TeamLineupId
from softball_tracker.domain.rules import SoftballRules
from softball_tracker.domain.team_lineup import ParticipationState, TeamLineup
from softball_tracker.eventstore.memory import InMemoryEventStore
from softball_tracker.exceptions import ConcurrencyError
from softball_tracker.repos.team_lineup_repo import EventSourcedTeamLineupRepository
from tests.helpers import GAME_ID, LINEUP_ID, full_lineup, jersey, player


class _RacingRepository(EventSourcedTeamLineupRepository):
    async def save(self, lineup: TeamLineup) -> TeamLineup:
        raise ConcurrencyError(lineup.id.value, 10, 11)


def _command(
    outgoing: PlayerId,
    incoming: PlayerId,
    *,
    slot: int = 1,
    number: int = 11,
    position: FieldPosition = FieldPosition.PITCHER,
    inning: int = 2,
    is_reentry: bool = False,
    lineup_id: TeamLineupId = LINEUP_ID,
    game_id: GameId = GAME_ID,
) -> SubstitutePlayerCommand:
    return SubstitutePlayerCommand(
        game_id=game_id,
        team_lineup_id=lineup_id,
        batting_slot=slot,
        outgoing_player_id=outgoing,
        incoming_player_id=incoming,
        incoming_player_name="Reliever",
        incoming_jersey_number=jersey(number),
        new_field_position=position,
        inning=inning,
        is_reentry=is_reentry,
    )


@pytest.fixture
async def repo(memory_store: InMemoryEventStore) -> EventSourcedTeamLineupRepository:
    repository = EventSourcedTeamLineupRepository(memory_store)
    await repository.save(full_lineup())
    return repository


@pytest.fixture
def use_case(repo: EventSourcedTeamLineupRepository) -> SubstitutePlayerUseCase:
    return SubstitutePlayerUseCase(repo)


class TestSubstitutePlayerUseCase:
    async def test_substitution_is_persisted(
        self, use_case: SubstitutePlayerUseCase, repo: EventSourcedTeamLineupRepository
    ) -> None:
        result = await use_case.execute(_command(player(1), player(11)))

        assert result.success
        assert result.errors == ()
        assert (result.batting_slot, result.outgoing_player_id, result.incoming_player_id) == (
            1,
            player(1),
            player(11),
        )
        assert not result.was_reentry
        assert not result.position_changed

        stored = await repo.find_by_id(LINEUP_ID)
        assert stored is not None
        assert stored.version == 11
        assert stored.get_fielding_positions()[FieldPosition.PITCHER] == player(11)
        assert stored.get_player_state(player(1)) == ParticipationState.ELIGIBLE_FOR_REENTRY

    async def test_position_change_reported(self, use_case: SubstitutePlayerUseCase) -> None:
        result = await use_case.execute(_command(player(1), player(11), position=FieldPosition.EXTRA_PLAYER))

        assert result.success
        assert result.position_changed

    async def test_starter_reentry(self, use_case: SubstitutePlayerUseCase) -> None:
        await use_case.execute(_command(player(1), player(11)))
        result = await use_case.execute(_command(player(11), player(1), number=1, inning=4, is_reentry=True))

        assert result.success
        assert result.was_reentry

    async def test_reentry_disallowed_by_rules(self, repo: EventSourcedTeamLineupRepository) -> None:
        use_case = SubstitutePlayerUseCase(repo, SoftballRules(allow_reentry=False))
        await use_case.execute(_command(player(1), player(11)))
        result = await use_case.execute(_command(player(11), player(1), number=1, inning=4, is_reentry=True))

        assert not result.success
        assert result.errors == ("Re-entry is not allowed under current rules",)

    async def test_missing_lineup(self, use_case: SubstitutePlayerUseCase) -> None:
        result = await use_case.execute(_command(player(1), player(11), lineup_id=TeamLineupId("lineup-away")))

        assert not result.success
        assert result.errors == ("Team lineup not found: lineup-away",)

    async def test_lineup_from_other_game(self, use_case: SubstitutePlayerUseCase) -> None:
        result = await use_case.execute(_command(player(1), player(11), game_id=GameId("game-2")))

        assert not result.success
        assert "does not belong to game game-2" in result.errors[0]

    async def test_rule_violation_returns_failure(
        self, use_case: SubstitutePlayerUseCase, repo: EventSourcedTeamLineupRepository
    ) -> None:
        result = await use_case.execute(_command(player(2), player(11)))

        assert not result.success
        assert "is not in batting slot 1" in result.errors[0]
        stored = await repo.find_by_id(LINEUP_ID)
        assert stored is not None
        assert stored.version == 10

    async def test_jersey_conflict(self, use_case: SubstitutePlayerUseCase) -> None:
        result = await use_case.execute(_command(player(1), player(11), number=5))

        assert not result.success
        assert "already assigned" in result.errors[0]

    async def test_substitute_jersey_survives_reload(
        self, use_case: SubstitutePlayerUseCase, repo: EventSourcedTeamLineupRepository
    ) -> None:
        await use_case.execute(_command(player(1), player(11), number=11))

        stored = await repo.find_by_id(LINEUP_ID)
        assert stored is not None
        info = stored.get_player_info(player(11))
        assert info is not None
        assert info.jersey_number == jersey(11)
        assert info.player_name == "Reliever"

        taken = await use_case.execute(
            _command(player(2), player(12), slot=2, number=11, position=FieldPosition.CATCHER, inning=3)
        )
        assert not taken.success
        assert "Jersey number 11 is already assigned" in taken.errors[0]

        free = await use_case.execute(
            _command(player(2), player(12), slot=2, number=99, position=FieldPosition.CATCHER, inning=3)
        )
        assert free.success

    async def test_version_conflict_returns_failure(self, memory_store: InMemoryEventStore) -> None:
        repository = _RacingRepository(memory_store)
        await EventSourcedTeamLineupRepository(memory_store).save(full_lineup())
        result = await SubstitutePlayerUseCase(repository).execute(_command(player(1), player(11)))

        assert not result.success
        assert result.errors[0].startswith("Failed to store events: Concurrency conflict")
