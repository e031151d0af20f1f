from softball_tracker.domain.field_position import REQUIRED_POSITIONS, FieldPosition, TeamSide
from softball_tracker.domain.identifiers import GameId, JerseyNumber, PlayerId, TeamLineupId
from softball_tracker.domain.team_lineup import TeamLineup

GAME_ID = GameId("game-1")
LINEUP_ID = TeamLineupId("lineup-home")


def player(n: int) -> PlayerId:
    return PlayerId(f"player-{n}")


def jersey(n: int) -> JerseyNumber:
    return JerseyNumber.from_number(n)


def new_lineup(
    *,
    lineup_id: TeamLineupId = LINEUP_ID,
    game_id: GameId = GAME_ID,
    team_name: str = "Eagles",
    team_side: TeamSide = TeamSide.HOME,
) -> TeamLineup:
    return TeamLineup.create_new(lineup_id, game_id, team_name, team_side)


def full_lineup(*, extra_player: bool = False, **kwargs: object) -> TeamLineup:
    """Nine starters in slots 1-9 covering every required position.

    Player ``n`` bats in slot ``n``, wears jersey ``n`` and plays the
    ``n``-th required position. With ``extra_player`` a tenth starter bats
    as EP.
    """
    lineup = new_lineup(**kwargs)  # type: ignore[arg-type]
    for n, position in enumerate(REQUIRED_POSITIONS, start=1):
        lineup = lineup.add_player(player(n), jersey(n), f"Starter {n}", n, position)
    if extra_player:
        lineup = lineup.add_player(player(10), jersey(10), "Starter 10", 10, FieldPosition.EXTRA_PLAYER)
    return lineup
