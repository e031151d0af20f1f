from enum import StrEnum


class FieldPosition(StrEnum):
    PITCHER = "P"
    CATCHER = "C"
    FIRST_BASE = "1B"
    SECOND_BASE = "2B"
    THIRD_BASE = "3B"
    SHORTSTOP = "SS"
    LEFT_FIELD = "LF"
    CENTER_FIELD = "CF"
    RIGHT_FIELD = "RF"
    SHORT_FIELDER = "SF"
    # Bats but holds no defensive assignment.
    EXTRA_PLAYER = "EP"


class TeamSide(StrEnum):
    HOME = "HOME"
    AWAY = "AWAY"


REQUIRED_POSITIONS: tuple[FieldPosition, ...] = (
    FieldPosition.PITCHER,
    FieldPosition.CATCHER,
    FieldPosition.FIRST_BASE,
    FieldPosition.SECOND_BASE,
    FieldPosition.THIRD_BASE,
    FieldPosition.SHORTSTOP,
    FieldPosition.LEFT_FIELD,
    FieldPosition.CENTER_FIELD,
    FieldPosition.RIGHT_FIELD,
)
