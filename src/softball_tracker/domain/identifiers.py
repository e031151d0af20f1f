from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import Self

from softball_tracker.exceptions import DomainError

MIN_JERSEY_NUMBER = 0
MAX_JERSEY_NUMBER = 99


@dataclass(frozen=True, slots=True)
class _StringId:
    value: str

    def __post_init__(self) -> None:
        if not isinstance(self.value, str) or not self.value.strip():
            msg = f"{type(self).__name__} cannot be empty or whitespace"
            raise DomainError(msg)

    @classmethod
    def generate(cls) -> Self:
        return cls(str(uuid.uuid4()))

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True, slots=True)
class GameId(_StringId):
    pass


@dataclass(frozen=True, slots=True)
class TeamLineupId(_StringId):
    pass


@dataclass(frozen=True, slots=True)
class PlayerId(_StringId):
    pass


@dataclass(frozen=True, slots=True)
class JerseyNumber:
    """A jersey number stored as its display string ("0" through "99")."""

    value: str

    def __post_init__(self) -> None:
        if not isinstance(self.value, str) or not self.value.isdigit():
            msg = "Jersey number must be numeric"
            raise DomainError(msg)
        number = int(self.value)
        if number < MIN_JERSEY_NUMBER or number > MAX_JERSEY_NUMBER:
            msg = f"Jersey number must be between {MIN_JERSEY_NUMBER} and {MAX_JERSEY_NUMBER}"
            raise DomainError(msg)

    @classmethod
    def from_number(cls, number: int) -> JerseyNumber:
        return cls(str(number))

    def to_number(self) -> int:
        return int(self.value)

    def __str__(self) -> str:
        return self.value
