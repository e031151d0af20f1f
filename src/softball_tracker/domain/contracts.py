"""Contracts for the inning and game aggregates.

Their rule logic lives outside this package; the orchestrator and the event
store only rely on these shapes.
"""

from __future__ import annotations

from enum import StrEnum
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from softball_tracker.domain.events import DomainEvent
    from softball_tracker.domain.identifiers import GameId, PlayerId


class GameStatus(StrEnum):
    NOT_STARTED = "NOT_STARTED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"


class AtBatResultType(StrEnum):
    SINGLE = "1B"
    DOUBLE = "2B"
    TRIPLE = "3B"
    HOME_RUN = "HR"
    WALK = "BB"
    INTENTIONAL_WALK = "IBB"
    SACRIFICE_FLY = "SF"
    SACRIFICE_BUNT = "SAC"
    FIELDERS_CHOICE = "FC"
    ERROR = "E"
    STRIKEOUT = "K"
    GROUND_OUT = "GO"
    FLY_OUT = "FO"
    DOUBLE_PLAY = "DP"
    TRIPLE_PLAY = "TP"


@runtime_checkable
class InningAggregate(Protocol):
    @property
    def inning(self) -> int: ...

    @property
    def is_top_half(self) -> bool: ...

    @property
    def outs(self) -> int: ...

    def record_at_bat(self, batter_id: PlayerId, result: AtBatResultType, inning: int) -> InningAggregate: ...

    def get_uncommitted_events(self) -> list[DomainEvent]: ...


@runtime_checkable
class GameAggregate(Protocol):
    @property
    def id(self) -> GameId: ...

    @property
    def status(self) -> GameStatus: ...

    @property
    def home_score(self) -> int: ...

    @property
    def away_score(self) -> int: ...

    def get_uncommitted_events(self) -> list[DomainEvent]: ...
