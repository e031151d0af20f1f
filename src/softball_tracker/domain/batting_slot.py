from __future__ import annotations

from dataclasses import dataclass, replace

from softball_tracker.domain.identifiers import PlayerId
from softball_tracker.exceptions import DomainError


@dataclass(frozen=True)
class SlotHistory:
    player_id: PlayerId
    entered_inning: int
    exited_inning: int | None = None
    was_starter: bool = False
    is_reentry: bool = False

    def __post_init__(self) -> None:
        if self.entered_inning < 1:
            msg = "Entered inning must be at least 1"
            raise DomainError(msg)
        if self.exited_inning is not None and self.exited_inning < self.entered_inning:
            msg = "Exited inning cannot precede entered inning"
            raise DomainError(msg)

    @property
    def is_active(self) -> bool:
        return self.exited_inning is None

    def innings_played(self, current_inning: int | None = None) -> int:
        if self.exited_inning is not None:
            return self.exited_inning - self.entered_inning
        if current_inning is None:
            msg = "Current inning must be provided for active players"
            raise DomainError(msg)
        return current_inning - self.entered_inning + 1


@dataclass(frozen=True)
class BattingSlot:
    """One position in the batting order and everyone who has batted there."""

    position: int
    current_player: PlayerId
    history: tuple[SlotHistory, ...]

    def __post_init__(self) -> None:
        if self.position < 1:
            msg = "Batting position must be 1 or greater"
            raise DomainError(msg)
        if not self.history:
            msg = "Batting slot must have at least one history entry"
            raise DomainError(msg)
        if not any(h.player_id == self.current_player and h.is_active for h in self.history):
            msg = "Current player must have an active history entry"
            raise DomainError(msg)

    @classmethod
    def create_with_starter(cls, position: int, starter_id: PlayerId) -> BattingSlot:
        return cls(
            position=position,
            current_player=starter_id,
            history=(SlotHistory(player_id=starter_id, entered_inning=1, was_starter=True),),
        )

    def substitute(self, incoming: PlayerId, inning: int, is_reentry: bool) -> BattingSlot:
        history = tuple(
            replace(h, exited_inning=inning) if h.player_id == self.current_player and h.is_active else h
            for h in self.history
        )
        entry = SlotHistory(player_id=incoming, entered_inning=inning, is_reentry=is_reentry)
        return BattingSlot(position=self.position, current_player=incoming, history=(*history, entry))

    def was_player_starter(self, player_id: PlayerId) -> bool:
        return any(h.player_id == player_id and h.was_starter for h in self.history)

    def has_player_played(self, player_id: PlayerId) -> bool:
        return any(h.player_id == player_id for h in self.history)

    def player_history(self, player_id: PlayerId) -> tuple[SlotHistory, ...]:
        return tuple(h for h in self.history if h.player_id == player_id)

    def total_innings_played(self, player_id: PlayerId, current_inning: int) -> int:
        return sum(h.innings_played(current_inning) for h in self.player_history(player_id))
