from __future__ import annotations

from dataclasses import dataclass

from softball_tracker.exceptions import DomainError


def _check_range(name: str, value: int, low: int, high: int) -> None:
    if isinstance(value, bool) or not isinstance(value, int):
        msg = f"{name} must be an integer"
        raise DomainError(msg)
    if value < low or value > high:
        msg = f"{name} must be between {low} and {high}"
        raise DomainError(msg)


@dataclass(frozen=True)
class SoftballRules:
    """League rule configuration consumed by the lineup aggregate.

    Only ``max_players_per_team`` and ``allow_reentry`` affect lineup
    mutations; the remaining values describe the game for inning and game
    aggregates.
    """

    total_innings: int = 7
    max_players_per_team: int = 25
    time_limit_minutes: int | None = None
    allow_reentry: bool = True
    mercy_rule_enabled: bool = True
    mercy_rule_differential: int = 15
    mercy_rule_after_inning: int = 3

    def __post_init__(self) -> None:
        _check_range("total_innings", self.total_innings, 1, 50)
        _check_range("max_players_per_team", self.max_players_per_team, 9, 50)
        if self.time_limit_minutes is not None:
            _check_range("time_limit_minutes", self.time_limit_minutes, 1, 720)
        _check_range("mercy_rule_differential", self.mercy_rule_differential, 1, 100)
        _check_range("mercy_rule_after_inning", self.mercy_rule_after_inning, 1, 50)

    @classmethod
    def recreation_league(cls) -> SoftballRules:
        return cls()

    @classmethod
    def tournament(cls) -> SoftballRules:
        return cls(
            total_innings=7,
            max_players_per_team=20,
            time_limit_minutes=90,
            allow_reentry=False,
            mercy_rule_enabled=True,
            mercy_rule_differential=10,
            mercy_rule_after_inning=4,
        )

    @classmethod
    def youth_league(cls) -> SoftballRules:
        return cls(
            total_innings=5,
            max_players_per_team=15,
            time_limit_minutes=75,
            allow_reentry=True,
            mercy_rule_enabled=True,
            mercy_rule_differential=12,
            mercy_rule_after_inning=2,
        )

    def is_mercy_rule(self, home_score: int, away_score: int, current_inning: int) -> bool:
        """True once the run differential ends the game early.

        Applies after ``mercy_rule_after_inning`` regardless of which side leads.
        """
        if home_score < 0 or away_score < 0:
            msg = "Scores must be non-negative"
            raise DomainError(msg)
        if current_inning < 1:
            msg = "Inning must be 1 or greater"
            raise DomainError(msg)
        if not self.mercy_rule_enabled:
            return False
        if current_inning <= self.mercy_rule_after_inning:
            return False
        return abs(home_score - away_score) >= self.mercy_rule_differential

    def is_game_complete(self, home_score: int, away_score: int, current_inning: int) -> bool:
        """True when the mercy rule applies or regulation is over with a leader."""
        if self.is_mercy_rule(home_score, away_score, current_inning):
            return True
        if current_inning < self.total_innings:
            return False
        return home_score != away_score
