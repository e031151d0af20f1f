from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from config import ConfigurationSet, config_from_dict, config_from_env, config_from_yaml

from softball_tracker.domain.rules import SoftballRules

_DEFAULTS: dict[str, object] = {
    "rules": {
        "total_innings": 7,
        "max_players_per_team": 25,
        "allow_reentry": True,
        "mercy_rule_enabled": True,
        "mercy_rule_differential": 15,
        "mercy_rule_after_inning": 3,
    },
    "workflow": {
        "max_retry_attempts": 3,
        "backoff_initial_seconds": 1.0,
        "backoff_max_seconds": 10.0,
    },
    "event_store": {
        "db_path": "~/.config/softball/events.db",
    },
}


@dataclass(frozen=True)
class WorkflowSettings:
    """Retry and backoff knobs for the workflow orchestrator.

    The wait before attempt ``n + 1`` is
    ``min(backoff_initial_seconds * 2 ** (n - 1), backoff_max_seconds)``.
    """

    max_retry_attempts: int = 3
    backoff_initial_seconds: float = 1.0
    backoff_max_seconds: float = 10.0
    max_game_attempts: int | None = None

    def __post_init__(self) -> None:
        if self.max_retry_attempts < 1:
            msg = "max_retry_attempts must be at least 1"
            raise ValueError(msg)
        if self.backoff_initial_seconds < 0 or self.backoff_max_seconds < 0:
            msg = "backoff durations must be non-negative"
            raise ValueError(msg)


def create_config(
    yaml_path: str = "softball.yaml",
    env_prefix: str = "SOFTBALL",
    defaults: dict[str, object] | None = None,
) -> ConfigurationSet:
    """Create a layered configuration.

    Priority (highest to lowest): env vars > YAML file > defaults dict.
    """
    if defaults is None:
        defaults = _DEFAULTS
    return ConfigurationSet(
        config_from_env(env_prefix, separator="__", lowercase_keys=True),
        config_from_yaml(yaml_path, read_from_file=True, ignore_missing_paths=True),
        config_from_dict(defaults),
    )


def _as_bool(raw: object) -> bool:
    # Env vars arrive as strings.
    if isinstance(raw, str):
        return raw.strip().lower() in {"1", "true", "yes", "on"}
    return bool(raw)


def _as_optional_int(raw: object) -> int | None:
    if raw is None or (isinstance(raw, str) and raw.strip().lower() in {"", "none", "null"}):
        return None
    return int(str(raw))


def load_softball_rules(cfg: ConfigurationSet | None = None) -> SoftballRules:
    if cfg is None:
        cfg = create_config()
    return SoftballRules(
        total_innings=int(str(cfg["rules.total_innings"])),
        max_players_per_team=int(str(cfg["rules.max_players_per_team"])),
        time_limit_minutes=_as_optional_int(cfg.get("rules.time_limit_minutes", None)),
        allow_reentry=_as_bool(cfg["rules.allow_reentry"]),
        mercy_rule_enabled=_as_bool(cfg["rules.mercy_rule_enabled"]),
        mercy_rule_differential=int(str(cfg["rules.mercy_rule_differential"])),
        mercy_rule_after_inning=int(str(cfg["rules.mercy_rule_after_inning"])),
    )


def load_workflow_settings(cfg: ConfigurationSet | None = None) -> WorkflowSettings:
    if cfg is None:
        cfg = create_config()
    return WorkflowSettings(
        max_retry_attempts=int(str(cfg["workflow.max_retry_attempts"])),
        backoff_initial_seconds=float(str(cfg["workflow.backoff_initial_seconds"])),
        backoff_max_seconds=float(str(cfg["workflow.backoff_max_seconds"])),
        max_game_attempts=_as_optional_int(cfg.get("workflow.max_game_attempts", None)),
    )


def load_event_store_path(cfg: ConfigurationSet | None = None) -> Path:
    if cfg is None:
        cfg = create_config()
    return Path(str(cfg["event_store.db_path"])).expanduser()
