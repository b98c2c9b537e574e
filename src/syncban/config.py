"""Sync engine settings: built-in defaults merged with an optional YAML file."""

from __future__ import annotations

import logging
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)

DEFAULTS = {
    "poll-interval": 15.0,
    "debounce": 2.0,
    "cooldown": 2.0,
    "quota-retries": 3,
    "backoff-base": 2.0,
    "conflict-policy": "manual",
    "ephemeral": False,
}

CONFLICT_POLICIES = ("manual", "local", "remote")


def _python_key(key: str) -> str:
    """Convert file-style key (hyphenated) to Python-style (underscored)."""
    return key.replace("-", "_")


def _file_key(python_key: str) -> str:
    """Convert Python-style key (underscored) to file-style (hyphenated)."""
    return python_key.replace("_", "-")


def _coerce(key: str, raw: Any) -> Any:
    """Type-coerce a value using the type of its default."""
    default = DEFAULTS[key]
    if isinstance(default, bool):
        if isinstance(raw, str):
            return raw.strip().lower() in ("true", "yes", "1", "on")
        return bool(raw)
    if isinstance(default, int):
        return int(raw)
    if isinstance(default, float):
        return float(raw)
    return str(raw)


@dataclass
class SyncConfig:
    """Timing and policy knobs for a SyncEngine."""

    poll_interval: float = DEFAULTS["poll-interval"]
    debounce: float = DEFAULTS["debounce"]
    cooldown: float = DEFAULTS["cooldown"]
    quota_retries: int = DEFAULTS["quota-retries"]
    backoff_base: float = DEFAULTS["backoff-base"]
    conflict_policy: str = DEFAULTS["conflict-policy"]
    ephemeral: bool = DEFAULTS["ephemeral"]

    def __post_init__(self) -> None:
        if self.conflict_policy not in CONFLICT_POLICIES:
            raise ValueError(
                f"conflict-policy must be one of {', '.join(CONFLICT_POLICIES)}, not {self.conflict_policy!r}"
            )
        for name in ("poll_interval", "debounce", "cooldown", "backoff_base"):
            if getattr(self, name) < 0:
                raise ValueError(f"{_file_key(name)} must not be negative")
        if self.quota_retries < 0:
            raise ValueError("quota-retries must not be negative")

    def to_dict(self) -> dict[str, Any]:
        """File-style mapping, suitable for writing back as YAML."""
        return {_file_key(f.name): getattr(self, f.name) for f in fields(self)}


def config_from_mapping(data: dict[str, Any] | None) -> SyncConfig:
    """Build a SyncConfig from a mapping of file-style or Python-style keys.

    Unknown keys are logged and ignored.
    """
    values: dict[str, Any] = {}
    for key, raw in (data or {}).items():
        file_key = _file_key(str(key))
        if file_key not in DEFAULTS:
            logger.warning("ignoring unknown config key %r", key)
            continue
        if raw is None:
            continue
        values[_python_key(file_key)] = _coerce(file_key, raw)
    return SyncConfig(**values)


def load_config(path: str | Path | None = None) -> SyncConfig:
    """Read settings from a YAML file; a missing file means all defaults."""
    if path is None:
        return SyncConfig()
    path = Path(path)
    if not path.exists():
        logger.debug("no config at %s, using defaults", path)
        return SyncConfig()
    data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: expected a mapping of settings")
    section = data.get("sync", data)
    return config_from_mapping(section)


def save_config(config: SyncConfig, path: str | Path) -> None:
    Path(path).write_text(yaml.safe_dump({"sync": config.to_dict()}, sort_keys=False), encoding="utf-8")
