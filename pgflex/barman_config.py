"""Barman configuration: defaults, user overrides and validation."""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from pgflex.durations import parse_duration

DEFAULT_BARMAN_CONFIG_DIR = "/data/barman/"

_DEFAULTS = {
    "archive_timeout": "60s",
    "recovery_window": "7d",
    "full_backup_frequency": "24h",
    "minimum_redundancy": "3",
}

_RECOVERY_WINDOW_UNITS = {"m": "MONTHS", "w": "WEEKS", "d": "DAYS"}
_POSTGRES_UNITS = {
    "us": "us",
    "ms": "ms",
    "s": "s",
    "min": "min",
    "m": "min",
    "h": "h",
    "d": "d",
}
_DURATION_PARTS = re.compile(r"(\d+)([a-z]+)")
_RECOVERY_WINDOW = re.compile(r"^(\d+)([dwy])$")
_INTEGER = re.compile(r"[+-]?\d+")


class ConfigValidationError(ValueError):
    """A configuration value is missing or not acceptable."""


@dataclass
class BarmanSettings:
    """Barman settings in the form the backup tooling consumes."""

    archive_timeout: str = ""
    recovery_window: str = ""
    full_backup_frequency: str = ""
    minimum_redundancy: str = ""


def _read_config_file(path: Path) -> dict[str, str]:
    config: dict[str, str] = {}
    with open(path, encoding="utf-8") as handle:
        for line in handle:
            line = line.strip()
            if not line or line.startswith("#") or "=" not in line:
                continue
            key, value = line.split("=", 1)
            value = value.strip()
            if len(value) >= 2 and value[0] == value[-1] == "'":
                value = value[1:-1]
            config[key.strip()] = value
    return config


def _write_config_file(path: Path, config: dict[str, Any]) -> None:
    with open(path, "w", encoding="utf-8") as handle:
        for key in sorted(config):
            handle.write(f"{key} = '{config[key]}'\n")


def _as_text(key: str, value: Any) -> str:
    if not isinstance(value, str):
        raise ConfigValidationError(f"invalid value for {key}: {value!r}")
    return value


class BarmanConfig:
    """Internal defaults and user overrides for barman, kept on disk."""

    consul_key = "BarmanConfig"

    def __init__(self, config_dir: str | Path = DEFAULT_BARMAN_CONFIG_DIR):
        self.config_dir = Path(config_dir)
        self.internal_config_file = self.config_dir / "barman.internal.conf"
        self.user_config_file = self.config_dir / "barman.user.conf"
        self.internal_config: dict[str, Any] = {}
        self.user_config: dict[str, Any] = {}

        self.config_dir.mkdir(parents=True, exist_ok=True)
        self.set_defaults()
        _write_config_file(self.internal_config_file, self.internal_config)
        self.user_config_file.touch(exist_ok=True)
        self.user_config = _read_config_file(self.user_config_file)
        self.settings = self.parse_settings()

    def set_defaults(self) -> None:
        """Reset the internal configuration to the built-in defaults."""
        self.internal_config = dict(_DEFAULTS)

    def set_user_config(self, new_config: dict[str, Any]) -> None:
        """Replace the in-memory user overrides."""
        self.user_config = new_config

    def _write_user_config_file(self) -> None:
        _write_config_file(self.user_config_file, self.user_config)

    def current_config(self) -> dict[str, str]:
        """Merge the internal and user files, user values taking precedence."""
        merged = _read_config_file(self.internal_config_file)
        merged.update(_read_config_file(self.user_config_file))
        return merged

    def parse_settings(self) -> BarmanSettings:
        """Read the current configuration into structured settings."""
        cfg = self.current_config()
        missing = [key for key in _DEFAULTS if key not in cfg]
        if missing:
            raise ConfigValidationError(f"missing settings: {', '.join(missing)}")

        recovery_window = "RECOVERY WINDOW OF " + convert_recovery_window_duration(
            cfg["recovery_window"]
        )
        try:
            archive_timeout = convert_to_postgres_units(cfg["archive_timeout"])
        except ValueError as exc:
            raise ConfigValidationError(
                f"failed to convert archive_timeout to postgres units: {exc}"
            ) from exc

        return BarmanSettings(
            archive_timeout=archive_timeout,
            recovery_window=recovery_window,
            full_backup_frequency=cfg["full_backup_frequency"],
            minimum_redundancy=cfg["minimum_redundancy"],
        )

    def validate(self, requested_changes: dict[str, Any]) -> None:
        """Raise ConfigValidationError if any requested change is unacceptable."""
        for key in requested_changes:
            if key not in self.internal_config:
                raise ConfigValidationError(f"invalid key: {key}")

        for key, raw in requested_changes.items():
            value = _as_text(key, raw)
            if key == "archive_timeout":
                try:
                    convert_to_postgres_units(value)
                except ValueError as exc:
                    raise ConfigValidationError(
                        f"invalid value for archive_timeout: {exc}"
                    ) from exc
            elif key == "recovery_window":
                match = _RECOVERY_WINDOW.match(value)
                if match is None:
                    raise ConfigValidationError(
                        f"invalid value for recovery_window: {value}"
                    )
                number = int(match.group(1))
                if number < 1:
                    raise ConfigValidationError(
                        "invalid value for recovery_window "
                        f"(expected to be >= 1, got {number})"
                    )
            elif key == "full_backup_frequency":
                try:
                    frequency = parse_duration(value)
                except ValueError as exc:
                    raise ConfigValidationError(
                        f"invalid value for full_backup_frequency: {value}"
                    ) from exc
                if frequency.total_seconds() < 3600:
                    raise ConfigValidationError(
                        "invalid value for full_backup_frequency "
                        f"(expected to be >= 1h, got {value})"
                    )
            elif key == "minimum_redundancy":
                if not _INTEGER.fullmatch(value):
                    raise ConfigValidationError(
                        f"invalid value for minimum_redundancy: {value}"
                    )
                redundancy = int(value)
                if redundancy < 0:
                    raise ConfigValidationError(
                        "invalid value for minimum_redundancy "
                        f"(expected be >= 0, got {redundancy})"
                    )


def convert_recovery_window_duration(duration: str) -> str:
    """Turn "7d" into "7 DAYS"; values with other suffixes pass through."""
    for unit, text in _RECOVERY_WINDOW_UNITS.items():
        if duration.endswith(unit):
            return duration[: -len(unit)] + " " + text
    return duration


def convert_to_postgres_units(value: str) -> str:
    """Turn a duration such as "5m" into the Postgres form "5min"."""
    match = _DURATION_PARTS.search(value)
    if match is None:
        raise ValueError(f"invalid duration format: {value}")
    number, unit = match.groups()
    try:
        postgres_unit = _POSTGRES_UNITS[unit]
    except KeyError:
        raise ValueError(f"unsupported postgres unit: {unit}") from None
    return f"{int(number)}{postgres_unit}"