from __future__ import annotations

from dataclasses import dataclass, replace
import json
import logging
import os
from pathlib import Path
from typing import Any

from .errors import InvalidSettingsError

logger = logging.getLogger(__name__)

SETTINGS_ENV = "POMOTRACK_SETTINGS"
SETTINGS_FILE_NAME = "settings.json"

# (minimum, maximum) in minutes / cycles
_LIMITS: dict[str, tuple[int, int]] = {
    "work_duration": (1, 120),
    "short_break_duration": (1, 60),
    "long_break_duration": (1, 120),
    "long_break_interval": (1, 10),
}

_WIRE_KEYS = {
    "work_duration": "workDuration",
    "short_break_duration": "shortBreakDuration",
    "long_break_duration": "longBreakDuration",
    "long_break_interval": "longBreakInterval",
    "auto_start_breaks": "autoStartBreaks",
    "auto_start_work": "autoStartWork",
    "sound_enabled": "soundEnabled",
    "notifications_enabled": "notificationsEnabled",
}


def _as_bool(value: Any, default: bool) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, str):
        normalized = value.strip().lower()
        if normalized in {"1", "true", "yes", "y", "on"}:
            return True
        if normalized in {"0", "false", "no", "n", "off", ""}:
            return False
    return default


@dataclass(frozen=True)
class TimerSettings:
    work_duration: int = 25
    short_break_duration: int = 5
    long_break_duration: int = 15
    long_break_interval: int = 4
    auto_start_breaks: bool = False
    auto_start_work: bool = False
    sound_enabled: bool = True
    notifications_enabled: bool = True

    def validate(self) -> TimerSettings:
        for name, (low, high) in _LIMITS.items():
            value = getattr(self, name)
            if not isinstance(value, int) or isinstance(value, bool) or not low <= value <= high:
                raise InvalidSettingsError(
                    f"Invalid value for setting {_WIRE_KEYS[name]}: {value} (expected {low}-{high})"
                )
        return self

    def updated(self, **changes: Any) -> TimerSettings:
        return replace(self, **changes).validate()

    def to_dict(self) -> dict[str, Any]:
        return {wire: getattr(self, name) for name, wire in _WIRE_KEYS.items()}

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> TimerSettings:
        defaults = cls()

        def pick(name: str) -> Any:
            wire = _WIRE_KEYS[name]
            if wire in payload:
                return payload[wire]
            return payload.get(name, getattr(defaults, name))

        return cls(
            work_duration=int(pick("work_duration")),
            short_break_duration=int(pick("short_break_duration")),
            long_break_duration=int(pick("long_break_duration")),
            long_break_interval=int(pick("long_break_interval")),
            auto_start_breaks=_as_bool(pick("auto_start_breaks"), defaults.auto_start_breaks),
            auto_start_work=_as_bool(pick("auto_start_work"), defaults.auto_start_work),
            sound_enabled=_as_bool(pick("sound_enabled"), defaults.sound_enabled),
            notifications_enabled=_as_bool(
                pick("notifications_enabled"), defaults.notifications_enabled
            ),
        )


def default_settings_path() -> Path:
    override = os.getenv(SETTINGS_ENV, "").strip()
    if override:
        return Path(override)
    return Path(__file__).resolve().parent / "data" / SETTINGS_FILE_NAME


def load_settings(path: Path | None = None) -> TimerSettings:
    target = Path(path) if path is not None else default_settings_path()
    if not target.exists():
        return TimerSettings()
    try:
        with target.open("r", encoding="utf-8") as fp:
            payload = json.load(fp)
        if not isinstance(payload, dict):
            raise InvalidSettingsError("settings file must contain a JSON object")
        return TimerSettings.from_dict(payload).validate()
    except (OSError, TypeError, ValueError) as exc:
        logger.warning("Failed to load settings from %s, using defaults: %s", target, exc)
        return TimerSettings()


def save_settings(settings: TimerSettings, path: Path | None = None) -> Path:
    settings.validate()
    target = Path(path) if path is not None else default_settings_path()
    target.parent.mkdir(parents=True, exist_ok=True)
    temp_path = target.with_suffix(target.suffix + ".tmp")
    with temp_path.open("w", encoding="utf-8") as fp:
        json.dump(settings.to_dict(), fp, indent=2, ensure_ascii=False, sort_keys=True)
        fp.write("\n")
    temp_path.replace(target)
    return target


def reset_settings(path: Path | None = None) -> TimerSettings:
    target = Path(path) if path is not None else default_settings_path()
    try:
        target.unlink()
    except FileNotFoundError:
        pass
    return TimerSettings()
