"""User settings: task presets, rest length and per-round override."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from eggfocus.fileio import read_yaml, write_yaml_atomic
from eggfocus.workspace import settings_path

DEFAULT_TASK_OPTIONS = [10, 20, 30, 40]
DEFAULT_REST_SECONDS = 180
DEFAULT_ROUND_OVERRIDE = 10


@dataclass
class Settings:
    task_options: list[float] = field(default_factory=lambda: list(DEFAULT_TASK_OPTIONS))
    rest_duration_seconds: int = DEFAULT_REST_SECONDS
    round_override_minutes: float = DEFAULT_ROUND_OVERRIDE  # 0 = one round for the whole total

    def round_minutes_for(self, total_minutes: float) -> float:
        """Length of a standard round for a session of ``total_minutes``."""
        if self.round_override_minutes > 0:
            return self.round_override_minutes
        return total_minutes

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> Settings:
        if not d or not isinstance(d, dict):
            return cls()
        options = d.get("taskOptions", d.get("task_options"))
        return cls(
            task_options=[float(m) for m in options] if options else list(DEFAULT_TASK_OPTIONS),
            rest_duration_seconds=int(d.get("restDuration", d.get("rest_duration_seconds", DEFAULT_REST_SECONDS))),
            round_override_minutes=float(d.get("timerOverride", d.get("round_override_minutes", DEFAULT_ROUND_OVERRIDE))),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "taskOptions": [_compact(m) for m in self.task_options],
            "restDuration": self.rest_duration_seconds,
            "timerOverride": _compact(self.round_override_minutes),
        }


def _compact(x: float) -> float | int:
    return int(x) if float(x).is_integer() else x


def validate_settings(data: dict[str, Any]) -> list[str]:
    """Validate raw settings and return list of errors (empty if valid)."""
    errors = []
    options = data.get("taskOptions", [])
    if not isinstance(options, list) or not options:
        errors.append("taskOptions must be a non-empty list")
    else:
        for m in options:
            if isinstance(m, bool) or not isinstance(m, (int, float)) or m <= 0:
                errors.append(f"Invalid task option: {m!r}")

    rest = data.get("restDuration", DEFAULT_REST_SECONDS)
    if isinstance(rest, bool) or not isinstance(rest, int) or rest <= 0:
        errors.append("restDuration must be a positive integer (seconds)")

    override = data.get("timerOverride", DEFAULT_ROUND_OVERRIDE)
    if isinstance(override, bool) or not isinstance(override, (int, float)) or override < 0:
        errors.append("timerOverride must be a number >= 0 (minutes)")
    return errors


def load_settings(root: Path | None = None) -> Settings:
    """Load settings.yaml; missing file gives defaults."""
    return Settings.from_dict(read_yaml(settings_path(root)))


def save_settings(settings: Settings, root: Path | None = None) -> None:
    data = settings.to_dict()
    errors = validate_settings(data)
    if errors:
        raise ValueError("; ".join(errors))
    write_yaml_atomic(settings_path(root), data)
