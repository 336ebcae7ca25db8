"""Project settings loading for compass."""

from __future__ import annotations

import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from compass.errors import ConfigError
from compass.rules.base import Severity
from compass.scoring import (
    DEFAULT_MAX_SCORE,
    DEFAULT_PENALTIES,
    DEFAULT_THRESHOLDS,
    Rating,
    ScoringPolicy,
)

CONFIG_FILENAMES = (".compass.toml", "compass.toml")
PYPROJECT_FILENAME = "pyproject.toml"
PYPROJECT_TOOL_KEY = "compass"

DEFAULT_TIMEOUT_SECONDS = 10.0
DEFAULT_WORKERS = 4

_RATING_KEYS = {
    "excellent": Rating.EXCELLENT,
    "good": Rating.GOOD,
    "fair": Rating.FAIR,
    "poor": Rating.POOR,
}


@dataclass(slots=True)
class AppConfig:
    """Runtime settings resolved from project files."""

    format: str = "json"
    fail_below: float | None = None
    timeout_seconds: float | None = DEFAULT_TIMEOUT_SECONDS
    workers: int = DEFAULT_WORKERS
    scoring: ScoringPolicy = field(default_factory=ScoringPolicy)
    source: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "format": self.format,
            "fail_below": self.fail_below,
            "timeout_seconds": self.timeout_seconds,
            "workers": self.workers,
            "scoring": {
                "max_score": self.scoring.max_score,
                "penalties": {
                    severity.value: self.scoring.penalties[severity] for severity in Severity
                },
                "ratings": {
                    key: self.scoring.thresholds[rating] for key, rating in _RATING_KEYS.items()
                },
            },
            "source": self.source,
        }


def load_app_config(root: Path, config_path: Path | None = None) -> AppConfig:
    """Load settings from an explicit path or project-local files with precedence."""
    root = root.resolve()
    if config_path is not None:
        resolved = config_path if config_path.is_absolute() else (root / config_path)
        if not resolved.exists():
            raise ConfigError(f"Settings file does not exist: {resolved}")
        mapping = _extract_config_mapping(_load_toml(resolved), source_path=resolved)
        return _from_mapping(mapping, source=str(resolved))

    for filename in CONFIG_FILENAMES:
        resolved = root / filename
        if resolved.exists():
            mapping = _extract_config_mapping(_load_toml(resolved), source_path=resolved)
            return _from_mapping(mapping, source=str(resolved))

    pyproject_path = root / PYPROJECT_FILENAME
    if pyproject_path.exists():
        mapping = _extract_config_mapping(_load_toml(pyproject_path), source_path=pyproject_path)
        if mapping:
            return _from_mapping(mapping, source=str(pyproject_path))

    return AppConfig()


def default_config_template() -> str:
    """Return a starter settings file."""
    return "\n".join(
        [
            'format = "json"',
            "# fail_below = 7.5",
            f"timeout_seconds = {DEFAULT_TIMEOUT_SECONDS}",
            f"workers = {DEFAULT_WORKERS}",
            "",
            "[scoring]",
            f"max_score = {DEFAULT_MAX_SCORE}",
            "",
            "[scoring.penalties]",
            *(f"{severity.value} = {DEFAULT_PENALTIES[severity]}" for severity in Severity),
            "",
            "[scoring.ratings]",
            *(f"{key} = {DEFAULT_THRESHOLDS[rating]}" for key, rating in _RATING_KEYS.items()),
            "",
        ]
    )


def _load_toml(path: Path) -> dict[str, Any]:
    try:
        with path.open("rb") as file_obj:
            loaded = tomllib.load(file_obj)
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"Invalid TOML in {path}: {exc}") from exc
    if not isinstance(loaded, dict):
        return {}
    return loaded


def _extract_config_mapping(loaded: dict[str, Any], *, source_path: Path) -> dict[str, Any]:
    tool_section = _find_pyproject_tool_section(loaded)
    if source_path.name == PYPROJECT_FILENAME:
        return tool_section if tool_section is not None else {}
    if tool_section is not None:
        return tool_section
    return loaded


def _find_pyproject_tool_section(loaded: dict[str, Any]) -> dict[str, Any] | None:
    tool = loaded.get("tool")
    if not isinstance(tool, dict):
        return None
    section = tool.get(PYPROJECT_TOOL_KEY)
    if isinstance(section, dict):
        return section
    return None


def _from_mapping(mapping: dict[str, Any], *, source: str) -> AppConfig:
    format_value = _as_choice(mapping.get("format", "json"), {"human", "json"}, "format")

    raw_fail = mapping.get("fail_below")
    fail_value = None if raw_fail is None else _as_float(raw_fail, "fail_below")

    raw_timeout = mapping.get("timeout_seconds", DEFAULT_TIMEOUT_SECONDS)
    timeout = _as_float(raw_timeout, "timeout_seconds")
    if timeout < 0:
        raise ConfigError("timeout_seconds must be >= 0 (0 disables the bound)")

    workers = _as_int(mapping.get("workers", DEFAULT_WORKERS), "workers")
    if workers <= 0:
        raise ConfigError("workers must be > 0")

    return AppConfig(
        format=format_value,
        fail_below=fail_value,
        timeout_seconds=timeout or None,
        workers=workers,
        scoring=_parse_scoring(_as_table(mapping.get("scoring"), "scoring")),
        source=source,
    )


def _parse_scoring(value: dict[str, Any]) -> ScoringPolicy:
    penalties_table = _as_table(value.get("penalties"), "scoring.penalties")
    ratings_table = _as_table(value.get("ratings"), "scoring.ratings")

    penalties = dict(DEFAULT_PENALTIES)
    for key, raw in penalties_table.items():
        severity = Severity.parse(key)
        penalties[severity] = _as_float(raw, f"scoring.penalties.{key}")

    thresholds = dict(DEFAULT_THRESHOLDS)
    for key, raw in ratings_table.items():
        rating = _RATING_KEYS.get(key.lower())
        if rating is None:
            choices = ", ".join(_RATING_KEYS)
            raise ConfigError(f"scoring.ratings keys must be one of: {choices}")
        thresholds[rating] = _as_float(raw, f"scoring.ratings.{key}")

    return ScoringPolicy(
        max_score=_as_float(value.get("max_score", DEFAULT_MAX_SCORE), "scoring.max_score"),
        penalties=penalties,
        thresholds=thresholds,
    )


def _as_table(value: Any, field_name: str) -> dict[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ConfigError(f"{field_name} must be a table/object")
    return value


def _as_choice(raw: Any, allowed: set[str], field_name: str) -> str:
    value = str(raw).lower()
    if value not in allowed:
        choices = ", ".join(sorted(allowed))
        raise ConfigError(f"{field_name} must be one of: {choices}")
    return value


def _as_int(raw: Any, field_name: str) -> int:
    if isinstance(raw, bool) or not isinstance(raw, int):
        raise ConfigError(f"{field_name} must be an integer")
    return raw


def _as_float(raw: Any, field_name: str) -> float:
    if isinstance(raw, bool) or not isinstance(raw, (int, float)):
        raise ConfigError(f"{field_name} must be a number")
    return float(raw)
