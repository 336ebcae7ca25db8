"""Rule-set resolution: built-in rules or a user override file."""

from __future__ import annotations

import logging
import math
import tomllib
from dataclasses import dataclass
from functools import lru_cache
from importlib import resources
from pathlib import Path
from typing import Any

from compass.errors import ConfigError
from compass.languages import get_language
from compass.rules.base import Rule, RuleSet, Severity

__all__ = [
    "Rule",
    "RuleInfo",
    "RuleSet",
    "Severity",
    "builtin_rule_set",
    "list_rule_info",
    "load_rule_file",
    "parse_rule_records",
    "resolve_rule_set",
]

logger = logging.getLogger("compass.rules")

REQUIRED_FIELDS = ("name", "query", "severity", "message")


@dataclass(frozen=True, slots=True)
class RuleInfo:
    """Rule metadata for listing."""

    name: str
    severity: str
    weight: float
    enabled: bool
    message: str


def resolve_rule_set(language: str, override_path: Path | None = None) -> RuleSet:
    """Return the active rule set for ``language``.

    With no override the built-in set is used. An override file replaces the
    built-in set entirely; nothing is inherited from it.
    """
    if override_path is None:
        rule_set = builtin_rule_set(language)
    else:
        rule_set = load_rule_file(override_path, language)

    if not rule_set.enabled_rules():
        raise ConfigError(
            f"config '{rule_set.source}' contains no enabled rules for language '{language}'"
        )
    return rule_set


@lru_cache(maxsize=None)
def builtin_rule_set(language: str) -> RuleSet:
    """Load the packaged rules for ``language`` (cached per process)."""
    spec = get_language(language)
    resource = resources.files("compass.rules").joinpath("builtin").joinpath(f"{spec.id}.toml")
    try:
        text = resource.read_text(encoding="utf-8")
    except FileNotFoundError as exc:
        raise ConfigError(f"no built-in rules for language '{spec.id}'") from exc
    return parse_rule_records(_loads(text, f"built-in {spec.id}"), spec.id, f"built-in {spec.id}")


def load_rule_file(path: Path, language: str) -> RuleSet:
    """Load and validate a TOML rule file as the complete set for ``language``."""
    if not path.exists():
        raise ConfigError(f"failed to load config '{path}': file does not exist")
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise ConfigError(f"failed to load config '{path}': {exc}") from exc
    return parse_rule_records(_loads(text, str(path)), get_language(language).id, str(path))


def parse_rule_records(mapping: dict[str, Any], language: str, source: str) -> RuleSet:
    """Validate ``[[rules]]`` records and build a :class:`RuleSet`."""
    raw_rules = mapping.get("rules")
    if raw_rules is None:
        raise ConfigError(f"{source}: missing [[rules]] table")
    if not isinstance(raw_rules, list):
        raise ConfigError(f"{source}: rules must be a list of tables")

    parsed: list[Rule] = []
    for index, record in enumerate(raw_rules):
        if not isinstance(record, dict):
            raise ConfigError(f"{source}: rules[{index}] must be a table")
        parsed.append(_parse_rule(record, language, f"{source}: rules[{index}]"))
    return RuleSet(language=language, rules=tuple(parsed), source=source)


def list_rule_info(rule_set: RuleSet) -> list[RuleInfo]:
    return [
        RuleInfo(
            name=rule.name,
            severity=rule.severity.value,
            weight=rule.weight,
            enabled=rule.enabled,
            message=rule.message,
        )
        for rule in rule_set.rules
    ]


def _loads(text: str, source: str) -> dict[str, Any]:
    try:
        return tomllib.loads(text)
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"invalid TOML in {source}: {exc}") from exc


def _parse_rule(record: dict[str, Any], language: str, where: str) -> Rule:
    missing = [name for name in REQUIRED_FIELDS if name not in record]
    if missing:
        raise ConfigError(f"{where}: missing required field(s): {', '.join(missing)}")

    name = _as_str(record["name"], f"{where}.name")
    where = f"{where} ('{name}')"
    pattern = _as_str(record["query"], f"{where}.query")
    if not pattern.strip():
        raise ConfigError(f"{where}: query must not be empty")

    scope = record.get("language")
    if scope is not None:
        scope = _as_str(scope, f"{where}.language").lower()
        if scope != language:
            logger.debug("rule %s declares language %s, loaded for %s", name, scope, language)

    suggestion = record.get("suggestion")
    return Rule(
        name=name,
        pattern=pattern,
        severity=Severity.parse(_as_str(record["severity"], f"{where}.severity")),
        message=_as_str(record["message"], f"{where}.message"),
        suggestion=None if suggestion is None else _as_text(suggestion, f"{where}.suggestion"),
        weight=_as_weight(record.get("weight", 1.0), f"{where}.weight"),
        enabled=_as_bool(record.get("enabled", True), f"{where}.enabled"),
        language_scope=scope,
    )


def _as_str(value: Any, field_name: str) -> str:
    if not isinstance(value, str) or not value:
        raise ConfigError(f"{field_name} must be a non-empty string")
    return value


def _as_bool(raw: Any, field_name: str) -> bool:
    if not isinstance(raw, bool):
        raise ConfigError(f"{field_name} must be a boolean")
    return raw


def _as_weight(raw: Any, field_name: str) -> float:
    if isinstance(raw, bool) or not isinstance(raw, (int, float)):
        raise ConfigError(f"{field_name} must be a number")
    weight = float(raw)
    if not math.isfinite(weight) or weight <= 0:
        raise ConfigError(f"{field_name} must be a positive number, got {raw}")
    return weight


def _as_text(value: Any, field_name: str) -> str:
    if not isinstance(value, str):
        raise ConfigError(f"{field_name} must be a string")
    return value
