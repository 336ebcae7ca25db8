"""Compiled-pattern registry shared across file evaluations."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from threading import Lock
from types import MappingProxyType
from typing import Any

from compass.engine import PatternEngine
from compass.errors import PatternCompileError
from compass.languages import LanguageSpec, get_language
from compass.rules.base import RuleSet

logger = logging.getLogger("compass.registry")


@dataclass(frozen=True, slots=True)
class CompileFailure:
    """A rule whose pattern did not compile and was dropped from execution."""

    rule: str
    message: str

    def to_dict(self) -> dict[str, str]:
        return {"rule": self.rule, "message": self.message}


@dataclass(frozen=True, slots=True)
class PatternRegistry:
    """Read-only mapping of rule name to compiled pattern for one rule set."""

    language: LanguageSpec
    key: tuple[str, str]
    compiled: Mapping[str, Any]
    failures: tuple[CompileFailure, ...]

    def __len__(self) -> int:
        return len(self.compiled)


_CACHE: dict[tuple[object, str, str], PatternRegistry] = {}
_CACHE_LOCK = Lock()


def build_registry(rule_set: RuleSet, engine: PatternEngine) -> PatternRegistry:
    """Compile every enabled rule once; a bad pattern never blocks the others."""
    language = get_language(rule_set.language)
    compiled: dict[str, Any] = {}
    failures: list[CompileFailure] = []
    for rule in rule_set.enabled_rules():
        try:
            compiled[rule.name] = engine.compile(language, rule.pattern)
        except PatternCompileError as exc:
            logger.warning("rule %s dropped: pattern failed to compile: %s", rule.name, exc)
            failures.append(CompileFailure(rule=rule.name, message=str(exc)))

    logger.debug(
        "compiled %d/%d patterns for %s (%s)",
        len(compiled),
        len(rule_set.enabled_rules()),
        language.id,
        rule_set.source,
    )
    return PatternRegistry(
        language=language,
        key=(language.id, rule_set.fingerprint()),
        compiled=MappingProxyType(compiled),
        failures=tuple(failures),
    )


def get_registry(rule_set: RuleSet, engine: PatternEngine) -> PatternRegistry:
    """Return the cached registry for ``rule_set``, building it on first use.

    Entries are keyed by (engine, language, rule-set fingerprint)
    and are never mutated once stored.
    """
    cache_key = (engine, rule_set.language, rule_set.fingerprint())
    with _CACHE_LOCK:
        cached = _CACHE.get(cache_key)
        if cached is not None:
            logger.debug("registry cache hit for %s", rule_set.language)
            return cached
        registry = build_registry(rule_set, engine)
        _CACHE[cache_key] = registry
        return registry


def clear_registry_cache() -> None:
    with _CACHE_LOCK:
        _CACHE.clear()
