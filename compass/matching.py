"""Run compiled patterns against a parsed file."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from compass.engine import Anchor, PatternEngine
from compass.registry import PatternRegistry
from compass.rules.base import Rule, RuleSet


@dataclass(frozen=True, slots=True)
class Match:
    """A raw pattern hit: the producing rule and where it landed."""

    rule: Rule
    anchor: Anchor

    @property
    def key(self) -> tuple[str, int, int]:
        return (self.rule.name, self.anchor.line, self.anchor.column)


def execute_patterns(
    registry: PatternRegistry,
    rule_set: RuleSet,
    tree: Any,
    engine: PatternEngine,
    deadline: float | None = None,
) -> list[Match]:
    """Execute every compiled pattern independently and collect raw matches.

    Collection order follows the registry and carries no meaning; callers
    sort after deduplication. ``deadline`` is handed to the engine unchanged.
    """
    if tree is None:
        return []

    matches: list[Match] = []
    for rule_name, compiled in registry.compiled.items():
        rule = rule_set.get(rule_name)
        if rule is None:
            continue
        for anchor in engine.execute(compiled, tree, deadline):
            matches.append(Match(rule=rule, anchor=anchor))
    return matches
