"""A line-oriented pattern engine for exercising the core without tree-sitter."""

from __future__ import annotations

import time

from compass.engine import Anchor
from compass.errors import ParseFailure, PatternCompileError
from compass.languages import LanguageSpec
from compass.rules.base import Rule, RuleSet, Severity


class FakeEngine:
    """Patterns are plain substrings matched line by line.

    ``"!..."`` patterns fail to compile and ``"dup:<token>"`` reports every
    hit twice at the same position.
    """

    def __init__(self, delay: float = 0.0) -> None:
        self.delay = delay
        self.compile_calls: list[str] = []

    def parse(self, language: LanguageSpec, source: bytes) -> list[str]:
        _ = language
        try:
            return source.decode("utf-8").splitlines()
        except UnicodeDecodeError as exc:
            raise ParseFailure(f"source is not valid UTF-8: {exc}") from exc

    def compile(self, language: LanguageSpec, pattern: str) -> str:
        _ = language
        self.compile_calls.append(pattern)
        if pattern.startswith("!"):
            raise PatternCompileError(f"invalid pattern: {pattern}")
        return pattern

    def execute(
        self, compiled: str, tree: list[str], deadline: float | None = None
    ) -> list[Anchor]:
        _ = deadline
        if self.delay:
            time.sleep(self.delay)
        duplicate = compiled.startswith("dup:")
        token = compiled[len("dup:") :] if duplicate else compiled
        anchors: list[Anchor] = []
        for index, line in enumerate(tree, start=1):
            column = line.find(token)
            if column < 0:
                continue
            anchor = Anchor(line=index, column=column + 1, text=line.strip())
            anchors.append(anchor)
            if duplicate:
                anchors.append(anchor)
        return anchors


def make_rule(
    name: str,
    pattern: str,
    severity: Severity = Severity.WARNING,
    *,
    weight: float = 1.0,
    enabled: bool = True,
) -> Rule:
    return Rule(
        name=name,
        pattern=pattern,
        severity=severity,
        message=f"{name} message",
        suggestion=f"{name} suggestion",
        weight=weight,
        enabled=enabled,
    )


def make_rule_set(*rules: Rule, language: str = "cpp") -> RuleSet:
    return RuleSet(language=language, rules=tuple(rules), source="test")
