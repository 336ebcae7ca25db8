"""Turn raw matches into deduplicated, ordered issues."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

from compass.matching import Match
from compass.rules.base import Severity


@dataclass(frozen=True, slots=True)
class Issue:
    """One reported finding, derived from exactly one deduplicated match.

    ``score_impact`` stays 0.0 until the scorer fills in penalty times weight.
    """

    rule: str
    severity: Severity
    line: int
    column: int
    message: str
    suggestion: str | None
    weight: float = 1.0
    text: str = ""
    score_impact: float = 0.0

    @property
    def sort_key(self) -> tuple[int, str, int]:
        return (self.line, self.rule, self.column)

    def to_dict(self) -> dict[str, Any]:
        return {
            "rule": self.rule,
            "severity": self.severity.value,
            "line": self.line,
            "column": self.column,
            "message": self.message,
            "suggestion": self.suggestion,
            "text": self.text,
            "score_impact": self.score_impact,
        }


def build_issues(matches: Iterable[Match]) -> list[Issue]:
    """Collapse matches sharing (rule, line, column) and sort by line, then rule."""
    unique: dict[tuple[str, int, int], Match] = {}
    for match in matches:
        kept = unique.get(match.key)
        if kept is None or match.anchor.end_byte < kept.anchor.end_byte:
            unique[match.key] = match

    issues = [_to_issue(match) for match in unique.values()]
    issues.sort(key=lambda issue: issue.sort_key)
    return issues


def _to_issue(match: Match) -> Issue:
    rule = match.rule
    return Issue(
        rule=rule.name,
        severity=rule.severity,
        line=match.anchor.line,
        column=match.anchor.column,
        message=rule.message,
        suggestion=rule.suggestion,
        weight=rule.weight,
        text=match.anchor.text,
    )
