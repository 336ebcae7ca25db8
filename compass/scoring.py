"""Aggregate issues into a bounded score, a rating and a summary."""

from __future__ import annotations

import math
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from enum import Enum
from types import MappingProxyType

from compass.errors import ConfigError
from compass.issues import Issue
from compass.registry import CompileFailure
from compass.rules.base import Severity

DEFAULT_MAX_SCORE = 10.0
SCORE_DECIMALS = 2


class Rating(Enum):
    """Discrete quality label, best first."""

    EXCELLENT = "Excellent"
    GOOD = "Good"
    FAIR = "Fair"
    POOR = "Poor"
    CRITICAL = "Critical"


DEFAULT_PENALTIES: Mapping[Severity, float] = MappingProxyType(
    {
        Severity.ERROR: 2.0,
        Severity.WARNING: 1.0,
        Severity.INFO: 0.5,
        Severity.STYLE: 0.25,
    }
)

# Minimum score/max_score ratio for each rating; anything lower is Critical.
DEFAULT_THRESHOLDS: Mapping[Rating, float] = MappingProxyType(
    {
        Rating.EXCELLENT: 0.90,
        Rating.GOOD: 0.75,
        Rating.FAIR: 0.50,
        Rating.POOR: 0.30,
    }
)

SUMMARIES: Mapping[Rating, str] = MappingProxyType(
    {
        Rating.EXCELLENT: "Excellent code quality with minimal issues",
        Rating.GOOD: "Good code quality with room for minor improvements",
        Rating.FAIR: "Code needs improvement in several areas",
        Rating.POOR: "Code has significant quality problems that should be addressed",
        Rating.CRITICAL: "Code has critical issues that need immediate attention",
    }
)


@dataclass(frozen=True, slots=True)
class ScoringPolicy:
    """Tunable scoring constants.

    ``penalties`` must cover every severity and be non-negative;
    ``thresholds`` must be ratios in [0, 1] that do not increase from
    Excellent down to Poor.
    """

    max_score: float = DEFAULT_MAX_SCORE
    penalties: Mapping[Severity, float] = field(default_factory=lambda: dict(DEFAULT_PENALTIES))
    thresholds: Mapping[Rating, float] = field(
        default_factory=lambda: dict(DEFAULT_THRESHOLDS)
    )

    def __post_init__(self) -> None:
        if not math.isfinite(self.max_score) or self.max_score <= 0:
            raise ConfigError(f"max_score must be a positive number, got {self.max_score}")

        missing = [item.value for item in Severity if item not in self.penalties]
        if missing:
            raise ConfigError(f"missing penalties for: {', '.join(missing)}")
        for severity, penalty in self.penalties.items():
            if not math.isfinite(penalty) or penalty < 0:
                raise ConfigError(f"penalty for {severity.value} must be >= 0, got {penalty}")

        previous = 1.0
        for rating in (Rating.EXCELLENT, Rating.GOOD, Rating.FAIR, Rating.POOR):
            if rating not in self.thresholds:
                raise ConfigError(f"missing rating threshold for {rating.value}")
            ratio = self.thresholds[rating]
            if not 0.0 <= ratio <= previous:
                raise ConfigError(
                    f"rating threshold for {rating.value} must be within [0, {previous}],"
                    f" got {ratio}"
                )
            previous = ratio

    def penalty(self, issue: Issue) -> float:
        return self.penalties[issue.severity] * issue.weight

    def rate(self, score: float) -> Rating:
        ratio = score / self.max_score
        for rating in (Rating.EXCELLENT, Rating.GOOD, Rating.FAIR, Rating.POOR):
            if ratio >= self.thresholds[rating]:
                return rating
        return Rating.CRITICAL


@dataclass(frozen=True, slots=True)
class ScoreBreakdown:
    """Issue counts and deductions per severity."""

    counts: Mapping[Severity, int]
    deductions: Mapping[Severity, float]

    @property
    def total_deduction(self) -> float:
        return math.fsum(self.deductions.values())

    def to_dict(self) -> dict[str, dict[str, float]]:
        return {
            "counts": {severity.value: self.counts[severity] for severity in Severity},
            "deductions": {
                severity.value: round(self.deductions[severity], SCORE_DECIMALS)
                for severity in Severity
            },
        }


@dataclass(frozen=True, slots=True)
class Report:
    """Terminal, immutable evaluation result for one file."""

    score: float
    max_score: float
    rating: Rating
    summary: str
    issues: tuple[Issue, ...]
    breakdown: ScoreBreakdown
    warnings: tuple[CompileFailure, ...] = ()
    language: str | None = None
    path: str | None = None

    @property
    def total_issues(self) -> int:
        return len(self.issues)


def score_issues(
    issues: list[Issue],
    policy: ScoringPolicy | None = None,
    *,
    warnings: tuple[CompileFailure, ...] = (),
    language: str | None = None,
    path: str | None = None,
) -> Report:
    """Score deduplicated ``issues``.

    ``score = clamp(max_score - sum(penalty * weight), 0, max_score)``; the sum
    uses :func:`math.fsum` so it does not depend on issue order.
    """
    active = policy or ScoringPolicy()
    ordered = [
        replace(issue, score_impact=round(active.penalty(issue), SCORE_DECIMALS))
        for issue in sorted(issues, key=lambda issue: issue.sort_key)
    ]

    per_severity: dict[Severity, list[float]] = {severity: [] for severity in Severity}
    for issue in ordered:
        per_severity[issue.severity].append(active.penalty(issue))

    breakdown = ScoreBreakdown(
        counts={severity: len(values) for severity, values in per_severity.items()},
        deductions={severity: math.fsum(values) for severity, values in per_severity.items()},
    )
    total_penalty = math.fsum(value for values in per_severity.values() for value in values)
    score = round(_clamp(active.max_score - total_penalty, 0.0, active.max_score), SCORE_DECIMALS)
    rating = active.rate(score)

    return Report(
        score=score,
        max_score=active.max_score,
        rating=rating,
        summary=SUMMARIES[rating],
        issues=tuple(ordered),
        breakdown=breakdown,
        warnings=warnings,
        language=language,
        path=path,
    )


def _clamp(value: float, lower: float, upper: float) -> float:
    return max(lower, min(upper, value))
