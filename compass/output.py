"""Output rendering."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

import click

from compass import __version__
from compass.scoring import Rating, Report

if TYPE_CHECKING:
    from compass.analyzer import FileOutcome

_RATING_COLORS = {
    Rating.EXCELLENT: "green",
    Rating.GOOD: "green",
    Rating.FAIR: "yellow",
    Rating.POOR: "red",
    Rating.CRITICAL: "red",
}


def render_human(report: Report) -> str:
    """Render a compact colorized summary."""
    lines: list[str] = [
        click.style(
            f"Score: {report.score:g}/{report.max_score:g} ({report.rating.value})",
            fg=_RATING_COLORS[report.rating],
            bold=True,
        ),
        report.summary,
    ]

    if report.issues:
        lines.append(click.style(f"Issues ({report.total_issues}):", bold=True))
        for issue in report.issues:
            lines.append(
                f"- {issue.line}:{issue.column} [{issue.severity.value}] {issue.rule}: "
                f"{issue.message}"
            )
            if issue.suggestion:
                lines.append(f"   suggestion: {issue.suggestion}")

    if report.warnings:
        lines.append(click.style("Rules skipped (pattern did not compile):", bold=True))
        for failure in report.warnings:
            lines.append(f"- {failure.rule}: {failure.message}")
    return "\n".join(lines)


def render_json(report: Report) -> str:
    """Render stable JSON output for CI and feedback loops."""
    return json.dumps(build_json_payload(report), sort_keys=True, indent=2)


def build_json_payload(report: Report) -> dict[str, Any]:
    """Build the report document; no volatile fields, so reruns are byte-identical."""
    return {
        "score": report.score,
        "max_score": report.max_score,
        "rating": report.rating.value,
        "summary": report.summary,
        "total_issues": report.total_issues,
        "breakdown": report.breakdown.to_dict(),
        "issues": [issue.to_dict() for issue in report.issues],
        "warnings": [failure.to_dict() for failure in report.warnings],
        "meta": {
            "language": report.language,
            "path": report.path,
            "version": __version__,
        },
    }


def render_batch_json(outcomes: list[FileOutcome]) -> str:
    return json.dumps(build_batch_payload(outcomes), sort_keys=True, indent=2)


def build_batch_payload(outcomes: list[FileOutcome]) -> dict[str, Any]:
    """Per-file results; a failed file carries an error and never a score."""
    files: list[dict[str, Any]] = []
    for outcome in outcomes:
        if outcome.report is not None:
            files.append(
                {
                    "path": outcome.path,
                    "status": "ok",
                    "report": build_json_payload(outcome.report),
                }
            )
        else:
            files.append(
                {
                    "path": outcome.path,
                    "status": "failed",
                    "error": {"kind": outcome.error_kind, "message": outcome.error_message},
                }
            )
    return {
        "files": files,
        "failed": sum(1 for outcome in outcomes if outcome.report is None),
        "meta": {"version": __version__},
    }


def render_batch_human(outcomes: list[FileOutcome]) -> str:
    lines: list[str] = []
    for outcome in outcomes:
        if outcome.report is None:
            lines.append(
                click.style(f"{outcome.path}: FAILED ({outcome.error_kind})", fg="red", bold=True)
            )
            lines.append(f"   {outcome.error_message}")
            continue
        report = outcome.report
        lines.append(
            click.style(
                f"{outcome.path}: {report.score:g}/{report.max_score:g} ({report.rating.value}), "
                f"{report.total_issues} issues",
                fg=_RATING_COLORS[report.rating],
            )
        )
    return "\n".join(lines)
