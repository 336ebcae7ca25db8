"""Report rendering tests."""

from __future__ import annotations

import json

import click

from compass import __version__
from compass.analyzer import FileOutcome
from compass.issues import Issue
from compass.output import (
    build_batch_payload,
    build_json_payload,
    render_batch_human,
    render_human,
    render_json,
)
from compass.registry import CompileFailure
from compass.rules.base import Severity
from compass.scoring import Report, score_issues


def _report() -> Report:
    issues = [
        Issue(
            rule="manual_delete",
            severity=Severity.WARNING,
            line=12,
            column=9,
            message="Manual 'delete' of a raw pointer",
            suggestion="Let a smart pointer own the allocation",
            text="delete p",
        ),
        Issue(
            rule="magic_numbers",
            severity=Severity.INFO,
            line=3,
            column=16,
            message="Magic number",
            suggestion=None,
            text="42",
        ),
    ]
    return score_issues(
        issues,
        warnings=(CompileFailure(rule="broken", message="Invalid node type"),),
        language="cpp",
        path="src/a.cpp",
    )


def test_json_payload_schema() -> None:
    payload = build_json_payload(_report())

    assert set(payload) == {
        "score",
        "max_score",
        "rating",
        "summary",
        "total_issues",
        "breakdown",
        "issues",
        "warnings",
        "meta",
    }
    assert payload["score"] == 8.5
    assert payload["rating"] == "Good"
    assert payload["total_issues"] == 2
    assert [issue["line"] for issue in payload["issues"]] == [3, 12]
    assert payload["issues"][0]["suggestion"] is None
    assert [issue["score_impact"] for issue in payload["issues"]] == [0.5, 1.0]
    assert payload["warnings"] == [{"rule": "broken", "message": "Invalid node type"}]
    assert payload["meta"] == {"language": "cpp", "path": "src/a.cpp", "version": __version__}


def test_render_json_is_deterministic() -> None:
    first = render_json(_report())
    second = render_json(_report())

    assert first == second
    assert json.loads(first)["summary"] == "Good code quality with room for minor improvements"


def test_render_human_lists_issues_and_skipped_rules() -> None:
    text = click.unstyle(render_human(_report()))

    assert "Score: 8.5/10 (Good)" in text
    assert "Issues (2):" in text
    assert "- 3:16 [info] magic_numbers: Magic number" in text
    assert "suggestion: Let a smart pointer own the allocation" in text
    assert "Rules skipped (pattern did not compile):" in text
    assert "- broken: Invalid node type" in text


def test_render_human_without_issues() -> None:
    text = click.unstyle(render_human(score_issues([])))

    assert text.splitlines() == [
        "Score: 10/10 (Excellent)",
        "Excellent code quality with minimal issues",
    ]


def test_batch_payload_separates_failures() -> None:
    outcomes = [
        FileOutcome(path="a.cpp", report=_report()),
        FileOutcome(
            path="b.py",
            error_kind="unsupported_language",
            error_message="unsupported file extension for 'b.py'",
        ),
    ]

    payload = build_batch_payload(outcomes)

    assert payload["failed"] == 1
    assert payload["files"][0]["status"] == "ok"
    assert payload["files"][0]["report"]["score"] == 8.5
    assert payload["files"][1] == {
        "path": "b.py",
        "status": "failed",
        "error": {
            "kind": "unsupported_language",
            "message": "unsupported file extension for 'b.py'",
        },
    }
    assert "score" not in payload["files"][1]


def test_render_batch_human() -> None:
    outcomes = [
        FileOutcome(path="a.cpp", report=_report()),
        FileOutcome(path="b.py", error_kind="unsupported_language", error_message="nope"),
    ]

    lines = click.unstyle(render_batch_human(outcomes)).splitlines()

    assert lines == [
        "a.cpp: 8.5/10 (Good), 2 issues",
        "b.py: FAILED (unsupported_language)",
        "   nope",
    ]
