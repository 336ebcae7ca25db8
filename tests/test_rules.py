"""Rule-set resolution and validation tests."""

from __future__ import annotations

from pathlib import Path

import pytest

from compass.errors import ConfigError
from compass.languages import LANGUAGES
from compass.rules import (
    builtin_rule_set,
    list_rule_info,
    load_rule_file,
    parse_rule_records,
    resolve_rule_set,
)
from compass.rules.base import Rule, RuleSet, Severity


@pytest.mark.parametrize("language_id", [spec.id for spec in LANGUAGES])
def test_every_language_ships_builtin_rules(language_id: str) -> None:
    rule_set = builtin_rule_set(language_id)
    assert rule_set.language == language_id
    assert rule_set.enabled_rules()
    assert rule_set.source == f"built-in {language_id}"


def test_builtin_rule_set_is_cached() -> None:
    assert builtin_rule_set("rust") is builtin_rule_set("rust")


def test_override_file_replaces_builtin_rules(tmp_path: Path) -> None:
    override = _write_rules(
        tmp_path,
        [
            'name = "only_rule"',
            'query = "(number_literal) @issue"',
            'severity = "info"',
            'message = "number"',
        ],
    )

    rule_set = resolve_rule_set("cpp", override)

    assert [rule.name for rule in rule_set.rules] == ["only_rule"]
    builtin_names = {rule.name for rule in builtin_rule_set("cpp").rules}
    assert builtin_names.isdisjoint(rule.name for rule in rule_set.rules)
    assert rule_set.source == str(override)


def test_override_with_builtin_names_keeps_only_override_fields(tmp_path: Path) -> None:
    override = _write_rules(
        tmp_path,
        [
            'name = "manual_delete"',
            'query = "(delete_expression) @issue"',
            'severity = "error"',
            'message = "custom"',
            "weight = 3",
        ],
    )

    rule_set = resolve_rule_set("cpp", override)

    assert len(rule_set) == 1
    rule = rule_set.get("manual_delete")
    assert rule is not None
    assert rule.severity is Severity.ERROR
    assert rule.weight == 3.0
    assert rule.suggestion is None


def test_defaults_for_optional_fields() -> None:
    rule_set = parse_rule_records(
        {
            "rules": [
                {
                    "name": "r",
                    "query": "(x) @issue",
                    "severity": "Warning",
                    "message": "m",
                }
            ]
        },
        "cpp",
        "inline",
    )
    rule = rule_set.rules[0]
    assert rule.enabled is True
    assert rule.weight == 1.0
    assert rule.severity is Severity.WARNING
    assert rule.language_scope is None


def test_disabled_rules_are_kept_but_not_enabled() -> None:
    rule_set = parse_rule_records(
        {
            "rules": [
                _record("on"),
                {**_record("off"), "enabled": False},
            ]
        },
        "go",
        "inline",
    )
    assert [rule.name for rule in rule_set.rules] == ["on", "off"]
    assert [rule.name for rule in rule_set.enabled_rules()] == ["on"]


def test_legacy_language_field_is_informational() -> None:
    rule_set = parse_rule_records(
        {"rules": [{**_record("r"), "language": "Rust"}]},
        "go",
        "inline",
    )
    assert rule_set.rules[0].language_scope == "rust"
    assert rule_set.enabled_rules()


_VALID = {"name": "r", "query": "q", "severity": "error", "message": "m"}


@pytest.mark.parametrize(
    ("record", "expected"),
    [
        ({"query": "q", "severity": "error", "message": "m"}, "missing required field"),
        ({"name": "r", "severity": "error", "message": "m"}, "query"),
        ({**_VALID, "severity": "fatal"}, "severity"),
        ({**_VALID, "weight": 0}, "weight"),
        ({**_VALID, "weight": -1.5}, "weight"),
        ({**_VALID, "weight": True}, "weight"),
        ({**_VALID, "enabled": "yes"}, "enabled"),
        ({**_VALID, "query": "   "}, "query"),
        ({**_VALID, "suggestion": 3}, "suggestion"),
    ],
)
def test_invalid_records_raise_config_error(record: dict[str, object], expected: str) -> None:
    with pytest.raises(ConfigError) as exc_info:
        parse_rule_records({"rules": [record]}, "cpp", "inline")
    assert expected in str(exc_info.value)


def test_duplicate_rule_names_are_rejected() -> None:
    with pytest.raises(ConfigError, match="duplicate rule name 'dup'"):
        parse_rule_records({"rules": [_record("dup"), _record("dup")]}, "cpp", "inline")


def test_rule_set_constructor_rejects_duplicates() -> None:
    rule = Rule(name="a", pattern="p", severity=Severity.INFO, message="m")
    with pytest.raises(ConfigError):
        RuleSet(language="cpp", rules=(rule, rule))


def test_missing_rules_table_is_rejected() -> None:
    with pytest.raises(ConfigError, match="missing"):
        parse_rule_records({}, "cpp", "inline")


def test_invalid_toml_is_config_error(tmp_path: Path) -> None:
    path = tmp_path / "broken.toml"
    path.write_text("[[rules]\nname = ", encoding="utf-8")
    with pytest.raises(ConfigError, match="invalid TOML"):
        load_rule_file(path, "cpp")


def test_missing_override_file_is_config_error(tmp_path: Path) -> None:
    with pytest.raises(ConfigError, match="does not exist"):
        resolve_rule_set("cpp", tmp_path / "nope.toml")


def test_override_without_enabled_rules_is_rejected(tmp_path: Path) -> None:
    override = _write_rules(
        tmp_path,
        [
            'name = "off"',
            'query = "(x) @issue"',
            'severity = "style"',
            'message = "m"',
            "enabled = false",
        ],
    )
    with pytest.raises(ConfigError, match="no enabled rules"):
        resolve_rule_set("cpp", override)


def test_fingerprint_tracks_enabled_patterns_only() -> None:
    base = parse_rule_records({"rules": [_record("a"), _record("b")]}, "cpp", "x")
    same = parse_rule_records({"rules": [_record("a"), _record("b")]}, "cpp", "y")
    disabled = parse_rule_records(
        {"rules": [_record("a"), {**_record("b"), "enabled": False}]}, "cpp", "x"
    )
    other_language = parse_rule_records({"rules": [_record("a"), _record("b")]}, "go", "x")

    assert base.fingerprint() == same.fingerprint()
    assert base.fingerprint() != disabled.fingerprint()
    assert base.fingerprint() != other_language.fingerprint()


def test_list_rule_info_reports_enabled_state() -> None:
    rule_set = parse_rule_records(
        {"rules": [_record("a"), {**_record("b"), "enabled": False, "weight": 2.5}]},
        "cpp",
        "inline",
    )
    info = {item.name: item for item in list_rule_info(rule_set)}
    assert info["a"].enabled is True
    assert info["b"].enabled is False
    assert info["b"].weight == 2.5
    assert info["b"].severity == "warning"


def _record(name: str) -> dict[str, object]:
    return {
        "name": name,
        "query": f"({name}) @issue",
        "severity": "warning",
        "message": f"{name} message",
        "suggestion": f"{name} suggestion",
    }


def _write_rules(tmp_path: Path, body: list[str]) -> Path:
    path = tmp_path / "rules.toml"
    path.write_text("\n".join(["[[rules]]", *body, ""]), encoding="utf-8")
    return path
