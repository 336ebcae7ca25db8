"""CLI entrypoint for compass."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Annotated, NoReturn

import typer

from compass import __version__
from compass.analyzer import default_engine, evaluate_batch, evaluate_file
from compass.config import AppConfig, default_config_template, load_app_config
from compass.errors import CompassError
from compass.languages import LanguageSpec, get_language, resolve_language
from compass.output import render_batch_human, render_batch_json, render_human, render_json
from compass.registry import build_registry
from compass.rules import list_rule_info, load_rule_file, resolve_rule_set

app = typer.Typer(
    name="compass",
    no_args_is_help=True,
    help="Score source files against structural quality rules.",
)


def version_callback(value: bool) -> None:
    """Print version and exit when --version is provided."""
    if value:
        typer.echo(__version__)
        raise typer.Exit()


@app.callback()
def main_callback(
    version: Annotated[
        bool,
        typer.Option("--version", help="Show version and exit.", callback=version_callback),
    ] = False,
    verbose: Annotated[
        bool, typer.Option("--verbose", "-v", help="Log debug details to stderr.")
    ] = False,
) -> None:
    """Root command callback."""
    _ = version
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


@app.command("analyze")
def analyze_command(
    source: Annotated[Path, typer.Argument(help="Source file to evaluate.")],
    rules: Annotated[
        Path | None,
        typer.Argument(help="Rule file replacing the built-in rules for this language."),
    ] = None,
    format: Annotated[
        str | None, typer.Option(help="Output format: json|human.", show_default="json")
    ] = None,
    fail_below: Annotated[
        float | None, typer.Option(help="Exit nonzero if the score is below this value.")
    ] = None,
    timeout: Annotated[
        float | None, typer.Option(help="Seconds allowed for pattern execution (0 disables).")
    ] = None,
    settings: Annotated[
        Path | None, typer.Option("--settings", help="Path to a compass settings TOML file.")
    ] = None,
) -> None:
    """Evaluate one file and print its quality report."""
    app_config = _load_config_or_exit(settings)
    output_format = _resolve_format(format, app_config)

    try:
        report = evaluate_file(
            source,
            rules,
            policy=app_config.scoring,
            timeout_seconds=_resolve_timeout(timeout, app_config),
        )
    except CompassError as exc:
        _fail(exc)

    if output_format == "json":
        typer.echo(render_json(report))
    else:
        typer.echo(render_human(report))

    threshold = fail_below if fail_below is not None else app_config.fail_below
    if threshold is not None and report.score < threshold:
        raise typer.Exit(code=1)


@app.command("batch")
def batch_command(
    sources: Annotated[list[Path], typer.Argument(help="Source files to evaluate.")],
    rules: Annotated[
        Path | None,
        typer.Option("--rules", help="Rule file replacing the built-in rules."),
    ] = None,
    workers: Annotated[int | None, typer.Option(help="Parallel evaluations.")] = None,
    format: Annotated[
        str | None, typer.Option(help="Output format: json|human.", show_default="json")
    ] = None,
    timeout: Annotated[
        float | None, typer.Option(help="Seconds allowed per file (0 disables).")
    ] = None,
    settings: Annotated[
        Path | None, typer.Option("--settings", help="Path to a compass settings TOML file.")
    ] = None,
) -> None:
    """Evaluate several files in parallel; failed files are reported, not fatal."""
    app_config = _load_config_or_exit(settings)
    output_format = _resolve_format(format, app_config)
    worker_count = workers if workers is not None else app_config.workers
    if worker_count <= 0:
        raise typer.BadParameter("workers must be > 0", param_hint="--workers")

    outcomes = evaluate_batch(
        sources,
        rules,
        policy=app_config.scoring,
        timeout_seconds=_resolve_timeout(timeout, app_config),
        workers=worker_count,
    )
    if output_format == "json":
        typer.echo(render_batch_json(outcomes))
    else:
        typer.echo(render_batch_human(outcomes))

    if any(not outcome.ok for outcome in outcomes):
        raise typer.Exit(code=1)


@app.command("rules")
def rules_command(
    language: Annotated[str, typer.Argument(help="Language id or a file with its extension.")],
    rules: Annotated[
        Path | None,
        typer.Option("--rules", help="Rule file replacing the built-in rules."),
    ] = None,
    format: Annotated[str, typer.Option(help="Output format: human|json.")] = "human",
) -> None:
    """List the rules active for a language."""
    output_format = _check_format(format)
    try:
        spec = _language_from_argument(language)
        rule_set = resolve_rule_set(spec.id, rules)
    except CompassError as exc:
        _fail(exc)

    rule_info = list_rule_info(rule_set)
    if output_format == "json":
        payload = {
            "rules": [
                {
                    "name": item.name,
                    "severity": item.severity,
                    "weight": item.weight,
                    "enabled": item.enabled,
                    "message": item.message,
                }
                for item in rule_info
            ],
            "meta": {"language": spec.id, "source": rule_set.source},
        }
        typer.echo(json.dumps(payload, sort_keys=True))
        return

    lines = [f"Rules for {spec.display_name} ({rule_set.source}):"]
    for item in rule_info:
        status = "enabled" if item.enabled else "disabled"
        lines.append(
            f"- {item.name} [{item.severity}, x{item.weight:g}, {status}] - {item.message}"
        )
    typer.echo("\n".join(lines))


@app.command("validate")
def validate_command(
    rules: Annotated[Path, typer.Argument(help="Rule file to validate.")],
    language: Annotated[str, typer.Option("--language", "-l", help="Target language id.")],
    format: Annotated[str, typer.Option(help="Output format: human|json.")] = "human",
) -> None:
    """Validate a rule file and compile every enabled pattern."""
    output_format = _check_format(format)
    try:
        spec = get_language(language)
        rule_set = load_rule_file(rules, spec.id)
        registry = build_registry(rule_set, default_engine())
    except CompassError as exc:
        _fail(exc)

    payload = {
        "ok": not registry.failures,
        "source": rule_set.source,
        "language": spec.id,
        "compiled": sorted(registry.compiled),
        "failures": [failure.to_dict() for failure in registry.failures],
    }
    if output_format == "json":
        typer.echo(json.dumps(payload, sort_keys=True))
    else:
        lines = [
            "Rule file is valid." if payload["ok"] else "Rule file has invalid patterns.",
            f"- source: {payload['source']}",
            f"- compiled: {payload['compiled']}",
        ]
        for failure in registry.failures:
            lines.append(f"- failed: {failure.rule}: {failure.message}")
        typer.echo("\n".join(lines))

    if registry.failures:
        raise typer.Exit(code=1)


@app.command("config")
def config_command(
    format: Annotated[str, typer.Option(help="Output format: human|json.")] = "human",
    settings: Annotated[
        Path | None, typer.Option("--settings", help="Path to a compass settings TOML file.")
    ] = None,
) -> None:
    """Show resolved settings."""
    output_format = _check_format(format)
    app_config = _load_config_or_exit(settings)
    payload = app_config.to_dict()

    if output_format == "json":
        typer.echo(json.dumps(payload, sort_keys=True))
        return

    lines = [
        "Resolved settings:",
        f"- source: {payload['source'] or 'defaults'}",
        f"- format: {payload['format']}",
        f"- fail_below: {payload['fail_below']}",
        f"- timeout_seconds: {payload['timeout_seconds']}",
        f"- workers: {payload['workers']}",
        f"- scoring.max_score: {payload['scoring']['max_score']}",
        f"- scoring.penalties: {payload['scoring']['penalties']}",
        f"- scoring.ratings: {payload['scoring']['ratings']}",
    ]
    typer.echo("\n".join(lines))


@app.command("config-init")
def config_init_command(
    out: Annotated[Path, typer.Option(help="Output path for starter settings TOML.")] = Path(
        ".compass.toml"
    ),
    force: Annotated[
        bool,
        typer.Option("--force", help="Overwrite if file already exists."),
    ] = False,
) -> None:
    """Create a starter settings file."""
    out_path = out.resolve()
    if out_path.exists() and not force:
        raise typer.BadParameter(
            f"Refusing to overwrite existing file: {out_path}. Use --force to overwrite."
        )
    out_path.parent.mkdir(parents=True, exist_ok=True)
    out_path.write_text(default_config_template(), encoding="utf-8")
    typer.echo(f"Wrote starter settings: {out_path}")


def main() -> None:
    """Console script entrypoint."""
    app()


def _fail(exc: CompassError) -> NoReturn:
    typer.echo(f"Error: {exc}", err=True)
    raise typer.Exit(code=1)


def _load_config_or_exit(settings: Path | None) -> AppConfig:
    try:
        return load_app_config(Path("."), config_path=settings)
    except CompassError as exc:
        _fail(exc)


def _check_format(value: str) -> str:
    output_format = value.lower()
    if output_format not in {"human", "json"}:
        raise typer.BadParameter("format must be one of: human, json", param_hint="--format")
    return output_format


def _resolve_format(value: str | None, app_config: AppConfig) -> str:
    return _check_format(value or app_config.format)


def _resolve_timeout(value: float | None, app_config: AppConfig) -> float | None:
    if value is None:
        return app_config.timeout_seconds
    if value < 0:
        raise typer.BadParameter("timeout must be >= 0", param_hint="--timeout")
    return value or None


def _language_from_argument(value: str) -> LanguageSpec:
    if "." in value:
        return resolve_language(value)
    return get_language(value)
