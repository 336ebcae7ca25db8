"""File evaluation pipeline: language -> rules -> patterns -> issues -> report."""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any, TypeVar

from compass.config import DEFAULT_TIMEOUT_SECONDS, DEFAULT_WORKERS
from compass.engine import PatternEngine, TreeSitterEngine
from compass.errors import CompassError, ExecutionTimeout, ParseFailure
from compass.issues import build_issues
from compass.languages import LanguageSpec, resolve_language
from compass.matching import Match, execute_patterns
from compass.registry import get_registry
from compass.rules import resolve_rule_set
from compass.rules.base import RuleSet
from compass.scoring import Report, ScoringPolicy, score_issues

logger = logging.getLogger("compass.analyzer")

T = TypeVar("T")

INTERNAL_ERROR_KIND = "internal_error"


@dataclass(slots=True)
class FileOutcome:
    """Result of one file in a batch: a report, or the error that stopped it."""

    path: str
    report: Report | None = None
    error_kind: str | None = None
    error_message: str | None = None

    @property
    def ok(self) -> bool:
        return self.report is not None


@lru_cache(maxsize=1)
def default_engine() -> PatternEngine:
    return TreeSitterEngine()


def evaluate_source(
    source: bytes,
    language: LanguageSpec,
    rule_set: RuleSet,
    *,
    engine: PatternEngine | None = None,
    policy: ScoringPolicy | None = None,
    timeout_seconds: float | None = DEFAULT_TIMEOUT_SECONDS,
    path: str | None = None,
) -> Report:
    """Evaluate already-loaded source text against ``rule_set``."""
    active_engine = engine or default_engine()
    registry = get_registry(rule_set, active_engine)
    tree = active_engine.parse(language, source)
    deadline = None if timeout_seconds is None else time.monotonic() + timeout_seconds

    matches: list[Match] = _run_bounded(
        lambda: execute_patterns(registry, rule_set, tree, active_engine, deadline),
        timeout_seconds,
        label=path or language.id,
    )
    issues = build_issues(matches)
    logger.debug(
        "%s: %d raw matches, %d issues", path or language.id, len(matches), len(issues)
    )
    return score_issues(
        issues,
        policy,
        warnings=registry.failures,
        language=language.id,
        path=path,
    )


def evaluate_file(
    path: Path,
    override_path: Path | None = None,
    *,
    engine: PatternEngine | None = None,
    policy: ScoringPolicy | None = None,
    timeout_seconds: float | None = DEFAULT_TIMEOUT_SECONDS,
) -> Report:
    """Evaluate one source file; any failure raises a :class:`CompassError`."""
    _require_file(path)
    language = resolve_language(path)
    rule_set = resolve_rule_set(language.id, override_path)
    return evaluate_source(
        _read_source(path),
        language,
        rule_set,
        engine=engine,
        policy=policy,
        timeout_seconds=timeout_seconds,
        path=str(path),
    )


def evaluate_batch(
    paths: Sequence[Path],
    override_path: Path | None = None,
    *,
    engine: PatternEngine | None = None,
    policy: ScoringPolicy | None = None,
    timeout_seconds: float | None = DEFAULT_TIMEOUT_SECONDS,
    workers: int = DEFAULT_WORKERS,
) -> list[FileOutcome]:
    """Evaluate files in parallel; one file's failure never affects another.

    Outcomes are returned in input order. Rule sets are resolved once per
    language for the whole batch.
    """
    active_engine = engine or default_engine()
    rule_sets: dict[str, RuleSet | CompassError] = {}

    def _rule_set_for(language: LanguageSpec) -> RuleSet:
        if language.id not in rule_sets:
            try:
                rule_sets[language.id] = resolve_rule_set(language.id, override_path)
            except CompassError as exc:
                rule_sets[language.id] = exc
        resolved = rule_sets[language.id]
        if isinstance(resolved, CompassError):
            raise resolved
        return resolved

    jobs: list[Callable[[], Report] | CompassError] = []
    for path in paths:
        try:
            _require_file(path)
            language = resolve_language(path)
            rule_set = _rule_set_for(language)
        except CompassError as exc:
            jobs.append(exc)
            continue
        jobs.append(_bind_job(path, language, rule_set, active_engine, policy, timeout_seconds))

    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="compass") as executor:
        pending = [
            job if isinstance(job, CompassError) else executor.submit(_capture, str(path), job)
            for path, job in zip(paths, jobs)
        ]

    outcomes: list[FileOutcome] = []
    for path, item in zip(paths, pending):
        if isinstance(item, CompassError):
            outcomes.append(_failed(str(path), item))
        else:
            outcomes.append(item.result())
    return outcomes


def _bind_job(
    path: Path,
    language: LanguageSpec,
    rule_set: RuleSet,
    engine: PatternEngine,
    policy: ScoringPolicy | None,
    timeout_seconds: float | None,
) -> Callable[[], Report]:
    def _job() -> Report:
        return evaluate_source(
            _read_source(path),
            language,
            rule_set,
            engine=engine,
            policy=policy,
            timeout_seconds=timeout_seconds,
            path=str(path),
        )

    return _job


def _capture(path: str, job: Callable[[], Report]) -> FileOutcome:
    try:
        return FileOutcome(path=path, report=job())
    except CompassError as exc:
        return _failed(path, exc)
    except Exception as exc:
        logger.exception("%s: unexpected error during evaluation", path)
        return FileOutcome(path=path, error_kind=INTERNAL_ERROR_KIND, error_message=str(exc))


def _failed(path: str, exc: CompassError) -> FileOutcome:
    logger.warning("%s: evaluation failed (%s): %s", path, exc.kind, exc)
    return FileOutcome(path=path, error_kind=exc.kind, error_message=str(exc))


def _require_file(path: Path) -> None:
    if not path.exists():
        raise ParseFailure(f"file '{path}' does not exist")


def _read_source(path: Path) -> bytes:
    try:
        return path.read_bytes()
    except OSError as exc:
        raise ParseFailure(f"failed to read '{path}': {exc.strerror or exc}") from exc


def _run_bounded(func: Callable[[], T], timeout_seconds: float | None, *, label: str) -> T:
    """Run ``func`` under a wall-clock bound.

    The work runs on a daemon thread so an overrunning pattern never keeps
    the process alive; the engine also receives the deadline and stops
    itself where it can. The caller gets :class:`ExecutionTimeout` as soon
    as the bound passes.
    """
    if timeout_seconds is None:
        return func()

    outcome: dict[str, Any] = {}

    def _target() -> None:
        try:
            outcome["value"] = func()
        except Exception as exc:
            outcome["error"] = exc

    worker = threading.Thread(target=_target, name=f"compass-match-{label}", daemon=True)
    worker.start()
    worker.join(timeout_seconds)

    message = f"pattern execution for {label} exceeded {timeout_seconds:g}s"
    if worker.is_alive():
        raise ExecutionTimeout(message)
    error = outcome.get("error")
    if isinstance(error, ExecutionTimeout):
        raise ExecutionTimeout(message) from error
    if error is not None:
        raise error
    return outcome["value"]
