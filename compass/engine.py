"""Parsing and structural-query capability used by the evaluation core.

The core only talks to a :class:`PatternEngine`; :class:`TreeSitterEngine` is
the production implementation and tests substitute their own.
"""

from __future__ import annotations

import importlib
import logging
import time
from dataclasses import dataclass
from threading import Lock
from typing import Any, Protocol

from tree_sitter import Language, Node, Parser, Query, QueryCursor, QueryError

from compass.errors import ExecutionTimeout, ParseFailure, PatternCompileError
from compass.languages import LanguageSpec

logger = logging.getLogger("compass.engine")

PRIMARY_CAPTURE = "issue"
TEXT_LIMIT = 80


@dataclass(frozen=True, slots=True)
class Anchor:
    """Source position of a match's primary captured node (1-based)."""

    line: int
    column: int
    start_byte: int = 0
    end_byte: int = 0
    text: str = ""


class PatternEngine(Protocol):
    """Parse source and run compiled structural patterns against it."""

    def parse(self, language: LanguageSpec, source: bytes) -> Any:
        """Return a syntax tree or raise :class:`ParseFailure`."""

    def compile(self, language: LanguageSpec, pattern: str) -> Any:
        """Return a compiled pattern or raise :class:`PatternCompileError`."""

    def execute(self, compiled: Any, tree: Any, deadline: float | None = None) -> list[Anchor]:
        """Return one anchor per match of ``compiled`` in ``tree``.

        ``deadline`` is a :func:`time.monotonic` instant; an engine that can stop
        early raises :class:`ExecutionTimeout` once it has passed.
        """


class TreeSitterEngine:
    """Tree-sitter backed engine.

    ``Language`` objects are cached per grammar. Parsers and query cursors
    are created per call and never shared between threads; compiled queries
    are read-only after construction.
    """

    def __init__(self) -> None:
        self._languages: dict[str, Language] = {}
        self._lock = Lock()

    def language(self, spec: LanguageSpec) -> Language:
        with self._lock:
            cached = self._languages.get(spec.grammar)
            if cached is not None:
                return cached

        try:
            module = importlib.import_module(spec.grammar)
        except ImportError as exc:
            raise ParseFailure(
                f"{spec.display_name} grammar is not installed (module '{spec.grammar}')"
            ) from exc
        try:
            language = Language(module.language())
        except ValueError as exc:
            raise ParseFailure(
                f"{spec.display_name} grammar cannot be loaded (module '{spec.grammar}'): {exc}"
            ) from exc

        with self._lock:
            self._languages.setdefault(spec.grammar, language)
            return self._languages[spec.grammar]

    def parse(self, language: LanguageSpec, source: bytes) -> Any:
        try:
            source.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise ParseFailure(f"source is not valid UTF-8: {exc}") from exc

        parser = Parser(self.language(language))
        tree = parser.parse(source)
        if tree is None:
            raise ParseFailure(f"{language.display_name} parser produced no tree")
        if tree.root_node.has_error:
            logger.info("%s source contains syntax errors; matching anyway", language.id)
        return tree

    def compile(self, language: LanguageSpec, pattern: str) -> Query:
        try:
            return Query(self.language(language), pattern)
        except QueryError as exc:
            raise PatternCompileError(str(exc)) from exc

    def execute(self, compiled: Query, tree: Any, deadline: float | None = None) -> list[Anchor]:
        if tree is None:
            return []
        cursor = QueryCursor(compiled)
        if deadline is None:
            matches = cursor.matches(tree.root_node)
        else:
            matches = cursor.matches(
                tree.root_node, progress_callback=lambda *_: time.monotonic() > deadline
            )
            if time.monotonic() > deadline:
                raise ExecutionTimeout("pattern execution cancelled at its deadline")

        anchors: list[Anchor] = []
        for _pattern_index, captures in matches:
            node = _primary_node(captures)
            if node is not None:
                anchors.append(_anchor(node))
        return anchors


def _primary_node(captures: dict[str, list[Node]]) -> Node | None:
    primary = captures.get(PRIMARY_CAPTURE)
    if primary:
        return primary[0]
    nodes = [node for group in captures.values() for node in group]
    if not nodes:
        return None
    return min(nodes, key=lambda node: (node.start_byte, node.end_byte))


def _anchor(node: Node) -> Anchor:
    row, column = node.start_point
    raw = node.text or b""
    return Anchor(
        line=row + 1,
        column=column + 1,
        start_byte=node.start_byte,
        end_byte=node.end_byte,
        text=_clip(raw.decode("utf-8", errors="replace")),
    )


def _clip(content: str, max_len: int = TEXT_LIMIT) -> str:
    first_line = content.strip().splitlines()[0] if content.strip() else ""
    if len(first_line) <= max_len:
        return first_line
    return first_line[: max_len - 3] + "..."
