"""Map source paths to language identifiers."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import PurePath

from compass.errors import UnsupportedLanguageError


@dataclass(frozen=True, slots=True)
class LanguageSpec:
    """A supported language and the grammar module that parses it."""

    id: str
    display_name: str
    extensions: tuple[str, ...]
    grammar: str


LANGUAGES: tuple[LanguageSpec, ...] = (
    LanguageSpec("rust", "Rust", (".rs",), "tree_sitter_rust"),
    LanguageSpec("go", "Go", (".go",), "tree_sitter_go"),
    LanguageSpec("javascript", "JavaScript", (".js", ".jsx"), "tree_sitter_javascript"),
    LanguageSpec("java", "Java", (".java",), "tree_sitter_java"),
    LanguageSpec(
        "cpp",
        "C++",
        (".cpp", ".cc", ".cxx", ".h", ".hpp"),
        "tree_sitter_cpp",
    ),
    LanguageSpec("swift", "Swift", (".swift",), "tree_sitter_swift"),
    LanguageSpec("zig", "Zig", (".zig",), "tree_sitter_zig"),
)

_BY_ID = {spec.id: spec for spec in LANGUAGES}
_BY_EXTENSION = {ext: spec for spec in LANGUAGES for ext in spec.extensions}


def supported_extensions() -> list[str]:
    return [ext for spec in LANGUAGES for ext in spec.extensions]


def resolve_language(path: str | PurePath) -> LanguageSpec:
    """Return the language for ``path`` based solely on its extension."""
    suffix = PurePath(path).suffix.lower()
    spec = _BY_EXTENSION.get(suffix)
    if spec is None:
        joined = ", ".join(supported_extensions())
        raise UnsupportedLanguageError(
            f"unsupported file extension for '{path}'. Supported extensions: {joined}"
        )
    return spec


def get_language(language_id: str) -> LanguageSpec:
    """Look up a language by identifier (case-insensitive)."""
    spec = _BY_ID.get(language_id.lower())
    if spec is None:
        choices = ", ".join(sorted(_BY_ID))
        raise UnsupportedLanguageError(
            f"unknown language '{language_id}'. Expected one of: {choices}"
        )
    return spec
