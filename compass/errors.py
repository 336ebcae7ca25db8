"""Error taxonomy for file evaluation."""

from __future__ import annotations


class CompassError(RuntimeError):
    """Base class for evaluation failures."""

    kind = "error"


class UnsupportedLanguageError(CompassError):
    """Raised when a file extension maps to no known language."""

    kind = "unsupported_language"


class ConfigError(CompassError, ValueError):
    """Raised when a rule file or settings file cannot be trusted."""

    kind = "config_error"


class PatternCompileError(CompassError):
    """Raised by an engine when a single rule pattern does not compile."""

    kind = "pattern_compile_error"


class ParseFailure(CompassError):
    """Raised when source text cannot be turned into a syntax tree."""

    kind = "parse_failure"


class ExecutionTimeout(CompassError):
    """Raised when pattern execution for one file exceeds its time bound."""

    kind = "execution_timeout"
