"""Rule model and rule-set container."""

from __future__ import annotations

import hashlib
from dataclasses import dataclass, field
from enum import Enum

from compass.errors import ConfigError


class Severity(Enum):
    """Closed set of rule severities."""

    ERROR = "error"
    WARNING = "warning"
    INFO = "info"
    STYLE = "style"

    @classmethod
    def parse(cls, raw: str) -> Severity:
        try:
            return cls(raw.lower())
        except ValueError:
            choices = ", ".join(item.value for item in cls)
            raise ConfigError(f"severity must be one of: {choices}, got '{raw}'") from None


@dataclass(frozen=True, slots=True)
class Rule:
    """A structural pattern plus the metadata reported when it matches."""

    name: str
    pattern: str
    severity: Severity
    message: str
    suggestion: str | None = None
    weight: float = 1.0
    enabled: bool = True
    language_scope: str | None = None


@dataclass(frozen=True, slots=True)
class RuleSet:
    """Ordered rules for one language.

    Names must be unique; disabled rules are kept so they can be listed,
    but :meth:`enabled_rules` is what the pattern registry compiles.
    """

    language: str
    rules: tuple[Rule, ...]
    source: str = "builtin"
    _by_name: dict[str, Rule] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        by_name: dict[str, Rule] = {}
        for rule in self.rules:
            if rule.name in by_name:
                raise ConfigError(f"duplicate rule name '{rule.name}' in {self.source}")
            by_name[rule.name] = rule
        object.__setattr__(self, "_by_name", by_name)

    def __len__(self) -> int:
        return len(self.rules)

    def get(self, name: str) -> Rule | None:
        return self._by_name.get(name)

    def enabled_rules(self) -> list[Rule]:
        return [rule for rule in self.rules if rule.enabled]

    def fingerprint(self) -> str:
        """Stable digest of everything that affects compiled patterns."""
        digest = hashlib.sha256(self.language.encode("utf-8"))
        for rule in self.enabled_rules():
            digest.update(b"\0")
            digest.update(rule.name.encode("utf-8"))
            digest.update(b"\0")
            digest.update(rule.pattern.encode("utf-8"))
        return digest.hexdigest()
