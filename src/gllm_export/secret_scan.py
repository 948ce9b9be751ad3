"""Quick regex-based detection of secrets in file snapshots."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import TYPE_CHECKING

from gllm_export.logging import logger
from gllm_export.models import SecretPatternSpec

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping


@dataclass(frozen=True)
class SecretPattern:
    """A named, compiled secret pattern."""

    name: str
    pattern: re.Pattern[str]


DEFAULT_PATTERNS: tuple[SecretPattern, ...] = (
    SecretPattern("AWS Access Key ID", re.compile(r"AKIA[0-9A-Z]{16}")),
    SecretPattern("Private RSA", re.compile(r"-----BEGIN( RSA)? PRIVATE KEY-----")),
    SecretPattern("Slack token", re.compile(r"xox[baprs]-[0-9A-Za-z]{10,}")),
    SecretPattern(
        "JWT-looking",
        re.compile(r"eyJ[A-Za-z0-9_-]{10,}\.[A-Za-z0-9_-]{10,}\.[A-Za-z0-9_-]{10,}"),
    ),
    SecretPattern(
        "Generic password-like",
        re.compile(r"""(password|passwd|pwd)[\s:=]{1,6}['"]?[^'"\s]{6,}""", re.IGNORECASE),
    ),
    SecretPattern("GitHub token", re.compile(r"ghp_[0-9A-Za-z]{36}")),
    SecretPattern("API key pattern", re.compile(r"[a-zA-Z0-9]{32,}")),
    SecretPattern("Database URL", re.compile(r"(mongodb|postgres|mysql)://[^:]+:[^@]+@", re.IGNORECASE)),
)


def compile_custom_patterns(
    patterns: Iterable[SecretPatternSpec | Mapping[str, str]],
) -> list[SecretPattern]:
    """Compile user supplied patterns, skipping the ones that are invalid.

    Args:
        patterns (Iterable[SecretPatternSpec | Mapping[str, str]]): `{name, pattern}` entries

    Returns:
        list[SecretPattern]: the patterns that compiled, in input order
    """
    compiled: list[SecretPattern] = []
    for raw in patterns:
        spec = raw if isinstance(raw, SecretPatternSpec) else SecretPatternSpec.model_validate(raw)
        try:
            compiled.append(SecretPattern(spec.name, re.compile(spec.pattern)))
        except re.error as e:
            logger.warning("Failed to add custom pattern %r: %s", spec.name, e)
    return compiled


class SecretScanner:
    """Report which secret categories appear in a text.

    Only category names are reported, never the matched text.
    """

    def __init__(self, patterns: Iterable[SecretPattern] | None = None) -> None:
        self._patterns: list[SecretPattern] = list(DEFAULT_PATTERNS if patterns is None else patterns)

    @property
    def patterns(self) -> list[SecretPattern]:
        return list(self._patterns)

    def scan(self, text: str) -> list[str]:
        """Return the names of the categories matched in `text`, in pattern order."""
        return [p.name for p in self._patterns if p.pattern.search(text)]

    def with_custom_patterns(
        self,
        patterns: Iterable[SecretPatternSpec | Mapping[str, str]],
    ) -> SecretScanner:
        """Return a new scanner with `patterns` appended to this one's."""
        return SecretScanner([*self._patterns, *compile_custom_patterns(patterns)])

    def add_custom_patterns(self, patterns: Iterable[SecretPatternSpec | Mapping[str, str]]) -> None:
        self._patterns.extend(compile_custom_patterns(patterns))

    def remove_pattern(self, name: str) -> None:
        self._patterns = [p for p in self._patterns if p.name != name]
