"""Symbol include/exclude filtering.

Patterns are ``fnmatch`` globs. A pattern without wildcards is treated as a
dotted prefix: ``ortools`` matches ``ortools`` and ``ortools.linear_solver.Solver``
but not ``ortools_extra``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from fnmatch import fnmatchcase
from typing import Iterable

_WILDCARDS = frozenset("*?[")


def pattern_matches(pattern: str, symbol: str) -> bool:
    """Return True if ``symbol`` matches one filter pattern."""
    if any(ch in _WILDCARDS for ch in pattern):
        return fnmatchcase(symbol, pattern)
    return symbol == pattern or symbol.startswith(pattern + ".")


def any_matches(patterns: Iterable[str], symbol: str) -> bool:
    return any(pattern_matches(p, symbol) for p in patterns)


@dataclass(frozen=True)
class SymbolFilter:
    """Include/exclude pattern pair.

    An empty include list admits every symbol; exclusion always wins.
    """

    include: tuple[str, ...] = field(default_factory=tuple)
    exclude: tuple[str, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        object.__setattr__(self, "include", tuple(self.include))
        object.__setattr__(self, "exclude", tuple(self.exclude))

    def matches(self, symbol: str) -> bool:
        if any_matches(self.exclude, symbol):
            return False
        if not self.include:
            return True
        return any_matches(self.include, symbol)

    @property
    def is_open(self) -> bool:
        """True when the filter admits everything."""
        return not self.include and not self.exclude
