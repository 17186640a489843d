"""Core data model: access events, members, descriptors, descriptor sets.

An ``AccessEvent`` is one observed boundary crossing. The normalizer folds a
stream of events into a ``DescriptorSet``: one ``Descriptor`` per symbol, each
holding the set of ``Member`` entries that were touched.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable, Iterator, Optional

from .exceptions import MergeConflictError

Signature = tuple[str, ...]


class AccessKind(Enum):
    """How a symbol was touched."""

    CONSTRUCT = "construct"
    READ = "read"
    INVOKE = "invoke"
    ARRAY_TYPE = "array-type"


def _as_signature(value: Optional[Iterable[str]]) -> Optional[Signature]:
    if value is None:
        return None
    if isinstance(value, str):
        raise TypeError("parameter_types must be a sequence of type names, not a string")
    signature = tuple(value)
    for type_name in signature:
        if not isinstance(type_name, str) or not type_name:
            raise TypeError(f"parameter type names must be non-empty strings: {type_name!r}")
    return signature


@dataclass(frozen=True)
class AccessEvent:
    """One observed cross-boundary symbol touch. Immutable."""

    symbol: str
    kind: AccessKind
    member: Optional[str] = None
    parameter_types: Optional[Signature] = None

    def __post_init__(self) -> None:
        if not isinstance(self.symbol, str) or not self.symbol:
            raise ValueError("AccessEvent.symbol must be a non-empty string")
        if not isinstance(self.kind, AccessKind):
            object.__setattr__(self, "kind", AccessKind(self.kind))
        if self.member is not None and (not isinstance(self.member, str) or not self.member):
            raise ValueError("AccessEvent.member must be a non-empty string or None")
        object.__setattr__(self, "parameter_types", _as_signature(self.parameter_types))

    def to_dict(self) -> dict[str, Any]:
        return {
            "symbol": self.symbol,
            "kind": self.kind.value,
            "member": self.member,
            "params": list(self.parameter_types) if self.parameter_types is not None else None,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AccessEvent:
        return cls(
            symbol=data["symbol"],
            kind=AccessKind(data["kind"]),
            member=data.get("member"),
            parameter_types=data.get("params"),
        )


@dataclass(frozen=True)
class Member:
    """A touched member of a symbol.

    ``name`` of None designates the symbol itself. ``parameter_types`` of None
    means the signature is unknown, which is distinct from an empty signature.
    """

    name: Optional[str] = None
    parameter_types: Optional[Signature] = None

    def __post_init__(self) -> None:
        if self.name is not None and (not isinstance(self.name, str) or not self.name):
            raise ValueError("Member.name must be a non-empty string or None")
        object.__setattr__(self, "parameter_types", _as_signature(self.parameter_types))
        # A nameless, signature-less member is the bare symbol; the descriptor covers it.
        if self.name is None and self.parameter_types is None:
            raise ValueError("Member needs a name or a parameter signature")

    @property
    def sort_key(self) -> tuple:
        return (
            self.name is not None,
            self.name or "",
            self.parameter_types is not None,
            self.parameter_types or (),
        )

    def __str__(self) -> str:
        label = self.name or "<self>"
        if self.parameter_types is None:
            return label
        return f"{label}({', '.join(self.parameter_types)})"


@dataclass(frozen=True)
class Descriptor:
    """Canonical record for one symbol."""

    symbol_name: str
    members: frozenset[Member] = field(default_factory=frozenset)

    def __post_init__(self) -> None:
        if not isinstance(self.symbol_name, str) or not self.symbol_name:
            raise ValueError("Descriptor.symbol_name must be a non-empty string")
        object.__setattr__(self, "members", frozenset(self.members))

    def sorted_members(self) -> list[Member]:
        return sorted(self.members, key=lambda m: m.sort_key)


class DescriptorSet:
    """Descriptors keyed by symbol name, iterated in sorted symbol order.

    No two descriptors share a symbol name; constructing a set from inputs
    that do raises MergeConflictError.
    """

    __slots__ = ("_by_symbol",)

    def __init__(self, descriptors: Iterable[Descriptor] = (), source: Optional[str] = None):
        by_symbol: dict[str, Descriptor] = {}
        for descriptor in descriptors:
            if descriptor.symbol_name in by_symbol:
                raise MergeConflictError(
                    descriptor.symbol_name,
                    "symbol listed more than once",
                    source=source,
                )
            by_symbol[descriptor.symbol_name] = descriptor
        self._by_symbol = by_symbol

    def __iter__(self) -> Iterator[Descriptor]:
        for symbol in sorted(self._by_symbol):
            yield self._by_symbol[symbol]

    def __len__(self) -> int:
        return len(self._by_symbol)

    def __contains__(self, symbol: object) -> bool:
        return symbol in self._by_symbol

    def __getitem__(self, symbol: str) -> Descriptor:
        return self._by_symbol[symbol]

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, DescriptorSet):
            return NotImplemented
        return self._by_symbol == other._by_symbol

    def __hash__(self) -> int:
        return hash(frozenset(self._by_symbol.values()))

    def __repr__(self) -> str:
        return f"DescriptorSet(symbols={len(self)}, members={self.member_count})"

    def get(self, symbol: str) -> Optional[Descriptor]:
        return self._by_symbol.get(symbol)

    def symbols(self) -> list[str]:
        return sorted(self._by_symbol)

    @property
    def member_count(self) -> int:
        return sum(len(d.members) for d in self._by_symbol.values())

    def is_empty(self) -> bool:
        return not self._by_symbol

    def as_mapping(self) -> dict[str, frozenset[Member]]:
        """Plain ``{symbol: members}`` view, handy for assertions and display."""
        return {symbol: self._by_symbol[symbol].members for symbol in self.symbols()}
