"""Fold a stream of access events into a canonical DescriptorSet."""

from __future__ import annotations

from typing import Iterable, Optional

from .exceptions import NormalizationError
from .filters import SymbolFilter
from .logging_config import get_logger
from .models import AccessEvent, AccessKind, Descriptor, DescriptorSet, Member

logger = get_logger(__name__)

ARRAY_SUFFIX = "[]"


def array_symbol(element: str) -> str:
    """Symbol name for an array of ``element``; distinct from ``element`` itself."""
    return element + ARRAY_SUFFIX


def descriptor_symbol(event: AccessEvent) -> str:
    if event.kind is AccessKind.ARRAY_TYPE:
        return array_symbol(event.symbol)
    return event.symbol


def member_of(event: AccessEvent) -> Optional[Member]:
    """The member an event touches, or None for a bare symbol access."""
    if event.member is None and event.parameter_types is None:
        return None
    return Member(event.member, event.parameter_types)


def normalize(
    events: Iterable[AccessEvent], symbol_filter: Optional[SymbolFilter] = None
) -> DescriptorSet:
    """Build a DescriptorSet from access events.

    The result depends only on the set of events, not on their order or
    multiplicity.

    Args:
        events: Observed access events
        symbol_filter: Optional filter applied to each event's symbol

    Raises:
        NormalizationError: If an item in ``events`` is not an AccessEvent
    """
    members: dict[str, set[Member]] = {}
    seen = 0
    dropped = 0

    for event in events:
        if not isinstance(event, AccessEvent):
            raise NormalizationError(
                "Cannot normalize non-event item",
                details={"item": repr(event), "position": str(seen)},
            )
        seen += 1
        if symbol_filter is not None and not symbol_filter.matches(event.symbol):
            dropped += 1
            continue

        bucket = members.setdefault(descriptor_symbol(event), set())
        member = member_of(event)
        if member is not None:
            bucket.add(member)

    if dropped:
        logger.debug(f"Filtered out {dropped} of {seen} events")
    logger.debug(f"Normalized {seen} events into {len(members)} descriptors")

    return DescriptorSet(Descriptor(symbol, frozenset(found)) for symbol, found in members.items())
