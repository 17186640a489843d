"""Union of descriptor sets.

Repeated observation runs exercise different code paths; merging accumulates
their coverage and never drops a member present in either input.
"""

from __future__ import annotations

from functools import reduce
from pathlib import Path
from typing import Iterable, Optional, Union

from . import emit
from .exceptions import InvalidMergeInputError, SerializationError
from .logging_config import get_logger
from .models import Descriptor, DescriptorSet, Member

logger = get_logger(__name__)


def merge(existing: Optional[DescriptorSet], fresh: Optional[DescriptorSet]) -> DescriptorSet:
    """Return the per-symbol union of two descriptor sets.

    Commutative and associative; an empty (or missing) input is the identity.
    """
    combined: dict[str, set[Member]] = {}
    for source in (existing, fresh):
        if source is None:
            continue
        for descriptor in source:
            combined.setdefault(descriptor.symbol_name, set()).update(descriptor.members)

    result = DescriptorSet(
        Descriptor(symbol, frozenset(members)) for symbol, members in combined.items()
    )
    if existing is not None and fresh is not None:
        added = len(result) - len(existing)
        logger.debug(
            f"Merged {len(fresh)} fresh descriptors into {len(existing)} existing "
            f"({added} new symbols)"
        )
    return result


def merge_all(sets: Iterable[DescriptorSet]) -> DescriptorSet:
    """Fold any number of descriptor sets into one."""
    return reduce(merge, sets, DescriptorSet())


def added_members(existing: DescriptorSet, merged: DescriptorSet) -> dict[str, frozenset[Member]]:
    """Members present in ``merged`` but not in ``existing``, by symbol."""
    delta: dict[str, frozenset[Member]] = {}
    for descriptor in merged:
        before = existing.get(descriptor.symbol_name)
        new = descriptor.members - (before.members if before is not None else frozenset())
        if new or before is None:
            delta[descriptor.symbol_name] = new
    return delta


def load_input(path: Union[str, Path], missing_ok: bool = False) -> DescriptorSet:
    """Read a descriptor file to be merged.

    Args:
        path: Descriptor file
        missing_ok: Treat a file that does not exist yet as an empty set

    Raises:
        InvalidMergeInputError: If the file cannot be read or parsed
        MergeConflictError: If the file lists a symbol more than once
    """
    path = Path(path)
    if missing_ok and not path.exists():
        logger.info(f"No existing descriptor file at {path}; starting fresh")
        return DescriptorSet(source=str(path))
    try:
        return emit.load(path)
    except SerializationError as e:
        raise InvalidMergeInputError(path, e.reason, cause=e) from e
