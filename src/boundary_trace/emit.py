"""Descriptor file serialization.

The file is a JSON array of descriptors sorted by symbol name::

    [
      {
        "name": "Pkg.Foo",
        "members": [
          {"name": "<init>", "parameterTypes": ["long", "boolean"]}
        ]
      }
    ]

``members`` is omitted for a descriptor without members. Inside a member,
``name`` is omitted when the member is the symbol itself and
``parameterTypes`` is omitted when the signature is unknown.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Optional, Union

from .exceptions import ErrorCode, SerializationError
from .file_ops import atomic_write_text, safe_read_file
from .logging_config import get_logger
from .models import Descriptor, DescriptorSet, Member

logger = get_logger(__name__)

_DESCRIPTOR_KEYS = frozenset({"name", "members"})
_MEMBER_KEYS = frozenset({"name", "parameterTypes"})


def _member_to_json(member: Member) -> dict[str, Any]:
    data: dict[str, Any] = {}
    if member.name is not None:
        data["name"] = member.name
    if member.parameter_types is not None:
        data["parameterTypes"] = list(member.parameter_types)
    return data


def _descriptor_to_json(descriptor: Descriptor) -> dict[str, Any]:
    data: dict[str, Any] = {"name": descriptor.symbol_name}
    if descriptor.members:
        data["members"] = [_member_to_json(m) for m in descriptor.sorted_members()]
    return data


def to_json(descriptors: DescriptorSet) -> list[dict[str, Any]]:
    """Plain JSON-ready structure in canonical order."""
    return [_descriptor_to_json(d) for d in descriptors]


def render(descriptors: DescriptorSet) -> str:
    """Serialize to stable, diff-friendly JSON text."""
    return json.dumps(to_json(descriptors), indent=2) + "\n"


def _invalid(reason: str, source: Optional[str]) -> SerializationError:
    return SerializationError(source, reason, code=ErrorCode.BT601)


def _parse_member(raw: Any, where: str, source: Optional[str]) -> Member:
    if not isinstance(raw, dict):
        raise _invalid(f"{where}: member must be an object", source)
    unknown = set(raw) - _MEMBER_KEYS
    if unknown:
        raise _invalid(f"{where}: unknown member keys {sorted(unknown)}", source)

    name = raw.get("name")
    if name is not None and (not isinstance(name, str) or not name):
        raise _invalid(f"{where}: member name must be a non-empty string", source)

    params = raw.get("parameterTypes")
    if params is not None:
        if not isinstance(params, list) or not all(isinstance(p, str) and p for p in params):
            raise _invalid(f"{where}: parameterTypes must be a list of type names", source)
        params = tuple(params)

    if name is None and params is None:
        raise _invalid(f"{where}: member needs a name or parameterTypes", source)
    return Member(name, params)


def _parse_descriptor(raw: Any, index: int, source: Optional[str]) -> Descriptor:
    where = f"entry {index}"
    if not isinstance(raw, dict):
        raise _invalid(f"{where}: descriptor must be an object", source)
    unknown = set(raw) - _DESCRIPTOR_KEYS
    if unknown:
        raise _invalid(f"{where}: unknown descriptor keys {sorted(unknown)}", source)

    name = raw.get("name")
    if not isinstance(name, str) or not name:
        raise _invalid(f"{where}: descriptor name must be a non-empty string", source)
    where = f"{where} ({name})"

    members = raw.get("members", [])
    if not isinstance(members, list):
        raise _invalid(f"{where}: members must be a list", source)

    return Descriptor(name, frozenset(_parse_member(m, where, source) for m in members))


def parse(text: str, source: Optional[str] = None) -> DescriptorSet:
    """Parse descriptor file text.

    Raises:
        SerializationError: If the text is not valid JSON or violates the schema
        MergeConflictError: If a symbol is listed more than once
    """
    try:
        raw = json.loads(text)
    except json.JSONDecodeError as e:
        raise SerializationError(source, f"Invalid JSON: {e}", code=ErrorCode.BT601, cause=e)

    if not isinstance(raw, list):
        raise _invalid("top level must be a list of descriptors", source)

    return DescriptorSet(
        (_parse_descriptor(entry, i, source) for i, entry in enumerate(raw)),
        source=source,
    )


def load(path: Union[str, Path]) -> DescriptorSet:
    """Read and parse a descriptor file."""
    path = Path(path)
    descriptors = parse(safe_read_file(path), source=str(path))
    logger.debug(f"Loaded {len(descriptors)} descriptors from {path}")
    return descriptors


def emit(descriptors: DescriptorSet, path: Union[str, Path]) -> Path:
    """Atomically write a descriptor file.

    Either the whole file is replaced or nothing changes on disk.

    Raises:
        SerializationError: If the target cannot be written
    """
    text = render(descriptors)
    written = atomic_write_text(path, text)
    logger.info(
        f"Wrote {len(descriptors)} descriptors ({descriptors.member_count} members) to {written}"
    )
    return written
