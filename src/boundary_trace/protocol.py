"""Wire protocol between the in-process probe and the recording session.

JSON Lines, one record per line, discriminated by ``type``:

    {"type": "attached", "pid": 4242, "python": "3.12.1"}
    {"type": "access", "symbol": "ortools.Solver", "kind": "invoke",
     "member": "Solve", "params": ["int"]}
    {"type": "detached", "exit_code": 0}

The same format is used for saved trace logs, so a log can be replayed
through a StreamEventSource.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Optional, Union

from .exceptions import ProtocolError
from .models import AccessEvent

# Environment contract between ProcessEventSource and the probe agent
FD_ENV = "BOUNDARY_TRACE_FD"
PROBE_ENV = "BOUNDARY_TRACE_PROBE"

ATTACHED = "attached"
ACCESS = "access"
DETACHED = "detached"


@dataclass(frozen=True)
class Attached:
    pid: int
    python: str = ""


@dataclass(frozen=True)
class Detached:
    exit_code: Optional[int] = None


Record = Union[Attached, AccessEvent, Detached]


def _dump(data: dict) -> str:
    return json.dumps(data, separators=(",", ":")) + "\n"


def encode_attached(pid: int, python: str = "") -> str:
    return _dump({"type": ATTACHED, "pid": pid, "python": python})


def encode_event(event: AccessEvent) -> str:
    return _dump({"type": ACCESS, **event.to_dict()})


def encode_detached(exit_code: Optional[int]) -> str:
    return _dump({"type": DETACHED, "exit_code": exit_code})


def decode(line: str) -> Record:
    """Decode one wire line.

    Raises:
        ProtocolError: If the line is not a valid record
    """
    try:
        data = json.loads(line)
    except json.JSONDecodeError as e:
        raise ProtocolError(line, f"invalid JSON ({e.msg})")
    if not isinstance(data, dict):
        raise ProtocolError(line, "record must be a JSON object")

    kind = data.get("type")
    try:
        if kind == ACCESS:
            return AccessEvent.from_dict(data)
        if kind == ATTACHED:
            pid = data["pid"]
            if not isinstance(pid, int):
                raise TypeError("pid must be an integer")
            return Attached(pid=pid, python=str(data.get("python", "")))
        if kind == DETACHED:
            exit_code = data.get("exit_code")
            if exit_code is not None and not isinstance(exit_code, int):
                raise TypeError("exit_code must be an integer or null")
            return Detached(exit_code=exit_code)
    except (KeyError, TypeError, ValueError) as e:
        raise ProtocolError(line, f"invalid {kind} record: {e}")

    raise ProtocolError(line, f"unknown record type {kind!r}")
