"""In-process access probe.

Runs inside the observed interpreter and reports boundary crossings as wire
records. Imports only stdlib-backed parts of the package so it works under
any target interpreter, whatever is installed there.

Sources of events:

- audit hook: native extension loads (swept from ``sys.modules`` on each
  ``import`` audit event), ``ctypes.dlopen`` and ``ctypes.dlsym``
- profile hook (only with boundary patterns): Python calls crossing into a
  boundary module, and C calls owned by one

Hooks never raise into the target. A failure is logged at DEBUG and the
event is dropped; a broken pipe to the observer silences the probe.
"""

from __future__ import annotations

import array
import json
import logging
import os
import platform
import sys
import threading
import types
from dataclasses import dataclass
from importlib.machinery import EXTENSION_SUFFIXES
from typing import Any, Optional, TextIO

from ..filters import any_matches
from ..models import AccessEvent, AccessKind
from ..protocol import PROBE_ENV, encode_attached, encode_detached, encode_event

logger = logging.getLogger(__name__)

# Symbol used for lookups through the main program handle, e.g. CDLL(None)
PROCESS_SYMBOL = "<process>"

_AUDIT_EVENTS = frozenset({"import", "ctypes.dlopen", "ctypes.dlsym"})

_TYPECODE_NAMES = {
    "b": "signed char",
    "B": "unsigned char",
    "u": "wchar_t",
    "w": "Py_UCS4",
    "h": "short",
    "H": "unsigned short",
    "i": "int",
    "I": "unsigned int",
    "l": "long",
    "L": "unsigned long",
    "q": "long long",
    "Q": "unsigned long long",
    "f": "float",
    "d": "double",
}


def qualified_name(cls: Any) -> str:
    """``module.QualName`` for a class; builtins stay bare (``int``)."""
    name = getattr(cls, "__qualname__", None) or getattr(cls, "__name__", None) or repr(cls)
    module = getattr(cls, "__module__", None)
    if not module or module == "builtins":
        return name
    return f"{module}.{name}"


def type_name(value: Any) -> str:
    return qualified_name(type(value))


def array_element(obj: Any) -> Optional[str]:
    """Element type name if ``obj`` is a typed array, else None."""
    if isinstance(obj, array.array):
        return _TYPECODE_NAMES.get(obj.typecode, obj.typecode)
    ctypes = sys.modules.get("ctypes")
    if ctypes is not None and isinstance(obj, ctypes.Array):
        return qualified_name(obj._type_)
    return None


def library_name(library: Any) -> str:
    """Name of a ctypes library object as seen by ``ctypes.dlsym``."""
    name = getattr(library, "_name", None)
    if name is None:
        return PROCESS_SYMBOL
    return os.fsdecode(name) if isinstance(name, bytes) else str(name)


def symbol_name(name: Any) -> str:
    if isinstance(name, int):
        return f"#{name}"
    return os.fsdecode(name) if isinstance(name, bytes) else str(name)


def is_extension_module(module: Any) -> bool:
    spec = getattr(module, "__spec__", None)
    origin = getattr(spec, "origin", None) or getattr(module, "__file__", None)
    return isinstance(origin, str) and origin.endswith(tuple(EXTENSION_SUFFIXES))


def _is_private(name: str) -> bool:
    if name.startswith("<"):
        return True
    return name.startswith("_") and not (name.startswith("__") and name.endswith("__"))


@dataclass(frozen=True)
class ProbeSettings:
    boundary: tuple[str, ...] = ()
    exclude: tuple[str, ...] = ()
    capture_loads: bool = True
    capture_python_calls: bool = True
    capture_native_calls: bool = True

    @classmethod
    def from_json(cls, text: Optional[str]) -> ProbeSettings:
        if not text:
            return cls()
        data = json.loads(text)
        if not isinstance(data, dict):
            raise ValueError("probe settings must be a JSON object")
        return cls(
            boundary=tuple(data.get("boundary", ())),
            exclude=tuple(data.get("exclude", ())),
            capture_loads=bool(data.get("capture_loads", True)),
            capture_python_calls=bool(data.get("capture_python_calls", True)),
            capture_native_calls=bool(data.get("capture_native_calls", True)),
        )

    @classmethod
    def from_env(cls, environ: Optional[dict[str, str]] = None) -> ProbeSettings:
        environ = os.environ if environ is None else environ
        return cls.from_json(environ.get(PROBE_ENV))

    @property
    def profiles(self) -> bool:
        """Whether the profile hook is needed at all."""
        return bool(self.boundary) and (self.capture_python_calls or self.capture_native_calls)


class AccessProbe:
    """Observes the current interpreter and writes wire records to ``writer``.

    Audit hooks cannot be removed, so after ``detach()`` the installed hook
    stays in place but does nothing.
    """

    def __init__(self, writer: TextIO, settings: Optional[ProbeSettings] = None) -> None:
        self.settings = settings or ProbeSettings()
        self._writer: Optional[TextIO] = writer
        self._write_lock = threading.Lock()
        self._local = threading.local()
        self._known_modules: set[str] = set()
        self._active = False
        self._profiling = False
        self.emitted = 0

    @property
    def active(self) -> bool:
        return self._active

    # ── lifecycle ────────────────────────────────────────────────────

    def install(self, hooks: bool = True) -> None:
        """Start observing. Modules already loaded are not reported.

        With ``hooks=False`` only reporting is switched on and the interpreter
        is left alone; the ``on_*`` handlers can then be driven directly.
        """
        if self._active:
            return
        self._known_modules = set(sys.modules)
        self._active = True
        if not hooks:
            return
        if self.settings.capture_loads:
            sys.addaudithook(self._audit)
        if self.settings.profiles:
            sys.setprofile(self._profile)
            threading.setprofile(self._profile)
            self._profiling = True

    def hello(self) -> None:
        self._write(encode_attached(os.getpid(), platform.python_version()))

    def detach(self, exit_code: Optional[int]) -> None:
        """Stop observing, report late extension loads and the exit status."""
        if self._profiling:
            sys.setprofile(None)
            threading.setprofile(None)
            self._profiling = False
        if not self._active:
            return
        if self.settings.capture_loads:
            self.sweep_extensions()
        self._write(encode_detached(exit_code))
        self._active = False

    def close(self) -> None:
        with self._write_lock:
            writer, self._writer = self._writer, None
        if writer is not None:
            try:
                writer.close()
            except OSError as e:
                logger.debug(f"Closing trace pipe failed: {e}")

    # ── reporting ────────────────────────────────────────────────────

    def emit(self, event: AccessEvent) -> None:
        if not self._active or any_matches(self.settings.exclude, event.symbol):
            return
        if self._write(encode_event(event)):
            self.emitted += 1

    def _write(self, line: str) -> bool:
        with self._write_lock:
            if self._writer is None:
                return False
            try:
                self._writer.write(line)
                self._writer.flush()
            except (OSError, ValueError) as e:
                # Observer went away: go quiet, the target keeps running.
                logger.debug(f"Trace pipe closed, probe going quiet: {e}")
                self._writer = None
                self._active = False
                return False
            return True

    def sweep_extensions(self) -> None:
        """Report native extension modules loaded since the last sweep."""
        for name, module in list(sys.modules.items()):
            if name in self._known_modules:
                continue
            self._known_modules.add(name)
            if module is not None and is_extension_module(module):
                self.emit(AccessEvent(name, AccessKind.READ))

    # ── audit hook ───────────────────────────────────────────────────

    def _audit(self, event: str, args: tuple) -> None:
        if not self._active or event not in _AUDIT_EVENTS:
            return
        if getattr(self._local, "busy", False):
            return
        self._local.busy = True
        try:
            self.on_audit(event, args)
        except Exception:
            logger.debug(f"Audit hook failed for {event}", exc_info=True)
        finally:
            self._local.busy = False

    def on_audit(self, event: str, args: tuple) -> None:
        if event == "import":
            self.sweep_extensions()
        elif event == "ctypes.dlopen":
            name = args[0] if args else None
            if name is not None:
                self.emit(AccessEvent(symbol_name(name), AccessKind.READ))
        elif event == "ctypes.dlsym":
            library, name = args[0], args[1]
            self.emit(AccessEvent(library_name(library), AccessKind.INVOKE, member=symbol_name(name)))

    # ── profile hook ─────────────────────────────────────────────────

    def _profile(self, frame: types.FrameType, event: str, arg: Any) -> None:
        if not self._active:
            return
        try:
            if event == "call" and self.settings.capture_python_calls:
                self.on_python_call(frame)
            elif event == "c_call" and self.settings.capture_native_calls:
                self.on_native_call(arg)
        except Exception:
            logger.debug(f"Profile hook failed for {event}", exc_info=True)

    def _in_boundary(self, name: Optional[str]) -> bool:
        return bool(name) and any_matches(self.settings.boundary, name)

    def on_python_call(self, frame: types.FrameType) -> None:
        """Record a call that enters a boundary module from outside it."""
        module = frame.f_globals.get("__name__")
        if not self._in_boundary(module):
            return
        code = frame.f_code
        if _is_private(code.co_name):
            return
        caller = frame.f_back
        if caller is not None and self._in_boundary(caller.f_globals.get("__name__")):
            return

        names = code.co_varnames[: code.co_argcount + code.co_kwonlyargcount]
        local_vars = frame.f_locals
        symbol = module
        start = 0
        if names and code.co_argcount and names[0] in ("self", "cls"):
            bound = local_vars.get(names[0])
            if bound is not None:
                owner = bound if names[0] == "cls" and isinstance(bound, type) else type(bound)
                symbol = qualified_name(owner)
            start = 1

        params = tuple(type_name(local_vars[n]) for n in names[start:] if n in local_vars)
        kind = AccessKind.CONSTRUCT if code.co_name == "__init__" else AccessKind.INVOKE
        self.emit(AccessEvent(symbol, kind, member=code.co_name, parameter_types=params))

    def on_native_call(self, fn: Any) -> None:
        """Record a C-level call whose owner lies in a boundary module."""
        name = getattr(fn, "__name__", None)
        if not name:
            return
        owner = getattr(fn, "__self__", None)

        if owner is None or isinstance(owner, types.ModuleType):
            symbol = getattr(fn, "__module__", None) or getattr(owner, "__name__", None)
            kind = AccessKind.INVOKE
        elif isinstance(owner, type):
            symbol = qualified_name(owner)
            kind = AccessKind.CONSTRUCT if name == "__new__" else AccessKind.INVOKE
        else:
            symbol = type_name(owner)
            element = array_element(owner)
            if element is not None:
                if self._in_boundary(symbol):
                    self.emit(AccessEvent(element, AccessKind.ARRAY_TYPE, member=name))
                return
            kind = AccessKind.INVOKE

        if self._in_boundary(symbol):
            self.emit(AccessEvent(symbol, kind, member=name))
