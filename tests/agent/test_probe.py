"""Tests for the in-process access probe.

Handlers are driven directly; ``install(hooks=False)`` keeps the test
interpreter's audit and profile hooks untouched.
"""

import array
import collections
import io
import json
import math
import sys
import textwrap
import types
from importlib.machinery import EXTENSION_SUFFIXES

import pytest

from boundary_trace.agent.probe import (
    PROCESS_SYMBOL,
    AccessProbe,
    ProbeSettings,
    array_element,
    is_extension_module,
    library_name,
    qualified_name,
    symbol_name,
)
from boundary_trace.models import AccessEvent, AccessKind
from boundary_trace.protocol import PROBE_ENV, decode

BOUNDARY = "fakepkg.native"

MODULE_SOURCE = textwrap.dedent(
    """
    class Solver:
        def __init__(self, size):
            _hook()

        def solve(self, limit, *extra, **options):
            _hook()

        @classmethod
        def create(cls, name):
            _hook()

        def _internal(self):
            _hook()


    def load(path, strict=False):
        _hook()


    def outer():
        load("x")
    """
)


def _records(writer):
    return [decode(line) for line in writer.getvalue().splitlines()]


def _events(writer):
    return [r for r in _records(writer) if isinstance(r, AccessEvent)]


@pytest.fixture
def writer():
    return io.StringIO()


@pytest.fixture
def make_probe(writer):
    def factory(**settings):
        probe = AccessProbe(writer, ProbeSettings(**settings))
        probe.install(hooks=False)
        return probe

    return factory


@pytest.fixture
def boundary_module(make_probe):
    """A module named fakepkg.native whose functions report their own frame."""
    probe = make_probe(boundary=(BOUNDARY,))
    namespace = {"__name__": BOUNDARY}
    namespace["_hook"] = lambda: probe.on_python_call(sys._getframe(1))
    exec(MODULE_SOURCE, namespace)
    return types.SimpleNamespace(probe=probe, **namespace)


class TestHelpers:
    def test_qualified_name(self):
        assert qualified_name(int) == "int"
        assert qualified_name(collections.OrderedDict) == "collections.OrderedDict"
        assert qualified_name(io.StringIO) == "_io.StringIO"

    def test_array_element(self):
        assert array_element(array.array("d")) == "double"
        assert array_element(array.array("q")) == "long long"
        assert array_element([1.0]) is None

    def test_ctypes_array_element(self):
        ctypes = pytest.importorskip("ctypes")
        assert array_element((ctypes.c_int * 3)()) == "ctypes.c_int"

    def test_library_name(self):
        assert library_name(types.SimpleNamespace(_name="libm.so.6")) == "libm.so.6"
        assert library_name(types.SimpleNamespace(_name=b"libz.so")) == "libz.so"
        assert library_name(types.SimpleNamespace(_name=None)) == PROCESS_SYMBOL

    def test_symbol_name(self):
        assert symbol_name("cos") == "cos"
        assert symbol_name(b"cos") == "cos"
        assert symbol_name(7) == "#7"

    def test_is_extension_module(self):
        ext = types.ModuleType("fake_ext")
        ext.__file__ = "/lib/fake_ext" + EXTENSION_SUFFIXES[0]
        assert is_extension_module(ext)
        assert not is_extension_module(json)


class TestProbeSettings:
    def test_defaults_without_payload(self):
        assert ProbeSettings.from_json(None) == ProbeSettings()
        assert not ProbeSettings().profiles

    def test_from_json(self):
        settings = ProbeSettings.from_json(
            json.dumps({"boundary": ["ortools"], "capture_native_calls": False})
        )
        assert settings.boundary == ("ortools",)
        assert settings.capture_native_calls is False
        assert settings.profiles

    def test_from_env(self):
        settings = ProbeSettings.from_env({PROBE_ENV: '{"exclude": ["tests"]}'})
        assert settings.exclude == ("tests",)

    def test_rejects_non_object(self):
        with pytest.raises(ValueError):
            ProbeSettings.from_json("[1]")

    def test_profiles_needs_call_capture(self):
        settings = ProbeSettings(
            boundary=("x",), capture_python_calls=False, capture_native_calls=False
        )
        assert not settings.profiles


class TestLifecycle:
    def test_hello_is_handshake(self, writer):
        probe = AccessProbe(writer)
        probe.hello()
        (record,) = _records(writer)
        assert record.pid > 0

    def test_inactive_probe_emits_nothing(self, writer):
        probe = AccessProbe(writer)
        probe.emit(AccessEvent("libc", AccessKind.READ))
        assert writer.getvalue() == ""

    def test_detach_writes_exit_status_once(self, make_probe, writer):
        probe = make_probe()
        probe.detach(4)
        probe.detach(5)
        records = _records(writer)
        assert records[-1].exit_code == 4
        assert len([r for r in records if hasattr(r, "exit_code")]) == 1
        assert not probe.active

    def test_broken_pipe_silences_probe(self):
        class BrokenWriter(io.StringIO):
            def write(self, text):
                raise BrokenPipeError(32, "Broken pipe")

        probe = AccessProbe(BrokenWriter())
        probe.install(hooks=False)
        probe.emit(AccessEvent("libc", AccessKind.READ))
        assert not probe.active
        assert probe.emitted == 0

    def test_close(self, writer):
        probe = AccessProbe(writer)
        probe.close()
        assert writer.closed
        probe.close()

    def test_exclude(self, make_probe, writer):
        probe = make_probe(exclude=("libc",))
        probe.emit(AccessEvent("libc.so.6", AccessKind.READ))
        probe.emit(AccessEvent("libc", AccessKind.READ))
        probe.emit(AccessEvent("libm", AccessKind.READ))
        assert [e.symbol for e in _events(writer)] == ["libm"]
        assert probe.emitted == 1


class TestAuditEvents:
    def test_dlopen(self, make_probe, writer):
        probe = make_probe()
        probe.on_audit("ctypes.dlopen", ("libm.so.6",))
        probe.on_audit("ctypes.dlopen", (None,))
        assert _events(writer) == [AccessEvent("libm.so.6", AccessKind.READ)]

    def test_dlsym(self, make_probe, writer):
        probe = make_probe()
        libm = types.SimpleNamespace(_name="libm.so.6")
        main = types.SimpleNamespace(_name=None)
        probe.on_audit("ctypes.dlsym", (libm, "cos"))
        probe.on_audit("ctypes.dlsym", (libm, 12))
        probe.on_audit("ctypes.dlsym", (main, "getpid"))
        assert _events(writer) == [
            AccessEvent("libm.so.6", AccessKind.INVOKE, member="cos"),
            AccessEvent("libm.so.6", AccessKind.INVOKE, member="#12"),
            AccessEvent(PROCESS_SYMBOL, AccessKind.INVOKE, member="getpid"),
        ]

    def test_import_sweeps_new_extensions(self, make_probe, writer, monkeypatch):
        probe = make_probe()
        ext = types.ModuleType("fake_ext")
        ext.__file__ = "/lib/fake_ext" + EXTENSION_SUFFIXES[0]
        monkeypatch.setitem(sys.modules, "fake_ext", ext)
        monkeypatch.setitem(sys.modules, "fake_pure", types.ModuleType("fake_pure"))

        probe.on_audit("import", ("anything", None, None, None, None))
        probe.on_audit("import", ("anything", None, None, None, None))
        symbols = [e.symbol for e in _events(writer)]
        assert symbols.count("fake_ext") == 1
        assert "fake_pure" not in symbols

    def test_preloaded_modules_ignored(self, make_probe, writer):
        probe = make_probe()
        probe.sweep_extensions()
        assert _events(writer) == []

    def test_hook_failures_swallowed(self, make_probe, writer, monkeypatch):
        probe = make_probe()

        def boom(event, args):
            raise RuntimeError("boom")

        monkeypatch.setattr(probe, "on_audit", boom)
        probe._audit("ctypes.dlopen", ("libm.so.6",))
        probe._profile(sys._getframe(), "call", None)

    def test_unrelated_audit_events_ignored(self, make_probe, writer):
        probe = make_probe()
        probe._audit("open", ("/etc/passwd", "r", 0))
        assert writer.getvalue() == ""


class TestPythonCalls:
    def test_constructor(self, boundary_module, writer):
        boundary_module.Solver(3)
        assert _events(writer) == [
            AccessEvent(
                "fakepkg.native.Solver",
                AccessKind.CONSTRUCT,
                member="__init__",
                parameter_types=("int",),
            )
        ]

    def test_method_signature_excludes_varargs(self, boundary_module, writer):
        solver = object.__new__(boundary_module.Solver)
        solver.solve(10, "extra", flag=True)
        assert _events(writer) == [
            AccessEvent(
                "fakepkg.native.Solver", AccessKind.INVOKE, member="solve", parameter_types=("int",)
            )
        ]

    def test_classmethod_uses_class(self, boundary_module, writer):
        boundary_module.Solver.create("x")
        (event,) = _events(writer)
        assert event.symbol == "fakepkg.native.Solver"
        assert event.parameter_types == ("str",)

    def test_module_function(self, boundary_module, writer):
        boundary_module.load("model.bin", strict=True)
        assert _events(writer) == [
            AccessEvent(
                BOUNDARY, AccessKind.INVOKE, member="load", parameter_types=("str", "bool")
            )
        ]

    def test_private_members_skipped(self, boundary_module, writer):
        object.__new__(boundary_module.Solver)._internal()
        assert _events(writer) == []

    def test_calls_inside_boundary_skipped(self, boundary_module, writer):
        """Only the crossing into the boundary counts, not its internal calls."""
        boundary_module.outer()
        assert _events(writer) == []

    def test_outside_boundary_ignored(self, make_probe, writer):
        probe = make_probe(boundary=("ortools",))
        probe.on_python_call(sys._getframe())
        assert writer.getvalue() == ""


class TestNativeCalls:
    def test_module_function(self, make_probe, writer):
        make_probe(boundary=("math",)).on_native_call(math.sqrt)
        assert _events(writer) == [AccessEvent("math", AccessKind.INVOKE, member="sqrt")]

    def test_class_method(self, make_probe, writer):
        make_probe(boundary=("collections",)).on_native_call(collections.OrderedDict.fromkeys)
        assert _events(writer) == [
            AccessEvent("collections.OrderedDict", AccessKind.INVOKE, member="fromkeys")
        ]

    def test_new_is_construct(self, make_probe, writer):
        make_probe(boundary=("array",)).on_native_call(array.array.__new__)
        assert _events(writer) == [
            AccessEvent("array.array", AccessKind.CONSTRUCT, member="__new__")
        ]

    def test_typed_array_owner(self, make_probe, writer):
        make_probe(boundary=("array",)).on_native_call(array.array("d").tolist)
        assert _events(writer) == [AccessEvent("double", AccessKind.ARRAY_TYPE, member="tolist")]

    def test_outside_boundary_ignored(self, make_probe, writer):
        probe = make_probe(boundary=("array",))
        probe.on_native_call(len)
        probe.on_native_call(math.sqrt)
        assert writer.getvalue() == ""
