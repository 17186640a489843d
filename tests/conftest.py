"""Shared test fixtures for Boundary Trace tests."""

import os

import pytest

from boundary_trace.models import AccessEvent, AccessKind, Descriptor, DescriptorSet, Member
from boundary_trace.protocol import encode_attached, encode_detached, encode_event


def pytest_addoption(parser):
    """Add --run-slow option for slow tests."""
    parser.addoption(
        "--run-slow",
        action="store_true",
        default=False,
        help="run slow tests",
    )


def pytest_configure(config):
    """Configure slow marker."""
    config.addinivalue_line("markers", "slow: mark test as slow to run")


def pytest_collection_modifyitems(config, items):
    """Skip slow tests unless --run-slow is given."""
    if config.getoption("--run-slow"):
        return
    skip_slow = pytest.mark.skip(reason="need --run-slow option to run")
    for item in items:
        if "slow" in item.keywords:
            item.add_marker(skip_slow)


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """Keep user/project config files and BOUNDARY_TRACE_* variables out of tests."""
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.chdir(tmp_path)
    for key in list(os.environ):
        if key.startswith("BOUNDARY_TRACE_"):
            monkeypatch.delenv(key)


@pytest.fixture
def foo_constructor():
    """A single constructor call on Pkg.Foo."""
    return AccessEvent("Pkg.Foo", AccessKind.CONSTRUCT, member="<init>", parameter_types=("long",))


@pytest.fixture
def sample_events(foo_constructor):
    """A small mixed stream with a duplicate."""
    return [
        foo_constructor,
        AccessEvent("Pkg.Foo", AccessKind.INVOKE, member="run", parameter_types=()),
        AccessEvent("libm.so.6", AccessKind.READ),
        AccessEvent("<process>", AccessKind.INVOKE, member="getpid"),
        AccessEvent("double", AccessKind.ARRAY_TYPE, member="tolist"),
        foo_constructor,
    ]


@pytest.fixture
def m1():
    return Member("<init>", ("long",))


@pytest.fixture
def m2():
    return Member("run", ())


@pytest.fixture
def m3():
    return Member("close")


@pytest.fixture
def existing_set(m1):
    return DescriptorSet([Descriptor("Pkg.Foo", frozenset({m1}))])


@pytest.fixture
def fresh_set(m2, m3):
    return DescriptorSet(
        [
            Descriptor("Pkg.Foo", frozenset({m2})),
            Descriptor("Pkg.Bar", frozenset({m3})),
        ]
    )


@pytest.fixture
def wire_lines():
    """Build wire-format lines for events, framed by a handshake."""
    return _wire_lines


def _wire_lines(events, pid=4242, exit_code=0, detached=True):
    lines = [encode_attached(pid, "3.12.0")]
    lines.extend(encode_event(e) for e in events)
    if detached:
        lines.append(encode_detached(exit_code))
    return lines
