"""Tests for symbol include/exclude patterns."""

import pytest

from boundary_trace.filters import SymbolFilter, any_matches, pattern_matches


class TestPatternMatches:
    @pytest.mark.parametrize(
        "pattern,symbol,expected",
        [
            ("ortools", "ortools", True),
            ("ortools", "ortools.linear_solver.Solver", True),
            ("ortools", "ortools_extra", False),
            ("ortools.*", "ortools.Solver", True),
            ("*.so.*", "libm.so.6", True),
            ("lib?", "libc", True),
            ("Pkg.Foo", "Pkg.Fo", False),
        ],
    )
    def test_patterns(self, pattern, symbol, expected):
        assert pattern_matches(pattern, symbol) is expected

    def test_any_matches(self):
        assert any_matches(["a", "b.*"], "b.c")
        assert not any_matches([], "anything")


class TestSymbolFilter:
    def test_open_filter_admits_everything(self):
        symbol_filter = SymbolFilter()
        assert symbol_filter.is_open
        assert symbol_filter.matches("anything")

    def test_include_restricts(self):
        symbol_filter = SymbolFilter(include=("Pkg",))
        assert symbol_filter.matches("Pkg.Foo")
        assert not symbol_filter.matches("libc")

    def test_exclude_wins(self):
        symbol_filter = SymbolFilter(include=("Pkg",), exclude=("Pkg.internal",))
        assert symbol_filter.matches("Pkg.Foo")
        assert not symbol_filter.matches("Pkg.internal.Helper")

    def test_lists_become_tuples(self):
        symbol_filter = SymbolFilter(include=["a"], exclude=["b"])
        assert symbol_filter.include == ("a",)
        assert symbol_filter.exclude == ("b",)
        assert not symbol_filter.is_open
