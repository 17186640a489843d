"""Tests for descriptor set union."""

import pytest

from boundary_trace.merge import added_members, merge, merge_all
from boundary_trace.models import Descriptor, DescriptorSet, Member


@pytest.fixture
def third_set():
    return DescriptorSet(
        [
            Descriptor("Pkg.Bar", frozenset({Member("open", ("str",))})),
            Descriptor("libz.so", frozenset()),
        ]
    )


class TestMerge:
    """Test merge() laws and scenarios."""

    def test_scenario_union(self, existing_set, fresh_set, m1, m2, m3):
        """Pkg.Foo gains m2, Pkg.Bar is carried over with m3."""
        result = merge(existing_set, fresh_set)
        assert result.as_mapping() == {
            "Pkg.Bar": frozenset({m3}),
            "Pkg.Foo": frozenset({m1, m2}),
        }

    def test_commutative(self, existing_set, fresh_set):
        assert merge(existing_set, fresh_set) == merge(fresh_set, existing_set)

    def test_associative(self, existing_set, fresh_set, third_set):
        left = merge(merge(existing_set, fresh_set), third_set)
        right = merge(existing_set, merge(fresh_set, third_set))
        assert left == right

    def test_empty_is_identity(self, existing_set):
        assert merge(existing_set, DescriptorSet()) == existing_set
        assert merge(DescriptorSet(), existing_set) == existing_set

    def test_none_treated_as_empty(self, existing_set):
        assert merge(None, existing_set) == existing_set
        assert merge(existing_set, None) == existing_set

    def test_idempotent(self, fresh_set):
        assert merge(fresh_set, fresh_set) == fresh_set

    def test_never_drops_members(self, existing_set, fresh_set, third_set):
        result = merge_all([existing_set, fresh_set, third_set])
        for source in (existing_set, fresh_set, third_set):
            for descriptor in source:
                assert descriptor.members <= result[descriptor.symbol_name].members

    def test_bare_symbol_kept(self, third_set):
        assert merge(DescriptorSet(), third_set)["libz.so"].members == frozenset()

    def test_inputs_unchanged(self, existing_set, fresh_set, m1):
        merge(existing_set, fresh_set)
        assert existing_set.as_mapping() == {"Pkg.Foo": frozenset({m1})}


class TestMergeAll:
    def test_no_inputs(self):
        assert merge_all([]).is_empty()

    def test_matches_pairwise(self, existing_set, fresh_set, third_set):
        assert merge_all([existing_set, fresh_set, third_set]) == merge(
            merge(existing_set, fresh_set), third_set
        )


class TestAddedMembers:
    def test_reports_new_members_and_symbols(self, existing_set, fresh_set, m2, m3):
        merged = merge(existing_set, fresh_set)
        assert added_members(existing_set, merged) == {
            "Pkg.Bar": frozenset({m3}),
            "Pkg.Foo": frozenset({m2}),
        }

    def test_new_bare_symbol_reported(self, third_set):
        delta = added_members(DescriptorSet(), third_set)
        assert delta["libz.so"] == frozenset()

    def test_nothing_new(self, existing_set):
        assert added_members(existing_set, existing_set) == {}
