"""Tests for rendering id and step path allocation."""
from dataclasses import FrozenInstanceError

import pytest

from flowgraph.graph.identity import BuildContext, allocate_id, allocate_path


def test_allocate_id_keeps_free_candidate():
    assert allocate_id("fetch", ["parse", "store"], 3) == "fetch"


def test_allocate_id_suffixes_taken_candidate_with_rank():
    assert allocate_id("fetch", ["fetch"], 2) == "fetch-2"


def test_allocate_id_bumps_rank_when_suffixed_id_is_taken():
    assert allocate_id("fetch", ["fetch", "fetch-2"], 2) == "fetch-3"


def test_allocate_path_at_top_level():
    assert allocate_path("", "fetch") == "fetch"
    assert allocate_path(None, "fetch") == "fetch"


def test_allocate_path_nested():
    assert allocate_path("outer.inner", "fetch") == "outer.inner.fetch"


class TestBuildContext:
    """Test suite for BuildContext."""

    def test_top_level_context(self):
        context = BuildContext()

        assert context.in_group is False
        assert context.node_id("fetch") == "fetch"
        assert context.allocate("fetch", [], 0) == ("fetch", "fetch")

    def test_child_context_prefixes_ids_and_paths(self):
        context = BuildContext().child("sub", "sub")

        assert context.in_group is True
        assert context.parent_group_id == "sub"
        assert context.node_id("fetch") == "sub_fetch"
        assert context.allocate("fetch", [], 0) == ("sub_fetch", "sub.fetch")

    def test_duplicate_in_child_context_keeps_suffix_in_path(self):
        context = BuildContext().child("sub", "sub")

        node_id, step_path = context.allocate("fetch", ["sub_fetch"], 3)

        assert node_id == "sub_fetch-3"
        assert step_path == "sub.fetch-3"

    def test_grandchild_context(self):
        context = BuildContext().child("a", "a").child("a_b", "a.b")

        assert context.allocate("c", [], 0) == ("a_b_c", "a.b.c")

    def test_child_avoids_ids_taken_in_enclosing_levels(self):
        context = BuildContext().child("sub", "sub", ["start", "sub_x"])

        assert context.taken_ids == frozenset({"start", "sub_x", "sub"})
        assert context.allocate("x", [], 0) == ("sub_x-0", "sub.x-0")

    def test_grandchild_inherits_taken_ids(self):
        context = BuildContext().child("a", "a", ["a_b_c"]).child("a_b", "a.b")

        assert context.allocate("c", [], 0) == ("a_b_c-0", "a.b.c-0")

    def test_child_does_not_modify_parent(self):
        parent = BuildContext()
        parent.child("sub", "sub")

        assert parent.parent_group_id is None
        assert parent.id_prefix == ""

    def test_context_is_immutable(self):
        context = BuildContext()

        with pytest.raises(FrozenInstanceError):
            context.id_prefix = "other"
