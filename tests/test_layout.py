"""Tests for the layered layout and group sizing."""
from collections import defaultdict

import pytest

from flowgraph.config import Settings
from flowgraph.demo import SEED_STEP_GRAPH
from flowgraph.graph.compiler import StepGraphCompiler
from flowgraph.graph.layout import LayoutBox, LayoutResult, SugiyamaLayoutEngine
from flowgraph.models.visual_graph import NodeKind


def step(step_id, **fields):
    return {"type": "step", "step": {"id": step_id, **fields}}


def sub_workflow(step_id, *entries):
    return step(step_id, component="WORKFLOW", serializedStepFlow=list(entries))


class StackedLayoutEngine:
    """Stacks boxes top-to-bottom in the order given, left-aligned."""

    def __init__(self):
        self.calls = []

    def layout(self, boxes, edges):
        self.calls.append(([box.id for box in boxes], list(edges)))

        centers = {}
        top = 0.0
        for box in boxes:
            centers[box.id] = (box.width / 2, top + box.height / 2)
            top += box.height
        return LayoutResult(
            centers=centers,
            width=max((box.width for box in boxes), default=0),
            height=top,
        )


def node_box(settings, node):
    return settings.node_size(node.data.width, node.data.height, bool(node.data.is_large))


# =============================================================================
# SUGIYAMA ENGINE
# =============================================================================


class TestSugiyamaLayoutEngine:
    """Test suite for SugiyamaLayoutEngine."""

    @pytest.fixture
    def engine(self):
        return SugiyamaLayoutEngine(rank_sep=50, node_sep=50)

    def test_no_boxes(self, engine):
        result = engine.layout([], [])

        assert result.centers == {}
        assert (result.width, result.height) == (0, 0)

    def test_chain_is_stacked_in_ranks(self, engine):
        boxes = [LayoutBox(node_id, 274, 100) for node_id in ("a", "b", "c")]

        result = engine.layout(boxes, [("a", "b"), ("b", "c")])

        assert [result.centers[n][1] for n in ("a", "b", "c")] == [50, 200, 350]
        assert len({result.centers[n][0] for n in ("a", "b", "c")}) == 1
        assert result.height == 400
        assert result.width == 274

    def test_rank_height_follows_tallest_node(self, engine):
        boxes = [LayoutBox("a", 274, 100), LayoutBox("b", 274, 260), LayoutBox("c", 274, 100)]

        result = engine.layout(boxes, [("a", "b"), ("b", "c")])

        assert result.centers["b"][1] == 100 + 50 + 130
        assert result.height == 100 + 260 + 100 + 2 * 50

    def test_siblings_in_a_rank_do_not_overlap(self, engine):
        boxes = [LayoutBox(node_id, 274, 100) for node_id in ("a", "b", "c")]

        result = engine.layout(boxes, [("a", "b"), ("a", "c")])

        assert result.centers["b"][1] == result.centers["c"][1]
        assert abs(result.centers["b"][0] - result.centers["c"][0]) >= 274 + 50
        assert result.width >= 2 * 274 + 50

    def test_edges_to_unknown_boxes_are_ignored(self, engine):
        result = engine.layout([LayoutBox("a", 274, 100)], [("a", "elsewhere")])

        assert list(result.centers) == ["a"]

    def test_cycle_still_lays_out(self, engine):
        boxes = [LayoutBox("a", 274, 100), LayoutBox("b", 274, 100)]

        result = engine.layout(boxes, [("a", "b"), ("b", "a")])

        assert set(result.centers) == {"a", "b"}
        assert result.height > 0


# =============================================================================
# LEVEL LAYOUT AND GROUP SIZING
# =============================================================================


class TestLevelLayout:
    """Test suite for per-level layout through the compiler."""

    def test_group_is_sized_from_its_children(self):
        compiled = StepGraphCompiler(Settings(), StackedLayoutEngine()).compile([
            step("start"),
            sub_workflow("sub", step("x"), step("y"), step("z")),
            step("end"),
        ])

        group = compiled.get_node("sub")
        # 274 + 2 * 40 wide; 3 * 100 + 50 header + 2 * 40 tall
        assert (group.data.width, group.data.height) == (354, 430)

        positions = {node.id: (node.position.x, node.position.y) for node in compiled.nodes}
        assert positions["sub_x"] == (40, 90)
        assert positions["sub_y"] == (40, 190)
        assert positions["sub_z"] == (40, 290)
        assert positions["start"] == (0, 0)
        assert positions["sub"] == (0, 100)
        assert positions["end"] == (0, 530)

    def test_group_size_is_floored_at_minimum(self):
        settings = Settings(node_width=50, node_height=20)
        compiled = StepGraphCompiler(settings, StackedLayoutEngine()).compile([
            sub_workflow("sub", step("x")),
        ])

        group = compiled.get_node("sub")
        assert (group.data.width, group.data.height) == (300, 150)

    def test_each_level_is_laid_out_bottom_up(self):
        engine = StackedLayoutEngine()
        StepGraphCompiler(Settings(), engine).compile([
            step("start"),
            sub_workflow("sub", step("x"), step("y")),
            step("end"),
        ])

        assert engine.calls == [
            (["sub_x", "sub_y"], [("sub_x", "sub_y")]),
            (["start", "sub", "end"], [("start", "sub"), ("sub", "end")]),
        ]

    def test_condition_nodes_use_the_large_height(self):
        engine = StackedLayoutEngine()
        compiled = StepGraphCompiler(Settings(), engine).compile([
            {
                "type": "loop",
                "step": {"id": "poll"},
                "serializedCondition": {"id": "done", "fn": "() => true"},
                "loopType": "dountil",
            },
            step("after"),
        ])

        assert compiled.get_node("after").position.y == 100 + 260


class TestLayoutProperties:
    """Geometric properties of the real layout on a mixed workflow."""

    @pytest.fixture
    def settings(self):
        return Settings()

    @pytest.fixture
    def compiled(self, settings):
        return StepGraphCompiler(settings).compile(SEED_STEP_GRAPH)

    def test_edges_within_a_level_point_downwards(self, settings, compiled):
        for edge in compiled.edges:
            source = compiled.get_node(edge.source)
            target = compiled.get_node(edge.target)
            if source.parent_id != target.parent_id:
                continue
            _, source_height = node_box(settings, source)
            assert target.position.y >= source.position.y + source_height

    def test_nodes_in_a_rank_do_not_overlap(self, settings, compiled):
        ranks = defaultdict(list)
        for node in compiled.nodes:
            width, height = node_box(settings, node)
            center_y = node.position.y + height / 2
            ranks[(node.parent_id, center_y)].append((node.position.x, node.position.x + width))

        for spans in ranks.values():
            spans.sort()
            for (_, left_end), (right_start, _) in zip(spans, spans[1:]):
                assert right_start >= left_end

    def test_groups_contain_their_children(self, settings, compiled):
        groups = compiled.nodes_of_kind(NodeKind.GROUP)
        assert groups

        for group in groups:
            assert group.data.width >= settings.group_min_width
            assert group.data.height >= settings.group_min_height

            for child in compiled.nodes:
                if child.parent_id != group.id:
                    continue
                width, height = node_box(settings, child)
                assert child.position.x >= settings.group_padding
                assert child.position.y >= settings.group_header_height + settings.group_padding
                assert child.position.x + width <= group.data.width - settings.group_padding + 1e-6
                assert child.position.y + height <= group.data.height - settings.group_padding + 1e-6
