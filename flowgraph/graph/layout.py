"""Layered layout for one nesting level of the visual graph.

The layout handles:
- Ranking the nodes of a level top-to-bottom (networkx)
- Ordering nodes within a rank to reduce crossings (igraph Sugiyama)
- Converting center coordinates to top-left positions inside groups
- Sizing the group that owns the level from its laid-out bounding box
"""
from dataclasses import dataclass, field
from typing import Optional, Protocol, Sequence

import igraph as ig
import networkx as nx
import structlog

from flowgraph.config import Settings, get_settings
from flowgraph.graph.identity import BuildContext
from flowgraph.models.visual_graph import GraphEdge, GraphNode, Position

logger = structlog.get_logger()


@dataclass(frozen=True)
class LayoutBox:
    """A node to place, with its size."""

    id: str
    width: float
    height: float


@dataclass
class LayoutResult:
    """Node centers and the bounding size of the laid-out level."""

    centers: dict[str, tuple[float, float]] = field(default_factory=dict)
    width: float = 0
    height: float = 0


class LayoutEngine(Protocol):
    """Anything that can place sized nodes of a DAG top-to-bottom."""

    def layout(
        self,
        boxes: Sequence[LayoutBox],
        edges: Sequence[tuple[str, str]],
    ) -> LayoutResult:
        ...


class SugiyamaLayoutEngine:
    """Layered layout backed by networkx ranking and igraph's Sugiyama placement."""

    def __init__(
        self,
        rank_sep: float = 50,
        node_sep: float = 50,
        max_iterations: int = 100,
    ):
        self.rank_sep = rank_sep
        self.node_sep = node_sep
        self.max_iterations = max_iterations

    def layout(
        self,
        boxes: Sequence[LayoutBox],
        edges: Sequence[tuple[str, str]],
    ) -> LayoutResult:
        """Place boxes in ranks so every edge points downwards."""
        if not boxes:
            return LayoutResult()

        graph = nx.DiGraph()
        for box in boxes:
            graph.add_node(box.id)
        graph.add_edges_from(
            (source, target) for source, target in edges
            if source in graph and target in graph
        )

        ranks = self._assign_ranks(graph)

        ig_graph = ig.Graph.from_networkx(graph)
        layout = ig_graph.layout_sugiyama(
            layers=[ranks[node_id] for node_id in graph.nodes] if ranks else None,
            hgap=1,
            vgap=1,
            maxiter=self.max_iterations,
        )

        # The layout also holds dummy vertices for long edges, after the real ones
        coords = {
            node_id: (layout[index][0], layout[index][1])
            for index, node_id in enumerate(graph.nodes)
        }
        if ranks is None:
            ranks = self._ranks_from_coords(coords)

        return self._scale(boxes, coords, ranks)

    def _assign_ranks(self, graph: nx.DiGraph) -> Optional[dict[str, int]]:
        """Longest-path ranking from the sources; None lets igraph rank a cyclic graph."""
        if not nx.is_directed_acyclic_graph(graph):
            logger.warning("layout_graph_not_acyclic", node_count=graph.number_of_nodes())
            return None

        ranks = {}
        for rank, generation in enumerate(nx.topological_generations(graph)):
            for node_id in generation:
                ranks[node_id] = rank
        return ranks

    @staticmethod
    def _ranks_from_coords(coords: dict[str, tuple[float, float]]) -> dict[str, int]:
        levels = sorted({round(y) for _, y in coords.values()})
        index = {level: i for i, level in enumerate(levels)}
        return {node_id: index[round(y)] for node_id, (_, y) in coords.items()}

    def _scale(
        self,
        boxes: Sequence[LayoutBox],
        coords: dict[str, tuple[float, float]],
        ranks: dict[str, int],
    ) -> LayoutResult:
        """Turn unit grid coordinates into pixel centers using the node sizes."""
        rank_count = max(ranks.values()) + 1
        rank_heights = [0.0] * rank_count
        for box in boxes:
            rank = ranks[box.id]
            rank_heights[rank] = max(rank_heights[rank], box.height)

        rank_tops = []
        top = 0.0
        for rank_height in rank_heights:
            rank_tops.append(top)
            top += rank_height + self.rank_sep

        column_width = max(box.width for box in boxes)
        pitch = column_width + self.node_sep
        min_x = min(x for x, _ in coords.values())
        max_x = max(x for x, _ in coords.values())

        centers = {}
        for box in boxes:
            x, _ = coords[box.id]
            rank = ranks[box.id]
            centers[box.id] = (
                (x - min_x) * pitch + column_width / 2,
                rank_tops[rank] + rank_heights[rank] / 2,
            )

        return LayoutResult(
            centers=centers,
            width=(max_x - min_x) * pitch + column_width,
            height=sum(rank_heights) + self.rank_sep * (rank_count - 1),
        )


@dataclass
class LevelLayoutResult:
    """Positioned nodes of a level and the size its owning group needs."""

    nodes: list[GraphNode]
    width: float
    height: float


class LevelLayout:
    """Lays out the nodes that belong directly to one nesting level."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        engine: Optional[LayoutEngine] = None,
    ):
        self.settings = settings or get_settings()
        self.engine = engine or SugiyamaLayoutEngine(
            rank_sep=self.settings.rank_sep,
            node_sep=self.settings.node_sep,
            max_iterations=self.settings.sugiyama_max_iterations,
        )

    def layout(
        self,
        nodes: list[GraphNode],
        edges: list[GraphEdge],
        context: BuildContext,
    ) -> LevelLayoutResult:
        """Position the direct nodes of a level.

        Deeper descendants keep the positions computed when their own group
        was laid out. Node order is unchanged, so every group still precedes
        its children.
        """
        direct_nodes = [n for n in nodes if n.parent_id == context.parent_group_id]

        boxes = [self._box(node) for node in direct_nodes]
        result = self.engine.layout(boxes, self._level_edges(nodes, edges, context))

        offset_x, offset_y = 0.0, 0.0
        if context.in_group:
            offset_x = self.settings.group_padding
            offset_y = self.settings.group_header_height + self.settings.group_padding

        positions = {}
        for box in boxes:
            center_x, center_y = result.centers[box.id]
            positions[box.id] = Position(
                x=center_x - box.width / 2 + offset_x,
                y=center_y - box.height / 2 + offset_y,
            )

        positioned = [
            node.model_copy(update={"position": positions[node.id]}) if node.id in positions else node
            for node in nodes
        ]

        width, height = self.level_size(result, context)

        logger.debug(
            "level_laid_out",
            parent_group_id=context.parent_group_id,
            node_count=len(direct_nodes),
            width=width,
            height=height,
        )

        return LevelLayoutResult(nodes=positioned, width=width, height=height)

    def level_size(self, result: LayoutResult, context: BuildContext) -> tuple[float, float]:
        """Size of a level; inside a group this adds chrome and is floored at the group minimum."""
        if not context.in_group:
            return result.width, result.height

        width = result.width + self.settings.group_padding * 2
        height = result.height + self.settings.group_header_height + self.settings.group_padding * 2
        return (
            max(width, self.settings.group_min_width),
            max(height, self.settings.group_min_height),
        )

    def _box(self, node: GraphNode) -> LayoutBox:
        width, height = self.settings.node_size(
            node.data.width,
            node.data.height,
            bool(node.data.is_large),
        )
        return LayoutBox(id=node.id, width=width, height=height)

    @staticmethod
    def _level_edges(
        nodes: list[GraphNode],
        edges: list[GraphEdge],
        context: BuildContext,
    ) -> list[tuple[str, str]]:
        """Edges between direct nodes, with nested endpoints lifted to their group at this level."""
        parents = {node.id: node.parent_id for node in nodes}
        direct_ids = {node.id for node in nodes if node.parent_id == context.parent_group_id}

        def anchor(node_id: Optional[str]) -> Optional[str]:
            while node_id is not None and node_id not in direct_ids:
                node_id = parents.get(node_id)
            return node_id

        level_edges = []
        seen = set()
        for edge in edges:
            pair = (anchor(edge.source), anchor(edge.target))
            if None in pair or pair[0] == pair[1] or pair in seen:
                continue
            seen.add(pair)
            level_edges.append(pair)
        return level_edges
