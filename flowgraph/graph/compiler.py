"""Compiler to transform a serialized step graph into a visual graph.

The compiler handles:
- Parsing the serialized Step-Flow IR
- Building nodes and edges for every nesting level
- Laying out each level bottom-up so groups fit their children
- Flattening the result and deriving the predecessor index
"""
from typing import Any, Iterable, Optional

import structlog

from flowgraph.config import Settings, get_settings
from flowgraph.graph.assembler import assemble
from flowgraph.graph.builder import GraphBuilder
from flowgraph.graph.layout import LayoutEngine
from flowgraph.models.step_flow import parse_step_graph
from flowgraph.models.visual_graph import CompiledGraph, NodeKind

logger = structlog.get_logger()


class StepGraphCompiler:
    """Compiles a step graph to a positioned node/edge graph.

    Stateless: every call to ``compile`` builds a fresh graph, and the same
    step graph always compiles to the same ids, edges and predecessor index.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        layout_engine: Optional[LayoutEngine] = None,
    ):
        """Initialize compiler.

        Args:
            settings: Layout and edge settings. Defaults to the cached
                application settings.
            layout_engine: Layered layout used for every nesting level.
                Defaults to the Sugiyama engine configured from settings.
        """
        self.settings = settings or get_settings()
        self.layout_engine = layout_engine

    def compile(self, step_graph: Optional[Iterable[Any]]) -> CompiledGraph:
        """Compile a serialized (or already parsed) step graph.

        Raises pydantic.ValidationError if the step graph is structurally invalid.
        """
        entries = parse_step_graph(step_graph)

        logger.info("compile_start", entry_count=len(entries))

        if not entries:
            logger.info("compile_empty_step_graph")
            return CompiledGraph()

        builder = GraphBuilder(self.settings, self.layout_engine)
        result = builder.build(entries)
        compiled = assemble(result.nodes, result.edges)

        logger.info(
            "compile_complete",
            node_count=len(compiled.nodes),
            edge_count=len(compiled.edges),
            group_count=len(compiled.nodes_of_kind(NodeKind.GROUP)),
        )

        return compiled

    def validate_compiled(self, compiled: CompiledGraph) -> list[str]:
        """Validate a compiled graph.

        Returns list of validation errors (empty if valid).
        """
        errors = []

        # Validate each node
        node_ids = set()
        for node in compiled.nodes:
            if node.id in node_ids:
                errors.append(f"Duplicate node id: {node.id}")
            if node.parent_id is not None:
                parent = compiled.get_node(node.parent_id)
                if parent is None:
                    errors.append(f"Node parent not found: {node.id} -> {node.parent_id}")
                elif parent.id not in node_ids:
                    errors.append(f"Node listed before its parent: {node.id}")
                elif parent.type != NodeKind.GROUP:
                    errors.append(f"Node parent is not a group: {node.id} -> {parent.id}")
            if node.type == NodeKind.GROUP and (node.data.width is None or node.data.height is None):
                errors.append(f"Group node missing size: {node.id}")
            node_ids.add(node.id)

        # Validate edges reference existing nodes
        edge_ids = set()
        for edge in compiled.edges:
            if edge.id in edge_ids:
                errors.append(f"Duplicate edge id: {edge.id}")
            edge_ids.add(edge.id)
            if edge.source not in node_ids:
                errors.append(f"Edge source not found: {edge.source}")
            if edge.target not in node_ids:
                errors.append(f"Edge target not found: {edge.target}")

        return errors


def construct_nodes_and_edges(
    step_graph: Optional[Iterable[Any]],
    settings: Optional[Settings] = None,
) -> dict:
    """Compile a step graph straight to the canvas payload ``{nodes, edges}``."""
    return StepGraphCompiler(settings).compile(step_graph).to_flow()
