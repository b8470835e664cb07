"""Assemble built levels into the flat graph handed to the canvas."""
from typing import Iterable

from flowgraph.models.visual_graph import CompiledGraph, GraphEdge, GraphNode


def build_predecessor_index(edges: Iterable[GraphEdge]) -> dict[str, list[str]]:
    """Map every step id to the step ids that can run immediately before it.

    Duplicates are collapsed; order is first-seen.
    """
    index: dict[str, list[str]] = {}
    for edge in edges:
        previous = index.setdefault(edge.data.next_step_id, [])
        if edge.data.previous_step_id not in previous:
            previous.append(edge.data.previous_step_id)
    return index


def assemble(nodes: list[GraphNode], edges: list[GraphEdge]) -> CompiledGraph:
    """Flatten the graph and attach the predecessor index to every node."""
    steps_flow = build_predecessor_index(edges)

    indexed_nodes = [
        node.model_copy(
            update={"data": node.data.model_copy(update={"steps_flow": steps_flow})}
        )
        for node in nodes
    ]

    return CompiledGraph(
        nodes=indexed_nodes,
        edges=list(edges),
        steps_flow=steps_flow,
    )
