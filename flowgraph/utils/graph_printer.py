"""Utility to print compiled step graphs in clean text representation."""

from typing import Union

from flowgraph.models.visual_graph import CompiledGraph, GraphNode, NodeKind


def print_compiled_graph(compiled: Union[CompiledGraph, dict], title: str = "Workflow") -> str:
    """
    Convert a compiled graph to a clean text representation.

    Args:
        compiled: CompiledGraph, or its dumped dict form
        title: Heading printed above the graph

    Returns:
        Formatted string representation of the graph
    """
    if isinstance(compiled, dict):
        compiled = CompiledGraph.model_validate(compiled)

    lines = []

    # Header
    lines.append("=" * 60)
    lines.append(f"  STEP GRAPH: {title}")
    lines.append("=" * 60)
    lines.append(f"  Nodes: {len(compiled.nodes)}")
    lines.append(f"  Edges: {len(compiled.edges)}")
    lines.append("")

    # Print nodes section
    lines.append("  NODES:")
    lines.append("  " + "-" * 56)

    for i, node in enumerate(compiled.nodes, 1):
        indent = "  " * _depth(compiled, node)
        icon = _get_node_icon(node)

        lines.append(f"  {indent}{icon} [{i}] {node.data.label}")
        lines.append(f"  {indent}     Id: {node.id}")
        if node.data.step_path:
            lines.append(f"  {indent}     Path: {node.data.step_path}")
        lines.append(
            f"  {indent}     Position: ({node.position.x:.0f}, {node.position.y:.0f})"
        )
        if node.type == NodeKind.GROUP:
            lines.append(
                f"  {indent}     Size: {node.data.width:.0f} x {node.data.height:.0f}"
            )
        if node.data.conditions:
            for condition in node.data.conditions:
                lines.append(f"  {indent}     {condition.type}: {_short(condition.fn_string)}")
        if node.parent_id:
            lines.append(f"  {indent}     Parent: {node.parent_id}")

    lines.append("")

    # Print connections/flow
    lines.append("  FLOW:")
    lines.append("  " + "-" * 56)

    if compiled.edges:
        for edge in compiled.edges:
            arrow = f"  {edge.source} ──→ {edge.target}"
            if edge.data.is_condition_edge:
                arrow += " (condition)"
            lines.append(arrow)
    else:
        lines.append("  (No connections defined)")

    lines.append("")

    # Predecessor index
    if compiled.steps_flow:
        lines.append("  STEPS FLOW:")
        lines.append("  " + "-" * 56)
        for step_id, previous in compiled.steps_flow.items():
            lines.append(f"  {step_id} ◄── {', '.join(previous)}")
        lines.append("")

    lines.append("=" * 60)

    return "\n".join(lines)


def print_compiled_graph_compact(compiled: CompiledGraph) -> str:
    """
    Print a compact one-line representation of the top-level flow.

    Args:
        compiled: CompiledGraph

    Returns:
        Compact string representation
    """
    parts = [
        f"{_get_node_icon(node)} {node.data.label}"
        for node in compiled.nodes
        if node.parent_id is None
    ]
    return " → ".join(parts)


def _get_node_icon(node: GraphNode) -> str:
    """Get an icon for a node."""
    if node.type == NodeKind.GROUP:
        return "📦"
    elif node.type == NodeKind.CONDITION:
        return "🔀"
    elif node.data.duration is not None or node.data.date is not None:
        return "⏰"
    elif node.data.is_for_each:
        return "🔄"
    elif node.data.is_parallel:
        return "⏸"
    else:
        return "⚙️"


def _depth(compiled: CompiledGraph, node: GraphNode) -> int:
    """Nesting depth of a node, 0 at the top level."""
    depth = 0
    parent_id = node.parent_id
    while parent_id is not None:
        depth += 1
        parent = compiled.get_node(parent_id)
        parent_id = parent.parent_id if parent else None
    return depth


def _short(value, max_len: int = 50) -> str:
    """Format a predicate for display."""
    if not value:
        return "(structured)"
    value = " ".join(value.split())
    if len(value) > max_len:
        return f"{value[:max_len]}..."
    return value
