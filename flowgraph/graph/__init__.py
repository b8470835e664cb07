"""Step graph to visual graph compilation."""
from flowgraph.graph.compiler import StepGraphCompiler, construct_nodes_and_edges
from flowgraph.graph.builder import GraphBuilder
from flowgraph.graph.layout import LevelLayout, SugiyamaLayoutEngine
from flowgraph.graph.assembler import assemble, build_predecessor_index
from flowgraph.graph.run_correlation import correlate, is_edge_active

__all__ = [
    "StepGraphCompiler",
    "construct_nodes_and_edges",
    "GraphBuilder",
    "LevelLayout",
    "SugiyamaLayoutEngine",
    "assemble",
    "build_predecessor_index",
    "correlate",
    "is_edge_active",
]
