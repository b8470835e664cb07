"""Pydantic models for the step graph compiler."""
from flowgraph.models.step_flow import (
    StepFlowEntry,
    StepDefinition,
    StepEntry,
    ForEachEntry,
    SleepEntry,
    SleepUntilEntry,
    ParallelEntry,
    ConditionalEntry,
    LoopEntry,
    LoopType,
    ConditionSpec,
    UnknownEntry,
    parse_step_graph,
    dump_step_graph,
    count_leaf_entries,
)
from flowgraph.models.visual_graph import (
    CompiledGraph,
    GraphNode,
    GraphEdge,
    NodeData,
    EdgeData,
    NodeKind,
    Position,
)
from flowgraph.models.run_state import (
    RunState,
    StepRunState,
    StepStatus,
)

__all__ = [
    "StepFlowEntry",
    "StepDefinition",
    "StepEntry",
    "ForEachEntry",
    "SleepEntry",
    "SleepUntilEntry",
    "ParallelEntry",
    "ConditionalEntry",
    "LoopEntry",
    "LoopType",
    "ConditionSpec",
    "UnknownEntry",
    "parse_step_graph",
    "dump_step_graph",
    "count_leaf_entries",
    "CompiledGraph",
    "GraphNode",
    "GraphEdge",
    "NodeData",
    "EdgeData",
    "NodeKind",
    "Position",
    "RunState",
    "StepRunState",
    "StepStatus",
]
