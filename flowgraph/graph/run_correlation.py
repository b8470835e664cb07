"""Correlate a compiled graph with the recorded state of a run.

Steps are looked up by their dotted step path first. Runs recorded before
path-based addressing only know flat step ids, so every lookup falls back
to the id fields.
"""
from typing import Optional

from pydantic import BaseModel, Field

from flowgraph.models.run_state import RunState, StepStatus
from flowgraph.models.visual_graph import CompiledGraph, GraphEdge, NodeData

TRIPWIRE_STATUS = "tripwire"


class RunOverlay(BaseModel):
    """What the canvas needs to paint a run on top of the graph."""

    active_edge_ids: list[str] = Field(default_factory=list)
    node_statuses: dict[str, str] = Field(default_factory=dict)


def node_run_key(data: NodeData) -> str:
    """Key under which a node's step is recorded in run state."""
    return data.step_path or data.step_id or data.label


def node_display_status(data: NodeData, run_state: RunState) -> Optional[str]:
    """Status to show on a node; failed steps stopped by a tripwire show as such."""
    step = run_state.lookup(node_run_key(data))
    if step is None:
        return None
    if step.status == StepStatus.FAILED and step.tripwire is not None:
        return TRIPWIRE_STATUS
    return step.status.value


def _completed_into(run_state: RunState, previous_key: Optional[str], next_key: Optional[str]) -> bool:
    previous = run_state.lookup(previous_key)
    return (
        previous is not None
        and previous.status == StepStatus.SUCCESS
        and run_state.lookup(next_key) is not None
    )


def is_edge_active(edge: GraphEdge, run_state: RunState) -> bool:
    """True when the run went along this edge."""
    data = edge.data

    if _completed_into(run_state, data.previous_step_path, data.next_step_path):
        return True
    if _completed_into(run_state, data.previous_step_id, data.next_step_id):
        return True

    # A condition gate is not a step, so only the taken branch has a status
    if data.is_condition_edge:
        previous_recorded = (
            run_state.lookup(data.previous_step_path) is not None
            or run_state.lookup(data.previous_step_id) is not None
        )
        next_step = run_state.lookup(data.next_step_path) or run_state.lookup(data.next_step_id)
        return not previous_recorded and next_step is not None

    return False


def correlate(compiled: CompiledGraph, run_state: RunState) -> RunOverlay:
    """Active edges and per-node statuses of a run."""
    overlay = RunOverlay()

    for edge in compiled.edges:
        if is_edge_active(edge, run_state):
            overlay.active_edge_ids.append(edge.id)

    for node in compiled.nodes:
        status = node_display_status(node.data, run_state)
        if status is not None:
            overlay.node_statuses[node.id] = status

    return overlay
