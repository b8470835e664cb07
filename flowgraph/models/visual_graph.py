"""Visual graph models consumed by the diagram canvas.

Field names are snake_case in Python and serialize to the camelCase keys
the canvas and node renderers read (``stepId``, ``parentId``, ``zIndex``...).
"""
from datetime import datetime
from enum import Enum
from typing import Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from flowgraph.models.step_flow import ConditionRef, ConditionSpec


class NodeKind(str, Enum):
    """Node types understood by the canvas."""
    DEFAULT = "default-node"
    CONDITION = "condition-node"
    GROUP = "group-node"
    NESTED = "nested-node"
    LOOP_RESULT = "loop-result-node"
    AFTER = "after-node"


ConditionType = Literal["if", "else", "when", "until", "while", "dountil", "dowhile"]


class GraphModel(BaseModel):
    """Base model serializing to camelCase."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )


class ConditionDisplay(GraphModel):
    """A predicate as shown on a condition node."""

    type: ConditionType
    fn_string: Optional[str] = None
    ref: Optional[ConditionRef] = None
    query: Optional[dict[str, Any]] = None
    conj: Optional[Literal["and", "or", "not"]] = None

    @classmethod
    def from_condition(cls, condition_type: str, condition: ConditionSpec) -> "ConditionDisplay":
        """Build the display form of a serialized condition."""
        return cls(
            type=condition_type,
            fn_string=condition.fn,
            ref=condition.ref,
            query=condition.query,
            conj=condition.conj,
        )


class Position(GraphModel):
    """Top-left position, relative to the parent group if any."""

    x: float = 0
    y: float = 0


class NodeData(GraphModel):
    """Payload read by node renderers."""

    label: str
    step_id: Optional[str] = None
    step_path: Optional[str] = None
    description: Optional[str] = None

    # Flags
    map_config: Optional[str] = None
    can_suspend: Optional[bool] = None
    is_for_each: Optional[bool] = None
    is_parallel: Optional[bool] = None

    # Sleep
    duration: Optional[int] = None
    date: Optional[datetime] = None

    # Group sizing, computed by the layout of the group's children
    width: Optional[float] = None
    height: Optional[float] = None

    # Group nodes: the nested step graph, for opening it in its own canvas
    step_graph: Optional[list[dict[str, Any]]] = None
    without_top_handle: Optional[bool] = None
    without_bottom_handle: Optional[bool] = None

    # Condition nodes
    is_large: Optional[bool] = None
    conditions: Optional[list[ConditionDisplay]] = None
    previous_step_id: Optional[str] = None
    next_step_id: Optional[str] = None

    # Predecessor index, attached by the assembler
    steps_flow: dict[str, list[str]] = Field(default_factory=dict)


class GraphNode(GraphModel):
    """A positioned node of the flattened graph."""

    id: str
    type: NodeKind
    position: Position = Field(default_factory=Position)
    data: NodeData
    parent_id: Optional[str] = Field(
        None,
        description="Owning group node, for layout containment",
    )
    extent: Optional[Literal["parent"]] = None


class EdgeData(GraphModel):
    """Correlation metadata carried by an edge."""

    previous_step_id: str
    next_step_id: str
    previous_step_path: Optional[str] = None
    next_step_path: Optional[str] = None
    is_condition_edge: Optional[bool] = None


class EdgeMarker(GraphModel):
    """Arrow head drawn at the edge target."""

    type: str = "arrowclosed"
    width: int = 20
    height: int = 20
    color: str = "#8e8e8e"


class GraphEdge(GraphModel):
    """A directed edge between two rendered nodes."""

    id: str
    source: str
    target: str
    data: EdgeData
    z_index: int = 1
    animated: bool = True
    marker_end: EdgeMarker = Field(default_factory=EdgeMarker)


class CompiledGraph(GraphModel):
    """Flattened, positioned graph plus its predecessor index."""

    nodes: list[GraphNode] = Field(default_factory=list)
    edges: list[GraphEdge] = Field(default_factory=list)
    steps_flow: dict[str, list[str]] = Field(default_factory=dict)

    def get_node(self, node_id: str) -> Optional[GraphNode]:
        """Get a node by its rendering id."""
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None

    def get_incoming_edges(self, node_id: str) -> list[GraphEdge]:
        """Get all edges targeting a node."""
        return [edge for edge in self.edges if edge.target == node_id]

    def get_outgoing_edges(self, node_id: str) -> list[GraphEdge]:
        """Get all edges leaving a node."""
        return [edge for edge in self.edges if edge.source == node_id]

    def nodes_of_kind(self, kind: Union[NodeKind, str]) -> list[GraphNode]:
        """Get all nodes of one kind."""
        return [node for node in self.nodes if node.type == NodeKind(kind)]

    def to_flow(self) -> dict:
        """Serialize to the ``{nodes, edges}`` payload read by the canvas."""
        return {
            "nodes": [
                node.model_dump(mode="json", by_alias=True, exclude_none=True)
                for node in self.nodes
            ],
            "edges": [
                edge.model_dump(mode="json", by_alias=True, exclude_none=True)
                for edge in self.edges
            ],
        }
