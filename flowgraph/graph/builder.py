"""Graph builder - turns a step graph into nodes and edges, one level at a time.

The builder handles:
- Plain steps, foreach steps and sleeps as leaf nodes
- Sub-workflows as group nodes wrapping a recursively built level
- Parallel fan-out/fan-in and conditional branches gated by condition nodes
- Loops as a body followed by their continuation predicate
- Laying out each level as soon as it is complete, bottom-up
"""
from dataclasses import dataclass, field
from typing import NamedTuple, Optional, Sequence, Union

import structlog

from flowgraph.config import Settings, get_settings
from flowgraph.graph.identity import BuildContext
from flowgraph.graph.layout import LayoutEngine, LayoutResult, LevelLayout
from flowgraph.models.step_flow import (
    ConditionalEntry,
    ConditionSpec,
    ForEachEntry,
    LoopEntry,
    ParallelEntry,
    SleepEntry,
    SleepUntilEntry,
    StepDefinition,
    StepEntry,
    StepFlowEntry,
    dump_step_graph,
)
from flowgraph.models.visual_graph import (
    ConditionDisplay,
    EdgeData,
    EdgeMarker,
    GraphEdge,
    GraphNode,
    NodeData,
    NodeKind,
)

logger = structlog.get_logger()


class Handle(NamedTuple):
    """A connection point: the rendered node plus the step it stands for."""

    node_id: str
    step_id: str
    step_path: str


@dataclass
class EntryResult:
    """Nodes and edges produced by one entry of a step graph."""

    nodes: list[GraphNode] = field(default_factory=list)
    edges: list[GraphEdge] = field(default_factory=list)
    entries: tuple[Handle, ...] = ()
    exits: tuple[Handle, ...] = ()


@dataclass
class StepGraphResult(EntryResult):
    """A fully laid-out level, with the size its owning group needs."""

    width: float = 0
    height: float = 0


class GraphBuilder:
    """Recursively builds the positioned node/edge graph of a step graph."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        layout_engine: Optional[LayoutEngine] = None,
    ):
        self.settings = settings or get_settings()
        self.level_layout = LevelLayout(self.settings, layout_engine)

    def build(self, step_graph: Sequence[StepFlowEntry]) -> StepGraphResult:
        """Build the top level of a step graph."""
        return self.process_step_graph(step_graph, BuildContext())

    def process_step_graph(
        self,
        step_graph: Optional[Sequence[StepFlowEntry]],
        context: BuildContext,
    ) -> StepGraphResult:
        """Chain the entries of one level and lay the level out."""
        if not step_graph:
            width, height = self.level_layout.level_size(LayoutResult(), context)
            return StepGraphResult(width=width, height=height)

        nodes: list[GraphNode] = []
        edges: list[GraphEdge] = []
        allocated_ids: list[str] = []
        predecessors: tuple[Handle, ...] = ()
        first_entries: tuple[Handle, ...] = ()

        for index, entry in enumerate(step_graph):
            result = self.process_entry(
                entry,
                predecessors,
                tuple(allocated_ids),
                index,
                context,
            )

            if not first_entries:
                first_entries = result.entries

            nodes.extend(result.nodes)
            edges.extend(result.edges)
            allocated_ids.extend(node.id for node in result.nodes)
            predecessors = result.exits

        laid_out = self.level_layout.layout(nodes, edges, context)

        return StepGraphResult(
            nodes=laid_out.nodes,
            edges=edges,
            entries=first_entries,
            exits=predecessors,
            width=laid_out.width,
            height=laid_out.height,
        )

    def process_entry(
        self,
        entry: StepFlowEntry,
        predecessors: tuple[Handle, ...],
        allocated_ids: tuple[str, ...],
        rank: int,
        context: BuildContext,
    ) -> EntryResult:
        """Build one entry against the handles that precede it."""
        if isinstance(entry, (StepEntry, ForEachEntry)):
            return self._process_step(
                entry.step,
                isinstance(entry, ForEachEntry),
                predecessors,
                allocated_ids,
                rank,
                context,
            )

        if isinstance(entry, (SleepEntry, SleepUntilEntry)):
            return self._process_sleep(entry, predecessors, allocated_ids, rank, context)

        if isinstance(entry, ParallelEntry):
            return self._process_parallel(entry, predecessors, allocated_ids, rank, context)

        if isinstance(entry, ConditionalEntry):
            return self._process_conditional(entry, predecessors, allocated_ids, rank, context)

        if isinstance(entry, LoopEntry):
            return self._process_loop(entry, predecessors, allocated_ids, rank, context)

        logger.debug(
            "unknown_step_flow_entry",
            entry_type=getattr(entry, "type", None),
            parent_group_id=context.parent_group_id,
        )
        return EntryResult(exits=predecessors)

    # ------------------------------------------------------------------
    # Entry kinds
    # ------------------------------------------------------------------

    def _process_step(
        self,
        step: StepDefinition,
        is_for_each: bool,
        predecessors: tuple[Handle, ...],
        allocated_ids: tuple[str, ...],
        rank: int,
        context: BuildContext,
    ) -> EntryResult:
        """A step renders as a leaf node, or as a group when it runs a sub-workflow."""
        node_id, step_path = context.allocate(step.id, allocated_ids, rank)

        if step.has_nested_graph:
            return self._process_nested_step(
                step,
                is_for_each,
                node_id,
                step_path,
                predecessors,
                allocated_ids,
                context,
            )

        node = self._make_node(
            node_id,
            NodeKind.DEFAULT,
            NodeData(
                label=step.id,
                step_id=step.id,
                step_path=step_path,
                description=step.description,
                map_config=step.map_config,
                can_suspend=step.can_suspend,
                is_for_each=is_for_each,
            ),
            context,
        )
        handle = Handle(node_id, step.id, step_path)

        return EntryResult(
            nodes=[node],
            edges=self._connect(predecessors, handle),
            entries=(handle,),
            exits=(handle,),
        )

    def _process_nested_step(
        self,
        step: StepDefinition,
        is_for_each: bool,
        node_id: str,
        step_path: str,
        predecessors: tuple[Handle, ...],
        allocated_ids: tuple[str, ...],
        context: BuildContext,
    ) -> EntryResult:
        """Build a sub-workflow as a group node sized from its laid-out children."""
        nested = self.process_step_graph(
            step.serialized_step_flow,
            context.child(node_id, step_path, allocated_ids),
        )

        group_node = self._make_node(
            node_id,
            NodeKind.GROUP,
            NodeData(
                label=step.id,
                step_id=step.id,
                step_path=step_path,
                description=step.description,
                can_suspend=step.can_suspend,
                is_for_each=is_for_each,
                width=nested.width,
                height=nested.height,
                step_graph=dump_step_graph(step.serialized_step_flow),
                without_top_handle=False,
                without_bottom_handle=False,
            ),
            context,
        )

        # Outside the group the inner handles stand for the sub-workflow step;
        # a group with nothing inside is connected to directly
        group_handle = Handle(node_id, step.id, step_path)
        entries = tuple(Handle(h.node_id, step.id, h.step_path) for h in nested.entries) or (group_handle,)
        exits = tuple(Handle(h.node_id, step.id, h.step_path) for h in nested.exits) or (group_handle,)

        incoming_edges = [
            edge
            for entry in entries
            for edge in self._connect(predecessors, entry)
        ]

        return EntryResult(
            nodes=[group_node, *nested.nodes],
            edges=incoming_edges + nested.edges,
            entries=entries,
            exits=exits,
        )

    def _process_sleep(
        self,
        entry: Union[SleepEntry, SleepUntilEntry],
        predecessors: tuple[Handle, ...],
        allocated_ids: tuple[str, ...],
        rank: int,
        context: BuildContext,
    ) -> EntryResult:
        """A sleep is a leaf node carrying its duration or target date."""
        node_id, step_path = context.allocate(entry.id, allocated_ids, rank)

        node = self._make_node(
            node_id,
            NodeKind.DEFAULT,
            NodeData(
                label=entry.id,
                step_id=entry.id,
                step_path=step_path,
                duration=entry.duration if isinstance(entry, SleepEntry) else None,
                date=entry.date if isinstance(entry, SleepUntilEntry) else None,
            ),
            context,
        )
        handle = Handle(node_id, entry.id, step_path)

        return EntryResult(
            nodes=[node],
            edges=self._connect(predecessors, handle),
            entries=(handle,),
            exits=(handle,),
        )

    def _process_parallel(
        self,
        entry: ParallelEntry,
        predecessors: tuple[Handle, ...],
        allocated_ids: tuple[str, ...],
        rank: int,
        context: BuildContext,
    ) -> EntryResult:
        """Every branch starts from the same predecessors; all branch exits fan in."""
        if not entry.steps:
            return EntryResult(exits=predecessors)

        result = EntryResult()
        entries: list[Handle] = []
        exits: list[Handle] = []

        for branch in entry.steps:
            branch_result = self.process_entry(
                branch,
                predecessors,
                allocated_ids + tuple(node.id for node in result.nodes),
                rank,
                context,
            )

            result.nodes.extend(
                self._mark_parallel(node) if node.parent_id == context.parent_group_id else node
                for node in branch_result.nodes
            )
            result.edges.extend(branch_result.edges)
            entries.extend(branch_result.entries)
            exits.extend(branch_result.exits)

        result.entries = tuple(entries)
        # Branches that add no nodes pass the shared predecessors through
        result.exits = tuple(dict.fromkeys(exits))
        return result

    def _process_conditional(
        self,
        entry: ConditionalEntry,
        predecessors: tuple[Handle, ...],
        allocated_ids: tuple[str, ...],
        rank: int,
        context: BuildContext,
    ) -> EntryResult:
        """Each candidate branch is rendered behind its own condition node."""
        if not entry.steps:
            return EntryResult(exits=predecessors)

        result = EntryResult()
        entries: list[Handle] = []
        exits: list[Handle] = []

        for branch, condition in zip(entry.steps, entry.serialized_conditions):
            condition_id, condition_path = context.allocate(
                condition.id,
                allocated_ids + tuple(node.id for node in result.nodes),
                rank,
            )
            condition_handle = Handle(condition_id, condition.id, condition_path)

            branch_result = self.process_entry(
                branch,
                (condition_handle,),
                allocated_ids + tuple(node.id for node in result.nodes) + (condition_id,),
                rank + 1,
                context,
            )
            # The step the condition gates, for correlating the gate with the run
            gated = branch_result.entries[0] if branch_result.entries else condition_handle

            condition_node = self._make_condition_node(
                condition_handle,
                condition,
                "when",
                context,
                previous_step_id=predecessors[-1].step_id if predecessors else None,
                next_step_id=gated.step_id,
            )

            gate_edges = [
                self._make_edge(
                    predecessor,
                    condition_id,
                    gated.step_id,
                    gated.step_path,
                )
                for predecessor in predecessors
            ]
            branch_edges = [
                self._tag_condition_edge(edge) if edge.source == condition_id else edge
                for edge in branch_result.edges
            ]

            result.nodes.append(condition_node)
            result.nodes.extend(branch_result.nodes)
            result.edges.extend(gate_edges)
            result.edges.extend(branch_edges)
            entries.append(condition_handle)
            exits.extend(branch_result.exits)

        result.entries = tuple(entries)
        result.exits = tuple(exits)
        return result

    def _process_loop(
        self,
        entry: LoopEntry,
        predecessors: tuple[Handle, ...],
        allocated_ids: tuple[str, ...],
        rank: int,
        context: BuildContext,
    ) -> EntryResult:
        """The loop body followed by its continuation predicate; no back-edge is drawn."""
        body = self._process_step(
            entry.step,
            False,
            predecessors,
            allocated_ids,
            rank,
            context,
        )

        condition = entry.serialized_condition
        condition_id, condition_path = context.allocate(
            condition.id,
            allocated_ids + tuple(node.id for node in body.nodes),
            rank,
        )
        condition_handle = Handle(condition_id, condition.id, condition_path)

        condition_node = self._make_condition_node(
            condition_handle,
            condition,
            entry.loop_type.value,
            context,
            previous_step_id=entry.step.id,
        )

        return EntryResult(
            nodes=[*body.nodes, condition_node],
            edges=body.edges + self._connect(body.exits, condition_handle),
            entries=body.entries,
            exits=(condition_handle,),
        )

    # ------------------------------------------------------------------
    # Node and edge factories
    # ------------------------------------------------------------------

    def _make_node(
        self,
        node_id: str,
        kind: NodeKind,
        data: NodeData,
        context: BuildContext,
    ) -> GraphNode:
        return GraphNode(
            id=node_id,
            type=kind,
            data=data,
            parent_id=context.parent_group_id,
            extent="parent" if context.in_group else None,
        )

    def _make_condition_node(
        self,
        handle: Handle,
        condition: ConditionSpec,
        condition_type: str,
        context: BuildContext,
        previous_step_id: Optional[str] = None,
        next_step_id: Optional[str] = None,
    ) -> GraphNode:
        return self._make_node(
            handle.node_id,
            NodeKind.CONDITION,
            NodeData(
                label=condition.id,
                step_path=handle.step_path,
                previous_step_id=previous_step_id,
                next_step_id=next_step_id,
                is_large=True,
                conditions=[ConditionDisplay.from_condition(condition_type, condition)],
            ),
            context,
        )

    def _connect(
        self,
        predecessors: tuple[Handle, ...],
        target: Handle,
    ) -> list[GraphEdge]:
        """One edge from every predecessor into a target handle."""
        return [
            self._make_edge(predecessor, target.node_id, target.step_id, target.step_path)
            for predecessor in predecessors
        ]

    def _make_edge(
        self,
        source: Handle,
        target_node_id: str,
        next_step_id: str,
        next_step_path: Optional[str],
    ) -> GraphEdge:
        return GraphEdge(
            id=f"e{source.node_id}-{target_node_id}",
            source=source.node_id,
            target=target_node_id,
            data=EdgeData(
                previous_step_id=source.step_id,
                next_step_id=next_step_id,
                previous_step_path=source.step_path,
                next_step_path=next_step_path,
            ),
            z_index=self.settings.edge_z_index,
            animated=self.settings.edge_animated,
            marker_end=EdgeMarker(
                width=self.settings.edge_marker_size,
                height=self.settings.edge_marker_size,
                color=self.settings.edge_marker_color,
            ),
        )

    @staticmethod
    def _mark_parallel(node: GraphNode) -> GraphNode:
        data = node.data.model_copy(update={"is_parallel": True})
        return node.model_copy(update={"data": data})

    @staticmethod
    def _tag_condition_edge(edge: GraphEdge) -> GraphEdge:
        data = edge.data.model_copy(update={"is_condition_edge": True})
        return edge.model_copy(update={"data": data})
