"""Step-Flow IR - serialized description of a workflow definition.

This schema mirrors the JSON emitted by the workflow-definition serializer.
It is pure data:
- Recursive tagged union discriminated on the ``type`` key
- Accepts the serializer's camelCase keys as well as snake_case names
- Unknown entry types are preserved as ``UnknownEntry`` instead of failing
"""
from datetime import datetime
from enum import Enum
from typing import Annotated, Any, Iterable, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Discriminator, Field, Tag, TypeAdapter
from pydantic.alias_generators import to_camel


class LoopType(str, Enum):
    """Loop continuation semantics."""
    WHILE = "while"
    UNTIL = "until"
    DOWHILE = "dowhile"
    DOUNTIL = "dountil"


class IRModel(BaseModel):
    """Base model accepting camelCase aliases from the serializer."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )


class ConditionStepRef(IRModel):
    """Reference to the step whose output a structured condition reads."""

    id: str


class ConditionRef(IRModel):
    """Where a structured condition reads its value from."""

    step: Union[ConditionStepRef, Literal["trigger"]]
    path: str


class ConditionSpec(IRModel):
    """A branch or loop predicate.

    Either an opaque predicate expression (``fn``) or a structured
    reference-based query (``ref`` + ``query``).
    """

    id: str = Field(..., description="Condition identifier")
    fn: Optional[str] = Field(None, description="Predicate source code")
    ref: Optional[ConditionRef] = Field(None, description="Structured reference")
    query: Optional[dict[str, Any]] = Field(None, description="Structured query")
    conj: Optional[Literal["and", "or", "not"]] = None

    @property
    def predicate_description(self) -> str:
        """Human readable form of the predicate."""
        if self.fn:
            return self.fn
        if self.ref is not None:
            source = self.ref.step if isinstance(self.ref.step, str) else self.ref.step.id
            text = f"{source}.{self.ref.path}"
            if self.query:
                text += f" {self.query}"
            return text
        return self.id


class StepDefinition(IRModel):
    """A step as seen by the serializer."""

    id: str = Field(..., description="Step identifier")
    description: Optional[str] = Field(None, description="Step description")
    component: Optional[str] = Field(
        None,
        description="Component kind, 'WORKFLOW' for sub-workflow steps",
    )
    serialized_step_flow: Optional[list["StepFlowEntry"]] = Field(
        None,
        description="Nested step graph when the step is a sub-workflow",
    )
    map_config: Optional[str] = Field(None, description="Mapping source, for map steps")
    can_suspend: Optional[bool] = Field(None, description="Step may suspend the run")

    @property
    def has_nested_graph(self) -> bool:
        """True when this step invokes a sub-workflow."""
        if self.serialized_step_flow is None:
            return False
        return self.component is None or self.component == "WORKFLOW"


class StepEntry(IRModel):
    """A single step."""

    type: Literal["step"] = "step"
    step: StepDefinition


class ForEachEntry(IRModel):
    """A step mapped over every item of its input."""

    type: Literal["foreach"] = "foreach"
    step: StepDefinition
    opts: Optional[dict[str, Any]] = None


class SleepEntry(IRModel):
    """A timed wait for a fixed duration (milliseconds)."""

    type: Literal["sleep"] = "sleep"
    id: str
    duration: Optional[int] = None
    fn: Optional[str] = None


class SleepUntilEntry(IRModel):
    """A timed wait until an instant."""

    type: Literal["sleepUntil"] = "sleepUntil"
    id: str
    date: Optional[datetime] = None
    fn: Optional[str] = None


class ParallelEntry(IRModel):
    """Branches that run concurrently."""

    type: Literal["parallel"] = "parallel"
    steps: list["StepFlowEntry"] = Field(default_factory=list)


class ConditionalEntry(IRModel):
    """Branches of which exactly one runs; steps[i] is gated by serialized_conditions[i]."""

    type: Literal["conditional"] = "conditional"
    steps: list["StepFlowEntry"] = Field(default_factory=list)
    serialized_conditions: list[ConditionSpec] = Field(default_factory=list)


class LoopEntry(IRModel):
    """A step repeated while/until a predicate holds."""

    type: Literal["loop"] = "loop"
    step: StepDefinition
    serialized_condition: ConditionSpec
    loop_type: LoopType


class UnknownEntry(IRModel):
    """An entry of a type this compiler does not know about."""

    model_config = ConfigDict(extra="allow")

    type: Optional[str] = None


ENTRY_TYPES = {
    "step": StepEntry,
    "foreach": ForEachEntry,
    "sleep": SleepEntry,
    "sleepUntil": SleepUntilEntry,
    "parallel": ParallelEntry,
    "conditional": ConditionalEntry,
    "loop": LoopEntry,
}


def _entry_tag(value: Any) -> str:
    if isinstance(value, dict):
        entry_type = value.get("type")
    else:
        entry_type = getattr(value, "type", None)
    if isinstance(value, UnknownEntry) or entry_type not in ENTRY_TYPES:
        return "unknown"
    return entry_type


StepFlowEntry = Annotated[
    Union[
        Annotated[StepEntry, Tag("step")],
        Annotated[ForEachEntry, Tag("foreach")],
        Annotated[SleepEntry, Tag("sleep")],
        Annotated[SleepUntilEntry, Tag("sleepUntil")],
        Annotated[ParallelEntry, Tag("parallel")],
        Annotated[ConditionalEntry, Tag("conditional")],
        Annotated[LoopEntry, Tag("loop")],
        Annotated[UnknownEntry, Tag("unknown")],
    ],
    Discriminator(_entry_tag),
]

for _model in (StepDefinition, StepEntry, ForEachEntry, LoopEntry, ParallelEntry, ConditionalEntry):
    _model.model_rebuild()

_step_graph_adapter = TypeAdapter(list[StepFlowEntry])


def parse_step_graph(raw: Optional[Iterable[Any]]) -> list[StepFlowEntry]:
    """Validate a serialized step graph.

    Accepts raw dicts, already-parsed entries, or a mix of both.
    Raises pydantic.ValidationError for structurally invalid input.
    """
    if raw is None:
        return []
    return _step_graph_adapter.validate_python(list(raw))


def dump_step_graph(entries: Optional[Iterable[StepFlowEntry]]) -> Optional[list[dict[str, Any]]]:
    """Serialize parsed entries back to the serializer's camelCase JSON."""
    if entries is None:
        return None
    return _step_graph_adapter.dump_python(
        list(entries),
        mode="json",
        by_alias=True,
        exclude_none=True,
    )


def count_leaf_entries(entries: Iterable[StepFlowEntry]) -> int:
    """Count entries that render as leaf (default) nodes, at any depth."""
    total = 0
    for entry in entries:
        if isinstance(entry, (StepEntry, ForEachEntry, LoopEntry)):
            if entry.step.has_nested_graph:
                total += count_leaf_entries(entry.step.serialized_step_flow)
            else:
                total += 1
        elif isinstance(entry, (SleepEntry, SleepUntilEntry)):
            total += 1
        elif isinstance(entry, (ParallelEntry, ConditionalEntry)):
            total += count_leaf_entries(entry.steps)
    return total
