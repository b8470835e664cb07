"""Run-state models.

The run-state store is an external collaborator. These models describe
what it hands back for a step so the graph can be correlated with a run.
"""
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class StepStatus(str, Enum):
    """Execution status of a step within a run."""
    IDLE = "idle"
    RUNNING = "running"
    SUCCESS = "success"
    FAILED = "failed"
    SUSPENDED = "suspended"
    WAITING = "waiting"


class StepRunState(BaseModel):
    """Recorded state of one step in a run."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )

    status: StepStatus
    tripwire: Optional[Any] = None
    started_at: Optional[float] = None
    ended_at: Optional[float] = None
    input: Optional[Any] = None
    output: Optional[Any] = None
    error: Optional[Any] = None


class RunState(BaseModel):
    """Step states of one run, keyed by step path (or flat step id for older runs)."""

    steps: dict[str, StepRunState] = Field(default_factory=dict)

    def lookup(self, key: Optional[str]) -> Optional[StepRunState]:
        """Get the state recorded under a step path or id."""
        if not key:
            return None
        return self.steps.get(key)
