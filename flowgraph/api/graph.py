"""Graph API endpoints - compile step graphs and correlate them with runs."""
import structlog
from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field, ValidationError

from flowgraph.graph.compiler import StepGraphCompiler
from flowgraph.graph.run_correlation import correlate
from flowgraph.models.run_state import RunState

logger = structlog.get_logger()

router = APIRouter()


class CompileRequest(BaseModel):
    """Request body for compiling a step graph."""

    step_graph: list[dict] = Field(
        default_factory=list,
        description="Serialized step graph",
    )


class CompileResponse(BaseModel):
    """Response body for a compiled step graph."""

    nodes: list[dict]
    edges: list[dict]
    steps_flow: dict[str, list[str]]


class CorrelateRequest(BaseModel):
    """Request body for correlating a step graph with a run."""

    step_graph: list[dict] = Field(
        default_factory=list,
        description="Serialized step graph",
    )
    run_state: RunState = Field(
        default_factory=RunState,
        description="Step states of the run, keyed by step path or id",
    )


class CorrelateResponse(BaseModel):
    """Response body for a run correlation."""

    active_edge_ids: list[str]
    node_statuses: dict[str, str]


@router.post("/graph/compile", response_model=CompileResponse)
async def compile_graph(request: CompileRequest) -> CompileResponse:
    """
    Compile a serialized step graph into positioned nodes and edges.

    Every node's data carries the predecessor index (``stepsFlow``).
    """
    logger.info("compile_request", entry_count=len(request.step_graph))

    try:
        compiled = StepGraphCompiler().compile(request.step_graph)
    except ValidationError as e:
        logger.warning("compile_invalid_step_graph", error=str(e))
        raise HTTPException(status_code=422, detail=str(e))
    except Exception as e:
        logger.error("compile_error", error=str(e))
        raise HTTPException(status_code=500, detail=str(e))

    flow = compiled.to_flow()

    return CompileResponse(
        nodes=flow["nodes"],
        edges=flow["edges"],
        steps_flow=compiled.steps_flow,
    )


@router.post("/graph/correlate", response_model=CorrelateResponse)
async def correlate_graph(request: CorrelateRequest) -> CorrelateResponse:
    """
    Compile a step graph and report which edges and nodes a run went through.
    """
    logger.info(
        "correlate_request",
        entry_count=len(request.step_graph),
        recorded_steps=len(request.run_state.steps),
    )

    try:
        compiled = StepGraphCompiler().compile(request.step_graph)
    except ValidationError as e:
        logger.warning("correlate_invalid_step_graph", error=str(e))
        raise HTTPException(status_code=422, detail=str(e))
    except Exception as e:
        logger.error("correlate_error", error=str(e))
        raise HTTPException(status_code=500, detail=str(e))

    overlay = correlate(compiled, request.run_state)

    return CorrelateResponse(
        active_edge_ids=overlay.active_edge_ids,
        node_statuses=overlay.node_statuses,
    )
