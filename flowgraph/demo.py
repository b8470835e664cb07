"""Seed demo: Customer Support Triage workflow.

This script demonstrates the full compile pipeline with a support triage
workflow that:

1. Classifies the incoming message
2. Routes to the appropriate handler:
   - Billing issues → Billing drafter
   - Outage reports → Status check (sub-workflow) → Outage drafter
3. Enriches the ticket in parallel (CRM lookup + sentiment)
4. Polls for an agent review until it is approved
5. Waits before sending the follow-up

Run ``flowgraph-demo`` to print the compiled graph.
"""

import json

from flowgraph.graph.compiler import StepGraphCompiler
from flowgraph.utils.graph_printer import print_compiled_graph, print_compiled_graph_compact

# Serialized step graph, as produced by the workflow-definition serializer
SEED_STEP_GRAPH = [
    {"type": "step", "step": {"id": "classify-message", "description": "Classify intent and urgency"}},
    {
        "type": "conditional",
        "steps": [
            {"type": "step", "step": {"id": "draft-billing-response"}},
            {
                "type": "step",
                "step": {
                    "id": "check-status",
                    "description": "Check the status API",
                    "component": "WORKFLOW",
                    "serializedStepFlow": [
                        {"type": "step", "step": {"id": "fetch-status"}},
                        {"type": "step", "step": {"id": "draft-outage-response"}},
                    ],
                },
            },
        ],
        "serializedConditions": [
            {"id": "is-billing", "fn": "({ inputData }) => inputData.category === 'billing'"},
            {"id": "is-outage", "fn": "({ inputData }) => inputData.category === 'outage'"},
        ],
    },
    {
        "type": "parallel",
        "steps": [
            {"type": "step", "step": {"id": "lookup-crm"}},
            {"type": "step", "step": {"id": "score-sentiment"}},
        ],
    },
    {
        "type": "loop",
        "step": {"id": "request-review", "canSuspend": True},
        "serializedCondition": {"id": "review-approved", "fn": "({ inputData }) => inputData.approved"},
        "loopType": "dountil",
    },
    {"type": "sleep", "id": "cool-down", "duration": 60000},
    {"type": "foreach", "step": {"id": "send-follow-up"}, "opts": {"concurrency": 2}},
]


def run_seed_demo(as_json: bool = False) -> str:
    """Compile the seed step graph and render it as text (or canvas JSON)."""
    compiler = StepGraphCompiler()
    compiled = compiler.compile(SEED_STEP_GRAPH)

    errors = compiler.validate_compiled(compiled)
    if errors:
        raise ValueError(f"Compiled graph is invalid: {errors}")

    if as_json:
        return json.dumps(compiled.to_flow(), indent=2)

    return "\n".join([
        print_compiled_graph(compiled, title="Customer Support Triage"),
        "",
        print_compiled_graph_compact(compiled),
    ])


def main() -> None:
    print(run_seed_demo())


if __name__ == "__main__":
    main()
