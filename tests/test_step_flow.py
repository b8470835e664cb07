"""Tests for parsing the serialized Step-Flow IR."""
from datetime import datetime

import pytest
from pydantic import ValidationError

from flowgraph.demo import SEED_STEP_GRAPH
from flowgraph.models.step_flow import (
    ConditionalEntry,
    ConditionSpec,
    ForEachEntry,
    LoopEntry,
    LoopType,
    ParallelEntry,
    SleepEntry,
    SleepUntilEntry,
    StepEntry,
    UnknownEntry,
    count_leaf_entries,
    dump_step_graph,
    parse_step_graph,
)


class TestParseStepGraph:
    """Test suite for parse_step_graph."""

    def test_none_parses_to_empty(self):
        assert parse_step_graph(None) == []

    def test_parses_every_entry_kind(self):
        entries = parse_step_graph(SEED_STEP_GRAPH)

        assert [type(e) for e in entries] == [
            StepEntry,
            ConditionalEntry,
            ParallelEntry,
            LoopEntry,
            SleepEntry,
            ForEachEntry,
        ]

    def test_camel_case_nested_step_flow(self):
        entries = parse_step_graph([
            {
                "type": "step",
                "step": {
                    "id": "sub",
                    "component": "WORKFLOW",
                    "canSuspend": True,
                    "serializedStepFlow": [{"type": "step", "step": {"id": "inner"}}],
                },
            }
        ])

        step = entries[0].step
        assert step.has_nested_graph is True
        assert step.can_suspend is True
        assert isinstance(step.serialized_step_flow[0], StepEntry)
        assert step.serialized_step_flow[0].step.id == "inner"

    def test_non_workflow_component_is_not_nested(self):
        entries = parse_step_graph([
            {
                "type": "step",
                "step": {"id": "tool", "component": "TOOL", "serializedStepFlow": []},
            }
        ])

        assert entries[0].step.has_nested_graph is False

    def test_loop_and_conditions(self):
        entries = parse_step_graph(SEED_STEP_GRAPH)

        conditional = entries[1]
        assert [c.id for c in conditional.serialized_conditions] == ["is-billing", "is-outage"]

        loop = entries[3]
        assert loop.loop_type == LoopType.DOUNTIL
        assert loop.serialized_condition.id == "review-approved"
        assert loop.step.can_suspend is True

    def test_sleep_until_date(self):
        entries = parse_step_graph([
            {"type": "sleepUntil", "id": "wait", "date": "2026-01-01T09:00:00Z"},
        ])

        assert isinstance(entries[0], SleepUntilEntry)
        assert isinstance(entries[0].date, datetime)
        assert entries[0].date.year == 2026

    def test_unknown_entry_is_preserved(self):
        entries = parse_step_graph([
            {"type": "waitForEvent", "id": "approval", "event": "approved"},
        ])

        assert isinstance(entries[0], UnknownEntry)
        assert entries[0].type == "waitForEvent"
        assert entries[0].model_extra["event"] == "approved"

    def test_entry_without_type_is_unknown(self):
        entries = parse_step_graph([{"id": "orphan"}])

        assert isinstance(entries[0], UnknownEntry)
        assert entries[0].type is None

    def test_unknown_entry_inside_nested_graph(self):
        entries = parse_step_graph([
            {
                "type": "parallel",
                "steps": [
                    {"type": "step", "step": {"id": "a"}},
                    {"type": "somethingNew"},
                ],
            }
        ])

        assert isinstance(entries[0].steps[1], UnknownEntry)

    def test_already_parsed_entries_pass_through(self):
        entries = parse_step_graph(SEED_STEP_GRAPH)

        assert parse_step_graph(entries) == entries

    def test_malformed_step_raises(self):
        with pytest.raises(ValidationError):
            parse_step_graph([{"type": "step"}])


class TestConditionSpec:
    """Test suite for ConditionSpec."""

    def test_function_predicate(self):
        condition = ConditionSpec(id="check", fn="({ inputData }) => inputData.ok")

        assert condition.predicate_description == "({ inputData }) => inputData.ok"

    def test_structured_predicate(self):
        condition = ConditionSpec.model_validate({
            "id": "check",
            "ref": {"step": {"id": "fetch"}, "path": "status"},
            "query": {"$eq": "ok"},
        })

        assert condition.predicate_description == "fetch.status {'$eq': 'ok'}"

    def test_trigger_reference(self):
        condition = ConditionSpec.model_validate({
            "id": "check",
            "ref": {"step": "trigger", "path": "payload.kind"},
        })

        assert condition.predicate_description == "trigger.payload.kind"


def test_dump_step_graph_uses_serializer_keys():
    dumped = dump_step_graph(parse_step_graph([
        {
            "type": "loop",
            "step": {"id": "poll", "canSuspend": True},
            "serializedCondition": {"id": "done", "fn": "() => true"},
            "loopType": "dowhile",
        },
        {"type": "waitForEvent", "event": "approved"},
    ]))

    assert dumped == [
        {
            "type": "loop",
            "step": {"id": "poll", "canSuspend": True},
            "serializedCondition": {"id": "done", "fn": "() => true"},
            "loopType": "dowhile",
        },
        {"type": "waitForEvent", "event": "approved"},
    ]


def test_dump_step_graph_of_none():
    assert dump_step_graph(None) is None


def test_count_leaf_entries_descends_everywhere():
    # classify, billing, fetch-status, draft-outage, crm, sentiment,
    # review body, cool-down, follow-up
    assert count_leaf_entries(parse_step_graph(SEED_STEP_GRAPH)) == 9


def test_count_leaf_entries_nested_loop_body():
    entries = parse_step_graph([
        {
            "type": "loop",
            "step": {
                "id": "retry",
                "serializedStepFlow": [
                    {"type": "step", "step": {"id": "a"}},
                    {"type": "sleep", "id": "pause", "duration": 10},
                ],
            },
            "serializedCondition": {"id": "done", "fn": "() => true"},
            "loopType": "dowhile",
        }
    ])

    assert count_leaf_entries(entries) == 2
