"""Flow definition validation tests."""

from __future__ import annotations

import pytest

from stepflow.engine.definition import (
    collect_definition_issues,
    define_flow,
    validate_flow_definition,
)
from stepflow.errors import DefinitionError
from stepflow.schemas.definition_models import FlowDefinition


def test_valid_linear_definition_is_accepted() -> None:
    """All referenced ids exist, so define_flow returns the model."""
    definition = define_flow(
        {
            "id": "simple",
            "start": "a",
            "steps": {"a": {"next": "b"}, "b": {"next": "c"}, "c": {}},
        }
    )
    assert isinstance(definition, FlowDefinition)
    assert definition.step_ids == ("a", "b", "c")
    assert definition.steps["c"].is_terminal


def test_missing_start_step_is_reported() -> None:
    """A start id outside steps is a definition error."""
    with pytest.raises(DefinitionError) as exc_info:
        define_flow({"id": "f", "start": "missing", "steps": {"a": {}}})
    issues = exc_info.value.issues
    assert len(issues) == 1
    assert issues[0].source == "start"
    assert issues[0].target == "missing"
    assert 'Start step "missing" does not exist' in str(exc_info.value)


def test_dangling_string_next_names_offending_step() -> None:
    with pytest.raises(DefinitionError) as exc_info:
        define_flow({"id": "f", "start": "a", "steps": {"a": {"next": "ghost"}}})
    issue = exc_info.value.issues[0]
    assert (issue.step_id, issue.target, issue.source) == ("a", "ghost", "next")


def test_dangling_array_next_reports_each_missing_target() -> None:
    definition = FlowDefinition.model_validate(
        {
            "id": "f",
            "start": "a",
            "steps": {"a": {"next": ["b", "x", "y"]}, "b": {}},
        }
    )
    issues = collect_definition_issues(definition)
    assert [(i.step_id, i.target, i.source) for i in issues] == [
        ("a", "x", "next array"),
        ("a", "y", "next array"),
    ]


def test_all_issues_are_collected_in_one_error() -> None:
    with pytest.raises(DefinitionError) as exc_info:
        define_flow(
            {
                "id": "f",
                "start": "nope",
                "steps": {"a": {"next": "b"}, "b": {"next": ["zzz"]}},
            }
        )
    assert len(exc_info.value.issues) == 2


def test_callable_next_is_exempt_from_static_checks() -> None:
    """Dynamic destinations cannot be verified ahead of time."""
    definition = FlowDefinition(
        id="dyn",
        start="a",
        steps={"a": {"next": lambda ctx: "not-a-step"}, "b": {}},
    )
    validate_flow_definition(definition)
    assert definition.steps["a"].is_dynamic


def test_empty_next_list_is_rejected() -> None:
    with pytest.raises(DefinitionError):
        define_flow({"id": "f", "start": "a", "steps": {"a": {"next": []}}})


def test_malformed_payload_raises_definition_error() -> None:
    with pytest.raises(DefinitionError):
        define_flow({"id": "f", "steps": {"a": {}}})


def test_definition_accepts_camel_case_wire_keys() -> None:
    definition = define_flow(
        {"id": "f", "start": "a", "variantId": "express", "steps": {"a": {}}}
    )
    assert definition.variant_id == "express"


def test_to_wire_round_trips_static_definition() -> None:
    raw = {
        "id": "onboarding",
        "start": "welcome",
        "version": "v1",
        "steps": {
            "welcome": {"next": "type", "label": "Hello"},
            "type": {"next": ["a", "b"]},
            "a": {},
            "b": {},
        },
    }
    definition = define_flow(raw)
    assert definition.to_wire() == raw
    assert define_flow(definition.to_wire()) == definition


def test_to_wire_refuses_callable_next() -> None:
    definition = FlowDefinition(
        id="dyn", start="a", steps={"a": {"next": lambda ctx: "b"}, "b": {}}
    )
    with pytest.raises(DefinitionError):
        definition.to_wire()
