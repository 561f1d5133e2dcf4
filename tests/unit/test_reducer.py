"""Transition reducer tests."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from stepflow.engine.actions import Back, Next, Reset, Restore, SetContext, Skip
from stepflow.engine.definition import define_flow
from stepflow.engine.reducer import create_initial_state, reduce
from stepflow.errors import NavigationAmbiguityError
from stepflow.schemas.enums import FlowStatus, NavigationAction


class _TickingClock:
    def __init__(self) -> None:
        self.now = datetime(2026, 1, 1, tzinfo=UTC)

    def __call__(self) -> datetime:
        self.now += timedelta(seconds=1)
        return self.now


BRANCHING = define_flow(
    {
        "id": "branching",
        "start": "a",
        "steps": {"a": {"next": "b"}, "b": {"next": ["c", "d"]}, "c": {}, "d": {}},
    }
)

LINEAR = define_flow(
    {
        "id": "linear",
        "start": "s0",
        "steps": {
            "s0": {"next": "s1"},
            "s1": {"next": "s2"},
            "s2": {"next": "s3"},
            "s3": {"next": "s4"},
            "s4": {},
        },
    }
)


def test_initial_state_sits_on_start_with_one_open_entry() -> None:
    clock = _TickingClock()
    state = create_initial_state(BRANCHING, {"name": "Ada"}, clock=clock)
    assert state.step_id == "a"
    assert state.status is FlowStatus.ACTIVE
    assert state.context == {"name": "Ada"}
    assert len(state.path) == 1 and len(state.history) == 1
    assert state.path[0].is_open
    assert state.started_at == state.path[0].started_at


def test_initial_state_for_single_terminal_step_is_complete() -> None:
    definition = define_flow({"id": "one", "start": "only", "steps": {"only": {}}})
    state = create_initial_state(definition)
    assert state.status is FlowStatus.COMPLETE
    assert state.completed_at is not None


def test_branching_scenario_next_next_back() -> None:
    """a -> b (active) -> d (complete) -> back to b (active)."""
    clock = _TickingClock()
    state = create_initial_state(BRANCHING, {}, clock=clock)

    state = reduce(state, Next(), BRANCHING, clock=clock)
    assert (state.step_id, state.status) == ("b", FlowStatus.ACTIVE)

    state = reduce(state, Next(target="d"), BRANCHING, clock=clock)
    assert (state.step_id, state.status) == ("d", FlowStatus.COMPLETE)
    assert state.completed_at is not None

    state = reduce(state, Back(), BRANCHING, clock=clock)
    assert (state.step_id, state.status) == ("b", FlowStatus.ACTIVE)
    assert state.completed_at is None


@pytest.mark.parametrize("count", [1, 2, 3, 4])
def test_linear_chain_lands_on_nth_step(count: int) -> None:
    state = create_initial_state(LINEAR)
    for _ in range(count):
        state = reduce(state, Next(), LINEAR)
    assert state.step_id == f"s{count}"
    assert state.is_complete is (count == 4)
    assert [entry.step_id for entry in state.path] == [f"s{i}" for i in range(count + 1)]


def test_next_closes_previous_entry_and_opens_destination() -> None:
    clock = _TickingClock()
    state = create_initial_state(LINEAR, clock=clock)
    state = reduce(state, Skip(), LINEAR, clock=clock)

    left, current = state.history
    assert left.step_id == "s0" and left.action is NavigationAction.SKIP
    assert left.completed_at == current.started_at
    assert current.step_id == "s1" and current.is_open
    assert state.path == state.history


def test_array_next_without_target_or_resolver_is_a_lenient_noop(caplog) -> None:  # type: ignore[no-untyped-def]
    state = reduce(create_initial_state(BRANCHING), Next(), BRANCHING)
    updated = reduce(state, Next(update={"seen": True}), BRANCHING)
    assert updated.step_id == "b"
    assert updated.context == {"seen": True}
    assert len(updated.history) == len(state.history)
    assert "did not move" in caplog.text


def test_strict_mode_raises_on_unresolved_destination() -> None:
    state = reduce(create_initial_state(BRANCHING), Next(), BRANCHING)
    with pytest.raises(NavigationAmbiguityError) as exc_info:
        reduce(state, Next(), BRANCHING, strict=True)
    assert exc_info.value.step_id == "b"


def test_explicit_target_is_used_verbatim() -> None:
    state = create_initial_state(BRANCHING)
    state = reduce(state, Next(target="c"), BRANCHING)
    assert state.step_id == "c"
    assert state.is_complete


def test_callable_next_is_invoked_with_updated_context() -> None:
    definition = define_flow(
        {
            "id": "dyn",
            "start": "plan",
            "steps": {
                "plan": {"next": lambda ctx: "pro" if ctx.get("tier") == "pro" else "free"},
                "pro": {},
                "free": {},
            },
        }
    )
    state = reduce(create_initial_state(definition), Next(update={"tier": "pro"}), definition)
    assert state.step_id == "pro"


def test_callable_next_returning_none_stays_put() -> None:
    definition = define_flow(
        {"id": "guard", "start": "a", "steps": {"a": {"next": lambda ctx: None}, "b": {}}}
    )
    initial = create_initial_state(definition)
    assert reduce(initial, Next(), definition).step_id == "a"


def test_terminal_step_next_keeps_state_but_applies_update() -> None:
    state = create_initial_state(BRANCHING)
    state = reduce(state, Next(target="c"), BRANCHING)
    after = reduce(state, Next(update={"done": 1}), BRANCHING)
    assert after.step_id == "c"
    assert after.context == {"done": 1}
    assert after.history == state.history


def test_back_at_start_is_identity_and_idempotent() -> None:
    initial = create_initial_state(BRANCHING, {"x": 1})
    once = reduce(initial, Back(), BRANCHING)
    twice = reduce(once, Back(), BRANCHING)
    assert once is initial
    assert twice is initial


def test_back_truncates_path_but_appends_to_history() -> None:
    clock = _TickingClock()
    state = create_initial_state(LINEAR, clock=clock)
    state = reduce(state, Next(), LINEAR, clock=clock)
    state = reduce(state, Next(), LINEAR, clock=clock)
    before_history = len(state.history)

    state = reduce(state, Back(), LINEAR, clock=clock)

    assert state.step_id == "s1"
    assert [entry.step_id for entry in state.path] == ["s0", "s1"]
    assert len(state.history) == before_history + 1
    assert state.history[-2].step_id == "s2"
    assert state.history[-2].action is NavigationAction.BACK
    assert state.history[-1].step_id == "s1" and state.history[-1].is_open
    assert state.path[-1] == state.history[-1]


def test_set_context_merges_object_and_function_updates() -> None:
    initial = create_initial_state(BRANCHING, {"a": 0, "b": 2})
    by_object = reduce(initial, SetContext(update={"a": 1}), BRANCHING)
    by_function = reduce(
        initial, SetContext(update=lambda ctx: {"a": ctx["a"] + 1}), BRANCHING
    )
    assert by_object.context == {"a": 1, "b": 2}
    assert by_function.context == by_object.context
    assert by_object.step_id == initial.step_id
    assert by_object.history == initial.history
    assert initial.context == {"a": 0, "b": 2}


def test_function_update_does_not_mutate_previous_context() -> None:
    initial = create_initial_state(BRANCHING, {"items": 1})

    def updater(ctx: dict) -> dict:
        ctx["items"] = 99
        return {"extra": True}

    updated = reduce(initial, SetContext(update=updater), BRANCHING)
    assert initial.context == {"items": 1}
    assert updated.context == {"items": 1, "extra": True}


def test_non_mapping_update_is_rejected() -> None:
    initial = create_initial_state(BRANCHING)
    with pytest.raises(TypeError):
        reduce(initial, SetContext(update=lambda ctx: 5), BRANCHING)  # type: ignore[arg-type,return-value]


def test_restore_replaces_state_wholesale() -> None:
    other = reduce(create_initial_state(LINEAR, {"k": "v"}), Next(), LINEAR)
    restored = reduce(create_initial_state(LINEAR), Restore(state=other), LINEAR)
    assert restored == other


def test_reset_returns_to_start_with_given_context() -> None:
    state = reduce(create_initial_state(LINEAR, {"n": 1}), Next(update={"n": 2}), LINEAR)
    state = reduce(state, Reset(initial_context={"n": 1}), LINEAR)
    assert state.step_id == "s0"
    assert state.context == {"n": 1}
    assert len(state.path) == 1 and len(state.history) == 1


def test_unknown_action_is_rejected() -> None:
    with pytest.raises(TypeError):
        reduce(create_initial_state(LINEAR), object(), LINEAR)  # type: ignore[arg-type]
