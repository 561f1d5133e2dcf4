"""Actions accepted by the transition reducer.

Each action is an explicit record instead of an overloaded positional
argument: ``Next(target="d")`` and ``Next(update={"plan": "pro"})`` are
distinct fields, never sniffed from one value.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Mapping, Union

from stepflow.schemas.enums import NavigationAction
from stepflow.schemas.state_models import FlowState

ContextUpdate = Union[Mapping[str, Any], Callable[[dict[str, Any]], Mapping[str, Any]]]


@dataclass(frozen=True)
class Next:
    target: str | None = None
    update: ContextUpdate | None = None

    @property
    def navigation(self) -> NavigationAction:
        return NavigationAction.NEXT


@dataclass(frozen=True)
class Skip:
    target: str | None = None
    update: ContextUpdate | None = None

    @property
    def navigation(self) -> NavigationAction:
        return NavigationAction.SKIP


@dataclass(frozen=True)
class Back:
    pass


@dataclass(frozen=True)
class SetContext:
    update: ContextUpdate


@dataclass(frozen=True)
class Restore:
    """Replace the whole state, typically right after a persistence restore."""

    state: FlowState


@dataclass(frozen=True)
class Reset:
    """Reinitialize with the context captured when the flow was created."""

    initial_context: Mapping[str, Any] | None = None


FlowAction = Union[Next, Skip, Back, SetContext, Restore, Reset]
ForwardAction = Union[Next, Skip]
