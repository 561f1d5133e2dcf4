"""Error taxonomy for definition, navigation and persistence failures."""

from __future__ import annotations

from dataclasses import dataclass


class StepflowError(Exception):
    """Base class for all engine errors."""


@dataclass(frozen=True)
class DefinitionIssue:
    """One dangling reference found while checking a flow definition."""

    step_id: str | None
    target: str
    source: str
    message: str


class DefinitionError(StepflowError, ValueError):
    """Raised when a flow definition references steps that do not exist."""

    def __init__(self, issues: list[DefinitionIssue] | str) -> None:
        if isinstance(issues, str):
            self.issues: list[DefinitionIssue] = []
            message = issues
        else:
            self.issues = list(issues)
            lines = "\n".join(f"  - {issue.message}" for issue in self.issues)
            message = f"Invalid flow definition:\n{lines}"
        super().__init__(message)


class NavigationAmbiguityError(StepflowError):
    """Raised in strict mode when NEXT/SKIP cannot resolve a destination."""

    def __init__(self, step_id: str, reason: str) -> None:
        self.step_id = step_id
        self.reason = reason
        super().__init__(f"Cannot resolve next step from {step_id!r}: {reason}")


class PersistenceError(StepflowError):
    """A save, restore or remove operation failed."""

    def __init__(
        self,
        message: str,
        *,
        operation: str,
        flow_id: str,
        key: str | None = None,
    ) -> None:
        self.operation = operation
        self.flow_id = flow_id
        self.key = key
        super().__init__(message)


class VersionMismatchError(PersistenceError):
    """Stored snapshot version differs and no migration was supplied."""

    def __init__(
        self,
        *,
        flow_id: str,
        stored_version: str | None,
        expected_version: str | None,
        key: str | None = None,
    ) -> None:
        self.stored_version = stored_version
        self.expected_version = expected_version
        super().__init__(
            f"Persisted state for {flow_id!r} has version {stored_version!r}, "
            f"expected {expected_version!r}; no migrate function supplied",
            operation="restore",
            flow_id=flow_id,
            key=key,
        )


class PersistedStateValidationError(PersistenceError):
    """Restored snapshot is incompatible with the flow definition."""

    def __init__(
        self,
        *,
        flow_id: str,
        errors: list[str],
        key: str | None = None,
    ) -> None:
        self.errors = list(errors)
        super().__init__(
            f"Persisted state for {flow_id!r} failed validation: " + "; ".join(errors),
            operation="restore",
            flow_id=flow_id,
            key=key,
        )
