"""Domain errors and warning records raised or returned by workspace services."""

from __future__ import annotations

from dataclasses import dataclass


class WorkspaceError(Exception):
    """Base class for errors raised by the workspace core."""


class RecordNotFoundError(WorkspaceError):
    def __init__(self, kind: str, record_id: str) -> None:
        super().__init__(f"{kind} not found.")
        self.kind = kind
        self.record_id = record_id


class IntegrityViolationError(WorkspaceError):
    """A record would leave a forbidden reference dangling, or break budget item uniqueness."""

    def __init__(self, message: str, *, references: list["DanglingReference"] | None = None) -> None:
        super().__init__(message)
        self.references = list(references or [])


class InterchangeValidationError(WorkspaceError):
    """An interchange file was malformed or carried the wrong type/version tag."""

    def __init__(self, message: str, *, fields: list[str] | None = None) -> None:
        super().__init__(message)
        self.fields = list(fields or [])


@dataclass(frozen=True, slots=True)
class DanglingReference:
    """A foreign key that could not be resolved, and what was done about it."""

    kind: str
    record_id: str
    field: str
    value: str
    action: str

    def describe(self) -> str:
        return f"{self.kind} {self.record_id}: {self.field}={self.value!r} is dangling ({self.action})."


@dataclass(frozen=True, slots=True)
class PersistenceWarning:
    """A durable-store write that failed after the in-memory state was published."""

    slots: tuple[str, ...]
    reason: str

    def describe(self) -> str:
        return f"Local save failed for {', '.join(self.slots)}: {self.reason}"
