"""Cascading deletion across the workspace collections."""

from __future__ import annotations

import enum
from collections import deque
from dataclasses import dataclass, field

from incubator.core.logging import get_logger
from incubator.models.workspace import KIND_COLLECTIONS, WorkspaceRecord, WorkspaceState

logger = get_logger(__name__)


class CascadePolicy(str, enum.Enum):
    DELETE = "cascade_delete"
    NULL_OUT = "null_out"
    STRIP_ENTRY = "strip_entry"
    # Reference is intentionally kept: time logs outlive the member who logged them.
    PRESERVE = "preserve"


@dataclass(frozen=True, slots=True)
class Dependency:
    dependent: str
    field: str
    policy: CascadePolicy


DEPENDENCIES: dict[str, tuple[Dependency, ...]] = {
    "project": (
        Dependency("task", "project_id", CascadePolicy.DELETE),
        Dependency("direct_expense", "project_id", CascadePolicy.DELETE),
        Dependency("report", "project_id", CascadePolicy.DELETE),
    ),
    "task": (Dependency("activity", "task_id", CascadePolicy.DELETE),),
    "member": (
        Dependency("project", "collaborator_details", CascadePolicy.STRIP_ENTRY),
        Dependency("task", "assigned_member_id", CascadePolicy.NULL_OUT),
        Dependency("activity", "member_id", CascadePolicy.PRESERVE),
    ),
    "activity": (),
    "direct_expense": (),
    "report": (),
}


@dataclass(slots=True)
class CascadeOutcome:
    target_kind: str
    target_id: str
    removed: dict[str, list[str]] = field(default_factory=dict)
    updated: dict[str, list[str]] = field(default_factory=dict)

    @property
    def found(self) -> bool:
        return self.target_id in self.removed.get(self.target_kind, [])

    def to_dict(self) -> dict[str, object]:
        return {
            "target_kind": self.target_kind,
            "target_id": self.target_id,
            "found": self.found,
            "removed": {kind: list(ids) for kind, ids in self.removed.items()},
            "updated": {kind: list(ids) for kind, ids in self.updated.items()},
        }


def _references(row: WorkspaceRecord, dependency: Dependency, owner_ids: set[str]) -> bool:
    if dependency.policy is CascadePolicy.STRIP_ENTRY:
        return any(entry.member_id in owner_ids for entry in getattr(row, dependency.field))
    return getattr(row, dependency.field) in owner_ids


def _neutralize(row: WorkspaceRecord, dependency: Dependency, owner_ids: set[str]) -> WorkspaceRecord:
    if dependency.policy is CascadePolicy.STRIP_ENTRY:
        kept = tuple(entry for entry in getattr(row, dependency.field) if entry.member_id not in owner_ids)
        return row.model_copy(update={dependency.field: kept})
    return row.model_copy(update={dependency.field: ""})


def _collect_removals(state: WorkspaceState, kind: str, record_id: str) -> dict[str, set[str]]:
    removed: dict[str, set[str]] = {name: set() for name in KIND_COLLECTIONS}
    removed[kind].add(record_id)
    queue: deque[tuple[str, str]] = deque([(kind, record_id)])
    # Breadth-first: a project's task ids are known before their activities are filtered.
    while queue:
        owner_kind, owner_id = queue.popleft()
        for dependency in DEPENDENCIES[owner_kind]:
            if dependency.policy is not CascadePolicy.DELETE:
                continue
            for row in getattr(state, KIND_COLLECTIONS[dependency.dependent]):
                if getattr(row, dependency.field) == owner_id and row.id not in removed[dependency.dependent]:
                    removed[dependency.dependent].add(row.id)
                    queue.append((dependency.dependent, row.id))
    return removed


def cascade_delete(state: WorkspaceState, kind: str, record_id: str) -> tuple[WorkspaceState, CascadeOutcome]:
    """Return the next state with ``record_id`` and its dependents removed or neutralized.

    Unknown ids are a no-op: the same state object is returned unchanged.
    """

    if kind not in DEPENDENCIES:
        raise ValueError(f"Unknown entity kind: {kind}")

    outcome = CascadeOutcome(target_kind=kind, target_id=record_id)
    collection = KIND_COLLECTIONS[kind]
    if not any(row.id == record_id for row in getattr(state, collection)):
        logger.debug("Delete of unknown %s %s ignored.", kind, record_id)
        return state, outcome

    removed = _collect_removals(state, kind, record_id)
    rows_by_kind: dict[str, list[WorkspaceRecord]] = {
        name: [row for row in getattr(state, KIND_COLLECTIONS[name]) if row.id not in removed[name]]
        for name in KIND_COLLECTIONS
    }

    updated: dict[str, list[str]] = {}
    for owner_kind, owner_ids in removed.items():
        if not owner_ids:
            continue
        for dependency in DEPENDENCIES[owner_kind]:
            rows = rows_by_kind[dependency.dependent]
            if dependency.policy is CascadePolicy.PRESERVE:
                kept = sum(1 for row in rows if _references(row, dependency, owner_ids))
                if kept:
                    logger.info(
                        "Kept %d %s record(s) referencing deleted %s.",
                        kept,
                        dependency.dependent,
                        owner_kind,
                    )
                continue
            if dependency.policy is CascadePolicy.DELETE:
                continue
            for position, row in enumerate(rows):
                if _references(row, dependency, owner_ids):
                    rows[position] = _neutralize(row, dependency, owner_ids)
                    updated.setdefault(dependency.dependent, []).append(row.id)

    changes: dict[str, tuple[WorkspaceRecord, ...]] = {}
    for name, rows in rows_by_kind.items():
        if removed[name] or name in updated:
            changes[KIND_COLLECTIONS[name]] = tuple(rows)

    outcome.removed = {name: sorted(ids) for name, ids in removed.items() if ids}
    outcome.updated = {name: sorted(set(ids)) for name, ids in updated.items()}
    logger.info(
        "Cascade delete of %s %s removed %s, updated %s.",
        kind,
        record_id,
        {name: len(ids) for name, ids in outcome.removed.items()},
        {name: len(ids) for name, ids in outcome.updated.items()},
    )
    return state.model_copy(update=changes), outcome


def delete_project(state: WorkspaceState, project_id: str) -> tuple[WorkspaceState, CascadeOutcome]:
    return cascade_delete(state, "project", project_id)


def delete_member(state: WorkspaceState, member_id: str) -> tuple[WorkspaceState, CascadeOutcome]:
    return cascade_delete(state, "member", member_id)


def delete_task(state: WorkspaceState, task_id: str) -> tuple[WorkspaceState, CascadeOutcome]:
    return cascade_delete(state, "task", task_id)
