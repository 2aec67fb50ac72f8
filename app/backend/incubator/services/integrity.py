"""Foreign-key declarations and the checks built on them.

Every cross-record reference in the workspace is declared once in
``FOREIGN_KEYS``. The checks, repairs and the workspace audit all walk that
table, so a new reference only needs a new row.
"""

from __future__ import annotations

import enum
from collections import Counter
from collections.abc import Iterable
from dataclasses import dataclass, replace

from incubator.core.errors import DanglingReference, IntegrityViolationError
from incubator.core.logging import get_logger
from incubator.models.workspace import (
    KIND_COLLECTIONS,
    DirectExpense,
    Project,
    Task,
    WorkspaceRecord,
    WorkspaceState,
)

logger = get_logger(__name__)


class DanglingPolicy(str, enum.Enum):
    FORBID = "forbid"
    NULL_OUT = "null_out"
    DROP_ENTRY = "drop_entry"


@dataclass(frozen=True, slots=True)
class ForeignKeyRule:
    kind: str
    field: str
    target: str
    policy: DanglingPolicy
    # Budget items are looked up inside the record's own project only.
    project_scoped: bool = False
    # A value already stored on the record survives a later save even if its target is gone.
    keep_stored: bool = False


FOREIGN_KEYS: tuple[ForeignKeyRule, ...] = (
    ForeignKeyRule("project", "collaborator_details", "member", DanglingPolicy.DROP_ENTRY),
    ForeignKeyRule("task", "project_id", "project", DanglingPolicy.FORBID),
    ForeignKeyRule("task", "assigned_member_id", "member", DanglingPolicy.NULL_OUT),
    ForeignKeyRule("task", "budget_item_id", "budget_item", DanglingPolicy.NULL_OUT, project_scoped=True),
    ForeignKeyRule("activity", "task_id", "task", DanglingPolicy.FORBID),
    ForeignKeyRule("activity", "member_id", "member", DanglingPolicy.NULL_OUT, keep_stored=True),
    ForeignKeyRule("direct_expense", "project_id", "project", DanglingPolicy.FORBID),
    ForeignKeyRule("direct_expense", "budget_item_id", "budget_item", DanglingPolicy.NULL_OUT, project_scoped=True),
    ForeignKeyRule("report", "project_id", "project", DanglingPolicy.FORBID),
)


def rules_for(kind: str) -> tuple[ForeignKeyRule, ...]:
    return tuple(rule for rule in FOREIGN_KEYS if rule.kind == kind)


@dataclass(frozen=True, slots=True)
class ReferenceIndex:
    """Identifier sets for every reference target in one workspace snapshot."""

    ids: dict[str, frozenset[str]]
    budget_items: dict[str, frozenset[str]]

    @classmethod
    def from_state(cls, state: WorkspaceState) -> ReferenceIndex:
        return cls(
            ids={kind: frozenset(row.id for row in getattr(state, collection)) for kind, collection in KIND_COLLECTIONS.items()},
            budget_items={project.id: frozenset(project.budget.item_ids()) for project in state.projects},
        )

    def resolves(self, rule: ForeignKeyRule, record: WorkspaceRecord, value: str) -> bool:
        if rule.project_scoped:
            return value in self.budget_items.get(getattr(record, "project_id", ""), frozenset())
        return value in self.ids.get(rule.target, frozenset())


def _values(rule: ForeignKeyRule, record: WorkspaceRecord) -> list[str]:
    if rule.field == "collaborator_details":
        return [entry.member_id for entry in getattr(record, rule.field)]
    return [getattr(record, rule.field)]


def _is_dangling(rule: ForeignKeyRule, record: WorkspaceRecord, value: str, index: ReferenceIndex) -> bool:
    # Owning references are mandatory; optional ones may be empty.
    if not value:
        return rule.policy is DanglingPolicy.FORBID
    return not index.resolves(rule, record, value)


def check_record(kind: str, record: WorkspaceRecord, index: ReferenceIndex) -> list[DanglingReference]:
    found: list[DanglingReference] = []
    for rule in rules_for(kind):
        for value in _values(rule, record):
            if _is_dangling(rule, record, value, index):
                found.append(
                    DanglingReference(
                        kind=kind,
                        record_id=record.id,
                        field=rule.field,
                        value=value,
                        action=rule.policy.value,
                    )
                )
    return found


def _kept_from_stored(rule: ForeignKeyRule, record: WorkspaceRecord, stored: WorkspaceRecord | None) -> bool:
    if not rule.keep_stored or stored is None:
        return False
    return getattr(stored, rule.field) == getattr(record, rule.field)


def repair_record(
    kind: str,
    record: WorkspaceRecord,
    index: ReferenceIndex,
    *,
    stored: WorkspaceRecord | None = None,
) -> tuple[WorkspaceRecord, list[DanglingReference]]:
    """Apply the declared policy to each dangling reference of ``record``.

    Raises ``IntegrityViolationError`` when a mandatory reference dangles;
    tolerated references are blanked or dropped and reported back. ``stored``
    is the version being replaced: a ``keep_stored`` value it already carried
    is left in place and reported as kept.
    """

    dangling = check_record(kind, record, index)
    forbidden = [ref for ref in dangling if ref.action == DanglingPolicy.FORBID.value]
    if forbidden:
        raise IntegrityViolationError(
            "; ".join(ref.describe() for ref in forbidden),
            references=forbidden,
        )

    repaired = record
    kept_fields: set[str] = set()
    for rule in rules_for(kind):
        if rule.policy is DanglingPolicy.NULL_OUT:
            value = getattr(repaired, rule.field)
            if not _is_dangling(rule, repaired, value, index):
                continue
            if _kept_from_stored(rule, record, stored):
                kept_fields.add(rule.field)
                continue
            repaired = repaired.model_copy(update={rule.field: ""})
        elif rule.policy is DanglingPolicy.DROP_ENTRY:
            entries = getattr(repaired, rule.field)
            kept = tuple(
                entry for entry in entries if not _is_dangling(rule, repaired, entry.member_id, index)
            )
            if len(kept) != len(entries):
                repaired = repaired.model_copy(update={rule.field: kept})

    dangling = [replace(ref, action="kept") if ref.field in kept_fields else ref for ref in dangling]
    for ref in dangling:
        logger.warning("Repaired dangling reference: %s", ref.describe())
    return repaired, dangling


def audit_workspace(state: WorkspaceState) -> list[DanglingReference]:
    """Scan every record in the snapshot and report each unresolved reference."""

    index = ReferenceIndex.from_state(state)
    found: list[DanglingReference] = []
    for kind, collection in KIND_COLLECTIONS.items():
        for record in getattr(state, collection):
            found.extend(check_record(kind, record, index))
    for project in state.projects:
        for item_id in duplicate_budget_item_ids(project):
            found.append(
                DanglingReference(
                    kind="project",
                    record_id=project.id,
                    field="budget",
                    value=item_id,
                    action="duplicate_budget_item_id",
                )
            )
    return found


def duplicate_budget_item_ids(project: Project) -> list[str]:
    counts = Counter(item.id for _, _, item in project.budget.iter_items())
    return sorted(item_id for item_id, count in counts.items() if count > 1)


def ensure_unique_budget_items(project: Project) -> None:
    duplicates = duplicate_budget_item_ids(project)
    if duplicates:
        raise IntegrityViolationError(
            f"Budget item ids must be unique across the project; duplicated: {', '.join(duplicates)}."
        )


def release_budget_items(
    records: Iterable[Task | DirectExpense],
    *,
    project_id: str,
    valid_item_ids: set[str],
) -> tuple[tuple[Task | DirectExpense, ...], list[DanglingReference]]:
    """Blank ``budget_item_id`` on this project's records whose item no longer exists."""

    kind_by_type = {Task: "task", DirectExpense: "direct_expense"}
    released: list[DanglingReference] = []
    rows: list[Task | DirectExpense] = []
    for row in records:
        if row.project_id == project_id and row.budget_item_id and row.budget_item_id not in valid_item_ids:
            released.append(
                DanglingReference(
                    kind=kind_by_type[type(row)],
                    record_id=row.id,
                    field="budget_item_id",
                    value=row.budget_item_id,
                    action=DanglingPolicy.NULL_OUT.value,
                )
            )
            row = row.model_copy(update={"budget_item_id": ""})
        rows.append(row)
    return tuple(rows), released
