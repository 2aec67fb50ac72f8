"""Non-destructive merge of an exported project bundle into a workspace.

Every identifier in the bundle is translated exactly once through an
``IdTranslationTable``: members are matched to existing workspace members by
email, everything else gets a freshly minted id. Records are then rewritten
through the table, so no field in the result can keep a bundle identifier
unless the table has no entry for it, which is reported as a warning.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field

from incubator.core.errors import DanglingReference, RecordNotFoundError
from incubator.core.logging import get_logger
from incubator.models.workspace import (
    Activity,
    BudgetItem,
    DirectExpense,
    IdFactory,
    Member,
    Project,
    ProjectBundle,
    Task,
    WorkspaceState,
    mint_id,
)

logger = get_logger(__name__)

ID_PREFIXES: dict[str, str] = {
    "member": "mem",
    "project": "proj",
    "budget_item": "bud",
    "task": "task",
    "activity": "act",
    "direct_expense": "dexp",
    "report": "rep",
}


class IdTranslationTable:
    """Old bundle id -> workspace id, namespaced by entity kind."""

    def __init__(self, id_factory: IdFactory = mint_id) -> None:
        self._id_factory = id_factory
        self._entries: dict[tuple[str, str], str] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def bind(self, kind: str, old_id: str, new_id: str) -> str:
        self._entries[(kind, old_id)] = new_id
        return new_id

    def mint(self, kind: str, old_id: str) -> str:
        return self.bind(kind, old_id, self._id_factory(ID_PREFIXES[kind]))

    def get(self, kind: str, old_id: str) -> str | None:
        if not old_id:
            return None
        return self._entries.get((kind, old_id))


@dataclass(frozen=True, slots=True)
class MemberMatch:
    bundle_member_id: str
    workspace_member_id: str
    email: str


@dataclass(slots=True)
class BundleAnalysis:
    matched_members: list[Member] = field(default_factory=list)
    new_members: list[Member] = field(default_factory=list)

    def to_dict(self) -> dict[str, object]:
        def _row(member: Member) -> dict[str, str]:
            return {"id": member.id, "name": member.display_name, "email": member.email}

        return {
            "matched_members": [_row(member) for member in self.matched_members],
            "new_members": [_row(member) for member in self.new_members],
        }


@dataclass(slots=True)
class MergeResult:
    project: Project
    tasks: tuple[Task, ...]
    activities: tuple[Activity, ...]
    direct_expenses: tuple[DirectExpense, ...]
    members: tuple[Member, ...]
    member_matches: list[MemberMatch] = field(default_factory=list)
    warnings: list[DanglingReference] = field(default_factory=list)

    def apply(self, state: WorkspaceState) -> WorkspaceState:
        """Append the merged records to ``state``; existing records are untouched."""

        return state.model_copy(
            update={
                "projects": (*state.projects, self.project),
                "members": (*state.members, *self.members),
                "tasks": (*state.tasks, *self.tasks),
                "activities": (*state.activities, *self.activities),
                "direct_expenses": (*state.direct_expenses, *self.direct_expenses),
            }
        )

    def summary(self) -> dict[str, object]:
        return {
            "project_id": self.project.id,
            "project_title": self.project.project_title,
            "tasks": len(self.tasks),
            "activities": len(self.activities),
            "direct_expenses": len(self.direct_expenses),
            "new_members": [member.id for member in self.members],
            "matched_members": [
                {"bundle_member_id": match.bundle_member_id, "workspace_member_id": match.workspace_member_id}
                for match in self.member_matches
            ],
        }


def _email_index(members: Iterable[Member]) -> dict[str, Member]:
    index: dict[str, Member] = {}
    for member in members:
        # Blank emails never match; first member wins for duplicated emails.
        if member.email_key and member.email_key not in index:
            index[member.email_key] = member
    return index


def analyze_project_bundle(bundle: ProjectBundle, workspace_members: Iterable[Member]) -> BundleAnalysis:
    """Preview which bundle members will be matched and which created."""

    existing = _email_index(workspace_members)
    analysis = BundleAnalysis()
    for member in bundle.members:
        if member.email_key in existing:
            analysis.matched_members.append(member)
        else:
            analysis.new_members.append(member)
    return analysis


class _Merge:
    def __init__(self, bundle: ProjectBundle, workspace_members: Iterable[Member], id_factory: IdFactory) -> None:
        self.bundle = bundle
        self.workspace_by_email = _email_index(workspace_members)
        self.table = IdTranslationTable(id_factory)
        self.warnings: list[DanglingReference] = []
        self.matches: list[MemberMatch] = []

    def _dangling(self, kind: str, record_id: str, field_name: str, value: str, action: str) -> None:
        ref = DanglingReference(kind=kind, record_id=record_id, field=field_name, value=value, action=action)
        logger.warning("Bundle inconsistency: %s", ref.describe())
        self.warnings.append(ref)

    def _optional(self, kind: str, record_kind: str, record_id: str, field_name: str, old: str) -> str:
        if not old:
            return ""
        new = self.table.get(kind, old)
        if new is None:
            self._dangling(record_kind, record_id, field_name, old, "null_out")
            return ""
        return new

    def members(self) -> tuple[Member, ...]:
        created: dict[str, Member] = {}
        for member in self.bundle.members:
            existing = self.workspace_by_email.get(member.email_key)
            if existing is not None:
                self.table.bind("member", member.id, existing.id)
                self.matches.append(MemberMatch(member.id, existing.id, member.email))
                continue
            if member.email_key and member.email_key in created:
                self.table.bind("member", member.id, created[member.email_key].id)
                continue
            new_member = member.model_copy(update={"id": self.table.mint("member", member.id)})
            created[member.email_key or new_member.id] = new_member
        return tuple(created.values())

    def project(self) -> Project:
        old = self.bundle.project
        new_id = self.table.mint("project", old.id)

        collaborators = []
        for entry in old.collaborator_details:
            member_id = self.table.get("member", entry.member_id)
            if member_id is None:
                # Kept as-is so the inconsistency stays visible.
                self._dangling("project", new_id, "collaborator_details", entry.member_id, "kept")
                member_id = entry.member_id
            collaborators.append(entry.model_copy(update={"member_id": member_id}))

        def _fresh(item: BudgetItem) -> BudgetItem:
            return item.model_copy(update={"id": self.table.mint("budget_item", item.id)})

        return old.model_copy(
            update={
                "id": new_id,
                "collaborator_details": tuple(collaborators),
                "budget": old.budget.map_items(_fresh),
            }
        )

    def _project_id(self, record_kind: str, record_id: str, old: str, new_project_id: str) -> str:
        mapped = self.table.get("project", old)
        if mapped is None:
            self._dangling(record_kind, record_id, "project_id", old, "reassigned")
            return new_project_id
        return mapped

    def tasks(self, new_project_id: str) -> tuple[Task, ...]:
        rows: list[Task] = []
        for task in self.bundle.tasks:
            new_id = self.table.mint("task", task.id)
            rows.append(
                task.model_copy(
                    update={
                        "id": new_id,
                        "project_id": self._project_id("task", new_id, task.project_id, new_project_id),
                        "assigned_member_id": self._optional(
                            "member", "task", new_id, "assigned_member_id", task.assigned_member_id
                        ),
                        "budget_item_id": self._optional(
                            "budget_item", "task", new_id, "budget_item_id", task.budget_item_id
                        ),
                    }
                )
            )
        return tuple(rows)

    def activities(self) -> tuple[Activity, ...]:
        rows: list[Activity] = []
        for activity in self.bundle.activities:
            new_id = self.table.mint("activity", activity.id)
            task_id = self.table.get("task", activity.task_id)
            if task_id is None:
                self._dangling("activity", new_id, "task_id", activity.task_id, "dropped")
                continue
            rows.append(
                activity.model_copy(
                    update={
                        "id": new_id,
                        "task_id": task_id,
                        "member_id": self._optional("member", "activity", new_id, "member_id", activity.member_id),
                    }
                )
            )
        return tuple(rows)

    def direct_expenses(self, new_project_id: str) -> tuple[DirectExpense, ...]:
        rows: list[DirectExpense] = []
        for expense in self.bundle.direct_expenses:
            new_id = self.table.mint("direct_expense", expense.id)
            rows.append(
                expense.model_copy(
                    update={
                        "id": new_id,
                        "project_id": self._project_id("direct_expense", new_id, expense.project_id, new_project_id),
                        "budget_item_id": self._optional(
                            "budget_item", "direct_expense", new_id, "budget_item_id", expense.budget_item_id
                        ),
                    }
                )
            )
        return tuple(rows)


def merge_project_bundle(
    bundle: ProjectBundle,
    workspace_members: Iterable[Member],
    *,
    id_factory: IdFactory = mint_id,
) -> MergeResult:
    """Translate ``bundle`` into fresh records ready to append to the workspace."""

    merge = _Merge(bundle, workspace_members, id_factory)
    # Members first, then project and budget items, so tasks can resolve all three.
    members = merge.members()
    project = merge.project()
    tasks = merge.tasks(project.id)
    activities = merge.activities()
    direct_expenses = merge.direct_expenses(project.id)

    logger.info(
        "Merged bundle for project %r: %d task(s), %d activity(ies), %d expense(s), %d new / %d matched member(s).",
        project.project_title,
        len(tasks),
        len(activities),
        len(direct_expenses),
        len(members),
        len(merge.matches),
    )
    return MergeResult(
        project=project,
        tasks=tasks,
        activities=activities,
        direct_expenses=direct_expenses,
        members=members,
        member_matches=merge.matches,
        warnings=merge.warnings,
    )


def build_project_bundle(state: WorkspaceState, project_id: str) -> ProjectBundle:
    """Collect one project and everything it references for export."""

    project = state.find_project(project_id)
    if project is None:
        raise RecordNotFoundError("Project", project_id)

    tasks = tuple(task for task in state.tasks if task.project_id == project_id)
    task_ids = {task.id for task in tasks}
    activities = tuple(activity for activity in state.activities if activity.task_id in task_ids)
    direct_expenses = tuple(expense for expense in state.direct_expenses if expense.project_id == project_id)

    member_ids = {entry.member_id for entry in project.collaborator_details}
    member_ids.update(task.assigned_member_id for task in tasks)
    member_ids.update(activity.member_id for activity in activities)
    members = tuple(member for member in state.members if member.id in member_ids)

    return ProjectBundle(
        project=project,
        tasks=tasks,
        activities=activities,
        direct_expenses=direct_expenses,
        members=members,
    )
