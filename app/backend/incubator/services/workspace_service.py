"""Application service for the workspace: edits, cascades, imports and backups."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Generic, TypeVar

from incubator.core.config import Settings, get_settings
from incubator.core.errors import DanglingReference, IntegrityViolationError, RecordNotFoundError
from incubator.core.logging import get_logger
from incubator.models.workspace import (
    KIND_COLLECTIONS,
    Activity,
    ActivityStatus,
    DirectExpense,
    Member,
    Project,
    Report,
    Task,
    TaskType,
    WorkspaceRecord,
    WorkspaceState,
    mint_id,
)
from incubator.services import interchange
from incubator.services.budget_reconciliation import BudgetReconciliation, reconcile
from incubator.services.cascade_engine import CascadeOutcome, cascade_delete
from incubator.services.entity_store import EntityStore, MutationResult
from incubator.services.import_merge import (
    ID_PREFIXES,
    BundleAnalysis,
    MergeResult,
    analyze_project_bundle,
    build_project_bundle,
    merge_project_bundle,
)
from incubator.services.integrity import (
    ReferenceIndex,
    audit_workspace,
    ensure_unique_budget_items,
    release_budget_items,
    repair_record,
)

logger = get_logger(__name__)

T = TypeVar("T")
R = TypeVar("R", bound=WorkspaceRecord)

LABELS: dict[str, str] = {
    "project": "Project",
    "member": "Member",
    "task": "Task",
    "activity": "Activity",
    "direct_expense": "Direct expense",
    "report": "Report",
}


def _now_iso() -> str:
    return datetime.now(UTC).isoformat()


@dataclass(slots=True)
class ServiceResult(Generic[T]):
    """Outcome of a mutation plus every non-fatal warning it produced."""

    value: T
    warnings: list[str] = field(default_factory=list)

    @classmethod
    def from_mutation(cls, result: MutationResult[Any], value: T, dangling: list[DanglingReference]) -> ServiceResult[T]:
        warnings = [ref.describe() for ref in dangling]
        warnings.extend(item.describe() for item in result.persistence_warnings)
        return cls(value=value, warnings=warnings)


def _replace_by_id(rows: tuple[R, ...], record: R) -> tuple[R, ...]:
    if any(row.id == record.id for row in rows):
        return tuple(record if row.id == record.id else row for row in rows)
    return (*rows, record)


class WorkspaceService:
    """Service implementing workspace edits on top of the integrity engines."""

    def __init__(self, store: EntityStore, *, settings: Settings | None = None) -> None:
        self.store = store
        self.settings = settings or get_settings()

    @property
    def state(self) -> WorkspaceState:
        return self.store.state

    # ---------- Reads ----------
    def _get(self, kind: str, record_id: str) -> Any:
        for row in getattr(self.state, KIND_COLLECTIONS[kind]):
            if row.id == record_id:
                return row
        raise RecordNotFoundError(LABELS[kind], record_id)

    def get_project(self, project_id: str) -> Project:
        return self._get("project", project_id)

    def get_member(self, member_id: str) -> Member:
        return self._get("member", member_id)

    def get_task(self, task_id: str) -> Task:
        return self._get("task", task_id)

    def get_report(self, report_id: str) -> Report:
        return self._get("report", report_id)

    def list_tasks(self, *, project_id: str | None = None) -> list[Task]:
        return [task for task in self.state.tasks if project_id is None or task.project_id == project_id]

    def list_activities(self, *, task_id: str | None = None, project_id: str | None = None) -> list[Activity]:
        task_ids = None
        if project_id is not None:
            task_ids = {task.id for task in self.state.tasks if task.project_id == project_id}
        return [
            activity
            for activity in self.state.activities
            if (task_id is None or activity.task_id == task_id) and (task_ids is None or activity.task_id in task_ids)
        ]

    def list_direct_expenses(self, *, project_id: str | None = None) -> list[DirectExpense]:
        return [row for row in self.state.direct_expenses if project_id is None or row.project_id == project_id]

    def list_reports(self, *, project_id: str | None = None) -> list[Report]:
        return [row for row in self.state.reports if project_id is None or row.project_id == project_id]

    # ---------- Replace-by-id saves ----------
    def _save(
        self,
        kind: str,
        record: R,
        *,
        must_exist: bool,
        extra: Callable[[WorkspaceState, WorkspaceState, R], tuple[WorkspaceState, list[DanglingReference]]] | None = None,
    ) -> ServiceResult[R]:
        collection = KIND_COLLECTIONS[kind]
        if not record.id:
            record = record.model_copy(update={"id": mint_id(ID_PREFIXES[kind])})

        def compute(state: WorkspaceState) -> tuple[WorkspaceState, tuple[R, list[DanglingReference]]]:
            rows = getattr(state, collection)
            stored = next((row for row in rows if row.id == record.id), None)
            exists = stored is not None
            if must_exist and not exists:
                raise RecordNotFoundError(LABELS[kind], record.id)
            if not must_exist and exists:
                raise IntegrityViolationError(f"{LABELS[kind]} id already exists: {record.id}.")

            index = ReferenceIndex.from_state(state)
            repaired, dangling = repair_record(kind, record, index, stored=stored)
            next_state = state.model_copy(update={collection: _replace_by_id(rows, repaired)})
            if extra is not None:
                next_state, more = extra(state, next_state, repaired)
                dangling = [*dangling, *more]
            return next_state, (repaired, dangling)

        result = self.store.mutate(compute)
        saved, dangling = result.value
        return ServiceResult.from_mutation(result, saved, dangling)

    def _project_extra(
        self, previous: WorkspaceState, state: WorkspaceState, project: Project
    ) -> tuple[WorkspaceState, list[DanglingReference]]:
        valid_ids = project.budget.item_ids()
        tasks, released_tasks = release_budget_items(state.tasks, project_id=project.id, valid_item_ids=valid_ids)
        expenses, released_expenses = release_budget_items(
            state.direct_expenses, project_id=project.id, valid_item_ids=valid_ids
        )
        released = [*released_tasks, *released_expenses]
        if not released:
            return state, []
        logger.info("Project %s dropped budget items; released %d reference(s).", project.id, len(released))
        return state.model_copy(update={"tasks": tasks, "direct_expenses": expenses}), released

    def save_project(self, project: Project, *, must_exist: bool = False) -> ServiceResult[Project]:
        ensure_unique_budget_items(project)
        return self._save("project", project, must_exist=must_exist, extra=self._project_extra)

    def save_member(self, member: Member, *, must_exist: bool = False) -> ServiceResult[Member]:
        return self._save("member", member, must_exist=must_exist)

    def save_task(self, task: Task, *, must_exist: bool = False) -> ServiceResult[Task]:
        update = {"updated_at": _now_iso()}
        # Only time-based tasks draw on a budget line.
        if task.task_type is TaskType.MILESTONE:
            update["budget_item_id"] = ""
        return self._save("task", task.model_copy(update=update), must_exist=must_exist)

    def save_activity(self, activity: Activity, *, must_exist: bool = False) -> ServiceResult[Activity]:
        now = _now_iso()
        update = {"updated_at": now}
        if not activity.created_at:
            update["created_at"] = now
        return self._save("activity", activity.model_copy(update=update), must_exist=must_exist)

    def approve_activity(self, activity_id: str) -> ServiceResult[Activity]:
        activity = self._get("activity", activity_id)
        return self.save_activity(activity.model_copy(update={"status": ActivityStatus.APPROVED}), must_exist=True)

    def save_direct_expense(self, expense: DirectExpense, *, must_exist: bool = False) -> ServiceResult[DirectExpense]:
        return self._save("direct_expense", expense, must_exist=must_exist)

    def _report_extra(
        self, previous: WorkspaceState, state: WorkspaceState, report: Report
    ) -> tuple[WorkspaceState, list[DanglingReference]]:
        for row in previous.reports:
            if row.project_id == report.project_id and row.id != report.id:
                raise IntegrityViolationError(f"Project {report.project_id} already has report {row.id}.")
        return state, []

    def save_report(self, report: Report, *, must_exist: bool = False) -> ServiceResult[Report]:
        return self._save("report", report, must_exist=must_exist, extra=self._report_extra)

    # ---------- Cascading deletes ----------
    def delete(self, kind: str, record_id: str) -> ServiceResult[CascadeOutcome]:
        result = self.store.mutate(lambda state: cascade_delete(state, kind, record_id))
        return ServiceResult.from_mutation(result, result.value, [])

    def delete_project(self, project_id: str) -> ServiceResult[CascadeOutcome]:
        return self.delete("project", project_id)

    def delete_member(self, member_id: str) -> ServiceResult[CascadeOutcome]:
        return self.delete("member", member_id)

    def delete_task(self, task_id: str) -> ServiceResult[CascadeOutcome]:
        return self.delete("task", task_id)

    # ---------- Reconciliation ----------
    def reconcile_project(self, project_id: str) -> BudgetReconciliation:
        state = self.state
        project = self.get_project(project_id)
        tasks = [task for task in state.tasks if task.project_id == project_id]
        task_ids = {task.id for task in tasks}
        activities = [activity for activity in state.activities if activity.task_id in task_ids]
        expenses = [expense for expense in state.direct_expenses if expense.project_id == project_id]
        return reconcile(project.budget, tasks, activities, expenses)

    # ---------- Project export / import ----------
    def export_project(self, project_id: str) -> tuple[str, dict[str, Any]]:
        bundle = build_project_bundle(self.state, project_id)
        filename = interchange.project_filename(self.settings, bundle.project.project_title)
        return filename, interchange.project_export(bundle, self.settings)

    def preview_project_import(self, raw: str | bytes | dict[str, Any]) -> BundleAnalysis:
        bundle = interchange.read_project_export(raw, self.settings)
        return analyze_project_bundle(bundle, self.state.members)

    def import_project(self, raw: str | bytes | dict[str, Any]) -> ServiceResult[MergeResult]:
        bundle = interchange.read_project_export(raw, self.settings)

        def compute(state: WorkspaceState) -> tuple[WorkspaceState, MergeResult]:
            merged = merge_project_bundle(bundle, state.members)
            return merged.apply(state), merged

        result = self.store.mutate(compute)
        return ServiceResult.from_mutation(result, result.value, result.value.warnings)

    # ---------- Workspace backup / restore ----------
    def export_workspace(self) -> tuple[str, dict[str, Any]]:
        return interchange.backup_filename(self.settings), interchange.workspace_backup(self.state, self.settings)

    def restore_workspace(self, raw: str | bytes | dict[str, Any]) -> ServiceResult[WorkspaceState]:
        restored = interchange.read_workspace_backup(raw, self.settings)
        result = self.store.mutate(lambda state: (restored, restored))
        dangling = audit_workspace(restored)
        for ref in dangling:
            logger.warning("Restored workspace carries a dangling reference: %s", ref.describe())
        logger.info("Workspace restored from backup.")
        return ServiceResult.from_mutation(result, restored, dangling)

    def clear_workspace(self) -> ServiceResult[WorkspaceState]:
        empty = WorkspaceState()
        result = self.store.mutate(lambda state: (empty, empty))
        logger.info("Workspace cleared.")
        return ServiceResult.from_mutation(result, empty, [])
