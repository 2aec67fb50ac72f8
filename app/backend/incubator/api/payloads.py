"""Request payloads: workspace records whose id may be omitted on create."""

from __future__ import annotations

from typing import TypeVar

from incubator.models.workspace import Activity, DirectExpense, Member, Project, Report, Task, WorkspaceRecord
from incubator.services.workspace_service import ServiceResult

R = TypeVar("R", bound=WorkspaceRecord)


class ProjectPayload(Project):
    id: str = ""


class MemberPayload(Member):
    id: str = ""


class TaskPayload(Task):
    id: str = ""


class ActivityPayload(Activity):
    id: str = ""


class DirectExpensePayload(DirectExpense):
    id: str = ""


class ReportPayload(Report):
    id: str = ""


def to_record(record_type: type[R], payload: WorkspaceRecord, *, record_id: str | None = None) -> R:
    """Rebuild ``payload`` as a plain record, optionally forcing its id."""

    data = payload.model_dump()
    if record_id is not None:
        data["id"] = record_id
    return record_type.model_validate(data)


def item_response(result: ServiceResult[WorkspaceRecord]) -> dict[str, object]:
    return {"item": result.value.to_payload(), "warnings": result.warnings}
