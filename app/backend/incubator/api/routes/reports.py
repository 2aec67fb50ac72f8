"""Project report endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, status

from incubator.api.payloads import ReportPayload, item_response, to_record
from incubator.db.dependencies import get_workspace_service
from incubator.models.workspace import Report
from incubator.services.workspace_service import WorkspaceService

router = APIRouter(prefix="/reports", tags=["reports"])


@router.get("")
def list_reports(
    project_id: str | None = Query(default=None),
    service: WorkspaceService = Depends(get_workspace_service),
) -> dict[str, list[object]]:
    return {"items": [row.to_payload() for row in service.list_reports(project_id=project_id)]}


@router.post("", status_code=status.HTTP_201_CREATED)
def create_report(payload: ReportPayload, service: WorkspaceService = Depends(get_workspace_service)) -> dict[str, object]:
    return item_response(service.save_report(to_record(Report, payload)))


@router.get("/{report_id}")
def get_report(report_id: str, service: WorkspaceService = Depends(get_workspace_service)) -> dict[str, object]:
    return service.get_report(report_id).to_payload()


@router.put("/{report_id}")
def replace_report(
    report_id: str,
    payload: ReportPayload,
    service: WorkspaceService = Depends(get_workspace_service),
) -> dict[str, object]:
    return item_response(service.save_report(to_record(Report, payload, record_id=report_id), must_exist=True))


@router.delete("/{report_id}")
def delete_report(report_id: str, service: WorkspaceService = Depends(get_workspace_service)) -> dict[str, object]:
    result = service.delete("report", report_id)
    return {"result": result.value.to_dict(), "warnings": result.warnings}
