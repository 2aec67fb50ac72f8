"""Project endpoints: replace-by-id edits, cascading delete, reconciliation and export."""

from __future__ import annotations

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from incubator.api.payloads import ProjectPayload, item_response, to_record
from incubator.db.dependencies import get_workspace_service
from incubator.models.workspace import Project
from incubator.services.workspace_service import WorkspaceService

router = APIRouter(prefix="/projects", tags=["projects"])


@router.get("")
def list_projects(service: WorkspaceService = Depends(get_workspace_service)) -> dict[str, list[object]]:
    return {"items": [project.to_payload() for project in service.state.projects]}


@router.post("", status_code=status.HTTP_201_CREATED)
def create_project(
    payload: ProjectPayload,
    service: WorkspaceService = Depends(get_workspace_service),
) -> dict[str, object]:
    return item_response(service.save_project(to_record(Project, payload)))


@router.get("/{project_id}")
def get_project(project_id: str, service: WorkspaceService = Depends(get_workspace_service)) -> dict[str, object]:
    return service.get_project(project_id).to_payload()


@router.put("/{project_id}")
def replace_project(
    project_id: str,
    payload: ProjectPayload,
    service: WorkspaceService = Depends(get_workspace_service),
) -> dict[str, object]:
    result = service.save_project(to_record(Project, payload, record_id=project_id), must_exist=True)
    return item_response(result)


@router.delete("/{project_id}")
def delete_project(project_id: str, service: WorkspaceService = Depends(get_workspace_service)) -> dict[str, object]:
    result = service.delete_project(project_id)
    return {"result": result.value.to_dict(), "warnings": result.warnings}


@router.get("/{project_id}/budget-reconciliation")
def get_budget_reconciliation(
    project_id: str,
    service: WorkspaceService = Depends(get_workspace_service),
) -> dict[str, object]:
    return service.reconcile_project(project_id).to_dict()


@router.get("/{project_id}/export")
def export_project(project_id: str, service: WorkspaceService = Depends(get_workspace_service)) -> JSONResponse:
    filename, envelope = service.export_project(project_id)
    return JSONResponse(
        content=envelope,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
