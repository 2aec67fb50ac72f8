"""Interchange endpoints: workspace backup/restore and project import."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Depends
from fastapi.responses import JSONResponse

from incubator.db.dependencies import get_workspace_service
from incubator.services.workspace_service import WorkspaceService

router = APIRouter(prefix="/interchange", tags=["interchange"])


@router.get("/workspace-backup")
def export_workspace_backup(service: WorkspaceService = Depends(get_workspace_service)) -> JSONResponse:
    filename, envelope = service.export_workspace()
    return JSONResponse(
        content=envelope,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.post("/workspace-restore")
def restore_workspace_backup(
    envelope: dict[str, Any] = Body(...),
    service: WorkspaceService = Depends(get_workspace_service),
) -> dict[str, object]:
    """Replace the whole workspace with the backup's contents."""

    result = service.restore_workspace(envelope)
    counts = {name: len(rows) for name, rows in result.value.to_payload().items()}
    return {"result": counts, "warnings": result.warnings}


@router.post("/project-import/preview")
def preview_project_import(
    envelope: dict[str, Any] = Body(...),
    service: WorkspaceService = Depends(get_workspace_service),
) -> dict[str, object]:
    return service.preview_project_import(envelope).to_dict()


@router.post("/project-import")
def import_project(
    envelope: dict[str, Any] = Body(...),
    service: WorkspaceService = Depends(get_workspace_service),
) -> dict[str, object]:
    result = service.import_project(envelope)
    return {"result": result.value.summary(), "warnings": result.warnings}
