"""Whole-workspace read and clear endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from incubator.db.dependencies import get_workspace_service
from incubator.services.integrity import audit_workspace
from incubator.services.workspace_service import WorkspaceService

router = APIRouter(prefix="/workspace", tags=["workspace"])


@router.get("")
def get_workspace(service: WorkspaceService = Depends(get_workspace_service)) -> dict[str, object]:
    return service.state.to_payload()


@router.get("/integrity")
def get_workspace_integrity(service: WorkspaceService = Depends(get_workspace_service)) -> dict[str, object]:
    """List every unresolved reference in the current workspace."""

    return {"items": [ref.describe() for ref in audit_workspace(service.state)]}


@router.delete("")
def clear_workspace(service: WorkspaceService = Depends(get_workspace_service)) -> dict[str, object]:
    result = service.clear_workspace()
    return {"result": result.value.to_payload(), "warnings": result.warnings}
