"""Dependencies shared by FastAPI endpoints."""

from __future__ import annotations

from fastapi import Request

from incubator.services.workspace_service import WorkspaceService


def get_workspace_service(request: Request) -> WorkspaceService:
    """Return a service bound to the application's single entity store."""

    return WorkspaceService(request.app.state.entity_store, settings=request.app.state.settings)
