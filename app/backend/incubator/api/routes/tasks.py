"""Task and activity endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, status

from incubator.api.payloads import ActivityPayload, TaskPayload, item_response, to_record
from incubator.db.dependencies import get_workspace_service
from incubator.models.workspace import Activity, Task
from incubator.services.workspace_service import WorkspaceService

router = APIRouter(tags=["tasks"])


# ---------- Tasks ----------
@router.get("/tasks")
def list_tasks(
    project_id: str | None = Query(default=None),
    service: WorkspaceService = Depends(get_workspace_service),
) -> dict[str, list[object]]:
    return {"items": [task.to_payload() for task in service.list_tasks(project_id=project_id)]}


@router.post("/tasks", status_code=status.HTTP_201_CREATED)
def create_task(payload: TaskPayload, service: WorkspaceService = Depends(get_workspace_service)) -> dict[str, object]:
    return item_response(service.save_task(to_record(Task, payload)))


@router.get("/tasks/{task_id}")
def get_task(task_id: str, service: WorkspaceService = Depends(get_workspace_service)) -> dict[str, object]:
    return service.get_task(task_id).to_payload()


@router.put("/tasks/{task_id}")
def replace_task(
    task_id: str,
    payload: TaskPayload,
    service: WorkspaceService = Depends(get_workspace_service),
) -> dict[str, object]:
    return item_response(service.save_task(to_record(Task, payload, record_id=task_id), must_exist=True))


@router.delete("/tasks/{task_id}")
def delete_task(task_id: str, service: WorkspaceService = Depends(get_workspace_service)) -> dict[str, object]:
    result = service.delete_task(task_id)
    return {"result": result.value.to_dict(), "warnings": result.warnings}


# ---------- Activities ----------
@router.get("/activities")
def list_activities(
    task_id: str | None = Query(default=None),
    project_id: str | None = Query(default=None),
    service: WorkspaceService = Depends(get_workspace_service),
) -> dict[str, list[object]]:
    rows = service.list_activities(task_id=task_id, project_id=project_id)
    return {"items": [activity.to_payload() for activity in rows]}


@router.post("/activities", status_code=status.HTTP_201_CREATED)
def create_activity(
    payload: ActivityPayload,
    service: WorkspaceService = Depends(get_workspace_service),
) -> dict[str, object]:
    return item_response(service.save_activity(to_record(Activity, payload)))


@router.put("/activities/{activity_id}")
def replace_activity(
    activity_id: str,
    payload: ActivityPayload,
    service: WorkspaceService = Depends(get_workspace_service),
) -> dict[str, object]:
    result = service.save_activity(to_record(Activity, payload, record_id=activity_id), must_exist=True)
    return item_response(result)


@router.post("/activities/{activity_id}/approve")
def approve_activity(activity_id: str, service: WorkspaceService = Depends(get_workspace_service)) -> dict[str, object]:
    return item_response(service.approve_activity(activity_id))


@router.delete("/activities/{activity_id}")
def delete_activity(activity_id: str, service: WorkspaceService = Depends(get_workspace_service)) -> dict[str, object]:
    result = service.delete("activity", activity_id)
    return {"result": result.value.to_dict(), "warnings": result.warnings}
