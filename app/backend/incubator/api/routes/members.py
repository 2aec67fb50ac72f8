"""Member endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, status

from incubator.api.payloads import MemberPayload, item_response, to_record
from incubator.db.dependencies import get_workspace_service
from incubator.models.workspace import Member
from incubator.services.workspace_service import WorkspaceService

router = APIRouter(prefix="/members", tags=["members"])


@router.get("")
def list_members(service: WorkspaceService = Depends(get_workspace_service)) -> dict[str, list[object]]:
    return {"items": [member.to_payload() for member in service.state.members]}


@router.post("", status_code=status.HTTP_201_CREATED)
def create_member(
    payload: MemberPayload,
    service: WorkspaceService = Depends(get_workspace_service),
) -> dict[str, object]:
    return item_response(service.save_member(to_record(Member, payload)))


@router.get("/{member_id}")
def get_member(member_id: str, service: WorkspaceService = Depends(get_workspace_service)) -> dict[str, object]:
    return service.get_member(member_id).to_payload()


@router.put("/{member_id}")
def replace_member(
    member_id: str,
    payload: MemberPayload,
    service: WorkspaceService = Depends(get_workspace_service),
) -> dict[str, object]:
    return item_response(service.save_member(to_record(Member, payload, record_id=member_id), must_exist=True))


@router.delete("/{member_id}")
def delete_member(member_id: str, service: WorkspaceService = Depends(get_workspace_service)) -> dict[str, object]:
    """Remove the member; projects and tasks are kept, activities keep their history."""

    result = service.delete_member(member_id)
    return {"result": result.value.to_dict(), "warnings": result.warnings}
