"""Direct expense endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, status

from incubator.api.payloads import DirectExpensePayload, item_response, to_record
from incubator.db.dependencies import get_workspace_service
from incubator.models.workspace import DirectExpense
from incubator.services.workspace_service import WorkspaceService

router = APIRouter(prefix="/direct-expenses", tags=["direct-expenses"])


@router.get("")
def list_direct_expenses(
    project_id: str | None = Query(default=None),
    service: WorkspaceService = Depends(get_workspace_service),
) -> dict[str, list[object]]:
    return {"items": [row.to_payload() for row in service.list_direct_expenses(project_id=project_id)]}


@router.post("", status_code=status.HTTP_201_CREATED)
def create_direct_expense(
    payload: DirectExpensePayload,
    service: WorkspaceService = Depends(get_workspace_service),
) -> dict[str, object]:
    return item_response(service.save_direct_expense(to_record(DirectExpense, payload)))


@router.put("/{expense_id}")
def replace_direct_expense(
    expense_id: str,
    payload: DirectExpensePayload,
    service: WorkspaceService = Depends(get_workspace_service),
) -> dict[str, object]:
    result = service.save_direct_expense(to_record(DirectExpense, payload, record_id=expense_id), must_exist=True)
    return item_response(result)


@router.delete("/{expense_id}")
def delete_direct_expense(expense_id: str, service: WorkspaceService = Depends(get_workspace_service)) -> dict[str, object]:
    result = service.delete("direct_expense", expense_id)
    return {"result": result.value.to_dict(), "warnings": result.warnings}
