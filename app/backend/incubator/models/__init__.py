"""Model package: workspace records and the slot ORM entity."""

from incubator.models.entities import WorkspaceSlot
from incubator.models.workspace import (
    Activity,
    ActivityStatus,
    Budget,
    BudgetExpenses,
    BudgetItem,
    BudgetItemStatus,
    BudgetRevenues,
    Collaborator,
    DirectExpense,
    Member,
    Project,
    ProjectBundle,
    Report,
    ReportHighlight,
    Task,
    TaskType,
    TicketBlock,
    WorkType,
    WorkspaceState,
)

__all__ = [
    "Activity",
    "ActivityStatus",
    "Budget",
    "BudgetExpenses",
    "BudgetItem",
    "BudgetItemStatus",
    "BudgetRevenues",
    "Collaborator",
    "DirectExpense",
    "Member",
    "Project",
    "ProjectBundle",
    "Report",
    "ReportHighlight",
    "Task",
    "TaskType",
    "TicketBlock",
    "WorkType",
    "WorkspaceSlot",
    "WorkspaceState",
]
