"""Workspace records: projects, members, tasks, activities, expenses and reports.

Records are immutable. Field names are snake_case in Python and camelCase in
interchange files and durable slots (``model_dump(by_alias=True)``).
"""

from __future__ import annotations

import enum
import uuid
from collections.abc import Callable, Iterator

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class BudgetItemStatus(str, enum.Enum):
    PENDING = "Pending"
    APPROVED = "Approved"
    DENIED = "Denied"


class TaskType(str, enum.Enum):
    TIME_BASED = "Time-Based"
    MILESTONE = "Milestone"


class WorkType(str, enum.Enum):
    PAID = "Paid"
    IN_KIND = "In-Kind"
    VOLUNTEER = "Volunteer"


class ActivityStatus(str, enum.Enum):
    PENDING = "Pending"
    APPROVED = "Approved"


REVENUE_ITEM_CATEGORIES: tuple[str, ...] = ("grants", "sales", "fundraising", "contributions")
EXPENSE_CATEGORIES: tuple[str, ...] = (
    "professional_fees",
    "travel",
    "production",
    "administration",
    "research",
    "professional_development",
)


def mint_id(prefix: str) -> str:
    """Return a fresh opaque identifier such as ``task_3f2a...``."""

    return f"{prefix}_{uuid.uuid4().hex}"


IdFactory = Callable[[str], str]


class WorkspaceRecord(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra="ignore",
    )

    def to_payload(self) -> dict[str, object]:
        return self.model_dump(mode="json", by_alias=True)


# ---------- Members ----------
class Member(WorkspaceRecord):
    id: str
    member_id: str = ""
    first_name: str = ""
    last_name: str = ""
    email: str = ""
    province: str = "Select"
    city: str = ""
    postal_code: str = ""
    image_url: str = ""
    short_bio: str = ""
    artist_bio: str = ""
    availability: str = "Select"

    @property
    def email_key(self) -> str:
        return self.email.strip().lower()

    @property
    def display_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


# ---------- Budget ----------
class BudgetItem(WorkspaceRecord):
    id: str
    source: str = ""
    description: str = ""
    amount: float = 0
    status: BudgetItemStatus | None = None
    actual_amount: float | None = None


class TicketBlock(WorkspaceRecord):
    num_venues: float = 0
    percent_capacity: float = 0
    venue_capacity: float = 0
    avg_ticket_price: float = 0
    description: str = ""
    actual_total_tickets: float | None = None


class BudgetRevenues(WorkspaceRecord):
    grants: tuple[BudgetItem, ...] = ()
    tickets: TicketBlock = Field(default_factory=TicketBlock)
    sales: tuple[BudgetItem, ...] = ()
    fundraising: tuple[BudgetItem, ...] = ()
    contributions: tuple[BudgetItem, ...] = ()


class BudgetExpenses(WorkspaceRecord):
    professional_fees: tuple[BudgetItem, ...] = ()
    travel: tuple[BudgetItem, ...] = ()
    production: tuple[BudgetItem, ...] = ()
    administration: tuple[BudgetItem, ...] = ()
    research: tuple[BudgetItem, ...] = ()
    professional_development: tuple[BudgetItem, ...] = ()


class Budget(WorkspaceRecord):
    revenues: BudgetRevenues = Field(default_factory=BudgetRevenues)
    expenses: BudgetExpenses = Field(default_factory=BudgetExpenses)

    def revenue_items(self, category: str) -> tuple[BudgetItem, ...]:
        return getattr(self.revenues, category)

    def expense_items(self, category: str) -> tuple[BudgetItem, ...]:
        return getattr(self.expenses, category)

    def iter_items(self) -> Iterator[tuple[str, str, BudgetItem]]:
        """Yield ``(section, category, item)`` for every line item in the budget."""

        for category in REVENUE_ITEM_CATEGORIES:
            for item in self.revenue_items(category):
                yield "revenues", category, item
        for category in EXPENSE_CATEGORIES:
            for item in self.expense_items(category):
                yield "expenses", category, item

    def item_ids(self) -> set[str]:
        return {item.id for _, _, item in self.iter_items()}

    def expense_item_ids(self) -> set[str]:
        return {item.id for category in EXPENSE_CATEGORIES for item in self.expense_items(category)}

    def map_items(self, transform: Callable[[BudgetItem], BudgetItem]) -> Budget:
        """Return a copy with ``transform`` applied to every line item, categories in order."""

        revenues = self.revenues.model_copy(
            update={
                category: tuple(transform(item) for item in self.revenue_items(category))
                for category in REVENUE_ITEM_CATEGORIES
            }
        )
        expenses = self.expenses.model_copy(
            update={
                category: tuple(transform(item) for item in self.expense_items(category))
                for category in EXPENSE_CATEGORIES
            }
        )
        return self.model_copy(update={"revenues": revenues, "expenses": expenses})


# ---------- Projects ----------
class Collaborator(WorkspaceRecord):
    member_id: str
    role: str = ""


class Project(WorkspaceRecord):
    id: str
    project_title: str = ""
    status: str = "Pending"
    artistic_disciplines: tuple[str, ...] = ()
    craft_genres: tuple[str, ...] = ()
    dance_genres: tuple[str, ...] = ()
    literary_genres: tuple[str, ...] = ()
    media_genres: tuple[str, ...] = ()
    music_genres: tuple[str, ...] = ()
    theatre_genres: tuple[str, ...] = ()
    visual_arts_genres: tuple[str, ...] = ()
    other_artistic_discipline_specify: str = ""
    project_start_date: str = ""
    project_end_date: str = ""
    activity_type: str = "Select"
    background: str = ""
    project_description: str = ""
    audience: str = ""
    payment_and_conditions: str = ""
    schedule: str = ""
    cultural_integrity: str = ""
    additional_info: str = ""
    who_will_work: str = ""
    how_selection_determined: str = ""
    collaborator_details: tuple[Collaborator, ...] = ()
    budget: Budget = Field(default_factory=Budget)


# ---------- Tasks and time ----------
class Task(WorkspaceRecord):
    id: str
    task_code: str = ""
    project_id: str
    title: str = ""
    description: str = ""
    assigned_member_id: str = ""
    status: str = "To Do"
    start_date: str = ""
    due_date: str = ""
    task_type: TaskType = TaskType.TIME_BASED
    is_complete: bool = False
    estimated_hours: float = 0
    actual_hours: float = 0
    budget_item_id: str = ""
    work_type: WorkType = WorkType.PAID
    hourly_rate: float = 0
    updated_at: str = ""


class Activity(WorkspaceRecord):
    id: str
    task_id: str
    member_id: str = ""
    description: str = ""
    start_date: str = ""
    end_date: str = ""
    start_time: str | None = None
    end_time: str | None = None
    hours: float = 0
    status: ActivityStatus = ActivityStatus.PENDING
    created_at: str = ""
    updated_at: str = ""


class DirectExpense(WorkspaceRecord):
    id: str
    project_id: str
    budget_item_id: str = ""
    description: str = ""
    amount: float = 0
    date: str = ""


# ---------- Reports ----------
class ReportHighlight(WorkspaceRecord):
    id: str
    title: str = ""
    url: str = ""


class Report(WorkspaceRecord):
    id: str
    project_id: str
    project_results: str = ""
    grant_spending_description: str = ""
    workplan_adjustments: str = ""
    involved_people: tuple[str, ...] = ()
    involved_activities: tuple[str, ...] = ()
    impact_statements: dict[str, str] = Field(default_factory=dict)
    highlights: tuple[ReportHighlight, ...] = ()
    feedback: str = ""
    additional_feedback: str = ""


# ---------- Aggregates ----------
class WorkspaceState(WorkspaceRecord):
    """One consistent snapshot of all six collections."""

    projects: tuple[Project, ...] = ()
    members: tuple[Member, ...] = ()
    tasks: tuple[Task, ...] = ()
    activities: tuple[Activity, ...] = ()
    direct_expenses: tuple[DirectExpense, ...] = ()
    reports: tuple[Report, ...] = ()

    def find_project(self, project_id: str) -> Project | None:
        return next((row for row in self.projects if row.id == project_id), None)

    def find_member(self, member_id: str) -> Member | None:
        return next((row for row in self.members if row.id == member_id), None)

    def find_task(self, task_id: str) -> Task | None:
        return next((row for row in self.tasks if row.id == task_id), None)


class ProjectBundle(WorkspaceRecord):
    """One project plus everything it transitively references."""

    project: Project
    tasks: tuple[Task, ...] = ()
    activities: tuple[Activity, ...] = ()
    direct_expenses: tuple[DirectExpense, ...] = ()
    members: tuple[Member, ...] = ()


# Collection name (Python attribute) -> record type, in slot order.
COLLECTION_TYPES: dict[str, type[WorkspaceRecord]] = {
    "projects": Project,
    "members": Member,
    "tasks": Task,
    "activities": Activity,
    "direct_expenses": DirectExpense,
    "reports": Report,
}

# Entity kind -> collection attribute on WorkspaceState.
KIND_COLLECTIONS: dict[str, str] = {
    "project": "projects",
    "member": "members",
    "task": "tasks",
    "activity": "activities",
    "direct_expense": "direct_expenses",
    "report": "reports",
}
