"""Budgeted-versus-actual reconciliation for one project budget.

Actual cost is derived, never stored: approved time on paid tasks and direct
expenses are folded onto the budget line they target. Time on in-kind and
volunteer tasks is valued the same way but tracked as contributed value,
since it represents no cash outflow.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from decimal import Decimal

from incubator.models.workspace import (
    EXPENSE_CATEGORIES,
    REVENUE_ITEM_CATEGORIES,
    Activity,
    ActivityStatus,
    Budget,
    BudgetItem,
    BudgetItemStatus,
    DirectExpense,
    Task,
    TaskType,
    TicketBlock,
    WorkType,
)

ZERO = Decimal("0.00")
Q2 = Decimal("0.01")


def _q2(value: Decimal) -> Decimal:
    return value.quantize(Q2)


def _dec(value: float | int | None) -> Decimal:
    if value is None:
        return ZERO
    return Decimal(str(value))


def _money(value: Decimal | None) -> str | None:
    return None if value is None else str(value)


@dataclass(slots=True)
class _Accumulator:
    cost: Decimal = ZERO
    contributed: Decimal = ZERO
    hours: Decimal = ZERO


@dataclass(slots=True)
class ItemReconciliation:
    id: str
    category: str
    source: str
    description: str
    status: str | None
    budgeted: Decimal
    actual: Decimal
    contributed: Decimal
    hours: Decimal
    variance: Decimal

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.id,
            "category": self.category,
            "source": self.source,
            "description": self.description,
            "status": self.status,
            "budgeted": _money(self.budgeted),
            "actual": _money(self.actual),
            "contributed": _money(self.contributed),
            "hours": _money(self.hours),
            "variance": _money(self.variance),
        }


@dataclass(slots=True)
class CategoryReconciliation:
    section: str
    category: str
    budgeted: Decimal
    actual: Decimal
    contributed: Decimal
    variance: Decimal
    items: list[ItemReconciliation] = field(default_factory=list)

    def to_dict(self) -> dict[str, object]:
        return {
            "section": self.section,
            "category": self.category,
            "budgeted": _money(self.budgeted),
            "actual": _money(self.actual),
            "contributed": _money(self.contributed),
            "variance": _money(self.variance),
            "items": [item.to_dict() for item in self.items],
        }


@dataclass(slots=True)
class TicketReconciliation:
    description: str
    projected_audience: Decimal
    projected_revenue: Decimal
    # Ticket sales are not tracked per sale; None rather than zero.
    actual: Decimal | None = None

    def to_dict(self) -> dict[str, object]:
        return {
            "description": self.description,
            "projected_audience": _money(self.projected_audience),
            "projected_revenue": _money(self.projected_revenue),
            "actual": _money(self.actual),
            "actual_tracked": self.actual is not None,
        }


@dataclass(slots=True)
class BudgetTotals:
    projected_revenue: Decimal
    projected_expenses: Decimal
    balance: Decimal
    actual_revenue: Decimal
    actual_expenses: Decimal
    contributed_value: Decimal
    unallocated_actual: Decimal
    secured_revenue: Decimal
    pending_revenue: Decimal

    def to_dict(self) -> dict[str, object]:
        return {
            "projected_revenue": _money(self.projected_revenue),
            "projected_expenses": _money(self.projected_expenses),
            "balance": _money(self.balance),
            "actual_revenue": _money(self.actual_revenue),
            "actual_expenses": _money(self.actual_expenses),
            "contributed_value": _money(self.contributed_value),
            "unallocated_actual": _money(self.unallocated_actual),
            "secured_revenue": _money(self.secured_revenue),
            "pending_revenue": _money(self.pending_revenue),
        }


@dataclass(slots=True)
class BudgetReconciliation:
    revenues: list[CategoryReconciliation]
    tickets: TicketReconciliation
    expenses: list[CategoryReconciliation]
    totals: BudgetTotals

    def category(self, name: str) -> CategoryReconciliation:
        for row in (*self.revenues, *self.expenses):
            if row.category == name:
                return row
        raise KeyError(name)

    def item(self, item_id: str) -> ItemReconciliation:
        for row in (*self.revenues, *self.expenses):
            for item in row.items:
                if item.id == item_id:
                    return item
        raise KeyError(item_id)

    def to_dict(self) -> dict[str, object]:
        return {
            "revenues": [row.to_dict() for row in self.revenues],
            "tickets": self.tickets.to_dict(),
            "expenses": [row.to_dict() for row in self.expenses],
            "totals": self.totals.to_dict(),
        }


def ticket_projection(tickets: TicketBlock) -> TicketReconciliation:
    audience = _dec(tickets.num_venues) * (_dec(tickets.percent_capacity) / Decimal(100)) * _dec(tickets.venue_capacity)
    return TicketReconciliation(
        description=tickets.description,
        projected_audience=_q2(audience),
        projected_revenue=_q2(audience * _dec(tickets.avg_ticket_price)),
    )


def accumulate_actuals(
    tasks: Iterable[Task],
    activities: Iterable[Activity],
    direct_expenses: Iterable[DirectExpense],
) -> dict[str, _Accumulator]:
    """Fold approved time and direct expenses onto budget item ids.

    Direct expenses with no budget item land under the empty key.
    """

    task_map = {task.id: task for task in tasks}
    actuals: dict[str, _Accumulator] = {}

    for activity in activities:
        if activity.status is not ActivityStatus.APPROVED:
            continue
        task = task_map.get(activity.task_id)
        if task is None or not task.budget_item_id or task.task_type is TaskType.MILESTONE:
            continue
        hours = _dec(activity.hours)
        value = hours * _dec(task.hourly_rate)
        current = actuals.setdefault(task.budget_item_id, _Accumulator())
        if task.work_type is WorkType.PAID:
            current.cost += value
        else:
            current.contributed += value
        current.hours += hours

    for expense in direct_expenses:
        current = actuals.setdefault(expense.budget_item_id, _Accumulator())
        current.cost += _dec(expense.amount)

    return actuals


def _revenue_category(category: str, items: tuple[BudgetItem, ...]) -> CategoryReconciliation:
    rows: list[ItemReconciliation] = []
    for item in items:
        budgeted = _q2(_dec(item.amount))
        actual = _q2(_dec(item.actual_amount))
        rows.append(
            ItemReconciliation(
                id=item.id,
                category=category,
                source=item.source,
                description=item.description,
                status=item.status.value if item.status else None,
                budgeted=budgeted,
                actual=actual,
                contributed=ZERO,
                hours=ZERO,
                variance=budgeted - actual,
            )
        )
    # Denied requests are listed but count toward neither projected nor actual totals.
    counted = [row for row in rows if row.status != BudgetItemStatus.DENIED.value]
    budgeted = sum((row.budgeted for row in counted), ZERO)
    actual = sum((row.actual for row in counted), ZERO)
    return CategoryReconciliation(
        section="revenues",
        category=category,
        budgeted=budgeted,
        actual=actual,
        contributed=ZERO,
        variance=budgeted - actual,
        items=rows,
    )


def _expense_category(category: str, items: tuple[BudgetItem, ...], actuals: dict[str, _Accumulator]) -> CategoryReconciliation:
    rows: list[ItemReconciliation] = []
    for item in items:
        acc = actuals.get(item.id, _Accumulator())
        budgeted = _q2(_dec(item.amount))
        actual = _q2(acc.cost)
        rows.append(
            ItemReconciliation(
                id=item.id,
                category=category,
                source=item.source,
                description=item.description,
                status=item.status.value if item.status else None,
                budgeted=budgeted,
                actual=actual,
                contributed=_q2(acc.contributed),
                hours=_q2(acc.hours),
                variance=budgeted - actual,
            )
        )
    budgeted = sum((row.budgeted for row in rows), ZERO)
    actual = sum((row.actual for row in rows), ZERO)
    return CategoryReconciliation(
        section="expenses",
        category=category,
        budgeted=budgeted,
        actual=actual,
        contributed=sum((row.contributed for row in rows), ZERO),
        variance=budgeted - actual,
        items=rows,
    )


def _sum_by_status(categories: list[CategoryReconciliation], status: BudgetItemStatus) -> Decimal:
    return sum(
        (item.budgeted for row in categories for item in row.items if item.status == status.value),
        ZERO,
    )


def reconcile(
    budget: Budget,
    tasks: Iterable[Task],
    activities: Iterable[Activity],
    direct_expenses: Iterable[DirectExpense],
) -> BudgetReconciliation:
    """Compute projected and actual figures per line item, per category and overall.

    Pure: the same inputs always yield the same result.
    """

    actuals = accumulate_actuals(tasks, activities, direct_expenses)

    revenues = [_revenue_category(category, budget.revenue_items(category)) for category in REVENUE_ITEM_CATEGORIES]
    expenses = [
        _expense_category(category, budget.expense_items(category), actuals) for category in EXPENSE_CATEGORIES
    ]
    tickets = ticket_projection(budget.revenues.tickets)

    expense_ids = budget.expense_item_ids()
    unallocated = sum((_q2(acc.cost) for item_id, acc in actuals.items() if item_id not in expense_ids), ZERO)
    contributed = sum((_q2(acc.contributed) for acc in actuals.values()), ZERO)

    projected_revenue = sum((row.budgeted for row in revenues), ZERO) + tickets.projected_revenue
    projected_expenses = sum((row.budgeted for row in expenses), ZERO)
    totals = BudgetTotals(
        projected_revenue=projected_revenue,
        projected_expenses=projected_expenses,
        balance=projected_revenue - projected_expenses,
        actual_revenue=sum((row.actual for row in revenues), ZERO),
        actual_expenses=sum((row.actual for row in expenses), ZERO),
        contributed_value=contributed,
        unallocated_actual=unallocated,
        secured_revenue=_sum_by_status(revenues, BudgetItemStatus.APPROVED),
        pending_revenue=_sum_by_status(revenues, BudgetItemStatus.PENDING),
    )
    return BudgetReconciliation(revenues=revenues, tickets=tickets, expenses=expenses, totals=totals)
