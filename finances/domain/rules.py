"""
Notification Rules

Inspects the financial state after a mutation and produces alerts:

BUDGET LIMITS (first pass):
- spent/budget >= 100%  -> exceeded
- spent/budget >= 80%   -> warning (ratio configurable)

BUDGET PROGRESS (graded pass):
- spent > budget        -> exceeded
- spent == budget       -> limit reached
- >= 90%, >= 75%        -> progress at that tier

WISH AFFORDABILITY:
- balance (incomes - expenses) >= estimated price of a non-achieved wish

DUE DATES:
- active recurring expense charged in 7 days, 3 days, today, or yesterday

KNOWN BEHAVIOUR, kept on purpose:
- Both budget passes run on every transaction change, so one category can
  get two alerts from a single mutation.
- Nothing remembers which alerts were already sent. Running a check twice
  with the same state (or twice on the same day) emits the same alerts twice.

Every function here is pure; the controller turns alerts into
notifications.
"""

import calendar
from datetime import date, timedelta
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel

from finances.models import Notification, NotificationType, WishStatus
from finances.domain.effects import Trigger
from finances.domain.state import FinanceState, category_spent
from finances.domain.totals import available_balance


DEFAULT_WARNING_RATIO = Decimal("0.8")
PROGRESS_TIERS = (90, 75)
REMINDER_DAYS = {
    7: NotificationType.INFO,
    3: NotificationType.WARNING,
}


class AlertKind(str, Enum):
    BUDGET_EXCEEDED = "budget_exceeded"
    BUDGET_WARNING = "budget_warning"
    BUDGET_LIMIT_REACHED = "budget_limit_reached"
    BUDGET_PROGRESS = "budget_progress"
    WISH_ACHIEVABLE = "wish_achievable"
    DUE_SOON = "due_soon"
    DUE_TODAY = "due_today"
    OVERDUE = "overdue"


class Alert(BaseModel):
    """Something the user should be told about."""

    kind: AlertKind
    title: str
    message: str
    type: NotificationType
    subject_id: str
    tier: Optional[int] = None

    def to_notification(self) -> Notification:
        return Notification(title=self.title, message=self.message, type=self.type)


def _money(value: Decimal) -> str:
    return f"{value:.2f}"


def _percent(spent: Decimal, budget: Decimal) -> int:
    return int(spent / budget * 100)


# =============================================================================
# BUDGETS
# =============================================================================

def check_budget_limits(
    state: FinanceState,
    warning_ratio: Decimal = DEFAULT_WARNING_RATIO,
) -> list[Alert]:
    """First budget pass: exceeded at 100%, warning at the warning ratio."""
    alerts = []
    for category in state.categories:
        if category.max_budget <= 0:
            continue
        spent = category_spent(state.transactions, category.name)
        ratio = spent / category.max_budget
        figures = f"{_money(spent)}/{_money(category.max_budget)}"

        if ratio >= 1:
            alerts.append(Alert(
                kind=AlertKind.BUDGET_EXCEEDED,
                title=f"Budget exceeded: {category.name}",
                message=(
                    f"You have spent {_percent(spent, category.max_budget)}% of the "
                    f"{category.name} budget ({figures})."
                ),
                type=NotificationType.ERROR,
                subject_id=category.id,
            ))
        elif ratio >= warning_ratio:
            alerts.append(Alert(
                kind=AlertKind.BUDGET_WARNING,
                title=f"Budget alert: {category.name}",
                message=(
                    f"You have used {_percent(spent, category.max_budget)}% of the "
                    f"{category.name} budget ({figures})."
                ),
                type=NotificationType.WARNING,
                subject_id=category.id,
            ))
    return alerts


def check_budget_progress(state: FinanceState) -> list[Alert]:
    """Graded budget pass: exceeded, exact limit, 90% and 75% tiers."""
    alerts = []
    for category in state.categories:
        budget = category.max_budget
        if budget <= 0:
            continue
        spent = category_spent(state.transactions, category.name)
        figures = f"{_money(spent)}/{_money(budget)}"

        if spent > budget:
            alerts.append(Alert(
                kind=AlertKind.BUDGET_EXCEEDED,
                title=f"{category.name}: budget exceeded",
                message=(
                    f"{category.name} is over budget by {_money(spent - budget)} ({figures})."
                ),
                type=NotificationType.ERROR,
                subject_id=category.id,
                tier=100,
            ))
            continue

        if spent == budget:
            alerts.append(Alert(
                kind=AlertKind.BUDGET_LIMIT_REACHED,
                title=f"{category.name}: budget limit reached",
                message=f"{category.name} has used its entire budget ({figures}).",
                type=NotificationType.WARNING,
                subject_id=category.id,
                tier=100,
            ))
            continue

        for tier in PROGRESS_TIERS:
            if spent * 100 >= budget * tier:
                alerts.append(Alert(
                    kind=AlertKind.BUDGET_PROGRESS,
                    title=f"{category.name}: {tier}% of budget",
                    message=f"{category.name} has reached {tier}% of its budget ({figures}).",
                    type=NotificationType.WARNING if tier >= 90 else NotificationType.INFO,
                    subject_id=category.id,
                    tier=tier,
                ))
                break
    return alerts


# =============================================================================
# WISHES
# =============================================================================

def check_wish_affordability(state: FinanceState) -> list[Alert]:
    """Every non-achieved wish the current balance can pay for."""
    balance = available_balance(state)
    alerts = []
    for wish in state.wishes:
        if wish.status == WishStatus.ACHIEVED:
            continue
        if balance >= wish.estimated_price:
            alerts.append(Alert(
                kind=AlertKind.WISH_ACHIEVABLE,
                title=f"Wish can be achieved: {wish.name}",
                message=(
                    f"Your balance of {_money(balance)} covers {wish.name} "
                    f"({_money(wish.estimated_price)})."
                ),
                type=NotificationType.SUCCESS,
                subject_id=wish.id,
            ))
    return alerts


# =============================================================================
# DUE DATES
# =============================================================================

def due_date_in_month(year: int, month: int, day_of_month: int) -> date:
    """The charge date in a month; days past the month's end clamp to its last day."""
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(day_of_month, last_day))


def _next_month(year: int, month: int) -> tuple[int, int]:
    return (year + 1, 1) if month == 12 else (year, month + 1)


def days_until_due(day_of_month: int, today: date) -> int:
    """
    Days until the next charge.

    Returns -1 when the charge was yesterday, otherwise the days until the
    next occurrence (this month if not yet passed, else next month).
    """
    yesterday = today - timedelta(days=1)
    if due_date_in_month(yesterday.year, yesterday.month, day_of_month) == yesterday:
        return -1

    due = due_date_in_month(today.year, today.month, day_of_month)
    if due < today:
        year, month = _next_month(today.year, today.month)
        due = due_date_in_month(year, month, day_of_month)
    return (due - today).days


def check_due_dates(state: FinanceState, today: date) -> list[Alert]:
    """Reminders for active recurring expenses at 7, 3, 0 and -1 days."""
    alerts = []
    for expense in state.monthly_expenses:
        if not expense.is_active:
            continue
        days = days_until_due(expense.day_of_month, today)
        label = f"{expense.name} ({_money(expense.amount)})"

        if days in REMINDER_DAYS:
            alerts.append(Alert(
                kind=AlertKind.DUE_SOON,
                title=f"Upcoming charge: {expense.name}",
                message=f"{label} will be charged in {days} days, on day {expense.day_of_month}.",
                type=REMINDER_DAYS[days],
                subject_id=expense.id,
            ))
        elif days == 0:
            alerts.append(Alert(
                kind=AlertKind.DUE_TODAY,
                title=f"Charge due today: {expense.name}",
                message=f"{label} is charged today.",
                type=NotificationType.WARNING,
                subject_id=expense.id,
            ))
        elif days == -1:
            alerts.append(Alert(
                kind=AlertKind.OVERDUE,
                title=f"Charge overdue: {expense.name}",
                message=f"{label} was due yesterday (day {expense.day_of_month}).",
                type=NotificationType.ERROR,
                subject_id=expense.id,
            ))
    return alerts


# =============================================================================
# DISPATCH
# =============================================================================

def evaluate_rules(
    state: FinanceState,
    trigger: Trigger,
    today: date,
    warning_ratio: Decimal = DEFAULT_WARNING_RATIO,
) -> list[Alert]:
    """Run the rule groups a trigger wakes up, in a fixed order."""
    alerts: list[Alert] = []
    if trigger in (Trigger.TRANSACTIONS, Trigger.FULL):
        alerts.extend(check_budget_limits(state, warning_ratio))
        alerts.extend(check_budget_progress(state))
    if trigger in (Trigger.TRANSACTIONS, Trigger.WISHES, Trigger.FULL):
        alerts.extend(check_wish_affordability(state))
    if trigger in (Trigger.MONTHLY_EXPENSES, Trigger.FULL):
        alerts.extend(check_due_dates(state, today))
    return alerts
