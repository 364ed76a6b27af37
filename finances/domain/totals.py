"""
Derived Sums

Simple aggregates shown on the dashboard and used by the rules.
All amounts are Decimal; empty collections sum to zero.
"""

from collections import defaultdict
from decimal import Decimal

from pydantic import BaseModel, Field

from finances.models import TransactionType
from finances.domain.state import FinanceState


ZERO = Decimal("0")


class FinanceSummary(BaseModel):
    """Dashboard figures."""

    total_incomes: Decimal
    total_expenses: Decimal
    balance: Decimal = Field(description="Total incomes minus total expenses")
    total_monthly_incomes: Decimal = Field(description="Active recurring incomes only")
    total_monthly_expenses: Decimal = Field(description="Active recurring expenses only")
    total_wishes: Decimal
    unread_notifications: int = Field(ge=0)


class ShoppingSummary(BaseModel):
    """Shopping list progress."""

    total_items: int = Field(ge=0)
    purchased_items: int = Field(ge=0)
    pending_items: int = Field(ge=0)
    purchased_percentage: float = Field(ge=0.0, le=100.0)
    total_value: Decimal
    purchased_value: Decimal


def total_incomes(state: FinanceState) -> Decimal:
    return sum(
        (t.amount for t in state.transactions if t.type == TransactionType.INCOME),
        ZERO,
    )


def total_expenses(state: FinanceState) -> Decimal:
    return sum(
        (t.amount for t in state.transactions if t.type == TransactionType.EXPENSE),
        ZERO,
    )


def available_balance(state: FinanceState) -> Decimal:
    return total_incomes(state) - total_expenses(state)


def total_monthly_incomes(state: FinanceState) -> Decimal:
    return sum((i.amount for i in state.monthly_incomes if i.is_active), ZERO)


def total_monthly_expenses(state: FinanceState) -> Decimal:
    return sum((e.amount for e in state.monthly_expenses if e.is_active), ZERO)


def total_wishes(state: FinanceState) -> Decimal:
    return sum((w.estimated_price for w in state.wishes), ZERO)


def wishes_total_by_category(state: FinanceState) -> dict[str, Decimal]:
    totals: dict[str, Decimal] = defaultdict(lambda: ZERO)
    for wish in state.wishes:
        totals[wish.category] += wish.estimated_price
    return dict(totals)


def unread_notifications_count(state: FinanceState) -> int:
    return sum(1 for n in state.notifications if not n.is_read)


def finance_summary(state: FinanceState) -> FinanceSummary:
    incomes = total_incomes(state)
    expenses = total_expenses(state)
    return FinanceSummary(
        total_incomes=incomes,
        total_expenses=expenses,
        balance=incomes - expenses,
        total_monthly_incomes=total_monthly_incomes(state),
        total_monthly_expenses=total_monthly_expenses(state),
        total_wishes=total_wishes(state),
        unread_notifications=unread_notifications_count(state),
    )


def shopping_summary(state: FinanceState) -> ShoppingSummary:
    items = state.shopping_list
    purchased = [item for item in items if item.is_purchased]
    percentage = round(len(purchased) / len(items) * 100, 1) if items else 0.0
    return ShoppingSummary(
        total_items=len(items),
        purchased_items=len(purchased),
        pending_items=len(items) - len(purchased),
        purchased_percentage=percentage,
        total_value=sum((item.price for item in items), ZERO),
        purchased_value=sum((item.price for item in purchased), ZERO),
    )
