"""Domain package: state, reducers, derived sums and notification rules."""

from finances.domain.effects import (
    NotifyIntent,
    PersistIntent,
    PersistOperation,
    Trigger,
)
from finances.domain.rules import Alert, AlertKind, days_until_due, evaluate_rules
from finances.domain.state import EntityNotFoundError, FinanceState, Mutation
from finances.domain.totals import FinanceSummary, ShoppingSummary

__all__ = [
    "Alert",
    "AlertKind",
    "EntityNotFoundError",
    "FinanceState",
    "FinanceSummary",
    "Mutation",
    "NotifyIntent",
    "PersistIntent",
    "PersistOperation",
    "ShoppingSummary",
    "Trigger",
    "days_until_due",
    "evaluate_rules",
]
