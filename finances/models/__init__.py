"""
Data Models Package

This package contains all Pydantic models used by Finances.
Every document stored by either backend conforms to these schemas.
"""

from finances.models.finance import (
    Category,
    Document,
    MonthlyExpense,
    MonthlyIncome,
    ShoppingItem,
    Transaction,
    TransactionType,
    Wish,
    WishPriority,
    WishStatus,
    generate_id,
)
from finances.models.notification import Notification, NotificationType

__all__ = [
    # Finance models
    "Category",
    "Document",
    "MonthlyExpense",
    "MonthlyIncome",
    "ShoppingItem",
    "Transaction",
    "TransactionType",
    "Wish",
    "WishPriority",
    "WishStatus",
    "generate_id",
    # Notifications
    "Notification",
    "NotificationType",
]
