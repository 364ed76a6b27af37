"""
Finances - Source Package

A personal finance tracker for a single user on a single device:
transactions, monthly recurring incomes/expenses, budget categories,
wishes, a shopping list and an in-app notification feed.

DESIGN PRINCIPLES:
1. State changes are pure functions; side effects are explicit intents
2. The cloud store is preferred, the local store is always there
3. Notifications are derived from state, never stored as truth
4. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Finances Team"
