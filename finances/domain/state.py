"""
Application State and Reducers

DESIGN DECISION: The whole application state is one immutable
FinanceState. Every mutation is a pure function

    reducer(state, ...) -> Mutation(state, effects, result)

that returns the next state plus the side effects it needs (persist a
document, run the notification rules). Nothing here performs I/O; the
controller in ``finances.orchestrator`` executes the effects.
"""

from decimal import Decimal
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict

from finances.models import (
    Category,
    Document,
    MonthlyExpense,
    MonthlyIncome,
    Notification,
    ShoppingItem,
    Transaction,
    TransactionType,
    Wish,
)
from finances.domain.effects import Effect, NotifyIntent, PersistIntent, Trigger
from finances.services.storage.interface import Collection, DuplicateError


class EntityNotFoundError(LookupError):
    """A reducer was asked to change a document that isn't in the state."""

    def __init__(self, collection: Collection, item_id: str):
        super().__init__(f"{collection.value} has no document {item_id}")
        self.collection = collection
        self.item_id = item_id


_FIELDS: dict[Collection, str] = {
    Collection.TRANSACTIONS: "transactions",
    Collection.MONTHLY_INCOMES: "monthly_incomes",
    Collection.MONTHLY_EXPENSES: "monthly_expenses",
    Collection.CATEGORIES: "categories",
    Collection.WISHES: "wishes",
    Collection.NOTIFICATIONS: "notifications",
    Collection.SHOPPING_LIST: "shopping_list",
}


class FinanceState(BaseModel):
    """Immutable snapshot of every collection."""
    model_config = ConfigDict(frozen=True)

    transactions: tuple[Transaction, ...] = ()
    monthly_incomes: tuple[MonthlyIncome, ...] = ()
    monthly_expenses: tuple[MonthlyExpense, ...] = ()
    categories: tuple[Category, ...] = ()
    wishes: tuple[Wish, ...] = ()
    notifications: tuple[Notification, ...] = ()
    shopping_list: tuple[ShoppingItem, ...] = ()

    def items(self, collection: Collection) -> tuple[Document, ...]:
        return getattr(self, _FIELDS[collection])

    def with_items(self, collection: Collection, items: tuple[Document, ...]) -> "FinanceState":
        return self.model_copy(update={_FIELDS[collection]: tuple(items)})

    def find(self, collection: Collection, item_id: str) -> Optional[Document]:
        for item in self.items(collection):
            if item.id == item_id:
                return item
        return None


class Mutation(BaseModel):
    """Result of a reducer: the next state and what the caller must do."""
    model_config = ConfigDict(frozen=True)

    state: FinanceState
    effects: tuple[Effect, ...] = ()
    result: Optional[Document] = None

    def then(self, reducer, *args: Any) -> "Mutation":
        """Chain another reducer on the new state, keeping both effect lists."""
        following = reducer(self.state, *args)
        return Mutation(
            state=following.state,
            effects=self.effects + following.effects,
            result=self.result,
        )

    def notify(self, trigger: Trigger) -> "Mutation":
        return self.model_copy(update={"effects": self.effects + (NotifyIntent(trigger=trigger),)})

    @property
    def persist_intents(self) -> list[PersistIntent]:
        return [e for e in self.effects if isinstance(e, PersistIntent)]

    @property
    def notify_intents(self) -> list[NotifyIntent]:
        return [e for e in self.effects if isinstance(e, NotifyIntent)]


# =============================================================================
# GENERIC REDUCERS
# =============================================================================

def add_item(state: FinanceState, collection: Collection, item: Document) -> Mutation:
    """Add a document under a freshly generated identifier."""
    new_item = item.with_new_id()
    if state.find(collection, new_item.id) is not None:
        raise DuplicateError(f"{collection.value} already contains {new_item.id}")
    return Mutation(
        state=state.with_items(collection, state.items(collection) + (new_item,)),
        effects=(PersistIntent.add(collection, new_item),),
        result=new_item,
    )


def update_item(
    state: FinanceState,
    collection: Collection,
    item_id: str,
    changes: dict[str, Any],
) -> Mutation:
    """Apply field changes to one document."""
    current = state.find(collection, item_id)
    if current is None:
        raise EntityNotFoundError(collection, item_id)
    updated = current.with_changes(**changes)
    items = tuple(updated if i.id == item_id else i for i in state.items(collection))
    return Mutation(
        state=state.with_items(collection, items),
        effects=(PersistIntent.update(collection, updated),),
        result=updated,
    )


def delete_item(state: FinanceState, collection: Collection, item_id: str) -> Mutation:
    current = state.find(collection, item_id)
    if current is None:
        raise EntityNotFoundError(collection, item_id)
    items = tuple(i for i in state.items(collection) if i.id != item_id)
    return Mutation(
        state=state.with_items(collection, items),
        effects=(PersistIntent.delete(collection, item_id),),
        result=current,
    )


# =============================================================================
# DERIVED CATEGORY SPENDING
# =============================================================================

def category_spent(transactions: tuple[Transaction, ...], category_name: str) -> Decimal:
    """Sum of expense amounts whose category matches the name exactly."""
    return sum(
        (
            t.amount
            for t in transactions
            if t.type == TransactionType.EXPENSE and t.category == category_name
        ),
        Decimal("0"),
    )


def refresh_category_spending(state: FinanceState) -> Mutation:
    """Recompute Category.spent and persist the categories that changed."""
    effects = []
    categories = []
    for category in state.categories:
        spent = category_spent(state.transactions, category.name)
        if spent != category.spent:
            category = category.with_changes(spent=spent)
            effects.append(PersistIntent.update(Collection.CATEGORIES, category))
        categories.append(category)
    return Mutation(
        state=state.with_items(Collection.CATEGORIES, tuple(categories)),
        effects=tuple(effects),
    )


# =============================================================================
# TRANSACTIONS
# =============================================================================

def add_transaction(state: FinanceState, transaction: Transaction) -> Mutation:
    return (
        add_item(state, Collection.TRANSACTIONS, transaction)
        .then(refresh_category_spending)
        .notify(Trigger.TRANSACTIONS)
    )


def update_transaction(state: FinanceState, transaction_id: str, **changes: Any) -> Mutation:
    return (
        update_item(state, Collection.TRANSACTIONS, transaction_id, changes)
        .then(refresh_category_spending)
        .notify(Trigger.TRANSACTIONS)
    )


def delete_transaction(state: FinanceState, transaction_id: str) -> Mutation:
    return (
        delete_item(state, Collection.TRANSACTIONS, transaction_id)
        .then(refresh_category_spending)
        .notify(Trigger.TRANSACTIONS)
    )


# =============================================================================
# MONTHLY INCOMES / EXPENSES
# =============================================================================

def add_monthly_income(state: FinanceState, income: MonthlyIncome) -> Mutation:
    return add_item(state, Collection.MONTHLY_INCOMES, income)


def update_monthly_income(state: FinanceState, income_id: str, **changes: Any) -> Mutation:
    return update_item(state, Collection.MONTHLY_INCOMES, income_id, changes)


def delete_monthly_income(state: FinanceState, income_id: str) -> Mutation:
    return delete_item(state, Collection.MONTHLY_INCOMES, income_id)


def add_monthly_expense(state: FinanceState, expense: MonthlyExpense) -> Mutation:
    return add_item(state, Collection.MONTHLY_EXPENSES, expense).notify(Trigger.MONTHLY_EXPENSES)


def update_monthly_expense(state: FinanceState, expense_id: str, **changes: Any) -> Mutation:
    return (
        update_item(state, Collection.MONTHLY_EXPENSES, expense_id, changes)
        .notify(Trigger.MONTHLY_EXPENSES)
    )


def delete_monthly_expense(state: FinanceState, expense_id: str) -> Mutation:
    return (
        delete_item(state, Collection.MONTHLY_EXPENSES, expense_id)
        .notify(Trigger.MONTHLY_EXPENSES)
    )


# =============================================================================
# CATEGORIES
# =============================================================================

def add_category(state: FinanceState, category: Category) -> Mutation:
    return add_item(state, Collection.CATEGORIES, category).then(refresh_category_spending)


def update_category(state: FinanceState, category_id: str, **changes: Any) -> Mutation:
    changes.pop("spent", None)  # derived
    return (
        update_item(state, Collection.CATEGORIES, category_id, changes)
        .then(refresh_category_spending)
    )


def delete_category(state: FinanceState, category_id: str) -> Mutation:
    return delete_item(state, Collection.CATEGORIES, category_id)


# =============================================================================
# WISHES
# =============================================================================

def add_wish(state: FinanceState, wish: Wish) -> Mutation:
    return add_item(state, Collection.WISHES, wish).notify(Trigger.WISHES)


def update_wish(state: FinanceState, wish_id: str, **changes: Any) -> Mutation:
    return update_item(state, Collection.WISHES, wish_id, changes).notify(Trigger.WISHES)


def delete_wish(state: FinanceState, wish_id: str) -> Mutation:
    return delete_item(state, Collection.WISHES, wish_id)


# =============================================================================
# SHOPPING LIST
# =============================================================================

def add_shopping_item(state: FinanceState, item: ShoppingItem) -> Mutation:
    return add_item(state, Collection.SHOPPING_LIST, item)


def update_shopping_item(state: FinanceState, item_id: str, **changes: Any) -> Mutation:
    return update_item(state, Collection.SHOPPING_LIST, item_id, changes)


def delete_shopping_item(state: FinanceState, item_id: str) -> Mutation:
    return delete_item(state, Collection.SHOPPING_LIST, item_id)


def toggle_shopping_item_purchased(state: FinanceState, item_id: str) -> Mutation:
    current = state.find(Collection.SHOPPING_LIST, item_id)
    if current is None:
        raise EntityNotFoundError(Collection.SHOPPING_LIST, item_id)
    return update_shopping_item(state, item_id, is_purchased=not current.is_purchased)


# =============================================================================
# NOTIFICATIONS
# =============================================================================

def add_notification(state: FinanceState, notification: Notification) -> Mutation:
    return add_item(state, Collection.NOTIFICATIONS, notification)


def delete_notification(state: FinanceState, notification_id: str) -> Mutation:
    return delete_item(state, Collection.NOTIFICATIONS, notification_id)


def mark_notification_read(state: FinanceState, notification_id: str) -> Mutation:
    return update_item(state, Collection.NOTIFICATIONS, notification_id, {"is_read": True})


def mark_all_notifications_read(state: FinanceState) -> Mutation:
    """Bulk-mark the feed read; a no-op when nothing is unread."""
    if all(n.is_read for n in state.notifications):
        return Mutation(state=state)
    notifications = tuple(
        n if n.is_read else n.with_changes(is_read=True)
        for n in state.notifications
    )
    return Mutation(
        state=state.with_items(Collection.NOTIFICATIONS, notifications),
        effects=(PersistIntent.replace_all(Collection.NOTIFICATIONS, notifications),),
    )
