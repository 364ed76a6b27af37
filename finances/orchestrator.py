"""
Main Orchestrator for Finances

This module owns the application state and ties the pure reducers to
storage and the notification rules.

Flow of every mutation:
1. Reducer → next state + effects (no I/O)
2. Persist intents → executed in order against storage
3. Commit → the next state becomes current
4. Notify intents → rules run on the committed state, one notification
   is added (and persisted) per alert

DESIGN DECISION: A failed write is logged and rethrown. The state is not
committed, so memory never shows data storage didn't accept. There is no
partial-failure recovery: writes that already succeeded stay written.
"""

import asyncio
from datetime import date
from decimal import Decimal
from typing import Any, Callable, Optional

from finances.config import get_settings
from finances.domain import state as reducers
from finances.domain import totals
from finances.domain.effects import PersistIntent, PersistOperation, Trigger
from finances.domain.rules import evaluate_rules
from finances.domain.state import FinanceState, Mutation
from finances.domain.totals import FinanceSummary, ShoppingSummary
from finances.logger import configure_logging, get_logger
from finances.models import (
    Category,
    MonthlyExpense,
    MonthlyIncome,
    Notification,
    ShoppingItem,
    Transaction,
    Wish,
)
from finances.services.storage import (
    Collection,
    FallbackStorage,
    GoogleSheetsStorage,
    LocalStorage,
    StorageInterface,
)


logger = get_logger(__name__)


class FinanceController:
    """
    Single owner of the application state.

    Every public mutation goes through ``_apply`` so persistence and
    notification rules behave the same for all entity types.
    """

    def __init__(
        self,
        storage: StorageInterface,
        settle_delay: float = 0.0,
        budget_warning_ratio: float = 0.8,
        clock: Callable[[], date] = date.today,
    ):
        """
        Initialize the controller.

        Args:
            storage: Backend for every collection (usually FallbackStorage)
            settle_delay: Seconds to wait before running notification rules
            budget_warning_ratio: Warning threshold for the first budget pass
            clock: Source of "today" for due-date reminders
        """
        self._storage = storage
        self._settle_delay = settle_delay
        self._warning_ratio = Decimal(str(budget_warning_ratio))
        self._clock = clock
        self._state = FinanceState()

    @property
    def state(self) -> FinanceState:
        return self._state

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    async def load(self) -> FinanceState:
        """Read every collection from storage into memory."""
        state = FinanceState()
        for collection in Collection:
            items = await self._storage.load(collection)
            state = state.with_items(collection, tuple(items))

        # Category.spent is derived; what was stored may be stale
        self._state = reducers.refresh_category_spending(state).state
        logger.info(
            "state_loaded",
            backend=self._storage.backend_name,
            transactions=len(self._state.transactions),
            notifications=len(self._state.notifications),
        )
        return self._state

    async def refresh(self, collection: Collection) -> None:
        """Reload one collection, e.g. after a local change event."""
        items = await self._storage.load(collection)
        self._state = self._state.with_items(collection, tuple(items))
        if collection in (Collection.TRANSACTIONS, Collection.CATEGORIES):
            self._state = reducers.refresh_category_spending(self._state).state

    # ------------------------------------------------------------------
    # Effect execution
    # ------------------------------------------------------------------

    async def _persist(self, intent: PersistIntent) -> None:
        if intent.operation == PersistOperation.ADD:
            await self._storage.add(intent.collection, intent.item)
        elif intent.operation == PersistOperation.UPDATE:
            await self._storage.update(intent.collection, intent.item)
        elif intent.operation == PersistOperation.DELETE:
            await self._storage.delete(intent.collection, intent.item_id)
        elif intent.operation == PersistOperation.REPLACE_ALL:
            await self._storage.replace_all(intent.collection, intent.items)

    async def _apply(self, action: str, mutation: Mutation) -> Mutation:
        try:
            for intent in mutation.persist_intents:
                await self._persist(intent)
        except Exception as e:
            logger.error("mutation_failed", action=action, error=str(e))
            raise

        self._state = mutation.state
        logger.debug("mutation_applied", action=action, effects=len(mutation.effects))

        for intent in mutation.notify_intents:
            await self._notify(intent.trigger)
        return mutation

    async def _notify(self, trigger: Trigger, today: Optional[date] = None) -> list[Notification]:
        if self._settle_delay:
            await asyncio.sleep(self._settle_delay)

        alerts = evaluate_rules(
            self._state,
            trigger,
            today=today if today is not None else self._clock(),
            warning_ratio=self._warning_ratio,
        )
        created = []
        for alert in alerts:
            mutation = await self._apply(
                "add_notification",
                reducers.add_notification(self._state, alert.to_notification()),
            )
            created.append(mutation.result)
            logger.info(
                "notification_created",
                kind=alert.kind.value,
                subject_id=alert.subject_id,
                type=alert.type.value,
            )
        return created

    async def run_checks(self, today: Optional[date] = None) -> list[Notification]:
        """
        Run every rule group now.

        Args:
            today: Overrides the clock for due-date reminders
        """
        return await self._notify(Trigger.FULL, today=today)

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    async def add_transaction(self, transaction: Transaction) -> Transaction:
        mutation = await self._apply(
            "add_transaction", reducers.add_transaction(self._state, transaction)
        )
        return mutation.result

    async def update_transaction(self, transaction_id: str, **changes: Any) -> Transaction:
        mutation = await self._apply(
            "update_transaction",
            reducers.update_transaction(self._state, transaction_id, **changes),
        )
        return mutation.result

    async def delete_transaction(self, transaction_id: str) -> None:
        await self._apply(
            "delete_transaction", reducers.delete_transaction(self._state, transaction_id)
        )

    # ------------------------------------------------------------------
    # Monthly incomes / expenses
    # ------------------------------------------------------------------

    async def add_monthly_income(self, income: MonthlyIncome) -> MonthlyIncome:
        mutation = await self._apply(
            "add_monthly_income", reducers.add_monthly_income(self._state, income)
        )
        return mutation.result

    async def update_monthly_income(self, income_id: str, **changes: Any) -> MonthlyIncome:
        mutation = await self._apply(
            "update_monthly_income",
            reducers.update_monthly_income(self._state, income_id, **changes),
        )
        return mutation.result

    async def delete_monthly_income(self, income_id: str) -> None:
        await self._apply(
            "delete_monthly_income", reducers.delete_monthly_income(self._state, income_id)
        )

    async def add_monthly_expense(self, expense: MonthlyExpense) -> MonthlyExpense:
        mutation = await self._apply(
            "add_monthly_expense", reducers.add_monthly_expense(self._state, expense)
        )
        return mutation.result

    async def update_monthly_expense(self, expense_id: str, **changes: Any) -> MonthlyExpense:
        mutation = await self._apply(
            "update_monthly_expense",
            reducers.update_monthly_expense(self._state, expense_id, **changes),
        )
        return mutation.result

    async def delete_monthly_expense(self, expense_id: str) -> None:
        await self._apply(
            "delete_monthly_expense", reducers.delete_monthly_expense(self._state, expense_id)
        )

    # ------------------------------------------------------------------
    # Categories
    # ------------------------------------------------------------------

    async def add_category(self, category: Category) -> Category:
        mutation = await self._apply(
            "add_category", reducers.add_category(self._state, category)
        )
        # The refresh may have filled in spent; return the stored version
        return self._state.find(Collection.CATEGORIES, mutation.result.id)

    async def update_category(self, category_id: str, **changes: Any) -> Category:
        await self._apply(
            "update_category",
            reducers.update_category(self._state, category_id, **changes),
        )
        return self._state.find(Collection.CATEGORIES, category_id)

    async def delete_category(self, category_id: str) -> None:
        await self._apply(
            "delete_category", reducers.delete_category(self._state, category_id)
        )

    # ------------------------------------------------------------------
    # Wishes
    # ------------------------------------------------------------------

    async def add_wish(self, wish: Wish) -> Wish:
        mutation = await self._apply("add_wish", reducers.add_wish(self._state, wish))
        return mutation.result

    async def update_wish(self, wish_id: str, **changes: Any) -> Wish:
        mutation = await self._apply(
            "update_wish", reducers.update_wish(self._state, wish_id, **changes)
        )
        return mutation.result

    async def delete_wish(self, wish_id: str) -> None:
        await self._apply("delete_wish", reducers.delete_wish(self._state, wish_id))

    # ------------------------------------------------------------------
    # Shopping list
    # ------------------------------------------------------------------

    async def add_shopping_item(self, item: ShoppingItem) -> ShoppingItem:
        mutation = await self._apply(
            "add_shopping_item", reducers.add_shopping_item(self._state, item)
        )
        return mutation.result

    async def update_shopping_item(self, item_id: str, **changes: Any) -> ShoppingItem:
        mutation = await self._apply(
            "update_shopping_item",
            reducers.update_shopping_item(self._state, item_id, **changes),
        )
        return mutation.result

    async def delete_shopping_item(self, item_id: str) -> None:
        await self._apply(
            "delete_shopping_item", reducers.delete_shopping_item(self._state, item_id)
        )

    async def toggle_shopping_item_purchased(self, item_id: str) -> ShoppingItem:
        mutation = await self._apply(
            "toggle_shopping_item_purchased",
            reducers.toggle_shopping_item_purchased(self._state, item_id),
        )
        return mutation.result

    # ------------------------------------------------------------------
    # Notifications
    # ------------------------------------------------------------------

    async def add_notification(self, notification: Notification) -> Notification:
        mutation = await self._apply(
            "add_notification", reducers.add_notification(self._state, notification)
        )
        return mutation.result

    async def delete_notification(self, notification_id: str) -> None:
        await self._apply(
            "delete_notification",
            reducers.delete_notification(self._state, notification_id),
        )

    async def mark_notification_read(self, notification_id: str) -> Notification:
        mutation = await self._apply(
            "mark_notification_read",
            reducers.mark_notification_read(self._state, notification_id),
        )
        return mutation.result

    async def mark_all_notifications_read(self) -> None:
        await self._apply(
            "mark_all_notifications_read",
            reducers.mark_all_notifications_read(self._state),
        )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def notifications(self) -> list[Notification]:
        """The feed, newest first."""
        return sorted(self._state.notifications, key=lambda n: n.timestamp, reverse=True)

    def unread_notifications_count(self) -> int:
        return totals.unread_notifications_count(self._state)

    def summary(self) -> FinanceSummary:
        return totals.finance_summary(self._state)

    def shopping_summary(self) -> ShoppingSummary:
        return totals.shopping_summary(self._state)

    def wishes_total_by_category(self) -> dict[str, Decimal]:
        return totals.wishes_total_by_category(self._state)


def create_app_components(
    use_cloud: bool = True,
) -> tuple[FinanceController, LocalStorage]:
    """
    Factory function to create all application components.

    Args:
        use_cloud: Whether to put the Google Sheets store in front of the
                   local store. Set to False for local-only use and tests.

    Returns:
        (controller, local_storage). Subscribe to the local storage for
        change events.
    """
    settings = get_settings()
    app_settings = settings.app
    notification_settings = settings.notifications

    configure_logging(app_settings.log_level)

    local_storage = LocalStorage()
    storage: StorageInterface = local_storage
    if use_cloud:
        storage = FallbackStorage(
            primary=GoogleSheetsStorage(),
            secondary=local_storage,
            fallback_on_error=app_settings.storage_fallback_on_error,
        )

    controller = FinanceController(
        storage=storage,
        settle_delay=notification_settings.settle_delay_seconds,
        budget_warning_ratio=notification_settings.budget_warning_ratio,
    )
    return controller, local_storage
