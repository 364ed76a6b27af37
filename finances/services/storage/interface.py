"""
Abstract Storage Interface

DESIGN DECISION: We define one abstract interface for storage operations.
This allows us to:
1. Prefer the cloud document store and fall back to the local store
2. Use in-memory storage for testing
3. Wrap any backend in a decorator (see FallbackStorage)
4. Keep business logic decoupled from storage implementation

The interface is intentionally simple - one document per entity,
one collection per entity type, no compound queries.
"""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Sequence

from finances.models import (
    Category,
    Document,
    MonthlyExpense,
    MonthlyIncome,
    Notification,
    ShoppingItem,
    Transaction,
    Wish,
)


class Collection(str, Enum):
    """
    Persisted collections.

    The value is the cloud collection name; ``local_key`` is the suffix
    of the local storage key.
    """
    TRANSACTIONS = "transactions"
    MONTHLY_INCOMES = "monthlyIncomes"
    MONTHLY_EXPENSES = "monthlyExpenses"
    CATEGORIES = "categories"
    WISHES = "wishes"
    NOTIFICATIONS = "notifications"
    SHOPPING_LIST = "shoppingList"

    @property
    def local_key(self) -> str:
        return _LOCAL_KEYS[self]

    @property
    def model(self) -> type[Document]:
        return _MODELS[self]


_LOCAL_KEYS = {
    Collection.TRANSACTIONS: "transactions",
    Collection.MONTHLY_INCOMES: "monthly-incomes",
    Collection.MONTHLY_EXPENSES: "monthly-expenses",
    Collection.CATEGORIES: "categories",
    Collection.WISHES: "wishes",
    Collection.NOTIFICATIONS: "notifications",
    Collection.SHOPPING_LIST: "shopping-list",
}

_MODELS: dict[Collection, type[Document]] = {
    Collection.TRANSACTIONS: Transaction,
    Collection.MONTHLY_INCOMES: MonthlyIncome,
    Collection.MONTHLY_EXPENSES: MonthlyExpense,
    Collection.CATEGORIES: Category,
    Collection.WISHES: Wish,
    Collection.NOTIFICATIONS: Notification,
    Collection.SHOPPING_LIST: ShoppingItem,
}


class StorageInterface(ABC):
    """
    Abstract interface for document storage.

    Any storage implementation (Google Sheets, local files, in-memory)
    must implement these methods. Items are the pydantic models from
    ``finances.models``; each collection holds one model type.
    """

    @property
    @abstractmethod
    def backend_name(self) -> str:
        """Short name of the backend, used in logs."""
        pass

    @abstractmethod
    async def load(self, collection: Collection) -> list[Document]:
        """
        Load every document of a collection.

        Args:
            collection: The collection to read

        Returns:
            The documents, in the backend's ordering for that collection

        Raises:
            StorageError: If the backend cannot be read
        """
        pass

    @abstractmethod
    async def add(self, collection: Collection, item: Document) -> None:
        """
        Add a new document.

        Args:
            collection: Target collection
            item: The document to add (its id is already assigned)

        Raises:
            DuplicateError: If a document with the same id exists
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def update(self, collection: Collection, item: Document) -> None:
        """
        Replace an existing document with the same id.

        Raises:
            NotFoundError: If the document doesn't exist
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def delete(self, collection: Collection, item_id: str) -> bool:
        """
        Delete a document by id.

        Returns:
            True if a document was deleted, False if none matched
        """
        pass

    @abstractmethod
    async def replace_all(
        self,
        collection: Collection,
        items: Sequence[Document],
    ) -> None:
        """
        Overwrite a whole collection.

        Used for bulk changes such as marking every notification read.
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass


class StorageConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass


class StorageNotConfiguredError(StorageConnectionError):
    """The backend was never configured, so it was never initialized."""
    pass
