"""
Side-Effect Intents

Reducers never touch storage or the notification feed. They describe
what should happen as a list of intents and the controller executes
them in order.
"""

from enum import Enum
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict

from finances.models import Document
from finances.services.storage.interface import Collection


class PersistOperation(str, Enum):
    ADD = "add"
    UPDATE = "update"
    DELETE = "delete"
    REPLACE_ALL = "replace_all"


class Trigger(str, Enum):
    """Which rule group a mutation should wake up."""
    TRANSACTIONS = "transactions"
    MONTHLY_EXPENSES = "monthly_expenses"
    WISHES = "wishes"
    FULL = "full"


class PersistIntent(BaseModel):
    """Write one change to storage."""
    model_config = ConfigDict(frozen=True)

    operation: PersistOperation
    collection: Collection
    item: Optional[Document] = None
    item_id: Optional[str] = None
    items: tuple[Document, ...] = ()

    @classmethod
    def add(cls, collection: Collection, item: Document) -> "PersistIntent":
        return cls(operation=PersistOperation.ADD, collection=collection, item=item)

    @classmethod
    def update(cls, collection: Collection, item: Document) -> "PersistIntent":
        return cls(operation=PersistOperation.UPDATE, collection=collection, item=item)

    @classmethod
    def delete(cls, collection: Collection, item_id: str) -> "PersistIntent":
        return cls(operation=PersistOperation.DELETE, collection=collection, item_id=item_id)

    @classmethod
    def replace_all(
        cls,
        collection: Collection,
        items: tuple[Document, ...],
    ) -> "PersistIntent":
        return cls(operation=PersistOperation.REPLACE_ALL, collection=collection, items=items)


class NotifyIntent(BaseModel):
    """Run the rule evaluator for a trigger once the state is committed."""
    model_config = ConfigDict(frozen=True)

    trigger: Trigger


Effect = Union[PersistIntent, NotifyIntent]
