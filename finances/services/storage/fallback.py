"""
Fallback Storage Decorator

Wraps a primary and a secondary backend behind the same interface.
Every call goes to the primary first; when the primary raises a
StorageError (including "never configured"), the same call is replayed
against the secondary.

While the primary works, the secondary is kept as a mirror: every
successful primary load and write is copied to it, so a document that
only ever reached the cloud can still be updated during an outage.

There is no reconciliation: writes made during an outage live only in
the secondary, and the next successful primary load overwrites them
there. This is acceptable for a single-user, single-device tool.
"""

from typing import Any, Awaitable, Callable, Optional, Sequence, TypeVar

from finances.logger import get_logger
from finances.models import Document
from finances.services.storage.interface import (
    Collection,
    NotFoundError,
    StorageError,
    StorageInterface,
    StorageNotConfiguredError,
)


logger = get_logger(__name__)

T = TypeVar("T")

Mirror = Callable[[StorageInterface, Any], Awaitable[Any]]


class FallbackStorage(StorageInterface):
    """
    Try the primary backend, fall back to the secondary on error.

    Args:
        primary: Preferred backend (the cloud store)
        secondary: Backend used when the primary fails (the local store)
        fallback_on_error: When False, only StorageNotConfiguredError
            falls back; any other primary error is rethrown.
    """

    def __init__(
        self,
        primary: StorageInterface,
        secondary: StorageInterface,
        fallback_on_error: bool = True,
    ):
        self._primary = primary
        self._secondary = secondary
        self._fallback_on_error = fallback_on_error

    @property
    def backend_name(self) -> str:
        return f"{self._primary.backend_name}+{self._secondary.backend_name}"

    @property
    def primary(self) -> StorageInterface:
        return self._primary

    @property
    def secondary(self) -> StorageInterface:
        return self._secondary

    def _should_fall_back(self, error: StorageError) -> bool:
        return self._fallback_on_error or isinstance(error, StorageNotConfiguredError)

    async def _call(
        self,
        operation: str,
        collection: Collection,
        call: Callable[[StorageInterface], Awaitable[T]],
        mirror: Optional[Mirror] = None,
    ) -> T:
        try:
            result = await call(self._primary)
        except StorageError as e:
            if not self._should_fall_back(e):
                logger.error(
                    "storage_call_failed",
                    backend=self._primary.backend_name,
                    operation=operation,
                    collection=collection.value,
                    error=str(e),
                )
                raise
            logger.warning(
                "storage_fallback",
                primary=self._primary.backend_name,
                secondary=self._secondary.backend_name,
                operation=operation,
                collection=collection.value,
                error=str(e),
            )
            return await call(self._secondary)

        if mirror is not None:
            await self._mirror(operation, collection, mirror, result)
        return result

    async def _mirror(
        self,
        operation: str,
        collection: Collection,
        mirror: Mirror,
        result: Any,
    ) -> None:
        # The primary already holds the change; a stale mirror is only logged
        try:
            await mirror(self._secondary, result)
        except StorageError as e:
            logger.warning(
                "storage_mirror_failed",
                secondary=self._secondary.backend_name,
                operation=operation,
                collection=collection.value,
                error=str(e),
            )

    @staticmethod
    async def _upsert(storage: StorageInterface, collection: Collection, item: Document) -> None:
        try:
            await storage.update(collection, item)
        except NotFoundError:
            await storage.add(collection, item)

    async def load(self, collection: Collection) -> list[Document]:
        return await self._call(
            "load",
            collection,
            lambda s: s.load(collection),
            mirror=lambda s, items: s.replace_all(collection, items),
        )

    async def add(self, collection: Collection, item: Document) -> None:
        await self._call(
            "add",
            collection,
            lambda s: s.add(collection, item),
            mirror=lambda s, _: self._upsert(s, collection, item),
        )

    async def update(self, collection: Collection, item: Document) -> None:
        await self._call(
            "update",
            collection,
            lambda s: s.update(collection, item),
            mirror=lambda s, _: self._upsert(s, collection, item),
        )

    async def delete(self, collection: Collection, item_id: str) -> bool:
        return await self._call(
            "delete",
            collection,
            lambda s: s.delete(collection, item_id),
            mirror=lambda s, _: s.delete(collection, item_id),
        )

    async def replace_all(
        self,
        collection: Collection,
        items: Sequence[Document],
    ) -> None:
        await self._call(
            "replace_all",
            collection,
            lambda s: s.replace_all(collection, items),
            mirror=lambda s, _: s.replace_all(collection, items),
        )
