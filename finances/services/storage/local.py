"""
Local Key-Value Store

The fallback backend. It mirrors browser local storage: a handful of
namespaced string keys, each holding a serialized JSON array of one
entity type. Here every key is a JSON file in a data directory.

Every write raises a local change event so in-memory subscribers can
refresh.
"""

import json
import os
from pathlib import Path
from typing import Any, Callable, NamedTuple, Optional, Sequence

from finances.config import get_settings
from finances.logger import get_logger
from finances.models import Document
from finances.services.storage.interface import (
    Collection,
    DuplicateError,
    NotFoundError,
    StorageError,
    StorageInterface,
)


logger = get_logger(__name__)

# Days used for recurring entries saved before dayOfMonth existed
LEGACY_DAY_OF_MONTH = {
    Collection.MONTHLY_INCOMES: 5,
    Collection.MONTHLY_EXPENSES: 15,
}


class LocalChangeEvent(NamedTuple):
    collection: Collection
    key: str


ChangeListener = Callable[[LocalChangeEvent], None]


class LocalKeyValueStore:
    """String key-value storage backed by one file per key."""

    def __init__(self, data_dir: Path):
        self._data_dir = Path(data_dir)

    @property
    def data_dir(self) -> Path:
        return self._data_dir

    def _path(self, key: str) -> Path:
        return self._data_dir / f"{key}.json"

    def get_item(self, key: str) -> Optional[str]:
        path = self._path(key)
        if not path.exists():
            return None
        return path.read_text(encoding="utf-8")

    def set_item(self, key: str, value: str) -> None:
        self._data_dir.mkdir(parents=True, exist_ok=True)
        path = self._path(key)
        tmp_path = path.with_suffix(".tmp")
        tmp_path.write_text(value, encoding="utf-8")
        os.replace(tmp_path, path)

    def remove_item(self, key: str) -> None:
        self._path(key).unlink(missing_ok=True)


class LocalStorage(StorageInterface):
    """
    Local implementation of document storage.

    Reads never fail on bad data: a corrupt key loads as an empty
    collection and is logged. Writes that cannot reach the disk raise
    StorageError.
    """

    def __init__(
        self,
        store: Optional[LocalKeyValueStore] = None,
        key_prefix: Optional[str] = None,
    ):
        if store is None or key_prefix is None:
            settings = get_settings().local_storage
            store = store or LocalKeyValueStore(settings.data_dir)
            key_prefix = key_prefix or settings.key_prefix
        self._store = store
        self._key_prefix = key_prefix
        self._listeners: list[ChangeListener] = []

    @property
    def backend_name(self) -> str:
        return "local"

    def key_for(self, collection: Collection) -> str:
        return f"{self._key_prefix}{collection.local_key}"

    def subscribe(self, listener: ChangeListener) -> Callable[[], None]:
        """
        Register a listener for local change events.

        Returns a callable that removes the listener.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _emit(self, collection: Collection) -> None:
        event = LocalChangeEvent(collection=collection, key=self.key_for(collection))
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception("local_change_listener_failed", key=event.key)

    def _read(self, collection: Collection) -> list[dict[str, Any]]:
        key = self.key_for(collection)
        try:
            raw = self._store.get_item(key)
        except OSError as e:
            raise StorageError(f"Failed to read {key}: {e}")
        if raw is None:
            return []
        try:
            documents = json.loads(raw)
        except ValueError:
            logger.error("local_storage_corrupt", key=key)
            return []
        if not isinstance(documents, list):
            logger.error("local_storage_corrupt", key=key, reason="not an array")
            return []
        return documents

    def _write(self, collection: Collection, documents: list[dict[str, Any]]) -> None:
        key = self.key_for(collection)
        try:
            self._store.set_item(key, json.dumps(documents, ensure_ascii=False))
        except OSError as e:
            raise StorageError(f"Failed to write {key}: {e}")
        self._emit(collection)

    def _migrate(
        self,
        collection: Collection,
        documents: list[dict[str, Any]],
    ) -> list[dict[str, Any]]:
        """Fill in dayOfMonth for recurring entries saved without one."""
        default_day = LEGACY_DAY_OF_MONTH.get(collection)
        if default_day is None:
            return documents

        changed = False
        migrated = []
        for document in documents:
            if not document.get("dayOfMonth"):
                document = {**document, "dayOfMonth": default_day}
                changed = True
            migrated.append(document)

        if changed:
            logger.info("local_storage_migrated", key=self.key_for(collection))
            self._write(collection, migrated)
        return migrated

    async def load(self, collection: Collection) -> list[Document]:
        documents = self._migrate(collection, self._read(collection))
        items = []
        for document in documents:
            try:
                items.append(collection.model.from_document(document))
            except ValueError:
                logger.warning(
                    "invalid_document_skipped",
                    key=self.key_for(collection),
                    item_id=document.get("id"),
                )
        return items

    async def add(self, collection: Collection, item: Document) -> None:
        documents = self._read(collection)
        if any(document.get("id") == item.id for document in documents):
            raise DuplicateError(f"{collection.value} already contains {item.id}")
        documents.append(item.to_document())
        self._write(collection, documents)

    async def update(self, collection: Collection, item: Document) -> None:
        documents = self._read(collection)
        for idx, document in enumerate(documents):
            if document.get("id") == item.id:
                documents[idx] = item.to_document()
                self._write(collection, documents)
                return
        raise NotFoundError(f"{collection.value} has no document {item.id}")

    async def delete(self, collection: Collection, item_id: str) -> bool:
        documents = self._read(collection)
        remaining = [d for d in documents if d.get("id") != item_id]
        if len(remaining) == len(documents):
            return False
        self._write(collection, remaining)
        return True

    async def replace_all(
        self,
        collection: Collection,
        items: Sequence[Document],
    ) -> None:
        self._write(collection, [item.to_document() for item in items])
