"""
Shared fixtures.

No test touches the network: the cloud store is either replaced by a fake
worksheet client or left unconfigured so the fallback kicks in.
"""

from datetime import date
from typing import Sequence

import pytest

from finances.models import Document
from finances.orchestrator import FinanceController
from finances.services.storage import (
    Collection,
    LocalKeyValueStore,
    LocalStorage,
    StorageConnectionError,
    StorageInterface,
)


class BrokenStorage(StorageInterface):
    """A backend whose every call fails like an unreachable server."""

    def __init__(self):
        self.calls: list[str] = []

    @property
    def backend_name(self) -> str:
        return "broken"

    async def _fail(self, operation: str):
        self.calls.append(operation)
        raise StorageConnectionError("server unreachable")

    async def load(self, collection: Collection) -> list[Document]:
        return await self._fail("load")

    async def add(self, collection: Collection, item: Document) -> None:
        await self._fail("add")

    async def update(self, collection: Collection, item: Document) -> None:
        await self._fail("update")

    async def delete(self, collection: Collection, item_id: str) -> bool:
        return await self._fail("delete")

    async def replace_all(self, collection: Collection, items: Sequence[Document]) -> None:
        await self._fail("replace_all")


@pytest.fixture
def key_value_store(tmp_path) -> LocalKeyValueStore:
    return LocalKeyValueStore(tmp_path / "data")


@pytest.fixture
def local_storage(key_value_store) -> LocalStorage:
    return LocalStorage(store=key_value_store, key_prefix="finances-")


@pytest.fixture
def broken_storage() -> BrokenStorage:
    return BrokenStorage()


@pytest.fixture
def today() -> date:
    return date(2024, 6, 10)


@pytest.fixture
def controller(local_storage, today) -> FinanceController:
    return FinanceController(storage=local_storage, clock=lambda: today)
