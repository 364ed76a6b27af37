"""
Tests for the storage backends.

The Google Sheets store runs against an in-memory worksheet; nothing
here talks to the network.
"""

import json
from datetime import date
from decimal import Decimal

import pytest
from tenacity import wait_none

from finances.config import GoogleSheetsSettings, get_settings
from finances.models import MonthlyExpense, MonthlyIncome, Notification, Wish
from finances.services.storage import (
    Collection,
    DuplicateError,
    FallbackStorage,
    GoogleSheetsClient,
    GoogleSheetsStorage,
    LocalStorage,
    NotFoundError,
    StorageConnectionError,
    StorageError,
    StorageNotConfiguredError,
)
from finances.services.storage.google_sheets import SHEET_COLUMNS

from factories import expense
from fakes import FakeSheetsClient, FakeWorksheet, OutageStorage


def documents(items) -> list[dict]:
    return [item.to_document() for item in items]


# =============================================================================
# Local store
# =============================================================================

class TestLocalStorage:
    """Tests for the JSON-file key-value store."""

    async def test_empty_collection(self, local_storage):
        assert await local_storage.load(Collection.WISHES) == []

    async def test_add_and_load(self, local_storage):
        first, second = expense("10.00"), expense("20.00")
        await local_storage.add(Collection.TRANSACTIONS, first)
        await local_storage.add(Collection.TRANSACTIONS, second)

        loaded = await local_storage.load(Collection.TRANSACTIONS)

        assert documents(loaded) == documents([first, second])

    async def test_keys_are_namespaced(self, local_storage, key_value_store):
        await local_storage.add(Collection.MONTHLY_EXPENSES, MonthlyExpense(
            name="Rent", amount=Decimal("700"), day_of_month=10,
        ))
        assert (key_value_store.data_dir / "finances-monthly-expenses.json").exists()
        assert local_storage.key_for(Collection.SHOPPING_LIST) == "finances-shopping-list"

    async def test_stored_as_camel_case_array(self, local_storage, key_value_store):
        await local_storage.add(Collection.WISHES, Wish(name="Bike"))
        raw = json.loads(key_value_store.get_item("finances-wishes"))
        assert isinstance(raw, list)
        assert "estimatedPrice" in raw[0]

    async def test_add_duplicate(self, local_storage):
        wish = Wish(name="Bike")
        await local_storage.add(Collection.WISHES, wish)
        with pytest.raises(DuplicateError):
            await local_storage.add(Collection.WISHES, wish)

    async def test_update(self, local_storage):
        wish = Wish(name="Bike")
        await local_storage.add(Collection.WISHES, wish)

        await local_storage.update(Collection.WISHES, wish.with_changes(name="E-bike"))

        loaded = await local_storage.load(Collection.WISHES)
        assert [w.name for w in loaded] == ["E-bike"]

    async def test_update_missing(self, local_storage):
        with pytest.raises(NotFoundError):
            await local_storage.update(Collection.WISHES, Wish(name="Bike"))

    async def test_delete(self, local_storage):
        wish = Wish(name="Bike")
        await local_storage.add(Collection.WISHES, wish)

        assert await local_storage.delete(Collection.WISHES, wish.id) is True
        assert await local_storage.delete(Collection.WISHES, wish.id) is False
        assert await local_storage.load(Collection.WISHES) == []

    async def test_replace_all(self, local_storage):
        await local_storage.add(Collection.NOTIFICATIONS, Notification(title="A", message="a"))
        replacement = [Notification(title="B", message="b", is_read=True)]

        await local_storage.replace_all(Collection.NOTIFICATIONS, replacement)

        loaded = await local_storage.load(Collection.NOTIFICATIONS)
        assert documents(loaded) == documents(replacement)

    async def test_corrupt_json_loads_empty(self, local_storage, key_value_store):
        key_value_store.set_item("finances-transactions", "{not json")
        assert await local_storage.load(Collection.TRANSACTIONS) == []

    async def test_non_array_loads_empty(self, local_storage, key_value_store):
        key_value_store.set_item("finances-transactions", '{"id": "x"}')
        assert await local_storage.load(Collection.TRANSACTIONS) == []

    async def test_invalid_document_is_skipped(self, local_storage, key_value_store):
        valid = Wish(name="Bike")
        key_value_store.set_item(
            "finances-wishes",
            json.dumps([{"id": "bad", "name": ""}, valid.to_document()]),
        )
        loaded = await local_storage.load(Collection.WISHES)
        assert [w.id for w in loaded] == [valid.id]


class TestLegacyMigration:
    """Recurring entries saved without dayOfMonth."""

    async def test_incomes_default_to_day_5(self, local_storage, key_value_store):
        key_value_store.set_item(
            "finances-monthly-incomes",
            json.dumps([{"id": "a", "name": "Salary", "amount": 3000}]),
        )

        loaded = await local_storage.load(Collection.MONTHLY_INCOMES)

        assert isinstance(loaded[0], MonthlyIncome)
        assert loaded[0].day_of_month == 5
        # Written back
        raw = json.loads(key_value_store.get_item("finances-monthly-incomes"))
        assert raw[0]["dayOfMonth"] == 5

    async def test_expenses_default_to_day_15(self, local_storage, key_value_store):
        key_value_store.set_item(
            "finances-monthly-expenses",
            json.dumps([
                {"id": "a", "name": "Gym", "amount": 99},
                {"id": "b", "name": "Rent", "amount": 700, "dayOfMonth": 1},
            ]),
        )

        loaded = await local_storage.load(Collection.MONTHLY_EXPENSES)

        assert [e.day_of_month for e in loaded] == [15, 1]

    async def test_no_write_when_nothing_to_migrate(self, local_storage, key_value_store):
        events = []
        local_storage.subscribe(events.append)
        key_value_store.set_item(
            "finances-monthly-expenses",
            json.dumps([{"id": "b", "name": "Rent", "amount": 700, "dayOfMonth": 1}]),
        )

        await local_storage.load(Collection.MONTHLY_EXPENSES)

        assert events == []


class TestLocalChangeEvents:
    """Subscribers hear about every local write."""

    async def test_write_emits_event(self, local_storage):
        events = []
        local_storage.subscribe(events.append)

        await local_storage.add(Collection.WISHES, Wish(name="Bike"))

        assert len(events) == 1
        assert events[0].collection == Collection.WISHES
        assert events[0].key == "finances-wishes"

    async def test_unsubscribe(self, local_storage):
        events = []
        unsubscribe = local_storage.subscribe(events.append)
        unsubscribe()
        unsubscribe()

        await local_storage.add(Collection.WISHES, Wish(name="Bike"))

        assert events == []

    async def test_failing_listener_does_not_break_writes(self, local_storage):
        events = []

        def broken(event):
            raise RuntimeError("listener bug")

        local_storage.subscribe(broken)
        local_storage.subscribe(events.append)

        await local_storage.add(Collection.WISHES, Wish(name="Bike"))

        assert len(events) == 1
        assert len(await local_storage.load(Collection.WISHES)) == 1


# =============================================================================
# Fallback decorator
# =============================================================================

class NotConfiguredStorage(LocalStorage):
    """Primary that was never configured."""

    @property
    def backend_name(self) -> str:
        return "unconfigured"

    async def load(self, collection):
        raise StorageNotConfiguredError("no credentials")

    async def add(self, collection, item):
        raise StorageNotConfiguredError("no credentials")


class TestFallbackStorage:
    """Primary first, secondary on error."""

    async def test_falls_back_on_every_operation(self, broken_storage, local_storage):
        storage = FallbackStorage(primary=broken_storage, secondary=local_storage)
        wish = Wish(name="Bike")

        await storage.add(Collection.WISHES, wish)
        await storage.update(Collection.WISHES, wish.with_changes(name="E-bike"))
        loaded = await storage.load(Collection.WISHES)
        deleted = await storage.delete(Collection.WISHES, wish.id)
        await storage.replace_all(Collection.WISHES, [wish])

        assert [w.name for w in loaded] == ["E-bike"]
        assert deleted is True
        assert broken_storage.calls == ["add", "update", "load", "delete", "replace_all"]
        assert len(await local_storage.load(Collection.WISHES)) == 1

    async def test_primary_writes_are_mirrored(self, key_value_store, local_storage):
        cloud = OutageStorage(store=key_value_store, key_prefix="cloud-")
        storage = FallbackStorage(primary=cloud, secondary=local_storage)
        keep, drop = Wish(name="Bike"), Wish(name="Car")

        await storage.add(Collection.WISHES, keep)
        await storage.add(Collection.WISHES, drop)
        await storage.update(Collection.WISHES, keep.with_changes(name="E-bike"))
        await storage.delete(Collection.WISHES, drop.id)

        mirrored = await local_storage.load(Collection.WISHES)
        assert documents(mirrored) == documents(await cloud.load(Collection.WISHES))
        assert [w.name for w in mirrored] == ["E-bike"]

    async def test_primary_load_refreshes_mirror(self, key_value_store, local_storage):
        cloud = OutageStorage(store=key_value_store, key_prefix="cloud-")
        written_elsewhere = Wish(name="Bike")
        await cloud.add(Collection.WISHES, written_elsewhere)
        storage = FallbackStorage(primary=cloud, secondary=local_storage)

        await storage.load(Collection.WISHES)

        assert [w.id for w in await local_storage.load(Collection.WISHES)] == [written_elsewhere.id]

    async def test_update_cloud_document_during_outage(self, key_value_store, local_storage):
        cloud = OutageStorage(store=key_value_store, key_prefix="cloud-")
        storage = FallbackStorage(primary=cloud, secondary=local_storage)
        rent = MonthlyExpense(name="Rent", amount=Decimal("700"), day_of_month=10)
        await storage.add(Collection.MONTHLY_EXPENSES, rent)

        cloud.down = True
        await storage.update(
            Collection.MONTHLY_EXPENSES, rent.with_changes(amount=Decimal("750"))
        )

        loaded = await storage.load(Collection.MONTHLY_EXPENSES)
        assert [e.amount for e in loaded] == [Decimal("750")]

    async def test_failed_mirror_keeps_primary_result(self, local_storage, broken_storage):
        storage = FallbackStorage(primary=local_storage, secondary=broken_storage)

        await storage.add(Collection.WISHES, Wish(name="Bike"))

        assert broken_storage.calls == ["update"]
        assert len(await local_storage.load(Collection.WISHES)) == 1

    async def test_rethrows_when_fallback_disabled(self, broken_storage, local_storage):
        storage = FallbackStorage(
            primary=broken_storage, secondary=local_storage, fallback_on_error=False
        )
        with pytest.raises(StorageConnectionError):
            await storage.add(Collection.WISHES, Wish(name="Bike"))
        assert await local_storage.load(Collection.WISHES) == []

    async def test_not_configured_always_falls_back(self, key_value_store, local_storage):
        primary = NotConfiguredStorage(store=key_value_store, key_prefix="cloud-")
        storage = FallbackStorage(
            primary=primary, secondary=local_storage, fallback_on_error=False
        )

        await storage.add(Collection.WISHES, Wish(name="Bike"))

        assert len(await storage.load(Collection.WISHES)) == 1

    def test_backend_name(self, broken_storage, local_storage):
        storage = FallbackStorage(primary=broken_storage, secondary=local_storage)
        assert storage.backend_name == "broken+local"
        assert storage.primary is broken_storage
        assert storage.secondary is local_storage


# =============================================================================
# Google Sheets
# =============================================================================

@pytest.fixture
def sheets_client() -> FakeSheetsClient:
    return FakeSheetsClient()


@pytest.fixture
def sheets_storage(sheets_client) -> GoogleSheetsStorage:
    return GoogleSheetsStorage(client=sheets_client, retry_wait=wait_none())


class TestGoogleSheetsStorage:
    """One worksheet per collection, one row per document."""

    async def test_add_writes_row(self, sheets_storage, sheets_client):
        wish = Wish(name="Bike")
        await sheets_storage.add(Collection.WISHES, wish)

        sheet = sheets_client.sheets[Collection.WISHES]
        assert sheet.rows[0] == SHEET_COLUMNS
        assert sheet.rows[1][0] == wish.id
        assert json.loads(sheet.rows[1][1]) == wish.to_document()

    async def test_add_duplicate(self, sheets_storage):
        wish = Wish(name="Bike")
        await sheets_storage.add(Collection.WISHES, wish)
        with pytest.raises(DuplicateError):
            await sheets_storage.add(Collection.WISHES, wish)

    async def test_transactions_newest_first(self, sheets_storage):
        older = expense("10.00").with_changes(date=date(2024, 6, 1))
        newer = expense("20.00").with_changes(date=date(2024, 6, 20))
        await sheets_storage.add(Collection.TRANSACTIONS, older)
        await sheets_storage.add(Collection.TRANSACTIONS, newer)

        loaded = await sheets_storage.load(Collection.TRANSACTIONS)

        assert [t.id for t in loaded] == [newer.id, older.id]

    async def test_unordered_collections_keep_insert_order(self, sheets_storage):
        first, second = Wish(name="A"), Wish(name="B")
        await sheets_storage.add(Collection.WISHES, first)
        await sheets_storage.add(Collection.WISHES, second)

        loaded = await sheets_storage.load(Collection.WISHES)

        assert [w.id for w in loaded] == [first.id, second.id]

    async def test_update(self, sheets_storage):
        wish = Wish(name="Bike")
        await sheets_storage.add(Collection.WISHES, wish)

        await sheets_storage.update(Collection.WISHES, wish.with_changes(name="E-bike"))

        loaded = await sheets_storage.load(Collection.WISHES)
        assert [w.name for w in loaded] == ["E-bike"]

    async def test_update_missing(self, sheets_storage):
        with pytest.raises(NotFoundError):
            await sheets_storage.update(Collection.WISHES, Wish(name="Bike"))

    async def test_delete(self, sheets_storage, sheets_client):
        wish = Wish(name="Bike")
        await sheets_storage.add(Collection.WISHES, wish)

        assert await sheets_storage.delete(Collection.WISHES, wish.id) is True
        assert await sheets_storage.delete(Collection.WISHES, wish.id) is False
        assert sheets_client.sheets[Collection.WISHES].rows == [SHEET_COLUMNS]

    async def test_replace_all(self, sheets_storage, sheets_client):
        await sheets_storage.add(Collection.WISHES, Wish(name="Old"))
        replacement = [Wish(name="A"), Wish(name="B")]

        await sheets_storage.replace_all(Collection.WISHES, replacement)

        sheet = sheets_client.sheets[Collection.WISHES]
        assert sheet.rows[0] == SHEET_COLUMNS
        assert [row[0] for row in sheet.rows[1:]] == [w.id for w in replacement]

    async def test_malformed_rows_are_skipped(self, sheets_storage, sheets_client):
        wish = Wish(name="Bike")
        await sheets_storage.add(Collection.WISHES, wish)
        sheet = sheets_client.get_worksheet(Collection.WISHES)
        sheet.rows.append(["broken", "{not json", ""])
        sheet.rows.append(["", "", ""])

        loaded = await sheets_storage.load(Collection.WISHES)

        assert [w.id for w in loaded] == [wish.id]

    async def test_replace_all_removes_leftover_rows(self, sheets_storage, sheets_client):
        for name in ("A", "B", "C"):
            await sheets_storage.add(Collection.WISHES, Wish(name=name))
        kept = Wish(name="D")

        await sheets_storage.replace_all(Collection.WISHES, [kept])

        sheet = sheets_client.sheets[Collection.WISHES]
        assert [row[0] for row in sheet.rows] == ["id", kept.id]

    async def test_failed_replace_all_keeps_previous_rows(self, sheets_storage, sheets_client):
        notification = Notification(title="Budget", message="Careful")
        await sheets_storage.add(Collection.NOTIFICATIONS, notification)
        sheets_client.sheets[Collection.NOTIFICATIONS].failing.add("update")

        with pytest.raises(StorageError):
            await sheets_storage.replace_all(
                Collection.NOTIFICATIONS, [notification.with_changes(is_read=True)]
            )

        loaded = await sheets_storage.load(Collection.NOTIFICATIONS)
        assert [n.id for n in loaded] == [notification.id]
        assert loaded[0].is_read is False


class TestSheetsRetries:
    """Every operation shares one retry policy."""

    @pytest.mark.parametrize("operation", ["update", "delete", "replace_all"])
    async def test_writes_are_retried(self, sheets_storage, sheets_client, operation):
        wish = Wish(name="Bike")
        await sheets_storage.add(Collection.WISHES, wish)
        sheet = sheets_client.sheets[Collection.WISHES]
        sheet.failing.add("get_all_values")
        sheet.calls.clear()

        with pytest.raises(StorageError):
            if operation == "update":
                await sheets_storage.update(Collection.WISHES, wish)
            elif operation == "delete":
                await sheets_storage.delete(Collection.WISHES, wish.id)
            else:
                await sheets_storage.replace_all(Collection.WISHES, [wish])

        assert sheet.calls == ["get_all_values"] * 3

    async def test_recovers_on_a_later_attempt(self, sheets_client):
        flaky = FlakyWorksheet(failures=2)
        sheets_client.sheets[Collection.WISHES] = flaky
        storage = GoogleSheetsStorage(client=sheets_client, retry_wait=wait_none())

        await storage.add(Collection.WISHES, Wish(name="Bike"))

        assert len(flaky.rows) == 2

    async def test_missing_document_is_not_retried(self, sheets_storage, sheets_client):
        sheet = sheets_client.get_worksheet(Collection.WISHES)

        with pytest.raises(NotFoundError):
            await sheets_storage.update(Collection.WISHES, Wish(name="Bike"))

        assert sheet.calls == ["get_all_values"]

    async def test_attempts_are_configurable(self, sheets_client):
        storage = GoogleSheetsStorage(client=sheets_client, retry_attempts=1)
        sheets_client.get_worksheet(Collection.WISHES).failing.add("get_all_values")

        with pytest.raises(StorageError):
            await storage.load(Collection.WISHES)

        assert sheets_client.sheets[Collection.WISHES].calls == ["get_all_values"]


class FlakyWorksheet(FakeWorksheet):
    """Fails its first few reads."""

    def __init__(self, failures: int):
        super().__init__()
        self.failures = failures

    def get_all_values(self):
        if self.failures:
            self.failures -= 1
            raise RuntimeError("503 service unavailable")
        return super().get_all_values()


class TestGoogleSheetsClient:
    """Configuration handling."""

    @pytest.fixture(autouse=True)
    def unconfigured(self, monkeypatch):
        monkeypatch.delenv("GOOGLE_SHEETS_CREDENTIALS_PATH", raising=False)
        monkeypatch.delenv("GOOGLE_SHEETS_SPREADSHEET_ID", raising=False)
        get_settings.cache_clear()
        yield
        get_settings.cache_clear()

    def test_unconfigured_client_raises(self):
        with pytest.raises(StorageNotConfiguredError):
            GoogleSheetsClient().connect()

    async def test_unconfigured_store_falls_back(self, local_storage):
        storage = FallbackStorage(
            primary=GoogleSheetsStorage(),
            secondary=local_storage,
            fallback_on_error=False,
        )
        await storage.add(Collection.WISHES, Wish(name="Bike"))
        assert len(await local_storage.load(Collection.WISHES)) == 1

    def test_missing_credentials_file(self, tmp_path):
        with pytest.warns(UserWarning):
            settings = GoogleSheetsSettings(
                credentials_path=str(tmp_path / "missing.json"),
                spreadsheet_id="sheet-id",
            )
        with pytest.raises(StorageNotConfiguredError):
            GoogleSheetsClient(settings=settings).connect()
