"""
Google Sheets Document Store

DESIGN DECISION: A Google spreadsheet is the cloud document store because:
1. The user can look at their data directly in Sheets
2. No database setup required
3. Built-in backup (Google's infrastructure)

Each collection is a worksheet. Each row is one document:
``id | document (JSON) | updated_at``. Storing the whole document as JSON
keeps the sheet layout stable when models gain fields.

Every storage operation (connecting included) runs under one retry
policy: up to 3 attempts with exponential backoff. Errors that a retry
cannot fix (not configured, not found, duplicate) fail at once.

TRADEOFFS:
- No transactions (a failed write can leave the sheet and the local store apart)
- Ordering is done in Python on a single field
"""

import json
from datetime import datetime, timezone
from typing import Any, Callable, Optional, Sequence, TypeVar

import gspread
from google.oauth2.service_account import Credentials
from tenacity import (
    AsyncRetrying,
    retry_if_not_exception_type,
    stop_after_attempt,
    wait_exponential,
)
from tenacity.wait import wait_base

from finances.config import GoogleSheetsSettings, get_settings
from finances.logger import get_logger
from finances.models import Document
from finances.services.storage.interface import (
    Collection,
    DuplicateError,
    NotFoundError,
    StorageConnectionError,
    StorageError,
    StorageInterface,
    StorageNotConfiguredError,
)


logger = get_logger(__name__)

T = TypeVar("T")

SHEET_COLUMNS = ["id", "document", "updated_at"]

# Single-field ordering applied on read (newest first)
ORDER_BY: dict[Collection, str] = {
    Collection.TRANSACTIONS: "date",
    Collection.NOTIFICATIONS: "timestamp",
}

# Errors that retrying cannot fix
_PERMANENT_ERRORS = (StorageNotConfiguredError, NotFoundError, DuplicateError)

RETRY_ATTEMPTS = 3


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and caches the spreadsheet and its worksheets.
    Nothing touches the network until the first call. Retries are left to
    GoogleSheetsStorage.
    """

    def __init__(self, settings: Optional[GoogleSheetsSettings] = None):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._worksheets: dict[Collection, gspread.Worksheet] = {}
        self._settings = settings

    def _get_settings(self) -> GoogleSheetsSettings:
        if self._settings is None:
            self._settings = get_settings().google_sheets_or_none()
        if self._settings is None:
            raise StorageNotConfiguredError(
                "Google Sheets is not configured "
                "(set GOOGLE_SHEETS_CREDENTIALS_PATH and GOOGLE_SHEETS_SPREADSHEET_ID)"
            )
        return self._settings

    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets.

        Uses service account credentials for authentication.
        """
        if self._client is None:
            settings = self._get_settings()
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError:
                raise StorageNotConfiguredError(
                    f"Google credentials file not found: {settings.credentials_path}"
                )
            except Exception as e:
                raise StorageConnectionError(f"Failed to connect to Google Sheets: {e}")

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            settings = self._get_settings()
            try:
                self._spreadsheet = client.open_by_key(settings.spreadsheet_id)
            except gspread.SpreadsheetNotFound:
                raise StorageConnectionError(
                    f"Spreadsheet not found: {settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def get_worksheet(self, collection: Collection) -> gspread.Worksheet:
        """Get or create the worksheet holding a collection."""
        if collection not in self._worksheets:
            spreadsheet = self.get_spreadsheet()
            try:
                sheet = spreadsheet.worksheet(collection.value)
            except gspread.WorksheetNotFound:
                # Create the sheet with headers
                sheet = spreadsheet.add_worksheet(
                    title=collection.value,
                    rows=self._get_settings().worksheet_rows,
                    cols=len(SHEET_COLUMNS),
                )
                sheet.append_row(SHEET_COLUMNS)
            self._worksheets[collection] = sheet
        return self._worksheets[collection]


class GoogleSheetsStorage(StorageInterface):
    """
    Google Sheets implementation of document storage.

    Documents are stored as rows with one document per row.

    Args:
        client: Sheets client (a fresh one reading the settings by default)
        retry_attempts: Attempts per operation before the error is raised
        retry_wait: tenacity wait strategy between attempts
    """

    def __init__(
        self,
        client: Optional[GoogleSheetsClient] = None,
        retry_attempts: int = RETRY_ATTEMPTS,
        retry_wait: Optional[wait_base] = None,
    ):
        self._client = client or GoogleSheetsClient()
        self._retry_attempts = retry_attempts
        self._retry_wait = retry_wait or wait_exponential(multiplier=1, min=2, max=10)

    @property
    def backend_name(self) -> str:
        return "google_sheets"

    def _to_row(self, item: Document) -> list[str]:
        """Convert a document to a spreadsheet row."""
        return [
            item.id,
            json.dumps(item.to_document(), ensure_ascii=False),
            datetime.now(timezone.utc).isoformat(),
        ]

    def _data_rows(self, sheet: gspread.Worksheet) -> list[list[str]]:
        # Row 1 is the header
        return sheet.get_all_values()[1:]

    def _find_row(self, sheet: gspread.Worksheet, item_id: str) -> Optional[int]:
        """1-based sheet row index of a document, or None."""
        for idx, row in enumerate(self._data_rows(sheet), start=2):
            if row and row[0] == item_id:
                return idx
        return None

    async def _run(
        self,
        action: str,
        collection: Collection,
        operation: Callable[[gspread.Worksheet], T],
    ) -> T:
        """Run one operation against a collection's worksheet, with retries."""
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self._retry_attempts),
            wait=self._retry_wait,
            retry=retry_if_not_exception_type(_PERMANENT_ERRORS),
            reraise=True,
        ):
            with attempt:
                if attempt.retry_state.attempt_number > 1:
                    logger.warning(
                        "sheets_retry",
                        action=action,
                        collection=collection.value,
                        attempt=attempt.retry_state.attempt_number,
                    )
                try:
                    return operation(self._client.get_worksheet(collection))
                except StorageError:
                    raise
                except Exception as e:
                    raise StorageError(f"Failed to {action} {collection.value}: {e}")

    async def load(self, collection: Collection) -> list[Document]:
        """Load a collection, ordered newest first where an order is defined."""
        rows = await self._run("load", collection, self._data_rows)

        documents: list[dict[str, Any]] = []
        for row in rows:
            if not row or not row[0]:  # Skip empty rows
                continue
            try:
                documents.append(json.loads(row[1]))
            except (IndexError, ValueError):
                logger.warning(
                    "malformed_row_skipped",
                    collection=collection.value,
                    item_id=row[0],
                )

        order_field = ORDER_BY.get(collection)
        if order_field:
            documents.sort(key=lambda d: str(d.get(order_field, "")), reverse=True)

        items = []
        for document in documents:
            try:
                items.append(collection.model.from_document(document))
            except ValueError:
                logger.warning(
                    "invalid_document_skipped",
                    collection=collection.value,
                    item_id=document.get("id"),
                )
        return items

    async def add(self, collection: Collection, item: Document) -> None:
        """Append a document as a new row."""
        def append(sheet: gspread.Worksheet) -> None:
            if self._find_row(sheet, item.id) is not None:
                raise DuplicateError(f"{collection.value} already contains {item.id}")
            sheet.append_row(self._to_row(item), value_input_option="RAW")

        await self._run("add to", collection, append)

    async def update(self, collection: Collection, item: Document) -> None:
        """Rewrite the document cells of an existing row."""
        def rewrite(sheet: gspread.Worksheet) -> None:
            idx = self._find_row(sheet, item.id)
            if idx is None:
                raise NotFoundError(f"{collection.value} has no document {item.id}")
            row = self._to_row(item)
            for col_idx, value in enumerate(row[1:], start=2):
                sheet.update_cell(idx, col_idx, value)

        await self._run("update", collection, rewrite)

    async def delete(self, collection: Collection, item_id: str) -> bool:
        """Delete the row holding a document."""
        def remove(sheet: gspread.Worksheet) -> bool:
            idx = self._find_row(sheet, item_id)
            if idx is None:
                return False
            sheet.delete_rows(idx)
            return True

        return await self._run("delete from", collection, remove)

    async def replace_all(
        self,
        collection: Collection,
        items: Sequence[Document],
    ) -> None:
        """
        Write every document again.

        The new rows are written over the old ones in a single call, then
        leftover rows below them are deleted. A failed write leaves the
        previous contents in place.
        """
        def overwrite(sheet: gspread.Worksheet) -> None:
            previous_count = len(sheet.get_all_values())
            rows = [SHEET_COLUMNS] + [self._to_row(item) for item in items]
            sheet.update(range_name="A1", values=rows, value_input_option="RAW")
            if previous_count > len(rows):
                sheet.delete_rows(len(rows) + 1, previous_count)

        await self._run("replace", collection, overwrite)
