"""Services package."""

from finances.services.storage import (
    Collection,
    DuplicateError,
    FallbackStorage,
    GoogleSheetsClient,
    GoogleSheetsStorage,
    LocalChangeEvent,
    LocalKeyValueStore,
    LocalStorage,
    NotFoundError,
    StorageConnectionError,
    StorageError,
    StorageInterface,
    StorageNotConfiguredError,
)

__all__ = [
    "Collection",
    "DuplicateError",
    "FallbackStorage",
    "GoogleSheetsClient",
    "GoogleSheetsStorage",
    "LocalChangeEvent",
    "LocalKeyValueStore",
    "LocalStorage",
    "NotFoundError",
    "StorageConnectionError",
    "StorageError",
    "StorageInterface",
    "StorageNotConfiguredError",
]
