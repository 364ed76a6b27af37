"""
Storage Services Package

Provides the abstract storage interface and its implementations:
Google Sheets as the cloud document store, local JSON files as the
fallback, and a decorator that combines the two.
"""

from finances.services.storage.interface import (
    Collection,
    DuplicateError,
    NotFoundError,
    StorageConnectionError,
    StorageError,
    StorageInterface,
    StorageNotConfiguredError,
)
from finances.services.storage.google_sheets import (
    GoogleSheetsClient,
    GoogleSheetsStorage,
)
from finances.services.storage.local import (
    LocalChangeEvent,
    LocalKeyValueStore,
    LocalStorage,
)
from finances.services.storage.fallback import FallbackStorage

__all__ = [
    # Interface
    "Collection",
    "StorageInterface",
    # Exceptions
    "DuplicateError",
    "NotFoundError",
    "StorageConnectionError",
    "StorageError",
    "StorageNotConfiguredError",
    # Google Sheets implementation
    "GoogleSheetsClient",
    "GoogleSheetsStorage",
    # Local implementation
    "LocalChangeEvent",
    "LocalKeyValueStore",
    "LocalStorage",
    # Decorator
    "FallbackStorage",
]
