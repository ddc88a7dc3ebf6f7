"""
Storage Services Package

Provides abstract interfaces and concrete implementations for both sides
of the sync: the local key-value store and the remote ledger table.
The remote table is Google Sheets, but the engine only sees the interface.
"""

from src.services.storage.interface import (
    CredentialExpiredError,
    KeyValueStoreInterface,
    RemoteTableError,
    RemoteTableInterface,
    RemoteUnavailableError,
    StorageError,
    TableNotFoundError,
    UnauthenticatedError,
)
from src.services.storage.local_store import (
    InMemoryKeyValueStore,
    JsonFileKeyValueStore,
)
from src.services.storage.row_codec import (
    HEADER_ROW,
    entry_to_row,
    row_to_entry,
    rows_to_entries,
)
from src.services.storage.google_sheets import (
    GoogleSheetsClient,
    GoogleSheetsRemoteTable,
)

__all__ = [
    # Interfaces
    "KeyValueStoreInterface",
    "RemoteTableInterface",
    # Exceptions
    "CredentialExpiredError",
    "RemoteTableError",
    "RemoteUnavailableError",
    "StorageError",
    "TableNotFoundError",
    "UnauthenticatedError",
    # Local storage
    "InMemoryKeyValueStore",
    "JsonFileKeyValueStore",
    # Row mapping
    "HEADER_ROW",
    "entry_to_row",
    "row_to_entry",
    "rows_to_entries",
    # Google Sheets implementation
    "GoogleSheetsClient",
    "GoogleSheetsRemoteTable",
]
