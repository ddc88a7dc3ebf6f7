"""Services package."""

from src.services.storage import (
    CredentialExpiredError,
    GoogleSheetsClient,
    GoogleSheetsRemoteTable,
    InMemoryKeyValueStore,
    JsonFileKeyValueStore,
    KeyValueStoreInterface,
    RemoteTableError,
    RemoteTableInterface,
    RemoteUnavailableError,
    StorageError,
    TableNotFoundError,
    UnauthenticatedError,
)

__all__ = [
    # Storage services
    "CredentialExpiredError",
    "GoogleSheetsClient",
    "GoogleSheetsRemoteTable",
    "InMemoryKeyValueStore",
    "JsonFileKeyValueStore",
    "KeyValueStoreInterface",
    "RemoteTableError",
    "RemoteTableInterface",
    "RemoteUnavailableError",
    "StorageError",
    "TableNotFoundError",
    "UnauthenticatedError",
]
