"""
Abstract Storage Interfaces

DESIGN DECISION: We define abstract interfaces for both sides of the sync.
This allows us to:
1. Swap the JSON file for another local store without touching the ledger
2. Use in-memory local storage and an in-memory remote table for testing
3. Keep the reconciliation engine decoupled from gspread

The remote interface is intentionally column-position based: the remote
table has no row identity, so rows are addressed by their current index
and identified by the value in the ID column.
"""

from abc import ABC, abstractmethod
from typing import Any, Optional


class KeyValueStoreInterface(ABC):
    """
    Persisted local state, modelled on browser local storage.

    Values must be JSON-compatible. A missing key is never an error.
    """

    @abstractmethod
    def get(self, key: str, default: Any = None) -> Any:
        """Return the stored value, or `default` when the key is absent."""
        pass

    @abstractmethod
    def set(self, key: str, value: Any) -> None:
        """Store a value, replacing any previous one."""
        pass

    @abstractmethod
    def remove(self, key: str) -> None:
        """Remove a key. Removing an absent key is a no-op."""
        pass


class RemoteTableInterface(ABC):
    """
    Abstract interface for the remote spreadsheet-like table.

    Row indices are 0-based sheet indices: index 0 is the header row,
    data rows start at index 1. Indices are only valid until the next
    structural change, so callers must read them fresh before writing.
    """

    @abstractmethod
    async def open_table(self, table_id: str) -> bool:
        """
        Attach to an existing table.

        Returns:
            True when the ledger tab was missing and had to be recreated
            (the remote is then effectively empty)

        Raises:
            TableNotFoundError: The table is gone or no longer accessible
            CredentialExpiredError: The credential was rejected (401)
            RemoteUnavailableError: Transient failure
        """
        pass

    @abstractmethod
    async def create_table(self) -> str:
        """
        Create a new table with a formatted header row and attach to it.

        Returns:
            The new table's identifier
        """
        pass

    @abstractmethod
    async def read_id_column(self) -> list[str]:
        """
        Read the full ID column, header included at index 0.

        Returns:
            Cell values with surrounding whitespace preserved
        """
        pass

    @abstractmethod
    async def read_rows(self) -> list[list[str]]:
        """
        Read every data row (header excluded).

        Rows may be ragged - trailing empty cells are not returned.
        """
        pass

    @abstractmethod
    async def append_rows(self, rows: list[list[Any]]) -> None:
        """Append rows after the last data row in a single request."""
        pass

    @abstractmethod
    async def update_rows(self, rows_by_index: dict[int, list[Any]]) -> None:
        """Overwrite the given rows in place in a single request."""
        pass

    @abstractmethod
    async def delete_rows(self, indices: list[int]) -> None:
        """
        Delete the given rows in a single batch.

        Deletions are issued in descending index order so earlier
        deletions never shift later ones. The header row is never deleted.
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class RemoteTableError(StorageError):
    """Any failure talking to the remote table."""
    pass


class UnauthenticatedError(RemoteTableError):
    """No credential present - raised before any network call."""
    pass


class CredentialExpiredError(RemoteTableError):
    """The remote rejected the credential (401-class)."""
    pass


class TableNotFoundError(RemoteTableError):
    """The known table no longer exists or is no longer accessible."""

    def __init__(self, table_id: Optional[str], message: str):
        self.table_id = table_id
        super().__init__(message)


class RemoteUnavailableError(RemoteTableError):
    """Transient API or transport failure."""
    pass
