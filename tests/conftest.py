"""
Shared fixtures.

No real API calls in tests: the remote table is an in-memory fake that
records every call, and credentials are a simple switchable stub.
"""

from datetime import date
from decimal import Decimal
from typing import Any, Optional

import pytest

from src.auth.credentials import CredentialProviderInterface
from src.events import EventBus
from src.ledger import LedgerStore
from src.models.entry import Entry, EntryType
from src.services.storage import (
    HEADER_ROW,
    InMemoryKeyValueStore,
    RemoteTableInterface,
    TableNotFoundError,
    entry_to_row,
)
from src.sync import ReconciliationEngine


class InMemoryRemoteTable(RemoteTableInterface):
    """
    Spreadsheet stand-in.

    Tables are lists of rows with the header at index 0, like a sheet.
    Set `failures[method_name] = exc` to make a call raise.
    """

    def __init__(self):
        self.tables: dict[str, list[list[Any]]] = {}
        self.current: Optional[str] = None
        self.calls: list[tuple[str, Any]] = []
        self.failures: dict[str, Exception] = {}
        self.recreate_sheet_on_open = False

    # Helpers for tests

    def add_table(self, table_id: str, rows: Optional[list[list[Any]]] = None) -> None:
        self.tables[table_id] = [list(HEADER_ROW)] + [list(r) for r in rows or []]

    def rows(self, table_id: Optional[str] = None) -> list[list[Any]]:
        return self.tables[table_id or self.current][1:]

    def ids(self, table_id: Optional[str] = None) -> list[str]:
        return [row[0] for row in self.rows(table_id)]

    def calls_to(self, method: str) -> list[Any]:
        return [args for name, args in self.calls if name == method]

    @property
    def write_calls(self) -> list[tuple[str, Any]]:
        return [
            (name, args) for name, args in self.calls
            if name in ("append_rows", "update_rows", "delete_rows")
        ]

    def _enter(self, method: str, args: Any = None) -> None:
        self.calls.append((method, args))
        if method in self.failures:
            raise self.failures[method]

    # RemoteTableInterface

    async def open_table(self, table_id: str) -> bool:
        self._enter("open_table", table_id)
        if table_id not in self.tables:
            raise TableNotFoundError(table_id, f"Spreadsheet not found: {table_id}")
        self.current = table_id
        if self.recreate_sheet_on_open:
            self.tables[table_id] = [list(HEADER_ROW)]
            return True
        return False

    async def create_table(self) -> str:
        self._enter("create_table")
        table_id = f"table-{len(self.tables) + 1}"
        self.add_table(table_id)
        self.current = table_id
        return table_id

    async def read_id_column(self) -> list[str]:
        self._enter("read_id_column")
        return [str(row[0]) if row else "" for row in self.tables[self.current]]

    async def read_rows(self) -> list[list[str]]:
        self._enter("read_rows")
        return [
            ["" if value is None else str(value) for value in row]
            for row in self.tables[self.current][1:]
        ]

    async def append_rows(self, rows: list[list[Any]]) -> None:
        self._enter("append_rows", [list(r) for r in rows])
        self.tables[self.current].extend(list(r) for r in rows)

    async def update_rows(self, rows_by_index: dict[int, list[Any]]) -> None:
        self._enter("update_rows", dict(rows_by_index))
        for index, row in rows_by_index.items():
            self.tables[self.current][index] = list(row)

    async def delete_rows(self, indices: list[int]) -> None:
        self._enter("delete_rows", list(indices))
        table = self.tables[self.current]
        for index in indices:
            del table[index]


class StubCredentials(CredentialProviderInterface):
    """Switchable login state."""

    def __init__(self, token: Optional[str] = "test-token"):
        self.token = token

    def is_authenticated(self) -> bool:
        return bool(self.token)

    def current_token(self) -> Optional[str]:
        return self.token


def make_entry(
    entry_id: str,
    synced: bool = False,
    day: int = 1,
    type: EntryType = EntryType.EXPENSE,
    category: str = "飲食",
    amount: str = "100",
    note: str = "",
) -> Entry:
    return Entry(
        id=entry_id,
        date=date(2024, 3, day),
        type=type,
        category=category,
        amount=Decimal(amount),
        note=note,
        synced=synced,
    )


def seeded_kv(
    entries: list[Entry],
    pending: Optional[list[str]] = None,
    table_id: Optional[str] = None,
) -> InMemoryKeyValueStore:
    """Key-value store pre-loaded with raw persisted ledger state."""
    initial: dict[str, Any] = {
        "expense_tracker_entries": [e.model_dump(mode="json") for e in entries],
    }
    if pending:
        initial["expense_tracker_deleted_ids"] = list(pending)
    if table_id:
        initial["expense_tracker_sheet_id"] = table_id
    return InMemoryKeyValueStore(initial)


def remote_row(entry: Entry) -> list[Any]:
    return entry_to_row(entry)


@pytest.fixture
def kv():
    return InMemoryKeyValueStore()


@pytest.fixture
def store(kv):
    return LedgerStore(kv)


@pytest.fixture
def remote():
    return InMemoryRemoteTable()


@pytest.fixture
def credentials():
    return StubCredentials()


@pytest.fixture
def events():
    return EventBus()


@pytest.fixture
def recorded(events):
    """Every event emitted on the bus, in order."""
    received = []
    events.subscribe(received.append)
    return received


@pytest.fixture
def engine(store, remote, credentials, events):
    return ReconciliationEngine(
        store=store,
        remote=remote,
        credentials=credentials,
        events=events,
    )
