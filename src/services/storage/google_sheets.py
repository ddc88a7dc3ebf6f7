"""
Google Sheets Remote Table Implementation

DESIGN DECISION: Google Sheets is the sync backend because:
1. Users can view and edit their ledger directly in Sheets
2. No server or database setup required
3. Built-in backup (Google's infrastructure)

TRADEOFFS:
- No transactions (the engine relies on id-based idempotent writes)
- No row identity (the entry id lives in column A)
- Users may edit rows out of band (reads are tolerant, see row_codec)

Only idempotent calls (open, reads) are retried. Appends are never
retried because a retried append that actually landed duplicates rows.
"""

import asyncio
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any, Callable, Iterator, Optional

import gspread
import structlog
from google.oauth2.credentials import Credentials
from gspread.exceptions import APIError, SpreadsheetNotFound, WorksheetNotFound
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from src.config import GoogleSheetsSettings, get_settings
from src.services.storage.interface import (
    CredentialExpiredError,
    RemoteTableError,
    RemoteTableInterface,
    RemoteUnavailableError,
    TableNotFoundError,
    UnauthenticatedError,
)
from src.services.storage.row_codec import HEADER_ROW

if TYPE_CHECKING:
    from src.auth.credentials import CredentialProviderInterface


logger = structlog.get_logger(__name__)

SPREADSHEET_URL = "https://docs.google.com/spreadsheets/d/{}"

LAST_COLUMN = "G"

# Header row styling applied once, when the table is created
HEADER_BACKGROUND = {"red": 0.2, "green": 0.2, "blue": 0.4}


retry_transient = retry(
    retry=retry_if_exception_type(RemoteUnavailableError),
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=2, max=10),
    reraise=True,
)


def authorize_with_token(token: str) -> gspread.Client:
    """Build a gspread client from a bearer access token."""
    return gspread.authorize(Credentials(token=token))


def _status_code(error: APIError) -> Optional[int]:
    response = getattr(error, "response", None)
    return getattr(response, "status_code", None)


def header_format_requests(sheet_id: int) -> list[dict]:
    """batchUpdate requests making row 1 bold, shaded and frozen."""
    return [
        {
            "repeatCell": {
                "range": {"sheetId": sheet_id, "startRowIndex": 0, "endRowIndex": 1},
                "cell": {
                    "userEnteredFormat": {
                        "textFormat": {"bold": True},
                        "backgroundColor": HEADER_BACKGROUND,
                    },
                },
                "fields": "userEnteredFormat(textFormat,backgroundColor)",
            },
        },
        {
            "updateSheetProperties": {
                "properties": {"sheetId": sheet_id, "gridProperties": {"frozenRowCount": 1}},
                "fields": "gridProperties.frozenRowCount",
            },
        },
    ]


def delete_rows_requests(sheet_id: int, indices: list[int]) -> list[dict]:
    """deleteDimension requests, highest index first."""
    return [
        {
            "deleteDimension": {
                "range": {
                    "sheetId": sheet_id,
                    "dimension": "ROWS",
                    "startIndex": index,
                    "endIndex": index + 1,
                },
            },
        }
        for index in sorted(set(indices), reverse=True)
    ]


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication from the credential provider and translates
    gspread/transport errors into the storage error taxonomy.
    """

    def __init__(
        self,
        credentials: "CredentialProviderInterface",
        settings: Optional[GoogleSheetsSettings] = None,
        client_factory: Callable[[str], gspread.Client] = authorize_with_token,
    ):
        self._credentials = credentials
        self._settings = settings or get_settings().google_sheets
        self._client_factory = client_factory
        self._client: Optional[gspread.Client] = None
        self._token: Optional[str] = None

    @property
    def settings(self) -> GoogleSheetsSettings:
        return self._settings

    def connect(self) -> gspread.Client:
        """
        Return a client authorized with the current token.

        Fails fast without touching the network when there is no token.
        """
        token = self._credentials.current_token()
        if not token:
            raise UnauthenticatedError("Not signed in - no access token available")

        if self._client is None or token != self._token:
            self._client = self._client_factory(token)
            self._token = token
        return self._client

    @contextmanager
    def translate_errors(self, action: str) -> Iterator[None]:
        """Map gspread and transport failures onto RemoteTableError subclasses."""
        try:
            yield
        except RemoteTableError:
            raise
        except APIError as e:
            if _status_code(e) == 401:
                raise CredentialExpiredError(f"{action}: access token rejected") from e
            raise RemoteUnavailableError(f"{action} failed: {e}") from e
        except OSError as e:
            # requests' exceptions derive from IOError
            raise RemoteUnavailableError(f"{action} failed: {e}") from e

    def open_spreadsheet(self, table_id: str) -> gspread.Spreadsheet:
        """Open an existing spreadsheet, distinguishing 'gone' from 'auth failed'."""
        with self.translate_errors("open spreadsheet"):
            client = self.connect()
            try:
                return client.open_by_key(table_id)
            except (SpreadsheetNotFound, PermissionError) as e:
                raise TableNotFoundError(table_id, f"Spreadsheet not found: {table_id}") from e
            except APIError as e:
                if _status_code(e) in (403, 404):
                    raise TableNotFoundError(
                        table_id, f"Spreadsheet not accessible: {table_id}"
                    ) from e
                raise

    def get_or_create_ledger_sheet(
        self,
        spreadsheet: gspread.Spreadsheet,
    ) -> tuple[gspread.Worksheet, bool]:
        """
        Get the ledger tab, creating it with a formatted header if missing.

        Returns:
            (worksheet, created)
        """
        with self.translate_errors("open ledger sheet"):
            try:
                return spreadsheet.worksheet(self._settings.sheet_name), False
            except WorksheetNotFound:
                sheet = spreadsheet.add_worksheet(
                    title=self._settings.sheet_name,
                    rows=1000,
                    cols=len(HEADER_ROW),
                )
                self._write_header(spreadsheet, sheet)
                return sheet, True

    def create_spreadsheet(self) -> tuple[gspread.Spreadsheet, gspread.Worksheet]:
        """Create a new ledger spreadsheet with a single formatted tab."""
        with self.translate_errors("create spreadsheet"):
            client = self.connect()
            spreadsheet = client.create(self._settings.spreadsheet_title)
            sheet = spreadsheet.sheet1
            sheet.update_title(self._settings.sheet_name)
            self._write_header(spreadsheet, sheet)
            return spreadsheet, sheet

    def _write_header(
        self,
        spreadsheet: gspread.Spreadsheet,
        sheet: gspread.Worksheet,
    ) -> None:
        sheet.update(
            values=[HEADER_ROW],
            range_name=f"A1:{LAST_COLUMN}1",
            value_input_option="RAW",
        )
        spreadsheet.batch_update({"requests": header_format_requests(sheet.id)})


class GoogleSheetsRemoteTable(RemoteTableInterface):
    """
    Google Sheets implementation of the remote ledger table.

    gspread is synchronous - every call runs in a worker thread so the
    event loop stays responsive while a sync cycle waits on the network.
    """

    def __init__(self, client: GoogleSheetsClient):
        self._client = client
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._sheet: Optional[gspread.Worksheet] = None

    @property
    def table_id(self) -> Optional[str]:
        return self._spreadsheet.id if self._spreadsheet is not None else None

    @property
    def url(self) -> Optional[str]:
        return SPREADSHEET_URL.format(self.table_id) if self.table_id else None

    def _require_sheet(self) -> gspread.Worksheet:
        if self._sheet is None:
            raise RemoteTableError("No table attached - call open_table or create_table first")
        return self._sheet

    def _attach(self, table_id: str) -> bool:
        spreadsheet = self._client.open_spreadsheet(table_id)
        sheet, created = self._client.get_or_create_ledger_sheet(spreadsheet)
        self._spreadsheet, self._sheet = spreadsheet, sheet
        return created

    @retry_transient
    async def open_table(self, table_id: str) -> bool:
        """Attach to an existing spreadsheet."""
        self._spreadsheet = self._sheet = None
        created = await asyncio.to_thread(self._attach, table_id)
        logger.debug("remote_table_opened", table_id=table_id, sheet_created=created)
        return created

    async def create_table(self) -> str:
        """Create a fresh spreadsheet and attach to it."""
        self._spreadsheet = self._sheet = None
        spreadsheet, sheet = await asyncio.to_thread(self._client.create_spreadsheet)
        self._spreadsheet, self._sheet = spreadsheet, sheet
        logger.info("remote_table_created", table_id=spreadsheet.id)
        return spreadsheet.id

    @retry_transient
    async def read_id_column(self) -> list[str]:
        sheet = self._require_sheet()

        def _read() -> list[str]:
            with self._client.translate_errors("read ID column"):
                return sheet.col_values(1)

        return await asyncio.to_thread(_read)

    @retry_transient
    async def read_rows(self) -> list[list[str]]:
        sheet = self._require_sheet()

        def _read() -> list[list[str]]:
            with self._client.translate_errors("read rows"):
                return sheet.get_all_values()[1:]  # Skip header

        return await asyncio.to_thread(_read)

    async def append_rows(self, rows: list[list[Any]]) -> None:
        if not rows:
            return
        sheet = self._require_sheet()

        def _append() -> None:
            with self._client.translate_errors("append rows"):
                sheet.append_rows(
                    rows,
                    value_input_option="RAW",
                    insert_data_option="INSERT_ROWS",
                    table_range="A1",
                )

        await asyncio.to_thread(_append)

    async def update_rows(self, rows_by_index: dict[int, list[Any]]) -> None:
        if not rows_by_index:
            return
        sheet = self._require_sheet()
        if min(rows_by_index) < 1:
            raise ValueError("Refusing to overwrite the header row")

        data = [
            {
                "range": f"A{index + 1}:{LAST_COLUMN}{index + 1}",
                "values": [row],
            }
            for index, row in sorted(rows_by_index.items())
        ]

        def _update() -> None:
            with self._client.translate_errors("update rows"):
                sheet.batch_update(data, value_input_option="RAW")

        await asyncio.to_thread(_update)

    async def delete_rows(self, indices: list[int]) -> None:
        if not indices:
            return
        sheet = self._require_sheet()
        spreadsheet = self._spreadsheet
        if min(indices) < 1:
            raise ValueError("Refusing to delete the header row")

        body = {"requests": delete_rows_requests(sheet.id, indices)}

        def _delete() -> None:
            with self._client.translate_errors("delete rows"):
                spreadsheet.batch_update(body)

        await asyncio.to_thread(_delete)
