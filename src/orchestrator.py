"""
Main Orchestrator for the Expense Ledger

This module ties together all the components and defines the
end-to-end flows for:
1. Local entry changes (form/voice input → ledger → optional immediate sync)
2. Sync (pull, push, full cycle via the reconciliation engine)
3. Monthly views (filtered list, summary, budget status)

DESIGN DECISION: The orchestrator enforces the boundaries:
- Every local change is written to the ledger before any network call
- A failed sync never undoes a local change
- Every step is audited

Input collaborators (entry form, voice parser, list views) only talk to
ExpenseTracker. They never touch the store or the remote table directly.
"""

from datetime import date
from typing import Optional, Union

import structlog

from src.audit import AuditLogger, configure_log_level
from src.auth.credentials import (
    CredentialProviderInterface,
    ServiceAccountCredentialProvider,
    TokenCredentialProvider,
)
from src.config import Settings, get_settings, validate_all_settings
from src.events import EventBus
from src.ledger import BudgetTracker, CategoryCatalog, LedgerStore
from src.models.entry import (
    BudgetStatus,
    Entry,
    EntryDraft,
    EntryPatch,
    EntryType,
    MonthSummary,
)
from src.models.events import ChangeSource, DataChanged, SyncReport
from src.services.storage import (
    GoogleSheetsClient,
    GoogleSheetsRemoteTable,
    JsonFileKeyValueStore,
    KeyValueStoreInterface,
    RemoteTableInterface,
)
from src.sync import ReconciliationEngine


logger = structlog.get_logger(__name__)


class ExpenseTracker:
    """
    Facade over one ledger session.

    Flow for a local change:
    1. Apply to the ledger (always succeeds offline)
    2. Audit + emit DataChanged(local)
    3. If requested and signed in, push immediately

    Step 3 is best-effort. Its result is reported, never raised.
    """

    def __init__(
        self,
        store: LedgerStore,
        engine: ReconciliationEngine,
        credentials: CredentialProviderInterface,
        budget: Optional[BudgetTracker] = None,
        categories: Optional[CategoryCatalog] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._store = store
        self._engine = engine
        self._credentials = credentials
        self._budget = budget or BudgetTracker(store)
        self._categories = categories or CategoryCatalog(store.kv)
        self._audit_logger = audit_logger or AuditLogger()

    @property
    def store(self) -> LedgerStore:
        return self._store

    @property
    def engine(self) -> ReconciliationEngine:
        return self._engine

    @property
    def events(self) -> EventBus:
        return self._engine.events

    @property
    def budget(self) -> BudgetTracker:
        return self._budget

    @property
    def categories(self) -> CategoryCatalog:
        return self._categories

    # -------------------------------------------------------------------------
    # Local changes
    # -------------------------------------------------------------------------

    async def add_entry(
        self,
        draft: Union[EntryDraft, dict],
        sync: bool = True,
    ) -> tuple[Entry, Optional[SyncReport]]:
        """
        Record a new entry.

        Returns:
            (entry, sync_report) - sync_report is None when no sync ran
        """
        entry = self._store.add(draft)
        await self._audit_logger.log_entry_added(
            entry_id=entry.id,
            category=entry.category,
            amount=str(entry.amount),
        )
        self._local_changed()
        return entry, await self._maybe_sync(entry.id, sync)

    async def update_entry(
        self,
        entry_id: str,
        patch: Union[EntryPatch, dict],
        sync: bool = True,
    ) -> tuple[Optional[Entry], Optional[SyncReport]]:
        """
        Edit an entry. Unknown ids return (None, None).
        """
        if isinstance(patch, dict):
            patch = EntryPatch.model_validate(patch)

        entry = self._store.update(entry_id, patch)
        if entry is None:
            return None, None

        await self._audit_logger.log_entry_updated(
            entry_id=entry_id,
            fields=sorted(
                field for field, value in patch.model_dump(exclude_unset=True).items()
                if value is not None
            ),
        )
        self._local_changed()
        return entry, await self._maybe_sync(entry_id, sync)

    async def delete_entry(
        self,
        entry_id: str,
        sync: bool = True,
    ) -> tuple[bool, Optional[SyncReport]]:
        """
        Delete an entry locally; the remote row goes on the next push.

        Returns:
            (deleted, sync_report)
        """
        removed = self._store.delete(entry_id)
        if removed is None:
            return False, None

        await self._audit_logger.log_entry_deleted(
            entry_id=entry_id,
            was_synced=removed.synced,
        )
        self._local_changed()
        return True, await self._maybe_sync(entry_id, sync)

    def _local_changed(self) -> None:
        self.events.emit(DataChanged(source=ChangeSource.LOCAL, changed=True))

    async def _maybe_sync(self, entry_id: str, sync: bool) -> Optional[SyncReport]:
        if not sync:
            return None
        if not self._credentials.is_authenticated():
            logger.debug("immediate_sync_skipped", entry_id=entry_id, reason="signed_out")
            return None
        return await self._engine.sync_entry(entry_id)

    # -------------------------------------------------------------------------
    # Sync
    # -------------------------------------------------------------------------

    async def sync(self) -> SyncReport:
        """Full pull-then-push cycle."""
        return await self._engine.full_sync()

    async def pull(self) -> SyncReport:
        return await self._engine.sync_from_sheet()

    async def push(self) -> SyncReport:
        return await self._engine.sync_to_sheet()

    @property
    def spreadsheet_url(self) -> Optional[str]:
        return self._engine.spreadsheet_url

    # -------------------------------------------------------------------------
    # Views
    # -------------------------------------------------------------------------

    def list_entries(
        self,
        year: Optional[int] = None,
        month: Optional[int] = None,
        type: Optional[Union[EntryType, str]] = None,
    ) -> list[Entry]:
        return self._store.list_filtered(year=year, month=month, type=type)

    def month_summary(self, year: int, month: int) -> MonthSummary:
        return self._store.month_summary(year, month)

    def budget_status(
        self,
        year: Optional[int] = None,
        month: Optional[int] = None,
    ) -> BudgetStatus:
        """Budget status for the given month (defaults to the current one)."""
        today = date.today()
        return self._budget.check(year or today.year, month or today.month)


def create_app_components(
    kv: Optional[KeyValueStoreInterface] = None,
    credentials: Optional[CredentialProviderInterface] = None,
    remote: Optional[RemoteTableInterface] = None,
    settings: Optional[Settings] = None,
) -> ExpenseTracker:
    """
    Factory function to create all application components.

    Every call builds an independent session: its own store, event bus
    and engine. Nothing is shared through module globals.

    Args:
        kv: Key-value store. Defaults to the JSON file from LedgerSettings.
        credentials: Session provider. Defaults to a service account when
                     GOOGLE_SHEETS_CREDENTIALS_PATH is set, otherwise a
                     signed-out token provider.
        remote: Remote table. Defaults to Google Sheets.
        settings: Settings override (tests).

    Returns:
        The ExpenseTracker facade
    """
    settings = settings or get_settings()
    checks = validate_all_settings(settings)
    for name in ("google_sheets", "ledger", "budget", "app"):
        if not checks.get(name, True):
            logger.error("settings_invalid", section=name, error=checks.get(f"{name}_error"))

    app_settings = settings.app
    configure_log_level(app_settings.debug_mode)

    events = EventBus()

    if kv is None:
        kv = JsonFileKeyValueStore(settings.ledger.storage_path)

    sheets_settings = settings.google_sheets
    if credentials is None:
        if sheets_settings.credentials_path:
            credentials = ServiceAccountCredentialProvider(sheets_settings.credentials_path)
        else:
            credentials = TokenCredentialProvider(events)

    if remote is None:
        remote = GoogleSheetsRemoteTable(
            GoogleSheetsClient(credentials, settings=sheets_settings)
        )

    store = LedgerStore(kv)
    audit_logger = AuditLogger()
    engine = ReconciliationEngine(
        store=store,
        remote=remote,
        credentials=credentials,
        events=events,
        audit_logger=audit_logger,
    )

    logger.info(
        "app_components_created",
        environment=app_settings.app_environment,
        storage=type(kv).__name__,
        credentials=type(credentials).__name__,
        remote=type(remote).__name__,
    )

    return ExpenseTracker(
        store=store,
        engine=engine,
        credentials=credentials,
        budget=BudgetTracker(store, settings.budget),
        categories=CategoryCatalog(kv),
        audit_logger=audit_logger,
    )
