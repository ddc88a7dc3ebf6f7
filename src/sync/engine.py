"""
Reconciliation Engine

Keeps the offline-first local ledger and the remote table in step.

DESIGN DECISION: A full cycle is always pull, then push - never the
other way round and never concurrently. Push must see the post-pull
pending-deletion state before deciding what to propagate.

Pull:
1. Resolve (or create) the remote table
2. Read all data rows
3. Mirror out-of-band remote deletions of synced entries locally
4. Merge rows that are new to the local ledger

Push:
1. Resolve (or create) the remote table
2. Propagate pending deletions (one batch, highest row first)
3. Overwrite rows of edited entries, then append new entries

Deletions and changes are independent failure domains: a failed batch
delete is logged and retried next cycle, and the push carries on.

GUARANTEES:
- No exception escapes the public entry points - failures become a
  StatusChanged(error) event and a SyncReport with `error` set
- Every failure leaves a retryable local state
- One cycle at a time: a second call waits for the running one
"""

import asyncio
from typing import Awaitable, Callable, Optional
from uuid import UUID

import structlog

from src.audit import AuditLogger, create_correlation_id
from src.auth.credentials import CredentialProviderInterface
from src.events import EventBus
from src.ledger.store import LedgerStore
from src.models.entry import Entry
from src.models.events import (
    ChangeSource,
    DataChanged,
    EngineState,
    StatusChanged,
    SyncReport,
    SyncStatus,
)
from src.services.storage.google_sheets import SPREADSHEET_URL
from src.services.storage.interface import (
    RemoteTableError,
    RemoteTableInterface,
    TableNotFoundError,
    UnauthenticatedError,
)
from src.services.storage.row_codec import ID_COLUMN, cell, entry_to_row, rows_to_entries


logger = structlog.get_logger(__name__)


def index_id_column(id_column: list[str]) -> dict[str, list[int]]:
    """
    Map each entry id to the sheet indices of the rows carrying it.

    Index 0 is the header and is never included. Ids are matched
    exactly after trimming whitespace.
    """
    rows_by_id: dict[str, list[int]] = {}
    for index, value in enumerate(id_column):
        if index == 0:
            continue
        entry_id = str(value).strip() if value is not None else ""
        if entry_id:
            rows_by_id.setdefault(entry_id, []).append(index)
    return rows_by_id


class ReconciliationEngine:
    """
    Drives pull, push and delete propagation for one ledger session.

    One engine per session. It owns no global state - the store,
    remote table, credentials and event bus are all passed in.
    """

    def __init__(
        self,
        store: LedgerStore,
        remote: RemoteTableInterface,
        credentials: CredentialProviderInterface,
        events: Optional[EventBus] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._store = store
        self._remote = remote
        self._credentials = credentials
        self._events = events or EventBus()
        self._audit = audit_logger or AuditLogger()
        self._lock = asyncio.Lock()
        self._state = EngineState.IDLE

    @property
    def state(self) -> EngineState:
        return self._state

    @property
    def events(self) -> EventBus:
        return self._events

    @property
    def is_busy(self) -> bool:
        return self._lock.locked()

    @property
    def spreadsheet_url(self) -> Optional[str]:
        table_id = self._store.table_id
        return SPREADSHEET_URL.format(table_id) if table_id else None

    # -------------------------------------------------------------------------
    # Public entry points
    # -------------------------------------------------------------------------

    async def sync_from_sheet(self) -> SyncReport:
        """Pull remote rows into the local ledger."""
        async with self._lock:
            return await self._run("pull", self._pull, create_correlation_id())

    async def sync_to_sheet(self) -> SyncReport:
        """Push local deletions and changes to the remote table."""
        async with self._lock:
            return await self._run("push", self._push, create_correlation_id())

    async def full_sync(self) -> SyncReport:
        """Pull, then push, as one cycle. A failed pull ends the cycle."""
        async with self._lock:
            correlation_id = create_correlation_id()
            pull = await self._run("pull", self._pull, correlation_id)
            if not pull.ok:
                return pull.model_copy(update={"operation": "full_sync"})

            push = await self._run("push", self._push, correlation_id)
            return self._combine(pull, push)

    async def sync_entry(self, entry_id: Optional[str] = None) -> SyncReport:
        """
        Sync right after a single create/edit.

        Runs the regular push: it already diffs every unsynced entry,
        so the entry in question is included.
        """
        if entry_id:
            logger.debug("sync_entry_requested", entry_id=entry_id)
        return await self.sync_to_sheet()

    # -------------------------------------------------------------------------
    # Cycle plumbing
    # -------------------------------------------------------------------------

    async def _run(
        self,
        operation: str,
        step: Callable[[UUID], Awaitable[SyncReport]],
        correlation_id: UUID,
    ) -> SyncReport:
        if not self._credentials.is_authenticated():
            return await self._fail(
                operation,
                UnauthenticatedError("Not signed in"),
                correlation_id,
            )

        if operation == "pull":
            self._state = EngineState.PULLING
            self._emit_status(SyncStatus.SYNCING, "Pulling from the sheet...")
        else:
            self._state = EngineState.PUSHING
            self._emit_status(SyncStatus.SYNCING, "Syncing to the sheet...")

        try:
            report = await step(correlation_id)
        except RemoteTableError as e:
            return await self._fail(operation, e, correlation_id)
        except Exception as e:
            logger.exception("sync_step_crashed", operation=operation)
            return await self._fail(operation, e, correlation_id)

        self._state = EngineState.ERROR if report.error else EngineState.IDLE
        self._emit_status(report.status, report.message)
        return report

    async def _fail(
        self,
        operation: str,
        error: Exception,
        correlation_id: UUID,
    ) -> SyncReport:
        self._state = EngineState.ERROR
        await self._audit.log_sync_failed(operation, error, correlation_id)
        message = f"{operation.capitalize()} failed: {error}"
        self._emit_status(SyncStatus.ERROR, message)
        return SyncReport(
            operation=operation,
            status=SyncStatus.ERROR,
            message=message,
            error=str(error),
        )

    def _emit_status(self, status: SyncStatus, message: str) -> None:
        self._events.emit(
            StatusChanged(status=status, message=message, table_id=self._store.table_id)
        )

    @staticmethod
    def _combine(pull: SyncReport, push: SyncReport) -> SyncReport:
        if push.error:
            status = SyncStatus.ERROR
        elif SyncStatus.SUCCESS in (pull.status, push.status):
            status = SyncStatus.SUCCESS
        else:
            status = SyncStatus.IDLE

        return SyncReport(
            operation="full_sync",
            status=status,
            message=f"{pull.message}; {push.message}",
            added=pull.added,
            removed=pull.removed,
            deleted_remote=push.deleted_remote,
            updated_remote=push.updated_remote,
            appended_remote=push.appended_remote,
            error=push.error,
        )

    async def _resolve_table(self, correlation_id: UUID) -> None:
        """
        Attach to the known table, or create a new one.

        Only a genuine not-found/forbidden discards the known id. Auth
        failures propagate with the id kept, otherwise the next sync would
        orphan the ledger into a duplicate spreadsheet.
        """
        known_id = self._store.table_id
        if known_id:
            try:
                sheet_recreated = await self._remote.open_table(known_id)
            except TableNotFoundError as e:
                await self._audit.log_table_discarded(known_id, str(e), correlation_id)
                self._store.clear_table_id()
            else:
                if sheet_recreated:
                    self._reupload_everything()
                return

        table_id = await self._remote.create_table()
        self._store.set_table_id(table_id)
        await self._audit.log_table_created(table_id, correlation_id)
        self._reupload_everything()

    def _reupload_everything(self) -> None:
        # A new table is empty: re-upload the ledger instead of letting the
        # next pull read the empty table as "everything was deleted".
        flagged = self._store.mark_all_unsynced()
        if flagged:
            logger.info("ledger_flagged_for_reupload", count=flagged)

    def _confirm_synced(self, pushed: list[Entry]) -> int:
        """Mark pushed entries synced, unless they were edited meanwhile."""
        current = {e.id: e for e in self._store.all_entries()}
        ids = [
            entry.id for entry in pushed
            if entry.id in current
            and current[entry.id].content_key() == entry.content_key()
        ]
        return self._store.mark_synced(ids)

    # -------------------------------------------------------------------------
    # Pull
    # -------------------------------------------------------------------------

    async def _pull(self, correlation_id: UUID) -> SyncReport:
        await self._resolve_table(correlation_id)

        rows = await self._remote.read_rows()
        remote_ids = {cell(row, ID_COLUMN) for row in rows} - {""}
        pending = set(self._store.pending_deletions())

        # Synced entries missing remotely were deleted out of band
        removed = 0
        for entry in self._store.all_entries():
            if entry.synced and entry.id not in remote_ids and entry.id not in pending:
                if self._store.remove_local_only(entry.id):
                    removed += 1
                    await self._audit.log_remote_deletion_mirrored(entry.id, correlation_id)

        added = self._store.merge(rows_to_entries(rows))
        changed = bool(added or removed)

        self._events.emit(
            DataChanged(
                source=ChangeSource.PULL,
                changed=changed,
                added=added,
                removed=removed,
            )
        )
        await self._audit.log_pull_completed(added, removed, correlation_id)

        if changed:
            status = SyncStatus.SUCCESS
            message = f"Merged {added} entries from the sheet, removed {removed}"
        elif not rows:
            status = SyncStatus.IDLE
            message = "The sheet has no data"
        else:
            status = SyncStatus.IDLE
            message = "Already up to date"

        return SyncReport(
            operation="pull",
            status=status,
            message=message,
            added=added,
            removed=removed,
        )

    # -------------------------------------------------------------------------
    # Push
    # -------------------------------------------------------------------------

    async def _push(self, correlation_id: UUID) -> SyncReport:
        await self._resolve_table(correlation_id)

        deleted, cleared, delete_error = await self._propagate_deletions(correlation_id)
        updated, appended, change_error = await self._propagate_changes()

        await self._audit.log_push_completed(deleted, updated, appended, correlation_id)

        if cleared or updated or appended:
            self._events.emit(
                DataChanged(source=ChangeSource.PUSH, changed=True)
            )

        if change_error is not None:
            # Partial progress above is already recorded and announced.
            raise change_error

        if delete_error:
            status = SyncStatus.ERROR
            message = f"Remote deletion failed, will retry: {delete_error}"
        elif deleted or updated or appended:
            status = SyncStatus.SUCCESS
            message = f"Synced {updated + appended} entries, deleted {deleted} rows"
        else:
            status = SyncStatus.IDLE
            message = "Already up to date"

        return SyncReport(
            operation="push",
            status=status,
            message=message,
            deleted_remote=deleted,
            updated_remote=updated,
            appended_remote=appended,
            error=delete_error,
        )

    async def _propagate_deletions(
        self,
        correlation_id: UUID,
    ) -> tuple[int, int, Optional[str]]:
        """
        Delete remote rows for every pending id.

        Returns:
            (rows_deleted, pending_ids_cleared, error_message)
        """
        pending = self._store.pending_deletions()
        if not pending:
            return 0, 0, None

        try:
            rows_by_id = index_id_column(await self._remote.read_id_column())
        except RemoteTableError as e:
            await self._audit.log_remote_delete_failed(pending, str(e), correlation_id)
            return 0, 0, str(e)

        found = [i for i in pending if i in rows_by_id]
        missing = [i for i in pending if i not in rows_by_id]

        # Nothing to delete remotely - already gone
        if missing:
            self._forget_deleted(missing)

        if not found:
            return 0, len(missing), None

        indices = sorted(
            {index for entry_id in found for index in rows_by_id[entry_id]},
            reverse=True,
        )
        try:
            await self._remote.delete_rows(indices)
        except RemoteTableError as e:
            logger.warning("remote_delete_failed", ids=found, error=str(e))
            await self._audit.log_remote_delete_failed(found, str(e), correlation_id)
            return 0, len(missing), str(e)

        self._forget_deleted(found)
        return len(indices), len(missing) + len(found), None

    def _forget_deleted(self, entry_ids: list[str]) -> None:
        """Drop confirmed ids from pending-deletions and any lingering local copy."""
        self._store.clear_pending_deletions(entry_ids)
        for entry_id in entry_ids:
            self._store.remove_local_only(entry_id)

    async def _propagate_changes(self) -> tuple[int, int, Optional[RemoteTableError]]:
        """
        Write every unsynced entry: overwrite rows that already carry the
        id, append the rest.

        Returns:
            (entries_updated, entries_appended, error). A remote failure
            stops the writes; entries confirmed before it keep their flag.
        """
        unsynced = self._store.unsynced_entries()
        if not unsynced:
            return 0, 0, None

        updated = appended = 0
        try:
            # Fresh indices - deletions above may have shifted rows
            rows_by_id = index_id_column(await self._remote.read_id_column())

            updates: dict[int, list] = {}
            to_update: list[Entry] = []
            to_append: list[Entry] = []
            for entry in unsynced:
                indices = rows_by_id.get(entry.id)
                if indices:
                    row = entry_to_row(entry)
                    for index in indices:
                        updates[index] = row
                    to_update.append(entry)
                else:
                    to_append.append(entry)

            if updates:
                await self._remote.update_rows(updates)
                self._confirm_synced(to_update)
                updated = len(to_update)

            if to_append:
                await self._remote.append_rows([entry_to_row(e) for e in to_append])
                self._confirm_synced(to_append)
                appended = len(to_append)
        except RemoteTableError as e:
            logger.warning("remote_write_failed", updated=updated, error=str(e))
            return updated, appended, e

        return updated, appended, None
