"""
Local Ledger Store

The authoritative offline store: entries, pending remote deletions and
the remote table identifier, all kept in a key-value store.

GUARANTEES:
- Entry ids are unique within the store
- Any local create/update resets `synced` to False
- A local delete always records the id in pending-deletions, whatever
  the entry's sync state, so the delete can reach the remote later
- `merge` never resurrects an id that is pending deletion

All operations are synchronous read-modify-write against the key-value
store. The reconciliation engine relies on that: no local step is ever
interleaved with another.
"""

from decimal import Decimal
from typing import Iterable, Optional, Union

import structlog
from pydantic import ValidationError

from src.models.entry import (
    Entry,
    EntryDraft,
    EntryPatch,
    EntryType,
    MonthSummary,
    new_entry_id,
    utc_now,
)
from src.services.storage.interface import KeyValueStoreInterface


logger = structlog.get_logger(__name__)


# Persisted keys
ENTRIES_KEY = "expense_tracker_entries"
DELETED_IDS_KEY = "expense_tracker_deleted_ids"
SHEET_ID_KEY = "expense_tracker_sheet_id"


class LedgerStore:
    """CRUD and sync bookkeeping for ledger entries."""

    def __init__(self, kv: KeyValueStoreInterface):
        self._kv = kv

    @property
    def kv(self) -> KeyValueStoreInterface:
        return self._kv

    # -------------------------------------------------------------------------
    # Persistence helpers
    # -------------------------------------------------------------------------

    def _read_stored(self) -> tuple[list[Entry], list]:
        """Split the stored records into valid entries and raw invalid ones."""
        entries, invalid = [], []
        for raw in self._kv.get(ENTRIES_KEY, None) or []:
            try:
                entries.append(Entry.model_validate(raw))
            except ValidationError as e:
                invalid.append(raw)
                logger.warning("stored_entry_invalid", error=str(e))
        return entries, invalid

    def _load_entries(self) -> list[Entry]:
        return self._read_stored()[0]

    def _save_entries(self, entries: list[Entry]) -> None:
        # Records that fail validation are written back untouched.
        _, invalid = self._read_stored()
        self._kv.set(ENTRIES_KEY, [e.model_dump(mode="json") for e in entries] + invalid)

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def all_entries(self) -> list[Entry]:
        return self._load_entries()

    def get(self, entry_id: str) -> Optional[Entry]:
        for entry in self._load_entries():
            if entry.id == entry_id:
                return entry
        return None

    def unsynced_entries(self) -> list[Entry]:
        return [e for e in self._load_entries() if not e.synced]

    def list_filtered(
        self,
        year: Optional[int] = None,
        month: Optional[int] = None,
        type: Optional[Union[EntryType, str]] = None,
    ) -> list[Entry]:
        """
        Filter by calendar month and/or type, newest first.

        Args:
            year: Calendar year (must be given together with month)
            month: Calendar month 1-12 (must be given together with year)
            type: EntryType, or None / "all" for both types

        Returns:
            Entries sorted by date descending, then created_at descending
        """
        if (year is None) != (month is None):
            raise ValueError("year and month must be given together")

        entries = self._load_entries()

        if year is not None:
            entries = [
                e for e in entries
                if e.date.year == year and e.date.month == month
            ]

        if type is not None and type != "all":
            wanted = EntryType(type)
            entries = [e for e in entries if e.type == wanted]

        entries.sort(key=lambda e: (e.date, e.created_at), reverse=True)
        return entries

    def month_summary(self, year: int, month: int) -> MonthSummary:
        income = Decimal("0")
        expense = Decimal("0")
        for entry in self.list_filtered(year=year, month=month):
            if entry.type == EntryType.INCOME:
                income += entry.amount
            else:
                expense += entry.amount
        return MonthSummary(year=year, month=month, income=income, expense=expense)

    # -------------------------------------------------------------------------
    # Local mutations
    # -------------------------------------------------------------------------

    def add(self, draft: Union[EntryDraft, dict]) -> Entry:
        """Store a new entry with a fresh id. The entry starts unsynced."""
        if isinstance(draft, dict):
            draft = EntryDraft.model_validate(draft)

        entries = self._load_entries()
        existing_ids = {e.id for e in entries}
        entry_id = new_entry_id()
        while entry_id in existing_ids:
            entry_id = new_entry_id()

        entry = Entry(
            id=entry_id,
            created_at=utc_now(),
            synced=False,
            **draft.model_dump(),
        )
        entries.append(entry)
        self._save_entries(entries)
        logger.debug("entry_added", entry_id=entry.id)
        return entry

    def update(
        self,
        entry_id: str,
        patch: Union[EntryPatch, dict],
    ) -> Optional[Entry]:
        """
        Merge patch fields into an entry and mark it unsynced.

        Returns:
            The updated entry, or None if the id is unknown
        """
        if isinstance(patch, dict):
            patch = EntryPatch.model_validate(patch)

        changes = {
            field: value
            for field, value in patch.model_dump(exclude_unset=True).items()
            if value is not None
        }

        entries = self._load_entries()
        for idx, entry in enumerate(entries):
            if entry.id == entry_id:
                updated = Entry.model_validate(
                    {**entry.model_dump(), **changes, "synced": False}
                )
                entries[idx] = updated
                self._save_entries(entries)
                logger.debug("entry_updated", entry_id=entry_id, fields=sorted(changes))
                return updated

        logger.warning("update_unknown_entry", entry_id=entry_id)
        return None

    def delete(self, entry_id: str) -> Optional[Entry]:
        """
        Remove an entry locally and queue its remote deletion.

        Unknown ids are a logged no-op.

        Returns:
            The removed entry, or None if the id was unknown
        """
        entries = self._load_entries()
        target = next((e for e in entries if e.id == entry_id), None)
        if target is None:
            logger.warning("delete_unknown_entry", entry_id=entry_id)
            return None

        # Record the intent before removing, so it is never lost
        self._add_pending_deletion(entry_id)
        self._save_entries([e for e in entries if e.id != entry_id])
        logger.debug("entry_deleted", entry_id=entry_id, was_synced=target.synced)
        return target

    def remove_local_only(self, entry_id: str) -> bool:
        """
        Remove an entry without queueing a remote deletion.

        Only for mirroring a row that was already deleted remotely.
        """
        entries = self._load_entries()
        remaining = [e for e in entries if e.id != entry_id]
        if len(remaining) == len(entries):
            return False
        self._save_entries(remaining)
        return True

    # -------------------------------------------------------------------------
    # Sync bookkeeping
    # -------------------------------------------------------------------------

    def mark_synced(self, ids: Iterable[str]) -> int:
        """Flag the given entries as synced. Ids that no longer exist are ignored."""
        wanted = set(ids)
        if not wanted:
            return 0

        entries = self._load_entries()
        marked = 0
        for idx, entry in enumerate(entries):
            if entry.id in wanted and not entry.synced:
                entries[idx] = entry.model_copy(update={"synced": True})
                marked += 1
        if marked:
            self._save_entries(entries)
        return marked

    def mark_all_unsynced(self) -> int:
        """Flag every entry for re-upload (used when the remote table is new)."""
        entries = self._load_entries()
        flagged = [e for e in entries if e.synced]
        if flagged:
            self._save_entries([e.model_copy(update={"synced": False}) for e in entries])
        return len(flagged)

    def merge(self, remote_entries: Iterable[Entry]) -> int:
        """
        Insert remote entries that are new to this store, as synced.

        Ids pending deletion are skipped - a local delete wins over a
        remote reappearance until the delete is confirmed remotely.

        Returns:
            Number of newly inserted entries
        """
        entries = self._load_entries()
        local_ids = {e.id for e in entries}
        pending = set(self.pending_deletions())

        added = 0
        skipped_pending = 0
        for remote in remote_entries:
            remote_id = remote.id.strip()
            if remote_id in pending:
                skipped_pending += 1
                continue
            if remote_id in local_ids:
                continue
            entries.append(remote.model_copy(update={"id": remote_id, "synced": True}))
            local_ids.add(remote_id)
            added += 1

        if skipped_pending:
            logger.debug("merge_skipped_pending_deletions", count=skipped_pending)
        if added:
            self._save_entries(entries)
        return added

    # -------------------------------------------------------------------------
    # Pending deletions
    # -------------------------------------------------------------------------

    def pending_deletions(self) -> list[str]:
        return [str(i).strip() for i in self._kv.get(DELETED_IDS_KEY, None) or []]

    def _add_pending_deletion(self, entry_id: str) -> None:
        ids = self.pending_deletions()
        target = str(entry_id).strip()
        if target not in ids:
            ids.append(target)
            self._kv.set(DELETED_IDS_KEY, ids)

    def clear_pending_deletions(self, ids: Optional[Iterable[str]] = None) -> None:
        """Forget the given pending ids, or all of them when ids is None."""
        if ids is None:
            self._kv.remove(DELETED_IDS_KEY)
            return

        to_remove = {str(i).strip() for i in ids}
        remaining = [i for i in self.pending_deletions() if i not in to_remove]
        if remaining:
            self._kv.set(DELETED_IDS_KEY, remaining)
        else:
            self._kv.remove(DELETED_IDS_KEY)

    # -------------------------------------------------------------------------
    # Remote table identifier
    # -------------------------------------------------------------------------

    @property
    def table_id(self) -> Optional[str]:
        return self._kv.get(SHEET_ID_KEY, None) or None

    def set_table_id(self, table_id: str) -> None:
        if table_id:
            self._kv.set(SHEET_ID_KEY, table_id)

    def clear_table_id(self) -> None:
        self._kv.remove(SHEET_ID_KEY)
