"""
Data Models Package

This package contains all Pydantic models used by the expense ledger.
All data flowing through the system must conform to these schemas.
"""

from src.models.entry import (
    TYPE_LABELS,
    BudgetLevel,
    BudgetStatus,
    Category,
    Entry,
    EntryDraft,
    EntryPatch,
    EntryType,
    MonthSummary,
    new_entry_id,
    utc_now,
)
from src.models.events import (
    AuthChanged,
    ChangeSource,
    DataChanged,
    EngineState,
    StatusChanged,
    SyncEvent,
    SyncReport,
    SyncStatus,
)
from src.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Ledger models
    "TYPE_LABELS",
    "BudgetLevel",
    "BudgetStatus",
    "Category",
    "Entry",
    "EntryDraft",
    "EntryPatch",
    "EntryType",
    "MonthSummary",
    "new_entry_id",
    "utc_now",
    # Sync events
    "AuthChanged",
    "ChangeSource",
    "DataChanged",
    "EngineState",
    "StatusChanged",
    "SyncEvent",
    "SyncReport",
    "SyncStatus",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
