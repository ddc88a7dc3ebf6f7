"""
Audit Models for Expense Ledger Sync

Every significant ledger mutation and sync step is logged for audit purposes.
This provides:
1. Traceability of what the engine did to local and remote state
2. Debugging information when a sync goes wrong
3. Ability to reconstruct why an entry appeared or disappeared

DESIGN DECISION: Audit events are append-only. We never modify them.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from src.models.entry import utc_now


class AuditEventType(str, Enum):
    """
    Types of events we audit.

    Local ledger mutations and every sync phase have their own event type.
    """
    # Local ledger
    ENTRY_ADDED = "entry_added"
    ENTRY_UPDATED = "entry_updated"
    ENTRY_DELETED = "entry_deleted"

    # Remote table lifecycle
    TABLE_CREATED = "table_created"
    TABLE_DISCARDED = "table_discarded"

    # Reconciliation
    PULL_COMPLETED = "pull_completed"
    PUSH_COMPLETED = "push_completed"
    REMOTE_DELETION_MIRRORED = "remote_deletion_mirrored"
    REMOTE_DELETE_FAILED = "remote_delete_failed"
    SYNC_FAILED = "sync_failed"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=utc_now,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'entry', 'table')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., one sync cycle)"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )

    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    error_message: Optional[str] = None

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.entry_added(entry_id, category, amount)
        event = AuditEventBuilder.pull_completed(added, removed, correlation_id)
    """

    @staticmethod
    def entry_added(entry_id: str, category: str, amount: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ENTRY_ADDED,
            entity_type="entry",
            entity_id=entry_id,
            description=f"Entry added: {category} {amount}",
            details={"category": category, "amount": amount},
        )

    @staticmethod
    def entry_updated(entry_id: str, fields: list[str]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ENTRY_UPDATED,
            entity_type="entry",
            entity_id=entry_id,
            description=f"Entry updated: {', '.join(fields) or 'no fields'}",
            details={"fields": fields},
        )

    @staticmethod
    def entry_deleted(entry_id: str, was_synced: bool) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ENTRY_DELETED,
            entity_type="entry",
            entity_id=entry_id,
            description="Entry deleted locally, queued for remote deletion",
            details={"was_synced": was_synced},
        )

    @staticmethod
    def table_created(table_id: str, correlation_id: UUID) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TABLE_CREATED,
            entity_type="table",
            entity_id=table_id,
            correlation_id=correlation_id,
            description="Remote table created",
        )

    @staticmethod
    def table_discarded(
        table_id: str,
        reason: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TABLE_DISCARDED,
            severity=AuditSeverity.WARNING,
            entity_type="table",
            entity_id=table_id,
            correlation_id=correlation_id,
            description="Known remote table is gone, identifier discarded",
            error_message=reason,
        )

    @staticmethod
    def remote_deletion_mirrored(
        entry_id: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.REMOTE_DELETION_MIRRORED,
            entity_type="entry",
            entity_id=entry_id,
            correlation_id=correlation_id,
            description="Row deleted in the remote table, removed locally",
        )

    @staticmethod
    def pull_completed(
        added: int,
        removed: int,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PULL_COMPLETED,
            correlation_id=correlation_id,
            description=f"Pull completed: {added} added, {removed} removed",
            details={"added": added, "removed": removed},
        )

    @staticmethod
    def push_completed(
        deleted: int,
        updated: int,
        appended: int,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PUSH_COMPLETED,
            correlation_id=correlation_id,
            description=(
                f"Push completed: {deleted} deleted, "
                f"{updated} updated, {appended} appended"
            ),
            details={
                "deleted": deleted,
                "updated": updated,
                "appended": appended,
            },
        )

    @staticmethod
    def remote_delete_failed(
        entry_ids: list[str],
        error_message: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.REMOTE_DELETE_FAILED,
            severity=AuditSeverity.WARNING,
            correlation_id=correlation_id,
            description=f"Remote deletion of {len(entry_ids)} rows failed, will retry",
            details={"entry_ids": entry_ids},
            error_message=error_message,
        )

    @staticmethod
    def sync_failed(
        operation: str,
        error_type: str,
        error_message: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYNC_FAILED,
            severity=AuditSeverity.ERROR,
            correlation_id=correlation_id,
            description=f"{operation} failed: {error_type}",
            details={"operation": operation, "error_type": error_type},
            error_message=error_message,
        )
