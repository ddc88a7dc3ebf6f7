"""
Audit Logger

DESIGN DECISION: Every significant ledger and sync action is logged.
This provides:
1. Complete traceability of local and remote mutations
2. Debugging capability when reconciliation misbehaves
3. A record of why entries appeared or disappeared

The audit logger:
- Is async so it can sit inside the engine's async flow
- Gracefully handles sink failures (never breaks a sync cycle)
- Supports correlation IDs to trace one sync cycle end to end
"""

import logging
from typing import Callable, Optional
from uuid import UUID, uuid4

import structlog

from src.models.audit import AuditEvent, AuditEventBuilder


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


def configure_log_level(debug: bool = False) -> None:
    """Set the threshold for every logger under the `src` package (DEBUG or INFO)."""
    logging.getLogger("src").setLevel(logging.DEBUG if debug else logging.INFO)


class AuditLogger:
    """
    Central audit logging service.

    Logs events to:
    1. Structured local log (always)
    2. An optional sink callable (e.g. a test recorder or a UI history view)
    """

    def __init__(
        self,
        sink: Optional[Callable[[AuditEvent], None]] = None,
    ):
        """
        Initialize audit logger.

        Args:
            sink: Extra consumer for audit events.
                  If None, only logs locally.
        """
        self._sink = sink
        self._logger = structlog.get_logger("audit")

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Forwards to the sink if one is configured.

        Returns True if the sink accepted the event (or no sink configured).
        """
        log_dict = event.to_log_dict()

        if event.severity.value == "error":
            self._logger.error("audit_event", **log_dict)
        elif event.severity.value == "warning":
            self._logger.warning("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._sink:
            try:
                self._sink(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_sink_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_entry_added(self, entry_id: str, category: str, amount: str) -> None:
        await self.log(AuditEventBuilder.entry_added(entry_id, category, amount))

    async def log_entry_updated(self, entry_id: str, fields: list[str]) -> None:
        await self.log(AuditEventBuilder.entry_updated(entry_id, fields))

    async def log_entry_deleted(self, entry_id: str, was_synced: bool) -> None:
        await self.log(AuditEventBuilder.entry_deleted(entry_id, was_synced))

    async def log_table_created(self, table_id: str, correlation_id: UUID) -> None:
        await self.log(AuditEventBuilder.table_created(table_id, correlation_id))

    async def log_table_discarded(
        self,
        table_id: str,
        reason: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(
            AuditEventBuilder.table_discarded(table_id, reason, correlation_id)
        )

    async def log_remote_deletion_mirrored(
        self,
        entry_id: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(
            AuditEventBuilder.remote_deletion_mirrored(entry_id, correlation_id)
        )

    async def log_pull_completed(
        self,
        added: int,
        removed: int,
        correlation_id: UUID,
    ) -> None:
        await self.log(
            AuditEventBuilder.pull_completed(added, removed, correlation_id)
        )

    async def log_push_completed(
        self,
        deleted: int,
        updated: int,
        appended: int,
        correlation_id: UUID,
    ) -> None:
        await self.log(
            AuditEventBuilder.push_completed(deleted, updated, appended, correlation_id)
        )

    async def log_remote_delete_failed(
        self,
        entry_ids: list[str],
        error_message: str,
        correlation_id: UUID,
    ) -> None:
        """Log a failed batch delete. The ids stay pending for the next cycle."""
        await self.log(
            AuditEventBuilder.remote_delete_failed(
                entry_ids, error_message, correlation_id
            )
        )

    async def log_sync_failed(
        self,
        operation: str,
        error: Exception,
        correlation_id: UUID,
    ) -> None:
        await self.log(
            AuditEventBuilder.sync_failed(
                operation=operation,
                error_type=type(error).__name__,
                error_message=str(error),
                correlation_id=correlation_id,
            )
        )


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a sync cycle.
    Pass it through all subsequent operations.
    """
    return uuid4()
