"""
Sync Event Models

Typed notifications emitted by the reconciliation engine and the
credential providers. UI collaborators subscribe to these instead of
polling engine state.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field

from src.models.entry import utc_now


class SyncStatus(str, Enum):
    """User-facing sync status."""
    SYNCING = "syncing"
    SUCCESS = "success"
    ERROR = "error"
    IDLE = "idle"  # Completed, nothing changed


class EngineState(str, Enum):
    """Internal state of the reconciliation engine."""
    IDLE = "idle"
    PULLING = "pulling"
    PUSHING = "pushing"
    ERROR = "error"


class ChangeSource(str, Enum):
    """What caused the local ledger to change."""
    PULL = "pull"
    PUSH = "push"
    LOCAL = "local"


class SyncEvent(BaseModel):
    """Base class for everything emitted on the event bus."""

    emitted_at: datetime = Field(default_factory=utc_now)


class StatusChanged(SyncEvent):
    """Sync status update with a human-readable message."""

    status: SyncStatus
    message: str
    table_id: Optional[str] = None


class DataChanged(SyncEvent):
    """
    Local ledger data may have changed - dependent views should refresh.

    Emitted after every successful pull, even when nothing changed
    (`changed=False`), so views can distinguish "up to date" from errors.
    """

    source: ChangeSource
    changed: bool
    added: int = 0
    removed: int = 0


class AuthChanged(SyncEvent):
    """Login state changed."""

    is_authenticated: bool
    user_info: Optional[dict[str, Any]] = None


class SyncReport(BaseModel):
    """
    Outcome of one engine entry point.

    Returned instead of raising - errors are reported in `error`.
    """

    operation: str
    status: SyncStatus
    message: str = ""
    added: int = 0
    removed: int = 0
    deleted_remote: int = 0
    updated_remote: int = 0
    appended_remote: int = 0
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None
