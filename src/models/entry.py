"""
Core Data Models for the Expense Ledger

These models define the strict schemas for ledger data:
1. Enforce type safety at runtime
2. Provide clear validation error messages
3. Be serializable for local persistence and the remote table
4. Carry the sync flag that drives reconciliation

DESIGN DECISION: The local ledger is authoritative while offline.
Every entry carries a client-generated id that is also written into the
remote table, because the spreadsheet has no row identity of its own.
"""

import datetime as dt
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator


def utc_now() -> dt.datetime:
    """Current time as a timezone-aware UTC datetime."""
    return dt.datetime.now(dt.timezone.utc)


def new_entry_id() -> str:
    """Generate a fresh opaque entry id. Ids are never reused."""
    return uuid4().hex


# =============================================================================
# ENUMS
# =============================================================================

class EntryType(str, Enum):
    """Direction of money flow."""
    EXPENSE = "expense"
    INCOME = "income"


# Labels written to the remote table's type column
TYPE_LABELS = {
    EntryType.INCOME: "收入",
    EntryType.EXPENSE: "支出",
}


# =============================================================================
# LEDGER ENTRY
# =============================================================================

class EntryDraft(BaseModel):
    """
    Input produced by the form or voice collaborators.

    Has no identity yet - the ledger store assigns id and created_at.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    date: dt.date
    type: EntryType
    category: str = Field(
        ...,
        min_length=1,
        max_length=100,
        description="Category label (expected to match a known category)"
    )
    amount: Decimal = Field(
        ...,
        ge=0,
        description="Amount, never negative"
    )
    note: str = Field(
        default="",
        max_length=1000,
    )

    @field_validator('note', mode='before')
    @classmethod
    def none_note_is_empty(cls, v):
        return v if v is not None else ""


class EntryPatch(BaseModel):
    """Partial update for an existing entry. Unset fields are left alone."""
    model_config = ConfigDict(str_strip_whitespace=True)

    date: Optional[dt.date] = None
    type: Optional[EntryType] = None
    category: Optional[str] = Field(default=None, min_length=1, max_length=100)
    amount: Optional[Decimal] = Field(default=None, ge=0)
    note: Optional[str] = Field(default=None, max_length=1000)


class Entry(BaseModel):
    """
    One income/expense record in the local ledger.

    CRITICAL: `synced` is True only immediately after the entry was
    reconciled with a row in the remote table. Any local mutation
    resets it to False.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(
        default_factory=new_entry_id,
        min_length=1,
        description="Opaque unique id, stable for the entry's lifetime"
    )
    date: dt.date
    type: EntryType
    category: str = ""
    amount: Decimal = Field(
        ...,
        ge=0,
    )
    note: str = ""
    created_at: dt.datetime = Field(
        default_factory=utc_now,
        description="Local creation time, used only as an ordering tie-break"
    )
    synced: bool = False

    @field_validator('created_at')
    @classmethod
    def ensure_timezone(cls, v: dt.datetime) -> dt.datetime:
        """Naive timestamps are assumed to be UTC."""
        if v.tzinfo is None:
            return v.replace(tzinfo=dt.timezone.utc)
        return v

    @field_validator('note', mode='before')
    @classmethod
    def none_note_is_empty(cls, v):
        return v if v is not None else ""

    @property
    def type_label(self) -> str:
        return TYPE_LABELS[self.type]

    def content_key(self) -> tuple:
        """Fields the user can see and edit, for comparisons."""
        return (self.date, self.type, self.category, self.amount, self.note)


# =============================================================================
# SUMMARY MODELS
# =============================================================================

class MonthSummary(BaseModel):
    """Income/expense totals for one calendar month."""

    year: int
    month: int = Field(ge=1, le=12)
    income: Decimal = Decimal("0")
    expense: Decimal = Decimal("0")

    @property
    def balance(self) -> Decimal:
        return self.income - self.expense


class BudgetLevel(str, Enum):
    """How close the month's expenses are to the budget."""
    NONE = "none"
    WARNING = "warning"
    EXCEEDED = "exceeded"


class BudgetStatus(BaseModel):
    """Result of checking a month against the monthly budget."""

    level: BudgetLevel
    budget: Decimal
    expense: Decimal
    ratio: Optional[float] = Field(
        default=None,
        description="expense / budget, None when no budget is set"
    )
    message: str = ""


class Category(BaseModel):
    """A known category shown to the user when picking a label."""
    model_config = ConfigDict(str_strip_whitespace=True)

    icon: str
    name: str = Field(..., min_length=1)
    type: EntryType
