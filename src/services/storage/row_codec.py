"""
Entry <-> Row Codec

Translates ledger entries to and from the remote table's fixed-width rows:

    ID | 日期 | 類型 | 分類 | 金額 | 備註 | 建立時間

Rows are read by column position. The remote table is user-editable,
so reading is tolerant: a bad amount becomes 0, missing optional cells
become "", and only rows that cannot be placed at all (no id, no usable
date) are dropped.
"""

from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, NamedTuple, Optional

import structlog
from pydantic import ValidationError

from src.models.entry import TYPE_LABELS, Entry, EntryType, utc_now


logger = structlog.get_logger(__name__)


HEADER_ROW = ["ID", "日期", "類型", "分類", "金額", "備註", "建立時間"]

ID_COLUMN = 0
DATE_COLUMN = 1
TYPE_COLUMN = 2
CATEGORY_COLUMN = 3

_INCOME_LABELS = {TYPE_LABELS[EntryType.INCOME], EntryType.INCOME.value}


class TailLayout(NamedTuple):
    """Positions of the amount/note/created-at cells."""
    amount: int
    note: int
    created_at: int


PRIMARY_LAYOUT = TailLayout(amount=4, note=5, created_at=6)
# Some sheets carry a stray leading space in the 金額 header which pushes
# the tail of each row one column to the right.
SHIFTED_LAYOUT = TailLayout(amount=5, note=6, created_at=7)


def entry_to_row(entry: Entry) -> list[Any]:
    """Convert an Entry to a remote table row."""
    return [
        entry.id,
        entry.date.isoformat(),
        entry.type_label,
        entry.category,
        float(entry.amount),
        entry.note,
        entry.created_at.isoformat(),
    ]


def cell(row: list, index: int) -> str:
    """Cell value as a stripped string; missing cells read as ""."""
    try:
        value = row[index]
    except IndexError:
        return ""
    return "" if value is None else str(value).strip()


def parse_amount(value: str) -> Optional[Decimal]:
    """Parse a numeric cell. Returns None when the cell is not a finite number."""
    cleaned = value.replace(",", "").replace("$", "").strip()
    if not cleaned:
        return None
    try:
        amount = Decimal(cleaned)
    except InvalidOperation:
        return None
    if not amount.is_finite():
        return None
    return amount


def parse_date(value: str) -> Optional[date]:
    """Parse YYYY-MM-DD, also accepting the sheet UI's YYYY/M/D form."""
    parts = value.replace("/", "-").replace(".", "-").split("-")
    if len(parts) != 3:
        return None
    try:
        return date(int(parts[0]), int(parts[1]), int(parts[2]))
    except ValueError:
        return None


def parse_timestamp(value: str) -> Optional[datetime]:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def parse_type(label: str) -> EntryType:
    """Anything that is not an income label is read as an expense."""
    return EntryType.INCOME if label in _INCOME_LABELS else EntryType.EXPENSE


def detect_layout(row: list) -> TailLayout:
    """
    Pick the column layout for a row.

    Uses the primary layout unless its amount cell is absent or
    non-numeric while the next cell holds a number.
    """
    if parse_amount(cell(row, PRIMARY_LAYOUT.amount)) is None and \
            parse_amount(cell(row, SHIFTED_LAYOUT.amount)) is not None:
        return SHIFTED_LAYOUT
    return PRIMARY_LAYOUT


def row_to_entry(row: list) -> Optional[Entry]:
    """
    Convert a remote row to a synced Entry.

    Returns None for rows that cannot be placed in the ledger.
    """
    entry_id = cell(row, ID_COLUMN)
    if not entry_id:
        return None

    entry_date = parse_date(cell(row, DATE_COLUMN))
    if entry_date is None:
        logger.warning(
            "remote_row_skipped",
            entry_id=entry_id,
            reason="unparsable date",
            value=cell(row, DATE_COLUMN),
        )
        return None

    layout = detect_layout(row)
    amount = parse_amount(cell(row, layout.amount))
    if amount is None or amount < 0:
        amount = Decimal("0")

    try:
        return Entry(
            id=entry_id,
            date=entry_date,
            type=parse_type(cell(row, TYPE_COLUMN)),
            category=cell(row, CATEGORY_COLUMN),
            amount=amount,
            note=cell(row, layout.note),
            created_at=parse_timestamp(cell(row, layout.created_at)) or utc_now(),
            synced=True,
        )
    except ValidationError as e:
        logger.warning("remote_row_skipped", entry_id=entry_id, reason=str(e))
        return None


def rows_to_entries(rows: list[list]) -> list[Entry]:
    """Parse every placeable row, skipping the rest."""
    entries = []
    for row in rows:
        entry = row_to_entry(row)
        if entry is not None:
            entries.append(entry)
    return entries
