"""Local ledger package."""

from src.ledger.budget import BudgetTracker
from src.ledger.categories import CategoryCatalog, default_categories
from src.ledger.store import LedgerStore

__all__ = [
    "BudgetTracker",
    "CategoryCatalog",
    "LedgerStore",
    "default_categories",
]
