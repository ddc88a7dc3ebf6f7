"""
Monthly Budget

Keeps a single monthly expense budget and checks a month against it.
"""

from decimal import Decimal, InvalidOperation
from typing import Optional, Union

from src.config import BudgetSettings, get_settings
from src.ledger.store import LedgerStore
from src.models.entry import BudgetLevel, BudgetStatus


BUDGET_KEY = "expense_tracker_budget"


class BudgetTracker:
    """Reads/writes the budget value and classifies monthly spending."""

    def __init__(
        self,
        store: LedgerStore,
        settings: Optional[BudgetSettings] = None,
    ):
        self._store = store
        self._settings = settings or get_settings().budget

    def get_budget(self) -> Decimal:
        """Current budget. Missing or unreadable values mean no budget (0)."""
        raw = self._store.kv.get(BUDGET_KEY, None)
        if raw in (None, ""):
            return Decimal("0")
        try:
            value = Decimal(str(raw))
        except InvalidOperation:
            return Decimal("0")
        return value if value.is_finite() and value > 0 else Decimal("0")

    def set_budget(self, amount: Union[Decimal, int, float, str]) -> Decimal:
        """Set the monthly budget. 0 disables budget alerts."""
        value = Decimal(str(amount))
        if not value.is_finite() or value < 0:
            raise ValueError(f"Budget must be a non-negative number, got {amount!r}")
        self._store.kv.set(BUDGET_KEY, str(value))
        return value

    def check(self, year: int, month: int) -> BudgetStatus:
        """Compare the month's expenses with the budget."""
        budget = self.get_budget()
        expense = self._store.month_summary(year, month).expense

        if budget <= 0:
            return BudgetStatus(level=BudgetLevel.NONE, budget=budget, expense=expense)

        ratio = float(expense / budget)
        if expense > budget:
            return BudgetStatus(
                level=BudgetLevel.EXCEEDED,
                budget=budget,
                expense=expense,
                ratio=ratio,
                message=f"Spending {expense:,.2f} has exceeded the budget of {budget:,.2f}",
            )
        if ratio > self._settings.warning_ratio:
            return BudgetStatus(
                level=BudgetLevel.WARNING,
                budget=budget,
                expense=expense,
                ratio=ratio,
                message=f"Spending has reached {ratio:.0%} of the budget ({expense:,.2f} / {budget:,.2f})",
            )
        return BudgetStatus(
            level=BudgetLevel.NONE,
            budget=budget,
            expense=expense,
            ratio=ratio,
        )
