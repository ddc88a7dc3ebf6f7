"""
Tests for the monthly budget and the category catalog.
"""

from decimal import Decimal

import pytest

from src.config import BudgetSettings
from src.ledger import BudgetTracker, CategoryCatalog, LedgerStore, default_categories
from src.models.entry import BudgetLevel, EntryType
from src.services.storage import InMemoryKeyValueStore
from tests.conftest import make_entry, seeded_kv


@pytest.fixture
def settings():
    return BudgetSettings(warning_ratio=0.8)


def tracker_with(amounts: list[str], settings) -> BudgetTracker:
    entries = [make_entry(f"e{i}", amount=a) for i, a in enumerate(amounts)]
    return BudgetTracker(LedgerStore(seeded_kv(entries)), settings)


class TestBudgetTracker:
    """Tests for budget storage and alert levels."""

    def test_no_budget_means_no_alert(self, settings):
        tracker = tracker_with(["500"], settings)
        status = tracker.check(2024, 3)
        assert tracker.get_budget() == Decimal("0")
        assert status.level == BudgetLevel.NONE
        assert status.ratio is None

    def test_under_threshold(self, settings):
        tracker = tracker_with(["500"], settings)
        tracker.set_budget(1000)
        assert tracker.check(2024, 3).level == BudgetLevel.NONE

    def test_warning_above_threshold(self, settings):
        tracker = tracker_with(["500", "350"], settings)
        tracker.set_budget("1000")
        status = tracker.check(2024, 3)
        assert status.level == BudgetLevel.WARNING
        assert status.ratio == pytest.approx(0.85)
        assert "85%" in status.message

    def test_exactly_at_budget_is_warning(self, settings):
        tracker = tracker_with(["1000"], settings)
        tracker.set_budget(1000)
        assert tracker.check(2024, 3).level == BudgetLevel.WARNING

    def test_exceeded(self, settings):
        tracker = tracker_with(["1200"], settings)
        tracker.set_budget(1000)
        status = tracker.check(2024, 3)
        assert status.level == BudgetLevel.EXCEEDED
        assert status.expense == Decimal("1200")

    def test_income_does_not_count(self, settings):
        store = LedgerStore(seeded_kv([
            make_entry("i1", type=EntryType.INCOME, amount="5000"),
        ]))
        tracker = BudgetTracker(store, settings)
        tracker.set_budget(100)
        assert tracker.check(2024, 3).level == BudgetLevel.NONE

    def test_negative_budget_rejected(self, settings):
        tracker = tracker_with([], settings)
        with pytest.raises(ValueError):
            tracker.set_budget(-1)

    def test_corrupt_budget_reads_as_zero(self, settings):
        store = LedgerStore(InMemoryKeyValueStore({"expense_tracker_budget": "lots"}))
        assert BudgetTracker(store, settings).get_budget() == Decimal("0")

    def test_budget_persisted_as_string(self, settings):
        tracker = tracker_with([], settings)
        tracker.set_budget(Decimal("1500.50"))
        assert tracker.get_budget() == Decimal("1500.50")


class TestCategoryCatalog:
    """Tests for the persisted category list."""

    def test_seeds_defaults_on_first_use(self):
        kv = InMemoryKeyValueStore()
        catalog = CategoryCatalog(kv)

        categories = catalog.all()

        assert categories == default_categories()
        assert kv.get("expense_tracker_categories") is not None

    def test_by_type(self):
        catalog = CategoryCatalog(InMemoryKeyValueStore())
        income = catalog.by_type("income")
        assert income
        assert all(c.type == EntryType.INCOME for c in income)
        assert "薪資" in [c.name for c in income]

    def test_add_and_reject_duplicate(self):
        catalog = CategoryCatalog(InMemoryKeyValueStore())

        assert catalog.add("🐱", "寵物", "expense") is True
        assert catalog.add("🐶", "寵物", "expense") is False
        assert catalog.icon_for("寵物") == "🐱"

    def test_same_name_allowed_for_other_type(self):
        catalog = CategoryCatalog(InMemoryKeyValueStore())
        assert catalog.add("🎁", "禮物", "income") is True

    def test_remove(self):
        catalog = CategoryCatalog(InMemoryKeyValueStore())
        catalog.remove("飲食", "expense")
        assert "飲食" not in [c.name for c in catalog.by_type("expense")]

    def test_removing_everything_does_not_reseed(self):
        catalog = CategoryCatalog(InMemoryKeyValueStore())
        for category in catalog.all():
            catalog.remove(category.name, category.type)
        assert catalog.all() == []

    def test_unknown_icon_falls_back(self):
        assert CategoryCatalog(InMemoryKeyValueStore()).icon_for("nope") == "📦"
