"""
Tests for the ExpenseTracker facade and the component factory.
"""

import asyncio
import logging
from datetime import date
from decimal import Decimal

import pytest

from src.auth import TokenCredentialProvider
from src.config import Settings
from src.models.entry import BudgetLevel
from src.models.events import AuthChanged, ChangeSource, DataChanged, SyncStatus
from src.orchestrator import ExpenseTracker, create_app_components
from src.services.storage import (
    GoogleSheetsRemoteTable,
    InMemoryKeyValueStore,
    JsonFileKeyValueStore,
)
from tests.conftest import InMemoryRemoteTable, StubCredentials


LUNCH = {"date": "2024-03-01", "type": "expense", "category": "飲食", "amount": "120"}


@pytest.fixture
def remote():
    return InMemoryRemoteTable()


def make_tracker(remote, credentials=None) -> ExpenseTracker:
    return create_app_components(
        kv=InMemoryKeyValueStore(),
        credentials=credentials or StubCredentials(),
        remote=remote,
    )


class TestLocalChanges:
    """Local edits land first, then sync if signed in."""

    def test_add_while_signed_out_stays_local(self, remote):
        tracker = make_tracker(remote, StubCredentials(token=None))
        received = []
        tracker.events.subscribe(received.append, DataChanged)

        entry, report = asyncio.run(tracker.add_entry(LUNCH))

        assert report is None
        assert remote.calls == []
        assert tracker.store.get(entry.id).synced is False
        assert received[0].source == ChangeSource.LOCAL

    def test_add_while_signed_in_syncs_immediately(self, remote):
        tracker = make_tracker(remote)

        entry, report = asyncio.run(tracker.add_entry(LUNCH))

        assert report.appended_remote == 1
        assert remote.ids() == [entry.id]
        assert tracker.store.get(entry.id).synced is True

    def test_sync_false_skips_remote(self, remote):
        tracker = make_tracker(remote)

        _, report = asyncio.run(tracker.add_entry(LUNCH, sync=False))

        assert report is None
        assert remote.calls == []

    def test_update_then_delete(self, remote):
        tracker = make_tracker(remote)
        entry, _ = asyncio.run(tracker.add_entry(LUNCH))

        updated, report = asyncio.run(tracker.update_entry(entry.id, {"amount": "150"}))
        assert updated.amount == Decimal("150")
        assert report.updated_remote == 1
        assert remote.rows()[0][4] == 150.0

        deleted, report = asyncio.run(tracker.delete_entry(entry.id))
        assert deleted is True
        assert report.deleted_remote == 1
        assert remote.ids() == []
        assert tracker.store.pending_deletions() == []

    def test_unknown_ids(self, remote):
        tracker = make_tracker(remote)

        assert asyncio.run(tracker.update_entry("missing", {"note": "x"})) == (None, None)
        assert asyncio.run(tracker.delete_entry("missing")) == (False, None)
        assert remote.calls == []

    def test_failed_immediate_sync_keeps_local_change(self, remote):
        tracker = make_tracker(remote)
        remote.failures["create_table"] = ConnectionError("offline")

        entry, report = asyncio.run(tracker.add_entry(LUNCH))

        assert report.status == SyncStatus.ERROR
        assert tracker.store.get(entry.id) is not None


class TestViews:
    """Tests for list, summary and budget views."""

    def test_list_and_summary(self, remote):
        tracker = make_tracker(remote)
        asyncio.run(tracker.add_entry(LUNCH, sync=False))
        asyncio.run(tracker.add_entry(
            {"date": "2024-03-02", "type": "income", "category": "薪資", "amount": "1000"},
            sync=False,
        ))

        assert len(tracker.list_entries(2024, 3)) == 2
        assert len(tracker.list_entries(2024, 3, "expense")) == 1
        summary = tracker.month_summary(2024, 3)
        assert summary.balance == Decimal("880")

    def test_budget_status(self, remote):
        tracker = make_tracker(remote)
        asyncio.run(tracker.add_entry(LUNCH, sync=False))
        tracker.budget.set_budget(100)

        assert tracker.budget_status(2024, 3).level == BudgetLevel.EXCEEDED

    def test_budget_status_defaults_to_current_month(self, remote):
        tracker = make_tracker(remote)
        today = date.today()
        asyncio.run(tracker.add_entry({**LUNCH, "date": today.isoformat()}, sync=False))
        tracker.budget.set_budget(130)

        assert tracker.budget_status().level == BudgetLevel.WARNING


class TestFactory:
    """Tests for create_app_components."""

    def test_sessions_are_independent(self, remote):
        first = make_tracker(remote)
        second = make_tracker(InMemoryRemoteTable())

        asyncio.run(first.add_entry(LUNCH, sync=False))

        assert second.list_entries() == []
        assert first.events is not second.events

    def test_defaults_from_settings(self, tmp_path, monkeypatch):
        monkeypatch.setenv("LEDGER_STORAGE_PATH", str(tmp_path / "ledger.json"))
        monkeypatch.delenv("GOOGLE_SHEETS_CREDENTIALS_PATH", raising=False)

        tracker = create_app_components(settings=Settings())

        assert isinstance(tracker.store.kv, JsonFileKeyValueStore)
        assert tracker.store.kv.path == tmp_path / "ledger.json"
        assert isinstance(tracker.engine._remote, GoogleSheetsRemoteTable)

    def test_token_provider_signs_in_on_the_session_bus(self, tmp_path, monkeypatch):
        monkeypatch.setenv("LEDGER_STORAGE_PATH", str(tmp_path / "ledger.json"))
        monkeypatch.delenv("GOOGLE_SHEETS_CREDENTIALS_PATH", raising=False)
        tracker = create_app_components(settings=Settings())
        received = []
        tracker.events.subscribe(received.append, AuthChanged)

        credentials = tracker.engine._credentials
        assert isinstance(credentials, TokenCredentialProvider)
        credentials.sign_in("token")

        assert received[0].is_authenticated is True

    def test_debug_mode_lowers_log_level(self, tmp_path, monkeypatch, request):
        monkeypatch.setenv("LEDGER_STORAGE_PATH", str(tmp_path / "ledger.json"))
        monkeypatch.delenv("GOOGLE_SHEETS_CREDENTIALS_PATH", raising=False)
        package_logger = logging.getLogger("src")
        previous = package_logger.level
        request.addfinalizer(lambda: package_logger.setLevel(previous))

        monkeypatch.setenv("DEBUG_MODE", "true")
        create_app_components(settings=Settings())
        assert package_logger.getEffectiveLevel() == logging.DEBUG

        monkeypatch.setenv("DEBUG_MODE", "false")
        create_app_components(settings=Settings())
        assert package_logger.getEffectiveLevel() == logging.INFO
