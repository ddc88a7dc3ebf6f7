"""
Tests for the event bus.
"""

from src.events import EventBus
from src.models.events import (
    ChangeSource,
    DataChanged,
    StatusChanged,
    SyncStatus,
)


def status(message: str) -> StatusChanged:
    return StatusChanged(status=SyncStatus.SYNCING, message=message)


class TestEventBus:
    """Tests for subscription and delivery."""

    def test_events_delivered_in_order(self):
        bus = EventBus()
        received = []
        bus.subscribe(received.append)

        bus.emit(status("one"))
        bus.emit(status("two"))

        assert [e.message for e in received] == ["one", "two"]

    def test_unsubscribe(self):
        bus = EventBus()
        received = []
        unsubscribe = bus.subscribe(received.append)

        unsubscribe()
        unsubscribe()
        bus.emit(status("ignored"))

        assert received == []

    def test_filter_by_event_type(self):
        bus = EventBus()
        received = []
        bus.subscribe(received.append, DataChanged)

        bus.emit(status("skip"))
        bus.emit(DataChanged(source=ChangeSource.LOCAL, changed=True))

        assert len(received) == 1
        assert isinstance(received[0], DataChanged)

    def test_failing_subscriber_does_not_break_others(self):
        bus = EventBus()
        received = []

        def broken(event):
            raise RuntimeError("subscriber bug")

        bus.subscribe(broken)
        bus.subscribe(received.append)

        bus.emit(status("still delivered"))

        assert len(received) == 1
