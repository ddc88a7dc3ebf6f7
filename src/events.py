"""
Event Bus

Replaces ad-hoc listener lists with one subscription point per session.
Each subscriber sees events in emission order. A failing subscriber is
logged and skipped so it cannot break a sync cycle or starve the others.
"""

from typing import Callable, Optional

import structlog

from src.models.events import SyncEvent


logger = structlog.get_logger(__name__)

Subscriber = Callable[[SyncEvent], None]


class EventBus:
    """Synchronous publish/subscribe for typed sync events."""

    def __init__(self):
        self._subscribers: list[tuple[Subscriber, Optional[type]]] = []

    def subscribe(
        self,
        callback: Subscriber,
        event_type: Optional[type] = None,
    ) -> Callable[[], None]:
        """
        Register a callback, optionally only for one event class.

        Returns:
            A function that removes the subscription
        """
        subscription = (callback, event_type)
        self._subscribers.append(subscription)

        def unsubscribe() -> None:
            if subscription in self._subscribers:
                self._subscribers.remove(subscription)

        return unsubscribe

    def emit(self, event: SyncEvent) -> None:
        for callback, event_type in list(self._subscribers):
            if event_type is not None and not isinstance(event, event_type):
                continue
            try:
                callback(event)
            except Exception:
                logger.exception(
                    "event_subscriber_failed",
                    event_type=type(event).__name__,
                )
