"""Observer-style event bus decoupling the session manager from listeners."""

import logging
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Protocol

from vr_art_guard.domain.events import EventType, ProtectionEvent

logger = logging.getLogger(__name__)


class EventListener(Protocol):
    """Receives published events."""

    def __call__(self, event: ProtectionEvent) -> None:
        """Handle an event."""


@dataclass
class EventBus:
    """In-process publish/subscribe channel.

    Listener failures are logged and never reach the publisher.
    """

    _listeners: list[tuple[EventType | None, EventListener]] = field(
        default_factory=list
    )

    def subscribe(
        self, listener: EventListener, event_type: EventType | None = None
    ) -> Callable[[], None]:
        """Register a listener; returns a callable that unsubscribes it."""
        entry = (event_type, listener)
        self._listeners.append(entry)

        def unsubscribe() -> None:
            if entry in self._listeners:
                self._listeners.remove(entry)

        return unsubscribe

    def publish(self, event: ProtectionEvent) -> None:
        """Deliver an event to every matching listener."""
        for event_type, listener in list(self._listeners):
            if event_type is not None and event_type is not event.type:
                continue
            try:
                listener(event)
            except Exception:
                logger.exception("Event listener failed for %s", event.type.value)

    def emit(
        self,
        event_type: EventType,
        session_id: str | None,
        **payload: object,
    ) -> None:
        """Build and publish an event."""
        self.publish(
            ProtectionEvent(type=event_type, session_id=session_id, payload=payload)
        )


class RecentEvents:
    """Listener keeping the most recent events for status views."""

    def __init__(self, max_events: int = 50) -> None:
        self._events: deque[ProtectionEvent] = deque(maxlen=max_events)

    def __call__(self, event: ProtectionEvent) -> None:
        self._events.append(event)

    @property
    def events(self) -> list[ProtectionEvent]:
        return list(self._events)

    def of_type(self, event_type: EventType) -> list[ProtectionEvent]:
        return [event for event in self._events if event.type is event_type]
