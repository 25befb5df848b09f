"""Event system for the Stagecraft project model.

Model objects never intercept raw attribute writes. Instead every
mutating method emits an :class:`Event` on the object's :class:`EventBus`,
and watchers (unsynced-change tracking, local cache sync, zorder
bookkeeping) subscribe to that stream.

Example usage:

    >>> from stagecraft.core.events import EventBus, EventType, Event
    >>>
    >>> bus = EventBus()
    >>> def on_rename(event):
    ...     print(f"{event.data['old_name']} -> {event.data['new_name']}")
    >>>
    >>> unsubscribe = bus.subscribe(EventType.RENAMED, on_rename)
    >>> bus.emit(Event(EventType.RENAMED, "sprite", {"old_name": "a", "new_name": "b"}))
    a -> b
    >>> unsubscribe()
"""

from __future__ import annotations

import logging
import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum, auto
from typing import Any, Callable, Dict, List, Optional, Union

logger = logging.getLogger(__name__)


# =============================================================================
# Event Types
# =============================================================================


class EventType(Enum):
    """Types of change notifications emitted by model objects."""

    # Generic content change (code, config, costume, ...)
    CHANGED = auto()
    RENAMED = auto()

    # Project collection events
    SPRITE_ADDED = auto()
    SPRITE_REMOVED = auto()
    SOUND_ADDED = auto()
    SOUND_REMOVED = auto()
    ZORDER_CHANGED = auto()
    STAGE_REPLACED = auto()

    # Project metadata / revision events
    METADATA_CHANGED = auto()
    LOADED = auto()


# =============================================================================
# Event Classes
# =============================================================================


@dataclass
class Event:
    """Change notification with metadata.

    Attributes:
        event_type: Type of the event.
        source: Name of the object that emitted the event.
        data: Event-specific data dictionary.
        timestamp: When the event was created (auto-generated).
        event_id: Unique identifier for the event (auto-generated).
    """

    event_type: EventType
    source: str
    data: Dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=datetime.now)
    event_id: str = field(default_factory=lambda: str(uuid.uuid4())[:8])

    def __str__(self) -> str:
        """Return string representation."""
        return (
            f"Event({self.event_type.name}, source={self.source}, "
            f"data_keys={list(self.data.keys())})"
        )


# =============================================================================
# Callback Type
# =============================================================================

EventCallback = Callable[[Event], None]
Unsubscribe = Callable[[], None]


# =============================================================================
# Event Bus
# =============================================================================


class EventBus:
    """Pub/sub bus owned by a single model object.

    Supports:
    - Multiple subscribers per event type
    - Wildcard subscriptions (``event_type=None`` receives all events)
    - Re-entrant emission (a subscriber may trigger further events)

    Subscribers are called in registration order, typed subscribers
    before wildcard ones.
    """

    def __init__(self) -> None:
        self._subscribers: Dict[EventType, List[EventCallback]] = {}
        self._wildcard_subscribers: List[EventCallback] = []
        self._lock = threading.RLock()
        self._events_emitted = 0

    def subscribe(
        self,
        event_type: Union[EventType, None],
        callback: EventCallback,
    ) -> Unsubscribe:
        """Subscribe to events of a specific type.

        Args:
            event_type: Type of events to subscribe to, or None for all.
            callback: Function to call when event is emitted.

        Returns:
            Function that removes this subscription when called.
        """
        with self._lock:
            if event_type is None:
                if callback not in self._wildcard_subscribers:
                    self._wildcard_subscribers.append(callback)
            else:
                subscribers = self._subscribers.setdefault(event_type, [])
                if callback not in subscribers:
                    subscribers.append(callback)

        def unsubscribe() -> None:
            self.unsubscribe(event_type, callback)

        return unsubscribe

    def unsubscribe(
        self,
        event_type: Union[EventType, None],
        callback: EventCallback,
    ) -> bool:
        """Unsubscribe from events.

        Args:
            event_type: Type of events to unsubscribe from, or None for wildcard.
            callback: Callback to remove.

        Returns:
            True if callback was found and removed, False otherwise.
        """
        with self._lock:
            if event_type is None:
                if callback in self._wildcard_subscribers:
                    self._wildcard_subscribers.remove(callback)
                    return True
            elif callback in self._subscribers.get(event_type, []):
                self._subscribers[event_type].remove(callback)
                return True
            return False

    def emit(self, event: Event) -> None:
        """Emit an event synchronously.

        Calls all subscribers in the current thread. Errors in
        callbacks are logged but don't stop other callbacks.

        Args:
            event: Event to emit.
        """
        with self._lock:
            self._events_emitted += 1
            # Copy to avoid modification during iteration
            subscribers = list(self._subscribers.get(event.event_type, []))
            wildcards = list(self._wildcard_subscribers)

        for callback in subscribers:
            self._safe_call(callback, event)

        for callback in wildcards:
            self._safe_call(callback, event)

    def _safe_call(self, callback: EventCallback, event: Event) -> None:
        """Call a callback, logging any error it raises."""
        try:
            callback(event)
        except Exception as e:
            logger.error(
                f"Error in event callback for {event.event_type.name}: {e}",
                exc_info=True,
            )

    def clear_subscribers(self, event_type: Optional[EventType] = None) -> None:
        """Clear all subscribers.

        Args:
            event_type: Type to clear, or None to clear all.
        """
        with self._lock:
            if event_type is None:
                self._subscribers.clear()
                self._wildcard_subscribers.clear()
            elif event_type in self._subscribers:
                self._subscribers[event_type].clear()

    def get_subscriber_count(self, event_type: Optional[EventType] = None) -> int:
        """Get count of subscribers.

        Args:
            event_type: Type to count, or None for total.
        """
        with self._lock:
            if event_type is None:
                count = len(self._wildcard_subscribers)
                for subscribers in self._subscribers.values():
                    count += len(subscribers)
                return count
            return len(self._subscribers.get(event_type, []))

    @property
    def events_emitted(self) -> int:
        """Total number of events emitted on this bus."""
        return self._events_emitted


__all__ = [
    "EventType",
    "Event",
    "EventBus",
    "EventCallback",
    "Unsubscribe",
]
