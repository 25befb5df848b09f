"""Core building blocks shared by the Stagecraft model."""

from .events import (
    Event,
    EventBus,
    EventCallback,
    EventType,
    Unsubscribe,
)

__all__ = [
    "Event",
    "EventBus",
    "EventCallback",
    "EventType",
    "Unsubscribe",
]
