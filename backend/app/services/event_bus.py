"""
Event bus - in-process publish/subscribe
Decouples the reservation orchestrator from notification delivery
"""
from typing import Callable, Dict, List, Any
from dataclasses import dataclass, field
from datetime import datetime
import logging
import threading
import uuid

logger = logging.getLogger(__name__)


@dataclass
class Event:
    """Published event"""
    event_type: str
    timestamp: datetime
    data: Dict[str, Any]
    source: str  # publishing service
    event_id: str = field(default_factory=lambda: uuid.uuid4().hex)


class EventBus:
    """
    Thread-safe singleton event bus

    Handlers run synchronously in the publisher's thread. A failing handler is
    logged and the remaining handlers still run; publish never raises.

        event_bus.subscribe("resource.booked", handler)
        event_bus.publish(Event(...))
    """

    _instance = None
    _lock = threading.Lock()

    def __new__(cls):
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = super().__new__(cls)
                    cls._instance._initialized = False
        return cls._instance

    def __init__(self):
        if self._initialized:
            return
        self._subscribers: Dict[str, List[Callable]] = {}
        self._subscriber_lock = threading.Lock()
        self._initialized = True

    def subscribe(self, event_type: str, handler: Callable) -> None:
        """Register a handler; subscribing the same handler twice is a no-op"""
        with self._subscriber_lock:
            handlers = self._subscribers.setdefault(event_type, [])
            if handler not in handlers:
                handlers.append(handler)
                logger.info(f"Handler {handler.__name__} subscribed to {event_type}")

    def unsubscribe(self, event_type: str, handler: Callable) -> None:
        with self._subscriber_lock:
            if handler in self._subscribers.get(event_type, []):
                self._subscribers[event_type].remove(handler)

    def publish(self, event: Event) -> None:
        """
        Deliver an event to every subscriber of its type

        Args:
            event: Event to deliver
        """
        with self._subscriber_lock:
            handlers = list(self._subscribers.get(event.event_type, []))

        for handler in handlers:
            try:
                handler(event)
            except Exception as e:
                logger.error(
                    f"Event handler {handler.__name__} failed for {event.event_type} ({event.event_id}): {e}",
                    exc_info=True
                )

    def get_subscribers(self, event_type: str) -> List[Callable]:
        with self._subscriber_lock:
            return list(self._subscribers.get(event_type, []))

    def clear_subscribers(self) -> None:
        """Remove all subscriptions (for tests)"""
        with self._subscriber_lock:
            self._subscribers.clear()


# Global event bus instance
event_bus = EventBus()
