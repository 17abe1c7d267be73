"""
Notification dispatcher
Forwards resource.booked events to every registered notification channel.
Delivery runs after the reservation committed; failures are only logged.
"""
from typing import Dict, Optional
import logging

from core.notification import INotificationChannel, NotificationChannelRegistry
from app.config import settings
from app.models.events import EventType
from app.services.event_bus import Event, EventBus, event_bus

logger = logging.getLogger(__name__)


class LogChannel(INotificationChannel):
    """Writes notices to the application log; the default channel"""

    def send(self, recipient: str, subject: str, content: str, extra: Optional[Dict] = None) -> bool:
        logger.info(f"[notice to {recipient}] {subject}: {content}")
        return True

    def get_channel_type(self) -> str:
        return "log"


def format_booking_notice(data: Dict) -> Dict[str, str]:
    """Subject and body of a booking confirmation"""
    kind = (data.get("resource_kind") or "").title()
    subject = f"Booking confirmed - {data.get('reference')}"
    content = (
        f"Dear {data.get('guest_name')}, your {kind.lower()} {data.get('resource_code')} is booked "
        f"from {data.get('check_in')} to {data.get('check_out')}. "
        f"Reference {data.get('reference')}, total {settings.CURRENCY} {data.get('total')}."
    )
    return {"subject": subject, "content": content}


def handle_resource_booked(event: Event) -> None:
    """Event handler: broadcast one notice per booked resource"""
    data = event.data
    notice = format_booking_notice(data)
    results = NotificationChannelRegistry().broadcast(
        recipient=data.get("guest_phone", ""),
        subject=notice["subject"],
        content=notice["content"],
        extra=data,
    )
    failed = [channel for channel, ok in results.items() if not ok]
    if failed:
        logger.warning(f"Booking notice for {data.get('reservation_id')} not delivered via {failed}")


def register_notification_handlers(bus: Optional[EventBus] = None) -> None:
    """Subscribe the dispatcher and make sure at least the log channel exists"""
    bus = bus or event_bus
    registry = NotificationChannelRegistry()
    if registry.get_channel("log") is None:
        registry.register(LogChannel())
    bus.subscribe(EventType.RESOURCE_BOOKED.value, handle_resource_booked)
