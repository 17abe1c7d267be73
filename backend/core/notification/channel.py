"""
Notification channel interface

The application implements INotificationChannel for each delivery mechanism
(email, SMS, webhook). The reservation engine only hands notices to the
registry; delivery is never part of a reservation transaction.
"""
from abc import ABC, abstractmethod
from typing import Dict, List, Optional
import logging

logger = logging.getLogger(__name__)


class INotificationChannel(ABC):
    """Notification channel"""

    @abstractmethod
    def send(
        self,
        recipient: str,
        subject: str,
        content: str,
        extra: Optional[Dict] = None,
    ) -> bool:
        """Deliver one notice

        Args:
            recipient: Channel-specific address (phone number, email, ...)
            subject: Notice title
            content: Notice body
            extra: Structured payload for templating

        Returns:
            Whether delivery succeeded
        """

    @abstractmethod
    def get_channel_type(self) -> str:
        """Channel type key such as 'email', 'sms', 'log'"""


class NotificationChannelRegistry:
    """Singleton registry of notification channels

    Channels are registered at application startup:
        registry = NotificationChannelRegistry()
        registry.register(LogChannel())
    """

    _instance: Optional["NotificationChannelRegistry"] = None

    def __new__(cls) -> "NotificationChannelRegistry":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._channels = {}
        return cls._instance

    def register(self, channel: INotificationChannel) -> None:
        """Register a channel, replacing any channel of the same type"""
        self._channels[channel.get_channel_type()] = channel

    def unregister(self, channel_type: str) -> None:
        self._channels.pop(channel_type, None)

    def get_channel(self, channel_type: str) -> Optional[INotificationChannel]:
        return self._channels.get(channel_type)

    def get_all_channels(self) -> List[INotificationChannel]:
        return list(self._channels.values())

    def broadcast(
        self,
        recipient: str,
        subject: str,
        content: str,
        extra: Optional[Dict] = None,
    ) -> Dict[str, bool]:
        """Send through every channel; a failing channel is logged and reported as False"""
        results: Dict[str, bool] = {}
        for channel_type, channel in list(self._channels.items()):
            try:
                results[channel_type] = bool(channel.send(recipient, subject, content, extra))
            except Exception as e:
                logger.error(f"Notification channel {channel_type} failed: {e}", exc_info=True)
                results[channel_type] = False
        return results

    def clear(self) -> None:
        """Remove all channels (for tests)"""
        self._channels.clear()
