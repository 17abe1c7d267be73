"""
Notification abstraction - interface only, the app layer implements channels
"""
from core.notification.channel import INotificationChannel, NotificationChannelRegistry

__all__ = ["INotificationChannel", "NotificationChannelRegistry"]
