"""Push delivery transports."""

from src.notifications.base import PushNotifier
from src.notifications.expo import ExpoPushNotifier

__all__ = ["ExpoPushNotifier", "PushNotifier"]
