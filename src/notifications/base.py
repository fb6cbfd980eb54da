"""Push transport contract used by the batch flush."""

from abc import ABC, abstractmethod
from typing import Any


class PushNotifier(ABC):
    """Base protocol for device push services."""

    @abstractmethod
    async def send(
        self,
        token: str,
        *,
        title: str,
        body: str,
        data: dict[str, Any] | None = None,
    ) -> bool:
        """Deliver one push message to a device.

        Args:
            token: Device push token.
            title: Notification title.
            body: Notification body text.
            data: Application payload delivered alongside the message.

        Returns:
            True if the transport accepted the message, False otherwise.
        """
        ...
