"""Expo push service notification implementation."""

import logging
from typing import Any

import httpx

from src.config import Settings, get_settings
from src.notifications.base import PushNotifier

logger = logging.getLogger(__name__)


def mask_token(token: str) -> str:
    """Shorten a push token for log output."""

    if len(token) <= 12:
        return token
    return f"{token[:8]}…{token[-4:]}"


def _first_ticket(result: object) -> dict[str, Any]:
    if not isinstance(result, dict):
        return {}
    data = result.get("data")
    if isinstance(data, list):
        data = data[0] if data else None
    return data if isinstance(data, dict) else {}


class ExpoPushNotifier(PushNotifier):
    """Send notifications through the Expo push API."""

    def __init__(self, settings: Settings | None = None) -> None:
        self._settings = settings or get_settings()
        self._timeout = httpx.Timeout(self._settings.expo_push_timeout_seconds)

    def _headers(self) -> dict[str, str]:
        headers = {
            "Accept": "application/json",
            "Content-Type": "application/json",
        }
        if self._settings.expo_access_token:
            headers["Authorization"] = f"Bearer {self._settings.expo_access_token}"
        return headers

    async def send(
        self,
        token: str,
        *,
        title: str,
        body: str,
        data: dict[str, Any] | None = None,
    ) -> bool:
        """Send one message and report whether Expo accepted it."""

        payload = {
            "to": token,
            "title": title,
            "body": body,
            "data": data or {},
            "sound": "default",
        }

        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await client.post(
                    self._settings.expo_push_url,
                    json=payload,
                    headers=self._headers(),
                )
                response.raise_for_status()
                result = response.json()
        except httpx.TimeoutException:
            logger.warning(f"Expo push timed out for token {mask_token(token)}")
            return False
        except httpx.HTTPStatusError as e:
            logger.error(
                f"Expo push HTTP error {e.response.status_code} "
                f"for token {mask_token(token)}: {e.response.text}"
            )
            return False
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Expo push failed for token {mask_token(token)}: {str(e)}")
            return False

        if isinstance(result, dict) and result.get("errors"):
            logger.error(f"Expo push request rejected: {result['errors']}")
            return False

        ticket = _first_ticket(result)
        if ticket.get("status") == "error":
            details = ticket.get("details") or {}
            logger.error(
                f"Expo push ticket error for token {mask_token(token)}: "
                f"{ticket.get('message', 'Unknown')} ({details.get('error', 'n/a')})"
            )
            return False

        logger.info(f"Expo push sent to {mask_token(token)}: {title}")
        return True
