"""Tests for the Expo push transport."""

from __future__ import annotations

import httpx
import pytest

from src.config import Settings
from src.notifications.expo import ExpoPushNotifier, mask_token


pytestmark = pytest.mark.anyio

TOKEN = "ExponentPushToken[xxxxxxxxxxxxxxxxxxxxxx]"


def _notifier(**overrides: object) -> ExpoPushNotifier:
    return ExpoPushNotifier(Settings(**overrides))


async def _send(notifier: ExpoPushNotifier) -> bool:
    return await notifier.send(
        TOKEN,
        title="Nye priser fra favorittbutikker",
        body="Nye priser fra Kiwi – sjekk i appen!",
        data={"screen": "favorite-deals"},
    )


async def test_send_posts_message_and_accepts_ok_ticket(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    captured: dict[str, object] = {}

    async def fake_post(
        _self: httpx.AsyncClient,
        url: str,
        **kwargs: object,
    ) -> httpx.Response:
        captured["url"] = url
        captured.update(kwargs)
        return httpx.Response(
            200,
            request=httpx.Request("POST", url),
            json={"data": [{"status": "ok", "id": "ticket-1"}]},
        )

    monkeypatch.setattr(httpx.AsyncClient, "post", fake_post)

    assert await _send(_notifier(expo_access_token="secret")) is True
    assert captured["url"] == "https://exp.host/--/api/v2/push/send"
    assert captured["json"] == {
        "to": TOKEN,
        "title": "Nye priser fra favorittbutikker",
        "body": "Nye priser fra Kiwi – sjekk i appen!",
        "data": {"screen": "favorite-deals"},
        "sound": "default",
    }
    headers = captured["headers"]
    assert isinstance(headers, dict)
    assert headers["Authorization"] == "Bearer secret"


async def test_send_accepts_single_ticket_object(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    async def fake_post(
        _self: httpx.AsyncClient, url: str, **_kwargs: object
    ) -> httpx.Response:
        return httpx.Response(
            200,
            request=httpx.Request("POST", url),
            json={"data": {"status": "ok", "id": "ticket-1"}},
        )

    monkeypatch.setattr(httpx.AsyncClient, "post", fake_post)

    assert await _send(_notifier()) is True


async def test_send_reports_ticket_error(monkeypatch: pytest.MonkeyPatch) -> None:
    async def fake_post(
        _self: httpx.AsyncClient, url: str, **_kwargs: object
    ) -> httpx.Response:
        return httpx.Response(
            200,
            request=httpx.Request("POST", url),
            json={
                "data": [
                    {
                        "status": "error",
                        "message": "not a registered push notification recipient",
                        "details": {"error": "DeviceNotRegistered"},
                    }
                ]
            },
        )

    monkeypatch.setattr(httpx.AsyncClient, "post", fake_post)

    assert await _send(_notifier()) is False


async def test_send_reports_http_error(monkeypatch: pytest.MonkeyPatch) -> None:
    async def fake_post(
        _self: httpx.AsyncClient, url: str, **_kwargs: object
    ) -> httpx.Response:
        return httpx.Response(
            500, request=httpx.Request("POST", url), text="upstream failure"
        )

    monkeypatch.setattr(httpx.AsyncClient, "post", fake_post)

    assert await _send(_notifier()) is False


async def test_send_reports_timeout(monkeypatch: pytest.MonkeyPatch) -> None:
    async def fake_post(
        _self: httpx.AsyncClient, url: str, **_kwargs: object
    ) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=httpx.Request("POST", url))

    monkeypatch.setattr(httpx.AsyncClient, "post", fake_post)

    assert await _send(_notifier(expo_push_timeout_seconds=0.5)) is False


async def test_send_reports_request_level_errors(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    async def fake_post(
        _self: httpx.AsyncClient, url: str, **_kwargs: object
    ) -> httpx.Response:
        return httpx.Response(
            200,
            request=httpx.Request("POST", url),
            json={"errors": [{"code": "VALIDATION_ERROR", "message": "bad token"}]},
        )

    monkeypatch.setattr(httpx.AsyncClient, "post", fake_post)

    assert await _send(_notifier()) is False


async def test_mask_token_keeps_short_tokens() -> None:
    assert mask_token("abc") == "abc"
    assert mask_token(TOKEN) == "Exponent…xxx]"
