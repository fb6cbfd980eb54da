"""End-to-end batching flow against an in-memory SQLite database."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import Any

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

import src.services.push_service as push_service_module
from src.config import Settings
from src.db.repositories import fetch_subscriptions_with_favorites
from src.models.pending_push_batch import PendingPushBatch
from src.notifications.base import PushNotifier
from src.services.push_service import PushBatchService


pytestmark = pytest.mark.anyio

NOW = datetime(2026, 3, 2, 12, 0, tzinfo=UTC)


class RecordingNotifier(PushNotifier):
    def __init__(self, result: bool = True) -> None:
        self.result = result
        self.bodies: list[str] = []

    async def send(
        self,
        token: str,
        *,
        title: str,
        body: str,
        data: dict[str, Any] | None = None,
    ) -> bool:
        self.bodies.append(body)
        return self.result


@pytest.fixture
def clock(monkeypatch: pytest.MonkeyPatch) -> dict[str, datetime]:
    current = {"now": NOW}
    monkeypatch.setattr(push_service_module, "_utcnow", lambda: current["now"])
    return current


async def _batches(session: AsyncSession) -> list[PendingPushBatch]:
    result = await session.execute(
        select(PendingPushBatch).execution_options(populate_existing=True)
    )
    return list(result.scalars().all())


async def test_events_coalesce_into_one_push(
    db_session: AsyncSession, clock: dict[str, datetime]
) -> None:
    notifier = RecordingNotifier()
    service = PushBatchService(db_session, notifier, settings=Settings())
    await service.register("ExponentPushToken[d]", ["Kiwi", "Meny"])
    await service.register("ExponentPushToken[e]", ["Coop Extra"])

    await service.on_price_submitted("Kiwi Majorstuen")
    clock["now"] = NOW + timedelta(minutes=3)
    await service.on_price_submitted("Kiwi Majorstuen")
    await service.on_price_submitted("Meny Bislett")
    await service.on_price_submitted("Rema 1000")

    batches = await _batches(db_session)
    assert len(batches) == 1
    assert batches[0].expo_push_token == "ExponentPushToken[d]"
    assert batches[0].stores_in_batch == ["Kiwi Majorstuen", "Meny Bislett"]

    clock["now"] = NOW + timedelta(minutes=5)
    assert await service.process_due_batches() == {"sent": 0, "errors": 0}

    clock["now"] = NOW + timedelta(minutes=10)
    assert await service.process_due_batches() == {"sent": 1, "errors": 0}
    assert notifier.bodies == [
        "Nye priser fra Kiwi Majorstuen, Meny Bislett – sjekk i appen!"
    ]
    assert await _batches(db_session) == []

    subscriptions = await fetch_subscriptions_with_favorites(db_session)
    by_token = {sub.expo_push_token: sub for sub in subscriptions}
    assert by_token["ExponentPushToken[d]"].last_push_sent_at == clock["now"]
    assert by_token["ExponentPushToken[e]"].last_push_sent_at is None

    clock["now"] = NOW + timedelta(hours=2)
    result = await service.on_price_submitted("Kiwi")
    assert result.cooldown_skipped == 1
    assert await _batches(db_session) == []


async def test_failed_push_is_dropped_and_device_stays_eligible(
    db_session: AsyncSession, clock: dict[str, datetime]
) -> None:
    service = PushBatchService(
        db_session, RecordingNotifier(result=False), settings=Settings()
    )
    await service.register("ExponentPushToken[d]", ["Kiwi"])
    await service.on_price_submitted("Kiwi")

    clock["now"] = NOW + timedelta(minutes=10)
    assert await service.process_due_batches() == {"sent": 0, "errors": 1}
    assert await _batches(db_session) == []

    clock["now"] = NOW + timedelta(minutes=11)
    result = await service.on_price_submitted("Kiwi")

    assert result.created == 1
    assert len(await _batches(db_session)) == 1
