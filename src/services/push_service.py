"""Batching engine for favorite-store price push notifications."""

import logging
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Literal

from sqlalchemy.ext.asyncio import AsyncSession

from src.config import Settings, get_settings
from src.db.repositories import (
    PendingBatchRecord,
    PushSubscriptionUpsert,
    append_store_to_batch,
    claim_batch_window,
    create_batch,
    delete_batch,
    fetch_due_batches,
    fetch_subscriptions_with_favorites,
    find_open_batch,
    update_last_push_sent_at,
    upsert_push_subscription,
)
from src.notifications.base import PushNotifier
from src.notifications.expo import ExpoPushNotifier, mask_token
from src.services.store_matching import format_store_list, store_matches_favorites

logger = logging.getLogger(__name__)

STORE_LIST_FALLBACK = "favorittbutikken din"

BatchOutcome = Literal["created", "appended", "duplicate", "missing"]


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass(slots=True)
class EnqueueResult:
    """Per-event summary of what happened to matching subscriptions."""

    matched: int = 0
    created: int = 0
    appended: int = 0
    duplicates: int = 0
    cooldown_skipped: int = 0
    failed: int = 0


class PushBatchService:
    """Coalesce price events into at most one push per device and window."""

    _session: AsyncSession
    _notifier: PushNotifier

    def __init__(
        self,
        session: AsyncSession,
        notifier: PushNotifier | None = None,
        *,
        settings: Settings | None = None,
    ) -> None:
        self._session = session
        self._settings = settings or get_settings()
        self._notifier = notifier or ExpoPushNotifier(self._settings)
        self._cooldown = timedelta(hours=self._settings.push_cooldown_hours)
        self._batch_delay = timedelta(minutes=self._settings.push_batch_delay_minutes)

    async def register(self, expo_push_token: str, favorite_stores: list[str]) -> None:
        """Create or replace the favorite stores for a device."""

        await upsert_push_subscription(
            self._session,
            PushSubscriptionUpsert(
                expo_push_token=expo_push_token,
                favorite_stores=favorite_stores,
            ),
        )

    async def on_price_submitted(self, store_name: str | None) -> EnqueueResult:
        """Add a store to the pending batch of every device that favorites it.

        Devices inside the cooldown are skipped. A device with an open batch
        gets the store appended once; otherwise a new batch is opened that
        becomes due after the batch delay. A failure for one device is logged
        and does not affect the others.
        """

        store = (store_name or "").strip()
        if not store:
            return EnqueueResult()

        now = _utcnow()
        subscriptions = await fetch_subscriptions_with_favorites(self._session)
        matching = [
            sub
            for sub in subscriptions
            if store_matches_favorites(store, sub.favorite_stores)
        ]

        result = EnqueueResult(matched=len(matching))
        cooldown_since = now - self._cooldown
        send_after = now + self._batch_delay

        for sub in matching:
            last_push = sub.last_push_sent_at
            if last_push is not None and last_push > cooldown_since:
                result.cooldown_skipped += 1
                continue

            try:
                outcome = await self._add_to_batch(
                    sub.expo_push_token, store, now=now, send_after=send_after
                )
                await self._session.commit()
            except Exception:
                await self._session.rollback()
                logger.exception(
                    f"Failed to batch store {store!r} for token "
                    f"{mask_token(sub.expo_push_token)}"
                )
                result.failed += 1
                continue

            if outcome == "created":
                result.created += 1
            elif outcome == "appended":
                result.appended += 1
            elif outcome == "duplicate":
                result.duplicates += 1
            else:
                # A flush deleted the open batch between the claim and the read.
                logger.warning(
                    f"Open batch for token {mask_token(sub.expo_push_token)} "
                    f"was flushed before store {store!r} could be added; "
                    f"event dropped for this device"
                )
                result.failed += 1

        return result

    async def _add_to_batch(
        self,
        expo_push_token: str,
        store: str,
        *,
        now: datetime,
        send_after: datetime,
    ) -> BatchOutcome:
        if await claim_batch_window(self._session, expo_push_token, now, send_after):
            await create_batch(self._session, expo_push_token, [store], send_after)
            return "created"

        batch = await find_open_batch(self._session, expo_push_token, now)
        if batch is None:
            return "missing"
        if store in batch.stores_in_batch:
            return "duplicate"
        if await append_store_to_batch(self._session, batch.id, store):
            return "appended"
        return "duplicate"

    async def process_due_batches(self) -> dict[str, int]:
        """Send one push per due batch and discard every batch attempted.

        Successful sends start the device cooldown. Failed sends are counted
        and dropped without retry.
        """

        now = _utcnow()
        due = await fetch_due_batches(self._session, now)
        if not due:
            return {"sent": 0, "errors": 0}

        sent = 0
        errors = 0

        for batch in due:
            delivered = await self._deliver(batch)
            if delivered:
                sent += 1
            else:
                errors += 1
            await self._finalize(batch, delivered=delivered, now=now)

        logger.info(
            f"Processed {len(due)} due push batches: {sent} sent, {errors} errors"
        )
        return {"sent": sent, "errors": errors}

    async def _finalize(
        self, batch: PendingBatchRecord, *, delivered: bool, now: datetime
    ) -> None:
        """Record the cooldown for a delivered push and delete the batch.

        If that transaction fails, the batch is deleted on its own so that a
        sent push is never attempted again.
        """

        try:
            if delivered:
                await update_last_push_sent_at(
                    self._session, batch.expo_push_token, now
                )
            await delete_batch(self._session, batch.id)
            await self._session.commit()
            return
        except Exception:
            await self._session.rollback()
            logger.exception(f"Failed to finalize push batch #{batch.id}")

        try:
            await delete_batch(self._session, batch.id)
            await self._session.commit()
        except Exception:
            await self._session.rollback()
            logger.exception(
                f"Push batch #{batch.id} could not be deleted and remains pending"
            )

    async def _deliver(self, batch: PendingBatchRecord) -> bool:
        store_list = format_store_list(
            batch.stores_in_batch, fallback=STORE_LIST_FALLBACK
        )
        try:
            return await self._notifier.send(
                batch.expo_push_token,
                title=self._settings.push_title,
                body=f"Nye priser fra {store_list} – sjekk i appen!",
                data={"screen": self._settings.push_screen},
            )
        except Exception:
            logger.exception(
                f"Push send failed for token {mask_token(batch.expo_push_token)}"
            )
            return False
