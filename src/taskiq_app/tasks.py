"""Taskiq tasks for price-event batching and push delivery."""

import logging
from dataclasses import asdict
from typing import Any, cast

from src.config import get_settings
from src.db.session import session_context
from src.notifications.expo import ExpoPushNotifier
from src.services.push_service import PushBatchService
from src.taskiq_app.broker import broker
from src.taskiq_app.dedup import (
    acquire_dedup_lock,
    build_dedup_key,
    release_dedup_lock,
)

logger = logging.getLogger(__name__)
settings = get_settings()


async def flush_due_push_batches() -> dict[str, object]:
    """Run one flush pass unless another one holds the execution lock."""

    dedup_key = build_dedup_key(
        scope="execution", task_name="process_push_batches", fingerprint="default"
    )
    lock_owner = await acquire_dedup_lock(dedup_key, settings.flush_dedup_ttl_seconds)
    if lock_owner is None:
        logger.info("process_push_batches skipped due to dedup lock")
        return {"status": "skipped_duplicate_execution", "sent": 0, "errors": 0}

    try:
        async with session_context() as session:
            service = PushBatchService(session, ExpoPushNotifier(settings))
            counts = await service.process_due_batches()
        return {"status": "ok", **counts}
    finally:
        await release_dedup_lock(dedup_key, lock_owner)


@broker.task(
    task_name="process_push_batches",
    schedule=[{"cron": "* * * * *"}],
)
async def process_push_batches() -> dict[str, object]:
    return await flush_due_push_batches()


@broker.task(task_name="notify_price_submitted")
async def notify_price_submitted(store_name: str | None) -> dict[str, object]:
    async with session_context() as session:
        result = await PushBatchService(session).on_price_submitted(store_name)

    if result.matched:
        logger.info(
            f"Price at {store_name!r} matched {result.matched} subscriptions "
            f"({result.created} new batches, {result.appended} appended)"
        )
    return {"status": "ok", **asdict(result)}


async def enqueue_price_submitted(store_name: str | None) -> bool:
    """Queue batching for a newly stored price without failing the caller."""

    if not (store_name or "").strip():
        return False

    try:
        task_kicker = cast(Any, notify_price_submitted)
        await task_kicker.kiq(store_name)
    except Exception:
        logger.exception(f"Failed to enqueue price notification for {store_name!r}")
        return False
    return True
