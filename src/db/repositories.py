"""Repository helpers for push subscriptions and pending push batches."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime

from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from src.models.pending_push_batch import PendingPushBatch
from src.models.push_subscription import PushSubscription


@dataclass(slots=True)
class PushSubscriptionUpsert:
    """Payload used to register or replace a device subscription."""

    expo_push_token: str
    favorite_stores: list[str] = field(default_factory=list)


@dataclass(slots=True)
class PushSubscriptionRecord:
    """Detached view of a subscription row."""

    expo_push_token: str
    favorite_stores: list[str]
    last_push_sent_at: datetime | None


@dataclass(slots=True)
class PendingBatchRecord:
    """Detached view of a pending batch row."""

    id: int
    expo_push_token: str
    stores_in_batch: list[str]
    send_after: datetime


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; everything is stored as UTC.
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def _to_subscription_record(row: PushSubscription) -> PushSubscriptionRecord:
    last_push = row.last_push_sent_at
    return PushSubscriptionRecord(
        expo_push_token=row.expo_push_token,
        favorite_stores=list(row.favorite_stores or []),
        last_push_sent_at=_as_utc(last_push) if last_push is not None else None,
    )


def _to_batch_record(row: PendingPushBatch) -> PendingBatchRecord:
    return PendingBatchRecord(
        id=row.id,
        expo_push_token=row.expo_push_token,
        stores_in_batch=list(row.stores_in_batch or []),
        send_after=_as_utc(row.send_after),
    )


async def upsert_push_subscription(
    session: AsyncSession, row: PushSubscriptionUpsert
) -> None:
    """Create or replace the favorite stores registered for a device."""

    now = datetime.now(UTC)
    favorite_stores = list(row.favorite_stores)
    dialect_name = session.get_bind().dialect.name

    if dialect_name == "postgresql":
        stmt = pg_insert(PushSubscription).values(
            expo_push_token=row.expo_push_token,
            favorite_stores=favorite_stores,
            updated_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[PushSubscription.expo_push_token],
            set_={
                "favorite_stores": stmt.excluded.favorite_stores,
                "updated_at": stmt.excluded.updated_at,
            },
        )
        await session.execute(stmt)
        await session.commit()
        return

    existing = (
        await session.execute(
            select(PushSubscription).where(
                PushSubscription.expo_push_token == row.expo_push_token
            )
        )
    ).scalar_one_or_none()

    if existing is None:
        session.add(
            PushSubscription(
                expo_push_token=row.expo_push_token,
                favorite_stores=favorite_stores,
            )
        )
    else:
        existing.favorite_stores = favorite_stores
        existing.updated_at = now

    await session.commit()


async def fetch_subscriptions_with_favorites(
    session: AsyncSession,
) -> list[PushSubscriptionRecord]:
    """Fetch subscriptions that have at least one favorite store."""

    stmt = (
        select(PushSubscription)
        .order_by(PushSubscription.id)
        .execution_options(populate_existing=True)
    )

    if session.get_bind().dialect.name == "postgresql":
        stmt = stmt.where(func.jsonb_array_length(PushSubscription.favorite_stores) > 0)

    result = await session.execute(stmt)
    return [
        _to_subscription_record(row)
        for row in result.scalars().all()
        if row.favorite_stores
    ]


async def find_open_batch(
    session: AsyncSession, expo_push_token: str, now: datetime
) -> PendingBatchRecord | None:
    """Return the batch for a device whose send_after is still in the future."""

    stmt = (
        select(PendingPushBatch)
        .where(PendingPushBatch.expo_push_token == expo_push_token)
        .where(PendingPushBatch.send_after > now)
        .order_by(PendingPushBatch.send_after.desc())
        .limit(1)
        .execution_options(populate_existing=True)
    )
    row = (await session.execute(stmt)).scalar_one_or_none()
    return _to_batch_record(row) if row is not None else None


async def claim_batch_window(
    session: AsyncSession,
    expo_push_token: str,
    now: datetime,
    send_after: datetime,
) -> bool:
    """Atomically reserve the right to open a new batch for a device.

    The update only matches while the previous window has elapsed, so of
    several concurrent callers exactly one sees a matched row. The caller
    must create the batch in the same transaction and then commit.
    """

    stmt = (
        update(PushSubscription)
        .where(PushSubscription.expo_push_token == expo_push_token)
        .where(
            or_(
                PushSubscription.batch_open_until.is_(None),
                PushSubscription.batch_open_until <= now,
            )
        )
        .values(batch_open_until=send_after)
        .execution_options(synchronize_session=False)
    )
    result = await session.execute(stmt)
    return result.rowcount == 1


async def create_batch(
    session: AsyncSession,
    expo_push_token: str,
    stores: list[str],
    send_after: datetime,
) -> PendingBatchRecord:
    """Insert a new pending batch. Caller commits."""

    batch = PendingPushBatch(
        expo_push_token=expo_push_token,
        stores_in_batch=list(dict.fromkeys(stores)),
        send_after=send_after,
    )
    session.add(batch)
    await session.flush()
    return PendingBatchRecord(
        id=batch.id,
        expo_push_token=expo_push_token,
        stores_in_batch=list(batch.stores_in_batch),
        send_after=send_after,
    )


async def append_store_to_batch(
    session: AsyncSession, batch_id: int, store: str
) -> bool:
    """Add a store to a batch unless it is already present. Caller commits.

    The batch row is locked for the rest of the transaction so concurrent
    appends of different stores do not overwrite each other.
    """

    stmt = (
        select(PendingPushBatch)
        .where(PendingPushBatch.id == batch_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    batch = (await session.execute(stmt)).scalar_one_or_none()
    if batch is None:
        return False

    stores = list(batch.stores_in_batch or [])
    if store in stores:
        return False

    await session.execute(
        update(PendingPushBatch)
        .where(PendingPushBatch.id == batch_id)
        .values(stores_in_batch=[*stores, store])
        .execution_options(synchronize_session=False)
    )
    return True


async def fetch_due_batches(
    session: AsyncSession, now: datetime
) -> list[PendingBatchRecord]:
    """Fetch batches whose send_after has been reached."""

    stmt = (
        select(PendingPushBatch)
        .where(PendingPushBatch.send_after <= now)
        .order_by(PendingPushBatch.send_after, PendingPushBatch.id)
        .execution_options(populate_existing=True)
    )
    result = await session.execute(stmt)
    return [_to_batch_record(row) for row in result.scalars().all()]


async def delete_batch(session: AsyncSession, batch_id: int) -> bool:
    """Delete a pending batch. Caller commits."""

    result = await session.execute(
        delete(PendingPushBatch)
        .where(PendingPushBatch.id == batch_id)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount > 0


async def update_last_push_sent_at(
    session: AsyncSession, expo_push_token: str, sent_at: datetime
) -> None:
    """Record the time of the last delivered push for a device. Caller commits."""

    await session.execute(
        update(PushSubscription)
        .where(PushSubscription.expo_push_token == expo_push_token)
        .values(last_push_sent_at=sent_at, updated_at=sent_at)
        .execution_options(synchronize_session=False)
    )
