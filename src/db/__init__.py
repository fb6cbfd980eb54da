"""Database session and repository utilities."""

from src.db.session import (
    dispose_engine,
    get_db_session,
    get_engine,
    get_sessionmaker,
    session_context,
)
from src.db.repositories import (
    PendingBatchRecord,
    PushSubscriptionRecord,
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

__all__ = [
    "dispose_engine",
    "get_db_session",
    "get_engine",
    "get_sessionmaker",
    "session_context",
    "PendingBatchRecord",
    "PushSubscriptionRecord",
    "PushSubscriptionUpsert",
    "append_store_to_batch",
    "claim_batch_window",
    "create_batch",
    "delete_batch",
    "fetch_due_batches",
    "fetch_subscriptions_with_favorites",
    "find_open_batch",
    "update_last_push_sent_at",
    "upsert_push_subscription",
]
