"""SQLAlchemy ORM models."""

from src.models.pending_push_batch import PendingPushBatch
from src.models.push_subscription import PushSubscription

__all__ = ["PendingPushBatch", "PushSubscription"]
