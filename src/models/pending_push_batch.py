"""Pending push batch table model."""

from datetime import datetime

from sqlalchemy import JSON, DateTime, Index, String, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from src.models.base import Base


class PendingPushBatch(Base):
    """Stores collected for one device until the batch becomes due."""

    __tablename__ = "pending_push_batches"
    __table_args__ = (
        Index("idx_pending_push_batches_token", "expo_push_token", "send_after"),
        Index("idx_pending_push_batches_send_after", "send_after"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    expo_push_token: Mapped[str] = mapped_column(String(255), nullable=False)
    stores_in_batch: Mapped[list[str]] = mapped_column(
        JSON().with_variant(JSONB(), "postgresql"), nullable=False, default=list
    )
    send_after: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
