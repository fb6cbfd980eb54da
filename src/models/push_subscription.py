"""Push subscription table model."""

from datetime import datetime

from sqlalchemy import JSON, DateTime, Index, String, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from src.models.base import Base


class PushSubscription(Base):
    """Device push token with the stores the user wants price alerts for."""

    __tablename__ = "push_subscriptions"
    __table_args__ = (Index("idx_push_subscriptions_last_push", "last_push_sent_at"),)

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    expo_push_token: Mapped[str] = mapped_column(
        String(255), nullable=False, unique=True
    )
    favorite_stores: Mapped[list[str]] = mapped_column(
        JSON().with_variant(JSONB(), "postgresql"), nullable=False, default=list
    )
    last_push_sent_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    # send_after of the most recently opened batch; compare-and-set slot
    batch_open_until: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )
