"""Initial tables for push subscriptions and pending push batches.

Revision ID: 20261019_0001
Revises:
Create Date: 2026-10-19 09:00:00
"""

from collections.abc import Sequence

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "20261019_0001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Upgrade schema."""

    op.create_table(
        "push_subscriptions",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("expo_push_token", sa.String(length=255), nullable=False),
        sa.Column(
            "favorite_stores",
            postgresql.JSONB(astext_type=sa.Text()),
            server_default=sa.text("'[]'::jsonb"),
            nullable=False,
        ),
        sa.Column("last_push_sent_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("batch_open_until", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("expo_push_token"),
    )
    op.create_index(
        "idx_push_subscriptions_last_push",
        "push_subscriptions",
        ["last_push_sent_at"],
        unique=False,
    )

    op.create_table(
        "pending_push_batches",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("expo_push_token", sa.String(length=255), nullable=False),
        sa.Column(
            "stores_in_batch",
            postgresql.JSONB(astext_type=sa.Text()),
            server_default=sa.text("'[]'::jsonb"),
            nullable=False,
        ),
        sa.Column("send_after", sa.DateTime(timezone=True), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "idx_pending_push_batches_token",
        "pending_push_batches",
        ["expo_push_token", "send_after"],
        unique=False,
    )
    op.create_index(
        "idx_pending_push_batches_send_after",
        "pending_push_batches",
        ["send_after"],
        unique=False,
    )


def downgrade() -> None:
    """Downgrade schema."""

    op.drop_index(
        "idx_pending_push_batches_send_after", table_name="pending_push_batches"
    )
    op.drop_index("idx_pending_push_batches_token", table_name="pending_push_batches")
    op.drop_table("pending_push_batches")
    op.drop_index(
        "idx_push_subscriptions_last_push", table_name="push_subscriptions"
    )
    op.drop_table("push_subscriptions")
