"""create users, content, subscription, follow and notification tables

Revision ID: 5c1e9a7f3b20
Revises:
Create Date: 2026-10-18 10:12:41.318204
"""

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "5c1e9a7f3b20"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(), nullable=True, index=True),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
    ]


def _content_table(name: str, *extra):
    op.create_table(
        name,
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column(
            "user_id",
            sa.BigInteger(),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        ),
        sa.Column("title", sa.String(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("is_premium", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("published", sa.Boolean(), nullable=False, server_default="false", index=True),
        *extra,
        *_timestamps(),
    )


def upgrade() -> None:
    # --- users ---
    op.create_table(
        "users",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("wallet_address", sa.String(), nullable=False, unique=True, index=True),
        sa.Column("username", sa.String(), nullable=True, index=True),
        sa.Column("email", sa.String(), nullable=True, index=True),
        sa.Column("avatar_url", sa.String(), nullable=True),
        *_timestamps(),
    )

    # --- content ---
    _content_table(
        "articles",
        sa.Column("body", sa.Text(), nullable=True),
        sa.Column("read_minutes", sa.Integer(), nullable=True),
    )
    _content_table(
        "videos",
        sa.Column("media_url", sa.String(), nullable=True),
        sa.Column("thumbnail_url", sa.String(), nullable=True),
        sa.Column("duration_seconds", sa.Integer(), nullable=True),
    )
    _content_table(
        "audio",
        sa.Column("media_url", sa.String(), nullable=True),
        sa.Column("duration_seconds", sa.Integer(), nullable=True),
    )

    # --- subscriptions ---
    op.create_table(
        "subscriptions",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("subscriber_id", sa.BigInteger(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("creator_id", sa.BigInteger(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("type", sa.String(), nullable=False),
        sa.Column("status", sa.String(), nullable=False, server_default="pending"),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("currency", sa.String(), nullable=False, server_default="USD"),
        sa.Column("notes", sa.String(), nullable=True),
        sa.Column("started_at", sa.DateTime(), nullable=True, index=True),
        sa.Column("expires_at", sa.DateTime(), nullable=False, index=True),
        sa.Column("cancelled_at", sa.DateTime(), nullable=True),
        sa.Column("current_period_start", sa.DateTime(), nullable=True),
        sa.Column("current_period_end", sa.DateTime(), nullable=True),
        sa.Column("last_renewed_at", sa.DateTime(), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("subscriber_id <> creator_id", name="ck_subscriptions_not_self"),
    )
    op.create_index(
        "uq_subscriptions_active_pair",
        "subscriptions",
        ["subscriber_id", "creator_id"],
        unique=True,
        postgresql_where=sa.text("status = 'active'"),
        sqlite_where=sa.text("status = 'active'"),
    )
    op.create_index("ix_subscriptions_status_expires", "subscriptions", ["status", "expires_at"])

    # --- subscription_payments ---
    op.create_table(
        "subscription_payments",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column(
            "subscription_id",
            sa.BigInteger(),
            sa.ForeignKey("subscriptions.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        ),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("currency", sa.String(), nullable=False, server_default="USD"),
        sa.Column("token_type", sa.String(), nullable=True),
        sa.Column("payment_method", sa.String(), nullable=True),
        sa.Column("payment_reference", sa.String(), nullable=True, unique=True, index=True),
        sa.Column("status", sa.String(), nullable=False, server_default="pending"),
        sa.Column("payment_date", sa.DateTime(), nullable=True),
        *_timestamps(),
    )

    # --- free follows ---
    op.create_table(
        "subscribers",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("subscriber_id", sa.BigInteger(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("creator_id", sa.BigInteger(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("status", sa.String(), nullable=False, server_default="active"),
        *_timestamps(),
        sa.UniqueConstraint("subscriber_id", "creator_id", name="uq_follow_pair"),
    )

    # --- notifications ---
    op.create_table(
        "notifications",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("user_id", sa.BigInteger(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("type", sa.String(), nullable=False, index=True),
        sa.Column("message", sa.String(), nullable=False),
        sa.Column("data", sa.JSON(), nullable=True),
        sa.Column("is_read", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("dedupe_key", sa.String(), nullable=True, unique=True),
        sa.Column("created_at", sa.DateTime(), nullable=True, index=True),
    )
    op.create_index("ix_notifications_user_created", "notifications", ["user_id", "created_at"])


def downgrade() -> None:
    op.drop_table("notifications")
    op.drop_table("subscribers")
    op.drop_table("subscription_payments")
    op.drop_index("ix_subscriptions_status_expires", table_name="subscriptions")
    op.drop_index("uq_subscriptions_active_pair", table_name="subscriptions")
    op.drop_table("subscriptions")
    op.drop_table("audio")
    op.drop_table("videos")
    op.drop_table("articles")
    op.drop_table("users")
