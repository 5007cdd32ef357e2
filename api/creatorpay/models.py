from sqlalchemy import (
    Column, BigInteger, Integer, String, Numeric, DateTime, ForeignKey,
    UniqueConstraint, CheckConstraint, Index, Boolean, Text, JSON, text,
)
from sqlalchemy.orm import relationship
from .util import utcnow
from .db import Base

# BIGINT ids on Postgres; SQLite only autoincrements INTEGER PRIMARY KEY
BigId = BigInteger().with_variant(Integer, "sqlite")


# --- Users -------------------------------------------------------------------

class User(Base):
    __tablename__ = "users"

    id = Column(BigId, primary_key=True)
    wallet_address = Column(String, unique=True, index=True, nullable=False)
    username = Column(String, index=True)
    email = Column(String, index=True)
    avatar_url = Column(String)

    created_at = Column(DateTime, default=utcnow, index=True)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    def as_dict(self):
        return {
            "id": self.id,
            "username": self.username,
            "wallet_address": self.wallet_address,
            "avatar_url": self.avatar_url,
        }


# --- Content (one table per kind) ------------------------------------------

class _ContentColumns:
    id = Column(BigId, primary_key=True)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    is_premium = Column(Boolean, nullable=False, default=False)
    published = Column(Boolean, nullable=False, default=False, index=True)
    created_at = Column(DateTime, default=utcnow, index=True)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)


class Article(_ContentColumns, Base):
    __tablename__ = "articles"

    user_id = Column(BigId, ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False)
    body = Column(Text, nullable=True)       # markdown
    read_minutes = Column(Integer, nullable=True)


class Video(_ContentColumns, Base):
    __tablename__ = "videos"

    user_id = Column(BigId, ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False)
    media_url = Column(String, nullable=True)
    thumbnail_url = Column(String, nullable=True)
    duration_seconds = Column(Integer, nullable=True)


class Audio(_ContentColumns, Base):
    __tablename__ = "audio"

    user_id = Column(BigId, ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False)
    media_url = Column(String, nullable=True)
    duration_seconds = Column(Integer, nullable=True)


# --- Paid subscriptions ------------------------------------------------------

class Subscription(Base):
    __tablename__ = "subscriptions"

    id = Column(BigId, primary_key=True)
    subscriber_id = Column(BigId, ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False)
    creator_id = Column(BigId, ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False)

    type = Column(String, nullable=False)                        # monthly|yearly|one-time
    status = Column(String, nullable=False, default="pending")   # pending|active|cancelled|expired
    amount = Column(Numeric(12, 2), nullable=False)
    currency = Column(String, nullable=False, default="USD")
    notes = Column(String, nullable=True)

    started_at = Column(DateTime, default=utcnow, index=True)
    expires_at = Column(DateTime, nullable=False, index=True)
    cancelled_at = Column(DateTime, nullable=True)
    current_period_start = Column(DateTime, nullable=True)
    current_period_end = Column(DateTime, nullable=True)
    last_renewed_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=utcnow, index=True)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    subscriber = relationship("User", foreign_keys=[subscriber_id])
    creator = relationship("User", foreign_keys=[creator_id])
    payments = relationship(
        "SubscriptionPayment",
        back_populates="subscription",
        order_by="SubscriptionPayment.created_at",
    )

    __table_args__ = (
        CheckConstraint("subscriber_id <> creator_id", name="ck_subscriptions_not_self"),
        # at most one active row per (subscriber, creator)
        Index(
            "uq_subscriptions_active_pair",
            "subscriber_id", "creator_id",
            unique=True,
            postgresql_where=text("status = 'active'"),
            sqlite_where=text("status = 'active'"),
        ),
        Index("ix_subscriptions_status_expires", "status", "expires_at"),
    )


class SubscriptionPayment(Base):
    __tablename__ = "subscription_payments"

    id = Column(BigId, primary_key=True)
    subscription_id = Column(BigId, ForeignKey("subscriptions.id", ondelete="CASCADE"), index=True, nullable=False)

    amount = Column(Numeric(12, 2), nullable=False)
    currency = Column(String, nullable=False, default="USD")
    token_type = Column(String, nullable=True)          # USDC|XION
    payment_method = Column(String, nullable=True)      # "wallet", "novypay", ...
    payment_reference = Column(String, unique=True, index=True, nullable=True)
    status = Column(String, nullable=False, default="pending")  # pending|success|failed|cancelled
    payment_date = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=utcnow, index=True)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    subscription = relationship("Subscription", back_populates="payments")


# --- Free follows --------------------------------------------------------------

class Follow(Base):
    __tablename__ = "subscribers"

    id = Column(BigId, primary_key=True)
    subscriber_id = Column(BigId, ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False)
    creator_id = Column(BigId, ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False)
    status = Column(String, nullable=False, default="active")   # active|inactive

    created_at = Column(DateTime, default=utcnow, index=True)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        UniqueConstraint("subscriber_id", "creator_id", name="uq_follow_pair"),
    )


# --- Notifications -------------------------------------------------------------

class Notification(Base):
    __tablename__ = "notifications"

    id = Column(BigId, primary_key=True)
    user_id = Column(BigId, ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False)
    type = Column(String, nullable=False, index=True)   # new_content, subscription_expiring, ...
    message = Column(String, nullable=False)
    data = Column(JSON, nullable=True)
    is_read = Column(Boolean, nullable=False, default=False)
    # set for notices that must fire once per window (expiry reminders)
    dedupe_key = Column(String, unique=True, nullable=True)

    created_at = Column(DateTime, default=utcnow, index=True)

    __table_args__ = (
        Index("ix_notifications_user_created", "user_id", "created_at"),
    )
