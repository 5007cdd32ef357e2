# api/creatorpay/services/subscriptions.py
"""
Subscription lifecycle: subscribe / renew / cancel, free follows, and the
read-side views (status, listings, analytics).

This module is the only writer of Subscription and Follow rows.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Optional

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from .. import crud
from ..errors import ConflictError, ForbiddenError, NotFoundError, StoreError, ValidationError
from ..models import Follow, Subscription, SubscriptionPayment, User
from ..util import PLAN_TYPES, compute_expiry, plan_period, to_naive_utc, utcnow
from . import notifications

logger = logging.getLogger(__name__)

ALREADY_SUBSCRIBED = "already subscribed"
STATUSES = ("pending", "active", "cancelled", "expired")
PAYMENT_STATUSES = ("pending", "success", "failed", "cancelled")


@dataclass
class RenewalData:
    current_period_start: Optional[datetime] = None
    current_period_end: Optional[datetime] = None
    amount: Optional[Decimal] = None
    currency: Optional[str] = None
    payment_method: Optional[str] = None
    payment_status: str = "success"
    payment_reference: Optional[str] = None


# ---------- validation helpers ----------

def normalize_plan_type(plan_type: str) -> str:
    value = (plan_type or "").strip().lower().replace("_", "-")
    if value not in PLAN_TYPES:
        raise ValidationError(f"invalid subscription type: {plan_type!r}")
    return value


def validate_amount(amount) -> Decimal:
    try:
        value = Decimal(str(amount))
    except (InvalidOperation, ValueError):
        raise ValidationError("amount must be a number") from None
    if not value.is_finite() or value <= 0:
        raise ValidationError("amount must be greater than 0")
    return value


def ensure_not_self(subscriber_id: int, creator_id: int) -> None:
    if subscriber_id == creator_id:
        raise ValidationError("cannot subscribe to yourself")


def _require_user(db: Session, user_id: int, label: str) -> User:
    user = crud.get_user(db, user_id)
    if not user:
        raise NotFoundError(f"{label} not found")
    return user


def retire_lapsed(db: Session, sub: Subscription, now: datetime) -> bool:
    """
    Flip an active row whose period has ended to expired, inside the caller's
    unit of work. Returns False when the row is still current.
    """
    if sub.expires_at is None or sub.expires_at >= now:
        return False
    sub.status = "expired"
    sub.updated_at = now
    try:
        # the new active row for the pair is inserted after this update
        db.flush()
    except SQLAlchemyError as e:
        db.rollback()
        raise StoreError(str(e)) from e
    return True


# =====================================================================
#   SUBSCRIBE
# =====================================================================

def subscribe(
    db: Session,
    subscriber_id: int,
    creator_id: int,
    plan_type: str,
    amount,
    currency: str = "USD",
    notes: str | None = None,
    *,
    now: datetime | None = None,
) -> Subscription:
    """
    Create an active paid subscription.

    The existence check gives a friendly 409 in the common case; the partial
    unique index on (subscriber_id, creator_id) WHERE status='active' is what
    actually decides a race, and its violation is reported the same way.
    """
    ensure_not_self(subscriber_id, creator_id)
    plan_type = normalize_plan_type(plan_type)
    amount = validate_amount(amount)

    _require_user(db, subscriber_id, "subscriber")
    creator = _require_user(db, creator_id, "creator")

    now = now or utcnow()
    existing = crud.get_active_subscription(db, subscriber_id, creator_id)
    if existing and not retire_lapsed(db, existing, now):
        raise ConflictError(ALREADY_SUBSCRIBED)

    expires_at = compute_expiry(plan_type, now)
    sub = Subscription(
        subscriber_id=subscriber_id,
        creator_id=creator_id,
        type=plan_type,
        status="active",
        amount=amount,
        currency=(currency or "USD").upper(),
        notes=notes or None,
        started_at=now,
        expires_at=expires_at,
        current_period_start=now,
        current_period_end=expires_at,
        created_at=now,
        updated_at=now,
    )
    db.add(sub)
    crud.commit(db, conflict=ALREADY_SUBSCRIBED)
    db.refresh(sub)

    logger.info(
        "subscription %s created: %s -> %s (%s)", sub.id, subscriber_id, creator_id, plan_type,
        extra={"subscription_id": sub.id, "user_id": subscriber_id, "creator_id": creator_id},
    )
    notifications.notify_quietly(
        db,
        creator.id,
        "new_subscriber",
        "You have a new paid subscriber!",
        {"subscription_id": sub.id, "amount": str(sub.amount), "currency": sub.currency},
    )
    return sub


# =====================================================================
#   RENEW
# =====================================================================

def renew(
    db: Session,
    subscription_id: int,
    requester_id: int,
    renewal: RenewalData | None = None,
    *,
    now: datetime | None = None,
) -> Subscription:
    """
    Record a renewal payment and, when it succeeded, extend the billing
    period. All-or-nothing.

    Period defaults: start at the later of now / current expiry, end one
    plan period after that. A payment that did not succeed is stored but
    leaves the period and status untouched.
    """
    renewal = renewal or RenewalData()
    sub = crud.get_subscription(db, subscription_id)
    if not sub:
        raise NotFoundError("subscription not found")
    if sub.subscriber_id != requester_id:
        raise ForbiddenError("unauthorized to renew this subscription")
    if sub.status == "cancelled":
        raise ConflictError("subscription is cancelled")
    if sub.status == "pending":
        raise ConflictError("subscription payment is still pending")
    if sub.type == "one-time":
        raise ValidationError("one-time subscriptions cannot be renewed")

    payment_status = renewal.payment_status or "success"
    if payment_status not in PAYMENT_STATUSES:
        raise ValidationError(f"invalid payment status: {payment_status!r}")

    now = now or utcnow()
    start = to_naive_utc(renewal.current_period_start) or max(now, sub.expires_at)
    end = to_naive_utc(renewal.current_period_end) or (start + plan_period(sub.type))
    if end <= start:
        raise ValidationError("current_period_end must be after current_period_start")

    amount = validate_amount(renewal.amount if renewal.amount is not None else sub.amount)
    currency = (renewal.currency or sub.currency).upper()

    # period update and payment row go out in one commit
    paid = payment_status == "success"
    if paid:
        sub.current_period_start = start
        sub.current_period_end = end
        sub.expires_at = end
        sub.last_renewed_at = now
        sub.status = "active"
    sub.updated_at = now
    db.add(
        SubscriptionPayment(
            subscription_id=sub.id,
            amount=amount,
            currency=currency,
            payment_method=renewal.payment_method,
            payment_reference=renewal.payment_reference,
            status=payment_status,
            payment_date=now if paid else None,
            created_at=now,
            updated_at=now,
        )
    )
    # reactivating a lapsed row can collide with a newer active one
    crud.commit(db, conflict=ALREADY_SUBSCRIBED)
    db.refresh(sub)

    if paid:
        logger.info(
            "subscription %s renewed until %s", sub.id, sub.expires_at.isoformat(),
            extra={"subscription_id": sub.id, "user_id": requester_id},
        )
    else:
        logger.info(
            "renewal payment for subscription %s recorded as %s", sub.id, payment_status,
            extra={"subscription_id": sub.id, "user_id": requester_id, "status": payment_status},
        )
    return sub


# =====================================================================
#   CANCEL
# =====================================================================

def cancel(db: Session, subscriber_id: int, creator_id: int, *, now: datetime | None = None) -> int:
    """Cancel the active row for the pair. Zero rows updated is not an error."""
    now = now or utcnow()
    try:
        updated = (
            db.query(Subscription)
            .filter(
                Subscription.subscriber_id == subscriber_id,
                Subscription.creator_id == creator_id,
                Subscription.status == "active",
            )
            .update(
                {
                    Subscription.status: "cancelled",
                    Subscription.cancelled_at: now,
                    Subscription.updated_at: now,
                },
                synchronize_session=False,
            )
        )
    except SQLAlchemyError as e:
        db.rollback()
        raise StoreError(str(e)) from e
    crud.commit(db)

    if updated:
        logger.info(
            "subscription cancelled: %s -> %s", subscriber_id, creator_id,
            extra={"user_id": subscriber_id, "creator_id": creator_id},
        )
    return updated


def expire_lapsed_subscriptions(db: Session, *, now: datetime | None = None) -> int:
    """Optional sweep: persist active -> expired for rows past expires_at."""
    now = now or utcnow()
    try:
        updated = (
            db.query(Subscription)
            .filter(Subscription.status == "active", Subscription.expires_at < now)
            .update(
                {Subscription.status: "expired", Subscription.updated_at: now},
                synchronize_session=False,
            )
        )
    except SQLAlchemyError as e:
        db.rollback()
        raise StoreError(str(e)) from e
    crud.commit(db)
    if updated:
        logger.info("marked %s lapsed subscriptions expired", updated)
    return updated


# =====================================================================
#   FOLLOW / UNFOLLOW
# =====================================================================

def follow(db: Session, subscriber_id: int, creator_id: int) -> Follow:
    if subscriber_id == creator_id:
        raise ValidationError("cannot follow yourself")
    _require_user(db, creator_id, "creator")

    row = crud.get_follow(db, subscriber_id, creator_id)
    if row:
        if row.status != "active":
            row.status = "active"
            row.updated_at = utcnow()
            crud.commit(db)
        return row

    row = Follow(subscriber_id=subscriber_id, creator_id=creator_id, status="active")
    db.add(row)
    try:
        crud.commit(db, conflict="already following")
    except ConflictError:
        # concurrent follow created the row first; same end state
        row = crud.get_follow(db, subscriber_id, creator_id)
        if row is None:
            raise
    return row


def unfollow(db: Session, subscriber_id: int, creator_id: int) -> int:
    row = crud.get_follow(db, subscriber_id, creator_id)
    if not row or row.status != "active":
        return 0
    row.status = "inactive"
    row.updated_at = utcnow()
    crud.commit(db)
    return 1


# =====================================================================
#   READ SIDE
# =====================================================================

def get_relationship_status(db: Session, subscriber_id: int, creator_id: int) -> dict:
    follow_row = crud.get_follow(db, subscriber_id, creator_id)
    paid = crud.get_active_subscription(db, subscriber_id, creator_id)
    return {
        "is_following": bool(follow_row and follow_row.status == "active"),
        "is_paid_subscriber": paid is not None,
        "subscription_type": paid.type if paid else None,
        "expires_at": paid.expires_at if paid else None,
        "amount": paid.amount if paid else None,
        "currency": paid.currency if paid else None,
    }


def _relationship_view(sub: Subscription, other: User | None) -> dict:
    return {
        "id": other.id if other else None,
        "username": other.username if other else None,
        "wallet_address": other.wallet_address if other else None,
        "avatar_url": other.avatar_url if other else None,
        "subscribed_at": sub.created_at,
        "subscription_type": sub.type,
        "subscription_amount": sub.amount,
        "subscription_currency": sub.currency,
        "subscription_expires_at": sub.expires_at,
    }


def list_subscribers(db: Session, creator_id: int) -> list[dict]:
    """Paid subscribers of a creator, newest first."""
    subs = crud.get_active_subscriptions_for_creator(db, creator_id)
    return [_relationship_view(s, s.subscriber) for s in subs if s.subscriber]


def list_user_subscriptions(db: Session, user_id: int) -> list[dict]:
    """Creators a user pays for, newest first."""
    subs = crud.get_active_subscriptions_for_subscriber(db, user_id)
    return [_relationship_view(s, s.creator) for s in subs if s.creator]


@crud.store_call
def list_subscriptions(
    db: Session,
    user_id: int,
    status: str | None = None,
    page: int = 1,
    limit: int = 10,
) -> dict:
    if page < 1 or limit < 1:
        raise ValidationError("page and limit must be positive")
    if status and status not in STATUSES:
        raise ValidationError(f"invalid status: {status!r}")

    q = db.query(Subscription).filter(Subscription.subscriber_id == user_id)
    if status:
        q = q.filter(Subscription.status == status)

    total = q.count()
    rows = (
        q.options(joinedload(Subscription.payments))
        .order_by(Subscription.created_at.desc(), Subscription.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return {
        "subscriptions": rows,
        "pagination": {
            "total": total,
            "page": page,
            "limit": limit,
            "total_pages": math.ceil(total / limit) if total else 0,
        },
    }


def get_subscription(db: Session, subscription_id: int) -> Subscription:
    sub = crud.get_subscription(db, subscription_id)
    if not sub:
        raise NotFoundError("subscription not found")
    return sub


@crud.store_call
def subscription_analytics(db: Session, user_id: int) -> dict:
    total_followers = (
        db.query(func.count(Follow.id))
        .filter(Follow.creator_id == user_id, Follow.status == "active")
        .scalar()
    )
    creators_followed = (
        db.query(func.count(Follow.id))
        .filter(Follow.subscriber_id == user_id, Follow.status == "active")
        .scalar()
    )
    paid_subscribers = (
        db.query(func.count(Subscription.id))
        .filter(Subscription.creator_id == user_id, Subscription.status == "active")
        .scalar()
    )
    paid_subscriptions = (
        db.query(func.count(Subscription.id))
        .filter(Subscription.subscriber_id == user_id, Subscription.status == "active")
        .scalar()
    )
    total_revenue = (
        db.query(func.coalesce(func.sum(SubscriptionPayment.amount), 0))
        .join(Subscription, SubscriptionPayment.subscription_id == Subscription.id)
        .filter(Subscription.creator_id == user_id, SubscriptionPayment.status == "success")
        .scalar()
    )
    total_spent = (
        db.query(func.coalesce(func.sum(SubscriptionPayment.amount), 0))
        .join(Subscription, SubscriptionPayment.subscription_id == Subscription.id)
        .filter(Subscription.subscriber_id == user_id, SubscriptionPayment.status == "success")
        .scalar()
    )
    return {
        "total_followers": total_followers or 0,
        "paid_subscribers": paid_subscribers or 0,
        "total_revenue": Decimal(str(total_revenue or 0)),
        "creators_followed": creators_followed or 0,
        "paid_subscriptions": paid_subscriptions or 0,
        "total_spent": Decimal(str(total_spent or 0)),
    }
