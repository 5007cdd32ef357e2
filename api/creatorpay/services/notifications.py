# api/creatorpay/services/notifications.py
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Iterable, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from .. import crud
from ..errors import StoreError, ValidationError
from ..models import Notification, Subscription
from ..util import days_until, utcnow
from .content_access import ContentRef

logger = logging.getLogger(__name__)

DEFAULT_INBOX_LIMIT = 10


@dataclass
class NotificationReport:
    sent: int = 0
    failed: int = 0
    skipped: int = 0
    errors: list[str] = field(default_factory=list)

    def as_dict(self) -> dict:
        return {"sent": self.sent, "failed": self.failed, "skipped": self.skipped, "errors": self.errors}


# =====================================================================
#   SINK
# =====================================================================

def create_notification(
    db: Session,
    user_id: int,
    type: str,
    message: str,
    data: Optional[dict] = None,
    *,
    dedupe_key: str | None = None,
) -> Notification:
    row = Notification(
        user_id=user_id,
        type=type,
        message=message,
        data=data or {},
        dedupe_key=dedupe_key,
    )
    db.add(row)
    crud.commit(db)
    return row


def notify_quietly(db: Session, user_id: int, type: str, message: str, data: Optional[dict] = None) -> bool:
    """
    Fire-and-forget wrapper for side-effect notices (payments, new subscribers).
    The caller's own write is already committed; a failed notice is only logged.
    """
    try:
        create_notification(db, user_id, type, message, data)
        return True
    except StoreError:
        logger.exception("notification %s for user %s dropped", type, user_id)
        return False


def _deliver_each(
    db: Session,
    recipients: Iterable[int],
    build,
    report: NotificationReport,
) -> None:
    """
    Insert one notification per recipient, each in its own commit so a bad
    recipient only loses its own row.
    """
    for user_id in recipients:
        type_, message, data, dedupe_key = build(user_id)
        if dedupe_key and _already_sent(db, dedupe_key):
            report.skipped += 1
            continue
        try:
            db.add(Notification(user_id=user_id, type=type_, message=message, data=data, dedupe_key=dedupe_key))
            db.commit()
            report.sent += 1
        except IntegrityError:
            # another sweep got there first
            db.rollback()
            if dedupe_key:
                report.skipped += 1
            else:
                report.failed += 1
                report.errors.append(f"user {user_id}: integrity error")
        except SQLAlchemyError as e:
            db.rollback()
            logger.exception("failed to notify user %s (%s)", user_id, type_, extra={"user_id": user_id})
            report.failed += 1
            report.errors.append(f"user {user_id}: {e}")


def _already_sent(db: Session, dedupe_key: str) -> bool:
    try:
        return db.query(Notification.id).filter(Notification.dedupe_key == dedupe_key).first() is not None
    except SQLAlchemyError as e:
        db.rollback()
        logger.warning("dedupe lookup failed for %s: %s", dedupe_key, e)
        return False


# =====================================================================
#   NEW CONTENT
# =====================================================================

def audience_for_creator(db: Session, creator_id: int) -> list[int]:
    """Active followers and active paid subscribers, deduplicated, creator excluded."""
    ids = set(crud.get_active_follower_ids(db, creator_id))
    ids.update(s.subscriber_id for s in crud.get_active_subscriptions_for_creator(db, creator_id))
    ids.discard(creator_id)
    return sorted(ids)


def notify_new_content(db: Session, creator_id: int, content: ContentRef) -> NotificationReport:
    report = NotificationReport()
    recipients = audience_for_creator(db, creator_id)

    label = "premium " if content.is_premium else ""
    message = f"New {label}{content.kind.value}: {content.title}".strip()
    data = {
        "content_id": content.id,
        "content_type": content.kind.value,
        "creator_id": creator_id,
        "is_premium": content.is_premium,
    }

    _deliver_each(db, recipients, lambda uid: ("new_content", message, data, None), report)

    logger.info(
        "new content fan-out for creator %s: %s sent, %s failed",
        creator_id, report.sent, report.failed,
        extra={"creator_id": creator_id, "content_id": content.id, "sent": report.sent, "failed": report.failed},
    )
    return report


# =====================================================================
#   EXPIRING SUBSCRIPTIONS
# =====================================================================

def _plural_days(n: int) -> str:
    return f"{n} day" if n == 1 else f"{n} days"


def expiry_dedupe_key(kind: str, sub: Subscription) -> str:
    # one notice per subscription per billing period
    return f"{kind}:{sub.id}:{sub.expires_at.date().isoformat()}"


def notify_expiring_subscriptions(
    db: Session,
    within_days: int = 7,
    *,
    now: datetime | None = None,
) -> NotificationReport:
    """
    Sweep active subscriptions expiring within [now, now + within_days] and
    warn both sides. Safe to re-run: each notice is keyed by subscription and
    period, so a second run inside the same window skips what was sent.
    """
    if within_days < 0:
        raise ValidationError("within_days must be >= 0")

    now = now or utcnow()
    horizon = now + timedelta(days=within_days)
    report = NotificationReport()

    try:
        expiring = (
            db.query(Subscription)
            .options(joinedload(Subscription.creator), joinedload(Subscription.subscriber))
            .filter(
                Subscription.status == "active",
                Subscription.expires_at >= now,
                Subscription.expires_at <= horizon,
            )
            .order_by(Subscription.expires_at)
            .all()
        )
    except SQLAlchemyError as e:
        raise StoreError(str(e)) from e

    for sub in expiring:
        days = days_until(sub.expires_at, now)
        creator_name = (sub.creator.username if sub.creator else None) or "Creator"
        subscriber_name = (sub.subscriber.username if sub.subscriber else None) or "User"
        base = {
            "subscription_id": sub.id,
            "days_until_expiry": days,
            "amount": str(sub.amount),
            "currency": sub.currency,
            "type": sub.type,
        }

        def build(user_id, sub=sub, days=days, base=base, creator_name=creator_name, subscriber_name=subscriber_name):
            if user_id == sub.subscriber_id:
                return (
                    "subscription_expiring",
                    f"Your subscription to {creator_name} expires in {_plural_days(days)}. "
                    "Renew now to maintain access to premium content.",
                    {**base, "creator_id": sub.creator_id},
                    expiry_dedupe_key("subscription_expiring", sub),
                )
            return (
                "subscriber_expiring",
                f"Your subscriber {subscriber_name} has a subscription expiring in {_plural_days(days)}.",
                {**base, "subscriber_id": sub.subscriber_id},
                expiry_dedupe_key("subscriber_expiring", sub),
            )

        _deliver_each(db, [sub.subscriber_id, sub.creator_id], build, report)

    logger.info(
        "expiry sweep: %s subscriptions, %s sent, %s skipped, %s failed",
        len(expiring), report.sent, report.skipped, report.failed,
        extra={"sent": report.sent, "skipped": report.skipped, "failed": report.failed},
    )
    return report


# =====================================================================
#   INBOX
# =====================================================================

@crud.store_call
def list_notifications(db: Session, user_id: int, limit: int = DEFAULT_INBOX_LIMIT) -> list[Notification]:
    return (
        db.query(Notification)
        .filter(Notification.user_id == user_id)
        .order_by(Notification.created_at.desc(), Notification.id.desc())
        .limit(limit)
        .all()
    )


def mark_read(db: Session, user_id: int, ids: list[int]) -> int:
    if not ids:
        raise ValidationError("no notification ids provided")
    try:
        updated = (
            db.query(Notification)
            .filter(Notification.id.in_(ids), Notification.user_id == user_id)
            .update({Notification.is_read: True}, synchronize_session=False)
        )
    except SQLAlchemyError as e:
        db.rollback()
        raise StoreError(str(e)) from e
    crud.commit(db)
    return updated
