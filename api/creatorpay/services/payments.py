# api/creatorpay/services/payments.py
"""
Wallet payment flow around a subscription:

  start_subscription_payment  pending subscription + gateway payment request
  reconcile_payment           gateway verdict -> payment row -> subscription status

The gateway is opaque: only its ok/error outcome and reference are used.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.orm import Session

from .. import crud
from ..errors import ConflictError, NotFoundError, PaymentGatewayError, ValidationError
from ..models import Subscription, SubscriptionPayment
from ..util import compute_expiry, utcnow
from . import notifications
from .novypay import TOKEN_TYPES, NovyPayClient
from .subscriptions import (
    ALREADY_SUBSCRIBED,
    PAYMENT_STATUSES,
    normalize_plan_type,
    retire_lapsed,
    validate_amount,
)

logger = logging.getLogger(__name__)


@dataclass
class PaymentContact:
    email: Optional[str] = None
    fullname: Optional[str] = None
    phone_country_code: str = "+1"
    phone_number: str = ""
    address_line1: str = ""
    city: str = ""
    country: str = ""


@dataclass
class PaymentStart:
    subscription_id: int
    payment_reference: str
    payment_url: Optional[str]


def start_subscription_payment(
    db: Session,
    gateway: NovyPayClient,
    *,
    creator_wallet: str,
    subscriber_wallet: str,
    plan_type: str,
    amount,
    currency: str = "USD",
    token_type: str = "XION",
    contact: PaymentContact | None = None,
) -> PaymentStart:
    plan_type = normalize_plan_type(plan_type)
    if token_type not in TOKEN_TYPES:
        raise ValidationError(f"invalid token type: {token_type!r}")
    amount = validate_amount(amount)

    creator = crud.get_user_by_wallet(db, creator_wallet)
    if not creator:
        raise NotFoundError("creator not found")
    subscriber = crud.get_user_by_wallet(db, subscriber_wallet)
    if not subscriber:
        raise NotFoundError("subscriber not found")
    if creator.id == subscriber.id:
        raise ValidationError("cannot subscribe to yourself")

    now = utcnow()
    existing = crud.get_active_subscription(db, subscriber.id, creator.id)
    if existing and not retire_lapsed(db, existing, now):
        raise ConflictError("active subscription already exists")

    expires_at = compute_expiry(plan_type, now)
    sub = Subscription(
        subscriber_id=subscriber.id,
        creator_id=creator.id,
        type=plan_type,
        status="pending",
        amount=amount,
        currency=(currency or "USD").upper(),
        started_at=now,
        expires_at=expires_at,
        current_period_start=now,
        current_period_end=expires_at,
    )
    db.add(sub)
    crud.commit(db)
    db.refresh(sub)

    contact = contact or PaymentContact()
    result = gateway.initialize_payment(
        amount=amount,
        currency=sub.currency,
        token_type=token_type,
        email=contact.email or subscriber.email or "",
        fullname=contact.fullname or subscriber.username or "User",
        phone_country_code=contact.phone_country_code,
        phone_number=contact.phone_number,
        address_line1=contact.address_line1,
        city=contact.city,
        country=contact.country,
    )

    if not result.ok or not result.reference:
        # pending row is closed, not deleted
        sub.status = "cancelled"
        sub.cancelled_at = utcnow()
        sub.notes = f"payment initialization failed: {result.error or 'no reference'}"
        crud.commit(db)
        notifications.notify_quietly(
            db,
            subscriber.id,
            "payment_failed",
            "Your payment failed. Please try again.",
            {"subscription_id": sub.id},
        )
        logger.warning(
            "payment init failed for subscription %s: %s", sub.id, result.error,
            extra={"subscription_id": sub.id},
        )
        raise PaymentGatewayError(result.error or "payment initialization failed")

    db.add(
        SubscriptionPayment(
            subscription_id=sub.id,
            payment_reference=result.reference,
            amount=amount,
            currency=sub.currency,
            token_type=token_type,
            payment_method="novypay",
            status="pending",
        )
    )
    crud.commit(db, conflict="duplicate payment reference")

    logger.info(
        "payment %s started for subscription %s", result.reference, sub.id,
        extra={"subscription_id": sub.id, "reference": result.reference},
    )
    return PaymentStart(
        subscription_id=sub.id,
        payment_reference=result.reference,
        payment_url=result.redirect_url,
    )


def reconcile_payment(db: Session, gateway: NovyPayClient, reference: str) -> dict:
    """
    Ask the gateway about a payment and bring our rows in line.

    success -> payment success, subscription active, both sides notified
    failed  -> payment failed, subscriber notified
    Settled payments (success/failed) are returned as-is without re-notifying.
    """
    if not reference:
        raise ValidationError("payment reference is required")

    payment = crud.get_payment_by_reference(db, reference)
    if not payment:
        raise NotFoundError("payment record not found")

    if payment.status in ("success", "failed"):
        return {"status": payment.status, "reference": reference, "amount": payment.amount,
                "currency": payment.currency, "token_type": payment.token_type}

    verdict = gateway.verify_payment(reference)
    if not verdict.ok:
        raise PaymentGatewayError(verdict.error or "payment verification failed")

    status = verdict.payment_status if verdict.payment_status in PAYMENT_STATUSES else "pending"
    now = utcnow()
    payment.status = status
    payment.updated_at = now
    if status == "success":
        payment.payment_date = now

    sub = payment.subscription
    if status == "success" and sub.status != "active":
        sub.status = "active"
        sub.last_renewed_at = now
        sub.cancelled_at = None
        sub.updated_at = now
    elif status == "cancelled" and sub.status == "pending":
        # abandoned at the gateway; closed the same way as a failed init
        sub.status = "cancelled"
        sub.cancelled_at = now
        sub.updated_at = now

    crud.commit(db, conflict=ALREADY_SUBSCRIBED)

    data = {"subscription_id": sub.id, "amount": str(sub.amount), "currency": sub.currency}
    if status == "success":
        notifications.notify_quietly(
            db, sub.subscriber_id, "payment_success",
            "Your subscription payment was successful! You now have access to premium content.", data,
        )
        notifications.notify_quietly(
            db, sub.creator_id, "new_subscriber", "You have a new paid subscriber!", data,
        )
    elif status == "failed":
        notifications.notify_quietly(
            db, sub.subscriber_id, "payment_failed", "Your payment failed. Please try again.", data,
        )

    logger.info(
        "payment %s reconciled: %s", reference, status,
        extra={"reference": reference, "status": status, "subscription_id": sub.id},
    )
    return {
        "status": status,
        "reference": verdict.reference or reference,
        "amount": verdict.amount,
        "currency": verdict.currency,
        "token_type": verdict.token_type,
    }


def get_payment_details(db: Session, reference: str) -> dict:
    payment = crud.get_payment_by_reference(db, reference)
    if not payment:
        raise NotFoundError("payment record not found")
    sub = payment.subscription
    if not sub:
        raise NotFoundError("subscription not found")

    return {
        "payment": {
            "id": payment.id,
            "reference": payment.payment_reference,
            "status": payment.status,
            "amount": payment.amount,
            "currency": payment.currency,
            "token_type": payment.token_type,
            "payment_date": payment.payment_date,
            "created_at": payment.created_at,
        },
        "subscription": {
            "id": sub.id,
            "type": sub.type,
            "status": sub.status,
            "amount": sub.amount,
            "currency": sub.currency,
            "expires_at": sub.expires_at,
            "creator": sub.creator.as_dict() if sub.creator else None,
            "subscriber": sub.subscriber.as_dict() if sub.subscriber else None,
        },
    }
