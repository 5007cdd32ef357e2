import logging
from functools import wraps

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from . import models
from .errors import ConflictError, StoreError

logger = logging.getLogger(__name__)


def store_call(fn):
    """Surface datastore failures from a read helper as StoreError."""
    @wraps(fn)
    def wrapper(*args, **kwargs):
        try:
            return fn(*args, **kwargs)
        except SQLAlchemyError as e:
            logger.exception("store read failed in %s", fn.__name__)
            raise StoreError(str(e)) from e
    return wrapper


def commit(db: Session, *, conflict: str | None = None) -> None:
    """
    Commit the unit of work or roll all of it back.

    A uniqueness violation becomes ConflictError(conflict) when the caller
    names one, everything else is a StoreError.
    """
    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        if conflict:
            raise ConflictError(conflict) from e
        raise StoreError(str(e.orig)) from e
    except SQLAlchemyError as e:
        db.rollback()
        raise StoreError(str(e)) from e


# -------- Users --------
@store_call
def get_user(db: Session, user_id: int):
    return db.get(models.User, user_id)

@store_call
def get_user_by_wallet(db: Session, wallet_address: str):
    return (
        db.query(models.User)
        .filter(models.User.wallet_address == wallet_address)
        .one_or_none()
    )

def get_or_create_user_by_wallet(db: Session, wallet_address: str, **profile):
    user = get_user_by_wallet(db, wallet_address)
    if user:
        changed = False
        for key, value in profile.items():
            if value and getattr(user, key) != value:
                setattr(user, key, value)
                changed = True
        if changed:
            commit(db)
            db.refresh(user)
        return user

    user = models.User(wallet_address=wallet_address, **{k: v for k, v in profile.items() if v})
    db.add(user)
    commit(db, conflict="wallet address already registered")
    db.refresh(user)
    return user


# -------- Subscriptions --------
@store_call
def get_subscription(db: Session, subscription_id: int):
    return db.get(models.Subscription, subscription_id)

@store_call
def get_active_subscription(db: Session, subscriber_id: int, creator_id: int):
    return (
        db.query(models.Subscription)
        .filter(
            models.Subscription.subscriber_id == subscriber_id,
            models.Subscription.creator_id == creator_id,
            models.Subscription.status == "active",
        )
        .one_or_none()
    )

@store_call
def get_active_subscriptions_for_creator(db: Session, creator_id: int):
    return (
        db.query(models.Subscription)
        .filter(
            models.Subscription.creator_id == creator_id,
            models.Subscription.status == "active",
        )
        .order_by(models.Subscription.created_at.desc())
        .all()
    )

@store_call
def get_active_subscriptions_for_subscriber(db: Session, subscriber_id: int):
    return (
        db.query(models.Subscription)
        .filter(
            models.Subscription.subscriber_id == subscriber_id,
            models.Subscription.status == "active",
        )
        .order_by(models.Subscription.created_at.desc())
        .all()
    )


# -------- Follows --------
@store_call
def get_follow(db: Session, subscriber_id: int, creator_id: int):
    return (
        db.query(models.Follow)
        .filter_by(subscriber_id=subscriber_id, creator_id=creator_id)
        .one_or_none()
    )

@store_call
def get_active_follower_ids(db: Session, creator_id: int) -> list[int]:
    rows = (
        db.query(models.Follow.subscriber_id)
        .filter(models.Follow.creator_id == creator_id, models.Follow.status == "active")
        .all()
    )
    return [r[0] for r in rows]


# -------- Payments --------
@store_call
def get_payment_by_reference(db: Session, reference: str):
    return (
        db.query(models.SubscriptionPayment)
        .filter(models.SubscriptionPayment.payment_reference == reference)
        .one_or_none()
    )
