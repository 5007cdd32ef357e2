from datetime import datetime, timedelta
from decimal import Decimal
from unittest.mock import patch

import pytest

from creatorpay import models
from creatorpay.errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from creatorpay.services import subscriptions as subs
from creatorpay.services.subscriptions import ALREADY_SUBSCRIBED, RenewalData
from creatorpay.util import utcnow


def _active_rows(db, subscriber, creator):
    return (
        db.query(models.Subscription)
        .filter_by(subscriber_id=subscriber.id, creator_id=creator.id, status="active")
        .count()
    )


# ---------- subscribe ----------

def test_subscribe_creates_active_row_with_expiry(db, make_user):
    fan = make_user()
    creator = make_user()
    now = datetime(2026, 1, 31, 12, 0, 0)

    sub = subs.subscribe(db, fan.id, creator.id, "monthly", "9.99", now=now)

    assert sub.status == "active"
    assert sub.amount == Decimal("9.99")
    assert sub.started_at == now
    # calendar month, clamped to the end of February
    assert sub.expires_at == datetime(2026, 2, 28, 12, 0, 0)
    assert sub.current_period_start == now
    assert sub.current_period_end == sub.expires_at


@pytest.mark.parametrize(
    "plan_type,expected",
    [
        ("yearly", datetime(2027, 3, 1, 9, 0)),
        ("one-time", datetime(2126, 3, 1, 9, 0)),
        ("one_time", datetime(2126, 3, 1, 9, 0)),
    ],
)
def test_subscribe_expiry_per_plan(db, make_user, plan_type, expected):
    fan = make_user()
    creator = make_user()
    sub = subs.subscribe(db, fan.id, creator.id, plan_type, 5, now=datetime(2026, 3, 1, 9, 0))
    assert sub.expires_at == expected


def test_subscribe_notifies_creator(db, make_user):
    fan = make_user()
    creator = make_user()
    sub = subs.subscribe(db, fan.id, creator.id, "monthly", "4.50")

    note = db.query(models.Notification).filter_by(user_id=creator.id).one()
    assert note.type == "new_subscriber"
    assert note.data["subscription_id"] == sub.id


def test_subscribe_twice_conflicts(db, make_user):
    fan = make_user()
    creator = make_user()
    subs.subscribe(db, fan.id, creator.id, "monthly", 10)

    with pytest.raises(ConflictError) as exc:
        subs.subscribe(db, fan.id, creator.id, "yearly", 100)
    assert exc.value.message == ALREADY_SUBSCRIBED
    assert _active_rows(db, fan, creator) == 1


def test_concurrent_subscribe_loses_on_unique_index(db, make_user):
    fan = make_user()
    creator = make_user()
    subs.subscribe(db, fan.id, creator.id, "monthly", 10)

    # second caller passed its existence check before the first committed
    with patch.object(subs.crud, "get_active_subscription", return_value=None):
        with pytest.raises(ConflictError):
            subs.subscribe(db, fan.id, creator.id, "monthly", 10)

    assert _active_rows(db, fan, creator) == 1


def test_resubscribe_after_cancel_is_allowed(db, make_user):
    fan = make_user()
    creator = make_user()
    subs.subscribe(db, fan.id, creator.id, "monthly", 10)
    assert subs.cancel(db, fan.id, creator.id) == 1

    again = subs.subscribe(db, fan.id, creator.id, "monthly", 10)
    assert again.status == "active"
    assert db.query(models.Subscription).count() == 2


@pytest.mark.parametrize(
    "plan_type,amount",
    [("weekly", 10), ("monthly", 0), ("monthly", -3), ("monthly", "abc")],
)
def test_subscribe_rejects_bad_input(db, make_user, plan_type, amount):
    fan = make_user()
    creator = make_user()
    with pytest.raises(ValidationError):
        subs.subscribe(db, fan.id, creator.id, plan_type, amount)
    assert db.query(models.Subscription).count() == 0


def test_cannot_subscribe_to_self(db, make_user):
    creator = make_user()
    with pytest.raises(ValidationError):
        subs.subscribe(db, creator.id, creator.id, "monthly", 10)


def test_subscribe_unknown_creator(db, make_user):
    fan = make_user()
    with pytest.raises(NotFoundError):
        subs.subscribe(db, fan.id, 9999, "monthly", 10)


# ---------- renew ----------

def test_renew_extends_from_current_expiry(db, make_user, make_subscription):
    fan = make_user()
    creator = make_user()
    now = utcnow()
    sub = make_subscription(fan, creator, started_at=now - timedelta(days=10))
    old_expiry = sub.expires_at

    renewed = subs.renew(db, sub.id, fan.id, RenewalData(payment_reference="tx-1"), now=now)

    assert renewed.current_period_start == old_expiry
    assert renewed.expires_at > old_expiry
    assert renewed.last_renewed_at == now
    payment = db.query(models.SubscriptionPayment).filter_by(subscription_id=sub.id).one()
    assert payment.status == "success"
    assert payment.payment_reference == "tx-1"
    assert payment.amount == sub.amount


def test_renew_lapsed_subscription_starts_now(db, make_user, make_subscription):
    fan = make_user()
    creator = make_user()
    now = utcnow()
    sub = make_subscription(fan, creator, status="expired", started_at=now - timedelta(days=60))

    renewed = subs.renew(db, sub.id, fan.id, now=now)
    assert renewed.status == "active"
    assert renewed.current_period_start == now


def test_renew_by_someone_else_is_forbidden(db, make_user, make_subscription):
    fan = make_user()
    creator = make_user()
    sub = make_subscription(fan, creator)

    with pytest.raises(ForbiddenError):
        subs.renew(db, sub.id, creator.id)
    assert db.query(models.SubscriptionPayment).count() == 0


def test_renew_missing_cancelled_and_one_time(db, make_user, make_subscription):
    fan = make_user()
    creator = make_user()
    other = make_user()

    with pytest.raises(NotFoundError):
        subs.renew(db, 4242, fan.id)

    cancelled = make_subscription(fan, creator, status="cancelled")
    with pytest.raises(ConflictError):
        subs.renew(db, cancelled.id, fan.id)

    lifetime = make_subscription(fan, other, plan_type="one-time")
    with pytest.raises(ValidationError):
        subs.renew(db, lifetime.id, fan.id)


def test_renew_is_all_or_nothing(db, make_user, make_subscription):
    fan = make_user()
    creator = make_user()
    now = utcnow()
    lapsed = make_subscription(fan, creator, status="expired", started_at=now - timedelta(days=90))
    make_subscription(fan, creator, status="active", started_at=now)

    # reactivating the old row would give the pair two active rows
    with pytest.raises(ConflictError):
        subs.renew(db, lapsed.id, fan.id, now=now)

    db.expire_all()
    assert db.get(models.Subscription, lapsed.id).status == "expired"
    assert db.query(models.SubscriptionPayment).count() == 0


def test_renew_rejects_inverted_period(db, make_user, make_subscription):
    fan = make_user()
    creator = make_user()
    sub = make_subscription(fan, creator)
    start = utcnow()

    with pytest.raises(ValidationError):
        subs.renew(
            db, sub.id, fan.id,
            RenewalData(current_period_start=start, current_period_end=start - timedelta(days=1)),
        )


# ---------- cancel / sweep ----------

def test_cancel_is_idempotent(db, make_user):
    fan = make_user()
    creator = make_user()
    sub = subs.subscribe(db, fan.id, creator.id, "monthly", 10)

    assert subs.cancel(db, fan.id, creator.id) == 1
    assert subs.cancel(db, fan.id, creator.id) == 0

    db.refresh(sub)
    assert sub.status == "cancelled"
    assert sub.cancelled_at is not None


def test_expire_lapsed_subscriptions(db, make_user, make_subscription):
    fan = make_user()
    a = make_user()
    b = make_user()
    now = utcnow()
    lapsed = make_subscription(fan, a, started_at=now - timedelta(days=45))
    current = make_subscription(fan, b, started_at=now - timedelta(days=3))

    assert subs.expire_lapsed_subscriptions(db, now=now) == 1
    db.refresh(lapsed)
    db.refresh(current)
    assert lapsed.status == "expired"
    assert current.status == "active"


# ---------- follows ----------

def test_follow_unfollow_refollow(db, make_user):
    fan = make_user()
    creator = make_user()

    first = subs.follow(db, fan.id, creator.id)
    again = subs.follow(db, fan.id, creator.id)
    assert first.id == again.id

    assert subs.unfollow(db, fan.id, creator.id) == 1
    assert subs.unfollow(db, fan.id, creator.id) == 0

    back = subs.follow(db, fan.id, creator.id)
    assert back.id == first.id
    assert back.status == "active"
    assert db.query(models.Follow).count() == 1


def test_cannot_follow_self(db, make_user):
    creator = make_user()
    with pytest.raises(ValidationError):
        subs.follow(db, creator.id, creator.id)


# ---------- read side ----------

def test_relationship_status(db, make_user):
    fan = make_user()
    creator = make_user()

    status = subs.get_relationship_status(db, fan.id, creator.id)
    assert status["is_following"] is False
    assert status["is_paid_subscriber"] is False

    subs.follow(db, fan.id, creator.id)
    subs.subscribe(db, fan.id, creator.id, "yearly", "99.00")

    status = subs.get_relationship_status(db, fan.id, creator.id)
    assert status["is_following"] is True
    assert status["is_paid_subscriber"] is True
    assert status["subscription_type"] == "yearly"
    assert status["amount"] == Decimal("99.00")


def test_listings_both_directions(db, make_user):
    fan = make_user(username="fan")
    creator = make_user(username="maker")
    subs.subscribe(db, fan.id, creator.id, "monthly", 10)

    subscribers = subs.list_subscribers(db, creator.id)
    assert [s["username"] for s in subscribers] == ["fan"]

    creators = subs.list_user_subscriptions(db, fan.id)
    assert [c["username"] for c in creators] == ["maker"]
    assert creators[0]["subscription_type"] == "monthly"


def test_list_subscriptions_paginates(db, make_user):
    fan = make_user()
    for _ in range(3):
        creator = make_user()
        subs.subscribe(db, fan.id, creator.id, "monthly", 10)

    page = subs.list_subscriptions(db, fan.id, page=2, limit=2)
    assert len(page["subscriptions"]) == 1
    assert page["pagination"] == {"total": 3, "page": 2, "limit": 2, "total_pages": 2}

    with pytest.raises(ValidationError):
        subs.list_subscriptions(db, fan.id, status="paused")


def test_analytics_counts_successful_payments_only(db, make_user, make_subscription):
    fan = make_user()
    creator = make_user()
    subs.follow(db, fan.id, creator.id)
    sub = make_subscription(fan, creator, amount="10.00")
    db.add_all([
        models.SubscriptionPayment(subscription_id=sub.id, amount=Decimal("10.00"), status="success"),
        models.SubscriptionPayment(subscription_id=sub.id, amount=Decimal("10.00"), status="failed"),
    ])
    db.commit()

    creator_view = subs.subscription_analytics(db, creator.id)
    assert creator_view["total_followers"] == 1
    assert creator_view["paid_subscribers"] == 1
    assert creator_view["total_revenue"] == Decimal("10.00")

    fan_view = subs.subscription_analytics(db, fan.id)
    assert fan_view["creators_followed"] == 1
    assert fan_view["paid_subscriptions"] == 1
    assert fan_view["total_spent"] == Decimal("10.00")


def test_resubscribe_after_lapse_retires_old_row(db, make_user):
    fan = make_user()
    creator = make_user()
    start = datetime(2026, 1, 1, 8, 0)
    first = subs.subscribe(db, fan.id, creator.id, "monthly", 10, now=start)

    second = subs.subscribe(db, fan.id, creator.id, "monthly", 10, now=start + timedelta(days=32))

    db.refresh(first)
    assert first.status == "expired"
    assert second.status == "active"
    assert _active_rows(db, fan, creator) == 1


def test_renew_with_unsuccessful_payment_keeps_period(db, make_user, make_subscription):
    fan = make_user()
    creator = make_user()
    now = utcnow()
    sub = make_subscription(fan, creator, status="expired", started_at=now - timedelta(days=40))
    old_expiry = sub.expires_at

    renewed = subs.renew(db, sub.id, fan.id, RenewalData(payment_status="failed"), now=now)

    assert renewed.status == "expired"
    assert renewed.expires_at == old_expiry
    payment = db.query(models.SubscriptionPayment).filter_by(subscription_id=sub.id).one()
    assert payment.status == "failed"
    assert payment.payment_date is None

    with pytest.raises(ValidationError):
        subs.renew(db, sub.id, fan.id, RenewalData(payment_status="refunded"), now=now)


def test_renew_pending_subscription_conflicts(db, make_user, make_subscription):
    fan = make_user()
    creator = make_user()
    sub = make_subscription(fan, creator, status="pending")
    old_expiry = sub.expires_at

    with pytest.raises(ConflictError):
        subs.renew(db, sub.id, fan.id, RenewalData(payment_status="failed"))

    db.refresh(sub)
    assert sub.status == "pending"
    assert sub.expires_at == old_expiry
    assert db.query(models.SubscriptionPayment).count() == 0
