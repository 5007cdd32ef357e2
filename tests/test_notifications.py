from datetime import timedelta
from unittest.mock import patch

import pytest
from sqlalchemy.exc import OperationalError

from creatorpay import models
from creatorpay.errors import ValidationError
from creatorpay.services import notifications as notif
from creatorpay.services import subscriptions as subs
from creatorpay.util import utcnow


def _inbox(db, user):
    return db.query(models.Notification).filter_by(user_id=user.id).all()


# ---------- new content fan-out ----------

def test_new_content_reaches_followers_and_subscribers_once(db, make_user, make_content, make_subscription):
    creator = make_user()
    follower = make_user()
    payer = make_user()
    both = make_user()
    stranger = make_user()

    subs.follow(db, follower.id, creator.id)
    subs.follow(db, both.id, creator.id)
    make_subscription(payer, creator)
    make_subscription(both, creator)

    item = make_content(creator, is_premium=True, title="Deep dive")
    report = notif.notify_new_content(db, creator.id, item)

    assert report.sent == 3
    assert report.failed == 0
    for user in (follower, payer, both):
        [note] = _inbox(db, user)
        assert note.type == "new_content"
        assert note.data["content_id"] == item.id
        assert "Deep dive" in note.message
    assert _inbox(db, stranger) == []
    assert _inbox(db, creator) == []


def test_new_content_skips_inactive_follows(db, make_user, make_content):
    creator = make_user()
    fan = make_user()
    subs.follow(db, fan.id, creator.id)
    subs.unfollow(db, fan.id, creator.id)

    report = notif.notify_new_content(db, creator.id, make_content(creator))
    assert report.sent == 0
    assert _inbox(db, fan) == []


def test_fan_out_is_best_effort(db, make_user, make_content):
    creator = make_user()
    fans = [make_user() for _ in range(3)]
    for fan in fans:
        subs.follow(db, fan.id, creator.id)
    item = make_content(creator)

    real_commit = db.commit
    calls = {"n": 0}

    def flaky_commit():
        calls["n"] += 1
        if calls["n"] == 2:
            raise OperationalError("INSERT", {}, Exception("disk I/O error"))
        return real_commit()

    with patch.object(db, "commit", side_effect=flaky_commit):
        report = notif.notify_new_content(db, creator.id, item)

    assert report.sent == 2
    assert report.failed == 1
    assert len(report.errors) == 1
    assert db.query(models.Notification).count() == 2


# ---------- expiry sweep ----------

def test_expiring_subscription_warns_both_sides(db, make_user, make_subscription):
    creator = make_user(username="maker")
    fan = make_user(username="fan")
    now = utcnow()
    sub = make_subscription(fan, creator, started_at=now, expires_at=now + timedelta(days=3))

    report = notif.notify_expiring_subscriptions(db, 7, now=now)
    assert report.sent == 2

    [to_fan] = _inbox(db, fan)
    assert to_fan.type == "subscription_expiring"
    assert "maker" in to_fan.message
    assert "3 days" in to_fan.message
    assert to_fan.data["subscription_id"] == sub.id
    assert to_fan.data["days_until_expiry"] == 3

    [to_creator] = _inbox(db, creator)
    assert to_creator.type == "subscriber_expiring"
    assert "fan" in to_creator.message


def test_expiry_sweep_is_idempotent(db, make_user, make_subscription):
    creator = make_user()
    fan = make_user()
    now = utcnow()
    make_subscription(fan, creator, started_at=now, expires_at=now + timedelta(days=1))

    first = notif.notify_expiring_subscriptions(db, 7, now=now)
    second = notif.notify_expiring_subscriptions(db, 7, now=now + timedelta(hours=6))

    assert first.sent == 2
    assert second.sent == 0
    assert second.skipped == 2
    assert db.query(models.Notification).count() == 2


def test_expiry_sweep_window(db, make_user, make_subscription):
    creator = make_user()
    now = utcnow()
    inside = make_user()
    outside = make_user()
    lapsed = make_user()
    cancelled = make_user()
    make_subscription(inside, creator, started_at=now, expires_at=now + timedelta(days=6))
    make_subscription(outside, creator, started_at=now, expires_at=now + timedelta(days=20))
    make_subscription(lapsed, creator, started_at=now, expires_at=now - timedelta(days=1))
    make_subscription(cancelled, creator, status="cancelled", started_at=now, expires_at=now + timedelta(days=2))

    notif.notify_expiring_subscriptions(db, 7, now=now)

    assert len(_inbox(db, inside)) == 1
    for user in (outside, lapsed, cancelled):
        assert _inbox(db, user) == []


def test_expiry_sweep_rejects_negative_window(db):
    with pytest.raises(ValidationError):
        notif.notify_expiring_subscriptions(db, -1)


def test_expiry_key_changes_after_renewal(db, make_user, make_subscription):
    creator = make_user()
    fan = make_user()
    now = utcnow()
    sub = make_subscription(fan, creator, started_at=now, expires_at=now + timedelta(days=2))

    notif.notify_expiring_subscriptions(db, 7, now=now)
    subs.renew(db, sub.id, fan.id, now=now)

    later = sub.expires_at - timedelta(days=2)
    report = notif.notify_expiring_subscriptions(db, 7, now=later)
    assert report.sent == 2


# ---------- inbox ----------

def test_inbox_and_mark_read(db, make_user):
    me = make_user()
    other = make_user()
    for i in range(3):
        notif.create_notification(db, me.id, "new_content", f"item {i}")
    theirs = notif.create_notification(db, other.id, "new_content", "not yours")

    inbox = notif.list_notifications(db, me.id, limit=2)
    assert len(inbox) == 2
    assert all(n.user_id == me.id for n in inbox)

    ids = [n.id for n in inbox] + [theirs.id]
    assert notif.mark_read(db, me.id, ids) == 2
    db.refresh(theirs)
    assert theirs.is_read is False

    with pytest.raises(ValidationError):
        notif.mark_read(db, me.id, [])


def test_dedupe_lookup_failure_is_logged(db, caplog):
    boom = OperationalError("SELECT", {}, Exception("database is locked"))
    with patch.object(db, "query", side_effect=boom), caplog.at_level("WARNING"):
        assert notif._already_sent(db, "subscription_expiring:1:2026-02-01") is False
    assert "dedupe lookup failed" in caplog.text
