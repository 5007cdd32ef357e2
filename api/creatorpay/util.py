import math
from datetime import datetime, timezone

from dateutil.relativedelta import relativedelta

PLAN_TYPES = ("monthly", "yearly", "one-time")

# one-time purchases are modelled as "expires in a century"
ONE_TIME_YEARS = 100


def utcnow() -> datetime:
    """Naive UTC timestamp, matching the DateTime columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def plan_period(plan_type: str) -> relativedelta:
    if plan_type == "monthly":
        return relativedelta(months=1)
    if plan_type == "yearly":
        return relativedelta(years=1)
    if plan_type == "one-time":
        return relativedelta(years=ONE_TIME_YEARS)
    raise ValueError(f"unknown plan type: {plan_type!r}")


def compute_expiry(plan_type: str, start: datetime) -> datetime:
    return start + plan_period(plan_type)


def days_until(when: datetime, now: datetime) -> int:
    return max(0, math.ceil((when - now).total_seconds() / 86400))


def to_naive_utc(value: datetime | None) -> datetime | None:
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)
