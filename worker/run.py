# worker/run.py
"""
Background worker: expiry reminders and (optionally) the lapse sweep.

    python -m worker.run          # loop every WORKER_INTERVAL_SECONDS
    python -m worker.run --once   # single tick, e.g. from cron
"""
import argparse
import logging
import time

from creatorpay.db import SessionLocal
from creatorpay.logging_config import configure_logging
from creatorpay.services.notifications import notify_expiring_subscriptions
from creatorpay.services.subscriptions import expire_lapsed_subscriptions
from creatorpay.settings import settings

logger = logging.getLogger("worker")


def tick() -> dict:
    db = SessionLocal()
    try:
        report = notify_expiring_subscriptions(db, settings.EXPIRY_NOTICE_DAYS)
        expired = expire_lapsed_subscriptions(db) if settings.WORKER_EXPIRE_LAPSED else 0
    finally:
        db.close()

    logger.info(
        "[worker] expiry notices sent=%s failed=%s skipped=%s, expired=%s",
        report.sent, report.failed, report.skipped, expired,
        extra={"sent": report.sent, "failed": report.failed, "skipped": report.skipped},
    )
    return {"notices": report.as_dict(), "expired": expired}


def main(argv=None) -> None:
    parser = argparse.ArgumentParser(description="CreatorPay background worker")
    parser.add_argument("--once", action="store_true", help="run a single tick and exit")
    args = parser.parse_args(argv)

    configure_logging()
    while True:
        try:
            tick()
        except Exception:
            logger.exception("worker error")
        if args.once:
            return
        time.sleep(settings.WORKER_INTERVAL_SECONDS)


if __name__ == "__main__":
    main()
