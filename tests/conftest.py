"""
Pytest configuration for the CreatorPay tests.
Every test gets its own in-memory SQLite database.
"""

import os

# must be set before creatorpay.settings is imported
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["ENV"] = "test"
os.environ["LOG_JSON"] = "0"
os.environ["NOVYPAY_API_KEY"] = "test-key"

from decimal import Decimal
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from creatorpay import models
from creatorpay.db import Base, get_db
from creatorpay.services.content_access import ContentKind, ContentRef, CONTENT_MODELS
from creatorpay.services.novypay import NovyPayClient, PaymentInit, PaymentVerification, get_gateway
from creatorpay.util import compute_expiry, utcnow
from creatorpay.utils import cache


@pytest.fixture
def engine():
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def db(engine):
    session = sessionmaker(bind=engine, autocommit=False, autoflush=False)()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(autouse=True)
def _clear_cache():
    cache.clear()
    yield
    cache.clear()


@pytest.fixture
def make_user(db):
    counter = {"n": 0}

    def _make(username=None, wallet=None, email=None):
        counter["n"] += 1
        n = counter["n"]
        user = models.User(
            wallet_address=wallet or f"xion1wallet{n:04d}",
            username=username or f"user{n}",
            email=email or f"user{n}@example.com",
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make


@pytest.fixture
def make_content(db):
    def _make(owner, kind=ContentKind.article, *, is_premium=False, published=True, title="Hello"):
        row = CONTENT_MODELS[kind](
            user_id=owner.id, title=title, is_premium=is_premium, published=published,
        )
        db.add(row)
        db.commit()
        db.refresh(row)
        return ContentRef.from_row(kind, row)

    return _make


@pytest.fixture
def make_subscription(db):
    """Insert a subscription row directly, bypassing the service checks."""

    def _make(subscriber, creator, *, plan_type="monthly", status="active",
              started_at=None, expires_at=None, amount="9.99"):
        started_at = started_at or utcnow()
        sub = models.Subscription(
            subscriber_id=subscriber.id,
            creator_id=creator.id,
            type=plan_type,
            status=status,
            amount=Decimal(amount),
            currency="USD",
            started_at=started_at,
            expires_at=expires_at or compute_expiry(plan_type, started_at),
        )
        db.add(sub)
        db.commit()
        db.refresh(sub)
        return sub

    return _make


@pytest.fixture
def gateway():
    gw = MagicMock(spec=NovyPayClient)
    gw.initialize_payment.return_value = PaymentInit(
        ok=True, reference="NP-REF-1", redirect_url="https://pay.example/NP-REF-1",
    )
    gw.verify_payment.return_value = PaymentVerification(
        ok=True, payment_status="success", amount=9.99, currency="USD",
        token_type="XION", reference="NP-REF-1",
    )
    return gw


@pytest.fixture
def client(engine, gateway):
    from creatorpay.main import app

    TestingSession = sessionmaker(bind=engine, autocommit=False, autoflush=False)

    def _get_db():
        session = TestingSession()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_gateway] = lambda: gateway
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def as_user():
    """Request headers identifying the viewer by wallet address."""

    def _headers(user_or_wallet):
        wallet = getattr(user_or_wallet, "wallet_address", user_or_wallet)
        return {"X-Wallet-Address": wallet}

    return _headers
