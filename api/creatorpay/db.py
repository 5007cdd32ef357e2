# api/creatorpay/db.py
import logging
from urllib.parse import urlparse

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base

from .settings import settings

logger = logging.getLogger(__name__)

DATABASE_URL = settings.database_url()


def _connect_args(url: str) -> dict:
    parsed = urlparse(url)
    if parsed.scheme.startswith("sqlite"):
        return {"check_same_thread": False}

    # Remote Postgres (not localhost) requires SSL
    if parsed.hostname not in {"localhost", "127.0.0.1", None}:
        return {"sslmode": "require"}
    return {}


def make_engine(url: str):
    return create_engine(url, pool_pre_ping=True, connect_args=_connect_args(url))


engine = make_engine(DATABASE_URL)
SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)
Base = declarative_base()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
