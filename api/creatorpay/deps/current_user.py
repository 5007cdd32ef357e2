# api/creatorpay/deps/current_user.py
from typing import Optional

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.orm import Session

from .. import crud
from ..db import get_db
from ..models import User


def _normalize(wallet: Optional[str]) -> Optional[str]:
    wallet = (wallet or "").strip()
    return wallet or None


def current_user(
    db: Session = Depends(get_db),
    x_wallet_address: Optional[str] = Header(default=None),
) -> User:
    """
    The viewer for this request, resolved from the wallet address the
    wallet-auth layer forwards. A first-time wallet gets a user row.
    """
    wallet = _normalize(x_wallet_address)
    if not wallet:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing wallet address")
    return crud.get_or_create_user_by_wallet(db, wallet)


def optional_user(
    db: Session = Depends(get_db),
    x_wallet_address: Optional[str] = Header(default=None),
) -> Optional[User]:
    """Soft variant: anonymous viewers get None and no row is created."""
    wallet = _normalize(x_wallet_address)
    if not wallet:
        return None
    return crud.get_user_by_wallet(db, wallet)
