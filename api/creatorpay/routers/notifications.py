# api/creatorpay/routers/notifications.py
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..db import get_db
from ..deps.current_user import current_user
from ..models import User
from ..schemas import MarkReadIn, NotificationListOut, OkOut
from ..services import notifications as notif

router = APIRouter(prefix="/api/notifications", tags=["notifications"])


@router.get("", response_model=NotificationListOut)
def my_notifications(
    limit: int = Query(notif.DEFAULT_INBOX_LIMIT, ge=1, le=100),
    db: Session = Depends(get_db),
    viewer: User = Depends(current_user),
):
    return {"notifications": notif.list_notifications(db, viewer.id, limit)}


@router.patch("", response_model=OkOut)
def mark_notifications_read(
    payload: MarkReadIn,
    db: Session = Depends(get_db),
    viewer: User = Depends(current_user),
):
    updated = notif.mark_read(db, viewer.id, payload.ids)
    return OkOut(message="Notifications marked as read", updated=updated)
