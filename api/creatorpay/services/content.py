# api/creatorpay/services/content.py
from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy.orm import Session

from .. import crud
from ..errors import ForbiddenError, NotFoundError, ValidationError
from ..util import utcnow
from . import notifications
from .content_access import CONTENT_MODELS, ContentKind, ContentRef

logger = logging.getLogger(__name__)

# per-kind optional columns accepted on create
_KIND_FIELDS = {
    ContentKind.article: ("body",),
    ContentKind.video: ("media_url", "duration_seconds"),
    ContentKind.audio: ("media_url", "duration_seconds"),
}


def create_content(
    db: Session,
    owner_id: int,
    kind: ContentKind,
    *,
    title: str,
    description: str | None = None,
    is_premium: bool = False,
    published: bool = False,
    **extra,
) -> tuple[ContentRef, Optional[notifications.NotificationReport]]:
    if not (title or "").strip():
        raise ValidationError("title is required")

    fields = {k: v for k, v in extra.items() if k in _KIND_FIELDS[kind] and v is not None}
    row = CONTENT_MODELS[kind](
        user_id=owner_id,
        title=title.strip(),
        description=description,
        is_premium=is_premium,
        published=published,
        **fields,
    )
    db.add(row)
    crud.commit(db)
    db.refresh(row)

    content = ContentRef.from_row(kind, row)
    report = notifications.notify_new_content(db, owner_id, content) if published else None
    return content, report


def set_published(
    db: Session,
    owner_id: int,
    kind: ContentKind,
    content_id: int,
    *,
    published: bool = True,
    is_premium: bool | None = None,
) -> tuple[ContentRef, Optional[notifications.NotificationReport]]:
    """
    Owner-only flag update. Going from unpublished to published fans the
    item out to the creator's audience once.
    """
    row = db.get(CONTENT_MODELS[kind], content_id)
    if row is None:
        raise NotFoundError("content not found")
    if row.user_id != owner_id:
        raise ForbiddenError("only the owner can change this content")

    was_published = bool(row.published)
    row.published = published
    if is_premium is not None:
        row.is_premium = is_premium
    row.updated_at = utcnow()
    crud.commit(db)
    db.refresh(row)

    content = ContentRef.from_row(kind, row)
    report = None
    if published and not was_published:
        report = notifications.notify_new_content(db, owner_id, content)
    return content, report
