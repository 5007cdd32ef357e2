# api/creatorpay/services/content_access.py
from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from .. import crud
from ..errors import NotFoundError, ValidationError
from ..models import Article, Audio, Subscription, Video
from ..util import utcnow

REASON_NOT_PUBLISHED = "not published"
REASON_SUBSCRIPTION_REQUIRED = "premium subscription required"
REASON_SUBSCRIPTION_EXPIRED = "subscription expired"


class ContentKind(str, enum.Enum):
    article = "article"
    video = "video"
    audio = "audio"

    @classmethod
    def parse(cls, value: str) -> "ContentKind":
        try:
            return cls(value)
        except ValueError:
            raise ValidationError(f"invalid content type: {value!r}") from None


CONTENT_MODELS = {
    ContentKind.article: Article,
    ContentKind.video: Video,
    ContentKind.audio: Audio,
}


@dataclass(frozen=True)
class ContentRef:
    """Kind-agnostic view of a content row: the only fields access depends on."""

    id: int
    kind: ContentKind
    owner_id: int
    is_premium: bool
    is_published: bool
    title: str = ""
    created_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, kind: ContentKind, row) -> "ContentRef":
        return cls(
            id=row.id,
            kind=kind,
            owner_id=row.user_id,
            is_premium=bool(row.is_premium),
            is_published=bool(row.published),
            title=row.title or "",
            created_at=row.created_at,
        )


@dataclass(frozen=True)
class AccessDecision:
    has_access: bool
    is_premium: bool
    reason: Optional[str] = None

    def as_dict(self) -> dict:
        out = {"has_access": self.has_access, "is_premium": self.is_premium}
        if self.reason:
            out["reason"] = self.reason
        return out


# ---------- typed accessors ----------

@crud.store_call
def _load_row(db: Session, kind: ContentKind, content_id: int):
    return db.get(CONTENT_MODELS[kind], content_id)


def get_article(db: Session, content_id: int) -> Optional[ContentRef]:
    row = _load_row(db, ContentKind.article, content_id)
    return ContentRef.from_row(ContentKind.article, row) if row else None


def get_video(db: Session, content_id: int) -> Optional[ContentRef]:
    row = _load_row(db, ContentKind.video, content_id)
    return ContentRef.from_row(ContentKind.video, row) if row else None


def get_audio(db: Session, content_id: int) -> Optional[ContentRef]:
    row = _load_row(db, ContentKind.audio, content_id)
    return ContentRef.from_row(ContentKind.audio, row) if row else None


_ACCESSORS = {
    ContentKind.article: get_article,
    ContentKind.video: get_video,
    ContentKind.audio: get_audio,
}


def load_content(db: Session, kind: ContentKind, content_id: int) -> ContentRef:
    content = _ACCESSORS[kind](db, content_id)
    if content is None:
        raise NotFoundError("content not found")
    return content


# ---------- decision ----------

def decide_access(
    content: ContentRef,
    viewer_id: int | None,
    subscription: Subscription | None,
    now: datetime,
) -> AccessDecision:
    """
    Pure decision, first match wins:
      1. unpublished -> only the owner
      2. free        -> everyone
      3. premium     -> an active subscription whose expires_at is not past

    An active row past its expiry is treated as expired here without being
    written back; the stored status only changes through the lapse sweep.
    """
    if not content.is_published:
        if viewer_id is not None and viewer_id == content.owner_id:
            return AccessDecision(True, content.is_premium)
        return AccessDecision(False, content.is_premium, REASON_NOT_PUBLISHED)

    if not content.is_premium:
        return AccessDecision(True, False)

    if subscription is None or subscription.status != "active":
        return AccessDecision(False, True, REASON_SUBSCRIPTION_REQUIRED)

    if subscription.expires_at is not None and subscription.expires_at < now:
        return AccessDecision(False, True, REASON_SUBSCRIPTION_EXPIRED)

    return AccessDecision(True, True)


def resolve_access(
    db: Session,
    viewer_id: int | None,
    content: ContentRef,
    creator_id: int | None = None,
    *,
    now: datetime | None = None,
) -> AccessDecision:
    """
    Read-only: looks up the viewer's active subscription only when it matters.

    Access is always judged against the content owner; a caller-supplied
    creator_id is only accepted when it names that owner.
    """
    if creator_id is not None and creator_id != content.owner_id:
        raise ValidationError("creator_id does not match the content owner")
    creator_id = content.owner_id

    subscription = None
    if content.is_published and content.is_premium and viewer_id is not None:
        subscription = crud.get_active_subscription(db, viewer_id, creator_id)

    return decide_access(content, viewer_id, subscription, now or utcnow())


def check_content_access(
    db: Session,
    viewer_id: int | None,
    kind: ContentKind | str,
    content_id: int,
    creator_id: int | None = None,
    *,
    now: datetime | None = None,
) -> AccessDecision:
    if not isinstance(kind, ContentKind):
        kind = ContentKind.parse(kind)
    content = load_content(db, kind, content_id)
    return resolve_access(db, viewer_id, content, creator_id, now=now)
