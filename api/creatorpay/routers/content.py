# api/creatorpay/routers/content.py
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..db import get_db
from ..deps.current_user import current_user, optional_user
from ..models import User
from ..schemas import AccessDecisionOut, ContentIn, ContentOut, PublishIn
from ..services import content as content_service
from ..services.content_access import ContentKind, ContentRef, load_content, resolve_access

router = APIRouter(prefix="/api/content", tags=["content"])


def _out(content: ContentRef, report=None) -> ContentOut:
    return ContentOut(
        id=content.id,
        kind=content.kind.value,
        owner_id=content.owner_id,
        title=content.title,
        is_premium=content.is_premium,
        is_published=content.is_published,
        created_at=content.created_at,
        notified=report.sent if report else None,
    )


@router.post("/{kind}", response_model=ContentOut, status_code=201)
def create_content(
    kind: str,
    payload: ContentIn,
    db: Session = Depends(get_db),
    viewer: User = Depends(current_user),
):
    content, report = content_service.create_content(
        db,
        viewer.id,
        ContentKind.parse(kind),
        title=payload.title,
        description=payload.description,
        is_premium=payload.is_premium,
        published=payload.published,
        body=payload.body,
        media_url=payload.media_url,
        duration_seconds=payload.duration_seconds,
    )
    return _out(content, report)


@router.get("/{kind}/{content_id}/access", response_model=AccessDecisionOut)
def get_content_access(
    kind: str,
    content_id: int,
    db: Session = Depends(get_db),
    viewer: Optional[User] = Depends(optional_user),
):
    content = load_content(db, ContentKind.parse(kind), content_id)
    return resolve_access(db, viewer.id if viewer else None, content).as_dict()


@router.patch("/{kind}/{content_id}/publish", response_model=ContentOut)
def publish_content(
    kind: str,
    content_id: int,
    payload: PublishIn,
    db: Session = Depends(get_db),
    viewer: User = Depends(current_user),
):
    content, report = content_service.set_published(
        db,
        viewer.id,
        ContentKind.parse(kind),
        content_id,
        published=payload.published,
        is_premium=payload.is_premium,
    )
    return _out(content, report)
