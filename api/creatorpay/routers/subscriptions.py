# api/creatorpay/routers/subscriptions.py
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..db import get_db
from ..deps.current_user import current_user, optional_user
from ..errors import ForbiddenError
from ..models import User
from ..schemas import (
    AccessDecisionOut,
    AnalyticsOut,
    CheckAccessIn,
    CreatorRef,
    OkOut,
    RelationshipOut,
    RelationshipStatusOut,
    RenewIn,
    SubscribeIn,
    SubscriptionDetailOut,
    SubscriptionOut,
    SubscriptionPageOut,
)
from ..services import subscriptions as subs
from ..services.content_access import check_content_access

router = APIRouter(prefix="/api/subscriptions", tags=["subscriptions"])


# =====================================================================
#   ACCESS
# =====================================================================

@router.post("/check-access", response_model=AccessDecisionOut)
def check_access(
    payload: CheckAccessIn,
    db: Session = Depends(get_db),
    viewer: Optional[User] = Depends(optional_user),
):
    decision = check_content_access(
        db,
        viewer.id if viewer else None,
        payload.content_type,
        payload.content_id,
        payload.creator_id,
    )
    return decision.as_dict()


# =====================================================================
#   PAID SUBSCRIPTIONS
# =====================================================================

@router.get("", response_model=SubscriptionPageOut)
def list_my_subscriptions(
    status: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
    viewer: User = Depends(current_user),
):
    return subs.list_subscriptions(db, viewer.id, status=status, page=page, limit=limit)


@router.post("", response_model=SubscriptionOut, status_code=201)
def create_subscription(
    payload: SubscribeIn,
    db: Session = Depends(get_db),
    viewer: User = Depends(current_user),
):
    return subs.subscribe(
        db,
        viewer.id,
        payload.creator_id,
        payload.type,
        payload.amount,
        payload.currency,
        payload.notes,
    )


@router.post("/cancel", response_model=OkOut)
def cancel_subscription(
    payload: CreatorRef,
    db: Session = Depends(get_db),
    viewer: User = Depends(current_user),
):
    updated = subs.cancel(db, viewer.id, payload.creator_id)
    return OkOut(
        message="Successfully cancelled subscription" if updated else "No active subscription",
        updated=updated,
    )


@router.post("/status", response_model=RelationshipStatusOut)
def relationship_status(
    payload: CreatorRef,
    db: Session = Depends(get_db),
    viewer: User = Depends(current_user),
):
    return subs.get_relationship_status(db, viewer.id, payload.creator_id)


# =====================================================================
#   FREE FOLLOWS
# =====================================================================

@router.post("/follow", response_model=OkOut)
def follow_creator(
    payload: CreatorRef,
    db: Session = Depends(get_db),
    viewer: User = Depends(current_user),
):
    subs.follow(db, viewer.id, payload.creator_id)
    return OkOut(message="Now following creator", updated=1)


@router.post("/unfollow", response_model=OkOut)
def unfollow_creator(
    payload: CreatorRef,
    db: Session = Depends(get_db),
    viewer: User = Depends(current_user),
):
    updated = subs.unfollow(db, viewer.id, payload.creator_id)
    return OkOut(message="Unfollowed creator" if updated else "Not following", updated=updated)


# =====================================================================
#   LISTINGS / ANALYTICS
# =====================================================================

@router.get("/subscribers", response_model=list[RelationshipOut])
def my_subscribers(db: Session = Depends(get_db), viewer: User = Depends(current_user)):
    return subs.list_subscribers(db, viewer.id)


@router.get("/user-subscriptions", response_model=list[RelationshipOut])
def my_creators(db: Session = Depends(get_db), viewer: User = Depends(current_user)):
    return subs.list_user_subscriptions(db, viewer.id)


@router.get("/analytics", response_model=AnalyticsOut)
def my_analytics(db: Session = Depends(get_db), viewer: User = Depends(current_user)):
    return subs.subscription_analytics(db, viewer.id)


# =====================================================================
#   SINGLE SUBSCRIPTION
# =====================================================================

@router.get("/{subscription_id:int}", response_model=SubscriptionDetailOut)
def get_subscription(
    subscription_id: int,
    db: Session = Depends(get_db),
    viewer: User = Depends(current_user),
):
    sub = subs.get_subscription(db, subscription_id)
    if viewer.id not in (sub.subscriber_id, sub.creator_id):
        raise ForbiddenError("not a party to this subscription")
    return sub


@router.put("/{subscription_id:int}", response_model=SubscriptionOut)
def renew_subscription(
    subscription_id: int,
    payload: RenewIn,
    db: Session = Depends(get_db),
    viewer: User = Depends(current_user),
):
    renewal = subs.RenewalData(**payload.model_dump())
    return subs.renew(db, subscription_id, viewer.id, renewal)
