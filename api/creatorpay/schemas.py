# api/creatorpay/schemas.py
from datetime import datetime
from decimal import Decimal
from typing import Literal, Optional

from pydantic import BaseModel, Field

PlanType = Literal["monthly", "yearly", "one-time", "one_time"]
TokenType = Literal["USDC", "XION"]


# ---- Users ----
class UserOut(BaseModel):
    id: int
    wallet_address: str
    username: Optional[str] = None
    avatar_url: Optional[str] = None

    class Config:
        from_attributes = True


# ---- Access ----
class CheckAccessIn(BaseModel):
    content_id: int
    content_type: str                 # article|video|audio
    creator_id: Optional[int] = None


class AccessDecisionOut(BaseModel):
    has_access: bool
    is_premium: bool
    reason: Optional[str] = None


# ---- Subscriptions ----
class SubscribeIn(BaseModel):
    creator_id: int
    type: PlanType = "monthly"
    amount: Decimal
    currency: str = "USD"
    notes: Optional[str] = None


class CreatorRef(BaseModel):
    creator_id: int


class RenewIn(BaseModel):
    current_period_start: Optional[datetime] = None
    current_period_end: Optional[datetime] = None
    amount: Optional[Decimal] = None
    currency: Optional[str] = None
    payment_method: Optional[str] = None
    payment_status: str = "success"
    payment_reference: Optional[str] = None


class PaymentOut(BaseModel):
    id: int
    amount: Decimal
    currency: str
    status: str
    payment_method: Optional[str] = None
    token_type: Optional[str] = None
    payment_reference: Optional[str] = None
    payment_date: Optional[datetime] = None

    class Config:
        from_attributes = True


class SubscriptionOut(BaseModel):
    id: int
    subscriber_id: int
    creator_id: int
    type: str
    status: str
    amount: Decimal
    currency: str
    notes: Optional[str] = None
    started_at: Optional[datetime] = None
    expires_at: datetime
    cancelled_at: Optional[datetime] = None
    current_period_start: Optional[datetime] = None
    current_period_end: Optional[datetime] = None
    last_renewed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class SubscriptionDetailOut(SubscriptionOut):
    payments: list[PaymentOut] = Field(default_factory=list)


class PaginationOut(BaseModel):
    total: int
    page: int
    limit: int
    total_pages: int


class SubscriptionPageOut(BaseModel):
    subscriptions: list[SubscriptionDetailOut]
    pagination: PaginationOut


class RelationshipStatusOut(BaseModel):
    is_following: bool
    is_paid_subscriber: bool
    subscription_type: Optional[str] = None
    expires_at: Optional[datetime] = None
    amount: Optional[Decimal] = None
    currency: Optional[str] = None


class RelationshipOut(BaseModel):
    id: int
    username: Optional[str] = None
    wallet_address: Optional[str] = None
    avatar_url: Optional[str] = None
    subscribed_at: Optional[datetime] = None
    subscription_type: str
    subscription_amount: Decimal
    subscription_currency: str
    subscription_expires_at: datetime


class AnalyticsOut(BaseModel):
    total_followers: int
    paid_subscribers: int
    total_revenue: Decimal
    creators_followed: int
    paid_subscriptions: int
    total_spent: Decimal


class OkOut(BaseModel):
    success: bool = True
    message: Optional[str] = None
    updated: int = 0


# ---- Payments ----
class PhoneIn(BaseModel):
    country_code: str = "+1"
    number: str = ""


class AddressIn(BaseModel):
    line1: str = ""
    city: str = ""
    country: str = ""


class CreatePaymentIn(BaseModel):
    creator_wallet_address: str
    type: PlanType
    amount: Decimal
    currency: str = "USD"
    token_type: TokenType = "XION"
    user_phone: Optional[PhoneIn] = None
    user_address: Optional[AddressIn] = None


class CreatePaymentOut(BaseModel):
    status: str = "success"
    subscription_id: int
    payment_url: Optional[str] = None
    payment_reference: str
    message: str = "Payment initialized successfully"


class CheckPaymentIn(BaseModel):
    reference: str


class PaymentStatusOut(BaseModel):
    status: str
    reference: Optional[str] = None
    amount: Optional[Decimal] = None
    currency: Optional[str] = None
    token_type: Optional[str] = None


class PriceOut(BaseModel):
    price: float


# ---- Content ----
class ContentIn(BaseModel):
    title: str
    description: Optional[str] = None
    is_premium: bool = False
    published: bool = False
    body: Optional[str] = None                 # article
    media_url: Optional[str] = None            # video / audio
    duration_seconds: Optional[int] = None


class PublishIn(BaseModel):
    published: bool = True
    is_premium: Optional[bool] = None


class ContentOut(BaseModel):
    id: int
    kind: str
    owner_id: int
    title: str
    is_premium: bool
    is_published: bool
    created_at: Optional[datetime] = None
    notified: Optional[int] = None


# ---- Notifications ----
class NotificationOut(BaseModel):
    id: int
    type: str
    message: str
    data: Optional[dict] = None
    is_read: bool
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class NotificationListOut(BaseModel):
    notifications: list[NotificationOut]


class MarkReadIn(BaseModel):
    ids: list[int]
