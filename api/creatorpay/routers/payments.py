# api/creatorpay/routers/payments.py
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..db import get_db
from ..deps.current_user import current_user
from ..models import User
from ..schemas import CheckPaymentIn, CreatePaymentIn, CreatePaymentOut, PaymentStatusOut, PriceOut
from ..services.novypay import NovyPayClient, get_gateway
from ..services.payments import (
    PaymentContact,
    get_payment_details,
    reconcile_payment,
    start_subscription_payment,
)
from ..services.price_quote import get_xion_price

router = APIRouter(prefix="/api/subscriptions", tags=["payments"])
price_router = APIRouter(prefix="/api", tags=["payments"])


@router.post("/create-payment", response_model=CreatePaymentOut)
def create_payment(
    payload: CreatePaymentIn,
    db: Session = Depends(get_db),
    viewer: User = Depends(current_user),
    gateway: NovyPayClient = Depends(get_gateway),
):
    phone = payload.user_phone
    address = payload.user_address
    contact = PaymentContact(
        email=viewer.email,
        fullname=viewer.username,
        phone_country_code=phone.country_code if phone else "+1",
        phone_number=phone.number if phone else "",
        address_line1=address.line1 if address else "",
        city=address.city if address else "",
        country=address.country if address else "",
    )
    started = start_subscription_payment(
        db,
        gateway,
        creator_wallet=payload.creator_wallet_address,
        subscriber_wallet=viewer.wallet_address,
        plan_type=payload.type,
        amount=payload.amount,
        currency=payload.currency,
        token_type=payload.token_type,
        contact=contact,
    )
    return CreatePaymentOut(
        subscription_id=started.subscription_id,
        payment_url=started.payment_url,
        payment_reference=started.payment_reference,
    )


@router.post("/check-payment", response_model=PaymentStatusOut)
def check_payment(
    payload: CheckPaymentIn,
    db: Session = Depends(get_db),
    gateway: NovyPayClient = Depends(get_gateway),
):
    return reconcile_payment(db, gateway, payload.reference)


@router.get("/check-payment")
def payment_details(reference: str = Query(..., min_length=1), db: Session = Depends(get_db)):
    return get_payment_details(db, reference)


@price_router.get("/xion-price", response_model=PriceOut)
def xion_price():
    return PriceOut(price=get_xion_price())
