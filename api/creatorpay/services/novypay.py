# api/creatorpay/services/novypay.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

import requests

from ..settings import settings

logger = logging.getLogger(__name__)

TOKEN_TYPES = ("USDC", "XION")


@dataclass(frozen=True)
class PaymentInit:
    ok: bool
    reference: Optional[str] = None
    redirect_url: Optional[str] = None
    error: Optional[str] = None


@dataclass(frozen=True)
class PaymentVerification:
    ok: bool
    payment_status: str = "pending"     # pending|success|failed|cancelled
    amount: Optional[float] = None
    currency: Optional[str] = None
    token_type: Optional[str] = None
    reference: Optional[str] = None
    error: Optional[str] = None


class NovyPayClient:
    """
    Thin HTTP client for the NovyPay wallet gateway.

    Never raises on gateway trouble: every call returns an ok/error result
    so the caller decides what a failed transfer means for its rows.
    """

    def __init__(
        self,
        base_url: str | None = None,
        api_key: str | None = None,
        timeout: float | None = None,
        session: requests.Session | None = None,
    ):
        self.base_url = (base_url or settings.NOVYPAY_BASE_URL).rstrip("/")
        self.api_key = settings.NOVYPAY_API_KEY if api_key is None else api_key
        self.timeout = timeout or settings.NOVYPAY_TIMEOUT
        self.session = session or requests.Session()

    def _headers(self) -> dict:
        return {"Content-Type": "application/json", "novypay-api-key": self.api_key}

    def initialize_payment(
        self,
        *,
        amount,
        currency: str,
        token_type: str,
        email: str,
        fullname: str,
        phone_country_code: str = "+1",
        phone_number: str = "",
        address_line1: str = "",
        city: str = "",
        country: str = "",
    ) -> PaymentInit:
        if not self.api_key:
            return PaymentInit(ok=False, error="NovyPay API key not configured")

        payload = {
            "amount": float(amount),
            "currency": currency,
            "token_type": token_type,
            "email": email,
            "fullname": fullname,
            "phone_country_code": phone_country_code,
            "phone_number": phone_number,
            "address_line1": address_line1,
            "city": city,
            "country": country,
        }
        try:
            resp = self.session.post(
                f"{self.base_url}/payments/combined/",
                headers=self._headers(),
                json=payload,
                timeout=self.timeout,
            )
            data = _json_or_empty(resp)
        except requests.RequestException as e:
            logger.warning("NovyPay initialize failed: %s", e)
            return PaymentInit(ok=False, error="Network error occurred")

        if not resp.ok:
            logger.warning("NovyPay initialize rejected: %s %s", resp.status_code, str(data)[:300])
            return PaymentInit(ok=False, error=data.get("error") or "Payment initialization failed")

        return PaymentInit(ok=True, reference=data.get("reference"), redirect_url=data.get("redirect_url"))

    def verify_payment(self, reference: str) -> PaymentVerification:
        if not self.api_key:
            return PaymentVerification(ok=False, error="NovyPay API key not configured")

        try:
            resp = self.session.get(
                f"{self.base_url}/payments/verify/{reference}",
                headers={"novypay-api-key": self.api_key},
                timeout=self.timeout,
            )
            data = _json_or_empty(resp)
        except requests.RequestException as e:
            logger.warning("NovyPay verify failed for %s: %s", reference, e, extra={"reference": reference})
            return PaymentVerification(ok=False, error="Network error occurred")

        if not resp.ok:
            return PaymentVerification(ok=False, error=data.get("error") or "Payment verification failed")

        return PaymentVerification(
            ok=True,
            payment_status=data.get("payment_status") or "pending",
            amount=data.get("amount"),
            currency=data.get("currency"),
            token_type=data.get("token_type"),
            reference=data.get("reference") or reference,
        )


def _json_or_empty(resp: requests.Response) -> dict:
    try:
        body = resp.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


def get_gateway() -> NovyPayClient:
    """FastAPI dependency; overridden in tests."""
    return NovyPayClient()
