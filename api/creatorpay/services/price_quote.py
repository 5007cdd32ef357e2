# api/creatorpay/services/price_quote.py
from __future__ import annotations

import logging

import requests

from ..errors import PaymentGatewayError
from ..settings import settings
from ..utils.cache import cache_json

logger = logging.getLogger(__name__)

XION_COIN_ID = "xion-2"
CACHE_KEY = "price:xion:usd"


def _fetch_xion_price() -> float:
    try:
        resp = requests.get(
            settings.COINGECKO_API_URL,
            params={"ids": XION_COIN_ID, "vs_currencies": "usd"},
            headers={
                "Accept": "application/json",
                "x-cg-demo-api-key": settings.COINGECKO_API_KEY,
            },
            timeout=10,
        )
        resp.raise_for_status()
        price = (resp.json().get(XION_COIN_ID) or {}).get("usd")
    except (requests.RequestException, ValueError) as e:
        logger.warning("XION price fetch failed: %s", e)
        raise PaymentGatewayError("failed to fetch XION price") from e

    if not price:
        raise PaymentGatewayError("XION price not found in response")
    return float(price)


def get_xion_price() -> float:
    """USD price of XION, cached for PRICE_CACHE_TTL seconds."""
    return cache_json(CACHE_KEY, settings.PRICE_CACHE_TTL, _fetch_xion_price)
