from unittest.mock import MagicMock, patch

import pytest
import requests

from creatorpay.errors import PaymentGatewayError
from creatorpay.services import price_quote
from creatorpay.utils import cache


def _resp(body):
    resp = MagicMock()
    resp.json.return_value = body
    resp.raise_for_status.return_value = None
    return resp


def test_price_is_cached():
    with patch.object(price_quote.requests, "get", return_value=_resp({"xion-2": {"usd": 1.23}})) as get:
        assert price_quote.get_xion_price() == 1.23
        assert price_quote.get_xion_price() == 1.23
    assert get.call_count == 1
    assert get.call_args.kwargs["params"] == {"ids": "xion-2", "vs_currencies": "usd"}


def test_expired_cache_refetches():
    cache.set_json(price_quote.CACHE_KEY, 0.5, ttl_sec=-1)
    with patch.object(price_quote.requests, "get", return_value=_resp({"xion-2": {"usd": 2.0}})) as get:
        assert price_quote.get_xion_price() == 2.0
    get.assert_called_once()


@pytest.mark.parametrize(
    "side_effect,body",
    [
        (requests.Timeout("slow"), None),
        (None, {}),
        (None, {"xion-2": {}}),
    ],
)
def test_price_failures_raise_gateway_error(side_effect, body):
    kwargs = {"side_effect": side_effect} if side_effect else {"return_value": _resp(body)}
    with patch.object(price_quote.requests, "get", **kwargs):
        with pytest.raises(PaymentGatewayError):
            price_quote.get_xion_price()
    # failures are not cached
    assert cache.get_json(price_quote.CACHE_KEY) is None
