"""
Tests for the Binance REST client.

The HTTP session is a MagicMock; no network calls are made.
"""

from decimal import Decimal
from unittest.mock import MagicMock, patch
from urllib.parse import parse_qsl

import pytest
import requests

from bot.errors import ExchangeError
from bot.models.trade import Credentials
from bot.services.binance import BinanceService, format_notional
from bot.services.signer import sign

CREDENTIALS = Credentials(key="api-key", secret="api-secret")


def _response(status_code=200, json_data=None, text=""):
    response = MagicMock()
    response.status_code = status_code
    response.text = text
    if isinstance(json_data, Exception):
        response.json.side_effect = json_data
    else:
        response.json.return_value = json_data
    return response


@pytest.fixture
def session():
    return MagicMock()


@pytest.fixture
def client(session):
    return BinanceService(base_url="https://api.test", quote_asset="BRL", timeout=10, session=session)


class TestGetAccount:
    def test_signed_get_with_api_key_header_and_timeout(self, client, session):
        session.get.return_value = _response(json_data={"balances": []})

        with patch("bot.services.binance.time.time", return_value=1700000000.5):
            client.get_account(CREDENTIALS)

        url = session.get.call_args.args[0]
        kwargs = session.get.call_args.kwargs
        assert url.startswith("https://api.test/api/v3/account?")
        query = url.split("?", 1)[1]
        assert query == f"timestamp=1700000000500&signature={sign('api-secret', 'timestamp=1700000000500')}"
        assert kwargs["headers"] == {"X-MBX-APIKEY": "api-key"}
        assert kwargs["timeout"] == 10

    def test_parses_balances_as_decimals(self, client, session):
        session.get.return_value = _response(json_data={"balances": [
            {"asset": "BRL", "free": "150.25", "locked": "0.00"},
            {"asset": "BTC", "free": "0.00100000", "locked": "0.00"},
        ]})

        snapshot = client.get_account(CREDENTIALS)

        assert [b.asset for b in snapshot.balances] == ["BRL", "BTC"]
        assert snapshot.free_amount("BRL") == Decimal("150.25")

    def test_skips_malformed_entries(self, client, session):
        session.get.return_value = _response(json_data={"balances": [
            {"asset": "BRL", "free": "abc"},
            {"free": "1"},
            {"asset": "USD", "free": "10"},
        ]})

        snapshot = client.get_account(CREDENTIALS)

        assert [b.asset for b in snapshot.balances] == ["USD"]

    def test_non_2xx_is_classified_with_raw_body(self, client, session):
        session.get.return_value = _response(status_code=401, text='{"code":-2015,"msg":"Invalid API-key"}')

        with pytest.raises(ExchangeError) as exc_info:
            client.get_account(CREDENTIALS)

        assert exc_info.value.status_code == 401
        assert "Invalid API-key" in exc_info.value.raw_body
        session.get.return_value.json.assert_not_called()

    def test_transport_failure_is_not_retried(self, client, session):
        session.get.side_effect = requests.ConnectionError("boom")

        with pytest.raises(ExchangeError):
            client.get_account(CREDENTIALS)

        assert session.get.call_count == 1

    def test_undecodable_body(self, client, session):
        session.get.return_value = _response(json_data=ValueError("no json"), text="<html>")

        with pytest.raises(ExchangeError):
            client.get_account(CREDENTIALS)


class TestSubmitMarketBuy:
    def test_form_body_is_signed_as_transmitted(self, client, session):
        session.post.return_value = _response(json_data={"orderId": 42, "status": "FILLED"})

        client.submit_market_buy(CREDENTIALS, "btc", Decimal("100.5"))

        url = session.post.call_args.args[0]
        kwargs = session.post.call_args.kwargs
        body = kwargs["data"]
        unsigned, signature = body.rsplit("&signature=", 1)
        fields = parse_qsl(unsigned)

        assert url == "https://api.test/api/v3/order"
        assert signature == sign("api-secret", unsigned)
        assert [name for name, _ in fields] == ["symbol", "side", "type", "quoteOrderQty", "timestamp"]
        assert dict(fields)["symbol"] == "BTCBRL"
        assert dict(fields)["side"] == "BUY"
        assert dict(fields)["type"] == "MARKET"
        assert dict(fields)["quoteOrderQty"] == "100.50"
        assert kwargs["headers"]["Content-Type"] == "application/x-www-form-urlencoded"
        assert kwargs["headers"]["X-MBX-APIKEY"] == "api-key"
        assert kwargs["timeout"] == 10

    def test_lightweight_payload_is_accepted(self, client, session):
        session.post.return_value = _response(json_data={"orderId": 7})

        result = client.submit_market_buy(CREDENTIALS, "ETH", Decimal("20"))

        assert result.order_id == 7
        assert result.payload == {"orderId": 7}

    def test_rejected_order_carries_provider_body(self, client, session):
        session.post.return_value = _response(status_code=400, text='{"code":-1013,"msg":"Filter failure: NOTIONAL"}')

        with pytest.raises(ExchangeError) as exc_info:
            client.submit_market_buy(CREDENTIALS, "BTC", Decimal("1"))

        assert exc_info.value.status_code == 400
        assert "NOTIONAL" in exc_info.value.raw_body

    def test_timeout_is_not_retried(self, client, session):
        session.post.side_effect = requests.Timeout("slow")

        with pytest.raises(ExchangeError):
            client.submit_market_buy(CREDENTIALS, "BTC", Decimal("1"))

        assert session.post.call_count == 1


def test_format_notional_uses_two_decimals():
    assert format_notional(Decimal("100")) == "100.00"
    assert format_notional(Decimal("100.5")) == "100.50"


def test_format_notional_truncates_to_cents():
    assert format_notional(Decimal("100.005")) == "100.00"
    assert format_notional(Decimal("0.009")) == "0.00"
