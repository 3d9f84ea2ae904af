"""Shared fakes for the exchange and credential collaborators."""

import threading
import time
from decimal import Decimal

import pytest

from bot.errors import ConfigurationError, ExchangeError
from bot.models.trade import AccountSnapshot, Balance, Credentials, OrderResult
from bot.services.pairs import SupportedAssetsValidator
from bot.services.trading import TradeService

CREDENTIALS = Credentials(key="test-key", secret="test-secret")


class FakeExchange:
    """In-memory exchange: orders debit the quote balance."""

    def __init__(self, balances=None, quote_asset="BRL"):
        self.balances = dict(balances or {})
        self.quote_asset = quote_asset
        self.account_calls = 0
        self.orders = []
        self.account_error = None
        self.order_error = None
        self.order_delay = None
        self._lock = threading.Lock()

    def get_account(self, credentials):
        self.account_calls += 1
        if self.account_error:
            raise self.account_error
        with self._lock:
            return AccountSnapshot(balances=[Balance(a, Decimal(v)) for a, v in self.balances.items()])

    def submit_market_buy(self, credentials, base_asset, notional):
        if self.order_error:
            raise self.order_error
        if self.order_delay:
            time.sleep(self.order_delay)
        with self._lock:
            self.balances[self.quote_asset] = str(Decimal(self.balances.get(self.quote_asset, "0")) - notional)
            order_id = 1000 + len(self.orders)
            self.orders.append((base_asset, notional))
        return OrderResult(order_id=order_id, payload={"symbol": f"{base_asset}{self.quote_asset}", "orderId": order_id})


class StaticCredentials:
    def __init__(self, accounts=None):
        self.accounts = accounts

    def lookup(self, account_id):
        if self.accounts is None:
            return CREDENTIALS
        if account_id not in self.accounts:
            raise ConfigurationError(f"No exchange credentials for account {account_id}")
        return self.accounts[account_id]


@pytest.fixture
def exchange():
    return FakeExchange(balances={"BRL": "500.00", "BTC": "0.01", "USD": "0.00000000"})


@pytest.fixture
def service(exchange):
    return TradeService(
        exchange=exchange,
        credentials=StaticCredentials(),
        pairs=SupportedAssetsValidator(assets=[], quote_asset="BRL"),
        quote_asset="BRL",
        fiat_assets=["BRL", "USD", "EUR"],
    )


@pytest.fixture
def exchange_error():
    return ExchangeError("Binance order failed with status 400", status_code=400,
                         raw_body='{"code":-2010,"msg":"Account has insufficient balance"}')
