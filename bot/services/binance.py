import requests
import logging
import time
from decimal import Decimal, InvalidOperation
from typing import Dict, List, Optional, Tuple
from urllib.parse import urlencode
from bot.config.settings import (
    BINANCE_API_URL,
    BINANCE_ACCOUNT_PATH,
    BINANCE_ORDER_PATH,
    QUOTE_ASSET,
    REQUEST_TIMEOUT
)
from bot.errors import ExchangeError
from bot.models.trade import AccountSnapshot, Balance, Credentials, OrderResult, round_notional
from .signer import sign

logger = logging.getLogger(__name__)


def _timestamp() -> str:
    return str(int(time.time() * 1000))


def format_notional(amount: Decimal) -> str:
    return f"{round_notional(amount):.2f}"


class BinanceService:
    """Signed REST calls against the Binance spot API.

    Every call is attempted exactly once. A market buy is not idempotent, so
    failures are classified and returned to the caller instead of retried.
    """

    def __init__(self, base_url: str = BINANCE_API_URL, quote_asset: str = QUOTE_ASSET,
                 timeout: float = REQUEST_TIMEOUT, session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip("/")
        self.quote_asset = quote_asset
        self.timeout = timeout
        self.session = session or requests.Session()

    @staticmethod
    def signed_payload(credentials: Credentials, params: List[Tuple[str, str]]) -> str:
        """Encode params once and append the signature of that exact string"""
        encoded = urlencode(params)
        return f"{encoded}&signature={sign(credentials.secret, encoded)}"

    @staticmethod
    def _headers(credentials: Credentials) -> Dict[str, str]:
        return {"X-MBX-APIKEY": credentials.key}

    def _decode(self, response: requests.Response, action: str) -> Dict:
        if not 200 <= response.status_code < 300:
            logger.error(f"Binance {action} failed ({response.status_code}): {response.text}")
            raise ExchangeError(
                f"Binance {action} failed with status {response.status_code}",
                status_code=response.status_code,
                raw_body=response.text
            )
        try:
            return response.json()
        except ValueError:
            logger.error(f"Failed to parse Binance {action} response as JSON: {response.text}")
            raise ExchangeError(
                f"Invalid JSON in Binance {action} response",
                status_code=response.status_code,
                raw_body=response.text
            )

    def get_account(self, credentials: Credentials) -> AccountSnapshot:
        """Fetch a fresh account snapshot"""
        query = self.signed_payload(credentials, [("timestamp", _timestamp())])
        try:
            response = self.session.get(
                f"{self.base_url}{BINANCE_ACCOUNT_PATH}?{query}",
                headers=self._headers(credentials),
                timeout=self.timeout
            )
        except requests.RequestException as e:
            logger.error(f"Error getting account: {e}")
            raise ExchangeError(f"Account request failed: {e}") from e

        data = self._decode(response, "account")
        if not isinstance(data, dict) or not isinstance(data.get("balances"), list):
            raise ExchangeError("Unexpected account payload", status_code=response.status_code,
                                raw_body=response.text)
        return AccountSnapshot(balances=self._parse_balances(data["balances"]))

    @staticmethod
    def _parse_balances(raw_balances: List[Dict]) -> List[Balance]:
        balances = []
        for raw in raw_balances:
            try:
                balances.append(Balance(asset=str(raw["asset"]).upper(), free=Decimal(str(raw["free"]))))
            except (KeyError, TypeError, InvalidOperation):
                logger.warning(f"Skipping malformed balance entry: {raw}")
        return balances

    def submit_market_buy(self, credentials: Credentials, base_asset: str, notional: Decimal) -> OrderResult:
        """Spend `notional` of the quote asset on `base_asset` at market"""
        params = [
            ("symbol", f"{base_asset.upper()}{self.quote_asset}"),
            ("side", "BUY"),
            ("type", "MARKET"),
            ("quoteOrderQty", format_notional(notional)),
            ("timestamp", _timestamp()),
        ]
        body = self.signed_payload(credentials, params)
        headers = self._headers(credentials)
        headers["Content-Type"] = "application/x-www-form-urlencoded"

        logger.info(f"Placing market buy: {params[0][1]} quoteOrderQty={params[3][1]}")
        try:
            response = self.session.post(
                f"{self.base_url}{BINANCE_ORDER_PATH}",
                data=body,
                headers=headers,
                timeout=self.timeout
            )
        except requests.RequestException as e:
            logger.error(f"Error placing order: {e}")
            raise ExchangeError(f"Order request failed: {e}") from e

        data = self._decode(response, "order")
        if not isinstance(data, dict):
            raise ExchangeError("Unexpected order payload", status_code=response.status_code,
                                raw_body=response.text)
        logger.info(f"Order placed successfully: {data.get('orderId')}")
        return OrderResult(order_id=data.get("orderId"), payload=data)
