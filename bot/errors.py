from typing import Optional


class TradeBotError(Exception):
    """Base error. `code` is the machine-readable identifier sent to API clients."""

    code = "error"

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code


class ValidationError(TradeBotError):
    code = "invalid_request"


class InsufficientFundsError(TradeBotError):
    code = "insufficient_funds"

    def __init__(self, asset: str, required, available):
        super().__init__(f"Insufficient {asset} balance: required {required}, available {available}")
        self.asset = asset
        self.required = required
        self.available = available


class UpstreamError(TradeBotError):
    code = "upstream_error"

    def __init__(self, message: str, stage: Optional[str] = None):
        super().__init__(message)
        self.stage = stage


class ExchangeError(UpstreamError):
    """Non-2xx answer, transport failure or undecodable body from the exchange."""

    code = "exchange_error"

    def __init__(self, message: str, status_code: Optional[int] = None, raw_body: str = ""):
        super().__init__(message)
        self.status_code = status_code
        self.raw_body = raw_body


class ConfigurationError(TradeBotError):
    code = "configuration_error"
