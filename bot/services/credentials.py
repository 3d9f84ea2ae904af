import json
import logging
from typing import Dict, Optional, Protocol

from bot.config.settings import BINANCE_API_KEY, BINANCE_SECRET_KEY
from bot.errors import ConfigurationError
from bot.models.trade import Credentials

logger = logging.getLogger(__name__)


class CredentialProvider(Protocol):
    def lookup(self, account_id: str) -> Credentials:
        ...


class EnvCredentialProvider:
    """A single exchange account configured through the environment"""

    def __init__(self, api_key: Optional[str] = BINANCE_API_KEY, secret_key: Optional[str] = BINANCE_SECRET_KEY):
        self.api_key = api_key
        self.secret_key = secret_key

    def validate(self):
        if not self.api_key or not self.secret_key:
            raise ConfigurationError("Missing BINANCE_API_KEY or BINANCE_SECRET_KEY")

    def lookup(self, account_id: str) -> Credentials:
        self.validate()
        return Credentials(key=self.api_key, secret=self.secret_key)


class FileCredentialProvider:
    """Per-account credentials from a JSON file.

    The file maps an account id (a chat sender's phone number, or the REST
    default account) to {"BINANCE_API_KEY": ..., "BINANCE_SECRET_KEY": ...}.
    """

    def __init__(self, path: str):
        self.path = path
        self._accounts: Optional[Dict[str, Dict]] = None

    def load(self) -> Dict[str, Dict]:
        try:
            with open(self.path, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            raise ConfigurationError(f"Cannot read credentials file {self.path}: {e}") from e
        if not isinstance(data, dict):
            raise ConfigurationError(f"Credentials file {self.path} must contain a JSON object")
        self._accounts = data
        logger.info(f"Loaded credentials for {len(data)} account(s)")
        return data

    def lookup(self, account_id: str) -> Credentials:
        accounts = self._accounts if self._accounts is not None else self.load()
        entry = accounts.get(account_id) or {}
        if not isinstance(entry, dict):
            raise ConfigurationError(f"Malformed credentials entry for account {account_id}")
        key = entry.get("BINANCE_API_KEY")
        secret = entry.get("BINANCE_SECRET_KEY")
        if not key or not secret:
            raise ConfigurationError(f"No exchange credentials for account {account_id}")
        return Credentials(key=key, secret=secret)
