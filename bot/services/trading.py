import logging
import threading
from dataclasses import replace
from decimal import Decimal, InvalidOperation
from typing import Dict, Iterable, List, Optional
from bot.config.settings import FIAT_ASSETS, QUOTE_ASSET
from bot.errors import (
    ConfigurationError,
    InsufficientFundsError,
    UpstreamError,
    ValidationError
)
from bot.models.trade import (
    AccountSnapshot,
    Balance,
    ChatMessage,
    ChatReply,
    Credentials,
    OrderResult,
    Outcome,
    TradeIntent,
    round_notional
)
from .balance import filter_fiat, has_sufficient
from .binance import BinanceService
from .credentials import CredentialProvider
from .pairs import PairValidator
from .parser import CommandKind, CommandParser, ASSET_PATTERN, BUY_USAGE, NOT_POSITIVE

logger = logging.getLogger(__name__)

STAGE_CREDENTIALS = "credentials"
STAGE_ACCOUNT = "account"
STAGE_ORDER = "order"

UNKNOWN_COMMAND = (
    "Desculpe, não reconheço este comando.\n"
    "Comandos disponíveis:\n"
    "- saldo em reais\n"
    "- comprar <valor> em <cripto> (exemplo: comprar 100R$ em BTC)"
)


def money(amount: Decimal) -> str:
    return f"R$ {amount:.2f}"


class AccountLocks:
    """One lock per exchange account so fetch-check-submit never interleaves"""

    def __init__(self):
        self._locks: Dict[str, threading.Lock] = {}
        self._guard = threading.Lock()

    def get(self, account_key: str) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(account_key)
            if lock is None:
                lock = self._locks[account_key] = threading.Lock()
            return lock


class TradeService:
    def __init__(self, exchange: BinanceService, credentials: CredentialProvider, pairs: PairValidator,
                 parser: Optional[CommandParser] = None, quote_asset: str = QUOTE_ASSET,
                 fiat_assets: Iterable[str] = FIAT_ASSETS, locks: Optional[AccountLocks] = None):
        self.exchange = exchange
        self.credentials = credentials
        self.pairs = pairs
        self.quote_asset = quote_asset
        self.parser = parser or CommandParser(quote_asset=quote_asset)
        self.fiat_assets = list(fiat_assets)
        self.locks = locks or AccountLocks()

    def credentials_for(self, account_id: str) -> Credentials:
        return self.credentials.lookup(account_id)

    def _snapshot(self, credentials: Credentials) -> AccountSnapshot:
        try:
            return self.exchange.get_account(credentials)
        except UpstreamError as e:
            e.stage = STAGE_ACCOUNT
            raise

    def fiat_balances(self, credentials: Credentials) -> List[Balance]:
        return filter_fiat(self._snapshot(credentials), self.fiat_assets)

    def validate(self, intent: TradeIntent) -> TradeIntent:
        """Check the intent and return it with the notional truncated to cents,
        the amount that is checked against the balance and sent to the exchange"""
        if not ASSET_PATTERN.match(intent.base_asset.lower()):
            raise ValidationError(f"Invalid asset: {intent.base_asset!r}", code="invalid_asset")
        try:
            notional = round_notional(intent.notional)
        except InvalidOperation:
            notional = None
        if notional is None or not notional.is_finite() or notional <= 0:
            raise ValidationError("Amount must be at least 0.01", code="invalid_amount")
        if not self.pairs.is_supported(intent.base_asset):
            raise ValidationError(f"Trading pair {intent.base_asset}/{self.quote_asset} is not supported",
                                  code="unsupported_pair")
        return replace(intent, notional=notional)

    def buy(self, credentials: Credentials, intent: TradeIntent) -> OrderResult:
        """Validate, check funds and place a market buy.

        The snapshot used for the sufficiency check is the one the decision is
        made on; the account lock is held until the order is answered.
        """
        intent = self.validate(intent)
        with self.locks.get(credentials.key):
            snapshot = self._snapshot(credentials)
            if not has_sufficient(snapshot, self.quote_asset, intent.notional):
                available = snapshot.free_amount(self.quote_asset) or Decimal("0")
                logger.info(f"Insufficient {self.quote_asset} for {intent.symbol}: "
                            f"required {intent.notional}, available {available}")
                raise InsufficientFundsError(self.quote_asset, intent.notional, available)
            try:
                return self.exchange.submit_market_buy(credentials, intent.base_asset, intent.notional)
            except UpstreamError as e:
                e.stage = STAGE_ORDER
                raise

    def handle_message(self, message: ChatMessage) -> ChatReply:
        """Run one chat command to a terminal outcome and compose the reply"""
        command = self.parser.parse(message.text)
        logger.info(f"Chat command from {message.sender_id}: {command.kind.value}")

        if command.kind == CommandKind.UNKNOWN:
            return ChatReply(Outcome.REJECTED, UNKNOWN_COMMAND, reason="unknown_command")
        if command.kind == CommandKind.INVALID_BUY_FORMAT:
            return ChatReply(Outcome.REJECTED, command.hint or BUY_USAGE, reason="invalid_format")

        try:
            credentials = self.credentials_for(message.sender_id)
        except ConfigurationError as e:
            logger.error(f"Credential lookup failed for {message.sender_id}: {e}")
            return ChatReply(Outcome.UPSTREAM_ERROR,
                             "Não foi possível acessar sua conta. Tente novamente mais tarde.",
                             reason=STAGE_CREDENTIALS)

        if command.kind == CommandKind.QUERY_BALANCE:
            return self._reply_balance(credentials)
        return self._reply_buy(credentials, command.intent)

    def _reply_balance(self, credentials: Credentials) -> ChatReply:
        try:
            balances = self.fiat_balances(credentials)
        except UpstreamError:
            return ChatReply(Outcome.UPSTREAM_ERROR, "Erro ao consultar saldo.", reason=STAGE_ACCOUNT)

        amount = next((b.free for b in balances if b.asset == self.quote_asset), None)
        if amount:
            return ChatReply(Outcome.REPLIED_BALANCE, f"Seu saldo em reais é: {money(amount)}")
        return ChatReply(Outcome.REPLIED_BALANCE, "Você não tem saldo disponível em reais.")

    def _reply_buy(self, credentials: Credentials, intent: TradeIntent) -> ChatReply:
        try:
            intent = self.validate(intent)
            order = self.buy(credentials, intent)
        except ValidationError as e:
            if e.code == "unsupported_pair":
                text = f"Desculpe, o par de moedas {intent.base_asset}/{self.quote_asset} não é suportado."
            elif e.code == "invalid_amount":
                text = NOT_POSITIVE
            else:
                text = BUY_USAGE
            return ChatReply(Outcome.REJECTED, text, reason=e.code)
        except InsufficientFundsError as e:
            return ChatReply(Outcome.REJECTED, "Saldo insuficiente para realizar a compra.", reason=e.code)
        except UpstreamError as e:
            if e.stage == STAGE_ACCOUNT:
                return ChatReply(Outcome.UPSTREAM_ERROR, "Erro ao validar saldo para compra.", reason=e.stage)
            return ChatReply(Outcome.UPSTREAM_ERROR, "Erro ao realizar a compra.", reason=e.stage)

        return ChatReply(
            Outcome.ORDER_PLACED,
            f"Compra realizada com sucesso!\n"
            f"Moeda: {intent.base_asset}\n"
            f"Valor: {money(intent.notional)}\n"
            f"ID do Pedido: {order.order_id}"
        )
