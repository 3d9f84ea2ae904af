import logging
import re
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import FrozenSet, Optional, Tuple

from bot.config.settings import QUOTE_ASSET
from bot.models.trade import TradeIntent, round_notional

logger = logging.getLogger(__name__)

ASSET_PATTERN = re.compile(r"^[a-z0-9]{2,12}$")

BUY_USAGE = "Formato inválido. Use: comprar <valor> em <cripto> (exemplo: comprar 100R$ em BTC)"
NOT_A_NUMBER = "O valor para compra deve ser um número válido."
NOT_POSITIVE = "O valor para compra deve ser maior que zero."


class CommandKind(str, Enum):
    QUERY_BALANCE = "query_balance"
    BUY = "buy"
    INVALID_BUY_FORMAT = "invalid_buy_format"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class Command:
    kind: CommandKind
    intent: Optional[TradeIntent] = None
    hint: Optional[str] = None  # user facing message for INVALID_BUY_FORMAT


@dataclass(frozen=True)
class Grammar:
    """Keyword tables for one locale.

    A buy command is exactly `<buy> <amount> <preposition> <asset>`.
    """
    balance_keywords: FrozenSet[str] = frozenset({"saldo"})
    fiat_keywords: FrozenSet[str] = frozenset({"reais", "real"})
    buy_keywords: FrozenSet[str] = frozenset({"comprar"})
    prepositions: FrozenSet[str] = frozenset({"em", "de"})
    currency_markers: Tuple[str, ...] = ("r$",)
    decimal_separator: str = ","


PT_BR = Grammar()


class CommandParser:
    def __init__(self, grammar: Grammar = PT_BR, quote_asset: str = QUOTE_ASSET):
        self.grammar = grammar
        self.quote_asset = quote_asset

    def parse(self, text: str) -> Command:
        tokens = (text or "").strip().lower().split()
        normalized = " ".join(tokens)

        if self._is_balance_query(normalized):
            return Command(CommandKind.QUERY_BALANCE)
        if tokens and tokens[0] in self.grammar.buy_keywords:
            return self._parse_buy(tokens)
        return Command(CommandKind.UNKNOWN)

    def _is_balance_query(self, normalized: str) -> bool:
        return (any(word in normalized for word in self.grammar.balance_keywords)
                and any(word in normalized for word in self.grammar.fiat_keywords))

    def _parse_buy(self, tokens) -> Command:
        if len(tokens) != 4:
            return Command(CommandKind.INVALID_BUY_FORMAT, hint=BUY_USAGE)

        _, amount_token, preposition, asset_token = tokens
        if preposition not in self.grammar.prepositions or not ASSET_PATTERN.match(asset_token):
            return Command(CommandKind.INVALID_BUY_FORMAT, hint=BUY_USAGE)

        amount = self.parse_amount(amount_token)
        if amount is None:
            return Command(CommandKind.INVALID_BUY_FORMAT, hint=NOT_A_NUMBER)
        if amount <= 0:
            return Command(CommandKind.INVALID_BUY_FORMAT, hint=NOT_POSITIVE)

        intent = TradeIntent(base_asset=asset_token.upper(), notional=amount, quote_asset=self.quote_asset)
        return Command(CommandKind.BUY, intent=intent)

    def parse_amount(self, token: str) -> Optional[Decimal]:
        """'100r$' -> 100.00, '100,509' -> 100.50; None when not a finite number

        Amounts are truncated to cents, the precision of the order sent.
        """
        for marker in self.grammar.currency_markers:
            token = token.replace(marker, "")
        token = token.replace(self.grammar.decimal_separator, ".")
        try:
            amount = Decimal(token)
        except InvalidOperation:
            logger.debug(f"Unparseable amount token: {token!r}")
            return None
        if not amount.is_finite():
            return None
        try:
            return round_notional(amount)
        except InvalidOperation:
            return None
