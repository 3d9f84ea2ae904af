from decimal import Decimal, ROUND_DOWN
from typing import Any, Dict, List, Optional
from dataclasses import dataclass, field
from enum import Enum

CENT = Decimal("0.01")


def round_notional(amount: Decimal) -> Decimal:
    """Truncate to the two decimal places sent as quoteOrderQty"""
    return amount.quantize(CENT, rounding=ROUND_DOWN)


@dataclass(frozen=True)
class Credentials:
    key: str
    secret: str

    def __repr__(self) -> str:
        return f"Credentials(key={self.key[:4]}...)"


@dataclass(frozen=True)
class Balance:
    asset: str
    free: Decimal


@dataclass(frozen=True)
class AccountSnapshot:
    balances: List[Balance] = field(default_factory=list)

    def free_amount(self, asset: str) -> Optional[Decimal]:
        for balance in self.balances:
            if balance.asset == asset:
                return balance.free
        return None


@dataclass(frozen=True)
class TradeIntent:
    base_asset: str  # "BTC|ETH|etc"
    notional: Decimal  # quote currency amount, > 0
    quote_asset: str = "BRL"

    @property
    def symbol(self) -> str:
        return f"{self.base_asset}{self.quote_asset}"


@dataclass
class OrderResult:
    order_id: Any
    payload: Dict[str, Any]


@dataclass(frozen=True)
class ChatMessage:
    sender_id: str
    text: str


class Outcome(str, Enum):
    REPLIED_BALANCE = "replied_balance"
    ORDER_PLACED = "order_placed"
    REJECTED = "rejected"
    UPSTREAM_ERROR = "upstream_error"


@dataclass
class ChatReply:
    outcome: Outcome
    text: str
    reason: Optional[str] = None  # rejection reason or failed stage
