from decimal import Decimal
from typing import Iterable, List

from bot.models.trade import AccountSnapshot, Balance


def filter_fiat(snapshot: AccountSnapshot, fiat_assets: Iterable[str]) -> List[Balance]:
    """Positive fiat holdings, in snapshot order"""
    fiat = set(fiat_assets)
    return [b for b in snapshot.balances if b.asset in fiat and b.free > 0]


def has_sufficient(snapshot: AccountSnapshot, asset: str, amount: Decimal) -> bool:
    # a missing entry counts as a zero balance
    free = snapshot.free_amount(asset)
    return free is not None and free >= amount
