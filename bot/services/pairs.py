from typing import Iterable, Protocol

from bot.config.settings import QUOTE_ASSET, SUPPORTED_ASSETS


class PairValidator(Protocol):
    def is_supported(self, base_asset: str) -> bool:
        ...


class SupportedAssetsValidator:
    """Accepts base assets from a configured set; an empty set accepts every pair"""

    def __init__(self, assets: Iterable[str] = SUPPORTED_ASSETS, quote_asset: str = QUOTE_ASSET):
        self.assets = frozenset(asset.upper() for asset in assets)
        self.quote_asset = quote_asset

    def is_supported(self, base_asset: str) -> bool:
        base_asset = base_asset.upper()
        if base_asset == self.quote_asset:
            return False
        return not self.assets or base_asset in self.assets
