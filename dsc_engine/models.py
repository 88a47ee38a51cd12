"""Data models — all frozen (immutable)."""
from __future__ import annotations

from dataclasses import dataclass
from typing import NewType

Address = NewType("Address", str)

TARGET_DECIMALS = 18


@dataclass(frozen=True)
class CollateralAsset:
    """Allow-listed collateral and the price feed that values it."""

    asset: str
    price_feed: str
    decimals: int = 18


@dataclass(frozen=True)
class RoundData:
    """Latest reading of a price feed."""

    answer: int
    updated_at: int
    decimals: int


@dataclass(frozen=True)
class PriceQuote:
    """USD price of one unit of an asset, as reported by its feed."""

    asset: str
    price: int
    updated_at: int
    feed_decimals: int

    @property
    def normalized_price(self) -> int:
        """Price scaled to 18-decimal fixed point."""
        if self.feed_decimals <= TARGET_DECIMALS:
            return self.price * 10 ** (TARGET_DECIMALS - self.feed_decimals)
        return self.price // 10 ** (self.feed_decimals - TARGET_DECIMALS)


@dataclass(frozen=True)
class AccountInformation:
    total_dsc_minted: int
    collateral_value_in_usd: int


@dataclass(frozen=True)
class AssetDetail:
    """Single collateral holding within a position."""

    asset: str
    amount: int
    usd_value: int


@dataclass(frozen=True)
class PositionSnapshot:
    """Point-in-time valuation of one user's position."""

    user: str
    issued: int
    collateral_value: int
    health_factor: int
    collateral_assets: tuple[AssetDetail, ...] = ()
