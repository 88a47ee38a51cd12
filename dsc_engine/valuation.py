"""Collateral valuation and health-factor arithmetic.

All amounts are integers. USD values carry 18 decimals, so one dollar is
``10**18``. The module-level functions are pure; :class:`Valuation` binds
them to a ledger and a price oracle.
"""
from __future__ import annotations

from typing import Iterable

from .errors import NotAllowedToken
from .ledger import MAX_UINT256, PositionLedger
from .models import AccountInformation, AssetDetail, CollateralAsset, PositionSnapshot
from .oracles.adapter import PriceOracleAdapter

PRECISION = 10**18
ADDITIONAL_FEED_PRECISION = 10**10
LIQUIDATION_THRESHOLD = 50
LIQUIDATION_PRECISION = 100
LIQUIDATION_BONUS = 10
MIN_HEALTH_FACTOR = 10**18


def calc_usd_value(amount: int, normalized_price: int, asset_decimals: int = 18) -> int:
    """USD value of ``amount`` base units at an 18-decimal price."""
    return amount * normalized_price // 10**asset_decimals


def calc_token_amount(usd_amount: int, normalized_price: int, asset_decimals: int = 18) -> int:
    """Base units of an asset worth ``usd_amount``, rounded down."""
    return usd_amount * 10**asset_decimals // normalized_price


def calc_health_factor(
    total_dsc_minted: int,
    collateral_value_in_usd: int,
    liquidation_threshold: int = LIQUIDATION_THRESHOLD,
) -> int:
    """Risk-adjusted collateral over debt, 18-decimal fixed point.

    health_factor = (collateral * threshold / 100) * 1e18 / minted

    A position without debt is unconstrained and reports ``MAX_UINT256``.
    """
    if total_dsc_minted == 0:
        return MAX_UINT256
    adjusted = collateral_value_in_usd * liquidation_threshold // LIQUIDATION_PRECISION
    return adjusted * PRECISION // total_dsc_minted


def format_health_factor(health_factor: int) -> str:
    if health_factor == MAX_UINT256:
        return "∞"
    return f"{health_factor / PRECISION:.4f}"


class Valuation:
    """Values positions held in a ledger using fresh oracle quotes."""

    def __init__(
        self,
        ledger: PositionLedger,
        oracle: PriceOracleAdapter,
        assets: Iterable[CollateralAsset],
        liquidation_threshold: int = LIQUIDATION_THRESHOLD,
    ) -> None:
        self._ledger = ledger
        self._oracle = oracle
        self._assets = {a.asset: a for a in assets}
        self.liquidation_threshold = liquidation_threshold

    def _asset(self, asset: str) -> CollateralAsset:
        try:
            return self._assets[asset]
        except KeyError:
            raise NotAllowedToken(asset) from None

    def usd_value(self, asset: str, amount: int) -> int:
        decimals = self._asset(asset).decimals
        quote = self._oracle.quote(asset)
        return calc_usd_value(amount, quote.normalized_price, decimals)

    def token_amount_from_usd(self, asset: str, usd_amount: int) -> int:
        decimals = self._asset(asset).decimals
        quote = self._oracle.quote(asset)
        return calc_token_amount(usd_amount, quote.normalized_price, decimals)

    def collateral_value_usd(self, user: str) -> int:
        total = 0
        for asset in self._assets:
            amount = self._ledger.collateral_of(user, asset)
            if amount:
                total += self.usd_value(asset, amount)
        return total

    def account_information(self, user: str) -> AccountInformation:
        return AccountInformation(
            total_dsc_minted=self._ledger.issued_of(user),
            collateral_value_in_usd=self.collateral_value_usd(user),
        )

    def health_factor(self, user: str) -> int:
        issued = self._ledger.issued_of(user)
        if issued == 0:
            return MAX_UINT256
        return calc_health_factor(
            issued, self.collateral_value_usd(user), self.liquidation_threshold
        )

    def snapshot(self, user: str) -> PositionSnapshot:
        details: list[AssetDetail] = []
        for asset in self._assets:
            amount = self._ledger.collateral_of(user, asset)
            if amount:
                details.append(AssetDetail(asset, amount, self.usd_value(asset, amount)))

        collateral_value = sum(d.usd_value for d in details)
        issued = self._ledger.issued_of(user)
        return PositionSnapshot(
            user=user,
            issued=issued,
            collateral_value=collateral_value,
            health_factor=calc_health_factor(
                issued, collateral_value, self.liquidation_threshold
            ),
            collateral_assets=tuple(details),
        )
