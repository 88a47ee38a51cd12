"""Collateral/debt engine: mint, redeem, burn and liquidate under a solvency invariant."""
from __future__ import annotations

import logging
import threading
import time
from contextlib import contextmanager
from typing import Callable, Iterator, Mapping, Sequence

from .config import AppConfig, EngineSettings
from .errors import (
    BreaksHealthFactor,
    EngineError,
    ExternalTransferFailed,
    HealthFactorNotImproved,
    HealthFactorOk,
    InsufficientCollateralForBonus,
    InvalidAmount,
    LiquidationTooSmall,
    MintFailed,
    MustBeSameLength,
    NotAllowedToken,
    ReentrantCall,
)
from .events import (
    CollateralDeposited,
    CollateralRedeemed,
    DscBurned,
    DscMinted,
    Event,
    EventDispatcher,
    Liquidated,
)
from .interfaces.price_source import PriceSource
from .interfaces.tokens import CollateralToken, PeggedToken
from .ledger import PositionLedger
from .models import AccountInformation, CollateralAsset, PositionSnapshot
from .oracles.adapter import PriceOracleAdapter
from .valuation import (
    ADDITIONAL_FEED_PRECISION,
    LIQUIDATION_PRECISION,
    PRECISION,
    Valuation,
    calc_health_factor,
)

logger = logging.getLogger(__name__)


class _Call:
    """Side effects of one in-flight engine call."""

    def __init__(self, operation: str) -> None:
        self.operation = operation
        self.compensations: list[tuple[str, Callable[[], object]]] = []
        self.events: list[Event] = []


class DSCEngine:
    """Issues the pegged token against allow-listed collateral.

    Every mutating call holds an engine-wide non-blocking lock (a nested or
    concurrent call gets ``ReentrantCall``), mutates the ledger before
    touching any external ledger, and is all-or-nothing: on any failure the
    ledger journal is rolled back and completed external interactions are
    compensated before the error propagates. Events are dispatched only once
    a call has committed.
    """

    def __init__(
        self,
        token_addresses: Sequence[str],
        price_feed_addresses: Sequence[str],
        dsc: PeggedToken,
        price_source: PriceSource,
        collateral_tokens: Mapping[str, CollateralToken],
        *,
        address: str = "dsc-engine",
        asset_decimals: Mapping[str, int] | None = None,
        settings: EngineSettings | None = None,
        events: EventDispatcher | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if len(token_addresses) != len(price_feed_addresses):
            raise MustBeSameLength(len(token_addresses), len(price_feed_addresses))
        if len(set(token_addresses)) != len(token_addresses):
            raise ValueError("Collateral tokens must be unique")

        decimals = asset_decimals or {}
        self._collateral = tuple(
            CollateralAsset(asset, feed, decimals.get(asset, 18))
            for asset, feed in zip(token_addresses, price_feed_addresses)
        )
        missing = [c.asset for c in self._collateral if c.asset not in collateral_tokens]
        if missing:
            raise ValueError(f"No token ledger for collateral {', '.join(missing)}")

        self.address = address
        self.settings = settings or EngineSettings()
        self._dsc = dsc
        self._tokens = {c.asset: collateral_tokens[c.asset] for c in self._collateral}
        self._ledger = PositionLedger()
        self._oracle = PriceOracleAdapter(
            price_source,
            self._collateral,
            max_staleness=self.settings.max_price_staleness_seconds,
            clock=clock,
        )
        self._valuation = Valuation(
            self._ledger,
            self._oracle,
            self._collateral,
            liquidation_threshold=self.settings.liquidation_threshold,
        )
        self.events = events or EventDispatcher()
        self._lock = threading.Lock()

    @classmethod
    def from_config(
        cls,
        config: AppConfig,
        dsc: PeggedToken,
        price_source: PriceSource,
        collateral_tokens: Mapping[str, CollateralToken],
        events: EventDispatcher | None = None,
    ) -> DSCEngine:
        return cls(
            [c.asset for c in config.collateral],
            [c.price_feed for c in config.collateral],
            dsc,
            price_source,
            collateral_tokens,
            address=config.engine_address,
            asset_decimals={c.asset: c.decimals for c in config.collateral},
            settings=config.engine,
            events=events,
        )

    # ------------------------------------------------------------------
    # Public mutating operations
    # ------------------------------------------------------------------

    def deposit_collateral(self, caller: str, asset: str, amount: int) -> None:
        with self._guarded("deposit_collateral") as call:
            self._deposit(call, caller, asset, amount)

    def mint_dsc(self, caller: str, amount: int) -> None:
        with self._guarded("mint_dsc") as call:
            self._mint(call, caller, amount)

    def deposit_collateral_and_mint_dsc(
        self, caller: str, asset: str, collateral_amount: int, mint_amount: int
    ) -> None:
        with self._guarded("deposit_collateral_and_mint_dsc") as call:
            self._deposit(call, caller, asset, collateral_amount)
            self._mint(call, caller, mint_amount)

    def redeem_collateral(self, caller: str, asset: str, amount: int) -> None:
        with self._guarded("redeem_collateral") as call:
            self._remove_collateral(call, asset, amount, caller, caller)
            self._revert_if_health_factor_is_broken(caller)
            self._push_collateral(call, asset, caller, amount)

    def burn_dsc(self, caller: str, amount: int) -> None:
        with self._guarded("burn_dsc") as call:
            self._reduce_debt(call, amount, caller, caller)
            self._burn_tokens(call, caller, amount)

    def redeem_collateral_for_dsc(
        self, caller: str, asset: str, collateral_amount: int, burn_amount: int
    ) -> None:
        with self._guarded("redeem_collateral_for_dsc") as call:
            self._reduce_debt(call, burn_amount, caller, caller)
            self._remove_collateral(call, asset, collateral_amount, caller, caller)
            self._revert_if_health_factor_is_broken(caller)
            self._burn_tokens(call, caller, burn_amount)
            self._push_collateral(call, asset, caller, collateral_amount)

    def liquidate(
        self, liquidator: str, asset: str, user: str, debt_to_cover: int
    ) -> int:
        """Repay ``debt_to_cover`` of ``user``'s debt in exchange for collateral.

        The liquidator burns their own pegged tokens and receives the
        equivalent amount of ``asset`` plus the liquidation bonus. When the
        user holds less than principal plus bonus, the bonus is cut down to
        whatever remains; when they cannot even cover the principal the call
        fails with ``InsufficientCollateralForBonus``. A ``debt_to_cover`` too
        small to buy any collateral fails with ``LiquidationTooSmall``.

        Returns the amount of collateral transferred to the liquidator.
        """
        with self._guarded("liquidate") as call:
            _require_more_than_zero(debt_to_cover)
            self._require_allowed(asset)

            starting = self._valuation.health_factor(user)
            if starting >= self.settings.min_health_factor:
                raise HealthFactorOk(starting)

            principal = self._valuation.token_amount_from_usd(asset, debt_to_cover)
            if principal == 0:
                raise LiquidationTooSmall(asset, debt_to_cover)
            bonus = principal * self.settings.liquidation_bonus // LIQUIDATION_PRECISION
            available = self._ledger.collateral_of(user, asset)
            if available < principal:
                raise InsufficientCollateralForBonus(user, asset, principal, available)
            bonus = min(bonus, available - principal)
            seized = principal + bonus

            self._remove_collateral(call, asset, seized, user, liquidator)
            self._reduce_debt(call, debt_to_cover, user, liquidator)

            ending = self._valuation.health_factor(user)
            if ending <= starting:
                raise HealthFactorNotImproved(starting, ending)
            self._revert_if_health_factor_is_broken(liquidator)

            call.events.append(Liquidated(liquidator, user, asset, debt_to_cover, bonus))
            self._burn_tokens(call, liquidator, debt_to_cover)
            self._push_collateral(call, asset, liquidator, seized)
        return seized

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    def get_health_factor(self, user: str) -> int:
        return self._valuation.health_factor(user)

    def calculate_health_factor(self, total_dsc_minted: int, collateral_value_in_usd: int) -> int:
        return calc_health_factor(
            total_dsc_minted, collateral_value_in_usd, self.settings.liquidation_threshold
        )

    def get_account_collateral_value_in_usd(self, user: str) -> int:
        return self._valuation.collateral_value_usd(user)

    def get_account_information(self, user: str) -> AccountInformation:
        return self._valuation.account_information(user)

    def get_usd_value(self, asset: str, amount: int) -> int:
        return self._valuation.usd_value(asset, amount)

    def get_token_amount_from_usd(self, asset: str, usd_amount: int) -> int:
        return self._valuation.token_amount_from_usd(asset, usd_amount)

    def get_collateral_balance_of_user(self, user: str, asset: str) -> int:
        return self._ledger.collateral_of(user, asset)

    def get_dsc_minted(self, user: str) -> int:
        return self._ledger.issued_of(user)

    def get_collateral_tokens(self) -> list[str]:
        return [c.asset for c in self._collateral]

    def get_collateral_token_price_feed(self, asset: str) -> str:
        for c in self._collateral:
            if c.asset == asset:
                return c.price_feed
        raise NotAllowedToken(asset)

    def get_position(self, user: str) -> PositionSnapshot:
        return self._valuation.snapshot(user)

    def get_users(self) -> list[str]:
        return self._ledger.users()

    def get_dsc(self) -> PeggedToken:
        return self._dsc

    def get_precision(self) -> int:
        return PRECISION

    def get_additional_feed_precision(self) -> int:
        return ADDITIONAL_FEED_PRECISION

    def get_liquidation_precision(self) -> int:
        return LIQUIDATION_PRECISION

    def get_liquidation_threshold(self) -> int:
        return self.settings.liquidation_threshold

    def get_liquidation_bonus(self) -> int:
        return self.settings.liquidation_bonus

    def get_min_health_factor(self) -> int:
        return self.settings.min_health_factor

    # ------------------------------------------------------------------
    # Call framing
    # ------------------------------------------------------------------

    @contextmanager
    def _guarded(self, operation: str) -> Iterator[_Call]:
        if not self._lock.acquire(blocking=False):
            logger.warning("Rejected re-entrant call to %s", operation)
            raise ReentrantCall(operation)

        call = _Call(operation)
        try:
            with self._ledger.journal():
                try:
                    yield call
                except BaseException:
                    self._compensate(call)
                    raise
        except EngineError as e:
            logger.warning("%s failed: %s: %s", operation, type(e).__name__, e)
            raise
        finally:
            self._lock.release()

        for event in call.events:
            self.events.dispatch(event)

    def _compensate(self, call: _Call) -> None:
        for description, undo in reversed(call.compensations):
            try:
                result = undo()
            except Exception as e:
                logger.critical("%s: compensation '%s' failed: %s", call.operation, description, e)
                continue
            if result is False:
                logger.critical("%s: compensation '%s' was refused", call.operation, description)

    # ------------------------------------------------------------------
    # Internal steps
    # ------------------------------------------------------------------

    def _deposit(self, call: _Call, caller: str, asset: str, amount: int) -> None:
        _require_more_than_zero(amount)
        self._require_allowed(asset)
        self._ledger.add_collateral(caller, asset, amount)
        call.events.append(CollateralDeposited(caller, asset, amount))
        self._pull_collateral(call, asset, caller, amount)

    def _mint(self, call: _Call, caller: str, amount: int) -> None:
        _require_more_than_zero(amount)
        self._ledger.increase_issued(caller, amount)
        self._revert_if_health_factor_is_broken(caller)
        call.events.append(DscMinted(caller, amount))
        self._mint_tokens(call, caller, amount)

    def _remove_collateral(
        self, call: _Call, asset: str, amount: int, from_: str, to: str
    ) -> None:
        _require_more_than_zero(amount)
        self._require_allowed(asset)
        self._ledger.remove_collateral(from_, asset, amount)
        call.events.append(CollateralRedeemed(from_, to, asset, amount))

    def _reduce_debt(self, call: _Call, amount: int, on_behalf_of: str, dsc_from: str) -> None:
        _require_more_than_zero(amount)
        self._ledger.decrease_issued(on_behalf_of, amount)
        call.events.append(DscBurned(on_behalf_of, dsc_from, amount))

    def _revert_if_health_factor_is_broken(self, user: str) -> None:
        health_factor = self._valuation.health_factor(user)
        if health_factor < self.settings.min_health_factor:
            raise BreaksHealthFactor(health_factor)

    def _require_allowed(self, asset: str) -> None:
        if asset not in self._tokens:
            raise NotAllowedToken(asset)

    # ------------------------------------------------------------------
    # External interactions (always after ledger effects)
    # ------------------------------------------------------------------

    def _pull_collateral(self, call: _Call, asset: str, from_: str, amount: int) -> None:
        token = self._tokens[asset]
        _transfer(
            f"{asset} transfer_from {from_}",
            lambda: token.transfer_from(self.address, from_, self.address, amount),
        )
        call.compensations.append(
            (f"return {amount} {asset} to {from_}",
             lambda: token.transfer(self.address, from_, amount))
        )

    def _push_collateral(self, call: _Call, asset: str, to: str, amount: int) -> None:
        # Always the final interaction of a call, so it needs no compensation.
        token = self._tokens[asset]
        _transfer(f"{asset} transfer to {to}", lambda: token.transfer(self.address, to, amount))

    def _mint_tokens(self, call: _Call, to: str, amount: int) -> None:
        try:
            minted = self._dsc.mint(self.address, to, amount)
        except EngineError:
            raise
        except Exception as e:
            raise MintFailed(f"Minting {amount} to {to} failed: {e}") from e
        if not minted:
            raise MintFailed(f"Minting {amount} to {to} was refused")
        call.compensations.append(
            (f"burn {amount} minted to {to}",
             lambda: self._dsc.burn(self.address, to, amount))
        )

    def _burn_tokens(self, call: _Call, from_: str, amount: int) -> None:
        try:
            self._dsc.burn(self.address, from_, amount)
        except EngineError:
            raise
        except Exception as e:
            raise ExternalTransferFailed(f"Burning {amount} from {from_} failed: {e}") from e
        call.compensations.append(
            (f"re-mint {amount} burned from {from_}",
             lambda: self._dsc.mint(self.address, from_, amount))
        )


def _require_more_than_zero(amount: int) -> None:
    if amount <= 0:
        raise InvalidAmount(amount)


def _transfer(description: str, action: Callable[[], bool]) -> None:
    """Run a token transfer, treating ``False`` like a raised failure."""
    try:
        ok = action()
    except EngineError:
        raise
    except Exception as e:
        raise ExternalTransferFailed(f"{description} failed: {e}") from e
    if not ok:
        raise ExternalTransferFailed(f"{description} returned false")
