"""Replay YAML-scripted operation sequences against in-memory ledgers.

A scenario file looks like::

    prices:
      WETH: 2000              # USD, published with 8 decimals
    balances:
      alice: {WETH: 10}
    steps:
      - {op: deposit_and_mint, user: alice, asset: WETH, collateral: 10, mint: 10000}
      - {op: set_price, asset: WETH, price: 1600}
      - {op: mint, user: alice, amount: 1, expect_error: BreaksHealthFactor}

Amounts are in whole tokens and may be fractional (``"0.5"``); use
``{raw: N}`` for base units.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from pathlib import Path
from typing import Any, Callable

import yaml

from . import errors
from .config import AppConfig
from .engine import DSCEngine
from .events import Event, EventDispatcher
from .interfaces.price_source import PriceSource
from .oracles.static import StaticPriceSource
from .tokens import CollateralTokenLedger, PeggedTokenLedger

logger = logging.getLogger(__name__)

FEED_DECIMALS = 8
DSC_DECIMALS = 18


class ScenarioError(Exception):
    """The scenario is malformed or a step did not behave as expected."""


@dataclass(frozen=True)
class StepOutcome:
    index: int
    op: str
    ok: bool
    error: str | None = None


@dataclass
class ScenarioResult:
    engine: DSCEngine
    dsc: PeggedTokenLedger
    tokens: dict[str, CollateralTokenLedger]
    outcomes: list[StepOutcome] = field(default_factory=list)
    events: list[Event] = field(default_factory=list)


def load_scenario(path: str | Path) -> dict[str, Any]:
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Scenario file not found: {path}")
    with open(path) as f:
        raw = yaml.safe_load(f) or {}
    if not isinstance(raw.get("steps", []), list):
        raise ScenarioError("'steps' must be a list")
    return raw


def to_base_units(value: Any, decimals: int) -> int:
    if isinstance(value, dict) and "raw" in value:
        return int(value["raw"])
    try:
        return int(Decimal(str(value)) * 10**decimals)
    except ArithmeticError as e:
        raise ScenarioError(f"Invalid amount {value!r}") from e


class ScenarioRunner:
    """Builds an engine from config and drives it through scenario steps."""

    def __init__(self, config: AppConfig, price_source: PriceSource | None = None) -> None:
        self._config = config
        self._decimals = {c.asset: c.decimals for c in config.collateral}
        self._feeds = {c.asset: c.price_feed for c in config.collateral}
        self._static = price_source is None
        self._source = price_source if price_source is not None else StaticPriceSource(FEED_DECIMALS)

        self.dsc = PeggedTokenLedger(owner=config.engine_address, symbol=config.pegged_token)
        self.tokens = {
            c.asset: CollateralTokenLedger(c.asset, c.decimals) for c in config.collateral
        }
        self.result = ScenarioResult(
            engine=DSCEngine.from_config(
                config, self.dsc, self._source, self.tokens, events=EventDispatcher()
            ),
            dsc=self.dsc,
            tokens=self.tokens,
        )
        self.engine = self.result.engine
        self.engine.events.subscribe(self.result.events.append)

        self._ops: dict[str, Callable[[dict[str, Any]], None]] = {
            "approve": self._approve,
            "burn": self._burn,
            "deposit": self._deposit,
            "deposit_and_mint": self._deposit_and_mint,
            "liquidate": self._liquidate,
            "mint": self._mint,
            "redeem": self._redeem,
            "redeem_for_dsc": self._redeem_for_dsc,
            "set_price": self._set_price,
        }

    def run(self, scenario: dict[str, Any]) -> ScenarioResult:
        for asset, price in (scenario.get("prices") or {}).items():
            self._set_price({"asset": asset, "price": price})

        for user, holdings in (scenario.get("balances") or {}).items():
            for asset, amount in holdings.items():
                self._token(asset).faucet(user, self._amount(asset, amount))

        for index, step in enumerate(scenario.get("steps") or []):
            self.result.outcomes.append(self._run_step(index, step))

        return self.result

    def _run_step(self, index: int, step: dict[str, Any]) -> StepOutcome:
        op = step.get("op", "")
        handler = self._ops.get(op)
        if handler is None:
            raise ScenarioError(f"Step {index}: unknown op '{op}'")

        expected = step.get("expect_error")
        expected_cls = _error_class(expected) if expected else None

        try:
            handler(step)
        except errors.EngineError as e:
            if expected_cls is not None and isinstance(e, expected_cls):
                logger.info("Step %d (%s) failed as expected: %s", index, op, type(e).__name__)
                return StepOutcome(index, op, ok=False, error=type(e).__name__)
            raise ScenarioError(
                f"Step {index} ({op}) failed: {type(e).__name__}: {e}"
            ) from e

        if expected_cls is not None:
            raise ScenarioError(f"Step {index} ({op}) succeeded, expected {expected}")
        logger.debug("Step %d (%s) ok", index, op)
        return StepOutcome(index, op, ok=True)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _token(self, asset: str) -> CollateralTokenLedger:
        try:
            return self.tokens[asset]
        except KeyError:
            raise ScenarioError(f"Unknown collateral asset '{asset}'") from None

    def _amount(self, asset: str, value: Any) -> int:
        return to_base_units(value, self._decimals.get(asset, 18))

    def _dsc_amount(self, value: Any) -> int:
        return to_base_units(value, DSC_DECIMALS)

    def _allow(self, user: str, asset: str, amount: int) -> None:
        token = self.tokens.get(asset)
        if token is not None:
            token.approve(user, self.engine.address, token.allowance(user, self.engine.address) + amount)

    # ------------------------------------------------------------------
    # Step handlers
    # ------------------------------------------------------------------

    def _set_price(self, step: dict[str, Any]) -> None:
        if not self._static:
            raise ScenarioError("set_price needs the in-memory price source")
        asset = step["asset"]
        if asset not in self._feeds:
            raise ScenarioError(f"Unknown collateral asset '{asset}'")
        price = step["price"]
        if isinstance(price, dict):
            answer = int(price["answer"])
            decimals = int(price.get("decimals", FEED_DECIMALS))
        else:
            answer = to_base_units(price, FEED_DECIMALS)
            decimals = FEED_DECIMALS
        self._source.set_price(self._feeds[asset], answer, decimals=decimals)  # type: ignore[union-attr]

    def _approve(self, step: dict[str, Any]) -> None:
        asset = step["asset"]
        self._token(asset).approve(step["user"], self.engine.address, self._amount(asset, step["amount"]))

    def _deposit(self, step: dict[str, Any]) -> None:
        asset, user = step["asset"], step["user"]
        amount = self._amount(asset, step["amount"])
        if step.get("auto_approve", True):
            self._allow(user, asset, amount)
        self.engine.deposit_collateral(user, asset, amount)

    def _deposit_and_mint(self, step: dict[str, Any]) -> None:
        asset, user = step["asset"], step["user"]
        collateral = self._amount(asset, step["collateral"])
        if step.get("auto_approve", True):
            self._allow(user, asset, collateral)
        self.engine.deposit_collateral_and_mint_dsc(
            user, asset, collateral, self._dsc_amount(step["mint"])
        )

    def _mint(self, step: dict[str, Any]) -> None:
        self.engine.mint_dsc(step["user"], self._dsc_amount(step["amount"]))

    def _burn(self, step: dict[str, Any]) -> None:
        self.engine.burn_dsc(step["user"], self._dsc_amount(step["amount"]))

    def _redeem(self, step: dict[str, Any]) -> None:
        asset = step["asset"]
        self.engine.redeem_collateral(step["user"], asset, self._amount(asset, step["amount"]))

    def _redeem_for_dsc(self, step: dict[str, Any]) -> None:
        asset = step["asset"]
        self.engine.redeem_collateral_for_dsc(
            step["user"],
            asset,
            self._amount(asset, step["collateral"]),
            self._dsc_amount(step["burn"]),
        )

    def _liquidate(self, step: dict[str, Any]) -> None:
        self.engine.liquidate(
            step["liquidator"], step["asset"], step["user"], self._dsc_amount(step["debt"])
        )


def _error_class(name: str) -> type[errors.EngineError]:
    cls = getattr(errors, name, None)
    if not isinstance(cls, type) or not issubclass(cls, errors.EngineError):
        raise ScenarioError(f"Unknown error kind '{name}'")
    return cls


def run_scenario(
    scenario: dict[str, Any],
    config: AppConfig,
    price_source: PriceSource | None = None,
) -> ScenarioResult:
    """Replay ``scenario``; raises ScenarioError on the first unexpected outcome."""
    return ScenarioRunner(config, price_source).run(scenario)
