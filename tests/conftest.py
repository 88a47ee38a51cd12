"""Shared test fixtures and sample data."""
from __future__ import annotations

import textwrap
from pathlib import Path

import pytest

from dsc_engine.config import (
    AppConfig,
    CollateralConfig,
    EngineSettings,
    MonitorConfig,
    NotificationsConfig,
    OracleConfig,
    TelegramConfig,
)
from dsc_engine.engine import DSCEngine
from dsc_engine.events import Event, EventDispatcher
from dsc_engine.oracles.static import StaticPriceSource
from dsc_engine.tokens import CollateralTokenLedger, PeggedTokenLedger

ENGINE = "engine"
USER = "alice"
LIQUIDATOR = "bob"

ETH_FEED = "ETH/USD"
BTC_FEED = "BTC/USD"

ETH_PRICE = 1000_00000000  # $1000, 8 decimals
BTC_PRICE = 30000_00000000

ONE = 10**18
ONE_BTC = 10**8


def _fund(token: CollateralTokenLedger, user: str, amount: int) -> None:
    """Give ``user`` tokens and let the engine pull them."""
    token.faucet(user, amount)
    token.approve(user, ENGINE, token.allowance(user, ENGINE) + amount)


# ---------------------------------------------------------------------------
# Engine fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def price_source() -> StaticPriceSource:
    source = StaticPriceSource(decimals=8)
    source.set_price(ETH_FEED, ETH_PRICE)
    source.set_price(BTC_FEED, BTC_PRICE)
    return source


@pytest.fixture()
def weth() -> CollateralTokenLedger:
    return CollateralTokenLedger("WETH", 18)


@pytest.fixture()
def wbtc() -> CollateralTokenLedger:
    return CollateralTokenLedger("WBTC", 8)


@pytest.fixture()
def dsc() -> PeggedTokenLedger:
    return PeggedTokenLedger(owner=ENGINE)


@pytest.fixture()
def events() -> list[Event]:
    return []


@pytest.fixture()
def engine(
    price_source: StaticPriceSource,
    weth: CollateralTokenLedger,
    wbtc: CollateralTokenLedger,
    dsc: PeggedTokenLedger,
    events: list[Event],
) -> DSCEngine:
    dispatcher = EventDispatcher()
    dispatcher.subscribe(events.append)
    return DSCEngine(
        ["WETH", "WBTC"],
        [ETH_FEED, BTC_FEED],
        dsc,
        price_source,
        {"WETH": weth, "WBTC": wbtc},
        address=ENGINE,
        asset_decimals={"WBTC": 8},
        events=dispatcher,
    )


@pytest.fixture()
def funded_user(engine: DSCEngine, weth: CollateralTokenLedger) -> str:
    """A user holding 10 WETH, approved for the engine, nothing deposited."""
    _fund(weth, USER, 10 * ONE)
    return USER


@pytest.fixture()
def indebted_user(engine: DSCEngine, weth: CollateralTokenLedger) -> str:
    """10 WETH ($10,000) deposited with 5,000 DSC minted: health factor exactly 1.0."""
    _fund(weth, USER, 10 * ONE)
    engine.deposit_collateral_and_mint_dsc(USER, "WETH", 10 * ONE, 5_000 * ONE)
    return USER


@pytest.fixture()
def liquidator(engine: DSCEngine, wbtc: CollateralTokenLedger) -> str:
    """1 WBTC ($30,000) deposited with 5,000 DSC minted."""
    _fund(wbtc, LIQUIDATOR, ONE_BTC)
    engine.deposit_collateral_and_mint_dsc(LIQUIDATOR, "WBTC", ONE_BTC, 5_000 * ONE)
    return LIQUIDATOR


@pytest.fixture()
def fund():
    return _fund


# ---------------------------------------------------------------------------
# Config fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def sample_app_config() -> AppConfig:
    return AppConfig(
        engine=EngineSettings(),
        collateral=(
            CollateralConfig(asset="WETH", price_feed=ETH_FEED, decimals=18),
            CollateralConfig(asset="WBTC", price_feed=BTC_FEED, decimals=8),
        ),
        engine_address=ENGINE,
        oracle=OracleConfig(provider="static"),
        monitor=MonitorConfig(health_factor_warning=1.5),
        notifications=NotificationsConfig(
            telegram=TelegramConfig(
                enabled=True,
                alert_bot_token="fake-alert-token",
                log_bot_token="fake-log-token",
                chat_id="12345",
            ),
        ),
    )


SAMPLE_YAML = textwrap.dedent("""\
    engine:
      liquidation_threshold: 50
      liquidation_bonus: 10
      min_health_factor: 1000000000000000000
      max_price_staleness_seconds: 3600
    engine_address: engine
    pegged_token: DSC
    collateral:
      - asset: WETH
        price_feed: "aaa"
        decimals: 18
      - asset: WBTC
        price_feed: "bbb"
        decimals: 8
    oracle:
      provider: pyth
      pyth:
        hermes_url: "https://hermes.example.com"
        timeout: 10
    monitor:
      health_factor_warning: 1.25
    notifications:
      telegram:
        enabled: true
        alert_bot_token: "tok1"
        log_bot_token: "tok2"
        chat_id: "999"
""")


@pytest.fixture()
def sample_yaml_path(tmp_path: Path) -> Path:
    cfg_file = tmp_path / "config.yaml"
    cfg_file.write_text(SAMPLE_YAML)
    return cfg_file
