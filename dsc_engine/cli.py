"""Command-line interface for the DSC engine."""
from __future__ import annotations

import argparse
import asyncio
import sys
import time

from .config import AppConfig, load_config
from .errors import OracleUnavailable
from .interfaces.price_source import PriceSource
from .logging_setup import configure_logging
from .models import CollateralAsset
from .oracles import PriceOracleAdapter, PythPriceSource
from .scenario import ScenarioError, ScenarioResult, load_scenario, run_scenario
from .services import RiskMonitor, build_notifiers
from .valuation import PRECISION, format_health_factor


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse CLI parser."""
    parser = argparse.ArgumentParser(
        prog="dsc-engine",
        description="Overcollateralized synthetic-dollar engine",
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Path to config.yaml (default: config.yaml in project root)",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: INFO)",
    )

    sub = parser.add_subparsers(dest="command")

    sub.add_parser("prices", help="Fetch and validate live collateral prices")

    simulate_parser = sub.add_parser("simulate", help="Replay a scenario file")
    simulate_parser.add_argument("scenario", help="Path to scenario YAML")

    check_parser = sub.add_parser(
        "check", help="Replay a scenario, then alert on risky positions"
    )
    check_parser.add_argument("scenario", help="Path to scenario YAML")

    return parser


def _assets(config: AppConfig) -> list[CollateralAsset]:
    return [CollateralAsset(c.asset, c.price_feed, c.decimals) for c in config.collateral]


async def _pyth_source(config: AppConfig) -> PythPriceSource:
    source = PythPriceSource(config.oracle.pyth, [c.price_feed for c in config.collateral])
    await source.refresh()
    return source


async def _show_prices(config: AppConfig) -> int:
    if config.oracle.provider != "pyth":
        print("The 'prices' command needs oracle.provider: pyth", file=sys.stderr)
        return 1

    adapter = PriceOracleAdapter(
        await _pyth_source(config),
        _assets(config),
        max_staleness=config.engine.max_price_staleness_seconds,
    )
    status = 0
    now = int(time.time())
    for asset in _assets(config):
        try:
            quote = adapter.quote(asset.asset)
        except OracleUnavailable as e:
            print(f"{asset.asset:<8} unavailable: {e}")
            status = 1
            continue
        print(
            f"{asset.asset:<8} ${quote.normalized_price / PRECISION:,.4f}"
            f"  (raw {quote.price}, {quote.feed_decimals} decimals,"
            f" {now - quote.updated_at}s old)"
        )
    return status


def _print_positions(result: ScenarioResult) -> None:
    engine = result.engine
    print(f"{'user':<16}{'debt':>18}{'collateral USD':>20}{'health':>12}")
    for user in engine.get_users():
        position = engine.get_position(user)
        print(
            f"{user:<16}"
            f"{position.issued / PRECISION:>18,.2f}"
            f"{position.collateral_value / PRECISION:>20,.2f}"
            f"{format_health_factor(position.health_factor):>12}"
        )


async def _replay(config: AppConfig, path: str) -> ScenarioResult:
    scenario = load_scenario(path)
    source: PriceSource | None = None
    if not scenario.get("prices"):
        if config.oracle.provider != "pyth":
            raise ScenarioError("Scenario has no prices and no live oracle is configured")
        source = await _pyth_source(config)
    return run_scenario(scenario, config, source)


async def _run(args: argparse.Namespace) -> int:
    """Execute the selected command."""
    configure_logging(args.log_level)
    config = load_config(args.config)

    if args.command == "prices":
        return await _show_prices(config)

    try:
        result = await _replay(config, args.scenario)
    except ScenarioError as e:
        print(f"Scenario failed: {e}", file=sys.stderr)
        return 1

    _print_positions(result)
    if args.command == "check":
        monitor = RiskMonitor(result.engine, build_notifiers(config), config.monitor)
        await monitor.check_and_alert()
    return 0


def main() -> None:
    """Entry point."""
    parser = build_parser()
    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(1)

    sys.exit(asyncio.run(_run(args)))
