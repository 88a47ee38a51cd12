"""Integration tests for the RiskMonitor — full flow with mocked notifiers."""
from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from dsc_engine.config import AppConfig, MonitorConfig, NotificationsConfig
from dsc_engine.engine import DSCEngine
from dsc_engine.notifications import TelegramNotifier
from dsc_engine.services.monitor import (
    HEALTHY,
    LIQUIDATABLE,
    WARNING,
    RiskMonitor,
    build_notifiers,
)

ONE = 10**18


@pytest.fixture()
def notifier() -> AsyncMock:
    return AsyncMock()


@pytest.fixture()
def monitor(engine: DSCEngine, notifier: AsyncMock) -> RiskMonitor:
    return RiskMonitor(engine, [notifier], MonitorConfig(health_factor_warning=1.5))


class TestStatus:
    def test_thresholds(self, monitor: RiskMonitor) -> None:
        assert monitor.get_status(ONE - 1) == LIQUIDATABLE
        assert monitor.get_status(ONE) == WARNING
        assert monitor.get_status(15 * ONE // 10) == HEALTHY


class TestScan:
    def test_skips_positions_without_debt(
        self, monitor: RiskMonitor, engine: DSCEngine, indebted_user: str, weth, fund
    ) -> None:
        fund(weth, "carol", ONE)
        engine.deposit_collateral("carol", "WETH", ONE)
        assert engine.get_users() == [indebted_user, "carol"]
        assert [p.user for p in monitor.scan()] == [indebted_user]

    def test_skips_unpriceable_positions(
        self, monitor: RiskMonitor, indebted_user: str, liquidator: str, price_source
    ) -> None:
        price_source.set_price("ETH/USD", 0)
        assert [p.user for p in monitor.scan()] == [liquidator]


class TestCheckAndAlert:
    @pytest.mark.asyncio
    async def test_logs_every_position_and_alerts_low_margin(
        self, monitor: RiskMonitor, notifier: AsyncMock, indebted_user: str, liquidator: str
    ) -> None:
        positions = await monitor.check_and_alert()

        assert [p.user for p in positions] == [indebted_user, liquidator]
        assert notifier.send_log.await_count == 2
        first_log = notifier.send_log.call_args_list[0].args[0]
        assert indebted_user in first_log
        assert "HF: 1.0000" in first_log

        notifier.send_alert.assert_awaited_once()
        assert notifier.send_alert.call_args.kwargs["subject"] == "⚠️ Low health factor"

    @pytest.mark.asyncio
    async def test_liquidatable_alert(
        self, monitor: RiskMonitor, notifier: AsyncMock, indebted_user: str, price_source
    ) -> None:
        price_source.set_price("ETH/USD", 800_00000000)

        await monitor.check_and_alert()

        message = notifier.send_alert.call_args.args[0]
        assert notifier.send_alert.call_args.kwargs["subject"] == "🚨 Liquidatable position"
        assert "HF 0.8000" in message
        assert "WETH" in message

    @pytest.mark.asyncio
    async def test_healthy_position_sends_log_only(
        self, monitor: RiskMonitor, notifier: AsyncMock, liquidator: str
    ) -> None:
        await monitor.check_and_alert()

        notifier.send_log.assert_awaited_once()
        assert HEALTHY in notifier.send_log.call_args.args[0]
        notifier.send_alert.assert_not_called()

    @pytest.mark.asyncio
    async def test_notifier_errors_are_swallowed(
        self, engine: DSCEngine, indebted_user: str
    ) -> None:
        broken = AsyncMock()
        broken.send_log.side_effect = RuntimeError("telegram down")
        broken.send_alert.side_effect = RuntimeError("telegram down")
        healthy = AsyncMock()

        await RiskMonitor(engine, [broken, healthy]).check_and_alert()

        healthy.send_log.assert_awaited_once()
        healthy.send_alert.assert_awaited_once()


class TestBuildNotifiers:
    def test_telegram_enabled(self, sample_app_config: AppConfig) -> None:
        notifiers = build_notifiers(sample_app_config)
        assert len(notifiers) == 1
        assert isinstance(notifiers[0], TelegramNotifier)

    def test_nothing_enabled(self) -> None:
        assert build_notifiers(AppConfig(notifications=NotificationsConfig())) == []
