"""Health-factor scan over every position, with alerts for risky ones."""
from __future__ import annotations

import logging
from datetime import datetime, timezone

from ..config import AppConfig, MonitorConfig
from ..engine import DSCEngine
from ..errors import OracleUnavailable
from ..interfaces.notifier import Notifier
from ..models import PositionSnapshot
from ..notifications import TelegramNotifier
from ..valuation import PRECISION, format_health_factor

logger = logging.getLogger(__name__)

HEALTHY = "✅ Healthy"
WARNING = "⚠️ WARNING"
LIQUIDATABLE = "🚨 LIQUIDATABLE"


def build_notifiers(config: AppConfig) -> list[Notifier]:
    notifiers: list[Notifier] = []
    if config.notifications.telegram.enabled:
        notifiers.append(TelegramNotifier(config.notifications.telegram))
    return notifiers


def _usd(value: int) -> str:
    return f"${value / PRECISION:,.2f}"


class RiskMonitor:
    """Classifies indebted positions and reports them to notifiers."""

    def __init__(
        self,
        engine: DSCEngine,
        notifiers: list[Notifier],
        config: MonitorConfig | None = None,
    ) -> None:
        self._engine = engine
        self._notifiers = notifiers
        self._config = config or MonitorConfig()
        self._warning_threshold = int(self._config.health_factor_warning * PRECISION)

    # ------------------------------------------------------------------
    # Formatting helpers
    # ------------------------------------------------------------------

    def get_status(self, health_factor: int) -> str:
        if health_factor < self._engine.settings.min_health_factor:
            return LIQUIDATABLE
        if health_factor < self._warning_threshold:
            return WARNING
        return HEALTHY

    @staticmethod
    def _now_str() -> str:
        return datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S")

    @staticmethod
    def _collateral_lines(position: PositionSnapshot) -> str:
        if not position.collateral_assets:
            return "  —"
        return "\n".join(
            f"  {a.asset}: {a.amount} ({_usd(a.usd_value)})"
            for a in position.collateral_assets
        )

    def _build_log_message(self, position: PositionSnapshot) -> str:
        return (
            f"📊 {position.user}\n"
            f"\n"
            f"{self.get_status(position.health_factor)}\n"
            f"Collateral: {_usd(position.collateral_value)}\n"
            f"Debt: {_usd(position.issued)}\n"
            f"HF: {format_health_factor(position.health_factor)}\n"
            f"\n"
            f"{self._now_str()} UTC"
        )

    def _build_alert(self, position: PositionSnapshot) -> str:
        status = self.get_status(position.health_factor)
        advice = (
            "Position can be liquidated now."
            if status == LIQUIDATABLE
            else "Add collateral or burn DSC to restore the margin."
        )
        return (
            f"{status} — HF {format_health_factor(position.health_factor)}\n"
            f"\n"
            f"User: {position.user}\n"
            f"Collateral:\n{self._collateral_lines(position)}\n"
            f"  total {_usd(position.collateral_value)}\n"
            f"Debt: {_usd(position.issued)}\n"
            f"\n"
            f"{advice}\n"
            f"{self._now_str()} UTC"
        )

    # ------------------------------------------------------------------
    # Notification dispatch
    # ------------------------------------------------------------------

    async def _send_log(self, message: str) -> None:
        for notifier in self._notifiers:
            try:
                await notifier.send_log(message, silent=True)
            except Exception as e:
                logger.error("Notifier send_log failed: %s", e)

    async def _send_alert(self, message: str, subject: str) -> None:
        for notifier in self._notifiers:
            try:
                await notifier.send_alert(message, subject=subject)
            except Exception as e:
                logger.error("Notifier send_alert failed: %s", e)

    # ------------------------------------------------------------------
    # Workflows
    # ------------------------------------------------------------------

    def scan(self) -> list[PositionSnapshot]:
        """Value every position that carries debt; unpriceable ones are skipped."""
        positions: list[PositionSnapshot] = []
        for user in self._engine.get_users():
            if self._engine.get_dsc_minted(user) == 0:
                continue
            try:
                positions.append(self._engine.get_position(user))
            except OracleUnavailable as e:
                logger.error("Cannot value position of %s: %s", user, e)
        return positions

    async def check_and_alert(self) -> list[PositionSnapshot]:
        positions = self.scan()

        for position in positions:
            status = self.get_status(position.health_factor)
            logger.info(
                "Position — %s · Collateral: %s  Debt: %s  HF: %s  %s",
                position.user,
                _usd(position.collateral_value),
                _usd(position.issued),
                format_health_factor(position.health_factor),
                status,
            )
            await self._send_log(self._build_log_message(position))

            if status == LIQUIDATABLE:
                await self._send_alert(
                    self._build_alert(position), subject="🚨 Liquidatable position"
                )
            elif status == WARNING:
                await self._send_alert(
                    self._build_alert(position), subject="⚠️ Low health factor"
                )

        return positions
