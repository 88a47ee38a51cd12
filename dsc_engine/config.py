"""Configuration loader — reads config.yaml, interpolates env vars, validates."""
from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Frozen config dataclasses
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class EngineSettings:
    liquidation_threshold: int = 50
    liquidation_bonus: int = 10
    min_health_factor: int = 10**18
    max_price_staleness_seconds: int | None = 3 * 60 * 60


@dataclass(frozen=True)
class CollateralConfig:
    asset: str = ""
    price_feed: str = ""
    decimals: int = 18


@dataclass(frozen=True)
class PythConfig:
    hermes_url: str = "https://hermes.pyth.network/v2/updates/price/latest"
    timeout: int = 30


@dataclass(frozen=True)
class OracleConfig:
    provider: str = "pyth"
    pyth: PythConfig = field(default_factory=PythConfig)


@dataclass(frozen=True)
class TelegramConfig:
    enabled: bool = False
    alert_bot_token: str = ""
    log_bot_token: str = ""
    chat_id: str = ""


@dataclass(frozen=True)
class NotificationsConfig:
    telegram: TelegramConfig = field(default_factory=TelegramConfig)


@dataclass(frozen=True)
class MonitorConfig:
    health_factor_warning: float = 1.5


@dataclass(frozen=True)
class AppConfig:
    engine: EngineSettings = field(default_factory=EngineSettings)
    collateral: tuple[CollateralConfig, ...] = ()
    pegged_token: str = "DSC"
    engine_address: str = "dsc-engine"
    oracle: OracleConfig = field(default_factory=OracleConfig)
    monitor: MonitorConfig = field(default_factory=MonitorConfig)
    notifications: NotificationsConfig = field(default_factory=NotificationsConfig)


_PROVIDERS = ("pyth", "static")

# ---------------------------------------------------------------------------
# Env interpolation
# ---------------------------------------------------------------------------

_ENV_VAR_RE = re.compile(r"\$\{([^}]+)}")


def _interpolate_env(value: Any) -> Any:
    """Recursively replace ${VAR} references with environment variable values."""
    if isinstance(value, str):
        return _ENV_VAR_RE.sub(lambda m: os.environ.get(m.group(1), ""), value)
    if isinstance(value, dict):
        return {k: _interpolate_env(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_interpolate_env(item) for item in value]
    return value


# ---------------------------------------------------------------------------
# YAML → dataclass builders
# ---------------------------------------------------------------------------


def _build_engine(raw: dict[str, Any]) -> EngineSettings:
    staleness = raw.get("max_price_staleness_seconds", 3 * 60 * 60)
    return EngineSettings(
        liquidation_threshold=int(raw.get("liquidation_threshold", 50)),
        liquidation_bonus=int(raw.get("liquidation_bonus", 10)),
        min_health_factor=int(raw.get("min_health_factor", 10**18)),
        max_price_staleness_seconds=None if staleness is None else int(staleness),
    )


def _build_collateral(raw: list[dict[str, Any]]) -> tuple[CollateralConfig, ...]:
    return tuple(
        CollateralConfig(
            asset=c.get("asset", ""),
            price_feed=c.get("price_feed", ""),
            decimals=int(c.get("decimals", 18)),
        )
        for c in raw
    )


def _build_oracle(raw: dict[str, Any]) -> OracleConfig:
    pyth_raw = raw.get("pyth", {})
    return OracleConfig(
        provider=raw.get("provider", "pyth"),
        pyth=PythConfig(
            hermes_url=pyth_raw.get("hermes_url", PythConfig.hermes_url),
            timeout=int(pyth_raw.get("timeout", 30)),
        ),
    )


def _build_notifications(raw: dict[str, Any]) -> NotificationsConfig:
    tg = raw.get("telegram", {})
    return NotificationsConfig(
        telegram=TelegramConfig(
            enabled=bool(tg.get("enabled", False)),
            alert_bot_token=tg.get("alert_bot_token", ""),
            log_bot_token=tg.get("log_bot_token", ""),
            chat_id=str(tg.get("chat_id", "")),
        ),
    )


def _build_monitor(raw: dict[str, Any]) -> MonitorConfig:
    return MonitorConfig(
        health_factor_warning=float(raw.get("health_factor_warning", 1.5)),
    )


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_config(config_path: str | Path | None = None) -> AppConfig:
    """Load and validate application configuration from YAML + .env.

    Args:
        config_path: Path to config.yaml. Defaults to ``config.yaml`` in the
            project root (one level up from this package).
    """
    load_dotenv()

    if config_path is None:
        config_path = Path(__file__).resolve().parent.parent / "config.yaml"
    config_path = Path(config_path)

    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path) as f:
        raw = yaml.safe_load(f) or {}

    raw = _interpolate_env(raw)

    cfg = AppConfig(
        engine=_build_engine(raw.get("engine", {})),
        collateral=_build_collateral(raw.get("collateral", [])),
        pegged_token=raw.get("pegged_token", "DSC"),
        engine_address=raw.get("engine_address", "dsc-engine"),
        oracle=_build_oracle(raw.get("oracle", {})),
        monitor=_build_monitor(raw.get("monitor", {})),
        notifications=_build_notifications(raw.get("notifications", {})),
    )

    _validate(cfg)
    logger.info("Configuration loaded from %s", config_path)
    return cfg


def _validate(cfg: AppConfig) -> None:
    """Raise on invalid configuration."""
    if not cfg.collateral:
        raise ValueError("At least one collateral asset must be configured")

    seen: set[str] = set()
    for c in cfg.collateral:
        if not c.asset:
            raise ValueError("Collateral entry has no asset")
        if not c.price_feed:
            raise ValueError(f"Collateral '{c.asset}' has no price feed")
        if c.asset in seen:
            raise ValueError(f"Collateral '{c.asset}' is listed twice")
        seen.add(c.asset)

    settings = cfg.engine
    if not 0 < settings.liquidation_threshold <= 100:
        raise ValueError("liquidation_threshold must be between 1 and 100")
    if settings.liquidation_bonus < 0:
        raise ValueError("liquidation_bonus must not be negative")
    if settings.min_health_factor <= 0:
        raise ValueError("min_health_factor must be positive")

    if cfg.oracle.provider not in _PROVIDERS:
        raise ValueError(f"Unknown oracle provider '{cfg.oracle.provider}'")
