"""Overcollateralized synthetic-dollar engine."""
from .engine import DSCEngine
from .events import EventDispatcher
from .ledger import PositionLedger
from .oracles import PriceOracleAdapter, PythPriceSource, StaticPriceSource
from .tokens import CollateralTokenLedger, PeggedTokenLedger
from .valuation import Valuation

__all__ = [
    "CollateralTokenLedger",
    "DSCEngine",
    "EventDispatcher",
    "PeggedTokenLedger",
    "PositionLedger",
    "PriceOracleAdapter",
    "PythPriceSource",
    "StaticPriceSource",
    "Valuation",
]
