"""Protocol interfaces for the engine's external collaborators."""
from .notifier import Notifier
from .price_source import PriceSource
from .tokens import CollateralToken, PeggedToken

__all__ = ["CollateralToken", "Notifier", "PeggedToken", "PriceSource"]
