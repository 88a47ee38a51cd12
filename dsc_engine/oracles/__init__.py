"""Price oracle modules."""
from .adapter import PriceOracleAdapter
from .pyth import PythPriceSource
from .static import StaticPriceSource

__all__ = ["PriceOracleAdapter", "PythPriceSource", "StaticPriceSource"]
