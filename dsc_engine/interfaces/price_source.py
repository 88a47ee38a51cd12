"""Price source protocol — raw price feed abstraction."""
from typing import Protocol

from ..models import RoundData


class PriceSource(Protocol):
    """Abstract interface for reading the latest round of a price feed."""

    def latest_round_data(self, feed_id: str) -> RoundData: ...
