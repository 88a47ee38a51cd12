"""In-memory price source for simulations and tests."""
from __future__ import annotations

import time

from ..errors import OracleUnavailable
from ..models import RoundData


class StaticPriceSource:
    """Price feeds held in memory and updated by hand."""

    def __init__(self, decimals: int = 8) -> None:
        self.default_decimals = decimals
        self._rounds: dict[str, RoundData] = {}

    def set_price(
        self,
        feed_id: str,
        answer: int,
        decimals: int | None = None,
        updated_at: int | None = None,
    ) -> None:
        """Publish a new answer for ``feed_id``, timestamped now unless given."""
        self._rounds[feed_id] = RoundData(
            answer=answer,
            updated_at=int(time.time()) if updated_at is None else updated_at,
            decimals=self.default_decimals if decimals is None else decimals,
        )

    def latest_round_data(self, feed_id: str) -> RoundData:
        try:
            return self._rounds[feed_id]
        except KeyError:
            raise OracleUnavailable(f"No price published for feed '{feed_id}'") from None
