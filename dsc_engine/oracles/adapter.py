"""Validates raw feed readings and turns them into price quotes."""
from __future__ import annotations

import logging
import time
from typing import Callable, Iterable

from ..errors import EngineError, NotAllowedToken, OracleUnavailable
from ..interfaces.price_source import PriceSource
from ..models import CollateralAsset, PriceQuote

logger = logging.getLogger(__name__)

DEFAULT_MAX_STALENESS = 3 * 60 * 60


class PriceOracleAdapter:
    """One price feed per allow-listed asset, read fresh on every quote.

    A reading is rejected with ``OracleUnavailable`` when the answer is zero
    or negative (before or after normalization to 18 decimals), the round was
    never updated, its timestamp lies in the future, or it is older than
    ``max_staleness`` seconds (``None`` disables the age check).
    """

    def __init__(
        self,
        source: PriceSource,
        assets: Iterable[CollateralAsset],
        max_staleness: int | None = DEFAULT_MAX_STALENESS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._source = source
        self._feeds = {a.asset: a.price_feed for a in assets}
        self._max_staleness = max_staleness
        self._clock = clock

    def quote(self, asset: str) -> PriceQuote:
        feed_id = self._feeds.get(asset)
        if feed_id is None:
            raise NotAllowedToken(asset)

        try:
            data = self._source.latest_round_data(feed_id)
        except EngineError:
            raise
        except Exception as e:
            raise OracleUnavailable(f"Price feed '{feed_id}' failed: {e}") from e

        if data.answer <= 0:
            raise OracleUnavailable(
                f"Price feed '{feed_id}' returned non-positive answer {data.answer}"
            )
        if data.updated_at <= 0:
            raise OracleUnavailable(f"Price feed '{feed_id}' has never been updated")

        now = int(self._clock())
        if data.updated_at > now:
            raise OracleUnavailable(
                f"Price feed '{feed_id}' timestamp {data.updated_at} is in the future"
            )
        if self._max_staleness is not None and now - data.updated_at > self._max_staleness:
            logger.warning(
                "Stale price for %s: %ds old (limit %ds)",
                asset, now - data.updated_at, self._max_staleness,
            )
            raise OracleUnavailable(f"Price feed '{feed_id}' is stale")

        quote = PriceQuote(
            asset=asset,
            price=data.answer,
            updated_at=data.updated_at,
            feed_decimals=data.decimals,
        )
        if quote.normalized_price <= 0:
            raise OracleUnavailable(
                f"Price feed '{feed_id}' answer {data.answer} rounds to zero "
                f"at {data.decimals} decimals"
            )
        return quote
