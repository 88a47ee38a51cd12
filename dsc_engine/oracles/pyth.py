"""Pyth Network price source."""
from __future__ import annotations

import logging
import ssl
from typing import Iterable

import aiohttp
import certifi

from ..config import PythConfig
from ..errors import OracleUnavailable
from ..models import RoundData

logger = logging.getLogger(__name__)


def _normalize_id(feed_id: str) -> str:
    return feed_id.lower().removeprefix("0x")


def parse_price_update(item: dict) -> RoundData:
    """Convert one Hermes ``parsed`` entry into integer round data.

    Pyth reports ``price * 10^expo``; a negative exponent is the feed's
    decimal count.
    """
    price_data = item.get("price", {})
    price_raw = int(price_data.get("price", 0))
    expo = int(price_data.get("expo", 0))
    publish_time = int(price_data.get("publish_time", 0))

    if expo > 0:
        return RoundData(answer=price_raw * 10**expo, updated_at=publish_time, decimals=0)
    return RoundData(answer=price_raw, updated_at=publish_time, decimals=-expo)


class PythPriceSource:
    """Latest Pyth prices, refreshed over HTTP and read synchronously."""

    def __init__(self, config: PythConfig, feed_ids: Iterable[str]) -> None:
        self.hermes_url = config.hermes_url
        self.timeout = config.timeout
        self.feed_ids = sorted({_normalize_id(f) for f in feed_ids})
        self._rounds: dict[str, RoundData] = {}

    async def refresh(self) -> dict[str, RoundData]:
        """Fetch current prices from Pyth Network into the local cache.

        Failures are logged and leave the previous readings in place.
        """
        if not self.feed_ids:
            return {}

        query_params = "&".join(f"ids[]={fid}" for fid in self.feed_ids)
        url = f"{self.hermes_url}?{query_params}"

        ssl_context = ssl.create_default_context(cafile=certifi.where())
        connector = aiohttp.TCPConnector(ssl=ssl_context)
        updated: dict[str, RoundData] = {}

        try:
            async with aiohttp.ClientSession(connector=connector) as session:
                async with session.get(
                    url, timeout=aiohttp.ClientTimeout(total=self.timeout)
                ) as response:
                    if response.status != 200:
                        logger.error(
                            "Error fetching prices from Pyth: HTTP %s", response.status
                        )
                        return updated

                    data = await response.json()
                    for item in data.get("parsed", []):
                        feed_id = _normalize_id(item.get("id", ""))
                        if feed_id in self.feed_ids:
                            updated[feed_id] = parse_price_update(item)

        except Exception as e:
            logger.error("Error fetching prices from Pyth: %s", e)
            return updated

        self._rounds.update(updated)
        logger.info("Fetched %d/%d prices from Pyth Network", len(updated), len(self.feed_ids))
        return updated

    def latest_round_data(self, feed_id: str) -> RoundData:
        try:
            return self._rounds[_normalize_id(feed_id)]
        except KeyError:
            raise OracleUnavailable(f"No Pyth price cached for feed '{feed_id}'") from None
