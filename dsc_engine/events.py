"""Domain events emitted by the engine after a call commits."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Union

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CollateralDeposited:
    user: str
    asset: str
    amount: int


@dataclass(frozen=True)
class CollateralRedeemed:
    redeemed_from: str
    redeemed_to: str
    asset: str
    amount: int


@dataclass(frozen=True)
class DscMinted:
    user: str
    amount: int


@dataclass(frozen=True)
class DscBurned:
    on_behalf_of: str
    dsc_from: str
    amount: int


@dataclass(frozen=True)
class Liquidated:
    liquidator: str
    user: str
    asset: str
    debt_covered: int
    bonus_seized: int


Event = Union[CollateralDeposited, CollateralRedeemed, DscMinted, DscBurned, Liquidated]

Subscriber = Callable[[Event], None]


class EventDispatcher:
    """Fans committed events out to subscribers."""

    def __init__(self) -> None:
        self._subscribers: list[Subscriber] = []

    def subscribe(self, callback: Subscriber) -> None:
        self._subscribers.append(callback)

    def unsubscribe(self, callback: Subscriber) -> None:
        self._subscribers.remove(callback)

    def dispatch(self, event: Event) -> None:
        logger.info("%s", event)
        for callback in self._subscribers:
            try:
                callback(event)
            except Exception as e:
                logger.error("Event subscriber %r failed: %s", callback, e)
