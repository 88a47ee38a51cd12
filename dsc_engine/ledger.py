"""Per-user collateral and issued-token balances."""
from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Callable, Iterator

from .errors import ArithmeticOverflow, InsufficientCollateral, InsufficientDebt, InvalidAmount

logger = logging.getLogger(__name__)

MAX_UINT256 = 2**256 - 1


class PositionLedger:
    """Authoritative store of positions. Enforces amounts, never solvency.

    Mutations made inside :meth:`journal` are undone if the block raises.
    """

    def __init__(self) -> None:
        self._collateral: dict[str, dict[str, int]] = {}
        self._issued: dict[str, int] = {}
        self._undo: list[Callable[[], None]] | None = None

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def collateral_of(self, user: str, asset: str) -> int:
        return self._collateral.get(user, {}).get(asset, 0)

    def issued_of(self, user: str) -> int:
        return self._issued.get(user, 0)

    def users(self) -> list[str]:
        """Every user that has ever held collateral or debt."""
        return sorted(set(self._collateral) | set(self._issued))

    # ------------------------------------------------------------------
    # Mutators
    # ------------------------------------------------------------------

    def add_collateral(self, user: str, asset: str, amount: int) -> None:
        _require_positive(amount)
        balance = self.collateral_of(user, asset)
        if balance + amount > MAX_UINT256:
            raise ArithmeticOverflow(f"{user} {asset} collateral would overflow")
        self._set_collateral(user, asset, balance + amount)

    def remove_collateral(self, user: str, asset: str, amount: int) -> None:
        _require_positive(amount)
        balance = self.collateral_of(user, asset)
        if amount > balance:
            raise InsufficientCollateral(user, asset, amount, balance)
        self._set_collateral(user, asset, balance - amount)

    def increase_issued(self, user: str, amount: int) -> None:
        _require_positive(amount)
        issued = self.issued_of(user)
        if issued + amount > MAX_UINT256:
            raise ArithmeticOverflow(f"{user} issued balance would overflow")
        self._set_issued(user, issued + amount)

    def decrease_issued(self, user: str, amount: int) -> None:
        _require_positive(amount)
        issued = self.issued_of(user)
        if amount > issued:
            raise InsufficientDebt(user, amount, issued)
        self._set_issued(user, issued - amount)

    # ------------------------------------------------------------------
    # Journal
    # ------------------------------------------------------------------

    @contextmanager
    def journal(self) -> Iterator[None]:
        """Record inverse operations; replay them newest-first on error."""
        if self._undo is not None:
            raise RuntimeError("Ledger journal is already open")
        self._undo = []
        try:
            yield
        except BaseException:
            undo, self._undo = self._undo, None
            for revert in reversed(undo):
                revert()
            logger.debug("Rolled back %d ledger mutation(s)", len(undo))
            raise
        finally:
            self._undo = None

    def _set_collateral(self, user: str, asset: str, value: int) -> None:
        previous = self._collateral.get(user, {}).get(asset)
        if self._undo is not None:
            self._undo.append(lambda: self._restore_collateral(user, asset, previous))
        self._collateral.setdefault(user, {})[asset] = value

    def _set_issued(self, user: str, value: int) -> None:
        previous = self._issued.get(user)
        if self._undo is not None:
            self._undo.append(lambda: self._restore_issued(user, previous))
        self._issued[user] = value

    def _restore_collateral(self, user: str, asset: str, previous: int | None) -> None:
        holdings = self._collateral[user]
        if previous is None:
            del holdings[asset]
            if not holdings:
                del self._collateral[user]
        else:
            holdings[asset] = previous

    def _restore_issued(self, user: str, previous: int | None) -> None:
        if previous is None:
            del self._issued[user]
        else:
            self._issued[user] = previous


def _require_positive(amount: int) -> None:
    if amount <= 0:
        raise InvalidAmount(amount)
