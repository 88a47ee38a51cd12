"""In-memory fungible-token ledgers for the pegged token and collateral assets."""
from __future__ import annotations

import logging

from .errors import InsufficientBalance, InvalidAmount, NotOwner

logger = logging.getLogger(__name__)


class TokenLedger:
    """Balances and allowances of one fungible token.

    Transfers report failure by returning ``False``.
    """

    def __init__(self, symbol: str, decimals: int = 18) -> None:
        self.symbol = symbol
        self.decimals = decimals
        self.total_supply = 0
        self._balances: dict[str, int] = {}
        self._allowances: dict[tuple[str, str], int] = {}

    def balance_of(self, account: str) -> int:
        return self._balances.get(account, 0)

    def allowance(self, owner: str, spender: str) -> int:
        return self._allowances.get((owner, spender), 0)

    def approve(self, owner: str, spender: str, amount: int) -> bool:
        if amount < 0:
            return False
        self._allowances[(owner, spender)] = amount
        return True

    def transfer(self, sender: str, to: str, amount: int) -> bool:
        return self._move(sender, to, amount)

    def transfer_from(self, sender: str, from_: str, to: str, amount: int) -> bool:
        if sender != from_:
            allowed = self.allowance(from_, sender)
            if allowed < amount:
                logger.debug(
                    "%s allowance %s -> %s too low: %d < %d",
                    self.symbol, from_, sender, allowed, amount,
                )
                return False
            if not self._move(from_, to, amount):
                return False
            self._allowances[(from_, sender)] = allowed - amount
            return True
        return self._move(from_, to, amount)

    def _move(self, from_: str, to: str, amount: int) -> bool:
        if amount < 0 or not to:
            return False
        balance = self.balance_of(from_)
        if balance < amount:
            logger.debug(
                "%s balance of %s too low: %d < %d", self.symbol, from_, balance, amount
            )
            return False
        self._balances[from_] = balance - amount
        self._balances[to] = self.balance_of(to) + amount
        return True

    def _credit(self, account: str, amount: int) -> None:
        self._balances[account] = self.balance_of(account) + amount
        self.total_supply += amount

    def _debit(self, account: str, amount: int) -> None:
        self._balances[account] = self.balance_of(account) - amount
        self.total_supply -= amount


class CollateralTokenLedger(TokenLedger):
    """A collateral asset with an unrestricted faucet for seeding balances."""

    def faucet(self, account: str, amount: int) -> None:
        if amount <= 0:
            raise InvalidAmount(amount)
        self._credit(account, amount)


class PeggedTokenLedger(TokenLedger):
    """The pegged token; only ``owner`` may mint or burn."""

    def __init__(self, owner: str, symbol: str = "DSC", decimals: int = 18) -> None:
        super().__init__(symbol, decimals)
        self.owner = owner

    def transfer_ownership(self, sender: str, new_owner: str) -> None:
        self._require_owner(sender)
        self.owner = new_owner

    def mint(self, sender: str, to: str, amount: int) -> bool:
        self._require_owner(sender)
        if not to or amount <= 0:
            return False
        self._credit(to, amount)
        return True

    def burn(self, sender: str, from_: str, amount: int) -> None:
        self._require_owner(sender)
        if amount <= 0:
            raise InvalidAmount(amount)
        balance = self.balance_of(from_)
        if balance < amount:
            raise InsufficientBalance(from_, amount, balance)
        self._debit(from_, amount)

    def _require_owner(self, sender: str) -> None:
        if sender != self.owner:
            raise NotOwner(f"{sender} is not the owner of {self.symbol}")
