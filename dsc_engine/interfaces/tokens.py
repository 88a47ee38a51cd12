"""Token ledger protocols — pegged token and collateral assets."""
from typing import Protocol


class PeggedToken(Protocol):
    """Fungible ledger of the pegged token; mint and burn are owner-gated."""

    def mint(self, sender: str, to: str, amount: int) -> bool: ...

    def burn(self, sender: str, from_: str, amount: int) -> None: ...

    def balance_of(self, account: str) -> int: ...


class CollateralToken(Protocol):
    """Fungible ledger of a collateral asset."""

    def transfer(self, sender: str, to: str, amount: int) -> bool: ...

    def transfer_from(self, sender: str, from_: str, to: str, amount: int) -> bool: ...

    def balance_of(self, account: str) -> int: ...
