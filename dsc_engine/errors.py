"""Error kinds raised by the engine and its collaborators."""
from __future__ import annotations


class EngineError(Exception):
    """Base class for every engine failure."""


# ---------------------------------------------------------------------------
# Input validation
# ---------------------------------------------------------------------------


class ValidationError(EngineError):
    """Caller error, rejected before any state change."""


class InvalidAmount(ValidationError):
    def __init__(self, amount: int) -> None:
        super().__init__(f"Amount must be greater than zero, got {amount}")
        self.amount = amount


class NotAllowedToken(ValidationError):
    def __init__(self, asset: str) -> None:
        super().__init__(f"Token '{asset}' is not an allowed collateral")
        self.asset = asset


class MustBeSameLength(ValidationError):
    def __init__(self, tokens: int, feeds: int) -> None:
        super().__init__(
            f"Token and price feed lists must be the same length ({tokens} != {feeds})"
        )


class ArithmeticOverflow(ValidationError):
    pass


class InsufficientCollateral(ValidationError):
    def __init__(self, user: str, asset: str, requested: int, available: int) -> None:
        super().__init__(
            f"{user} has {available} {asset} deposited, cannot remove {requested}"
        )
        self.requested = requested
        self.available = available


class InsufficientDebt(ValidationError):
    def __init__(self, user: str, requested: int, available: int) -> None:
        super().__init__(f"{user} owes {available} DSC, cannot repay {requested}")
        self.requested = requested
        self.available = available


class InsufficientCollateralForBonus(ValidationError):
    def __init__(self, user: str, asset: str, required: int, available: int) -> None:
        super().__init__(
            f"{user} holds {available} {asset}, liquidation needs at least {required}"
        )
        self.required = required
        self.available = available


class LiquidationTooSmall(ValidationError):
    def __init__(self, asset: str, debt_to_cover: int) -> None:
        super().__init__(f"Covering {debt_to_cover} of debt buys no {asset} collateral")
        self.asset = asset
        self.debt_to_cover = debt_to_cover


# ---------------------------------------------------------------------------
# Solvency
# ---------------------------------------------------------------------------


class SolvencyError(EngineError):
    """Health-factor rule violated; carries the computed factor."""


class BreaksHealthFactor(SolvencyError):
    def __init__(self, health_factor: int) -> None:
        super().__init__(f"Health factor would drop to {health_factor}")
        self.health_factor = health_factor


class HealthFactorOk(SolvencyError):
    def __init__(self, health_factor: int) -> None:
        super().__init__(f"Position is healthy (health factor {health_factor})")
        self.health_factor = health_factor


class HealthFactorNotImproved(SolvencyError):
    def __init__(self, start: int, end: int) -> None:
        super().__init__(f"Health factor did not improve ({start} -> {end})")
        self.start = start
        self.end = end


# ---------------------------------------------------------------------------
# Collaborators
# ---------------------------------------------------------------------------


class CollaboratorError(EngineError):
    """An external ledger or price source refused or failed."""


class ExternalTransferFailed(CollaboratorError):
    pass


class MintFailed(CollaboratorError):
    pass


class OracleUnavailable(CollaboratorError):
    pass


class InsufficientBalance(CollaboratorError):
    def __init__(self, account: str, requested: int, available: int) -> None:
        super().__init__(f"{account} has {available}, needs {requested}")
        self.requested = requested
        self.available = available


class NotOwner(CollaboratorError):
    pass


# ---------------------------------------------------------------------------
# Reentrancy
# ---------------------------------------------------------------------------


class ReentrantCall(EngineError):
    def __init__(self, operation: str) -> None:
        super().__init__(f"Re-entrant call to {operation} rejected")
        self.operation = operation
