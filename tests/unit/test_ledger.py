"""Unit tests for the position ledger and its rollback journal."""
from __future__ import annotations

import pytest

from dsc_engine.errors import (
    ArithmeticOverflow,
    InsufficientCollateral,
    InsufficientDebt,
    InvalidAmount,
)
from dsc_engine.ledger import MAX_UINT256, PositionLedger


@pytest.fixture()
def ledger() -> PositionLedger:
    return PositionLedger()


class TestCollateral:
    def test_add_creates_position(self, ledger: PositionLedger) -> None:
        ledger.add_collateral("alice", "WETH", 5)
        ledger.add_collateral("alice", "WETH", 7)
        assert ledger.collateral_of("alice", "WETH") == 12
        assert ledger.users() == ["alice"]

    def test_unknown_balance_is_zero(self, ledger: PositionLedger) -> None:
        assert ledger.collateral_of("nobody", "WETH") == 0
        assert ledger.issued_of("nobody") == 0

    @pytest.mark.parametrize("amount", [0, -1])
    def test_add_rejects_non_positive(self, ledger: PositionLedger, amount: int) -> None:
        with pytest.raises(InvalidAmount):
            ledger.add_collateral("alice", "WETH", amount)
        assert ledger.users() == []

    def test_add_overflow(self, ledger: PositionLedger) -> None:
        ledger.add_collateral("alice", "WETH", MAX_UINT256)
        with pytest.raises(ArithmeticOverflow):
            ledger.add_collateral("alice", "WETH", 1)
        assert ledger.collateral_of("alice", "WETH") == MAX_UINT256

    def test_remove(self, ledger: PositionLedger) -> None:
        ledger.add_collateral("alice", "WETH", 10)
        ledger.remove_collateral("alice", "WETH", 10)
        assert ledger.collateral_of("alice", "WETH") == 0

    def test_remove_more_than_balance(self, ledger: PositionLedger) -> None:
        ledger.add_collateral("alice", "WETH", 10)
        with pytest.raises(InsufficientCollateral) as exc:
            ledger.remove_collateral("alice", "WETH", 11)
        assert exc.value.available == 10
        assert ledger.collateral_of("alice", "WETH") == 10

    def test_remove_zero(self, ledger: PositionLedger) -> None:
        ledger.add_collateral("alice", "WETH", 10)
        with pytest.raises(InvalidAmount):
            ledger.remove_collateral("alice", "WETH", 0)


class TestIssued:
    def test_increase_and_decrease(self, ledger: PositionLedger) -> None:
        ledger.increase_issued("alice", 100)
        ledger.decrease_issued("alice", 40)
        assert ledger.issued_of("alice") == 60

    def test_decrease_more_than_owed(self, ledger: PositionLedger) -> None:
        ledger.increase_issued("alice", 100)
        with pytest.raises(InsufficientDebt):
            ledger.decrease_issued("alice", 101)
        assert ledger.issued_of("alice") == 100

    def test_increase_zero(self, ledger: PositionLedger) -> None:
        with pytest.raises(InvalidAmount):
            ledger.increase_issued("alice", 0)

    def test_increase_overflow(self, ledger: PositionLedger) -> None:
        ledger.increase_issued("alice", MAX_UINT256)
        with pytest.raises(ArithmeticOverflow):
            ledger.increase_issued("alice", 1)


class TestJournal:
    def test_commit_keeps_changes(self, ledger: PositionLedger) -> None:
        with ledger.journal():
            ledger.add_collateral("alice", "WETH", 10)
            ledger.increase_issued("alice", 3)
        assert ledger.collateral_of("alice", "WETH") == 10
        assert ledger.issued_of("alice") == 3

    def test_error_restores_exact_prior_state(self, ledger: PositionLedger) -> None:
        ledger.add_collateral("alice", "WETH", 10)
        before_collateral = dict(ledger._collateral["alice"])
        before_issued = dict(ledger._issued)

        with pytest.raises(RuntimeError):
            with ledger.journal():
                ledger.add_collateral("alice", "WETH", 5)
                ledger.add_collateral("alice", "WBTC", 1)
                ledger.add_collateral("bob", "WETH", 2)
                ledger.increase_issued("alice", 7)
                raise RuntimeError("boom")

        assert ledger._collateral == {"alice": before_collateral}
        assert ledger._issued == before_issued
        assert ledger.users() == ["alice"]

    def test_mutations_outside_journal_are_not_recorded(self, ledger: PositionLedger) -> None:
        ledger.add_collateral("alice", "WETH", 10)
        with ledger.journal():
            pass
        assert ledger.collateral_of("alice", "WETH") == 10

    def test_nested_journal_rejected(self, ledger: PositionLedger) -> None:
        with ledger.journal():
            with pytest.raises(RuntimeError, match="already open"):
                with ledger.journal():
                    pass
