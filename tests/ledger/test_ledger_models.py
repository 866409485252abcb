"""Tests for ledger models."""

from datetime import datetime, timezone
from decimal import Decimal

import pytest

from kahraba.ledger import Transaction, TransactionType, WorkerStats, fold_balance

NOW = datetime(2024, 5, 15, 10, 0, tzinfo=timezone.utc)


def tx(tx_type, amount, **kwargs):
    return Transaction(id=f"t-{tx_type}-{amount}", electrician_id="e1", type=tx_type, amount=amount, **kwargs)


class TestTransaction:
    @pytest.mark.parametrize(
        "tx_type,sign",
        [
            (TransactionType.EARNING, 1),
            (TransactionType.BONUS, 1),
            (TransactionType.COMMISSION, -1),
            (TransactionType.DEDUCTION, -1),
            (TransactionType.SETTLEMENT, -1),
        ],
    )
    def test_type_fixes_sign(self, tx_type, sign):
        assert tx(tx_type, "10").signed_amount == Decimal("10") * sign

    def test_negative_amount_rejected(self):
        with pytest.raises(ValueError, match="negative"):
            tx(TransactionType.EARNING, "-1")

    def test_unknown_type_rejected(self):
        with pytest.raises(ValueError, match="Invalid transaction type"):
            tx("tip", "5")

    def test_electrician_required(self):
        with pytest.raises(ValueError):
            Transaction(id="t1", electrician_id="", type="earning", amount=5)

    def test_dict_round_trip(self):
        original = tx(TransactionType.COMMISSION, "4.50", job_id="j1", description="Fee", created_at=NOW)
        assert Transaction.from_dict(original.to_dict()) == original


class TestFoldBalance:
    def test_empty(self):
        assert fold_balance([]) == Decimal("0")

    def test_mixed_entries(self):
        entries = [
            tx(TransactionType.EARNING, "25.50"),
            tx(TransactionType.COMMISSION, "4.50"),
            tx(TransactionType.BONUS, "5"),
            tx(TransactionType.DEDUCTION, "2"),
            tx(TransactionType.SETTLEMENT, "10"),
        ]
        assert fold_balance(entries) == Decimal("14.00")


class TestWorkerStats:
    def _stats(self, balance):
        return WorkerStats(
            electrician_id="e1",
            current_balance=Decimal(balance),
            credit_limit=Decimal("50"),
            this_week_earnings=Decimal("0"),
            this_month_earnings=Decimal("0"),
            completed_jobs=0,
        )

    def test_at_limit_is_not_over(self):
        assert not self._stats("-50").over_credit_limit

    def test_past_limit_is_over(self):
        assert self._stats("-50.01").over_credit_limit

    def test_to_dict(self):
        data = self._stats("-60").to_dict()
        assert data["current_balance"] == "-60"
        assert data["over_credit_limit"] is True
