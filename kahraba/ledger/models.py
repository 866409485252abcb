"""
Ledger data models.

Transactions are immutable. An electrician's balance is never stored; it is
the fold of all their transactions.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Iterable, Optional

from kahraba.types import format_datetime, parse_datetime, to_money


class TransactionType(str, Enum):
    """Ledger entry kind. The kind fixes the sign of the amount."""

    EARNING = "earning"
    COMMISSION = "commission"
    SETTLEMENT = "settlement"  # Electrician paid the platform
    DEDUCTION = "deduction"
    BONUS = "bonus"


CREDIT_TYPES = frozenset({TransactionType.EARNING, TransactionType.BONUS})
DEBIT_TYPES = frozenset(
    {TransactionType.COMMISSION, TransactionType.DEDUCTION, TransactionType.SETTLEMENT}
)

# Kinds written by job settlement; at most one of each per job
SETTLEMENT_TYPES = frozenset({TransactionType.EARNING, TransactionType.COMMISSION})

# Kinds an admin may record by hand
MANUAL_TYPES = frozenset(
    {TransactionType.SETTLEMENT, TransactionType.BONUS, TransactionType.DEDUCTION}
)


@dataclass(frozen=True)
class Transaction:
    """A single ledger entry for one electrician."""

    id: str
    electrician_id: str
    type: TransactionType
    amount: Decimal
    description: str = ""
    job_id: Optional[str] = None
    created_at: Optional[datetime] = None

    def __post_init__(self):
        if not self.electrician_id:
            raise ValueError("electrician_id is required")
        try:
            object.__setattr__(self, "type", TransactionType(self.type))
        except ValueError:
            raise ValueError(f"Invalid transaction type: {self.type}") from None
        amount = to_money(self.amount)
        if amount < 0:
            raise ValueError(f"Transaction amount cannot be negative, got {amount}")
        object.__setattr__(self, "amount", amount)

    @property
    def signed_amount(self) -> Decimal:
        """Amount with the sign implied by the transaction type."""
        return self.amount if self.type in CREDIT_TYPES else -self.amount

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "electrician_id": self.electrician_id,
            "job_id": self.job_id,
            "type": self.type.value,
            "amount": str(self.amount),
            "description": self.description,
            "created_at": format_datetime(self.created_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Transaction":
        return cls(
            id=data["id"],
            electrician_id=data["electrician_id"],
            job_id=data.get("job_id"),
            type=data["type"],
            amount=data["amount"],
            description=data.get("description") or "",
            created_at=parse_datetime(data.get("created_at")),
        )


def fold_balance(transactions: Iterable[Transaction]) -> Decimal:
    """Sum signed amounts."""
    return sum((t.signed_amount for t in transactions), Decimal("0"))


@dataclass(frozen=True)
class Settlement:
    """The pair of entries written when a job completes."""

    earning: Transaction
    commission: Transaction

    @property
    def transactions(self) -> tuple:
        return (self.earning, self.commission)


@dataclass(frozen=True)
class WorkerStats:
    """Earnings summary shown to an electrician."""

    electrician_id: str
    current_balance: Decimal
    credit_limit: Decimal
    this_week_earnings: Decimal
    this_month_earnings: Decimal
    completed_jobs: int

    @property
    def over_credit_limit(self) -> bool:
        """True once the electrician owes more than the credit limit."""
        return self.current_balance < -self.credit_limit

    def to_dict(self) -> Dict[str, Any]:
        return {
            "electrician_id": self.electrician_id,
            "current_balance": str(self.current_balance),
            "credit_limit": str(self.credit_limit),
            "this_week_earnings": str(self.this_week_earnings),
            "this_month_earnings": str(self.this_month_earnings),
            "completed_jobs": self.completed_jobs,
            "over_credit_limit": self.over_credit_limit,
        }
