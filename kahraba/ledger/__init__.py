"""Settlement ledger for Kahraba.

Models:
- Transaction: An immutable ledger entry
- TransactionType: Entry kind (earning, commission, settlement, deduction, bonus)
- Settlement: The earning/commission pair written at completion
- WorkerStats: Earnings summary for one electrician

Service:
- LedgerService: Settlement, balances and manual entries
"""

from kahraba.ledger.models import (
    CREDIT_TYPES,
    DEBIT_TYPES,
    MANUAL_TYPES,
    Settlement,
    Transaction,
    TransactionType,
    WorkerStats,
    fold_balance,
)
from kahraba.ledger.service import LedgerService

__all__ = [
    # Models
    "Transaction",
    "TransactionType",
    "Settlement",
    "WorkerStats",
    "CREDIT_TYPES",
    "DEBIT_TYPES",
    "MANUAL_TYPES",
    "fold_balance",
    # Service
    "LedgerService",
]
