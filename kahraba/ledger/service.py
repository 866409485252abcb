"""
Ledger service.

Splits completed jobs into an earning for the electrician and a commission
for the platform, and records the other balance movements an admin can make
(cash settlement payments, bonuses, deductions).
"""

import logging
import uuid
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Callable, List, Optional

from kahraba.audit import ENTITY_BALANCE, AuditLog
from kahraba.config import MarketplaceConfig
from kahraba.errors import LedgerError, SettlementError
from kahraba.jobs.models import Job
from kahraba.ledger.models import (
    CREDIT_TYPES,
    MANUAL_TYPES,
    Settlement,
    Transaction,
    TransactionType,
    WorkerStats,
    fold_balance,
)
from kahraba.logging_config import log_settlement
from kahraba.storage.base import MarketplaceStorage
from kahraba.types import Clock, round2, to_money, utc_now

logger = logging.getLogger(__name__)


def _new_id() -> str:
    return str(uuid.uuid4())


def start_of_week(now: datetime) -> datetime:
    """Midnight of the most recent Sunday."""
    days_since_sunday = (now.weekday() + 1) % 7
    midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)
    return midnight - timedelta(days=days_since_sunday)


def start_of_month(now: datetime) -> datetime:
    return now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)


class LedgerService:
    """Service for settlement and balance operations.

    Balances are never stored; every read folds the electrician's
    transactions.
    """

    def __init__(
        self,
        storage: MarketplaceStorage,
        config: Optional[MarketplaceConfig] = None,
        clock: Clock = utc_now,
        id_factory: Callable[[], str] = _new_id,
        audit: Optional[AuditLog] = None,
    ):
        self.storage = storage
        self.config = config or MarketplaceConfig()
        self.clock = clock
        self.id_factory = id_factory
        self.audit = audit or AuditLog(storage, clock=clock)

    # === Settlement ===

    def split(self, total: Decimal) -> tuple:
        """Return ``(earning, commission)`` for a job total.

        Commission is rounded half-up to cents and the earning takes the rest,
        so the two always sum to the total.
        """
        total = round2(total)
        commission = round2(total * self.config.commission_rate_decimal)
        return total - commission, commission

    def existing_settlement(self, job_id: str) -> Optional[Settlement]:
        """The settlement pair already recorded for a job, if any."""
        entries = self.storage.list_transactions(job_id=job_id)
        earning = next((t for t in entries if t.type == TransactionType.EARNING), None)
        commission = next((t for t in entries if t.type == TransactionType.COMMISSION), None)
        if earning is None and commission is None:
            return None
        if earning is None or commission is None:
            raise SettlementError(f"Job {job_id} has an incomplete settlement in the ledger")
        return Settlement(earning=earning, commission=commission)

    def compute_settlement(self, job: Job) -> Settlement:
        """Build the earning and commission entries for a job without writing them.

        Raises:
            SettlementError: No electrician assigned or non-positive total
        """
        if not job.electrician_id:
            raise SettlementError(f"Job {job.id} has no assigned electrician to settle")
        total = job.total_price
        if total <= 0:
            raise SettlementError(f"Job {job.id} has non-positive total {total}")

        earning, commission = self.split(total)
        now = self.clock()
        return Settlement(
            earning=Transaction(
                id=self.id_factory(),
                electrician_id=job.electrician_id,
                job_id=job.id,
                type=TransactionType.EARNING,
                amount=earning,
                description=f"Job #{job.short_id} completed",
                created_at=now,
            ),
            commission=Transaction(
                id=self.id_factory(),
                electrician_id=job.electrician_id,
                job_id=job.id,
                type=TransactionType.COMMISSION,
                amount=commission,
                description=f"Platform fee for Job #{job.short_id}",
                created_at=now,
            ),
        )

    def settle(self, job: Job) -> Settlement:
        """Write the settlement pair for a job, at most once.

        If the job was already settled the existing pair is returned and
        nothing is written.
        """
        existing = self.existing_settlement(job.id)
        if existing is not None:
            logger.debug(f"Job {job.id} already settled; returning existing entries")
            return existing

        settlement = self.compute_settlement(job)
        try:
            self.storage.append_transactions(settlement.transactions)
        except ValueError as e:
            raise SettlementError(f"Failed to record settlement for job {job.id}: {e}") from e

        log_settlement(
            job.id, job.electrician_id, settlement.earning.amount, settlement.commission.amount
        )
        logger.info(
            f"Settled job {job.id}: earning={settlement.earning.amount} "
            f"commission={settlement.commission.amount}"
        )
        return settlement

    # === Queries ===

    def get_transactions(self, electrician_id: str) -> List[Transaction]:
        """All ledger entries for an electrician, oldest first."""
        return self.storage.list_transactions(electrician_id=electrician_id)

    def get_balance(self, electrician_id: str) -> Decimal:
        return fold_balance(self.get_transactions(electrician_id))

    def get_stats(self, electrician_id: str, now: Optional[datetime] = None) -> WorkerStats:
        """Earnings summary: balance, week/month earnings and completed jobs.

        Weeks start on Sunday. Week and month totals count earnings and
        bonuses; the completed-jobs count is the number of earning entries.
        """
        now = now or self.clock()
        week_start = start_of_week(now)
        month_start = start_of_month(now)
        transactions = self.get_transactions(electrician_id)

        this_week = Decimal("0")
        this_month = Decimal("0")
        for t in transactions:
            if t.type not in CREDIT_TYPES or t.created_at is None:
                continue
            if t.created_at >= week_start:
                this_week += t.amount
            if t.created_at >= month_start:
                this_month += t.amount

        return WorkerStats(
            electrician_id=electrician_id,
            current_balance=fold_balance(transactions),
            credit_limit=self.config.credit_limit_decimal,
            this_week_earnings=this_week,
            this_month_earnings=this_month,
            completed_jobs=sum(1 for t in transactions if t.type == TransactionType.EARNING),
        )

    def is_over_credit_limit(self, electrician_id: str) -> bool:
        return self.get_balance(electrician_id) < -self.config.credit_limit_decimal

    # === Manual entries ===

    def _record(
        self,
        electrician_id: str,
        tx_type: TransactionType,
        amount,
        description: str,
    ) -> Transaction:
        if not electrician_id:
            raise LedgerError("electrician_id is required")
        try:
            value = to_money(amount)
        except ValueError as e:
            raise LedgerError(str(e)) from e
        if value <= 0:
            raise LedgerError(f"Amount must be positive, got {value}")

        transaction = Transaction(
            id=self.id_factory(),
            electrician_id=electrician_id,
            type=tx_type,
            amount=round2(value),
            description=description,
            created_at=self.clock(),
        )
        self.storage.append_transaction(transaction)
        logger.info(
            f"Recorded {tx_type.value} of {transaction.amount} {self.config.currency} "
            f"for electrician {electrician_id}"
        )
        return transaction

    def record_settlement_payment(self, electrician_id: str, amount, note: str = "") -> Transaction:
        """Record cash the electrician paid to the platform."""
        return self._record(
            electrician_id, TransactionType.SETTLEMENT, amount, note or "Balance settlement"
        )

    def record_bonus(self, electrician_id: str, amount, note: str = "") -> Transaction:
        return self._record(electrician_id, TransactionType.BONUS, amount, note or "Bonus")

    def record_deduction(self, electrician_id: str, amount, note: str = "") -> Transaction:
        return self._record(electrician_id, TransactionType.DEDUCTION, amount, note or "Deduction")

    def record_admin_entry(
        self,
        electrician_id: str,
        tx_type: TransactionType,
        amount,
        admin_id: str,
        reason: str,
        ip_address: Optional[str] = None,
    ) -> Transaction:
        """Record a manual entry on an admin's behalf and audit it.

        The reason becomes the entry description.

        Raises:
            LedgerError: Missing admin or reason, invalid amount, or a type
                that only settlement may write
        """
        tx_type = TransactionType(tx_type)
        if tx_type not in MANUAL_TYPES:
            raise LedgerError(f"{tx_type.value} entries are written by settlement only")
        if not admin_id:
            raise LedgerError("admin_id is required")
        reason = (reason or "").strip()
        if not reason:
            raise LedgerError("A reason is required for manual ledger entries")

        transaction = self._record(electrician_id, tx_type, amount, reason)
        self.audit.record(
            admin_id,
            "balance_adjusted",
            ENTITY_BALANCE,
            electrician_id,
            reason,
            details={
                "transaction_id": transaction.id,
                "type": tx_type.value,
                "amount": str(transaction.signed_amount),
                "balance_after": str(self.get_balance(electrician_id)),
            },
            ip_address=ip_address,
        )
        return transaction
