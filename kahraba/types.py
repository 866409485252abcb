"""
Shared types for kahraba.

Money helpers, the clock type and storage-level errors live here. They are the
shared vocabulary between the job, ledger and dispatch services and the
storage backends.
"""

from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Callable, Optional

# === Clock ===

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Get the current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def parse_datetime(s: Optional[str]) -> Optional[datetime]:
    """Parse an ISO datetime string (accepts a trailing Z)."""
    if not s:
        return None
    return datetime.fromisoformat(s.replace("Z", "+00:00"))


def format_datetime(dt: Optional[datetime]) -> Optional[str]:
    """Format a datetime as ISO string, passing None through."""
    return dt.isoformat() if dt else None


# === Money ===

CENT = Decimal("0.01")


def to_money(value: Any) -> Decimal:
    """Coerce an int, float, str or Decimal into a Decimal amount.

    Floats go through ``str`` so that ``0.1`` becomes ``Decimal("0.1")`` rather
    than its binary expansion.
    """
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise ValueError(f"Invalid amount: {value!r}")
    try:
        return Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError) as exc:
        raise ValueError(f"Invalid amount: {value!r}") from exc


def round2(amount: Decimal) -> Decimal:
    """Round to two decimal places, half-up."""
    return to_money(amount).quantize(CENT, rounding=ROUND_HALF_UP)


def to_price(value: Any) -> Decimal:
    """Coerce a price, rounding anything finer than a cent half-up.

    Whole and two-place amounts keep their written form (``30`` stays ``30``).
    """
    amount = to_money(value)
    if not amount.is_finite():
        raise ValueError(f"Invalid amount: {value!r}")
    if amount.as_tuple().exponent < -2:
        return round2(amount)
    return amount


# === Errors ===


class VersionConflictError(Exception):
    """Raised when a record's version doesn't match the expected version.

    This indicates a concurrent modification - another writer updated the
    record between when we read it and when we tried to save our changes.
    """

    def __init__(self, table: str, record_id: str, expected_version: int, actual_version: int):
        self.table = table
        self.record_id = record_id
        self.expected_version = expected_version
        self.actual_version = actual_version
        super().__init__(
            f"Version conflict on {table}/{record_id}: "
            f"expected version {expected_version}, found {actual_version}"
        )
