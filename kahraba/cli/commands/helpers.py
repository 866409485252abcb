"""Shared helper functions for CLI commands."""

import argparse
import json
import re
from dataclasses import dataclass
from typing import Any, Dict

from kahraba.audit import AuditLog
from kahraba.dispatch import BroadcastDispatcher
from kahraba.jobs import Job, JobService
from kahraba.ledger import LedgerService
from kahraba.types import to_money


@dataclass
class CLIContext:
    """Services a command runs against."""

    jobs: JobService
    ledger: LedgerService
    dispatcher: BroadcastDispatcher
    audit: AuditLog
    currency: str = "JOD"


def validate_input(value: str, field_name: str, max_length: int = 1000) -> str:
    """Validate and sanitize CLI inputs."""
    if not isinstance(value, str):
        raise ValueError(f"{field_name} must be a string")

    if len(value) > max_length:
        raise ValueError(f"{field_name} too long (max {max_length} characters)")

    # Remove null bytes and control characters except newlines
    sanitized = re.sub(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]", "", value)

    return sanitized


def print_json(data: Any) -> None:
    """Print data as formatted JSON."""
    print(json.dumps(data, indent=2, default=str))


def parse_amount(value: str):
    """argparse type for a positive money amount."""
    try:
        amount = to_money(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"Amount must be a number, got '{value}'")
    if amount <= 0:
        raise argparse.ArgumentTypeError(f"Amount must be positive, got {value}")
    return amount


def parse_add_on(value: str) -> Dict[str, Any]:
    """argparse type for NAME:PRICE."""
    name, sep, price = value.rpartition(":")
    if not sep or not name.strip():
        raise argparse.ArgumentTypeError(f"Add-on must look like NAME:PRICE, got '{value}'")
    return {"name": validate_input(name.strip(), "add-on name", 200), "price": parse_amount(price)}


def format_job(job: Job, currency: str = "JOD") -> str:
    """Human-readable multi-line job summary."""
    lines = [
        f"Job #{job.short_id} ({job.id})",
        f"  Status: {job.status.value}",
        f"  Customer: {job.customer_name or job.customer_id}",
        f"  Electrician: {job.electrician_name or job.electrician_id or '-'}",
        f"  Total: {job.total_price} {currency} (base {job.base_price})",
    ]
    if job.description:
        lines.append(f"  Description: {job.description}")
    if job.address or job.city:
        lines.append(f"  Address: {', '.join(p for p in (job.address, job.city) if p)}")
    for add_on in job.add_ons:
        lines.append(f"  + {add_on.name} ({add_on.price})")
    for add_on in job.pending_add_ons:
        lines.append(f"  ? {add_on.name} ({add_on.price}) [pending, id={add_on.id}]")
    if job.cancellation_reason:
        lines.append(f"  Cancelled: {job.cancellation_reason}")
    return "\n".join(lines)
