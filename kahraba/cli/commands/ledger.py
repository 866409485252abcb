"""Ledger CLI commands for Kahraba."""

from typing import TYPE_CHECKING

from kahraba.cli.commands.helpers import print_json, validate_input
from kahraba.errors import SettlementError
from kahraba.jobs import JobStatus
from kahraba.ledger import TransactionType

if TYPE_CHECKING:
    from kahraba.cli.commands.helpers import CLIContext


def cmd_ledger(args, ctx: "CLIContext"):
    """Handle ledger subcommands."""
    action = args.ledger_action
    ledger = ctx.ledger

    if action == "balance":
        balance = ledger.get_balance(args.electrician)
        if args.json:
            print_json({"electrician_id": args.electrician, "balance": str(balance)})
        else:
            print(f"Balance: {balance} {ctx.currency}")

    elif action == "transactions":
        entries = ledger.get_transactions(args.electrician)
        if args.json:
            print_json([t.to_dict() for t in entries])
            return
        if not entries:
            print("No transactions.")
            return
        for t in entries:
            when = t.created_at.strftime("%Y-%m-%d %H:%M") if t.created_at else "-"
            print(f"  {when}  {t.type.value:<11} {t.signed_amount:>9}  {t.description}")

    elif action == "stats":
        stats = ledger.get_stats(args.electrician)
        if args.json:
            print_json(stats.to_dict())
            return
        print(f"Earnings for {args.electrician}")
        print(f"  Balance:      {stats.current_balance} {ctx.currency}")
        print(f"  This week:    {stats.this_week_earnings}")
        print(f"  This month:   {stats.this_month_earnings}")
        print(f"  Completed:    {stats.completed_jobs} jobs")
        print(f"  Credit limit: {stats.credit_limit}")
        if stats.over_credit_limit:
            print("  Over the credit limit; settle the balance to take new jobs.")

    elif action == "settle":
        job = ctx.jobs.get_job(args.job_id)
        if job.status not in (JobStatus.COMPLETED, JobStatus.SETTLED):
            raise SettlementError(f"Job {job.id} is {job.status.value}; only completed jobs settle")
        settlement = ledger.settle(job)
        print(
            f"Job #{job.short_id}: earning {settlement.earning.amount}, "
            f"commission {settlement.commission.amount} {ctx.currency}"
        )

    elif action == "record":
        reason = validate_input(args.reason, "reason", 500)
        entry = ledger.record_admin_entry(
            args.electrician, TransactionType(args.type), args.amount, args.admin, reason
        )
        print(f"Recorded {entry.type.value} of {entry.amount} {ctx.currency} ({entry.id})")
