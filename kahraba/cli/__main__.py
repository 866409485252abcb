"""
Kahraba CLI - Command-line interface for the dispatch core.

Usage:
    kahraba job create --customer C --price P [--add-on NAME:PRICE]...
    kahraba job show JOB_ID
    kahraba job list [--status S] [--customer C] [--electrician E]
    kahraba job advance JOB_ID --electrician E
    kahraba job cancel JOB_ID --role ROLE --actor ID [--reason R]
    kahraba job force JOB_ID STATUS --admin ID --reason R
    kahraba ledger stats ELECTRICIAN
    kahraba ledger record ELECTRICIAN {settlement,bonus,deduction} AMOUNT --admin ID --reason R
    kahraba audit [--entity-type T] [--entity-id ID] [--admin ID]
    kahraba dispatch offer --electrician E
    kahraba dispatch accept JOB_ID --electrician E
"""

import argparse
import logging
import sys
from pathlib import Path

from kahraba.audit import ENTITY_BALANCE, ENTITY_JOB
from kahraba.cli.commands.audit import cmd_audit
from kahraba.cli.commands.dispatch import cmd_dispatch
from kahraba.cli.commands.helpers import CLIContext, parse_add_on, parse_amount
from kahraba.cli.commands.jobs import cmd_job
from kahraba.cli.commands.ledger import cmd_ledger
from kahraba.config import MarketplaceConfig
from kahraba.dispatch import BroadcastDispatcher
from kahraba.errors import KahrabaError
from kahraba.jobs import ActorRole, JobService, JobStatus
from kahraba.jobs.models import PAYMENT_METHODS
from kahraba.logging_config import setup_kahraba_logging
from kahraba.notify import LoggingNotifier
from kahraba.storage import SQLiteStorage

# Set up logging
logging.basicConfig(level=logging.WARNING)
logger = logging.getLogger(__name__)


def build_context(db_path=None) -> CLIContext:
    config = MarketplaceConfig.from_env()
    storage = SQLiteStorage(Path(db_path) if db_path else None)
    jobs = JobService(storage, config=config, notifier=LoggingNotifier())
    return CLIContext(
        jobs=jobs,
        ledger=jobs.ledger,
        dispatcher=BroadcastDispatcher(jobs),
        audit=jobs.audit,
        currency=config.currency,
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="kahraba",
        description="Electrician dispatch: jobs, settlement ledger and broadcast offers",
    )
    parser.add_argument("--db", help="SQLite database path (default: $KAHRABA_DATA_DIR/kahraba.db)")
    parser.add_argument("--json", "-j", action="store_true", help="Output as JSON")
    parser.add_argument("--log-level", dest="log_level", help="Write logs to the data dir")

    subparsers = parser.add_subparsers(dest="command", required=True)
    statuses = [s.value for s in JobStatus]

    # job
    p_job = subparsers.add_parser("job", help="Job lifecycle")
    job_sub = p_job.add_subparsers(dest="job_action", required=True)

    j_create = job_sub.add_parser("create", help="Create and broadcast a job")
    j_create.add_argument("--customer", required=True, help="Customer ID")
    j_create.add_argument("--price", required=True, type=parse_amount, help="Base price")
    j_create.add_argument("--description", "-d", default="")
    j_create.add_argument("--address", default="")
    j_create.add_argument("--city", default="")
    j_create.add_argument("--name", help="Customer display name")
    j_create.add_argument("--payment", choices=sorted(PAYMENT_METHODS), default="cash")
    j_create.add_argument("--add-on", dest="add_on", action="append", type=parse_add_on,
                          help="Add-on as NAME:PRICE (repeatable)")

    j_show = job_sub.add_parser("show", help="Show a job")
    j_show.add_argument("job_id")

    j_list = job_sub.add_parser("list", help="List jobs, newest first")
    j_list.add_argument("--status", choices=statuses)
    j_list.add_argument("--customer")
    j_list.add_argument("--electrician")
    j_list.add_argument("--limit", type=int, default=20)

    j_advance = job_sub.add_parser("advance", help="Move a job to its next status")
    j_advance.add_argument("job_id")
    j_advance.add_argument("--electrician", required=True, help="Assigned electrician ID")
    j_advance.add_argument("--note")

    j_cancel = job_sub.add_parser("cancel", help="Cancel a job")
    j_cancel.add_argument("job_id")
    j_cancel.add_argument("--role", required=True,
                          choices=[r.value for r in ActorRole if r != ActorRole.SYSTEM])
    j_cancel.add_argument("--actor", required=True, help="Actor ID")
    j_cancel.add_argument("--reason")

    j_history = job_sub.add_parser("history", help="Show a job's timeline")
    j_history.add_argument("job_id")

    j_force = job_sub.add_parser("force", help="Admin override of a job's status")
    j_force.add_argument("job_id")
    j_force.add_argument("status", choices=statuses)
    j_force.add_argument("--admin", required=True, help="Admin ID")
    j_force.add_argument("--reason", required=True)

    j_addons = job_sub.add_parser("addons-request", help="Electrician requests add-ons")
    j_addons.add_argument("job_id")
    j_addons.add_argument("--electrician", required=True)
    j_addons.add_argument("--add-on", dest="add_on", action="append", type=parse_add_on,
                          required=True, help="Add-on as NAME:PRICE (repeatable)")

    j_approve = job_sub.add_parser("addons-approve", help="Customer approves pending add-ons")
    j_approve.add_argument("job_id")
    j_approve.add_argument("--customer", required=True)
    j_approve.add_argument("--id", action="append", help="Add-on ID (default: all pending)")
    j_approve.add_argument("--reject", action="store_true", help="Reject instead of approve")

    # ledger
    p_ledger = subparsers.add_parser("ledger", help="Settlement ledger")
    ledger_sub = p_ledger.add_subparsers(dest="ledger_action", required=True)

    for name, help_text in (
        ("balance", "Current balance"),
        ("transactions", "List ledger entries"),
        ("stats", "Earnings summary"),
    ):
        p = ledger_sub.add_parser(name, help=help_text)
        p.add_argument("electrician")

    l_settle = ledger_sub.add_parser("settle", help="Settle a completed job (idempotent)")
    l_settle.add_argument("job_id")

    l_record = ledger_sub.add_parser("record", help="Record a manual ledger entry")
    l_record.add_argument("electrician")
    l_record.add_argument("type", choices=["settlement", "bonus", "deduction"])
    l_record.add_argument("amount", type=parse_amount)
    l_record.add_argument("--admin", required=True, help="Admin ID")
    l_record.add_argument("--reason", required=True, help="Recorded in the audit log")

    # audit
    p_audit = subparsers.add_parser("audit", help="List admin actions")
    p_audit.add_argument("--entity-type", dest="entity_type", choices=[ENTITY_JOB, ENTITY_BALANCE])
    p_audit.add_argument("--entity-id", dest="entity_id")
    p_audit.add_argument("--admin", help="Admin ID")
    p_audit.add_argument("--limit", type=int, default=20)

    # dispatch
    p_dispatch = subparsers.add_parser("dispatch", help="Broadcast offers")
    dispatch_sub = p_dispatch.add_subparsers(dest="dispatch_action", required=True)

    d_offer = dispatch_sub.add_parser("offer", help="Show the job an electrician would be offered")
    d_offer.add_argument("--electrician", required=True)
    d_offer.add_argument("--name")

    d_accept = dispatch_sub.add_parser("accept", help="Accept a broadcast job")
    d_accept.add_argument("job_id")
    d_accept.add_argument("--electrician", required=True)
    d_accept.add_argument("--name")

    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.log_level:
        setup_kahraba_logging(args.log_level)

    try:
        ctx = build_context(args.db)
    except (ValueError, OSError) as e:
        print(f"Error: failed to open marketplace: {e}", file=sys.stderr)
        sys.exit(1)

    try:
        if args.command == "job":
            cmd_job(args, ctx)
        elif args.command == "ledger":
            cmd_ledger(args, ctx)
        elif args.command == "dispatch":
            cmd_dispatch(args, ctx)
        elif args.command == "audit":
            cmd_audit(args, ctx)
    except KahrabaError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    except (ValueError, TypeError) as e:
        logger.debug(f"Input validation error: {e}")
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
