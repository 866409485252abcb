"""Dispatch CLI commands for Kahraba.

Offers are held in memory by the dispatcher, so they do not outlive a CLI
invocation. ``dispatch offer`` shows what an electrician would be offered
right now; ``dispatch accept`` takes a broadcast job directly.
"""

from typing import TYPE_CHECKING

from kahraba.cli.commands.helpers import format_job, print_json
from kahraba.errors import CreditLimitExceededError

if TYPE_CHECKING:
    from kahraba.cli.commands.helpers import CLIContext


def cmd_dispatch(args, ctx: "CLIContext"):
    """Handle dispatch subcommands."""
    action = args.dispatch_action

    if action == "offer":
        offer = ctx.dispatcher.go_available(args.electrician, args.name)
        if offer is None:
            if args.json:
                print_json(None)
            else:
                print("No broadcast jobs waiting.")
            return
        job = ctx.jobs.get_job(offer.job_id)
        if args.json:
            print_json({"offer": offer.to_dict(), "job": job.to_dict()})
            return
        print(format_job(job, ctx.currency))
        print(f"  Offer expires in {ctx.dispatcher.seconds_remaining(args.electrician)}s")

    elif action == "accept":
        if ctx.ledger.is_over_credit_limit(args.electrician):
            raise CreditLimitExceededError(
                f"Electrician {args.electrician} is over the credit limit; settle the balance first"
            )
        job = ctx.jobs.accept_broadcast(args.job_id, args.electrician, args.name)
        if args.json:
            print_json(job.to_dict())
        else:
            print(f"Accepted job #{job.short_id}")
