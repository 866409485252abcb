"""Job CLI commands for Kahraba."""

from typing import TYPE_CHECKING

from kahraba.cli.commands.helpers import format_job, print_json, validate_input
from kahraba.jobs import ActorRole, JobStatus

if TYPE_CHECKING:
    from kahraba.cli.commands.helpers import CLIContext


def cmd_job(args, ctx: "CLIContext"):
    """Handle job subcommands."""
    action = args.job_action
    jobs = ctx.jobs

    if action == "create":
        job = jobs.create_job(
            customer_id=validate_input(args.customer, "customer", 100),
            base_price=args.price,
            description=validate_input(args.description or "", "description", 2000),
            address=validate_input(args.address or "", "address", 500),
            city=validate_input(args.city or "", "city", 100),
            customer_name=validate_input(args.name, "name", 200) if args.name else None,
            payment_method=args.payment,
            add_ons=args.add_on or [],
        )
        if args.json:
            print_json(job.to_dict())
        else:
            print(f"Created job {job.id} ({job.status.value})")
            print(f"  Total: {job.total_price} {ctx.currency}")

    elif action == "show":
        job = jobs.get_job(args.job_id)
        if args.json:
            print_json(job.to_dict())
        else:
            print(format_job(job, ctx.currency))

    elif action == "list":
        result = jobs.list_jobs(
            status=JobStatus(args.status) if args.status else None,
            customer_id=args.customer,
            electrician_id=args.electrician,
            limit=args.limit,
        )
        if args.json:
            print_json([j.to_dict() for j in result])
            return
        if not result:
            print("No jobs found.")
            return
        print(f"Jobs ({len(result)}):")
        for j in result:
            who = j.electrician_name or j.electrician_id or "unassigned"
            print(f"  #{j.short_id}  {j.status.value:<12} {j.total_price:>8} {ctx.currency}  {who}")

    elif action == "advance":
        job = jobs.advance(args.job_id, args.electrician, note=args.note)
        print(f"Job #{job.short_id} is now {job.status.value}")

    elif action == "cancel":
        reason = validate_input(args.reason, "reason", 500) if args.reason else None
        job = jobs.cancel_job(args.job_id, ActorRole(args.role), args.actor, reason=reason)
        print(f"Job #{job.short_id} cancelled")

    elif action == "history":
        timeline = jobs.get_job_history(args.job_id)
        if args.json:
            print_json([e.to_dict() for e in timeline])
            return
        for event in timeline:
            actor = event.actor_role.value
            if event.actor_id:
                actor = f"{actor}:{event.actor_id}"
            line = f"  {event.timestamp.isoformat()}  {event.status.value:<12} {actor}"
            if event.note:
                line += f"  ({event.note})"
            print(line)

    elif action == "force":
        job = jobs.force_status(
            args.job_id,
            JobStatus(args.status),
            args.admin,
            validate_input(args.reason, "reason", 500),
        )
        print(f"Job #{job.short_id} forced to {job.status.value}")

    elif action == "addons-request":
        job = jobs.request_add_ons(args.job_id, args.electrician, args.add_on)
        print(f"Requested {len(args.add_on)} add-on(s) for job #{job.short_id}")
        for add_on in job.pending_add_ons:
            print(f"  {add_on.id}  {add_on.name} ({add_on.price})")

    elif action == "addons-approve":
        ids = args.id or None
        if args.reject:
            job = jobs.reject_add_ons(args.job_id, args.customer, ids)
            print(f"Rejected add-ons for job #{job.short_id}")
        else:
            job = jobs.approve_add_ons(args.job_id, args.customer, ids)
            print(f"Approved add-ons for job #{job.short_id}; total {job.total_price} {ctx.currency}")
