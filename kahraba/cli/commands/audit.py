"""Audit log CLI commands for Kahraba."""

from typing import TYPE_CHECKING

from kahraba.cli.commands.helpers import print_json

if TYPE_CHECKING:
    from kahraba.cli.commands.helpers import CLIContext


def cmd_audit(args, ctx: "CLIContext"):
    """List admin actions, newest first."""
    entries = ctx.audit.list_entries(
        entity_type=args.entity_type,
        entity_id=args.entity_id,
        admin_id=args.admin,
        limit=args.limit,
    )
    if args.json:
        print_json([e.to_dict() for e in entries])
        return
    if not entries:
        print("No audit entries.")
        return
    for e in entries:
        when = e.created_at.strftime("%Y-%m-%d %H:%M") if e.created_at else "-"
        print(f"  {when}  {e.admin_id}  {e.action}  {e.entity_type}/{e.entity_id}  {e.reason}")
