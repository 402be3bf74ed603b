"""CLI entry point for the Dispute Desk administration tools."""

import argparse
import sys
from pathlib import Path

from dispute_desk.config import settings
from dispute_desk.data.storage import DisputeFilter, Storage
from dispute_desk.errors import NotFoundError
from dispute_desk.models.dispute import DISPUTE_STATUSES, STATUS_LABELS


def build_service(data_dir: Path | None = None):
    """Create a service over the configured data directory."""
    # Import here to avoid loading the LLM stack until needed
    from dispute_desk.services.disputes import DisputeService
    from dispute_desk.utils.logging import AuditLogger

    storage = Storage(data_dir)
    return DisputeService(
        storage=storage,
        audit_logger=AuditLogger(log_dir=settings.logs_dir),
    )


def print_dispute_row(display: dict):
    print(
        f"  - {display['id'][:8]}... | {display['status']:<24} | "
        f"{display['priority']:<6} | {display['amount']:>14} | {display['customer']}"
    )


def show_stats(service):
    stats = service.get_stats()
    print(f"\nTotal disputes: {stats['total']}")
    print("-" * 40)
    for status, count in stats["by_status"].items():
        print(f"  {STATUS_LABELS[status]:<26} {count}")
    print("-" * 40)
    print(f"  Closed:                    {stats['resolved']}")
    print(f"  Avg. resolution time:      {stats['avg_resolution_time_days']} days")


def show_list(service, status: str | None):
    disputes, total = service.list_all(DisputeFilter(status=status))
    if not disputes:
        print("\nNo disputes found.")
        return
    print(f"\n{total} dispute(s):")
    for dispute in disputes:
        print_dispute_row(dispute.to_display_dict())


def show_dispute(service, dispute_id: str):
    dispute = service.get_dispute(dispute_id)
    display = dispute.to_display_dict()
    print()
    for key, value in display.items():
        print(f"  {key.replace('_', ' ').title():<14} {value}")
    if dispute.fraud_risk_score is not None:
        print(f"  {'Fraud Risk':<14} {dispute.fraud_risk_score:g}%")
    if dispute.resolution:
        print(f"  {'Resolution':<14} {dispute.resolution}")

    messages = service.get_messages(dispute_id, include_internal=True)
    print(f"\nThread ({len(messages)} message(s)):")
    print("-" * 40)
    for message in messages:
        sender = message.sender_name or message.sender_role
        internal = " [internal]" if message.is_internal else ""
        content = message.content
        if len(content) > 200:
            content = content[:200] + "..."
        print(f"\n{sender}{internal}: {content}")


def show_events(service, dispute_id: str):
    events = service.get_events(dispute_id)
    if not events:
        print("\nNo events recorded.")
        return
    print(f"\n{len(events)} event(s):")
    for event in events:
        stamp = event.created_at.strftime("%Y-%m-%d %H:%M")
        print(f"  {stamp} | {event.event_type:<17} | {event.actor_role or '-':<8} | {event.description}")


def show_overdue(service):
    overdue = service.list_overdue()
    if not overdue:
        print("\nNo overdue disputes.")
        return
    print(f"\n{len(overdue)} dispute(s) past the merchant deadline:")
    for dispute in overdue:
        print_dispute_row(dispute.to_display_dict())


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Dispute Desk administration",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py --stats                    # Counts by status
  python main.py --list --status open       # List open disputes
  python main.py --show <dispute_id>        # Dispute details and thread
  python main.py --events <dispute_id>      # Audit trail of a dispute
  python main.py --overdue                  # Disputes past the merchant deadline
  python main.py --reset                    # Delete all stored data
        """,
    )

    parser.add_argument(
        "--data-dir",
        type=Path,
        default=None,
        help=f"Custom data directory path (default: {settings.data_dir})",
    )

    parser.add_argument(
        "--reset",
        action="store_true",
        help="Delete all disputes, threads, events and assessments",
    )

    parser.add_argument("--stats", action="store_true", help="Show dispute statistics")

    parser.add_argument("--list", action="store_true", help="List disputes, newest first")

    parser.add_argument(
        "--status",
        type=str,
        choices=DISPUTE_STATUSES,
        default=None,
        help="Only list disputes in this status (with --list)",
    )

    parser.add_argument("--show", metavar="ID", help="Show a dispute and its thread")

    parser.add_argument("--events", metavar="ID", help="Show the audit trail of a dispute")

    parser.add_argument(
        "--overdue",
        action="store_true",
        help="List disputes whose merchant deadline has passed",
    )

    args = parser.parse_args()

    # Handle data directory override
    if args.data_dir:
        settings.data_dir = args.data_dir

    if args.reset:
        print("Deleting all stored dispute data...")
        Storage(args.data_dir).reset()
        print("Done!")
        return

    service = build_service(args.data_dir)
    try:
        if args.stats:
            show_stats(service)
        elif args.list:
            show_list(service, args.status)
        elif args.show:
            show_dispute(service, args.show)
        elif args.events:
            show_events(service, args.events)
        elif args.overdue:
            show_overdue(service)
        else:
            parser.print_help()
    except NotFoundError as e:
        print(f"\nError: {e}")
        sys.exit(1)
    finally:
        service.close()


if __name__ == "__main__":
    main()
