"""CLI tool to replay ticket-service notifications left pending by transitions."""

import argparse
import sys

from ticketflow.lib.config import settings
from ticketflow.lib.database import Database
from ticketflow.lib.logger import get_logger, setup_logging
from ticketflow.lib.ticket_client import TicketServiceClient
from ticketflow.repositories.routing_state_repo import RoutingStateRepository
from ticketflow.services.notification_service import NotificationService

logger = get_logger(__name__)


def run_reconcile(notifier: NotificationService, limit: int) -> int:
    """
    Run one reconciliation pass.

    Args:
        notifier: Notification service bound to the ticket-service client
        limit: Maximum number of tickets to replay

    Returns:
        Process exit code: 0 when every checked ticket synced, 1 otherwise
    """
    report = notifier.reconcile(limit)

    print(f"Tickets checked: {report.tickets_checked}")
    print(f"Tickets synced: {report.tickets_synced}")
    print(f"Notifications delivered: {report.notifications_delivered}")

    if report.still_pending:
        print(f"Still pending ({len(report.still_pending)}):")
        for ticket_id in report.still_pending:
            print(f"  - {ticket_id}")
        return 1

    print("SUCCESS: No notifications left pending")
    return 0


def show_pending(db: Database, limit: int) -> int:
    """List tickets whose ticket-service state is behind the workflow state."""
    with db.session_scope() as session:
        repo = RoutingStateRepository(session)
        rows = [
            (s.ticket_id, s.status, len(s.pending_notifications or []), s.sync_error)
            for s in repo.list_sync_pending(limit)
        ]

    if not rows:
        print("No tickets pending synchronization.")
        return 0

    print(f"Found {len(rows)} ticket(s) pending synchronization:")
    for ticket_id, status, count, error in rows:
        print(f"  - {ticket_id} [{status}] {count} queued call(s)")
        if error:
            print(f"    Last error: {error}")
    return 0


def main(argv: list[str] | None = None) -> None:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Reconcile workflow state with the ticket service",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Replay queued notifications for up to 100 tickets
  python -m ticketflow.cli.reconcile run

  # Replay a larger batch
  python -m ticketflow.cli.reconcile run --limit 500

  # Show tickets still waiting for the ticket service
  python -m ticketflow.cli.reconcile status
        """,
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to execute")

    run_parser = subparsers.add_parser("run", help="Replay queued notifications")
    run_parser.add_argument(
        "--limit",
        type=int,
        default=settings.reconcile_batch_size,
        help=f"Maximum tickets per pass (default: {settings.reconcile_batch_size})",
    )

    status_parser = subparsers.add_parser("status", help="List tickets pending synchronization")
    status_parser.add_argument("--limit", type=int, default=settings.reconcile_batch_size)

    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    setup_logging()
    db = Database()

    try:
        if args.command == "run":
            client = TicketServiceClient()
            try:
                code = run_reconcile(NotificationService(db, client), args.limit)
            finally:
                client.close()
        else:
            code = show_pending(db, args.limit)
    except Exception as e:
        logger.error(f"Reconciliation command '{args.command}' failed: {e}")
        print(f"ERROR: {e}")
        code = 1
    finally:
        db.dispose()

    sys.exit(code)


if __name__ == "__main__":
    main()
