"""Notification Service: delivers transition side effects to the ticket service.

Local state always commits first. Each transition then hands its ticket
service calls to `dispatch`. Calls that cannot be delivered are stored on the
routing-state row in order and the row is flagged `sync_pending`. A
transition that finds a backlog queues its calls behind it instead of
overtaking it. The reconciler replays the backlog out of band.

Ordering is kept per transition and against the stored backlog. Two
transitions on the same ticket that commit at nearly the same time dispatch
independently, so the ticket service can see their calls in either order;
the next reconciliation or transition on the ticket carries the later state.
"""

from typing import Protocol

from ticketflow.lib.database import Database
from ticketflow.lib.exceptions import DatabaseError, UpstreamFailureError
from ticketflow.lib.logger import get_logger
from ticketflow.lib.observability import record_notification_queued
from ticketflow.lib.ticket_client import to_support_level
from ticketflow.models.directory import Role
from ticketflow.models.notifications import (
    DispatchOutcome,
    NotificationKind,
    ReconcileReport,
    TicketNotification,
)
from ticketflow.repositories.routing_state_repo import RoutingStateRepository

logger = get_logger(__name__)

# Ticket-service status set when a technician takes ownership
IN_PROGRESS = "IN_PROGRESS"
REASSIGNED = "REASSIGNED"


class TicketService(Protocol):
    """The ticket-service calls the workflow core depends on."""

    def assign_ticket(
        self, ticket_id: str, assigned_to: int | str, assigned_to_level: str = ..., status: str = ...
    ) -> object: ...

    def update_ticket_status(self, ticket_id: str, status: str) -> object: ...

    def record_escalation(
        self, ticket_id: str, from_level: str, to_level: str, reason: str
    ) -> object: ...


def assignment(ticket_id: str, user_id: int, role: Role, status: str = IN_PROGRESS) -> TicketNotification:
    """Notification setting owner, support level and status."""
    return TicketNotification(
        kind=NotificationKind.ASSIGN,
        ticket_id=ticket_id,
        payload={
            "assigned_to": str(user_id),
            "assigned_to_level": to_support_level(role),
            "status": status,
        },
    )


def status_update(ticket_id: str, status: str) -> TicketNotification:
    return TicketNotification(
        kind=NotificationKind.UPDATE_STATUS,
        ticket_id=ticket_id,
        payload={"status": status},
    )


def escalation_record(ticket_id: str, from_level: str, to_level: str, reason: str) -> TicketNotification:
    return TicketNotification(
        kind=NotificationKind.RECORD_ESCALATION,
        ticket_id=ticket_id,
        payload={"from_level": from_level, "to_level": to_level, "reason": reason},
    )


class NotificationService:
    """Sends ticket-service notifications and reconciles the ones that failed."""

    def __init__(self, db: Database, ticket_client: TicketService) -> None:
        self.db = db
        self.ticket_client = ticket_client

    def _send(self, notification: TicketNotification) -> None:
        payload = notification.payload
        if notification.kind == NotificationKind.ASSIGN:
            self.ticket_client.assign_ticket(
                notification.ticket_id,
                payload["assigned_to"],
                payload["assigned_to_level"],
                payload["status"],
            )
        elif notification.kind == NotificationKind.UPDATE_STATUS:
            self.ticket_client.update_ticket_status(notification.ticket_id, payload["status"])
        elif notification.kind == NotificationKind.RECORD_ESCALATION:
            self.ticket_client.record_escalation(
                notification.ticket_id,
                payload["from_level"],
                payload["to_level"],
                payload["reason"],
            )
        else:
            raise ValueError(f"Unknown notification kind: {notification.kind}")

    def dispatch(self, ticket_id: str, notifications: list[TicketNotification]) -> DispatchOutcome:
        """
        Deliver notifications in order, queueing whatever cannot be sent.

        Args:
            ticket_id: Ticket the notifications belong to
            notifications: Calls to make, in order

        Returns:
            Outcome; `pending` holds the calls left for the reconciler

        Raises:
            UpstreamFailureError: If delivery failed and the backlog could not
                be stored either
        """
        if not notifications:
            return DispatchOutcome()

        with self.db.session_scope() as session:
            backlog = RoutingStateRepository(session).pending_notifications(ticket_id)

        if backlog:
            error = f"queued behind {len(backlog)} undelivered notification(s)"
            self._queue(ticket_id, notifications, error)
            return DispatchOutcome(pending=notifications, error=error)

        for index, notification in enumerate(notifications):
            notification.attempts += 1
            try:
                self._send(notification)
            except UpstreamFailureError as e:
                remaining = notifications[index:]
                self._queue(ticket_id, remaining, e.message)
                return DispatchOutcome(delivered=index, pending=remaining, error=e.message)

        logger.info(f"Delivered {len(notifications)} notification(s) for ticket {ticket_id}")
        return DispatchOutcome(delivered=len(notifications))

    def _queue(self, ticket_id: str, notifications: list[TicketNotification], error: str) -> None:
        try:
            with self.db.session_scope() as session:
                RoutingStateRepository(session).queue_notifications(
                    ticket_id,
                    [n.model_dump(mode="json") for n in notifications],
                    error,
                )
        except DatabaseError as e:
            logger.critical(
                f"Ticket {ticket_id} committed locally but its notifications could not be queued: {e}",
                extra={"ticket_id": ticket_id},
            )
            raise UpstreamFailureError(
                f"Ticket service notification failed and could not be queued: {error}",
                {"ticket_id": ticket_id, "state_committed": True},
            )

        for notification in notifications:
            record_notification_queued(notification.kind.value)

    def reconcile(self, limit: int = 100) -> ReconcileReport:
        """
        Replay queued notifications for up to `limit` tickets.

        Each ticket's backlog is replayed in order and stops at the first
        failure, so a later call never overtakes an earlier one.
        """
        report = ReconcileReport()

        with self.db.session_scope() as session:
            ticket_ids = [s.ticket_id for s in RoutingStateRepository(session).list_sync_pending(limit)]

        for ticket_id in ticket_ids:
            report.tickets_checked += 1
            delivered, remaining, error = self._replay(ticket_id)
            report.notifications_delivered += delivered

            if remaining:
                report.still_pending.append(ticket_id)
            else:
                report.tickets_synced += 1

        logger.info(
            f"Reconciliation pass: {report.tickets_synced}/{report.tickets_checked} tickets synced, "
            f"{report.notifications_delivered} notification(s) delivered"
        )
        return report

    def _replay(self, ticket_id: str) -> tuple[int, list[dict], str | None]:
        with self.db.session_scope() as session:
            backlog = RoutingStateRepository(session).pending_notifications(ticket_id)

        delivered = 0
        error = None
        head = None
        for raw in backlog:
            notification = TicketNotification.model_validate(raw)
            notification.attempts += 1
            try:
                self._send(notification)
                delivered += 1
            except UpstreamFailureError as e:
                error = e.message
                head = notification.model_dump(mode="json")
                logger.warning(
                    f"Replay for ticket {ticket_id} stopped after {delivered} notification(s): {error}"
                )
                break

        with self.db.session_scope() as session:
            remaining = RoutingStateRepository(session).acknowledge_notifications(
                ticket_id, delivered, error, head
            )

        return delivered, remaining, error
