"""Shared plumbing for the transition services."""

import time
from contextlib import contextmanager
from typing import Any, Iterator

from ticketflow.lib.database import Database
from ticketflow.lib.exceptions import TicketFlowException
from ticketflow.lib.logger import get_logger
from ticketflow.lib.observability import create_span, get_tracer, record_transition_metric
from ticketflow.models.authority import DEFAULT_AUTHORITY_POLICY, AuthorityPolicy
from ticketflow.models.notifications import TicketNotification
from ticketflow.models.workflow_log import WorkflowLogCreate
from ticketflow.services.audit_service import AuditService
from ticketflow.services.notification_service import NotificationService

logger = get_logger(__name__)


class TransitionService:
    """
    Base class for a workflow transition.

    Subclasses run their state mutation inside `_track`, then call
    `_notify_and_audit`: local commit, ticket-service notification, audit
    log entry.
    """

    transition_name = "transition"

    def __init__(
        self,
        db: Database,
        notifier: NotificationService,
        audit: AuditService,
        policy: AuthorityPolicy | None = None,
    ) -> None:
        self.db = db
        self.notifier = notifier
        self.audit = audit
        self.policy = policy or DEFAULT_AUTHORITY_POLICY
        self.tracer = get_tracer(f"ticketflow.{self.transition_name}")

    @contextmanager
    def _track(self, ticket_id: str, **attributes: Any) -> Iterator[None]:
        """Span, metrics and outcome logging around one transition."""
        start = time.perf_counter()
        outcome = "success"
        span_attributes = {"ticket_id": ticket_id, **attributes}

        try:
            with create_span(self.tracer, self.transition_name, span_attributes):
                yield
        except TicketFlowException as e:
            outcome = type(e).__name__
            logger.warning(
                f"{self.transition_name} rejected for ticket {ticket_id}: {e.message}",
                extra={"ticket_id": ticket_id, "transition": self.transition_name, "error": outcome},
            )
            raise
        except Exception:
            outcome = "error"
            raise
        finally:
            latency_ms = (time.perf_counter() - start) * 1000
            record_transition_metric(self.transition_name, outcome, latency_ms)

    def _notify(self, ticket_id: str, notifications: list[TicketNotification]) -> tuple[bool, str | None]:
        """
        Deliver the transition's ticket-service calls.

        Returns:
            (sync_pending, warning) for the transition result
        """
        outcome = self.notifier.dispatch(ticket_id, notifications)
        if outcome.ok:
            return False, None

        warning = (
            f"Ticket service not updated ({outcome.error}); "
            f"{len(outcome.pending)} call(s) queued for reconciliation"
        )
        logger.warning(
            f"{self.transition_name} committed for ticket {ticket_id} but notification is pending",
            extra={"ticket_id": ticket_id, "pending": len(outcome.pending)},
        )
        return True, warning

    def _notify_and_audit(
        self,
        ticket_id: str,
        notifications: list[TicketNotification],
        entry: WorkflowLogCreate,
    ) -> tuple[bool, str | None]:
        """
        Notify the ticket service, then record the committed transition.

        The log entry is written even when notifying raises, since the
        routing state has already committed.
        """
        try:
            return self._notify(ticket_id, notifications)
        finally:
            self._audit(entry)

    def _audit(self, entry: WorkflowLogCreate) -> None:
        self.audit.record(entry)
