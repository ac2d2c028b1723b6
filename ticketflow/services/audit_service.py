"""Audit Service: writes and reads the workflow log."""

import threading

from ticketflow.lib.database import Database
from ticketflow.lib.logger import get_logger
from ticketflow.lib.observability import record_audit_failure
from ticketflow.models.orm import WorkflowLogORM
from ticketflow.models.workflow_log import (
    ActivityEntry,
    ActivityHistory,
    AuditTrail,
    WorkflowAction,
    WorkflowLogCreate,
    WorkflowLogEntry,
)
from ticketflow.repositories.workflow_log_repo import WorkflowLogRepository

logger = get_logger(__name__)


class AuditService:
    """
    Service for the immutable workflow audit trail.

    Entries are written after the state mutation they describe, in their own
    transaction. A failed write never undoes the transition; it is logged at
    ERROR, counted in `failure_count` and exported as a metric.
    """

    def __init__(self, db: Database) -> None:
        self.db = db
        self.failure_count = 0
        self._lock = threading.Lock()

    def record(self, entry: WorkflowLogCreate) -> WorkflowLogEntry | None:
        """
        Append an entry, best effort.

        Args:
            entry: Entry to write

        Returns:
            Stored entry, or None if the write failed
        """
        try:
            with self.db.session_scope() as session:
                stored = WorkflowLogRepository(session).append(entry)
                return WorkflowLogEntry.model_validate(stored)

        except Exception as e:
            with self._lock:
                self.failure_count += 1
            record_audit_failure(entry.action.value)
            logger.error(
                f"Audit log write failed for ticket {entry.ticket_id} ({entry.action.value}): {e}",
                extra={
                    "ticket_id": entry.ticket_id,
                    "action": entry.action.value,
                    "audit_failure": True,
                },
                exc_info=True,
            )
            return None

    def get_ticket_logs(
        self,
        ticket_id: str,
        action: WorkflowAction | None = None,
    ) -> list[WorkflowLogEntry]:
        """Entries for a ticket, oldest first."""
        with self.db.session_scope() as session:
            rows = WorkflowLogRepository(session).list_for_ticket(ticket_id, action)
            return [WorkflowLogEntry.model_validate(r) for r in rows]

    def get_escalation_history(self, ticket_id: str) -> list[WorkflowLogEntry]:
        return self.get_ticket_logs(ticket_id, WorkflowAction.ESCALATED)

    def get_ticket_audit_trail(self, ticket_id: str) -> AuditTrail:
        logs = self.get_ticket_logs(ticket_id)
        return AuditTrail(
            ticket_id=ticket_id,
            total_actions=len(logs),
            logs=[_to_activity(entry) for entry in logs],
        )

    def get_member_activity(self, member_id: int, limit: int = 50) -> ActivityHistory:
        with self.db.session_scope() as session:
            rows = WorkflowLogRepository(session).list_for_member(member_id, limit)
            return _history(f"member:{member_id}", rows)

    def get_group_activity(self, group_id: int, limit: int = 50) -> ActivityHistory:
        with self.db.session_scope() as session:
            rows = WorkflowLogRepository(session).list_for_group(group_id, limit)
            return _history(f"group:{group_id}", rows)

    def get_recent_activity(self, limit: int = 50, minutes_back: int = 60) -> ActivityHistory:
        with self.db.session_scope() as session:
            rows = WorkflowLogRepository(session).list_recent(limit, minutes_back)
            return _history(f"last {minutes_back} minutes", rows)


def describe(entry: WorkflowLogEntry) -> str:
    """One-line human description of a log entry."""
    if entry.action == WorkflowAction.CREATED:
        return f"Opened in group {entry.to_group_id}"
    if entry.action == WorkflowAction.ROUTED:
        return f"Auto-routed to group {entry.to_group_id} (member {entry.to_member_id})"
    if entry.action == WorkflowAction.CLAIMED:
        return f"Ticket claimed by member {entry.to_member_id}"
    if entry.action == WorkflowAction.REASSIGNED:
        return (
            f"Reassigned from group {entry.from_group_id} to group {entry.to_group_id} "
            f"(member {entry.to_member_id})"
        )
    if entry.action == WorkflowAction.ESCALATED:
        return f"Escalated from group {entry.from_group_id} to group {entry.to_group_id}"
    return f"Action: {entry.action.value}"


def _to_activity(entry: WorkflowLogEntry) -> ActivityEntry:
    return ActivityEntry(
        id=entry.id,
        ticket_id=entry.ticket_id,
        action=entry.action,
        timestamp=entry.created_at,
        performed_by=entry.performed_by,
        from_group_id=entry.from_group_id,
        to_group_id=entry.to_group_id,
        description=describe(entry),
    )


def _history(scope: str, rows: list[WorkflowLogORM]) -> ActivityHistory:
    entries = [_to_activity(WorkflowLogEntry.model_validate(r)) for r in rows]
    return ActivityHistory(scope=scope, total_actions=len(entries), logs=entries)
