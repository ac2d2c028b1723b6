"""Repository for the append-only workflow log."""

from datetime import datetime, timedelta

from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from ticketflow.lib.exceptions import DatabaseError
from ticketflow.lib.logger import get_logger
from ticketflow.models.orm import WorkflowLogORM
from ticketflow.models.workflow_log import WorkflowAction, WorkflowLogCreate

logger = get_logger(__name__)


class WorkflowLogRepository:
    """
    Repository for workflow log entries.

    Insert and select only; entries are never updated or deleted.
    """

    def __init__(self, db: Session) -> None:
        self.db = db

    def append(self, entry: WorkflowLogCreate) -> WorkflowLogORM:
        """
        Append a log entry.

        Args:
            entry: Entry data

        Returns:
            Stored entry

        Raises:
            DatabaseError: If the insert fails
        """
        try:
            log_obj = WorkflowLogORM(
                ticket_id=entry.ticket_id,
                action=entry.action.value,
                from_group_id=entry.from_group_id,
                to_group_id=entry.to_group_id,
                from_member_id=entry.from_member_id,
                to_member_id=entry.to_member_id,
                performed_by=entry.performed_by,
                reason=entry.reason,
                created_at=datetime.utcnow(),
            )

            self.db.add(log_obj)
            self.db.commit()
            self.db.refresh(log_obj)

            logger.debug(f"Logged {entry.action.value} for ticket {entry.ticket_id}")
            return log_obj

        except Exception as e:
            self.db.rollback()
            logger.error(f"Failed to append workflow log for {entry.ticket_id}: {e}")
            raise DatabaseError(f"Workflow log insert failed: {e}")

    def list_for_ticket(
        self,
        ticket_id: str,
        action: WorkflowAction | None = None,
    ) -> list[WorkflowLogORM]:
        """Entries for one ticket in the order they were written."""
        try:
            stmt = select(WorkflowLogORM).where(WorkflowLogORM.ticket_id == ticket_id)
            if action is not None:
                stmt = stmt.where(WorkflowLogORM.action == action.value)
            stmt = stmt.order_by(WorkflowLogORM.id.asc())

            return list(self.db.execute(stmt).scalars().all())

        except Exception as e:
            logger.error(f"Failed to list workflow logs for {ticket_id}: {e}")
            raise DatabaseError(f"Workflow log fetch failed: {e}")

    def list_for_member(self, member_id: int, limit: int = 100) -> list[WorkflowLogORM]:
        """Entries where a member was source, target or actor, newest first."""
        try:
            stmt = (
                select(WorkflowLogORM)
                .where(
                    or_(
                        WorkflowLogORM.from_member_id == member_id,
                        WorkflowLogORM.to_member_id == member_id,
                        WorkflowLogORM.performed_by == member_id,
                    )
                )
                .order_by(WorkflowLogORM.id.desc())
                .limit(limit)
            )
            return list(self.db.execute(stmt).scalars().all())

        except Exception as e:
            logger.error(f"Failed to list workflow logs for member {member_id}: {e}")
            raise DatabaseError(f"Workflow log fetch failed: {e}")

    def list_for_group(self, group_id: int, limit: int = 100) -> list[WorkflowLogORM]:
        """Entries moving tickets into or out of a group, newest first."""
        try:
            stmt = (
                select(WorkflowLogORM)
                .where(
                    or_(
                        WorkflowLogORM.from_group_id == group_id,
                        WorkflowLogORM.to_group_id == group_id,
                    )
                )
                .order_by(WorkflowLogORM.id.desc())
                .limit(limit)
            )
            return list(self.db.execute(stmt).scalars().all())

        except Exception as e:
            logger.error(f"Failed to list workflow logs for group {group_id}: {e}")
            raise DatabaseError(f"Workflow log fetch failed: {e}")

    def list_recent(self, limit: int = 50, minutes_back: int = 60) -> list[WorkflowLogORM]:
        """Entries written in the last `minutes_back` minutes, newest first."""
        try:
            since = datetime.utcnow() - timedelta(minutes=minutes_back)
            stmt = (
                select(WorkflowLogORM)
                .where(WorkflowLogORM.created_at > since)
                .order_by(WorkflowLogORM.id.desc())
                .limit(limit)
            )
            return list(self.db.execute(stmt).scalars().all())

        except Exception as e:
            logger.error(f"Failed to list recent workflow logs: {e}")
            raise DatabaseError(f"Workflow log fetch failed: {e}")
