"""Repository for ticket routing state.

Every mutation here is a single UPDATE or INSERT statement committed on its
own, so the (status, assigned_member_id, current_group_id) triple of a row
only ever moves between consistent values. Each of those statements bumps
the row's `version`. The claim is a compare-and-set guarded by the expected
prior status; reassign and escalate are guarded by the version (and group)
the caller read when it made its decision.
"""

from datetime import datetime
from typing import Any

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ticketflow.lib.exceptions import AlreadyExistsError, DatabaseError, NotFoundError
from ticketflow.lib.logger import get_logger
from ticketflow.models.orm import TicketRoutingStateORM
from ticketflow.models.routing import ACTIVE_LOAD_STATUSES, RoutingStatus

logger = get_logger(__name__)


class RoutingStateRepository:
    """Repository for the per-ticket routing state row."""

    def __init__(self, db: Session) -> None:
        """
        Initialize repository with database session.

        Args:
            db: SQLAlchemy session
        """
        self.db = db

    def create(
        self,
        ticket_id: str,
        group_id: int,
        member_id: int | None = None,
    ) -> TicketRoutingStateORM:
        """
        Create the routing state row for a new ticket.

        Without a member the row starts UNASSIGNED; with one it starts
        ASSIGNED and `claimed_at` is stamped.

        Args:
            ticket_id: External ticket id
            group_id: Initial group
            member_id: Initial assignee, if already chosen

        Returns:
            Created row

        Raises:
            AlreadyExistsError: If a row exists for the ticket
            DatabaseError: If creation fails
        """
        if self.find(ticket_id) is not None:
            raise AlreadyExistsError(
                f"Ticket {ticket_id} already has routing state", {"ticket_id": ticket_id}
            )

        now = datetime.utcnow()
        state = TicketRoutingStateORM(
            ticket_id=ticket_id,
            current_group_id=group_id,
            assigned_member_id=member_id,
            status=(RoutingStatus.ASSIGNED if member_id else RoutingStatus.UNASSIGNED).value,
            escalation_count=0,
            version=1,
            claimed_at=now if member_id else None,
            updated_at=now,
            sync_pending=False,
        )

        try:
            self.db.add(state)
            self.db.commit()
            self.db.refresh(state)

            logger.info(
                f"Created routing state for ticket {ticket_id} "
                f"(group={group_id}, member={member_id}, status={state.status})"
            )
            return state

        except IntegrityError as e:
            self.db.rollback()
            # Lost an insert race against another router
            if self.find(ticket_id) is not None:
                raise AlreadyExistsError(
                    f"Ticket {ticket_id} already has routing state", {"ticket_id": ticket_id}
                )
            logger.error(f"Failed to create routing state for {ticket_id}: {e}")
            raise DatabaseError(f"Routing state creation failed: {e}")
        except Exception as e:
            self.db.rollback()
            logger.error(f"Failed to create routing state for {ticket_id}: {e}")
            raise DatabaseError(f"Routing state creation failed: {e}")

    def find(self, ticket_id: str) -> TicketRoutingStateORM | None:
        """Get the routing state row, or None."""
        try:
            stmt = select(TicketRoutingStateORM).where(TicketRoutingStateORM.ticket_id == ticket_id)
            return self.db.execute(stmt).scalar_one_or_none()

        except Exception as e:
            logger.error(f"Failed to get routing state {ticket_id}: {e}")
            raise DatabaseError(f"Routing state fetch failed: {e}")

    def get(self, ticket_id: str) -> TicketRoutingStateORM:
        """
        Get the routing state row.

        Raises:
            NotFoundError: If the ticket was never routed
            DatabaseError: If query fails
        """
        state = self.find(ticket_id)
        if state is None:
            raise NotFoundError(
                f"Ticket {ticket_id} not found in workflow system", {"ticket_id": ticket_id}
            )
        return state

    def refresh(self, state: TicketRoutingStateORM) -> TicketRoutingStateORM:
        """Reload a row after a bulk UPDATE touched it."""
        self.db.refresh(state)
        return state

    def claim(self, ticket_id: str, member_id: int) -> bool:
        """
        Assign an UNASSIGNED ticket to a member.

        One conditional UPDATE: of any number of concurrent callers for the
        same ticket exactly one sees a row affected.

        Args:
            ticket_id: External ticket id
            member_id: Claiming member

        Returns:
            True if this call won the claim, False if the ticket was not
            UNASSIGNED (or does not exist)

        Raises:
            DatabaseError: If the update fails
        """
        now = datetime.utcnow()
        stmt = (
            update(TicketRoutingStateORM)
            .where(
                TicketRoutingStateORM.ticket_id == ticket_id,
                TicketRoutingStateORM.status == RoutingStatus.UNASSIGNED.value,
            )
            .values(
                assigned_member_id=member_id,
                status=RoutingStatus.ASSIGNED.value,
                claimed_at=now,
                version=TicketRoutingStateORM.version + 1,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )

        try:
            result = self.db.execute(stmt)
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.error(f"Failed to claim ticket {ticket_id}: {e}")
            raise DatabaseError(f"Claim update failed: {e}")

        won = result.rowcount == 1
        logger.info(f"Claim of ticket {ticket_id} by member {member_id}: {'won' if won else 'lost'}")
        return won

    def reassign(
        self,
        ticket_id: str,
        member_id: int,
        group_id: int,
        expected_version: int,
    ) -> bool:
        """
        Move a ticket to another member and group; status becomes ASSIGNED.

        Authority is checked by the caller against the row it read; the
        UPDATE only applies while the row is still at that version.

        Args:
            ticket_id: External ticket id
            member_id: New assignee
            group_id: Group of the new assignee
            expected_version: `version` of the row the caller authorized against

        Returns:
            True if the row was updated, False if it changed in between
        """
        now = datetime.utcnow()
        stmt = (
            update(TicketRoutingStateORM)
            .where(
                TicketRoutingStateORM.ticket_id == ticket_id,
                TicketRoutingStateORM.version == expected_version,
            )
            .values(
                assigned_member_id=member_id,
                current_group_id=group_id,
                status=RoutingStatus.ASSIGNED.value,
                claimed_at=func.coalesce(TicketRoutingStateORM.claimed_at, now),
                updated_at=now,
                version=TicketRoutingStateORM.version + 1,
            )
            .execution_options(synchronize_session=False)
        )

        try:
            result = self.db.execute(stmt)
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.error(f"Failed to reassign ticket {ticket_id}: {e}")
            raise DatabaseError(f"Reassign update failed: {e}")

        logger.info(f"Reassigned ticket {ticket_id} to member {member_id} in group {group_id}")
        return result.rowcount > 0

    def escalate(
        self,
        ticket_id: str,
        source_group_id: int,
        target_group_id: int,
        member_id: int | None,
        expected_version: int,
    ) -> bool:
        """
        Move a ticket to a higher-tier group.

        Sets status ESCALATED, replaces the assignee with `member_id` (None
        leaves the ticket for manual pickup), increments the escalation
        counter in SQL and stamps `last_escalated_at`. Applies only while the
        row still sits in `source_group_id` at `expected_version`, the state
        the escalation rule was chosen from.

        Returns:
            True if the row was updated, False if it changed in between
        """
        now = datetime.utcnow()
        stmt = (
            update(TicketRoutingStateORM)
            .where(
                TicketRoutingStateORM.ticket_id == ticket_id,
                TicketRoutingStateORM.current_group_id == source_group_id,
                TicketRoutingStateORM.version == expected_version,
            )
            .values(
                current_group_id=target_group_id,
                status=RoutingStatus.ESCALATED.value,
                assigned_member_id=member_id,
                escalation_count=TicketRoutingStateORM.escalation_count + 1,
                last_escalated_at=now,
                updated_at=now,
                version=TicketRoutingStateORM.version + 1,
            )
            .execution_options(synchronize_session=False)
        )

        try:
            result = self.db.execute(stmt)
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.error(f"Failed to escalate ticket {ticket_id}: {e}")
            raise DatabaseError(f"Escalation update failed: {e}")

        logger.info(
            f"Escalated ticket {ticket_id} to group {target_group_id} (member={member_id})"
        )
        return result.rowcount > 0

    def list_by_group(
        self,
        group_id: int,
        status: RoutingStatus | None = None,
    ) -> list[TicketRoutingStateORM]:
        """
        List tickets currently held by a group, most recently updated first.

        Args:
            group_id: Group id
            status: Optional status filter

        Returns:
            Routing state rows
        """
        try:
            stmt = select(TicketRoutingStateORM).where(
                TicketRoutingStateORM.current_group_id == group_id
            )
            if status is not None:
                stmt = stmt.where(TicketRoutingStateORM.status == status.value)
            stmt = stmt.order_by(
                TicketRoutingStateORM.updated_at.desc(), TicketRoutingStateORM.id.desc()
            )

            return list(self.db.execute(stmt).scalars().all())

        except Exception as e:
            logger.error(f"Failed to list tickets for group {group_id}: {e}")
            raise DatabaseError(f"Group queue fetch failed: {e}")

    def list_by_member(self, member_id: int) -> list[TicketRoutingStateORM]:
        """Tickets currently assigned to a member, most recently updated first."""
        try:
            stmt = (
                select(TicketRoutingStateORM)
                .where(TicketRoutingStateORM.assigned_member_id == member_id)
                .order_by(TicketRoutingStateORM.updated_at.desc(), TicketRoutingStateORM.id.desc())
            )
            return list(self.db.execute(stmt).scalars().all())

        except Exception as e:
            logger.error(f"Failed to list tickets for member {member_id}: {e}")
            raise DatabaseError(f"Member workload fetch failed: {e}")

    def count_active_assignments(self, member_ids: list[int]) -> dict[int, int]:
        """
        Count ASSIGNED/ESCALATED tickets held by each member.

        Members with no tickets are absent from the result.
        """
        if not member_ids:
            return {}

        try:
            stmt = (
                select(
                    TicketRoutingStateORM.assigned_member_id,
                    func.count(TicketRoutingStateORM.id),
                )
                .where(
                    TicketRoutingStateORM.assigned_member_id.in_(member_ids),
                    TicketRoutingStateORM.status.in_([s.value for s in ACTIVE_LOAD_STATUSES]),
                )
                .group_by(TicketRoutingStateORM.assigned_member_id)
            )
            return {member_id: count for member_id, count in self.db.execute(stmt).all()}

        except Exception as e:
            logger.error(f"Failed to count member assignments: {e}")
            raise DatabaseError(f"Assignment count failed: {e}")

    # Notification reconciliation

    def pending_notifications(self, ticket_id: str) -> list[dict[str, Any]]:
        """Outstanding ticket-service calls stored on the row."""
        state = self.find(ticket_id)
        if state is None or not state.pending_notifications:
            return []
        return list(state.pending_notifications)

    def queue_notifications(
        self,
        ticket_id: str,
        notifications: list[dict[str, Any]],
        error: str | None,
    ) -> None:
        """
        Append undelivered ticket-service calls behind any already queued.

        Args:
            ticket_id: External ticket id
            notifications: Serialized notifications, in send order
            error: Last delivery error
        """
        try:
            stmt = (
                select(TicketRoutingStateORM)
                .where(TicketRoutingStateORM.ticket_id == ticket_id)
                .with_for_update()
            )
            state = self.db.execute(stmt).scalar_one_or_none()
            if state is None:
                raise NotFoundError(f"Ticket {ticket_id} not found in workflow system")

            queued = list(state.pending_notifications or [])
            queued.extend(notifications)

            state.pending_notifications = queued
            state.sync_pending = bool(queued)
            state.sync_error = error
            self.db.commit()

            logger.warning(
                f"Queued {len(notifications)} ticket-service notification(s) for {ticket_id}",
                extra={"ticket_id": ticket_id, "queued_total": len(queued), "error": error},
            )

        except NotFoundError:
            self.db.rollback()
            raise
        except Exception as e:
            self.db.rollback()
            logger.error(f"Failed to queue notifications for {ticket_id}: {e}")
            raise DatabaseError(f"Notification queue update failed: {e}")

    def acknowledge_notifications(
        self,
        ticket_id: str,
        delivered: int,
        error: str | None = None,
        head: dict[str, Any] | None = None,
    ) -> list[dict[str, Any]]:
        """
        Drop the first `delivered` queued calls after a replay.

        Calls queued while the replay ran stay behind the remaining ones.

        Args:
            ticket_id: External ticket id
            delivered: How many calls from the front of the queue were sent
            error: Error that stopped the replay, if any
            head: Updated copy of the call that failed (attempt count)

        Returns:
            Calls still queued
        """
        try:
            stmt = (
                select(TicketRoutingStateORM)
                .where(TicketRoutingStateORM.ticket_id == ticket_id)
                .with_for_update()
            )
            state = self.db.execute(stmt).scalar_one_or_none()
            if state is None:
                raise NotFoundError(f"Ticket {ticket_id} not found in workflow system")

            remaining = list(state.pending_notifications or [])[delivered:]
            if head is not None and remaining:
                remaining[0] = head

            state.pending_notifications = remaining or None
            state.sync_pending = bool(remaining)
            state.sync_error = error if remaining else None
            self.db.commit()
            return remaining

        except NotFoundError:
            self.db.rollback()
            raise
        except Exception as e:
            self.db.rollback()
            logger.error(f"Failed to update notifications for {ticket_id}: {e}")
            raise DatabaseError(f"Notification queue update failed: {e}")

    def list_sync_pending(self, limit: int = 100) -> list[TicketRoutingStateORM]:
        """Rows whose latest transitions have not reached the ticket service."""
        try:
            stmt = (
                select(TicketRoutingStateORM)
                .where(TicketRoutingStateORM.sync_pending.is_(True))
                .order_by(TicketRoutingStateORM.updated_at.asc())
                .limit(limit)
            )
            return list(self.db.execute(stmt).scalars().all())

        except Exception as e:
            logger.error(f"Failed to list sync-pending tickets: {e}")
            raise DatabaseError(f"Sync-pending list failed: {e}")
