"""Claim Service: claim-on-open with concurrency safety."""

from ticketflow.lib.exceptions import AlreadyClaimedError, InsufficientAuthorityError
from ticketflow.lib.logger import get_logger
from ticketflow.models.directory import MemberStatus, Role
from ticketflow.models.routing import ClaimResult, RoutingStatus, TicketRoutingState
from ticketflow.models.workflow_log import WorkflowAction, WorkflowLogCreate
from ticketflow.repositories.member_repo import GroupMemberRepository
from ticketflow.repositories.routing_state_repo import RoutingStateRepository
from ticketflow.services.base_service import TransitionService
from ticketflow.services.notification_service import assignment

logger = get_logger(__name__)


class ClaimService(TransitionService):
    """
    Lets a junior technician take an UNASSIGNED ticket from their group queue.

    The claim itself is one compare-and-set UPDATE guarded by
    status = 'UNASSIGNED'; no lock is held across the membership lookups.
    """

    transition_name = "claim"

    def claim_ticket(self, ticket_id: str, user_id: int) -> ClaimResult:
        """
        Claim a ticket.

        Args:
            ticket_id: External ticket id
            user_id: Identity-service id of the claiming technician

        Returns:
            ClaimResult

        Raises:
            NotFoundError: If the ticket has no routing state
            InsufficientAuthorityError: If the user is not an ACTIVE JUNIOR of
                the ticket's current group
            AlreadyClaimedError: If the ticket is no longer UNASSIGNED
        """
        with self._track(ticket_id, user_id=user_id):
            with self.db.session_scope() as session:
                states = RoutingStateRepository(session)
                state = states.get(ticket_id)
                group_id = state.current_group_id

                member = GroupMemberRepository(session).find_member_in_group(user_id, group_id)
                if member is None or member.status != MemberStatus.ACTIVE.value:
                    raise InsufficientAuthorityError(
                        f"User {user_id} is not an active member of group {group_id}",
                        {"user_id": user_id, "group_id": group_id},
                    )
                if not self.policy.can_claim(Role(member.role)):
                    raise InsufficientAuthorityError(
                        f"Only juniors can claim tickets. User role: {member.role}",
                        {"user_id": user_id, "role": member.role},
                    )

                if not states.claim(ticket_id, member.id):
                    current = states.refresh(state)
                    raise AlreadyClaimedError(
                        f"Ticket {ticket_id} is already claimed or escalated. "
                        f"Current status: {current.status}",
                        {"ticket_id": ticket_id, "status": current.status},
                    )

            sync_pending, warning = self._notify_and_audit(
                ticket_id,
                [assignment(ticket_id, user_id, Role.JUNIOR)],
                WorkflowLogCreate(
                    ticket_id=ticket_id,
                    action=WorkflowAction.CLAIMED,
                    to_group_id=group_id,
                    to_member_id=member.id,
                    performed_by=user_id,
                    reason=f"Claimed by user {user_id}",
                ),
            )

        return ClaimResult(
            ticket_id=ticket_id,
            status=RoutingStatus.ASSIGNED,
            message=f"Ticket successfully claimed by user {user_id}",
            sync_pending=sync_pending,
            warning=warning,
            claimed_by=user_id,
            member_id=member.id,
            group_id=group_id,
        )

    def is_ticket_claimed(self, ticket_id: str) -> bool:
        with self.db.session_scope() as session:
            state = RoutingStateRepository(session).find(ticket_id)
            return state is not None and state.status != RoutingStatus.UNASSIGNED.value

    def get_unclaimed_tickets(self, group_id: int) -> list[TicketRoutingState]:
        with self.db.session_scope() as session:
            rows = RoutingStateRepository(session).list_by_group(group_id, RoutingStatus.UNASSIGNED)
            return [TicketRoutingState.model_validate(r) for r in rows]
