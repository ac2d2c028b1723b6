"""Routing Service: first placement of a ticket by building and floor."""

from ticketflow.lib.exceptions import AlreadyExistsError, GroupNotFoundError, ValidationError
from ticketflow.lib.logger import get_logger
from ticketflow.models.directory import Role, SupportGroup
from ticketflow.models.routing import RouteResult, RoutingStatus, TicketRoutingState
from ticketflow.models.workflow_log import WorkflowAction, WorkflowLogCreate
from ticketflow.repositories.group_repo import SupportGroupRepository
from ticketflow.repositories.member_repo import GroupMemberRepository
from ticketflow.repositories.routing_state_repo import RoutingStateRepository
from ticketflow.services.assignment_selector import AssignmentSelector
from ticketflow.services.base_service import TransitionService
from ticketflow.services.notification_service import assignment

logger = get_logger(__name__)


class RoutingService(TransitionService):
    """
    Auto-routes tickets to the support group of their building floor.

    The least-loaded ACTIVE JUNIOR of that group becomes the assignee and the
    routing state is created directly as ASSIGNED.
    """

    transition_name = "route"

    def route_ticket(
        self,
        ticket_id: str,
        building: str,
        floor: int,
        priority: str | None = None,
    ) -> RouteResult:
        """
        Route a new ticket.

        Args:
            ticket_id: External ticket id
            building: Building the ticket was raised in
            floor: Floor the ticket was raised on
            priority: Ticket priority, recorded in the log reason only

        Returns:
            RouteResult with the chosen group and technician

        Raises:
            AlreadyExistsError: If the ticket was already routed
            GroupNotFoundError: If no active group serves the floor
            NoAvailableAssigneeError: If the group has no ACTIVE JUNIOR
        """
        ticket_id = _clean_ticket_id(ticket_id)

        with self._track(ticket_id, building=building, floor=floor):
            with self.db.session_scope() as session:
                states = RoutingStateRepository(session)
                if states.find(ticket_id) is not None:
                    raise AlreadyExistsError(
                        f"Ticket {ticket_id} has already been routed", {"ticket_id": ticket_id}
                    )

                group = SupportGroupRepository(session).get_by_building_and_floor(building, floor)
                if group is None:
                    raise GroupNotFoundError(
                        f"No support group found for building: {building}, floor: {floor}",
                        {"building": building, "floor": floor},
                    )

                technician = AssignmentSelector(session).select(group.id, Role.JUNIOR)
                states.create(ticket_id, group.id, technician.id)

            reason = (
                f"Auto-routed to {group.name} and assigned to technician "
                f"(user {technician.user_id})"
            )
            if priority:
                reason += f" | priority: {priority}"

            sync_pending, warning = self._notify_and_audit(
                ticket_id,
                [assignment(ticket_id, technician.user_id, Role.JUNIOR)],
                WorkflowLogCreate(
                    ticket_id=ticket_id,
                    action=WorkflowAction.ROUTED,
                    to_group_id=group.id,
                    to_member_id=technician.id,
                    reason=reason,
                ),
            )

        logger.info(
            f"Routed ticket {ticket_id} to group {group.id} member {technician.id}",
            extra={"ticket_id": ticket_id, "group_id": group.id, "member_id": technician.id},
        )

        return RouteResult(
            ticket_id=ticket_id,
            status=RoutingStatus.ASSIGNED,
            message=f"Ticket routed to {group.name}",
            sync_pending=sync_pending,
            warning=warning,
            group_id=group.id,
            group_name=group.name,
            building=group.building,
            floor=group.floor,
            assigned_member_id=technician.id,
            assigned_user_id=technician.user_id,
            priority=priority,
        )

    def open_ticket(self, ticket_id: str, group_id: int, performed_by: int | None = None) -> TicketRoutingState:
        """
        Place a ticket UNASSIGNED in a group queue for claim-on-open.

        Raises:
            AlreadyExistsError: If the ticket already has routing state
            NotFoundError: If the group does not exist
            ValidationError: If the group is inactive
        """
        ticket_id = _clean_ticket_id(ticket_id)

        with self._track(ticket_id, group_id=group_id):
            with self.db.session_scope() as session:
                group = SupportGroupRepository(session).get_group(group_id)
                if not group.is_active:
                    raise ValidationError(f"Support group {group_id} is inactive")

                state = RoutingStateRepository(session).create(ticket_id, group.id)
                result = TicketRoutingState.model_validate(state)

            self._audit(
                WorkflowLogCreate(
                    ticket_id=ticket_id,
                    action=WorkflowAction.CREATED,
                    to_group_id=group.id,
                    performed_by=performed_by,
                    reason=f"Opened unassigned in {group.name}",
                )
            )

        return result

    def get_routing_state(self, ticket_id: str) -> TicketRoutingState:
        """
        Current routing state of a ticket.

        Raises:
            NotFoundError: If the ticket was never routed
        """
        with self.db.session_scope() as session:
            return TicketRoutingState.model_validate(RoutingStateRepository(session).get(ticket_id))

    def get_group_queue(
        self,
        group_id: int,
        status: RoutingStatus | None = None,
    ) -> list[TicketRoutingState]:
        """Tickets held by a group, most recently updated first."""
        with self.db.session_scope() as session:
            SupportGroupRepository(session).get_group(group_id)
            rows = RoutingStateRepository(session).list_by_group(group_id, status)
            return [TicketRoutingState.model_validate(r) for r in rows]

    def get_member_tickets(self, member_id: int) -> list[TicketRoutingState]:
        with self.db.session_scope() as session:
            GroupMemberRepository(session).get_member(member_id)
            rows = RoutingStateRepository(session).list_by_member(member_id)
            return [TicketRoutingState.model_validate(r) for r in rows]

    def get_group_info(self, group_id: int) -> SupportGroup:
        with self.db.session_scope() as session:
            return SupportGroup.model_validate(SupportGroupRepository(session).get_group(group_id))


def _clean_ticket_id(ticket_id: str) -> str:
    cleaned = str(ticket_id).strip()
    if not cleaned or len(cleaned) > 64:
        raise ValidationError("Ticket id must be 1-64 characters", {"ticket_id": ticket_id})
    return cleaned
