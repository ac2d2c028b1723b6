"""Reassignment Service: authority-checked transfer of a ticket.

Authority levels (see AuthorityPolicy):
    JUNIOR      -> cannot reassign
    SENIOR      -> within the same building
    SUPERVISOR+ -> across buildings
"""

from ticketflow.lib.exceptions import InsufficientAuthorityError, StaleStateError, ValidationError
from ticketflow.lib.logger import get_logger
from ticketflow.models.authority import ReassignScope
from ticketflow.models.directory import GroupMember, MemberStatus, Role
from ticketflow.models.orm import SupportGroupORM
from ticketflow.models.routing import ReassignResult, RoutingStatus
from ticketflow.models.workflow_log import WorkflowAction, WorkflowLogCreate
from ticketflow.repositories.group_repo import SupportGroupRepository
from ticketflow.repositories.member_repo import GroupMemberRepository
from ticketflow.repositories.routing_state_repo import RoutingStateRepository
from ticketflow.services.base_service import TransitionService
from ticketflow.services.notification_service import REASSIGNED, status_update

logger = get_logger(__name__)


class ReassignmentService(TransitionService):
    """Moves a ticket to another technician, possibly in another group."""

    transition_name = "reassign"

    def authorize(
        self,
        actor_role: Role,
        current_group: SupportGroupORM,
        target_group: SupportGroupORM,
    ) -> None:
        """
        Check that a role may move a ticket between two groups.

        Raises:
            InsufficientAuthorityError: If the policy forbids it
        """
        scope = self.policy.reassign_scope(actor_role)

        if scope == ReassignScope.NONE:
            raise InsufficientAuthorityError(
                f"User role '{actor_role.value}' does not have reassignment permission",
                {"role": actor_role.value},
            )
        if scope == ReassignScope.SAME_BUILDING and current_group.building != target_group.building:
            raise InsufficientAuthorityError(
                f"{actor_role.value.title()} can only reassign within same building. "
                f"Current: {current_group.building}, Target: {target_group.building}",
                {
                    "role": actor_role.value,
                    "current_building": current_group.building,
                    "target_building": target_group.building,
                },
            )

    def reassign_ticket(
        self,
        ticket_id: str,
        actor_id: int,
        actor_role: Role | str,
        target_member_id: int,
        actor_building: str | None = None,
    ) -> ReassignResult:
        """
        Reassign a ticket.

        Args:
            ticket_id: External ticket id
            actor_id: User performing the reassignment
            actor_role: Organization role of the actor
            target_member_id: Member who will hold the ticket
            actor_building: Building the actor declared; logged only

        Returns:
            ReassignResult

        Raises:
            NotFoundError: If the ticket, a group or the target member is missing
            InsufficientAuthorityError: If the actor's role does not reach the target
            ValidationError: If the target member or group is not active
            StaleStateError: If the ticket changed after it was read
        """
        role = _parse_role(actor_role)

        with self._track(ticket_id, actor_id=actor_id, actor_role=role.value):
            with self.db.session_scope() as session:
                states = RoutingStateRepository(session)
                groups = SupportGroupRepository(session)

                state = states.get(ticket_id)
                previous_member_id = state.assigned_member_id
                current_group = groups.get_group(state.current_group_id)

                target = GroupMemberRepository(session).get_member(target_member_id)
                target_group = groups.get_group(target.group_id)

                self.authorize(role, current_group, target_group)

                if target.status != MemberStatus.ACTIVE.value:
                    raise ValidationError(
                        f"Target member {target_member_id} is {target.status}, not ACTIVE",
                        {"member_id": target_member_id, "status": target.status},
                    )
                if not target_group.is_active:
                    raise ValidationError(f"Target group {target_group.id} is inactive")

                if not states.reassign(ticket_id, target.id, target_group.id, state.version):
                    raise StaleStateError(
                        f"Ticket {ticket_id} changed while being reassigned; retry with its current state",
                        {"ticket_id": ticket_id, "expected_version": state.version},
                    )

            reason = f"Reassigned by {role.value} from {current_group.name} to {target_group.name}"
            if actor_building:
                reason += f" | actor building: {actor_building}"

            sync_pending, warning = self._notify_and_audit(
                ticket_id,
                [status_update(ticket_id, REASSIGNED)],
                WorkflowLogCreate(
                    ticket_id=ticket_id,
                    action=WorkflowAction.REASSIGNED,
                    from_group_id=current_group.id,
                    to_group_id=target_group.id,
                    from_member_id=previous_member_id,
                    to_member_id=target.id,
                    performed_by=actor_id,
                    reason=reason,
                ),
            )

        return ReassignResult(
            ticket_id=ticket_id,
            status=RoutingStatus.ASSIGNED,
            message=f"Ticket reassigned to member {target.id} in group {target_group.name}",
            sync_pending=sync_pending,
            warning=warning,
            from_group=current_group.name,
            to_group=target_group.name,
            to_member=target.id,
            performed_by=actor_id,
        )

    def get_available_targets(self, ticket_id: str, actor_role: Role | str) -> list[GroupMember]:
        """
        ACTIVE members the actor could reassign the ticket to.

        SENIOR sees members of active groups in the ticket's building,
        SUPERVISOR and above see every active member, JUNIOR sees none.
        The current assignee is excluded.
        """
        role = _parse_role(actor_role)
        scope = self.policy.reassign_scope(role)
        if scope == ReassignScope.NONE:
            return []

        with self.db.session_scope() as session:
            state = RoutingStateRepository(session).get(ticket_id)
            groups = SupportGroupRepository(session)

            if scope == ReassignScope.SAME_BUILDING:
                building = groups.get_group(state.current_group_id).building
                group_ids = [g.id for g in groups.list_groups(building=building)]
            else:
                group_ids = [g.id for g in groups.list_groups()]

            members = GroupMemberRepository(session).list_members(
                status=MemberStatus.ACTIVE, group_ids=group_ids
            )
            return [
                GroupMember.model_validate(m)
                for m in members
                if m.id != state.assigned_member_id
            ]


def _parse_role(role: Role | str) -> Role:
    try:
        return Role(getattr(role, "value", role))
    except ValueError:
        raise InsufficientAuthorityError(f"Unknown role '{role}'", {"role": str(role)})
