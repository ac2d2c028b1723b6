"""Least-loaded technician selection."""

from sqlalchemy.orm import Session

from ticketflow.lib.exceptions import NoAvailableAssigneeError
from ticketflow.lib.logger import get_logger
from ticketflow.models.directory import MemberStatus, Role
from ticketflow.models.orm import GroupMemberORM
from ticketflow.repositories.member_repo import GroupMemberRepository
from ticketflow.repositories.routing_state_repo import RoutingStateRepository

logger = get_logger(__name__)


class AssignmentSelector:
    """
    Picks the ACTIVE member of a role with the fewest open tickets.

    Load is the number of ASSIGNED or ESCALATED tickets currently held.
    Ties go to the lowest member id.
    """

    def __init__(self, db: Session) -> None:
        self.members = GroupMemberRepository(db)
        self.states = RoutingStateRepository(db)

    def select_or_none(self, group_id: int, role: Role) -> GroupMemberORM | None:
        candidates = self.members.list_members(
            group_id=group_id, role=role, status=MemberStatus.ACTIVE
        )
        if not candidates:
            return None

        load = self.states.count_active_assignments([m.id for m in candidates])
        chosen = min(candidates, key=lambda m: (load.get(m.id, 0), m.id))

        logger.debug(
            f"Selected member {chosen.id} in group {group_id} for role {role.value} "
            f"(load={load.get(chosen.id, 0)}, candidates={len(candidates)})"
        )
        return chosen

    def select(self, group_id: int, role: Role) -> GroupMemberORM:
        """
        Select an assignee.

        Args:
            group_id: Group to pick from
            role: Required role

        Returns:
            Chosen member

        Raises:
            NoAvailableAssigneeError: If the group has no ACTIVE member of that role
        """
        chosen = self.select_or_none(group_id, role)
        if chosen is None:
            raise NoAvailableAssigneeError(
                f"No available {role.value} technician in group {group_id}",
                {"group_id": group_id, "role": role.value},
            )
        return chosen
