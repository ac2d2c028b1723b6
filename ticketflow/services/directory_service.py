"""Directory Service: administration of groups, members and escalation rules."""

from ticketflow.lib.database import Database
from ticketflow.lib.exceptions import ValidationError
from ticketflow.lib.logger import get_logger
from ticketflow.models.directory import (
    GroupMember,
    GroupMemberCreate,
    MemberStatus,
    Role,
    SupportGroup,
    SupportGroupCreate,
    SupportGroupUpdate,
)
from ticketflow.models.escalation import EscalationRule, EscalationRuleCreate
from ticketflow.repositories.escalation_rule_repo import EscalationRuleRepository
from ticketflow.repositories.group_repo import SupportGroupRepository
from ticketflow.repositories.member_repo import GroupMemberRepository

logger = get_logger(__name__)


class DirectoryService:
    """
    Admin operations over the support directory.

    Changes here take effect for the next routing, claim or escalation;
    tickets already placed keep their group and assignee.
    """

    def __init__(self, db: Database) -> None:
        self.db = db

    def create_group(self, group: SupportGroupCreate) -> SupportGroup:
        with self.db.session_scope() as session:
            return SupportGroup.model_validate(SupportGroupRepository(session).create_group(group))

    def update_group(self, group_id: int, update: SupportGroupUpdate) -> SupportGroup:
        with self.db.session_scope() as session:
            return SupportGroup.model_validate(
                SupportGroupRepository(session).update_group(group_id, update)
            )

    def deactivate_group(self, group_id: int) -> None:
        with self.db.session_scope() as session:
            SupportGroupRepository(session).deactivate_group(group_id)

    def list_groups(self, building: str | None = None) -> list[SupportGroup]:
        with self.db.session_scope() as session:
            groups = SupportGroupRepository(session).list_groups(building=building)
            return [SupportGroup.model_validate(g) for g in groups]

    def get_group_members(
        self,
        group_id: int,
        role: Role | None = None,
        status: MemberStatus | None = MemberStatus.ACTIVE,
    ) -> list[GroupMember]:
        """
        Members of a group.

        Raises:
            NotFoundError: If the group does not exist
        """
        with self.db.session_scope() as session:
            SupportGroupRepository(session).get_group(group_id)
            members = GroupMemberRepository(session).list_members(
                group_id=group_id, role=role, status=status
            )
            return [GroupMember.model_validate(m) for m in members]

    def add_member(self, member: GroupMemberCreate) -> GroupMember:
        """
        Add a technician to a group.

        Raises:
            NotFoundError: If the group does not exist
            ValidationError: If the group is inactive
            AlreadyExistsError: If the user is already in the group
        """
        with self.db.session_scope() as session:
            group = SupportGroupRepository(session).get_group(member.group_id)
            if not group.is_active:
                raise ValidationError(f"Support group {group.id} is inactive")
            return GroupMember.model_validate(GroupMemberRepository(session).add_member(member))

    def update_member_status(self, member_id: int, status: MemberStatus) -> GroupMember:
        with self.db.session_scope() as session:
            member = GroupMemberRepository(session).update_status(member_id, status)
            return GroupMember.model_validate(member)

    def create_escalation_rule(self, rule: EscalationRuleCreate) -> EscalationRule:
        """
        Create an escalation rule between two existing groups.

        Raises:
            NotFoundError: If either group does not exist
        """
        with self.db.session_scope() as session:
            groups = SupportGroupRepository(session)
            groups.get_group(rule.source_group_id)
            groups.get_group(rule.target_group_id)
            return EscalationRule.model_validate(EscalationRuleRepository(session).create_rule(rule))

    def list_escalation_rules(self, source_group_id: int | None = None) -> list[EscalationRule]:
        with self.db.session_scope() as session:
            rules = EscalationRuleRepository(session).list_rules(source_group_id=source_group_id)
            return [EscalationRule.model_validate(r) for r in rules]
