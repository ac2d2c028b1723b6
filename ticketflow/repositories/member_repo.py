"""Repository for group member data access."""

from datetime import datetime

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ticketflow.lib.exceptions import AlreadyExistsError, DatabaseError, NotFoundError
from ticketflow.lib.logger import get_logger
from ticketflow.models.directory import GroupMemberCreate, MemberStatus, Role
from ticketflow.models.orm import GroupMemberORM

logger = get_logger(__name__)


class GroupMemberRepository:
    """Repository for group membership operations."""

    def __init__(self, db: Session) -> None:
        """
        Initialize repository with database session.

        Args:
            db: SQLAlchemy session
        """
        self.db = db

    def add_member(self, member: GroupMemberCreate) -> GroupMemberORM:
        """
        Add a user to a group as an ACTIVE member.

        Args:
            member: Membership data

        Returns:
            Created membership

        Raises:
            AlreadyExistsError: If the user already belongs to the group
            DatabaseError: If creation fails
        """
        try:
            member_obj = GroupMemberORM(
                user_id=member.user_id,
                group_id=member.group_id,
                role=member.role.value,
                can_assign=member.can_assign,
                can_escalate=member.can_escalate,
                status=MemberStatus.ACTIVE.value,
            )

            self.db.add(member_obj)
            self.db.commit()
            self.db.refresh(member_obj)

            logger.info(
                f"Added member {member_obj.id} (user {member.user_id}) "
                f"to group {member.group_id} as {member.role.value}"
            )
            return member_obj

        except IntegrityError:
            self.db.rollback()
            raise AlreadyExistsError(
                f"User {member.user_id} is already a member of group {member.group_id}",
                {"user_id": member.user_id, "group_id": member.group_id},
            )
        except Exception as e:
            self.db.rollback()
            logger.error(f"Failed to add member: {e}")
            raise DatabaseError(f"Member creation failed: {e}")

    def get_member(self, member_id: int) -> GroupMemberORM:
        """
        Get member by ID.

        Raises:
            NotFoundError: If member not found
            DatabaseError: If query fails
        """
        try:
            stmt = select(GroupMemberORM).where(GroupMemberORM.id == member_id)
            result = self.db.execute(stmt).scalar_one_or_none()

            if result is None:
                raise NotFoundError(f"Group member not found: {member_id}", {"member_id": member_id})

            return result

        except NotFoundError:
            raise
        except Exception as e:
            logger.error(f"Failed to get member {member_id}: {e}")
            raise DatabaseError(f"Member fetch failed: {e}")

    def find_member_in_group(self, user_id: int, group_id: int) -> GroupMemberORM | None:
        """Get a user's membership row in one group, whatever its status."""
        try:
            stmt = select(GroupMemberORM).where(
                GroupMemberORM.user_id == user_id,
                GroupMemberORM.group_id == group_id,
            )
            return self.db.execute(stmt).scalar_one_or_none()

        except Exception as e:
            logger.error(f"Failed to get membership of user {user_id} in group {group_id}: {e}")
            raise DatabaseError(f"Membership fetch failed: {e}")

    def list_members(
        self,
        group_id: int | None = None,
        role: Role | None = None,
        status: MemberStatus | None = MemberStatus.ACTIVE,
        group_ids: list[int] | None = None,
    ) -> list[GroupMemberORM]:
        """
        List members with optional filters.

        Args:
            group_id: Filter by group
            role: Filter by role
            status: Filter by status (default ACTIVE; None for all)
            group_ids: Filter by several groups

        Returns:
            Members ordered by id
        """
        try:
            stmt = select(GroupMemberORM)

            if group_id is not None:
                stmt = stmt.where(GroupMemberORM.group_id == group_id)
            if group_ids is not None:
                stmt = stmt.where(GroupMemberORM.group_id.in_(group_ids))
            if role is not None:
                stmt = stmt.where(GroupMemberORM.role == role.value)
            if status is not None:
                stmt = stmt.where(GroupMemberORM.status == status.value)

            stmt = stmt.order_by(GroupMemberORM.id.asc())
            return list(self.db.execute(stmt).scalars().all())

        except Exception as e:
            logger.error(f"Failed to list members: {e}")
            raise DatabaseError(f"Member list failed: {e}")

    def update_status(self, member_id: int, status: MemberStatus) -> GroupMemberORM:
        """
        Change a member's lifecycle status.

        Raises:
            NotFoundError: If member not found
            DatabaseError: If update fails
        """
        member = self.get_member(member_id)

        try:
            member.status = status.value
            member.updated_at = datetime.utcnow()
            self.db.commit()
            self.db.refresh(member)

            logger.info(f"Member {member_id} status set to {status.value}")
            return member

        except Exception as e:
            self.db.rollback()
            logger.error(f"Failed to update member status: {e}")
            raise DatabaseError(f"Member update failed: {e}")
