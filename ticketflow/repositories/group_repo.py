"""Repository for support group data access."""

from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from ticketflow.lib.exceptions import DatabaseError, NotFoundError, ValidationError
from ticketflow.lib.logger import get_logger
from ticketflow.models.directory import MemberStatus, SupportGroupCreate, SupportGroupUpdate
from ticketflow.models.orm import GroupMemberORM, SupportGroupORM

logger = get_logger(__name__)


class SupportGroupRepository:
    """Repository for support group operations."""

    def __init__(self, db: Session) -> None:
        """
        Initialize repository with database session.

        Args:
            db: SQLAlchemy session
        """
        self.db = db

    def create_group(self, group: SupportGroupCreate) -> SupportGroupORM:
        """
        Create a new support group.

        Args:
            group: Group creation data

        Returns:
            Created group

        Raises:
            NotFoundError: If the parent group does not exist
            DatabaseError: If creation fails
        """
        if group.parent_group_id is not None:
            self.get_group(group.parent_group_id)

        try:
            group_obj = SupportGroupORM(
                name=group.name,
                building=group.building,
                floor=group.floor,
                parent_group_id=group.parent_group_id,
                is_active=True,
            )

            self.db.add(group_obj)
            self.db.commit()
            self.db.refresh(group_obj)

            logger.info(
                f"Created support group: {group_obj.id} "
                f"({group_obj.building}/{group_obj.floor})"
            )
            return group_obj

        except Exception as e:
            self.db.rollback()
            logger.error(f"Failed to create support group: {e}")
            raise DatabaseError(f"Support group creation failed: {e}")

    def get_group(self, group_id: int) -> SupportGroupORM:
        """
        Get group by ID, active or not.

        Raises:
            NotFoundError: If group not found
            DatabaseError: If query fails
        """
        group = self.find_group(group_id)
        if group is None:
            raise NotFoundError(f"Support group not found: {group_id}", {"group_id": group_id})
        return group

    def find_group(self, group_id: int) -> SupportGroupORM | None:
        try:
            stmt = select(SupportGroupORM).where(SupportGroupORM.id == group_id)
            return self.db.execute(stmt).scalar_one_or_none()
        except Exception as e:
            logger.error(f"Failed to get support group {group_id}: {e}")
            raise DatabaseError(f"Support group fetch failed: {e}")

    def get_by_building_and_floor(self, building: str, floor: int) -> SupportGroupORM | None:
        """
        Get the active group serving a building floor.

        When several active groups share a floor the oldest one wins.

        Args:
            building: Building code
            floor: Floor number

        Returns:
            Group or None
        """
        try:
            stmt = (
                select(SupportGroupORM)
                .where(
                    SupportGroupORM.building == building,
                    SupportGroupORM.floor == floor,
                    SupportGroupORM.is_active.is_(True),
                )
                .order_by(SupportGroupORM.id.asc())
                .limit(1)
            )
            return self.db.execute(stmt).scalar_one_or_none()

        except Exception as e:
            logger.error(f"Failed to look up group for {building}/{floor}: {e}")
            raise DatabaseError(f"Support group lookup failed: {e}")

    def list_groups(self, building: str | None = None) -> list[SupportGroupORM]:
        """List active groups, optionally restricted to one building."""
        try:
            stmt = select(SupportGroupORM).where(SupportGroupORM.is_active.is_(True))
            if building is not None:
                stmt = stmt.where(SupportGroupORM.building == building)
            stmt = stmt.order_by(SupportGroupORM.building.asc(), SupportGroupORM.floor.asc())

            return list(self.db.execute(stmt).scalars().all())

        except Exception as e:
            logger.error(f"Failed to list support groups: {e}")
            raise DatabaseError(f"Support group list failed: {e}")

    def count_active_members(self) -> dict[int, int]:
        """Return active member count per group id."""
        try:
            stmt = (
                select(GroupMemberORM.group_id, func.count(GroupMemberORM.id))
                .where(GroupMemberORM.status == MemberStatus.ACTIVE.value)
                .group_by(GroupMemberORM.group_id)
            )
            return {group_id: count for group_id, count in self.db.execute(stmt).all()}

        except Exception as e:
            logger.error(f"Failed to count group members: {e}")
            raise DatabaseError(f"Member count failed: {e}")

    def update_group(self, group_id: int, update: SupportGroupUpdate) -> SupportGroupORM:
        """
        Apply a partial update to a group.

        Only fields explicitly set on `update` are written, so a parent can
        be cleared by sending `parent_group_id: null`.

        Raises:
            NotFoundError: If the group (or new parent) does not exist
            ValidationError: If the group would become its own parent
            DatabaseError: If update fails
        """
        group = self.get_group(group_id)
        changes = update.model_dump(exclude_unset=True)

        parent_id = changes.get("parent_group_id")
        if parent_id is not None:
            if parent_id == group_id:
                raise ValidationError("A group cannot be its own parent")
            self.get_group(parent_id)

        if not changes:
            return group

        try:
            for field, value in changes.items():
                setattr(group, field, value)
            group.updated_at = datetime.utcnow()

            self.db.commit()
            self.db.refresh(group)

            logger.info(f"Updated support group {group_id}: {sorted(changes)}")
            return group

        except Exception as e:
            self.db.rollback()
            logger.error(f"Failed to update support group {group_id}: {e}")
            raise DatabaseError(f"Support group update failed: {e}")

    def deactivate_group(self, group_id: int) -> None:
        """Soft-delete a group."""
        group = self.get_group(group_id)

        try:
            group.is_active = False
            group.updated_at = datetime.utcnow()
            self.db.commit()

            logger.info(f"Deactivated support group {group_id}")

        except Exception as e:
            self.db.rollback()
            logger.error(f"Failed to deactivate support group {group_id}: {e}")
            raise DatabaseError(f"Support group deactivation failed: {e}")
