"""Pydantic models for support groups and their members."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field, field_validator


class Role(str, Enum):
    """Organization role of a technician, ordered by tier."""

    JUNIOR = "JUNIOR"
    SENIOR = "SENIOR"
    SUPERVISOR = "SUPERVISOR"
    HEAD_OF_IT = "HEAD_OF_IT"


# Roles a group membership row may carry
MEMBER_ROLES = frozenset({Role.JUNIOR, Role.SENIOR, Role.SUPERVISOR})


class MemberStatus(str, Enum):
    """Lifecycle status of a group member."""

    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    ON_LEAVE = "ON_LEAVE"


class SupportGroup(BaseModel):
    """
    A support group serving one floor of one building.

    Attributes:
        id: Group identifier
        name: Display name
        building: Building code
        floor: Floor number
        parent_group_id: Optional parent in the group hierarchy
        is_active: Soft-delete flag
        created_at: Creation timestamp
        updated_at: Last modification timestamp
    """

    id: int
    name: str
    building: str
    floor: int
    parent_group_id: int | None = None
    is_active: bool = True
    created_at: datetime | None = None
    updated_at: datetime | None = None

    model_config = {"from_attributes": True}


class SupportGroupCreate(BaseModel):
    """Schema for creating a support group."""

    name: str = Field(..., min_length=1, max_length=255)
    building: str = Field(..., min_length=1, max_length=100)
    floor: int
    parent_group_id: int | None = None

    @field_validator("name", "building")
    @classmethod
    def strip_text(cls, v: str) -> str:
        """Trim whitespace from text fields."""
        v = v.strip()
        if not v:
            raise ValueError("Value must not be blank")
        return v


class SupportGroupUpdate(BaseModel):
    """Partial update of a support group; unset fields are left alone."""

    name: str | None = Field(None, min_length=1, max_length=255)
    building: str | None = Field(None, min_length=1, max_length=100)
    floor: int | None = None
    parent_group_id: int | None = None


class GroupMember(BaseModel):
    """
    A technician's membership in a support group.

    Attributes:
        id: Member identifier (used as assignee id in routing state)
        user_id: Identity-service user id
        group_id: Owning group
        role: Working-tier role
        can_assign: May assign tickets to others
        can_escalate: May escalate tickets
        status: Lifecycle status; only ACTIVE members receive tickets
        joined_at: Membership start
        updated_at: Last modification timestamp
    """

    id: int
    user_id: int
    group_id: int
    role: Role
    can_assign: bool = False
    can_escalate: bool = False
    status: MemberStatus = MemberStatus.ACTIVE
    joined_at: datetime | None = None
    updated_at: datetime | None = None

    model_config = {"from_attributes": True}

    @property
    def is_active(self) -> bool:
        return self.status == MemberStatus.ACTIVE


class GroupMemberCreate(BaseModel):
    """Schema for adding a member to a group."""

    user_id: int
    group_id: int
    role: Role
    can_assign: bool = False
    can_escalate: bool = False

    @field_validator("role")
    @classmethod
    def validate_role(cls, v: Role) -> Role:
        """Memberships only carry working-tier roles."""
        if v not in MEMBER_ROLES:
            raise ValueError(f"Role {v.value} cannot hold a group membership")
        return v
