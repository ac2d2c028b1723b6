"""SQLAlchemy ORM models for database tables."""

from datetime import datetime

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import relationship

from ticketflow.lib.database import Base
from ticketflow.models.directory import MemberStatus
from ticketflow.models.routing import RoutingStatus


class SupportGroupORM(Base):
    """SupportGroup ORM model (database table)."""

    __tablename__ = "support_groups"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    building = Column(String(100), nullable=False, index=True)
    floor = Column(Integer, nullable=False)
    parent_group_id = Column(Integer, ForeignKey("support_groups.id"), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    members = relationship("GroupMemberORM", back_populates="group")

    __table_args__ = (Index("idx_support_groups_building_floor", "building", "floor"),)


class GroupMemberORM(Base):
    """GroupMember ORM model (database table)."""

    __tablename__ = "group_members"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, nullable=False, index=True)
    group_id = Column(Integer, ForeignKey("support_groups.id"), nullable=False, index=True)
    role = Column(String(20), nullable=False)
    can_assign = Column(Boolean, nullable=False, default=False)
    can_escalate = Column(Boolean, nullable=False, default=False)
    status = Column(String(20), nullable=False, default=MemberStatus.ACTIVE.value, index=True)
    joined_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    group = relationship("SupportGroupORM", back_populates="members")

    __table_args__ = (Index("idx_group_members_user_group", "user_id", "group_id", unique=True),)


class EscalationRuleORM(Base):
    """EscalationRule ORM model (database table)."""

    __tablename__ = "escalation_rules"

    id = Column(Integer, primary_key=True, autoincrement=True)
    source_group_id = Column(Integer, ForeignKey("support_groups.id"), nullable=False, index=True)
    target_group_id = Column(Integer, ForeignKey("support_groups.id"), nullable=False)
    trigger_type = Column(String(20), nullable=False)
    delay_minutes = Column(Integer, nullable=False, default=0)
    reopen_threshold = Column(Integer, nullable=False, default=0)
    priority = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        Index("idx_escalation_rules_source_trigger", "source_group_id", "trigger_type"),
    )


class TicketRoutingStateORM(Base):
    """TicketRoutingState ORM model (database table)."""

    __tablename__ = "ticket_routing_state"

    id = Column(Integer, primary_key=True, autoincrement=True)
    ticket_id = Column(String(64), nullable=False, unique=True, index=True)
    current_group_id = Column(Integer, ForeignKey("support_groups.id"), nullable=False, index=True)
    assigned_member_id = Column(Integer, ForeignKey("group_members.id"), nullable=True, index=True)
    status = Column(
        String(20),
        nullable=False,
        default=RoutingStatus.UNASSIGNED.value,
        index=True,
    )
    escalation_count = Column(Integer, nullable=False, default=0)
    last_escalated_at = Column(DateTime, nullable=True)
    claimed_at = Column(DateTime, nullable=True)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    # Bumped by every routing mutation; guarded writes match on it
    version = Column(Integer, nullable=False, default=1)

    # Reconciliation of ticket-service notifications
    sync_pending = Column(Boolean, nullable=False, default=False, index=True)
    sync_error = Column(Text, nullable=True)
    pending_notifications = Column(JSON, nullable=True)

    __table_args__ = (
        CheckConstraint("escalation_count >= 0", name="ck_routing_state_escalation_count"),
        CheckConstraint(
            "status <> 'UNASSIGNED' OR assigned_member_id IS NULL",
            name="ck_routing_state_unassigned_member",
        ),
        CheckConstraint(
            "status <> 'ASSIGNED' OR assigned_member_id IS NOT NULL",
            name="ck_routing_state_assigned_member",
        ),
    )


class WorkflowLogORM(Base):
    """WorkflowLog ORM model (database table). Rows are only ever inserted."""

    __tablename__ = "workflow_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    ticket_id = Column(String(64), nullable=False, index=True)
    action = Column(String(20), nullable=False)
    from_group_id = Column(Integer, nullable=True)
    to_group_id = Column(Integer, nullable=True)
    from_member_id = Column(Integer, nullable=True)
    to_member_id = Column(Integer, nullable=True)
    performed_by = Column(Integer, nullable=True)
    reason = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)

    __table_args__ = (Index("idx_workflow_logs_ticket_created", "ticket_id", "created_at"),)
