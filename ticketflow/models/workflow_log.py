"""Pydantic models for the workflow audit trail."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field


class WorkflowAction(str, Enum):
    """Kinds of workflow log entries."""

    CREATED = "CREATED"
    ROUTED = "ROUTED"
    CLAIMED = "CLAIMED"
    REASSIGNED = "REASSIGNED"
    ESCALATED = "ESCALATED"
    RESOLVED = "RESOLVED"
    CLOSED = "CLOSED"
    REOPENED = "REOPENED"


class WorkflowLogCreate(BaseModel):
    """Schema for appending a workflow log entry."""

    ticket_id: str = Field(..., min_length=1, max_length=64)
    action: WorkflowAction
    from_group_id: int | None = None
    to_group_id: int | None = None
    from_member_id: int | None = None
    to_member_id: int | None = None
    performed_by: int | None = None
    reason: str | None = Field(None, max_length=1000)


class WorkflowLogEntry(WorkflowLogCreate):
    """A stored workflow log entry."""

    id: int
    created_at: datetime

    model_config = {"from_attributes": True}


class ActivityEntry(BaseModel):
    """One line of an activity feed."""

    id: int
    ticket_id: str
    action: WorkflowAction
    timestamp: datetime
    performed_by: int | None = None
    from_group_id: int | None = None
    to_group_id: int | None = None
    description: str


class AuditTrail(BaseModel):
    """Every logged transition of one ticket, oldest first."""

    ticket_id: str
    total_actions: int
    logs: list[ActivityEntry]


class ActivityHistory(BaseModel):
    """Activity feed for a member, group or time window, newest first."""

    scope: str
    total_actions: int
    logs: list[ActivityEntry]
