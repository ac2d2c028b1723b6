"""Pydantic models for ticket routing state and transition outcomes."""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from ticketflow.models.escalation import EscalationTrigger


class RoutingStatus(str, Enum):
    """Where a ticket sits in the routing state machine."""

    UNASSIGNED = "UNASSIGNED"
    ASSIGNED = "ASSIGNED"
    ESCALATED = "ESCALATED"


# Statuses that count toward a technician's load
ACTIVE_LOAD_STATUSES = (RoutingStatus.ASSIGNED, RoutingStatus.ESCALATED)


class TicketRoutingState(BaseModel):
    """
    Workflow position of one ticket. Ticket content lives in the ticket service.

    Attributes:
        ticket_id: External ticket identifier (unique)
        current_group_id: Group currently responsible
        assigned_member_id: Member holding the ticket (null when unassigned)
        status: Routing status
        escalation_count: Number of successful escalations
        last_escalated_at: Time of the last escalation
        claimed_at: Time the ticket was first assigned
        updated_at: Last modification timestamp
        version: Incremented by every routing change
        sync_pending: Ticket service has not yet seen the latest transition
        sync_error: Last notification error, if any
    """

    id: int | None = None
    ticket_id: str
    current_group_id: int
    assigned_member_id: int | None = None
    status: RoutingStatus
    escalation_count: int = 0
    last_escalated_at: datetime | None = None
    claimed_at: datetime | None = None
    updated_at: datetime | None = None
    version: int = 1
    sync_pending: bool = False
    sync_error: str | None = None

    model_config = {"from_attributes": True}


class TransitionResult(BaseModel):
    """Fields shared by every transition outcome."""

    success: bool = True
    ticket_id: str
    status: RoutingStatus
    message: str
    sync_pending: bool = False
    warning: str | None = None


class RouteResult(TransitionResult):
    """Outcome of routing a ticket to a group and junior technician."""

    group_id: int
    group_name: str
    building: str
    floor: int
    assigned_member_id: int
    assigned_user_id: int
    priority: str | None = None


class ClaimResult(TransitionResult):
    """Outcome of a claim."""

    claimed_by: int
    member_id: int
    group_id: int


class ReassignResult(TransitionResult):
    """Outcome of a reassignment."""

    from_group: str
    to_group: str
    to_member: int
    performed_by: int


class EscalationResult(TransitionResult):
    """Outcome of an escalation."""

    from_group: str
    to_group: str
    escalation_count: int
    trigger_type: EscalationTrigger
    assigned_member_id: int | None = None
    assigned_user_id: int | None = None


class EscalationSkipped(BaseModel):
    """An automatic trigger was evaluated but its condition did not hold."""

    success: bool = False
    ticket_id: str
    trigger_type: EscalationTrigger
    message: str
    details: dict[str, Any] = Field(default_factory=dict)
