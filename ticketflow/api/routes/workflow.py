"""Workflow endpoints: routing, claim, reassignment and escalation."""

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field

from ticketflow.api.dependencies import get_services
from ticketflow.lib.logger import get_logger
from ticketflow.models.directory import GroupMember, Role
from ticketflow.models.escalation import EscalationRule, EscalationTrigger
from ticketflow.models.notifications import ReconcileReport
from ticketflow.models.routing import (
    ClaimResult,
    EscalationResult,
    EscalationSkipped,
    ReassignResult,
    RouteResult,
    RoutingStatus,
    TicketRoutingState,
)
from ticketflow.models.workflow_log import ActivityHistory, AuditTrail, WorkflowLogEntry
from ticketflow.services.workflow import WorkflowServices

logger = get_logger(__name__)
router = APIRouter()


# Request models
class RouteRequest(BaseModel):
    """Route a new ticket by location."""

    ticket_id: str = Field(..., min_length=1, max_length=64)
    building: str = Field(..., min_length=1, max_length=100)
    floor: int
    priority: str | None = Field(None, description="Ticket priority, logged only")


class OpenRequest(BaseModel):
    """Queue a ticket unassigned in a group."""

    ticket_id: str = Field(..., min_length=1, max_length=64)
    group_id: int
    performed_by: int | None = None


class ClaimRequest(BaseModel):
    user_id: int


class ReassignRequest(BaseModel):
    actor_id: int
    actor_role: Role
    target_member_id: int
    actor_building: str | None = None


class EscalateRequest(BaseModel):
    trigger_type: EscalationTrigger
    actor_id: int | None = None
    actor_role: Role | None = None
    reason: str | None = Field(None, max_length=500)


class CriticalCheckRequest(BaseModel):
    is_critical: bool


class SlaCheckRequest(BaseModel):
    sla_breached: bool


class ReopenCheckRequest(BaseModel):
    reopen_count: int = Field(..., ge=0)
    threshold: int | None = Field(None, ge=1)


# Transitions
@router.post("/route", response_model=RouteResult, status_code=status.HTTP_201_CREATED)
def route_ticket(
    request: RouteRequest,
    services: WorkflowServices = Depends(get_services),
) -> RouteResult:
    """
    Auto-route a ticket to the group serving its building floor.

    Raises:
        404: No active group for the floor
        409: Ticket already routed
        422: No active junior in the group
    """
    return services.routing.route_ticket(
        request.ticket_id, request.building, request.floor, request.priority
    )


@router.post("/open", response_model=TicketRoutingState, status_code=status.HTTP_201_CREATED)
def open_ticket(
    request: OpenRequest,
    services: WorkflowServices = Depends(get_services),
) -> TicketRoutingState:
    """Place a ticket unassigned in a group queue for claim-on-open."""
    return services.routing.open_ticket(request.ticket_id, request.group_id, request.performed_by)


@router.post("/tickets/{ticket_id}/claim", response_model=ClaimResult)
def claim_ticket(
    ticket_id: str,
    request: ClaimRequest,
    services: WorkflowServices = Depends(get_services),
) -> ClaimResult:
    """
    Claim an unassigned ticket.

    Raises:
        403: User is not an active junior of the ticket's group
        409: Ticket already claimed
    """
    return services.claims.claim_ticket(ticket_id, request.user_id)


@router.post("/tickets/{ticket_id}/reassign", response_model=ReassignResult)
def reassign_ticket(
    ticket_id: str,
    request: ReassignRequest,
    services: WorkflowServices = Depends(get_services),
) -> ReassignResult:
    """
    Reassign a ticket to another member.

    Raises:
        403: Actor's role does not reach the target group
    """
    return services.reassignment.reassign_ticket(
        ticket_id,
        request.actor_id,
        request.actor_role,
        request.target_member_id,
        request.actor_building,
    )


@router.post("/tickets/{ticket_id}/escalate", response_model=EscalationResult)
def escalate_ticket(
    ticket_id: str,
    request: EscalateRequest,
    services: WorkflowServices = Depends(get_services),
) -> EscalationResult:
    """
    Escalate a ticket along its group's escalation rule.

    Raises:
        403: MANUAL escalation by a role that may not escalate
        422: No escalation rule for the group and trigger
    """
    return services.escalation.escalate_ticket(
        ticket_id,
        request.trigger_type,
        request.actor_id,
        request.actor_role,
        request.reason,
    )


@router.post(
    "/tickets/{ticket_id}/escalate/critical",
    response_model=EscalationResult | EscalationSkipped,
)
def escalate_if_critical(
    ticket_id: str,
    request: CriticalCheckRequest,
    services: WorkflowServices = Depends(get_services),
):
    return services.escalation.escalate_if_critical(ticket_id, request.is_critical)


@router.post(
    "/tickets/{ticket_id}/escalate/sla",
    response_model=EscalationResult | EscalationSkipped,
)
def escalate_on_sla_breach(
    ticket_id: str,
    request: SlaCheckRequest,
    services: WorkflowServices = Depends(get_services),
):
    return services.escalation.escalate_on_sla_breach(ticket_id, request.sla_breached)


@router.post(
    "/tickets/{ticket_id}/escalate/reopen",
    response_model=EscalationResult | EscalationSkipped,
)
def escalate_on_reopen_threshold(
    ticket_id: str,
    request: ReopenCheckRequest,
    services: WorkflowServices = Depends(get_services),
):
    return services.escalation.escalate_on_reopen_threshold(
        ticket_id, request.reopen_count, request.threshold
    )


# Reads
@router.get("/tickets/{ticket_id}", response_model=TicketRoutingState)
def get_routing_state(
    ticket_id: str,
    services: WorkflowServices = Depends(get_services),
) -> TicketRoutingState:
    return services.routing.get_routing_state(ticket_id)


@router.get("/tickets/{ticket_id}/claimed")
def is_ticket_claimed(
    ticket_id: str,
    services: WorkflowServices = Depends(get_services),
) -> dict:
    return {"ticket_id": ticket_id, "claimed": services.claims.is_ticket_claimed(ticket_id)}


@router.get("/tickets/{ticket_id}/reassign-targets", response_model=list[GroupMember])
def get_reassignment_targets(
    ticket_id: str,
    actor_role: Role = Query(...),
    services: WorkflowServices = Depends(get_services),
) -> list[GroupMember]:
    return services.reassignment.get_available_targets(ticket_id, actor_role)


@router.get("/tickets/{ticket_id}/escalations", response_model=list[WorkflowLogEntry])
def get_escalation_history(
    ticket_id: str,
    services: WorkflowServices = Depends(get_services),
) -> list[WorkflowLogEntry]:
    return services.escalation.get_escalation_history(ticket_id)


@router.get("/tickets/{ticket_id}/audit", response_model=AuditTrail)
def get_ticket_audit_trail(
    ticket_id: str,
    services: WorkflowServices = Depends(get_services),
) -> AuditTrail:
    return services.audit.get_ticket_audit_trail(ticket_id)


@router.get("/groups/{group_id}/queue", response_model=list[TicketRoutingState])
def get_group_queue(
    group_id: int,
    status_filter: RoutingStatus | None = Query(None, alias="status"),
    services: WorkflowServices = Depends(get_services),
) -> list[TicketRoutingState]:
    return services.routing.get_group_queue(group_id, status_filter)


@router.get("/groups/{group_id}/unclaimed", response_model=list[TicketRoutingState])
def get_unclaimed_tickets(
    group_id: int,
    services: WorkflowServices = Depends(get_services),
) -> list[TicketRoutingState]:
    return services.claims.get_unclaimed_tickets(group_id)


@router.get("/groups/{group_id}/escalation-path", response_model=list[EscalationRule])
def get_escalation_path(
    group_id: int,
    services: WorkflowServices = Depends(get_services),
) -> list[EscalationRule]:
    return services.escalation.get_escalation_path(group_id)


@router.get("/groups/{group_id}/activity", response_model=ActivityHistory)
def get_group_activity(
    group_id: int,
    limit: int = Query(50, ge=1, le=500),
    services: WorkflowServices = Depends(get_services),
) -> ActivityHistory:
    return services.audit.get_group_activity(group_id, limit)


@router.get("/members/{member_id}/tickets", response_model=list[TicketRoutingState])
def get_member_tickets(
    member_id: int,
    services: WorkflowServices = Depends(get_services),
) -> list[TicketRoutingState]:
    return services.routing.get_member_tickets(member_id)


@router.get("/members/{member_id}/activity", response_model=ActivityHistory)
def get_member_activity(
    member_id: int,
    limit: int = Query(50, ge=1, le=500),
    services: WorkflowServices = Depends(get_services),
) -> ActivityHistory:
    return services.audit.get_member_activity(member_id, limit)


@router.get("/activity", response_model=ActivityHistory)
def get_recent_activity(
    limit: int = Query(50, ge=1, le=500),
    minutes_back: int = Query(60, ge=1, le=10080),
    services: WorkflowServices = Depends(get_services),
) -> ActivityHistory:
    return services.audit.get_recent_activity(limit, minutes_back)


@router.post("/reconcile", response_model=ReconcileReport)
def reconcile(
    limit: int = Query(100, ge=1, le=1000),
    services: WorkflowServices = Depends(get_services),
) -> ReconcileReport:
    """Replay ticket-service notifications left pending by earlier transitions."""
    return services.notifier.reconcile(limit)
