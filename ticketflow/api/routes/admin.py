"""Admin endpoints for the support directory and escalation rules."""

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel

from ticketflow.api.dependencies import get_services
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
from ticketflow.services.workflow import WorkflowServices

logger = get_logger(__name__)
router = APIRouter()


class MemberStatusUpdate(BaseModel):
    status: MemberStatus


@router.post("/groups", response_model=SupportGroup, status_code=status.HTTP_201_CREATED)
def create_group(
    request: SupportGroupCreate,
    services: WorkflowServices = Depends(get_services),
) -> SupportGroup:
    return services.directory.create_group(request)


@router.get("/groups", response_model=list[SupportGroup])
def list_groups(
    building: str | None = Query(None),
    services: WorkflowServices = Depends(get_services),
) -> list[SupportGroup]:
    """Active groups, optionally for one building."""
    return services.directory.list_groups(building)


@router.get("/groups/{group_id}", response_model=SupportGroup)
def get_group(
    group_id: int,
    services: WorkflowServices = Depends(get_services),
) -> SupportGroup:
    return services.routing.get_group_info(group_id)


@router.patch("/groups/{group_id}", response_model=SupportGroup)
def update_group(
    group_id: int,
    request: SupportGroupUpdate,
    services: WorkflowServices = Depends(get_services),
) -> SupportGroup:
    return services.directory.update_group(group_id, request)


@router.delete("/groups/{group_id}", status_code=status.HTTP_204_NO_CONTENT)
def deactivate_group(
    group_id: int,
    services: WorkflowServices = Depends(get_services),
) -> None:
    """Soft-delete a group; tickets already in it stay where they are."""
    services.directory.deactivate_group(group_id)
    logger.info(f"Group {group_id} deactivated via admin API")


@router.get("/groups/{group_id}/members", response_model=list[GroupMember])
def get_group_members(
    group_id: int,
    role: Role | None = Query(None),
    services: WorkflowServices = Depends(get_services),
) -> list[GroupMember]:
    """Active members of a group."""
    return services.directory.get_group_members(group_id, role)


@router.post("/members", response_model=GroupMember, status_code=status.HTTP_201_CREATED)
def add_member(
    request: GroupMemberCreate,
    services: WorkflowServices = Depends(get_services),
) -> GroupMember:
    return services.directory.add_member(request)


@router.patch("/members/{member_id}/status", response_model=GroupMember)
def update_member_status(
    member_id: int,
    request: MemberStatusUpdate,
    services: WorkflowServices = Depends(get_services),
) -> GroupMember:
    return services.directory.update_member_status(member_id, request.status)


@router.post("/escalation-rules", response_model=EscalationRule, status_code=status.HTTP_201_CREATED)
def create_escalation_rule(
    request: EscalationRuleCreate,
    services: WorkflowServices = Depends(get_services),
) -> EscalationRule:
    return services.directory.create_escalation_rule(request)


@router.get("/escalation-rules", response_model=list[EscalationRule])
def list_escalation_rules(
    source_group_id: int | None = Query(None),
    services: WorkflowServices = Depends(get_services),
) -> list[EscalationRule]:
    return services.directory.list_escalation_rules(source_group_id)
