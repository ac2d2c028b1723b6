"""Tests for authority-checked reassignment."""

import pytest

from ticketflow.lib.exceptions import (
    InsufficientAuthorityError,
    NotFoundError,
    StaleStateError,
    ValidationError,
)
from ticketflow.models.directory import MemberStatus, Role
from ticketflow.models.routing import RoutingStatus
from ticketflow.models.workflow_log import WorkflowAction
from ticketflow.services.reassignment_service import ReassignmentService


def test_senior_reassigns_within_building(services, directory, ticket_client):
    services.routing.route_ticket("T-1", "HQ", 1)

    result = services.reassignment.reassign_ticket(
        "T-1", actor_id=201, actor_role=Role.SENIOR, target_member_id=directory.senior1.id
    )

    assert result.success
    assert result.from_group == "HQ Floor 1"
    assert result.to_group == "HQ Senior"
    assert result.to_member == directory.senior1.id
    assert result.performed_by == 201

    state = services.routing.get_routing_state("T-1")
    assert state.status == RoutingStatus.ASSIGNED
    assert state.current_group_id == directory.senior.id
    assert state.assigned_member_id == directory.senior1.id

    assert ticket_client.calls[-1] == ("update_ticket_status", "T-1", "REASSIGNED")
    log = services.audit.get_ticket_logs("T-1", WorkflowAction.REASSIGNED)[0]
    assert log.from_member_id == directory.junior1.id
    assert log.to_member_id == directory.senior1.id
    assert log.from_group_id == directory.floor1.id
    assert log.to_group_id == directory.senior.id


def test_senior_cannot_reassign_across_buildings(services, directory, ticket_client):
    services.routing.route_ticket("T-1", "HQ", 1)
    before = services.routing.get_routing_state("T-1")

    with pytest.raises(InsufficientAuthorityError) as exc_info:
        services.reassignment.reassign_ticket(
            "T-1", 201, "SENIOR", directory.annex_junior.id
        )

    assert exc_info.value.details["target_building"] == "ANNEX"
    assert services.routing.get_routing_state("T-1") == before
    assert ticket_client.names() == ["assign_ticket"]
    assert services.audit.get_ticket_logs("T-1", WorkflowAction.REASSIGNED) == []


@pytest.mark.parametrize("role", [Role.SUPERVISOR, Role.HEAD_OF_IT])
def test_supervisor_and_above_reassign_across_buildings(services, directory, role):
    services.routing.route_ticket("T-1", "HQ", 1)

    result = services.reassignment.reassign_ticket("T-1", 301, role, directory.annex_junior.id)

    assert result.to_group == "Annex Floor 1"
    state = services.routing.get_routing_state("T-1")
    assert state.current_group_id == directory.annex.id
    assert state.assigned_member_id == directory.annex_junior.id


def test_junior_cannot_reassign(services, directory):
    services.routing.route_ticket("T-1", "HQ", 1)

    with pytest.raises(InsufficientAuthorityError):
        services.reassignment.reassign_ticket("T-1", 101, Role.JUNIOR, directory.junior2.id)


def test_unknown_role_is_rejected(services, directory):
    services.routing.route_ticket("T-1", "HQ", 1)

    with pytest.raises(InsufficientAuthorityError):
        services.reassignment.reassign_ticket("T-1", 1, "JANITOR", directory.junior2.id)


def test_reassign_to_inactive_member(services, directory):
    services.routing.route_ticket("T-1", "HQ", 1)
    services.directory.update_member_status(directory.junior2.id, MemberStatus.ON_LEAVE)

    with pytest.raises(ValidationError):
        services.reassignment.reassign_ticket("T-1", 201, Role.SENIOR, directory.junior2.id)


def test_reassign_missing_ticket_or_member(services, directory):
    with pytest.raises(NotFoundError):
        services.reassignment.reassign_ticket("NOPE", 201, Role.SENIOR, directory.junior2.id)

    services.routing.route_ticket("T-1", "HQ", 1)
    with pytest.raises(NotFoundError):
        services.reassignment.reassign_ticket("T-1", 201, Role.SENIOR, 9999)


def test_reassign_unassigned_ticket_stamps_claim(services, directory):
    services.routing.open_ticket("T-1", directory.floor1.id)

    services.reassignment.reassign_ticket("T-1", 201, Role.SENIOR, directory.junior2.id)

    state = services.routing.get_routing_state("T-1")
    assert state.status == RoutingStatus.ASSIGNED
    assert state.assigned_member_id == directory.junior2.id
    assert state.claimed_at is not None


def test_available_targets_follow_scope(services, directory):
    services.routing.route_ticket("T-1", "HQ", 1)

    senior_view = {m.id for m in services.reassignment.get_available_targets("T-1", Role.SENIOR)}
    supervisor_view = {
        m.id for m in services.reassignment.get_available_targets("T-1", Role.SUPERVISOR)
    }

    hq_members = {directory.junior2.id, directory.senior1.id, directory.supervisor1.id}
    assert senior_view == hq_members
    assert supervisor_view == hq_members | {directory.annex_junior.id}
    assert services.reassignment.get_available_targets("T-1", Role.JUNIOR) == []


def test_reassign_rejects_state_changed_after_authorization(services, directory, monkeypatch):
    services.routing.route_ticket("T-1", "HQ", 1)
    authorize = ReassignmentService.authorize
    moved = []

    def authorize_then_move_elsewhere(self, *args):
        authorize(self, *args)
        if not moved:
            moved.append(True)
            services.reassignment.reassign_ticket(
                "T-1", 301, Role.SUPERVISOR, directory.annex_junior.id
            )

    monkeypatch.setattr(ReassignmentService, "authorize", authorize_then_move_elsewhere)

    with pytest.raises(StaleStateError):
        services.reassignment.reassign_ticket("T-1", 201, Role.SENIOR, directory.junior2.id)

    state = services.routing.get_routing_state("T-1")
    assert state.current_group_id == directory.annex.id
    assert state.assigned_member_id == directory.annex_junior.id
    assert len(services.audit.get_ticket_logs("T-1", WorkflowAction.REASSIGNED)) == 1


def test_reassign_succeeds_on_fresh_state(services, directory):
    services.routing.route_ticket("T-1", "HQ", 1)
    services.reassignment.reassign_ticket("T-1", 301, Role.SUPERVISOR, directory.annex_junior.id)

    services.reassignment.reassign_ticket("T-1", 301, Role.SUPERVISOR, directory.junior2.id)

    state = services.routing.get_routing_state("T-1")
    assert state.assigned_member_id == directory.junior2.id
    assert state.version == 3
