"""Tests for automatic routing and the claim-on-open queue."""

import pytest

from ticketflow.lib.exceptions import (
    AlreadyExistsError,
    GroupNotFoundError,
    NoAvailableAssigneeError,
    NotFoundError,
    ValidationError,
)
from ticketflow.models.directory import MemberStatus
from ticketflow.models.routing import RoutingStatus
from ticketflow.models.workflow_log import WorkflowAction


def test_route_assigns_least_loaded_junior(services, directory, ticket_client):
    """Tickets spread over the juniors of the floor group, ties to the lowest id."""
    first = services.routing.route_ticket("T-1", "HQ", 1, priority="HIGH")
    second = services.routing.route_ticket("T-2", "HQ", 1)
    third = services.routing.route_ticket("T-3", "HQ", 1)

    assert first.success
    assert first.status == RoutingStatus.ASSIGNED
    assert first.group_id == directory.floor1.id
    assert first.group_name == "HQ Floor 1"
    assert first.assigned_member_id == directory.junior1.id
    assert first.assigned_user_id == 101
    assert first.sync_pending is False
    assert second.assigned_member_id == directory.junior2.id
    assert third.assigned_member_id == directory.junior1.id

    assert ticket_client.calls[0] == ("assign_ticket", "T-1", "101", "L1", "IN_PROGRESS")

    state = services.routing.get_routing_state("T-1")
    assert state.status == RoutingStatus.ASSIGNED
    assert state.claimed_at is not None
    assert state.escalation_count == 0

    logs = services.audit.get_ticket_logs("T-1")
    assert [log.action for log in logs] == [WorkflowAction.ROUTED]
    assert logs[0].to_member_id == directory.junior1.id
    assert "priority: HIGH" in logs[0].reason


def test_route_unknown_floor_creates_nothing(services, directory):
    with pytest.raises(GroupNotFoundError):
        services.routing.route_ticket("T-1", "HQ", 99)

    with pytest.raises(NotFoundError):
        services.routing.get_routing_state("T-1")
    assert services.audit.get_ticket_logs("T-1") == []


def test_route_without_active_junior_creates_nothing(services, directory, ticket_client):
    services.directory.update_member_status(directory.junior1.id, MemberStatus.ON_LEAVE)
    services.directory.update_member_status(directory.junior2.id, MemberStatus.INACTIVE)

    with pytest.raises(NoAvailableAssigneeError):
        services.routing.route_ticket("T-1", "HQ", 1)

    with pytest.raises(NotFoundError):
        services.routing.get_routing_state("T-1")
    assert ticket_client.calls == []
    assert services.audit.get_ticket_logs("T-1") == []


def test_route_twice_is_rejected(services, directory):
    services.routing.route_ticket("T-1", "HQ", 1)

    with pytest.raises(AlreadyExistsError):
        services.routing.route_ticket("T-1", "HQ", 1)

    assert len(services.audit.get_ticket_logs("T-1")) == 1


def test_route_rejects_bad_ticket_id(services, directory):
    with pytest.raises(ValidationError):
        services.routing.route_ticket("   ", "HQ", 1)
    with pytest.raises(ValidationError):
        services.routing.route_ticket("x" * 65, "HQ", 1)


def test_route_ignores_deactivated_group(services, directory):
    services.directory.deactivate_group(directory.floor1.id)

    with pytest.raises(GroupNotFoundError):
        services.routing.route_ticket("T-1", "HQ", 1)


def test_open_ticket_is_unassigned(services, directory):
    state = services.routing.open_ticket("T-9", directory.floor1.id, performed_by=7)

    assert state.status == RoutingStatus.UNASSIGNED
    assert state.assigned_member_id is None
    assert state.current_group_id == directory.floor1.id

    logs = services.audit.get_ticket_logs("T-9")
    assert [log.action for log in logs] == [WorkflowAction.CREATED]
    assert logs[0].performed_by == 7


def test_open_ticket_in_inactive_group(services, directory):
    services.directory.deactivate_group(directory.annex.id)

    with pytest.raises(ValidationError):
        services.routing.open_ticket("T-9", directory.annex.id)


def test_group_queue_filters_and_orders(services, directory):
    services.routing.route_ticket("T-1", "HQ", 1)
    services.routing.open_ticket("T-2", directory.floor1.id)
    services.routing.route_ticket("T-3", "HQ", 1)

    queue = services.routing.get_group_queue(directory.floor1.id)
    assert {s.ticket_id for s in queue} == {"T-1", "T-2", "T-3"}
    assert queue[0].ticket_id == "T-3"

    unassigned = services.routing.get_group_queue(directory.floor1.id, RoutingStatus.UNASSIGNED)
    assert [s.ticket_id for s in unassigned] == ["T-2"]

    with pytest.raises(NotFoundError):
        services.routing.get_group_queue(9999)


def test_reads_do_not_mutate(services, directory):
    services.routing.route_ticket("T-1", "HQ", 1)
    before = services.routing.get_routing_state("T-1")
    logs_before = services.audit.get_ticket_audit_trail("T-1")

    for _ in range(3):
        services.routing.get_routing_state("T-1")
        services.routing.get_group_queue(directory.floor1.id)
        services.escalation.get_escalation_history("T-1")
        services.claims.is_ticket_claimed("T-1")

    assert services.routing.get_routing_state("T-1") == before
    assert services.audit.get_ticket_audit_trail("T-1") == logs_before


def test_member_tickets(services, directory):
    services.routing.route_ticket("T-1", "HQ", 1)
    services.routing.route_ticket("T-2", "HQ", 1)
    services.routing.route_ticket("T-3", "HQ", 1)

    assert {s.ticket_id for s in services.routing.get_member_tickets(directory.junior1.id)} == {"T-1", "T-3"}
    assert services.routing.get_member_tickets(directory.senior1.id) == []

    with pytest.raises(NotFoundError):
        services.routing.get_member_tickets(9999)
