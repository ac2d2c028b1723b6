"""Tests for claim-on-open, including concurrent claims."""

import threading

import pytest

from ticketflow.lib.exceptions import AlreadyClaimedError, ConflictError, InsufficientAuthorityError
from ticketflow.models.directory import GroupMemberCreate, MemberStatus, Role
from ticketflow.models.routing import RoutingStatus
from ticketflow.models.workflow_log import WorkflowAction


def test_claim_unassigned_ticket(services, directory, ticket_client):
    services.routing.open_ticket("T-1", directory.floor1.id)

    result = services.claims.claim_ticket("T-1", 102)

    assert result.success
    assert result.status == RoutingStatus.ASSIGNED
    assert result.claimed_by == 102
    assert result.member_id == directory.junior2.id
    assert result.group_id == directory.floor1.id

    state = services.routing.get_routing_state("T-1")
    assert state.status == RoutingStatus.ASSIGNED
    assert state.assigned_member_id == directory.junior2.id
    assert state.claimed_at is not None

    assert ticket_client.calls == [("assign_ticket", "T-1", "102", "L1", "IN_PROGRESS")]
    actions = [log.action for log in services.audit.get_ticket_logs("T-1")]
    assert actions == [WorkflowAction.CREATED, WorkflowAction.CLAIMED]
    assert services.claims.is_ticket_claimed("T-1")


def test_second_claim_conflicts(services, directory):
    services.routing.open_ticket("T-1", directory.floor1.id)
    services.claims.claim_ticket("T-1", 101)

    with pytest.raises(AlreadyClaimedError) as exc_info:
        services.claims.claim_ticket("T-1", 102)

    assert isinstance(exc_info.value, ConflictError)
    assert exc_info.value.details["status"] == RoutingStatus.ASSIGNED.value
    assert services.routing.get_routing_state("T-1").assigned_member_id == directory.junior1.id


def test_routed_ticket_cannot_be_claimed(services, directory):
    services.routing.route_ticket("T-1", "HQ", 1)

    with pytest.raises(AlreadyClaimedError):
        services.claims.claim_ticket("T-1", 102)


def test_claim_requires_membership_of_current_group(services, directory):
    services.routing.open_ticket("T-1", directory.floor1.id)

    with pytest.raises(InsufficientAuthorityError):
        services.claims.claim_ticket("T-1", 401)

    assert not services.claims.is_ticket_claimed("T-1")


def test_claim_requires_active_member(services, directory):
    services.routing.open_ticket("T-1", directory.floor1.id)
    services.directory.update_member_status(directory.junior1.id, MemberStatus.ON_LEAVE)

    with pytest.raises(InsufficientAuthorityError):
        services.claims.claim_ticket("T-1", 101)


def test_claim_is_for_juniors_only(services, directory):
    services.directory.add_member(
        GroupMemberCreate(user_id=202, group_id=directory.floor1.id, role=Role.SENIOR)
    )
    services.routing.open_ticket("T-1", directory.floor1.id)

    with pytest.raises(InsufficientAuthorityError):
        services.claims.claim_ticket("T-1", 202)


def test_unclaimed_tickets(services, directory):
    services.routing.open_ticket("T-1", directory.floor1.id)
    services.routing.open_ticket("T-2", directory.floor1.id)
    services.routing.route_ticket("T-3", "HQ", 1)
    services.claims.claim_ticket("T-1", 101)

    unclaimed = services.claims.get_unclaimed_tickets(directory.floor1.id)

    assert [s.ticket_id for s in unclaimed] == ["T-2"]
    assert not services.claims.is_ticket_claimed("T-2")
    assert not services.claims.is_ticket_claimed("NOPE")


def test_concurrent_claims_have_one_winner(services, directory, ticket_client):
    """Of N simultaneous claims exactly one succeeds; the rest see a conflict."""
    user_ids = [101, 102] + list(range(110, 116))
    for user_id in user_ids[2:]:
        services.directory.add_member(
            GroupMemberCreate(user_id=user_id, group_id=directory.floor1.id, role=Role.JUNIOR)
        )
    services.routing.open_ticket("T-1", directory.floor1.id)

    barrier = threading.Barrier(len(user_ids))
    winners: list[int] = []
    conflicts: list[int] = []
    errors: list[Exception] = []
    lock = threading.Lock()

    def claim(user_id: int) -> None:
        barrier.wait()
        try:
            services.claims.claim_ticket("T-1", user_id)
            with lock:
                winners.append(user_id)
        except AlreadyClaimedError:
            with lock:
                conflicts.append(user_id)
        except Exception as e:
            with lock:
                errors.append(e)

    threads = [threading.Thread(target=claim, args=(u,)) for u in user_ids]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=60)

    assert errors == []
    assert len(winners) == 1
    assert len(conflicts) == len(user_ids) - 1

    state = services.routing.get_routing_state("T-1")
    assert state.status == RoutingStatus.ASSIGNED
    claimed_logs = services.audit.get_ticket_logs("T-1", WorkflowAction.CLAIMED)
    assert len(claimed_logs) == 1
    assert claimed_logs[0].performed_by == winners[0]
    assert ticket_client.names() == ["assign_ticket"]
