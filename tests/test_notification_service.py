"""Tests for commit-then-notify delivery and reconciliation."""

import pytest

from ticketflow.cli.reconcile import run_reconcile, show_pending
from ticketflow.lib.exceptions import DatabaseError, UpstreamFailureError
from ticketflow.models.directory import Role
from ticketflow.models.escalation import EscalationTrigger
from ticketflow.models.notifications import NotificationKind
from ticketflow.models.routing import RoutingStatus
from ticketflow.models.workflow_log import WorkflowAction
from ticketflow.repositories.routing_state_repo import RoutingStateRepository


def pending(db, ticket_id):
    with db.session_scope() as session:
        return RoutingStateRepository(session).pending_notifications(ticket_id)


def test_transition_commits_when_ticket_service_is_down(services, db, directory, ticket_client):
    ticket_client.fail_all()

    result = services.routing.route_ticket("T-1", "HQ", 1)

    assert result.success
    assert result.sync_pending is True
    assert "queued for reconciliation" in result.warning

    state = services.routing.get_routing_state("T-1")
    assert state.status == RoutingStatus.ASSIGNED
    assert state.sync_pending is True
    assert "503" in state.sync_error

    queued = pending(db, "T-1")
    assert [n["kind"] for n in queued] == [NotificationKind.ASSIGN.value]
    assert queued[0]["attempts"] == 1
    assert len(services.audit.get_ticket_logs("T-1")) == 1


def test_later_notifications_queue_behind_backlog(services, db, directory, ticket_client):
    ticket_client.fail_all()
    services.routing.route_ticket("T-1", "HQ", 1)
    ticket_client.recover()

    result = services.reassignment.reassign_ticket("T-1", 201, Role.SENIOR, directory.junior2.id)

    assert result.sync_pending is True
    assert ticket_client.calls == []
    assert [n["kind"] for n in pending(db, "T-1")] == ["assign", "update_status"]


def test_partial_delivery_queues_the_rest(services, db, directory, ticket_client):
    services.routing.route_ticket("T-1", "HQ", 1)
    ticket_client.failing = {"assign_ticket"}

    result = services.escalation.escalate_ticket("T-1", EscalationTrigger.SLA)

    assert result.sync_pending is True
    assert ticket_client.names() == ["assign_ticket", "record_escalation"]
    queued = pending(db, "T-1")
    assert [n["kind"] for n in queued] == ["assign"]
    assert queued[0]["payload"]["assigned_to_level"] == "L2"


def test_reconcile_replays_in_order(services, db, directory, ticket_client):
    ticket_client.fail_all()
    services.routing.route_ticket("T-1", "HQ", 1)
    services.reassignment.reassign_ticket("T-1", 201, Role.SENIOR, directory.junior2.id)
    ticket_client.recover()

    report = services.notifier.reconcile()

    assert report.tickets_checked == 1
    assert report.tickets_synced == 1
    assert report.notifications_delivered == 2
    assert report.still_pending == []
    assert ticket_client.calls == [
        ("assign_ticket", "T-1", "101", "L1", "IN_PROGRESS"),
        ("update_ticket_status", "T-1", "REASSIGNED"),
    ]

    state = services.routing.get_routing_state("T-1")
    assert state.sync_pending is False
    assert state.sync_error is None
    assert pending(db, "T-1") == []


def test_reconcile_keeps_failed_backlog(services, db, directory, ticket_client):
    ticket_client.fail_all()
    services.routing.route_ticket("T-1", "HQ", 1)

    report = services.notifier.reconcile()

    assert report.tickets_synced == 0
    assert report.still_pending == ["T-1"]
    queued = pending(db, "T-1")
    assert len(queued) == 1
    assert queued[0]["attempts"] == 2
    assert services.routing.get_routing_state("T-1").sync_pending is True


def test_reconcile_stops_at_first_failure(services, db, directory, ticket_client):
    ticket_client.fail_all()
    services.routing.route_ticket("T-1", "HQ", 1)
    services.reassignment.reassign_ticket("T-1", 201, Role.SENIOR, directory.junior2.id)
    ticket_client.failing = {"update_ticket_status"}

    report = services.notifier.reconcile()

    assert report.notifications_delivered == 1
    assert report.still_pending == ["T-1"]
    assert [n["kind"] for n in pending(db, "T-1")] == ["update_status"]


def test_nothing_to_reconcile(services, directory):
    services.routing.route_ticket("T-1", "HQ", 1)

    report = services.notifier.reconcile()

    assert report.tickets_checked == 0
    assert report.notifications_delivered == 0


def test_reconcile_cli_commands(services, db, directory, ticket_client, capsys):
    ticket_client.fail_all()
    services.routing.route_ticket("T-1", "HQ", 1)

    assert show_pending(db, limit=10) == 0
    assert "T-1 [ASSIGNED] 1 queued call(s)" in capsys.readouterr().out

    assert run_reconcile(services.notifier, limit=10) == 1
    ticket_client.recover()
    assert run_reconcile(services.notifier, limit=10) == 0
    assert "SUCCESS" in capsys.readouterr().out


def test_unqueueable_failure_still_audits_committed_transition(services, directory, ticket_client, monkeypatch):
    ticket_client.fail_all()

    def queue_fails(self, ticket_id, notifications, error):
        raise DatabaseError("disk full")

    monkeypatch.setattr(RoutingStateRepository, "queue_notifications", queue_fails)

    with pytest.raises(UpstreamFailureError) as exc_info:
        services.routing.route_ticket("T-1", "HQ", 1)

    assert exc_info.value.details["state_committed"] is True
    assert services.routing.get_routing_state("T-1").status == RoutingStatus.ASSIGNED
    assert [e.action for e in services.audit.get_ticket_logs("T-1")] == [WorkflowAction.ROUTED]
