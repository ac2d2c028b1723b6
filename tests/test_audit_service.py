"""Tests for the workflow audit log."""

import logging

from ticketflow.models.escalation import EscalationTrigger
from ticketflow.models.routing import RoutingStatus
from ticketflow.models.workflow_log import WorkflowAction
from ticketflow.repositories.workflow_log_repo import WorkflowLogRepository


def test_audit_failure_does_not_undo_transition(services, directory, monkeypatch, caplog):
    def broken_append(self, entry):
        raise RuntimeError("disk full")

    monkeypatch.setattr(WorkflowLogRepository, "append", broken_append)

    with caplog.at_level(logging.ERROR):
        result = services.routing.route_ticket("T-1", "HQ", 1)

    assert result.success
    assert services.routing.get_routing_state("T-1").status == RoutingStatus.ASSIGNED
    assert services.audit.failure_count == 1
    assert any("Audit log write failed" in r.getMessage() for r in caplog.records)

    monkeypatch.undo()
    assert services.audit.get_ticket_logs("T-1") == []


def test_audit_trail_describes_each_step(services, directory):
    services.routing.route_ticket("T-1", "HQ", 1)
    services.escalation.escalate_ticket("T-1", EscalationTrigger.SLA)

    trail = services.audit.get_ticket_audit_trail("T-1")

    assert trail.ticket_id == "T-1"
    assert trail.total_actions == 2
    assert [e.action for e in trail.logs] == [WorkflowAction.ROUTED, WorkflowAction.ESCALATED]
    assert trail.logs[0].description.startswith("Auto-routed to group")
    assert trail.logs[1].description == (
        f"Escalated from group {directory.floor1.id} to group {directory.senior.id}"
    )


def test_activity_feeds(services, directory):
    services.routing.route_ticket("T-1", "HQ", 1)
    services.routing.route_ticket("T-2", "ANNEX", 1)
    services.escalation.escalate_ticket("T-1", EscalationTrigger.SLA)

    member = services.audit.get_member_activity(directory.junior1.id)
    group = services.audit.get_group_activity(directory.senior.id)
    recent = services.audit.get_recent_activity(limit=2)

    assert member.total_actions == 2
    assert member.logs[0].action == WorkflowAction.ESCALATED
    assert [e.ticket_id for e in group.logs] == ["T-1"]
    assert recent.total_actions == 2
    assert recent.logs[0].action == WorkflowAction.ESCALATED
