"""Test API endpoints."""

import pytest
from fastapi.testclient import TestClient

from ticketflow.api.app import create_app, status_code_for
from ticketflow.lib.exceptions import StaleStateError


@pytest.fixture
def client(services):
    return TestClient(create_app(services))


@pytest.fixture
def seeded(client):
    """Directory built through the admin API."""
    hq1 = client.post("/api/v1/admin/groups", json={"name": "HQ Floor 1", "building": "HQ", "floor": 1}).json()
    senior = client.post("/api/v1/admin/groups", json={"name": "HQ Senior", "building": "HQ", "floor": 9}).json()
    annex = client.post("/api/v1/admin/groups", json={"name": "Annex 1", "building": "ANNEX", "floor": 1}).json()

    junior = client.post(
        "/api/v1/admin/members", json={"user_id": 101, "group_id": hq1["id"], "role": "JUNIOR"}
    ).json()
    client.post("/api/v1/admin/members", json={"user_id": 201, "group_id": senior["id"], "role": "SENIOR"})
    annex_junior = client.post(
        "/api/v1/admin/members", json={"user_id": 401, "group_id": annex["id"], "role": "JUNIOR"}
    ).json()

    client.post(
        "/api/v1/admin/escalation-rules",
        json={"source_group_id": hq1["id"], "target_group_id": senior["id"], "trigger_type": "SLA", "priority": 1},
    )
    return {"hq1": hq1, "senior": senior, "annex": annex, "junior": junior, "annex_junior": annex_junior}


def test_root_and_health(client):
    assert client.get("/").json()["service"] == "TicketFlow API"
    assert client.get("/health").json()["status"] == "healthy"
    assert client.get("/health/live").json()["alive"] is True

    ready = client.get("/health/ready").json()
    assert ready["ready"] is True
    assert ready["checks"] == {"database": True}

    metrics = client.get("/health/metrics").json()
    assert metrics["database"]["sync_pending"] == 0
    assert metrics["audit"]["write_failures"] == 0


def test_correlation_id_is_echoed(client):
    response = client.get("/health", headers={"X-Correlation-ID": "abc-123"})

    assert response.headers["X-Correlation-ID"] == "abc-123"
    assert client.get("/health").headers["X-Correlation-ID"]


def test_route_and_read(client, seeded):
    response = client.post("/api/v1/workflow/route", json={"ticket_id": "T-1", "building": "HQ", "floor": 1})

    assert response.status_code == 201
    body = response.json()
    assert body["assigned_user_id"] == 101
    assert body["status"] == "ASSIGNED"

    state = client.get("/api/v1/workflow/tickets/T-1").json()
    assert state["current_group_id"] == seeded["hq1"]["id"]

    queue = client.get(f"/api/v1/workflow/groups/{seeded['hq1']['id']}/queue", params={"status": "ASSIGNED"})
    assert [s["ticket_id"] for s in queue.json()] == ["T-1"]

    trail = client.get("/api/v1/workflow/tickets/T-1/audit").json()
    assert trail["total_actions"] == 1


def test_error_status_codes(client, seeded, ticket_client):
    route = {"ticket_id": "T-1", "building": "HQ", "floor": 1}
    client.post("/api/v1/workflow/route", json=route)

    duplicate = client.post("/api/v1/workflow/route", json=route)
    assert duplicate.status_code == 409
    assert duplicate.json()["error"] == "AlreadyExistsError"

    unknown_floor = client.post("/api/v1/workflow/route", json={**route, "ticket_id": "T-2", "floor": 7})
    assert unknown_floor.status_code == 404

    missing = client.get("/api/v1/workflow/tickets/NOPE")
    assert missing.status_code == 404
    assert missing.json()["details"] == {"ticket_id": "NOPE"}

    cross_building = client.post(
        "/api/v1/workflow/tickets/T-1/reassign",
        json={"actor_id": 201, "actor_role": "SENIOR", "target_member_id": seeded["annex_junior"]["id"]},
    )
    assert cross_building.status_code == 403

    client.post("/api/v1/workflow/route", json={**route, "ticket_id": "T-3", "building": "ANNEX"})
    no_rule = client.post("/api/v1/workflow/tickets/T-3/escalate", json={"trigger_type": "SLA"})
    assert no_rule.status_code == 422
    assert no_rule.json()["error"] == "NoEscalationRuleError"

    client.delete(f"/api/v1/admin/groups/{seeded['annex']['id']}")
    inactive = client.post(
        "/api/v1/workflow/open", json={"ticket_id": "T-4", "group_id": seeded["annex"]["id"]}
    )
    assert inactive.status_code == 400

    identity_down = client.post(
        "/api/v1/workflow/tickets/T-1/escalate", json={"trigger_type": "MANUAL", "actor_id": 999}
    )
    assert identity_down.status_code == 502


def test_claim_flow(client, seeded):
    client.post("/api/v1/workflow/open", json={"ticket_id": "T-1", "group_id": seeded["hq1"]["id"]})

    unclaimed = client.get(f"/api/v1/workflow/groups/{seeded['hq1']['id']}/unclaimed").json()
    assert [s["ticket_id"] for s in unclaimed] == ["T-1"]

    outsider = client.post("/api/v1/workflow/tickets/T-1/claim", json={"user_id": 401})
    assert outsider.status_code == 403

    claimed = client.post("/api/v1/workflow/tickets/T-1/claim", json={"user_id": 101})
    assert claimed.status_code == 200
    assert claimed.json()["member_id"] == seeded["junior"]["id"]

    again = client.post("/api/v1/workflow/tickets/T-1/claim", json={"user_id": 101})
    assert again.status_code == 409
    assert client.get("/api/v1/workflow/tickets/T-1/claimed").json()["claimed"] is True


def test_escalation_endpoints(client, seeded):
    client.post("/api/v1/workflow/route", json={"ticket_id": "T-1", "building": "HQ", "floor": 1})

    skipped = client.post("/api/v1/workflow/tickets/T-1/escalate/sla", json={"sla_breached": False})
    assert skipped.json()["success"] is False

    escalated = client.post("/api/v1/workflow/tickets/T-1/escalate/sla", json={"sla_breached": True})
    assert escalated.status_code == 200
    assert escalated.json()["escalation_count"] == 1
    assert escalated.json()["to_group"] == "HQ Senior"

    history = client.get("/api/v1/workflow/tickets/T-1/escalations").json()
    assert [h["action"] for h in history] == ["ESCALATED"]

    path = client.get(f"/api/v1/workflow/groups/{seeded['hq1']['id']}/escalation-path").json()
    assert [r["trigger_type"] for r in path] == ["SLA"]


def test_sync_pending_and_reconcile(client, seeded, ticket_client):
    ticket_client.fail_all()

    routed = client.post("/api/v1/workflow/route", json={"ticket_id": "T-1", "building": "HQ", "floor": 1})
    assert routed.status_code == 201
    assert routed.json()["sync_pending"] is True
    assert routed.json()["warning"]

    ticket_client.recover()
    report = client.post("/api/v1/workflow/reconcile").json()

    assert report["tickets_synced"] == 1
    assert client.get("/api/v1/workflow/tickets/T-1").json()["sync_pending"] is False


def test_admin_members_and_rules(client, seeded):
    members = client.get(f"/api/v1/admin/groups/{seeded['hq1']['id']}/members").json()
    assert [m["user_id"] for m in members] == [101]

    updated = client.patch(
        f"/api/v1/admin/members/{seeded['junior']['id']}/status", json={"status": "ON_LEAVE"}
    )
    assert updated.json()["status"] == "ON_LEAVE"

    invalid_role = client.post(
        "/api/v1/admin/members", json={"user_id": 9, "group_id": seeded["hq1"]["id"], "role": "HEAD_OF_IT"}
    )
    assert invalid_role.status_code == 422

    rules = client.get("/api/v1/admin/escalation-rules", params={"source_group_id": seeded["hq1"]["id"]}).json()
    assert len(rules) == 1

    renamed = client.patch(f"/api/v1/admin/groups/{seeded['hq1']['id']}", json={"name": "HQ One"})
    assert renamed.json()["name"] == "HQ One"
    assert client.get(f"/api/v1/admin/groups/{seeded['hq1']['id']}").json()["name"] == "HQ One"


def test_stale_write_maps_to_conflict():
    assert status_code_for(StaleStateError("Ticket T-1 changed while being reassigned")) == 409
