"""Shared fixtures: a SQLite-backed database, fake collaborators and a seeded directory."""

import threading
from types import SimpleNamespace

import pytest

from ticketflow.lib.database import Database
from ticketflow.lib.exceptions import UpstreamFailureError
from ticketflow.models.directory import GroupMemberCreate, Role, SupportGroupCreate
from ticketflow.models.escalation import EscalationRuleCreate, EscalationTrigger
from ticketflow.services.workflow import WorkflowServices

TICKET_SERVICE_CALLS = ("assign_ticket", "update_ticket_status", "record_escalation")


class FakeTicketClient:
    """Records ticket-service calls; methods named in `failing` raise instead."""

    def __init__(self) -> None:
        self.calls: list[tuple] = []
        self.failing: set[str] = set()
        self._lock = threading.Lock()

    def fail_all(self) -> None:
        self.failing = set(TICKET_SERVICE_CALLS)

    def recover(self) -> None:
        self.failing = set()

    def _call(self, name: str, *args) -> dict:
        if name in self.failing:
            raise UpstreamFailureError(f"ticket-service call failed: HTTP 503 ({name})")
        with self._lock:
            self.calls.append((name, *args))
        return {}

    def assign_ticket(self, ticket_id, assigned_to, assigned_to_level="L1", status="IN_PROGRESS"):
        return self._call("assign_ticket", ticket_id, str(assigned_to), assigned_to_level, status)

    def update_ticket_status(self, ticket_id, status):
        return self._call("update_ticket_status", ticket_id, status)

    def record_escalation(self, ticket_id, from_level, to_level, reason):
        return self._call("record_escalation", ticket_id, from_level, to_level, reason)

    def names(self) -> list[str]:
        return [call[0] for call in self.calls]


class FakeIdentityClient:
    """Serves roles from a dict; unknown users fail like an unreachable service."""

    def __init__(self, roles: dict[int, str] | None = None) -> None:
        self.roles = roles or {}
        self.lookups: list[int] = []

    def get_user_role(self, user_id: int) -> str:
        self.lookups.append(user_id)
        if user_id not in self.roles:
            raise UpstreamFailureError(f"auth-service call failed: HTTP 503 (user {user_id})")
        return self.roles[user_id]


@pytest.fixture
def db(tmp_path):
    database = Database(f"sqlite:///{tmp_path / 'ticketflow.db'}", echo=False)
    database.init_schema()
    yield database
    database.dispose()


@pytest.fixture
def ticket_client():
    return FakeTicketClient()


@pytest.fixture
def identity_client():
    return FakeIdentityClient({201: "SENIOR", 301: "SUPERVISOR", 101: "JUNIOR"})


@pytest.fixture
def services(db, ticket_client, identity_client):
    return WorkflowServices.build(db, ticket_client, identity_client=identity_client)


@pytest.fixture
def directory(services):
    """
    Two buildings:

        HQ floor 1 (juniors 101, 102) --SLA/MANUAL/REOPEN(p1)--> HQ Senior (201)
        HQ floor 1 --CRITICAL(p2)--> HQ Supervisors (301)
        HQ Senior --MANUAL(p2)--> HQ Supervisors
        ANNEX floor 1 (junior 401), no rules
    """
    admin = services.directory

    floor1 = admin.create_group(SupportGroupCreate(name="HQ Floor 1", building="HQ", floor=1))
    senior = admin.create_group(SupportGroupCreate(name="HQ Senior", building="HQ", floor=10))
    supervisors = admin.create_group(SupportGroupCreate(name="HQ Supervisors", building="HQ", floor=11))
    annex = admin.create_group(SupportGroupCreate(name="Annex Floor 1", building="ANNEX", floor=1))

    junior1 = admin.add_member(GroupMemberCreate(user_id=101, group_id=floor1.id, role=Role.JUNIOR))
    junior2 = admin.add_member(GroupMemberCreate(user_id=102, group_id=floor1.id, role=Role.JUNIOR))
    senior1 = admin.add_member(GroupMemberCreate(
        user_id=201, group_id=senior.id, role=Role.SENIOR, can_escalate=True,
    ))
    supervisor1 = admin.add_member(GroupMemberCreate(
        user_id=301, group_id=supervisors.id, role=Role.SUPERVISOR, can_assign=True, can_escalate=True,
    ))
    annex_junior = admin.add_member(GroupMemberCreate(user_id=401, group_id=annex.id, role=Role.JUNIOR))

    for trigger in (EscalationTrigger.SLA, EscalationTrigger.MANUAL):
        admin.create_escalation_rule(EscalationRuleCreate(
            source_group_id=floor1.id, target_group_id=senior.id, trigger_type=trigger, priority=1,
        ))
    admin.create_escalation_rule(EscalationRuleCreate(
        source_group_id=floor1.id, target_group_id=senior.id,
        trigger_type=EscalationTrigger.REOPEN_COUNT, reopen_threshold=2, priority=1,
    ))
    admin.create_escalation_rule(EscalationRuleCreate(
        source_group_id=floor1.id, target_group_id=supervisors.id,
        trigger_type=EscalationTrigger.CRITICAL, priority=2,
    ))
    admin.create_escalation_rule(EscalationRuleCreate(
        source_group_id=senior.id, target_group_id=supervisors.id,
        trigger_type=EscalationTrigger.MANUAL, priority=2,
    ))

    return SimpleNamespace(
        floor1=floor1,
        senior=senior,
        supervisors=supervisors,
        annex=annex,
        junior1=junior1,
        junior2=junior2,
        senior1=senior1,
        supervisor1=supervisor1,
        annex_junior=annex_junior,
    )
