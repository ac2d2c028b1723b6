"""Authority rules for reassignment and escalation."""

from enum import Enum

from pydantic import BaseModel, Field

from ticketflow.models.directory import Role


class ReassignScope(str, Enum):
    """How far a role may move a ticket."""

    NONE = "NONE"
    SAME_BUILDING = "SAME_BUILDING"
    ANY_BUILDING = "ANY_BUILDING"


def _default_reassign_scopes() -> dict[Role, ReassignScope]:
    return {
        Role.JUNIOR: ReassignScope.NONE,
        Role.SENIOR: ReassignScope.SAME_BUILDING,
        Role.SUPERVISOR: ReassignScope.ANY_BUILDING,
        Role.HEAD_OF_IT: ReassignScope.ANY_BUILDING,
    }


class AuthorityPolicy(BaseModel):
    """
    Explicit authority configuration.

    Attributes:
        reassign_scopes: Reassignment reach per role; every Role must be listed
        manual_escalation_roles: Roles allowed to trigger a MANUAL escalation
        claim_roles: Roles allowed to claim an unassigned ticket
        supervisor_tier_priority: Rule priority at or above which the
            escalation target role is SUPERVISOR instead of SENIOR
    """

    reassign_scopes: dict[Role, ReassignScope] = Field(default_factory=_default_reassign_scopes)
    manual_escalation_roles: frozenset[Role] = frozenset({Role.SENIOR, Role.SUPERVISOR})
    claim_roles: frozenset[Role] = frozenset({Role.JUNIOR})
    supervisor_tier_priority: int = 2

    def reassign_scope(self, role: Role) -> ReassignScope:
        # A role missing from the table has no reassignment authority
        return self.reassign_scopes.get(role, ReassignScope.NONE)

    def can_manually_escalate(self, role: Role | None) -> bool:
        return role is not None and role in self.manual_escalation_roles

    def can_claim(self, role: Role) -> bool:
        return role in self.claim_roles

    def escalation_target_role(self, rule_priority: int) -> Role:
        """Tier 1 rules hand the ticket to a SENIOR, tier 2 and above to a SUPERVISOR."""
        if rule_priority >= self.supervisor_tier_priority:
            return Role.SUPERVISOR
        return Role.SENIOR


DEFAULT_AUTHORITY_POLICY = AuthorityPolicy()
