"""Wiring of the workflow services around one database and one set of clients."""

from dataclasses import dataclass

from ticketflow.lib.database import Database
from ticketflow.lib.identity_client import IdentityServiceClient
from ticketflow.models.authority import AuthorityPolicy
from ticketflow.services.audit_service import AuditService
from ticketflow.services.claim_service import ClaimService
from ticketflow.services.directory_service import DirectoryService
from ticketflow.services.escalation_service import EscalationService
from ticketflow.services.notification_service import NotificationService, TicketService
from ticketflow.services.reassignment_service import ReassignmentService
from ticketflow.services.routing_service import RoutingService


@dataclass
class WorkflowServices:
    """Every service the API and CLI need, sharing one audit log and notifier."""

    db: Database
    audit: AuditService
    notifier: NotificationService
    routing: RoutingService
    claims: ClaimService
    reassignment: ReassignmentService
    escalation: EscalationService
    directory: DirectoryService

    @classmethod
    def build(
        cls,
        db: Database,
        ticket_client: TicketService,
        identity_client: IdentityServiceClient | None = None,
        policy: AuthorityPolicy | None = None,
    ) -> "WorkflowServices":
        audit = AuditService(db)
        notifier = NotificationService(db, ticket_client)
        common = (db, notifier, audit, policy)

        return cls(
            db=db,
            audit=audit,
            notifier=notifier,
            routing=RoutingService(*common),
            claims=ClaimService(*common),
            reassignment=ReassignmentService(*common),
            escalation=EscalationService(*common, identity_client=identity_client),
            directory=DirectoryService(db),
        )
