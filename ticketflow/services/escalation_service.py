"""Escalation Service: moves tickets up the support tiers.

Triggers: SLA | MANUAL | CRITICAL | REOPEN_COUNT
Flow: Junior group -> Senior -> Supervisor
"""

from ticketflow.lib.config import settings
from ticketflow.lib.exceptions import (
    InsufficientAuthorityError,
    NoEscalationRuleError,
    StaleStateError,
    UpstreamFailureError,
    ValidationError,
)
from ticketflow.lib.identity_client import IdentityServiceClient
from ticketflow.lib.logger import get_logger
from ticketflow.lib.ticket_client import to_support_level
from ticketflow.models.directory import Role
from ticketflow.models.escalation import EscalationRule, EscalationTrigger
from ticketflow.models.routing import EscalationResult, EscalationSkipped, RoutingStatus
from ticketflow.models.workflow_log import WorkflowAction, WorkflowLogCreate, WorkflowLogEntry
from ticketflow.repositories.escalation_rule_repo import EscalationRuleRepository
from ticketflow.repositories.group_repo import SupportGroupRepository
from ticketflow.repositories.member_repo import GroupMemberRepository
from ticketflow.repositories.routing_state_repo import RoutingStateRepository
from ticketflow.services.assignment_selector import AssignmentSelector
from ticketflow.services.base_service import TransitionService
from ticketflow.services.notification_service import assignment, escalation_record

logger = get_logger(__name__)


class EscalationService(TransitionService):
    """Escalates tickets according to the escalation rule table."""

    transition_name = "escalate"

    def __init__(self, *args, identity_client: IdentityServiceClient | None = None, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.identity_client = identity_client

    def _resolve_actor_role(self, actor_id: int | None, actor_role: Role | str | None) -> Role | None:
        """Use the declared role, or ask the identity service when only an id is known."""
        raw = getattr(actor_role, "value", actor_role)
        if raw is None and actor_id is not None and self.identity_client is not None:
            try:
                raw = self.identity_client.get_user_role(actor_id)
            except UpstreamFailureError:
                logger.error(f"Could not resolve role of user {actor_id} for manual escalation")
                raise

        if raw is None:
            return None
        try:
            return Role(str(raw).upper())
        except ValueError:
            raise InsufficientAuthorityError(f"Unknown role '{raw}'", {"role": str(raw)})

    def escalate_ticket(
        self,
        ticket_id: str,
        trigger_type: EscalationTrigger | str,
        actor_id: int | None = None,
        actor_role: Role | str | None = None,
        reason: str | None = None,
    ) -> EscalationResult:
        """
        Escalate a ticket along the rule for its current group and trigger.

        MANUAL escalations need an actor with role SENIOR or SUPERVISOR;
        SLA, CRITICAL and REOPEN_COUNT come from trusted internal triggers and
        skip the role check. When the target group has no ACTIVE member of the
        rule's tier role the ticket stays ESCALATED with no assignee.

        Args:
            ticket_id: External ticket id
            trigger_type: Escalation trigger
            actor_id: User escalating (MANUAL) or None
            actor_role: Role of the actor; resolved via the identity service if omitted
            reason: Free-text reason appended to the log entry

        Returns:
            EscalationResult

        Raises:
            ValidationError: If the trigger type is unknown
            InsufficientAuthorityError: If a MANUAL actor lacks the role
            NotFoundError: If the ticket or a group is missing
            NoEscalationRuleError: If no active rule matches; state is unchanged
            UpstreamFailureError: If the actor's role could not be resolved
            StaleStateError: If the ticket moved after its rule was chosen
        """
        trigger = _parse_trigger(trigger_type)

        with self._track(ticket_id, trigger=trigger.value, actor_id=actor_id):
            role = None
            if trigger == EscalationTrigger.MANUAL:
                role = self._resolve_actor_role(actor_id, actor_role)
                if not self.policy.can_manually_escalate(role):
                    shown = role.value if role else "unknown"
                    raise InsufficientAuthorityError(
                        f"Only Seniors and Supervisors can escalate. User role: {shown}",
                        {"role": shown},
                    )

            with self.db.session_scope() as session:
                states = RoutingStateRepository(session)
                groups = SupportGroupRepository(session)
                members = GroupMemberRepository(session)

                state = states.get(ticket_id)
                current_group = groups.get_group(state.current_group_id)

                rule = EscalationRuleRepository(session).get_rule_for_trigger(current_group.id, trigger)
                if rule is None:
                    raise NoEscalationRuleError(
                        f"No escalation rule for group {current_group.id} with trigger {trigger.value}",
                        {"group_id": current_group.id, "trigger_type": trigger.value},
                    )

                target_group = groups.get_group(rule.target_group_id)
                if not target_group.is_active:
                    raise NoEscalationRuleError(
                        f"Escalation rule {rule.id} targets inactive group {target_group.id}",
                        {"rule_id": rule.id, "group_id": target_group.id},
                    )

                target_role = self.policy.escalation_target_role(rule.priority)
                assignee = AssignmentSelector(session).select_or_none(target_group.id, target_role)

                previous_member_id = state.assigned_member_id
                previous_role = None
                if previous_member_id is not None:
                    previous_role = Role(members.get_member(previous_member_id).role)

                escalated = states.escalate(
                    ticket_id,
                    current_group.id,
                    target_group.id,
                    assignee.id if assignee else None,
                    state.version,
                )
                if not escalated:
                    raise StaleStateError(
                        f"Ticket {ticket_id} changed while being escalated; retry with its current state",
                        {"ticket_id": ticket_id, "expected_version": state.version},
                    )

                escalation_count = states.refresh(state).escalation_count

            from_level = to_support_level(previous_role or Role.JUNIOR)
            to_level = to_support_level(target_role)
            summary = f"Escalated ({trigger.value}) from {current_group.name} to {target_group.name}"

            notifications = [escalation_record(ticket_id, from_level, to_level, reason or summary)]
            if assignee is not None:
                notifications.append(assignment(ticket_id, assignee.user_id, target_role))

            log_reason = summary
            if assignee is None:
                log_reason += f" | no available {target_role.value}, awaiting pickup"
            if reason:
                log_reason += f" | {reason}"

            sync_pending, warning = self._notify_and_audit(
                ticket_id,
                notifications,
                WorkflowLogCreate(
                    ticket_id=ticket_id,
                    action=WorkflowAction.ESCALATED,
                    from_group_id=current_group.id,
                    to_group_id=target_group.id,
                    from_member_id=previous_member_id,
                    to_member_id=assignee.id if assignee else None,
                    performed_by=actor_id,
                    reason=log_reason,
                ),
            )

        return EscalationResult(
            ticket_id=ticket_id,
            status=RoutingStatus.ESCALATED,
            message=f"Ticket escalated to {target_group.name}",
            sync_pending=sync_pending,
            warning=warning,
            from_group=current_group.name,
            to_group=target_group.name,
            escalation_count=escalation_count,
            trigger_type=trigger,
            assigned_member_id=assignee.id if assignee else None,
            assigned_user_id=assignee.user_id if assignee else None,
        )

    def manual_escalate(
        self,
        ticket_id: str,
        actor_id: int | None,
        actor_role: Role | str | None,
        reason: str | None = None,
    ) -> EscalationResult:
        return self.escalate_ticket(ticket_id, EscalationTrigger.MANUAL, actor_id, actor_role, reason)

    def escalate_if_critical(self, ticket_id: str, is_critical: bool) -> EscalationResult | EscalationSkipped:
        if not is_critical:
            return EscalationSkipped(
                ticket_id=ticket_id,
                trigger_type=EscalationTrigger.CRITICAL,
                message="Ticket is not critical",
            )
        return self.escalate_ticket(ticket_id, EscalationTrigger.CRITICAL)

    def escalate_on_sla_breach(self, ticket_id: str, sla_breached: bool) -> EscalationResult | EscalationSkipped:
        if not sla_breached:
            return EscalationSkipped(
                ticket_id=ticket_id,
                trigger_type=EscalationTrigger.SLA,
                message="SLA not breached",
            )
        return self.escalate_ticket(ticket_id, EscalationTrigger.SLA)

    def escalate_on_reopen_threshold(
        self,
        ticket_id: str,
        reopen_count: int,
        threshold: int | None = None,
    ) -> EscalationResult | EscalationSkipped:
        """
        Escalate once a ticket has been reopened often enough.

        Without an explicit threshold the matching rule's `reopen_threshold`
        is used, falling back to `settings.reopen_threshold_default` when the
        rule does not set one.
        """
        if threshold is None:
            threshold = self._reopen_threshold(ticket_id)

        if reopen_count < threshold:
            return EscalationSkipped(
                ticket_id=ticket_id,
                trigger_type=EscalationTrigger.REOPEN_COUNT,
                message=f"Reopen count {reopen_count} below threshold {threshold}",
                details={"reopen_count": reopen_count, "threshold": threshold},
            )
        return self.escalate_ticket(ticket_id, EscalationTrigger.REOPEN_COUNT)

    def _reopen_threshold(self, ticket_id: str) -> int:
        with self.db.session_scope() as session:
            state = RoutingStateRepository(session).get(ticket_id)
            rule = EscalationRuleRepository(session).get_rule_for_trigger(
                state.current_group_id, EscalationTrigger.REOPEN_COUNT
            )
        if rule is not None and rule.reopen_threshold > 0:
            return rule.reopen_threshold
        return settings.reopen_threshold_default

    def get_escalation_path(self, group_id: int) -> list[EscalationRule]:
        """Active rules leaving a group, highest priority first."""
        with self.db.session_scope() as session:
            SupportGroupRepository(session).get_group(group_id)
            rules = EscalationRuleRepository(session).list_rules(source_group_id=group_id)
            return [EscalationRule.model_validate(r) for r in rules]

    def get_escalation_history(self, ticket_id: str) -> list[WorkflowLogEntry]:
        """ESCALATED log entries of a ticket, oldest first."""
        return self.audit.get_escalation_history(ticket_id)


def _parse_trigger(trigger_type: EscalationTrigger | str) -> EscalationTrigger:
    try:
        return EscalationTrigger(str(getattr(trigger_type, "value", trigger_type)).upper())
    except ValueError:
        raise ValidationError(
            f"Unknown escalation trigger '{trigger_type}'",
            {"trigger_type": str(trigger_type)},
        )
