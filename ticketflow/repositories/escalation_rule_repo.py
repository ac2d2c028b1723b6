"""Repository for escalation rule data access."""

from sqlalchemy import select
from sqlalchemy.orm import Session

from ticketflow.lib.exceptions import DatabaseError
from ticketflow.lib.logger import get_logger
from ticketflow.models.escalation import EscalationRuleCreate, EscalationTrigger
from ticketflow.models.orm import EscalationRuleORM

logger = get_logger(__name__)


class EscalationRuleRepository:
    """Repository for escalation rule operations."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def create_rule(self, rule: EscalationRuleCreate) -> EscalationRuleORM:
        """
        Create an active escalation rule.

        Args:
            rule: Rule creation data

        Returns:
            Created rule

        Raises:
            DatabaseError: If creation fails
        """
        try:
            rule_obj = EscalationRuleORM(
                source_group_id=rule.source_group_id,
                target_group_id=rule.target_group_id,
                trigger_type=rule.trigger_type.value,
                delay_minutes=rule.delay_minutes,
                reopen_threshold=rule.reopen_threshold,
                priority=rule.priority,
                is_active=True,
            )

            self.db.add(rule_obj)
            self.db.commit()
            self.db.refresh(rule_obj)

            logger.info(
                f"Created escalation rule {rule_obj.id}: group {rule.source_group_id} -> "
                f"{rule.target_group_id} on {rule.trigger_type.value} (priority {rule.priority})"
            )
            return rule_obj

        except Exception as e:
            self.db.rollback()
            logger.error(f"Failed to create escalation rule: {e}")
            raise DatabaseError(f"Escalation rule creation failed: {e}")

    def get_rule_for_trigger(
        self,
        source_group_id: int,
        trigger_type: EscalationTrigger,
    ) -> EscalationRuleORM | None:
        """
        Select the rule that applies to a group and trigger.

        Highest priority wins; equal priorities fall back to the oldest rule.

        Args:
            source_group_id: Group the ticket currently sits in
            trigger_type: Escalation trigger

        Returns:
            Matching active rule, or None
        """
        try:
            stmt = (
                select(EscalationRuleORM)
                .where(
                    EscalationRuleORM.source_group_id == source_group_id,
                    EscalationRuleORM.trigger_type == trigger_type.value,
                    EscalationRuleORM.is_active.is_(True),
                )
                .order_by(EscalationRuleORM.priority.desc(), EscalationRuleORM.id.asc())
                .limit(1)
            )
            return self.db.execute(stmt).scalar_one_or_none()

        except Exception as e:
            logger.error(
                f"Failed to get escalation rule for group {source_group_id}/{trigger_type.value}: {e}"
            )
            raise DatabaseError(f"Escalation rule lookup failed: {e}")

    def list_rules(self, source_group_id: int | None = None) -> list[EscalationRuleORM]:
        """List active rules, optionally for one source group, highest priority first."""
        try:
            stmt = select(EscalationRuleORM).where(EscalationRuleORM.is_active.is_(True))
            if source_group_id is not None:
                stmt = stmt.where(EscalationRuleORM.source_group_id == source_group_id)
            stmt = stmt.order_by(EscalationRuleORM.priority.desc(), EscalationRuleORM.id.asc())

            return list(self.db.execute(stmt).scalars().all())

        except Exception as e:
            logger.error(f"Failed to list escalation rules: {e}")
            raise DatabaseError(f"Escalation rule list failed: {e}")
