"""Pydantic models for escalation rules."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field, model_validator


class EscalationTrigger(str, Enum):
    """What caused an escalation."""

    SLA = "SLA"
    MANUAL = "MANUAL"
    CRITICAL = "CRITICAL"
    REOPEN_COUNT = "REOPEN_COUNT"

    @property
    def is_automatic(self) -> bool:
        return self != EscalationTrigger.MANUAL


class EscalationRule(BaseModel):
    """
    Maps a source group to a target group for one trigger type.

    Attributes:
        id: Rule identifier
        source_group_id: Group the ticket is escalated from
        target_group_id: Group the ticket is escalated to
        trigger_type: Trigger this rule answers
        delay_minutes: Minutes to wait before an automatic trigger fires
        reopen_threshold: Reopen count that fires REOPEN_COUNT
        priority: Higher wins among rules for the same trigger; also the tier
        is_active: Inactive rules are ignored
    """

    id: int
    source_group_id: int
    target_group_id: int
    trigger_type: EscalationTrigger
    delay_minutes: int = 0
    reopen_threshold: int = 0
    priority: int = 0
    is_active: bool = True
    created_at: datetime | None = None
    updated_at: datetime | None = None

    model_config = {"from_attributes": True}


class EscalationRuleCreate(BaseModel):
    """Schema for creating an escalation rule."""

    source_group_id: int
    target_group_id: int
    trigger_type: EscalationTrigger
    delay_minutes: int = Field(default=0, ge=0)
    reopen_threshold: int = Field(default=0, ge=0)
    priority: int = Field(default=0, ge=0)

    @model_validator(mode="after")
    def validate_groups(self) -> "EscalationRuleCreate":
        """A rule must move the ticket somewhere else."""
        if self.source_group_id == self.target_group_id:
            raise ValueError("Source and target group must differ")
        return self
