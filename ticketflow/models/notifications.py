"""Pydantic schemas for calls made to the ticket service."""

from datetime import datetime
from enum import Enum
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, Field


class NotificationKind(str, Enum):
    """Ticket service operations a transition can request."""

    ASSIGN = "assign"
    UPDATE_STATUS = "update_status"
    RECORD_ESCALATION = "record_escalation"


class TicketNotification(BaseModel):
    """
    One outbound ticket-service call.

    Stored on the routing-state row when delivery fails, so it can be
    replayed in order by the reconciler.

    Attributes:
        notification_id: Unique id for log correlation
        kind: Which ticket-service call to make
        ticket_id: Target ticket
        payload: Call arguments
        created_at: When the transition produced the call
        attempts: Delivery attempts made so far
    """

    notification_id: str = Field(default_factory=lambda: str(uuid4()))
    kind: NotificationKind
    ticket_id: str
    payload: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    attempts: int = Field(default=0, ge=0)

    model_config = {
        "json_schema_extra": {
            "example": {
                "notification_id": "0b7f4a1e-6d2c-4d8e-9b53-1f0a2c3d4e5f",
                "kind": "assign",
                "ticket_id": "a3c1e2f0-1111-4a4a-9c9c-000000000001",
                "payload": {
                    "assigned_to": "42",
                    "assigned_to_level": "L1",
                    "status": "IN_PROGRESS",
                },
                "created_at": "2026-01-01T10:00:00Z",
                "attempts": 1,
            }
        }
    }


class DispatchOutcome(BaseModel):
    """Result of sending a batch of notifications for one ticket."""

    delivered: int = 0
    pending: list[TicketNotification] = Field(default_factory=list)
    error: str | None = None

    @property
    def ok(self) -> bool:
        return not self.pending


class ReconcileReport(BaseModel):
    """Summary of one reconciliation pass."""

    tickets_checked: int = 0
    tickets_synced: int = 0
    notifications_delivered: int = 0
    still_pending: list[str] = Field(default_factory=list)
