"""Custom exception hierarchy for TicketFlow."""

from typing import Any


class TicketFlowException(Exception):
    """Base exception for all TicketFlow errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        """Initialize exception with message and optional details."""
        self.message = message
        self.details = details or {}
        super().__init__(message)


class ValidationError(TicketFlowException):
    """Raised when input validation fails."""

    pass


class NotFoundError(TicketFlowException):
    """Raised when a requested resource is not found."""

    pass


class GroupNotFoundError(NotFoundError):
    """Raised when no active support group serves a building/floor."""

    pass


class ConflictError(TicketFlowException):
    """Raised when a write lost against the current state; retry with fresh state."""

    pass


class AlreadyExistsError(ConflictError):
    """Raised when attempting to create a resource that already exists."""

    pass


class AlreadyClaimedError(ConflictError):
    """Raised when a claim finds the ticket no longer unassigned."""

    pass


class StaleStateError(ConflictError):
    """Raised when a ticket changed between being read and being updated."""

    pass


class InsufficientAuthorityError(TicketFlowException):
    """Raised when the actor's role or building does not permit the transition."""

    pass


class NoAvailableAssigneeError(TicketFlowException):
    """Raised when a group has no active member of the requested role."""

    pass


class NoEscalationRuleError(TicketFlowException):
    """Raised when no active escalation rule matches the group and trigger."""

    pass


class ExternalServiceError(TicketFlowException):
    """Raised when an external service (ticket service, identity service) fails."""

    pass


class UpstreamFailureError(ExternalServiceError):
    """Raised when a collaborator call fails and the caller may retry."""

    pass


class DatabaseError(TicketFlowException):
    """Raised when a database operation fails."""

    pass


class ConfigurationError(TicketFlowException):
    """Raised when application is misconfigured."""

    pass
