"""FastAPI dependencies."""

from fastapi import Request

from ticketflow.services.workflow import WorkflowServices


def get_services(request: Request) -> WorkflowServices:
    """Services built at startup (or injected by tests)."""
    return request.app.state.services
