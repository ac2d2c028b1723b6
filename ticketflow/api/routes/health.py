"""Health check and metrics endpoints."""

from datetime import datetime
from typing import Any

from fastapi import APIRouter, Depends, status
from sqlalchemy import func, select

from ticketflow.api.dependencies import get_services
from ticketflow.lib.config import settings
from ticketflow.lib.logger import get_logger
from ticketflow.models.orm import SupportGroupORM, TicketRoutingStateORM, WorkflowLogORM
from ticketflow.services.workflow import WorkflowServices

logger = get_logger(__name__)
router = APIRouter()


@router.get("", status_code=status.HTTP_200_OK)
@router.get("/", status_code=status.HTTP_200_OK)
async def health_check() -> dict[str, Any]:
    """
    Basic health check endpoint.

    Returns service status and timestamp.
    """
    return {
        "status": "healthy",
        "service": "TicketFlow API",
        "version": "1.0.0",
        "timestamp": datetime.utcnow().isoformat(),
    }


@router.get("/ready", status_code=status.HTTP_200_OK)
def readiness_check(services: WorkflowServices = Depends(get_services)) -> dict[str, Any]:
    """
    Readiness probe for Kubernetes/Docker.

    Checks database connectivity. The ticket service is not probed: its
    outages are absorbed by the reconciliation queue.
    """
    checks = {"database": services.db.check_connection()}

    return {
        "ready": all(checks.values()),
        "checks": checks,
        "timestamp": datetime.utcnow().isoformat(),
    }


@router.get("/live", status_code=status.HTTP_200_OK)
async def liveness_check() -> dict[str, Any]:
    """
    Liveness probe for Kubernetes/Docker.

    Simple check to verify the process is alive.
    """
    return {
        "alive": True,
        "timestamp": datetime.utcnow().isoformat(),
    }


@router.get("/metrics", status_code=status.HTTP_200_OK)
def metrics(services: WorkflowServices = Depends(get_services)) -> dict[str, Any]:
    """
    Workflow statistics.

    Returns:
    - Tickets per routing status and the sync-pending backlog
    - Active group and log entry counts
    - Audit write failures since startup
    """
    metrics_data: dict[str, Any] = {
        "service": {
            "name": "ticketflow",
            "version": "1.0.0",
            "environment": settings.environment,
        },
        "database": {},
        "audit": {"write_failures": services.audit.failure_count},
    }

    try:
        with services.db.session_scope() as session:
            rows = session.execute(
                select(TicketRoutingStateORM.status, func.count(TicketRoutingStateORM.id))
                .group_by(TicketRoutingStateORM.status)
            ).all()
            metrics_data["database"]["tickets_by_status"] = {s: c for s, c in rows}

            metrics_data["database"]["sync_pending"] = session.execute(
                select(func.count(TicketRoutingStateORM.id))
                .where(TicketRoutingStateORM.sync_pending.is_(True))
            ).scalar()

            metrics_data["database"]["active_groups"] = session.execute(
                select(func.count(SupportGroupORM.id)).where(SupportGroupORM.is_active.is_(True))
            ).scalar()

            metrics_data["database"]["total_log_entries"] = session.execute(
                select(func.count(WorkflowLogORM.id))
            ).scalar()

    except Exception as e:
        logger.error(f"Failed to collect database metrics: {e}")
        metrics_data["database"]["error"] = str(e)

    return metrics_data
