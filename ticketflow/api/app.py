"""FastAPI application setup and configuration."""

from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ticketflow.api.routes import admin, health, workflow
from ticketflow.lib.config import settings
from ticketflow.lib.database import Database
from ticketflow.lib.exceptions import (
    ConflictError,
    DatabaseError,
    ExternalServiceError,
    InsufficientAuthorityError,
    NoAvailableAssigneeError,
    NoEscalationRuleError,
    NotFoundError,
    TicketFlowException,
    ValidationError,
)
from ticketflow.lib.identity_client import IdentityServiceClient
from ticketflow.lib.logger import get_logger, set_correlation_id, setup_logging
from ticketflow.lib.observability import initialize_observability
from ticketflow.lib.ticket_client import TicketServiceClient
from ticketflow.services.workflow import WorkflowServices

logger = get_logger(__name__)

CORRELATION_HEADER = "X-Correlation-ID"

# Checked in order; subclasses before their parents
ERROR_STATUS_CODES: list[tuple[type[TicketFlowException], int]] = [
    (NotFoundError, 404),
    (ConflictError, 409),
    (InsufficientAuthorityError, 403),
    (NoAvailableAssigneeError, 422),
    (NoEscalationRuleError, 422),
    (ValidationError, 400),
    (ExternalServiceError, 502),
    (DatabaseError, 500),
]


def status_code_for(exc: TicketFlowException) -> int:
    for error_type, status_code in ERROR_STATUS_CODES:
        if isinstance(exc, error_type):
            return status_code
    return 500


def build_services() -> WorkflowServices:
    """Construct the production service graph from settings."""
    db = Database()
    return WorkflowServices.build(
        db,
        TicketServiceClient(),
        identity_client=IdentityServiceClient(),
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Lifespan context manager for startup and shutdown events."""
    setup_logging()
    initialize_observability()

    logger.info("Starting up TicketFlow API server", extra={
        "environment": settings.environment,
        "api_port": settings.api_port,
    })

    if getattr(app.state, "services", None) is None:
        app.state.services = build_services()

    if app.state.services.db.check_connection():
        logger.info("Database connection successful")
    else:
        logger.error("Database connection failed")

    yield

    logger.info("Shutting down TicketFlow API server")
    app.state.services.db.dispose()


def create_app(services: WorkflowServices | None = None) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        services: Pre-built services (tests); built from settings on startup if omitted
    """
    app = FastAPI(
        title="TicketFlow API",
        description="Routing, claim, reassignment and escalation workflow for support tickets",
        version="1.0.0",
        lifespan=lifespan,
        docs_url="/docs" if settings.environment != "production" else None,
        redoc_url="/redoc" if settings.environment != "production" else None,
    )
    app.state.services = services

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if settings.environment == "development" else [],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def correlation_id_middleware(request: Request, call_next):
        correlation_id = set_correlation_id(request.headers.get(CORRELATION_HEADER))
        response = await call_next(request)
        response.headers[CORRELATION_HEADER] = correlation_id
        return response

    @app.exception_handler(TicketFlowException)
    async def ticketflow_exception_handler(request: Request, exc: TicketFlowException):
        status_code = status_code_for(exc)
        log = logger.error if status_code >= 500 else logger.info
        log(
            f"Request failed: {exc.message}",
            extra={
                "path": request.url.path,
                "method": request.method,
                "error": type(exc).__name__,
                "status_code": status_code,
            },
        )
        return JSONResponse(
            status_code=status_code,
            content={
                "error": type(exc).__name__,
                "message": exc.message,
                "details": exc.details,
            },
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """Global exception handler."""
        logger.error(
            "Unhandled exception",
            extra={
                "path": request.url.path,
                "method": request.method,
                "error": str(exc),
            },
            exc_info=True,
        )
        return JSONResponse(
            status_code=500,
            content={
                "error": "Internal server error",
                "message": str(exc) if settings.debug else "An unexpected error occurred",
            },
        )

    app.include_router(health.router, prefix="/health", tags=["Health"])
    app.include_router(workflow.router, prefix=f"{settings.api_prefix}/workflow", tags=["Workflow"])
    app.include_router(admin.router, prefix=f"{settings.api_prefix}/admin", tags=["Admin"])

    @app.get("/")
    async def root():
        """Root endpoint."""
        return {
            "service": "TicketFlow API",
            "version": "1.0.0",
            "status": "running",
            "docs": "/docs" if settings.environment != "production" else "disabled",
        }

    return app


app = create_app()
