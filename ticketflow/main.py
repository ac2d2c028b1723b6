"""Entry point for running the FastAPI application."""

import uvicorn

from ticketflow.lib.config import settings

if __name__ == "__main__":
    uvicorn.run(
        "ticketflow.api.app:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.environment == "development",
        log_level=settings.log_level.lower(),
    )
