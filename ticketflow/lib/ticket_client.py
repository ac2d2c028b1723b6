"""HTTP client for the ticket service (owner of ticket content)."""

from typing import Any

import requests
from tenacity import (
    Retrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from .config import settings
from .exceptions import UpstreamFailureError
from .logger import get_correlation_id, get_logger

logger = get_logger(__name__)

# Workflow role -> ticket-service SupportLevel
SUPPORT_LEVELS = {
    "JUNIOR": "L1",
    "SENIOR": "L2",
    "SUPERVISOR": "L3",
    "HEAD_OF_IT": "L4",
}


def to_support_level(role: Any) -> str:
    """
    Map a workflow role to the ticket-service support level.

    Unknown roles map to L1.

    Args:
        role: Role enum member or its string value

    Returns:
        Support level code (L1-L4)
    """
    key = getattr(role, "value", role)
    return SUPPORT_LEVELS.get(str(key), "L1")


def is_retryable(exc: BaseException) -> bool:
    """Connection errors, timeouts and 5xx responses are worth retrying; 4xx are not."""
    if isinstance(exc, (requests.ConnectionError, requests.Timeout)):
        return True
    if isinstance(exc, requests.HTTPError) and exc.response is not None:
        return exc.response.status_code >= 500
    return False


class HTTPServiceClient:
    """Shared request/retry plumbing for the collaborator services."""

    service_name = "service"

    def __init__(
        self,
        base_url: str,
        timeout: float | None = None,
        max_attempts: int | None = None,
        session: requests.Session | None = None,
        retry_wait_multiplier: float = 0.5,
    ) -> None:
        """
        Initialize the client.

        Args:
            base_url: Service root URL
            timeout: Per-request timeout in seconds
            max_attempts: Attempts per call, including the first
            session: requests session to reuse (one is created if omitted)
            retry_wait_multiplier: Exponential backoff multiplier in seconds
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout or settings.external_timeout_seconds
        self.max_attempts = max_attempts or settings.external_max_retries
        self.session = session or requests.Session()
        self.session.headers.update({"Content-Type": "application/json"})
        self.retry_wait_multiplier = retry_wait_multiplier

    def _request(self, method: str, path: str, json: dict[str, Any] | None = None) -> Any:
        """
        Send a request with retry.

        Raises:
            UpstreamFailureError: If the call still fails after all attempts
        """
        url = f"{self.base_url}{path}"
        headers = {}
        correlation_id = get_correlation_id()
        if correlation_id:
            headers["X-Correlation-ID"] = correlation_id

        retrying = Retrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(multiplier=self.retry_wait_multiplier, min=0, max=4),
            retry=retry_if_exception(is_retryable),
            reraise=True,
        )

        try:
            for attempt in retrying:
                with attempt:
                    response = self.session.request(
                        method, url, json=json, headers=headers, timeout=self.timeout
                    )
                    response.raise_for_status()
                    if not response.content:
                        return None
                    return response.json()

        except requests.RequestException as e:
            detail = _error_detail(e)
            logger.error(
                f"{self.service_name} {method} {path} failed: {detail}",
                extra={"service": self.service_name, "path": path},
            )
            raise UpstreamFailureError(
                f"{self.service_name} call failed: {detail}",
                {"service": self.service_name, "method": method, "path": path},
            )
        except ValueError as e:
            # Response body was not JSON
            raise UpstreamFailureError(f"{self.service_name} returned an invalid body: {e}")

    def close(self) -> None:
        self.session.close()


class TicketServiceClient(HTTPServiceClient):
    """Client for the ticket service."""

    service_name = "ticket-service"

    def __init__(self, base_url: str | None = None, **kwargs: Any) -> None:
        super().__init__(base_url or settings.ticket_service_url, **kwargs)

    def get_ticket(self, ticket_id: str) -> dict[str, Any]:
        return self._request("GET", f"/tickets/{ticket_id}")

    def assign_ticket(
        self,
        ticket_id: str,
        assigned_to: int | str,
        assigned_to_level: str = "L1",
        status: str = "IN_PROGRESS",
    ) -> Any:
        """
        Set owner, support level and status of a ticket.

        Args:
            ticket_id: Ticket id
            assigned_to: Identity-service user id of the technician
            assigned_to_level: Support level (L1-L4)
            status: Ticket status to set
        """
        return self._request(
            "PATCH",
            f"/tickets/{ticket_id}",
            json={
                "assigned_to": str(assigned_to),
                "assigned_to_level": assigned_to_level,
                "status": status,
            },
        )

    def update_ticket_status(self, ticket_id: str, status: str) -> Any:
        return self._request("PATCH", f"/tickets/{ticket_id}", json={"status": status})

    def record_escalation(
        self,
        ticket_id: str,
        from_level: str,
        to_level: str,
        reason: str,
    ) -> Any:
        """Record an escalation event on the ticket."""
        return self._request(
            "POST",
            f"/tickets/{ticket_id}/escalate",
            json={"from_level": from_level, "to_level": to_level, "reason": reason},
        )


def _error_detail(exc: requests.RequestException) -> str:
    response = getattr(exc, "response", None)
    if response is not None:
        try:
            body = response.json()
            if isinstance(body, dict) and body.get("message"):
                return f"HTTP {response.status_code}: {body['message']}"
        except ValueError:
            pass
        return f"HTTP {response.status_code}"
    return str(exc)
