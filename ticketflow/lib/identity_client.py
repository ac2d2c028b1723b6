"""HTTP client for the identity/role service."""

from typing import Any

from .config import settings
from .exceptions import UpstreamFailureError
from .logger import get_logger
from .ticket_client import HTTPServiceClient

logger = get_logger(__name__)


class IdentityServiceClient(HTTPServiceClient):
    """
    Resolves users and their organization roles.

    Read-only; results are not cached beyond the call.
    """

    service_name = "auth-service"

    def __init__(self, base_url: str | None = None, **kwargs: Any) -> None:
        super().__init__(base_url or settings.auth_service_url, **kwargs)

    def get_user(self, user_id: int) -> dict[str, Any]:
        return self._request("GET", f"/users/{user_id}")

    def get_user_role(self, user_id: int) -> str:
        """
        Get the organization role of a user.

        Returns:
            Role string as reported by the service (e.g. "SENIOR")

        Raises:
            UpstreamFailureError: If the call fails or the body has no role
        """
        data = self._request("GET", f"/users/{user_id}/role")
        role = data.get("role") if isinstance(data, dict) else None
        if not role:
            raise UpstreamFailureError(
                f"auth-service returned no role for user {user_id}", {"user_id": user_id}
            )
        return str(role).upper()
