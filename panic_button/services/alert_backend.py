"""Client for the remote panic alert API."""

from __future__ import annotations

import logging
from typing import Any

import httpx
from pydantic import ValidationError

from panic_button.core.errors import (
    AlertNetworkError,
    InvalidResponseError,
    ServerError,
    UnauthenticatedError,
)
from panic_button.schemas.panic import AlertRecord, AlertRequest, StatusUpdateRequest

logger = logging.getLogger(__name__)


class AlertBackend:
    """Submits panic alerts and status updates.

    The client never retries: one call to ``submit`` is one POST.
    """

    def __init__(
        self,
        api_base_url: str,
        client: httpx.AsyncClient | None = None,
        timeout: float = 15.0,
    ) -> None:
        self._base_url = api_base_url.rstrip("/")
        self._client = client
        self._timeout = timeout

    async def submit(self, request: AlertRequest, token: str) -> AlertRecord | None:
        """Create a panic alert.

        Returns None when the backend accepted the alert but sent no record.
        """
        data = await self._send(
            "POST",
            f"{self._base_url}/panic",
            token,
            request.model_dump(),
            failure_message="Failed to send the emergency alert",
        )
        panic = data.get("panic")
        if not isinstance(panic, dict) or panic.get("id") is None:
            logger.warning("Alert accepted without a panic record: %s", data.get("message"))
            return None
        try:
            return AlertRecord.model_validate(panic)
        except ValidationError as exc:
            raise InvalidResponseError(f"Invalid panic record from server: {exc.error_count()} errors") from exc

    async def update_status(self, panic_id: int, update: StatusUpdateRequest, token: str) -> dict[str, Any]:
        """Move an alert to handling or resolved (volunteer/admin surfaces)."""
        body = update.model_dump(exclude_none=True)
        return await self._send(
            "PUT",
            f"{self._base_url}/panic/{panic_id}/status",
            token,
            body,
            failure_message="Failed to update panic status",
        )

    async def _send(
        self,
        method: str,
        url: str,
        token: str,
        body: dict[str, Any],
        failure_message: str,
    ) -> dict[str, Any]:
        headers = {
            "Authorization": f"Bearer {token}",
            "Accept": "application/json",
        }
        try:
            if self._client is not None:
                response = await self._client.request(method, url, json=body, headers=headers, timeout=self._timeout)
            else:
                async with httpx.AsyncClient(timeout=self._timeout) as client:
                    response = await client.request(method, url, json=body, headers=headers)
        except httpx.HTTPError as exc:
            logger.error("%s %s failed: %s", method, url, exc)
            raise AlertNetworkError(f"Could not reach the alert server: {exc}") from exc

        if response.status_code == 401:
            raise UnauthenticatedError(status_code=401)

        try:
            data = response.json()
        except ValueError:
            data = None

        if not isinstance(data, dict):
            logger.error("Unparsable response from %s (status %s)", url, response.status_code)
            raise InvalidResponseError(status_code=response.status_code)

        if response.is_error:
            message = data.get("message")
            if not isinstance(message, str) or not message:
                message = failure_message
            raise ServerError(message, status_code=response.status_code)

        return data
