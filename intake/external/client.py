"""
Shared HTTP plumbing for the external providers.

Providers speak JSON over POST and answer with {success, data, error}.
There is no retry: a timeout is a definitive failure and is raised as
ExternalCollaboratorError for the caller to handle.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx

from intake.errors import ExternalCollaboratorError

logger = logging.getLogger(__name__)


class JsonApiClient:
    """Thin wrapper over httpx.AsyncClient for one provider."""

    def __init__(
        self,
        name: str,
        base_url: str,
        timeout_seconds: float = 0.5,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.name = name
        self.base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=httpx.Timeout(timeout_seconds),
            headers={"Content-Type": "application/json", "Accept": "application/json"},
            transport=transport,
        )

    async def post_json(self, path: str, payload: Dict[str, Any]) -> Any:
        """POST payload and return the envelope's `data` member."""
        try:
            response = await self._client.post(path, json=payload)
        except httpx.TimeoutException as exc:
            logger.warning("%s: request to %s timed out", self.name, path)
            raise ExternalCollaboratorError(self.name, "timeout") from exc
        except httpx.HTTPError as exc:
            logger.warning("%s: request to %s failed: %s", self.name, path, exc)
            raise ExternalCollaboratorError(self.name, "transport error") from exc

        if response.status_code != 200:
            logger.warning("%s: %s returned HTTP %d", self.name, path, response.status_code)
            raise ExternalCollaboratorError(self.name, f"HTTP {response.status_code}")

        try:
            body = response.json()
        except ValueError as exc:
            raise ExternalCollaboratorError(self.name, "invalid JSON") from exc

        if not isinstance(body, dict) or not body.get("success"):
            error = body.get("error") if isinstance(body, dict) else None
            logger.warning("%s: %s reported failure: %s", self.name, path, error)
            raise ExternalCollaboratorError(self.name, str(error or "unsuccessful response"))
        return body.get("data")

    async def ping(self) -> bool:
        try:
            response = await self._client.get("/health")
        except httpx.HTTPError:
            return False
        return response.status_code == 200

    async def aclose(self) -> None:
        await self._client.aclose()
