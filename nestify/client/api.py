"""
Async HTTP client for the Nestify playlist API.

Failures are raised as the same ``NestifyError`` subclasses the server
raised, rebuilt from the ``{"detail", "kind"}`` body.
"""

import logging
import uuid
from typing import Any, Dict, List, Optional, Sequence

import httpx

from nestify.core.exceptions import NestifyError, error_from_payload
from nestify.services.tree.items import ItemRef

logger = logging.getLogger(__name__)


class NestifyApiClient:
    """Client for the playlist tree endpoints."""

    def __init__(
        self,
        base_url: str,
        access_token: str,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = 10.0,
    ):
        self.base_url = base_url.rstrip("/")
        self.access_token = access_token
        self.transport = transport
        self.timeout = timeout

    async def _request(
        self,
        method: str,
        endpoint: str,
        data: Dict[str, Any] = None,
    ) -> Any:
        """Send a request to the API and return the decoded body."""
        url = f"{self.base_url}{endpoint}"
        headers = {"Authorization": f"Bearer {self.access_token}"}

        try:
            async with httpx.AsyncClient(transport=self.transport) as client:
                response = await client.request(
                    method=method,
                    url=url,
                    json=data,
                    headers=headers,
                    timeout=self.timeout,
                )
        except httpx.HTTPError as e:
            logger.warning(f"{method} {endpoint} failed: {e}")
            raise NestifyError("Network error", details={"endpoint": endpoint}) from e

        if response.status_code >= 400:
            try:
                payload = response.json()
            except ValueError:
                payload = None
            raise error_from_payload(response.status_code, payload)

        return response.json() if response.text else {}

    async def get_tree(self) -> List[Dict[str, Any]]:
        """Get the user's playlist forest."""
        return await self._request("GET", "/api/playlists")

    async def get_tracks(self, playlist_id: uuid.UUID) -> List[Dict[str, Any]]:
        """Get every track under a playlist in playback order."""
        return await self._request("GET", f"/api/playlists/{playlist_id}/tracks")

    async def reorder_items(
        self, container_id: Optional[uuid.UUID], items: Sequence[ItemRef]
    ) -> Dict[str, Any]:
        """Send the full new order of a container (None for the root level)."""
        prefix = "/api/playlists" if container_id is None else f"/api/playlists/{container_id}"
        return await self._request(
            "PATCH",
            f"{prefix}/items/reorder",
            data={"items": [ref.to_dict() for ref in items]},
        )

    async def move_track(
        self,
        source_playlist_id: uuid.UUID,
        track_id: uuid.UUID,
        target_playlist_id: uuid.UUID,
        order: int,
    ) -> Dict[str, Any]:
        """Move a track out of the playlist the caller believes holds it."""
        return await self._request(
            "PATCH",
            f"/api/playlists/{source_playlist_id}/tracks/{track_id}/move",
            data={"target_playlist_id": str(target_playlist_id), "order": order},
        )

    async def reparent(
        self,
        playlist_id: uuid.UUID,
        parent_id: Optional[uuid.UUID],
        order: Optional[int] = None,
    ) -> Dict[str, Any]:
        """Move a playlist under another parent."""
        return await self._request(
            "PATCH",
            f"/api/playlists/{playlist_id}/parent",
            data={
                "parent_id": str(parent_id) if parent_id is not None else None,
                "order": order,
            },
        )
