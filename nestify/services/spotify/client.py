import logging

import httpx
from typing import List, Dict, Any, Optional
from datetime import timedelta, datetime

from sqlalchemy.orm import Session

from nestify.core.exceptions import NotFoundError, UpstreamUnavailableError
from nestify.db.models import User
from nestify.schemas.spotify import (
    SpotifyUserProfile,
    SpotifyTrack,
    SpotifyPlaylist,
)
from nestify.services.spotify.auth import SpotifyAuthService
from nestify.utils.datetime_helper import make_aware, utc_now

logger = logging.getLogger(__name__)

BASE_URL = "https://api.spotify.com/v1"

# Spotify API batch limits
TRACKS_PER_REQUEST = 50
URIS_PER_REQUEST = 100


class SpotifyClient:
    """Client for the parts of the Spotify Web API the tree service relies on."""

    def __init__(
        self, access_token: str, refresh_token: str = None, expires_at: datetime = None
    ):
        self.access_token = access_token
        self.refresh_token = refresh_token
        self.expires_at = expires_at

    @classmethod
    async def for_user(cls, db: Session, user_id) -> "SpotifyClient":
        """Create a client instance for a specific user, refreshing an expired token."""
        user = db.query(User).filter(User.id == user_id).first()
        if not user:
            raise NotFoundError("User not found")

        if not user.spotify_access_token:
            raise UpstreamUnavailableError("User not authenticated with Spotify")

        expiry = make_aware(user.spotify_token_expiry)
        if expiry and expiry <= utc_now():
            if not user.spotify_refresh_token:
                raise UpstreamUnavailableError("Refresh token not available")

            token_data = await SpotifyAuthService.refresh_token(
                user.spotify_refresh_token
            )

            user.spotify_access_token = token_data.access_token
            user.spotify_token_expiry = utc_now() + timedelta(
                seconds=token_data.expires_in
            )
            if token_data.refresh_token:
                user.spotify_refresh_token = token_data.refresh_token

            db.commit()
            logger.info(f"Refreshed Spotify token for user {user_id}")

        return cls(
            access_token=user.spotify_access_token,
            refresh_token=user.spotify_refresh_token,
            expires_at=user.spotify_token_expiry,
        )

    async def _request(
        self,
        method: str,
        endpoint: str,
        params: Dict[str, Any] = None,
        data: Dict[str, Any] = None,
    ) -> Dict[str, Any]:
        """Send a request to the Spotify API."""
        url = f"{BASE_URL}{endpoint}"

        headers = {
            "Authorization": f"Bearer {self.access_token}",
            "Content-Type": "application/json",
        }

        try:
            async with httpx.AsyncClient() as client:
                response = await client.request(
                    method=method,
                    url=url,
                    params=params,
                    json=data,
                    headers=headers,
                    timeout=10.0,
                )

                if response.status_code == 429:
                    retry_after = int(response.headers.get("Retry-After", 1))
                    raise UpstreamUnavailableError(
                        f"Rate limited. Try again in {retry_after} seconds.",
                        details={"retry_after": retry_after},
                    )

                response.raise_for_status()
                return response.json() if response.text else {}
        except httpx.HTTPError as e:
            logger.warning(f"Spotify {method} {endpoint} failed: {e}")
            raise UpstreamUnavailableError(
                "Spotify is unavailable", details={"endpoint": endpoint}
            ) from e

    async def get_user_profile(self) -> SpotifyUserProfile:
        """Get the current user's Spotify profile."""
        data = await self._request("GET", "/me")
        return SpotifyUserProfile(**data)

    async def get_tracks(self, track_ids: List[str]) -> List[SpotifyTrack]:
        """Fetch track objects by id, in batches of the API maximum.

        Ids Spotify does not know are skipped.
        """
        tracks = []
        for start in range(0, len(track_ids), TRACKS_PER_REQUEST):
            batch = track_ids[start : start + TRACKS_PER_REQUEST]
            data = await self._request("GET", "/tracks", params={"ids": ",".join(batch)})
            tracks.extend(SpotifyTrack(**item) for item in data.get("tracks", []) if item)
        return tracks

    async def create_playlist(
        self,
        user_id: str,
        name: str,
        description: str = "",
        public: bool = False,
    ) -> SpotifyPlaylist:
        """Create a new playlist for a user."""
        endpoint = f"/users/{user_id}/playlists"
        data = {
            "name": name,
            "description": description,
            "public": public,
        }

        response = await self._request("POST", endpoint, data=data)
        return SpotifyPlaylist(**response)

    async def add_tracks_to_playlist(
        self, playlist_id: str, track_uris: List[str]
    ) -> Optional[str]:
        """Add tracks to a playlist in chunks; returns the last snapshot id."""
        endpoint = f"/playlists/{playlist_id}/tracks"
        snapshot_id = None

        for start in range(0, len(track_uris), URIS_PER_REQUEST):
            chunk = track_uris[start : start + URIS_PER_REQUEST]
            response = await self._request("POST", endpoint, data={"uris": chunk})
            snapshot_id = response.get("snapshot_id", snapshot_id)

        return snapshot_id
