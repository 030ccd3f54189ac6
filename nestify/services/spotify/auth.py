import base64
import logging
import os

import httpx

from nestify.core.exceptions import UpstreamUnavailableError
from nestify.schemas.spotify import SpotifyTokenSchema

logger = logging.getLogger(__name__)

SPOTIFY_CLIENT_ID = os.getenv("SPOTIFY_CLIENT_ID")
SPOTIFY_CLIENT_SECRET = os.getenv("SPOTIFY_CLIENT_SECRET")

TOKEN_URL = "https://accounts.spotify.com/api/token"


class SpotifyAuthService:
    """Token refresh for users who signed in through Spotify."""

    @staticmethod
    async def refresh_token(refresh_token: str) -> SpotifyTokenSchema:
        """Refresh an expired access token."""
        if not SPOTIFY_CLIENT_ID or not SPOTIFY_CLIENT_SECRET:
            raise UpstreamUnavailableError("Spotify credentials not configured")

        auth_header = base64.b64encode(
            f"{SPOTIFY_CLIENT_ID}:{SPOTIFY_CLIENT_SECRET}".encode()
        ).decode()

        headers = {
            "Authorization": f"Basic {auth_header}",
            "Content-Type": "application/x-www-form-urlencoded",
        }

        data = {
            "grant_type": "refresh_token",
            "refresh_token": refresh_token,
        }

        try:
            async with httpx.AsyncClient() as client:
                response = await client.post(TOKEN_URL, headers=headers, data=data)
                response.raise_for_status()
                return SpotifyTokenSchema(**response.json())
        except httpx.HTTPError as e:
            logger.warning(f"Spotify token refresh failed: {e}")
            raise UpstreamUnavailableError("Could not refresh Spotify token") from e
