"""
Export a playlist subtree to Spotify as one flat playlist.
"""

import logging
from typing import Optional

from sqlalchemy.orm import Session

from nestify.core.exceptions import InvalidOperationError
from nestify.schemas.playlist import ExportResponse
from nestify.services.spotify.client import SpotifyClient
from nestify.services.tree.linearizer import linearize
from nestify.services.tree.mutations import update_attributes
from nestify.services.tree.queries import get_owned_playlist

logger = logging.getLogger(__name__)

EXPORT_DESCRIPTION = "Exported from Nestify"


async def export_to_spotify(
    db: Session,
    playlist_id,
    user_id,
    client: Optional[SpotifyClient] = None,
) -> ExportResponse:
    """
    Create a Spotify playlist holding every track under a playlist, in playback order.

    The new Spotify playlist id is stored on the node.

    Raises:
        NotFoundError: If the playlist does not exist for this user
        InvalidOperationError: If there is nothing to export
        UpstreamUnavailableError: If Spotify rejects or cannot serve the request
    """
    playlist = get_owned_playlist(db, playlist_id, user_id)
    name = playlist.name
    linearized = await linearize(db, playlist.id, user_id)
    if not linearized:
        raise InvalidOperationError("No tracks to export")

    client = client or await SpotifyClient.for_user(db, user_id)
    profile = await client.get_user_profile()
    created = await client.create_playlist(
        profile.id, name, description=EXPORT_DESCRIPTION, public=False
    )
    uris = [f"spotify:track:{item.track.spotify_track_id}" for item in linearized]
    await client.add_tracks_to_playlist(created.id, uris)

    await update_attributes(db, playlist.id, user_id, spotify_playlist_id=created.id)
    logger.info(
        f"Exported playlist {playlist.id} with {len(uris)} tracks to Spotify {created.id}"
    )

    return ExportResponse(
        spotify_playlist_id=created.id,
        url=created.external_urls.get(
            "spotify", f"https://open.spotify.com/playlist/{created.id}"
        ),
        track_count=len(uris),
    )
