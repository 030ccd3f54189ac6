"""
Attach Spotify display metadata to linearized tracks.

Metadata is cached on the track rows. Missing or expired entries are
fetched in one pass; if Spotify cannot be reached the tracks are returned
without metadata instead of failing the request.
"""

import logging
import os
from datetime import timedelta
from typing import Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from nestify.core.exceptions import NestifyError
from nestify.db.models import PlaylistTrack
from nestify.schemas.playlist import TrackWithSource
from nestify.schemas.spotify import TrackMetadata
from nestify.services.spotify.client import SpotifyClient
from nestify.services.tree.linearizer import LinearizedTrack
from nestify.utils.datetime_helper import make_aware, utc_now

logger = logging.getLogger(__name__)

METADATA_CACHE_TTL_HOURS = int(os.getenv("METADATA_CACHE_TTL_HOURS", "24"))


def cached_metadata(track: PlaylistTrack) -> Optional[TrackMetadata]:
    """Build metadata from the cache columns, or None if nothing is cached."""
    if track.metadata_cached_at is None or track.track_name is None:
        return None
    return TrackMetadata(
        id=track.spotify_track_id,
        name=track.track_name,
        artists=track.track_artists or [],
        album=track.album_name,
        duration_ms=track.duration_ms,
        preview_url=track.preview_url,
        image_url=track.track_image_url,
    )


def needs_refresh(track: PlaylistTrack, now=None) -> bool:
    cached_at = make_aware(track.metadata_cached_at)
    if cached_at is None:
        return True
    now = now or utc_now()
    return cached_at < now - timedelta(hours=METADATA_CACHE_TTL_HOURS)


def store_metadata(track: PlaylistTrack, metadata: TrackMetadata, now) -> None:
    track.track_name = metadata.name
    track.track_artists = metadata.artists
    track.album_name = metadata.album
    track.duration_ms = metadata.duration_ms
    track.preview_url = metadata.preview_url
    track.track_image_url = metadata.image_url
    track.metadata_cached_at = now


async def fetch_metadata(
    db: Session, user_id, spotify_ids: List[str], client: Optional[SpotifyClient] = None
) -> Dict[str, TrackMetadata]:
    """Fetch metadata for the given ids; an unreachable catalog yields an empty result."""
    if not spotify_ids:
        return {}
    try:
        client = client or await SpotifyClient.for_user(db, user_id)
        tracks = await client.get_tracks(spotify_ids)
    except NestifyError as e:
        logger.warning(f"Track metadata unavailable for user {user_id}: {e}")
        return {}
    return {track.id: TrackMetadata.from_spotify(track) for track in tracks}


async def enrich_tracks(
    db: Session,
    user_id,
    linearized: List[LinearizedTrack],
    client: Optional[SpotifyClient] = None,
) -> List[TrackWithSource]:
    """Convert linearized tracks to responses carrying cached or fresh metadata."""
    now = utc_now()
    stale = [item.track for item in linearized if needs_refresh(item.track, now)]
    stale_ids = sorted({track.spotify_track_id for track in stale})

    fetched = await fetch_metadata(db, user_id, stale_ids, client)
    if fetched:
        try:
            for track in stale:
                metadata = fetched.get(track.spotify_track_id)
                if metadata is not None:
                    store_metadata(track, metadata, now)
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.warning(f"Could not cache track metadata: {e}")

    results = []
    for item in linearized:
        response = TrackWithSource.model_validate(
            {
                "id": item.track.id,
                "playlist_id": item.track.playlist_id,
                "spotify_track_id": item.track.spotify_track_id,
                "order": item.track.order,
                "added_at": item.track.added_at,
                "source_playlist_name": item.source_playlist_name,
            }
        )
        response.track = fetched.get(item.track.spotify_track_id) or cached_metadata(
            item.track
        )
        results.append(response)
    return results
