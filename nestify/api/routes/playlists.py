"""
REST API endpoints for the playlist tree.

Every endpoint is scoped to the authenticated user. Service errors are not
caught here; the handler registered in ``nestify.main`` turns them into
``{"detail", "kind"}`` responses with the matching status code.
"""

import uuid
from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from nestify.core.locks import ContainerLocks
from nestify.db.models import User
from nestify.dependencies import db_dependency, get_current_user, get_locks
from nestify.schemas.playlist import (
    AddTrackRequest,
    DeletedResponse,
    ExportResponse,
    MovedResponse,
    MoveTrackRequest,
    PlaylistCreate,
    PlaylistResponse,
    PlaylistTrackResponse,
    PlaylistTreeResponse,
    PlaylistUpdate,
    RemovedResponse,
    ReorderedResponse,
    ReorderRequest,
    ReparentRequest,
    TrackWithSource,
)
from nestify.services import tree
from nestify.services.spotify.enrichment import enrich_tracks
from nestify.services.spotify.export import export_to_spotify
from nestify.services.tree import ItemRef

router = APIRouter(prefix="/api/playlists", tags=["playlists"])


@router.get("", response_model=List[PlaylistTreeResponse])
async def get_playlist_tree(
    user: User = Depends(get_current_user),
    db: Session = Depends(db_dependency),
):
    """Get the user's playlist forest with nested children."""
    return await tree.get_tree(db, user.id)


@router.post("", response_model=PlaylistResponse, status_code=status.HTTP_201_CREATED)
async def create_playlist(
    payload: PlaylistCreate,
    user: User = Depends(get_current_user),
    db: Session = Depends(db_dependency),
    locks: ContainerLocks = Depends(get_locks),
):
    """Create a playlist at the end of its parent."""
    return await tree.create_node(
        db,
        user.id,
        name=payload.name,
        parent_id=payload.parent_id,
        icon=payload.icon,
        color=payload.color,
        image_url=payload.image_url,
        spotify_playlist_id=payload.spotify_playlist_id,
        locks=locks,
    )


@router.patch("/items/reorder", response_model=ReorderedResponse)
async def reorder_root_playlists(
    payload: ReorderRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(db_dependency),
    locks: ContainerLocks = Depends(get_locks),
):
    """Reorder the user's root playlists."""
    refs = [ItemRef.parse(item.type, item.id) for item in payload.items]
    return await tree.reorder_container(db, None, refs, user.id, locks=locks)


@router.get("/{playlist_id}", response_model=PlaylistResponse)
async def get_playlist(
    playlist_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: Session = Depends(db_dependency),
):
    """Get a single playlist."""
    return await tree.get_node(db, playlist_id, user.id)


@router.patch("/{playlist_id}", response_model=PlaylistResponse)
async def update_playlist(
    playlist_id: uuid.UUID,
    payload: PlaylistUpdate,
    user: User = Depends(get_current_user),
    db: Session = Depends(db_dependency),
    locks: ContainerLocks = Depends(get_locks),
):
    """
    Update a playlist.

    Sending ``parent_id`` (including null) or ``order`` moves the playlist.
    """
    changes = payload.model_dump(exclude_unset=True)
    return await tree.update_node(db, playlist_id, user.id, changes, locks=locks)


@router.delete("/{playlist_id}", response_model=DeletedResponse)
async def delete_playlist(
    playlist_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: Session = Depends(db_dependency),
    locks: ContainerLocks = Depends(get_locks),
):
    """Delete a playlist with all of its sub-playlists and tracks."""
    return await tree.delete_node(db, playlist_id, user.id, locks=locks)


@router.patch("/{playlist_id}/parent", response_model=PlaylistResponse)
async def reparent_playlist(
    playlist_id: uuid.UUID,
    payload: ReparentRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(db_dependency),
    locks: ContainerLocks = Depends(get_locks),
):
    """Move a playlist under another parent (null for the root level)."""
    return await tree.reparent_node(
        db, playlist_id, user.id, payload.parent_id, payload.order, locks=locks
    )


@router.patch("/{playlist_id}/items/reorder", response_model=ReorderedResponse)
async def reorder_playlist_items(
    playlist_id: uuid.UUID,
    payload: ReorderRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(db_dependency),
    locks: ContainerLocks = Depends(get_locks),
):
    """Reorder the tracks and sub-playlists directly inside a playlist."""
    refs = [ItemRef.parse(item.type, item.id) for item in payload.items]
    return await tree.reorder_container(db, playlist_id, refs, user.id, locks=locks)


@router.get("/{playlist_id}/tracks", response_model=List[TrackWithSource])
async def get_playlist_tracks(
    playlist_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: Session = Depends(db_dependency),
):
    """Get every track under a playlist in playback order, with Spotify metadata."""
    linearized = await tree.linearize(db, playlist_id, user.id)
    return await enrich_tracks(db, user.id, linearized)


@router.post(
    "/{playlist_id}/tracks",
    response_model=PlaylistTrackResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_playlist_track(
    playlist_id: uuid.UUID,
    payload: AddTrackRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(db_dependency),
    locks: ContainerLocks = Depends(get_locks),
):
    """Append a Spotify track to a playlist."""
    return await tree.add_track(
        db, playlist_id, payload.spotify_track_id, user.id, locks=locks
    )


@router.delete("/{playlist_id}/tracks/{track_id}", response_model=RemovedResponse)
async def remove_playlist_track(
    playlist_id: uuid.UUID,
    track_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: Session = Depends(db_dependency),
    locks: ContainerLocks = Depends(get_locks),
):
    """Remove a track from the playlist that directly holds it."""
    return await tree.remove_track(
        db, track_id, user.id, playlist_id=playlist_id, locks=locks
    )


@router.patch("/{playlist_id}/tracks/{track_id}/move", response_model=MovedResponse)
async def move_playlist_track(
    playlist_id: uuid.UUID,
    track_id: uuid.UUID,
    payload: MoveTrackRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(db_dependency),
    locks: ContainerLocks = Depends(get_locks),
):
    """Move a track from this playlist into another one at a given position."""
    return await tree.move_track(
        db,
        track_id,
        playlist_id,
        payload.target_playlist_id,
        payload.order,
        user.id,
        locks=locks,
    )


@router.post("/{playlist_id}/export", response_model=ExportResponse)
async def export_playlist(
    playlist_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: Session = Depends(db_dependency),
):
    """Export every track under a playlist to a new Spotify playlist."""
    return await export_to_spotify(db, playlist_id, user.id)
