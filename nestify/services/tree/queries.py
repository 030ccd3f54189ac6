"""
Owner-scoped reads of the playlist forest.
"""

import uuid
from collections import defaultdict
from typing import Dict, List, Optional, Union

from sqlalchemy import func, literal, select
from sqlalchemy.orm import Session, aliased

from nestify.core.exceptions import NotFoundError
from nestify.db.models import Playlist, PlaylistTrack
from nestify.schemas.playlist import PlaylistTreeResponse

IdLike = Union[str, uuid.UUID]


def as_uuid(value: IdLike, label: str = "Playlist") -> uuid.UUID:
    """Parse an id; malformed ids are reported as missing."""
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except (TypeError, ValueError):
        raise NotFoundError(f"{label} not found", details={"id": str(value)})


def get_owned_playlist(db: Session, playlist_id: IdLike, user_id: IdLike) -> Playlist:
    """Return a playlist owned by the user or raise NotFoundError."""
    playlist = (
        db.query(Playlist)
        .filter(
            Playlist.id == as_uuid(playlist_id),
            Playlist.user_id == as_uuid(user_id, "User"),
        )
        .first()
    )
    if not playlist:
        raise NotFoundError("Playlist not found", details={"id": str(playlist_id)})
    return playlist


def get_owned_track(db: Session, track_id: IdLike, user_id: IdLike) -> PlaylistTrack:
    """Return a track whose playlist is owned by the user or raise NotFoundError."""
    track = (
        db.query(PlaylistTrack)
        .join(Playlist, Playlist.id == PlaylistTrack.playlist_id)
        .filter(
            PlaylistTrack.id == as_uuid(track_id, "Track"),
            Playlist.user_id == as_uuid(user_id, "User"),
        )
        .first()
    )
    if not track:
        raise NotFoundError("Track not found", details={"id": str(track_id)})
    return track


def subtree_select(root_id: uuid.UUID):
    """
    Recursive select of ``root_id`` and every playlist below it.

    Yields ``(id, parent_id, depth)`` rows with the root at depth 0.
    """
    subtree = (
        select(Playlist.id, Playlist.parent_id, literal(0).label("depth"))
        .where(Playlist.id == root_id)
        .cte("subtree", recursive=True)
    )
    child = aliased(Playlist)
    subtree = subtree.union_all(
        select(child.id, child.parent_id, subtree.c.depth + 1).where(
            child.parent_id == subtree.c.id
        )
    )
    return select(subtree.c.id, subtree.c.parent_id, subtree.c.depth)


def collect_subtree(db: Session, root_id: uuid.UUID) -> Dict[uuid.UUID, int]:
    """Return ``{playlist_id: depth}`` for a playlist and all its descendants."""
    return {row.id: row.depth for row in db.execute(subtree_select(root_id))}


async def get_node(db: Session, playlist_id: IdLike, user_id: IdLike) -> Playlist:
    """Get a single playlist of the user."""
    return get_owned_playlist(db, playlist_id, user_id)


async def get_tree(db: Session, user_id: IdLike) -> List[PlaylistTreeResponse]:
    """
    Get the user's whole forest, nested, with children sorted by order.

    Each node carries ``track_count``, the number of tracks anywhere in its
    subtree.
    """
    user_id = as_uuid(user_id, "User")
    playlists = db.query(Playlist).filter(Playlist.user_id == user_id).all()

    direct_counts = dict(
        db.query(PlaylistTrack.playlist_id, func.count(PlaylistTrack.id))
        .join(Playlist, Playlist.id == PlaylistTrack.playlist_id)
        .filter(Playlist.user_id == user_id)
        .group_by(PlaylistTrack.playlist_id)
        .all()
    )

    children_of: Dict[Optional[uuid.UUID], List[Playlist]] = defaultdict(list)
    for playlist in playlists:
        children_of[playlist.parent_id].append(playlist)

    def sorted_children(parent_id: Optional[uuid.UUID]) -> List[Playlist]:
        return sorted(children_of[parent_id], key=lambda p: (p.order, str(p.id)))

    # Pre-order walk with an explicit stack; nodes are then filled in reverse
    # so every child is complete before its parent sums the track counts.
    roots = sorted_children(None)
    visited: List[Playlist] = []
    stack = list(reversed(roots))
    while stack:
        playlist = stack.pop()
        visited.append(playlist)
        stack.extend(reversed(sorted_children(playlist.id)))

    nodes: Dict[uuid.UUID, PlaylistTreeResponse] = {}
    for playlist in reversed(visited):
        node = PlaylistTreeResponse.model_validate(playlist)
        node.children = [nodes[child.id] for child in sorted_children(playlist.id)]
        node.track_count = direct_counts.get(playlist.id, 0) + sum(
            child.track_count for child in node.children
        )
        nodes[playlist.id] = node

    return [nodes[root.id] for root in roots]
