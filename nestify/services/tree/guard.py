"""
Tree invariant checks and order maintenance.

The cycle checks work on a plain ``{node_id: parent_id}`` mapping so they
can be evaluated against the tree exactly as it exists before a reparent.
The order helpers read and rewrite one container through the session.
"""

import uuid
from typing import Dict, List, Mapping, Optional, Sequence

from sqlalchemy import func
from sqlalchemy.orm import Session

from nestify.core.exceptions import InvalidOperationError
from nestify.db.models import Playlist, PlaylistTrack
from nestify.services.tree.items import ContainerRow, sort_items

ParentMap = Mapping[uuid.UUID, Optional[uuid.UUID]]


def is_descendant(
    parent_of: ParentMap, ancestor_id: uuid.UUID, node_id: Optional[uuid.UUID]
) -> bool:
    """
    Return True if ``node_id`` is ``ancestor_id`` or lies anywhere below it.

    Walks every ancestor of ``node_id`` up to its root.
    """
    seen = set()
    current = node_id
    while current is not None:
        if current == ancestor_id:
            return True
        if current in seen:
            # Only reachable on corrupt data; treat as related so no move is allowed.
            return True
        seen.add(current)
        current = parent_of.get(current)
    return False


def can_reparent(
    parent_of: ParentMap, node_id: uuid.UUID, new_parent_id: Optional[uuid.UUID]
) -> bool:
    """Return False if moving ``node_id`` under ``new_parent_id`` would create a cycle."""
    if new_parent_id is None:
        return True
    if new_parent_id == node_id:
        return False
    return not is_descendant(parent_of, node_id, new_parent_id)


def load_parent_map(db: Session, user_id: uuid.UUID) -> Dict[uuid.UUID, Optional[uuid.UUID]]:
    """Load the parent pointer of every playlist in a user's forest."""
    rows = db.query(Playlist.id, Playlist.parent_id).filter(Playlist.user_id == user_id)
    return {row.id: row.parent_id for row in rows}


def container_children(
    db: Session, user_id: uuid.UUID, container_id: Optional[uuid.UUID]
) -> List[Playlist]:
    query = db.query(Playlist).filter(Playlist.user_id == user_id)
    if container_id is None:
        return query.filter(Playlist.parent_id.is_(None)).all()
    return query.filter(Playlist.parent_id == container_id).all()


def container_tracks(db: Session, container_id: Optional[uuid.UUID]) -> List[PlaylistTrack]:
    if container_id is None:
        return []
    return db.query(PlaylistTrack).filter(PlaylistTrack.playlist_id == container_id).all()


def container_items(
    db: Session, user_id: uuid.UUID, container_id: Optional[uuid.UUID]
) -> List[ContainerRow]:
    """
    Return the direct items of a container in display order.

    ``container_id`` None is the root level of the user's forest, which only
    ever holds playlists.
    """
    return sort_items(
        container_children(db, user_id, container_id),
        container_tracks(db, container_id),
    )


def next_order(db: Session, user_id: uuid.UUID, container_id: Optional[uuid.UUID]) -> int:
    """Return the append position of a container: its current item count."""
    children = db.query(func.count(Playlist.id)).filter(Playlist.user_id == user_id)
    if container_id is None:
        return children.filter(Playlist.parent_id.is_(None)).scalar()

    children = children.filter(Playlist.parent_id == container_id).scalar()
    tracks = (
        db.query(func.count(PlaylistTrack.id))
        .filter(PlaylistTrack.playlist_id == container_id)
        .scalar()
    )
    return children + tracks


def renumber(
    db: Session,
    user_id: uuid.UUID,
    container_id: Optional[uuid.UUID],
    items: Optional[Sequence[ContainerRow]] = None,
) -> List[ContainerRow]:
    """
    Rewrite the orders of a container to 0..n-1.

    Without ``items`` the current relative order is kept. With ``items`` the
    given sequence becomes the new order; it must be the container's full
    contents.
    """
    if items is None:
        items = container_items(db, user_id, container_id)
    for position, row in enumerate(items):
        if row.order != position:
            row.order = position
    db.flush()
    return list(items)


def insert_at(
    items: Sequence[ContainerRow], row: ContainerRow, position: Optional[int]
) -> List[ContainerRow]:
    """Return ``items`` without ``row`` and with ``row`` inserted at ``position``.

    A missing position appends; positions past the end are clamped.
    """
    if position is not None and position < 0:
        raise InvalidOperationError(
            "Order must not be negative", details={"order": position}
        )
    remaining = [item for item in items if item is not row]
    if position is None or position > len(remaining):
        position = len(remaining)
    remaining.insert(position, row)
    return remaining
