"""
Owner-scoped mutations of the playlist forest.

Every operation runs as one transaction while holding the locks of the
containers it rewrites. Operations that change parent pointers (create,
reparent, delete) additionally hold the owner's tree lock, taken before any
container lock, so cycle checks and cascades see a forest nobody else is
reshaping.

After every operation each touched container numbers its items 0..n-1.
"""

import logging
import uuid
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy.orm import Session

from nestify.core.exceptions import (
    ConflictError,
    CycleError,
    InvalidOperationError,
    NotFoundError,
    ReorderMismatchError,
    StaleMoveError,
)
from nestify.core.locks import (
    ContainerLocks,
    container_key,
    get_container_locks,
    tree_key,
)
from nestify.db.models import Playlist, PlaylistTrack
from nestify.db.models.playlist import DEFAULT_COLOR, DEFAULT_ICON
from nestify.db.unit_of_work import transaction
from nestify.services.tree.guard import (
    can_reparent,
    container_items,
    insert_at,
    load_parent_map,
    next_order,
    renumber,
)
from nestify.services.tree.items import ItemRef
from nestify.services.tree.queries import (
    IdLike,
    as_uuid,
    collect_subtree,
    get_owned_playlist,
    get_owned_track,
)

logger = logging.getLogger(__name__)

ATTRIBUTE_FIELDS = ("name", "icon", "color", "image_url", "spotify_playlist_id")
STRUCTURE_FIELDS = ("parent_id", "order")
NON_EMPTY_FIELDS = ("icon", "color")


def _optional_uuid(value: Optional[IdLike]) -> Optional[uuid.UUID]:
    return None if value is None else as_uuid(value)


async def create_node(
    db: Session,
    user_id: IdLike,
    name: str,
    parent_id: Optional[IdLike] = None,
    icon: Optional[str] = None,
    color: Optional[str] = None,
    image_url: Optional[str] = None,
    spotify_playlist_id: Optional[str] = None,
    locks: Optional[ContainerLocks] = None,
) -> Playlist:
    """
    Create a playlist at the end of its parent (or of the root level).

    Args:
        db: Database session
        user_id: Owner ID
        name: Playlist name
        parent_id: Parent playlist ID, None for a root playlist

    Returns:
        Created playlist

    Raises:
        NotFoundError: If the parent does not exist for this user
    """
    user_id = as_uuid(user_id, "User")
    parent_id = _optional_uuid(parent_id)
    if not name:
        raise InvalidOperationError("Playlist name is required")
    locks = locks or get_container_locks()

    async with locks.hold(tree_key(user_id)):
        async with locks.hold(container_key(user_id, parent_id)):
            with transaction(db):
                if parent_id is not None:
                    get_owned_playlist(db, parent_id, user_id)

                playlist = Playlist(
                    user_id=user_id,
                    parent_id=parent_id,
                    name=name,
                    icon=icon or DEFAULT_ICON,
                    color=color or DEFAULT_COLOR,
                    image_url=image_url,
                    spotify_playlist_id=spotify_playlist_id,
                    order=next_order(db, user_id, parent_id),
                )
                db.add(playlist)

    db.refresh(playlist)
    logger.info(
        f"Created playlist {playlist.id} under {parent_id or 'root'} for user {user_id}"
    )
    return playlist


def _check_attributes(attributes: Dict[str, Any]) -> None:
    unknown = set(attributes) - set(ATTRIBUTE_FIELDS)
    if unknown:
        raise InvalidOperationError(
            f"Cannot update {', '.join(sorted(unknown))}",
            details={"fields": sorted(unknown)},
        )
    if "name" in attributes and not attributes["name"]:
        raise InvalidOperationError("Playlist name is required")
    empty = sorted(
        field for field in NON_EMPTY_FIELDS if field in attributes and not attributes[field]
    )
    if empty:
        raise InvalidOperationError(
            f"Playlist {', '.join(empty)} cannot be empty", details={"fields": empty}
        )


async def update_attributes(
    db: Session, playlist_id: IdLike, user_id: IdLike, **attributes: Any
) -> Playlist:
    """
    Update descriptive attributes of a playlist.

    Only the given keywords are changed; structure is never touched here.

    Raises:
        NotFoundError: If the playlist does not exist for this user
        InvalidOperationError: On unknown attributes or an empty name, icon or color
    """
    _check_attributes(attributes)

    with transaction(db):
        playlist = get_owned_playlist(db, playlist_id, user_id)
        for field, value in attributes.items():
            setattr(playlist, field, value)

    db.refresh(playlist)
    logger.info(f"Updated {', '.join(attributes) or 'nothing'} of playlist {playlist.id}")
    return playlist


async def rename_node(
    db: Session, playlist_id: IdLike, user_id: IdLike, name: str
) -> Playlist:
    """Rename a playlist."""
    return await update_attributes(db, playlist_id, user_id, name=name)


def _check_reparent(
    db: Session, node: Playlist, user_id: uuid.UUID, new_parent_id: Optional[uuid.UUID]
) -> None:
    if new_parent_id is not None:
        get_owned_playlist(db, new_parent_id, user_id)

    if not can_reparent(load_parent_map(db, user_id), node.id, new_parent_id):
        logger.warning(
            f"Rejected moving playlist {node.id} under its own subtree {new_parent_id}"
        )
        raise CycleError(
            "Cannot move a playlist into itself or one of its sub-playlists",
            details={"id": str(node.id), "parent_id": str(new_parent_id)},
        )


def _place_node(
    db: Session,
    node_id: uuid.UUID,
    user_id: uuid.UUID,
    old_parent_id: Optional[uuid.UUID],
    new_parent_id: Optional[uuid.UUID],
    order: Optional[int],
) -> Playlist:
    """Move a playlist inside the caller's transaction and renumber both containers."""
    node = get_owned_playlist(db, node_id, user_id)
    if node.parent_id != old_parent_id:
        raise ConflictError("Playlist was moved concurrently, refresh and try again")

    if old_parent_id == new_parent_id:
        if order is not None:
            items = container_items(db, user_id, new_parent_id)
            renumber(db, user_id, new_parent_id, insert_at(items, node, order))
    else:
        node.parent_id = new_parent_id
        db.flush()
        renumber(db, user_id, old_parent_id)
        items = container_items(db, user_id, new_parent_id)
        renumber(db, user_id, new_parent_id, insert_at(items, node, order))
    return node


async def reparent_node(
    db: Session,
    playlist_id: IdLike,
    user_id: IdLike,
    new_parent_id: Optional[IdLike],
    order: Optional[int] = None,
    locks: Optional[ContainerLocks] = None,
) -> Playlist:
    """
    Move a playlist under another parent, or to another position.

    The node is detached from its old container and inserted into the new
    one at ``order`` (appended when omitted); both containers are renumbered.
    Moving within the same parent without an order leaves it in place.

    Raises:
        NotFoundError: If the playlist or the new parent does not exist for this user
        CycleError: If the new parent is the playlist itself or one of its descendants
    """
    user_id = as_uuid(user_id, "User")
    new_parent_id = _optional_uuid(new_parent_id)
    locks = locks or get_container_locks()

    async with locks.hold(tree_key(user_id)):
        node = get_owned_playlist(db, playlist_id, user_id)
        old_parent_id = node.parent_id
        _check_reparent(db, node, user_id, new_parent_id)

        async with locks.hold(
            container_key(user_id, old_parent_id), container_key(user_id, new_parent_id)
        ):
            with transaction(db):
                node = _place_node(db, node.id, user_id, old_parent_id, new_parent_id, order)

    db.refresh(node)
    logger.info(
        f"Moved playlist {node.id} from {old_parent_id or 'root'} "
        f"to {new_parent_id or 'root'} at {node.order}"
    )
    return node


async def update_node(
    db: Session,
    playlist_id: IdLike,
    user_id: IdLike,
    changes: Dict[str, Any],
    locks: Optional[ContainerLocks] = None,
) -> Playlist:
    """
    Apply a partial update that may mix attributes and structure.

    ``parent_id`` present in ``changes`` (even as None) reparents; ``order``
    alone moves the playlist within its current parent. Every change is
    checked before anything is written, and the move and the attributes are
    committed together.

    Raises:
        NotFoundError: If the playlist or the new parent does not exist for this user
        CycleError: If the new parent is the playlist itself or one of its descendants
        InvalidOperationError: On unknown fields or an empty name, icon or color
    """
    user_id = as_uuid(user_id, "User")
    unknown = set(changes) - set(ATTRIBUTE_FIELDS) - set(STRUCTURE_FIELDS)
    if unknown:
        raise InvalidOperationError(
            f"Cannot update {', '.join(sorted(unknown))}",
            details={"fields": sorted(unknown)},
        )
    attributes = {k: v for k, v in changes.items() if k in ATTRIBUTE_FIELDS}
    _check_attributes(attributes)

    order = changes.get("order")
    if "parent_id" not in changes and order is None:
        return await update_attributes(db, playlist_id, user_id, **attributes)

    locks = locks or get_container_locks()
    async with locks.hold(tree_key(user_id)):
        node = get_owned_playlist(db, playlist_id, user_id)
        old_parent_id = node.parent_id
        if "parent_id" in changes:
            new_parent_id = _optional_uuid(changes["parent_id"])
        else:
            new_parent_id = old_parent_id
        _check_reparent(db, node, user_id, new_parent_id)

        async with locks.hold(
            container_key(user_id, old_parent_id), container_key(user_id, new_parent_id)
        ):
            with transaction(db):
                node = _place_node(db, node.id, user_id, old_parent_id, new_parent_id, order)
                for field, value in attributes.items():
                    setattr(node, field, value)

    db.refresh(node)
    changed = f", changed {', '.join(attributes)}" if attributes else ""
    logger.info(
        f"Updated playlist {node.id}: moved from {old_parent_id or 'root'} "
        f"to {new_parent_id or 'root'} at {node.order}{changed}"
    )
    return node


async def delete_node(
    db: Session,
    playlist_id: IdLike,
    user_id: IdLike,
    locks: Optional[ContainerLocks] = None,
) -> Dict[str, bool]:
    """
    Delete a playlist, every playlist below it and all of their tracks.

    The cascade is one transaction; playlists are removed deepest first.
    The parent container is renumbered afterwards.

    Raises:
        NotFoundError: If the playlist does not exist for this user
    """
    user_id = as_uuid(user_id, "User")
    locks = locks or get_container_locks()

    async with locks.hold(tree_key(user_id)):
        node = get_owned_playlist(db, playlist_id, user_id)
        node_id, parent_id = node.id, node.parent_id
        subtree = collect_subtree(db, node_id)

        keys = [container_key(user_id, parent_id)]
        keys.extend(container_key(user_id, pid) for pid in subtree)

        async with locks.hold(*keys):
            with transaction(db):
                removed_tracks = (
                    db.query(PlaylistTrack)
                    .filter(PlaylistTrack.playlist_id.in_(list(subtree)))
                    .delete(synchronize_session=False)
                )
                for depth in sorted(set(subtree.values()), reverse=True):
                    level = [pid for pid, d in subtree.items() if d == depth]
                    db.query(Playlist).filter(Playlist.id.in_(level)).delete(
                        synchronize_session=False
                    )
                renumber(db, user_id, parent_id)

    logger.info(
        f"Deleted playlist {node_id} with {len(subtree) - 1} sub-playlists "
        f"and {removed_tracks} tracks for user {user_id}"
    )
    return {"deleted": True}


async def reorder_container(
    db: Session,
    container_id: Optional[IdLike],
    items: Sequence[ItemRef],
    user_id: IdLike,
    locks: Optional[ContainerLocks] = None,
) -> Dict[str, bool]:
    """
    Give every item of a container a new position.

    ``items`` must list exactly the container's current tracks and child
    playlists, each once; the container then numbers them in that sequence.
    ``container_id`` None reorders the user's root playlists.

    Raises:
        NotFoundError: If the container does not exist for this user
        ReorderMismatchError: If ``items`` is not the container's full contents
    """
    user_id = as_uuid(user_id, "User")
    container_id = _optional_uuid(container_id)
    items = list(items)
    locks = locks or get_container_locks()

    async with locks.hold(container_key(user_id, container_id)):
        with transaction(db):
            if container_id is not None:
                get_owned_playlist(db, container_id, user_id)

            current = {
                ItemRef.of(row): row
                for row in container_items(db, user_id, container_id)
            }
            if len(items) != len(set(items)) or set(items) != set(current):
                missing = [ref.to_dict() for ref in current if ref not in items]
                unexpected = [ref.to_dict() for ref in items if ref not in current]
                logger.warning(
                    f"Rejected reorder of {container_id or 'root'}: "
                    f"{len(missing)} missing, {len(unexpected)} unexpected"
                )
                raise ReorderMismatchError(
                    "Items do not match the playlist's current contents, refresh and try again",
                    details={"missing": missing, "unexpected": unexpected},
                )

            renumber(db, user_id, container_id, [current[ref] for ref in items])

    logger.info(f"Reordered {len(items)} items of {container_id or 'root'}")
    return {"reordered": True}


async def move_track(
    db: Session,
    track_id: IdLike,
    source_playlist_id: IdLike,
    target_playlist_id: IdLike,
    target_order: int,
    user_id: IdLike,
    locks: Optional[ContainerLocks] = None,
) -> Dict[str, bool]:
    """
    Move a track into another playlist at a given position.

    The caller states where it believes the track is; if that is wrong the
    move is rejected instead of taking the track from wherever it really is.

    Raises:
        NotFoundError: If the track or target playlist does not exist for this user
        StaleMoveError: If the track is not in ``source_playlist_id``
    """
    user_id = as_uuid(user_id, "User")
    source_id = as_uuid(source_playlist_id)
    target_id = as_uuid(target_playlist_id)
    locks = locks or get_container_locks()

    async with locks.hold(
        container_key(user_id, source_id), container_key(user_id, target_id)
    ):
        with transaction(db):
            track = get_owned_track(db, track_id, user_id)
            if track.playlist_id != source_id:
                logger.warning(
                    f"Rejected stale move of track {track.id}: "
                    f"in {track.playlist_id}, caller said {source_id}"
                )
                raise StaleMoveError(
                    "Track is no longer in that playlist, refresh and try again",
                    details={"id": str(track.id), "source_playlist_id": str(source_id)},
                )
            get_owned_playlist(db, target_id, user_id)

            if source_id != target_id:
                track.playlist_id = target_id
                db.flush()
                renumber(db, user_id, source_id)
            items = container_items(db, user_id, target_id)
            renumber(db, user_id, target_id, insert_at(items, track, target_order))

    logger.info(f"Moved track {track_id} from {source_id} to {target_id} at {target_order}")
    return {"moved": True}


async def add_track(
    db: Session,
    playlist_id: IdLike,
    spotify_track_id: str,
    user_id: IdLike,
    locks: Optional[ContainerLocks] = None,
) -> PlaylistTrack:
    """
    Append a Spotify track to a playlist.

    Raises:
        NotFoundError: If the playlist does not exist for this user
    """
    user_id = as_uuid(user_id, "User")
    playlist_id = as_uuid(playlist_id)
    if not spotify_track_id:
        raise InvalidOperationError("Spotify track id is required")
    locks = locks or get_container_locks()

    async with locks.hold(container_key(user_id, playlist_id)):
        with transaction(db):
            get_owned_playlist(db, playlist_id, user_id)
            track = PlaylistTrack(
                playlist_id=playlist_id,
                spotify_track_id=spotify_track_id,
                order=next_order(db, user_id, playlist_id),
            )
            db.add(track)

    db.refresh(track)
    logger.info(f"Added track {spotify_track_id} to playlist {playlist_id} at {track.order}")
    return track


async def remove_track(
    db: Session,
    track_id: IdLike,
    user_id: IdLike,
    playlist_id: Optional[IdLike] = None,
    locks: Optional[ContainerLocks] = None,
) -> Dict[str, bool]:
    """
    Remove one track occurrence and close the gap it leaves.

    When ``playlist_id`` is given the track must be directly in it.

    Raises:
        NotFoundError: If the track does not exist for this user (or not in ``playlist_id``)
    """
    user_id = as_uuid(user_id, "User")
    locks = locks or get_container_locks()

    track = get_owned_track(db, track_id, user_id)
    container_id = track.playlist_id
    if playlist_id is not None and as_uuid(playlist_id) != container_id:
        raise NotFoundError("Track not found", details={"id": str(track_id)})

    async with locks.hold(container_key(user_id, container_id)):
        with transaction(db):
            track = get_owned_track(db, track_id, user_id)
            if track.playlist_id != container_id:
                raise ConflictError("Track was moved concurrently, refresh and try again")
            db.delete(track)
            db.flush()
            renumber(db, user_id, container_id)

    logger.info(f"Removed track {track_id} from playlist {container_id}")
    return {"removed": True}


def container_refs(db: Session, container_id: Optional[IdLike], user_id: IdLike) -> List[ItemRef]:
    """Return the refs of a container's items in their current order."""
    user_id = as_uuid(user_id, "User")
    container_id = _optional_uuid(container_id)
    if container_id is not None:
        get_owned_playlist(db, container_id, user_id)
    return [ItemRef.of(row) for row in container_items(db, user_id, container_id)]
