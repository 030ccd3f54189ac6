"""
Depth-first flattening of a playlist subtree into one track sequence.

At every container the direct tracks and child playlists are visited
together in ascending shared order; entering a child playlist emits its
whole subtree before moving on to the next sibling. This is the order used
for playback and for export, so a track placed between two sub-playlists
plays between their contents.
"""

import uuid
from collections import defaultdict
from dataclasses import dataclass
from typing import Dict, Iterator, List, Mapping, Sequence

from sqlalchemy import select
from sqlalchemy.orm import Session

from nestify.db.models import Playlist, PlaylistTrack
from nestify.services.tree.items import ItemKind, ItemRef, sort_items
from nestify.services.tree.queries import IdLike, get_owned_playlist, subtree_select


@dataclass(frozen=True)
class LinearizedTrack:
    """A track reached from the root, with the name of the playlist that directly holds it."""

    track: PlaylistTrack
    source_playlist_name: str


def linearize_rows(
    root_id: uuid.UUID,
    children_of: Mapping[uuid.UUID, Sequence[Playlist]],
    tracks_of: Mapping[uuid.UUID, Sequence[PlaylistTrack]],
    names: Mapping[uuid.UUID, str],
) -> List[LinearizedTrack]:
    """
    Walk preloaded containers from ``root_id`` in pre-order.

    Uses an explicit stack so arbitrarily deep trees do not hit the
    recursion limit.
    """

    def items_of(container_id: uuid.UUID) -> Iterator:
        return iter(
            sort_items(children_of.get(container_id, ()), tracks_of.get(container_id, ()))
        )

    ordered: List[LinearizedTrack] = []
    stack = [items_of(root_id)]
    while stack:
        row = next(stack[-1], None)
        if row is None:
            stack.pop()
            continue

        kind = ItemRef.of(row).kind
        if kind is ItemKind.TRACK:
            ordered.append(LinearizedTrack(row, names.get(row.playlist_id, "")))
        elif kind is ItemKind.PLAYLIST:
            stack.append(items_of(row.id))
        else:
            raise AssertionError(f"Unhandled item kind: {kind}")

    return ordered


async def linearize(db: Session, root_id: IdLike, user_id: IdLike) -> List[LinearizedTrack]:
    """
    Get every track under a playlist, including those of nested playlists.

    The result is computed fresh from the store on each call.

    Raises:
        NotFoundError: If the playlist does not exist or belongs to someone else
    """
    root = get_owned_playlist(db, root_id, user_id)

    subtree = subtree_select(root.id).subquery()
    playlists = db.query(Playlist).filter(Playlist.id.in_(select(subtree.c.id))).all()
    tracks = (
        db.query(PlaylistTrack)
        .filter(PlaylistTrack.playlist_id.in_(select(subtree.c.id)))
        .all()
    )

    children_of: Dict[uuid.UUID, List[Playlist]] = defaultdict(list)
    names: Dict[uuid.UUID, str] = {}
    for playlist in playlists:
        names[playlist.id] = playlist.name
        if playlist.id != root.id:
            children_of[playlist.parent_id].append(playlist)

    tracks_of: Dict[uuid.UUID, List[PlaylistTrack]] = defaultdict(list)
    for track in tracks:
        tracks_of[track.playlist_id].append(track)

    return linearize_rows(root.id, children_of, tracks_of, names)
