"""
Tagged references to the two kinds of items a container holds.

Tracks and child playlists share one order space inside a container, so
every place that walks or rewrites a container handles both kinds through
``ItemRef`` and dispatches on ``ItemKind``.
"""

import enum
import uuid
from dataclasses import dataclass
from typing import Iterable, List, Sequence, Union

from nestify.db.models import Playlist, PlaylistTrack


class ItemKind(str, enum.Enum):
    """Kind of an item inside a container."""

    TRACK = "track"
    PLAYLIST = "playlist"


@dataclass(frozen=True)
class ItemRef:
    """Identity of one direct item of a container."""

    kind: ItemKind
    id: uuid.UUID

    @classmethod
    def of(cls, row: Union[Playlist, PlaylistTrack]) -> "ItemRef":
        if isinstance(row, PlaylistTrack):
            return cls(ItemKind.TRACK, row.id)
        if isinstance(row, Playlist):
            return cls(ItemKind.PLAYLIST, row.id)
        raise TypeError(f"Not a container item: {row!r}")

    @classmethod
    def parse(cls, kind: str, item_id: Union[str, uuid.UUID]) -> "ItemRef":
        if not isinstance(item_id, uuid.UUID):
            item_id = uuid.UUID(str(item_id))
        return cls(ItemKind(kind), item_id)

    def to_dict(self) -> dict:
        return {"type": self.kind.value, "id": str(self.id)}


ContainerRow = Union[Playlist, PlaylistTrack]


def sort_items(
    children: Iterable[Playlist], tracks: Iterable[PlaylistTrack]
) -> List[ContainerRow]:
    """
    Merge child playlists and tracks into the container's display order.

    Ties (only possible on data written before renumbering existed) put
    playlists first and then fall back to id, so the result is always
    deterministic.
    """
    keyed = [(row.order, 0, str(row.id), row) for row in children]
    keyed.extend((row.order, 1, str(row.id), row) for row in tracks)
    keyed.sort(key=lambda entry: entry[:3])
    return [entry[3] for entry in keyed]


def refs_of(rows: Sequence[ContainerRow]) -> List[ItemRef]:
    return [ItemRef.of(row) for row in rows]
