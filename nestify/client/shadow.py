"""
Client-side shadow copy of container contents.

A ``ShadowState`` always holds the last server-confirmed mapping of
container id to ordered items, and at most one speculative patch on top of
it. Nothing is merged: a rollback drops the patch, and a refresh replaces
the confirmed mapping outright.
"""

import logging
import uuid
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from nestify.client.api import NestifyApiClient
from nestify.services.tree.items import ItemKind, ItemRef

logger = logging.getLogger(__name__)

ContainerId = Optional[uuid.UUID]
ContainerItems = Dict[ContainerId, Tuple[ItemRef, ...]]


def _freeze(containers: Mapping[ContainerId, Iterable[ItemRef]]) -> ContainerItems:
    return {container_id: tuple(items) for container_id, items in containers.items()}


def find_node(forest: Sequence[Mapping[str, Any]], playlist_id: uuid.UUID) -> Optional[Mapping[str, Any]]:
    """Find a playlist in a nested tree response."""
    stack = list(forest)
    while stack:
        node = stack.pop()
        if uuid.UUID(str(node["id"])) == playlist_id:
            return node
        stack.extend(node.get("children", ()))
    return None


def containers_from_server(
    root: Mapping[str, Any], tracks: Iterable[Mapping[str, Any]]
) -> ContainerItems:
    """
    Build the container mapping for a playlist and everything under it.

    ``root`` is one node of the tree response and ``tracks`` the linearized
    track list of the same playlist. Items are ordered the way the server
    orders them: by order, playlists before tracks on a tie, then by id.
    """
    keyed: Dict[uuid.UUID, List[tuple]] = {}

    stack = [root]
    while stack:
        node = stack.pop()
        node_id = uuid.UUID(str(node["id"]))
        keyed.setdefault(node_id, [])
        for child in node.get("children", ()):
            child_id = uuid.UUID(str(child["id"]))
            keyed[node_id].append(
                (child["order"], 0, str(child_id), ItemRef(ItemKind.PLAYLIST, child_id))
            )
            stack.append(child)

    for track in tracks:
        playlist_id = uuid.UUID(str(track["playlist_id"]))
        track_id = uuid.UUID(str(track["id"]))
        keyed.setdefault(playlist_id, []).append(
            (track["order"], 1, str(track_id), ItemRef(ItemKind.TRACK, track_id))
        )

    containers: ContainerItems = {}
    for container_id, entries in keyed.items():
        entries.sort(key=lambda entry: entry[:3])
        containers[container_id] = tuple(entry[3] for entry in entries)
    return containers


async def load_containers(api: NestifyApiClient, playlist_id: uuid.UUID) -> ContainerItems:
    """Fetch the authoritative container mapping for a playlist view."""
    forest = await api.get_tree()
    root = find_node(forest, playlist_id)
    if root is None:
        return {}
    tracks = await api.get_tracks(playlist_id)
    return containers_from_server(root, tracks)


class ShadowState:
    """Versioned snapshot of container contents."""

    def __init__(self, confirmed: Mapping[ContainerId, Iterable[ItemRef]] = None):
        self._confirmed: ContainerItems = _freeze(confirmed or {})
        self._speculative: Optional[ContainerItems] = None
        self.version = 0

    @property
    def is_speculative(self) -> bool:
        return self._speculative is not None

    @property
    def confirmed(self) -> ContainerItems:
        return dict(self._confirmed)

    @property
    def current(self) -> ContainerItems:
        """The mapping the UI renders: the patch if there is one, else the server state."""
        return dict(self._speculative if self._speculative is not None else self._confirmed)

    def items(self, container_id: ContainerId) -> Tuple[ItemRef, ...]:
        return self.current.get(container_id, ())

    def container_of(self, item: ItemRef) -> ContainerId:
        """
        Get the container currently holding an item.

        Raises:
            KeyError: If no container holds the item
        """
        for container_id, items in self.current.items():
            if item in items:
                return container_id
        raise KeyError(item)

    def patch(self, containers: Mapping[ContainerId, Iterable[ItemRef]]) -> None:
        """Replace the speculative mapping."""
        self._speculative = _freeze(containers)
        self.version += 1

    def place(self, item: ItemRef, container_id: ContainerId, index: Optional[int] = None) -> None:
        """
        Speculatively put an item at ``index`` in a container.

        The item is taken out of wherever it currently is first. A missing or
        out of range index appends.
        """
        containers = {
            cid: [ref for ref in items if ref != item]
            for cid, items in self.current.items()
        }
        target = containers.setdefault(container_id, [])
        if index is None or index > len(target):
            index = len(target)
        target.insert(max(index, 0), item)
        self.patch(containers)

    def rollback(self) -> None:
        """Discard the speculative patch, falling back to the confirmed state."""
        if self._speculative is not None:
            logger.info(f"Discarding speculative shadow state at version {self.version}")
        self._speculative = None
        self.version += 1

    def replace(self, confirmed: Mapping[ContainerId, Iterable[ItemRef]]) -> None:
        """Install a fresh server-confirmed mapping and drop any patch."""
        self._confirmed = _freeze(confirmed)
        self._speculative = None
        self.version += 1
