"""
Drag-and-drop controller for the playlist detail view.

A gesture moves through three phases: idle, dragging and committing.
Drag-over only patches the shadow state. Drop sends the mutation calls, then
either installs a fresh server state or throws the patch away. Failed drops
are never retried.
"""

import enum
import logging
import uuid
from dataclasses import dataclass
from functools import partial
from typing import Awaitable, Callable, Optional

from nestify.client.api import NestifyApiClient
from nestify.client.shadow import ContainerId, ContainerItems, ShadowState, load_containers
from nestify.core.exceptions import InvalidOperationError, NestifyError
from nestify.services.tree.items import ItemKind, ItemRef

logger = logging.getLogger(__name__)

Refresh = Callable[[], Awaitable[ContainerItems]]

ERROR_MESSAGES = {
    "cycle": "A playlist cannot be moved into itself or one of its sub-playlists.",
    "stale_move": "This playlist was changed elsewhere. Reload and try again.",
    "reorder_mismatch": "This playlist was changed elsewhere. Reload and try again.",
    "conflict": "Another change is still being saved. Try again.",
    "not_found": "This item no longer exists.",
}


class DragPhase(str, enum.Enum):
    IDLE = "idle"
    DRAGGING = "dragging"
    COMMITTING = "committing"


@dataclass(frozen=True)
class DropResult:
    """Outcome of a drop."""

    committed: bool
    error: Optional[NestifyError] = None

    @property
    def message(self) -> Optional[str]:
        if self.error is None:
            return None
        return ERROR_MESSAGES.get(self.error.kind, "Could not save your changes.")


class DragController:
    """Turns drag gestures into shadow patches and API calls."""

    def __init__(self, api: NestifyApiClient, shadow: ShadowState, refresh: Refresh):
        self.api = api
        self.shadow = shadow
        self.refresh = refresh
        self.phase = DragPhase.IDLE
        self.item: Optional[ItemRef] = None
        self.source_container_id: ContainerId = None
        self._gesture = 0

    @classmethod
    async def for_playlist(cls, api: NestifyApiClient, playlist_id: uuid.UUID) -> "DragController":
        """Create a controller for one playlist view, loaded from the server."""
        refresh = partial(load_containers, api, playlist_id)
        shadow = ShadowState(await refresh())
        return cls(api, shadow, refresh)

    def drag_start(self, item: ItemRef) -> None:
        """
        Start dragging an item.

        The source container is read once, here. Later drag-over patches do
        not change it.

        Raises:
            KeyError: If the item is not in the shadow state
        """
        source = self.shadow.container_of(item)
        self._gesture += 1
        self.item = item
        self.source_container_id = source
        self.phase = DragPhase.DRAGGING
        logger.debug(f"Drag {self._gesture} started: {item.kind.value} {item.id} from {source}")

    def drag_over(self, container_id: ContainerId, index: Optional[int] = None) -> bool:
        """
        Show the dragged item inside another container.

        Returns True if the shadow state was patched. No network calls are made.
        """
        if self.phase is not DragPhase.DRAGGING:
            return False
        if self.shadow.container_of(self.item) == container_id:
            return False
        self.shadow.place(self.item, container_id, index)
        return True

    def drag_cancel(self) -> None:
        if self.phase is not DragPhase.DRAGGING:
            return
        self.shadow.rollback()
        self._finish(self._gesture)

    async def drop(self, container_id: ContainerId, index: Optional[int] = None) -> DropResult:
        """
        Drop the dragged item at ``index`` in a container and commit it.

        A drop back into the source container sends one reorder. A drop into
        another container first moves the item there (``move_track`` for
        tracks, ``reparent`` for playlists), then sends the destination's full
        order. Any failure discards the shadow patch and ends the gesture;
        success replaces the shadow state with a fresh copy from the server.

        Raises:
            RuntimeError: If no drag is in progress
            Exception: Errors other than ``NestifyError`` are re-raised after rollback
        """
        if self.phase is not DragPhase.DRAGGING:
            raise RuntimeError("No drag in progress")

        item, source = self.item, self.source_container_id
        gesture = self._gesture
        self.phase = DragPhase.COMMITTING

        if index is not None or self.shadow.container_of(item) != container_id:
            self.shadow.place(item, container_id, index)
        final = self.shadow.items(container_id)

        if container_id == source and final == self.shadow.confirmed.get(container_id, ()):
            self.shadow.rollback()
            self._finish(gesture)
            return DropResult(committed=False)

        try:
            if container_id != source:
                position = final.index(item)
                if item.kind is ItemKind.TRACK:
                    if container_id is None:
                        raise InvalidOperationError("Tracks must belong to a playlist")
                    await self.api.move_track(source, item.id, container_id, position)
                else:
                    await self.api.reparent(item.id, container_id, position)
            await self.api.reorder_items(container_id, final)
            confirmed = await self.refresh()
        except NestifyError as e:
            logger.warning(f"Drop of {item.kind.value} {item.id} failed, rolling back: {e}")
            self.shadow.rollback()
            self._finish(gesture)
            return DropResult(committed=False, error=e)
        except Exception:
            logger.exception(f"Drop of {item.kind.value} {item.id} failed unexpectedly")
            self.shadow.rollback()
            self._finish(gesture)
            raise

        self.shadow.replace(confirmed)
        self._finish(gesture)
        return DropResult(committed=True)

    def _finish(self, gesture: int) -> None:
        # A newer gesture may have started while this one was committing.
        if gesture != self._gesture:
            return
        self.phase = DragPhase.IDLE
        self.item = None
        self.source_container_id = None
