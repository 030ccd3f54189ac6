"""
Client-side optimistic reconciliation for drag-and-drop edits.
"""

from nestify.client.api import NestifyApiClient
from nestify.client.drag import DragController, DragPhase, DropResult
from nestify.client.shadow import ShadowState, containers_from_server, load_containers

__all__ = [
    "NestifyApiClient",
    "DragController",
    "DragPhase",
    "DropResult",
    "ShadowState",
    "containers_from_server",
    "load_containers",
]
