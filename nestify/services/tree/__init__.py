"""
Playlist tree engine: invariant guard, linearizer and mutations.
"""

from nestify.services.tree.items import ItemKind, ItemRef
from nestify.services.tree.linearizer import LinearizedTrack, linearize
from nestify.services.tree.mutations import (
    add_track,
    container_refs,
    create_node,
    delete_node,
    move_track,
    remove_track,
    rename_node,
    reorder_container,
    reparent_node,
    update_attributes,
    update_node,
)
from nestify.services.tree.queries import get_node, get_tree

__all__ = [
    "ItemKind",
    "ItemRef",
    "LinearizedTrack",
    "linearize",
    "add_track",
    "container_refs",
    "create_node",
    "delete_node",
    "move_track",
    "remove_track",
    "rename_node",
    "reorder_container",
    "reparent_node",
    "update_attributes",
    "update_node",
    "get_node",
    "get_tree",
]
