"""Unit tests for the client-side shadow state."""

import uuid
from unittest.mock import AsyncMock

import pytest

from nestify.client.shadow import (
    ShadowState,
    containers_from_server,
    find_node,
    load_containers,
)
from nestify.services.tree.items import ItemKind, ItemRef


@pytest.fixture
def ids():
    return {name: uuid.uuid4() for name in ("root", "a", "b", "t1", "t2", "t3")}


@pytest.fixture
def server_tree(ids):
    """Tree and track payloads as the API returns them."""
    root = {
        "id": str(ids["root"]),
        "order": 0,
        "children": [
            {"id": str(ids["b"]), "order": 2, "children": []},
            {"id": str(ids["a"]), "order": 0, "children": []},
        ],
    }
    tracks = [
        {"id": str(ids["t1"]), "playlist_id": str(ids["a"]), "order": 0},
        {"id": str(ids["t2"]), "playlist_id": str(ids["root"]), "order": 1},
        {"id": str(ids["t3"]), "playlist_id": str(ids["root"]), "order": 2},
    ]
    return root, tracks


class TestContainersFromServer:
    def test_interleaves_by_order(self, ids, server_tree):
        containers = containers_from_server(*server_tree)

        assert containers[ids["root"]] == (
            ItemRef(ItemKind.PLAYLIST, ids["a"]),
            ItemRef(ItemKind.TRACK, ids["t2"]),
            ItemRef(ItemKind.PLAYLIST, ids["b"]),
            ItemRef(ItemKind.TRACK, ids["t3"]),
        )
        assert containers[ids["a"]] == (ItemRef(ItemKind.TRACK, ids["t1"]),)
        assert containers[ids["b"]] == ()

    def test_find_node(self, ids, server_tree):
        root, _ = server_tree
        assert find_node([root], ids["b"])["order"] == 2
        assert find_node([root], uuid.uuid4()) is None

    @pytest.mark.asyncio
    async def test_load_containers(self, ids, server_tree):
        root, tracks = server_tree
        api = AsyncMock()
        api.get_tree.return_value = [root]
        api.get_tracks.return_value = tracks

        containers = await load_containers(api, ids["root"])

        api.get_tracks.assert_awaited_once_with(ids["root"])
        assert set(containers) == {ids["root"], ids["a"], ids["b"]}


class TestShadowState:
    @pytest.fixture
    def shadow(self, ids, server_tree):
        return ShadowState(containers_from_server(*server_tree))

    def test_starts_confirmed(self, shadow):
        assert not shadow.is_speculative
        assert shadow.current == shadow.confirmed
        assert shadow.version == 0

    def test_place_moves_between_containers(self, ids, shadow):
        t2 = ItemRef(ItemKind.TRACK, ids["t2"])

        shadow.place(t2, ids["b"], 0)

        assert shadow.is_speculative
        assert shadow.container_of(t2) == ids["b"]
        assert t2 not in shadow.items(ids["root"])
        assert shadow.items(ids["b"]) == (t2,)
        assert shadow.confirmed[ids["root"]][1] == t2
        assert shadow.version == 1

    def test_place_out_of_range_appends(self, ids, shadow):
        t1 = ItemRef(ItemKind.TRACK, ids["t1"])

        shadow.place(t1, ids["root"], 99)

        assert shadow.items(ids["root"])[-1] == t1

    def test_rollback_restores_confirmed(self, ids, shadow):
        t2 = ItemRef(ItemKind.TRACK, ids["t2"])
        before = shadow.confirmed
        shadow.place(t2, ids["b"], 0)

        shadow.rollback()

        assert not shadow.is_speculative
        assert shadow.current == before
        assert shadow.container_of(t2) == ids["root"]

    def test_replace_supersedes_patch(self, ids, shadow):
        t2 = ItemRef(ItemKind.TRACK, ids["t2"])
        shadow.place(t2, ids["b"], 0)
        fresh = {ids["b"]: [t2]}

        shadow.replace(fresh)

        assert not shadow.is_speculative
        assert shadow.current == {ids["b"]: (t2,)}

    def test_unknown_item(self, shadow):
        with pytest.raises(KeyError):
            shadow.container_of(ItemRef(ItemKind.TRACK, uuid.uuid4()))
