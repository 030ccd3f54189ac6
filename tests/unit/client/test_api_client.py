"""Unit tests for the async playlist API client."""

import json
import uuid

import httpx
import pytest

from nestify.client.api import NestifyApiClient
from nestify.core.exceptions import CycleError, NestifyError, StaleMoveError
from nestify.services.tree.items import ItemKind, ItemRef


def make_client(handler):
    return NestifyApiClient(
        "http://nestify.test/", "token", transport=httpx.MockTransport(handler)
    )


class TestRequests:
    @pytest.mark.asyncio
    async def test_reorder_sends_full_item_list(self):
        seen = {}
        container_id = uuid.uuid4()
        refs = [ItemRef(ItemKind.TRACK, uuid.uuid4()), ItemRef(ItemKind.PLAYLIST, uuid.uuid4())]

        def handler(request):
            seen["method"] = request.method
            seen["path"] = request.url.path
            seen["auth"] = request.headers["Authorization"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"reordered": True})

        result = await make_client(handler).reorder_items(container_id, refs)

        assert result == {"reordered": True}
        assert seen["method"] == "PATCH"
        assert seen["path"] == f"/api/playlists/{container_id}/items/reorder"
        assert seen["auth"] == "Bearer token"
        assert seen["body"] == {"items": [ref.to_dict() for ref in refs]}

    @pytest.mark.asyncio
    async def test_root_reorder_path(self):
        paths = []

        def handler(request):
            paths.append(request.url.path)
            return httpx.Response(200, json={"reordered": True})

        await make_client(handler).reorder_items(None, [])

        assert paths == ["/api/playlists/items/reorder"]

    @pytest.mark.asyncio
    async def test_move_track(self):
        seen = {}
        source, track, target = uuid.uuid4(), uuid.uuid4(), uuid.uuid4()

        def handler(request):
            seen["path"] = request.url.path
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"moved": True})

        await make_client(handler).move_track(source, track, target, 2)

        assert seen["path"] == f"/api/playlists/{source}/tracks/{track}/move"
        assert seen["body"] == {"target_playlist_id": str(target), "order": 2}

    @pytest.mark.asyncio
    async def test_reparent_to_root(self):
        seen = {}
        playlist = uuid.uuid4()

        def handler(request):
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"id": str(playlist)})

        await make_client(handler).reparent(playlist, None)

        assert seen["body"] == {"parent_id": None, "order": None}


class TestErrors:
    @pytest.mark.asyncio
    async def test_error_kind_is_rebuilt(self):
        def handler(request):
            return httpx.Response(400, json={"detail": "Cannot move", "kind": "cycle"})

        with pytest.raises(CycleError, match="Cannot move"):
            await make_client(handler).reparent(uuid.uuid4(), uuid.uuid4())

    @pytest.mark.asyncio
    async def test_stale_move(self):
        def handler(request):
            return httpx.Response(404, json={"detail": "Stale", "kind": "stale_move"})

        with pytest.raises(StaleMoveError):
            await make_client(handler).move_track(uuid.uuid4(), uuid.uuid4(), uuid.uuid4(), 0)

    @pytest.mark.asyncio
    async def test_network_failure(self):
        def handler(request):
            raise httpx.ConnectError("unreachable", request=request)

        with pytest.raises(NestifyError, match="Network error"):
            await make_client(handler).get_tree()

    @pytest.mark.asyncio
    async def test_non_json_error_body(self):
        def handler(request):
            return httpx.Response(500, text="Internal Server Error")

        with pytest.raises(NestifyError, match="Request failed"):
            await make_client(handler).get_tree()
