"""Randomized operation sequences checked against the tree invariants."""

import asyncio
import random

import pytest

from nestify.core.exceptions import CycleError, StaleMoveError
from nestify.db.models import Playlist, PlaylistTrack
from nestify.services.tree import (
    ItemKind,
    ItemRef,
    add_track,
    container_refs,
    create_node,
    delete_node,
    linearize,
    move_track,
    remove_track,
    reorder_container,
    reparent_node,
)
from nestify.services.tree.guard import container_items, is_descendant, load_parent_map


def assert_dense_orders(db, user_id):
    """Every container numbers its items exactly 0..n-1."""
    containers = [None] + [
        row.id for row in db.query(Playlist.id).filter(Playlist.user_id == user_id)
    ]
    for container_id in containers:
        orders = sorted(row.order for row in container_items(db, user_id, container_id))
        assert orders == list(range(len(orders))), f"container {container_id}: {orders}"


def assert_acyclic(db, user_id):
    parent_of = load_parent_map(db, user_id)
    for node_id, parent_id in parent_of.items():
        if parent_id is not None:
            assert not is_descendant(parent_of, node_id, parent_id)


def subtree_of(parent_of, root_id):
    return {node_id for node_id in parent_of if is_descendant(parent_of, root_id, node_id)}


ACTIONS = [
    "create",
    "create",
    "add",
    "add",
    "reparent",
    "move",
    "reorder",
    "remove",
    "delete",
]


async def random_step(rng, db, user_id, locks):
    playlists = [
        row.id for row in db.query(Playlist.id).filter(Playlist.user_id == user_id)
    ]
    tracks = [
        (row.id, row.playlist_id)
        for row in db.query(PlaylistTrack.id, PlaylistTrack.playlist_id)
    ]
    action = rng.choice(ACTIONS)

    if action == "create" or not playlists:
        parent = rng.choice(playlists + [None]) if playlists else None
        name = f"P{rng.randint(0, 999)}"
        await create_node(db, user_id, name, parent_id=parent, locks=locks)

    elif action == "add":
        spotify_id = f"sp{rng.randint(0, 50)}"
        await add_track(db, rng.choice(playlists), spotify_id, user_id, locks=locks)

    elif action == "reparent":
        node = rng.choice(playlists)
        parent = rng.choice(playlists + [None])
        order = rng.choice([None, 0, 1, 5])
        parent_of = load_parent_map(db, user_id)
        expect_cycle = parent is not None and is_descendant(parent_of, node, parent)
        if expect_cycle:
            with pytest.raises(CycleError):
                await reparent_node(db, node, user_id, parent, order, locks=locks)
            assert load_parent_map(db, user_id) == parent_of
        else:
            await reparent_node(db, node, user_id, parent, order, locks=locks)
        assert_acyclic(db, user_id)

    elif action == "move" and tracks:
        track_id, source = rng.choice(tracks)
        target = rng.choice(playlists)
        order = rng.randint(0, 4)
        await move_track(db, track_id, source, target, order, user_id, locks=locks)

    elif action == "reorder":
        container = rng.choice(playlists + [None])
        refs = container_refs(db, container, user_id)
        rng.shuffle(refs)
        await reorder_container(db, container, refs, user_id, locks=locks)

    elif action == "remove" and tracks:
        track_id, _ = rng.choice(tracks)
        await remove_track(db, track_id, user_id, locks=locks)

    elif action == "delete" and len(playlists) > 3:
        node = rng.choice(playlists)
        parent_of = load_parent_map(db, user_id)
        doomed = subtree_of(parent_of, node)
        expected_playlists = set(parent_of) - doomed
        expected_tracks = {tid for tid, pid in tracks if pid not in doomed}

        await delete_node(db, node, user_id, locks=locks)

        assert set(load_parent_map(db, user_id)) == expected_playlists
        assert {row.id for row in db.query(PlaylistTrack.id)} == expected_tracks


class TestInvariants:
    """Invariants hold after every step of random operation sequences."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("seed", [1, 7, 42, 2024])
    async def test_random_sequences(self, db_session, test_user, locks, seed):
        rng = random.Random(seed)
        user_id = test_user.id

        for _ in range(60):
            await random_step(rng, db_session, user_id, locks)
            assert_dense_orders(db_session, user_id)
            assert_acyclic(db_session, user_id)

        for root in container_refs(db_session, None, user_id):
            first = await linearize(db_session, root.id, user_id)
            second = await linearize(db_session, root.id, user_id)
            assert [item.track.id for item in first] == [item.track.id for item in second]


class TestConcurrentMutations:
    """Mutations issued together on one container are serialized."""

    @pytest.mark.asyncio
    async def test_concurrent_adds_get_distinct_orders(self, db_session, test_user, locks):
        playlist = await create_node(db_session, test_user.id, "P", locks=locks)

        await asyncio.gather(
            *(
                add_track(db_session, playlist.id, f"t{i}", test_user.id, locks=locks)
                for i in range(8)
            )
        )

        assert_dense_orders(db_session, test_user.id)
        assert len(container_refs(db_session, playlist.id, test_user.id)) == 8

    @pytest.mark.asyncio
    async def test_concurrent_move_and_reorder(self, db_session, test_user, locks):
        source = await create_node(db_session, test_user.id, "Source", locks=locks)
        target = await create_node(db_session, test_user.id, "Target", locks=locks)
        moving = await add_track(db_session, source.id, "moving", test_user.id, locks=locks)
        resident = await add_track(db_session, target.id, "resident", test_user.id, locks=locks)
        stale_refs = [ItemRef(ItemKind.TRACK, resident.id)]

        results = await asyncio.gather(
            move_track(db_session, moving.id, source.id, target.id, 0, test_user.id, locks=locks),
            reorder_container(db_session, target.id, stale_refs, test_user.id, locks=locks),
            return_exceptions=True,
        )

        # Whichever runs second sees the other one's committed state.
        assert results[0] == {"moved": True}
        assert_dense_orders(db_session, test_user.id)
        assert db_session.get(PlaylistTrack, moving.id).playlist_id == target.id

    @pytest.mark.asyncio
    async def test_concurrent_duplicate_moves(self, db_session, test_user, locks):
        a = await create_node(db_session, test_user.id, "A", locks=locks)
        b = await create_node(db_session, test_user.id, "B", locks=locks)
        track = await add_track(db_session, a.id, "t", test_user.id, locks=locks)

        results = await asyncio.gather(
            move_track(db_session, track.id, a.id, b.id, 0, test_user.id, locks=locks),
            move_track(db_session, track.id, a.id, b.id, 0, test_user.id, locks=locks),
            return_exceptions=True,
        )

        assert results.count({"moved": True}) == 1
        assert sum(isinstance(result, StaleMoveError) for result in results) == 1
        assert_dense_orders(db_session, test_user.id)
