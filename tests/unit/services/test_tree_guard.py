"""Unit tests for tree invariant checks and order maintenance."""

import uuid

import pytest

from nestify.core.exceptions import InvalidOperationError
from nestify.services.tree.guard import (
    can_reparent,
    container_items,
    insert_at,
    is_descendant,
    load_parent_map,
    next_order,
    renumber,
)
from nestify.services.tree.items import ItemKind, ItemRef, refs_of


@pytest.fixture
def chain():
    """Parent map of root -> a -> b -> c plus an unrelated root."""
    root, a, b, c, other = (uuid.uuid4() for _ in range(5))
    parent_of = {root: None, a: root, b: a, c: b, other: None}
    return parent_of, root, a, b, c, other


class TestCycleChecks:
    """Tests for is_descendant and can_reparent."""

    def test_node_is_its_own_descendant(self, chain):
        parent_of, root, *_ = chain
        assert is_descendant(parent_of, root, root)

    def test_deep_descendant(self, chain):
        parent_of, root, a, b, c, other = chain
        assert is_descendant(parent_of, root, c)
        assert is_descendant(parent_of, a, c)
        assert not is_descendant(parent_of, c, root)
        assert not is_descendant(parent_of, root, other)

    def test_none_is_never_a_descendant(self, chain):
        parent_of, root, *_ = chain
        assert not is_descendant(parent_of, root, None)

    def test_corrupt_cycle_counts_as_related(self):
        x, y, z = uuid.uuid4(), uuid.uuid4(), uuid.uuid4()
        parent_of = {x: y, y: x}
        assert is_descendant(parent_of, z, x)

    def test_self_parent_rejected(self, chain):
        parent_of, root, *_ = chain
        assert not can_reparent(parent_of, root, root)

    def test_move_under_descendant_rejected(self, chain):
        parent_of, root, a, b, c, other = chain
        assert not can_reparent(parent_of, root, c)
        assert not can_reparent(parent_of, a, b)

    def test_allowed_moves(self, chain):
        parent_of, root, a, b, c, other = chain
        assert can_reparent(parent_of, c, root)
        assert can_reparent(parent_of, a, other)
        assert can_reparent(parent_of, b, None)


class TestInsertAt:
    """Tests for placing one item inside a container sequence."""

    def test_insert_moves_existing_item(self):
        items = ["x", "y", "z"]
        assert insert_at(items, "z", 0) == ["z", "x", "y"]

    def test_missing_position_appends(self):
        assert insert_at(["x", "y"], "n", None) == ["x", "y", "n"]

    def test_position_past_end_is_clamped(self):
        assert insert_at(["x", "y"], "n", 10) == ["x", "y", "n"]

    def test_negative_position_rejected(self):
        with pytest.raises(InvalidOperationError):
            insert_at(["x"], "n", -1)


class TestContainerOrder:
    """Tests for reading and renumbering containers."""

    def test_items_interleave_tracks_and_playlists(
        self, db_session, test_user, add_playlist, add_track
    ):
        root = add_playlist("Root")
        t0 = add_track(root, "t0", order=0)
        child = add_playlist("Child", parent=root, order=1)
        t2 = add_track(root, "t2", order=2)

        refs = refs_of(container_items(db_session, test_user.id, root.id))

        assert refs == [
            ItemRef(ItemKind.TRACK, t0.id),
            ItemRef(ItemKind.PLAYLIST, child.id),
            ItemRef(ItemKind.TRACK, t2.id),
        ]

    def test_ties_put_playlists_first(self, db_session, test_user, add_playlist, add_track):
        root = add_playlist("Root")
        track = add_track(root, "t", order=0)
        child = add_playlist("Child", parent=root, order=0)

        rows = container_items(db_session, test_user.id, root.id)

        assert [row.id for row in rows] == [child.id, track.id]

    def test_root_level_holds_only_own_playlists(
        self, db_session, test_user, other_user, add_playlist
    ):
        mine = add_playlist("Mine")
        add_playlist("Theirs", user=other_user)

        rows = container_items(db_session, test_user.id, None)

        assert [row.id for row in rows] == [mine.id]

    def test_next_order_counts_both_kinds(self, db_session, test_user, add_playlist, add_track):
        root = add_playlist("Root")
        add_playlist("Child", parent=root, order=0)
        add_track(root, "t", order=1)

        assert next_order(db_session, test_user.id, root.id) == 2
        assert next_order(db_session, test_user.id, None) == 1

    def test_renumber_closes_gaps(self, db_session, test_user, add_playlist, add_track):
        root = add_playlist("Root")
        add_track(root, "a", order=3)
        add_playlist("Child", parent=root, order=7)
        add_track(root, "b", order=12)

        rows = renumber(db_session, test_user.id, root.id)
        db_session.commit()

        assert [row.order for row in rows] == [0, 1, 2]
        assert [row.order for row in container_items(db_session, test_user.id, root.id)] == [
            0,
            1,
            2,
        ]

    def test_load_parent_map(self, db_session, test_user, add_playlist):
        root = add_playlist("Root")
        child = add_playlist("Child", parent=root)

        assert load_parent_map(db_session, test_user.id) == {root.id: None, child.id: root.id}
