"""
Unit tests for Playlist.
"""

from unittest.mock import Mock, patch

import pytest

from jukebox.models import Content, PlaylistSnapshot
from jukebox.playlist import Playlist


def make_content(name):
    return Content(id=name, path=f"/media/{name}.mp4", title=name.upper())


@pytest.fixture
def notifier():
    return Mock()


@pytest.fixture
def playlist(notifier):
    return Playlist(notifier=notifier)


def pending_ids(playlist):
    return [item.id for item in playlist.peek_state().pending]


def test_enqueue(playlist):
    """Test queueing content for a user."""
    item = playlist.enqueue(make_content("a1"), "alice")

    assert item.id == "a1"
    assert item.username == "alice"
    assert item.path == "/media/a1.mp4"
    assert item.title == "A1"
    assert pending_ids(playlist) == ["a1"]
    assert "alice" in playlist.rotation


def test_enqueue_appends_in_submission_order(playlist):
    playlist.enqueue(make_content("a1"), "alice")
    playlist.enqueue(make_content("b1"), "bob")
    playlist.enqueue(make_content("a2"), "alice")
    assert pending_ids(playlist) == ["a1", "b1", "a2"]
    assert playlist.rotation.names() == ["bob", "alice"]


def test_enqueue_same_content_twice(playlist):
    """Entries are not de-duplicated by id."""
    playlist.enqueue(make_content("a1"), "alice")
    playlist.enqueue(make_content("a1"), "bob")
    assert pending_ids(playlist) == ["a1", "a1"]


def test_enqueue_notifies(playlist, notifier):
    playlist.enqueue(make_content("a1"), "alice")

    notifier.assert_called_once()
    snapshot = notifier.call_args[0][0]
    assert isinstance(snapshot, PlaylistSnapshot)
    assert [item.id for item in snapshot.pending] == ["a1"]
    assert snapshot.now_playing is None


def test_notifier_errors_are_contained(notifier):
    notifier.side_effect = RuntimeError("socket gone")
    playlist = Playlist(notifier=notifier)
    playlist.enqueue(make_content("a1"), "alice")
    assert pending_ids(playlist) == ["a1"]


def test_remove(playlist):
    """Test removing content from the playlist."""
    playlist.enqueue(make_content("a1"), "alice")
    playlist.enqueue(make_content("b1"), "bob")

    assert playlist.remove("a1") is True
    assert pending_ids(playlist) == ["b1"]


def test_remove_nonexistent(playlist, notifier):
    playlist.enqueue(make_content("a1"), "alice")
    notifier.reset_mock()

    assert playlist.remove("zzz") is False
    assert pending_ids(playlist) == ["a1"]
    notifier.assert_not_called()


def test_remove_keeps_submitter_in_rotation(playlist):
    playlist.enqueue(make_content("a1"), "alice")
    playlist.remove("a1")
    assert "alice" in playlist.rotation


def test_reorder_full_replace(playlist):
    """Items missing from the new order are dropped."""
    for name in ("x1", "x2", "x3"):
        playlist.enqueue(make_content(name), "ursula")

    playlist.reorder("ursula", ["x3", "x1"])

    assert [item.id for item in playlist.pending_for("ursula")] == ["x3", "x1"]
    assert pending_ids(playlist) == ["x3", "x1"]


def test_reorder_moves_block_after_other_users(playlist):
    playlist.enqueue(make_content("a1"), "alice")
    playlist.enqueue(make_content("b1"), "bob")
    playlist.enqueue(make_content("a2"), "alice")
    playlist.enqueue(make_content("b2"), "bob")

    playlist.reorder("alice", ["a2", "a1"])

    assert pending_ids(playlist) == ["b1", "b2", "a2", "a1"]


def test_reorder_ignores_stale_and_foreign_ids(playlist):
    playlist.enqueue(make_content("a1"), "alice")
    playlist.enqueue(make_content("b1"), "bob")

    playlist.reorder("alice", ["gone", "b1", "a1"])

    assert [item.id for item in playlist.pending_for("alice")] == ["a1"]
    assert [item.id for item in playlist.pending_for("bob")] == ["b1"]


def test_reorder_does_not_duplicate(playlist):
    playlist.enqueue(make_content("a1"), "alice")
    playlist.reorder("alice", ["a1", "a1"])
    assert pending_ids(playlist) == ["a1"]


def test_reorder_with_duplicate_entries(playlist):
    """Content queued twice can be listed twice."""
    playlist.enqueue(make_content("a1"), "alice")
    playlist.enqueue(make_content("a2"), "alice")
    playlist.enqueue(make_content("a1"), "alice")

    playlist.reorder("alice", ["a1", "a1", "a2"])

    assert pending_ids(playlist) == ["a1", "a1", "a2"]


def test_shuffle_only_touches_owner_slots(playlist):
    """Other users' items keep their positions."""
    playlist.enqueue(make_content("a1"), "alice")
    playlist.enqueue(make_content("b1"), "bob")
    playlist.enqueue(make_content("a2"), "alice")
    playlist.enqueue(make_content("b2"), "bob")
    playlist.enqueue(make_content("a3"), "alice")

    with patch("jukebox.playlist.random.shuffle", side_effect=lambda items: items.reverse()):
        playlist.shuffle("alice")

    assert pending_ids(playlist) == ["a3", "b1", "a2", "b2", "a1"]


def test_shuffle_keeps_the_same_items(playlist):
    names = [f"a{n}" for n in range(10)]
    for name in names:
        playlist.enqueue(make_content(name), "alice")
    playlist.enqueue(make_content("b1"), "bob")

    playlist.shuffle("alice")

    assert sorted(item.id for item in playlist.pending_for("alice")) == sorted(names)
    assert pending_ids(playlist)[-1] == "b1"


def test_shuffle_unknown_user(playlist):
    playlist.enqueue(make_content("a1"), "alice")
    playlist.shuffle("nobody")
    assert pending_ids(playlist) == ["a1"]


def test_start_and_finish(playlist):
    """An item is either pending or now playing, never both."""
    item = playlist.enqueue(make_content("a1"), "alice")
    playlist.enqueue(make_content("a2"), "alice")

    playlist.start(item)
    snapshot = playlist.peek_state()
    assert snapshot.now_playing is item
    assert [pending.id for pending in snapshot.pending] == ["a2"]

    assert playlist.finish() is item
    assert playlist.now_playing is None


def test_start_removes_only_the_started_entry(playlist):
    first = playlist.enqueue(make_content("a1"), "alice")
    playlist.enqueue(make_content("a1"), "bob")

    playlist.start(first)

    assert [(item.id, item.username) for item in playlist.peek_state().pending] == [("a1", "bob")]


def test_first_pending_for(playlist):
    playlist.enqueue(make_content("b1"), "bob")
    playlist.enqueue(make_content("a1"), "alice")
    playlist.enqueue(make_content("a2"), "alice")

    assert playlist.first_pending_for("alice").id == "a1"
    assert playlist.first_pending_for("carol") is None


def test_peek_state_is_a_copy(playlist):
    playlist.enqueue(make_content("a1"), "alice")
    snapshot = playlist.peek_state()
    playlist.enqueue(make_content("a2"), "alice")

    assert [item.id for item in snapshot.pending] == ["a1"]


def test_snapshot_to_dict(playlist):
    item = playlist.enqueue(make_content("a1"), "alice")
    playlist.enqueue(make_content("b1"), "bob")
    playlist.start(item)

    data = playlist.peek_state().to_dict()

    assert data["now_playing"]["id"] == "a1"
    assert data["now_playing"]["username"] == "alice"
    assert [entry["id"] for entry in data["pending"]] == ["b1"]


def test_queued_item_is_immutable(playlist):
    """Snapshot consumers cannot change an item's metadata."""
    metadata = {"relative_path": "a1.mp4"}
    content = Content(id="a1", path="/media/a1.mp4", title="A1", metadata=metadata)
    item = playlist.enqueue(content, "alice")
    metadata["relative_path"] = "changed.mp4"

    shared = playlist.peek_state().pending[0]
    with pytest.raises(TypeError):
        shared.metadata["relative_path"] = "other.mp4"

    assert item.metadata["relative_path"] == "a1.mp4"
    assert hash(item) == hash(shared)
    assert item.to_dict()["metadata"] == {"relative_path": "a1.mp4"}
