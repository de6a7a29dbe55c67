"""
Unit tests for PlayLog.
"""

import shutil
import tempfile
from datetime import date
from pathlib import Path
from unittest.mock import patch

import pytest

from jukebox.models import Content, QueueItem
from jukebox.playlist import Playlist
from jukebox.playlog import PlayLog, PlaylistStorageError

DAY = date(2026, 10, 19)


@pytest.fixture
def temp_dir():
    """Create a temporary directory for testing."""
    path = tempfile.mkdtemp()
    yield Path(path)
    shutil.rmtree(path, ignore_errors=True)


@pytest.fixture
def playlists_dir(temp_dir):
    return temp_dir / "playlists"


@pytest.fixture
def play_log(playlists_dir):
    return PlayLog(playlists_dir, day=DAY)


def make_content(name):
    return Content(id=name, path=f"/media/{name}.mp4", title=name)


def make_item(name, username):
    return QueueItem.from_content(make_content(name), username)


def test_creates_directory(playlists_dir):
    """The playlists directory is created on startup."""
    PlayLog(playlists_dir, day=DAY)
    assert playlists_dir.is_dir()


def test_existing_directory_is_fine(playlists_dir):
    playlists_dir.mkdir()
    PlayLog(playlists_dir, day=DAY)
    assert playlists_dir.is_dir()


def test_directory_creation_failure_is_fatal(temp_dir):
    """Any error other than 'already exists' aborts startup."""
    blocker = temp_dir / "not-a-dir"
    blocker.write_text("")

    with pytest.raises(PlaylistStorageError):
        PlayLog(blocker / "playlists", day=DAY)


def test_play_log_named_after_day(play_log, playlists_dir):
    assert play_log.play_log_path == playlists_dir / "2026-10-19.m3u"
    assert play_log.play_log_path.exists()
    assert play_log.report_log_path == playlists_dir / "report-2026-10-19.m3u"


def test_second_start_gets_suffixed_file(playlists_dir):
    """A later run on the same day never appends to an earlier run's log."""
    first = PlayLog(playlists_dir, day=DAY)
    first.append_play(make_item("a1", "alice"))

    second = PlayLog(playlists_dir, day=DAY)
    third = PlayLog(playlists_dir, day=DAY)

    assert second.play_log_path.name == "2026-10-19-1.m3u"
    assert third.play_log_path.name == "2026-10-19-2.m3u"
    assert first.play_log_path.read_text(encoding="utf-8") == "#alice\n/media/a1.mp4\n"


def test_suffix_skips_taken_names(playlists_dir):
    playlists_dir.mkdir()
    (playlists_dir / "2026-10-19.m3u").write_text("")
    (playlists_dir / "2026-10-19-1.m3u").write_text("")

    assert PlayLog(playlists_dir, day=DAY).play_log_path.name == "2026-10-19-2.m3u"


def test_name_attempts_are_bounded(playlists_dir):
    playlists_dir.mkdir()
    for name in ("2026-10-19", "2026-10-19-1", "2026-10-19-2"):
        (playlists_dir / f"{name}.m3u").write_text("")

    with patch("jukebox.playlog.MAX_NAME_ATTEMPTS", 3):
        with pytest.raises(PlaylistStorageError):
            PlayLog(playlists_dir, day=DAY)


def test_append_play(play_log):
    """Each play adds a comment line with the submitter and a path line."""
    play_log.append_play(make_item("a1", "alice"))
    play_log.append_play(make_item("b1", "bob"))

    assert play_log.play_log_path.read_text(encoding="utf-8") == (
        "#alice\n/media/a1.mp4\n#bob\n/media/b1.mp4\n"
    )


def test_append_report(play_log):
    """Reports go to their own file and leave the play log alone."""
    play_log.append_report(make_content("a1"), "bob", "wrong subtitles")

    assert play_log.report_log_path.read_text(encoding="utf-8") == (
        "#bob - wrong subtitles\n/media/a1.mp4\n"
    )
    assert play_log.play_log_path.read_text(encoding="utf-8") == ""


def test_report_comment_stays_on_one_line(play_log):
    play_log.append_report(make_content("a1"), "bob", "too loud\nand too long")

    lines = play_log.report_log_path.read_text(encoding="utf-8").splitlines()
    assert lines == ["#bob - too loud and too long", "/media/a1.mp4"]


def test_load_round_trip(play_log):
    """Logged plays come back in file order with their submitters."""
    play_log.append_play(make_item("a1", "alice"))
    play_log.append_play(make_item("b1", "bob"))
    playlist = Playlist()

    count = play_log.load_from_file(
        play_log.play_log_path, [make_content("b1"), make_content("a1")], playlist
    )

    assert count == 2
    pending = playlist.peek_state().pending
    assert [(item.id, item.username) for item in pending] == [("a1", "alice"), ("b1", "bob")]
    assert playlist.rotation.names() == ["bob", "alice"]


def test_load_skips_unknown_paths(play_log):
    play_log.append_play(make_item("a1", "alice"))
    play_log.append_play(make_item("gone", "bob"))
    play_log.append_play(make_item("a2", "carol"))
    playlist = Playlist()

    count = play_log.load_from_file(
        play_log.play_log_path, [make_content("a1"), make_content("a2")], playlist
    )

    assert count == 2
    assert [item.username for item in playlist.peek_state().pending] == ["alice", "carol"]


def test_load_tolerates_header_and_blank_lines(play_log, temp_dir):
    path = temp_dir / "saved.m3u"
    path.write_text("#EXTM3U\n#alice\n/media/a1.mp4\n\n#bob\n/media/b1.mp4", encoding="utf-8")
    playlist = Playlist()

    play_log.load_from_file(path, [make_content("a1"), make_content("b1")], playlist)

    assert [item.username for item in playlist.peek_state().pending] == ["alice", "bob"]


def test_load_empty_file(play_log):
    playlist = Playlist()
    assert play_log.load_from_file(play_log.play_log_path, [make_content("a1")], playlist) == 0
    assert len(playlist) == 0


def test_read_records_keeps_hashes_inside_names(temp_dir):
    path = temp_dir / "saved.m3u"
    path.write_text("#dj #1\n/media/a1.mp4\n", encoding="utf-8")

    assert list(PlayLog.read_records(path)) == [("dj #1", "/media/a1.mp4")]


def test_load_round_trip_with_control_characters_in_path(play_log):
    """Only line feeds separate records; other breaks are part of the path."""
    odd = Content(id="odd", path="/media/a\x0cb c.mp4", title="odd")
    play_log.append_play(QueueItem.from_content(odd, "alice"))
    play_log.append_play(make_item("y", "bob"))
    playlist = Playlist()

    count = play_log.load_from_file(play_log.play_log_path, [odd, make_content("y")], playlist)

    assert count == 2
    pending = playlist.peek_state().pending
    assert [(item.id, item.username) for item in pending] == [("odd", "alice"), ("y", "bob")]


def test_comment_flattens_only_line_breaks(play_log):
    play_log.append_report(make_content("a1"), "bob", "one\r\ntwo\rthree\x0cfour")

    records = list(PlayLog.read_records(play_log.report_log_path))
    assert records == [("bob - one two three\x0cfour", "/media/a1.mp4")]


def test_read_records_handles_crlf(temp_dir):
    path = temp_dir / "saved.m3u"
    path.write_bytes(b"#EXTM3U\r\n#alice\r\n/media/a1.mp4\r\n")

    assert list(PlayLog.read_records(path)) == [("alice", "/media/a1.mp4")]


def test_read_records_tolerates_invalid_utf8(temp_dir):
    path = temp_dir / "saved.m3u"
    path.write_bytes(b"#alice\n/media/caf\xe9.mp4\n#bob\n/media/b1.mp4\n")

    records = list(PlayLog.read_records(path))

    assert [comment for comment, _ in records] == ["alice", "bob"]
    assert records[1][1] == "/media/b1.mp4"
