"""
Play log persistence for jukebox.

Every played item is appended to an m3u file named after the day the
server started, and flagged items go to a parallel report file. Each
record takes two lines: a comment line holding the submitter, then the
path. The same files can be fed back in to rebuild a playlist.
"""

import logging
import re
from datetime import date
from pathlib import Path
from typing import Iterable, Iterator, Optional, Tuple, Union

from .models import Content, QueueItem
from .playlist import Playlist

PLAYLIST_EXTENSION = '.m3u'
EXTENDED_M3U_HEADER = '#EXTM3U'
MAX_NAME_ATTEMPTS = 1000

_LINE_BREAK = re.compile(r'\r\n|\r|\n')


class PlaylistStorageError(Exception):
    """The playlists directory or the day's log file cannot be set up."""


class PlayLog:
    """Append-only, day-scoped play and report logs."""

    def __init__(self, directory: Union[str, Path], day: Optional[date] = None):
        """
        Initialize PlayLog.

        Creates the playlists directory if needed and reserves a fresh play
        log for the day. A log left by an earlier run on the same day is
        never reused; a numeric suffix is added instead.

        Args:
            directory: Directory holding all log files
            day: Calendar day used in file names (defaults to today)

        Raises:
            PlaylistStorageError: If the directory or file cannot be created
        """
        self.logger = logging.getLogger(__name__)
        self.directory = Path(directory)
        self.day = day or date.today()

        self._ensure_directory()
        self.play_log_path = self._reserve_play_log()
        self.report_log_path = self.directory / f'report-{self.day.isoformat()}{PLAYLIST_EXTENSION}'
        self.logger.info('Logging plays to %s', self.play_log_path)

    def _ensure_directory(self):
        try:
            self.directory.mkdir()
        except FileExistsError:
            pass
        except OSError as e:
            raise PlaylistStorageError(
                f'Cannot create playlists directory {self.directory}: {e}'
            ) from e

    def _reserve_play_log(self) -> Path:
        """Create the first free day-named file, adding -1, -2, ... on collision."""
        base_name = self.day.isoformat()
        for attempt in range(MAX_NAME_ATTEMPTS):
            name = base_name if attempt == 0 else f'{base_name}-{attempt}'
            path = self.directory / f'{name}{PLAYLIST_EXTENSION}'
            try:
                with open(path, 'x', encoding='utf-8'):
                    pass
            except FileExistsError:
                continue
            except OSError as e:
                raise PlaylistStorageError(f'Cannot create play log {path}: {e}') from e
            return path
        raise PlaylistStorageError(
            f'No free play log name for {base_name} after {MAX_NAME_ATTEMPTS} attempts'
        )

    # =========================================================================
    # Writing
    # =========================================================================

    @staticmethod
    def _format_record(comment: str, path: str) -> str:
        comment = _LINE_BREAK.sub(' ', comment)
        return f'#{comment}\n{path}\n'

    def _append(self, log_path: Path, comment: str, path: str):
        with open(log_path, 'a', encoding='utf-8', errors='surrogateescape') as f:
            f.write(self._format_record(comment, path))

    def append_play(self, item: QueueItem):
        """Record that an item started playing."""
        self._append(self.play_log_path, item.username, item.path)
        self.logger.debug('Logged play of %s for %s', item.path, item.username)

    def append_report(self, item: Union[Content, QueueItem], username: str, comment: str):
        """
        Record a user's report about an item.

        Reports are kept apart from the play log and do not affect
        scheduling.
        """
        self._append(self.report_log_path, f'{username} - {comment}', item.path)
        self.logger.info('%s reported %s: %s', username, item.path, comment)

    # =========================================================================
    # Loading
    # =========================================================================

    @staticmethod
    def read_records(file_path: Union[str, Path]) -> Iterator[Tuple[str, str]]:
        """
        Parse a log file into (comment, path) pairs.

        Records are split on line feeds only, since paths may hold any
        other control character. Blank lines and an extended m3u header
        are skipped.
        """
        text = Path(file_path).read_text(encoding='utf-8', errors='surrogateescape')
        lines = []
        for line in text.split('\n'):
            if line.endswith('\r'):
                line = line[:-1]
            if line.strip(' \t') and line != EXTENDED_M3U_HEADER:
                lines.append(line)
        for comment_line, path in zip(lines[0::2], lines[1::2]):
            comment = comment_line[1:] if comment_line.startswith('#') else comment_line
            yield comment, path

    def load_from_file(
        self,
        file_path: Union[str, Path],
        known_contents: Iterable[Content],
        playlist: Playlist,
    ) -> int:
        """
        Re-queue the items listed in a log file.

        Records are queued in file order under the submitter named on their
        comment line. Paths not found in known_contents are skipped.

        Args:
            file_path: Log file to read
            known_contents: Contents to resolve paths against
            playlist: Playlist to enqueue into

        Returns:
            Number of items queued

        Raises:
            OSError: If the file cannot be read
        """
        by_path = {content.path: content for content in known_contents}
        queued = 0
        skipped = 0
        for username, path in self.read_records(file_path):
            content = by_path.get(path)
            if content is None:
                skipped += 1
                continue
            playlist.enqueue(content, username)
            queued += 1
        self.logger.info(
            'Loaded %d items from %s (%d unknown paths skipped)', queued, file_path, skipped
        )
        return queued
