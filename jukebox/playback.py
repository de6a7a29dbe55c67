"""
Playback controller for jukebox.

Starts the next fairly scheduled item whenever the player goes idle, and
turns the engine's end-of-file signal into the next start. mpv reports
end of file more than once around track boundaries, so signals arriving
shortly after a load are discarded.
"""

import logging
import time
from enum import Enum
from typing import Any, Callable, Dict, Optional

from .engine import MediaEngine
from .models import QueueItem
from .playlist import Playlist
from .playlog import PlayLog
from .scheduler import FairnessScheduler

DEFAULT_SUPPRESSION_WINDOW = 1.0


class PlaybackState(Enum):
    """Playback state enumeration."""
    IDLE = 'idle'
    LOADING = 'loading'
    PLAYING = 'playing'


class PlaybackController:
    """Drives the media engine from the shared playlist."""

    def __init__(
        self,
        playlist: Playlist,
        play_log: PlayLog,
        engine: MediaEngine,
        suppression_window: float = DEFAULT_SUPPRESSION_WINDOW,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize PlaybackController.

        Args:
            playlist: Shared playlist
            play_log: Log receiving every started item
            engine: Media engine to drive
            suppression_window: Seconds after a load during which end-of-file
                signals are ignored
            clock: Monotonic time source
        """
        self.playlist = playlist
        self.play_log = play_log
        self.engine = engine
        self.scheduler = FairnessScheduler(playlist)
        self.suppression_window = suppression_window
        self.clock = clock

        self.logger = logging.getLogger(__name__)
        # Shared with the playlist so a transition is one critical section
        self.lock = playlist.lock
        self.state = PlaybackState.IDLE
        self._suppress_armed_at: Optional[float] = None

        self.engine.set_eof_callback(self.on_end_of_file)

    def request_next(self) -> Optional[QueueItem]:
        """
        Start the next scheduled item if nothing is playing.

        Items the engine refuses to load are dropped and the next one is
        tried.

        Returns:
            The item now playing, or None if the playlist is empty or
            something was already playing
        """
        with self.lock:
            if self.playlist.now_playing is not None:
                self.logger.debug('Already playing, ignoring request for next item')
                return None

            while True:
                item = self.scheduler.select_next()
                if item is None:
                    self.logger.info('Nothing left to play')
                    self.state = PlaybackState.IDLE
                    self.playlist.notify()
                    return None

                if self._start(item):
                    return item

    def _start(self, item: QueueItem) -> bool:
        """
        Take an item off the playlist and hand it to the engine.

        Assumes lock is already held.

        Returns:
            True if the engine accepted it
        """
        self.playlist.start(item)
        self.state = PlaybackState.LOADING

        try:
            self.play_log.append_play(item)
        except OSError as e:
            self.logger.error('Could not log play of %s: %s', item.path, e)

        self.playlist.notify()
        self._suppress_armed_at = self.clock()

        self.logger.info('Loading %s for %s', item.title, item.username)
        try:
            self.engine.load(item.path)
            self.engine.resume()
        except Exception as e:
            self.logger.error('Engine failed to play %s: %s', item.path, e, exc_info=True)
            self.playlist.finish()
            self.state = PlaybackState.IDLE
            self._suppress_armed_at = None
            return False

        self.state = PlaybackState.PLAYING
        self.logger.info('Playback started: %s', item.title)
        return True

    def _suppressing(self) -> bool:
        armed_at = self._suppress_armed_at
        return armed_at is not None and self.clock() - armed_at < self.suppression_window

    def on_end_of_file(self):
        """Called by the engine when the current item reaches its end."""
        with self.lock:
            if self._suppressing():
                self.logger.debug('Ignoring end of file right after a load')
                return

            finished = self.playlist.finish()
            if finished:
                self.logger.info('Finished: %s', finished.title)
            self.state = PlaybackState.IDLE
            self._suppress_armed_at = None
            self.request_next()

    def pause(self) -> bool:
        """Pause the engine. Playback state is unchanged."""
        return self._engine_command('pause', self.engine.pause)

    def resume(self) -> bool:
        """Resume the engine. Playback state is unchanged."""
        return self._engine_command('resume', self.engine.resume)

    def toggle_pause(self) -> bool:
        return self._engine_command('toggle pause', self.engine.toggle_pause)

    def _engine_command(self, name: str, command: Callable[[], None]) -> bool:
        with self.lock:
            try:
                command()
                return True
            except Exception as e:
                self.logger.error('Error sending %s to engine: %s', name, e, exc_info=True)
                return False

    def get_status(self) -> Dict[str, Any]:
        """
        Get current playback status.

        Returns:
            Dictionary with playback state and current item
        """
        with self.lock:
            snapshot = self.playlist.peek_state()
            return {
                'state': self.state.value,
                'now_playing': snapshot.now_playing.to_dict() if snapshot.now_playing else None,
                'pending_count': len(snapshot.pending),
            }

    def shutdown(self):
        """Stop the engine. Pending items are discarded with the process."""
        self.logger.info('Shutting down playback controller')
        self.engine.set_eof_callback(None)
        try:
            self.engine.stop()
        except Exception as e:
            self.logger.error('Error stopping engine: %s', e, exc_info=True)
        self.logger.info('Playback controller shut down')
