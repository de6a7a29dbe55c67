"""
Main entry point for jukebox.

Initializes all components and starts the server.
"""

import argparse
import logging
import sys

import uvicorn

from .config_manager import ConfigManager
from .database import Database
from .engine import EngineError, MpvEngine
from .library import MediaLibrary
from .playback import DEFAULT_SUPPRESSION_WINDOW, PlaybackController
from .playlist import Playlist
from .playlog import PlayLog, PlaylistStorageError
from .web.broadcast import PlaylistBroadcaster
from .web.server import create_app

logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)

logger = logging.getLogger(__name__)


class JukeboxServer:
    """Main server class that orchestrates all components."""

    def __init__(self, mpv_options=None, media_directory=None):
        """
        Initialize all components.

        Args:
            mpv_options: Extra mpv options from the command line
            media_directory: Overrides the configured media directory

        Raises:
            PlaylistStorageError: If the playlists directory cannot be set up
        """
        logger.info("Initializing jukebox server...")

        self.database = Database()
        self.config_manager = ConfigManager(self.database)

        # Fails before anything can be submitted if logs cannot be written
        self.play_log = PlayLog(self.config_manager.get("playlists_directory"))

        if media_directory:
            self.library = MediaLibrary(media_directory)
        else:
            self.library = MediaLibrary.from_config(self.config_manager)
        self.library.scan()

        self.broadcaster = PlaylistBroadcaster()
        self.playlist = Playlist(notifier=self.broadcaster.notify)

        self.engine = MpvEngine(
            mpv_path=self.config_manager.get("mpv_path"),
            ipc_path=self.config_manager.get("mpv_ipc_path"),
            options=(
                self.config_manager.get_list("mpv_platform_options")
                + self.config_manager.get_list("mpv_options")
                + list(mpv_options or [])
            ),
        )

        self.playback_controller = PlaybackController(
            self.playlist,
            self.play_log,
            self.engine,
            suppression_window=self.config_manager.get_float(
                "eof_suppression_seconds", DEFAULT_SUPPRESSION_WINDOW
            ),
        )

        self.web_app = create_app(
            self.playlist,
            self.playback_controller,
            self.library,
            self.play_log,
            self.broadcaster,
            self.config_manager,
        )

        self.uvicorn_server = None

        logger.info("jukebox server initialized")

    def load_playlist(self, file_path):
        """Queue the items of a saved play log."""
        return self.play_log.load_from_file(file_path, self.library.get_all(), self.playlist)

    def run(self):
        """Start the player and the web server."""
        logger.info("Starting jukebox server...")

        try:
            self.engine.start()
        except EngineError as e:
            # Commands restart mpv, so the queue stays usable
            logger.error("Could not start mpv: %s", e)

        self.playback_controller.request_next()

        host = self.config_manager.get("web_host")
        port = self.config_manager.get_int("web_port", 8000)

        logger.info("=" * 60)
        logger.info("jukebox is running!")
        logger.info("Web UI: http://%s:%s", host, port)
        logger.info("Play log: %s", self.play_log.play_log_path)
        logger.info("=" * 60)

        config = uvicorn.Config(self.web_app, host=host, port=port, log_level="info")
        self.uvicorn_server = uvicorn.Server(config)
        self.uvicorn_server.run()

    def stop(self):
        """Stop all components."""
        logger.info("Stopping jukebox server...")

        if self.uvicorn_server:
            self.uvicorn_server.should_exit = True

        if self.playback_controller:
            self.playback_controller.shutdown()

        if self.database:
            self.database.close()

        logger.info("jukebox server stopped")


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        description="jukebox - Shared playlist with fair turns for every contributor",
        epilog="Unrecognized options are passed to mpv.",
    )
    parser.add_argument("--load", metavar="PLAYLIST", help="Queue the items of a saved play log")
    parser.add_argument("--media-dir", help="Directory scanned for playable files")
    parser.add_argument("--port", type=int, help="Web server port (saved to config)")
    return parser.parse_known_args(argv)


def main(argv=None):
    """Main entry point."""
    args, mpv_options = parse_args(argv)

    try:
        server = JukeboxServer(mpv_options=mpv_options, media_directory=args.media_dir)
    except PlaylistStorageError as e:
        logger.critical("%s", e)
        return 1

    if args.port:
        server.config_manager.set("web_port", args.port)
    if args.load:
        try:
            server.load_playlist(args.load)
        except OSError as e:
            logger.error("Could not load playlist %s: %s", args.load, e)

    try:
        server.run()
    except KeyboardInterrupt:
        pass
    finally:
        server.stop()
    return 0


if __name__ == "__main__":
    sys.exit(main())
