"""
Media library for jukebox.

Maps stable content ids to playable files found under the media directory.
"""

from __future__ import annotations

import hashlib
import logging
import threading
from pathlib import Path
from typing import TYPE_CHECKING, Dict, List, Optional, Union

from .models import Content

if TYPE_CHECKING:
    from .config_manager import ConfigManager


# Supported media file extensions
MEDIA_EXTENSIONS = [
    ".mp4", ".mkv", ".webm", ".avi", ".mov",
    ".mp3", ".ogg", ".opus", ".flac", ".m4a", ".wav",
]


def content_id_for(relative_path: str) -> str:
    """Stable id derived from a path relative to the library root."""
    return hashlib.sha1(relative_path.encode("utf-8")).hexdigest()[:12]


class MediaLibrary:
    """Index of the media files available for queueing."""

    def __init__(self, directory: Union[str, Path]):
        """
        Initialize MediaLibrary.

        Args:
            directory: Root directory scanned for media files
        """
        self.logger = logging.getLogger(__name__)
        self.directory = Path(directory).expanduser()
        self._lock = threading.Lock()
        self._by_id: Dict[str, Content] = {}
        self._by_path: Dict[str, Content] = {}

    @classmethod
    def from_config(cls, config_manager: "ConfigManager") -> "MediaLibrary":
        media_dir = config_manager.get("media_directory")
        if media_dir is None:
            media_dir = str(Path.home() / ".jukebox" / "media")
        return cls(media_dir)

    def scan(self) -> int:
        """
        Rebuild the index from the files on disk.

        Returns:
            Number of media files found
        """
        by_id: Dict[str, Content] = {}
        by_path: Dict[str, Content] = {}
        if not self.directory.is_dir():
            self.logger.warning("Media directory %s does not exist", self.directory)
        else:
            for file_path in sorted(self.directory.rglob("*")):
                if not file_path.is_file() or file_path.suffix.lower() not in MEDIA_EXTENSIONS:
                    continue
                relative = file_path.relative_to(self.directory).as_posix()
                content = Content(
                    id=content_id_for(relative),
                    path=str(file_path),
                    title=file_path.stem,
                    metadata={"relative_path": relative, "size_bytes": file_path.stat().st_size},
                )
                by_id[content.id] = content
                by_path[content.path] = content

        with self._lock:
            self._by_id = by_id
            self._by_path = by_path
        self.logger.info("Found %d media files in %s", len(by_id), self.directory)
        return len(by_id)

    def get(self, content_id: str) -> Optional[Content]:
        with self._lock:
            return self._by_id.get(content_id)

    def find_by_path(self, path: str) -> Optional[Content]:
        with self._lock:
            return self._by_path.get(path)

    def get_all(self) -> List[Content]:
        with self._lock:
            return sorted(self._by_id.values(), key=lambda content: content.title.lower())
